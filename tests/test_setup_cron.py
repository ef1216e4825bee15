from datetime import datetime
from pathlib import Path

from gigscout.run_daily import next_run
from setup_cron import MARKER, cron_entry, merge_crontab


def test_cron_entry_runs_module_once():
    entry = cron_entry(Path("/srv/gigscout"), Path("/srv/gigscout/.venv/bin/python"))
    assert entry.startswith("0 * * * * cd /srv/gigscout && ")
    assert "-m gigscout.run_daily --once" in entry
    assert entry.endswith(MARKER)


def test_merge_crontab_is_idempotent_and_replaces_old_entry():
    entry = cron_entry(Path("/new"), Path("/new/python"))
    old = cron_entry(Path("/old"), Path("/old/python"))
    existing = f"MAILTO=me\n{old}\n"

    merged = merge_crontab(existing, entry)
    assert merged == f"MAILTO=me\n{entry}\n"
    assert merge_crontab(merged, entry) is None


def test_next_run_is_top_of_next_hour():
    assert next_run(datetime(2026, 3, 2, 10, 15, 30)) == datetime(2026, 3, 2, 11, 0)
    assert next_run(datetime(2026, 3, 2, 10, 0, 0)) == datetime(2026, 3, 2, 11, 0)
