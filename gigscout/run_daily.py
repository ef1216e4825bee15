"""
Run the automation cycle every hour.

Usage:
  - Cron (recommended): install with `python setup_cron.py`, which adds
      0 * * * * cd /path/to/project && .venv/bin/python -m gigscout.run_daily --once
  - Or keep this process in the background: python -m gigscout.run_daily
"""
from __future__ import annotations

import sys
import time
from datetime import datetime, timedelta

from gigscout.automation import run_automation
from gigscout.config import AutomationSettings, ensure_dirs
from gigscout.log import get_logger
from gigscout.models import RunSummary
from gigscout.notifier import DiscordNotifier
from gigscout.sources import get_source
from gigscout.tracker import PipelineStore

log = get_logger(__name__)

RUN_MINUTE = 0


def run_once() -> RunSummary:
    ensure_dirs()
    settings = AutomationSettings.from_env()
    with PipelineStore() as store:
        return run_automation(store, get_source(), DiscordNotifier(), settings)


def next_run(now: datetime | None = None) -> datetime:
    now = now or datetime.now()
    target = now.replace(minute=RUN_MINUTE, second=0, microsecond=0)
    if now >= target:
        target = target + timedelta(hours=1)
    return target


def main() -> None:
    log.info("Scheduler: run hourly at :%02d", RUN_MINUTE)
    while True:
        target = next_run()
        wait_secs = max((target - datetime.now()).total_seconds(), 0)
        log.info("Next run at %s (in %.0f min)", target.strftime("%H:%M"), wait_secs / 60)
        time.sleep(wait_secs)
        try:
            summary = run_once()
        except Exception:
            log.exception("Automation run crashed")
            continue
        if summary.errors:
            log.warning("Run finished with %d error(s)", len(summary.errors))


if __name__ == "__main__":
    if "--once" in sys.argv:
        result = run_once()
        sys.exit(1 if result.errors else 0)
    main()
