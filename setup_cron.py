#!/usr/bin/env python3
"""
Install a cron job that runs the automation cycle every hour.
Run once: python setup_cron.py
"""
from __future__ import annotations

import subprocess
from pathlib import Path

ROOT = Path(__file__).resolve().parent
VENV_PYTHON = ROOT / ".venv" / "bin" / "python"
LOG_FILE = ROOT / "logs" / "cron.log"
MARKER = "# gigscout hourly"


def cron_entry(root: Path = ROOT, python: Path = VENV_PYTHON) -> str:
    log_file = root / "logs" / "cron.log"
    return f"0 * * * * cd {root} && {python} -m gigscout.run_daily --once >> {log_file} 2>&1 {MARKER}"


def merge_crontab(existing: str, entry: str) -> str | None:
    """New crontab text, or None when an up-to-date entry is already there.

    A previous gigscout line (same marker) is replaced rather than duplicated.
    """
    lines = [ln for ln in existing.splitlines() if ln.strip()]
    if entry in lines:
        return None
    kept = [ln for ln in lines if not ln.endswith(MARKER)]
    return "\n".join(kept + [entry]) + "\n"


def _current_crontab() -> str:
    out = subprocess.run(["crontab", "-l"], capture_output=True, text=True, timeout=5)
    return (out.stdout or "") if out.returncode == 0 else ""


def _write_crontab_file(content: str) -> Path:
    path = ROOT / "crontab.txt"
    path.write_text(content, encoding="utf-8")
    print(f"Wrote {path}")
    return path


def main():
    if not VENV_PYTHON.exists():
        print("Error: .venv not found. Run: python -m venv .venv && .venv/bin/pip install -e .")
        return 1
    LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    entry = cron_entry()
    try:
        new_crontab = merge_crontab(_current_crontab(), entry)
        if new_crontab is None:
            print("Cron entry already present. No change.")
            return 0
        proc = subprocess.run(["crontab", "-"], input=new_crontab, capture_output=True, text=True, timeout=5)
    except subprocess.TimeoutExpired:
        path = _write_crontab_file(entry + "\n")
        print(f"Crontab timed out. To install manually, run:\n  crontab {path}")
        return 1
    except FileNotFoundError:
        _write_crontab_file(entry + "\n")
        print("crontab not found. On Windows use Task Scheduler; on Mac/Linux ensure cron is available.")
        return 1

    if proc.returncode != 0:
        path = _write_crontab_file(new_crontab)
        print(f"Could not install crontab automatically. Run manually:\n  crontab {path}")
        return 1
    print("Cron installed: hourly at :00")
    print(f"  Entry: {entry}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
