"""Command-line front end: ``gigscout <command> [args]``."""
from __future__ import annotations

import contextlib
import sys
import webbrowser
from typing import Callable, Iterator

from gigscout.automation import run_automation
from gigscout.config import AutomationSettings, ensure_dirs
from gigscout.errors import InvalidStatusError, JobNotFoundError, MissingProposalError, PipelineError
from gigscout.ingest import ingest
from gigscout.log import configure, get_logger
from gigscout.models import RESPONSE_OUTCOMES, JobRecord, JobStatus
from gigscout.notifier import DiscordNotifier
from gigscout.portfolio import portfolio_listing, sync_portfolio
from gigscout.proposal import generate_proposal
from gigscout.review import review_summary, write_review_file
from gigscout.sources import VollnaSource, get_source
from gigscout.tracker import PipelineStore

log = get_logger(__name__)

RULE = "=" * 60
STATUS_CHOICES: tuple[str, ...] = (
    JobStatus.SUBMITTED.value,
    *RESPONSE_OUTCOMES,
    JobStatus.REJECTED.value,
)

HELP = """\
gigscout: freelance job pipeline

Usage: gigscout [-v] <command> [args]

  auto                          Run one automation cycle (fetch, alert, propose, digest)
  fetch                         Fetch and score new postings
  jobs [all|hot|warm|pending|submitted]
                                List jobs (default: qualified 65+)
  propose <id>                  Generate a proposal for one job
  batch-propose                 Generate proposals for every eligible hot job
  review [file]                 Print the review summary, or write a markdown queue
  submit <id>                   Show the proposal and open the job page
  status <id> <status> [note]   submitted | responded | won | lost | rejected
  track                         Pipeline status counts
  stats                         7 and 30 day statistics
  digest                        Send the daily digest now
  portfolio [list]              Sync GitHub repos into the profile, or list it
  platforms                     Postings per upstream platform
  help                          Show this message
"""


@contextlib.contextmanager
def _store() -> Iterator[PipelineStore]:
    ensure_dirs()
    with PipelineStore() as store:
        yield store


def _require_job(store: PipelineStore, job_id: str) -> JobRecord:
    job = store.get_job(job_id)
    if job is None:
        raise JobNotFoundError(job_id)
    return job


def cmd_auto(args: list[str]) -> int:
    with _store() as store:
        summary = run_automation(store, get_source(), DiscordNotifier())
    print(RULE)
    print("AUTOMATION RUN")
    print(RULE)
    for key, value in summary.as_dict().items():
        if key != "errors":
            print(f"  {key}: {value}")
    for err in summary.errors:
        print(f"  ! {err}")
    return 1 if summary.errors else 0


def cmd_fetch(args: list[str]) -> int:
    settings = AutomationSettings.from_env()
    print("Fetching jobs from Vollna...")
    with _store() as store:
        result = ingest(
            store, get_source(),
            qualify_min=settings.qualify_min_score,
            fetch_delay=settings.fetch_delay,
        )
    print("\nResults:")
    print(f"  Total fetched: {result.total}")
    print(f"  New jobs: {result.new}")
    print(f"  Qualified ({settings.qualify_min_score}+): {result.qualified}")
    qualified = [j for j in result.jobs if (j.score or 0) >= settings.qualify_min_score and not j.auto_reject]
    if qualified:
        print("\nQualified jobs:")
        for job in qualified:
            print(f"  {job.score} | {job.title[:50]}")
    return 0


def _select_jobs(store: PipelineStore, view: str) -> list[JobRecord]:
    if view == "all":
        return store.all_jobs(50)
    if view == "hot":
        return store.qualified_jobs(85)
    if view == "warm":
        return [j for j in store.qualified_jobs(70) if (j.score or 0) < 85]
    if view == "pending":
        return store.jobs_needing_proposals(AutomationSettings.from_env().proposal_min_score)
    if view == "submitted":
        return store.jobs_by_status(JobStatus.SUBMITTED.value)
    return store.qualified_jobs(65)


def cmd_jobs(args: list[str]) -> int:
    view = args[0] if args else "qualified"
    with _store() as store:
        jobs = _select_jobs(store, view)

    print(f"\n{view.upper()} JOBS ({len(jobs)})")
    print(RULE)
    if not jobs:
        print("No jobs found.")
        return 0
    for i, job in enumerate(jobs, 1):
        mark = "✓" if job.has_proposal else "○"
        print(f"\n{i}. [{job.score}] {job.title[:50]}")
        print(f"   ID: {job.id} | Budget: {job.budget_label} | Proposal: {mark} | Status: {job.status}")
    print("\n" + RULE)
    print("Commands: gigscout propose <id> | gigscout submit <id>")
    return 0


def cmd_propose(args: list[str]) -> int:
    if not args:
        print("Usage: gigscout propose <job-id>")
        return 0
    with _store() as store:
        job = _require_job(store, args[0])
        print(f"Generating proposal for: {job.title}")
        content, template = generate_proposal(job)
        store.save_proposal(job.id, content, template)

    print(f"\nTemplate used: {template}")
    print("\n" + RULE)
    print(content)
    print(RULE)
    print(f"\nProposal saved! Length: {len(content)} chars")
    print(f"Submit: gigscout submit {job.id}")
    return 0


def cmd_batch_propose(args: list[str]) -> int:
    min_score = AutomationSettings.from_env().proposal_min_score
    failed = 0
    with _store() as store:
        jobs = store.jobs_needing_proposals(min_score)
        if not jobs:
            print("No jobs need proposals.")
            return 0
        print(f"Generating proposals for {len(jobs)} jobs...")
        for job in jobs:
            try:
                content, template = generate_proposal(job)
                store.save_proposal(job.id, content, template)
                print(f"✓ {job.id}: {template}")
            except Exception:
                log.exception("Proposal for %s failed", job.id)
                print(f"✗ {job.id}: Failed")
                failed += 1
    print("\nDone! Run `gigscout review` to see all proposals.")
    return 1 if failed else 0


def cmd_review(args: list[str]) -> int:
    with _store() as store:
        if args and args[0] == "file":
            path = write_review_file(store)
            print(f"Review file created: {path}")
        else:
            print(review_summary(store))
    return 0


def cmd_submit(args: list[str]) -> int:
    if not args:
        print("Usage: gigscout submit <job-id>")
        return 0
    with _store() as store:
        job = _require_job(store, args[0])
    if not job.has_proposal:
        raise MissingProposalError(job.id)

    print("\n" + RULE)
    print(job.proposal_text)
    print(RULE + "\n")
    opened = False
    if job.url:
        try:
            opened = webbrowser.open(job.url)
        except webbrowser.Error:
            opened = False
    print("✓ Opening job in browser..." if opened else f"Open manually: {job.url}")
    print("\nAfter submitting, run:")
    print(f"  gigscout status {job.id} submitted")
    return 0


def cmd_status(args: list[str]) -> int:
    if len(args) < 2:
        print("Usage: gigscout status <job-id> <status> [notes]")
        print(f"Statuses: {', '.join(STATUS_CHOICES)}")
        return 0
    job_id, status, note = args[0], args[1], " ".join(args[2:]) or None
    if status not in STATUS_CHOICES:
        raise InvalidStatusError(status, STATUS_CHOICES)

    with _store() as store:
        if status == JobStatus.SUBMITTED.value:
            job = store.mark_submitted(job_id)
            print(f"✓ Marked as submitted: {job.title}")
        elif status in RESPONSE_OUTCOMES:
            job = store.record_response(job_id, status, note)
            print(f"✓ Marked as {status}: {job.title}")
            if note:
                print(f"  Notes: {note}")
        else:
            store.update_status(job_id, status, note)
            print(f"✓ Status updated to {status}")
    return 0


def cmd_track(args: list[str]) -> int:
    with _store() as store:
        counts = store.status_counts()
        stats = store.get_stats(30)
    print("\n" + RULE)
    print("PIPELINE STATUS")
    print(RULE)
    for status, count in sorted(counts.items()):
        print(f"  {status}: {count}")
    print("\nLast 30 days:")
    print(f"  Total jobs: {stats['total_jobs']}")
    print(f"  Qualified: {stats['qualified_jobs']}")
    print(f"  Proposals: {stats['proposals_generated']}")
    print(f"  Submitted: {stats['submitted']}")
    print(f"  Won: {stats['won']}")
    print(RULE + "\n")
    return 0


def _print_window(label: str, stats: dict) -> None:
    avg = stats.get("avg_score")
    print(f"\n{label}:")
    print(f"  Jobs fetched: {stats['total_jobs']}")
    print(f"  Qualified (50+): {stats['qualified_jobs']}")
    print(f"  Proposals: {stats['proposals_generated']}")
    print(f"  Submitted: {stats['submitted']}")
    print(f"  Responses: {stats['responses']}")
    print(f"  Won: {stats['won']}")
    print(f"  Avg score: {avg:.1f}" if avg is not None else "  Avg score: N/A")


def cmd_stats(args: list[str]) -> int:
    with _store() as store:
        week = store.get_stats(7)
        month = store.get_stats(30)
    print("\n" + RULE)
    print("PIPELINE STATISTICS")
    print(RULE)
    _print_window("Last 7 days", week)
    _print_window("Last 30 days", month)
    if month["submitted"]:
        print("\nConversion (30d):")
        print(f"  Response rate: {month['responses'] / month['submitted'] * 100:.1f}%")
        print(f"  Win rate: {month['won'] / month['submitted'] * 100:.1f}%")
    print(RULE + "\n")
    return 0


def cmd_digest(args: list[str]) -> int:
    settings = AutomationSettings.from_env()
    print("Sending daily digest to Discord...")
    with _store() as store:
        jobs = store.qualified_jobs(settings.digest_min_score)
        stats = store.get_stats(1)
        sent = DiscordNotifier().notify_daily_digest(jobs, stats)
        if sent:
            store.mark_digest_sent()
    if sent:
        print("✓ Digest sent successfully!")
        return 0
    print("✗ Failed to send digest. Check DISCORD_WEBHOOK_URL.")
    return 1


def cmd_portfolio(args: list[str]) -> int:
    if args and args[0] == "list":
        print(portfolio_listing())
        return 0
    print("Syncing portfolio from GitHub...")
    items = sync_portfolio()
    print("\nPortfolio synced successfully!")
    print(f"  Total repos: {len(items)}")
    print(f"  Public: {sum(1 for r in items if not r['is_private'])}")
    print(f"  Private: {sum(1 for r in items if r['is_private'])}")
    print('\n  Run "gigscout portfolio list" to review.')
    return 0


def cmd_platforms(args: list[str]) -> int:
    source = get_source()
    if not isinstance(source, VollnaSource):
        print("Platform counts are only available for the Vollna source.")
        return 1
    counts = source.platform_counts()
    print("\nPostings per platform:")
    if not counts:
        print("  (none)")
    for site, count in sorted(counts.items(), key=lambda kv: -kv[1]):
        print(f"  {site}: {count}")
    return 0


def cmd_help(args: list[str]) -> int:
    print(HELP)
    return 0


COMMANDS: dict[str, Callable[[list[str]], int]] = {
    "auto": cmd_auto,
    "fetch": cmd_fetch,
    "jobs": cmd_jobs,
    "propose": cmd_propose,
    "batch-propose": cmd_batch_propose,
    "review": cmd_review,
    "submit": cmd_submit,
    "status": cmd_status,
    "track": cmd_track,
    "stats": cmd_stats,
    "digest": cmd_digest,
    "portfolio": cmd_portfolio,
    "platforms": cmd_platforms,
    "help": cmd_help,
}


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv and argv[0] in ("-v", "--verbose"):
        configure("DEBUG")
        argv = argv[1:]
    if not argv or argv[0] not in COMMANDS:
        return cmd_help([])
    try:
        return COMMANDS[argv[0]](argv[1:])
    except PipelineError as exc:
        print(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
