"""Review queue: markdown file and console summary of qualified jobs."""
from __future__ import annotations

from datetime import datetime
from pathlib import Path

from gigscout.config import DATA_DIR
from gigscout.log import get_logger
from gigscout.models import JobRecord, JobStatus
from gigscout.scorer import score_category
from gigscout.tracker import PipelineStore

log = get_logger(__name__)

RULE = "=" * 70
MAYBE_PREVIEW = 5


def _bucket(jobs: list[JobRecord]) -> dict[str, list[JobRecord]]:
    buckets: dict[str, list[JobRecord]] = {"hot": [], "warm": [], "maybe": []}
    for job in jobs:
        category = score_category(job.score or 0)
        if category in buckets:
            buckets[category].append(job)
    return buckets


def _ready_to_submit(jobs: list[JobRecord]) -> list[JobRecord]:
    return [j for j in jobs if j.has_proposal and j.status != JobStatus.SUBMITTED.value]


def _needs_proposal(jobs: list[JobRecord], hot_min: int = 85) -> list[JobRecord]:
    return [j for j in jobs if not j.has_proposal and (j.score or 0) >= hot_min]


def format_job(job: JobRecord, index: int) -> str:
    lines = [
        "",
        RULE,
        f"JOB #{index + 1} | Score: {job.score}/100 | ID: {job.id}",
        RULE,
        "",
        f"**{job.title}**",
        f"URL: {job.url}",
        f"Posted: {job.posted_at or 'Unknown'}",
        f"Budget: {job.budget_label}",
        f"Skills: {job.skills or 'Not specified'}",
        f"Status: {job.status}",
    ]

    breakdown = job.breakdown
    if breakdown is not None:
        f = breakdown.factors()
        lines += [
            "",
            "Score Breakdown:",
            f"  Budget: {f['budget']} | Tech: {f['tech_match']} | Client: {f['client_quality']}",
            f"  Clarity: {f['project_clarity']} | Timing: {f['timing']}",
        ]
    if job.score_reasons:
        lines += ["", "Why:"] + [f"  - {r}" for r in job.score_reasons]

    lines += ["", "--- Description ---", job.description or "No description"]

    if job.proposal_text:
        lines += ["", f"--- Generated Proposal (Template: {job.proposal_template or 'Unknown'}) ---", job.proposal_text]

    lines += [
        "",
        "--- Actions ---",
        f"Submit: gigscout submit {job.id}",
        f"Mark won: gigscout status {job.id} won \"Contract details\"",
        f"Mark lost: gigscout status {job.id} lost",
    ]
    return "\n".join(lines)


def build_review(store: PipelineStore, min_score: int = 65, now: datetime | None = None) -> str:
    jobs = store.qualified_jobs(min_score)
    buckets = _bucket(jobs)
    stamp = (now or datetime.now()).strftime("%B %d, %Y at %H:%M")

    lines = [
        "# Job Review Queue",
        f"Generated: {stamp}",
        f"Total qualified jobs: {len(jobs)}",
        f"Minimum score filter: {min_score}",
        "",
        "## Summary",
        f"\U0001f525 Hot (85+): {len(buckets['hot'])}",
        f"⭐ Warm (70-84): {len(buckets['warm'])}",
        f"\U0001f440 Maybe (50-69): {len(buckets['maybe'])}",
    ]

    missing = _needs_proposal(jobs)
    if missing:
        lines += ["", f"⚠️ **{len(missing)} hot jobs without proposals!**", "Run: gigscout batch-propose"]

    lines += ["", "## Quick Actions", "```bash", "# Submit ready proposals"]
    lines += [f"gigscout submit {j.id}  # {j.title[:40]}" for j in _ready_to_submit(jobs)[:5]]
    lines += ["```", "", "# Individual Jobs"]

    if buckets["hot"]:
        lines += ["", "## \U0001f525 Hot Jobs (Score 85+)"]
        lines += [format_job(j, i) for i, j in enumerate(buckets["hot"])]
    if buckets["warm"]:
        lines += ["", "## ⭐ Warm Jobs (Score 70-84)"]
        lines += [format_job(j, i) for i, j in enumerate(buckets["warm"])]
    if buckets["maybe"]:
        lines += ["", f"## \U0001f440 Maybe Jobs (Score 50-69) - First {MAYBE_PREVIEW}"]
        lines += [format_job(j, i) for i, j in enumerate(buckets["maybe"][:MAYBE_PREVIEW])]
        extra = len(buckets["maybe"]) - MAYBE_PREVIEW
        if extra > 0:
            lines += ["", f"... and {extra} more. Run with a lower threshold to see all."]

    return "\n".join(lines) + "\n"


def write_review_file(
    store: PipelineStore,
    min_score: int = 65,
    out_dir: Path | None = None,
    now: datetime | None = None,
) -> Path:
    now = now or datetime.now()
    out_dir = out_dir or DATA_DIR
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"review_queue_{now.strftime('%Y-%m-%d_%H-%M')}.md"
    path.write_text(build_review(store, min_score, now), encoding="utf-8")
    log.info("Review file written → %s", path)
    return path


def review_summary(store: PipelineStore) -> str:
    jobs = store.qualified_jobs(50)
    buckets = _bucket(jobs)
    ready = _ready_to_submit(jobs)

    lines = ["", "=" * 60, "QUALIFIED JOBS SUMMARY", "=" * 60, ""]
    lines.append(f"\U0001f525 Hot (85+): {len(buckets['hot'])}")
    lines += [f"   {j.score} | {j.title[:50]}" for j in buckets["hot"]]
    lines += ["", f"⭐ Warm (70-84): {len(buckets['warm'])}"]
    lines += [f"   {j.score} | {j.title[:50]}" for j in buckets["warm"][:5]]
    lines += ["", f"\U0001f440 Maybe (50-69): {len(buckets['maybe'])}"]

    lines += [
        "",
        "-" * 60,
        "PENDING ACTIONS:",
        f"   Proposals to generate: {len(_needs_proposal(jobs))}",
        f"   Proposals to submit: {len(ready)}",
    ]
    if ready:
        lines += ["", "Ready to submit:"] + [f"   gigscout submit {j.id}" for j in ready[:3]]
    lines.append("=" * 60)
    return "\n".join(lines)
