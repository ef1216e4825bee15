"""
One automation cycle.

Runs: ingest → alert hot postings → draft proposals → daily digest.
Each stage is isolated: a failure is logged and recorded in the summary and the
next stage still runs. Every step is idempotent against the store, so running
the cycle twice back to back produces no duplicate alerts or proposals.
"""
from __future__ import annotations

import time
from datetime import datetime, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from gigscout.config import AutomationSettings
from gigscout.ingest import ingest
from gigscout.log import get_logger
from gigscout.models import JobRecord, RunSummary
from gigscout.notifier import DiscordNotifier
from gigscout.proposal import generate_proposal
from gigscout.sources.base import UpstreamSource
from gigscout.tracker import PipelineStore

log = get_logger(__name__)


def _zone(name: str) -> tzinfo | None:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning("Unknown timezone %r, using local time", name)
        return None


def _local(moment: datetime, zone: tzinfo | None) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(zone) if zone is not None else moment.astimezone()


def should_send_digest(store: PipelineStore, now: datetime, settings: AutomationSettings) -> bool:
    """True inside the digest hour when no digest went out yet on this local date."""
    zone = _zone(settings.timezone)
    local_now = _local(now, zone)
    if local_now.hour != settings.digest_hour:
        return False
    last = store.last_digest_at()
    if last is None:
        return True
    return _local(last, zone).date() != local_now.date()


def send_alerts(notifier: DiscordNotifier, jobs: list[JobRecord], settings: AutomationSettings) -> int:
    hot = [j for j in jobs if (j.score or 0) >= settings.alert_min_score and not j.auto_reject]
    sent = 0
    for job in hot:
        if notifier.notify_new_job(job):
            sent += 1
        if settings.alert_delay:
            time.sleep(settings.alert_delay)
    if hot:
        log.info("Alerts: %d of %d hot posting(s) notified", sent, len(hot))
    return sent


def draft_proposals(
    store: PipelineStore,
    notifier: DiscordNotifier,
    settings: AutomationSettings,
    templates: dict[str, Any] | None = None,
    profile: dict[str, Any] | None = None,
) -> tuple[int, list[str]]:
    generated = 0
    errors: list[str] = []
    for job in store.jobs_needing_proposals(settings.proposal_min_score):
        try:
            content, template = generate_proposal(job, templates, profile)
            store.save_proposal(job.id, content, template)
            generated += 1
            notifier.notify_proposal_ready(job, content)
        except Exception as exc:
            log.exception("Proposal for %s failed", job.id)
            errors.append(f"proposal {job.id}: {exc}")
        if settings.proposal_delay:
            time.sleep(settings.proposal_delay)
    return generated, errors


def send_digest(
    store: PipelineStore,
    notifier: DiscordNotifier,
    settings: AutomationSettings,
    now: datetime,
) -> bool:
    if not should_send_digest(store, now, settings):
        return False
    jobs = store.qualified_jobs(settings.digest_min_score)
    stats = store.get_stats(days=1, now=now)
    if not notifier.notify_daily_digest(jobs, stats):
        log.warning("Daily digest not delivered; will retry on the next run in the window")
        return False
    store.mark_digest_sent(now)
    log.info("Daily digest sent (%d qualified job(s))", len(jobs))
    return True


def run_automation(
    store: PipelineStore,
    source: UpstreamSource,
    notifier: DiscordNotifier,
    settings: AutomationSettings | None = None,
    rubric: dict[str, Any] | None = None,
    templates: dict[str, Any] | None = None,
    profile: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> RunSummary:
    settings = settings or AutomationSettings.from_env()
    now = now or datetime.now(timezone.utc)
    summary = RunSummary()
    fresh: list[JobRecord] = []

    log.info("Automation run started at %s", now.isoformat())

    # 1. Fetch, score and persist
    try:
        result = ingest(
            store, source, rubric,
            qualify_min=settings.qualify_min_score,
            fetch_delay=settings.fetch_delay,
            now=now,
        )
        summary.jobs_fetched = result.total
        summary.new_jobs = result.new
        summary.qualified_jobs = result.qualified
        fresh = result.jobs
    except Exception as exc:
        log.exception("Ingest stage failed")
        summary.errors.append(f"ingest: {exc}")

    # 2. Alerts for this run's hot postings only
    try:
        summary.alerts_sent = send_alerts(notifier, fresh, settings)
    except Exception as exc:
        log.exception("Alert stage failed")
        summary.errors.append(f"alerts: {exc}")

    # 3. Proposals across the whole store
    try:
        generated, errors = draft_proposals(store, notifier, settings, templates, profile)
        summary.proposals_generated = generated
        summary.errors.extend(errors)
    except Exception as exc:
        log.exception("Proposal stage failed")
        summary.errors.append(f"proposals: {exc}")

    # 4. Daily digest
    try:
        summary.digest_sent = send_digest(store, notifier, settings, now)
    except Exception as exc:
        log.exception("Digest stage failed")
        summary.errors.append(f"digest: {exc}")

    log.info(
        "Automation run done: %d fetched, %d new, %d qualified, %d alerts, %d proposals, digest=%s, %d error(s)",
        summary.jobs_fetched, summary.new_jobs, summary.qualified_jobs,
        summary.alerts_sent, summary.proposals_generated, summary.digest_sent, len(summary.errors),
    )
    return summary
