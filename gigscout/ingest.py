"""Turn raw upstream projects into scored, persisted pipeline jobs.

Everything upstream-shaped (string or object budgets, ``~`` ids embedded in
URLs, skills as list or string) is resolved here, so the scorer and the store
only ever see ``JobPosting``.
"""
from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from gigscout.log import get_logger
from gigscout.models import (
    Budget,
    BudgetDescriptor,
    ClientSignals,
    JobPosting,
    JobRecord,
    JobStatus,
    StructuredBudget,
    TextBudget,
)
from gigscout.scorer import score_job
from gigscout.sources.base import UpstreamSource
from gigscout.tracker import PipelineStore

log = get_logger(__name__)

_URL_ID = re.compile(r"~(\w+)")
_AMOUNT_RANGE = re.compile(r"\$?\s*([\d,]*\d(?:\.\d+)?)(?:\s*-\s*\$?\s*([\d,]*\d(?:\.\d+)?))?")
_HOURLY_HINTS = ("/hr", "hour")


@dataclass
class IngestResult:
    total: int = 0
    new: int = 0
    qualified: int = 0
    skipped: int = 0
    jobs: list[JobRecord] = field(default_factory=list)


# --- Boundary parsing ----------------------------------------------------


def derive_job_id(raw: dict[str, Any]) -> str | None:
    """Upstream ciphertext, then uid, then the ``~token`` in the URL, then the URL."""
    ciphertext = raw.get("ciphertext")
    if ciphertext:
        return str(ciphertext).replace("~", "")
    uid = raw.get("uid")
    if uid:
        return str(uid)
    url = raw.get("url") or ""
    match = _URL_ID.search(url)
    if match:
        return match.group(1)
    return url or None


def _as_number(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_descriptor(value: Any) -> BudgetDescriptor | None:
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        return StructuredBudget(
            min=_as_number(value.get("min")),
            max=_as_number(value.get("max")),
            amount=_as_number(value.get("amount")),
        )
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return StructuredBudget(amount=float(value))
    return TextBudget(str(value))


def parse_budget_text(text: str) -> tuple[float, float] | None:
    """``"$2,000-$3,000"`` → (2000, 3000); ``"$30/hr"`` → (30, 30); junk → None."""
    match = _AMOUNT_RANGE.search(text or "")
    if not match:
        return None
    low = float(match.group(1).replace(",", ""))
    high = float(match.group(2).replace(",", "")) if match.group(2) else low
    return low, high


def _descriptor_range(descriptor: BudgetDescriptor) -> tuple[float, float] | None:
    if isinstance(descriptor, TextBudget):
        return parse_budget_text(descriptor.raw)
    lo, hi, amount = descriptor.min, descriptor.max, descriptor.amount
    if lo is None and hi is None and amount is None:
        return None
    low = lo if lo is not None else (amount if amount is not None else hi)
    high = hi if hi is not None else (amount if amount is not None else lo)
    return float(low), float(high)


def _looks_hourly(raw: dict[str, Any], descriptor: BudgetDescriptor) -> bool:
    if str(raw.get("budget_type") or "").lower() == "hourly":
        return True
    if isinstance(descriptor, TextBudget):
        text = descriptor.raw.lower()
        return any(hint in text for hint in _HOURLY_HINTS)
    return False


def resolve_budget(raw: dict[str, Any]) -> Budget | None:
    """The single place where upstream budget encodings become a ``Budget``.

    A usable ``hourly_rate`` wins; an empty or unparseable one falls through
    to ``budget``.
    """
    hourly = to_descriptor(raw.get("hourly_rate"))
    if hourly is not None:
        amounts = _descriptor_range(hourly)
        if amounts is not None:
            return Budget(kind="hourly", min=amounts[0], max=amounts[1])
        log.debug("Unparseable hourly rate %r on %s", hourly, raw.get("url"))

    descriptor = to_descriptor(raw.get("budget"))
    if descriptor is None:
        return None
    amounts = _descriptor_range(descriptor)
    if amounts is None:
        log.debug("Unparseable budget %r on %s", descriptor, raw.get("url"))
        return None
    kind = "hourly" if _looks_hourly(raw, descriptor) else "fixed"
    return Budget(kind=kind, min=amounts[0], max=amounts[1])


def parse_skills(skills: Any) -> tuple[str, ...]:
    if not skills:
        return ()
    if isinstance(skills, str):
        return tuple(s.strip() for s in skills.split(",") if s.strip())
    return tuple(str(s).strip() for s in skills if str(s).strip())


def posting_from_raw(raw: dict[str, Any]) -> JobPosting | None:
    job_id = derive_job_id(raw)
    if not job_id:
        log.warning("Skipping posting without id or URL: %r", raw.get("title"))
        return None
    client = raw.get("client") or {}
    return JobPosting(
        id=job_id,
        title=raw.get("title") or "(untitled)",
        url=raw.get("url") or "",
        description=raw.get("description") or "",
        skills=parse_skills(raw.get("skills")),
        budget=resolve_budget(raw),
        posted_at=raw.get("published") or raw.get("posted_at"),
        client=ClientSignals(
            payment_verified=client.get("payment_verified"),
            hire_rate=_as_number(client.get("hire_rate")),
            total_spent=_as_number(client.get("total_spent")),
            country=client.get("country"),
        ),
        site=raw.get("site"),
    )


# --- Fetch + dedup -------------------------------------------------------


def dedupe_batch(raws: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Collapse projects returned by overlapping filters (same id or same URL).

    Projects with neither are passed through so ingestion can count them as
    skipped.
    """
    seen: set[str] = set()
    unique: list[dict[str, Any]] = []
    for raw in raws:
        keys = {k for k in (derive_job_id(raw), raw.get("url")) if k}
        if keys & seen:
            continue
        seen |= keys
        unique.append(raw)
    return unique


def fetch_postings(source: UpstreamSource, delay: float = 0.5) -> list[dict[str, Any]]:
    filters = source.list_filters()
    if not filters:
        log.info("No upstream filters configured, nothing to fetch")
        return []

    collected: list[dict[str, Any]] = []
    for i, f in enumerate(filters):
        if i and delay:
            time.sleep(delay)
        name, filter_id = f.get("name", "?"), f.get("id")
        try:
            projects = source.list_postings(filter_id)
        except Exception as exc:
            log.error("Filter %s (%s) failed: %s", name, filter_id, exc)
            continue
        log.info("Filter %s (ID: %s): %d project(s)", name, filter_id, len(projects))
        collected.extend(projects)

    unique = dedupe_batch(collected)
    log.info("Total unique projects: %d (of %d fetched)", len(unique), len(collected))
    return unique


def process_postings(
    store: PipelineStore,
    raws: Iterable[dict[str, Any]],
    rubric: dict[str, Any] | None = None,
    *,
    qualify_min: int = 50,
    now: datetime | None = None,
) -> IngestResult:
    raws = list(raws)
    result = IngestResult(total=len(raws))

    for raw in raws:
        try:
            posting = posting_from_raw(raw)
            if posting is None:
                result.skipped += 1
                continue
            if store.job_exists(posting.id):
                continue

            verdict = score_job(posting, rubric, now)
            qualified = verdict.score >= qualify_min and not verdict.auto_reject
            status = JobStatus.QUALIFIED.value if qualified else JobStatus.NEW.value
            record = store.persist_score(posting, verdict, status=status)
        except Exception:
            log.exception("Failed to ingest posting %r", raw.get("url") or raw.get("title"))
            result.skipped += 1
            continue

        result.new += 1
        if qualified:
            result.qualified += 1
        if verdict.auto_reject:
            log.debug("Auto-reject %s: %s", posting.id, verdict.reject_reason)
        result.jobs.append(record)

    log.info(
        "Processed: %d total, %d new, %d qualified, %d skipped",
        result.total, result.new, result.qualified, result.skipped,
    )
    return result


def ingest(
    store: PipelineStore,
    source: UpstreamSource,
    rubric: dict[str, Any] | None = None,
    *,
    qualify_min: int = 50,
    fetch_delay: float = 0.5,
    now: datetime | None = None,
) -> IngestResult:
    return process_postings(
        store, fetch_postings(source, delay=fetch_delay), rubric, qualify_min=qualify_min, now=now,
    )
