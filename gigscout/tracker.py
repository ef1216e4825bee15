"""Pipeline store: one row per job, an append-only proposal log, and markers.

The store is an explicit handle. Open it for the duration of a run (or use it
as a context manager); every operation is its own transaction, so an
interrupted run leaves each job row either fully updated or untouched.
"""
from __future__ import annotations

import contextlib
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterator

from sqlalchemy import case, create_engine, func, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from gigscout.config import database_url
from gigscout.db import Base, JobRow, MetaRow, ProposalRow, utcnow
from gigscout.errors import InvalidStatusError, JobNotFoundError, MissingProposalError, PipelineError
from gigscout.log import get_logger
from gigscout.models import (
    PRE_PURSUIT,
    RESPONSE_OUTCOMES,
    STATUS_RANK,
    JobPosting,
    JobRecord,
    JobStatus,
    ProposalVersion,
    ScoreVerdict,
)
from gigscout.policy import select_for_proposal

log = get_logger(__name__)

LAST_DIGEST_KEY = "last_digest_at"


def _advance(current: str, target: str) -> str:
    """Forward-only move along the automated path; rejected is never left."""
    if current == JobStatus.REJECTED.value:
        return current
    if STATUS_RANK.get(target, -1) > STATUS_RANK.get(current, -1):
        return target
    return current


def _append_note(existing: str | None, note: str | None) -> str | None:
    if not note:
        return existing
    return f"{existing}\n{note}" if existing else note


def _load_reasons(raw: str | None) -> list[str]:
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except ValueError:
        return []
    return [str(r) for r in data] if isinstance(data, list) else []


def _to_record(row: JobRow) -> JobRecord:
    return JobRecord(
        id=row.id,
        title=row.title,
        url=row.url or "",
        status=row.status,
        description=row.description or "",
        skills=row.skills or "",
        budget_type=row.budget_type,
        budget_min=row.budget_min,
        budget_max=row.budget_max,
        hourly_rate_min=row.hourly_rate_min,
        hourly_rate_max=row.hourly_rate_max,
        client_country=row.client_country,
        client_payment_verified=bool(row.client_payment_verified),
        client_hire_rate=row.client_hire_rate,
        client_total_spent=row.client_total_spent,
        posted_at=row.posted_at,
        fetched_at=row.fetched_at,
        score=row.score,
        score_breakdown=row.score_breakdown,
        score_reasons=_load_reasons(row.score_reasons),
        auto_reject=bool(row.auto_reject),
        reject_reason=row.reject_reason,
        proposal_generated=bool(row.proposal_generated),
        proposal_text=row.proposal_text,
        proposal_template=row.proposal_template,
        submitted_at=row.submitted_at,
        response_at=row.response_at,
        outcome=row.outcome,
        notes=row.notes,
    )


def _apply_posting(row: JobRow, posting: JobPosting) -> None:
    row.title = posting.title
    row.description = posting.description
    row.url = posting.url
    row.site = posting.site
    row.skills = posting.skills_text or None
    row.posted_at = posting.posted_at

    budget = posting.budget
    if budget is not None:
        row.budget_type = budget.kind
        if budget.kind == "hourly":
            row.hourly_rate_min, row.hourly_rate_max = budget.min, budget.max
        else:
            row.budget_min, row.budget_max = budget.min, budget.max

    client = posting.client
    row.client_country = client.country
    row.client_payment_verified = bool(client.payment_verified)
    row.client_hire_rate = client.hire_rate
    row.client_total_spent = client.total_spent


def _apply_verdict(row: JobRow, verdict: ScoreVerdict) -> None:
    row.score = verdict.score
    row.score_breakdown = verdict.breakdown.to_json()
    row.score_reasons = json.dumps(list(verdict.reasons))
    row.auto_reject = verdict.auto_reject
    row.reject_reason = verdict.reject_reason


class PipelineStore:
    def __init__(self, url: str | None = None) -> None:
        self.url = url or database_url()
        self._engine: Engine | None = None
        self._sessions: sessionmaker | None = None

    # --- lifecycle -------------------------------------------------------

    def open(self) -> PipelineStore:
        if self._engine is not None:
            return self
        parsed = make_url(self.url)
        if parsed.get_backend_name() == "sqlite" and parsed.database not in (None, "", ":memory:"):
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
        self._engine = create_engine(self.url)
        Base.metadata.create_all(self._engine)
        self._sessions = sessionmaker(bind=self._engine, autoflush=False, expire_on_commit=False)
        log.debug("Opened pipeline store %s", parsed.render_as_string(hide_password=True))
        return self

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._sessions = None

    def __enter__(self) -> PipelineStore:
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @contextlib.contextmanager
    def _session(self) -> Iterator[Session]:
        if self._sessions is None:
            raise PipelineError("Pipeline store is not open")
        session = self._sessions()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _require(session: Session, job_id: str) -> JobRow:
        row = session.get(JobRow, job_id)
        if row is None:
            raise JobNotFoundError(job_id)
        return row

    # --- reads -----------------------------------------------------------

    def job_exists(self, job_id: str) -> bool:
        with self._session() as s:
            return s.get(JobRow, job_id) is not None

    def get_job(self, job_id: str) -> JobRecord | None:
        with self._session() as s:
            row = s.get(JobRow, job_id)
            return _to_record(row) if row else None

    def jobs_by_status(self, status: str) -> list[JobRecord]:
        with self._session() as s:
            rows = s.scalars(
                select(JobRow).where(JobRow.status == status).order_by(JobRow.score.desc(), JobRow.id)
            )
            return [_to_record(r) for r in rows]

    def qualified_jobs(self, min_score: int = 50) -> list[JobRecord]:
        with self._session() as s:
            rows = s.scalars(
                select(JobRow)
                .where(
                    JobRow.score >= min_score,
                    JobRow.status.in_(PRE_PURSUIT),
                    JobRow.auto_reject.is_(False),
                )
                .order_by(JobRow.score.desc(), JobRow.id)
            )
            return [_to_record(r) for r in rows]

    def jobs_needing_proposals(self, min_score: int = 75) -> list[JobRecord]:
        with self._session() as s:
            rows = s.scalars(
                select(JobRow).where(
                    JobRow.score >= min_score,
                    JobRow.proposal_generated.is_(False),
                    JobRow.status.in_(PRE_PURSUIT),
                )
            )
            candidates = [_to_record(r) for r in rows]
        return select_for_proposal(candidates, min_score)

    def all_jobs(self, limit: int = 100) -> list[JobRecord]:
        with self._session() as s:
            rows = s.scalars(select(JobRow).order_by(JobRow.fetched_at.desc(), JobRow.id).limit(limit))
            return [_to_record(r) for r in rows]

    def proposals_for(self, job_id: str) -> list[ProposalVersion]:
        with self._session() as s:
            rows = s.scalars(select(ProposalRow).where(ProposalRow.job_id == job_id).order_by(ProposalRow.id))
            return [
                ProposalVersion(
                    id=p.id,
                    job_id=p.job_id,
                    content=p.content,
                    template_used=p.template_used,
                    generated_at=p.generated_at,
                    submitted=bool(p.submitted),
                    submitted_at=p.submitted_at,
                )
                for p in rows
            ]

    def status_counts(self) -> dict[str, int]:
        with self._session() as s:
            rows = s.execute(select(JobRow.status, func.count()).group_by(JobRow.status))
            return {status: count for status, count in rows}

    def get_stats(self, days: int = 30, now: datetime | None = None) -> dict[str, Any]:
        current = now or datetime.now(timezone.utc)
        if current.tzinfo is not None:
            current = current.astimezone(timezone.utc).replace(tzinfo=None)
        since = current - timedelta(days=days)

        def _count(condition: Any) -> Any:
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        with self._session() as s:
            row = s.execute(
                select(
                    func.count(JobRow.id),
                    _count(JobRow.score >= 50),
                    _count(JobRow.proposal_generated.is_(True)),
                    _count(JobRow.status == JobStatus.SUBMITTED.value),
                    _count(JobRow.status == JobStatus.RESPONDED.value),
                    _count(JobRow.status == JobStatus.WON.value),
                    _count(JobRow.status == JobStatus.LOST.value),
                    func.avg(JobRow.score),
                ).where(JobRow.fetched_at >= since)
            ).one()

        total, qualified, proposals, submitted, responses, won, lost, avg = row
        return {
            "total_jobs": int(total or 0),
            "qualified_jobs": int(qualified or 0),
            "proposals_generated": int(proposals or 0),
            "submitted": int(submitted or 0),
            "responses": int(responses or 0),
            "won": int(won or 0),
            "lost": int(lost or 0),
            "avg_score": float(avg) if avg is not None else None,
        }

    # --- transitions -----------------------------------------------------

    def persist_score(self, posting: JobPosting, verdict: ScoreVerdict, status: str | None = None) -> JobRecord:
        """Upsert keyed by posting id: create on first sighting, refresh the verdict after."""
        for attempt in (1, 2):
            try:
                with self._session() as s:
                    row = s.get(JobRow, posting.id)
                    if row is None:
                        row = JobRow(id=posting.id, status=status or JobStatus.NEW.value, fetched_at=utcnow())
                        _apply_posting(row, posting)
                        s.add(row)
                    elif status:
                        row.status = _advance(row.status, status)
                    _apply_verdict(row, verdict)
                    s.flush()
                    return _to_record(row)
            except IntegrityError:
                # Another writer inserted the same id between get and insert
                if attempt == 2:
                    raise
                log.debug("Concurrent insert for %s, retrying as update", posting.id)
        raise PipelineError(f"Could not persist {posting.id}")

    def save_proposal(self, job_id: str, content: str, template: str | None = None) -> int:
        """Cache ``content`` on the job and log it as a version; returns the version id."""
        with self._session() as s:
            row = self._require(s, job_id)
            latest = s.scalars(
                select(ProposalRow).where(ProposalRow.job_id == job_id).order_by(ProposalRow.id.desc()).limit(1)
            ).first()
            if latest is not None and latest.content == content and latest.template_used == template:
                version_id = latest.id
            else:
                version = ProposalRow(job_id=job_id, template_used=template, content=content, generated_at=utcnow())
                s.add(version)
                s.flush()
                version_id = version.id

            row.proposal_generated = True
            row.proposal_text = content
            row.proposal_template = template
            if row.status == JobStatus.NEW.value:
                row.status = JobStatus.QUALIFIED.value
        log.debug("Saved proposal v%d for %s", version_id, job_id)
        return version_id

    def mark_submitted(self, job_id: str) -> JobRecord:
        with self._session() as s:
            row = self._require(s, job_id)
            if not row.proposal_text:
                raise MissingProposalError(job_id)
            now = utcnow()
            for version in row.proposals:
                if not version.submitted:
                    version.submitted = True
                    version.submitted_at = now
            row.status = JobStatus.SUBMITTED.value
            row.submitted_at = now
            s.flush()
            return _to_record(row)

    def record_response(self, job_id: str, outcome: str, note: str | None = None) -> JobRecord:
        if outcome not in RESPONSE_OUTCOMES:
            raise InvalidStatusError(outcome, RESPONSE_OUTCOMES)
        with self._session() as s:
            row = self._require(s, job_id)
            if row.status != JobStatus.SUBMITTED.value:
                log.info("Recording %s for %s from status %s (operator correction)", outcome, job_id, row.status)
            row.status = outcome
            row.outcome = outcome
            row.response_at = utcnow()
            row.notes = _append_note(row.notes, note)
            s.flush()
            return _to_record(row)

    def update_status(self, job_id: str, status: str, note: str | None = None) -> JobRecord:
        """Operator override: any known status, no ordering enforced."""
        if status not in JobStatus.values():
            raise InvalidStatusError(status, JobStatus.values())
        with self._session() as s:
            row = self._require(s, job_id)
            row.status = status
            row.notes = _append_note(row.notes, note)
            s.flush()
            return _to_record(row)

    # --- digest marker ---------------------------------------------------

    def last_digest_at(self) -> datetime | None:
        with self._session() as s:
            meta = s.get(MetaRow, LAST_DIGEST_KEY)
            raw = meta.value if meta else None
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            log.warning("Ignoring malformed digest marker %r", raw)
            return None

    def mark_digest_sent(self, when: datetime | None = None) -> None:
        stamp = (when or datetime.now(timezone.utc)).isoformat()
        with self._session() as s:
            meta = s.get(MetaRow, LAST_DIGEST_KEY)
            if meta is None:
                s.add(MetaRow(key=LAST_DIGEST_KEY, value=stamp, updated_at=utcnow()))
            else:
                meta.value = stamp
