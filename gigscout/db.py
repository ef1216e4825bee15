"""Relational schema for the pipeline store."""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class JobRow(Base):
    __tablename__ = "jobs"

    id = Column(Text, primary_key=True)
    title = Column(Text, nullable=False)
    description = Column(Text)
    url = Column(Text, nullable=False, default="")
    site = Column(Text)

    # Budget
    budget_type = Column(Text)  # fixed|hourly
    budget_min = Column(Float)
    budget_max = Column(Float)
    hourly_rate_min = Column(Float)
    hourly_rate_max = Column(Float)
    skills = Column(Text)

    # Client trust signals
    client_country = Column(Text)
    client_payment_verified = Column(Boolean, nullable=False, default=False)
    client_hire_rate = Column(Float)
    client_total_spent = Column(Float)

    posted_at = Column(Text)
    fetched_at = Column(DateTime, nullable=False, default=utcnow)

    # Verdict
    score = Column(Integer)
    score_breakdown = Column(Text)  # JSON
    score_reasons = Column(Text)  # JSON list
    auto_reject = Column(Boolean, nullable=False, default=False)
    reject_reason = Column(Text)

    # Lifecycle
    status = Column(Text, nullable=False, default="new")
    proposal_generated = Column(Boolean, nullable=False, default=False)
    proposal_text = Column(Text)
    proposal_template = Column(Text)
    submitted_at = Column(DateTime)
    response_at = Column(DateTime)
    outcome = Column(Text)
    notes = Column(Text)

    proposals = relationship("ProposalRow", back_populates="job", order_by="ProposalRow.id")

    __table_args__ = (
        Index("idx_jobs_status", "status"),
        Index("idx_jobs_score", "score"),
        Index("idx_jobs_posted", "posted_at"),
    )


class ProposalRow(Base):
    """Every proposal version ever generated; the job row caches the latest."""

    __tablename__ = "proposals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Text, ForeignKey("jobs.id"), nullable=False, index=True)
    template_used = Column(Text)
    content = Column(Text, nullable=False)
    generated_at = Column(DateTime, nullable=False, default=utcnow)
    submitted = Column(Boolean, nullable=False, default=False)
    submitted_at = Column(DateTime)

    job = relationship("JobRow", back_populates="proposals")


class MetaRow(Base):
    """Small key/value table for pipeline markers such as the last digest send."""

    __tablename__ = "pipeline_meta"

    key = Column(Text, primary_key=True)
    value = Column(Text)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
