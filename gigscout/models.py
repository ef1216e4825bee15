"""Data models for postings, score verdicts and pipeline records."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union


class JobStatus(str, Enum):
    NEW = "new"
    QUALIFIED = "qualified"
    PROPOSED = "proposed"
    SUBMITTED = "submitted"
    RESPONDED = "responded"
    WON = "won"
    LOST = "lost"
    REJECTED = "rejected"

    @classmethod
    def values(cls) -> list[str]:
        return [s.value for s in cls]


# Statuses in which a job is still waiting for a proposal
PRE_PURSUIT: frozenset[str] = frozenset({JobStatus.NEW.value, JobStatus.QUALIFIED.value})
RESPONSE_OUTCOMES: tuple[str, ...] = (JobStatus.RESPONDED.value, JobStatus.WON.value, JobStatus.LOST.value)

# Forward order of the automated path; rejected sits outside it
STATUS_RANK: dict[str, int] = {
    JobStatus.NEW.value: 0,
    JobStatus.QUALIFIED.value: 1,
    JobStatus.PROPOSED.value: 2,
    JobStatus.SUBMITTED.value: 3,
    JobStatus.RESPONDED.value: 4,
    JobStatus.WON.value: 5,
    JobStatus.LOST.value: 5,
}


# --- Budget descriptors as they arrive from upstream ---------------------


@dataclass(frozen=True)
class StructuredBudget:
    min: float | None = None
    max: float | None = None
    amount: float | None = None


@dataclass(frozen=True)
class TextBudget:
    raw: str


BudgetDescriptor = Union[StructuredBudget, TextBudget]


@dataclass(frozen=True)
class Budget:
    """Resolved budget: ``kind`` is ``fixed`` or ``hourly``."""

    kind: str
    min: float
    max: float


@dataclass(frozen=True)
class ClientSignals:
    payment_verified: bool | None = None
    hire_rate: float | None = None
    total_spent: float | None = None
    country: str | None = None


@dataclass(frozen=True)
class JobPosting:
    id: str
    title: str
    url: str = ""
    description: str = ""
    skills: tuple[str, ...] = ()
    budget: Budget | None = None
    posted_at: str | None = None
    client: ClientSignals = field(default_factory=ClientSignals)
    site: str | None = None

    @property
    def skills_text(self) -> str:
        return ", ".join(self.skills)


# --- Scoring -------------------------------------------------------------

FACTORS: tuple[str, ...] = ("budget", "tech_match", "client_quality", "project_clarity", "timing")


@dataclass(frozen=True)
class ScoreBreakdown:
    budget: int
    tech_match: int
    client_quality: int
    project_clarity: int
    timing: int
    composite: int

    def factors(self) -> dict[str, int]:
        return {name: getattr(self, name) for name in FACTORS}

    def to_json(self) -> str:
        return json.dumps({**self.factors(), "composite": self.composite})

    @classmethod
    def from_json(cls, raw: str | None) -> ScoreBreakdown | None:
        """Parse a stored breakdown; anything malformed reads as unknown."""
        if not raw:
            return None
        try:
            data = json.loads(raw)
            return cls(**{name: int(data[name]) for name in (*FACTORS, "composite")})
        except (ValueError, TypeError, KeyError):
            return None


@dataclass(frozen=True)
class ScoreVerdict:
    score: int
    breakdown: ScoreBreakdown
    reasons: tuple[str, ...]
    auto_reject: bool = False
    reject_reason: str | None = None

    @property
    def category(self) -> str:
        from gigscout.scorer import score_category

        return score_category(self.score)


# --- Pipeline store records ----------------------------------------------


@dataclass
class JobRecord:
    id: str
    title: str
    url: str
    status: str = JobStatus.NEW.value
    description: str = ""
    skills: str = ""
    budget_type: str | None = None
    budget_min: float | None = None
    budget_max: float | None = None
    hourly_rate_min: float | None = None
    hourly_rate_max: float | None = None
    client_country: str | None = None
    client_payment_verified: bool = False
    client_hire_rate: float | None = None
    client_total_spent: float | None = None
    posted_at: str | None = None
    fetched_at: datetime | None = None
    score: int | None = None
    score_breakdown: str | None = None
    score_reasons: list[str] = field(default_factory=list)
    auto_reject: bool = False
    reject_reason: str | None = None
    proposal_generated: bool = False
    proposal_text: str | None = None
    proposal_template: str | None = None
    submitted_at: datetime | None = None
    response_at: datetime | None = None
    outcome: str | None = None
    notes: str | None = None

    @property
    def breakdown(self) -> ScoreBreakdown | None:
        return ScoreBreakdown.from_json(self.score_breakdown)

    @property
    def has_proposal(self) -> bool:
        return bool(self.proposal_text)

    @property
    def budget_label(self) -> str:
        if self.budget_type == "hourly" and self.hourly_rate_min is not None:
            top = f"-${self.hourly_rate_max:g}" if self.hourly_rate_max and self.hourly_rate_max != self.hourly_rate_min else ""
            return f"${self.hourly_rate_min:g}{top}/hr"
        if self.budget_min is not None:
            top = f" - ${self.budget_max:,.0f}" if self.budget_max and self.budget_max != self.budget_min else ""
            return f"${self.budget_min:,.0f}{top} (fixed)"
        return "Not specified"


@dataclass
class ProposalVersion:
    id: int
    job_id: str
    content: str
    template_used: str | None = None
    generated_at: datetime | None = None
    submitted: bool = False
    submitted_at: datetime | None = None


@dataclass
class RunSummary:
    jobs_fetched: int = 0
    new_jobs: int = 0
    qualified_jobs: int = 0
    alerts_sent: int = 0
    proposals_generated: int = 0
    digest_sent: bool = False
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "jobs_fetched": self.jobs_fetched,
            "new_jobs": self.new_jobs,
            "qualified_jobs": self.qualified_jobs,
            "alerts_sent": self.alerts_sent,
            "proposals_generated": self.proposals_generated,
            "digest_sent": self.digest_sent,
            "errors": list(self.errors),
        }
