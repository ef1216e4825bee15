"""Which stored jobs still need a proposal drafted."""
from __future__ import annotations

from typing import Iterable

from gigscout.models import PRE_PURSUIT, JobRecord


def needs_proposal(record: JobRecord, min_score: int) -> bool:
    return (
        record.score is not None
        and record.score >= min_score
        and not record.has_proposal
        and record.status in PRE_PURSUIT
        and not record.auto_reject
    )


def select_for_proposal(records: Iterable[JobRecord], min_score: int) -> list[JobRecord]:
    """Filter, not a scorer: same input state always yields the same selection.

    Highest score first; ties keep a stable order by job id.
    """
    selected = [r for r in records if needs_proposal(r, min_score)]
    return sorted(selected, key=lambda r: (-(r.score or 0), r.id))
