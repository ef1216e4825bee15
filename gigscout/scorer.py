"""Score freelance postings against the configured qualification rubric.

Each posting gets five sub-scores (0-100) that are weighted into a composite.
Two factors act as hard gates: no tech match at all, or a budget that lands in
a zero-score tier, flags the posting for auto-reject whatever the composite.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Iterable

from gigscout.config import load_rubric
from gigscout.log import get_logger
from gigscout.models import FACTORS, JobPosting, ScoreBreakdown, ScoreVerdict

log = get_logger(__name__)

# Score given when the posting carries no usable data for a factor
NEUTRAL_BUDGET_SCORE = 30
NEUTRAL_TIMING_SCORE = 50
CLIENT_BASE_SCORE = 50
CLARITY_BASE_SCORE = 40

_TIMING_BUCKETS: tuple[tuple[float, str, str], ...] = (
    (1, "posted_within_1_hour", "Posted <1 hour ago"),
    (3, "posted_within_3_hours", "Posted <3 hours ago"),
    (6, "posted_within_6_hours", "Posted <6 hours ago"),
    (12, "posted_within_12_hours", "Posted <12 hours ago"),
    (24, "posted_within_24_hours", "Posted <24 hours ago"),
)

_rubric_cache: dict[str, Any] | None = None


def _default_rubric() -> dict[str, Any]:
    global _rubric_cache
    if _rubric_cache is None:
        _rubric_cache = load_rubric()
    return _rubric_cache


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: float, low: int = 0, high: int = 100) -> int:
    return int(max(low, min(high, value)))


def _sorted_tiers(table: dict[str, dict[str, Any]]) -> list[tuple[str, float, int]]:
    """Tier table as (name, min, score), highest minimum first."""
    tiers = [(name, float(t["min"]), int(t["score"])) for name, t in table.items()]
    return sorted(tiers, key=lambda t: -t[1])


def _walk_tiers(value: float, table: dict[str, dict[str, Any]]) -> tuple[str, int] | None:
    for name, minimum, score in _sorted_tiers(table):
        if value >= minimum:
            return name, score
    return None


def _parse_posted_at(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        dt = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


# --- Factors -------------------------------------------------------------


def score_budget(posting: JobPosting, rubric: dict[str, Any]) -> tuple[int, str]:
    budget = posting.budget
    if budget is None:
        return NEUTRAL_BUDGET_SCORE, "Budget not specified"

    cfg = rubric["budget"]
    if budget.kind == "hourly":
        rate = budget.min
        hit = _walk_tiers(rate, cfg["hourly"])
        if hit:
            tier, score = hit
            return score, f"Hourly rate ${rate:g}/hr ({tier})"
    else:
        amount = max(budget.min, budget.max)
        hit = _walk_tiers(amount, cfg["fixed"])
        if hit:
            tier, score = hit
            return score, f"Fixed budget ${amount:,.0f} ({tier})"

    # Below every tier minimum: a known budget that is too small
    return 0, "Budget below lowest tier"


def score_tech_match(posting: JobPosting, rubric: dict[str, Any]) -> tuple[int, str]:
    text = f"{posting.title} {posting.description} {posting.skills_text}".lower()
    cfg = rubric["tech_keywords"]

    score = 0.0
    matches: list[str] = []

    primary = cfg.get("primary", {})
    for keyword in primary.get("keywords", []):
        if keyword.lower() in text:
            score = max(score, primary["score"])
            matches.append(keyword)

    secondary = cfg.get("secondary", {})
    for keyword in secondary.get("keywords", []):
        if keyword.lower() in text:
            if score < secondary["score"]:
                score = secondary["score"]
            matches.append(keyword)

    bonus = cfg.get("bonus", {})
    for keyword in bonus.get("keywords", []):
        if keyword.lower() in text:
            score = min(100, score + bonus["score"] / 2)
            matches.append(keyword)

    # Negatives come last so a primary hit at 100 still loses points
    negative = cfg.get("negative", {})
    for keyword in negative.get("keywords", []):
        if keyword.lower() in text:
            score = max(0, score + negative["score"])
            matches.append(f"-{keyword}")

    reason = f"Tech: {', '.join(matches)}" if matches else "No tech keywords matched"
    return _clamp(_round_half_up(score)), reason


def score_client_quality(posting: JobPosting, rubric: dict[str, Any]) -> tuple[int, str]:
    cfg = rubric["client_signals"]
    positive, negative = cfg.get("positive", {}), cfg.get("negative", {})
    client = posting.client
    score = CLIENT_BASE_SCORE
    reasons: list[str] = []

    if client.payment_verified:
        score += positive.get("payment_verified", 0)
        reasons.append("Payment verified")
    else:
        score += negative.get("no_payment_method", 0)
        reasons.append("No payment method")

    if client.hire_rate is not None:
        if client.hire_rate >= 50:
            score += positive.get("hire_rate_50_plus", 0)
            reasons.append(f"{client.hire_rate:g}% hire rate")
        elif client.hire_rate < 20:
            score += negative.get("hire_rate_below_20", 0)
            reasons.append(f"Low hire rate: {client.hire_rate:g}%")

    threshold = cfg.get("spend_threshold", 10000)
    if client.total_spent is not None and client.total_spent >= threshold:
        score += positive.get("spent_threshold_bonus", 0)
        reasons.append(f"${client.total_spent:,.0f} spent")

    return _clamp(score), ", ".join(reasons)


def score_project_clarity(posting: JobPosting, rubric: dict[str, Any]) -> tuple[int, str]:
    cfg = rubric["project_clarity"]
    indicators = cfg.get("indicators", {})
    description = posting.description or ""
    desc = description.lower()
    score = float(CLARITY_BASE_SCORE)
    reasons: list[str] = []

    detailed = indicators.get("detailed_description", 0)
    if len(description) > 500:
        score += detailed
        reasons.append("Detailed description")
    elif len(description) > 200:
        score += detailed / 2
        reasons.append("Moderate detail")

    if any(term in desc for term in cfg.get("tech_terms", [])):
        score += indicators.get("has_tech_spec", 0)
        reasons.append("Has tech specs")

    if any(phrase in desc for phrase in cfg.get("example_phrases", [])):
        score += indicators.get("has_examples", 0)
        reasons.append("Has examples")

    if any(phrase in desc for phrase in cfg.get("milestone_phrases", [])):
        score += indicators.get("has_milestones", 0)
        reasons.append("Has milestones")

    return min(100, _round_half_up(score)), ", ".join(reasons) or "Basic requirements"


def score_timing(posting: JobPosting, rubric: dict[str, Any], now: datetime | None = None) -> tuple[int, str]:
    cfg = rubric["timing"]
    posted = _parse_posted_at(posting.posted_at)
    if posted is None:
        return NEUTRAL_TIMING_SCORE, "Unknown posting time"

    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    hours = (current - posted).total_seconds() / 3600

    for limit, key, label in _TIMING_BUCKETS:
        if hours <= limit:
            return int(cfg[key]), label
    return int(cfg["older_than_24_hours"]), f"Posted {int(hours)} hours ago"


# --- Composite -----------------------------------------------------------


def composite_score(subscores: dict[str, int], weights: dict[str, float]) -> int:
    total = sum(_round_half_up(subscores[name] * weights.get(name, 0) / 100) for name in FACTORS)
    return _clamp(total)


def score_job(
    posting: JobPosting,
    rubric: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> ScoreVerdict:
    rubric = rubric or _default_rubric()

    budget, budget_reason = score_budget(posting, rubric)
    tech, tech_reason = score_tech_match(posting, rubric)
    client, client_reason = score_client_quality(posting, rubric)
    clarity, clarity_reason = score_project_clarity(posting, rubric)
    timing, timing_reason = score_timing(posting, rubric, now)

    subscores = {
        "budget": budget,
        "tech_match": tech,
        "client_quality": client,
        "project_clarity": clarity,
        "timing": timing,
    }
    total = composite_score(subscores, rubric["weights"])

    auto_reject = False
    reject_reason: str | None = None
    if tech == 0:
        auto_reject, reject_reason = True, "No tech stack match"
    if budget == 0:
        auto_reject, reject_reason = True, "Budget too low"

    return ScoreVerdict(
        score=total,
        breakdown=ScoreBreakdown(composite=total, **subscores),
        reasons=(budget_reason, tech_reason, client_reason, clarity_reason, timing_reason),
        auto_reject=auto_reject,
        reject_reason=reject_reason,
    )


def score_category(score: int) -> str:
    if score >= 85:
        return "hot"
    if score >= 70:
        return "warm"
    if score >= 50:
        return "maybe"
    return "pass"


def rank_postings(
    postings: Iterable[JobPosting],
    rubric: dict[str, Any] | None = None,
    min_score: int = 0,
    now: datetime | None = None,
) -> list[tuple[JobPosting, ScoreVerdict]]:
    postings = list(postings)
    scored = [(p, score_job(p, rubric, now)) for p in postings]
    result = sorted(
        [(p, v) for p, v in scored if v.score >= min_score and not v.auto_reject],
        key=lambda pv: -pv[1].score,
    )
    log.info("Scored %d postings → %d at or above %d", len(postings), len(result), min_score)
    return result
