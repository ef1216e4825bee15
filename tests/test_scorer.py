import copy
from datetime import timedelta

import pytest

from gigscout.models import Budget, ClientSignals, FACTORS, ScoreBreakdown
from gigscout.scorer import (
    composite_score,
    rank_postings,
    score_budget,
    score_category,
    score_client_quality,
    score_job,
    score_tech_match,
    score_timing,
)


def test_strong_react_posting_scores_hot(make_posting, rubric, now):
    verdict = score_job(make_posting(), rubric, now)

    assert verdict.breakdown.factors() == {
        "budget": 100,
        "tech_match": 100,
        "client_quality": 100,
        "project_clarity": 95,
        "timing": 100,
    }
    assert verdict.score == 99
    assert verdict.breakdown.composite == 99
    assert verdict.category == "hot"
    assert not verdict.auto_reject
    assert verdict.reject_reason is None


def test_logo_job_without_tech_is_auto_rejected(make_posting, rubric, now):
    posting = make_posting(
        title="Need a logo",
        description="need a logo",
        skills=(),
        budget=None,
        posted_at=None,
        client=ClientSignals(),
    )
    verdict = score_job(posting, rubric, now)

    assert verdict.breakdown.tech_match == 0
    assert verdict.breakdown.budget == 30
    assert verdict.auto_reject
    assert verdict.reject_reason == "No tech stack match"


def test_reasons_always_cover_every_factor(make_posting, rubric, now):
    bare = make_posting(description="", skills=(), budget=None, posted_at=None, client=ClientSignals())
    for posting in (make_posting(), bare):
        verdict = score_job(posting, rubric, now)
        assert len(verdict.reasons) == len(FACTORS)
        assert all(isinstance(r, str) and r for r in verdict.reasons)


def test_parsed_zero_budget_differs_from_missing_budget(make_posting, rubric, now):
    zero = score_job(make_posting(budget=Budget(kind="fixed", min=0, max=0)), rubric, now)
    missing = score_job(make_posting(budget=None), rubric, now)

    assert zero.breakdown.budget == 0
    assert zero.auto_reject
    assert zero.reject_reason == "Budget too low"
    assert missing.breakdown.budget == 30
    assert not missing.auto_reject


def test_budget_reason_wins_when_both_gates_fire(make_posting, rubric, now):
    posting = make_posting(
        title="Logo", description="logo please", skills=(), budget=Budget(kind="hourly", min=5, max=5)
    )
    verdict = score_job(posting, rubric, now)
    assert verdict.auto_reject
    assert verdict.reject_reason == "Budget too low"


def test_fixed_budget_scores_are_monotonic(make_posting, rubric):
    amounts = [0, 100, 499, 500, 999, 1000, 1999, 2000, 4999, 5000, 20000]
    scores = [score_budget(make_posting(budget=Budget("fixed", a, a)), rubric)[0] for a in amounts]
    assert scores == sorted(scores)
    assert scores[0] == 0 and scores[-1] == 100


def test_hourly_budget_scores_are_monotonic(make_posting, rubric):
    rates = [0, 24.99, 25, 34.99, 35, 49.99, 50, 74.99, 75, 500]
    scores = [score_budget(make_posting(budget=Budget("hourly", r, r)), rubric)[0] for r in rates]
    assert scores == sorted(scores)
    assert scores == [0, 0, 30, 30, 60, 60, 80, 80, 100, 100]


def test_tier_order_in_config_does_not_matter(make_posting, rubric):
    shuffled = copy.deepcopy(rubric)
    shuffled["budget"]["hourly"] = dict(reversed(list(rubric["budget"]["hourly"].items())))
    for rate in (10, 25, 40, 60, 80):
        posting = make_posting(budget=Budget("hourly", rate, rate))
        assert score_budget(posting, shuffled)[0] == score_budget(posting, rubric)[0]


def test_hourly_uses_lower_bound(make_posting, rubric):
    score, reason = score_budget(make_posting(budget=Budget("hourly", 40, 90)), rubric)
    assert score == 60
    assert "$40/hr" in reason


def test_fixed_uses_larger_bound(make_posting, rubric):
    score, _ = score_budget(make_posting(budget=Budget("fixed", 800, 2500)), rubric)
    assert score == 80


def test_negative_keyword_applies_after_primary(make_posting, rubric):
    posting = make_posting(title="React frontend for WordPress site", description="", skills=())
    score, reason = score_tech_match(posting, rubric)
    assert score == 70
    assert "-wordpress" in reason


def test_negative_never_goes_below_zero(make_posting, rubric):
    posting = make_posting(title="Shopify and WordPress fixes", description="php", skills=())
    assert score_tech_match(posting, rubric)[0] == 0


def test_secondary_sets_floor_and_bonus_adds_half(make_posting, rubric):
    only_secondary = make_posting(title="JavaScript widget", description="", skills=())
    with_bonus = make_posting(title="JavaScript widget for our SaaS", description="", skills=())
    assert score_tech_match(only_secondary, rubric)[0] == 70
    assert score_tech_match(with_bonus, rubric)[0] == 80


def test_bonus_is_capped_at_100(make_posting, rubric):
    posting = make_posting(title="React SaaS dashboard MVP with Stripe on Vercel", description="", skills=())
    assert score_tech_match(posting, rubric)[0] == 100


@pytest.mark.parametrize(
    "client, expected",
    [
        (ClientSignals(payment_verified=True, hire_rate=80, total_spent=50000), 100),
        (ClientSignals(payment_verified=True), 70),
        (ClientSignals(payment_verified=False, hire_rate=10), 15),
        (ClientSignals(), 30),
        (ClientSignals(payment_verified=True, hire_rate=35, total_spent=9999), 70),
    ],
)
def test_client_quality_bands(make_posting, rubric, client, expected):
    assert score_client_quality(make_posting(client=client), rubric)[0] == expected


@pytest.mark.parametrize(
    "age, expected",
    [
        (timedelta(minutes=59), 100),
        (timedelta(hours=2), 85),
        (timedelta(hours=5), 70),
        (timedelta(hours=11), 50),
        (timedelta(hours=20), 30),
        (timedelta(hours=30), 10),
    ],
)
def test_timing_buckets(make_posting, rubric, now, age, expected):
    posting = make_posting(posted_at=(now - age).isoformat())
    assert score_timing(posting, rubric, now)[0] == expected


def test_timing_accepts_zulu_and_degrades_on_garbage(make_posting, rubric, now):
    zulu = make_posting(posted_at="2026-03-02T11:30:00Z")
    garbage = make_posting(posted_at="yesterday-ish")
    assert score_timing(zulu, rubric, now)[0] == 100
    assert score_timing(garbage, rubric, now)[0] == 50


def test_composite_rounds_each_factor_half_up(rubric):
    subscores = {"budget": 30, "tech_match": 0, "client_quality": 0, "project_clarity": 0, "timing": 0}
    assert composite_score(subscores, rubric["weights"]) == 8


def test_composite_is_clamped_when_weights_exceed_100():
    subscores = dict.fromkeys(FACTORS, 100)
    assert composite_score(subscores, dict.fromkeys(FACTORS, 50)) == 100


@pytest.mark.parametrize(
    "score, category",
    [(100, "hot"), (85, "hot"), (84, "warm"), (70, "warm"), (69, "maybe"), (50, "maybe"), (49, "pass"), (0, "pass")],
)
def test_score_category_boundaries(score, category):
    assert score_category(score) == category


def test_rank_postings_drops_auto_rejected(make_posting, rubric, now):
    good = make_posting(id="good")
    weaker = make_posting(id="weaker", budget=Budget("hourly", 40, 40))
    rejected = make_posting(id="logo", title="Logo", description="logo", skills=())

    ranked = rank_postings([weaker, rejected, good], rubric, min_score=0, now=now)
    assert [p.id for p, _ in ranked] == ["good", "weaker"]


def test_stored_breakdown_tolerates_garbage():
    assert ScoreBreakdown.from_json("{not json") is None
    assert ScoreBreakdown.from_json('{"budget": 10}') is None
    assert ScoreBreakdown.from_json(None) is None
