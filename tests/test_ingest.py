import pytest

from gigscout.ingest import (
    dedupe_batch,
    derive_job_id,
    fetch_postings,
    ingest,
    parse_budget_text,
    posting_from_raw,
    process_postings,
    resolve_budget,
)
from gigscout.models import Budget
from gigscout.sources.base import UpstreamSource


class FakeSource(UpstreamSource):
    def __init__(self, by_filter, failing=()):
        self.by_filter = by_filter
        self.failing = set(failing)

    def list_filters(self):
        return [{"id": fid, "name": f"filter {fid}"} for fid in self.by_filter]

    def list_postings(self, filter_id):
        if filter_id in self.failing:
            raise RuntimeError("upstream exploded")
        return list(self.by_filter[filter_id])


@pytest.mark.parametrize(
    "text, expected",
    [
        ("$2,000-$3,000", (2000.0, 3000.0)),
        ("$30/hr", (30.0, 30.0)),
        ("$25.50 - $40", (25.5, 40.0)),
        ("1500", (1500.0, 1500.0)),
        ("$0", (0.0, 0.0)),
        ("negotiable", None),
        ("", None),
    ],
)
def test_parse_budget_text(text, expected):
    assert parse_budget_text(text) == expected


def test_resolve_budget_variants():
    assert resolve_budget({"budget": "$2,000-$3,000"}) == Budget("fixed", 2000, 3000)
    assert resolve_budget({"budget": "$45/hr"}) == Budget("hourly", 45, 45)
    assert resolve_budget({"budget": {"min": 500, "max": 800}}) == Budget("fixed", 500, 800)
    assert resolve_budget({"budget": {"amount": 1200}}) == Budget("fixed", 1200, 1200)
    assert resolve_budget({"hourly_rate": {"min": 30, "max": 60}}) == Budget("hourly", 30, 60)
    assert resolve_budget({"budget": "$40", "budget_type": "hourly"}) == Budget("hourly", 40, 40)
    assert resolve_budget({"budget": "TBD"}) is None
    assert resolve_budget({}) is None


def test_structured_budget_is_not_assumed_hourly():
    assert resolve_budget({"budget": {"min": 2000, "max": 3000}}).kind == "fixed"


def test_derive_job_id_fallbacks():
    assert derive_job_id({"ciphertext": "~01abc", "url": "x"}) == "01abc"
    assert derive_job_id({"uid": 42}) == "42"
    assert derive_job_id({"url": "https://www.upwork.com/jobs/Title_~0123def/"}) == "0123def"
    assert derive_job_id({"url": "https://example.com/p/1"}) == "https://example.com/p/1"
    assert derive_job_id({"title": "nothing to key on"}) is None


def test_empty_hourly_rate_falls_back_to_budget():
    assert resolve_budget({"hourly_rate": {}, "budget": "$3,000"}) == Budget("fixed", 3000, 3000)
    assert resolve_budget({"hourly_rate": "TBD", "budget": {"min": 500, "max": 800}}) == Budget("fixed", 500, 800)
    assert resolve_budget({"hourly_rate": {"min": None}}) is None


def test_posting_from_raw_normalizes_skills_and_client(make_raw):
    posting = posting_from_raw(make_raw(skills="React, Node.js ,", client={"hire_rate": "55"}))
    assert posting.id == "job1"
    assert posting.skills == ("React", "Node.js")
    assert posting.client.hire_rate == 55.0
    assert posting.budget == Budget("hourly", 75, 75)


def test_posting_without_key_is_skipped(make_raw):
    assert posting_from_raw(make_raw(ciphertext=None, url="")) is None


def test_dedupe_batch_collapses_same_url_across_filters(make_raw):
    a = make_raw(ciphertext=None, url="https://example.com/p/1", title="first")
    b = make_raw(ciphertext=None, url="https://example.com/p/1", title="second")
    c = make_raw(ciphertext="~other", url="https://example.com/p/2")
    assert [r["title"] for r in dedupe_batch([a, b, c])] == ["first", c["title"]]


def test_fetch_postings_survives_a_failing_filter(make_raw):
    source = FakeSource({1: [make_raw()], 2: [], 3: [make_raw(ciphertext="~two", url="u2")]}, failing={2})
    raws = fetch_postings(source, delay=0)
    assert [derive_job_id(r) for r in raws] == ["job1", "two"]


def test_two_filters_returning_same_posting_store_one_row(store, rubric, now, make_raw):
    source = FakeSource({1: [make_raw()], 2: [make_raw()]})
    result = ingest(store, source, rubric, fetch_delay=0, now=now)

    assert result.total == 1
    assert result.new == 1
    assert store.status_counts() == {"qualified": 1}


def test_reingest_is_a_no_op(store, rubric, now, make_raw):
    raws = [make_raw()]
    first = process_postings(store, raws, rubric, now=now)
    before = store.get_job("job1")
    second = process_postings(store, raws, rubric, now=now)

    assert first.new == 1
    assert second.new == 0 and second.jobs == []
    assert store.get_job("job1") == before


def test_auto_rejected_posting_is_stored_as_new(store, rubric, now, make_raw):
    raw = make_raw(ciphertext="~logo", url="u-logo", title="Need a logo", description="need a logo", skills=[])
    result = process_postings(store, [raw], rubric, now=now)

    job = store.get_job("logo")
    assert result.qualified == 0
    assert job.status == "new"
    assert job.auto_reject
    assert job.reject_reason == "No tech stack match"


def test_qualify_threshold_is_configurable(store, rubric, now, make_raw):
    result = process_postings(store, [make_raw()], rubric, qualify_min=100, now=now)
    assert result.qualified == 0
    assert store.get_job("job1").status == "new"


def test_bad_item_does_not_stop_the_batch(store, rubric, now, make_raw, monkeypatch):
    import gigscout.ingest as ingest_mod

    real = ingest_mod.score_job

    def flaky(posting, *args, **kwargs):
        if posting.id == "boom":
            raise ValueError("bad data")
        return real(posting, *args, **kwargs)

    monkeypatch.setattr(ingest_mod, "score_job", flaky)
    raws = [make_raw(ciphertext="~boom", url="u-boom"), make_raw()]
    result = process_postings(store, raws, rubric, now=now)

    assert result.new == 1
    assert result.skipped == 1
    assert store.get_job("boom") is None


def test_posting_without_any_key_is_counted_as_skipped(store, rubric, now, make_raw):
    source = FakeSource({1: [make_raw(ciphertext=None, url=""), make_raw()]})
    result = ingest(store, source, rubric, fetch_delay=0, now=now)

    assert result.total == 2
    assert result.new == 1
    assert result.skipped == 1
