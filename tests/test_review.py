from datetime import datetime

from gigscout.models import Budget
from gigscout.review import build_review, review_summary, write_review_file
from gigscout.scorer import score_job


def _seed(store, make_posting, rubric, now):
    hot = make_posting(id="hot")
    warm = make_posting(id="warm", budget=Budget("hourly", 30, 30), posted_at=None)
    for posting in (hot, warm):
        store.persist_score(posting, score_job(posting, rubric, now), status="qualified")
    store.save_proposal("hot", "Hello there", "SaaS / MVP build")


def test_build_review_sections(store, make_posting, rubric, now):
    _seed(store, make_posting, rubric, now)
    text = build_review(store, 65, now=datetime(2026, 3, 2, 9, 0))

    assert "Total qualified jobs: 2" in text
    assert "Hot (85+): 1" in text
    assert "Warm (70-84): 1" in text
    assert "gigscout submit hot" in text
    assert "Generated Proposal (Template: SaaS / MVP build)" in text
    assert "hot jobs without proposals" not in text


def test_write_review_file(store, make_posting, rubric, now, tmp_path):
    _seed(store, make_posting, rubric, now)
    path = write_review_file(store, out_dir=tmp_path, now=datetime(2026, 3, 2, 9, 5))
    assert path.name == "review_queue_2026-03-02_09-05.md"
    assert path.read_text(encoding="utf-8").startswith("# Job Review Queue")


def test_review_summary_pending_actions(store, make_posting, rubric, now):
    _seed(store, make_posting, rubric, now)
    text = review_summary(store)
    assert "Proposals to generate: 0" in text
    assert "Proposals to submit: 1" in text
