"""Shared fixtures: rubric/templates/profile from config/, a throwaway SQLite store."""
import os

os.environ.setdefault("GIGSCOUT_LOG_FILE", "0")

from datetime import datetime, timedelta, timezone

import pytest

from gigscout.config import load_profile, load_rubric, load_templates
from gigscout.models import Budget, ClientSignals, JobPosting
from gigscout.tracker import PipelineStore

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

REACT_DESCRIPTION = (
    "We are building a B2B analytics product and need a senior engineer to own the "
    "frontend. The app talks to our REST API and a Postgres database; you will design the "
    "component architecture, wire authentication, and ship the first milestone within "
    "four weeks. Existing designs are in Figma. We care about clean TypeScript, tests, "
    "and good communication. Weekly check-ins, async otherwise. The second phase covers "
    "reporting and exports. Please include links to similar dashboards you have shipped "
    "and a short note on how you would structure state management for a data-heavy UI."
)


@pytest.fixture
def now():
    return NOW


@pytest.fixture(scope="session")
def rubric():
    return load_rubric()


@pytest.fixture(scope="session")
def templates():
    return load_templates()


@pytest.fixture
def profile():
    return load_profile()


@pytest.fixture
def store(tmp_path):
    s = PipelineStore(f"sqlite:///{tmp_path / 'pipeline.db'}").open()
    yield s
    s.close()


@pytest.fixture
def make_posting():
    def _make(**overrides):
        fields = dict(
            id="job-1",
            title="React/TypeScript developer for analytics dashboard",
            url="https://www.upwork.com/jobs/~job1",
            description=REACT_DESCRIPTION,
            skills=("React", "TypeScript", "Node.js"),
            budget=Budget(kind="hourly", min=75, max=90),
            posted_at=(NOW - timedelta(minutes=30)).isoformat(),
            client=ClientSignals(payment_verified=True, hire_rate=80, total_spent=50000, country="US"),
            site="upwork",
        )
        fields.update(overrides)
        return JobPosting(**fields)

    return _make


@pytest.fixture
def make_raw():
    """Upstream-shaped project dict as returned by a Vollna filter."""

    def _make(**overrides):
        raw = {
            "ciphertext": "~job1",
            "title": "React/TypeScript developer for analytics dashboard",
            "url": "https://www.upwork.com/jobs/~job1",
            "description": REACT_DESCRIPTION,
            "skills": ["React", "TypeScript"],
            "budget": "$75/hr",
            "budget_type": "hourly",
            "published": (NOW - timedelta(minutes=30)).isoformat(),
            "client": {"payment_verified": True, "hire_rate": 80, "total_spent": 50000, "country": "US"},
            "site": "upwork",
        }
        raw.update(overrides)
        return raw

    return _make
