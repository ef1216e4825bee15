"""Load rubric, templates, profile and env configuration."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from gigscout.errors import ConfigurationError
from gigscout.log import get_logger

log = get_logger(__name__)

load_dotenv()

ROOT_DIR: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = Path(os.environ.get("GIGSCOUT_CONFIG_DIR", ROOT_DIR / "config"))
DATA_DIR: Path = Path(os.environ.get("GIGSCOUT_DATA_DIR", ROOT_DIR / "data"))
SCORING_PATH: Path = CONFIG_DIR / "scoring.yaml"
TEMPLATES_PATH: Path = CONFIG_DIR / "templates.yaml"
PROFILE_PATH: Path = CONFIG_DIR / "profile.yaml"


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _env_int(key: str, default: int) -> int:
    raw = get_env(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("Ignoring non-integer %s=%r, using %d", key, raw, default)
        return default


def _env_float(key: str, default: float) -> float:
    raw = get_env(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("Ignoring non-numeric %s=%r, using %s", key, raw, default)
        return default


def ensure_dirs() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)


def database_url() -> str:
    return get_env("DATABASE_URL") or f"sqlite:///{DATA_DIR / 'pipeline.db'}"


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Missing config file: {path}")
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path.name} must contain a mapping at the top level")
    return data


_REQUIRED_RUBRIC_KEYS = ("weights", "budget", "tech_keywords", "client_signals", "project_clarity", "timing")


def load_rubric(path: Path | None = None) -> dict[str, Any]:
    """Scoring rubric: weights, keyword tiers, budget tiers, bonuses."""
    rubric = _load_yaml(path or SCORING_PATH)
    missing = [k for k in _REQUIRED_RUBRIC_KEYS if k not in rubric]
    if missing:
        raise ConfigurationError(f"scoring rubric is missing: {', '.join(missing)}")
    return rubric


def load_templates(path: Path | None = None) -> dict[str, Any]:
    data = _load_yaml(path or TEMPLATES_PATH)
    if "generic" not in data.get("templates", {}):
        raise ConfigurationError("templates.yaml must define a 'generic' template")
    return data


def load_profile(path: Path | None = None) -> dict[str, Any]:
    data = _load_yaml(path or PROFILE_PATH)
    data.setdefault("owner", {})
    data.setdefault("agency", {}).setdefault("tech_stack", {})
    portfolio = data.setdefault("portfolio", {})
    portfolio.setdefault("highlights", [])
    portfolio.setdefault("showcase", [])
    portfolio.setdefault("github_repos", [])
    return data


def save_profile(profile: dict[str, Any], path: Path | None = None) -> None:
    with open(path or PROFILE_PATH, "w", encoding="utf-8") as f:
        yaml.safe_dump(profile, f, sort_keys=False, allow_unicode=True)


@dataclass(frozen=True)
class AutomationSettings:
    """Thresholds, pacing and digest window for one automation run."""

    qualify_min_score: int = 50
    alert_min_score: int = 80
    proposal_min_score: int = 85
    digest_min_score: int = 65
    digest_hour: int = 8
    timezone: str = ""
    fetch_delay: float = 0.5
    alert_delay: float = 1.0
    proposal_delay: float = 0.5

    @classmethod
    def from_env(cls) -> AutomationSettings:
        return cls(
            qualify_min_score=_env_int("QUALIFY_MIN_SCORE", 50),
            alert_min_score=_env_int("ALERT_MIN_SCORE", 80),
            proposal_min_score=_env_int("PROPOSAL_MIN_SCORE", 85),
            digest_min_score=_env_int("DIGEST_MIN_SCORE", 65),
            digest_hour=_env_int("DIGEST_HOUR", 8),
            timezone=get_env("PIPELINE_TZ"),
            fetch_delay=_env_float("FETCH_DELAY_SECONDS", 0.5),
            alert_delay=_env_float("ALERT_DELAY_SECONDS", 1.0),
            proposal_delay=_env_float("PROPOSAL_DELAY_SECONDS", 0.5),
        )
