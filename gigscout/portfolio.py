"""Sync GitHub repositories into the proposal profile."""
from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import requests

from gigscout.config import get_env, load_profile, save_profile
from gigscout.log import get_logger
from gigscout.retry import retry

log = get_logger(__name__)

GITHUB_API = "https://api.github.com"
PAGE_SIZE = 100
PAGE_DELAY = 0.1
MAX_AGE = timedelta(days=730)

RELEVANT_LANGUAGES = frozenset({"TypeScript", "JavaScript", "Python", "Go", "Rust", "HTML", "CSS"})
RELEVANT_TOPICS = frozenset({
    "nextjs", "react", "typescript", "nodejs", "tailwind",
    "api", "fullstack", "web", "dashboard", "saas",
})


@retry(max_attempts=3, base_delay=1.0, retryable=(requests.ConnectionError, requests.Timeout))
def _get(url: str, headers: dict[str, str], params: dict[str, Any]) -> requests.Response:
    return requests.get(url, headers=headers, params=params, timeout=15)


def fetch_github_repos(username: str, token: str | None = None, delay: float = PAGE_DELAY) -> list[dict[str, Any]]:
    """All repos for ``username`` (or the token's user), newest push first."""
    headers = {
        "Accept": "application/vnd.github.v3+json",
        "User-Agent": "gigscout-portfolio-sync",
    }
    if token:
        headers["Authorization"] = f"token {token}"
        url = f"{GITHUB_API}/user/repos"
    else:
        url = f"{GITHUB_API}/users/{username}/repos"

    repos: list[dict[str, Any]] = []
    page = 1
    while True:
        try:
            r = _get(url, headers, {"per_page": PAGE_SIZE, "page": page, "sort": "pushed"})
        except requests.RequestException as exc:
            log.error("GitHub request failed: %s", exc)
            break
        if not r.ok:
            log.error("GitHub API error: %d", r.status_code)
            break
        batch = r.json()
        if not batch:
            break
        repos.extend(batch)
        page += 1
        if delay:
            time.sleep(delay)
    return repos


def _pushed_at(repo: dict[str, Any]) -> datetime | None:
    raw = repo.get("pushed_at")
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def filter_and_rank_repos(repos: list[dict[str, Any]], now: datetime | None = None) -> list[dict[str, Any]]:
    """Keep recently pushed repos in a relevant language or topic; most stars first."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - MAX_AGE
    ranked: list[tuple[int, datetime, dict[str, Any]]] = []
    for repo in repos:
        pushed = _pushed_at(repo)
        if pushed is None or pushed <= cutoff:
            continue
        topics = [t.lower() for t in repo.get("topics") or []]
        if repo.get("language") not in RELEVANT_LANGUAGES and not RELEVANT_TOPICS.intersection(topics):
            continue
        stars = int(repo.get("stargazers_count") or 0)
        ranked.append((stars, pushed, {
            "name": repo["name"],
            "description": repo.get("description") or "No description",
            "url": repo.get("html_url"),
            "live_url": repo.get("homepage") or None,
            "language": repo.get("language"),
            "topics": repo.get("topics") or [],
            "stars": stars,
            "last_updated": repo.get("pushed_at"),
            "is_private": bool(repo.get("private")),
        }))
    ranked.sort(key=lambda r: (r[0], r[1]), reverse=True)
    return [item for _, _, item in ranked]


def _showcase_names(profile: dict[str, Any]) -> set[str]:
    names: set[str] = set()
    for item in profile["portfolio"].get("showcase") or []:
        names.update(item.get("repos") or [item.get("name")])
    return names


def sync_portfolio(path: Path | None = None, now: datetime | None = None) -> list[dict[str, Any]]:
    """Refresh ``portfolio.github_repos``; showcase and highlights are left alone."""
    profile = load_profile(path)
    username = profile["owner"].get("github") or ""
    repos = fetch_github_repos(username, get_env("GITHUB_TOKEN") or None)
    log.info("Fetched %d repos from GitHub", len(repos))

    items = filter_and_rank_repos(repos, now)
    log.info("Filtered to %d relevant repos", len(items))

    profile["portfolio"]["github_repos"] = items
    profile["portfolio"]["last_synced"] = (now or datetime.now(timezone.utc)).isoformat()
    save_profile(profile, path)
    return items


def portfolio_listing(path: Path | None = None) -> str:
    profile = load_profile(path)
    portfolio = profile["portfolio"]
    showcase = portfolio.get("showcase") or []
    repos = portfolio.get("github_repos") or []

    lines = ["", "=" * 60, "PORTFOLIO", "=" * 60]
    lines.append(f"Last synced: {portfolio.get('last_synced') or 'Never'}")

    lines += ["", f"Showcase ({len(showcase)} curated projects):"]
    if showcase:
        for i, item in enumerate(showcase, 1):
            url = f" | {item['url']}" if item.get("url") else ""
            lines.append(f"  {i}. {item.get('name')}: {item.get('description', '')}{url}")
            if item.get("tech"):
                lines.append(f"     Tech: {', '.join(item['tech'])}")
    else:
        lines.append("  No curated projects yet.")

    if portfolio.get("highlights"):
        lines += ["", "Highlights (used in proposals):"]
        lines += [f"  • {h}" for h in portfolio["highlights"]]

    shown = _showcase_names(profile)
    fresh = [r for r in repos if r.get("name") not in shown]
    if fresh:
        lines += ["", f"New from GitHub, consider adding to showcase ({len(fresh)}):"]
        for i, repo in enumerate(fresh, 1):
            stars = f" ({repo['stars']} stars)" if repo.get("stars") else ""
            lang = f" [{repo['language']}]" if repo.get("language") else ""
            lines.append(f"  {i}. {repo['name']}{stars}{lang}: {repo.get('description', '')}")
    elif repos:
        lines += ["", f"GitHub repos: {len(repos)} (all represented in showcase)"]
    else:
        lines += ["", "No GitHub repos synced yet. Run `gigscout portfolio` to sync."]

    lines.append("=" * 60)
    return "\n".join(lines)
