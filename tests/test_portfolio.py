from datetime import datetime, timezone

import yaml

import gigscout.portfolio as portfolio
from gigscout.portfolio import fetch_github_repos, filter_and_rank_repos, portfolio_listing, sync_portfolio

NOW = datetime(2026, 3, 2, tzinfo=timezone.utc)


def _repo(name, stars=0, pushed="2026-01-10T00:00:00Z", language="TypeScript", topics=(), private=False):
    return {
        "name": name,
        "description": f"{name} repo",
        "html_url": f"https://github.com/me/{name}",
        "homepage": None,
        "language": language,
        "topics": list(topics),
        "stargazers_count": stars,
        "pushed_at": pushed,
        "private": private,
    }


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    @property
    def ok(self):
        return self.status_code < 300

    def json(self):
        return self.payload


def test_filter_and_rank():
    repos = [
        _repo("old", stars=50, pushed="2023-01-01T00:00:00Z"),
        _repo("cobol", language="COBOL"),
        _repo("tagged", language=None, topics=["NextJS"]),
        _repo("popular", stars=10),
        _repo("recent", stars=10, pushed="2026-02-20T00:00:00Z"),
    ]
    ranked = [r["name"] for r in filter_and_rank_repos(repos, NOW)]
    assert ranked == ["recent", "popular", "tagged"]


def test_fetch_pages_until_empty(monkeypatch):
    pages = {1: [_repo("a")], 2: [_repo("b")], 3: []}
    seen = []

    def fake_get(url, headers, params):
        seen.append((url, headers.get("Authorization")))
        return FakeResponse(pages[params["page"]])

    monkeypatch.setattr(portfolio, "_get", fake_get)
    repos = fetch_github_repos("me", delay=0)

    assert [r["name"] for r in repos] == ["a", "b"]
    assert seen[0] == ("https://api.github.com/users/me/repos", None)


def test_fetch_stops_on_api_error(monkeypatch):
    monkeypatch.setattr(portfolio, "_get", lambda *a: FakeResponse({"message": "rate limited"}, 403))
    assert fetch_github_repos("me", delay=0) == []


def test_sync_only_touches_github_fields(tmp_path, monkeypatch):
    path = tmp_path / "profile.yaml"
    path.write_text(
        yaml.safe_dump({
            "owner": {"name": "Sam", "github": "me"},
            "portfolio": {"highlights": ["keep me"], "showcase": [{"name": "popular"}]},
        }),
        encoding="utf-8",
    )
    monkeypatch.setattr(portfolio, "fetch_github_repos", lambda user, token=None: [_repo("popular"), _repo("fresh")])

    items = sync_portfolio(path, now=NOW)
    saved = yaml.safe_load(path.read_text(encoding="utf-8"))

    assert [i["name"] for i in items] == ["popular", "fresh"]
    assert saved["portfolio"]["highlights"] == ["keep me"]
    assert saved["portfolio"]["showcase"] == [{"name": "popular"}]
    assert saved["portfolio"]["last_synced"] == NOW.isoformat()

    listing = portfolio_listing(path)
    assert "fresh" in listing
    assert "consider adding to showcase (1)" in listing
