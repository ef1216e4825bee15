"""Vollna: aggregated freelance projects (Upwork, Freelancer, Guru, PPH).

Docs: https://www.vollna.com/api
"""
from __future__ import annotations

from typing import Any

import requests

from gigscout.log import get_logger
from gigscout.retry import retry
from gigscout.sources.base import UpstreamSource

log = get_logger(__name__)

API_BASE = "https://api.vollna.com/v1"


class VollnaSource(UpstreamSource):
    def __init__(self, token: str, page_limit: int = 50, timeout: float = 15.0) -> None:
        self.token = token
        self.page_limit = page_limit
        self.timeout = timeout

    @retry(max_attempts=3, base_delay=1.5, retryable=(requests.ConnectionError, requests.Timeout))
    def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> requests.Response:
        return requests.get(
            f"{API_BASE}{endpoint}",
            params=params,
            headers={"X-API-TOKEN": self.token, "Accept": "application/json"},
            timeout=self.timeout,
        )

    def _request(self, endpoint: str, params: dict[str, Any] | None = None) -> dict[str, Any] | None:
        if not self.token:
            log.error("VOLLNA_API_TOKEN not set, cannot reach %s", endpoint)
            return None
        try:
            r = self._get(endpoint, params)
        except requests.RequestException as exc:
            log.error("Vollna request %s failed: %s", endpoint, exc)
            return None

        if not r.ok:
            log.error("Vollna API error %d on %s: %s", r.status_code, endpoint, r.text[:500])
            return None
        try:
            return r.json()
        except ValueError:
            log.error("Vollna returned non-JSON body for %s", endpoint)
            return None

    def list_filters(self) -> list[dict[str, Any]]:
        payload = self._request("/filters")
        filters = (payload or {}).get("data") or []
        if not filters:
            log.info("No Vollna filters found (or API error)")
        else:
            log.info("Found %d Vollna filter(s)", len(filters))
        return filters

    def list_postings(self, filter_id: Any) -> list[dict[str, Any]]:
        payload = self._request(f"/filters/{filter_id}/projects", {"limit": self.page_limit})
        return (payload or {}).get("data") or []

    def platform_counts(self) -> dict[str, int]:
        """Postings per upstream site across every filter."""
        sites: dict[str, int] = {}
        for f in self.list_filters():
            for project in self.list_postings(f.get("id")):
                site = project.get("site") or "unknown"
                sites[site] = sites.get(site, 0) + 1
        return sites
