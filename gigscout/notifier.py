"""Discord webhook notifications: hot-job alerts, proposal-ready pings, digest."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

import requests

from gigscout.config import get_env
from gigscout.log import get_logger
from gigscout.models import JobRecord
from gigscout.retry import retry
from gigscout.scorer import score_category

log = get_logger(__name__)

USERNAME = "Gigscout Pipeline"

_CATEGORY_COLOR: dict[str, int] = {
    "hot": 0x00FF00,
    "warm": 0xFFFF00,
    "maybe": 0xFFA500,
    "pass": 0xFF0000,
}
_CATEGORY_EMOJI: dict[str, str] = {
    "hot": "\U0001f525",
    "warm": "⭐",
    "maybe": "\U0001f440",
    "pass": "❄️",
}
DIGEST_COLOR = 0x5865F2


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class DiscordNotifier:
    """Never raises on transport trouble: every send returns True/False."""

    def __init__(self, webhook_url: str | None = None, timeout: float = 15.0) -> None:
        self.webhook_url = webhook_url if webhook_url is not None else get_env("DISCORD_WEBHOOK_URL")
        self.timeout = timeout

    @retry(max_attempts=2, base_delay=2.0, retryable=(requests.ConnectionError, requests.Timeout))
    def _post(self, payload: dict[str, Any]) -> requests.Response:
        return requests.post(self.webhook_url, json=payload, timeout=self.timeout)

    def _send(self, embed: dict[str, Any], what: str) -> bool:
        if not self.webhook_url:
            log.error("DISCORD_WEBHOOK_URL not set, %s not sent", what)
            return False
        try:
            r = self._post({"username": USERNAME, "embeds": [embed]})
        except requests.RequestException as exc:
            log.error("Discord %s failed: %s", what, exc)
            return False
        if not r.ok:
            log.error("Discord webhook failed for %s: %d %s", what, r.status_code, r.text[:300])
            return False
        return True

    def notify_new_job(self, job: JobRecord) -> bool:
        score = job.score or 0
        category = score_category(score)
        fields = [
            {"name": "Score", "value": f"{score}/100", "inline": True},
            {"name": "Budget", "value": job.budget_label, "inline": True},
            {"name": "Skills", "value": truncate(job.skills or "Not listed", 100), "inline": False},
        ]
        if job.client_country:
            fields.append({"name": "Client", "value": job.client_country, "inline": True})

        embed = {
            "title": f"{_CATEGORY_EMOJI[category]} {truncate(job.title, 200)}",
            "description": truncate(job.description or "No description", 500),
            "url": job.url or None,
            "color": _CATEGORY_COLOR[category],
            "fields": fields,
            "footer": {"text": f"Job ID: {job.id}"},
            "timestamp": job.posted_at or _now_iso(),
        }
        return self._send(embed, f"alert for {job.id}")

    def notify_proposal_ready(self, job: JobRecord, proposal: str) -> bool:
        embed = {
            "title": f"\U0001f4dd Proposal Ready: {truncate(job.title, 150)}",
            "description": (
                "A proposal has been generated for this job.\n\n"
                f"**Score:** {job.score}/100\n**Budget:** {job.budget_label}\n\n[Open Job]({job.url})"
            ),
            "url": job.url or None,
            "color": _CATEGORY_COLOR["hot"],
            "fields": [{"name": "Proposal Preview", "value": truncate(proposal, 500), "inline": False}],
            "footer": {"text": f"Run: gigscout submit {job.id}"},
            "timestamp": _now_iso(),
        }
        return self._send(embed, f"proposal-ready for {job.id}")

    def notify_daily_digest(self, jobs: Iterable[JobRecord], stats: dict[str, Any]) -> bool:
        embed = {
            "title": "\U0001f4cb Daily Pipeline Digest",
            "description": build_digest_text(list(jobs), stats),
            "color": DIGEST_COLOR,
            "fields": [],
            "footer": {"text": "Gigscout freelance automation"},
            "timestamp": _now_iso(),
        }
        return self._send(embed, "daily digest")


def build_digest_text(jobs: list[JobRecord], stats: dict[str, Any]) -> str:
    hot = [j for j in jobs if score_category(j.score or 0) == "hot"]
    warm = [j for j in jobs if score_category(j.score or 0) == "warm"]

    lines = [
        "**Today's Pipeline Summary**",
        "",
        "\U0001f4ca **Stats**",
        f"• Total jobs fetched: {stats.get('total_jobs') or 0}",
        f"• Qualified jobs: {stats.get('qualified_jobs') or 0}",
        f"• Proposals generated: {stats.get('proposals_generated') or 0}",
        f"• Submitted: {stats.get('submitted') or 0}",
        f"• Won: {stats.get('won') or 0}",
        "",
    ]
    if hot:
        lines.append(f"\U0001f525 **Hot Jobs (85+)**: {len(hot)}")
        lines.extend(f"• [{truncate(j.title, 50)}]({j.url}) - Score: {j.score}" for j in hot[:3])
        lines.append("")
    if warm:
        lines.append(f"⭐ **Warm Jobs (70-84)**: {len(warm)}")
        lines.extend(f"• [{truncate(j.title, 50)}]({j.url}) - Score: {j.score}" for j in warm[:3])
    return "\n".join(lines).strip()
