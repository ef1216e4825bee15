"""Fill proposal templates for a stored job (no network, no randomness)."""
from __future__ import annotations

import hashlib
import re
from typing import Any

from gigscout.config import load_profile, load_templates
from gigscout.log import get_logger
from gigscout.models import JobRecord

log = get_logger(__name__)

SECTIONS: tuple[str, ...] = ("hook", "understanding", "approach", "proof", "cta", "signature")

_REQUIREMENT_CUES = ("need", "must", "should", "require", "looking for", "want")
_ACTION_PHRASE = re.compile(r"\b(build|create|develop|implement|design|integrate)\s+\w+", re.IGNORECASE)

GENERIC_QUESTIONS: tuple[str, ...] = (
    "Do you have existing designs/wireframes, or should I propose a UI approach?",
    "What's your target timeline for the MVP/first version?",
    "Are there any existing codebases or APIs this needs to integrate with?",
    "What's your preferred communication style: async updates or daily syncs?",
    "Do you have specific examples of similar products you like?",
)

# (cues, question) pairs checked in order against the description
_CONTEXT_QUESTIONS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("design", "ui", "figma"), "Are the designs finalized, or is there flexibility in the UI approach?"),
    (("api", "integrate", "backend"), "Is there API documentation available, or will I be designing the endpoints?"),
    (("mvp", "startup", "launch"), "What are your must-have features for launch vs. nice-to-haves for later?"),
    (("bug", "fix", "issue"), "Can you share error logs or reproduction steps so I can estimate accurately?"),
)


def _job_text(job: JobRecord) -> str:
    return f"{job.title} {job.description or ''} {job.skills or ''}".lower()


def select_template(job: JobRecord, templates: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    text = _job_text(job)
    table = templates["templates"]
    for key, template in table.items():
        if key == "generic":
            continue
        if any(trigger.lower() in text for trigger in template.get("triggers", [])):
            return key, template
    return "generic", table["generic"]


def extract_requirements(description: str) -> list[str]:
    requirements: list[str] = []
    for line in re.split(r"[.\n]", description or ""):
        trimmed = line.strip()
        if len(trimmed) < 20:
            continue
        if any(cue in trimmed.lower() for cue in _REQUIREMENT_CUES):
            requirements.append(f"• {trimmed[:100]}")

    if not requirements:
        requirements = [f"• {m.group(0)}" for m in _ACTION_PHRASE.finditer(description or "")][:3]
    return requirements[:4]


def clarifying_question(job: JobRecord) -> str:
    desc = (job.description or "").lower()
    for cues, question in _CONTEXT_QUESTIONS:
        if any(cue in desc for cue in cues):
            return question
    digest = hashlib.sha256(job.id.encode()).hexdigest()
    return GENERIC_QUESTIONS[int(digest, 16) % len(GENERIC_QUESTIONS)]


def relevant_portfolio(job: JobRecord, profile: dict[str, Any]) -> str:
    highlights: list[str] = profile.get("portfolio", {}).get("highlights") or []
    github = profile.get("owner", {}).get("github") or ""
    fallback = f"my GitHub portfolio (github.com/{github})" if github else "my portfolio"
    if not highlights:
        return fallback

    keywords = [s.strip().lower() for s in (job.skills or "").split(",") if s.strip()]
    for item in highlights:
        if any(k in item.lower() for k in keywords):
            return item
    return highlights[0]


def relevant_tech(job: JobRecord, profile: dict[str, Any]) -> list[str]:
    text = _job_text(job)
    found: list[str] = []
    for techs in profile.get("agency", {}).get("tech_stack", {}).values():
        for tech in techs or []:
            if tech.lower() in text and tech not in found:
                found.append(tech)
    return found


def _fill(text: str, values: dict[str, str]) -> str:
    for key, value in values.items():
        text = text.replace("{" + key + "}", value)
    return text


def render_proposal(
    job: JobRecord,
    template: dict[str, Any],
    profile: dict[str, Any],
    max_length: int = 2500,
) -> str:
    requirements = extract_requirements(job.description or "")
    tech = relevant_tech(job, profile)
    portfolio = relevant_portfolio(job, profile)

    values = {
        "scale": "thousands of users",
        "projectName": " ".join(job.title.split()[:5]),
        "specificDetail": f"Your focus on {tech[0] if tech else 'modern development'}",
        "techStack": ", ".join(tech[:4]) if tech else "Next.js, React, TypeScript",
        "bulletPoints": "\n".join(requirements) or "• Your core requirements as described above",
        "phase1": "Core architecture & database design",
        "phase2": "Feature implementation & API development",
        "phase3": "Testing, polish & deployment",
        "approach": "1. Understand your codebase\n2. Implement features incrementally\n3. Test thoroughly\n4. Document and deploy",
        "timeline": "2-3 weeks",
        "portfolioLink": portfolio,
        "project1": portfolio,
        "project2": "Similar projects in my portfolio",
        "issueType": "similar",
        "projectType": "web application",
        "duration": "6+ months",
        "clarifyingQuestion": clarifying_question(job),
        "ownerName": profile.get("owner", {}).get("name") or "",
    }

    structure = template.get("structure", {})
    parts = [_fill(structure.get(section, ""), values) for section in SECTIONS]
    proposal = "\n\n".join(p for p in parts if p.strip())
    proposal = re.sub(r"\n{3,}", "\n\n", proposal).strip()

    if len(proposal) > max_length:
        proposal = proposal[: max_length - 3] + "..."
    return proposal


def generate_proposal(
    job: JobRecord,
    templates: dict[str, Any] | None = None,
    profile: dict[str, Any] | None = None,
) -> tuple[str, str]:
    """Return ``(text, template_name)`` for ``job``."""
    templates = templates or load_templates()
    profile = profile or load_profile()
    _, template = select_template(job, templates)
    max_length = int(templates.get("formatting", {}).get("max_length", 2500))
    content = render_proposal(job, template, profile, max_length)
    name = template.get("name", "generic")
    log.debug("Rendered %d-char proposal for %s with %s", len(content), job.id, name)
    return content, name
