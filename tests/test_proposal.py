from gigscout.models import JobRecord
from gigscout.proposal import (
    GENERIC_QUESTIONS,
    clarifying_question,
    extract_requirements,
    generate_proposal,
    relevant_tech,
    render_proposal,
    select_template,
)


def _job(**kw):
    fields = dict(
        id="abc123",
        title="Build a SaaS dashboard in Next.js",
        url="https://example.com/jobs/abc123",
        description="We need a developer who can build a Next.js dashboard with Supabase auth and Stripe billing.",
        skills="Next.js, React, Supabase",
        score=92,
    )
    fields.update(kw)
    return JobRecord(**fields)


def test_select_template_by_trigger(templates):
    assert select_template(_job(), templates)[0] == "saas_build"
    bug = _job(title="Fix checkout bug", description="Our form throws an error on submit", skills="")
    assert select_template(bug, templates)[0] == "bug_fix"
    plain = _job(title="Landing page", description="Simple marketing page", skills="")
    assert select_template(plain, templates)[0] == "generic"


def test_extract_requirements_prefers_requirement_sentences():
    desc = "We need a developer to build the onboarding flow. Thanks. You must know TypeScript well enough."
    reqs = extract_requirements(desc)
    assert reqs == [
        "• We need a developer to build the onboarding flow",
        "• You must know TypeScript well enough",
    ]


def test_extract_requirements_falls_back_to_action_phrases():
    assert extract_requirements("Build dashboards. Integrate Stripe.") == ["• Build dashboards", "• Integrate Stripe"]


def test_clarifying_question_is_deterministic():
    job = _job(description="Short brief with nothing specific")
    asked = {clarifying_question(job) for _ in range(5)}
    assert len(asked) == 1
    assert asked.pop() in GENERIC_QUESTIONS


def test_clarifying_question_uses_context():
    assert "error logs" in clarifying_question(_job(description="Please fix a bug in checkout"))


def test_relevant_tech_from_profile(profile):
    assert relevant_tech(_job(), profile)[:3] == ["Next.js", "React", "Supabase"]


def test_render_fills_every_placeholder(templates, profile):
    _, template = select_template(_job(), templates)
    text = render_proposal(_job(), template, profile, 2500)

    assert "{" not in text and "}" not in text
    assert profile["owner"]["name"] in text
    assert "\n\n\n" not in text


def test_render_truncates(templates, profile):
    _, template = select_template(_job(), templates)
    text = render_proposal(_job(), template, profile, 120)
    assert len(text) == 120
    assert text.endswith("...")


def test_generate_proposal_returns_template_name(templates, profile):
    content, name = generate_proposal(_job(), templates, profile)
    again, _ = generate_proposal(_job(), templates, profile)
    assert name == "SaaS / MVP build"
    assert content == again
