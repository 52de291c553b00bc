"""Prompt templates for discovery.

All prompts live here so they can be reviewed in one place.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

SYSTEM_DISCOVERY = """\
You are an engineering specification consultant working for Skill Forge. \
Your job is to extract precise, buildable requirements from ideas through \
structured questioning.

Every question you ask must extract information that directly contributes \
to a buildable engineering specification. No small talk. No vague questions.

You are a systems thinker. You think about data models, API contracts, state \
management, user flows, edge cases, error handling and security from the \
first question.

Rules:
- Ask ONE question at a time
- Each question must have a clear reason (why it matters for the spec)
- Adapt follow-up questions based on prior answers; never ask a static checklist
- If the user is vague, push for specifics: "Who specifically?" not "Who is this for?"
- Never ask about technology preferences until the architect phase
- Detect agentic components (AI, agents, MCP, autonomous) and flag them
- Mark anything you infer but the user didn't explicitly state as [ASSUMPTION]
- Always propose a concrete suggested answer the user can accept as-is"""

SYSTEM_COMPLEXITY = """\
You classify ideas into exactly one complexity level. Respond with ONLY a JSON object.

SIMPLE: CRUD apps, landing pages, basic tools, single-purpose utilities, portfolio sites.
- 1-3 data entities, basic auth or none, single user role, no real-time, no AI/agents

MODERATE: Multi-feature apps, dashboards, integrations, SaaS tools.
- 4-8 data entities, auth + roles, third-party integrations, some business logic

COMPLEX: Agentic systems, multi-agent orchestration, MCP servers, real-time collaboration, complex state machines.
- 8+ entities, AI/LLM integration, autonomous agents, complex workflows, MCP, multi-service architecture"""

PHASE_FOCUS: dict[str, str] = {
    "discover": "vision, target user specifics, platform, timeline, scope boundaries, competitive landscape.",
    "define": "specific features with acceptance criteria, edge cases per feature, non-functional requirements.",
    "architect": "data model decisions, API design preferences, tech stack constraints, security requirements.",
}

AGENTIC_FOCUS = "agent autonomy, tool access, safety boundaries, failure modes, cost."


def prompt_classify_complexity(description: str) -> str:
    return f"""Classify this idea into simple, moderate, or complex:

"{description}"

Respond as JSON:
{{
  "complexity": "simple" | "moderate" | "complex",
  "is_agentic": boolean,
  "reasoning": "one sentence explaining why",
  "suggested_name": "short-kebab-case-name",
  "one_liner": "one sentence: what it does, for whom, solving what problem"
}}"""


def format_answers(answers: Sequence[tuple[str, str]]) -> str:
    if not answers:
        return "No questions asked yet."
    return "\n\n".join(f"Q{i}: {q}\nA{i}: {a}" for i, (q, a) in enumerate(answers, 1))


def prompt_discovery_suggestion(
    description: str,
    phase: str,
    answers: Sequence[tuple[str, str]],
    complexity: str,
    is_agentic: bool,
    understanding: Mapping[str, Any],
) -> str:
    """Ask for the next question together with a proposed answer."""
    lines = [
        f'The user is building: "{description}"',
        f"Complexity: {complexity}",
        f"Has agentic components: {str(is_agentic).lower()}",
        f"Current phase: {phase}",
        "",
        "Previous Q&A:",
        format_answers(answers),
        "",
        "What we understand so far:",
        json.dumps(dict(understanding), indent=2, sort_keys=True) if understanding else "Nothing yet.",
        "",
        "Generate the next most important question to ask for this phase, and propose "
        "the answer you would recommend given everything above.",
    ]
    if phase in PHASE_FOCUS:
        lines.append(f"Focus on: {PHASE_FOCUS[phase]}")
    if is_agentic:
        lines.append(f"Include agentic considerations: {AGENTIC_FOCUS}")
    lines.append(
        """
Respond as JSON:
{
  "question": "the specific question to ask",
  "why": "why this matters for the spec (shown to user as context)",
  "options": ["option1", "option2", "option3"] or null if open-ended,
  "field": "short snake_case name of the discovery field this populates",
  "phase_complete": boolean (true if enough info gathered for this phase),
  "suggested_answer": "the answer you recommend",
  "confidence": "high" | "medium" | "low",
  "reasoning": "why you recommend this answer",
  "best_practice_note": "an industry best practice relevant here" or null
}"""
    )
    return "\n".join(lines)
