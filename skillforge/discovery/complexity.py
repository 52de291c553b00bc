"""Offline complexity heuristic.

Used for instant feedback at ``skillforge init`` and as the fallback when
the AI classification call fails.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from skillforge.discovery.depth import Complexity

AGENTIC_KEYWORDS: tuple[str, ...] = (
    "agent", "agents", "llm", "ai", "mcp", "autonomous", "multi-agent",
    "claude", "tool use", "tool_use", "agentic", "orchestrat",
    "crew", "langchain", "autogen", "a2a", "react loop",
    "plan and execute", "reflection", "context window",
)

_COMPLEX_SIGNALS = (
    "multi-agent", "orchestrat", "real-time", "realtime", "pipeline",
    "workflow engine", "distributed", "microservice", "event-driven",
    "machine learning", "autonomous", "state machine", "complex",
)
_MODERATE_SIGNALS = (
    "dashboard", "admin", "integration", "third-party", "auth",
    "roles", "permissions", "notification", "search", "filter",
    "analytics", "report", "import", "export", "webhook",
    "payment", "subscription", "team", "collaboration",
)
_SIMPLE_SIGNALS = (
    "todo", "crud", "landing", "portfolio", "blog", "calculator",
    "converter", "timer", "counter", "form", "survey", "quiz",
    "single page", "simple", "basic", "just a",
)

# Signals short enough to collide with ordinary words must match whole words.
_WHOLE_WORD_MAX_LEN = 3


@dataclass(frozen=True)
class QuickClassification:
    complexity: Complexity
    is_agentic: bool
    confidence: float


def _pattern(signal: str) -> re.Pattern[str]:
    suffix = r"\b" if len(signal) <= _WHOLE_WORD_MAX_LEN else ""
    return re.compile(r"\b" + re.escape(signal) + suffix)


def _count(text: str, signals: tuple[str, ...]) -> int:
    return sum(1 for s in signals if _pattern(s).search(text))


def quick_classify(description: str) -> QuickClassification:
    """Keyword-based guess at complexity and whether the project is agentic."""
    lower = description.lower()
    word_count = len(lower.split())

    is_agentic = _count(lower, AGENTIC_KEYWORDS) > 0
    if is_agentic:
        return QuickClassification(Complexity.COMPLEX, True, 0.8)

    complex_score = _count(lower, _COMPLEX_SIGNALS)
    moderate_score = _count(lower, _MODERATE_SIGNALS)
    simple_score = _count(lower, _SIMPLE_SIGNALS)

    if complex_score >= 2 or (complex_score >= 1 and word_count > 50):
        return QuickClassification(Complexity.COMPLEX, False, 0.7)
    if simple_score >= 2 or (simple_score >= 1 and word_count < 20):
        return QuickClassification(Complexity.SIMPLE, False, 0.7)
    if moderate_score >= 2:
        return QuickClassification(Complexity.MODERATE, False, 0.7)

    return QuickClassification(Complexity.MODERATE, False, 0.4 if word_count < 10 else 0.5)
