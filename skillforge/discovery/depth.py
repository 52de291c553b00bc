"""Adaptive discovery depth.

Bounds how many questions each discovery phase may ask, based on the
project's complexity.  The model decides when a phase is done, but only
between the lower and upper bound.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from skillforge.discovery.phases import DISCOVERY_PHASES


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class PhaseDecision(str, Enum):
    CONTINUE = "continue"
    COMPLETE = "complete"
    FORCE_COMPLETE = "force_complete"


@dataclass(frozen=True)
class ComplexityProfile:
    label: str
    min_questions: int
    max_questions: int
    description: str


COMPLEXITY_CONFIG: dict[Complexity, ComplexityProfile] = {
    Complexity.SIMPLE: ComplexityProfile("Simple", 3, 5, "CRUD apps, landing pages, basic tools"),
    Complexity.MODERATE: ComplexityProfile("Moderate", 8, 12, "Multi-feature apps, dashboards, integrations"),
    Complexity.COMPLEX: ComplexityProfile("Complex", 15, 20, "Agentic systems, multi-agent, MCP, real-time"),
}


@dataclass(frozen=True)
class DepthConfig:
    min_questions_per_phase: int
    max_questions_per_phase: int
    total_min: int
    total_max: int


def get_depth_config(complexity: Complexity | str) -> DepthConfig:
    """Spread the complexity's question budget over the discovery phases."""
    profile = COMPLEXITY_CONFIG[Complexity(complexity)]
    phase_count = len(DISCOVERY_PHASES)
    return DepthConfig(
        min_questions_per_phase=math.ceil(profile.min_questions / phase_count),
        max_questions_per_phase=math.ceil(profile.max_questions / phase_count),
        total_min=profile.min_questions,
        total_max=profile.max_questions,
    )


def should_phase_complete(
    complexity: Complexity | str,
    questions_asked_in_phase: int,
    llm_says_complete: bool,
) -> PhaseDecision:
    """Decide whether the current phase should end after this answer."""
    depth = get_depth_config(complexity)

    if questions_asked_in_phase < depth.min_questions_per_phase:
        return PhaseDecision.CONTINUE
    if questions_asked_in_phase >= depth.max_questions_per_phase:
        return PhaseDecision.FORCE_COMPLETE
    return PhaseDecision.COMPLETE if llm_says_complete else PhaseDecision.CONTINUE
