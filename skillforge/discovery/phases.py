"""Phase ordering for the discovery dialogue.

The state machine never enumerates phases itself; it is told the next
phase by its caller.  This module is that caller's source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Phase(str, Enum):
    """Stages of the elicitation, in order."""

    DISCOVER = "discover"
    DEFINE = "define"
    ARCHITECT = "architect"
    SPECIFY = "specify"
    DELIVER = "deliver"


@dataclass(frozen=True)
class PhaseInfo:
    """Display metadata for a phase."""

    phase: Phase
    label: str
    number: int
    description: str


PHASES: tuple[PhaseInfo, ...] = (
    PhaseInfo(Phase.DISCOVER, "Discover", 1, "Clarify the problem space"),
    PhaseInfo(Phase.DEFINE, "Define", 2, "Scope features & requirements"),
    PhaseInfo(Phase.ARCHITECT, "Architect", 3, "Design systems & structure"),
    PhaseInfo(Phase.SPECIFY, "Specify", 4, "Generate the full spec"),
    PhaseInfo(Phase.DELIVER, "Deliver", 5, "Output the spec"),
)

# Phases in which the generation client asks questions.
DISCOVERY_PHASES: tuple[Phase, ...] = (Phase.DISCOVER, Phase.DEFINE, Phase.ARCHITECT)

_NEXT_PHASE: dict[Phase, Phase] = {
    Phase.DISCOVER: Phase.DEFINE,
    Phase.DEFINE: Phase.ARCHITECT,
    Phase.ARCHITECT: Phase.SPECIFY,
}


def next_phase(phase: Phase | str) -> Phase | None:
    """Return the phase that follows *phase*, or ``None`` when discovery is over."""
    return _NEXT_PHASE.get(Phase(phase))


def is_discovery_phase(phase: Phase | str) -> bool:
    return Phase(phase) in DISCOVERY_PHASES


def phase_info(phase: Phase | str) -> PhaseInfo:
    """Look up display metadata for *phase*."""
    target = Phase(phase)
    for info in PHASES:
        if info.phase is target:
            return info
    raise KeyError(phase)  # unreachable while PHASES covers the enum
