"""Discovery conversation engine.

The state machine (:mod:`.state_machine`) is pure; persistence, model
calls and phase ordering live in the session store, the generation
client and :class:`DiscoverySession` respectively.
"""

from skillforge.discovery.depth import Complexity, PhaseDecision, get_depth_config, should_phase_complete
from skillforge.discovery.generation import (
    GenerationError,
    GenerationOutcome,
    SuggestionClient,
    SuggestionRequest,
)
from skillforge.discovery.messages import AISuggestion, ChatMessage, SnapshotError, UserAction
from skillforge.discovery.phases import Phase
from skillforge.discovery.session import DiscoveryResult, DiscoverySession
from skillforge.discovery.session_store import LoadResult, LoadStatus, SessionStore
from skillforge.discovery.state_machine import INITIAL_STATE, DiscoveryState, DiscoveryStatus, transition
from skillforge.discovery.understanding import UnderstandingValueError

__all__ = [
    "AISuggestion",
    "ChatMessage",
    "Complexity",
    "DiscoveryResult",
    "DiscoverySession",
    "DiscoveryState",
    "DiscoveryStatus",
    "GenerationError",
    "GenerationOutcome",
    "INITIAL_STATE",
    "LoadResult",
    "LoadStatus",
    "Phase",
    "PhaseDecision",
    "SessionStore",
    "SnapshotError",
    "SuggestionClient",
    "SuggestionRequest",
    "UnderstandingValueError",
    "UserAction",
    "get_depth_config",
    "should_phase_complete",
    "transition",
]
