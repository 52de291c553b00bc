"""Discovery state machine.

A single pure function, :func:`transition`, maps ``(state, action)`` to
the next state.  It is the only place where discovery state changes.

- **Total**: any object that is not a recognised action returns the
  state unchanged (the same object).  The reducer never raises.
- **Append-only log**: messages are only ever appended.
- **Deterministic**: identifiers and timestamps come from the injected
  :class:`TransitionContext`, so tests can pin them.

Phase ordering lives in :mod:`skillforge.discovery.phases`; the reducer
is always told the next phase.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar

from skillforge.discovery.messages import (
    AISuggestion,
    ChatMessage,
    MessageRole,
    MessageType,
    SnapshotError,
    UserAction,
)
from skillforge.discovery.phases import Phase
from skillforge.discovery.understanding import (
    UnderstandingValueError,
    validate_answer_value,
    validate_understanding,
)

logger = logging.getLogger(__name__)


# -------------------------------------------------------------------- #
# State
# -------------------------------------------------------------------- #


class DiscoveryStatus(str, Enum):
    """UI-facing status of the dialogue."""

    IDLE = "idle"
    AI_THINKING = "ai_thinking"
    AI_SUGGESTED = "ai_suggested"
    # Reserved.  No transition produces or consumes it.
    USER_RESPONDING = "user_responding"
    SAVING = "saving"
    PHASE_COMPLETE = "phase_complete"
    ALL_COMPLETE = "all_complete"


@dataclass(frozen=True)
class DiscoveryState:
    """Complete state of one discovery session.

    ``understanding`` is treated as immutable: the reducer always builds
    a new dict rather than writing into the existing one.
    """

    status: DiscoveryStatus = DiscoveryStatus.IDLE
    messages: tuple[ChatMessage, ...] = ()
    current_phase: Phase = Phase.DISCOVER
    questions_asked_in_phase: int = 0
    total_questions_asked: int = 0
    understanding: Mapping[str, Any] = field(default_factory=dict)
    current_question: str | None = None
    current_field: str | None = None
    current_why: str | None = None
    error: str | None = None
    turn: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict form for persistence."""
        return {
            "status": self.status.value,
            "current_phase": self.current_phase.value,
            "questions_asked_in_phase": self.questions_asked_in_phase,
            "total_questions_asked": self.total_questions_asked,
            "understanding": dict(self.understanding),
            "current_question": self.current_question,
            "current_field": self.current_field,
            "current_why": self.current_why,
            "error": self.error,
            "turn": self.turn,
            "messages": [m.to_dict() for m in self.messages],
        }


INITIAL_STATE = DiscoveryState()

STATE_FIELDS = frozenset(f.name for f in dataclasses.fields(DiscoveryState))


def _coerce_optional_str(name: str, value: Any) -> str | None:
    if value is not None and not isinstance(value, str):
        raise SnapshotError(f"{name} must be a string or null")
    return value


def _coerce_count(name: str, value: Any) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise SnapshotError(f"{name} must be a non-negative integer")
    return value


def _coerce_messages(value: Any) -> tuple[ChatMessage, ...]:
    if not isinstance(value, (list, tuple)):
        raise SnapshotError("messages must be a list")
    return tuple(m if isinstance(m, ChatMessage) else ChatMessage.from_dict(m) for m in value)


def _coerce_understanding(value: Any) -> dict[str, Any]:
    try:
        return validate_understanding(value)
    except UnderstandingValueError as exc:
        raise SnapshotError(str(exc)) from exc


def _coerce_enum(enum_cls: type[Enum], name: str) -> Callable[[Any], Any]:
    def coerce(value: Any) -> Any:
        try:
            return enum_cls(value)
        except ValueError as exc:
            raise SnapshotError(f"{name}: {exc}") from exc

    return coerce


_FIELD_COERCERS: dict[str, Callable[[Any], Any]] = {
    "status": _coerce_enum(DiscoveryStatus, "status"),
    "messages": _coerce_messages,
    "current_phase": _coerce_enum(Phase, "current_phase"),
    "questions_asked_in_phase": lambda v: _coerce_count("questions_asked_in_phase", v),
    "total_questions_asked": lambda v: _coerce_count("total_questions_asked", v),
    "understanding": _coerce_understanding,
    "current_question": lambda v: _coerce_optional_str("current_question", v),
    "current_field": lambda v: _coerce_optional_str("current_field", v),
    "current_why": lambda v: _coerce_optional_str("current_why", v),
    "error": lambda v: _coerce_optional_str("error", v),
    "turn": lambda v: _coerce_count("turn", v),
}


def validate_state_fields(changes: Mapping[str, Any]) -> dict[str, Any]:
    """Validate and normalise a partial set of state fields.

    Raises:
        SnapshotError: If a key is unknown or a value has the wrong shape.
    """
    unknown = set(changes) - STATE_FIELDS
    if unknown:
        raise SnapshotError(f"Unknown discovery state fields: {', '.join(sorted(unknown))}")
    return {name: _FIELD_COERCERS[name](value) for name, value in changes.items()}


def state_from_dict(data: Any) -> DiscoveryState:
    """Build a complete, validated state from persisted data.

    Missing keys take their ``INITIAL_STATE`` value; keys that are not
    state fields are ignored.
    """
    if not isinstance(data, Mapping):
        raise SnapshotError(f"discovery state must be a mapping, got {type(data).__name__}")
    known = {k: v for k, v in data.items() if k in STATE_FIELDS}
    ignored = set(data) - STATE_FIELDS
    if ignored:
        logger.debug("Ignoring non-state keys in snapshot: %s", ", ".join(sorted(map(str, ignored))))
    return dataclasses.replace(INITIAL_STATE, **validate_state_fields(known))


# -------------------------------------------------------------------- #
# Actions
# -------------------------------------------------------------------- #


class ActionType(str, Enum):
    START_THINKING = "START_THINKING"
    AI_SUGGEST = "AI_SUGGEST"
    USER_RESPOND = "USER_RESPOND"
    PHASE_COMPLETE = "PHASE_COMPLETE"
    ADVANCE_PHASE = "ADVANCE_PHASE"
    SKIP_TO_SPEC = "SKIP_TO_SPEC"
    RESTORE_SESSION = "RESTORE_SESSION"
    ERROR = "ERROR"
    CLEAR_ERROR = "CLEAR_ERROR"
    UPDATE_UNDERSTANDING = "UPDATE_UNDERSTANDING"


@dataclass(frozen=True)
class StartThinking:
    type: ClassVar[ActionType] = ActionType.START_THINKING


@dataclass(frozen=True)
class AiSuggest:
    """A generated question with its proposed answer.

    ``turn`` is the token the request was issued under; the reducer does
    not look at it, the host compares it before dispatching.
    """

    type: ClassVar[ActionType] = ActionType.AI_SUGGEST

    question: str
    why: str
    field: str
    suggestion: AISuggestion
    phase_complete: bool = False
    turn: int | None = None


@dataclass(frozen=True)
class UserRespond:
    type: ClassVar[ActionType] = ActionType.USER_RESPOND

    answer: str
    action: UserAction = UserAction.ACCEPT

    def __post_init__(self):
        object.__setattr__(self, "action", UserAction(self.action))


@dataclass(frozen=True)
class PhaseComplete:
    type: ClassVar[ActionType] = ActionType.PHASE_COMPLETE

    summary: str


@dataclass(frozen=True)
class AdvancePhase:
    type: ClassVar[ActionType] = ActionType.ADVANCE_PHASE

    next_phase: Phase

    def __post_init__(self):
        object.__setattr__(self, "next_phase", Phase(self.next_phase))


@dataclass(frozen=True)
class SkipToSpec:
    type: ClassVar[ActionType] = ActionType.SKIP_TO_SPEC


@dataclass(frozen=True)
class RestoreSession:
    """Shallow-merge already-validated fields over the current state.

    The changes are validated when the action is built, so a malformed
    payload fails here (``SnapshotError``) instead of inside the reducer.
    """

    type: ClassVar[ActionType] = ActionType.RESTORE_SESSION

    changes: Mapping[str, Any]

    def __post_init__(self):
        object.__setattr__(self, "changes", validate_state_fields(self.changes))

    @classmethod
    def from_state(cls, state: DiscoveryState) -> "RestoreSession":
        """Replace every field with the values of *state*."""
        return cls({name: getattr(state, name) for name in STATE_FIELDS})


@dataclass(frozen=True)
class ReportError:
    """A failure surfaced by the generation client or the host."""

    type: ClassVar[ActionType] = ActionType.ERROR

    message: str
    turn: int | None = None


@dataclass(frozen=True)
class ClearError:
    type: ClassVar[ActionType] = ActionType.CLEAR_ERROR


@dataclass(frozen=True)
class UpdateUnderstanding:
    """Fold one answer into ``understanding`` (last write wins)."""

    type: ClassVar[ActionType] = ActionType.UPDATE_UNDERSTANDING

    field: str
    value: Any

    def __post_init__(self):
        if not isinstance(self.field, str) or not self.field:
            raise UnderstandingValueError("understanding field name must be a non-empty string")
        object.__setattr__(self, "value", validate_answer_value(self.value, self.field))


DiscoveryAction = (
    StartThinking
    | AiSuggest
    | UserRespond
    | PhaseComplete
    | AdvancePhase
    | SkipToSpec
    | RestoreSession
    | ReportError
    | ClearError
    | UpdateUnderstanding
)


# -------------------------------------------------------------------- #
# Reducer
# -------------------------------------------------------------------- #


def _new_id() -> str:
    return str(uuid.uuid4())


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class TransitionContext:
    """Identifier and clock sources used when the reducer creates messages."""

    new_id: Callable[[], str] = _new_id
    now: Callable[[], str] = _utc_now


DEFAULT_CONTEXT = TransitionContext()


def _start_thinking(state: DiscoveryState, action: StartThinking, ctx: TransitionContext) -> DiscoveryState:
    return dataclasses.replace(
        state,
        status=DiscoveryStatus.AI_THINKING,
        error=None,
        turn=state.turn + 1,
    )


def _ai_suggest(state: DiscoveryState, action: AiSuggest, ctx: TransitionContext) -> DiscoveryState:
    question_msg = ChatMessage(
        id=ctx.new_id(),
        role=MessageRole.AI,
        type=MessageType.QUESTION,
        content=action.question,
        phase=state.current_phase,
        field=action.field,
        why=action.why,
        timestamp=ctx.now(),
    )
    suggestion_msg = ChatMessage(
        id=ctx.new_id(),
        role=MessageRole.AI,
        type=MessageType.SUGGESTION,
        content=action.suggestion.proposed_answer,
        phase=state.current_phase,
        field=action.field,
        suggestion=action.suggestion,
        timestamp=ctx.now(),
    )
    return dataclasses.replace(
        state,
        status=DiscoveryStatus.AI_SUGGESTED,
        messages=state.messages + (question_msg, suggestion_msg),
        current_question=action.question,
        current_field=action.field,
        current_why=action.why,
    )


def _user_respond(state: DiscoveryState, action: UserRespond, ctx: TransitionContext) -> DiscoveryState:
    response_msg = ChatMessage(
        id=ctx.new_id(),
        role=MessageRole.USER,
        type=MessageType.USER_RESPONSE,
        content=action.answer,
        phase=state.current_phase,
        field=state.current_field or "",
        user_action=action.action,
        timestamp=ctx.now(),
    )
    return dataclasses.replace(
        state,
        status=DiscoveryStatus.SAVING,
        messages=state.messages + (response_msg,),
        questions_asked_in_phase=state.questions_asked_in_phase + 1,
        total_questions_asked=state.total_questions_asked + 1,
        current_question=None,
        current_field=None,
        current_why=None,
    )


def _phase_complete(state: DiscoveryState, action: PhaseComplete, ctx: TransitionContext) -> DiscoveryState:
    summary_msg = ChatMessage(
        id=ctx.new_id(),
        role=MessageRole.SYSTEM,
        type=MessageType.PHASE_SUMMARY,
        content=action.summary,
        phase=state.current_phase,
        field="",
        timestamp=ctx.now(),
    )
    return dataclasses.replace(
        state,
        status=DiscoveryStatus.PHASE_COMPLETE,
        messages=state.messages + (summary_msg,),
    )


def _advance_phase(state: DiscoveryState, action: AdvancePhase, ctx: TransitionContext) -> DiscoveryState:
    return dataclasses.replace(
        state,
        status=DiscoveryStatus.IDLE,
        current_phase=action.next_phase,
        questions_asked_in_phase=0,
    )


def _skip_to_spec(state: DiscoveryState, action: SkipToSpec, ctx: TransitionContext) -> DiscoveryState:
    return dataclasses.replace(
        state,
        status=DiscoveryStatus.ALL_COMPLETE,
        current_phase=Phase.SPECIFY,
    )


def _restore_session(state: DiscoveryState, action: RestoreSession, ctx: TransitionContext) -> DiscoveryState:
    return dataclasses.replace(state, **action.changes)


def _report_error(state: DiscoveryState, action: ReportError, ctx: TransitionContext) -> DiscoveryState:
    # Back to ai_suggested so the UI can retry without losing the question.
    return dataclasses.replace(
        state,
        status=DiscoveryStatus.AI_SUGGESTED,
        error=action.message,
    )


def _clear_error(state: DiscoveryState, action: ClearError, ctx: TransitionContext) -> DiscoveryState:
    return dataclasses.replace(state, error=None)


def _update_understanding(
    state: DiscoveryState, action: UpdateUnderstanding, ctx: TransitionContext
) -> DiscoveryState:
    return dataclasses.replace(
        state,
        understanding={**state.understanding, action.field: action.value},
    )


_HANDLERS: dict[type, Callable[[DiscoveryState, Any, TransitionContext], DiscoveryState]] = {
    StartThinking: _start_thinking,
    AiSuggest: _ai_suggest,
    UserRespond: _user_respond,
    PhaseComplete: _phase_complete,
    AdvancePhase: _advance_phase,
    SkipToSpec: _skip_to_spec,
    RestoreSession: _restore_session,
    ReportError: _report_error,
    ClearError: _clear_error,
    UpdateUnderstanding: _update_understanding,
}


def transition(
    state: DiscoveryState,
    action: Any,
    context: TransitionContext | None = None,
) -> DiscoveryState:
    """Apply *action* to *state* and return the resulting state.

    Args:
        state: Current discovery state.
        action: One of the action classes in this module.  Anything else
            is ignored.
        context: Identifier/clock sources for new messages.  Defaults to
            random UUIDs and the UTC wall clock.

    Returns:
        The next state.  For an unrecognised action this is *state* itself.
    """
    handler = _HANDLERS.get(type(action))
    if handler is None:
        logger.debug("Ignoring unrecognised discovery action: %r", action)
        return state
    return handler(state, action, context or DEFAULT_CONTEXT)
