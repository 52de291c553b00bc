"""Message log entries for the discovery dialogue.

A ``ChatMessage`` is immutable once created.  The log itself is a tuple
of messages held by ``DiscoveryState``; its order is the transcript.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from skillforge.discovery.phases import Phase


class SnapshotError(ValueError):
    """Raised when persisted discovery data does not have the expected shape."""


class MessageRole(str, Enum):
    AI = "ai"
    USER = "user"
    SYSTEM = "system"


class MessageType(str, Enum):
    QUESTION = "question"
    SUGGESTION = "suggestion"
    USER_RESPONSE = "user_response"
    PHASE_SUMMARY = "phase_summary"


class UserAction(str, Enum):
    """How the user answered a suggestion."""

    ACCEPT = "accept"
    EDIT = "edit"
    OVERRIDE = "override"


_CONFIDENCE_LEVELS = frozenset({"high", "medium", "low"})


@dataclass(frozen=True)
class AISuggestion:
    """Proposed answer attached to a ``suggestion`` message.

    Only ``proposed_answer`` is interpreted by the engine.  Anything else
    the generation client returns rides along in ``extras``.
    """

    proposed_answer: str
    confidence: str = "medium"
    reasoning: str = ""
    best_practice_note: str | None = None
    extras: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "proposed_answer": self.proposed_answer,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "best_practice_note": self.best_practice_note,
        }
        if self.extras:
            data["extras"] = dict(self.extras)
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "AISuggestion":
        if not isinstance(data, Mapping):
            raise SnapshotError(f"suggestion must be a mapping, got {type(data).__name__}")
        proposed = data.get("proposed_answer")
        if not isinstance(proposed, str):
            raise SnapshotError("suggestion.proposed_answer must be a string")
        confidence = data.get("confidence") or "medium"
        if not isinstance(confidence, str) or confidence not in _CONFIDENCE_LEVELS:
            raise SnapshotError(f"suggestion.confidence must be one of {sorted(_CONFIDENCE_LEVELS)}")
        reasoning = data.get("reasoning") or ""
        if not isinstance(reasoning, str):
            raise SnapshotError("suggestion.reasoning must be a string")
        note = data.get("best_practice_note")
        if note is not None and not isinstance(note, str):
            raise SnapshotError("suggestion.best_practice_note must be a string or null")
        extras = data.get("extras") or {}
        if not isinstance(extras, Mapping):
            raise SnapshotError("suggestion.extras must be a mapping")
        return cls(
            proposed_answer=proposed,
            confidence=confidence,
            reasoning=reasoning,
            best_practice_note=note,
            extras=dict(extras),
        )


@dataclass(frozen=True)
class ChatMessage:
    """One entry in the discovery transcript."""

    id: str
    role: MessageRole
    type: MessageType
    content: str
    phase: Phase
    field: str
    timestamp: str
    why: str | None = None
    suggestion: AISuggestion | None = None
    user_action: UserAction | None = None

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict form for YAML persistence (optional keys omitted when empty)."""
        data: dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "type": self.type.value,
            "content": self.content,
            "phase": self.phase.value,
            "field": self.field,
            "timestamp": self.timestamp,
        }
        if self.why is not None:
            data["why"] = self.why
        if self.suggestion is not None:
            data["suggestion"] = self.suggestion.to_dict()
        if self.user_action is not None:
            data["user_action"] = self.user_action.value
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "ChatMessage":
        """Rebuild a message from persisted data, validating every field."""
        if not isinstance(data, Mapping):
            raise SnapshotError(f"message must be a mapping, got {type(data).__name__}")

        for key in ("id", "content", "timestamp"):
            if not isinstance(data.get(key), str):
                raise SnapshotError(f"message.{key} must be a string")
        message_field = data.get("field", "")
        if not isinstance(message_field, str):
            raise SnapshotError("message.field must be a string")
        why = data.get("why")
        if why is not None and not isinstance(why, str):
            raise SnapshotError("message.why must be a string")

        try:
            role = MessageRole(data.get("role"))
            msg_type = MessageType(data.get("type"))
            phase = Phase(data.get("phase"))
            user_action = UserAction(data["user_action"]) if data.get("user_action") else None
        except ValueError as exc:
            raise SnapshotError(f"message {data.get('id')!r}: {exc}") from exc

        suggestion = data.get("suggestion")
        return cls(
            id=data["id"],
            role=role,
            type=msg_type,
            content=data["content"],
            phase=phase,
            field=message_field,
            timestamp=data["timestamp"],
            why=why,
            suggestion=AISuggestion.from_dict(suggestion) if suggestion is not None else None,
            user_action=user_action,
        )


# -------------------------------------------------------------------- #
# Q&A view of the log
# -------------------------------------------------------------------- #


@dataclass(frozen=True)
class QAEntry:
    """A question paired with the answer the user gave."""

    id: str
    phase: Phase
    question: str
    answer: str
    timestamp: str

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "phase": self.phase.value,
            "question": self.question,
            "answer": self.answer,
            "timestamp": self.timestamp,
        }


def derive_qa_entries(messages: Iterable[ChatMessage]) -> list[QAEntry]:
    """Pair the n-th question with the n-th user response."""
    messages = list(messages)
    questions = [m for m in messages if m.type is MessageType.QUESTION]
    responses = [m for m in messages if m.type is MessageType.USER_RESPONSE]

    return [
        QAEntry(
            id=response.id,
            phase=question.phase,
            question=question.content,
            answer=response.content,
            timestamp=response.timestamp,
        )
        for question, response in zip(questions, responses)
    ]


def migrate_qa_to_chat(entries: Iterable[Mapping[str, Any]]) -> list[ChatMessage]:
    """Convert a legacy list of Q&A dicts into a message log.

    Each entry becomes a question message with a fresh id and an
    ``override`` user response that keeps the entry's id.  Neither carries
    a field name because the legacy format never recorded one.
    """
    messages: list[ChatMessage] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            raise SnapshotError(f"answers: entry must be a mapping, got {type(entry).__name__}")
        try:
            phase = Phase(entry.get("phase", Phase.DISCOVER.value))
        except ValueError as exc:
            raise SnapshotError(f"answers: {exc}") from exc
        timestamp = str(entry.get("timestamp", ""))
        messages.append(
            ChatMessage(
                id=str(uuid.uuid4()),
                role=MessageRole.AI,
                type=MessageType.QUESTION,
                content=str(entry.get("question", "")),
                phase=phase,
                field="",
                timestamp=timestamp,
            )
        )
        messages.append(
            ChatMessage(
                id=str(entry.get("id") or uuid.uuid4()),
                role=MessageRole.USER,
                type=MessageType.USER_RESPONSE,
                content=str(entry.get("answer", "")),
                phase=phase,
                field="",
                timestamp=timestamp,
                user_action=UserAction.OVERRIDE,
            )
        )
    return messages
