"""Generation client: asks the model for the next question.

``SuggestionClient.suggest`` is a blocking call.  ``submit`` runs it on a
worker thread and resolves to a :class:`GenerationOutcome` tagged with
the turn token the request was issued under.  The future never raises;
failures come back as an outcome carrying an error message.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from skillforge.ai.provider import AIMessage, AIProvider
from skillforge.ai.token_tracker import TokenTracker
from skillforge.discovery.complexity import quick_classify
from skillforge.discovery.depth import Complexity
from skillforge.discovery.messages import AISuggestion, derive_qa_entries
from skillforge.discovery.phases import Phase
from skillforge.discovery.prompts import (
    SYSTEM_COMPLEXITY,
    SYSTEM_DISCOVERY,
    prompt_classify_complexity,
    prompt_discovery_suggestion,
)
from skillforge.discovery.state_machine import AiSuggest, DiscoveryState, ReportError

logger = logging.getLogger(__name__)

_JSON_FORMAT = {"type": "json_object"}
_FENCE_RE = re.compile(r"```(?:json)?\s*\n(.*?)\n```", re.DOTALL)
_CONFIDENCE_LEVELS = ("high", "medium", "low")


class GenerationError(Exception):
    """Raised when the model call fails or its reply cannot be used."""


# ------------------------------------------------------------------ #
# Data structures
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class SuggestionRequest:
    """Everything the model needs to propose the next question."""

    description: str
    phase: Phase
    complexity: Complexity
    is_agentic: bool
    turn: int
    answers: tuple[tuple[str, str], ...] = ()
    understanding: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_state(
        cls,
        state: DiscoveryState,
        description: str,
        complexity: Complexity | str,
        is_agentic: bool,
    ) -> "SuggestionRequest":
        answers = tuple((qa.question, qa.answer) for qa in derive_qa_entries(state.messages))
        return cls(
            description=description,
            phase=state.current_phase,
            complexity=Complexity(complexity),
            is_agentic=is_agentic,
            turn=state.turn,
            answers=answers,
            understanding=dict(state.understanding),
        )


@dataclass(frozen=True)
class GeneratedSuggestion:
    question: str
    why: str
    field: str
    phase_complete: bool
    suggestion: AISuggestion

    def to_action(self, turn: int | None = None) -> AiSuggest:
        return AiSuggest(
            question=self.question,
            why=self.why,
            field=self.field,
            suggestion=self.suggestion,
            phase_complete=self.phase_complete,
            turn=turn,
        )


@dataclass(frozen=True)
class GenerationOutcome:
    """Result of one asynchronous generation call."""

    turn: int
    suggestion: GeneratedSuggestion | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.suggestion is not None

    def to_action(self) -> AiSuggest | ReportError:
        if self.suggestion is not None:
            return self.suggestion.to_action(self.turn)
        return ReportError(message=self.error or "Unknown generation error", turn=self.turn)


@dataclass(frozen=True)
class Classification:
    complexity: Complexity
    is_agentic: bool
    reasoning: str = ""
    suggested_name: str = ""
    one_liner: str = ""


# ------------------------------------------------------------------ #
# Parsing
# ------------------------------------------------------------------ #


def parse_json_object(content: str) -> dict[str, Any]:
    """Parse a JSON object from a model reply, tolerating a fenced block."""
    text = content.strip()
    match = _FENCE_RE.search(text)
    if match:
        text = match.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GenerationError(f"Model reply is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise GenerationError("Model reply must be a JSON object")
    return data


def _require(data: Mapping[str, Any], key: str, kind: type) -> Any:
    value = data.get(key)
    if not isinstance(value, kind):
        raise GenerationError(f"Model reply field '{key}' must be a {kind.__name__}")
    return value


def parse_suggestion(data: Mapping[str, Any]) -> GeneratedSuggestion:
    question = _require(data, "question", str).strip()
    if not question:
        raise GenerationError("Model reply has an empty question")

    confidence = data.get("confidence")
    if not isinstance(confidence, str) or confidence not in _CONFIDENCE_LEVELS:
        if confidence is not None:
            logger.debug("Unexpected confidence %r; using 'medium'", confidence)
        confidence = "medium"

    extras: dict[str, Any] = {}
    options = data.get("options")
    if isinstance(options, list) and all(isinstance(o, str) for o in options):
        extras["options"] = options

    note = data.get("best_practice_note")
    return GeneratedSuggestion(
        question=question,
        why=_require(data, "why", str),
        field=_require(data, "field", str).strip(),
        phase_complete=_require(data, "phase_complete", bool),
        suggestion=AISuggestion(
            proposed_answer=_require(data, "suggested_answer", str),
            confidence=confidence,
            reasoning=str(data.get("reasoning") or ""),
            best_practice_note=note if isinstance(note, str) and note else None,
            extras=extras,
        ),
    )


def parse_classification(data: Mapping[str, Any]) -> Classification:
    try:
        complexity = Complexity(data.get("complexity"))
    except ValueError as e:
        raise GenerationError(f"Model reply has an invalid complexity: {e}") from e
    return Classification(
        complexity=complexity,
        is_agentic=bool(data.get("is_agentic", False)),
        reasoning=str(data.get("reasoning") or ""),
        suggested_name=str(data.get("suggested_name") or ""),
        one_liner=str(data.get("one_liner") or ""),
    )


# ------------------------------------------------------------------ #
# Client
# ------------------------------------------------------------------ #


class SuggestionClient:
    """Talks to the AI provider on behalf of a discovery session.

    Usage::

        client = SuggestionClient(provider)
        future = client.submit(SuggestionRequest.from_state(state, ...))
        outcome = future.result()
        client.shutdown()
    """

    def __init__(
        self,
        provider: AIProvider,
        token_tracker: TokenTracker | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ):
        self._provider = provider
        self._temperature = temperature
        self._max_tokens = max_tokens
        self.token_tracker = token_tracker or TokenTracker()
        self._executor = self._new_executor()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def suggest(self, request: SuggestionRequest) -> GeneratedSuggestion:
        """Generate the next question and proposed answer (blocking)."""
        prompt = prompt_discovery_suggestion(
            request.description,
            request.phase.value,
            request.answers,
            request.complexity.value,
            request.is_agentic,
            request.understanding,
        )
        data = self._chat_json(SYSTEM_DISCOVERY, prompt, purpose="suggest")
        return parse_suggestion(data)

    def submit(self, request: SuggestionRequest) -> Future:
        """Run :meth:`suggest` in the background; resolves to a ``GenerationOutcome``."""
        return self._executor.submit(self._run, request)

    def classify(self, description: str) -> Classification:
        """Ask the model for complexity, agentic flag, and a suggested name."""
        data = self._chat_json(
            SYSTEM_COMPLEXITY,
            prompt_classify_complexity(description),
            purpose="classify",
            temperature=0.2,
        )
        return parse_classification(data)

    def classify_or_guess(self, description: str) -> Classification:
        """Like :meth:`classify`, falling back to the offline heuristic."""
        try:
            return self.classify(description)
        except GenerationError as e:
            logger.warning("Complexity classification failed, using heuristic: %s", e)
            guess = quick_classify(description)
            return Classification(
                complexity=guess.complexity,
                is_agentic=guess.is_agentic,
                reasoning="Keyword heuristic (AI classification unavailable).",
            )

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

    def abandon(self) -> None:
        """Give up on the call in flight and start a fresh worker.

        A call that timed out keeps running on its thread; later
        submissions and :meth:`shutdown` no longer wait for it.
        """
        stale = self._executor
        self._executor = self._new_executor()
        stale.shutdown(wait=False, cancel_futures=True)
        logger.info("Abandoned a generation call that did not finish in time")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()

    # ------------------------------------------------------------------ #
    # Internal
    # ------------------------------------------------------------------ #

    @staticmethod
    def _new_executor() -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=1, thread_name_prefix="skillforge-gen")

    def _run(self, request: SuggestionRequest) -> GenerationOutcome:
        try:
            suggestion = self.suggest(request)
        except Exception as e:  # resolved into the outcome, never raised through the future
            logger.warning("Suggestion generation failed (turn %d): %s", request.turn, e)
            return GenerationOutcome(turn=request.turn, error=str(e))
        return GenerationOutcome(turn=request.turn, suggestion=suggestion)

    def _chat_json(
        self,
        system: str,
        prompt: str,
        purpose: str,
        temperature: float | None = None,
    ) -> dict[str, Any]:
        messages = [
            AIMessage(role="system", content=system),
            AIMessage(role="user", content=prompt),
        ]
        try:
            response = self._provider.chat(
                messages,
                temperature=self._temperature if temperature is None else temperature,
                max_tokens=self._max_tokens,
                response_format=_JSON_FORMAT,
            )
        except Exception as e:
            raise GenerationError(str(e)) from e

        self.token_tracker.record(response, purpose=purpose)
        return parse_json_object(response.content)
