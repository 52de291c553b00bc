"""Token usage tracker for a discovery session.

Accumulates ``AIResponse.usage`` across generation calls so the UI can
show how much a session has cost so far.  ``record`` is called from the
generation worker thread, so updates are serialised with a lock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

# Input context-window sizes, used for the budget percentage.
_CONTEXT_WINDOWS: dict[str, int] = {
    "gpt-4o": 128_000,
    "gpt-4o-mini": 128_000,
    "gpt-4.1": 1_047_576,
    "gpt-4-turbo": 128_000,
    "gpt-4": 8_192,
    "gpt-35-turbo": 16_385,
    "o1": 200_000,
    "o3-mini": 200_000,
}


@dataclass
class TokenTracker:
    """Running token totals, overall and per call purpose.

    Usage::

        tracker = TokenTracker()
        tracker.record(provider.chat(messages), purpose="suggest")
        tracker.format_status()
        # "1,847 tokens this turn · 12,340 session · ~10%"
    """

    _last_prompt: int = field(default=0, repr=False)
    _last_completion: int = field(default=0, repr=False)
    _session_prompt: int = field(default=0, repr=False)
    _session_completion: int = field(default=0, repr=False)
    _calls: int = field(default=0, repr=False)
    _by_purpose: dict[str, int] = field(default_factory=dict, repr=False)
    _model: str = field(default="", repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def record(self, response, purpose: str = "suggest") -> None:
        """Record usage from any object with ``.usage`` and ``.model``."""
        usage = getattr(response, "usage", None) or {}
        prompt = usage.get("prompt_tokens", 0)
        completion = usage.get("completion_tokens", 0)
        model = getattr(response, "model", "")

        with self._lock:
            self._last_prompt = prompt
            self._last_completion = completion
            self._session_prompt += prompt
            self._session_completion += completion
            self._calls += 1
            self._by_purpose[purpose] = self._by_purpose.get(purpose, 0) + prompt + completion
            if model:
                self._model = model

    @property
    def this_turn(self) -> int:
        return self._last_prompt + self._last_completion

    @property
    def session_total(self) -> int:
        return self._session_prompt + self._session_completion

    @property
    def call_count(self) -> int:
        return self._calls

    @property
    def model(self) -> str:
        return self._model

    def total_for(self, purpose: str) -> int:
        return self._by_purpose.get(purpose, 0)

    @property
    def budget_pct(self) -> float | None:
        """Share of the model's context window used by the last prompt.

        ``None`` when the model is unknown or nothing was recorded.
        """
        window = self._context_window()
        if window and self._last_prompt > 0:
            return (self._last_prompt / window) * 100
        return None

    def format_status(self) -> str:
        if self.session_total == 0:
            return ""

        parts = [
            f"{self.this_turn:,} tokens this turn",
            f"{self.session_total:,} session",
        ]
        pct = self.budget_pct
        if pct is not None:
            parts.append(f"~{pct:.0f}%")
        return " · ".join(parts)

    def to_dict(self) -> dict:
        return {
            "session": {
                "prompt": self._session_prompt,
                "completion": self._session_completion,
            },
            "by_purpose": dict(self._by_purpose),
            "calls": self._calls,
            "model": self._model,
        }

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _context_window(self) -> int | None:
        if not self._model:
            return None
        model = self._model.lower()
        if model in _CONTEXT_WINDOWS:
            return _CONTEXT_WINDOWS[model]
        # Longest key first so "gpt-4o-mini-2024" does not match "gpt-4".
        for key in sorted(_CONTEXT_WINDOWS, key=len, reverse=True):
            if key in model:
                return _CONTEXT_WINDOWS[key]
        return None
