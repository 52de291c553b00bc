"""Tests for skillforge.ai.token_tracker."""

import threading

from skillforge.ai.provider import AIResponse
from skillforge.ai.token_tracker import TokenTracker


def _response(prompt=100, completion=50, model="gpt-4o"):
    return AIResponse(
        content="x",
        model=model,
        usage={"prompt_tokens": prompt, "completion_tokens": completion, "total_tokens": prompt + completion},
    )


class TestTokenTracker:
    def test_empty(self):
        tracker = TokenTracker()
        assert tracker.session_total == 0
        assert tracker.format_status() == ""
        assert tracker.budget_pct is None

    def test_accumulates(self):
        tracker = TokenTracker()
        tracker.record(_response(100, 50))
        tracker.record(_response(200, 25), purpose="classify")

        assert tracker.this_turn == 225
        assert tracker.session_total == 375
        assert tracker.call_count == 2
        assert tracker.total_for("suggest") == 150
        assert tracker.total_for("classify") == 225
        assert tracker.model == "gpt-4o"

    def test_missing_usage(self):
        tracker = TokenTracker()
        tracker.record(AIResponse(content="x", model=""))
        assert tracker.call_count == 1
        assert tracker.session_total == 0

    def test_budget_pct_uses_last_prompt(self):
        tracker = TokenTracker()
        tracker.record(_response(12_800, 10))
        assert round(tracker.budget_pct) == 10

    def test_versioned_model_matches_longest_key(self):
        tracker = TokenTracker()
        tracker.record(_response(8_192, 0, model="gpt-4o-mini-2024-07-18"))
        assert round(tracker.budget_pct, 1) == 6.4

    def test_unknown_model(self):
        tracker = TokenTracker()
        tracker.record(_response(model="llama-3"))
        assert tracker.budget_pct is None
        assert tracker.format_status() == "150 tokens this turn · 150 session"

    def test_format_status(self):
        tracker = TokenTracker()
        tracker.record(_response(1_000, 847))
        tracker.record(_response(12_800, 0))
        assert tracker.format_status() == "12,800 tokens this turn · 14,647 session · ~10%"

    def test_to_dict(self):
        tracker = TokenTracker()
        tracker.record(_response(100, 50))
        assert tracker.to_dict() == {
            "session": {"prompt": 100, "completion": 50},
            "by_purpose": {"suggest": 150},
            "calls": 1,
            "model": "gpt-4o",
        }

    def test_thread_safe_record(self):
        tracker = TokenTracker()
        threads = [threading.Thread(target=lambda: [tracker.record(_response(1, 1)) for _ in range(100)]) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert tracker.call_count == 400
        assert tracker.session_total == 800
