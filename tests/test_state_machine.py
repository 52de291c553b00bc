"""Tests for skillforge.discovery.state_machine: the discovery reducer."""

import dataclasses

import pytest

from skillforge.discovery.messages import (
    AISuggestion,
    ChatMessage,
    MessageRole,
    MessageType,
    SnapshotError,
    UserAction,
)
from skillforge.discovery.phases import Phase
from skillforge.discovery.state_machine import (
    INITIAL_STATE,
    AdvancePhase,
    AiSuggest,
    ClearError,
    DiscoveryState,
    DiscoveryStatus,
    PhaseComplete,
    ReportError,
    RestoreSession,
    SkipToSpec,
    StartThinking,
    UpdateUnderstanding,
    UserRespond,
    state_from_dict,
    transition,
)
from skillforge.discovery.understanding import UnderstandingValueError


def make_suggest(question="What does it do?", field="description", answer="X", why="scope", **kwargs):
    return AiSuggest(
        question=question,
        why=why,
        field=field,
        suggestion=AISuggestion(proposed_answer=answer),
        **kwargs,
    )


def _run(actions, context, state=INITIAL_STATE):
    """Apply *actions* in order, returning every intermediate state."""
    states = [state]
    for action in actions:
        states.append(transition(states[-1], action, context))
    return states


def _full_round(field="description", answer="X"):
    return [
        StartThinking(),
        make_suggest(field=field, answer=answer),
        UserRespond(answer=answer),
    ]


# ======================================================================
# Scenarios
# ======================================================================


class TestScenarios:
    def test_start_then_suggest(self, fixed_context):
        s1 = transition(INITIAL_STATE, StartThinking(), fixed_context)
        assert s1.status is DiscoveryStatus.AI_THINKING

        s2 = transition(s1, make_suggest(), fixed_context)
        assert len(s2.messages) == 2
        assert s2.current_field == "description"
        assert s2.current_question == "What does it do?"
        assert s2.current_why == "scope"
        assert s2.status is DiscoveryStatus.AI_SUGGESTED

    def test_user_respond(self, fixed_context):
        s = _run([StartThinking(), make_suggest(), UserRespond(answer="X", action="accept")], fixed_context)[-1]
        assert len(s.messages) == 3
        assert s.questions_asked_in_phase == 1
        assert s.total_questions_asked == 1
        assert s.current_field is None
        assert s.status is DiscoveryStatus.SAVING

    def test_phase_complete_then_advance(self, fixed_context):
        s = _run(_full_round() + [PhaseComplete(summary="Discovery done")], fixed_context)[-1]
        assert len(s.messages) == 4
        assert s.status is DiscoveryStatus.PHASE_COMPLETE

        s = transition(s, AdvancePhase(next_phase="specify"), fixed_context)
        assert s.current_phase is Phase.SPECIFY
        assert s.questions_asked_in_phase == 0
        assert s.status is DiscoveryStatus.IDLE

    @pytest.mark.parametrize("prefix_len", [0, 1, 2, 3])
    def test_skip_to_spec_from_any_state(self, fixed_context, prefix_len):
        before = _run(_full_round()[:prefix_len], fixed_context)[-1]
        after = transition(before, SkipToSpec(), fixed_context)
        assert after.current_phase is Phase.SPECIFY
        assert after.status is DiscoveryStatus.ALL_COMPLETE
        assert after.messages == before.messages
        assert after.questions_asked_in_phase == before.questions_asked_in_phase
        assert after.total_questions_asked == before.total_questions_asked

    def test_error_from_thinking(self, fixed_context):
        thinking = transition(INITIAL_STATE, StartThinking(), fixed_context)
        s = transition(thinking, ReportError(message="timeout"), fixed_context)
        assert s.error == "timeout"
        assert s.status is DiscoveryStatus.AI_SUGGESTED
        assert s.messages == thinking.messages


# ======================================================================
# Properties
# ======================================================================


class TestProperties:
    def test_unknown_action_returns_same_object(self, fixed_context):
        for junk in (None, "START_THINKING", 42, {"type": "START_THINKING"}, object()):
            assert transition(INITIAL_STATE, junk, fixed_context) is INITIAL_STATE

    def test_ai_suggest_appends_question_then_suggestion(self, fixed_context):
        s = _run([StartThinking(), make_suggest(answer="Y")], fixed_context)[-1]
        question, suggestion = s.messages
        assert question.type is MessageType.QUESTION
        assert question.role is MessageRole.AI
        assert question.why == "scope"
        assert suggestion.type is MessageType.SUGGESTION
        assert suggestion.content == "Y"
        assert suggestion.suggestion.proposed_answer == "Y"
        assert question.phase is suggestion.phase is Phase.DISCOVER

    def test_ai_suggest_stamps_current_phase(self, fixed_context):
        state = dataclasses.replace(INITIAL_STATE, current_phase=Phase.ARCHITECT)
        s = transition(state, make_suggest(), fixed_context)
        assert {m.phase for m in s.messages} == {Phase.ARCHITECT}

    def test_messages_use_injected_ids_and_clock(self, fixed_context):
        s = _run(_full_round(), fixed_context)[-1]
        assert [m.id for m in s.messages] == ["msg-1", "msg-2", "msg-3"]
        assert {m.timestamp for m in s.messages} == {"2026-01-01T00:00:00+00:00"}

    def test_user_respond_records_field_and_action(self, fixed_context):
        s = _run(
            [StartThinking(), make_suggest(field="audience"), UserRespond(answer="Ops", action=UserAction.OVERRIDE)],
            fixed_context,
        )[-1]
        response = s.messages[-1]
        assert response.role is MessageRole.USER
        assert response.field == "audience"
        assert response.user_action is UserAction.OVERRIDE
        assert s.current_question is None and s.current_why is None

    def test_user_respond_without_question_still_counts(self, fixed_context):
        s = transition(INITIAL_STATE, UserRespond(answer="hi"), fixed_context)
        assert s.total_questions_asked == 1
        assert s.messages[-1].field == ""

    def test_advance_phase_keeps_total_and_log(self, fixed_context):
        before = _run(_full_round(), fixed_context)[-1]
        after = transition(before, AdvancePhase(next_phase=Phase.DEFINE), fixed_context)
        assert after.questions_asked_in_phase == 0
        assert after.total_questions_asked == before.total_questions_asked
        assert after.messages == before.messages

    def test_log_is_append_only_and_total_monotonic(self, fixed_context):
        actions = (
            _full_round("a")
            + [ReportError(message="boom"), ClearError()]
            + _full_round("b")
            + [PhaseComplete(summary="s"), AdvancePhase(next_phase="define"), UpdateUnderstanding("a", "X")]
            + _full_round("c")
            + [SkipToSpec(), "bogus"]
        )
        states = _run(actions, fixed_context)
        for earlier, later in zip(states, states[1:]):
            assert later.messages[: len(earlier.messages)] == earlier.messages
            assert later.total_questions_asked >= earlier.total_questions_asked

    def test_error_then_clear_restores_everything_but_status(self, fixed_context):
        before = _run([StartThinking(), make_suggest()], fixed_context)[-1]
        errored = transition(before, ReportError(message="rate limited"), fixed_context)
        cleared = transition(errored, ClearError(), fixed_context)

        assert errored.status is DiscoveryStatus.AI_SUGGESTED
        assert cleared.status is DiscoveryStatus.AI_SUGGESTED
        assert cleared.error is None
        assert dataclasses.replace(cleared, status=before.status) == before

    def test_error_keeps_in_flight_question(self, fixed_context):
        before = _run([StartThinking(), make_suggest(field="goal")], fixed_context)[-1]
        s = transition(before, ReportError(message="x"), fixed_context)
        assert s.current_question == before.current_question
        assert s.current_field == "goal"

    def test_start_thinking_clears_error_and_bumps_turn(self, fixed_context):
        errored = dataclasses.replace(INITIAL_STATE, error="old", turn=4)
        s = transition(errored, StartThinking(), fixed_context)
        assert s.error is None
        assert s.turn == 5

    def test_only_start_thinking_changes_turn(self, fixed_context):
        actions = [
            make_suggest(),
            UserRespond(answer="X"),
            PhaseComplete(summary="s"),
            AdvancePhase(next_phase="define"),
            ReportError(message="e"),
            ClearError(),
            UpdateUnderstanding("k", "v"),
            SkipToSpec(),
        ]
        states = _run(actions, fixed_context)
        assert {s.turn for s in states} == {0}

    def test_user_responding_is_never_produced(self, fixed_context):
        actions = (
            _full_round()
            + [ReportError(message="e"), ClearError(), PhaseComplete(summary="s")]
            + [AdvancePhase(next_phase="define"), StartThinking(), SkipToSpec()]
        )
        states = _run(actions, fixed_context)
        assert all(s.status is not DiscoveryStatus.USER_RESPONDING for s in states)


# ======================================================================
# Understanding
# ======================================================================


class TestUpdateUnderstanding:
    def test_last_write_wins(self, fixed_context):
        s = _run(
            [UpdateUnderstanding("audience", "devs"), UpdateUnderstanding("audience", "ops")],
            fixed_context,
        )[-1]
        assert s.understanding == {"audience": "ops"}

    def test_previous_mapping_not_mutated(self, fixed_context):
        s1 = transition(INITIAL_STATE, UpdateUnderstanding("a", 1), fixed_context)
        s2 = transition(s1, UpdateUnderstanding("b", 2), fixed_context)
        assert s1.understanding == {"a": 1}
        assert s2.understanding == {"a": 1, "b": 2}
        assert INITIAL_STATE.understanding == {}

    def test_structured_values_accepted(self):
        action = UpdateUnderstanding("tools", ("search", {"name": "fetch", "retries": 3}))
        assert action.value == ["search", {"name": "fetch", "retries": 3}]

    @pytest.mark.parametrize("value", [object(), {1: "x"}, [set()], b"bytes"])
    def test_rejects_non_json_values(self, value):
        with pytest.raises(UnderstandingValueError):
            UpdateUnderstanding("f", value)

    def test_rejects_empty_field(self):
        with pytest.raises(UnderstandingValueError):
            UpdateUnderstanding("", "x")


# ======================================================================
# Restore
# ======================================================================


class TestRestoreSession:
    def test_shallow_merge(self, fixed_context):
        s = transition(
            INITIAL_STATE,
            RestoreSession({"current_phase": "define", "total_questions_asked": 3}),
            fixed_context,
        )
        assert s.current_phase is Phase.DEFINE
        assert s.total_questions_asked == 3
        assert s.status is DiscoveryStatus.IDLE

    def test_from_state_round_trip(self, fixed_context):
        source = _run(_full_round(), fixed_context)[-1]
        restored = transition(INITIAL_STATE, RestoreSession.from_state(source), fixed_context)
        assert restored == source

    def test_unknown_field_rejected_at_construction(self):
        with pytest.raises(SnapshotError, match="Unknown"):
            RestoreSession({"currentPhase": "define"})

    @pytest.mark.parametrize(
        "changes",
        [
            {"status": "dancing"},
            {"current_phase": "deploy"},
            {"total_questions_asked": -1},
            {"turn": True},
            {"messages": "not-a-list"},
            {"understanding": {"k": object()}},
            {"error": 5},
        ],
    )
    def test_malformed_values_rejected(self, changes):
        with pytest.raises(SnapshotError):
            RestoreSession(changes)

    def test_message_dicts_are_parsed(self):
        message = ChatMessage(
            id="m1",
            role=MessageRole.AI,
            type=MessageType.SUGGESTION,
            content="X",
            phase=Phase.DISCOVER,
            field="f",
            timestamp="t",
            suggestion=AISuggestion(proposed_answer="X", confidence="high"),
        )
        action = RestoreSession({"messages": [message.to_dict()]})
        assert action.changes["messages"] == (message,)


class TestStateFromDict:
    def test_round_trip(self, fixed_context):
        state = _run(_full_round() + [UpdateUnderstanding("description", "X")], fixed_context)[-1]
        assert state_from_dict(state.to_dict()) == state

    def test_missing_keys_take_defaults(self):
        state = state_from_dict({"current_phase": "architect"})
        assert state == dataclasses.replace(INITIAL_STATE, current_phase=Phase.ARCHITECT)

    def test_extra_keys_ignored(self):
        assert state_from_dict({"answers": [], "_metadata": {}}) == INITIAL_STATE

    def test_non_mapping_rejected(self):
        with pytest.raises(SnapshotError):
            state_from_dict(["status"])

    def test_initial_state_defaults(self):
        assert INITIAL_STATE == DiscoveryState()
        assert INITIAL_STATE.status is DiscoveryStatus.IDLE
        assert INITIAL_STATE.current_phase is Phase.DISCOVER
        assert INITIAL_STATE.messages == ()
        assert INITIAL_STATE.turn == 0
