"""Discovery session: the host that drives the state machine.

The session owns the only live :class:`DiscoveryState` and is the only
place that dispatches actions.  Its jobs:

1. Apply actions through :func:`transition` and auto-save after every
   change to the message log, the phase or ``understanding``
2. Fetch suggestions from the :class:`SuggestionClient` and discard
   outcomes whose turn token is no longer current
3. Apply adaptive depth after each answer and walk the phase order
4. Run the interactive accept / edit / override loop
"""

from __future__ import annotations

import logging
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable

from rich.markup import escape

from skillforge.discovery.depth import Complexity, PhaseDecision, get_depth_config, should_phase_complete
from skillforge.discovery.generation import GenerationOutcome, SuggestionClient, SuggestionRequest
from skillforge.discovery.messages import AISuggestion, MessageType, UserAction
from skillforge.discovery.phases import is_discovery_phase, next_phase, phase_info
from skillforge.discovery.session_store import DEFAULT_SESSION_ID, LoadResult, SessionStore, restore_action
from skillforge.discovery.state_machine import (
    INITIAL_STATE,
    AdvancePhase,
    AiSuggest,
    ClearError,
    DiscoveryState,
    DiscoveryStatus,
    PhaseComplete,
    RestoreSession,
    SkipToSpec,
    StartThinking,
    TransitionContext,
    UpdateUnderstanding,
    UserRespond,
    transition,
)
from skillforge.ui.console import AnswerPrompt, Console
from skillforge.ui.console import console as default_console

logger = logging.getLogger(__name__)

# -------------------------------------------------------------------- #
# Sentinels
# -------------------------------------------------------------------- #

_QUIT_WORDS = frozenset({"q", "quit", "exit"})
_ACCEPT_WORDS = frozenset({"", "y", "yes", "accept"})
_EDIT_WORDS = frozenset({"e", "edit"})

_SLASH_COMMANDS = frozenset({"/skip", "/next", "/status", "/why", "/help"})

_HELP_TEXT = """\
Commands:
  Enter / y   Accept the suggested answer
  e           Edit the suggested answer
  <text>      Answer in your own words
  /why        Why this question matters
  /status     Phase and question counts
  /next       Finish the current phase now
  /skip       Skip the remaining questions and go to the spec
  quit        Pause (progress is saved)"""

_SUMMARY_ANSWER_LIMIT = 100


# -------------------------------------------------------------------- #
# DiscoveryResult
# -------------------------------------------------------------------- #


class DiscoveryResult:
    """Result of :meth:`DiscoverySession.run`."""

    __slots__ = ("state", "completed", "cancelled")

    def __init__(self, state: DiscoveryState, completed: bool, cancelled: bool = False) -> None:
        self.state = state
        self.completed = completed
        self.cancelled = cancelled

    @property
    def questions_asked(self) -> int:
        return self.state.total_questions_asked


# -------------------------------------------------------------------- #
# DiscoverySession
# -------------------------------------------------------------------- #


class DiscoverySession:
    """Phase-by-phase discovery dialogue for one project.

    The session is synchronous: generation runs on the client's worker
    thread, but every dispatch happens on the caller's thread.
    """

    def __init__(
        self,
        client: SuggestionClient,
        store: SessionStore,
        *,
        description: str,
        complexity: Complexity | str = Complexity.MODERATE,
        is_agentic: bool = False,
        session_id: str = DEFAULT_SESSION_ID,
        auto_save: bool = True,
        timeout: float | None = 120.0,
        console: Console | None = None,
        context: TransitionContext | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._description = description
        self._complexity = Complexity(complexity)
        self._is_agentic = is_agentic
        self._session_id = session_id
        self._auto_save = auto_save
        self._timeout = timeout
        self._console = console or default_console
        self._context = context

        self._state: DiscoveryState = INITIAL_STATE
        # phase_complete flag of the suggestion currently awaiting an answer
        self._llm_says_complete = False
        self._print_fn: Callable[[str], None] | None = None

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> DiscoveryState:
        return self._state

    @property
    def session_id(self) -> str:
        return self._session_id

    def dispatch(self, action) -> DiscoveryState:
        """Apply *action* and save when the transcript, phase or understanding changed."""
        before = self._state
        after = transition(before, action, self._context)
        self._state = after

        if after is not before and self._auto_save and (
            len(after.messages) != len(before.messages)
            or after.current_phase is not before.current_phase
            or after.understanding != before.understanding
        ):
            self.save()
        return after

    def save(self) -> None:
        self._store.save(self._session_id, self._state)

    def resume(self) -> LoadResult:
        """Load the saved session, if any, and restore it to a clean point.

        An invalid file is reported and left on disk; the session then
        starts from the initial state.
        """
        result = self._store.load(self._session_id)
        if result.ok:
            self.dispatch(restore_action(result.state))
            logger.info(
                "Resumed session %s at %s (%d answers)",
                self._session_id,
                self._state.current_phase.value,
                self._state.total_questions_asked,
            )
        elif result.error:
            logger.warning("Ignoring invalid session %s: %s", self._session_id, result.error)
        return result

    def reset(self) -> None:
        """Discard any saved session and start over."""
        self._store.delete(self._session_id)
        self._state = INITIAL_STATE
        self._llm_says_complete = False

    def close(self) -> None:
        self._client.shutdown()

    # ------------------------------------------------------------------ #
    # Generation
    # ------------------------------------------------------------------ #

    def request_suggestion(self) -> bool:
        """Ask for the next question and deliver the result.

        Returns True when the outcome was applied.
        """
        if not is_discovery_phase(self._state.current_phase):
            raise RuntimeError(f"Phase '{self._state.current_phase.value}' does not ask questions")

        self.dispatch(StartThinking())
        request = SuggestionRequest.from_state(
            self._state, self._description, self._complexity, self._is_agentic
        )
        future = self._client.submit(request)
        try:
            outcome = future.result(timeout=self._timeout)
        except FutureTimeout:
            self._client.abandon()
            outcome = GenerationOutcome(
                turn=request.turn,
                error=f"The model did not answer within {self._timeout:.0f} seconds.",
            )
        return self.deliver(outcome)

    def deliver(self, outcome: GenerationOutcome) -> bool:
        """Apply a generation outcome unless it is stale.

        An outcome is stale when its turn is not the current turn, or when
        the session already moved on (no longer ``ai_thinking``).
        """
        if outcome.turn != self._state.turn or self._state.status is not DiscoveryStatus.AI_THINKING:
            logger.debug(
                "Discarding stale generation outcome (turn %d, current %d, status %s)",
                outcome.turn,
                self._state.turn,
                self._state.status.value,
            )
            return False

        action = outcome.to_action()
        if isinstance(action, AiSuggest):
            self._llm_says_complete = action.phase_complete
        self.dispatch(action)
        return True

    # ------------------------------------------------------------------ #
    # Answers and phases
    # ------------------------------------------------------------------ #

    def respond(self, answer: str, action: UserAction | str = UserAction.ACCEPT) -> PhaseDecision:
        """Record the user's answer, then continue or close the phase."""
        if self._state.status is not DiscoveryStatus.AI_SUGGESTED or self._state.current_question is None:
            raise RuntimeError("No question is awaiting an answer")

        field_name = self._state.current_field
        self.dispatch(UserRespond(answer=answer, action=UserAction(action)))
        if field_name:
            self.dispatch(UpdateUnderstanding(field=field_name, value=answer))

        decision = should_phase_complete(
            self._complexity,
            self._state.questions_asked_in_phase,
            self._llm_says_complete,
        )
        self._llm_says_complete = False

        if decision is PhaseDecision.CONTINUE:
            self.dispatch(RestoreSession({"status": DiscoveryStatus.IDLE}))
        else:
            logger.info("Phase %s %s", self._state.current_phase.value, decision.value)
            self.complete_phase()
        return decision

    def phase_summary(self) -> str:
        phase = self._state.current_phase
        return "; ".join(
            f"{m.field}: {m.content[:_SUMMARY_ANSWER_LIMIT]}"
            for m in self._state.messages
            if m.type is MessageType.USER_RESPONSE and m.phase is phase
        )

    def complete_phase(self) -> None:
        """Close the current phase and move to the next one.

        Leaving the last discovery phase seals the session as ``all_complete``.
        """
        current = self._state.current_phase
        self.dispatch(PhaseComplete(summary=self.phase_summary()))

        upcoming = next_phase(current)
        if upcoming is None:
            self.dispatch(SkipToSpec())
            return
        self.dispatch(AdvancePhase(next_phase=upcoming))
        logger.info("Advanced from %s to %s", current.value, upcoming.value)
        if not is_discovery_phase(upcoming):
            self.dispatch(SkipToSpec())

    def skip_to_spec(self) -> None:
        self.dispatch(SkipToSpec())

    @property
    def is_complete(self) -> bool:
        return self._state.status is DiscoveryStatus.ALL_COMPLETE

    def current_suggestion(self) -> AISuggestion | None:
        """The suggestion attached to the question awaiting an answer."""
        if self._state.current_question is None:
            return None
        for message in reversed(self._state.messages):
            if message.type is MessageType.SUGGESTION:
                return message.suggestion
        return None

    # ------------------------------------------------------------------ #
    # Interactive loop
    # ------------------------------------------------------------------ #

    def run(
        self,
        input_fn: Callable[[str], str] | None = None,
        print_fn: Callable[[str], None] | None = None,
    ) -> DiscoveryResult:
        """Run the dialogue until every discovery phase is done or the user pauses.

        Parameters
        ----------
        input_fn / print_fn:
            Injectable I/O for testing.  Default to the styled console and
            a prompt_toolkit prompt.
        """
        use_styled = input_fn is None and print_fn is None
        prompt = AnswerPrompt(self._console) if use_styled else None
        _input = input_fn or (lambda p: prompt.prompt(p))
        self._print_fn = print_fn

        announced = None
        first_card = True
        try:
            while True:
                state = self._state
                if state.status is DiscoveryStatus.ALL_COMPLETE:
                    self._say("Discovery complete. Run 'skillforge spec' to build the specification.", "success")
                    return DiscoveryResult(state, completed=True)
                if not is_discovery_phase(state.current_phase):
                    self.skip_to_spec()
                    continue

                if state.current_phase is not announced:
                    self._show_phase(state)
                    announced = state.current_phase

                if state.error:
                    self._say(f"Could not get the next question: {state.error}", "error")
                    choice = _input("Press Enter to retry, or type 'quit' to pause: ").strip().lower()
                    if choice in _QUIT_WORDS:
                        return self._paused()
                    self.dispatch(ClearError())
                    self._fetch(use_styled)
                    continue

                suggestion = self.current_suggestion()
                if state.status is not DiscoveryStatus.AI_SUGGESTED or suggestion is None:
                    self._fetch(use_styled)
                    continue

                self._show_card(state, suggestion, use_styled)
                if use_styled:
                    self._console.print_token_status(self._client.token_tracker.format_status())
                    raw = prompt.prompt("> ", instruction=AnswerPrompt.INSTRUCTION if first_card else None)
                else:
                    raw = _input("> ")
                first_card = False
                text = raw.strip()
                lower = text.lower()

                if lower in _QUIT_WORDS:
                    return self._paused()
                if lower in _SLASH_COMMANDS:
                    self._handle_slash_command(lower)
                    continue
                if lower.startswith("/"):
                    self._say(f"Unknown command: {text}. Type /help for the list.", "warning")
                    continue

                if lower in _ACCEPT_WORDS:
                    self.respond(suggestion.proposed_answer, UserAction.ACCEPT)
                elif lower in _EDIT_WORDS:
                    if use_styled:
                        edited = prompt.prompt("edit> ", default=suggestion.proposed_answer)
                    else:
                        edited = _input("edit> ").strip()
                    if not edited:
                        continue
                    action = UserAction.ACCEPT if edited == suggestion.proposed_answer else UserAction.EDIT
                    self.respond(edited, action)
                else:
                    self.respond(text, UserAction.OVERRIDE)
        except (EOFError, KeyboardInterrupt):
            return self._paused()

    # ------------------------------------------------------------------ #
    # Internal
    # ------------------------------------------------------------------ #

    def _fetch(self, use_styled: bool) -> None:
        if use_styled:
            with self._console.spinner("Thinking..."):
                self.request_suggestion()
        else:
            self.request_suggestion()

    def _paused(self) -> DiscoveryResult:
        if self._auto_save:
            self.save()
        self._say("Discovery paused. Run 'skillforge discover' to pick up where you left off.", "info")
        return DiscoveryResult(self._state, completed=False, cancelled=True)

    def _handle_slash_command(self, command: str) -> None:
        if command == "/help":
            self._say(_HELP_TEXT, "plain")
        elif command == "/why":
            self._say(self._state.current_why or "No rationale was given for this question.", "info")
        elif command == "/status":
            self._say(self._format_status(), "plain")
        elif command == "/next":
            self._say(f"Closing the {phase_info(self._state.current_phase).label} phase.", "info")
            self.dispatch(RestoreSession({"current_question": None, "current_field": None, "current_why": None}))
            self.complete_phase()
        elif command == "/skip":
            self.skip_to_spec()

    def _format_status(self) -> str:
        state = self._state
        info = phase_info(state.current_phase)
        depth = get_depth_config(self._complexity)
        lines = [
            f"Phase {info.number} · {info.label}: {state.questions_asked_in_phase} answered "
            f"(min {depth.min_questions_per_phase}, max {depth.max_questions_per_phase})",
            f"Total answered: {state.total_questions_asked}",
            f"Complexity: {self._complexity.value}",
        ]
        tokens = self._client.token_tracker.format_status()
        if tokens:
            lines.append(f"Tokens: {tokens}")
        return "\n".join(lines)

    def _show_phase(self, state: DiscoveryState) -> None:
        info = phase_info(state.current_phase)
        if self._print_fn:
            self._print_fn(f"Phase {info.number} · {info.label}: {info.description}")
        else:
            self._console.print_phase_banner(info.number, info.label, info.description)

    def _show_card(self, state: DiscoveryState, suggestion: AISuggestion, use_styled: bool) -> None:
        options = suggestion.extras.get("options") if suggestion.extras else None
        if use_styled:
            self._console.print_suggestion_card(
                question=state.current_question or "",
                proposed_answer=suggestion.proposed_answer,
                confidence=suggestion.confidence,
                why=state.current_why,
                best_practice_note=suggestion.best_practice_note,
                options=options,
            )
            return
        self._print_fn(f"Q: {state.current_question}")
        if options:
            self._print_fn(f"Options: {', '.join(options)}")
        self._print_fn(f"Suggested ({suggestion.confidence}): {suggestion.proposed_answer}")

    def _say(self, message: str, kind: str = "info") -> None:
        if self._print_fn:
            self._print_fn(message)
        elif kind == "plain":
            self._console.print_dim(escape(message))
        else:
            getattr(self._console, f"print_{kind}")(escape(message))
