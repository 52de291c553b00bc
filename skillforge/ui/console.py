"""Rich-based console utilities for styled CLI output.

Provides:
- A small semantic colour scheme (dim, success, error, warning, info, accent)
- Suggestion cards and phase banners for the discovery dialogue
- A prompt_toolkit answer prompt with multi-line input (backslash
  continuation or Escape+Enter)
- A spinner for model calls
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator

from prompt_toolkit import PromptSession
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style as PTStyle
from rich.console import Console as RichConsole
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.theme import Theme

THEME = Theme({
    "dim": "#888888",
    "muted": "#666666",
    "content": "bright_white",
    "success": "bright_green",
    "error": "bright_red",
    "warning": "bright_yellow",
    "info": "bright_cyan",
    "accent": "bright_magenta",
    "prompt.border": "#555555",
    "prompt.instruction": "bright_cyan",
    "phase": "bright_cyan bold",
    "path": "bright_cyan",
    "confidence.high": "bright_green",
    "confidence.medium": "bright_yellow",
    "confidence.low": "bright_red",
})

PT_STYLE = PTStyle.from_dict({
    "prompt": "#888888",
    "": "#ffffff",
    "bottom-toolbar": "noreverse #888888",
})


class Console:
    """Styled console output for the skillforge CLI."""

    def __init__(self):
        self._console = RichConsole(theme=THEME, highlight=False)

    # ------------------------------------------------------------------ #
    # Basic output
    # ------------------------------------------------------------------ #

    def print(self, message: str = "", style: str | None = None, **kwargs):
        self._console.print(message, style=style, **kwargs)

    def print_dim(self, message: str):
        self._console.print(message, style="dim")

    def print_success(self, message: str):
        self._console.print(f"[success]✓[/success] {message}")

    def print_error(self, message: str):
        self._console.print(f"[error]✗[/error] {message}")

    def print_warning(self, message: str):
        self._console.print(f"[warning]![/warning] {message}")

    def print_info(self, message: str):
        self._console.print(f"[info]→[/info] {message}")

    # ------------------------------------------------------------------ #
    # Structured output
    # ------------------------------------------------------------------ #

    def print_header(self, title: str):
        self._console.print()
        self._console.print(f"[accent bold]{escape(title)}[/accent bold]")
        self._console.print()

    def print_phase_banner(self, number: int, label: str, description: str):
        """Announce the start of a phase, e.g. ``Phase 2 · Define``."""
        self._console.print()
        self._console.print(
            f"[phase]Phase {number} · {escape(label)}[/phase]  [dim]{escape(description)}[/dim]"
        )

    def print_suggestion_card(
        self,
        question: str,
        proposed_answer: str,
        confidence: str = "medium",
        why: str | None = None,
        best_practice_note: str | None = None,
        options: list[str] | None = None,
    ):
        """Render a question with its proposed answer in a bordered card."""
        body = Table.grid(padding=(0, 1))
        body.add_column(style="dim", no_wrap=True)
        body.add_column()
        if why:
            body.add_row("why", f"[dim]{escape(why)}[/dim]")
        if options:
            body.add_row("options", " · ".join(escape(o) for o in options))
        body.add_row(
            "suggested",
            f"[content]{escape(proposed_answer)}[/content]  "
            f"[confidence.{confidence}]({confidence})[/confidence.{confidence}]",
        )
        if best_practice_note:
            body.add_row("tip", f"[info]{escape(best_practice_note)}[/info]")

        self._console.print()
        self._console.print(Panel(
            body,
            title=f"[content]{escape(question)}[/content]",
            title_align="left",
            border_style="prompt.border",
            padding=(0, 1),
        ))

    def print_token_status(self, status_text: str):
        """Right-justified dim token status line."""
        if not status_text:
            return
        width = self._console.size.width or 80
        self._console.print(f"[muted]{status_text.rjust(width)}[/muted]", highlight=False)

    def print_file_list(self, files: list[str]):
        for f in files:
            self._console.print(f"    [success]✓[/success] [path]{escape(f)}[/path]")

    # ------------------------------------------------------------------ #
    # Progress
    # ------------------------------------------------------------------ #

    @contextmanager
    def spinner(self, message: str) -> Iterator[None]:
        """Show a spinner while *message* is in progress, then its elapsed time.

        Usage:
            with console.spinner("Thinking..."):
                session.request_suggestion()
        """
        start = time.monotonic()
        progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=self._console,
            transient=True,
        )
        with progress:
            progress.add_task(message, total=None)
            yield
        elapsed = time.monotonic() - start
        self._console.print(f"[muted]{escape(message)} ({elapsed:.1f}s)[/muted]")


def _create_multiline_keybindings() -> KeyBindings:
    """Enter submits; a trailing backslash or Escape+Enter inserts a newline."""
    kb = KeyBindings()

    @kb.add("enter")
    def handle_enter(event):
        buffer = event.app.current_buffer
        text = buffer.text
        if text.rstrip().endswith("\\"):
            stripped = text.rstrip()
            buffer.delete_before_cursor(count=len(text) - len(stripped) + 1)
            buffer.insert_text("\n")
        else:
            buffer.validate_and_handle()

    @kb.add("escape", "enter")
    def insert_newline(event):
        event.app.current_buffer.insert_text("\n")

    return kb


class AnswerPrompt:
    """Input prompt shown under a suggestion card."""

    INSTRUCTION = "Enter to accept · 'e' to edit · type your own answer to override · /help"
    QUIT_HINT = "Type 'quit' to pause; progress is saved."

    def __init__(self, console: Console | None = None):
        self._console = console or Console()
        self._session = PromptSession(
            key_bindings=_create_multiline_keybindings(),
            style=PT_STYLE,
            multiline=True,
            prompt_continuation=lambda width, line_num, wrap_count: "  ",
        )

    def prompt(self, prompt_text: str = "> ", instruction: str | None = None, default: str = "") -> str:
        """Read one answer.

        Ctrl+C / Ctrl+D propagate as ``KeyboardInterrupt`` / ``EOFError`` so the
        caller can pause the session.
        """
        if instruction:
            self._console.print(f"[prompt.instruction]{escape(instruction)}[/prompt.instruction]")
        return self._session.prompt(
            prompt_text,
            default=default,
            bottom_toolbar=lambda: [("#888888", self.QUIT_HINT)],
        ).strip()


# -------------------------------------------------------------------- #
# Module-level singleton
# -------------------------------------------------------------------- #

console = Console()
