"""Terminal UI: rich console output and prompt_toolkit input."""

from skillforge.ui.console import AnswerPrompt, Console, console

__all__ = [
    "AnswerPrompt",
    "Console",
    "console",
]
