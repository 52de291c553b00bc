"""CLI parameter definitions for skillforge."""

from knack.arguments import ArgumentsContext

_COMPLEXITIES = ["simple", "moderate", "complex"]
_PROVIDERS = ["github-models", "azure-openai"]


def load_arguments(self, _):
    """Register CLI parameters for all commands."""

    # --- skillforge init ---
    with ArgumentsContext(self, "init") as c:
        c.argument("name", options_list=["--name", "-n"], help="Name of the skill.")
        c.argument(
            "description",
            options_list=["--description", "-d"],
            help="What the skill should do, in a sentence or two.",
        )
        c.argument(
            "complexity",
            choices=_COMPLEXITIES,
            help="Discovery depth. Classified from the description when omitted.",
        )
        c.argument(
            "agentic",
            action="store_true",
            default=False,
            help="The skill is an autonomous agent (adds agent-specific questions).",
        )
        c.argument(
            "ai_provider",
            choices=_PROVIDERS,
            default="github-models",
            help="AI provider used for discovery.",
        )
        c.argument("model", help="Model or deployment name (default: gpt-4o).")
        c.argument("output_dir", help="Project directory to create the configuration in.", default=".")

    # --- skillforge discover ---
    with ArgumentsContext(self, "discover") as c:
        c.argument(
            "reset",
            action="store_true",
            default=False,
            help="Discard the saved session and start over.",
        )
        c.argument(
            "skip_to_spec",
            action="store_true",
            default=False,
            help="Mark discovery complete with the answers collected so far.",
        )

    # --- skillforge status ---
    with ArgumentsContext(self, "status") as c:
        c.argument(
            "json_output",
            options_list=["--json", "-j"],
            action="store_true",
            default=False,
            help="Output machine-readable JSON instead of formatted display.",
        )

    # --- skillforge spec ---
    with ArgumentsContext(self, "spec") as c:
        c.argument("output_dir", help="Where to write the specification (default: output.dir from config).")
        c.argument(
            "force",
            action="store_true",
            default=False,
            help="Build the specification even if discovery is unfinished.",
        )

    # --- skillforge config ---
    with ArgumentsContext(self, "config get") as c:
        c.argument("key", help="Dot-separated configuration key (e.g. ai.provider).")

    with ArgumentsContext(self, "config set") as c:
        c.argument("key", help="Dot-separated configuration key (e.g. ai.provider).")
        c.argument("value", help="New value. JSON is parsed for structured values.")
