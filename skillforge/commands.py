"""Command table registration for skillforge."""

from knack.commands import CommandGroup

_CUSTOM = "skillforge.custom#{}"


def load_command_table(self, _):
    """Register all skillforge commands."""

    with CommandGroup(self, "", _CUSTOM) as g:
        g.command("init", "skillforge_init")
        g.command("discover", "skillforge_discover")
        g.command("status", "skillforge_status")
        g.command("spec", "skillforge_spec")

    with CommandGroup(self, "config", _CUSTOM) as g:
        g.command("show", "skillforge_config_show")
        g.command("get", "skillforge_config_get")
        g.command("set", "skillforge_config_set")
