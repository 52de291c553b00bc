"""Skill Forge: guided discovery for new AI skills."""

import os
import sys

from knack import CLI
from knack.commands import CLICommandsLoader

from skillforge._help import helps  # noqa: F401

CLI_NAME = "skillforge"


class SkillForgeCommandsLoader(CLICommandsLoader):
    """Command loader for the skillforge CLI."""

    def load_command_table(self, args):
        from skillforge.commands import load_command_table

        load_command_table(self, args)
        return super().load_command_table(args)

    def load_arguments(self, command):
        from skillforge._params import load_arguments

        load_arguments(self, command)
        super().load_arguments(command)


def get_cli() -> CLI:
    return CLI(
        cli_name=CLI_NAME,
        config_dir=os.path.expanduser(os.path.join("~", f".{CLI_NAME}")),
        config_env_var_prefix=CLI_NAME.upper(),
        commands_loader_cls=SkillForgeCommandsLoader,
    )


def main():
    sys.exit(get_cli().invoke(sys.argv[1:]))
