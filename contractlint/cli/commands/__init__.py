"""CLI commands for contractlint."""

from contractlint.cli.commands.groups import groups
from contractlint.cli.commands.rules import rules
from contractlint.cli.commands.validate import validate

__all__ = [
    "groups",
    "rules",
    "validate",
]
