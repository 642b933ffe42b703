"""Main CLI entry point for contractlint."""

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from contractlint import __version__
from contractlint.cli.commands.groups import groups
from contractlint.cli.commands.rules import rules
from contractlint.cli.commands.validate import validate


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
def cli(verbose: bool) -> None:
    """contractlint - Style and structure validation for OpenAPI contracts.

    Checks contracts against the format requirements of OpenAPI 3 and
    against a project style guide of naming, structure, content and custom
    rules.

    \b
    VALIDATION:
      contractlint validate openapi.yaml            Validate a contract
      contractlint validate api.yaml --strict       Fail on warnings too
      contractlint validate api.yaml --group naming Only run one rule group

    \b
    STYLE GUIDE:
      contractlint rules list                       List rules in the style guide
      contractlint rules templates                  Show the rule template gallery
      contractlint rules add-template require-auth  Add a rule from the gallery
      contractlint rules add-custom "No Admin" --source "'admin' not in value"
      contractlint groups list                      List rule groups
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


cli.add_command(validate)
cli.add_command(rules)
cli.add_command(groups)


if __name__ == "__main__":
    cli()
