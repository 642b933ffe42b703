"""Validate command for checking API contracts."""

from __future__ import annotations

import json
from pathlib import Path

import click
from rich.markup import escape
from rich.table import Table

from contractlint.cli.project import console, load_manager, severity_markup
from contractlint.validation import ValidationReport, validate_source

UNGROUPED = "ungrouped"


@click.command()
@click.argument("contract_files", nargs=-1, required=True, type=click.Path(dir_okay=False))
@click.option("--style-guide", default=None, help="Style guide file (YAML or JSON)")
@click.option(
    "--group",
    "group_filter",
    multiple=True,
    help=f"Only run rules in this group (repeatable; '{UNGROUPED}' selects rules without a group)",
)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--strict", is_flag=True, default=None, help="Treat warnings as errors")
@click.option("--suggestions/--no-suggestions", default=True, help="Show fix suggestions")
@click.option("--project-dir", default=".", help="Project root directory")
def validate(
    contract_files: tuple[str, ...],
    style_guide: str | None,
    group_filter: tuple[str, ...],
    output_json: bool,
    strict: bool | None,
    suggestions: bool,
    project_dir: str,
) -> None:
    """Validate API contracts against OpenAPI structure and the style guide.

    CONTRACT_FILES are OpenAPI documents in YAML or JSON.

    Examples:

        contractlint validate openapi.yaml

        contractlint validate api.yaml --group naming --strict
    """
    manager, settings, _ = load_manager(project_dir, style_guide)
    strict = settings.strict if strict is None else strict
    groups = [None if g == UNGROUPED else g for g in group_filter] or None

    reports: list[ValidationReport] = []
    for contract_file in contract_files:
        path = Path(contract_file)
        if not path.exists():
            console.print(f"[red]Error:[/red] Contract not found at '{escape(contract_file)}'")
            raise SystemExit(1)
        reports.append(
            validate_source(
                path.read_text(),
                manager.rule_set,
                settings=settings,
                groups=groups,
                filename=str(path),
            )
        )

    if output_json:
        click.echo(json.dumps([r.to_dict() for r in reports], indent=2))
    else:
        for report in reports:
            _print_report(report, suggestions)

    total_errors = sum(r.error_count for r in reports)
    total_warnings = sum(r.warning_count for r in reports)
    if total_errors > 0 or (strict and total_warnings > 0):
        raise SystemExit(1)


def _print_report(report: ValidationReport, show_suggestions: bool) -> None:
    """Display a validation report."""
    if not report.violations:
        console.print(f"[green]{escape(report.source or '<source>')}: no issues found[/green]")
        return

    table = Table(show_header=True, title=escape(report.source or "<source>"))
    table.add_column("Severity", style="bold")
    table.add_column("Rule")
    table.add_column("Location")
    table.add_column("Line")
    table.add_column("Message")

    for v in report.violations:
        table.add_row(
            severity_markup(v.severity.value, upper=True),
            escape(v.rule_id),
            escape(v.path or "-"),
            str(v.line or "-"),
            escape(v.message),
        )

    console.print(table)

    if show_suggestions:
        fixes = report.fix_suggestions()
        if fixes:
            console.print("\n[bold]Suggestions:[/bold]")
            for fix in fixes:
                console.print(fix, markup=False)

    style = "green" if report.passed else "red"
    console.print(f"\n[{style}]{report.summary()}[/{style}]")
