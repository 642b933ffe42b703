"""Rule group management commands."""

from __future__ import annotations

import click
from rich.markup import escape
from rich.table import Table

from contractlint.cli.project import console, load_manager, save_manager
from contractlint.errors import RuleSetError


@click.group()
def groups() -> None:
    """Rule group management commands."""
    pass


@groups.command("list")
@click.option("--project-dir", default=".", help="Project root directory")
def list_groups(project_dir: str) -> None:
    """List rule groups and their members."""
    manager, _, _ = load_manager(project_dir)
    rule_set = manager.rule_set

    if not rule_set.groups:
        console.print("[yellow]No groups defined[/yellow]")
        return

    table = Table(show_header=True, title="Rule Groups")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Rules")
    table.add_column("Description")

    for group in rule_set.groups:
        table.add_row(
            escape(group.id),
            escape(group.name),
            escape(", ".join(group.rules) or "-"),
            escape(group.description),
        )

    console.print(table)

    ungrouped = [r.id for r in rule_set.rules if rule_set.effective_group(r) is None]
    if ungrouped:
        console.print(f"\n[dim]Ungrouped:[/dim] {escape(', '.join(ungrouped))}")


@groups.command("add")
@click.argument("group_id")
@click.argument("name")
@click.option("--description", default="", help="Group description")
@click.option("--project-dir", default=".", help="Project root directory")
def add_group(group_id: str, name: str, description: str, project_dir: str) -> None:
    """Create a rule group.

    GROUP_ID is the unique identifier, NAME the display name.
    """
    manager, _, path = load_manager(project_dir)

    try:
        manager.add_group(group_id, name, description)
    except RuleSetError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(1)

    save_manager(manager, path)
    console.print(f"[green]Added group:[/green] {escape(group_id)} - {escape(name)}")


@groups.command("remove")
@click.argument("group_id")
@click.option("--project-dir", default=".", help="Project root directory")
def remove_group(group_id: str, project_dir: str) -> None:
    """Delete a rule group; its rules become ungrouped.

    GROUP_ID is the identifier of the group to delete.
    """
    manager, _, path = load_manager(project_dir)

    try:
        group = manager.remove_group(group_id)
    except RuleSetError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(1)

    save_manager(manager, path)
    console.print(f"[green]Removed group '{escape(group_id)}' ({len(group.rules)} rules ungrouped)[/green]")
