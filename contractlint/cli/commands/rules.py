"""Rules management commands."""

from __future__ import annotations

from pathlib import Path

import click
from rich.markup import escape
from rich.table import Table

from contractlint.cli.project import console, load_manager, save_manager, severity_markup
from contractlint.errors import CompileError, RuleSetError
from contractlint.rules.schemas import RuleSeverity
from contractlint.rules.storage import load_rule_set, save_rule_set
from contractlint.rules.validators import DEFAULT_RULES, RULE_PRESETS, RULE_TEMPLATES


@click.group()
def rules() -> None:
    """Style guide rule management commands."""
    pass


@rules.command("list")
@click.option("--group", "group_id", default=None, help="Only list rules in this group")
@click.option("--project-dir", default=".", help="Project root directory")
def list_rules(group_id: str | None, project_dir: str) -> None:
    """List rules in the project style guide."""
    manager, _, _ = load_manager(project_dir)
    rule_set = manager.rule_set
    rule_list = manager.list_rules(group_id)

    if not rule_list:
        console.print("[yellow]No rules found[/yellow]")
        return

    table = Table(show_header=True, title=escape(rule_set.name))
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Target")
    table.add_column("Severity")
    table.add_column("Group")
    table.add_column("Enabled")

    for rule in rule_list:
        table.add_row(
            escape(rule.id),
            escape(rule.name),
            rule.type.value,
            rule.target.value,
            severity_markup(rule.severity.value),
            escape(rule_set.effective_group(rule) or "-"),
            "[green]yes[/green]" if rule.enabled else "[red]no[/red]",
        )

    console.print(table)


@rules.command("templates")
def list_templates() -> None:
    """Show the built-in rule template gallery."""
    table = Table(show_header=True, title="Rule Templates")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Severity")
    table.add_column("Description")

    for template in DEFAULT_RULES + RULE_TEMPLATES:
        table.add_row(
            template.id,
            template.name,
            template.type.value,
            severity_markup(template.severity.value),
            template.description,
        )

    console.print(table)


@rules.command("add-custom")
@click.argument("name")
@click.option("--id", "rule_id", default=None, help="Rule ID (derived from the name if omitted)")
@click.option("--source", default=None, help="Predicate source (body using 'value')")
@click.option(
    "--source-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="File containing the predicate source",
)
@click.option(
    "--type",
    "rule_type",
    type=click.Choice(["naming", "structure", "content", "custom"]),
    default="custom",
    help="Rule type",
)
@click.option(
    "--target",
    type=click.Choice(["route", "operation"]),
    default=None,
    help="What the predicate receives (custom rules only)",
)
@click.option(
    "--severity",
    type=click.Choice(["error", "warning", "info"]),
    default="warning",
    help="Rule severity",
)
@click.option("--group", "group_id", default=None, help="Group to place the rule in")
@click.option("--description", default="", help="Rule description")
@click.option("--project-dir", default=".", help="Project root directory")
def add_custom_rule(
    name: str,
    rule_id: str | None,
    source: str | None,
    source_file: str | None,
    rule_type: str,
    target: str | None,
    severity: str,
    group_id: str | None,
    description: str,
    project_dir: str,
) -> None:
    """Add a custom rule from predicate source.

    NAME is the human-readable name for the rule.
    """
    if source_file:
        source = Path(source_file).read_text()
    if not source:
        console.print("[red]Error:[/red] Provide --source or --source-file")
        raise SystemExit(1)

    manager, _, path = load_manager(project_dir)
    if group_id and manager.rule_set.get_group(group_id) is None:
        console.print(f"[red]Error:[/red] Group '{escape(group_id)}' not found")
        raise SystemExit(1)

    try:
        rule = manager.add_custom(
            source,
            name=name,
            rule_id=rule_id,
            description=description,
            type=rule_type,
            target=target,
            severity=severity,
            group=group_id,
        )
    except CompileError as e:
        console.print(f"[red]Compile error:[/red] {escape(str(e))}")
        raise SystemExit(1)
    except (RuleSetError, ValueError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(1)

    save_manager(manager, path)
    console.print(f"[green]Added custom rule:[/green] {escape(rule.id)} - {escape(rule.name)}")


@rules.command("add-template")
@click.argument("template_id")
@click.option("--id", "rule_id", default=None, help="Rule ID (defaults to the template ID)")
@click.option(
    "--severity",
    type=click.Choice(["error", "warning", "info"]),
    default=None,
    help="Override the template severity",
)
@click.option("--project-dir", default=".", help="Project root directory")
def add_template_rule(
    template_id: str,
    rule_id: str | None,
    severity: str | None,
    project_dir: str,
) -> None:
    """Add a rule from the template gallery.

    TEMPLATE_ID is the identifier shown by 'contractlint rules templates'.
    """
    manager, _, path = load_manager(project_dir)
    overrides = {"severity": RuleSeverity(severity)} if severity else {}

    try:
        rule = manager.add_template(template_id, rule_id, **overrides)
    except RuleSetError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(1)

    save_manager(manager, path)
    console.print(f"[green]Added rule:[/green] {escape(rule.id)} - {escape(rule.name)}")


@rules.command("apply-preset")
@click.argument("preset", type=click.Choice(sorted(RULE_PRESETS)))
@click.option("--project-dir", default=".", help="Project root directory")
def apply_preset(preset: str, project_dir: str) -> None:
    """Apply a preset's severities to the style guide.

    PRESET is one of the shipped presets. Rules it names that are not in
    the style guide are left out.
    """
    updated = _edit(project_dir, lambda m: m.apply_preset(preset))
    console.print(f"[green]Applied preset '{preset}' to {len(updated)} rules[/green]")
    for rule in updated:
        console.print(f"  {escape(rule.id)}: {severity_markup(rule.severity.value)}")


@rules.command("remove")
@click.argument("rule_id")
@click.option("--project-dir", default=".", help="Project root directory")
def remove_rule(rule_id: str, project_dir: str) -> None:
    """Remove a rule from the style guide.

    RULE_ID is the identifier of the rule to remove.
    """
    _edit(project_dir, lambda m: m.remove(rule_id), f"Removed rule '{rule_id}'")


@rules.command("duplicate")
@click.argument("rule_id")
@click.option("--project-dir", default=".", help="Project root directory")
def duplicate_rule(rule_id: str, project_dir: str) -> None:
    """Copy a rule under a new ID.

    RULE_ID is the identifier of the rule to copy.
    """
    rule = _edit(project_dir, lambda m: m.duplicate(rule_id))
    console.print(f"[green]Duplicated '{escape(rule_id)}' as '{escape(rule.id)}'[/green]")


@rules.command("enable")
@click.argument("rule_id")
@click.option("--project-dir", default=".", help="Project root directory")
def enable_rule(rule_id: str, project_dir: str) -> None:
    """Enable a rule.

    RULE_ID is the identifier of the rule to enable.
    """
    _edit(project_dir, lambda m: m.set_enabled(rule_id, True), f"Rule '{rule_id}' enabled")


@rules.command("disable")
@click.argument("rule_id")
@click.option("--project-dir", default=".", help="Project root directory")
def disable_rule(rule_id: str, project_dir: str) -> None:
    """Disable a rule.

    RULE_ID is the identifier of the rule to disable.
    """
    _edit(project_dir, lambda m: m.set_enabled(rule_id, False), f"Rule '{rule_id}' disabled")


@rules.command("move")
@click.argument("rule_id")
@click.argument("group_id", required=False)
@click.option("--project-dir", default=".", help="Project root directory")
def move_rule(rule_id: str, group_id: str | None, project_dir: str) -> None:
    """Move a rule into a group.

    RULE_ID is the rule to move. GROUP_ID is the destination; omit it to
    remove the rule from its group.
    """
    destination = f"group '{group_id}'" if group_id else "no group"
    _edit(
        project_dir,
        lambda m: m.move_to_group(rule_id, group_id),
        f"Moved rule '{rule_id}' to {destination}",
    )


@rules.command("export")
@click.argument("output_file", type=click.Path(dir_okay=False))
@click.option("--project-dir", default=".", help="Project root directory")
def export_rules(output_file: str, project_dir: str) -> None:
    """Export the style guide to a YAML or JSON file.

    OUTPUT_FILE is the destination; a .json suffix selects JSON.
    """
    manager, _, _ = load_manager(project_dir)
    save_rule_set(manager.export_rule_set(), output_file)
    console.print(f"[green]Exported {len(manager.rule_set.rules)} rules to {escape(output_file)}[/green]")


@rules.command("import")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--project-dir", default=".", help="Project root directory")
def import_rules(input_file: str, project_dir: str) -> None:
    """Replace the style guide with one from a YAML or JSON file.

    INPUT_FILE is the style guide to import.
    """
    manager, _, path = load_manager(project_dir)

    try:
        rule_set = load_rule_set(input_file, manager.compiler)
        manager.import_rule_set(rule_set)
    except CompileError as e:
        console.print(f"[red]Compile error:[/red] {escape(str(e))}")
        raise SystemExit(1)
    except RuleSetError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(1)

    save_manager(manager, path)
    console.print(f"[green]Imported '{escape(rule_set.name)}' with {len(rule_set.rules)} rules[/green]")


def _edit(project_dir: str, action, message: str | None = None):
    """Apply an edit to the project style guide and save it."""
    manager, _, path = load_manager(project_dir)

    try:
        result = action(manager)
    except (RuleSetError, ValueError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(1)

    save_manager(manager, path)
    if message:
        console.print(f"[green]{escape(message)}[/green]")
    return result
