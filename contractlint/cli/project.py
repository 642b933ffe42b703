"""Loading and saving the project style guide for CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from contractlint.config import Settings, load_settings
from contractlint.errors import CompileError, RuleSetError
from contractlint.rules.compiler import RuleCompiler
from contractlint.rules.manager import RuleSetManager, default_rule_set
from contractlint.rules.storage import load_rule_set, save_rule_set

logger = logging.getLogger(__name__)

console = Console()

SEVERITY_STYLES = {
    "error": "red",
    "warning": "yellow",
    "info": "blue",
}


def severity_markup(severity: str, upper: bool = False) -> str:
    """Color a severity name for rich output."""
    style = SEVERITY_STYLES.get(severity, "white")
    text = severity.upper() if upper else severity
    return f"[{style}]{text}[/{style}]"


def load_manager(
    project_dir: str,
    style_guide: str | None = None,
) -> tuple[RuleSetManager, Settings, Path]:
    """Build a manager holding the project's style guide.

    Falls back to the default style guide when the project has none.

    Args:
        project_dir: Project root directory.
        style_guide: Explicit style guide file, overriding the configured one.

    Returns:
        Tuple of (manager, settings, style guide path).
    """
    settings = load_settings(project_dir)
    path = Path(style_guide) if style_guide else settings.style_guide_path(project_dir)
    compiler = RuleCompiler(settings)

    if path.exists():
        try:
            rule_set = load_rule_set(path, compiler)
        except (CompileError, RuleSetError) as e:
            console.print(f"[red]Error:[/red] Could not load style guide {escape(str(path))}: {escape(str(e))}")
            raise SystemExit(1)
    else:
        logger.debug("No style guide at %s, using defaults", path)
        rule_set = default_rule_set()

    return RuleSetManager(rule_set, compiler=compiler), settings, path


def save_manager(manager: RuleSetManager, path: Path) -> None:
    """Persist the manager's rule set to the style guide file."""
    save_rule_set(manager.export_rule_set(), path)
    logger.debug("Saved style guide to %s", path)
