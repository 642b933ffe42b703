"""Project configuration for contractlint."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR = ".contractlint"
CONFIG_FILE = "config.yaml"
DEFAULT_STYLE_GUIDE = "style-guide.yaml"


@dataclass
class Settings:
    """Settings read from ``.contractlint/config.yaml``."""

    openapi_major: int = 3  # Supported major version of the ``openapi`` field
    style_guide: str | None = None  # Style guide file, relative to the project root
    predicate_step_budget: int = 10_000  # Max traced lines per custom predicate call
    predicate_timeout: float = 1.0  # Wall-clock seconds per custom predicate call
    strict: bool = False  # Treat warnings as failures in the CLI

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Create settings from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))

        settings = cls(**{k: v for k, v in data.items() if k in known})
        settings.openapi_major = int(settings.openapi_major)
        settings.predicate_step_budget = int(settings.predicate_step_budget)
        settings.predicate_timeout = float(settings.predicate_timeout)
        settings.strict = bool(settings.strict)
        return settings

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def style_guide_path(self, project_root: Path | str) -> Path:
        """Where the project's style guide lives."""
        name = self.style_guide or DEFAULT_STYLE_GUIDE
        path = Path(name)
        if path.is_absolute():
            return path
        if self.style_guide:
            return Path(project_root) / path
        return Path(project_root) / CONFIG_DIR / path


def load_settings(project_root: Path | str = ".") -> Settings:
    """Load settings for a project.

    A missing config file yields defaults. An unreadable one is logged and
    also yields defaults, since configuration is optional.

    Args:
        project_root: Root directory of the project.

    Returns:
        Loaded Settings.
    """
    config_path = Path(project_root) / CONFIG_DIR / CONFIG_FILE
    if not config_path.exists():
        return Settings()

    try:
        data = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError("config root must be a mapping")
        return Settings.from_dict(data)
    except (yaml.YAMLError, OSError, ValueError, TypeError) as e:
        logger.warning("Could not load %s: %s", config_path, e)
        return Settings()


def save_settings(settings: Settings, project_root: Path | str = ".") -> Path:
    """Write settings to the project's config file.

    Returns:
        Path of the written file.
    """
    config_path = Path(project_root) / CONFIG_DIR / CONFIG_FILE
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(yaml.dump(settings.to_dict(), default_flow_style=False, sort_keys=False))
    return config_path
