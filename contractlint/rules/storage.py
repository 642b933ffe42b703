"""Exchange format for rule sets (style guides).

Predicates are not serializable. Custom rules are stored as their source
text (``predicateSource``) and recompiled on load; built-in rules are stored
by reference (``builtin`` + ``args``) or, when neither is present, rehydrated
from the built-in library by rule id.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from contractlint.errors import RuleSetError
from contractlint.rules.compiler import RuleCompiler
from contractlint.rules.schemas import (
    BuiltinPredicate,
    CustomPredicate,
    Rule,
    RuleGroup,
    RuleSet,
    RuleSetMetadata,
    RuleSeverity,
    RuleTarget,
    RuleType,
)
from contractlint.rules.validators import get_template, get_validator

logger = logging.getLogger(__name__)


def rule_to_dict(rule: Rule) -> dict[str, Any]:
    """Convert rule to dictionary."""
    data: dict[str, Any] = {
        "id": rule.id,
        "name": rule.name,
        "description": rule.description,
        "type": rule.type.value,
        "severity": rule.severity.value,
        "group": rule.group,
        "enabled": rule.enabled,
        "tags": list(rule.tags),
        "target": rule.target.value if rule.target else None,
    }
    predicate = rule.predicate
    if isinstance(predicate, CustomPredicate):
        data["predicateSource"] = predicate.source
    else:
        data["builtin"] = predicate.ref
        if predicate.args:
            data["args"] = dict(predicate.args)
    return data


def rule_from_dict(data: dict[str, Any], compiler: RuleCompiler | None = None) -> Rule:
    """Create rule from dictionary.

    Raises:
        CompileError: If a custom rule's source does not compile.
        RuleSetError: If the entry is malformed or names an unknown built-in.
    """
    if not isinstance(data, dict):
        raise RuleSetError(f"Rule entry must be a mapping, got {type(data).__name__}")
    rule_id = data.get("id")
    if not rule_id:
        raise RuleSetError("Rule entry is missing an 'id'")

    try:
        source = data.get("predicateSource")
        if source is not None:
            compiler = compiler or RuleCompiler()
            return compiler.compile_rule(
                source,
                rule_id=rule_id,
                name=data.get("name", rule_id),
                description=data.get("description", ""),
                type=data.get("type", "custom"),
                severity=data.get("severity", "warning"),
                target=data.get("target"),
                group=data.get("group"),
                tags=data.get("tags", []),
                enabled=data.get("enabled", True),
            )

        template = get_template(rule_id)
        if "builtin" in data:
            predicate = BuiltinPredicate(data["builtin"], dict(data.get("args") or {}))
        elif template is not None:
            predicate = BuiltinPredicate(template.validator, dict(template.args))
        else:
            raise RuleSetError(f"Rule '{rule_id}' has no predicate source and is not a built-in rule")

        if get_validator(predicate.ref) is None:
            raise RuleSetError(f"Rule '{rule_id}' references unknown built-in validator '{predicate.ref}'")

        target = data.get("target")
        return Rule(
            id=rule_id,
            name=data.get("name") or (template.name if template else rule_id),
            type=RuleType(data.get("type") or (template.type.value if template else "")),
            predicate=predicate,
            severity=RuleSeverity(data.get("severity") or (template.severity.value if template else "warning")),
            description=data.get("description") or (template.description if template else ""),
            group=data.get("group"),
            enabled=data.get("enabled", True),
            tags=list(data.get("tags") or []),
            target=RuleTarget(target) if target else None,
        )
    except (TypeError, ValueError) as e:
        raise RuleSetError(f"Invalid rule '{rule_id}': {e}") from e


def rule_set_to_dict(rule_set: RuleSet) -> dict[str, Any]:
    """Convert rule set to its exchange representation."""
    return {
        "id": rule_set.id,
        "name": rule_set.name,
        "description": rule_set.description,
        "version": rule_set.version,
        "rules": [rule_to_dict(rule) for rule in rule_set.rules],
        "groups": [
            {
                "id": group.id,
                "name": group.name,
                "description": group.description,
                "rules": list(group.rules),
            }
            for group in rule_set.groups
        ],
        "metadata": {
            "lastModified": rule_set.metadata.last_modified,
            "author": rule_set.metadata.author,
            "tags": list(rule_set.metadata.tags),
        },
    }


def check_rule_set(rule_set: RuleSet) -> None:
    """Check rule id uniqueness and built-in references.

    Raises:
        RuleSetError: If a rule id repeats or a built-in rule names an
            unknown validator.
    """
    seen: set[str] = set()
    for rule in rule_set.rules:
        if rule.id in seen:
            raise RuleSetError(f"Duplicate rule id '{rule.id}' in rule set")
        seen.add(rule.id)
        if isinstance(rule.predicate, BuiltinPredicate) and get_validator(rule.predicate.ref) is None:
            raise RuleSetError(
                f"Rule '{rule.id}' references unknown built-in validator '{rule.predicate.ref}'"
            )


def _group_from_dict(data: Any) -> RuleGroup:
    if not isinstance(data, dict):
        raise RuleSetError(f"Group entry must be a mapping, got {type(data).__name__}")
    if not data.get("id"):
        raise RuleSetError("Group entry is missing an 'id'")
    members = data.get("rules") or []
    if not isinstance(members, list):
        raise RuleSetError(f"Members of group '{data['id']}' must be a list of rule ids")
    return RuleGroup(
        id=data["id"],
        name=data.get("name") or data["id"],
        description=data.get("description") or "",
        rules=[str(member) for member in members],
    )


def rule_set_from_dict(data: dict[str, Any], compiler: RuleCompiler | None = None) -> RuleSet:
    """Create rule set from its exchange representation.

    Raises:
        CompileError: If a custom rule's source does not compile.
        RuleSetError: If the document is malformed.
    """
    if not isinstance(data, dict):
        raise RuleSetError("Rule set must be a mapping")
    if not data.get("id") or not data.get("name"):
        raise RuleSetError("Rule set requires 'id' and 'name'")

    compiler = compiler or RuleCompiler()
    rules = [rule_from_dict(entry, compiler) for entry in data.get("rules") or []]

    groups = [_group_from_dict(entry) for entry in data.get("groups") or []]
    metadata = data.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise RuleSetError("Rule set 'metadata' must be a mapping")

    rule_set = RuleSet(
        id=data["id"],
        name=data["name"],
        version=str(data.get("version", "1.0.0")),
        description=data.get("description") or "",
        rules=rules,
        groups=groups,
        metadata=RuleSetMetadata(
            last_modified=metadata.get("lastModified", ""),
            author=metadata.get("author"),
            tags=list(metadata.get("tags") or []),
        ),
    )
    check_rule_set(rule_set)
    return rule_set


def load_rule_set(path: Path | str, compiler: RuleCompiler | None = None) -> RuleSet:
    """Load a rule set from a YAML or JSON file.

    Args:
        path: File to read; ``.json`` files are read as JSON, anything else as YAML.
        compiler: Compiler for custom rules.

    Returns:
        Loaded RuleSet.

    Raises:
        RuleSetError: If the file cannot be parsed.
    """
    path = Path(path)
    content = path.read_text()
    try:
        data = json.loads(content) if path.suffix == ".json" else yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise RuleSetError(f"Could not parse rule set {path}: {e}") from e

    rule_set = rule_set_from_dict(data, compiler)
    logger.debug("Loaded rule set %s with %d rules from %s", rule_set.id, len(rule_set.rules), path)
    return rule_set


def save_rule_set(rule_set: RuleSet, path: Path | str) -> None:
    """Save a rule set to a YAML or JSON file.

    Args:
        rule_set: Rule set to save.
        path: Destination; the suffix selects the format.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = rule_set_to_dict(rule_set)

    if path.suffix == ".json":
        path.write_text(json.dumps(data, indent=2) + "\n")
    else:
        path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))
