"""Management of the active rule set (style guide)."""

from __future__ import annotations

import logging
import threading
from collections.abc import Collection, Mapping
from datetime import datetime, timezone
from typing import Any

from contractlint.config import Settings
from contractlint.contract.document import ContractDocument
from contractlint.errors import (
    DuplicateRuleError,
    RuleSetError,
    UnknownGroupError,
    UnknownRuleError,
)
from contractlint.rules.compiler import RuleCompiler
from contractlint.rules.engine import RulesEngine
from contractlint.rules.schemas import (
    CustomPredicate,
    Rule,
    RuleGroup,
    RuleSet,
    RuleSetMetadata,
    RuleSeverity,
    RuleTarget,
    RuleType,
    Violation,
)
from contractlint.rules.storage import check_rule_set, rule_set_from_dict
from contractlint.rules.validators import DEFAULT_RULES, RULE_PRESETS, get_template

logger = logging.getLogger(__name__)

DEFAULT_GROUPS: list[tuple[str, str, str]] = [
    ("naming", "Naming Conventions", "Rules for naming paths, parameters, and schemas"),
    ("structure", "API Structure", "Rules for API organization and structure"),
    ("content", "Content Requirements", "Rules for documentation and content quality"),
    ("security", "Security", "Authentication and header requirements"),
]

# Fields of a rule that update() may change
UPDATABLE_FIELDS = frozenset({
    "name", "description", "type", "severity", "group", "enabled", "tags", "target",
    "predicate_source",
})


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def default_rule_set() -> RuleSet:
    """Build the default style guide with the built-in rules and groups."""
    rules = [template.to_rule() for template in DEFAULT_RULES]
    groups = [
        RuleGroup(
            id=group_id,
            name=name,
            description=description,
            rules=[rule.id for rule in rules if rule.group == group_id],
        )
        for group_id, name, description in DEFAULT_GROUPS
    ]
    return RuleSet(
        id="default",
        name="Default Style Guide",
        version="1.0.0",
        description="Default OpenAPI style guide with common best practices",
        rules=rules,
        groups=groups,
        metadata=RuleSetMetadata(last_modified=_now(), tags=["default"]),
    )


class RuleSetManager:
    """Holds the active rule set and applies edits to it.

    Every operation runs under one re-entrant lock, so each edit and each
    evaluation pass is atomic with respect to the others. Independent
    managers share nothing.
    """

    def __init__(
        self,
        rule_set: RuleSet | None = None,
        compiler: RuleCompiler | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize manager.

        Args:
            rule_set: Initial rule set; the default style guide when omitted.
            compiler: Compiler for custom rules.
            settings: Settings used to build a compiler when none is given.
        """
        self.compiler = compiler or RuleCompiler(settings)
        self.engine = RulesEngine(self.compiler)
        self._rule_set = rule_set if rule_set is not None else default_rule_set()
        self._lock = threading.RLock()

    @property
    def rule_set(self) -> RuleSet:
        """The live active rule set. Use export_rule_set() for a stable copy."""
        return self._rule_set

    def get(self, rule_id: str) -> Rule:
        """Get a rule by id.

        Raises:
            UnknownRuleError: If no rule has this id.
        """
        with self._lock:
            rule = self._rule_set.get_rule(rule_id)
            if rule is None:
                raise UnknownRuleError(rule_id)
            return rule

    def list_rules(self, group_id: str | None = None) -> list[Rule]:
        """Rules in rule set order, optionally only those in one group."""
        with self._lock:
            if group_id is None:
                return list(self._rule_set.rules)
            return [r for r in self._rule_set.rules if self._rule_set.effective_group(r) == group_id]

    def add(self, rule: Rule) -> Rule:
        """Append a rule to the active set.

        Raises:
            DuplicateRuleError: If a rule with the same id exists.
        """
        with self._lock:
            if self._rule_set.get_rule(rule.id) is not None:
                raise DuplicateRuleError(rule.id)
            self._rule_set.rules.append(rule)
            group = self._rule_set.get_group(rule.group) if rule.group else None
            if group is not None and rule.id not in group.rules:
                group.rules.append(rule.id)
            self._touch()
            logger.info("Added rule %s", rule.id)
            return rule

    def add_custom(
        self,
        source: str,
        *,
        name: str,
        rule_id: str | None = None,
        **options: Any,
    ) -> Rule:
        """Compile predicate source and add the resulting rule.

        Raises:
            CompileError: If the source does not compile; nothing is added.
            DuplicateRuleError: If the rule id is taken.
        """
        with self._lock:
            rule = self.compiler.compile_rule(source, name=name, rule_id=rule_id, **options)
            return self.add(rule)

    def add_template(self, template_id: str, rule_id: str | None = None, **overrides: Any) -> Rule:
        """Add a rule from the built-in template gallery.

        Raises:
            RuleSetError: If the template does not exist.
            DuplicateRuleError: If the rule id is taken.
        """
        template = get_template(template_id)
        if template is None:
            raise RuleSetError(f"Unknown rule template '{template_id}'")
        with self._lock:
            rule = template.to_rule(rule_id, **overrides)
            if rule.group is not None and self._rule_set.get_group(rule.group) is None:
                rule.group = None
            return self.add(rule)

    def remove(self, rule_id: str) -> Rule:
        """Remove a rule and scrub it from every group.

        Raises:
            UnknownRuleError: If no rule has this id.
        """
        with self._lock:
            rule = self.get(rule_id)
            self._rule_set.rules.remove(rule)
            for group in self._rule_set.groups:
                group.rules = [r for r in group.rules if r != rule_id]
            self._touch()
            logger.info("Removed rule %s", rule_id)
            return rule

    def update(self, rule_id: str, **changes: Any) -> Rule:
        """Merge field changes into a rule.

        ``predicate_source`` replaces the predicate with freshly compiled
        custom source. Group changes go through move_to_group().

        Raises:
            UnknownRuleError: If no rule has this id.
            RuleSetError: If ``id`` or an unknown field is passed.
            CompileError: If new predicate source does not compile.
            ValueError: If the result breaks the type/target contract.
        """
        if "id" in changes:
            raise RuleSetError("Rule id cannot be changed; duplicate the rule instead")
        unknown = sorted(set(changes) - UPDATABLE_FIELDS)
        if unknown:
            raise RuleSetError(f"Cannot update rule fields: {', '.join(unknown)}")

        with self._lock:
            rule = self.get(rule_id)
            if changes.get("group") is not None:
                self._require_group(changes["group"])
            fields: dict[str, Any] = {}

            for key in ("name", "description", "enabled"):
                if key in changes:
                    fields[key] = changes[key]
            if "tags" in changes:
                fields["tags"] = list(changes["tags"] or [])
            if "severity" in changes:
                fields["severity"] = RuleSeverity(changes["severity"])
            if "type" in changes:
                fields["type"] = RuleType(changes["type"])
                if "target" not in changes and fields["type"] != RuleType.CUSTOM:
                    fields["target"] = None
            if "target" in changes:
                target = changes["target"]
                fields["target"] = RuleTarget(target) if target is not None else None
            if "predicate_source" in changes:
                source = changes["predicate_source"]
                compiled = self.compiler.compile_predicate(source, rule_id)
                fields["predicate"] = CustomPredicate(source=source, compiled=compiled)

            updated = rule.copy(**fields)
            index = self._rule_set.rules.index(rule)
            self._rule_set.rules[index] = updated

            if "group" in changes:
                self.move_to_group(rule_id, changes["group"])
                updated = self.get(rule_id)
            self._touch()
            return updated

    def set_enabled(self, rule_id: str, enabled: bool) -> Rule:
        """Enable or disable a rule."""
        return self.update(rule_id, enabled=enabled)

    def toggle(self, rule_id: str) -> Rule:
        """Flip a rule's enabled flag."""
        with self._lock:
            return self.set_enabled(rule_id, not self.get(rule_id).enabled)

    def duplicate(self, rule_id: str) -> Rule:
        """Clone a rule under a fresh id.

        The copy is named "<name> (Copy)", belongs to no group and is placed
        right after the original.
        """
        with self._lock:
            original = self.get(rule_id)
            new_id = f"{rule_id}-copy"
            counter = 2
            while self._rule_set.get_rule(new_id) is not None:
                new_id = f"{rule_id}-copy-{counter}"
                counter += 1

            predicate = original.predicate
            if isinstance(predicate, CustomPredicate):
                predicate = CustomPredicate(source=predicate.source)

            clone = original.copy(
                id=new_id,
                name=f"{original.name} (Copy)",
                group=None,
                predicate=predicate,
            )
            index = self._rule_set.rules.index(original)
            self._rule_set.rules.insert(index + 1, clone)
            self._touch()
            logger.info("Duplicated rule %s as %s", rule_id, new_id)
            return clone

    def move_to_group(self, rule_id: str, group_id: str | None) -> Rule:
        """Move a rule into a group, or out of all groups with None.

        Raises:
            UnknownRuleError: If no rule has this id.
            UnknownGroupError: If the group does not exist.
        """
        with self._lock:
            rule = self.get(rule_id)
            target = None
            if group_id is not None:
                target = self._rule_set.get_group(group_id)
                if target is None:
                    raise UnknownGroupError(group_id)

            for group in self._rule_set.groups:
                group.rules = [r for r in group.rules if r != rule_id]
            rule.group = group_id
            if target is not None:
                target.rules.append(rule_id)
            self._touch()
            return rule

    def add_group(self, group_id: str, name: str, description: str = "") -> RuleGroup:
        """Create an empty group.

        Raises:
            RuleSetError: If the group id is taken.
        """
        with self._lock:
            if self._rule_set.get_group(group_id) is not None:
                raise RuleSetError(f"Group with ID '{group_id}' already exists")
            group = RuleGroup(id=group_id, name=name, description=description)
            self._rule_set.groups.append(group)
            self._touch()
            return group

    def remove_group(self, group_id: str) -> RuleGroup:
        """Delete a group; its member rules become ungrouped."""
        with self._lock:
            group = self._require_group(group_id)
            self._rule_set.groups.remove(group)
            for rule in self._rule_set.rules:
                if rule.group == group_id:
                    rule.group = None
            self._touch()
            return group

    def update_group(
        self,
        group_id: str,
        name: str | None = None,
        description: str | None = None,
    ) -> RuleGroup:
        """Rename or re-describe a group."""
        with self._lock:
            group = self._require_group(group_id)
            if name is not None:
                group.name = name
            if description is not None:
                group.description = description
            self._touch()
            return group

    def reorder_group(self, group_id: str, rule_ids: list[str]) -> RuleGroup:
        """Set the display order of a group's members.

        Raises:
            RuleSetError: If ``rule_ids`` is not a permutation of the members.
        """
        with self._lock:
            group = self._require_group(group_id)
            if sorted(rule_ids) != sorted(group.rules):
                raise RuleSetError(f"New order must list exactly the rules of group '{group_id}'")
            group.rules = list(rule_ids)
            self._touch()
            return group

    def apply_preset(self, preset_name: str) -> list[Rule]:
        """Apply a named preset's severity and enablement overrides.

        Rules the preset names that are not in the active set are skipped.

        Raises:
            RuleSetError: If the preset does not exist.
        """
        preset = RULE_PRESETS.get(preset_name)
        if preset is None:
            raise RuleSetError(f"Preset '{preset_name}' not found")

        with self._lock:
            updated = []
            for rule_id, changes in preset["rules"].items():
                if self._rule_set.get_rule(rule_id) is None:
                    logger.debug("Preset %s skips missing rule %s", preset_name, rule_id)
                    continue
                updated.append(self.update(rule_id, **changes))
            logger.info("Applied preset %s to %d rules", preset_name, len(updated))
            return updated

    def import_rule_set(self, rule_set: RuleSet | Mapping[str, Any]) -> RuleSet:
        """Replace the active rule set wholesale.

        Mappings are read through the exchange format. Custom rules are
        compiled before the swap, so a failure leaves the active set as it was.

        Raises:
            CompileError: If a custom rule does not compile.
            RuleSetError: If the data is malformed, a rule id repeats or a
                built-in rule names an unknown validator.
        """
        if isinstance(rule_set, RuleSet):
            incoming = rule_set.copy()
            check_rule_set(incoming)
            for rule in incoming.rules:
                self.compiler.ensure_compiled(rule)
        else:
            incoming = rule_set_from_dict(dict(rule_set), self.compiler)

        with self._lock:
            self._rule_set = incoming
            logger.info("Imported rule set %s with %d rules", incoming.id, len(incoming.rules))
            return incoming

    def export_rule_set(self) -> RuleSet:
        """Snapshot of the active rule set with a fresh modification time."""
        with self._lock:
            snapshot = self._rule_set.copy()
        snapshot.metadata.last_modified = _now()
        return snapshot

    def evaluate(
        self,
        document: ContractDocument | Mapping[str, Any],
        groups: Collection[str | None] | None = None,
    ) -> list[Violation]:
        """Evaluate the active rule set against a document."""
        with self._lock:
            return self.engine.evaluate(document, self._rule_set, groups=groups)

    def _require_group(self, group_id: str) -> RuleGroup:
        group = self._rule_set.get_group(group_id)
        if group is None:
            raise UnknownGroupError(group_id)
        return group

    def _touch(self) -> None:
        self._rule_set.metadata.last_modified = _now()
