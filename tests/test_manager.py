"""Tests for RuleSetManager."""

import threading

import pytest

from contractlint.errors import (
    CompileError,
    DuplicateRuleError,
    RuleSetError,
    UnknownGroupError,
    UnknownRuleError,
)
from contractlint.rules.manager import RuleSetManager, default_rule_set
from contractlint.rules.schemas import (
    BuiltinPredicate,
    CustomPredicate,
    RuleSet,
    RuleSeverity,
    RuleTarget,
    RuleType,
)
from contractlint.rules.storage import rule_set_to_dict
from contractlint.rules.validators import get_template


class TestDefaultRuleSet:
    """Tests for the built-in default style guide."""

    def test_contents(self) -> None:
        """Test the default rules and groups."""
        rule_set = default_rule_set()

        assert rule_set.id == "default"
        assert rule_set.rule_ids() == ["plural-resource-names", "version-in-path", "operation-summary"]
        assert [g.id for g in rule_set.groups] == ["naming", "structure", "content", "security"]
        assert rule_set.get_group("naming").rules == ["plural-resource-names"]
        assert rule_set.get_group("security").rules == []

    def test_independent_instances(self) -> None:
        """Test each call builds a separate rule set."""
        first, second = default_rule_set(), default_rule_set()
        first.rules[0].enabled = False

        assert second.rules[0].enabled


class TestAddRemove:
    """Tests for adding and removing rules."""

    def test_add(self, manager: RuleSetManager) -> None:
        """Test adding a rule appends it and registers group membership."""
        rule = get_template("require-auth").to_rule()
        manager.add(rule)

        assert manager.rule_set.rule_ids()[-1] == "require-auth"
        assert manager.rule_set.get_group("security").rules == ["require-auth"]

    def test_add_duplicate(self, manager: RuleSetManager) -> None:
        """Test adding an existing id raises."""
        with pytest.raises(DuplicateRuleError, match="plural-resource-names"):
            manager.add(get_template("plural-resource-names").to_rule())

        assert len(manager.rule_set.rules) == 3

    def test_add_custom(self, manager: RuleSetManager) -> None:
        """Test compiling and adding a custom rule."""
        rule = manager.add_custom("'admin' not in value", name="No Admin Routes", severity="error")

        assert rule.id == "custom-no-admin-routes"
        assert manager.get(rule.id) is rule
        assert rule.severity == RuleSeverity.ERROR

    def test_add_custom_bad_source(self, manager: RuleSetManager) -> None:
        """Test a compile failure leaves the rule set unchanged."""
        before = manager.rule_set.rule_ids()

        with pytest.raises(CompileError):
            manager.add_custom("import os\nreturn True", name="Sneaky")

        assert manager.rule_set.rule_ids() == before

    def test_add_template(self, manager: RuleSetManager) -> None:
        """Test adding from the gallery, with an override."""
        rule = manager.add_template("lowercase-path-segments", severity=RuleSeverity.ERROR)

        assert rule.id == "lowercase-path-segments"
        assert rule.severity == RuleSeverity.ERROR

    def test_add_template_twice_with_new_id(self, manager: RuleSetManager) -> None:
        """Test the same template can be added under another id."""
        manager.add_template("required-headers")
        rule = manager.add_template("required-headers", rule_id="required-headers-2")

        assert rule.id == "required-headers-2"

    def test_add_unknown_template(self, manager: RuleSetManager) -> None:
        """Test unknown templates are rejected."""
        with pytest.raises(RuleSetError, match="Unknown rule template"):
            manager.add_template("no-such-template")

    def test_remove(self, manager: RuleSetManager) -> None:
        """Test removing a rule scrubs it from its group."""
        manager.remove("plural-resource-names")

        assert manager.rule_set.get_rule("plural-resource-names") is None
        assert manager.rule_set.get_group("naming").rules == []

    def test_remove_unknown(self, manager: RuleSetManager) -> None:
        """Test removing a missing rule raises."""
        with pytest.raises(UnknownRuleError):
            manager.remove("missing")


class TestUpdate:
    """Tests for updating rules."""

    def test_update_fields(self, manager: RuleSetManager) -> None:
        """Test merging field changes."""
        rule = manager.update("operation-summary", severity="error", name="Summary Required", tags=["docs"])

        assert rule.severity == RuleSeverity.ERROR
        assert rule.name == "Summary Required"
        assert rule.tags == ["docs"]
        assert manager.get("operation-summary") is rule

    def test_update_id_rejected(self, manager: RuleSetManager) -> None:
        """Test the id cannot change."""
        with pytest.raises(RuleSetError, match="id cannot be changed"):
            manager.update("operation-summary", id="renamed")

    def test_update_unknown_field(self, manager: RuleSetManager) -> None:
        """Test unknown fields are rejected."""
        with pytest.raises(RuleSetError, match="bogus"):
            manager.update("operation-summary", bogus=1)

    def test_update_predicate_source(self, manager: RuleSetManager) -> None:
        """Test new source is compiled into the rule."""
        manager.add_custom("True", name="Always", rule_id="always")
        rule = manager.update("always", predicate_source="False")

        assert rule.predicate_source == "False"
        assert rule.predicate.compiled("/a") is False

    def test_update_bad_source_keeps_rule(self, manager: RuleSetManager) -> None:
        """Test a failed recompile leaves the old predicate in place."""
        manager.add_custom("True", name="Always", rule_id="always")

        with pytest.raises(CompileError):
            manager.update("always", predicate_source="open('x')")

        assert manager.get("always").predicate_source == "True"

    def test_update_type_rederives_target(self, manager: RuleSetManager) -> None:
        """Test changing type moves the rule to the natural target of the new type."""
        manager.add_custom("True", name="Always", rule_id="always")
        rule = manager.update("always", type="content")

        assert rule.type == RuleType.CONTENT
        assert rule.target == RuleTarget.OPERATION

    def test_update_invalid_target(self, manager: RuleSetManager) -> None:
        """Test type/target mismatches are rejected without changing the rule."""
        with pytest.raises(ValueError):
            manager.update("plural-resource-names", target="operation")

        assert manager.get("plural-resource-names").target == RuleTarget.ROUTE

    def test_update_group(self, manager: RuleSetManager) -> None:
        """Test group changes keep membership lists in sync."""
        manager.update("operation-summary", group="naming")

        assert manager.get("operation-summary").group == "naming"
        assert manager.rule_set.get_group("content").rules == []
        assert manager.rule_set.get_group("naming").rules == ["plural-resource-names", "operation-summary"]

    def test_update_unknown_group(self, manager: RuleSetManager) -> None:
        """Test an unknown group fails before anything changes."""
        with pytest.raises(UnknownGroupError):
            manager.update("operation-summary", severity="error", group="nowhere")

        assert manager.get("operation-summary").severity == RuleSeverity.WARNING

    def test_toggle(self, manager: RuleSetManager) -> None:
        """Test toggling flips the enabled flag."""
        assert manager.toggle("version-in-path").enabled is False
        assert manager.toggle("version-in-path").enabled is True

    def test_set_enabled(self, manager: RuleSetManager) -> None:
        """Test disabling a rule."""
        manager.set_enabled("version-in-path", False)
        assert not manager.get("version-in-path").enabled


class TestDuplicate:
    """Tests for duplicating rules."""

    def test_duplicate(self, manager: RuleSetManager) -> None:
        """Test the copy gets a derived id and name, and no group."""
        clone = manager.duplicate("plural-resource-names")

        assert clone.id == "plural-resource-names-copy"
        assert clone.name == "Plural Resource Names (Copy)"
        assert clone.group is None
        assert manager.rule_set.rule_ids()[1] == "plural-resource-names-copy"

    def test_duplicate_ids_are_unique(self, manager: RuleSetManager) -> None:
        """Test repeated duplication keeps ids unique."""
        ids = [manager.duplicate("version-in-path").id for _ in range(3)]

        assert ids == ["version-in-path-copy", "version-in-path-copy-2", "version-in-path-copy-3"]

    def test_duplicate_then_remove_original(self, manager: RuleSetManager) -> None:
        """Test the copy survives with the original's behavior."""
        original = manager.get("version-in-path")
        manager.duplicate("version-in-path")
        manager.remove("version-in-path")

        remaining = [r for r in manager.rule_set.rules if r.id.startswith("version-in-path")]
        assert len(remaining) == 1
        copy = remaining[0]
        assert copy.type == original.type
        assert copy.severity == original.severity
        assert copy.description == original.description
        assert copy.predicate == original.predicate
        assert copy.enabled == original.enabled

    def test_duplicate_custom_rule_is_independent(self, manager: RuleSetManager) -> None:
        """Test editing a duplicated custom rule leaves the original alone."""
        manager.add_custom("True", name="Always", rule_id="always")
        manager.duplicate("always")
        manager.update("always-copy", predicate_source="False")

        assert manager.get("always").predicate_source == "True"
        assert isinstance(manager.get("always-copy").predicate, CustomPredicate)

    def test_duplicate_unknown(self, manager: RuleSetManager) -> None:
        """Test duplicating a missing rule raises."""
        with pytest.raises(UnknownRuleError):
            manager.duplicate("missing")


class TestGroups:
    """Tests for group operations."""

    def test_move_to_group(self, manager: RuleSetManager) -> None:
        """Test a rule belongs to at most one group."""
        manager.move_to_group("version-in-path", "naming")

        assert manager.get("version-in-path").group == "naming"
        assert "version-in-path" not in manager.rule_set.get_group("structure").rules
        assert "version-in-path" in manager.rule_set.get_group("naming").rules

    def test_move_out_of_groups(self, manager: RuleSetManager) -> None:
        """Test moving to None ungroups a rule."""
        manager.move_to_group("version-in-path", None)

        assert manager.get("version-in-path").group is None
        assert all("version-in-path" not in g.rules for g in manager.rule_set.groups)

    def test_move_to_unknown_group(self, manager: RuleSetManager) -> None:
        """Test moving to a missing group raises."""
        with pytest.raises(UnknownGroupError):
            manager.move_to_group("version-in-path", "missing")

    def test_add_group(self, manager: RuleSetManager) -> None:
        """Test creating a group."""
        group = manager.add_group("docs", "Documentation", "Docs rules")

        assert manager.rule_set.get_group("docs") is group
        assert group.rules == []

    def test_add_existing_group(self, manager: RuleSetManager) -> None:
        """Test group ids are unique."""
        with pytest.raises(RuleSetError, match="already exists"):
            manager.add_group("naming", "Naming")

    def test_remove_group(self, manager: RuleSetManager) -> None:
        """Test removing a group ungroups its members."""
        manager.remove_group("naming")

        assert manager.rule_set.get_group("naming") is None
        assert manager.get("plural-resource-names").group is None

    def test_update_group(self, manager: RuleSetManager) -> None:
        """Test renaming a group."""
        group = manager.update_group("naming", name="Names", description="How things are named")

        assert group.name == "Names"
        assert group.description == "How things are named"

    def test_reorder_group(self, manager: RuleSetManager) -> None:
        """Test setting the display order of a group."""
        manager.move_to_group("version-in-path", "naming")
        group = manager.reorder_group("naming", ["version-in-path", "plural-resource-names"])

        assert group.rules == ["version-in-path", "plural-resource-names"]

    def test_reorder_group_must_be_permutation(self, manager: RuleSetManager) -> None:
        """Test reordering cannot add or drop members."""
        with pytest.raises(RuleSetError):
            manager.reorder_group("naming", ["version-in-path"])

    def test_list_rules_by_group(self, manager: RuleSetManager) -> None:
        """Test listing the members of one group."""
        assert [r.id for r in manager.list_rules("content")] == ["operation-summary"]


class TestPresets:
    """Tests for applying named presets."""

    def test_strict(self, manager: RuleSetManager) -> None:
        """Test the strict preset raises severities of rules in the set."""
        updated = manager.apply_preset("strict")

        assert [r.id for r in updated] == ["plural-resource-names", "operation-summary"]
        assert manager.get("plural-resource-names").severity == RuleSeverity.ERROR
        assert manager.get("operation-summary").severity == RuleSeverity.ERROR
        assert manager.get("version-in-path").severity == RuleSeverity.WARNING

    def test_missing_rules_are_skipped(self, manager: RuleSetManager) -> None:
        """Test rules named by a preset but absent from the set are not added."""
        manager.apply_preset("recommended")

        assert manager.rule_set.get_rule("require-auth") is None
        assert len(manager.rule_set.rules) == 3

    def test_applies_to_added_rules(self, manager: RuleSetManager) -> None:
        """Test a preset covers template rules added later."""
        manager.add_template("require-auth", severity=RuleSeverity.INFO)
        manager.apply_preset("recommended")

        assert manager.get("require-auth").severity == RuleSeverity.ERROR

    def test_unknown_preset(self, manager: RuleSetManager) -> None:
        """Test an unknown preset name raises."""
        with pytest.raises(RuleSetError, match="Preset 'lenient' not found"):
            manager.apply_preset("lenient")


class TestImportExport:
    """Tests for wholesale replacement and snapshots."""

    def test_export_is_snapshot(self, manager: RuleSetManager) -> None:
        """Test later edits do not leak into an export."""
        snapshot = manager.export_rule_set()
        manager.remove("version-in-path")

        assert "version-in-path" in snapshot.rule_ids()
        assert snapshot.metadata.last_modified

    def test_import_mapping(self, manager: RuleSetManager) -> None:
        """Test importing the exchange representation."""
        data = {
            "id": "team",
            "name": "Team Guide",
            "rules": [
                {"id": "lowercase-path-segments"},
                {"id": "no-admin", "name": "No Admin", "type": "custom", "predicateSource": "'admin' not in value"},
            ],
            "groups": [{"id": "naming", "name": "Naming", "rules": ["lowercase-path-segments"]}],
        }
        imported = manager.import_rule_set(data)

        assert manager.rule_set is imported
        assert imported.rule_ids() == ["lowercase-path-segments", "no-admin"]
        assert imported.get_rule("no-admin").predicate.compiled is not None

    def test_import_failure_keeps_active_set(self, manager: RuleSetManager) -> None:
        """Test a custom rule that does not compile aborts the import."""
        before = manager.rule_set
        data = {
            "id": "bad",
            "name": "Bad",
            "rules": [{"id": "evil", "name": "Evil", "type": "custom", "predicateSource": "import os"}],
        }

        with pytest.raises(CompileError):
            manager.import_rule_set(data)

        assert manager.rule_set is before

    def test_import_rule_set_object(self, manager: RuleSetManager) -> None:
        """Test importing a RuleSet takes a copy."""
        other = RuleSetManager()
        other.add_custom("True", name="Always", rule_id="always")
        source = other.export_rule_set()

        manager.import_rule_set(source)
        source.rules.clear()

        assert "always" in manager.rule_set.rule_ids()

    def test_import_object_with_duplicate_ids(self, manager: RuleSetManager) -> None:
        """Test a RuleSet with repeated ids is refused."""
        before = manager.rule_set
        rule = get_template("lowercase-path-segments").to_rule()

        with pytest.raises(RuleSetError, match="Duplicate"):
            manager.import_rule_set(RuleSet(id="dup", name="Dup", rules=[rule, rule.copy()]))

        assert manager.rule_set is before

    def test_import_object_with_unknown_builtin(self, manager: RuleSetManager) -> None:
        """Test a RuleSet referencing a missing validator is refused."""
        before = manager.rule_set
        rule = get_template("lowercase-path-segments").to_rule(predicate=BuiltinPredicate("check_missing"))

        with pytest.raises(RuleSetError, match="check_missing"):
            manager.import_rule_set(RuleSet(id="bad", name="Bad", rules=[rule]))

        assert manager.rule_set is before

    def test_round_trip(self, manager: RuleSetManager) -> None:
        """Test export then import reproduces the rule set."""
        manager.add_custom("True", name="Always", rule_id="always", group="content")
        exported = rule_set_to_dict(manager.export_rule_set())

        fresh = RuleSetManager()
        fresh.import_rule_set(exported)

        assert fresh.rule_set.rule_ids() == manager.rule_set.rule_ids()
        assert fresh.get("always").group == "content"


class TestEvaluate:
    """Tests for evaluating through the manager."""

    def test_evaluate(self, manager: RuleSetManager) -> None:
        """Test evaluation uses the active rule set."""
        violations = manager.evaluate({"paths": {"/user": {}}})
        assert [v.rule_id for v in violations] == ["plural-resource-names", "version-in-path"]

    def test_evaluate_after_disable(self, manager: RuleSetManager) -> None:
        """Test disabled rules drop out of evaluation."""
        manager.set_enabled("plural-resource-names", False)
        violations = manager.evaluate({"paths": {"/user": {}}})

        assert [v.rule_id for v in violations] == ["version-in-path"]

    def test_independent_managers(self) -> None:
        """Test managers do not share state."""
        first, second = RuleSetManager(), RuleSetManager()
        first.remove("version-in-path")

        assert "version-in-path" in second.rule_set.rule_ids()

    def test_concurrent_edits(self) -> None:
        """Test concurrent duplication yields unique ids."""
        manager = RuleSetManager()
        threads = [threading.Thread(target=manager.duplicate, args=("version-in-path",)) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        ids = manager.rule_set.rule_ids()
        assert len(ids) == len(set(ids)) == 11
