"""Rules system for contract style validation."""

from contractlint.rules.schemas import (
    BuiltinPredicate,
    CustomPredicate,
    PredicateResult,
    Rule,
    RuleGroup,
    RuleSet,
    RuleSetMetadata,
    RuleSeverity,
    RuleTarget,
    RuleType,
    Violation,
)
from contractlint.rules.engine import RulesEngine, evaluate_rules
from contractlint.rules.compiler import RuleCompiler
from contractlint.rules.manager import RuleSetManager, default_rule_set
from contractlint.rules.storage import load_rule_set, save_rule_set

__all__ = [
    "BuiltinPredicate",
    "CustomPredicate",
    "PredicateResult",
    "Rule",
    "RuleCompiler",
    "RuleGroup",
    "RuleSet",
    "RuleSetManager",
    "RuleSetMetadata",
    "RuleSeverity",
    "RuleTarget",
    "RuleType",
    "RulesEngine",
    "Violation",
    "default_rule_set",
    "evaluate_rules",
    "load_rule_set",
    "save_rule_set",
]
