"""contractlint - style and structure validation for OpenAPI contracts."""

__version__ = "0.1.0"

from contractlint.contract import check_structure, parse_document
from contractlint.rules import RuleSetManager, default_rule_set, evaluate_rules
from contractlint.validation import ValidationReport, validate_document, validate_source

__all__ = [
    "RuleSetManager",
    "ValidationReport",
    "__version__",
    "check_structure",
    "default_rule_set",
    "evaluate_rules",
    "parse_document",
    "validate_document",
    "validate_source",
]
