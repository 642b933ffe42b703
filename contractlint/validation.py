"""Full validation pass: parse, structural checks, then style rules."""

from __future__ import annotations

import logging
from collections.abc import Collection
from dataclasses import dataclass, field
from typing import Any

from contractlint.config import Settings
from contractlint.contract.document import ContractDocument
from contractlint.contract.parser import parse_document
from contractlint.contract.structure import StructuralChecker, parse_error_violation
from contractlint.errors import ParseError
from contractlint.rules.compiler import RuleCompiler
from contractlint.rules.engine import RulesEngine
from contractlint.rules.schemas import RuleSet, RuleSeverity, Violation

logger = logging.getLogger(__name__)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def format_violation(violation: Violation) -> str:
    """Render a violation with its location and suggestions."""
    message = f"[{violation.severity.value.upper()}] {violation.message}"
    if violation.path:
        message += f"\n   at {violation.path}"
    if violation.line:
        message += f" (line {violation.line})"
    if violation.suggestions:
        message += "\n   Suggestions:"
        for suggestion in violation.suggestions:
            message += f"\n   - {suggestion}"
    return message


@dataclass
class ValidationReport:
    """Result of validating one contract."""

    violations: list[Violation] = field(default_factory=list)
    parse_failed: bool = False
    source: str | None = None  # File the contract came from, if any

    @property
    def error_count(self) -> int:
        """Count of errors."""
        return self._count(RuleSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        """Count of warnings."""
        return self._count(RuleSeverity.WARNING)

    @property
    def info_count(self) -> int:
        """Count of info messages."""
        return self._count(RuleSeverity.INFO)

    @property
    def passed(self) -> bool:
        """Check if validation passed (no errors)."""
        return self.error_count == 0

    def _count(self, severity: RuleSeverity) -> int:
        return sum(1 for v in self.violations if v.severity == severity)

    def summary(self) -> str:
        """One-line count of violations by severity."""
        return (
            f"Found {_plural(self.error_count, 'error')}, "
            f"{_plural(self.warning_count, 'warning')}, "
            f"and {_plural(self.info_count, 'info message')}."
        )

    def fix_suggestions(self) -> list[str]:
        """Suggestions grouped under the message they fix."""
        return [
            f"{v.message}:\n" + "\n".join(f"- {s}" for s in v.suggestions)
            for v in self.violations
            if v.suggestions
        ]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "source": self.source,
            "passed": self.passed,
            "parse_failed": self.parse_failed,
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "info_count": self.info_count,
            "summary": self.summary(),
            "violations": [v.to_dict() for v in self.violations],
        }


def validate_document(
    document: ContractDocument | dict[str, Any],
    rule_set: RuleSet,
    settings: Settings | None = None,
    groups: Collection[str | None] | None = None,
) -> ValidationReport:
    """Run structural checks then style rules on a parsed document.

    Args:
        document: Parsed document or raw mapping.
        rule_set: Rule set to evaluate.
        settings: Project settings.
        groups: Optional group filter for style rules.

    Returns:
        ValidationReport with structural violations first.
    """
    settings = settings or Settings()
    violations = StructuralChecker(settings).check(document)
    engine = RulesEngine(RuleCompiler(settings))
    violations.extend(engine.evaluate(document, rule_set, groups=groups))

    return ValidationReport(violations=violations)


def validate_source(
    source: str,
    rule_set: RuleSet,
    settings: Settings | None = None,
    groups: Collection[str | None] | None = None,
    filename: str | None = None,
) -> ValidationReport:
    """Parse contract text and validate it.

    A parse failure yields a single error violation and style rules are not
    evaluated.
    """
    try:
        document = parse_document(source)
    except ParseError as e:
        logger.debug("Parse failed for %s: %s", filename or "<source>", e)
        return ValidationReport(
            violations=[parse_error_violation(e)],
            parse_failed=True,
            source=filename,
        )

    report = validate_document(document, rule_set, settings=settings, groups=groups)
    report.source = filename
    return report
