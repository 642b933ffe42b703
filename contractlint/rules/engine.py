"""Rules engine for evaluating style rules against API contracts."""

from __future__ import annotations

import copy
import logging
from collections.abc import Collection, Mapping
from typing import Any

from contractlint.contract.document import ContractDocument, as_document, operation_label
from contractlint.errors import CompileError, PredicateRuntimeError
from contractlint.rules.compiler import RuleCompiler
from contractlint.rules.schemas import (
    BuiltinPredicate,
    PredicateResult,
    Rule,
    RuleSet,
    RuleSeverity,
    RuleTarget,
    Violation,
)
from contractlint.rules.validators import get_validator

logger = logging.getLogger(__name__)


class RulesEngine:
    """Engine that walks a contract's routes and operations and applies rules.

    Route-targeted rules (naming, structure, and custom rules declared on
    routes) receive each route key. Operation-targeted rules (content, and
    custom rules declared on operations) receive each operation mapping under
    the route. Rules run in rule set order and routes in declaration order, so
    output is deterministic for a fixed input.
    """

    def __init__(self, compiler: RuleCompiler | None = None) -> None:
        """Initialize the rules engine.

        Args:
            compiler: Compiler used for custom rules loaded without a compiled
                predicate.
        """
        self.compiler = compiler or RuleCompiler()

    def evaluate(
        self,
        document: ContractDocument | Mapping[str, Any],
        rule_set: RuleSet,
        groups: Collection[str | None] | None = None,
    ) -> list[Violation]:
        """Evaluate all enabled rules against a document.

        Args:
            document: Parsed document or raw mapping.
            rule_set: Rule set to apply.
            groups: Optional group ids to restrict evaluation to; ``None``
                inside the collection selects ungrouped rules.

        Returns:
            Violations for every failed rule invocation.
        """
        try:
            doc = as_document(document)
        except TypeError:
            logger.debug("Skipping rule evaluation for a non-mapping document")
            return []

        def selected(rule: Rule) -> bool:
            return groups is None or rule_set.effective_group(rule) in groups

        route_rules = [r for r in rule_set.enabled_rules(RuleTarget.ROUTE) if selected(r)]
        operation_rules = [r for r in rule_set.enabled_rules(RuleTarget.OPERATION) if selected(r)]

        violations: list[Violation] = []
        for route, path_item in doc.routes():
            route_line = doc.line_of("paths", route)
            for rule in route_rules:
                violation = self._run_rule(rule, route, route, route_line)
                if violation:
                    violations.append(violation)

            for method, operation in doc.operations(path_item):
                label = operation_label(route, method)
                line = doc.line_of("paths", route, method)
                for rule in operation_rules:
                    violation = self._run_rule(rule, operation, label, line, route=route)
                    if violation:
                        violations.append(violation)

        return violations

    def _run_rule(
        self,
        rule: Rule,
        value: Any,
        path: str,
        line: int | None,
        route: str | None = None,
    ) -> Violation | None:
        """Execute a single rule against one value.

        Args:
            rule: The rule to run.
            value: Route key or operation mapping.
            path: Location label for the violation.
            line: Source line of the value, if known.
            route: Route key an operation belongs to; built-in operation
                validators receive it as the ``route`` argument.

        Returns:
            Violation if the rule fails or malfunctions, None otherwise.
        """
        try:
            result = self._invoke(rule, copy.deepcopy(value), route)
        except PredicateRuntimeError as e:
            logger.warning("%s at %s", e, path)
            return self._malfunction(rule, str(e), path, line)
        except Exception as e:
            error = PredicateRuntimeError(rule.id, f"{type(e).__name__}: {e}")
            logger.warning("%s at %s", error, path)
            return self._malfunction(rule, str(error), path, line)

        if result.valid:
            return None

        return Violation(
            rule_id=rule.id,
            rule_name=rule.name,
            severity=rule.severity,
            message=result.message or rule.description or f"{rule.name} failed",
            path=path,
            suggestions=result.suggestions,
            line=line,
            rule=rule,
        )

    def _invoke(self, rule: Rule, value: Any, route: str | None = None) -> PredicateResult:
        """Resolve a rule's execution strategy and call it.

        Raises:
            PredicateRuntimeError: If the predicate cannot be resolved or
                returns something that is not a predicate result.
        """
        predicate = rule.predicate
        if isinstance(predicate, BuiltinPredicate):
            fn = get_validator(predicate.ref)
            if fn is None:
                raise PredicateRuntimeError(rule.id, f"unknown built-in validator '{predicate.ref}'")
            args = dict(predicate.args)
            if route is not None:
                args["route"] = route
            raw = fn(value, **args)
        else:
            try:
                fn = self.compiler.ensure_compiled(rule)
            except CompileError as e:
                raise PredicateRuntimeError(rule.id, f"predicate does not compile: {e}") from e
            raw = fn(value)

        try:
            return PredicateResult.coerce(raw)
        except TypeError as e:
            raise PredicateRuntimeError(rule.id, str(e)) from e

    def _malfunction(self, rule: Rule, message: str, path: str, line: int | None) -> Violation:
        return Violation(
            rule_id=rule.id,
            rule_name=rule.name,
            severity=RuleSeverity.ERROR,
            message=message,
            path=path,
            suggestions=("Fix the rule's predicate or disable the rule",),
            line=line,
            rule=rule,
        )


def evaluate_rules(
    document: ContractDocument | Mapping[str, Any],
    rule_set: RuleSet,
    groups: Collection[str | None] | None = None,
) -> list[Violation]:
    """Evaluate a rule set against a document with a default engine."""
    return RulesEngine().evaluate(document, rule_set, groups=groups)
