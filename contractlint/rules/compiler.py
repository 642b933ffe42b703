"""Compiler for author-supplied rule predicates.

Predicate source is the body of a function receiving one parameter,
``value``, and returning either a bool or a mapping shaped like
``{"valid": bool, "message": str, "suggestions": [str]}``. A body made of a
single expression is returned implicitly::

    segments = [s for s in value.split("/") if s]
    return {"valid": all(s.islower() for s in segments),
            "message": f"{value} has uppercase segments"}

The source is untrusted. It is statically screened, executed with a reduced
builtins table, and every call runs under a line-step and wall-clock budget.
"""

from __future__ import annotations

import ast
import builtins
import logging
import re
import sys
import textwrap
import time
from types import FrameType, SimpleNamespace
from typing import Any, Callable

from contractlint.config import Settings
from contractlint.errors import BudgetExceededError, CompileError
from contractlint.rules.schemas import (
    CustomPredicate,
    Rule,
    RuleSeverity,
    RuleTarget,
    RuleType,
)

logger = logging.getLogger(__name__)

PARAMETER = "value"

SAFE_BUILTINS: dict[str, Any] = {
    name: getattr(builtins, name)
    for name in (
        "abs", "all", "any", "bool", "dict", "enumerate", "filter", "float",
        "int", "isinstance", "len", "list", "map", "max", "min", "range",
        "reversed", "round", "set", "sorted", "str", "sum", "tuple", "zip",
    )
}

# Exposed to predicates as ``re``; only functions, no module internals.
SAFE_RE = SimpleNamespace(
    compile=re.compile,
    escape=re.escape,
    findall=re.findall,
    fullmatch=re.fullmatch,
    match=re.match,
    search=re.search,
    split=re.split,
    sub=re.sub,
    IGNORECASE=re.IGNORECASE,
)

FORBIDDEN_NAMES = frozenset({
    "eval", "exec", "compile", "open", "input", "breakpoint", "help",
    "getattr", "setattr", "delattr", "globals", "locals", "vars", "dir",
    "type", "object", "super", "memoryview", "exit", "quit",
})

# str.format can reach attributes through replacement fields; f-strings cannot.
FORBIDDEN_ATTRIBUTES = frozenset({"format", "format_map", "mro"})

# Generator, coroutine, frame, traceback and code objects lead back to host globals.
FORBIDDEN_ATTRIBUTE_PREFIXES = ("_", "gi_", "cr_", "ag_", "f_", "tb_", "co_")

FORBIDDEN_NODES: dict[type, str] = {
    ast.Import: "imports are not allowed",
    ast.ImportFrom: "imports are not allowed",
    ast.Global: "'global' is not allowed",
    ast.Nonlocal: "'nonlocal' is not allowed",
    ast.ClassDef: "class definitions are not allowed",
    ast.AsyncFunctionDef: "async functions are not allowed",
    ast.Await: "'await' is not allowed",
    ast.Yield: "'yield' is not allowed",
    ast.YieldFrom: "'yield' is not allowed",
    ast.Try: "exception handling is not allowed; failures are reported by the engine",
}
if hasattr(ast, "TryStar"):
    FORBIDDEN_NODES[ast.TryStar] = FORBIDDEN_NODES[ast.Try]


class _SandboxVisitor(ast.NodeVisitor):
    """Reject constructs that reach outside the predicate's capabilities."""

    def __init__(self, line_offset: int) -> None:
        self.line_offset = line_offset

    def _reject(self, node: ast.AST, reason: str) -> None:
        line = getattr(node, "lineno", None)
        raise CompileError(
            f"Predicate rejected: {reason}",
            line=line - self.line_offset if line else None,
        )

    def generic_visit(self, node: ast.AST) -> None:
        reason = FORBIDDEN_NODES.get(type(node))
        if reason:
            self._reject(node, reason)
        super().generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id.startswith("__"):
            self._reject(node, f"name '{node.id}' is not allowed")
        if node.id in FORBIDDEN_NAMES:
            self._reject(node, f"'{node.id}' is not available to predicates")
        self.generic_visit(node)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith(FORBIDDEN_ATTRIBUTE_PREFIXES) or node.attr in FORBIDDEN_ATTRIBUTES:
            self._reject(node, f"attribute '{node.attr}' is not allowed")
        self.generic_visit(node)


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class SandboxedPredicate:
    """Callable wrapper that runs a compiled predicate under a budget."""

    def __init__(
        self,
        rule_id: str,
        fn: Callable[[Any], Any],
        filename: str,
        step_budget: int,
        timeout: float,
    ) -> None:
        self.rule_id = rule_id
        self.fn = fn
        self.filename = filename
        self.step_budget = step_budget
        self.timeout = timeout

    def __call__(self, value: Any) -> Any:
        """Invoke the predicate.

        Raises:
            BudgetExceededError: If the step or time budget is exhausted.
        """
        steps = 0
        deadline = time.monotonic() + self.timeout

        def trace_lines(frame: FrameType, event: str, arg: Any) -> Any:
            nonlocal steps
            if event == "line":
                steps += 1
                if steps > self.step_budget:
                    raise BudgetExceededError(
                        self.rule_id, f"exceeded step budget of {self.step_budget}"
                    )
                if time.monotonic() > deadline:
                    raise BudgetExceededError(
                        self.rule_id, f"exceeded time budget of {self.timeout}s"
                    )
            return trace_lines

        def trace_calls(frame: FrameType, event: str, arg: Any) -> Any:
            if frame.f_code.co_filename == self.filename:
                return trace_lines
            return None

        previous = sys.gettrace()
        sys.settrace(trace_calls)
        try:
            return self.fn(value)
        finally:
            sys.settrace(previous)


class RuleCompiler:
    """Turn predicate source text into sandboxed callables and rules."""

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize compiler.

        Args:
            settings: Project settings providing predicate budgets.
        """
        self.settings = settings or Settings()

    def compile_predicate(self, source: str, rule_id: str = "custom") -> SandboxedPredicate:
        """Compile predicate source into a callable.

        Args:
            source: Function body using the ``value`` parameter.
            rule_id: Rule id, used in error messages and the code filename.

        Returns:
            Sandboxed callable taking one argument.

        Raises:
            CompileError: On syntax errors or disallowed constructs.
        """
        body = textwrap.dedent(source).strip("\n")
        if not body.strip():
            raise CompileError("Predicate source is empty")

        try:
            standalone = ast.parse(body)
        except SyntaxError as e:
            raise CompileError(f"Invalid predicate syntax: {e.msg}", line=e.lineno) from e

        if len(standalone.body) == 1 and isinstance(standalone.body[0], ast.Expr):
            body = f"return (\n{body}\n)"
            line_offset = 2
        else:
            line_offset = 1

        filename = f"<rule:{rule_id}>"
        wrapped = f"def predicate({PARAMETER}):\n" + textwrap.indent(body, "    ")
        try:
            tree = ast.parse(wrapped, filename=filename)
        except SyntaxError as e:
            line = e.lineno - line_offset if e.lineno else None
            raise CompileError(f"Invalid predicate syntax: {e.msg}", line=line) from e

        _SandboxVisitor(line_offset).visit(tree)

        try:
            code = compile(tree, filename, "exec")
        except SyntaxError as e:
            line = e.lineno - line_offset if e.lineno else None
            raise CompileError(f"Invalid predicate syntax: {e.msg}", line=line) from e

        namespace: dict[str, Any] = {"__builtins__": dict(SAFE_BUILTINS), "re": SAFE_RE}
        exec(code, namespace)
        logger.debug("Compiled predicate for rule %s", rule_id)

        return SandboxedPredicate(
            rule_id=rule_id,
            fn=namespace["predicate"],
            filename=filename,
            step_budget=self.settings.predicate_step_budget,
            timeout=self.settings.predicate_timeout,
        )

    def compile_rule(
        self,
        source: str,
        *,
        name: str,
        description: str = "",
        type: RuleType | str = RuleType.CUSTOM,
        severity: RuleSeverity | str = RuleSeverity.WARNING,
        target: RuleTarget | str | None = None,
        rule_id: str | None = None,
        group: str | None = None,
        tags: list[str] | None = None,
        enabled: bool = True,
    ) -> Rule:
        """Compile predicate source into a complete rule.

        Args:
            source: Predicate function body.
            name: Human-readable rule name.
            description: What the rule checks.
            type: Rule type; custom rules must also say what they target.
            severity: Violation severity.
            target: Input shape ("route" or "operation").
            rule_id: Rule id; derived from the name when omitted.
            group: Optional group id.
            tags: Optional tags.
            enabled: Whether the rule starts enabled.

        Returns:
            Rule with a compiled custom predicate.

        Raises:
            CompileError: If the source cannot be compiled.
        """
        rule_id = rule_id or f"custom-{_slugify(name)}"
        compiled = self.compile_predicate(source, rule_id)
        return Rule(
            id=rule_id,
            name=name,
            type=RuleType(type),
            predicate=CustomPredicate(source=source, compiled=compiled),
            severity=RuleSeverity(severity),
            description=description,
            group=group,
            enabled=enabled,
            tags=list(tags or []),
            target=RuleTarget(target) if target is not None else None,
        )

    def ensure_compiled(self, rule: Rule) -> Callable[[Any], Any] | None:
        """Return the compiled predicate of a custom rule, compiling it if needed."""
        predicate = rule.predicate
        if not isinstance(predicate, CustomPredicate):
            return None
        if predicate.compiled is None:
            predicate.compiled = self.compile_predicate(predicate.source, rule.id)
        return predicate.compiled
