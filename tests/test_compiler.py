"""Tests for the custom rule compiler."""

import sys

import pytest

from contractlint.config import Settings
from contractlint.errors import BudgetExceededError, CompileError
from contractlint.rules.compiler import RuleCompiler
from contractlint.rules.schemas import (
    CustomPredicate,
    PredicateResult,
    RuleSeverity,
    RuleTarget,
    RuleType,
)


class TestCompilePredicate:
    """Tests for turning source into callables."""

    def test_expression_is_returned(self, compiler: RuleCompiler) -> None:
        """Test a single expression body is the return value."""
        fn = compiler.compile_predicate("value.islower()")

        assert fn("/users") is True
        assert fn("/Users") is False

    def test_multi_line_expression(self, compiler: RuleCompiler) -> None:
        """Test an expression spanning several lines."""
        fn = compiler.compile_predicate("all(\n    s.islower()\n    for s in value.split('/') if s\n)")
        assert fn("/a/b") is True

    def test_statements_with_return(self, compiler: RuleCompiler) -> None:
        """Test a body of statements returning a result mapping."""
        source = """
        segments = [s for s in value.split("/") if s]
        if len(segments) > 3:
            return {"valid": False, "message": f"{value} is too deep", "suggestions": ["Flatten it"]}
        return {"valid": True}
        """
        fn = compiler.compile_predicate(source)

        result = PredicateResult.coerce(fn("/a/b/c/d"))
        assert result == PredicateResult(False, "/a/b/c/d is too deep", ("Flatten it",))
        assert PredicateResult.coerce(fn("/a")).valid

    def test_regex_helper(self, compiler: RuleCompiler) -> None:
        """Test the re helper is available."""
        fn = compiler.compile_predicate("re.fullmatch(r'/[a-z/]+', value) is not None")
        assert fn("/users") is True
        assert fn("/Users") is False

    def test_empty_source(self, compiler: RuleCompiler) -> None:
        """Test empty source is rejected."""
        with pytest.raises(CompileError, match="empty"):
            compiler.compile_predicate("   \n")

    def test_syntax_error_line(self, compiler: RuleCompiler) -> None:
        """Test syntax errors report the line in the author's source."""
        with pytest.raises(CompileError) as exc_info:
            compiler.compile_predicate("x = 1\ny = (\nreturn x")

        assert exc_info.value.line is not None
        assert "syntax" in str(exc_info.value)


class TestSandbox:
    """Tests for constructs rejected at compile time."""

    @pytest.mark.parametrize(
        "source",
        [
            "import os\nreturn True",
            "from os import path\nreturn True",
            "__import__('os')",
            "value.__class__",
            "open('/etc/passwd')",
            "eval('1')",
            "getattr(value, 'upper')",
            "'{0.__class__}'.format(value)",
            "try:\n    x = 1\nexcept Exception:\n    pass\nreturn True",
            "global x\nreturn True",
            "class A:\n    pass\nreturn True",
            "(s for s in value).gi_frame",
            "(s for s in value).gi_code.co_consts",
        ],
    )
    def test_rejected(self, compiler: RuleCompiler, source: str) -> None:
        """Test forbidden constructs raise CompileError."""
        with pytest.raises(CompileError, match="rejected"):
            compiler.compile_predicate(source)

    def test_frame_walk_to_host_globals(self, compiler: RuleCompiler, tmp_path) -> None:
        """Test a generator cannot walk frames back into the host's globals."""
        secret = tmp_path / "secret.txt"
        secret.write_text("TOP-SECRET")
        source = (
            "g = (g.gi_frame.f_back.f_back.f_globals for _ in [1])\n"
            "b = list(g)[0]['builtins']\n"
            f"return {{'valid': False, 'message': b.open({str(secret)!r}).read()}}"
        )

        with pytest.raises(CompileError, match=r"rejected: attribute '\w+' is not allowed") as exc_info:
            compiler.compile_predicate(source)

        assert exc_info.value.line == 1

    def test_rejection_line_matches_source(self, compiler: RuleCompiler) -> None:
        """Test rejection lines are relative to the author's source."""
        with pytest.raises(CompileError) as exc_info:
            compiler.compile_predicate("x = 1\nimport os\nreturn True")

        assert exc_info.value.line == 2

    def test_unavailable_builtin_at_runtime(self, compiler: RuleCompiler) -> None:
        """Test builtins outside the whitelist are not reachable."""
        fn = compiler.compile_predicate("print(value)")

        with pytest.raises(NameError):
            fn("/users")


class TestBudget:
    """Tests for the execution budget."""

    def test_step_budget(self) -> None:
        """Test an endless loop is stopped by the step budget."""
        compiler = RuleCompiler(Settings(predicate_step_budget=50))
        fn = compiler.compile_predicate("while True:\n    value = value\nreturn True", "spin")

        with pytest.raises(BudgetExceededError, match="spin"):
            fn("/a")

    def test_budget_resets_per_call(self) -> None:
        """Test each call gets a fresh budget."""
        compiler = RuleCompiler(Settings(predicate_step_budget=50))
        fn = compiler.compile_predicate("total = 0\nfor i in range(10):\n    total += i\nreturn total == 45")

        assert fn("/a") is True
        assert fn("/b") is True

    def test_tracer_restored(self, compiler: RuleCompiler) -> None:
        """Test the previous trace function is restored after a call."""
        before = sys.gettrace()
        compiler.compile_predicate("True")("/a")

        assert sys.gettrace() is before


class TestCompileRule:
    """Tests for building complete rules."""

    def test_compile_rule(self, compiler: RuleCompiler) -> None:
        """Test a compiled rule carries its source and metadata."""
        rule = compiler.compile_rule(
            "'summary' in value",
            name="Has Summary",
            description="Operations need a summary",
            severity="error",
            target="operation",
            tags=["docs"],
        )

        assert rule.id == "custom-has-summary"
        assert rule.type == RuleType.CUSTOM
        assert rule.severity == RuleSeverity.ERROR
        assert rule.target == RuleTarget.OPERATION
        assert rule.tags == ["docs"]
        assert isinstance(rule.predicate, CustomPredicate)
        assert rule.predicate_source == "'summary' in value"
        assert rule.predicate.compiled({"summary": "x"}) is True

    def test_custom_rule_defaults_to_routes(self, compiler: RuleCompiler) -> None:
        """Test custom rules target routes unless told otherwise."""
        rule = compiler.compile_rule("True", name="Always")
        assert rule.target == RuleTarget.ROUTE

    def test_typed_custom_source(self, compiler: RuleCompiler) -> None:
        """Test custom source can back a naming rule."""
        rule = compiler.compile_rule("value.islower()", name="Lower", type="naming", rule_id="lower")

        assert rule.id == "lower"
        assert rule.type == RuleType.NAMING
        assert rule.target == RuleTarget.ROUTE

    def test_bad_source_raises(self, compiler: RuleCompiler) -> None:
        """Test compile errors propagate from compile_rule."""
        with pytest.raises(CompileError):
            compiler.compile_rule("return (", name="Broken")

    def test_ensure_compiled(self, compiler: RuleCompiler) -> None:
        """Test source-only rules are compiled once on demand."""
        rule = compiler.compile_rule("True", name="Always")
        rule.predicate.compiled = None

        fn = compiler.ensure_compiled(rule)
        assert fn("/a") is True
        assert compiler.ensure_compiled(rule) is fn
