"""Exceptions raised by the contract validation engine."""

from __future__ import annotations


class ContractLintError(Exception):
    """Base exception for contractlint errors."""

    pass


class ParseError(ContractLintError):
    """Raised when contract source text cannot be parsed into a document."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        location = f"line {self.line}"
        if self.column is not None:
            location += f", column {self.column}"
        return f"{self.message} ({location})"


class CompileError(ContractLintError):
    """Raised when custom predicate source cannot be turned into a callable."""

    def __init__(self, message: str, line: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"{self.message} (line {self.line})"


class PredicateRuntimeError(ContractLintError):
    """Raised when a predicate fails while it is being evaluated."""

    def __init__(self, rule_id: str, message: str) -> None:
        super().__init__(f"Rule '{rule_id}' malfunctioned: {message}")
        self.rule_id = rule_id
        self.message = message


class BudgetExceededError(PredicateRuntimeError):
    """Raised when a custom predicate runs past its step or time budget."""

    pass


class RuleSetError(ContractLintError):
    """Base exception for invalid rule set operations."""

    pass


class DuplicateRuleError(RuleSetError):
    """Raised when adding a rule whose id is already in the rule set."""

    def __init__(self, rule_id: str) -> None:
        super().__init__(f"Rule with ID '{rule_id}' already exists")
        self.rule_id = rule_id


class UnknownRuleError(RuleSetError):
    """Raised when a rule id is not in the rule set."""

    def __init__(self, rule_id: str) -> None:
        super().__init__(f"Rule '{rule_id}' not found")
        self.rule_id = rule_id


class UnknownGroupError(RuleSetError):
    """Raised when a group id is not in the rule set."""

    def __init__(self, group_id: str) -> None:
        super().__init__(f"Group '{group_id}' not found")
        self.group_id = group_id
