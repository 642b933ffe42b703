"""Rule system data structures."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, ClassVar, Union


class RuleType(Enum):
    """Kind of rule; decides which document substructure it is checked against."""

    NAMING = "naming"
    STRUCTURE = "structure"
    CONTENT = "content"
    CUSTOM = "custom"


class RuleSeverity(Enum):
    """Severity level of a rule violation."""

    ERROR = "error"  # Must be fixed before the contract is published
    WARNING = "warning"  # Should be fixed but not blocking
    INFO = "info"  # Informational, best practice suggestion

    @property
    def rank(self) -> int:
        """Numeric weight, higher is more severe."""
        return {"error": 3, "warning": 2, "info": 1}[self.value]


class RuleTarget(Enum):
    """Shape of the value a predicate receives."""

    ROUTE = "route"  # The route key string, e.g. "/users/{id}"
    OPERATION = "operation"  # The operation mapping under a route


class PredicateKind(Enum):
    """How a rule's predicate is executed."""

    BUILTIN = "builtin"
    CUSTOM = "custom"


class ViolationSource(Enum):
    """Which checker produced a violation."""

    STRUCTURE = "structure"
    RULES = "rules"


# Natural input shape for every rule type except custom, which declares its own.
TYPE_TARGETS: dict[RuleType, RuleTarget] = {
    RuleType.NAMING: RuleTarget.ROUTE,
    RuleType.STRUCTURE: RuleTarget.ROUTE,
    RuleType.CONTENT: RuleTarget.OPERATION,
}


@dataclass(frozen=True)
class PredicateResult:
    """Normalized outcome of a single predicate invocation."""

    valid: bool
    message: str | None = None
    suggestions: tuple[str, ...] = ()

    @classmethod
    def coerce(cls, value: Any) -> PredicateResult:
        """Normalize whatever a predicate returned.

        Accepts a PredicateResult, a bare bool, or a mapping with a ``valid``
        key and optional ``message`` and ``suggestions`` keys.

        Raises:
            TypeError: If the value has none of the accepted shapes.
        """
        if isinstance(value, PredicateResult):
            return value
        if isinstance(value, bool):
            return cls(valid=value)
        if isinstance(value, Mapping) and "valid" in value:
            message = value.get("message")
            suggestions = value.get("suggestions") or ()
            if isinstance(suggestions, str) or not isinstance(suggestions, (list, tuple)):
                raise TypeError("'suggestions' must be a list of strings")
            return cls(
                valid=bool(value["valid"]),
                message=str(message) if message else None,
                suggestions=tuple(str(s) for s in suggestions),
            )
        raise TypeError(
            "predicate must return a bool or a mapping with a 'valid' key, "
            f"got {type(value).__name__}"
        )


@dataclass(frozen=True)
class BuiltinPredicate:
    """Predicate shipped with the library, referenced by name."""

    kind: ClassVar[PredicateKind] = PredicateKind.BUILTIN

    ref: str  # Name in the built-in validator registry
    args: Mapping[str, Any] = field(default_factory=dict)  # Keyword arguments passed on each call


@dataclass
class CustomPredicate:
    """Author-supplied predicate, kept as source text and compiled on demand."""

    kind: ClassVar[PredicateKind] = PredicateKind.CUSTOM

    source: str
    compiled: Callable[[Any], Any] | None = field(default=None, compare=False, repr=False)


Predicate = Union[BuiltinPredicate, CustomPredicate]


@dataclass
class Rule:
    """A named, typed, severity-tagged check applied to part of a contract.

    Metadata fields are always serializable; ``predicate`` holds the execution
    strategy, either a built-in reference or custom source text.
    """

    id: str  # Unique within a rule set, e.g. "plural-resource-names"
    name: str
    type: RuleType
    predicate: Predicate
    severity: RuleSeverity = RuleSeverity.WARNING
    description: str = ""
    group: str | None = None
    enabled: bool = True
    tags: list[str] = field(default_factory=list)
    target: RuleTarget | None = None

    def __post_init__(self) -> None:
        """Check the input-shape contract between type, target and predicate."""
        if not self.id:
            raise ValueError("Rule id must not be empty")

        natural = TYPE_TARGETS.get(self.type)
        if self.target is None:
            self.target = natural or RuleTarget.ROUTE
        elif natural is not None and self.target != natural:
            raise ValueError(
                f"Rule '{self.id}' of type '{self.type.value}' must target "
                f"'{natural.value}', not '{self.target.value}'"
            )

        if self.type == RuleType.CUSTOM and not isinstance(self.predicate, CustomPredicate):
            raise ValueError(f"Custom rule '{self.id}' requires predicate source")

    @property
    def is_custom(self) -> bool:
        """Whether the predicate crosses the compilation boundary."""
        return isinstance(self.predicate, CustomPredicate)

    @property
    def predicate_source(self) -> str | None:
        """Source text of a custom predicate, None for built-ins."""
        if isinstance(self.predicate, CustomPredicate):
            return self.predicate.source
        return None

    def copy(self, **changes: Any) -> Rule:
        """Return an independent copy, optionally with fields replaced.

        The predicate is copied too, so compiling the copy lazily never
        touches the original. A compiled callable is stateless and is shared.
        """
        changes.setdefault("tags", list(self.tags))
        if "predicate" not in changes:
            if isinstance(self.predicate, CustomPredicate):
                changes["predicate"] = replace(self.predicate)
            else:
                changes["predicate"] = replace(self.predicate, args=dict(self.predicate.args))
        return replace(self, **changes)


@dataclass
class RuleGroup:
    """Named collection of rule ids, used for organization and filtering only."""

    id: str
    name: str
    description: str = ""
    rules: list[str] = field(default_factory=list)  # Display order, not evaluation order


@dataclass
class RuleSetMetadata:
    """Bookkeeping attached to a rule set."""

    last_modified: str = ""  # ISO 8601 timestamp
    author: str | None = None
    tags: list[str] = field(default_factory=list)


@dataclass
class RuleSet:
    """An ordered collection of rules plus grouping metadata (a style guide)."""

    id: str
    name: str
    version: str = "1.0.0"
    description: str = ""
    rules: list[Rule] = field(default_factory=list)
    groups: list[RuleGroup] = field(default_factory=list)
    metadata: RuleSetMetadata = field(default_factory=RuleSetMetadata)

    def get_rule(self, rule_id: str) -> Rule | None:
        """Find a rule by id."""
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None

    def get_group(self, group_id: str) -> RuleGroup | None:
        """Find a group by id."""
        for group in self.groups:
            if group.id == group_id:
                return group
        return None

    def rule_ids(self) -> list[str]:
        """Ids of all rules in rule set order."""
        return [rule.id for rule in self.rules]

    def effective_group(self, rule: Rule) -> str | None:
        """Group id of a rule, or None when it is ungrouped or the group is gone."""
        if rule.group is None or self.get_group(rule.group) is None:
            return None
        return rule.group

    def enabled_rules(self, target: RuleTarget | None = None) -> list[Rule]:
        """Enabled rules in rule set order, optionally limited to one input shape."""
        return [
            rule
            for rule in self.rules
            if rule.enabled and (target is None or rule.target == target)
        ]

    def copy(self) -> RuleSet:
        """Snapshot that shares no mutable containers with this rule set."""
        return RuleSet(
            id=self.id,
            name=self.name,
            version=self.version,
            description=self.description,
            rules=[rule.copy() for rule in self.rules],
            groups=[copy.deepcopy(group) for group in self.groups],
            metadata=copy.deepcopy(self.metadata),
        )


@dataclass(frozen=True)
class Violation:
    """One reported failure of a rule or structural check."""

    rule_id: str
    rule_name: str
    severity: RuleSeverity
    message: str
    path: str | None = None  # e.g. "/users [GET]"; None for document-wide checks
    suggestions: tuple[str, ...] = ()
    line: int | None = None  # 1-based line in the source document
    source: ViolationSource = ViolationSource.RULES
    rule: Rule | None = field(default=None, compare=False, repr=False)

    @property
    def valid(self) -> bool:
        """Violations only exist for failures."""
        return False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "valid": self.valid,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "severity": self.severity.value,
            "source": self.source.value,
            "message": self.message,
            "path": self.path,
            "line": self.line,
            "suggestions": list(self.suggestions),
        }

    def __str__(self) -> str:
        """Human-readable representation."""
        severity = self.severity.value.upper()
        location = self.path or "document"
        if self.line:
            location += f":{self.line}"
        return f"[{severity}] {self.rule_id} at {location}: {self.message}"
