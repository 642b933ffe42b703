"""Built-in predicates, the default style guide, and the rule template gallery.

Every predicate takes the value a rule is dispatched against (a route string
or an operation mapping) plus keyword arguments, and returns a mapping with
``valid`` and optional ``message`` and ``suggestions`` keys.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable

from contractlint.rules.schemas import (
    BuiltinPredicate,
    Rule,
    RuleSeverity,
    RuleType,
)

IRREGULAR_PLURALS = {
    "person": "people",
    "child": "children",
    "foot": "feet",
    "tooth": "teeth",
    "goose": "geese",
    "mouse": "mice",
    "criterion": "criteria",
}

DEFAULT_STATUS_CODES = (
    "200", "201", "202", "204",
    "300", "301", "302", "304",
    "400", "401", "403", "404", "409", "422",
    "500", "502", "503", "504",
    "default",
)


def _passed() -> dict[str, Any]:
    return {"valid": True}


def _failed(message: str, *suggestions: str) -> dict[str, Any]:
    return {"valid": False, "message": message, "suggestions": list(suggestions)}


def _static_segments(route: str) -> list[str]:
    """Route segments that are not template variables."""
    return [s for s in route.split("/") if s and not (s.startswith("{") and s.endswith("}"))]


def check_plural_resource(route: str, **kwargs: Any) -> dict[str, Any]:
    """Validate that the last resource segment of a route is plural.

    Args:
        route: The route key, e.g. "/users/{id}".
        **kwargs: Additional validation arguments.

    Returns:
        Predicate result.
    """
    segments = [s for s in _static_segments(route) if not re.fullmatch(r"v\d+", s)]
    if not segments:
        return _passed()
    word = segments[-1]

    if word in IRREGULAR_PLURALS.values():
        return _passed()
    if word in IRREGULAR_PLURALS:
        plural = IRREGULAR_PLURALS[word]
    elif word.endswith("s"):
        return _passed()
    elif word.endswith("y") and not word.endswith(("ay", "ey", "oy", "uy")):
        plural = word[:-1] + "ies"
    else:
        plural = word + "s"

    parts = route.split("/")
    last = max(i for i, part in enumerate(parts) if part == word)
    parts[last] = plural
    return _failed(f'Resource "{word}" should be plural', "/".join(parts))


def check_version_prefix(route: str, **kwargs: Any) -> dict[str, Any]:
    """Validate that a route starts with a version prefix.

    Args:
        route: The route key.
        **kwargs: Additional validation arguments.
            - pattern: Regular expression the route must start with.

    Returns:
        Predicate result.
    """
    pattern = kwargs.get("pattern", r"^/v\d+")
    if re.match(pattern, route):
        return _passed()
    return _failed(
        "Path should start with version prefix (e.g., /v1)",
        "/v1" + (route if route.startswith("/") else f"/{route}"),
    )


def check_lowercase_segments(route: str, **kwargs: Any) -> dict[str, Any]:
    """Validate that every static route segment is lowercase.

    Args:
        route: The route key.
        **kwargs: Additional validation arguments.

    Returns:
        Predicate result.
    """
    offending = [s for s in _static_segments(route) if s != s.lower()]
    if not offending:
        return _passed()

    fixed = "/".join(
        part if part.startswith("{") else part.lower() for part in route.split("/")
    )
    names = ", ".join(f"'{s}'" for s in offending)
    return _failed(f"Path segments should be lowercase: {names}", fixed)


def check_segment_pattern(route: str, **kwargs: Any) -> dict[str, Any]:
    """Validate every static route segment against a pattern.

    Args:
        route: The route key.
        **kwargs: Additional validation arguments.
            - pattern: Regular expression each segment must fully match.
            - description: Human-readable form of the pattern.

    Returns:
        Predicate result.
    """
    pattern = kwargs.get("pattern", r"[a-z][a-z0-9-]*")
    description = kwargs.get("description", "use kebab-case format")

    for segment in _static_segments(route):
        if not re.fullmatch(pattern, segment):
            return _failed(f"Path segment '{segment}' must {description}")
    return _passed()


def check_required_field(value: Any, **kwargs: Any) -> dict[str, Any]:
    """Validate that a field is present and non-empty.

    Args:
        value: An operation mapping.
        **kwargs: Additional validation arguments.
            - field: Name of the required field.

    Returns:
        Predicate result.
    """
    field_name = kwargs.get("field", "summary")
    if isinstance(value, Mapping) and value.get(field_name):
        return _passed()
    return _failed(f"{field_name} is required", f"Add a '{field_name}' to the operation")


def check_max_length(value: Any, **kwargs: Any) -> dict[str, Any]:
    """Validate that a text field does not exceed a maximum length.

    Args:
        value: An operation mapping or a route string.
        **kwargs: Additional validation arguments.
            - field: Field to measure; the value itself when omitted.
            - max_length: Maximum number of characters.

    Returns:
        Predicate result.
    """
    field_name = kwargs.get("field")
    max_length = int(kwargs.get("max_length", 500))

    if field_name is None:
        text, label = value, "Value"
    else:
        text = value.get(field_name) if isinstance(value, Mapping) else None
        label = field_name.capitalize()

    if not isinstance(text, str) or len(text) <= max_length:
        return _passed()
    return _failed(f"{label} must not exceed {max_length} characters (found {len(text)})")


def check_enum_values(value: Any, **kwargs: Any) -> dict[str, Any]:
    """Validate that a field holds one of the allowed values.

    Args:
        value: An operation mapping.
        **kwargs: Additional validation arguments.
            - field: Field to check.
            - allowed: List of allowed values.

    Returns:
        Predicate result.
    """
    field_name = kwargs.get("field", "")
    allowed = list(kwargs.get("allowed", []))
    actual = value.get(field_name) if isinstance(value, Mapping) else value

    if actual is None or actual in allowed:
        return _passed()
    return _failed(f"{field_name} must be one of: {', '.join(map(str, allowed))}")


def check_operation_summary(operation: Any, **kwargs: Any) -> dict[str, Any]:
    """Validate that an operation has a summary.

    Args:
        operation: The operation mapping.
        **kwargs: Additional validation arguments.

    Returns:
        Predicate result.
    """
    if isinstance(operation, Mapping) and operation.get("summary"):
        return _passed()
    return _failed("Operation should have a summary", "Add a one-line 'summary'")


def check_description_present(operation: Any, **kwargs: Any) -> dict[str, Any]:
    """Validate that an operation has a description or a summary."""
    if isinstance(operation, Mapping) and (operation.get("description") or operation.get("summary")):
        return _passed()
    return _failed(
        "Operation is missing a description",
        "Add a description explaining what this endpoint does",
        "Add a summary for a brief overview",
    )


def check_response_schema(operation: Any, **kwargs: Any) -> dict[str, Any]:
    """Validate that at least one response declares a schema.

    Args:
        operation: The operation mapping.
        **kwargs: Additional validation arguments.
            - media_type: Media type whose schema is required.

    Returns:
        Predicate result.
    """
    media_type = kwargs.get("media_type", "application/json")
    responses = operation.get("responses") if isinstance(operation, Mapping) else None

    for response in (responses or {}).values():
        content = response.get("content") if isinstance(response, Mapping) else None
        media = content.get(media_type) if isinstance(content, Mapping) else None
        if isinstance(media, Mapping) and media.get("schema"):
            return _passed()
    return _failed(f"Response schema is required for {media_type} responses")


def check_status_codes(operation: Any, **kwargs: Any) -> dict[str, Any]:
    """Validate that response status codes are well-known HTTP codes.

    Args:
        operation: The operation mapping.
        **kwargs: Additional validation arguments.
            - allowed: Allowed status codes as strings.

    Returns:
        Predicate result.
    """
    allowed = {str(code) for code in kwargs.get("allowed", DEFAULT_STATUS_CODES)}
    responses = operation.get("responses") if isinstance(operation, Mapping) else None
    if not isinstance(responses, Mapping):
        return _passed()

    invalid = [str(code) for code in responses if str(code) not in allowed]
    if not invalid:
        return _passed()
    return _failed(f"Contains invalid HTTP status codes: {', '.join(invalid)}")


def check_auth_required(operation: Any, **kwargs: Any) -> dict[str, Any]:
    """Validate that an operation requires authentication unless it is public.

    An operation is public when its route starts with one of the allowed
    public prefixes or when it carries the public tag. Secured operations
    must request every required scope in one of their security requirements.

    Args:
        operation: The operation mapping.
        **kwargs: Additional validation arguments.
            - route: Route key of the operation, supplied by the engine.
            - allowed_public_paths: Route prefixes that may skip authentication.
            - public_tag: Tag marking an operation as public.
            - required_scopes: Scopes every secured operation must request.

    Returns:
        Predicate result.
    """
    if not isinstance(operation, Mapping):
        return _passed()

    route = str(kwargs.get("route") or "")
    allowed_public_paths = kwargs.get("allowed_public_paths") or []
    public_tag = kwargs.get("public_tag") or "public"
    required_scopes = list(kwargs.get("required_scopes") or [])

    if route and any(route.startswith(str(prefix)) for prefix in allowed_public_paths):
        return _passed()

    tags = operation.get("tags") or []
    security = operation.get("security") or []
    if not security:
        if isinstance(tags, list) and public_tag in tags:
            return _passed()
        return _failed(
            "Endpoint requires authentication",
            "Add security requirement to the operation",
            f'Mark the endpoint as public using the "{public_tag}" tag',
        )

    granted = {
        str(scope)
        for requirement in security
        if isinstance(requirement, Mapping)
        for scopes in requirement.values()
        if isinstance(scopes, list)
        for scope in scopes
    }
    missing = [scope for scope in required_scopes if scope not in granted]
    if missing:
        return _failed(
            f"Endpoint is missing required scopes: {', '.join(missing)}",
            f"Add the following scopes: {', '.join(missing)}",
        )
    return _passed()


def check_required_headers(operation: Any, **kwargs: Any) -> dict[str, Any]:
    """Validate that an operation declares the required header parameters.

    Args:
        operation: The operation mapping.
        **kwargs: Additional validation arguments.
            - headers: Header names every operation must declare.

    Returns:
        Predicate result.
    """
    headers = list(kwargs.get("headers", ["X-API-Version", "X-Request-ID"]))
    parameters = operation.get("parameters") if isinstance(operation, Mapping) else None

    declared = {
        str(p.get("name")).lower()
        for p in parameters or []
        if isinstance(p, Mapping) and p.get("in") == "header"
    }
    missing = [h for h in headers if h.lower() not in declared]
    if not missing:
        return _passed()
    return _failed(
        f"Operation is missing required header(s): {', '.join(missing)}",
        *(f"Add header parameter: {h}" for h in missing),
    )


# Registry of built-in validators
VALIDATORS: dict[str, Callable[..., Any]] = {
    "check_plural_resource": check_plural_resource,
    "check_version_prefix": check_version_prefix,
    "check_lowercase_segments": check_lowercase_segments,
    "check_segment_pattern": check_segment_pattern,
    "check_required_field": check_required_field,
    "check_max_length": check_max_length,
    "check_enum_values": check_enum_values,
    "check_operation_summary": check_operation_summary,
    "check_description_present": check_description_present,
    "check_response_schema": check_response_schema,
    "check_status_codes": check_status_codes,
    "check_auth_required": check_auth_required,
    "check_required_headers": check_required_headers,
}


def get_validator(name: str) -> Callable[..., Any] | None:
    """Get a validator function by name.

    Args:
        name: Name of the validator function.

    Returns:
        Validator function or None if not found.
    """
    return VALIDATORS.get(name)


@dataclass(frozen=True)
class RuleTemplate:
    """Blueprint for a rule backed by a built-in validator."""

    id: str
    name: str
    description: str
    type: RuleType
    severity: RuleSeverity
    validator: str
    args: Mapping[str, Any] = field(default_factory=dict)
    group: str | None = None
    tags: tuple[str, ...] = ()

    def to_rule(self, rule_id: str | None = None, **overrides: Any) -> Rule:
        """Instantiate the template as a rule."""
        values: dict[str, Any] = {
            "id": rule_id or self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "severity": self.severity,
            "group": self.group,
            "tags": list(self.tags),
            "predicate": BuiltinPredicate(self.validator, dict(self.args)),
        }
        values.update(overrides)
        return Rule(**values)


DEFAULT_RULES: list[RuleTemplate] = [
    RuleTemplate(
        id="plural-resource-names",
        name="Plural Resource Names",
        description="Resource names in paths should be plural (e.g., /users instead of /user)",
        type=RuleType.NAMING,
        severity=RuleSeverity.WARNING,
        validator="check_plural_resource",
        group="naming",
    ),
    RuleTemplate(
        id="version-in-path",
        name="Version in Path",
        description="API paths should include version prefix (e.g., /v1/users)",
        type=RuleType.STRUCTURE,
        severity=RuleSeverity.ERROR,
        validator="check_version_prefix",
        group="structure",
    ),
    RuleTemplate(
        id="operation-summary",
        name="Operation Summary",
        description="Each operation should have a summary",
        type=RuleType.CONTENT,
        severity=RuleSeverity.WARNING,
        validator="check_operation_summary",
        group="content",
    ),
]

RULE_TEMPLATES: list[RuleTemplate] = [
    RuleTemplate(
        id="lowercase-path-segments",
        name="Lowercase Path Segments",
        description="Path segments should be lowercase",
        type=RuleType.NAMING,
        severity=RuleSeverity.WARNING,
        validator="check_lowercase_segments",
        tags=("naming",),
    ),
    RuleTemplate(
        id="kebab-case-path-segments",
        name="Kebab Case Path Segments",
        description="Path segments should use kebab-case",
        type=RuleType.NAMING,
        severity=RuleSeverity.WARNING,
        validator="check_segment_pattern",
        args={"pattern": r"[a-z][a-z0-9-]*", "description": "use kebab-case format"},
        tags=("naming",),
    ),
    RuleTemplate(
        id="response-schema-required",
        name="Response Schema Required",
        description="Each operation should define response schemas",
        type=RuleType.CONTENT,
        severity=RuleSeverity.ERROR,
        validator="check_response_schema",
        tags=("structure",),
    ),
    RuleTemplate(
        id="description-length",
        name="Description Length",
        description="Operation descriptions should be concise",
        type=RuleType.CONTENT,
        severity=RuleSeverity.WARNING,
        validator="check_max_length",
        args={"field": "description", "max_length": 500},
        tags=("documentation",),
    ),
    RuleTemplate(
        id="valid-status-codes",
        name="Valid Status Codes",
        description="Response status codes should be valid HTTP codes",
        type=RuleType.CONTENT,
        severity=RuleSeverity.ERROR,
        validator="check_status_codes",
        tags=("structure",),
    ),
    RuleTemplate(
        id="require-description",
        name="Require Descriptions",
        description="All endpoints should have descriptions",
        type=RuleType.CONTENT,
        severity=RuleSeverity.WARNING,
        validator="check_description_present",
        tags=("documentation",),
    ),
    RuleTemplate(
        id="require-auth",
        name="Require Authentication",
        description="All endpoints should require authentication except those explicitly marked as public",
        type=RuleType.CONTENT,
        severity=RuleSeverity.ERROR,
        validator="check_auth_required",
        args={
            "allowed_public_paths": ["/health", "/metrics", "/docs"],
            "public_tag": "public",
            "required_scopes": [],
        },
        group="security",
        tags=("security",),
    ),
    RuleTemplate(
        id="required-headers",
        name="Required Headers",
        description="Enforce specific headers for all operations",
        type=RuleType.CONTENT,
        severity=RuleSeverity.ERROR,
        validator="check_required_headers",
        args={"headers": ["X-API-Version", "X-Request-ID"]},
        group="security",
        tags=("security",),
    ),
]

# Everything a built-in rule can be rehydrated from, keyed by rule id
BUILTIN_RULES: dict[str, RuleTemplate] = {t.id: t for t in DEFAULT_RULES + RULE_TEMPLATES}


def get_template(template_id: str) -> RuleTemplate | None:
    """Get a default rule or gallery template by id."""
    return BUILTIN_RULES.get(template_id)


# Severity and enablement overrides applied by RuleSetManager.apply_preset
RULE_PRESETS: dict[str, dict[str, Any]] = {
    "strict": {
        "description": "Strict validation rules for production APIs",
        "rules": {
            "plural-resource-names": {"severity": "error"},
            "operation-summary": {"severity": "error"},
            "require-auth": {"severity": "error"},
            "response-schema-required": {"severity": "error"},
        },
    },
    "recommended": {
        "description": "Recommended validation rules for development",
        "rules": {
            "plural-resource-names": {"severity": "warning"},
            "operation-summary": {"severity": "warning"},
            "require-auth": {"severity": "error"},
            "response-schema-required": {"severity": "warning"},
        },
    },
}
