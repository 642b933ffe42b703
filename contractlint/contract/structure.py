"""Structural conformance checks for API contracts.

These checks are fixed and do not consult the active rule set. They verify
the format-level requirements every OpenAPI 3 document must meet:

1. ``openapi`` version declaration (present, supported major version)
2. ``info`` object with ``title`` and ``version``
3. ``paths`` object
4. Route keys start with ``/`` and operation keys are HTTP methods
5. Path template variables are declared as ``in: path`` parameters
6. Operations declare responses
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable

from contractlint.config import Settings
from contractlint.contract.document import (
    HTTP_METHODS,
    PATH_ITEM_FIELDS,
    ContractDocument,
    as_document,
    is_extension,
    operation_label,
)
from contractlint.contract.parser import parse_document
from contractlint.errors import ParseError
from contractlint.rules.schemas import RuleSeverity, Violation, ViolationSource

logger = logging.getLogger(__name__)

PARSE_CHECK_ID = "structure/parse"

_TEMPLATE_VARIABLE = re.compile(r"\{([^{}]+)\}")


@dataclass(frozen=True)
class StructuralCheck:
    """A built-in structural check."""

    id: str
    name: str
    check_fn: Callable[[ContractDocument], list[Violation]]


def _violation(
    check_id: str,
    name: str,
    severity: RuleSeverity,
    message: str,
    path: str | None = None,
    line: int | None = None,
    suggestions: tuple[str, ...] = (),
) -> Violation:
    return Violation(
        rule_id=check_id,
        rule_name=name,
        severity=severity,
        message=message,
        path=path,
        suggestions=suggestions,
        line=line,
        source=ViolationSource.STRUCTURE,
    )


def parse_error_violation(error: ParseError | str) -> Violation:
    """Wrap a parse failure into the single violation reported for a pass."""
    if isinstance(error, ParseError):
        return _violation(
            PARSE_CHECK_ID,
            "Document Parse",
            RuleSeverity.ERROR,
            str(error),
            line=error.line,
            suggestions=("Fix the syntax error before other checks can run",),
        )
    return _violation(PARSE_CHECK_ID, "Document Parse", RuleSeverity.ERROR, str(error))


class StructuralChecker:
    """Run the fixed set of format-level checks against a contract."""

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize checker.

        Args:
            settings: Project settings; only ``openapi_major`` is used.
        """
        self.settings = settings or Settings()
        self.checks: list[StructuralCheck] = [
            StructuralCheck("structure/openapi-version", "OpenAPI Version", self._check_version),
            StructuralCheck("structure/info", "Info Object", self._check_info),
            StructuralCheck("structure/paths", "Paths Object", self._check_paths),
            StructuralCheck("structure/route-format", "Route Format", self._check_routes),
            StructuralCheck("structure/path-parameters", "Path Parameters", self._check_path_parameters),
            StructuralCheck("structure/responses", "Operation Responses", self._check_responses),
        ]

    def check(self, document: ContractDocument | Mapping[str, Any]) -> list[Violation]:
        """Check a parsed document.

        Each check runs independently; a check that fails unexpectedly is
        reported as an error instead of aborting the pass.

        Args:
            document: Parsed document or raw mapping.

        Returns:
            Violations in check order.
        """
        try:
            doc = as_document(document)
        except TypeError as e:
            return [parse_error_violation(str(e))]

        violations: list[Violation] = []
        for check in self.checks:
            try:
                violations.extend(check.check_fn(doc))
            except Exception as e:
                logger.exception("Structural check %s failed", check.id)
                violations.append(
                    _violation(
                        check.id,
                        check.name,
                        RuleSeverity.ERROR,
                        f"Structural check failed: {e}",
                    )
                )
        return violations

    def check_source(self, source: str) -> list[Violation]:
        """Parse and check contract source text.

        A parse failure short-circuits into a single error violation.
        """
        try:
            document = parse_document(source)
        except ParseError as e:
            return [parse_error_violation(e)]
        return self.check(document)

    def _check_version(self, doc: ContractDocument) -> list[Violation]:
        """Check the ``openapi`` version declaration."""
        check_id, name = "structure/openapi-version", "OpenAPI Version"
        major = self.settings.openapi_major
        version = doc.version
        first_line = 1 if doc.source is not None else None

        if version is None:
            if "swagger" in doc.data:
                return [_violation(
                    check_id, name, RuleSeverity.ERROR,
                    f"Swagger {doc.data['swagger']} documents are not supported; "
                    f"the 'openapi' version field must declare {major}.x",
                    line=doc.line_of("swagger") or first_line,
                    suggestions=(f"Convert the document to OpenAPI {major}.x",),
                )]
            return [_violation(
                check_id, name, RuleSeverity.ERROR,
                "Missing OpenAPI version: the 'openapi' version field is required",
                line=first_line,
                suggestions=(f"Add 'openapi: {major}.0.0' at the top of the document",),
            )]

        if not re.fullmatch(rf"{major}\.\d+(\.\d+)?(-[0-9A-Za-z.]+)?", version):
            return [_violation(
                check_id, name, RuleSeverity.ERROR,
                f"Unsupported OpenAPI version '{version}' in the 'openapi' version field "
                f"(expected {major}.x)",
                line=doc.line_of("openapi"),
            )]
        return []

    def _check_info(self, doc: ContractDocument) -> list[Violation]:
        """Check the ``info`` object and its required fields."""
        check_id, name = "structure/info", "Info Object"
        info = doc.info

        if info is None:
            return [_violation(
                check_id, name, RuleSeverity.ERROR, "Missing info object",
                line=1 if doc.source is not None else None,
                suggestions=("Add an 'info' section with 'title' and 'version'",),
            )]
        if not isinstance(info, Mapping):
            return [_violation(
                check_id, name, RuleSeverity.ERROR, "Info must be an object",
                line=doc.line_of("info"),
            )]

        violations = []
        if not info.get("title"):
            violations.append(_violation(
                check_id, name, RuleSeverity.ERROR, "Missing API title (info.title)",
                line=doc.line_of("info", "title"),
            ))
        if info.get("version") in (None, ""):
            violations.append(_violation(
                check_id, name, RuleSeverity.WARNING, "Missing API version (info.version)",
                line=doc.line_of("info", "version"),
                suggestions=("Use semantic versioning, e.g. '1.0.0'",),
            ))
        return violations

    def _check_paths(self, doc: ContractDocument) -> list[Violation]:
        """Check the ``paths`` object exists and is a mapping."""
        check_id, name = "structure/paths", "Paths Object"
        paths = doc.paths

        if paths is None:
            return [_violation(
                check_id, name, RuleSeverity.ERROR, "Missing paths object",
                line=1 if doc.source is not None else None,
            )]
        if not isinstance(paths, Mapping):
            return [_violation(
                check_id, name, RuleSeverity.ERROR, "Paths must be an object",
                line=doc.line_of("paths"),
            )]
        return []

    def _check_routes(self, doc: ContractDocument) -> list[Violation]:
        """Check route keys and the method keys under each route."""
        check_id, name = "structure/route-format", "Route Format"
        violations = []

        for route, path_item in doc.routes():
            if not route.startswith("/"):
                violations.append(_violation(
                    check_id, name, RuleSeverity.ERROR,
                    f"Path must start with '/': {route}",
                    path=route,
                    line=doc.line_of("paths", route),
                    suggestions=(f"Rename the path to '/{route}'",),
                ))

            if not isinstance(path_item, Mapping):
                continue
            for key in path_item:
                method = str(key)
                if method in PATH_ITEM_FIELDS or is_extension(method):
                    continue
                if method.lower() not in HTTP_METHODS:
                    violations.append(_violation(
                        "structure/http-method", "HTTP Method", RuleSeverity.ERROR,
                        f"Invalid HTTP method '{method}' on {route}",
                        path=operation_label(route, method),
                        line=doc.line_of("paths", route, method),
                        suggestions=(f"Use one of: {', '.join(HTTP_METHODS)}",),
                    ))
        return violations

    def _check_path_parameters(self, doc: ContractDocument) -> list[Violation]:
        """Check every path template variable is declared as a path parameter."""
        check_id, name = "structure/path-parameters", "Path Parameters"
        violations = []

        for route, path_item in doc.routes():
            variables = list(dict.fromkeys(_TEMPLATE_VARIABLE.findall(route)))
            if not variables or not isinstance(path_item, Mapping):
                continue

            shared = self._path_parameter_names(doc, path_item.get("parameters"))
            for method, operation in doc.operations(path_item):
                declared = shared | self._path_parameter_names(doc, operation.get("parameters"))
                for variable in variables:
                    if variable in declared:
                        continue
                    violations.append(_violation(
                        check_id, name, RuleSeverity.ERROR,
                        f"Path parameter '{variable}' of {route} is not declared "
                        f"with 'in: path' for {method.upper()}",
                        path=operation_label(route, method),
                        line=doc.line_of("paths", route, method),
                        suggestions=(
                            f"Add a parameter named '{variable}' with 'in: path' and 'required: true'",
                        ),
                    ))
        return violations

    def _path_parameter_names(self, doc: ContractDocument, parameters: Any) -> set[str]:
        """Names of ``in: path`` parameters in a parameter list."""
        if not isinstance(parameters, list):
            return set()
        names = set()
        for parameter in parameters:
            parameter = doc.resolve(parameter)
            if isinstance(parameter, Mapping) and parameter.get("in") == "path" and parameter.get("name"):
                names.add(str(parameter["name"]))
        return names

    def _check_responses(self, doc: ContractDocument) -> list[Violation]:
        """Check every operation declares at least one response."""
        check_id, name = "structure/responses", "Operation Responses"
        violations = []

        for route, path_item in doc.routes():
            for method, operation in doc.operations(path_item):
                responses = operation.get("responses")
                if isinstance(responses, Mapping) and responses:
                    continue
                violations.append(_violation(
                    check_id, name, RuleSeverity.WARNING,
                    f"Missing responses for {method.upper()} {route}",
                    path=operation_label(route, method),
                    line=doc.line_of("paths", route, method, "responses"),
                    suggestions=("Declare at least one response, e.g. '200'",),
                ))
        return violations


def check_structure(
    document: ContractDocument | Mapping[str, Any],
    settings: Settings | None = None,
) -> list[Violation]:
    """Run the structural checks against a parsed document."""
    return StructuralChecker(settings).check(document)
