"""Parsed API contract document."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

# Keys allowed on a path item besides operations (OpenAPI 3 Path Item Object)
PATH_ITEM_FIELDS = frozenset({"$ref", "summary", "description", "servers", "parameters"})


def is_extension(key: str) -> bool:
    """Whether a key is a specification extension (``x-...``)."""
    return key.startswith("x-")


def operation_label(route: str, method: str) -> str:
    """Location label for an operation, e.g. ``"/users [GET]"``."""
    return f"{route} [{method.upper()}]"


@dataclass
class ContractDocument:
    """An API contract parsed into plain Python objects.

    ``lines`` maps key paths (tuples of mapping keys) to the 1-based line the
    key appears on. It is empty when the document was built from a mapping
    rather than from source text.
    """

    data: dict[str, Any]
    source: str | None = None
    lines: dict[tuple[str, ...], int] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ContractDocument:
        """Wrap an already-parsed mapping."""
        return cls(data=dict(data))

    def line_of(self, *keys: str) -> int | None:
        """Line of the deepest known key along ``keys``."""
        for end in range(len(keys), 0, -1):
            line = self.lines.get(tuple(keys[:end]))
            if line is not None:
                return line
        return None

    @property
    def version(self) -> str | None:
        """The ``openapi`` version declaration as a string."""
        value = self.data.get("openapi")
        if value is None or value == "":
            return None
        return str(value)

    @property
    def info(self) -> Any:
        """The ``info`` section, as declared."""
        return self.data.get("info")

    @property
    def paths(self) -> Any:
        """The ``paths`` section, as declared."""
        return self.data.get("paths")

    def routes(self) -> list[tuple[str, Any]]:
        """Route keys and path items in declaration order."""
        paths = self.paths
        if not isinstance(paths, Mapping):
            return []
        return [(str(route), item) for route, item in paths.items()]

    def operations(self, path_item: Any) -> list[tuple[str, Mapping[str, Any]]]:
        """HTTP operations declared on a path item, in declaration order."""
        if not isinstance(path_item, Mapping):
            return []
        return [
            (str(method), operation)
            for method, operation in path_item.items()
            if str(method).lower() in HTTP_METHODS and isinstance(operation, Mapping)
        ]

    def resolve(self, value: Any) -> Any:
        """Follow a local ``$ref`` (``#/components/...``) if there is one.

        Unresolvable references are returned unchanged.
        """
        if not isinstance(value, Mapping):
            return value
        ref = value.get("$ref")
        if not isinstance(ref, str) or not ref.startswith("#/"):
            return value

        target: Any = self.data
        for part in ref[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(target, Mapping) or part not in target:
                return value
            target = target[part]
        return target


def as_document(document: ContractDocument | Mapping[str, Any]) -> ContractDocument:
    """Accept either a parsed document or a raw mapping.

    Raises:
        TypeError: If the value is neither.
    """
    if isinstance(document, ContractDocument):
        return document
    if isinstance(document, Mapping):
        return ContractDocument.from_mapping(document)
    raise TypeError(f"Document must be a mapping, got {type(document).__name__}")
