"""Parser for API contract source text (YAML or JSON)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from contractlint.contract.document import ContractDocument
from contractlint.errors import ParseError

logger = logging.getLogger(__name__)


def parse_document(source: str) -> ContractDocument:
    """Parse contract source text into a document.

    JSON is a subset of the YAML flow syntax, so both formats go through the
    same loader. Key lines are recorded so violations can point at the source.

    Args:
        source: Contract source text.

    Returns:
        Parsed ContractDocument.

    Raises:
        ParseError: If the text is not valid YAML/JSON or is not a mapping.
    """
    loader = yaml.SafeLoader(source)
    try:
        node = loader.get_single_node()
        data = loader.construct_document(node) if node is not None else None
    except yaml.MarkedYAMLError as e:
        mark = e.problem_mark or e.context_mark
        line = mark.line + 1 if mark else None
        column = mark.column + 1 if mark else None
        message = " ".join(part for part in (e.context, e.problem) if part) or "Invalid YAML"
        raise ParseError(f"Invalid YAML: {message}", line=line, column=column) from e
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid YAML: {e}") from e
    finally:
        loader.dispose()

    if not isinstance(data, dict):
        kind = "empty" if data is None else type(data).__name__
        raise ParseError(
            f"Document must be a mapping with OpenAPI fields, got {kind} content",
            line=1,
        )

    lines: dict[tuple[str, ...], int] = {}
    _index_lines(node, (), lines, frozenset())
    logger.debug("Parsed contract with %d top-level keys", len(data))
    return ContractDocument(data=data, source=source, lines=lines)


def parse_file(file_path: Path | str) -> ContractDocument:
    """Parse a contract file.

    Args:
        file_path: Path to a .yaml, .yml or .json contract.

    Returns:
        Parsed ContractDocument.
    """
    file_path = Path(file_path)
    return parse_document(file_path.read_text())


def _index_lines(
    node: Any,
    prefix: tuple[str, ...],
    lines: dict[tuple[str, ...], int],
    active: frozenset[int],
) -> None:
    """Record the line of every mapping key under ``node``."""
    # Anchors and aliases can make the node graph cyclic.
    if id(node) in active:
        return
    active = active | {id(node)}

    if isinstance(node, yaml.MappingNode):
        for key_node, value_node in node.value:
            path = prefix + (str(key_node.value),)
            lines.setdefault(path, key_node.start_mark.line + 1)
            _index_lines(value_node, path, lines, active)
    elif isinstance(node, yaml.SequenceNode):
        for index, item in enumerate(node.value):
            path = prefix + (str(index),)
            lines.setdefault(path, item.start_mark.line + 1)
            _index_lines(item, path, lines, active)
