"""Contract documents: parsing and structural checks."""

from contractlint.contract.document import ContractDocument, HTTP_METHODS, operation_label
from contractlint.contract.parser import parse_document, parse_file
from contractlint.contract.structure import StructuralChecker, check_structure

__all__ = [
    "ContractDocument",
    "HTTP_METHODS",
    "StructuralChecker",
    "check_structure",
    "operation_label",
    "parse_document",
    "parse_file",
]
