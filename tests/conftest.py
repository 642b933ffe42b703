"""Pytest fixtures for contractlint tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from contractlint.config import Settings
from contractlint.contract.document import ContractDocument
from contractlint.contract.parser import parse_document
from contractlint.rules.compiler import RuleCompiler
from contractlint.rules.manager import RuleSetManager, default_rule_set
from contractlint.rules.schemas import RuleSet
from contractlint.rules.validators import get_template


VALID_CONTRACT = """openapi: 3.0.3
info:
  title: Pet Store
  version: 1.0.0
paths:
  /v1/pets:
    get:
      summary: List pets
      responses:
        '200':
          description: A list of pets
    post:
      summary: Create a pet
      responses:
        '201':
          description: Created
  /v1/pets/{petId}:
    parameters:
      - name: petId
        in: path
        required: true
        schema:
          type: string
    get:
      summary: Get a pet
      responses:
        '200':
          description: A pet
"""


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Create a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def project_dir(temp_dir: Path) -> Path:
    """Create a project directory with .contractlint."""
    (temp_dir / ".contractlint").mkdir()
    return temp_dir


@pytest.fixture
def valid_source() -> str:
    """Source text of a contract that passes every default check."""
    return VALID_CONTRACT


@pytest.fixture
def valid_document(valid_source: str) -> ContractDocument:
    """Parsed form of the valid contract."""
    return parse_document(valid_source)


@pytest.fixture
def settings() -> Settings:
    """Settings with a small predicate budget so runaway predicates stop fast."""
    return Settings(predicate_step_budget=500, predicate_timeout=5.0)


@pytest.fixture
def compiler(settings: Settings) -> RuleCompiler:
    """Compiler using the test settings."""
    return RuleCompiler(settings)


@pytest.fixture
def default_rules() -> RuleSet:
    """A fresh default style guide."""
    return default_rule_set()


@pytest.fixture
def manager(default_rules: RuleSet, compiler: RuleCompiler) -> RuleSetManager:
    """Manager holding the default style guide."""
    return RuleSetManager(default_rules, compiler=compiler)


@pytest.fixture
def lowercase_rules() -> RuleSet:
    """Rule set with only the lowercase path segment rule."""
    return RuleSet(
        id="lowercase",
        name="Lowercase Only",
        rules=[get_template("lowercase-path-segments").to_rule()],
    )
