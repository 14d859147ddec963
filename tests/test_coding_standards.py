"""
Tests that enforce the import conventions of mergeable.

- No 'from X import Y' outside __init__.py (except __future__ and
  TYPE_CHECKING blocks)
- External modules are imported as 'import x as _x'
- Modules that log use a module-level _logger named after the module
"""

import ast as _ast
import pathlib as _pathlib
import typing as _typing

import pytest as _pytest

ROOT_DIR = _pathlib.Path(__file__).parent.parent
SRC_DIR = ROOT_DIR / "src" / "mergeable"
TESTS_DIR = ROOT_DIR / "tests"

INTERNAL_PACKAGES = ("mergeable", "tests")


def _python_files(directory: _pathlib.Path) -> list[_pathlib.Path]:
    return sorted(directory.rglob("*.py"))


def _is_type_checking_block(node: _ast.AST) -> bool:
    if not isinstance(node, _ast.If):
        return False
    test = node.test
    if isinstance(test, _ast.Name):
        return test.id == "TYPE_CHECKING"
    return isinstance(test, _ast.Attribute) and test.attr == "TYPE_CHECKING"


def _runtime_imports(tree: _ast.Module) -> list[_ast.Import | _ast.ImportFrom]:
    """Collect import statements, skipping TYPE_CHECKING blocks."""
    found: list[_ast.Import | _ast.ImportFrom] = []

    def visit(nodes: list[_ast.stmt]) -> None:
        for node in nodes:
            if _is_type_checking_block(node):
                continue
            if isinstance(node, (_ast.Import, _ast.ImportFrom)):
                found.append(node)
            for field in ("body", "orelse", "finalbody"):
                children = getattr(node, field, None)
                if isinstance(children, list):
                    visit([c for c in children if isinstance(c, _ast.stmt)])
            for handler in getattr(node, "handlers", []):
                visit(handler.body)

    visit(tree.body)
    return found


def from_import_violations(source: str) -> list[str]:
    """Return 'line: statement' for every forbidden from-import."""
    tree = _ast.parse(source)
    violations = []
    for node in _runtime_imports(tree):
        if isinstance(node, _ast.ImportFrom) and node.module != "__future__":
            names = ", ".join(alias.name for alias in node.names)
            violations.append(f"{node.lineno}: from {node.module} import {names}")
    return violations


def alias_violations(source: str) -> list[str]:
    """Return 'line: statement' for external imports not aliased as _name."""
    tree = _ast.parse(source)
    violations = []
    for node in _runtime_imports(tree):
        if not isinstance(node, _ast.Import):
            continue
        for alias in node.names:
            top = alias.name.split(".")[0]
            if top in INTERNAL_PACKAGES:
                continue
            if alias.asname is None or not alias.asname.startswith("_"):
                violations.append(f"{node.lineno}: import {alias.name}")
    return violations


def _collect(
    paths: list[_pathlib.Path],
    check: _typing.Callable[[str], list[str]],
) -> list[str]:
    violations = []
    for path in paths:
        if path.name == "__init__.py":
            continue
        for violation in check(path.read_text()):
            violations.append(f"{path.relative_to(ROOT_DIR)}:{violation}")
    return violations


class TestImportStyle:
    """Tests for import style compliance."""

    def test_src_no_from_imports(self) -> None:
        """Source modules import modules, not names."""
        violations = _collect(_python_files(SRC_DIR), from_import_violations)

        if violations:
            _pytest.fail(
                "Found forbidden 'from X import Y' imports:\n  "
                + "\n  ".join(violations)
                + "\n\nUse 'import x as _x' (external) or 'import pkg.mod as mod' (internal)."
            )

    def test_tests_no_from_imports(self) -> None:
        violations = _collect(_python_files(TESTS_DIR), from_import_violations)

        assert violations == []

    def test_src_external_imports_are_private(self) -> None:
        """Standard library and third-party modules are bound to _names."""
        violations = _collect(_python_files(SRC_DIR), alias_violations)

        assert violations == []

    def test_loggers_are_named_after_modules(self) -> None:
        """Every module that logs does so through getLogger(__name__)."""
        offenders = []
        for path in _python_files(SRC_DIR):
            content = path.read_text()
            if "_logger." in content and "_logger = _logging.getLogger(__name__)" not in content:
                offenders.append(str(path.relative_to(ROOT_DIR)))

        assert offenders == []


class TestImportExtraction:
    """Tests for the checks themselves."""

    def test_detects_from_import(self) -> None:
        assert from_import_violations("from pathlib import Path\n") == [
            "1: from pathlib import Path"
        ]

    def test_allows_future_imports(self) -> None:
        assert from_import_violations("from __future__ import annotations\n") == []

    def test_ignores_type_checking_block(self) -> None:
        content = (
            "import typing as _typing\n"
            "\n"
            "if _typing.TYPE_CHECKING:\n"
            "    from some_module import SomeType\n"
        )

        assert from_import_violations(content) == []

    def test_detects_nested_import(self) -> None:
        content = "def f():\n    from json import loads\n"

        assert from_import_violations(content) == ["2: from json import loads"]

    @_pytest.mark.parametrize(
        ("content", "expected"),
        [
            ("import os as _os\n", []),
            ("import mergeable.fields as fields\n", []),
            ("import os\n", ["1: import os"]),
            ("import pydantic as pd\n", ["1: import pydantic"]),
        ],
    )
    def test_alias_check(self, content: str, expected: list[str]) -> None:
        assert alias_violations(content) == expected
