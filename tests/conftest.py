"""
Shared pytest fixtures for mergeable tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import os as _os
import typing as _typing

import pytest as _pytest

import mergeable.fields as fields
import mergeable.settings as settings

# Prefixes of environment variables that tests set or that would leak into them
ENV_PREFIXES_TO_CLEAR = (
    "MERGEABLE_",
    "MSVC_",
    "OTC_",
    "OVRTSC_",
    "DB_",
    "APP_",
)


@_pytest.fixture(autouse=True)
def clean_env(monkeypatch: _pytest.MonkeyPatch) -> _typing.Generator[None, None, None]:
    """Remove merge-related environment variables and reset cached settings."""
    for key in list(_os.environ):
        if key.upper().startswith(ENV_PREFIXES_TO_CLEAR):
            monkeypatch.delenv(key, raising=False)
    settings.get_settings.cache_clear()
    yield
    settings.get_settings.cache_clear()


@_pytest.fixture
def registry() -> fields.FieldRegistry:
    """A fresh, empty field registry."""
    return fields.FieldRegistry()
