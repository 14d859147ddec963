"""
Environment variable overrides for scalar record fields.

While merging a record, each non-final scalar field is first looked up in
the environment. If a usable value is found it is written into the field
and the field is not merged any further. The variable name comes from the
record itself when it implements Overridable:

    @dataclasses.dataclass
    class DatabaseConfig:
        host: str = "localhost"
        port: int = 5432

        def get_environment_setting(self, field_name: str) -> str:
            return "DB_" + field_name

Otherwise DEFAULT_ENVIRONMENT_PREFIX + field name is used. When the exact
name is not set, the upper-cased name is tried (DB_HOST for DB_host).

Only bool, int, float and str fields (and their optional forms) are
eligible. Empty or unparsable values count as "not set".
"""

from __future__ import annotations

import logging as _logging
import re as _re
import typing as _typing

import mergeable.fields as fields

_logger = _logging.getLogger(__name__)

DEFAULT_ENVIRONMENT_PREFIX = "MSVC_"

_TRUE_STRINGS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_STRINGS = frozenset({"0", "f", "F", "FALSE", "false", "False"})
_INT_PATTERN = _re.compile(r"[+-]?[0-9]+")
_FLOAT_PATTERN = _re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)",
    _re.IGNORECASE,
)


@_typing.runtime_checkable
class Overridable(_typing.Protocol):
    """A record that names the environment variable for each of its fields."""

    def get_environment_setting(self, field_name: str) -> str: ...


def environment_variable_name(
    record: _typing.Any,
    field_name: str,
    prefix: str = DEFAULT_ENVIRONMENT_PREFIX,
) -> str:
    """Resolve the environment variable checked for one field of record."""
    if isinstance(record, Overridable):
        return record.get_environment_setting(field_name)
    return prefix + field_name


# =============================================================================
# Parsers
# =============================================================================


def parse_bool(raw: str | None) -> bool | None:
    """Parse a boolean, accepting 1/0, t/f and true/false spellings."""
    if raw in _TRUE_STRINGS:
        return True
    if raw in _FALSE_STRINGS:
        return False
    return None


def parse_int(raw: str | None) -> int | None:
    """Parse a base-10 integer with optional sign."""
    if not raw or not _INT_PATTERN.fullmatch(raw):
        return None
    return int(raw)


def parse_float(raw: str | None) -> float | None:
    """Parse a float in decimal, exponent, inf or nan form."""
    if not raw or not _FLOAT_PATTERN.fullmatch(raw):
        return None
    return float(raw)


def parse_str(raw: str | None) -> str | None:
    return raw or None


def _parser_for(scalar_type: type | None) -> _typing.Callable[[str | None], _typing.Any] | None:
    if scalar_type is None:
        return None
    # bool first: it is also an int
    if issubclass(scalar_type, bool):
        return parse_bool
    if issubclass(scalar_type, int):
        return parse_int
    if issubclass(scalar_type, float):
        return parse_float
    if issubclass(scalar_type, str):
        return parse_str
    return None


def _convert(value: _typing.Any, scalar_type: type) -> _typing.Any:
    """Convert a parsed value to a named subclass (str subclass, IntEnum, ...)."""
    if type(value) is scalar_type:
        return value
    try:
        return scalar_type(value)
    except (TypeError, ValueError) as e:
        _logger.debug("Cannot convert %r to %s: %s", value, scalar_type.__qualname__, e)
        return None


# =============================================================================
# Lookup
# =============================================================================


def environment_value(
    info: fields.FieldInfo,
    env_var_name: str,
    environ: _typing.Mapping[str, str],
) -> tuple[bool, _typing.Any]:
    """
    Look up and parse the environment value for a field.

    Tries env_var_name, then its upper-cased form if different.

    Returns:
        (True, value) if a usable value was found, else (False, None).
    """
    if info.complex:
        return False, None
    parser = _parser_for(info.scalar_type)
    if parser is None or info.scalar_type is None:
        return False, None

    candidates = [env_var_name]
    if env_var_name.upper() != env_var_name:
        candidates.append(env_var_name.upper())

    for name in candidates:
        parsed = parser(environ.get(name))
        if parsed is None:
            continue
        value = _convert(parsed, info.scalar_type)
        if value is None:
            continue
        _logger.debug("Field %s set from environment variable %s", info.name, name)
        return True, value
    return False, None


def override_from_environment(
    record: _typing.Any,
    info: fields.FieldInfo,
    env_var_name: str,
    environ: _typing.Mapping[str, str],
) -> bool:
    """
    Write an environment value into a record field.

    Optional fields that are None are created from the value.

    Args:
        record: Mutable record owning the field.
        info: The field's metadata.
        env_var_name: Variable to check.
        environ: Environment to read from.

    Returns:
        True if and only if the field was written.
    """
    found, value = environment_value(info, env_var_name, environ)
    if not found:
        return False
    setattr(record, info.name, value)
    return True
