"""
Emptiness, kind and identity predicates used by the merge traversal.

- is_empty(): whether a value counts as zero-valued
- is_record() / is_frozen_record(): record detection
- value_kind(): structural kind of a runtime value
- VisitedSet: per-call identity set for cycle avoidance
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import numbers as _numbers
import typing as _typing

import pydantic as _pydantic

import mergeable._types as _types

# Sequences that are values, not containers
_TEXT_TYPES = (str, bytes, bytearray, memoryview)


def is_record(value: _typing.Any) -> bool:
    """Check if value is a record instance (dataclass or pydantic model)."""
    if isinstance(value, _pydantic.BaseModel):
        return True
    return _dataclasses.is_dataclass(value) and not isinstance(value, type)


def is_record_type(typ: _typing.Any) -> bool:
    """Check if typ is a record class (dataclass or pydantic model)."""
    if not isinstance(typ, type):
        return False
    return issubclass(typ, _pydantic.BaseModel) or _dataclasses.is_dataclass(typ)


def is_frozen_record(value: _typing.Any) -> bool:
    """Check if value is a record whose fields cannot be assigned."""
    if isinstance(value, _pydantic.BaseModel):
        return bool(type(value).model_config.get("frozen", False))
    params = getattr(type(value), "__dataclass_params__", None)
    return bool(params is not None and params.frozen)


def is_named_tuple_type(typ: _typing.Any) -> bool:
    """Check if typ is a NamedTuple (or namedtuple) class: a fixed-arity value."""
    return isinstance(typ, type) and issubclass(typ, tuple) and hasattr(typ, "_fields")


def is_mutable_sequence(value: _typing.Any) -> bool:
    return isinstance(value, _abc.MutableSequence) and not isinstance(value, _TEXT_TYPES)


def is_sequence(value: _typing.Any) -> bool:
    if isinstance(value, _TEXT_TYPES) or is_named_tuple_type(type(value)):
        return False
    return isinstance(value, _abc.Sequence)


def value_kind(value: _typing.Any) -> _types.Kind:
    """
    Classify a runtime value.

    Read-only mappings and named tuples are scalars: they cannot be
    merged into, only replaced.

    Example:
        >>> value_kind({"a": 1})
        <Kind.MAPPING: 'mapping'>
        >>> value_kind("text")
        <Kind.SCALAR: 'scalar'>
    """
    if is_record(value):
        return _types.Kind.RECORD
    if isinstance(value, _abc.MutableMapping):
        return _types.Kind.MAPPING
    if is_sequence(value):
        return _types.Kind.SEQUENCE
    return _types.Kind.SCALAR


def is_empty(value: _typing.Any) -> bool:
    """
    Check if a value is zero-valued.

    None, False, numeric zero, empty text and empty containers are empty.
    Records are never empty, whatever their field values.

    Example:
        >>> is_empty(0), is_empty(""), is_empty([]), is_empty(None)
        (True, True, True, True)
        >>> is_empty(0.5), is_empty("x"), is_empty([0])
        (False, False, False)
    """
    if value is None:
        return True
    if is_record(value):
        return False
    if isinstance(value, _numbers.Number):
        return value == 0
    if isinstance(value, _abc.Sized):
        return len(value) == 0
    return False


def same_shape(dst: _typing.Any, src: _typing.Any) -> bool:
    """
    Check if two runtime values can be merged into one another.

    Records must be of the exact same class; other values only need the
    same structural kind.
    """
    dst_kind = value_kind(dst)
    if dst_kind is not value_kind(src):
        return False
    if dst_kind is _types.Kind.RECORD:
        return type(dst) is type(src)
    return True


class VisitedSet:
    """
    Records already entered during one traversal.

    Keys are (identity, type) pairs, so an object is only considered seen
    again when it is the very same object viewed as the same type.
    """

    __slots__ = ("_seen",)

    def __init__(self) -> None:
        # Values are kept so ids cannot be reused while the traversal runs
        self._seen: dict[tuple[int, type], _typing.Any] = {}

    @staticmethod
    def key(value: _typing.Any) -> tuple[int, type]:
        return (id(value), type(value))

    def enter(self, value: _typing.Any) -> bool:
        """
        Register value as visited.

        Returns:
            True if value was not seen before, False if it was already
            registered (processed or in progress).
        """
        key = self.key(value)
        if key in self._seen:
            return False
        self._seen[key] = value
        return True

    def __contains__(self, value: object) -> bool:
        return self.key(value) in self._seen

    def __len__(self) -> int:
        return len(self._seen)
