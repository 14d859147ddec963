"""
Field metadata extraction for record types.

A record's fields are inspected once per type and cached in a
FieldRegistry. Each field becomes a FieldInfo describing its declared
kind and the tags found under the "config" key:

    @dataclasses.dataclass
    class ServiceConfig:
        name: str = ""
        region: str = dataclasses.field(default="", metadata=tags("final"))

    class ServiceModel(pydantic.BaseModel):
        region: str = pydantic.Field("", json_schema_extra=tags("final"))

Recognized tokens are "optional", "final" and "mustoverride"; anything
else is kept in FieldInfo.tags but otherwise ignored.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import logging as _logging
import threading as _threading
import types as _pytypes
import typing as _typing

import pydantic as _pydantic

import mergeable._types as _types
import mergeable.predicates as predicates

_logger = _logging.getLogger(__name__)

FIELD_TAG_NAME = "config"
FIELD_TAG_OPTIONAL = "optional"
FIELD_TAG_FINAL = "final"
FIELD_TAG_MUST_OVERRIDE = "mustoverride"

# Annotation for fields whose declared type could not be resolved
UNTYPED: _typing.Any = None

_UNION_TYPES: tuple[_typing.Any, ...] = (_typing.Union, _pytypes.UnionType)


def tags(*tokens: str) -> dict[str, str]:
    """
    Build field metadata carrying merge tags.

    Works for both dataclasses.field(metadata=...) and
    pydantic.Field(json_schema_extra=...).

    Example:
        >>> tags("final", "optional")
        {'config': 'final,optional'}
    """
    return {FIELD_TAG_NAME: ",".join(tokens)}


@_dataclasses.dataclass(frozen=True, slots=True)
class FieldInfo:
    """Merge-relevant metadata for one record field."""

    name: str
    annotation: _typing.Any
    kind: _types.Kind | None
    """Declared kind, or None when the annotation could not be resolved."""

    inner: _typing.Any = UNTYPED
    """Annotation behind an optional (T for T | None)."""

    scalar_type: type | None = None
    """Concrete scalar class, looking through an optional."""

    settable: bool = True
    """False when the record refuses assignment to this field."""

    tags: tuple[str, ...] = ()
    optional: bool = False
    final: bool = False
    must_override: bool = False

    @property
    def complex(self) -> bool:
        """Records, mappings and sequences skip the environment overlay."""
        return self.kind is not None and self.kind.complex

    @property
    def exported(self) -> bool:
        """Fields whose name starts with an underscore are never merged."""
        return not self.name.startswith("_")


# =============================================================================
# Annotation inspection
# =============================================================================


def _strip_annotation(annotation: _typing.Any) -> _typing.Any:
    """Remove Annotated[...] wrappers and NewType indirection."""
    while True:
        if _typing.get_origin(annotation) is _typing.Annotated:
            annotation = _typing.get_args(annotation)[0]
        elif hasattr(annotation, "__supertype__"):
            annotation = annotation.__supertype__
        else:
            return annotation


def split_optional(annotation: _typing.Any) -> tuple[bool, _typing.Any]:
    """
    Split T | None into (True, T).

    Unions of several non-None members stay unions: Optional[A | B]
    gives (True, A | B).
    """
    annotation = _strip_annotation(annotation)
    if _typing.get_origin(annotation) not in _UNION_TYPES:
        return False, annotation
    args = _typing.get_args(annotation)
    members = tuple(arg for arg in args if arg is not type(None))
    if len(members) == len(args):
        return False, annotation
    if len(members) == 1:
        return True, members[0]
    return True, _typing.Union[members]


def annotation_kind(annotation: _typing.Any) -> _types.Kind | None:
    """
    Classify a declared type.

    Returns:
        The Kind, or None for unresolved annotations (the traversal then
        dispatches on runtime values).
    """
    if annotation is UNTYPED or isinstance(annotation, (str, _typing.ForwardRef)):
        return None
    annotation = _strip_annotation(annotation)
    if annotation is _typing.Any or annotation is object:
        return _types.Kind.DYNAMIC
    if isinstance(annotation, _typing.TypeVar):
        return _types.Kind.DYNAMIC

    origin = _typing.get_origin(annotation)
    if origin in _UNION_TYPES:
        is_optional, _ = split_optional(annotation)
        return _types.Kind.OPTIONAL if is_optional else _types.Kind.DYNAMIC
    if origin is _typing.Literal:
        return _types.Kind.SCALAR

    base = origin if origin is not None else annotation
    if not isinstance(base, type):
        return _types.Kind.SCALAR
    if predicates.is_record_type(base):
        return _types.Kind.RECORD
    if issubclass(base, _abc.Mapping):
        return _types.Kind.MAPPING
    if issubclass(base, (str, bytes, bytearray, memoryview)):
        return _types.Kind.SCALAR
    if predicates.is_named_tuple_type(base):
        return _types.Kind.SCALAR
    if issubclass(base, _abc.Sequence):
        return _types.Kind.SEQUENCE
    return _types.Kind.SCALAR


def _scalar_type(annotation: _typing.Any) -> type | None:
    annotation = _strip_annotation(annotation)
    if isinstance(annotation, type) and annotation_kind(annotation) is _types.Kind.SCALAR:
        return annotation
    return None


# =============================================================================
# Tag parsing
# =============================================================================


def parse_tag(value: str | None) -> tuple[str, ...]:
    """Split a tag value into trimmed, non-empty tokens."""
    if not value:
        return ()
    return tuple(token.strip() for token in value.split(",") if token.strip())


def parse_field(
    name: str,
    annotation: _typing.Any,
    tag: str | None = None,
    *,
    settable: bool = True,
) -> FieldInfo:
    """
    Build the FieldInfo for one field.

    Args:
        name: Field name.
        annotation: Declared type (UNTYPED if unknown).
        tag: Raw tag value, e.g. "final,optional".
        settable: Whether the field accepts assignment.

    Returns:
        FieldInfo with kind and flags filled in.
    """
    kind = annotation_kind(annotation)
    inner: _typing.Any = UNTYPED
    scalar_type: type | None = None
    if kind is _types.Kind.OPTIONAL:
        _, inner = split_optional(annotation)
        scalar_type = _scalar_type(inner)
    elif kind is _types.Kind.SCALAR:
        scalar_type = _scalar_type(annotation)

    tokens = parse_tag(tag)
    return FieldInfo(
        name=name,
        annotation=annotation,
        kind=kind,
        inner=inner,
        scalar_type=scalar_type,
        settable=settable,
        tags=tokens,
        optional=FIELD_TAG_OPTIONAL in tokens,
        final=FIELD_TAG_FINAL in tokens,
        must_override=FIELD_TAG_MUST_OVERRIDE in tokens,
    )


def _type_hints(cls: type) -> dict[str, _typing.Any]:
    try:
        return _typing.get_type_hints(cls, include_extras=True)
    except (NameError, TypeError) as e:
        _logger.debug("Could not resolve annotations of %s: %s", cls.__qualname__, e)
        return {}


def _extract_dataclass_fields(cls: type) -> tuple[FieldInfo, ...]:
    hints = _type_hints(cls)
    result = []
    for f in _dataclasses.fields(cls):
        annotation = hints.get(f.name, f.type)
        if isinstance(annotation, str):
            annotation = UNTYPED
        tag = f.metadata.get(FIELD_TAG_NAME) if f.metadata else None
        result.append(parse_field(f.name, annotation, tag))
    return tuple(result)


def _extract_model_fields(cls: type[_pydantic.BaseModel]) -> tuple[FieldInfo, ...]:
    result = []
    for name, f in cls.model_fields.items():
        tag = None
        if isinstance(f.json_schema_extra, dict):
            raw = f.json_schema_extra.get(FIELD_TAG_NAME)
            tag = raw if isinstance(raw, str) else None
        result.append(parse_field(name, f.annotation, tag, settable=not f.frozen))
    return tuple(result)


def extract_fields(cls: type) -> tuple[FieldInfo, ...]:
    """
    Inspect a record class.

    Raises:
        TypeError: If cls is neither a dataclass nor a pydantic model.
    """
    if isinstance(cls, type) and issubclass(cls, _pydantic.BaseModel):
        return _extract_model_fields(cls)
    if _dataclasses.is_dataclass(cls):
        return _extract_dataclass_fields(cls)
    raise TypeError(f"{cls!r} is not a record type")


# =============================================================================
# Registry
# =============================================================================


class FieldRegistry:
    """
    Cache of record type → field metadata.

    Entries are computed on first use (or up front via register()) and
    never change afterwards. Lookups and first-touch population are
    guarded by a lock, so concurrent merges may share one registry.
    """

    def __init__(self) -> None:
        self._fields: dict[type, tuple[FieldInfo, ...]] = {}
        self._lock = _threading.Lock()

    def register(self, *record_types: type) -> None:
        """Populate entries ahead of time (e.g. at startup)."""
        for record_type in record_types:
            self.fields_of(record_type)

    def fields_of(self, record_type: type) -> tuple[FieldInfo, ...]:
        """
        Get field metadata for a record type, in declaration order.

        Raises:
            TypeError: If record_type is not a record class.
        """
        with self._lock:
            cached = self._fields.get(record_type)
            if cached is None:
                cached = extract_fields(record_type)
                self._fields[record_type] = cached
                _logger.debug(
                    "Registered %d fields for %s", len(cached), record_type.__qualname__
                )
            return cached

    def field(self, record_type: type, name: str) -> FieldInfo:
        """
        Get one field's metadata.

        Raises:
            KeyError: If the record type has no such field.
        """
        for info in self.fields_of(record_type):
            if info.name == name:
                return info
        raise KeyError(f"{record_type.__qualname__} has no field '{name}'")

    def has_mergeable_fields(self, record_type: type) -> bool:
        """Check if at least one field is exported."""
        return any(info.exported for info in self.fields_of(record_type))

    def clear(self) -> None:
        """Drop all cached entries."""
        with self._lock:
            self._fields.clear()

    def __contains__(self, record_type: object) -> bool:
        with self._lock:
            return record_type in self._fields

    def __len__(self) -> int:
        with self._lock:
            return len(self._fields)


# Registry used when a merge is not given its own
default_registry = FieldRegistry()
