"""
Deep merge of same-shaped records, mappings and sequences.

merge() walks dst and src together and folds src into dst, field by
field, according to the policy built from its options:

    >>> base = ServiceConfig(name="api", replicas=2)
    >>> override = ServiceConfig(name="", replicas=4)
    >>> merge(base, override, with_override)
    >>> base
    ServiceConfig(name='api', replicas=4)

Every slot of the tree is value-returning: the traversal computes the
merged value of a slot and the enclosing container stores it (setattr,
dst[key] = ..., dst[i] = ...). Mutable records, mappings and lists are
merged in place; tuples and frozen records are rebuilt.

Scalar record fields are checked against the environment first (see
mergeable.environment); a field set from the environment is not merged.
Fields tagged "final" are never touched.
"""

from __future__ import annotations

import collections.abc as _abc
import copy as _copy
import dataclasses as _dataclasses
import enum as _enum
import itertools as _itertools
import logging as _logging
import numbers as _numbers
import typing as _typing
import warnings as _warnings

import pydantic as _pydantic

import mergeable._types as _types
import mergeable.environment as environment
import mergeable.errors as errors
import mergeable.fields as fields
import mergeable.options as options
import mergeable.predicates as predicates

_logger = _logging.getLogger(__name__)

Kind = _types.Kind

# Destinations that can never be merged into in place
_IMMUTABLE_TYPES = (
    str,
    bytes,
    _numbers.Number,
    frozenset,
    tuple,
    _enum.Enum,
    _abc.Mapping,
)


class _Merger:
    """One traversal: a policy plus the records visited so far."""

    def __init__(self, config: options.MergeConfig) -> None:
        self._config = config
        self._visited = predicates.VisitedSet()

    def _trace(self, depth: int, message: str, *args: _typing.Any) -> None:
        if self._config.debug:
            _logger.debug("%s" + message, "  " * depth, *args)

    # =========================================================================
    # Dispatch
    # =========================================================================

    def merge(
        self,
        dst: _typing.Any,
        src: _typing.Any,
        depth: int,
        kind: Kind | None = None,
        annotation: _typing.Any = fields.UNTYPED,
        settable: bool = True,
    ) -> _typing.Any:
        """
        Merge src into dst and return the slot's new value.

        Args:
            dst: Current value of the slot.
            src: Value being merged in.
            depth: Nesting level, for tracing.
            kind: Declared kind of the slot, None for untyped positions
                (mapping values, sequence items, the root).
            annotation: Declared type of the slot (for an optional slot,
                the type behind None); UNTYPED where nothing is declared.
            settable: Whether the caller can store a new value.
        """
        config = self._config
        if config.transformers is not None and not predicates.is_empty(dst):
            fn = config.transformers.transformer(type(dst))
            if fn is not None:
                self._trace(depth, "custom merge for %s", type(dst).__qualname__)
                return fn(dst, src)

        if kind is Kind.OPTIONAL:
            return self._merge_optional(dst, src, depth, annotation, settable)
        if kind is Kind.DYNAMIC:
            return self._merge_dynamic(dst, src, depth, settable)
        if kind is None:
            return self._merge_untyped(dst, src, depth, settable)
        if dst is not None:
            runtime_kind = predicates.value_kind(dst)
            if runtime_kind is not kind:
                # The declared type does not describe this value
                kind, annotation = runtime_kind, fields.UNTYPED
        return self._dispatch(kind, dst, src, depth, settable, annotation)

    def _dispatch(
        self,
        kind: Kind,
        dst: _typing.Any,
        src: _typing.Any,
        depth: int,
        settable: bool,
        annotation: _typing.Any = fields.UNTYPED,
    ) -> _typing.Any:
        if kind is Kind.RECORD:
            return self._merge_record(dst, src, depth, settable)
        if kind is Kind.MAPPING:
            return self._merge_mapping(dst, src, depth, settable)
        if kind is Kind.SEQUENCE:
            return self._merge_sequence(dst, src, depth, settable, annotation)
        return self._merge_scalar(dst, src, depth)

    def _absent_src(self, dst: _typing.Any, settable: bool) -> _typing.Any:
        """src is None: only an explicit empty-value overwrite clears dst."""
        if self._config.overwrite_with_empty_value and settable:
            return None
        return dst

    def _merge_untyped(
        self,
        dst: _typing.Any,
        src: _typing.Any,
        depth: int,
        settable: bool,
    ) -> _typing.Any:
        if src is None:
            return self._absent_src(dst, settable)
        if dst is None:
            return src
        if not predicates.same_shape(dst, src):
            self._trace(
                depth,
                "shape differs (%s, %s)",
                type(dst).__qualname__,
                type(src).__qualname__,
            )
            return src if self._config.overwrite else dst
        return self._dispatch(predicates.value_kind(dst), dst, src, depth, settable)

    # =========================================================================
    # Optional and polymorphic slots
    # =========================================================================

    def _merge_optional(
        self,
        dst: _typing.Any,
        src: _typing.Any,
        depth: int,
        inner: _typing.Any,
        settable: bool,
    ) -> _typing.Any:
        if src is None:
            return self._absent_src(dst, settable)
        if dst is None:
            return src
        inner_kind = fields.annotation_kind(inner)
        return self.merge(dst, src, depth + 1, inner_kind, inner, settable)

    def _merge_dynamic(
        self,
        dst: _typing.Any,
        src: _typing.Any,
        depth: int,
        settable: bool,
    ) -> _typing.Any:
        if src is None:
            return self._absent_src(dst, settable)
        if dst is None or self._config.overwrite:
            return src
        if predicates.same_shape(dst, src):
            return self._merge_untyped(dst, src, depth + 1, settable)
        return dst

    # =========================================================================
    # Records
    # =========================================================================

    def _merge_record(
        self,
        dst: _typing.Any,
        src: _typing.Any,
        depth: int,
        settable: bool,
    ) -> _typing.Any:
        config = self._config
        if src is None:
            return self._absent_src(dst, settable)
        if dst is None:
            return src
        record_type = type(dst)
        if type(src) is not record_type:
            raise errors.TypeMismatchError(dst_type=record_type, src_type=type(src))

        frozen = predicates.is_frozen_record(dst)
        if not frozen and not self._visited.enter(dst):
            self._trace(depth, "%s already visited", record_type.__qualname__)
            return dst

        if not config.registry.has_mergeable_fields(record_type):
            # Opaque: no field can be merged, so the record is a single value
            if config.overwrite and (not predicates.is_empty(src) or config.overwrite_with_empty_value):
                return src
            return dst

        self._trace(depth, "record %s", record_type.__qualname__)
        updates: dict[str, _typing.Any] = {}
        for info in config.registry.fields_of(record_type):
            if not info.exported or info.final:
                continue
            current = getattr(dst, info.name)
            incoming = getattr(src, info.name)

            if self._override_from_environment(dst, info, frozen, updates):
                self._trace(depth + 1, "%s set from environment", info.name)
                continue

            declared = info.inner if info.kind is Kind.OPTIONAL else info.annotation
            merged = self.merge(current, incoming, depth + 1, info.kind, declared, info.settable)
            if info.settable and merged is not current:
                if frozen:
                    updates[info.name] = merged
                else:
                    setattr(dst, info.name, merged)

            if info.must_override and predicates.is_empty(incoming):
                raise errors.MustOverrideError(record_type, info.name)

        if updates:
            return _rebuild_record(dst, updates)
        return dst

    def _override_from_environment(
        self,
        dst: _typing.Any,
        info: fields.FieldInfo,
        frozen: bool,
        updates: dict[str, _typing.Any],
    ) -> bool:
        config = self._config
        if not config.environment_overlay or info.complex or not info.settable:
            return False
        env_var_name = environment.environment_variable_name(
            dst, info.name, config.environment_prefix
        )
        if not frozen:
            return environment.override_from_environment(dst, info, env_var_name, config.environ)
        found, value = environment.environment_value(info, env_var_name, config.environ)
        if found:
            updates[info.name] = value
        return found

    # =========================================================================
    # Mappings
    # =========================================================================

    def _merge_mapping(
        self,
        dst: _typing.Any,
        src: _typing.Any,
        depth: int,
        settable: bool,
    ) -> _typing.Any:
        config = self._config
        if src is None:
            return self._absent_src(dst, settable)
        if not isinstance(src, _abc.Mapping):
            return src if config.overwrite and settable else dst
        if dst is None:
            if not settable:
                return src
            dst = _new_mapping(src)

        self._trace(depth, "mapping with %d keys", len(src))
        for key, src_item in src.items():
            present = key in dst
            dst_item = dst[key] if present else None

            if src_item is None:
                if config.overwrite:
                    dst[key] = None
                continue

            src_kind = predicates.value_kind(src_item)
            if dst_item is not None and not predicates.same_shape(dst_item, src_item):
                if config.overwrite:
                    dst[key] = src_item
                continue

            if src_kind is Kind.MAPPING:
                base = dst_item if dst_item is not None else _new_mapping(src_item)
                dst[key] = self.merge(base, src_item, depth + 1)
                continue
            if src_kind is Kind.RECORD:
                if dst_item is not None:
                    dst[key] = self.merge(dst_item, src_item, depth + 1)
                else:
                    dst[key] = src_item
                continue
            if src_kind is Kind.SEQUENCE and dst_item is not None:
                dst[key] = self._merge_sequence(dst_item, src_item, depth + 1, True)
                if not predicates.is_empty(dst_item):
                    continue

            if not present or predicates.is_empty(dst_item) or config.overwrite:
                dst[key] = src_item
        return dst

    # =========================================================================
    # Sequences
    # =========================================================================

    def _merge_sequence(
        self,
        dst: _typing.Any,
        src: _typing.Any,
        depth: int,
        settable: bool,
        annotation: _typing.Any = fields.UNTYPED,
    ) -> _typing.Any:
        config = self._config
        if not settable:
            return dst
        if src is not None and not predicates.is_sequence(src):
            raise errors.TypeMismatchError(dst_type=type(dst), src_type=type(src))

        replace_allowed = (
            not predicates.is_empty(src)
            or config.overwrite_with_empty_value
            or config.overwrite_empty_sequence_with_empty_value
        )
        if (
            replace_allowed
            and (config.overwrite or predicates.is_empty(dst))
            and not config.append_sequences
            and not config.sequence_deep_copy
        ):
            if config.type_check and dst is not None and src is not None:
                if not _sequences_compatible(dst, src, annotation):
                    raise errors.TypeMismatchError.for_sequences("override", dst, src)
            self._trace(depth, "sequence replaced")
            return src

        if config.append_sequences:
            if src is None:
                return dst
            if dst is None:
                return type(src)(src)
            if not _sequences_compatible(dst, src, annotation):
                raise errors.TypeMismatchError.for_sequences("append", dst, src)
            self._trace(depth, "sequence appended (%d + %d)", len(dst), len(src))
            return type(dst)(_itertools.chain(dst, src))

        if config.sequence_deep_copy and dst is not None and src is not None:
            return self._merge_items(dst, src, depth)
        return dst

    def _merge_items(
        self,
        dst: _typing.Sequence[_typing.Any],
        src: _typing.Sequence[_typing.Any],
        depth: int,
    ) -> _typing.Any:
        """Merge the overlapping index range; items past it are left alone."""
        count = min(len(dst), len(src))
        self._trace(depth, "sequence merged item by item (%d)", count)
        if predicates.is_mutable_sequence(dst):
            for i in range(count):
                merged = self.merge(dst[i], src[i], depth + 1)
                if merged is not dst[i]:
                    dst[i] = merged
            return dst
        items = list(dst)
        for i in range(count):
            items[i] = self.merge(items[i], src[i], depth + 1)
        return type(dst)(items)

    # =========================================================================
    # Scalars
    # =========================================================================

    def _merge_scalar(self, dst: _typing.Any, src: _typing.Any, depth: int) -> _typing.Any:
        config = self._config
        must_set = (predicates.is_empty(dst) or config.overwrite) and (
            not predicates.is_empty(src) or config.overwrite_with_empty_value
        )
        if must_set:
            self._trace(depth, "%r -> %r", dst, src)
            return src
        return dst


# =============================================================================
# Helpers
# =============================================================================


def _new_mapping(template: _abc.Mapping[_typing.Any, _typing.Any]) -> _typing.Any:
    """Create an empty mapping of template's type, or a dict."""
    if isinstance(template, _abc.MutableMapping):
        try:
            return type(template)()
        except TypeError:
            pass
    return {}


def _sequences_compatible(
    dst: _typing.Sequence[_typing.Any],
    src: _typing.Sequence[_typing.Any],
    annotation: _typing.Any,
) -> bool:
    """
    Check if two sequences share a type.

    Both sides of a declared slot share its annotation, so they always
    match there. Untyped positions compare container types; item types
    are never inspected.
    """
    if annotation is not fields.UNTYPED:
        return True
    return type(dst) is type(src)


def _record_field_names(record: _typing.Any) -> list[str]:
    if isinstance(record, _pydantic.BaseModel):
        return list(type(record).model_fields)
    return [f.name for f in _dataclasses.fields(record)]


def _rebuild_record(record: _typing.Any, updates: dict[str, _typing.Any]) -> _typing.Any:
    """Copy a frozen record with some fields replaced."""
    if isinstance(record, _pydantic.BaseModel):
        return record.model_copy(update=updates)
    rebuilt = _copy.copy(record)
    for name, value in updates.items():
        object.__setattr__(rebuilt, name, value)
    return rebuilt


def _write_back(dst: _typing.Any, result: _typing.Any) -> None:
    """Store a root result that is a different object into dst itself."""
    if predicates.is_record(dst):
        for name in _record_field_names(dst):
            setattr(dst, name, getattr(result, name))
        private = getattr(result, "__pydantic_private__", None)
        for name, value in (private or {}).items():
            setattr(dst, name, value)
    elif isinstance(dst, _abc.MutableMapping):
        items = list(result.items())
        dst.clear()
        dst.update(items)
    else:
        dst[:] = list(result)


def _check_arguments(dst: _typing.Any, src: _typing.Any) -> None:
    if dst is None or src is None:
        raise errors.NilArgumentError()
    kind = predicates.value_kind(dst)
    if kind is Kind.RECORD:
        if predicates.is_frozen_record(dst):
            raise errors.NonReferenceArgumentError(type(dst))
    elif kind is Kind.SEQUENCE:
        if not predicates.is_mutable_sequence(dst):
            raise errors.NonReferenceArgumentError(type(dst))
    elif kind is Kind.SCALAR:
        if isinstance(dst, _IMMUTABLE_TYPES):
            raise errors.NonReferenceArgumentError(type(dst))
        raise errors.UnsupportedTypeError(type(dst))
    if type(dst) is not type(src):
        raise errors.TypeMismatchError(dst_type=type(dst), src_type=type(src))


# =============================================================================
# Entry points
# =============================================================================


def merge(dst: _typing.Any, src: _typing.Any, *opts: _types.Option) -> None:
    """
    Fill dst with values from src.

    By default only empty values of dst are filled from non-empty values
    of src. Options change the policy (see mergeable.options). dst must
    be a mutable record, mapping or list; src must be of the same type.
    Fields whose name starts with an underscore are not merged.

    Args:
        dst: Object to merge into, modified in place.
        src: Object to merge from; only read, except where values end up
            shared with dst.
        *opts: Option functions, applied in order.

    Raises:
        ArgumentShapeError: If dst or src is None, or dst cannot be merged
            into in place.
        TypeMismatchError: If dst and src (or nested values that must
            match) differ in type.
        MustOverrideError: If a field tagged mustoverride was not supplied.
    """
    _check_arguments(dst, src)
    config = options.build_config(*opts)
    if config.debug:
        _logger.debug(
            "Merging %s (overwrite=%s, append=%s, deep_copy=%s)",
            type(dst).__qualname__,
            config.overwrite,
            config.append_sequences,
            config.sequence_deep_copy,
        )
    result = _Merger(config).merge(dst, src, 0)
    if result is not dst:
        _write_back(dst, result)


def merge_with_overwrite(dst: _typing.Any, src: _typing.Any, *opts: _types.Option) -> None:
    """
    Like merge(), but non-empty dst values are overridden by non-empty src values.

    Deprecated: use merge(dst, src, with_override).
    """
    _warnings.warn(
        "merge_with_overwrite() is deprecated; use merge(dst, src, with_override)",
        DeprecationWarning,
        stacklevel=2,
    )
    merge(dst, src, *opts, options.with_override)
