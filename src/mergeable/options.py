"""
Merge policy configuration.

A MergeConfig is built fresh for every merge() call: it starts from the
ambient settings, then each option function is applied in the order given,
so a later option wins when two touch the same flag.

    merge(dst, src, with_override, with_append_sequence)
"""

from __future__ import annotations

import dataclasses as _dataclasses
import os as _os
import typing as _typing

import mergeable._types as _types
import mergeable.fields as fields
import mergeable.settings as settings


@_typing.runtime_checkable
class Transformers(_typing.Protocol):
    """Supplies custom merge functions for specific types."""

    def transformer(self, typ: type) -> _types.MergeFunc | None:
        """
        Return the merge function for typ, or None for default handling.

        The function receives (dst, src) and returns the merged value for
        the slot; it may mutate and return dst.
        """
        ...


class TypeTransformers:
    """
    Transformers backed by a mapping of exact types to merge functions.

    Example:
        >>> def later(dst, src):
        ...     return max(dst, src)
        >>> t = TypeTransformers({datetime.datetime: later})
        >>> merge(dst, src, with_transformers(t))
    """

    def __init__(self, functions: _typing.Mapping[type, _types.MergeFunc]) -> None:
        self._functions = dict(functions)

    def transformer(self, typ: type) -> _types.MergeFunc | None:
        return self._functions.get(typ)


@_dataclasses.dataclass
class MergeConfig:
    """Policy flags for one merge call."""

    overwrite: bool = False
    append_sequences: bool = False
    type_check: bool = False
    overwrite_with_empty_value: bool = False
    overwrite_empty_sequence_with_empty_value: bool = False
    sequence_deep_copy: bool = False
    transformers: Transformers | None = None

    environment: _typing.Mapping[str, str] | None = None
    """Variables read by the environment overlay; None means os.environ."""

    environment_prefix: str = ""
    environment_overlay: bool = True
    registry: fields.FieldRegistry = _dataclasses.field(
        default_factory=lambda: fields.default_registry
    )
    debug: bool = False

    @classmethod
    def from_settings(cls, ambient: settings.MergeSettings | None = None) -> MergeConfig:
        """Create a config seeded with the ambient settings."""
        ambient = ambient if ambient is not None else settings.get_settings()
        return cls(
            environment_prefix=ambient.environment_prefix,
            environment_overlay=ambient.environment_overlay,
            debug=ambient.debug,
        )

    @property
    def environ(self) -> _typing.Mapping[str, str]:
        return self.environment if self.environment is not None else _os.environ


def build_config(*opts: _types.Option) -> MergeConfig:
    """Apply option functions, in order, to a fresh config."""
    config = MergeConfig.from_settings()
    for opt in opts:
        opt(config)
    return config


# =============================================================================
# Options
# =============================================================================


def with_override(config: MergeConfig) -> None:
    """Override non-empty dst values with non-empty src values."""
    config.overwrite = True


def with_overwrite_with_empty_value(config: MergeConfig) -> None:
    """Override dst values with src values even when src values are empty."""
    config.overwrite = True
    config.overwrite_with_empty_value = True


def with_override_empty_sequence(config: MergeConfig) -> None:
    """Let an empty src sequence replace a dst sequence."""
    config.overwrite_empty_sequence_with_empty_value = True


def with_append_sequence(config: MergeConfig) -> None:
    """Append src sequences to dst sequences instead of replacing them."""
    config.append_sequences = True


def with_type_check(config: MergeConfig) -> None:
    """Check sequence types when replacing (use together with with_override)."""
    config.type_check = True


def with_sequence_deep_copy(config: MergeConfig) -> None:
    """Merge sequences element by element, with overwrite on."""
    config.sequence_deep_copy = True
    config.overwrite = True


def with_transformers(transformers: Transformers) -> _types.Option:
    """Use custom merge functions for the types transformers knows about."""

    def option(config: MergeConfig) -> None:
        config.transformers = transformers

    return option


def with_environment(environ: _typing.Mapping[str, str]) -> _types.Option:
    """Read field overrides from environ instead of os.environ."""

    def option(config: MergeConfig) -> None:
        config.environment = environ

    return option


def with_environment_prefix(prefix: str) -> _types.Option:
    """Use prefix for records that do not implement Overridable."""

    def option(config: MergeConfig) -> None:
        config.environment_prefix = prefix

    return option


def without_environment(config: MergeConfig) -> None:
    """Skip environment overrides entirely."""
    config.environment_overlay = False


def with_field_registry(registry: fields.FieldRegistry) -> _types.Option:
    """Cache field metadata in registry instead of the default one."""

    def option(config: MergeConfig) -> None:
        config.registry = registry

    return option


def with_debug(config: MergeConfig) -> None:
    """Log every merge decision at DEBUG level."""
    config.debug = True
