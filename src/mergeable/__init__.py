"""
mergeable: deep merge for configuration records.

Layers an override object onto a base object of the same shape, field by
field and recursively, with a configurable conflict policy. Scalar fields
can additionally be overridden from environment variables.

Example:
    >>> import dataclasses
    >>> import mergeable
    >>> @dataclasses.dataclass
    ... class Config:
    ...     name: str = ""
    ...     region: str = dataclasses.field(default="", metadata=mergeable.tags("final"))
    >>> base = Config(name="base", region="eu")
    >>> mergeable.merge(base, Config(name="override", region="us"), mergeable.with_override)
    >>> base
    Config(name='override', region='eu')
"""

from mergeable._types import Kind, MergeFunc, Option
from mergeable.environment import (
    DEFAULT_ENVIRONMENT_PREFIX,
    Overridable,
)
from mergeable.errors import (
    ArgumentShapeError,
    MergeError,
    MustOverrideError,
    NilArgumentError,
    NonReferenceArgumentError,
    TypeMismatchError,
    UnsupportedTypeError,
)
from mergeable.fields import (
    FIELD_TAG_FINAL,
    FIELD_TAG_MUST_OVERRIDE,
    FIELD_TAG_NAME,
    FIELD_TAG_OPTIONAL,
    FieldInfo,
    FieldRegistry,
    default_registry,
    parse_field,
    tags,
)
from mergeable.options import (
    MergeConfig,
    Transformers,
    TypeTransformers,
    with_append_sequence,
    with_debug,
    with_environment,
    with_environment_prefix,
    with_field_registry,
    with_override,
    with_override_empty_sequence,
    with_overwrite_with_empty_value,
    with_sequence_deep_copy,
    with_transformers,
    with_type_check,
    without_environment,
)
from mergeable.settings import MergeSettings, get_settings
from mergeable.traversal import merge, merge_with_overwrite

__all__ = [
    "DEFAULT_ENVIRONMENT_PREFIX",
    "FIELD_TAG_FINAL",
    "FIELD_TAG_MUST_OVERRIDE",
    "FIELD_TAG_NAME",
    "FIELD_TAG_OPTIONAL",
    "ArgumentShapeError",
    "FieldInfo",
    "FieldRegistry",
    "Kind",
    "MergeConfig",
    "MergeError",
    "MergeFunc",
    "MergeSettings",
    "MustOverrideError",
    "NilArgumentError",
    "NonReferenceArgumentError",
    "Option",
    "Overridable",
    "Transformers",
    "TypeMismatchError",
    "TypeTransformers",
    "UnsupportedTypeError",
    "default_registry",
    "get_settings",
    "merge",
    "merge_with_overwrite",
    "parse_field",
    "tags",
    "with_append_sequence",
    "with_debug",
    "with_environment",
    "with_environment_prefix",
    "with_field_registry",
    "with_override",
    "with_override_empty_sequence",
    "with_overwrite_with_empty_value",
    "with_sequence_deep_copy",
    "with_transformers",
    "with_type_check",
    "without_environment",
]
