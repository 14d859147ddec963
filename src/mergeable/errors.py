"""
Error types raised by merge().

All errors derive from MergeError. They abort the whole traversal; fields
that were already merged before the failure stay merged.
"""

from __future__ import annotations

import typing as _typing


class MergeError(Exception):
    """Base class for all merge failures."""

    pass


class ArgumentShapeError(MergeError):
    """The arguments handed to merge() have the wrong shape."""

    pass


class NilArgumentError(ArgumentShapeError):
    """dst or src is None."""

    def __init__(self) -> None:
        super().__init__("src and dst must not be None")


class NonReferenceArgumentError(ArgumentShapeError):
    """dst cannot be mutated in place."""

    def __init__(self, dst_type: type) -> None:
        self.dst_type = dst_type
        super().__init__(
            f"dst must be a mutable reference, got immutable {dst_type.__name__}"
        )


class UnsupportedTypeError(ArgumentShapeError):
    """dst is neither a record, a mapping nor a sequence."""

    def __init__(self, dst_type: type) -> None:
        self.dst_type = dst_type
        super().__init__(
            f"only records, mappings and sequences are supported, got {dst_type.__name__}"
        )


class TypeMismatchError(MergeError):
    """dst and src differ in type where the merge requires them to match."""

    def __init__(
        self,
        message: str | None = None,
        *,
        dst_type: type | None = None,
        src_type: type | None = None,
    ) -> None:
        self.dst_type = dst_type
        self.src_type = src_type
        if message is None:
            message = "src and dst must be of same type"
            if dst_type is not None and src_type is not None:
                message += f" (dst: {_type_name(dst_type)}, src: {_type_name(src_type)})"
        super().__init__(message)

    @classmethod
    def for_sequences(
        cls,
        action: str,
        dst: _typing.Sequence[_typing.Any],
        src: _typing.Sequence[_typing.Any],
    ) -> TypeMismatchError:
        """Build the error raised by the sequence replace/append type checks."""
        return cls(
            f"cannot {action} two sequences with different type "
            f"({sequence_type_name(src)}, {sequence_type_name(dst)})",
            dst_type=type(dst),
            src_type=type(src),
        )


class MustOverrideError(MergeError):
    """A field tagged mustoverride was not supplied by the override."""

    def __init__(self, record_type: type, field_name: str) -> None:
        self.record_type = record_type
        self.field_name = field_name
        super().__init__(
            f"{record_type.__name__}.{field_name} is tagged mustoverride "
            "but was not set by the override or the environment"
        )


def _type_name(typ: type) -> str:
    return getattr(typ, "__qualname__", repr(typ))


def sequence_type_name(seq: _typing.Sequence[_typing.Any]) -> str:
    """
    Describe a sequence by container and element types.

    Example:
        >>> sequence_type_name([1, 2])
        'list[int]'
        >>> sequence_type_name(("a", 1))
        'tuple[int | str]'
    """
    element_names = sorted({_type_name(type(item)) for item in seq})
    if not element_names:
        return f"{_type_name(type(seq))}[]"
    return f"{_type_name(type(seq))}[{' | '.join(element_names)}]"
