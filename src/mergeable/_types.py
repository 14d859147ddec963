"""
Shared kinds and type aliases for mergeable.

This module provides:
- Kind: the structural kind of a slot in a value tree
- Option: the signature of a merge option function
- MergeFunc: the signature of a custom (transformer) merge function
"""

from __future__ import annotations

import enum as _enum
import typing as _typing

if _typing.TYPE_CHECKING:
    import mergeable.options as options


class Kind(_enum.Enum):
    """Structural kind of a value tree node."""

    RECORD = "record"
    MAPPING = "mapping"
    SEQUENCE = "sequence"
    OPTIONAL = "optional"
    DYNAMIC = "dynamic"
    SCALAR = "scalar"

    @property
    def complex(self) -> bool:
        """Records, mappings and sequences are complex; they skip the environment overlay."""
        return self in (Kind.RECORD, Kind.MAPPING, Kind.SEQUENCE)


# Option functions mutate a fresh MergeConfig, in the order given
Option: _typing.TypeAlias = "_typing.Callable[[options.MergeConfig], None]"

# Custom merge functions receive (dst, src) and return the merged slot value
MergeFunc: _typing.TypeAlias = _typing.Callable[[_typing.Any, _typing.Any], _typing.Any]
