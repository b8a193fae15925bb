"""
Canonical configuration trees.

A tree is a nested dict whose leaves are scalars or lists. This package
provides the merge primitive used to layer sources, the normalization
step that expands dotted keys, and read-only views for publishing trees.

Example:
    >>> from figi.tree import deep_merge, normalize
    >>> defaults = normalize({"database.host": "localhost", "database": {"port": 5432}})
    >>> deep_merge(defaults, {"database": {"host": "db.internal"}})
    {'database': {'host': 'db.internal', 'port': 5432}}
"""

from figi.tree._frozen import FrozenMapping, FrozenSequence, freeze, thaw
from figi.tree._merge import (
    MISSING,
    assign,
    deep_merge,
    join_key,
    lookup,
    merge_all,
    normalize,
    resolve_path,
    split_key,
    trees_equal,
)
from figi.tree._types import Path, Tree

__all__ = [
    "MISSING",
    "FrozenMapping",
    "FrozenSequence",
    "Path",
    "Tree",
    "assign",
    "deep_merge",
    "freeze",
    "join_key",
    "lookup",
    "merge_all",
    "normalize",
    "resolve_path",
    "split_key",
    "thaw",
    "trees_equal",
]
