"""
Merge, normalization and comparison primitives for canonical trees.

Merge semantics ("overlay wins"):
- dict + dict -> deep merge
- list + anything -> overlay REPLACES base (lists are never concatenated)
- everything else -> overlay overwrites base

No function in this module mutates its inputs. Results never share
mutable containers with the arguments, so a source tree can be merged
any number of times without contaminating other trees.
"""

from __future__ import annotations

import collections.abc as _abc
import typing as _typing

import figi.tree._frozen as _frozen
import figi.tree._types as _types

# Sentinel for "no value at this path" (None is a legitimate stored value)
MISSING: _typing.Any = object()

Resolver: _typing.TypeAlias = _typing.Callable[[str], str]


def split_key(key: str) -> _types.Path:
    """
    Split a dotted key into path segments.

    Empty segments (leading, trailing or doubled dots) are dropped.

    Raises:
        ValueError: If the key has no non-empty segment.
    """
    path = tuple(part for part in str(key).split(_types.KEY_SEPARATOR) if part)
    if not path:
        raise ValueError(f"Invalid config key: {key!r}")
    return path


def join_key(path: _typing.Iterable[str]) -> str:
    """Join path segments into a dotted key."""
    return _types.KEY_SEPARATOR.join(path)


def _copy_value(value: _typing.Any) -> _typing.Any:
    """Copy containers recursively; scalars are immutable and shared."""
    if isinstance(value, _abc.Mapping):
        return {str(k): _copy_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, _frozen.FrozenSequence)):
        return [_copy_value(v) for v in value]
    return value


def deep_merge(
    base: _abc.Mapping[str, _typing.Any],
    overlay: _abc.Mapping[str, _typing.Any],
) -> dict[str, _typing.Any]:
    """
    Deep-merge two trees with the overlay taking precedence.

    Args:
        base: Lower-priority tree.
        overlay: Higher-priority tree.

    Returns:
        A new tree holding the union of keys. Where both sides hold a
        mapping the merge recurses; otherwise the overlay value wins.

    Example:
        >>> deep_merge({"db": {"host": "a", "port": 1}}, {"db": {"host": "b"}})
        {'db': {'host': 'b', 'port': 1}}
    """
    result: dict[str, _typing.Any] = _copy_value(base)
    for key, value in overlay.items():
        key = str(key)
        current = result.get(key, MISSING)
        if isinstance(current, dict) and isinstance(value, _abc.Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = _copy_value(value)
    return result


def merge_all(trees: _typing.Iterable[_abc.Mapping[str, _typing.Any]]) -> dict[str, _typing.Any]:
    """Fold trees left to right with deep_merge (later trees win)."""
    result: dict[str, _typing.Any] = {}
    for tree in trees:
        result = deep_merge(result, tree)
    return result


def assign(tree: dict[str, _typing.Any], path: _types.Path, value: _typing.Any) -> None:
    """
    Set value at path inside tree, creating intermediate mappings.

    Modifies tree in place; intended for trees the caller is building.
    A non-mapping found on the way is replaced by a mapping. Assigning a
    mapping onto an existing mapping merges the two (the new one wins).
    """
    if not path:
        raise ValueError("Cannot assign to an empty path")
    node = tree
    for part in path[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    leaf = path[-1]
    existing = node.get(leaf, MISSING)
    if isinstance(existing, dict) and isinstance(value, _abc.Mapping):
        node[leaf] = deep_merge(existing, value)
    else:
        node[leaf] = value


def lookup(tree: _abc.Mapping[str, _typing.Any], path: _types.Path) -> _typing.Any:
    """
    Walk path through tree.

    Returns:
        The value found, or MISSING if any segment is absent or a
        non-mapping is hit before the path is exhausted.
    """
    node: _typing.Any = tree
    for part in path:
        if not isinstance(node, _abc.Mapping) or part not in node:
            return MISSING
        node = node[part]
    return node


def resolve_path(path: _types.Path, resolve: Resolver | None) -> _types.Path:
    """
    Rewrite a key path through the alias table.

    The longest prefix of path that is a registered alias is replaced by
    its canonical path; the remaining segments are kept as written.
    Only that one lookup is applied, so the rewritten path is never
    resolved again and aliases do not chain.

    Example:
        >>> aliases = {"db": "database"}
        >>> resolve_path(("db", "port"), lambda k: aliases.get(k, k))
        ('database', 'port')
    """
    if resolve is None:
        return path
    for end in range(len(path), 0, -1):
        prefix = join_key(path[:end])
        target = resolve(prefix)
        if target != prefix:
            return split_key(target) + path[end:]
    return path


def normalize(
    raw: _typing.Any,
    resolve: Resolver | None = None,
) -> _typing.Any:
    """
    Normalize a parsed structure into a canonical tree.

    - Dotted keys are expanded into nested mappings
      ({"a.b": 1} becomes {"a": {"b": 1}})
    - Every leaf path is resolved once through `resolve_path`, using the
      path as written from the root of the tree, so {"db.port": 1} and
      {"db": {"port": 1}} always land on the same canonical path
    - Sequences are recursed into; tuples become lists
    - Non-string keys are converted with str()

    Keys that converge on the same canonical path are merged in
    iteration order (later entries win on conflict).

    Args:
        raw: Mapping, sequence or scalar as produced by a parser.
        resolve: Alias resolver for dotted keys (identity if None).

    Returns:
        The normalized value. Mappings come back as new dicts.
    """
    if isinstance(raw, _abc.Mapping):
        result: dict[str, _typing.Any] = {}
        _normalize_into(result, (), raw, resolve)
        return result
    if isinstance(raw, (list, tuple, _frozen.FrozenSequence)):
        return [normalize(item, resolve) for item in raw]
    return raw


def _normalize_into(
    result: dict[str, _typing.Any],
    written: _types.Path,
    raw: _abc.Mapping[_typing.Any, _typing.Any],
    resolve: Resolver | None,
) -> None:
    # `written` is the path as it appears in raw, before any alias lookup
    for key, value in raw.items():
        path = written + split_key(str(key))
        if isinstance(value, _abc.Mapping) and value:
            _normalize_into(result, path, value, resolve)
        elif isinstance(value, _abc.Mapping):
            assign(result, resolve_path(path, resolve), {})
        else:
            assign(result, resolve_path(path, resolve), normalize(value, resolve))


def trees_equal(left: _typing.Any, right: _typing.Any) -> bool:
    """
    Structural equality over canonical trees.

    Mapping key order is ignored; sequence order matters. Unlike ==,
    scalars must also agree on type, so True does not equal 1 and 1
    does not equal 1.0.
    """
    if isinstance(left, _abc.Mapping) and isinstance(right, _abc.Mapping):
        if len(left) != len(right):
            return False
        for key, value in left.items():
            if key not in right or not trees_equal(value, right[key]):
                return False
        return True
    left_seq = isinstance(left, (list, tuple, _frozen.FrozenSequence))
    right_seq = isinstance(right, (list, tuple, _frozen.FrozenSequence))
    if left_seq and right_seq:
        return len(left) == len(right) and all(
            trees_equal(a, b) for a, b in zip(left, right)
        )
    if left_seq or right_seq:
        return False
    if isinstance(left, _abc.Mapping) or isinstance(right, _abc.Mapping):
        return False
    return type(left) is type(right) and left == right
