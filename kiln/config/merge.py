"""
Configuration merging.

Merging is driven by a per-key policy table instead of a generic deep merge:
tables merge recursively, ``resolve.alias`` concatenates, and every other
value (lists included) is replaced by the override.
"""

import copy
from enum import Enum
from typing import Any


class MergePolicy(Enum):
    """How an override value combines with the base value."""

    RECURSE = "recurse"
    CONCAT = "concat"
    REPLACE = "replace"


# Dotted key path -> policy. Paths not listed fall back to _default_policy.
MERGE_POLICIES: dict[str, MergePolicy] = {
    "resolve.alias": MergePolicy.CONCAT,
    "plugins": MergePolicy.REPLACE,
    "engine.command": MergePolicy.REPLACE,
}

# Lists whose items are user objects; copied shallowly so plugin handles keep identity
SHARED_ITEM_PATHS = frozenset({"plugins"})


def _default_policy(base: Any, override: Any) -> MergePolicy:
    if isinstance(base, dict) and isinstance(override, dict):
        return MergePolicy.RECURSE
    return MergePolicy.REPLACE


def policy_for(path: str, base: Any, override: Any) -> MergePolicy:
    """Look up the policy for ``path``, degrading to REPLACE on type mismatch."""
    policy = MERGE_POLICIES.get(path)
    if policy is MergePolicy.CONCAT and not (
        isinstance(base, list) and isinstance(override, list)
    ):
        return MergePolicy.REPLACE
    if policy is None:
        return _default_policy(base, override)
    return policy


def _clone(value: Any, path: str) -> Any:
    if isinstance(value, dict):
        return {key: _clone(item, f"{path}.{key}" if path else key) for key, item in value.items()}
    if path in SHARED_ITEM_PATHS and isinstance(value, list):
        return list(value)
    return copy.deepcopy(value)


def clone_config(config: dict[str, Any]) -> dict[str, Any]:
    """Return an independent copy of ``config`` (plugin handles are shared)."""
    return _clone(config, "")


def merge_config(
    base: dict[str, Any], override: dict[str, Any], _prefix: str = ""
) -> dict[str, Any]:
    """
    Merge ``override`` onto ``base`` without mutating either.

    Args:
        base: Lower-precedence configuration
        override: Higher-precedence configuration

    Returns:
        A new merged dictionary
    """
    result = _clone(base, _prefix.rstrip("."))

    for key, value in override.items():
        path = f"{_prefix}{key}"
        if key not in result:
            result[key] = _clone(value, path)
            continue

        policy = policy_for(path, result[key], value)
        if policy is MergePolicy.RECURSE:
            result[key] = merge_config(result[key], value, f"{path}.")
        elif policy is MergePolicy.CONCAT:
            result[key] = result[key] + _clone(value, path)
        else:
            result[key] = _clone(value, path)

    return result
