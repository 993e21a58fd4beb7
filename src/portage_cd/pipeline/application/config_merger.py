"""
Deep merge for validation config documents.

Semantics are "replace array, override map": maps merge key by key, any
other value (lists included) in the override replaces the base value.
"""

import copy
from typing import Any, Mapping


def merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """
    Merge ``override`` onto ``base`` without mutating either.

    Examples:
        >>> merge({"a": {"x": 0, "y": 2}, "arr": [9, 9]}, {"a": {"x": 1}, "arr": [1]})
        {'a': {'x': 1, 'y': 2}, 'arr': [1]}
    """
    merged = copy.deepcopy(dict(base))
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged
