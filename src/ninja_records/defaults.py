"""Recursive default merging for query, projection, values and options."""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping
from typing import Any


def augment(defaults: Mapping[str, Any]) -> Callable[..., dict[str, Any]]:
    """Return a function that merges call-time overrides onto *defaults*.

    >>> augment({"a": {"b": 1, "c": 2}})({"a": {"c": 3}})
    {'a': {'b': 1, 'c': 3}}

    Nested mappings are merged key by key. Any other override value (lists
    included) replaces the default outright, except ``None``, which keeps the
    default. Keys only present in the overrides are added as given. Anything
    that is not a mapping counts as no overrides at all.

    Neither argument is mutated and the result shares no containers with them.
    """

    def merge(overrides: Any = None) -> dict[str, Any]:
        if not isinstance(overrides, Mapping):
            overrides = {}
        return _merge(defaults, overrides)

    return merge


def _merge(defaults: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    result = {key: copy.deepcopy(value) for key, value in defaults.items()}
    for key, value in overrides.items():
        current = result.get(key)
        if key in result and isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = _merge(current, value)
        elif key not in result or value is not None:
            result[key] = copy.deepcopy(value)
    return result
