"""Expansion of dot-separated field keys into nested mappings."""

from __future__ import annotations

from typing import Any, Iterable, Tuple


def nest_fields(fields: Iterable[Tuple[str, Any]]) -> dict[str, Any]:
    """Turn ``(key, value)`` pairs with dotted keys into a nested dict.

    ``("db.operation", "update")`` becomes ``{"db": {"operation": "update"}}``.
    Later values for the same key overwrite earlier ones. An intermediate
    key that holds a non-mapping value is replaced by a new mapping.
    """
    root: dict[str, Any] = {}
    for key, value in fields:
        *parents, leaf = key.split(".")
        current = root
        for part in parents:
            child = current.get(part)
            if not isinstance(child, dict):
                child = {}
                current[part] = child
            current = child
        current[leaf] = value
    return root