"""
Small pure helpers shared by records, the codec and the store.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

_MISSING = object()


def _children(value: Any) -> dict[str, Any] | None:
    if isinstance(value, dict):
        return {str(k): v for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return {str(i): v for i, v in enumerate(value)}
    return None


def diff_paths(previous: Any, current: Any, prefix: str = "") -> list[str]:
    """Dotted paths of every leaf that differs between two plain structures.

    Dicts and lists are walked key by key (list items by index), so a
    change deep inside a nested attribute is reported as e.g. ``address.city``.

    Example:
        >>> diff_paths({"a": {"b": 1, "c": 2}}, {"a": {"b": 1, "c": 3}})
        ['a.c']
    """
    prev_children = _children(previous)
    curr_children = _children(current)

    if prev_children is None or curr_children is None:
        if previous is _MISSING or current is _MISSING or previous != current:
            return [prefix] if prefix else []
        return []

    paths: list[str] = []
    for key in dict.fromkeys([*prev_children, *curr_children]):
        path = f"{prefix}.{key}" if prefix else key
        prev_value = prev_children.get(key, _MISSING)
        curr_value = curr_children.get(key, _MISSING)
        if prev_value is _MISSING or curr_value is _MISSING:
            paths.append(path)
            continue
        paths.extend(diff_paths(prev_value, curr_value, path))
    return paths


def stringify_ids(value: Any) -> Any:
    """Copy of a linkage structure with every ``id`` turned into a string."""
    if isinstance(value, dict):
        result = {}
        for key, item in value.items():
            if key == "id" and item is not None and not isinstance(item, (dict, list)):
                result[key] = str(item)
            else:
                result[key] = stringify_ids(item)
        return result
    if isinstance(value, list):
        return [stringify_ids(item) for item in value]
    return value


def build_url(
    base_url: str,
    endpoint: str,
    id: str | None = None,
    query_params: dict[str, Any] | None = None,
) -> str:
    """Join base url, endpoint, optional id and query string."""
    url = f"{base_url.rstrip('/')}/{endpoint.strip('/')}"
    if id is not None:
        url = f"{url}/{id}"
    if query_params:
        url = f"{url}?{urlencode(query_params, doseq=True)}"
    return url
