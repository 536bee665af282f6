"""
Query string decoding with jQuery.param semantics.

Browser clients build GET requests with jQuery.param(), which encodes nested
objects and arrays with bracket notation:

    get=u1                      -> {"get": "u1"}
    del[]=a&del[]=b             -> {"del": ["a", "b"]}
    get[name]=Ann               -> {"get": {"name": "Ann"}}
    set[key]=u1&set[tags][0]=x  -> {"set": {"key": "u1", "tags": ["x"]}}

Invariants:
    - Values are never coerced; everything decodes to a string
    - "+" decodes to a space
    - A parameter without "=" decodes to an empty string
    - Repeated plain keys collect into a list
    - A parameter without "=" is never split on brackets, "a[b]" stays a
      literal key (jQuery deparam does the same)
    - Array indices may skip at most MAX_ARRAY_GAP slots
"""

from __future__ import annotations

from typing import Any
from urllib.parse import unquote

# Largest number of missing slots an explicit array index may skip, e.g.
# "a[0]=x&a[5]=y". Skipped slots are padded with None.
MAX_ARRAY_GAP = 20


class QueryStringError(ValueError):
    """Query string cannot be decoded into a request."""

    pass


def _split_key(key: str) -> list[str]:
    """Split ``a[b][]`` into ``["a", "b", ""]``."""
    if "[" in key and key.endswith("]"):
        head, _, rest = key.partition("[")
        return [head] + rest[:-1].split("][")
    return [key]


def _assign(container: Any, part: str, value: Any) -> Any:
    """Store value under part in a dict or list and return the stored value."""
    if isinstance(container, dict):
        if part == "":
            part = str(len(container))
        container[part] = value
        return value

    if part == "":
        index = len(container)
    elif part.isdigit():
        index = int(part)
    else:
        raise QueryStringError(f"Cannot use {part!r} as an array index")
    if index - len(container) > MAX_ARRAY_GAP:
        raise QueryStringError(f"Array index {index} is too far past the end")
    while len(container) <= index:
        container.append(None)
    container[index] = value
    return value


def _child(container: Any, part: str) -> Any:
    if isinstance(container, dict):
        return container.get(part)
    if part.isdigit() and int(part) < len(container):
        return container[int(part)]
    return None


def deparam(query_string: str) -> dict[str, Any]:
    """Decode a query string into a nested request structure.

    Args:
        query_string: Raw query string without the leading "?"

    Returns:
        Decoded parameters

    Raises:
        QueryStringError: If bracket paths conflict (e.g. a named key inside an array)
    """
    result: dict[str, Any] = {}
    if not query_string:
        return result

    for pair in query_string.replace("+", " ").split("&"):
        if not pair:
            continue
        raw_key, has_value, raw_value = pair.partition("=")
        key = unquote(raw_key)
        if not key:
            continue
        if not has_value:
            result[key] = ""
            continue

        value = unquote(raw_value)
        parts = _split_key(key)
        if len(parts) == 1:
            existing = result.get(key)
            if isinstance(existing, list):
                existing.append(value)
            elif existing is not None:
                result[key] = [existing, value]
            else:
                result[key] = value
            continue

        current: Any = result
        for index, part in enumerate(parts):
            if index == len(parts) - 1:
                _assign(current, part, value)
                break
            child = _child(current, part) if part else None
            if not isinstance(child, (dict, list)):
                following = parts[index + 1]
                child = [] if following == "" or following.isdigit() else {}
                if part == "" and isinstance(current, list):
                    part = str(len(current))
                _assign(current, part, child)
            current = child

    return result
