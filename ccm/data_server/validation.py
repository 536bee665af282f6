"""
Structural validation of incoming requests.

Requests come straight from untrusted browser clients, either as a decoded
query string or as a JSON body. Nothing reaches the store before it passes
validate_request() and has_single_operation().

Invariants:
    - Validation is all-or-nothing; there is no best-effort acceptance
    - Raw filter objects given to ``get`` are passed on uninspected
"""

from __future__ import annotations

from typing import Any

from .keys import is_valid_key

OPERATIONS = ("get", "set", "del")


def is_object(value: Any) -> bool:
    """Whether value is a plain JSON object (not null, not an array)."""
    return isinstance(value, dict)


def is_present(data: dict[str, Any], name: str) -> bool:
    """Whether a request field is given (missing and null count as absent)."""
    return data.get(name) is not None


def validate_request(data: Any) -> bool:
    """Check the operands of a request.

    Args:
        data: Decoded request

    Returns:
        False on the first violated rule, True otherwise
    """
    if not is_object(data):
        return False
    if is_present(data, "store") and not isinstance(data["store"], str):
        return False
    if is_present(data, "get") and not is_valid_key(data["get"]) and not is_object(data["get"]):
        return False
    if is_present(data, "set"):
        if not is_object(data["set"]):
            return False
        if not is_present(data["set"], "key") or not is_valid_key(data["set"]["key"]):
            return False
    if is_present(data, "del") and not is_valid_key(data["del"]):
        return False
    return True


def has_single_operation(data: dict[str, Any]) -> bool:
    """Whether exactly one of get, set and del is present."""
    return sum(1 for name in OPERATIONS if is_present(data, name)) == 1


def operation_of(data: dict[str, Any]) -> str:
    """Name of the first operation present in a request."""
    for name in OPERATIONS:
        if is_present(data, name):
            return name
    raise ValueError("Request contains no operation")
