"""
Dataset key grammar and store identifier encoding.

A dataset key is either a single token or an ordered sequence of tokens
(a composite key). The document store only knows a single string primary
key, so composite keys are joined with a comma on the way in and split on
the way out.

Invariants:
    - Every token matches [A-Za-z0-9_-]+ (so tokens never contain a comma)
    - to_store_id() and from_store_id() round-trip for every valid key
      except the empty composite key and single-token composite keys,
      which come back as plain strings
    - No escaping is applied; a comma always means "composite"

How to change safely:
    - Allowing commas in tokens requires an escaped encoding and a data migration
    - Keep is_valid_key() in front of every write path
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Union

from .errors import ValidationError

KEY_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
KEY_SEPARATOR = ","


def is_valid_token(value: Any) -> bool:
    """Whether value is a string matching the token grammar."""
    return isinstance(value, str) and KEY_PATTERN.fullmatch(value) is not None


def is_valid_key(value: Any) -> bool:
    """Check whether a JSON value is a valid dataset key.

    Args:
        value: Decoded request value

    Returns:
        True for a valid token or a list of valid tokens. An empty list
        is accepted.
    """
    if isinstance(value, str):
        return is_valid_token(value)
    if isinstance(value, (list, tuple)):
        return all(is_valid_token(token) for token in value)
    return False


def to_store_id(key: str | list[str] | tuple[str, ...]) -> str:
    """Convert a dataset key to the store identifier."""
    if isinstance(key, (list, tuple)):
        return KEY_SEPARATOR.join(key)
    return key


def from_store_id(store_id: Any) -> Any:
    """Convert a store identifier back to a dataset key.

    Strings containing the separator become a list of tokens, anything
    else is returned unchanged.
    """
    if isinstance(store_id, str) and KEY_SEPARATOR in store_id:
        return store_id.split(KEY_SEPARATOR)
    return store_id


@dataclass(frozen=True)
class SimpleKey:
    """Dataset key made of a single token."""

    token: str

    @property
    def store_id(self) -> str:
        return self.token

    def to_json(self) -> str:
        return self.token

    def __str__(self) -> str:
        return self.token


@dataclass(frozen=True)
class CompositeKey:
    """Dataset key made of an ordered sequence of tokens."""

    tokens: tuple[str, ...]

    @property
    def store_id(self) -> str:
        return to_store_id(self.tokens)

    def to_json(self) -> list[str]:
        return list(self.tokens)

    def __str__(self) -> str:
        return self.store_id


DatasetKey = Union[SimpleKey, CompositeKey]


def parse_key(value: Any) -> DatasetKey:
    """Parse a decoded request value into a dataset key.

    Args:
        value: String or list of strings

    Returns:
        SimpleKey or CompositeKey

    Raises:
        ValidationError: If the value is not a valid dataset key
    """
    if not is_valid_key(value):
        raise ValidationError(f"Invalid dataset key: {value!r}", field_name="key")
    if isinstance(value, str):
        return SimpleKey(value)
    return CompositeKey(tuple(value))

