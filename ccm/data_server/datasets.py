"""
Conversion between ccm datasets and store documents.

A dataset is what clients see: a JSON object with a ``key`` field. A
document is what the store persists: the same object with the key encoded
into the ``_id`` primary key field.

Invariants:
    - Conversions never share mutable state with their input
    - ``key`` and ``_id`` never appear together in a converted value
    - Timestamps are ISO-8601 strings with a UTC offset
"""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any

from .keys import from_store_id, to_store_id

ID_FIELD = "_id"
KEY_FIELD = "key"
CREATED_AT = "created_at"
UPDATED_AT = "updated_at"

# A field set to this value is removed from the stored document.
UNSET_MARKER = ""


def to_store_document(dataset: dict[str, Any]) -> dict[str, Any]:
    """Convert a ccm dataset into a store document.

    Args:
        dataset: Dataset with a valid ``key`` field

    Returns:
        Deep copy of the dataset with ``_id`` in place of ``key``
    """
    document = copy.deepcopy(dataset)
    document[ID_FIELD] = to_store_id(document.pop(KEY_FIELD))
    return document


def from_store_document(document: dict[str, Any]) -> dict[str, Any]:
    """Convert a store document back into a ccm dataset.

    Args:
        document: Document as returned by the store

    Returns:
        Deep copy of the document with ``key`` in place of ``_id``
    """
    dataset = copy.deepcopy(document)
    dataset[KEY_FIELD] = from_store_id(dataset.pop(ID_FIELD, None))
    return dataset


def split_unset_fields(document: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Separate fields to write from fields to remove.

    Only top-level fields are inspected; an empty string nested deeper is
    written as-is.

    Returns:
        Tuple of (fields_to_set, fields_to_unset)
    """
    to_set: dict[str, Any] = {}
    to_unset: dict[str, Any] = {}
    for name, value in document.items():
        if isinstance(value, str) and value == UNSET_MARKER:
            to_unset[name] = UNSET_MARKER
        else:
            to_set[name] = value
    return to_set, to_unset


def timestamp(now: datetime | None = None) -> str:
    """Format a timestamp the way datasets store it.

    Args:
        now: Time to format (defaults to the current local time);
            naive values are taken as local time

    Returns:
        ISO-8601 string with seconds precision and UTC offset,
        e.g. ``2018-05-01T12:00:00+02:00``
    """
    now = now or datetime.now()
    if now.tzinfo is None:
        now = now.astimezone()
    return now.isoformat(timespec="seconds")
