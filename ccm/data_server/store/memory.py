"""
In-memory document store implementation for testing.

This module provides a dict-backed store for:
- Unit tests
- HTTP integration tests
- Local development without a MongoDB server (STORE_BACKEND=memory)

Invariants:
    - All data is lost on process exit
    - Returned documents are copies; callers cannot mutate stored state
    - Duplicate _id inserts fail like they do in MongoDB

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep filter semantics a subset of MongoDB's, never a superset
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional

from ..errors import StoreConnectionError, StoreError, StoreOperationError
from .base import Document

logger = logging.getLogger(__name__)

_MISSING = object()


def _lookup(document: Document, path: str) -> Any:
    """Resolve a dotted field path, returning _MISSING when absent."""
    value: Any = document
    for part in path.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        elif isinstance(value, list) and part.isdigit() and int(part) < len(value):
            value = value[int(part)]
        else:
            return _MISSING
    return value


def matches(document: Document, query: Document) -> bool:
    """Check a document against an equality filter.

    Supports top-level and dotted field paths. An array field matches when
    it equals the expected value or contains it. Query operators ($gt, $in,
    ...) are not supported.

    Raises:
        StoreOperationError: If the filter uses an operator
    """
    for path, expected in query.items():
        if path.startswith("$") or (
            isinstance(expected, dict) and any(k.startswith("$") for k in expected)
        ):
            raise StoreOperationError(
                f"Unsupported query operator in filter: {path}", operation="find"
            )
        actual = _lookup(document, path)
        if actual is _MISSING:
            if expected is not None:
                return False
        elif actual != expected and not (isinstance(actual, list) and expected in actual):
            return False
    return True


class InMemoryCollection:
    """DocumentCollection storing documents in a dict keyed by _id."""

    def __init__(self, name: str, store: InMemoryDocumentStore) -> None:
        self.name = name
        self._store = store

    @property
    def _documents(self) -> Dict[Any, Document]:
        return self._store._collections[self.name]

    async def find(self, query: Document) -> List[Document]:
        self._store._check("find")
        async with self._store._lock:
            return [
                copy.deepcopy(doc) for doc in self._documents.values() if matches(doc, query)
            ]

    async def insert_one(self, document: Document) -> None:
        self._store._check("insert_one")
        async with self._store._lock:
            doc_id = document.get("_id")
            if doc_id in self._documents:
                raise StoreOperationError(
                    f"Duplicate key: {doc_id}", operation="insert_one", collection=self.name
                )
            self._documents[doc_id] = copy.deepcopy(document)

    async def update_one(self, query: Document, update: Document) -> None:
        self._store._check("update_one")
        unknown = set(update) - {"$set", "$unset"}
        if unknown:
            raise StoreOperationError(
                f"Unsupported update operators: {sorted(unknown)}",
                operation="update_one",
                collection=self.name,
            )
        async with self._store._lock:
            for doc in self._documents.values():
                if matches(doc, query):
                    for field, value in update.get("$set", {}).items():
                        if field == "_id" and value != doc["_id"]:
                            raise StoreOperationError(
                                "Field '_id' is immutable",
                                operation="update_one",
                                collection=self.name,
                            )
                        doc[field] = copy.deepcopy(value)
                    for field in update.get("$unset", {}):
                        doc.pop(field, None)
                    return

    async def delete_one(self, query: Document) -> None:
        self._store._check("delete_one")
        async with self._store._lock:
            for doc_id, doc in list(self._documents.items()):
                if matches(doc, query):
                    del self._documents[doc_id]
                    return


class InMemoryDocumentStore:
    """In-memory implementation of DocumentStore for testing.

    Attributes:
        connect_failures: Number of connect() calls that fail before one
            succeeds (testing helper for startup retries)

    Thread safety:
        Uses an asyncio lock. Safe to use from multiple coroutines.

    Example:
        >>> store = InMemoryDocumentStore()
        >>> await store.connect()
        >>> await store.collection("users").insert_one({"_id": "u1"})
    """

    def __init__(self, connect_failures: int = 0) -> None:
        self.connect_failures = connect_failures
        self.connect_calls = 0
        self._collections: Dict[str, Dict[Any, Document]] = defaultdict(dict)
        self._connected = False
        self._lock = asyncio.Lock()
        self._injected: Optional[StoreError] = None

    @property
    def is_connected(self) -> bool:
        """Whether connected (true after a successful connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect, failing while connect_failures is not used up."""
        self.connect_calls += 1
        if self.connect_calls <= self.connect_failures:
            raise StoreConnectionError(
                f"Simulated connection failure ({self.connect_calls}/{self.connect_failures})"
            )
        self._connected = True
        logger.debug("InMemoryDocumentStore connected")

    async def close(self) -> None:
        """Close and clear all data."""
        self._connected = False
        self._collections.clear()
        logger.debug("InMemoryDocumentStore closed")

    def collection(self, name: str) -> InMemoryCollection:
        if not self._connected:
            raise StoreConnectionError("Not connected")
        if not name or "$" in name:
            raise StoreOperationError(
                f"Invalid collection name: {name!r}", operation="collection", collection=name
            )
        return InMemoryCollection(name, self)

    def _check(self, operation: str) -> None:
        if not self._connected:
            raise StoreConnectionError("Not connected")
        if self._injected is not None:
            error, self._injected = self._injected, None
            logger.debug(f"Raising injected failure for {operation}")
            raise error

    # Testing helpers

    def inject_failure(self, error: StoreError | None = None) -> None:
        """Make the next collection operation raise ``error``."""
        self._injected = error or StoreOperationError("Injected failure")

    def get_documents(self, name: str) -> List[Document]:
        """Get all raw documents of a collection (testing helper)."""
        return [copy.deepcopy(doc) for doc in self._collections.get(name, {}).values()]

    def get_document(self, name: str, doc_id: str) -> Optional[Document]:
        """Get one raw document by _id (testing helper)."""
        doc = self._collections.get(name, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None
