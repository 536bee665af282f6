"""
Base protocol for document store backends.

This module defines the DocumentStore and DocumentCollection protocols that
every backend implements, plus the factory that picks a backend from the
server configuration.

Invariants:
    - Documents are plain dicts keyed by a string ``_id``
    - Backend-specific exceptions never escape; they are wrapped in StoreError
    - find() always returns a fully materialized list

How to change safely:
    - Protocol changes require updating all implementations
    - Keep update documents in MongoDB's $set/$unset form, the dispatcher builds them
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..config import ServerConfig

Document = Dict[str, Any]


@runtime_checkable
class DocumentCollection(Protocol):
    """Protocol for a named collection of documents.

    Example:
        >>> users = store.collection("users")
        >>> await users.insert_one({"_id": "u1", "name": "Ann"})
        >>> await users.find({"_id": "u1"})
        [{'_id': 'u1', 'name': 'Ann'}]
    """

    name: str

    @abstractmethod
    async def find(self, query: Document) -> List[Document]:
        """Return all documents matching a filter.

        Raises:
            StoreOperationError: If the backend rejects the query
        """
        ...

    @abstractmethod
    async def insert_one(self, document: Document) -> None:
        """Insert a new document.

        Raises:
            StoreOperationError: If the document cannot be inserted
                (for example a duplicate ``_id``)
        """
        ...

    @abstractmethod
    async def update_one(self, query: Document, update: Document) -> None:
        """Apply a ``$set``/``$unset`` update to the first matching document.

        Raises:
            StoreOperationError: If the backend rejects the update
        """
        ...

    @abstractmethod
    async def delete_one(self, query: Document) -> None:
        """Delete the first matching document, if any.

        Raises:
            StoreOperationError: If the backend rejects the delete
        """
        ...


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for document store backends.

    Example:
        >>> store = MongoDocumentStore(config.mongo)
        >>> await store.connect()
        >>> datasets = store.collection("my_store")
    """

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the backend.

        Must be called before collection().

        Raises:
            StoreConnectionError: If connection fails
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        ...

    @abstractmethod
    def collection(self, name: str) -> DocumentCollection:
        """Get a handle to a named collection.

        Raises:
            StoreConnectionError: If not connected
            StoreOperationError: If the name is not a valid collection name
        """
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether currently connected to the backend."""
        ...


def create_document_store(config: "ServerConfig") -> Optional[DocumentStore]:
    """Factory function to create a document store from configuration.

    Args:
        config: Server configuration

    Returns:
        DocumentStore implementation, or None when the server is
        configured to run without a store

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StoreBackend
    from .memory import InMemoryDocumentStore
    from .mongo import MongoDocumentStore

    if config.store_backend == StoreBackend.MONGODB:
        return MongoDocumentStore(config.mongo)
    elif config.store_backend == StoreBackend.MEMORY:
        return InMemoryDocumentStore()
    elif config.store_backend == StoreBackend.NONE:
        return None
    else:
        raise ValueError(f"Unsupported store backend: {config.store_backend}")
