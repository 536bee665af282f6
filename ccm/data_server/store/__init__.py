"""
Document store abstraction for the CCM data server.

This module provides a pluggable backend interface supporting:
- MongoDB (production)
- In-memory (for testing and local development)

Invariants:
    - Documents carry their primary key in ``_id``
    - Backend errors surface as StoreError subclasses only

How to change safely:
    - New backends must implement the DocumentStore protocol
    - Register new backends in create_document_store() and StoreBackend
"""

from .base import (
    Document,
    DocumentCollection,
    DocumentStore,
    create_document_store,
)
from .memory import InMemoryDocumentStore
from .mongo import MongoDocumentStore

__all__ = [
    # Protocol and types
    "Document",
    "DocumentCollection",
    "DocumentStore",
    # Factory
    "create_document_store",
    # Implementations
    "InMemoryDocumentStore",
    "MongoDocumentStore",
]
