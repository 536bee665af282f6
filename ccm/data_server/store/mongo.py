"""
MongoDB document store implementation.

This module provides the production backend, built on pymongo's asyncio
client (AsyncMongoClient). Datasets of one ccm store live in one MongoDB
collection of the configured database.

Invariants:
    - connect() verifies the server with a ping before reporting success
    - Every PyMongoError is wrapped into a StoreError subclass, and so are
      BSON encoding failures (invalid field names, integers wider than 64 bits)
    - Collections are created lazily by MongoDB on first insert

How to change safely:
    - Test against a real MongoDB before deploying (set CCM_MONGO_TESTS=1)
    - Keep the server selection timeout short, startup retries depend on it
"""

from __future__ import annotations

import logging
from typing import Any

from bson.errors import BSONError
from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from ..errors import StoreConnectionError, StoreOperationError
from .base import Document

logger = logging.getLogger(__name__)

# Errors raised by pymongo or while encoding a document to BSON.
OPERATION_ERRORS = (PyMongoError, BSONError, OverflowError)


class MongoCollection:
    """DocumentCollection backed by a pymongo AsyncCollection."""

    def __init__(self, collection: Any) -> None:
        self._collection = collection
        self.name = collection.name

    async def find(self, query: Document) -> list[Document]:
        try:
            return await self._collection.find(query).to_list(None)
        except OPERATION_ERRORS as e:
            raise StoreOperationError(str(e), operation="find", collection=self.name) from e

    async def insert_one(self, document: Document) -> None:
        try:
            await self._collection.insert_one(document)
        except OPERATION_ERRORS as e:
            raise StoreOperationError(str(e), operation="insert_one", collection=self.name) from e

    async def update_one(self, query: Document, update: Document) -> None:
        try:
            await self._collection.update_one(query, update)
        except OPERATION_ERRORS as e:
            raise StoreOperationError(str(e), operation="update_one", collection=self.name) from e

    async def delete_one(self, query: Document) -> None:
        try:
            await self._collection.delete_one(query)
        except OPERATION_ERRORS as e:
            raise StoreOperationError(str(e), operation="delete_one", collection=self.name) from e


class MongoDocumentStore:
    """MongoDB implementation of the DocumentStore protocol.

    Attributes:
        config: MongoConfig with URI, database name and timeouts

    Example:
        >>> store = MongoDocumentStore(MongoConfig(uri="mongodb://localhost:27017"))
        >>> await store.connect()
        >>> await store.collection("users").find({"_id": "u1"})
    """

    def __init__(self, config: Any) -> None:
        """Initialize the MongoDB store.

        Args:
            config: MongoConfig instance with connection settings
        """
        self.config = config
        self._client: AsyncMongoClient | None = None
        self._database: Any = None

    @property
    def is_connected(self) -> bool:
        """Whether connected to MongoDB."""
        return self._database is not None

    async def connect(self) -> None:
        """Connect to MongoDB and select the configured database.

        Raises:
            StoreConnectionError: If the server cannot be reached
        """
        if self.is_connected:
            return

        client: AsyncMongoClient = AsyncMongoClient(
            self.config.uri,
            serverSelectionTimeoutMS=self.config.server_selection_timeout_ms,
        )
        try:
            await client.admin.command("ping")
        except PyMongoError as e:
            await client.close()
            raise StoreConnectionError(f"Failed to connect to MongoDB: {e}") from e

        self._client = client
        self._database = client[self.config.database]
        logger.info(
            "Connected to MongoDB",
            extra={"database": self.config.database},
        )

    async def close(self) -> None:
        """Close the MongoDB client."""
        if self._client is not None:
            try:
                await self._client.close()
            except PyMongoError as e:
                logger.warning(f"Error closing MongoDB client: {e}")
        self._client = None
        self._database = None
        logger.info("MongoDB connection closed")

    def collection(self, name: str) -> MongoCollection:
        """Get a collection of the connected database.

        Raises:
            StoreConnectionError: If not connected
            StoreOperationError: If the name is rejected by MongoDB
        """
        if self._database is None:
            raise StoreConnectionError("Not connected")
        try:
            return MongoCollection(self._database[name])
        except PyMongoError as e:
            raise StoreOperationError(str(e), operation="collection", collection=name) from e
