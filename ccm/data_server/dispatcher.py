"""
Operation dispatcher for the CCM data server.

Turns a validated request into document store calls:
- get: read one dataset by key, or all datasets matching a raw filter
- set: create or update a dataset (upsert) with field-unset semantics
- del: delete a dataset and return what was deleted

Invariants:
    - Every failure is reported as FORBIDDEN; no partial results
    - set always returns the dataset as re-read after the write
    - created_at is only written on insert; updated_at on every write
    - A top-level field set to "" is removed from the stored document

Concurrency:
    The read-then-write sequences of set and del are not atomic. Two
    concurrent writers on the same key may interleave, e.g. both see no
    existing dataset and the second insert fails (reported as FORBIDDEN).
    Single insert/update/delete calls are atomic in the store.

How to change safely:
    - Keep the response shaping in process(), browser clients rely on it
    - Never let store exceptions escape execute()
"""

from __future__ import annotations

import logging
from typing import Any

from .connection import StoreConnection
from .datasets import (
    CREATED_AT,
    ID_FIELD,
    KEY_FIELD,
    UPDATED_AT,
    from_store_document,
    split_unset_fields,
    timestamp,
    to_store_document,
)
from .errors import DataServerError, ValidationError
from .keys import parse_key
from .store.base import DocumentCollection
from .validation import has_single_operation, is_object, operation_of, validate_request

logger = logging.getLogger(__name__)


class _Forbidden:
    """Type of the FORBIDDEN sentinel."""

    _instance: _Forbidden | None = None

    def __new__(cls) -> _Forbidden:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "FORBIDDEN"

    def __bool__(self) -> bool:
        return False


# Result of any operation that did not succeed. Distinct from None, which
# means "no such dataset".
FORBIDDEN = _Forbidden()


class OperationDispatcher:
    """Executes get/set/del requests against the document store.

    Attributes:
        connection: Store connection the collections are taken from
        default_store: Collection used when a request names no store

    Example:
        >>> dispatcher = OperationDispatcher(connection)
        >>> await dispatcher.process({"store": "users", "set": {"key": "u1", "name": "Ann"}})
        'u1'
        >>> await dispatcher.process({"store": "users", "get": "u1"})
        {'name': 'Ann', 'updated_at': '...', 'created_at': '...', 'key': 'u1'}
    """

    def __init__(self, connection: StoreConnection, default_store: str = "default") -> None:
        self.connection = connection
        self.default_store = default_store

    async def process(self, data: Any) -> Any:
        """Validate a request, execute it and shape the response.

        Args:
            data: Decoded request (query string or JSON body)

        Returns:
            get: dataset, None or list of datasets
            set: key of the written dataset
            del: True
            FORBIDDEN: invalid request or failed operation
        """
        if not validate_request(data) or not has_single_operation(data):
            logger.debug("Rejected invalid request")
            return FORBIDDEN

        result = await self.execute(data)
        if result is FORBIDDEN:
            return FORBIDDEN

        operation = operation_of(data)
        if operation == "get":
            return result
        if operation == "set":
            if result is None:
                logger.warning("Dataset vanished after write", extra={"key": data["set"]["key"]})
                return FORBIDDEN
            return result[KEY_FIELD]
        return True

    async def execute(self, data: dict[str, Any]) -> Any:
        """Perform the operation of a validated request.

        Returns:
            Read, written or deleted dataset(s), or FORBIDDEN
        """
        store_name = data.get("store") or self.default_store
        operation = operation_of(data)
        try:
            collection = self.connection.collection(store_name)
            if operation == "get":
                return await self._get(collection, data["get"])
            if operation == "set":
                return await self._set(collection, data["set"])
            return await self._del(collection, data["del"])
        except DataServerError as e:
            logger.warning(
                f"Operation {operation} on store {store_name!r} failed: {e}",
                extra={"operation": operation, "store": store_name, "error_code": e.code},
            )
            return FORBIDDEN

    async def _get(self, collection: DocumentCollection, key_or_query: Any) -> Any:
        """Read datasets by raw filter (list) or by key (dataset or None)."""
        if is_object(key_or_query):
            documents = await collection.find(key_or_query)
            return [from_store_document(doc) for doc in documents]

        documents = await collection.find({ID_FIELD: parse_key(key_or_query).store_id})
        return from_store_document(documents[0]) if documents else None

    async def _set(self, collection: DocumentCollection, dataset: dict[str, Any]) -> Any:
        """Create or update a dataset, then return it as stored."""
        key = dataset.get(KEY_FIELD)
        if key is None:
            raise ValidationError("Dataset has no key", field_name=KEY_FIELD)

        existing = await self._get(collection, key)

        priodata = to_store_document(dataset)
        doc_id = priodata.pop(ID_FIELD)
        priodata.pop(CREATED_AT, None)
        priodata[UPDATED_AT] = timestamp()
        fields, unset = split_unset_fields(priodata)

        if existing is not None:
            update: dict[str, Any] = {"$set": fields}
            if unset:
                update["$unset"] = unset
            await collection.update_one({ID_FIELD: doc_id}, update)
            logger.debug("Dataset updated", extra={"store": collection.name, "id": doc_id})
        else:
            fields[CREATED_AT] = fields[UPDATED_AT]
            await collection.insert_one({ID_FIELD: doc_id, **fields})
            logger.debug("Dataset created", extra={"store": collection.name, "id": doc_id})

        return await self._get(collection, key)

    async def _del(self, collection: DocumentCollection, key: Any) -> Any:
        """Delete a dataset and return it (None if it did not exist)."""
        existing = await self._get(collection, key)
        await collection.delete_one({ID_FIELD: parse_key(key).store_id})
        logger.debug("Dataset deleted", extra={"store": collection.name, "key": key})
        return existing
