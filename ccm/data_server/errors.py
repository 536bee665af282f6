"""
Error types for the CCM data server.

This module defines the exception hierarchy used across the server:
- DataServerError: Base exception
- ValidationError: Malformed request or invalid dataset key
- StoreError: Document store failures (connection, availability, operation)
- PayloadTooLargeError: Request body exceeds the configured limit

Invariants:
    - All errors inherit from DataServerError
    - Errors carry a stable code for logging
    - None of these reach the HTTP client; the gateway answers "forbidden"
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DataServerError(Exception):
    """Base exception for all data server errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DATA_SERVER_ERROR"
        self.details = details or {}


class ValidationError(DataServerError):
    """Request or dataset key failed validation.

    Raised when:
    - A dataset key does not match the key grammar
    - A request has an operand of the wrong shape
    - A request names zero or several operations
    """

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name},
        )
        self.field_name = field_name


class StoreError(DataServerError):
    """Base exception for document store failures."""

    pass


class StoreConnectionError(StoreError):
    """Connecting to the document store failed."""

    def __init__(self, message: str, address: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="CONNECTION_ERROR",
            details={"address": address},
        )
        self.address = address


class StoreUnavailableError(StoreError):
    """The server is running without a usable document store."""

    def __init__(self, message: str = "Document store is not available") -> None:
        super().__init__(message, code="STORE_UNAVAILABLE")


class StoreOperationError(StoreError):
    """The document store rejected a single operation.

    Attributes:
        operation: Name of the failed operation (find, insert_one, ...)
        collection: Collection the operation ran against
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        collection: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="OPERATION_ERROR",
            details={"operation": operation, "collection": collection},
        )
        self.operation = operation
        self.collection = collection


class PayloadTooLargeError(DataServerError):
    """Request body exceeds the configured maximum size."""

    def __init__(self, limit: int) -> None:
        super().__init__(
            f"Request body exceeds {limit} bytes",
            code="PAYLOAD_TOO_LARGE",
            details={"limit": limit},
        )
        self.limit = limit
