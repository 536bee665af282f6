"""
Document store connection lifecycle.

The server connects to its document store once at startup. A failed attempt
is retried after a fixed delay; when every attempt fails the server keeps
running without a store and answers every data operation with "forbidden".

State machine:
    UNATTEMPTED -> CONNECTING -> CONNECTED
    UNATTEMPTED -> CONNECTING -> FAILED      (permanent for the process)
    UNATTEMPTED -> DISABLED                  (no backend configured)

Invariants:
    - connect() never raises because the store is unreachable
    - on_ready is invoked exactly once, whatever the outcome
    - Once FAILED or DISABLED, the store is never contacted again
    - A dropped connection after CONNECTED is not re-established

How to change safely:
    - Keep the retry bounded, the HTTP gateway only starts after connect()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Optional

from .config import ConnectionConfig
from .errors import StoreConnectionError, StoreUnavailableError
from .store.base import DocumentCollection, DocumentStore

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Lifecycle states of the store connection."""

    UNATTEMPTED = "unattempted"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"
    DISABLED = "disabled"


class StoreConnection:
    """Owns the connection to the backing document store.

    Attributes:
        store: Store backend, or None to run without a store
        config: Retry configuration
        state: Current ConnectionState

    Example:
        >>> connection = StoreConnection(MongoDocumentStore(config.mongo))
        >>> await connection.connect(on_ready=start_http_server)
        >>> if connection.is_available():
        ...     users = connection.collection("users")
    """

    def __init__(
        self,
        store: Optional[DocumentStore],
        config: Optional[ConnectionConfig] = None,
    ) -> None:
        self.store = store
        self.config = config or ConnectionConfig()
        self.state = ConnectionState.UNATTEMPTED

    def is_available(self) -> bool:
        """Whether data operations can reach the store."""
        return self.state == ConnectionState.CONNECTED

    async def connect(
        self,
        on_ready: Optional[Callable[[], Optional[Awaitable[Any]]]] = None,
    ) -> ConnectionState:
        """Connect to the store, retrying after a delay on failure.

        Args:
            on_ready: Called once connecting has finished, successfully or
                not. May be a plain function or a coroutine function.

        Returns:
            The final connection state
        """
        if self.state != ConnectionState.UNATTEMPTED:
            logger.warning(f"connect() called in state {self.state.value}, ignoring")
        elif self.store is None:
            self.state = ConnectionState.DISABLED
            logger.warning("No document store configured => server runs without a store")
        else:
            await self._connect_with_retry(self.store)

        if on_ready is not None:
            result = on_ready()
            if inspect.isawaitable(result):
                await result
        return self.state

    async def _connect_with_retry(self, store: DocumentStore) -> None:
        self.state = ConnectionState.CONNECTING
        attempts = self.config.connect_attempts

        for attempt in range(1, attempts + 1):
            try:
                await store.connect()
            except StoreConnectionError as e:
                logger.warning(
                    f"Document store connection attempt {attempt}/{attempts} failed: {e}",
                    extra={"attempt": attempt, "max_attempts": attempts},
                )
                if attempt < attempts:
                    await asyncio.sleep(self.config.retry_delay_ms / 1000)
                continue

            self.state = ConnectionState.CONNECTED
            logger.info("Document store connected", extra={"attempt": attempt})
            return

        self.state = ConnectionState.FAILED
        logger.error("No document store found => server runs without a store")

    def collection(self, name: str) -> DocumentCollection:
        """Get a collection handle from the connected store.

        Raises:
            StoreUnavailableError: If the store is not connected
            StoreOperationError: If the collection name is rejected
        """
        if not self.is_available() or self.store is None:
            raise StoreUnavailableError()
        return self.store.collection(name)

    async def close(self) -> None:
        """Close the store if it was connected."""
        if self.store is not None and self.state == ConnectionState.CONNECTED:
            await self.store.close()
