"""
CCM Data Server - Main entry point.

This module starts the data server:
- Document store connection (with one retry after a delay)
- HTTP gateway

The HTTP gateway starts even when the store cannot be reached; every data
operation is then answered with "forbidden".

Usage:
    ccm-data-server
    python -m ccm.data_server.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - The HTTP gateway starts only after the connection attempt has finished
    - Graceful shutdown closes the HTTP site before the store client
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import json_log_formatter
from aiohttp import web

from .api import create_http_app, start_http_server
from .config import ServerConfig
from .connection import StoreConnection
from .dispatcher import OperationDispatcher
from .store import create_document_store

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


class Server:
    """Data server orchestrator.

    Attributes:
        config: Server configuration
        connection: Store connection (created in start())
        dispatcher: Operation dispatcher (created in start())

    Example:
        >>> server = Server()
        >>> await server.start()
        >>> # Server is running
        >>> await server.stop()
    """

    def __init__(self, config: ServerConfig | None = None) -> None:
        """Initialize the server.

        Args:
            config: Optional server configuration (loaded from env if not provided)
        """
        self.config = config or ServerConfig.from_env()
        self._running = False
        self._shutdown_event = asyncio.Event()

        self.connection: StoreConnection | None = None
        self.dispatcher: OperationDispatcher | None = None
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Connect the store, start the HTTP gateway and wait for shutdown."""
        if self._running:
            logger.warning("Server already running")
            return

        logger.info("Starting CCM data server")
        self.config.log_config()

        try:
            self.connection = StoreConnection(
                create_document_store(self.config),
                self.config.connection,
            )
            await self.connection.connect(on_ready=self._start_http)

            self._running = True
            logger.info(
                "Server is running. Now you can use this URL on client-side: "
                f"http://{self.config.http.domain}:{self.config.http.port}",
                extra={"store_state": self.connection.state.value},
            )

            await self._shutdown_event.wait()

        except Exception as e:
            logger.error(f"Server startup failed: {e}", exc_info=True)
            await self.stop()
            raise

    async def _start_http(self) -> None:
        assert self.connection is not None
        self.dispatcher = OperationDispatcher(self.connection, self.config.default_store)
        app = create_http_app(self.dispatcher, self.config.http)
        self._runner = await start_http_server(app, self.config.http.host, self.config.http.port)

    async def stop(self) -> None:
        """Stop the server gracefully."""
        if self._runner is None and self.connection is None:
            return

        logger.info("Stopping CCM data server")

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        if self.connection:
            await self.connection.close()
            self.connection = None

        self._running = False
        logger.info("CCM data server stopped")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()


def main() -> None:
    """Main entry point."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    server = Server(config)

    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        server.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        loop.run_until_complete(server.start())
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(server.stop())
        loop.close()


if __name__ == "__main__":
    main()
