"""
Configuration management for the CCM data server.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Secrets (the MongoDB URI may contain credentials) are never logged

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep MAX_DATA_SIZE in sync with what browser clients are allowed to send
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class StoreBackend(Enum):
    """Supported document store backends."""

    MONGODB = "mongodb"
    MEMORY = "memory"
    NONE = "none"


@dataclass(frozen=True)
class HttpConfig:
    """HTTP gateway configuration.

    Attributes:
        host: Address to bind the HTTP server
        port: Port to listen on
        domain: Public host name, used in the startup banner
        max_data_size: Maximum POST body size in bytes
        cors_origin: Value of the Access-Control-Allow-Origin header
    """

    host: str = "0.0.0.0"
    port: int = 8080
    domain: str = "localhost"
    max_data_size: int = 16 * 1024 * 1024  # 16MB
    cors_origin: str = "*"

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "8080")),
            domain=os.getenv("DOMAIN", "localhost"),
            max_data_size=int(os.getenv("MAX_DATA_SIZE", str(16 * 1024 * 1024))),
            cors_origin=os.getenv("CORS_ORIGIN", "*"),
        )


@dataclass(frozen=True)
class MongoConfig:
    """MongoDB backend configuration.

    Attributes:
        uri: MongoDB connection string
        database: Database holding one collection per ccm store
        server_selection_timeout_ms: How long a connection attempt may take
    """

    uri: str = "mongodb://localhost:27017"
    database: str = "ccm"
    server_selection_timeout_ms: int = 5000

    @classmethod
    def from_env(cls) -> MongoConfig:
        """Load configuration from environment variables."""
        return cls(
            uri=os.getenv("MONGODB_URI", "mongodb://localhost:27017"),
            database=os.getenv("MONGODB_DATABASE", "ccm"),
            server_selection_timeout_ms=int(
                os.getenv("MONGODB_SERVER_SELECTION_TIMEOUT_MS", "5000")
            ),
        )


@dataclass(frozen=True)
class ConnectionConfig:
    """Store connection lifecycle configuration.

    Attributes:
        connect_attempts: Connection attempts before running without a store
        retry_delay_ms: Delay between connection attempts
    """

    connect_attempts: int = 2
    retry_delay_ms: int = 3000

    @classmethod
    def from_env(cls) -> ConnectionConfig:
        """Load configuration from environment variables."""
        return cls(
            connect_attempts=int(os.getenv("STORE_CONNECT_ATTEMPTS", "2")),
            retry_delay_ms=int(os.getenv("STORE_RETRY_DELAY_MS", "3000")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    Attributes:
        store_backend: Which document store backend to use
        default_store: Collection used when a request names no store
        http: HTTP gateway configuration
        mongo: MongoDB configuration (if store_backend is MONGODB)
        connection: Connection retry configuration
        observability: Logging configuration
    """

    store_backend: StoreBackend = StoreBackend.MONGODB
    default_store: str = "default"
    http: HttpConfig = field(default_factory=HttpConfig)
    mongo: MongoConfig = field(default_factory=MongoConfig)
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        backend_str = os.getenv("STORE_BACKEND", "mongodb").lower()
        try:
            store_backend = StoreBackend(backend_str)
        except ValueError:
            raise ValueError(
                f"Invalid STORE_BACKEND '{backend_str}'. Must be one of: mongodb, memory, none"
            )

        config = cls(
            store_backend=store_backend,
            default_store=os.getenv("DEFAULT_STORE", "default"),
            http=HttpConfig.from_env(),
            mongo=MongoConfig.from_env(),
            connection=ConnectionConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.store_backend == StoreBackend.MONGODB:
            if not self.mongo.uri:
                raise ValueError("MONGODB_URI is required when STORE_BACKEND=mongodb")
            if not self.mongo.database:
                raise ValueError("MONGODB_DATABASE is required when STORE_BACKEND=mongodb")

        if not self.default_store:
            raise ValueError("DEFAULT_STORE must not be empty")
        if self.http.max_data_size <= 0:
            raise ValueError("MAX_DATA_SIZE must be positive")
        if self.connection.connect_attempts < 1:
            raise ValueError("STORE_CONNECT_ATTEMPTS must be at least 1")
        if self.connection.retry_delay_ms < 0:
            raise ValueError("STORE_RETRY_DELAY_MS must not be negative")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Server configuration loaded",
            extra={
                "store_backend": self.store_backend.value,
                "default_store": self.default_store,
                "http_bind": f"{self.http.host}:{self.http.port}",
                "max_data_size": self.http.max_data_size,
                "mongo_database": self.mongo.database
                if self.store_backend == StoreBackend.MONGODB
                else None,
                "connect_attempts": self.connection.connect_attempts,
                "retry_delay_ms": self.connection.retry_delay_ms,
                "log_level": self.observability.log_level,
            },
        )
