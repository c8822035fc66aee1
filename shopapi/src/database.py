"""
Lazy MongoDB connection shared by the whole process.

The connection is opened on the first request that needs it rather than at
import time, so the application can start (and serve its health check)
without credentials. Opening is idempotent: concurrent callers wait on one
lock and re-check the state, so only one client is ever created.
"""

import asyncio
from enum import Enum
from typing import Any, Callable, Optional

import structlog
from pymongo import AsyncMongoClient

logger = structlog.get_logger(__name__)


class ConnectionState(str, Enum):
    """Connection lifecycle."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class DatabaseConnectionError(Exception):
    """Raised when the MongoDB connection cannot be established."""


class DatabaseNotConfiguredError(DatabaseConnectionError):
    """Raised when a connection is requested but no MONGO_URI is set."""


class DatabaseConnection:
    """
    Process-wide MongoDB connection with lazy, idempotent initialization.

    Args:
        uri: MongoDB connection string, or None for limited mode
        default_database: Database used when the URI names none
        connect_timeout_ms: Server selection timeout for the ping
        client_factory: Callable building the client, AsyncMongoClient by default
    """

    def __init__(
        self,
        uri: Optional[str],
        default_database: str = "shop",
        connect_timeout_ms: int = 5000,
        client_factory: Callable[..., Any] = AsyncMongoClient,
    ):
        self.uri = uri
        self.default_database = default_database
        self.connect_timeout_ms = connect_timeout_ms
        self._client_factory = client_factory
        self._client = None
        self._state = ConnectionState.DISCONNECTED
        self._lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return self.uri is not None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def client(self):
        if not self.is_connected:
            raise DatabaseConnectionError("MongoDB connection is not established")
        return self._client

    @property
    def database(self):
        """Database named in the URI, or the configured default."""
        return self.client.get_default_database(default=self.default_database)

    async def ensure_connected(self) -> None:
        """
        Establish the connection unless it already is.

        Raises:
            DatabaseNotConfiguredError: If no connection string is configured
            DatabaseConnectionError: If the server cannot be reached
        """
        if self.is_connected:
            return

        if not self.configured:
            raise DatabaseNotConfiguredError("MONGO_URI is not configured")

        async with self._lock:
            # Another request may have connected while we waited.
            if self.is_connected:
                return

            self._state = ConnectionState.CONNECTING
            logger.info("database_connecting", timeout_ms=self.connect_timeout_ms)

            client = None
            try:
                client = self._client_factory(
                    self.uri,
                    serverSelectionTimeoutMS=self.connect_timeout_ms,
                )
                await client.admin.command("ping")
            except Exception as e:
                self._state = ConnectionState.DISCONNECTED
                logger.error("database_connection_failed", error=str(e))
                if client is not None:
                    await client.close()
                raise DatabaseConnectionError(str(e)) from e

            self._client = client
            self._state = ConnectionState.CONNECTED
            logger.info("database_connected", database=self.database.name)

    async def close(self) -> None:
        """Close the client if one is open."""
        async with self._lock:
            if self._client is None:
                return
            await self._client.close()
            self._client = None
            self._state = ConnectionState.DISCONNECTED
            logger.info("database_connection_closed")
