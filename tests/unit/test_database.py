"""
Unit tests for the lazy MongoDB connection manager.

Tests cover:
- Lazy connection on first use
- Idempotent connection under concurrent first requests
- Failure handling and retry on the next call
- Limited mode (no connection string)
- Shutdown
"""

import asyncio

import pytest

from shopapi.src.database import (
    ConnectionState,
    DatabaseConnection,
    DatabaseConnectionError,
    DatabaseNotConfiguredError,
)
from tests.fakes import FAKE_MONGO_URI, FakeMongoFactory


class TestLazyConnection:

    def test_nothing_opened_at_construction(self, mongo_factory, make_database):
        connection = make_database(mongo_factory)

        assert connection.state is ConnectionState.DISCONNECTED
        assert connection.configured is True
        assert mongo_factory.clients == []

    @pytest.mark.asyncio
    async def test_connects_and_pings(self, mongo_factory, make_database):
        connection = make_database(mongo_factory)

        await connection.ensure_connected()

        assert connection.is_connected
        assert len(mongo_factory.clients) == 1
        client = mongo_factory.clients[0]
        assert client.uri == FAKE_MONGO_URI
        assert client.admin.commands == ["ping"]
        assert client.kwargs["serverSelectionTimeoutMS"] == 5000

    @pytest.mark.asyncio
    async def test_second_call_reuses_connection(self, mongo_factory, make_database):
        connection = make_database(mongo_factory)

        await connection.ensure_connected()
        await connection.ensure_connected()

        assert len(mongo_factory.clients) == 1

    @pytest.mark.asyncio
    async def test_concurrent_first_requests_open_one_client(self, make_database):
        factory = FakeMongoFactory(delay=0.01)
        connection = make_database(factory)

        await asyncio.gather(*(connection.ensure_connected() for _ in range(10)))

        assert connection.is_connected
        assert len(factory.clients) == 1

    @pytest.mark.asyncio
    async def test_database_uses_uri_name(self, mongo_factory, make_database):
        connection = make_database(mongo_factory)
        await connection.ensure_connected()

        assert connection.database.name == "shop"

    @pytest.mark.asyncio
    async def test_database_falls_back_to_default(self, mongo_factory):
        connection = DatabaseConnection(
            "mongodb://mongo.test:27017",
            default_database="storefront",
            client_factory=mongo_factory,
        )
        await connection.ensure_connected()

        assert connection.database.name == "storefront"

    def test_client_unavailable_before_connect(self, mongo_factory, make_database):
        connection = make_database(mongo_factory)

        with pytest.raises(DatabaseConnectionError):
            connection.client


class TestConnectionFailure:

    @pytest.mark.asyncio
    async def test_failure_raises_and_resets_state(self, failing_mongo_factory, make_database):
        connection = make_database(failing_mongo_factory)

        with pytest.raises(DatabaseConnectionError) as exc_info:
            await connection.ensure_connected()

        assert "connection refused" in str(exc_info.value)
        assert connection.state is ConnectionState.DISCONNECTED
        assert failing_mongo_factory.clients[0].closed is True

    @pytest.mark.asyncio
    async def test_next_call_retries(self, failing_mongo_factory, make_database):
        connection = make_database(failing_mongo_factory)

        with pytest.raises(DatabaseConnectionError):
            await connection.ensure_connected()

        failing_mongo_factory.fail_with = None
        await connection.ensure_connected()

        assert connection.is_connected
        assert len(failing_mongo_factory.clients) == 2

    @pytest.mark.asyncio
    async def test_invalid_uri_surfaces_as_connection_error(self):
        def factory(uri, **kwargs):
            raise ValueError("invalid URI scheme")

        connection = DatabaseConnection("postgres://nope", client_factory=factory)

        with pytest.raises(DatabaseConnectionError):
            await connection.ensure_connected()
        assert connection.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_not_configured(self, mongo_factory):
        connection = DatabaseConnection(None, client_factory=mongo_factory)

        assert connection.configured is False
        with pytest.raises(DatabaseNotConfiguredError):
            await connection.ensure_connected()
        assert mongo_factory.clients == []


class TestClose:

    @pytest.mark.asyncio
    async def test_close_releases_client(self, mongo_factory, make_database):
        connection = make_database(mongo_factory)
        await connection.ensure_connected()

        await connection.close()

        assert mongo_factory.clients[0].closed is True
        assert connection.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_close_without_connection_is_noop(self, mongo_factory, make_database):
        connection = make_database(mongo_factory)
        await connection.close()
        assert connection.state is ConnectionState.DISCONNECTED
