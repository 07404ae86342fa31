"""Unit tests for the LISTEN/NOTIFY change feed (src/db/listener.py)"""
import asyncio
import pytest
import psycopg
from psycopg import sql
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from src.db.listener import ChangeListener


def _connection_with(notifications, error=None):
    """Mock autocommit connection whose notifies() yields the given (channel, payload) pairs"""
    async def notifies():
        for channel, payload in notifications:
            yield SimpleNamespace(channel=channel, payload=payload)
        if error is not None:
            raise error
        await asyncio.Event().wait()

    conn = MagicMock()
    conn.execute = AsyncMock()
    conn.close = AsyncMock()
    conn.notifies = notifies
    return conn


@pytest.mark.asyncio
async def test_dispatches_to_channel_handler():
    received = []

    async def handler(payload):
        received.append(payload)

    listener = ChangeListener("postgresql://test")
    listener.add_handler("habit_changes", handler)
    conn = _connection_with([("habit_changes", "user-123"), ("other", "ignored")])

    with patch('src.db.listener.psycopg.AsyncConnection.connect', AsyncMock(return_value=conn)):
        await listener.start()
        await asyncio.sleep(0.01)
        await listener.stop()

    assert received == ["user-123"]
    listen_query = conn.execute.call_args[0][0]
    assert isinstance(listen_query, sql.Composed)
    conn.close.assert_called_once()


@pytest.mark.asyncio
async def test_handler_error_does_not_stop_feed():
    received = []

    async def handler(payload):
        if payload == "bad":
            raise ValueError("boom")
        received.append(payload)

    listener = ChangeListener("postgresql://test")
    listener.add_handler("profile_changes", handler)
    conn = _connection_with([("profile_changes", "bad"), ("profile_changes", "good")])

    with patch('src.db.listener.psycopg.AsyncConnection.connect', AsyncMock(return_value=conn)):
        await listener.start()
        await asyncio.sleep(0.01)
        assert listener.running
        await listener.stop()

    assert received == ["good"]


@pytest.mark.asyncio
async def test_lost_connection_runs_disconnect_callbacks():
    disconnected = []
    listener = ChangeListener("postgresql://test")
    listener.add_handler("habit_changes", AsyncMock())
    listener.on_disconnect(lambda: disconnected.append(True))
    conn = _connection_with([], error=psycopg.OperationalError("terminating connection"))

    with patch('src.db.listener.psycopg.AsyncConnection.connect', AsyncMock(return_value=conn)):
        await listener.start()
        await asyncio.sleep(0.01)

        assert disconnected == [True]
        assert listener.running is False
        await listener.stop()
