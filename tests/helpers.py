"""Shared helpers for habit-quest tests"""
import asyncio
from unittest.mock import AsyncMock, MagicMock


def make_mock_database(cursor):
    """
    Mock Database whose connection() yields a connection handing out `cursor`

    Returns (database, connection) so tests can assert on commit/transaction.
    """
    conn = MagicMock()
    conn.cursor.return_value.__aenter__.return_value = cursor
    conn.commit = AsyncMock()
    conn.execute = AsyncMock()

    database = MagicMock()
    database.connection.return_value.__aenter__.return_value = conn
    return database, conn


async def wait_until(predicate, timeout: float = 1.0):
    """Poll `predicate` on the event loop until it is true or the timeout passes"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.005)
