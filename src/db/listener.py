"""PostgreSQL LISTEN/NOTIFY change feed

One dedicated autocommit connection listens on the change channels and hands
each notification payload to the handler registered for its channel. If the
connection drops, every registered disconnect callback runs so that open
subscriptions are marked stale; there is no automatic reconnect.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

import psycopg
from psycopg import sql

from src.config import DATABASE_URL
from src.db.connection import translate_errors

logger = logging.getLogger(__name__)

NotificationHandler = Callable[[str], Awaitable[None]]


class ChangeListener:
    """Dispatches pg_notify payloads to per-channel handlers"""

    def __init__(self, connection_string: str = DATABASE_URL):
        self.connection_string = connection_string
        self._handlers: Dict[str, NotificationHandler] = {}
        self._disconnect_callbacks: List[Callable[[], None]] = []
        self._conn: Optional[psycopg.AsyncConnection] = None
        self._task: Optional[asyncio.Task] = None

    def add_handler(self, channel: str, handler: NotificationHandler) -> None:
        self._handlers[channel] = handler

    def on_disconnect(self, callback: Callable[[], None]) -> None:
        self._disconnect_callbacks.append(callback)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Open the listening connection and start dispatching"""
        with translate_errors("listen"):
            self._conn = await psycopg.AsyncConnection.connect(
                self.connection_string, autocommit=True
            )
            for channel in self._handlers:
                await self._conn.execute(sql.SQL("LISTEN {}").format(sql.Identifier(channel)))

        self._task = asyncio.create_task(self._run(), name="change-listener")
        logger.info(f"Listening for changes on: {', '.join(self._handlers)}")

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._conn:
            await self._conn.close()
            self._conn = None
        logger.info("Change listener stopped")

    async def _run(self) -> None:
        try:
            async for notify in self._conn.notifies():
                await self._dispatch(notify.channel, notify.payload)
        except psycopg.Error as e:
            logger.warning(f"Change feed connection lost, subscriptions are now stale: {e}")
        finally:
            for callback in self._disconnect_callbacks:
                callback()

    async def _dispatch(self, channel: str, payload: str) -> None:
        handler = self._handlers.get(channel)
        if handler is None:
            logger.debug(f"Ignoring notification on unknown channel {channel}")
            return
        try:
            await handler(payload)
        except Exception as e:
            # One bad notification must not end the feed for everyone
            logger.error(f"Error handling {channel} notification: {e}", exc_info=True)
