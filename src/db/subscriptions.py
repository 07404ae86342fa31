"""
Owned subscription handles for store change feeds

A subscription is acquired from a store (`store.subscribe(key)`) and must be
released by its owner, either with `async with` or an explicit `close()`.
Each item delivered is a full snapshot (the whole habit list of an owner, or
the current profile), so a consumer only ever needs the latest one.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, Generic, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_END = object()


class Subscription(Generic[T]):
    """Async iterator of snapshots for one key, with guaranteed release"""

    def __init__(self, key: str, on_close: Optional[Callable[["Subscription"], None]] = None):
        self.key = key
        self._on_close = on_close
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._stale = False
        self._received = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def stale(self) -> bool:
        """True once the feed stopped delivering (closed or disconnected)"""
        return self._closed or self._stale

    def publish(self, snapshot: T) -> None:
        if self._closed or self._stale:
            return
        self._received = True
        self._queue.put_nowait(snapshot)

    def seed(self, snapshot: T) -> None:
        """Deliver an initial read unless a change notification already got here first"""
        if self._received:
            logger.debug(f"Dropped initial snapshot for {self.key}: a newer one was delivered")
            return
        self.publish(snapshot)

    def end(self) -> None:
        """Stop delivering updates; the feed is stale until re-subscribed"""
        if self._closed or self._stale:
            return
        self._stale = True
        self._queue.put_nowait(_END)

    async def close(self) -> None:
        if self._closed:
            return
        already_ended = self._stale
        self._closed = True
        if self._on_close:
            self._on_close(self)
        if not already_ended:
            self._queue.put_nowait(_END)
        logger.debug(f"Subscription closed: {self.key}")

    def __aiter__(self):
        return self

    async def __anext__(self) -> T:
        item = await self._queue.get()
        if item is _END:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class SubscriptionHub:
    """Registry of open subscriptions per key, used by the store backends"""

    def __init__(self, name: str):
        self.name = name
        self._subscriptions: Dict[str, Set[Subscription]] = defaultdict(set)

    def open(self, key: str) -> Subscription:
        subscription = Subscription(key, on_close=self._discard)
        self._subscriptions[key].add(subscription)
        logger.debug(f"{self.name}: subscription opened for {key}")
        return subscription

    def has_subscribers(self, key: str) -> bool:
        return bool(self._subscriptions.get(key))

    def publish(self, key: str, snapshot: Any) -> None:
        for subscription in list(self._subscriptions.get(key, ())):
            subscription.publish(snapshot)

    def end_all(self) -> None:
        """Mark every open subscription stale (e.g. the change feed was lost)"""
        for subscriptions in self._subscriptions.values():
            for subscription in subscriptions:
                subscription.end()
        self._subscriptions.clear()

    def _discard(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.key)
        if subscriptions is None:
            return
        subscriptions.discard(subscription)
        if not subscriptions:
            del self._subscriptions[subscription.key]
