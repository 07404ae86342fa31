"""
In-memory profile and habit stores

Same contract as the PostgreSQL stores, nothing is persisted. Used for local
development (STORE_BACKEND=memory) and by the test suite.

Documents are kept as plain dicts and decoded on every read, so the schema
check at the store boundary is exercised exactly as with the database rows.
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Dict, Optional
from uuid import uuid4

from src.db.decoding import decode_habit, decode_habits, decode_profile
from src.db.subscriptions import Subscription, SubscriptionHub
from src.models.habit import Habit, HabitStatus
from src.models.profile import Profile

logger = logging.getLogger(__name__)


class InMemoryProfileTransaction:
    """Read-then-write access to one profile while its lock is held"""

    def __init__(self, store: "InMemoryProfileStore", user_id: str, profile: Optional[Profile]):
        self._store = store
        self._user_id = user_id
        self.profile = profile

    async def update(self, level: int, xp: int) -> bool:
        """Write (level, xp); returns False if the profile no longer exists"""
        # Yield to the loop like a real round trip would
        await asyncio.sleep(0)
        return self._store._write_progress(self._user_id, level, xp)


class InMemoryProfileStore:
    """Profiles keyed by user id; one asyncio.Lock per user serializes transactions"""

    def __init__(self):
        self._profiles: Dict[str, dict] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._hub = SubscriptionHub("profiles")
        logger.info("InMemoryProfileStore initialized - profiles are NOT persisted")

    async def get(self, user_id: str) -> Optional[Profile]:
        return decode_profile(self._profiles.get(user_id))

    async def ensure(self, user_id: str, display_name: Optional[str] = None) -> Profile:
        document = self._profiles.get(user_id)
        if document is None:
            document = {"user_id": user_id, "level": 1, "xp": 0, "display_name": display_name}
            self._profiles[user_id] = document
            logger.info(f"Created profile for user {user_id}")
        elif display_name is not None and display_name != document.get("display_name"):
            document["display_name"] = display_name
        else:
            return decode_profile(document)
        self._publish(user_id)
        return decode_profile(document)

    async def delete(self, user_id: str) -> bool:
        if self._profiles.pop(user_id, None) is None:
            return False
        lock = self._locks.get(user_id)
        if lock is not None and not lock.locked():
            del self._locks[user_id]
        self._publish(user_id)
        return True

    @asynccontextmanager
    async def transaction(self, user_id: str) -> AsyncIterator[InMemoryProfileTransaction]:
        async with self._locks[user_id]:
            profile = decode_profile(self._profiles.get(user_id))
            yield InMemoryProfileTransaction(self, user_id, profile)

    async def subscribe(self, user_id: str) -> Subscription:
        subscription = self._hub.open(user_id)
        subscription.seed(await self.get(user_id))
        return subscription

    def put_raw(self, user_id: str, document: dict) -> None:
        """Store an arbitrary document as-is (seeding and fault injection)"""
        self._profiles[user_id] = document
        self._publish(user_id)

    def _write_progress(self, user_id: str, level: int, xp: int) -> bool:
        document = self._profiles.get(user_id)
        if document is None:
            return False
        document["level"] = level
        document["xp"] = xp
        self._publish(user_id)
        return True

    def _publish(self, user_id: str) -> None:
        if self._hub.has_subscribers(user_id):
            self._hub.publish(user_id, decode_profile(self._profiles.get(user_id)))


class InMemoryHabitStore:
    """Habit documents keyed by generated id, filterable by owner"""

    def __init__(self):
        self._habits: Dict[str, dict] = {}
        self._last_created_at: Optional[datetime] = None
        self._hub = SubscriptionHub("habits")
        logger.info("InMemoryHabitStore initialized - habits are NOT persisted")

    async def insert(self, owner_id: str, name: str) -> Habit:
        habit_id = str(uuid4())
        document = {
            "id": habit_id,
            "owner_id": owner_id,
            "name": name,
            "streak": 0,
            "status": HabitStatus.NOT_ACTIVATED.value,
            "created_at": self._next_timestamp(),
        }
        habit = decode_habit(document)
        self._habits[habit_id] = document
        self._publish(owner_id)
        return habit

    async def get(self, habit_id: str) -> Optional[Habit]:
        return decode_habit(self._habits.get(habit_id))

    async def list_by_owner(self, owner_id: str) -> list[Habit]:
        return decode_habits(self._owner_documents(owner_id))

    async def update_streak(self, habit_id: str, streak: int, status: HabitStatus) -> Optional[Habit]:
        document = self._habits.get(habit_id)
        if document is None:
            return None
        document["streak"] = streak
        document["status"] = HabitStatus(status).value
        self._publish(document["owner_id"])
        return decode_habit(document)

    async def delete(self, habit_id: str) -> bool:
        document = self._habits.pop(habit_id, None)
        if document is None:
            return False
        self._publish(document["owner_id"])
        return True

    async def subscribe(self, owner_id: str) -> Subscription:
        subscription = self._hub.open(owner_id)
        subscription.seed(await self.list_by_owner(owner_id))
        return subscription

    def _next_timestamp(self) -> datetime:
        # Strictly increasing per write, even within one clock tick
        now = datetime.now(timezone.utc)
        if self._last_created_at is not None and now <= self._last_created_at:
            now = self._last_created_at + timedelta(microseconds=1)
        self._last_created_at = now
        return now

    def _publish(self, owner_id: str) -> None:
        if self._hub.has_subscribers(owner_id):
            self._hub.publish(owner_id, decode_habits(self._owner_documents(owner_id)))

    def _owner_documents(self, owner_id: str) -> list[dict]:
        documents = [d for d in self._habits.values() if d["owner_id"] == owner_id]
        documents.sort(key=lambda d: (d["created_at"], d["id"]))
        return documents
