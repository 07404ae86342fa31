"""Habit store backed by PostgreSQL"""
import logging
from typing import Optional
from uuid import UUID

from src.db.connection import Database, translate_errors
from src.db.decoding import decode_habit, decode_habits
from src.db.listener import ChangeListener
from src.db.schema import HABIT_CHANNEL
from src.db.subscriptions import Subscription, SubscriptionHub
from src.models.habit import Habit, HabitStatus

logger = logging.getLogger(__name__)

HABIT_COLUMNS = "id, owner_id, name, streak, status, created_at"


def _parse_habit_id(habit_id: str) -> Optional[UUID]:
    """Habit ids are UUIDs; anything else cannot name an existing habit"""
    try:
        return UUID(str(habit_id))
    except ValueError:
        return None


class PostgresHabitStore:
    """
    Habit documents in the `habits` table, filterable by owner.

    Subscriptions deliver the owner's full habit list after every change
    reported on the 'habit_changes' channel.
    """

    def __init__(self, database: Database, listener: Optional[ChangeListener] = None):
        self.db = database
        self._hub = SubscriptionHub("habits")
        if listener is not None:
            listener.add_handler(HABIT_CHANNEL, self._on_notification)
            listener.on_disconnect(self._hub.end_all)

    async def insert(self, owner_id: str, name: str) -> Habit:
        """Insert a fresh habit (streak 0, Not Activated); the store assigns id and created_at"""
        with translate_errors("insert_habit", owner_id):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"""
                        INSERT INTO habits (owner_id, name, streak, status)
                        VALUES (%s, %s, 0, %s)
                        RETURNING {HABIT_COLUMNS}
                        """,
                        (owner_id, name, HabitStatus.NOT_ACTIVATED.value)
                    )
                    row = await cur.fetchone()
                    await conn.commit()
        return decode_habit(row)

    async def get(self, habit_id: str) -> Optional[Habit]:
        uuid = _parse_habit_id(habit_id)
        if uuid is None:
            return None
        with translate_errors("get_habit"):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"SELECT {HABIT_COLUMNS} FROM habits WHERE id = %s",
                        (uuid,)
                    )
                    row = await cur.fetchone()
        return decode_habit(row)

    async def list_by_owner(self, owner_id: str) -> list[Habit]:
        with translate_errors("list_habits", owner_id):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"""
                        SELECT {HABIT_COLUMNS}
                        FROM habits
                        WHERE owner_id = %s
                        ORDER BY created_at, id
                        """,
                        (owner_id,)
                    )
                    rows = await cur.fetchall()
        return decode_habits(rows)

    async def update_streak(self, habit_id: str, streak: int, status: HabitStatus) -> Optional[Habit]:
        """Write the (streak, status) pair; None if the habit does not exist"""
        uuid = _parse_habit_id(habit_id)
        if uuid is None:
            return None
        with translate_errors("update_habit_streak"):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"""
                        UPDATE habits
                        SET streak = %s,
                            status = %s
                        WHERE id = %s
                        RETURNING {HABIT_COLUMNS}
                        """,
                        (streak, HabitStatus(status).value, uuid)
                    )
                    row = await cur.fetchone()
                    await conn.commit()
        return decode_habit(row)

    async def delete(self, habit_id: str) -> bool:
        uuid = _parse_habit_id(habit_id)
        if uuid is None:
            return False
        with translate_errors("delete_habit"):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute("DELETE FROM habits WHERE id = %s", (uuid,))
                    deleted = cur.rowcount > 0
                    await conn.commit()
        return deleted

    async def subscribe(self, owner_id: str) -> Subscription:
        """Subscribe to an owner's habit list; the current list is delivered first"""
        subscription = self._hub.open(owner_id)
        try:
            subscription.seed(await self.list_by_owner(owner_id))
        except Exception:
            await subscription.close()
            raise
        return subscription

    async def _on_notification(self, owner_id: str) -> None:
        if not self._hub.has_subscribers(owner_id):
            return
        self._hub.publish(owner_id, await self.list_by_owner(owner_id))
