"""Profile store backed by PostgreSQL"""
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from src.db.connection import Database, translate_errors
from src.db.decoding import decode_profile
from src.db.listener import ChangeListener
from src.db.schema import PROFILE_CHANNEL
from src.db.subscriptions import Subscription, SubscriptionHub
from src.exceptions import StoreDecodeError
from src.models.profile import Profile

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = "user_id, level, xp, display_name"


class PostgresProfileTransaction:
    """Read-then-write access to one profile row, locked for the transaction"""

    def __init__(self, cursor, profile: Optional[Profile]):
        self._cursor = cursor
        self.profile = profile

    async def update(self, level: int, xp: int) -> bool:
        """Write (level, xp); returns False if the profile no longer exists"""
        if self.profile is None:
            return False
        await self._cursor.execute(
            """
            UPDATE profiles
            SET level = %s,
                xp = %s,
                updated_at = CURRENT_TIMESTAMP
            WHERE user_id = %s
            """,
            (level, xp, self.profile.user_id)
        )
        return self._cursor.rowcount > 0


class PostgresProfileStore:
    """
    Per-user profile documents in the `profiles` table.

    Subscriptions are fed by the 'profile_changes' notification channel when a
    ChangeListener is attached.
    """

    def __init__(self, database: Database, listener: Optional[ChangeListener] = None):
        self.db = database
        self._hub = SubscriptionHub("profiles")
        if listener is not None:
            listener.add_handler(PROFILE_CHANNEL, self._on_notification)
            listener.on_disconnect(self._hub.end_all)

    async def get(self, user_id: str) -> Optional[Profile]:
        with translate_errors("get_profile", user_id):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE user_id = %s",
                        (user_id,)
                    )
                    row = await cur.fetchone()
        return decode_profile(row)

    async def ensure(self, user_id: str, display_name: Optional[str] = None) -> Profile:
        """
        Create the profile with level 1 / 0 XP if it does not exist yet.

        An existing profile keeps its progress; only a newly supplied display
        name is stored.
        """
        with translate_errors("ensure_profile", user_id):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"""
                        INSERT INTO profiles (user_id, level, xp, display_name)
                        VALUES (%s, 1, 0, %s)
                        ON CONFLICT (user_id) DO UPDATE
                        SET display_name = COALESCE(EXCLUDED.display_name, profiles.display_name)
                        RETURNING {PROFILE_COLUMNS}
                        """,
                        (user_id, display_name)
                    )
                    row = await cur.fetchone()
                    await conn.commit()
        return decode_profile(row)

    async def delete(self, user_id: str) -> bool:
        with translate_errors("delete_profile", user_id):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute("DELETE FROM profiles WHERE user_id = %s", (user_id,))
                    deleted = cur.rowcount > 0
                    await conn.commit()
        return deleted

    @asynccontextmanager
    async def transaction(self, user_id: str) -> AsyncIterator[PostgresProfileTransaction]:
        """
        Lock the profile row (SELECT ... FOR UPDATE) for a read-modify-write.

        Concurrent transactions on the same user wait for each other; other
        users are unaffected. Commits on normal exit, rolls back on error.
        """
        with translate_errors("profile_transaction", user_id):
            async with self.db.connection() as conn:
                async with conn.transaction():
                    async with conn.cursor() as cur:
                        await cur.execute(
                            f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE user_id = %s FOR UPDATE",
                            (user_id,)
                        )
                        row = await cur.fetchone()
                        yield PostgresProfileTransaction(cur, decode_profile(row))

    async def subscribe(self, user_id: str) -> Subscription:
        """Subscribe to a user's profile; the current value is delivered first"""
        subscription = self._hub.open(user_id)
        try:
            subscription.seed(await self.get(user_id))
        except Exception:
            await subscription.close()
            raise
        return subscription

    async def _on_notification(self, payload: str) -> None:
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise StoreDecodeError(
                f"Profile notification is not JSON: {e}",
                record_type="profile",
                payload=payload,
                cause=e,
            )
        user_id = data.get("user_id") if isinstance(data, dict) else None
        if not user_id or not self._hub.has_subscribers(user_id):
            return
        if data.get("deleted"):
            self._hub.publish(user_id, None)
        else:
            self._hub.publish(user_id, decode_profile(data))
