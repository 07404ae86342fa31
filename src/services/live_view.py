"""
LiveView - per-user projection of the habit list and profile

Subscribes to the user's profile and habit feeds and keeps the derived state
the presentation layer renders: used slots, whether another habit may be
added, and the transient level-up flag.

Usage:
    async with LiveView(user_id, profile_store, habit_store) as view:
        async for state in view.updates():
            render(state)

Both subscriptions are released when the block exits.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional, Set

from pydantic import BaseModel

from src.config import LEVEL_UP_CELEBRATION_SECONDS
from src.db.subscriptions import Subscription
from src.gamification.celebration import LevelUpCelebration
from src.gamification.xp_system import xp_threshold
from src.models.habit import Habit, HabitFilter, count_used_slots, filter_habits
from src.models.profile import Profile

logger = logging.getLogger(__name__)

_CLOSED = None


class ViewState(BaseModel):
    """Snapshot of everything the presentation layer needs for one user"""
    user_id: str
    profile: Optional[Profile] = None
    habits: list[Habit] = []
    used_slots: int = 0
    can_add_habit: bool = False
    leveled_up: bool = False
    xp_threshold: Optional[int] = None
    stale: bool = False


class LiveView:
    """Continuously updated, read-only view of one user's habits and profile"""

    def __init__(
        self,
        user_id: str,
        profile_store,
        habit_store,
        celebration_seconds: float = LEVEL_UP_CELEBRATION_SECONDS,
    ):
        self.user_id = user_id
        self._profile_store = profile_store
        self._habit_store = habit_store
        self._profile: Optional[Profile] = None
        self._habits: list[Habit] = []
        self._celebration = LevelUpCelebration(
            duration=celebration_seconds,
            on_change=lambda _active: self._emit(),
        )
        self._subscriptions: list[Subscription] = []
        self._tasks: list[asyncio.Task] = []
        self._listeners: Set[asyncio.Queue] = set()
        self._open = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> "LiveView":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def open(self) -> None:
        """Acquire both subscriptions and start folding their snapshots"""
        if self._open:
            return
        try:
            profile_sub = await self._profile_store.subscribe(self.user_id)
            self._subscriptions.append(profile_sub)
            habit_sub = await self._habit_store.subscribe(self.user_id)
            self._subscriptions.append(habit_sub)
        except Exception:
            await self._release()
            raise

        self._open = True
        self._tasks = [
            asyncio.create_task(self._pump(profile_sub, self._fold_profile)),
            asyncio.create_task(self._pump(habit_sub, self._fold_habits)),
        ]
        logger.debug(f"Live view opened for user {self.user_id}")

    async def close(self) -> None:
        if not self._open:
            return
        self._open = False
        self._celebration.cancel()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        await self._release()
        for queue in self._listeners:
            queue.put_nowait(_CLOSED)
        logger.debug(f"Live view closed for user {self.user_id}")

    async def _release(self) -> None:
        for subscription in self._subscriptions:
            await subscription.close()
        self._subscriptions = []

    # ------------------------------------------------------------------
    # Folding
    # ------------------------------------------------------------------

    async def _pump(self, subscription: Subscription, fold) -> None:
        async for snapshot in subscription:
            fold(snapshot)
            self._emit()
        if self._open:
            logger.warning(f"Live view feed '{subscription.key}' stopped; view is stale")
            self._emit()

    def _fold_profile(self, profile: Optional[Profile]) -> None:
        self._profile = profile
        if profile is not None:
            self._celebration.observe_level(profile.level)

    def _fold_habits(self, habits: list[Habit]) -> None:
        self._habits = sorted(habits, key=lambda h: (h.created_at, h.id))

    def _emit(self) -> None:
        if not self._listeners:
            return
        state = self.state()
        for queue in self._listeners:
            queue.put_nowait(state)

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def profile(self) -> Optional[Profile]:
        return self._profile

    @property
    def habits(self) -> list[Habit]:
        return list(self._habits)

    @property
    def used_slots(self) -> int:
        return count_used_slots(self._habits)

    @property
    def can_add_habit(self) -> bool:
        return self._profile is not None and self.used_slots < self._profile.level

    @property
    def leveled_up(self) -> bool:
        return self._celebration.active

    @property
    def stale(self) -> bool:
        return any(s.stale for s in self._subscriptions) or not self._open

    def filter(self, category: HabitFilter | str = HabitFilter.ALL) -> list[Habit]:
        return filter_habits(self._habits, category)

    def state(self, category: HabitFilter | str = HabitFilter.ALL) -> ViewState:
        return ViewState(
            user_id=self.user_id,
            profile=self._profile,
            habits=self.filter(category),
            used_slots=self.used_slots,
            can_add_habit=self.can_add_habit,
            leveled_up=self.leveled_up,
            xp_threshold=xp_threshold(self._profile.level) if self._profile else None,
            stale=self.stale,
        )

    async def updates(self) -> AsyncIterator[ViewState]:
        """Yield the current state, then a new state after every change until closed"""
        queue: asyncio.Queue = asyncio.Queue()
        self._listeners.add(queue)
        try:
            yield self.state()
            while self._open:
                state = await queue.get()
                if state is _CLOSED:
                    return
                yield state
        finally:
            self._listeners.discard(queue)
