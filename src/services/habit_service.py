"""
HabitService - Habit Lifecycle Business Logic

Creates, advances, resets and deletes habits, enforces the slot limit
(a user may hold at most `level` habits that are not Activated) and awards
XP for every streak increment.

Refusals (empty name, no free slot, unknown habit) are reported through
return values, never raised.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from src.exceptions import DatabaseError
from src.gamification import streak_system
from src.gamification.xp_system import XP_PER_STREAK_INCREMENT, award_xp
from src.models.habit import Habit, count_used_slots
from src.monitoring.prometheus_metrics import metrics

logger = logging.getLogger(__name__)

REFUSED_EMPTY_NAME = "empty_name"
REFUSED_NO_PROFILE = "profile_missing"
REFUSED_NO_FREE_SLOT = "no_free_slot"


class HabitService:
    """
    Service for the habit lifecycle.

    Responsibilities:
    - Slot-checked habit creation
    - Streak increment (+ XP award) and reset
    - Unconditional deletion
    - Slot usage for the presentation layer
    """

    def __init__(self, profile_store, habit_store):
        """
        Initialize HabitService.

        Args:
            profile_store: Profile store (Postgres or in-memory)
            habit_store: Habit store (Postgres or in-memory)
        """
        self.profiles = profile_store
        self.habits = habit_store
        logger.debug("HabitService initialized")

    async def slot_usage(self, user_id: str) -> Dict[str, Any]:
        """
        Current slot usage of a user.

        Returns:
            {
                'used_slots': int,
                'total_slots': int,   # 0 when the profile does not exist
                'can_add_habit': bool
            }
        """
        profile = await self.profiles.get(user_id)
        habits = await self.habits.list_by_owner(user_id)
        used = count_used_slots(habits)
        total = profile.level if profile else 0
        return {
            "used_slots": used,
            "total_slots": total,
            "can_add_habit": profile is not None and used < total,
        }

    async def can_add_habit(self, user_id: str) -> bool:
        return (await self.slot_usage(user_id))["can_add_habit"]

    async def check_create(self, user_id: str, name: str) -> Optional[str]:
        """Reason a habit with this name would be refused, or None if accepted"""
        if not name or not name.strip():
            return REFUSED_EMPTY_NAME
        usage = await self.slot_usage(user_id)
        if usage["total_slots"] == 0:
            return REFUSED_NO_PROFILE
        if not usage["can_add_habit"]:
            return REFUSED_NO_FREE_SLOT
        return None

    async def try_create_habit(self, user_id: str, name: str) -> Tuple[Optional[Habit], Optional[str]]:
        """
        Create a habit if the name is non-empty and a slot is free.

        The slot check and the insert are separate store calls, so two
        simultaneous submissions can both pass the check.

        Returns:
            (habit, None) when created, (None, reason) when refused
        """
        reason = await self.check_create(user_id, name)
        if reason is not None:
            metrics.record_habit_refused(reason)
            logger.info(f"Refused habit creation for user {user_id}: {reason}")
            return None, reason

        habit = await self.habits.insert(user_id, name.strip())
        metrics.record_habit_created()
        logger.info(f"Created habit {habit.id} for user {user_id}")
        return habit, None

    async def create_habit(self, user_id: str, name: str) -> Optional[Habit]:
        """The new habit, or None when refused (nothing is written)"""
        habit, _reason = await self.try_create_habit(user_id, name)
        return habit

    async def get_habit(self, habit_id: str, owner_id: Optional[str] = None) -> Optional[Habit]:
        """Fetch a habit; with owner_id, habits of other users count as missing"""
        habit = await self.habits.get(habit_id)
        if habit is None or (owner_id is not None and habit.owner_id != owner_id):
            return None
        return habit

    async def increment_streak(self, habit_id: str) -> Optional[Dict[str, Any]]:
        """
        Add one day to a habit's streak, then award XP to its owner.

        The streak write and the XP award are two independent effects: if the
        award fails the streak stays incremented.

        Returns:
            {
                'habit': Habit,
                'xp_awarded': int,
                'leveled_up': bool,
                'new_level': Optional[int],
                'xp_award_failed': bool
            }
            or None if the habit does not exist
        """
        habit = await self.habits.get(habit_id)
        if habit is None:
            return None

        streak, status = streak_system.incremented(habit)
        updated = await self.habits.update_streak(habit_id, streak, status)
        if updated is None:
            # Deleted between read and write
            return None

        metrics.record_streak_increment(status.value)
        if status != habit.status:
            logger.info(f"Habit {habit_id} is now {status.value} (streak {streak})")

        result = {
            "habit": updated,
            "xp_awarded": 0,
            "leveled_up": False,
            "new_level": None,
            "xp_award_failed": False,
        }

        try:
            xp_result = await award_xp(self.profiles, updated.owner_id, XP_PER_STREAK_INCREMENT)
        except DatabaseError as e:
            logger.error(
                f"Streak of habit {habit_id} updated but XP award failed: {e}",
                exc_info=True
            )
            result["xp_award_failed"] = True
            return result

        if xp_result is not None:
            result["xp_awarded"] = xp_result["xp_awarded"]
            result["leveled_up"] = xp_result["leveled_up"]
            result["new_level"] = xp_result["new_level"]

        return result

    async def reset_streak(self, habit_id: str) -> Optional[Habit]:
        """
        Reset a habit to streak 0 / Not Activated.

        No XP and no slot check: resetting an Activated habit may leave the
        user with more occupied slots than their level.
        """
        streak, status = streak_system.reset()
        habit = await self.habits.update_streak(habit_id, streak, status)
        if habit is not None:
            metrics.record_streak_reset()
            logger.info(f"Reset streak of habit {habit_id}")
        return habit

    async def delete_habit(self, habit_id: str) -> bool:
        """Remove a habit unconditionally; returns whether anything was removed"""
        deleted = await self.habits.delete(habit_id)
        if deleted:
            metrics.record_habit_deleted()
            logger.info(f"Deleted habit {habit_id}")
        return deleted
