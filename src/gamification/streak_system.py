"""
Habit Streak Rules

A habit's status follows its streak:
- 0 days: Not Activated
- 1-29 days: In Progress
- 30+ days: Activated (the habit no longer occupies a slot)

Streaks only move by explicit increments (one per call) or a reset to 0.
"""

from typing import Tuple
import logging

from src.models.habit import Habit, HabitStatus

logger = logging.getLogger(__name__)

ACTIVATION_STREAK = 30


def status_for_streak(streak: int) -> HabitStatus:
    """Derive the habit status from a streak length"""
    if streak >= ACTIVATION_STREAK:
        return HabitStatus.ACTIVATED
    if streak > 0:
        return HabitStatus.IN_PROGRESS
    return HabitStatus.NOT_ACTIVATED


def incremented(habit: Habit) -> Tuple[int, HabitStatus]:
    """(streak, status) after one more completed day"""
    streak = habit.streak + 1
    return streak, status_for_streak(streak)


def reset() -> Tuple[int, HabitStatus]:
    """(streak, status) after a reset"""
    return 0, HabitStatus.NOT_ACTIVATED
