"""
XP and Leveling System

Manages XP awards and level calculations.

Leveling Curve:
- Reaching level L+1 from level L costs L * 150 XP
- XP is stored relative to the current level: 0 <= xp < level * 150
- Total XP ever earned at (level, xp) = sum(i * 150 for i in 1..level-1) + xp

XP Award Rules:
- Streak increment: 10 XP
"""

from typing import Any, Dict, Optional
import logging

from src.exceptions import ValidationError
from src.models.profile import Profile
from src.monitoring.prometheus_metrics import metrics

logger = logging.getLogger(__name__)

LEVEL_XP_STEP = 150
XP_PER_STREAK_INCREMENT = 10


def xp_threshold(level: int) -> int:
    """XP needed to advance from `level` to the next level"""
    return level * LEVEL_XP_STEP


def apply_xp_gain(level: int, xp: int, gain: int) -> Dict[str, int]:
    """
    Add `gain` XP to a (level, xp) pair and normalize

    Every time xp reaches the current threshold the threshold is paid and the
    level increases, so several levels can be gained at once.

    Returns:
        {
            'level': int,
            'xp': int,
            'levels_gained': int
        }
    """
    if gain < 0:
        raise ValidationError("XP gain must not be negative", field="gain", value=gain)
    if level < 1:
        raise ValidationError("Level must be at least 1", field="level", value=level)

    new_level = level
    new_xp = xp + gain
    while new_xp >= xp_threshold(new_level):
        new_xp -= xp_threshold(new_level)
        new_level += 1

    return {
        "level": new_level,
        "xp": new_xp,
        "levels_gained": new_level - level,
    }


def total_xp_earned(level: int, xp: int) -> int:
    """Total XP a user has earned to reach (level, xp) from level 1"""
    return LEVEL_XP_STEP * (level - 1) * level // 2 + xp


def calculate_level_from_xp(total_xp: int) -> Dict[str, int]:
    """
    Calculate level from total XP earned since level 1

    Returns:
        {
            'current_level': int,
            'xp_in_current_level': int,
            'xp_to_next_level': int,
            'total_xp_for_next_level': int
        }
    """
    progress = apply_xp_gain(1, 0, max(total_xp, 0))
    level = progress["level"]
    xp_in_level = progress["xp"]

    return {
        "current_level": level,
        "xp_in_current_level": xp_in_level,
        "xp_to_next_level": xp_threshold(level) - xp_in_level,
        "total_xp_for_next_level": total_xp_earned(level + 1, 0),
    }


def get_level_info(profile: Profile) -> Dict[str, Any]:
    """Level/XP summary of a profile for display"""
    threshold = xp_threshold(profile.level)
    return {
        "user_id": profile.user_id,
        "level": profile.level,
        "xp": profile.xp,
        "xp_threshold": threshold,
        "xp_to_next_level": max(0, threshold - profile.xp),
        "total_xp": total_xp_earned(profile.level, profile.xp),
        "habit_slots": profile.level,
    }


async def award_xp(profile_store, user_id: str, amount: int) -> Optional[Dict[str, Any]]:
    """
    Award XP to user and check for level up

    Runs as one transaction on the user's profile: concurrent awards for the
    same user are serialized, awards for different users are independent.
    A profile that does not exist (or disappeared concurrently) makes this a
    no-op returning None.

    Args:
        profile_store: Profile store providing `transaction(user_id)`
        user_id: Owner of the profile
        amount: Non-negative amount of XP to award

    Returns:
        {
            'xp_awarded': int,
            'old_level': int,
            'new_level': int,
            'leveled_up': bool,
            'levels_gained': int,
            'xp': int,
            'xp_to_next_level': int
        }
        or None if the profile does not exist
    """
    if not isinstance(amount, int) or amount < 0:
        raise ValidationError(
            "XP amount must be a non-negative integer",
            field="amount",
            value=amount,
            user_id=user_id,
            operation="award_xp",
        )

    async with profile_store.transaction(user_id) as tx:
        profile = tx.profile
        if profile is None:
            logger.info(f"Skipping XP award for user {user_id}: profile does not exist")
            return None

        progress = apply_xp_gain(profile.level, profile.xp, amount)
        if not await tx.update(progress["level"], progress["xp"]):
            logger.info(f"Skipping XP award for user {user_id}: profile was deleted")
            return None

    old_level = profile.level
    new_level = progress["level"]
    leveled_up = new_level > old_level

    metrics.record_xp_awarded(amount, progress["levels_gained"])

    logger.info(
        f"Awarded {amount} XP to user {user_id}. "
        f"XP: {progress['xp']}/{xp_threshold(new_level)}, Level: {new_level}"
    )

    if leveled_up:
        logger.info(f"User {user_id} leveled up from {old_level} to {new_level}!")

    return {
        "xp_awarded": amount,
        "old_level": old_level,
        "new_level": new_level,
        "leveled_up": leveled_up,
        "levels_gained": progress["levels_gained"],
        "xp": progress["xp"],
        "xp_to_next_level": xp_threshold(new_level) - progress["xp"],
    }
