"""
Gamification system for habit quest

- XP and leveling (multi-level carry-over, threshold 150 x level)
- Habit streak progression (Not Activated -> In Progress -> Activated)
- Level-up celebration timer for the live view
"""

from src.gamification.xp_system import (
    award_xp,
    apply_xp_gain,
    xp_threshold,
    total_xp_earned,
    calculate_level_from_xp,
    get_level_info,
)
from src.gamification.streak_system import status_for_streak
from src.gamification.celebration import LevelUpCelebration

__all__ = [
    "award_xp",
    "apply_xp_gain",
    "xp_threshold",
    "total_xp_earned",
    "calculate_level_from_xp",
    "get_level_info",
    "status_for_streak",
    "LevelUpCelebration",
]
