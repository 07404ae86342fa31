"""Pydantic models for API request/response validation"""
from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import datetime

from src.models.habit import Habit, HabitFilter


class SignInRequest(BaseModel):
    """Identity supplied by the identity provider after a successful sign-in"""
    user_id: str = Field(..., min_length=1, description="Stable, unique user identifier")
    display_name: Optional[str] = Field(default=None, description="Name shown in the UI")


class ProfileResponse(BaseModel):
    """Response with level and XP progress"""
    user_id: str
    display_name: Optional[str] = None
    level: int
    xp: int
    xp_threshold: int = Field(..., description="XP needed for the next level (level * 150)")
    xp_to_next_level: int
    total_xp: int
    habit_slots: int


class HabitCreateRequest(BaseModel):
    """Request to create a habit"""
    name: str = Field(..., description="Habit name (trimmed; must not be empty)")


class HabitListResponse(BaseModel):
    """Habits of a user plus slot usage"""
    user_id: str
    status: HabitFilter = HabitFilter.ALL
    habits: List[Habit]
    used_slots: int
    total_slots: int
    can_add_habit: bool


class HabitRefusedResponse(BaseModel):
    """Returned with 409 when a habit cannot be created"""
    reason: str = Field(..., description="empty_name, profile_missing or no_free_slot")
    detail: str


class StreakResponse(BaseModel):
    """Outcome of a streak increment"""
    habit: Habit
    xp_awarded: int
    leveled_up: bool
    new_level: Optional[int] = None
    xp_award_failed: bool = False


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str
    store: str
    timestamp: datetime
