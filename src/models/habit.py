"""Habit models"""
from enum import Enum
from datetime import datetime
from pydantic import BaseModel, Field, field_validator


class HabitStatus(str, Enum):
    """Habit status, derived from the streak length"""
    NOT_ACTIVATED = "Not Activated"
    IN_PROGRESS = "In Progress"
    ACTIVATED = "Activated"

    @property
    def slug(self) -> str:
        """Filter key for this status ('not-activated', 'in-progress', 'activated')"""
        return self.value.lower().replace(" ", "-")


class HabitFilter(str, Enum):
    """Status categories the habit list can be filtered by"""
    ALL = "all"
    ACTIVATED = "activated"
    IN_PROGRESS = "in-progress"
    NOT_ACTIVATED = "not-activated"

    def matches(self, habit: "Habit") -> bool:
        return self is HabitFilter.ALL or habit.status.slug == self.value


class Habit(BaseModel):
    """A habit owned by one user"""
    id: str
    owner_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    streak: int = Field(default=0, ge=0)
    status: HabitStatus = HabitStatus.NOT_ACTIVATED
    created_at: datetime

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        # Postgres hands back UUID objects
        return str(value) if value is not None else value

    @property
    def occupies_slot(self) -> bool:
        return self.status is not HabitStatus.ACTIVATED


def filter_habits(habits: list[Habit], category: HabitFilter | str = HabitFilter.ALL) -> list[Habit]:
    """Pure filter over a habit set by status category"""
    category = HabitFilter(category)
    return [h for h in habits if category.matches(h)]


def count_used_slots(habits: list[Habit]) -> int:
    """Number of habits that are not Activated"""
    return sum(1 for h in habits if h.occupies_slot)
