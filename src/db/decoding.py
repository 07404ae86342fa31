"""Schema validation at the store boundary

Every record that leaves a store (query row, in-memory document or change
notification payload) goes through these decoders so that callers only ever
see validated Profile / Habit values.
"""
import logging
from typing import Any, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from src.exceptions import StoreDecodeError
from src.models.habit import Habit
from src.models.profile import Profile

logger = logging.getLogger(__name__)


def decode_profile(row: Optional[Mapping[str, Any]]) -> Optional[Profile]:
    """Decode a profile row; None passes through as 'no such profile'"""
    if row is None:
        return None
    try:
        return Profile.model_validate(dict(row))
    except (PydanticValidationError, TypeError, ValueError) as e:
        raise StoreDecodeError(
            f"Invalid profile record: {e}",
            record_type="profile",
            payload=row,
            cause=e,
        )


def decode_habit(row: Optional[Mapping[str, Any]]) -> Optional[Habit]:
    """Decode a habit row; None passes through as 'no such habit'"""
    if row is None:
        return None
    try:
        return Habit.model_validate(dict(row))
    except (PydanticValidationError, TypeError, ValueError) as e:
        raise StoreDecodeError(
            f"Invalid habit record: {e}",
            record_type="habit",
            payload=row,
            cause=e,
        )


def decode_habits(rows) -> list[Habit]:
    return [decode_habit(row) for row in rows]
