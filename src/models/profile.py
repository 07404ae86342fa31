"""Profile-related Pydantic models"""
from typing import Optional
from pydantic import BaseModel, Field


class Profile(BaseModel):
    """Per-user progression record (one per user, keyed by user_id)"""
    user_id: str = Field(..., min_length=1)
    level: int = Field(default=1, ge=1)
    xp: int = Field(default=0, ge=0)
    display_name: Optional[str] = None
