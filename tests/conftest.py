"""Global test fixtures and utilities for habit-quest tests"""
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock

from src.db.memory_store import InMemoryHabitStore, InMemoryProfileStore
from src.services.habit_service import HabitService


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def mock_db_cursor():
    """Mock database cursor with standard query results"""
    cursor = AsyncMock()
    cursor.fetchone = AsyncMock(return_value=None)
    cursor.fetchall = AsyncMock(return_value=[])
    cursor.execute = AsyncMock()
    cursor.rowcount = 0
    return cursor


@pytest.fixture
def profile_row():
    """Profile row as returned with dict_row"""
    return {"user_id": "user-123", "level": 1, "xp": 0, "display_name": "Test User"}


@pytest.fixture
def habit_row():
    """Habit row as returned with dict_row"""
    return {
        "id": "6f1c1b8e-3f5a-4b8e-9a37-0d2f7c1e4a10",
        "owner_id": "user-123",
        "name": "Read 20 pages",
        "streak": 0,
        "status": "Not Activated",
        "created_at": datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
    }


# ============================================================================
# User & Auth Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "user-123"


@pytest.fixture
def test_api_key():
    """Standard test API key"""
    return "test_api_key_12345"


# ============================================================================
# Store & Service Fixtures
# ============================================================================

@pytest.fixture
def profile_store():
    return InMemoryProfileStore()


@pytest.fixture
def habit_store():
    return InMemoryHabitStore()


@pytest.fixture
def habit_service(profile_store, habit_store):
    return HabitService(profile_store, habit_store)


@pytest.fixture
async def signed_in_user(profile_store, test_user_id):
    """A user with a fresh level 1 / 0 XP profile"""
    await profile_store.ensure(test_user_id, "Test User")
    return test_user_id
