"""Tests for the live view projection (src/services/live_view.py)"""
import asyncio
import pytest
from unittest.mock import AsyncMock, patch

from src.exceptions import ConnectionError
from src.gamification.xp_system import award_xp
from src.models.habit import HabitFilter, HabitStatus
from src.services.live_view import LiveView
from tests.helpers import wait_until

CELEBRATION = 0.05


@pytest.fixture
def live_view(profile_store, habit_store, test_user_id):
    return LiveView(test_user_id, profile_store, habit_store, celebration_seconds=CELEBRATION)


# ============================================================================
# Projection Tests
# ============================================================================

@pytest.mark.asyncio
async def test_initial_snapshot(live_view, signed_in_user):
    async with live_view as view:
        await wait_until(lambda: view.profile is not None)

        assert view.profile.level == 1
        assert view.habits == []
        assert view.used_slots == 0
        assert view.can_add_habit is True
        assert view.leveled_up is False


@pytest.mark.asyncio
async def test_view_without_profile(live_view):
    """Test a user without a profile cannot add habits"""
    async with live_view as view:
        await asyncio.sleep(0.01)

        assert view.profile is None
        assert view.can_add_habit is False
        assert view.state().xp_threshold is None


@pytest.mark.asyncio
async def test_slots_follow_habit_changes(live_view, habit_service, signed_in_user):
    async with live_view as view:
        habit = await habit_service.create_habit(signed_in_user, "Read")
        await wait_until(lambda: len(view.habits) == 1)

        assert view.used_slots == 1
        assert view.can_add_habit is False

        await habit_service.delete_habit(habit.id)
        await wait_until(lambda: view.habits == [])

        assert view.can_add_habit is True


@pytest.mark.asyncio
async def test_habits_ordered_by_creation(live_view, habit_service, profile_store, signed_in_user):
    profile_store.put_raw(signed_in_user, {"user_id": signed_in_user, "level": 3, "xp": 0})
    names = ["Read", "Run", "Rest"]
    for name in names:
        await habit_service.create_habit(signed_in_user, name)

    async with live_view as view:
        await wait_until(lambda: len(view.habits) == 3)

        assert [h.name for h in view.habits] == names


@pytest.mark.asyncio
async def test_filter_by_status(live_view, habit_service, profile_store, signed_in_user):
    profile_store.put_raw(signed_in_user, {"user_id": signed_in_user, "level": 3, "xp": 0})
    fresh = await habit_service.create_habit(signed_in_user, "Fresh")
    running = await habit_service.create_habit(signed_in_user, "Running")
    done = await habit_service.create_habit(signed_in_user, "Done")
    await habit_service.increment_streak(running.id)
    for _ in range(30):
        await habit_service.increment_streak(done.id)

    async with live_view as view:
        await wait_until(lambda: len(view.habits) == 3)

        assert [h.id for h in view.filter(HabitFilter.NOT_ACTIVATED)] == [fresh.id]
        assert [h.id for h in view.filter("in-progress")] == [running.id]
        assert [h.id for h in view.filter(HabitFilter.ACTIVATED)] == [done.id]
        assert len(view.filter("all")) == 3
        assert view.used_slots == 2


@pytest.mark.asyncio
async def test_profile_deleted(live_view, profile_store, signed_in_user):
    async with live_view as view:
        await wait_until(lambda: view.profile is not None)

        await profile_store.delete(signed_in_user)
        await wait_until(lambda: view.profile is None)

        assert view.can_add_habit is False


# ============================================================================
# Level-Up Celebration Tests
# ============================================================================

@pytest.mark.asyncio
async def test_first_profile_does_not_celebrate(profile_store, habit_store, test_user_id):
    profile_store.put_raw(test_user_id, {"user_id": test_user_id, "level": 5, "xp": 0})

    async with LiveView(test_user_id, profile_store, habit_store, celebration_seconds=CELEBRATION) as view:
        await wait_until(lambda: view.profile is not None)

        assert view.leveled_up is False


@pytest.mark.asyncio
async def test_level_up_raises_flag_for_window(live_view, profile_store, signed_in_user):
    async with live_view as view:
        await wait_until(lambda: view.profile is not None)

        await award_xp(profile_store, signed_in_user, 150)
        await wait_until(lambda: view.leveled_up)

        assert view.profile.level == 2
        assert view.state().leveled_up is True

        await wait_until(lambda: not view.leveled_up, timeout=CELEBRATION * 20)
        assert view.profile.level == 2


@pytest.mark.asyncio
async def test_xp_without_level_up_does_not_celebrate(live_view, profile_store, signed_in_user):
    async with live_view as view:
        await award_xp(profile_store, signed_in_user, 10)
        await wait_until(lambda: view.profile is not None and view.profile.xp == 10)

        assert view.leveled_up is False


@pytest.mark.asyncio
async def test_second_level_up_rearms_timer(profile_store, habit_store, signed_in_user):
    async with LiveView(signed_in_user, profile_store, habit_store, celebration_seconds=0.3) as view:
        await wait_until(lambda: view.profile is not None)

        await award_xp(profile_store, signed_in_user, 150)
        await wait_until(lambda: view.leveled_up)
        first_expiry = view._celebration.expires_at

        await asyncio.sleep(0.05)
        await award_xp(profile_store, signed_in_user, 300)
        await wait_until(lambda: view.profile.level == 3)

        assert view.leveled_up is True
        assert view._celebration.expires_at > first_expiry


# ============================================================================
# Updates Stream Tests
# ============================================================================

@pytest.mark.asyncio
async def test_updates_yields_current_state_first(live_view, signed_in_user):
    async with live_view as view:
        await wait_until(lambda: view.profile is not None)
        updates = view.updates()

        state = await updates.__anext__()

        assert state.user_id == signed_in_user
        assert state.profile.level == 1
        assert state.xp_threshold == 150
        await updates.aclose()


@pytest.mark.asyncio
async def test_updates_follow_changes(live_view, habit_service, signed_in_user):
    async with live_view as view:
        await wait_until(lambda: view.profile is not None)
        updates = view.updates()
        await updates.__anext__()

        habit = await habit_service.create_habit(signed_in_user, "Read")

        state = await asyncio.wait_for(updates.__anext__(), timeout=1)
        while not state.habits:
            state = await asyncio.wait_for(updates.__anext__(), timeout=1)

        assert state.habits[0].id == habit.id
        assert state.habits[0].status is HabitStatus.NOT_ACTIVATED
        assert state.used_slots == 1
        assert state.can_add_habit is False
        await updates.aclose()


@pytest.mark.asyncio
async def test_updates_end_when_view_closes(live_view, signed_in_user):
    received = []

    async def consume(view):
        async for state in view.updates():
            received.append(state)

    async with live_view as view:
        consumer = asyncio.create_task(consume(view))
        await wait_until(lambda: len(received) >= 1)

    await asyncio.wait_for(consumer, timeout=1)
    assert consumer.done()


# ============================================================================
# Subscription Lifecycle Tests
# ============================================================================

@pytest.mark.asyncio
async def test_subscriptions_released_on_exit(live_view, profile_store, habit_store, signed_in_user):
    async with live_view:
        assert profile_store._hub.has_subscribers(signed_in_user)
        assert habit_store._hub.has_subscribers(signed_in_user)

    assert not profile_store._hub.has_subscribers(signed_in_user)
    assert not habit_store._hub.has_subscribers(signed_in_user)
    assert live_view.stale is True


@pytest.mark.asyncio
async def test_failed_open_releases_acquired_subscription(live_view, profile_store, habit_store, signed_in_user):
    """Test a failing habit subscription does not leak the profile subscription"""
    with patch.object(habit_store, "subscribe", AsyncMock(side_effect=ConnectionError())):
        with pytest.raises(ConnectionError):
            await live_view.open()

    assert not profile_store._hub.has_subscribers(signed_in_user)


@pytest.mark.asyncio
async def test_dropped_feed_marks_view_stale(live_view, profile_store, signed_in_user):
    async with live_view as view:
        await wait_until(lambda: view.profile is not None)
        assert view.stale is False

        profile_store._hub.end_all()
        await wait_until(lambda: view.stale)

        assert view.state().stale is True
