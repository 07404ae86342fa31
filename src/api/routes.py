"""API routes for habit quest"""
import asyncio
import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from src.api.models import (
    SignInRequest, ProfileResponse,
    HabitCreateRequest, HabitListResponse, HabitRefusedResponse,
    StreakResponse, HealthCheckResponse,
)
from src.api.auth import verify_api_key, is_valid_api_key
from src.api.middleware import limiter
from src.exceptions import DatabaseError
from src.gamification.xp_system import get_level_info
from src.models.habit import Habit, HabitFilter, filter_habits
from src.monitoring.sentry_config import set_user_context
from src.services.container import ServiceContainer
from src.services.habit_service import HabitService
from src.services.live_view import LiveView

logger = logging.getLogger(__name__)

router = APIRouter()

REFUSAL_DETAILS = {
    "empty_name": "Habit name must not be empty",
    "profile_missing": "User has no profile; sign in first",
    "no_free_slot": "All habit slots are in use; activate a habit or level up first",
}


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_habit_service(request: Request) -> HabitService:
    return get_container(request).habit_service


def _store_unavailable(operation: str, e: DatabaseError) -> HTTPException:
    logger.error(f"Store failure during {operation}: {e}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=e.user_message
    )


def _habit_not_found(habit_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Habit {habit_id} not found"
    )


@router.post("/api/v1/users", response_model=ProfileResponse)
@limiter.limit("20/minute")
async def sign_in(
    request: Request,
    payload: SignInRequest,
    api_key: str = Depends(verify_api_key)
):
    """
    Sign-in hook for the identity provider

    Creates the profile (level 1, 0 XP) on first sign-in; later sign-ins keep
    the existing progress. (Rate limit: 20/minute)
    """
    container = get_container(request)
    set_user_context(payload.user_id)
    try:
        profile = await container.profile_store.ensure(payload.user_id, payload.display_name)
    except DatabaseError as e:
        raise _store_unavailable("sign_in", e)

    logger.info(f"User signed in: {payload.user_id}")
    return ProfileResponse(display_name=profile.display_name, **get_level_info(profile))


@router.get("/api/v1/users/{user_id}/profile", response_model=ProfileResponse)
@limiter.limit("60/minute")
async def get_profile(
    request: Request,
    user_id: str,
    api_key: str = Depends(verify_api_key)
):
    """Get user level and XP progress (Rate limit: 60/minute)"""
    container = get_container(request)
    try:
        profile = await container.profile_store.get(user_id)
    except DatabaseError as e:
        raise _store_unavailable("get_profile", e)

    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found"
        )

    return ProfileResponse(display_name=profile.display_name, **get_level_info(profile))


@router.get("/api/v1/users/{user_id}/habits", response_model=HabitListResponse)
@limiter.limit("60/minute")
async def list_habits(
    request: Request,
    user_id: str,
    status_filter: HabitFilter = Query(HabitFilter.ALL, alias="status"),
    api_key: str = Depends(verify_api_key),
    service: HabitService = Depends(get_habit_service),
):
    """
    List habits, optionally filtered by status category (Rate limit: 60/minute)

    Query: ?status=all|activated|in-progress|not-activated
    """
    try:
        habits = await service.habits.list_by_owner(user_id)
        usage = await service.slot_usage(user_id)
    except DatabaseError as e:
        raise _store_unavailable("list_habits", e)

    return HabitListResponse(
        user_id=user_id,
        status=status_filter,
        habits=filter_habits(habits, status_filter),
        **usage
    )


@router.post(
    "/api/v1/users/{user_id}/habits",
    response_model=Habit,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": HabitRefusedResponse}},
)
@limiter.limit("30/minute")
async def create_habit(
    request: Request,
    user_id: str,
    payload: HabitCreateRequest,
    api_key: str = Depends(verify_api_key),
    service: HabitService = Depends(get_habit_service),
):
    """Create a habit if a slot is free (Rate limit: 30/minute)"""
    try:
        habit, reason = await service.try_create_habit(user_id, payload.name)
    except DatabaseError as e:
        raise _store_unavailable("create_habit", e)

    if habit is None:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=HabitRefusedResponse(reason=reason, detail=REFUSAL_DETAILS[reason]).model_dump()
        )

    return habit


@router.post("/api/v1/users/{user_id}/habits/{habit_id}/increment", response_model=StreakResponse)
@limiter.limit("60/minute")
async def increment_streak(
    request: Request,
    user_id: str,
    habit_id: str,
    api_key: str = Depends(verify_api_key),
    service: HabitService = Depends(get_habit_service),
):
    """Add a day to the streak and award XP (Rate limit: 60/minute)"""
    try:
        if await service.get_habit(habit_id, owner_id=user_id) is None:
            raise _habit_not_found(habit_id)
        result = await service.increment_streak(habit_id)
    except DatabaseError as e:
        raise _store_unavailable("increment_streak", e)

    if result is None:
        raise _habit_not_found(habit_id)

    return StreakResponse(**result)


@router.post("/api/v1/users/{user_id}/habits/{habit_id}/reset", response_model=Habit)
@limiter.limit("60/minute")
async def reset_streak(
    request: Request,
    user_id: str,
    habit_id: str,
    api_key: str = Depends(verify_api_key),
    service: HabitService = Depends(get_habit_service),
):
    """Reset the streak to 0 (Rate limit: 60/minute)"""
    try:
        if await service.get_habit(habit_id, owner_id=user_id) is None:
            raise _habit_not_found(habit_id)
        habit = await service.reset_streak(habit_id)
    except DatabaseError as e:
        raise _store_unavailable("reset_streak", e)

    if habit is None:
        raise _habit_not_found(habit_id)

    return habit


@router.delete("/api/v1/users/{user_id}/habits/{habit_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
async def delete_habit(
    request: Request,
    user_id: str,
    habit_id: str,
    api_key: str = Depends(verify_api_key),
    service: HabitService = Depends(get_habit_service),
):
    """Delete a habit; deleting a missing habit is not an error (Rate limit: 30/minute)"""
    try:
        if await service.get_habit(habit_id, owner_id=user_id) is not None:
            await service.delete_habit(habit_id)
    except DatabaseError as e:
        raise _store_unavailable("delete_habit", e)

    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def _stream_view(websocket: WebSocket, view: LiveView) -> None:
    async for state in view.updates():
        await websocket.send_json(state.model_dump(mode="json"))


@router.websocket("/api/v1/users/{user_id}/live")
async def live_view(websocket: WebSocket, user_id: str, api_key: str = ""):
    """
    Live view stream

    Sends the current view state as JSON on connect and again after every
    change to the user's habits or profile. Authenticate with ?api_key=...
    Messages sent by the client are ignored.
    """
    if not is_valid_api_key(api_key):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    container: ServiceContainer = websocket.app.state.container
    await websocket.accept()
    try:
        async with container.live_view(user_id) as view:
            sender = asyncio.create_task(_stream_view(websocket, view))
            try:
                while True:
                    await websocket.receive_text()
            finally:
                sender.cancel()
                await asyncio.gather(sender, return_exceptions=True)
    except WebSocketDisconnect:
        logger.debug(f"Live view client disconnected: {user_id}")
    except DatabaseError as e:
        logger.error(f"Live view for {user_id} failed: {e}")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)


@router.get("/api/health", response_model=HealthCheckResponse)
@limiter.limit("60/minute")
async def health_check(request: Request):
    """Health check endpoint (Rate limit: 60/minute for monitoring systems)"""
    container = get_container(request)
    if container.db is None:
        store_status = "memory"
    else:
        try:
            async with container.db.connection() as conn:
                await conn.execute("SELECT 1")
            store_status = "connected"
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            store_status = "disconnected"

    return HealthCheckResponse(
        status="degraded" if store_status == "disconnected" else "healthy",
        store=store_status,
        timestamp=datetime.now()
    )


@router.get("/metrics")
async def prometheus_metrics():
    """Prometheus scrape endpoint"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
