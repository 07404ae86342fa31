"""
Service Layer Package

Business logic between the presentation layer (API routes, live view
websocket) and the profile/habit stores.

- HabitService: habit lifecycle, slot limit, XP awards
- LiveView: per-user projection of profile and habits with level-up celebration
- ServiceContainer: wires stores for the configured backend into the services
"""

from src.services.container import ServiceContainer, build_container, create_memory_container
from src.services.habit_service import HabitService
from src.services.live_view import LiveView, ViewState

__all__ = [
    "ServiceContainer",
    "build_container",
    "create_memory_container",
    "HabitService",
    "LiveView",
    "ViewState",
]
