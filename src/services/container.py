"""
Service Container - Dependency Injection Container

Owns the profile/habit stores for the configured backend and hands out the
services built on them. Services are lazy-loaded on first access.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from src.config import STORE_BACKEND, LEVEL_UP_CELEBRATION_SECONDS

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Infrastructure dependencies (stores, database, change listener) are
    injected; services are lazy-loaded via properties.
    """

    # Infrastructure dependencies (injected)
    profile_store: object
    habit_store: object
    db: Optional[object] = None  # Database instance (postgres backend only)
    listener: Optional[object] = None  # ChangeListener (postgres backend only)
    celebration_seconds: float = LEVEL_UP_CELEBRATION_SECONDS

    # Services (lazy-loaded via properties)
    _habit_service: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def habit_service(self):
        """Get HabitService instance (lazy-loaded)"""
        if self._habit_service is None:
            from src.services.habit_service import HabitService
            self._habit_service = HabitService(self.profile_store, self.habit_store)
            logger.debug("HabitService instantiated")
        return self._habit_service

    def live_view(self, user_id: str):
        """New (unopened) LiveView for a user; use it with `async with`"""
        from src.services.live_view import LiveView
        return LiveView(
            user_id,
            self.profile_store,
            self.habit_store,
            celebration_seconds=self.celebration_seconds,
        )

    async def close(self) -> None:
        """Release infrastructure owned by the container"""
        if self.listener is not None:
            await self.listener.stop()
        if self.db is not None:
            await self.db.close_pool()


def create_memory_container(**kwargs) -> ServiceContainer:
    """Container over fresh in-memory stores"""
    from src.db.memory_store import InMemoryHabitStore, InMemoryProfileStore

    return ServiceContainer(
        profile_store=InMemoryProfileStore(),
        habit_store=InMemoryHabitStore(),
        **kwargs
    )


async def create_postgres_container(database=None, **kwargs) -> ServiceContainer:
    """Open the pool, create the schema and start the change listener"""
    from src.db.connection import db as default_db
    from src.db.habit_store import PostgresHabitStore
    from src.db.listener import ChangeListener
    from src.db.profile_store import PostgresProfileStore
    from src.db.schema import init_schema

    database = database or default_db
    await database.init_pool()
    await init_schema(database)

    listener = ChangeListener(database.connection_string)
    container = ServiceContainer(
        profile_store=PostgresProfileStore(database, listener),
        habit_store=PostgresHabitStore(database, listener),
        db=database,
        listener=listener,
        **kwargs
    )
    await listener.start()
    return container


async def build_container(backend: str = STORE_BACKEND) -> ServiceContainer:
    """Build the container for the configured store backend"""
    if backend == "memory":
        logger.warning("Using in-memory stores - data is NOT persisted")
        container = create_memory_container()
    else:
        container = await create_postgres_container()
    logger.info(f"Service container initialized ({backend} backend)")
    return container
