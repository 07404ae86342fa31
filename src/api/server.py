"""FastAPI application setup"""
import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.api.routes import router
from src.api.middleware import setup_cors, setup_rate_limiting, setup_request_metrics
from src.config import LOG_LEVEL
from src.exceptions import HabitQuestError
from src.monitoring.sentry_config import init_sentry, capture_exception
from src.services.container import ServiceContainer, build_container

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL)
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application"""
    # Startup
    logger.info("Starting API server...")
    owns_container = getattr(app.state, "container", None) is None
    if owns_container:
        app.state.container = await build_container()

    yield

    # Shutdown
    logger.info("Shutting down API server...")
    if owns_container:
        await app.state.container.close()
        app.state.container = None
        logger.info("Service container closed")


def create_api_application(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Create and configure FastAPI application

    Args:
        container: Pre-built service container. When omitted the container
            for the configured STORE_BACKEND is built on startup and closed
            on shutdown.
    """
    init_sentry()

    app = FastAPI(
        title="Habit Quest API",
        description="REST API for habit streaks, XP and levels",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.container = container

    # Setup middleware
    setup_cors(app)
    setup_rate_limiting(app)
    setup_request_metrics(app)

    # Include routes
    app.include_router(router)

    @app.exception_handler(HabitQuestError)
    async def habit_quest_exception_handler(request: Request, exc: HabitQuestError):
        # Already logged when raised
        return JSONResponse(status_code=500, content=exc.to_dict())

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        capture_exception(exc, path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(exc)}
        )

    logger.info("FastAPI application created")

    return app


app = create_api_application()
