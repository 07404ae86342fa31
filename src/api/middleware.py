"""API middleware for rate limiting, CORS and request metrics"""
import logging
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware

from src.config import CORS_ORIGINS
from src.monitoring.prometheus_metrics import track_request

logger = logging.getLogger(__name__)

# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)


def setup_cors(app):
    """Configure CORS middleware"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    logger.info(f"CORS configured for origins: {CORS_ORIGINS}")


def setup_rate_limiting(app):
    """Configure rate limiting"""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    logger.info("Rate limiting configured")


def setup_request_metrics(app):
    """Count requests and their latency per route template"""

    @app.middleware("http")
    async def record_request_metrics(request: Request, call_next):
        with track_request(request.method, "unmatched") as tracker:
            response = await call_next(request)
            # Route is only resolved once the router has run
            route = request.scope.get("route")
            tracker.endpoint = getattr(route, "path", tracker.endpoint)
            tracker.status = response.status_code
        return response
