"""Shared API key check for the REST and live-view endpoints"""
import os
import logging
from typing import Optional
from fastapi import HTTPException, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer()


def get_api_keys() -> list[str]:
    """Comma separated keys from API_KEYS, blanks dropped"""
    raw = os.getenv("API_KEYS", "")
    keys = [key.strip() for key in raw.split(",") if key.strip()]
    if not keys:
        logger.warning("API_KEYS is empty, every client will be refused")
    return keys


def is_valid_api_key(api_key: Optional[str]) -> bool:
    """Key check for callers that cannot send headers (WebSocket query string)"""
    return bool(api_key) and api_key in get_api_keys()


def _masked(api_key: str) -> str:
    return f"{api_key[:6]}***"


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials = Security(bearer_scheme)
) -> str:
    """
    FastAPI dependency guarding every user-scoped route

    Responds 503 while no keys are configured and 401 for an unknown key;
    otherwise hands the key back to the route.
    """
    presented = credentials.credentials
    accepted = get_api_keys()

    if not accepted:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="API keys are not configured on this server"
        )

    if presented not in accepted:
        logger.warning(f"Rejected request with unknown API key {_masked(presented)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key"
        )

    return presented
