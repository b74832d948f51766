# swim_makeup/api/deps.py
import logging
from typing import Generator

from fastapi import HTTPException, status, Security
from fastapi.security import APIKeyHeader
from slowapi import Limiter
from slowapi.util import get_remote_address

from swim_makeup.core.config import settings
from swim_makeup.db.session import SessionLocal
from swim_makeup.utils.makeup_notifications import Notifier, default_notifier

logger = logging.getLogger(__name__)


def get_db() -> Generator:
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_notifier() -> Notifier:
    """Dependency for the notification sink (overridden in tests)."""
    return default_notifier


# Shared rate limiter for the public parent-facing endpoints
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)


# Define the header we expect the key to be in
api_key_header = APIKeyHeader(name="X-Internal-Api-Key", auto_error=False)


def get_internal_api_key(api_key: str = Security(api_key_header)) -> str:
    """
    Checks for and validates the admin API key from the request header.
    """
    if not settings.INTERNAL_API_KEY:
        logger.error("INTERNAL_API_KEY is not configured; refusing admin request")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API is not configured",
        )
    if api_key == settings.INTERNAL_API_KEY:
        return api_key
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing Internal API Key",
    )
