import logging
import math
import os
from typing import Optional

from fastapi import Header, Request

from api import state
from api.backend import TaskService
from api.errors import AuthenticationError, AppError, RateLimitError

logger = logging.getLogger(__name__)


def get_task_service() -> TaskService:
    return state.task_service


def require_api_key(
    x_api_key: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
) -> None:
    """Accepts the key as X-API-Key or as an Authorization bearer token."""
    api_key = x_api_key
    if not api_key and authorization:
        api_key = authorization.removeprefix("Bearer ").strip()

    if not api_key:
        raise AuthenticationError("API key is required. Please provide X-API-Key header.")

    # read per request
    valid_api_key = os.getenv("API_KEY", "")
    if not valid_api_key:
        logger.error("Server configuration error: API_KEY not set in environment")
        raise AppError("Server configuration error")

    if api_key != valid_api_key:
        raise AuthenticationError("Invalid API key")


def enforce_rate_limit(request: Request) -> None:
    """Per-IP request budget for the /api routes."""
    limiter = state.rate_limiter
    if limiter is None:
        return

    client_ip = request.client.host if request.client else "unknown"
    result = limiter.check(client_ip)
    if not result.allowed:
        logger.warning(f"Rate limit exceeded: ip={client_ip} {request.method} {request.url.path}")
        raise RateLimitError(
            "Too many requests. Please try again later.",
            retry_after=math.ceil(result.retry_after),
        )
