#!/usr/bin/env python3

"""
Rate Limiting for the KinderBridge search API.

Every search keystroke that survives the debounce ends up as a request to the
remote daycare API, so the JSON search endpoints are throttled per visitor.
Uses SlowAPI with a Redis backend for distributed rate limiting.

Key features:
- Per-IP rate limiting for guests
- Per-user rate limiting for signed-in parents
- Redis-backed for distributed deployments
- Fallback to in-memory for development
"""

import logging
from typing import Callable

from fastapi import Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address

from app.config import settings

logger = logging.getLogger(__name__)


def get_identifier(request: Request) -> str:
    """
    Get unique identifier for rate limiting.

    Uses the signed-in user's name if available, otherwise falls back to the
    client IP address.

    Args:
        request: FastAPI request object

    Returns:
        Unique identifier string for rate limiting
    """
    # Check if user is authenticated (from session)
    if "session" in request.scope and request.session.get("user"):
        user = request.session.get("user")
        if isinstance(user, dict):
            identifier = user.get("preferred_username") or user.get("email") or user.get("id")
            if identifier:
                logger.debug(f"Rate limiting by user: {identifier}")
                return f"user:{identifier}"

    # Fall back to IP address for guests
    ip = get_remote_address(request)
    logger.debug(f"Rate limiting by IP: {ip}")
    return ip


def create_limiter(redis_url: str = None, enabled: bool = True) -> Limiter:
    """
    Create and configure the rate limiter.

    Args:
        redis_url: Redis connection URL for distributed rate limiting
        enabled: Whether rate limiting is enabled (default: True)

    Returns:
        Configured Limiter instance
    """
    if not enabled:
        logger.info("Rate limiting is disabled")
        return Limiter(key_func=get_identifier, enabled=False)

    # Use Redis if available, otherwise fall back to in-memory
    storage_uri = redis_url if redis_url else "memory://"

    if redis_url:
        logger.info("Rate limiting enabled with Redis backend")
    else:
        logger.warning(
            "Rate limiting using in-memory storage (not suitable for production with multiple workers). "
            "Configure REDIS_URL for distributed rate limiting."
        )

    return Limiter(
        key_func=get_identifier,
        storage_uri=storage_uri,
        strategy="fixed-window",
        enabled=True,
    )


def get_rate_limit_exceeded_handler() -> Callable:
    """
    Get the rate limit exceeded exception handler.

    Returns:
        Exception handler producing 429 responses
    """
    return _rate_limit_exceeded_handler


#: Shared limiter used by the route decorators and registered on ``app.state``.
limiter = create_limiter(settings.redis_url, enabled=settings.rate_limit_enabled)
