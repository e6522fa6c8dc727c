"""
Lightweight Redis caching layer shared by all search sessions.

Provides a thin wrapper around Redis GET/SET with JSON serialization and
configurable TTLs.  Result pages are cached for the freshness window of the
search executor and option lookups (regions, cities, types) for longer.
All operations are **fail-open**: if Redis is unavailable the caller simply
gets a cache miss and asks the remote daycare API instead.

Usage::

    from app.utils.cache import cache_get, cache_set

    value = cache_get("daycares:regions")
    if value is None:
        value = client.get_list("/api/daycares/regions")
        cache_set("daycares:regions", value, ttl=900)
"""

import json
import logging
import time
from typing import Any, Callable

import redis

logger = logging.getLogger(__name__)

#: Prefix applied to all cache keys to avoid collisions with other Redis users.
_KEY_PREFIX = "kinderbridge:cache:"

#: Seconds to wait before trying an unreachable Redis again.
_RETRY_AFTER = 30

#: Module-level Redis client – lazily initialised on first use.
_redis_client: redis.Redis | None = None
_last_failure: float | None = None


def _get_redis() -> redis.Redis | None:
    """Return a shared Redis client, or *None* if Redis is unreachable."""
    global _redis_client, _last_failure
    if _redis_client is not None:
        return _redis_client
    if _last_failure is not None and time.monotonic() - _last_failure < _RETRY_AFTER:
        return None
    try:
        from app.config import settings

        _redis_client = redis.from_url(settings.redis_url, socket_connect_timeout=2, decode_responses=True)
        # Quick connectivity check
        _redis_client.ping()
        _last_failure = None
        return _redis_client
    except Exception as exc:
        logger.debug(f"Redis cache unavailable: {exc}")
        _redis_client = None
        _last_failure = time.monotonic()
        return None


def cache_get(key: str) -> Any | None:
    """
    Retrieve a cached value by *key*.

    Returns the deserialised Python object, or ``None`` on cache miss or
    Redis error.
    """
    client = _get_redis()
    if client is None:
        return None
    try:
        raw = client.get(f"{_KEY_PREFIX}{key}")
        if raw is None:
            return None
        return json.loads(raw)
    except Exception as exc:
        logger.debug(f"Cache get failed for {key}: {exc}")
        return None


def cache_set(key: str, value: Any, ttl: int = 300) -> None:
    """
    Store *value* under *key* with a time-to-live of *ttl* seconds.

    Silently ignores errors so callers are never blocked by cache issues.
    """
    client = _get_redis()
    if client is None:
        return
    try:
        client.setex(f"{_KEY_PREFIX}{key}", ttl, json.dumps(value))
    except Exception as exc:
        logger.debug(f"Cache set failed for {key}: {exc}")


def cached(key: str, loader: Callable[[], Any], ttl: int = 300) -> Any:
    """
    Return the cached value for *key*, calling *loader* and caching its
    result on a miss.  Exceptions raised by *loader* propagate and nothing
    is cached.
    """
    value = cache_get(key)
    if value is not None:
        return value
    value = loader()
    cache_set(key, value, ttl=ttl)
    return value
