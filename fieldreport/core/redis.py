"""Connection for the unread-badge cache.

The cache is optional: when Redis cannot be reached, callers get ``None`` and
count from the database. A failed connect is not retried until
``REDIS_RETRY_SECONDS`` have passed, so an outage costs one timeout per
window instead of one per request.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import redis
from redis import Redis

from fieldreport.core.config import settings

logger = logging.getLogger("fieldreport.redis")

_client: Optional[Redis] = None
_retry_after: float = 0.0


def _connect() -> Redis:
    client = redis.Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=settings.REDIS_TIMEOUT_SECONDS,
        socket_timeout=settings.REDIS_TIMEOUT_SECONDS,
    )
    client.ping()
    return client


def get_redis() -> Optional[Redis]:
    """Shared badge-cache client, or None while Redis is unreachable."""
    global _client, _retry_after
    if _client is not None:
        return _client

    now = time.monotonic()
    if now < _retry_after:
        return None

    try:
        _client = _connect()
    except redis.RedisError as exc:
        _retry_after = now + settings.REDIS_RETRY_SECONDS
        logger.warning("Redis unavailable, badge counts read from the database for %ss: %s",
                       settings.REDIS_RETRY_SECONDS, exc)
        return None
    logger.info("Badge cache connected at %s", settings.REDIS_URL)
    return _client


def drop_redis() -> None:
    """Forget the client after a failed command so the next call reconnects."""
    global _client, _retry_after
    _client = None
    _retry_after = time.monotonic() + settings.REDIS_RETRY_SECONDS
