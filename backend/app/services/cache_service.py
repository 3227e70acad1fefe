"""
Redis cache gateway.

Best effort: a cache failure is logged and treated as a miss, it never fails
the request that triggered it. Values are stored as JSON.
"""

import json
import logging
from typing import Any, Optional

import redis

from app.config import settings

logger = logging.getLogger(__name__)

_client: Optional[redis.Redis] = None


def _get_client() -> Optional[redis.Redis]:
    """Lazily builds the Redis client (the connection itself opens on first command)."""
    global _client
    if not settings.CACHE_ENABLED:
        return None
    if _client is None:
        try:
            _client = redis.Redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_timeout=1,
                socket_connect_timeout=1,
            )
        except (redis.RedisError, ValueError) as exc:
            logger.warning("Redis cache unavailable: %s", exc)
            return None
    return _client


def get(key: str) -> Optional[Any]:
    """Returns the cached value, or None on miss or error."""
    client = _get_client()
    if client is None:
        return None
    try:
        raw = client.get(key)
    except redis.RedisError as exc:
        logger.warning("Cache get failed for %s: %s", key, exc)
        return None
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Cache entry %s is not valid JSON, ignoring it", key)
        return None


def set(key: str, value: Any, ttl: int) -> bool:
    client = _get_client()
    if client is None:
        return False
    try:
        client.setex(key, ttl, json.dumps(value, default=str))
        return True
    except (redis.RedisError, TypeError) as exc:
        logger.warning("Cache set failed for %s: %s", key, exc)
        return False


def delete(key: str) -> bool:
    client = _get_client()
    if client is None:
        return False
    try:
        client.delete(key)
        return True
    except redis.RedisError as exc:
        logger.warning("Cache delete failed for %s: %s", key, exc)
        return False


def visit_key(visit_id) -> str:
    return f"visit:{visit_id}"


def company_key(company_id) -> str:
    return f"company:{company_id}"
