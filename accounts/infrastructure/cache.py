"""Redis-backed cache for paginated list responses."""

import json
from typing import Any, Optional, Protocol

import redis
import structlog

logger = structlog.get_logger(__name__)


class ListCache(Protocol):
    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        ...

    def delete_prefix(self, prefix: str) -> int:
        ...

    def close(self) -> None:
        ...


class RedisListCache:
    """JSON values in Redis; every failure is logged and treated as a miss."""

    def __init__(self, url: str, default_ttl: int = 3600, client: Optional[redis.Redis] = None):
        self.default_ttl = default_ttl
        self._client = client if client is not None else redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )

    def get(self, key: str) -> Optional[Any]:
        try:
            value = self._client.get(key)
        except redis.RedisError as e:
            logger.error("Redis GET failed", key=key, error=str(e))
            return None
        if value is None:
            return None
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Discarding undecodable cache entry", key=key)
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        try:
            return bool(self._client.setex(key, ttl or self.default_ttl, json.dumps(value)))
        except redis.RedisError as e:
            logger.error("Redis SET failed", key=key, error=str(e))
            return False

    def delete_prefix(self, prefix: str) -> int:
        # Raises on Redis errors; callers run this as a logged background task
        keys = list(self._client.scan_iter(match=f"{prefix}*", count=100))
        if not keys:
            return 0
        return self._client.delete(*keys)

    def close(self) -> None:
        try:
            self._client.close()
        except redis.RedisError as e:
            logger.error("Error disconnecting from Redis", error=str(e))


class NullListCache:
    """Used when no Redis URL is configured: nothing is ever cached."""

    def get(self, key: str) -> Optional[Any]:
        return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return False

    def delete_prefix(self, prefix: str) -> int:
        return 0

    def close(self) -> None:
        return None


def build_list_cache(url: str, default_ttl: int) -> ListCache:
    if not url:
        logger.info("REDIS_URL not set, list cache disabled")
        return NullListCache()
    return RedisListCache(url, default_ttl)
