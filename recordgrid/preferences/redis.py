"""Redis key-value store.

Shares preferences between processes and machines.
Requires the `redis` package: pip install redis
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..exceptions import PreferenceError
from .base import KeyValueStore


if TYPE_CHECKING:
    from redis import Redis


# Check for redis package
try:
    from redis import Redis as RedisClient
    from redis.exceptions import RedisError

    HAS_REDIS = True
except ImportError:
    HAS_REDIS = False
    RedisClient = None  # type: ignore[assignment,misc]
    RedisError = OSError  # type: ignore[assignment,misc]


def _check_redis() -> None:
    """Check if redis package is available."""
    if not HAS_REDIS:
        msg = "Redis backend requires the 'redis' package. Install with: pip install redis"
        raise ImportError(msg)


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed key-value store.

    Values are plain Redis strings under the namespaced key; no expiry.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        *,
        redis_client: Redis | None = None,
    ) -> None:
        """Initialize the Redis store.

        Parameters
        ----------
        redis_url : str
            Redis connection URL.
        redis_client : Redis, optional
            Pre-configured Redis client (for testing with fakeredis).
        """
        if redis_client is None:
            _check_redis()
        self._redis_url = redis_url
        self._client = redis_client

    def _redis(self) -> Any:
        """Get the Redis client, connecting lazily."""
        if self._client is None:
            self._client = RedisClient.from_url(self._redis_url, decode_responses=True)
        return self._client

    def get(self, key: str) -> str | None:
        """Read a value."""
        try:
            value = self._redis().get(key)
        except RedisError as exc:
            raise PreferenceError("Redis read failed", operation="load", key=key) from exc
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        """Write a value."""
        try:
            self._redis().set(key, value)
        except RedisError as exc:
            raise PreferenceError("Redis write failed", operation="save", key=key) from exc

    def remove(self, key: str) -> None:
        """Remove a key if present."""
        try:
            self._redis().delete(key)
        except RedisError as exc:
            raise PreferenceError("Redis delete failed", operation="clear", key=key) from exc

    def keys(self) -> list[str]:
        """List stored keys."""
        try:
            keys = self._redis().keys("*")
        except RedisError as exc:
            raise PreferenceError("Redis key scan failed", operation="load") from exc
        return [k.decode("utf-8") if isinstance(k, bytes) else k for k in keys]
