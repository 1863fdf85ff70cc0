"""
Widget Cache

Redis-backed memoization for the dashboard widgets that are expensive to
compute. Values are stored as JSON under a TTL; nothing invalidates an
entry early, it simply expires.
"""

import json
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional, Union

import structlog
from redis.asyncio import Redis

from marketplace_dashboard.config import get_settings

logger = structlog.get_logger(__name__)

Ttl = Union[int, timedelta]

_client: Optional[Redis] = None


async def init_redis() -> Redis:
    """Open the shared client and check that the server answers."""
    global _client

    if _client is not None:
        return _client

    settings = get_settings().redis
    client = Redis.from_url(
        settings.get_url(),
        max_connections=settings.max_connections,
        socket_timeout=settings.socket_timeout,
        decode_responses=True,
    )

    try:
        await client.ping()
    except Exception as e:
        logger.error("Redis connection failed", error=str(e))
        await client.aclose()
        raise

    _client = client
    logger.info("Redis connection established", db=settings.db)
    return client


async def close_redis() -> None:
    global _client

    if _client is None:
        return

    await _client.aclose()
    _client = None
    logger.info("Redis connection closed")


def get_redis() -> Redis:
    if _client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _client


async def cache_get(key: str, client: Optional[Redis] = None) -> Optional[Any]:
    """Decoded value stored under `key`; None when absent or unreadable"""
    raw = await (client or get_redis()).get(key)
    if raw is None:
        return None

    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Discarding undecodable cache entry", key=key)
        return None


async def cache_set(
    key: str,
    value: Any,
    ttl: Optional[Ttl] = None,
    client: Optional[Redis] = None,
) -> bool:
    """
    Store `value` as JSON.

    Values JSON cannot represent natively (Decimal, dates) are stored as
    strings. Returns False when the value cannot be serialized at all.
    """
    try:
        payload = json.dumps(value, default=str)
    except (TypeError, ValueError) as e:
        logger.warning("Value not cacheable", key=key, error=str(e))
        return False

    if isinstance(ttl, timedelta):
        ttl = int(ttl.total_seconds())

    return bool(await (client or get_redis()).set(key, payload, ex=ttl or None))


class CacheManager:
    """
    Namespaced get-or-compute cache.

    Example:
        cache = CacheManager("dashboard", default_ttl=300)
        widget = await cache.get_or_set("order_status:all:2025-06-09:2025-06-15", compute)
    """

    def __init__(self, namespace: str, default_ttl: int = 300, client: Optional[Redis] = None):
        self.namespace = namespace
        self.default_ttl = default_ttl
        self._client = client

    @property
    def client(self) -> Redis:
        return self._client or get_redis()

    def key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        return await cache_get(self.key(key), client=self.client)

    async def set(self, key: str, value: Any, ttl: Optional[Ttl] = None) -> bool:
        return await cache_set(self.key(key), value, ttl or self.default_ttl, client=self.client)

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: Optional[Ttl] = None,
    ) -> Any:
        """
        Cached value for `key`, computed by `factory` and stored on a miss.

        Concurrent misses may both compute; the last write wins.
        """
        cached = await self.get(key)
        if cached is not None:
            logger.debug("Cache hit", key=self.key(key))
            return cached

        logger.debug("Cache miss", key=self.key(key))
        value = await factory()
        await self.set(key, value, ttl)
        return value
