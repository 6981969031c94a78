"""Redis cache for shortlink lookups.

Each shortlink has two independent, independently expiring entries keyed by
its numeric id. They are never written transactionally, so either one may
exist without the other::

    short:<id>       → original URL          (SETEX, remaining lifetime)
    expires_at:<id>  → expiry as Unix secs   (SETEX, finite expiries only)

Values are raw strings with no envelope so an existing cache population stays
readable.

Flow Diagram — Client Setup
===========================
::
    ┌─────────────────┐
    │ create_redis_   │
    │ client()        │
    └───────┬─────────┘
            ▼
    ┌─────────────────┐
    │ Blocking pool   │
    │ (per-operation  │
    │  checkout)      │
    └───────┬─────────┘
            ▼
    ┌─────────────────┐
    │ ShortlinkCache  │
    │ shared by every │
    │ request         │
    └─────────────────┘

Key Behaviours
===============
- One shared client; concurrency is bounded by REDIS_MAX_CONNECTIONS rather
  than a lock around a single connection.
- Every redis error is re-raised as CacheUnavailableError. Whether that is
  fatal is decided by the caller.

Classes:
    ShortlinkCache:  Typed operations over the key layout above.

Functions:
    create_redis_client():  Build the pooled redis.asyncio client.
    url_key() / expires_at_key():  Key builders.
"""

import datetime

import redis.asyncio as redis
from redis.exceptions import RedisError

from shortlink.config import Settings
from shortlink.errors import CacheUnavailableError
from shortlink.expiry import expiry_timestamp, remaining_ttl_seconds

__all__ = ["ShortlinkCache", "create_redis_client", "url_key", "expires_at_key"]

URL_KEY_PREFIX = "short"
EXPIRES_AT_KEY_PREFIX = "expires_at"


def url_key(shortlink_id: int) -> str:
    return f"{URL_KEY_PREFIX}:{shortlink_id}"


def expires_at_key(shortlink_id: int) -> str:
    return f"{EXPIRES_AT_KEY_PREFIX}:{shortlink_id}"


def create_redis_client(settings: Settings) -> redis.Redis:
    pool = redis.BlockingConnectionPool.from_url(
        settings.REDIS_URL,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        timeout=2,
        encoding="utf-8",
        decode_responses=True,
    )
    return redis.Redis(connection_pool=pool)


class ShortlinkCache:
    """Cache operations for shortlinks over a shared redis client."""

    def __init__(self, client: redis.Redis, forever_ttl_seconds: int):
        self._client = client
        self._forever_ttl = forever_ttl_seconds

    async def get_url(self, shortlink_id: int) -> str | None:
        try:
            return await self._client.get(url_key(shortlink_id))
        except RedisError as exc:
            raise CacheUnavailableError(f"GET {url_key(shortlink_id)} failed: {exc}") from exc

    async def get_expires_at(self, shortlink_id: int) -> int | None:
        try:
            value = await self._client.get(expires_at_key(shortlink_id))
        except RedisError as exc:
            raise CacheUnavailableError(f"GET {expires_at_key(shortlink_id)} failed: {exc}") from exc
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            # unreadable entry, treat as absent and let the store decide
            return None

    async def set_url(self, shortlink_id: int, original_url: str, ttl_seconds: int) -> None:
        try:
            await self._client.setex(url_key(shortlink_id), ttl_seconds, original_url)
        except RedisError as exc:
            raise CacheUnavailableError(f"SETEX {url_key(shortlink_id)} failed: {exc}") from exc

    async def set_expires_at(self, shortlink_id: int, timestamp: int) -> None:
        try:
            await self._client.setex(expires_at_key(shortlink_id), self._forever_ttl, timestamp)
        except RedisError as exc:
            raise CacheUnavailableError(f"SETEX {expires_at_key(shortlink_id)} failed: {exc}") from exc

    async def prime(
        self,
        shortlink_id: int,
        original_url: str,
        expires_at: datetime.datetime | None,
    ) -> None:
        """Write the URL entry and, for finite expiries, the expiry entry."""
        await self.set_url(
            shortlink_id,
            original_url,
            remaining_ttl_seconds(expires_at, self._forever_ttl),
        )
        timestamp = expiry_timestamp(expires_at)
        if timestamp is not None:
            await self.set_expires_at(shortlink_id, timestamp)

    async def evict(self, shortlink_id: int) -> None:
        try:
            await self._client.delete(url_key(shortlink_id), expires_at_key(shortlink_id))
        except RedisError as exc:
            raise CacheUnavailableError(f"DEL for shortlink {shortlink_id} failed: {exc}") from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as exc:
            raise CacheUnavailableError(f"PING failed: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()
