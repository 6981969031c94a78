"""Cache-aside read path: short code → original URL.

Flow Diagram — resolve()
========================
::
    ┌─────────────┐
    │  GET /:code │
    └──────┬──────┘
           ▼
    ┌─────────────┐  invalid
    │ decode_id() │──────────▶ InvalidCodeError (400)
    └──────┬──────┘
           ▼
    ┌─────────────┐  past    ┌──────────────┐
    │ GET         │────────▶ │ DEL both keys│──▶ ExpiredError (404)
    │ expires_at:id│         └──────────────┘
    └──────┬──────┘
           ▼
    ┌─────────────┐  HIT
    │ GET short:id│──────────────────────────────┐
    └──────┬──────┘                              │
    MISS / ERROR                                 │
           ▼                                     │
    ┌─────────────┐  absent  → NotFoundError     │
    │ store.get() │  expired → ExpiredError      │
    └──────┬──────┘                              │
           ▼                                     │
    ┌─────────────┐                              │
    │ repopulate  │ (genuine miss only,          │
    │ best effort │  failure ignored)            │
    └──────┬──────┘                              │
           ▼                                     ▼
    ┌──────────────────────────────────────────────┐
    │ enqueue AccessEvent (non-blocking) → 307      │
    └──────────────────────────────────────────────┘

Key Behaviours
===============
- A bad code never reaches the cache or the store.
- A cache failure on read degrades to a store lookup; a cache failure while
  repopulating is ignored; the store is always canonical.
- An unknown id is NotFoundError, a store failure is StoreUnavailableError (500).
- Concurrent resolutions of one code may race on repopulation; every writer
  writes the same store-derived value.
"""

import logging
import time

from prometheus_client import Counter, Histogram

from shortlink.cache import ShortlinkCache
from shortlink.codec import decode_id
from shortlink.enums import CacheStatus, RequestStatus
from shortlink.errors import CacheUnavailableError, ExpiredError, InternalError, InvalidCodeError, NotFoundError
from shortlink.expiry import is_expired, utcnow
from shortlink.models import Shortlink
from shortlink.recorder import AccessRecorder
from shortlink.schemas import AccessEvent
from shortlink.store import ShortlinkStore

__all__ = ["ShortlinkResolver", "first_forwarded_ip"]

RESOLUTIONS_TOTAL = Counter(
    "shortlink_resolutions_total",
    "Short code resolutions",
    ["status", "cache"],
)
RESOLUTION_DURATION = Histogram(
    "shortlink_resolution_duration_seconds",
    "Time taken to resolve a short code",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)


def first_forwarded_ip(forwarded_for: str | None) -> str | None:
    """First entry of a comma-separated X-Forwarded-For value, if any."""
    if not forwarded_for:
        return None
    first = forwarded_for.split(",")[0].strip()
    return first or None


class ShortlinkResolver:
    def __init__(
        self,
        cache: ShortlinkCache,
        store: ShortlinkStore,
        recorder: AccessRecorder,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self._cache = cache
        self._store = store
        self._recorder = recorder
        self._logger = logger or logging.getLogger(__name__)

    async def resolve(
        self,
        short_code: str,
        forwarded_for: str | None = None,
        user_agent: str | None = None,
        client_host: str | None = None,
    ) -> str:
        """Resolve a short code and queue an access event for it.

        Args:
            short_code: Public code from the request path.
            forwarded_for: Raw X-Forwarded-For header, untrusted.
            user_agent: Raw User-Agent header.
            client_host: Socket peer address, used when no forwarded IP is present.

        Returns:
            str: The original URL to redirect to.

        Raises:
            InvalidCodeError: The code is not a valid Base58 short code.
            NotFoundError: No shortlink has this id.
            ExpiredError: The shortlink exists but has expired.
            StoreUnavailableError: The store could not be queried.
        """
        start_time = time.perf_counter()
        cache_status = CacheStatus.SKIPPED
        try:
            shortlink_id = decode_id(short_code)

            if await self._cached_expiry_passed(shortlink_id):
                await self._evict(shortlink_id)
                raise ExpiredError(f"Shortlink {short_code} expired")

            original_url, cache_status = await self._lookup(shortlink_id, short_code)
        except InvalidCodeError:
            self._observe(RequestStatus.VALIDATION_ERROR, cache_status, start_time)
            raise
        except ExpiredError:
            self._observe(RequestStatus.EXPIRED, cache_status, start_time)
            raise
        except NotFoundError:
            self._observe(RequestStatus.NOT_FOUND, cache_status, start_time)
            raise
        except InternalError as exc:
            self._observe(RequestStatus.ERROR, cache_status, start_time)
            self._logger.error(f"Resolution of {short_code} failed: {exc}")
            raise

        self._record_access(shortlink_id, forwarded_for, user_agent, client_host)
        self._observe(RequestStatus.SUCCESS, cache_status, start_time)
        return original_url

    async def _cached_expiry_passed(self, shortlink_id: int) -> bool:
        try:
            timestamp = await self._cache.get_expires_at(shortlink_id)
        except CacheUnavailableError as exc:
            self._logger.warning(f"Expiry lookup failed for {shortlink_id}, continuing: {exc}")
            return False
        # 0 is the legacy never-expires value
        if timestamp is None or timestamp == 0:
            return False
        return timestamp < utcnow().timestamp()

    async def _lookup(self, shortlink_id: int, short_code: str) -> tuple[str, CacheStatus]:
        cache_failed = False
        try:
            cached_url = await self._cache.get_url(shortlink_id)
        except CacheUnavailableError as exc:
            self._logger.warning(f"Cache read failed for {shortlink_id}, falling back to store: {exc}")
            cached_url = None
            cache_failed = True

        if cached_url is not None:
            self._logger.debug(f"Cache hit for {short_code}")
            return cached_url, CacheStatus.HIT

        cache_status = CacheStatus.ERROR if cache_failed else CacheStatus.MISS
        shortlink = await self._store.get(shortlink_id)
        if shortlink is None:
            raise NotFoundError(f"Shortlink {short_code} not found")
        if is_expired(shortlink.expires_at):
            raise ExpiredError(f"Shortlink {short_code} expired")

        # only repopulate after a genuine miss; a failing cache is left alone
        if not cache_failed and not await self._repopulate(shortlink):
            self._logger.warning(f"Cache repopulation skipped for {short_code}")

        return shortlink.original_url, cache_status

    async def _repopulate(self, shortlink: Shortlink) -> bool:
        try:
            await self._cache.prime(shortlink.id, shortlink.original_url, shortlink.expires_at)
        except CacheUnavailableError as exc:
            self._logger.debug(f"Cache repopulation failed for {shortlink.id}: {exc}")
            return False
        return True

    async def _evict(self, shortlink_id: int) -> None:
        try:
            await self._cache.evict(shortlink_id)
        except CacheUnavailableError as exc:
            self._logger.warning(f"Eviction failed for expired shortlink {shortlink_id}: {exc}")

    def _record_access(
        self,
        shortlink_id: int,
        forwarded_for: str | None,
        user_agent: str | None,
        client_host: str | None,
    ) -> None:
        event = AccessEvent(
            shortlink_id=shortlink_id,
            ip_address=first_forwarded_ip(forwarded_for) or client_host,
            user_agent=user_agent or None,
        )
        if not self._recorder.enqueue(event):
            self._logger.error(f"Access event for shortlink {shortlink_id} was not queued")

    def _observe(self, status: RequestStatus, cache_status: CacheStatus, start_time: float) -> None:
        RESOLUTION_DURATION.observe(time.perf_counter() - start_time)
        RESOLUTIONS_TOTAL.labels(status=status, cache=cache_status).inc()
