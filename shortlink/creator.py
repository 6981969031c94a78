"""Write path: deduplicate, persist and cache new shortlinks.

Flow Diagram — create()
=======================
::
    ┌──────────────────┐  bad scheme / past expiry
    │ validate input   │──────────────────────────▶ InvalidRequestError (400)
    └────────┬─────────┘
             ▼
    ┌──────────────────┐  found & still valid
    │ find_id_by_url() │──▶ get(id) ─────────────▶ existing mapping (no insert)
    └────────┬─────────┘
      none / expired
             ▼
    ┌──────────────────┐
    │ insert()         │  store assigns the id
    └────────┬─────────┘
             ▼
    ┌──────────────────┐
    │ encode_id(id)    │
    └────────┬─────────┘
             ▼
    ┌──────────────────┐  failure
    │ prime cache      │──────────▶ CacheUnavailableError (500)
    └────────┬─────────┘
             ▼
      ShortlinkResponse

Key Behaviours
===============
- Dedupe is best-effort: two concurrent creations of the same URL may both
  insert.
- An expired mapping is never reused; a new row and a new code are issued.
- Unlike the resolver, a cache failure here is surfaced, so a successful
  response means the code is resolvable from the cache right away.
"""

import datetime
import logging
import time

import validators
from prometheus_client import Counter, Histogram

from shortlink.cache import ShortlinkCache
from shortlink.codec import encode_id
from shortlink.enums import RequestStatus
from shortlink.errors import InternalError, InvalidRequestError
from shortlink.expiry import is_expired, normalize_expiry, utcnow
from shortlink.models import Shortlink
from shortlink.schemas import ShortlinkResponse
from shortlink.store import ShortlinkStore

__all__ = ["ShortlinkCreator", "ALLOWED_SCHEMES"]

ALLOWED_SCHEMES = ("http://", "https://")

CREATIONS_TOTAL = Counter(
    "shortlink_creations_total",
    "Shortlink creation requests",
    ["status"],
)
CREATION_DURATION = Histogram(
    "shortlink_creation_duration_seconds",
    "Time taken to create a shortlink",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)


class ShortlinkCreator:
    def __init__(
        self,
        cache: ShortlinkCache,
        store: ShortlinkStore,
        base_url: str,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self._cache = cache
        self._store = store
        self._base_url = base_url.rstrip("/")
        self._logger = logger or logging.getLogger(__name__)

    def short_url(self, short_code: str) -> str:
        return f"{self._base_url}/{short_code}"

    async def create(
        self,
        original_url: str,
        expires_at: datetime.datetime | None = None,
    ) -> ShortlinkResponse:
        """Return a shortlink for ``original_url``, reusing a live one if present.

        Raises:
            InvalidRequestError: Bad URL or an expiry that is not in the future.
            StoreUnavailableError: The store could not be read or written.
            CacheUnavailableError: The new mapping could not be cached.
        """
        start_time = time.perf_counter()
        status = RequestStatus.ERROR
        try:
            self._validate_url(original_url)
            expires_at = self._validate_expiry(expires_at)

            existing = await self._find_live_mapping(original_url)
            if existing is not None:
                status = RequestStatus.DEDUPLICATED
                self._logger.info(f"Reusing shortlink {existing.id} for {original_url}")
                return self._to_response(existing)

            shortlink = await self._store.insert(original_url, expires_at)
            await self._cache.prime(shortlink.id, shortlink.original_url, shortlink.expires_at)

            status = RequestStatus.SUCCESS
            self._logger.info(f"Created shortlink {shortlink.id} for {original_url}")
            return self._to_response(shortlink)
        except InvalidRequestError as exc:
            status = RequestStatus.VALIDATION_ERROR
            self._logger.warning(f"Shortlink creation rejected: {exc}")
            raise
        except InternalError as exc:
            self._logger.error(f"Shortlink creation failed: {exc}")
            raise
        finally:
            CREATION_DURATION.observe(time.perf_counter() - start_time)
            CREATIONS_TOTAL.labels(status=status).inc()

    async def _find_live_mapping(self, original_url: str) -> Shortlink | None:
        existing_id = await self._store.find_id_by_url(original_url)
        if existing_id is None:
            return None
        # re-read the full row for its current expiry and timestamps
        shortlink = await self._store.get(existing_id)
        if shortlink is None or is_expired(shortlink.expires_at):
            return None
        return shortlink

    def _to_response(self, shortlink: Shortlink) -> ShortlinkResponse:
        return ShortlinkResponse(
            short_url=self.short_url(encode_id(shortlink.id)),
            original_url=shortlink.original_url,
            created_at=shortlink.created_at,
            expires_at=shortlink.expires_at,
        )

    def _validate_url(self, original_url: str) -> None:
        # the scheme prefix is the only rejection rule
        if not original_url or not original_url.startswith(ALLOWED_SCHEMES):
            raise InvalidRequestError("Invalid URL format: must start with http:// or https://")
        if not validators.url(original_url, simple_host=True, strict_query=False):
            self._logger.warning(f"Accepting URL that does not look well formed: {original_url}")

    @staticmethod
    def _validate_expiry(expires_at: datetime.datetime | None) -> datetime.datetime | None:
        expires_at = normalize_expiry(expires_at)
        if expires_at is not None and expires_at <= utcnow():
            raise InvalidRequestError("expires_at must be in the future")
        return expires_at
