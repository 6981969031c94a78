"""Shortlink service layer used by the HTTP routes.

Bundles the per-request resolver, creator and store behind one object built
from the request context.

How to Use
===========
**In route handlers**::

    @router.post("/api/shorten")
    async def shorten(
        payload: ShortenRequest,
        service: ShortlinkService = Depends(get_shortlink_service),
    ) -> ShortlinkResponse:
        return await service.create_shortlink(payload.url, payload.expires_at)

**Directly**::

    service = ShortlinkService(cache=cache, store=ShortlinkStore(session),
                               recorder=recorder, base_url="https://sho.rt")
    url = await service.resolve("3yQ")
"""

import datetime
import logging

from shortlink.cache import ShortlinkCache
from shortlink.codec import decode_id, encode_id
from shortlink.creator import ShortlinkCreator
from shortlink.errors import NotFoundError
from shortlink.recorder import AccessRecorder
from shortlink.resolver import ShortlinkResolver
from shortlink.schemas import ShortlinkResponse, ShortlinkStats
from shortlink.store import ShortlinkStore

__all__ = ["ShortlinkService"]


class ShortlinkService:
    """Entry point for creation, resolution and statistics.

    Example:
        >>> service = ShortlinkService.from_context(ctx)
        >>> created = await service.create_shortlink("https://example.com")
        >>> created.short_url
        'http://localhost:3000/1'
    """

    def __init__(
        self,
        cache: ShortlinkCache,
        store: ShortlinkStore,
        recorder: AccessRecorder,
        base_url: str,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self._store = store
        self._logger = logger or logging.getLogger(__name__)
        self._resolver = ShortlinkResolver(cache, store, recorder, self._logger)
        self._creator = ShortlinkCreator(cache, store, base_url, self._logger)

    @classmethod
    def from_context(cls, ctx: 'RequestContext') -> 'ShortlinkService':
        """Build a service from the per-request context."""
        return cls(
            cache=ctx.cache,
            store=ShortlinkStore(ctx.database),
            recorder=ctx.recorder,
            base_url=ctx.settings.BASE_URL,
            logger=ctx.logger,
        )

    async def create_shortlink(
        self,
        original_url: str,
        expires_at: datetime.datetime | None = None,
    ) -> ShortlinkResponse:
        return await self._creator.create(original_url, expires_at)

    async def resolve(
        self,
        short_code: str,
        forwarded_for: str | None = None,
        user_agent: str | None = None,
        client_host: str | None = None,
    ) -> str:
        return await self._resolver.resolve(short_code, forwarded_for, user_agent, client_host)

    async def get_statistics(self, short_code: str) -> ShortlinkStats:
        """Full stored record for a code, read straight from the store.

        Raises:
            InvalidCodeError: The code cannot be decoded.
            NotFoundError: No shortlink has this id.
        """
        shortlink_id = decode_id(short_code)
        shortlink = await self._store.get(shortlink_id)
        if shortlink is None:
            raise NotFoundError(f"Shortlink {short_code} not found")

        code = encode_id(shortlink.id)
        return ShortlinkStats(
            id=shortlink.id,
            short_code=code,
            short_url=self._creator.short_url(code),
            original_url=shortlink.original_url,
            created_at=shortlink.created_at,
            expires_at=shortlink.expires_at,
            access_count=shortlink.access_count,
        )
