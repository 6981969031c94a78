"""Durable store for shortlinks and access logs.

Thin data-access layer over an ``AsyncSession``. Every SQLAlchemy failure
(connectivity, pool acquisition timeout, constraint errors) is rolled back
and re-raised as ``StoreUnavailableError`` so callers only ever see the
service's own error taxonomy. A missing row is not an error: lookups return
``None``.

Operations:
    insert():                  Insert a shortlink and return the stored row.
    get():                     Point lookup by id.
    find_id_by_url():          Newest id stored for an exact original URL.
    increment_access_count():  Atomic ``access_count + 1``.
    insert_access_log():       Append one access-log row.
"""

import datetime
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.errors import StoreUnavailableError
from shortlink.models import AccessLog, Shortlink

__all__ = ["ShortlinkStore", "store_scope"]

# ids are stored as signed BIGINT
MAX_STORED_ID = 2**63 - 1


class ShortlinkStore:
    def __init__(self, session: AsyncSession):
        self._db = session

    async def insert(self, original_url: str, expires_at: datetime.datetime | None) -> Shortlink:
        try:
            shortlink = Shortlink(original_url=original_url, expires_at=expires_at)
            self._db.add(shortlink)
            await self._db.commit()
            await self._db.refresh(shortlink)
            return shortlink
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreUnavailableError(f"Failed to insert shortlink: {exc}") from exc

    async def get(self, shortlink_id: int) -> Shortlink | None:
        if shortlink_id > MAX_STORED_ID:
            return None
        try:
            result = await self._db.execute(select(Shortlink).where(Shortlink.id == shortlink_id))
            return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreUnavailableError(f"Failed to load shortlink {shortlink_id}: {exc}") from exc

    async def find_id_by_url(self, original_url: str) -> int | None:
        try:
            result = await self._db.execute(
                select(Shortlink.id)
                .where(Shortlink.original_url == original_url)
                .order_by(Shortlink.id.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreUnavailableError(f"Failed to look up URL: {exc}") from exc

    async def increment_access_count(self, shortlink_id: int) -> None:
        try:
            await self._db.execute(
                update(Shortlink)
                .where(Shortlink.id == shortlink_id)
                .values(access_count=Shortlink.access_count + 1)
            )
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreUnavailableError(f"Failed to increment access count for {shortlink_id}: {exc}") from exc

    async def insert_access_log(
        self,
        shortlink_id: int,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        try:
            self._db.add(AccessLog(shortlink_id=shortlink_id, ip_address=ip_address, user_agent=user_agent))
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreUnavailableError(f"Failed to insert access log for {shortlink_id}: {exc}") from exc


@asynccontextmanager
async def store_scope(session_factory: Callable[[], AsyncSession]) -> AsyncIterator[ShortlinkStore]:
    """Open a session for work outside a request, e.g. the access recorder."""
    async with session_factory() as session:
        yield ShortlinkStore(session)
