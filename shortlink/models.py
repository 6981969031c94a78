"""SQLAlchemy ORM models for the shortlink service.

Data Model Layout
=================
::
    shortlinks table
    ├─ id (BIGSERIAL PRIMARY KEY)          → short code is derived, never stored
    ├─ original_url (TEXT NOT NULL, INDEXED)
    ├─ created_at (TIMESTAMPTZ, DEFAULT NOW())
    ├─ expires_at (TIMESTAMPTZ NULL)       → NULL means never expires
    └─ access_count (BIGINT DEFAULT 0)

    access_logs table
    ├─ id (BIGSERIAL PRIMARY KEY)
    ├─ shortlink_id (BIGINT FK → shortlinks.id, INDEXED)
    ├─ accessed_at (TIMESTAMPTZ, DEFAULT NOW())
    ├─ ip_address (VARCHAR(64) NULL)
    └─ user_agent (TEXT NULL)

Key Behaviours
===============
- original_url is indexed for the dedupe lookup on creation; uniqueness is
  checked by the creator, not enforced by a constraint.
- access_count is only changed by the access recorder, atomically, in SQL.
- access_logs rows are insert-only.

Classes:
    Shortlink:  A short code → URL mapping with its access counter.
    AccessLog:  One recorded resolution of a shortlink.
"""

import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from shortlink.database import Base

__all__ = ["Shortlink", "AccessLog"]


class Shortlink(Base):
    __tablename__ = "shortlinks"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    original_url: Mapped[str] = mapped_column(Text, index=True, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    expires_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    access_count: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0", nullable=False)

    def __repr__(self) -> str:
        return f"<Shortlink(id={self.id}, access_count={self.access_count}, expires_at={self.expires_at})>"


class AccessLog(Base):
    __tablename__ = "access_logs"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    shortlink_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("shortlinks.id", ondelete="CASCADE"), index=True, nullable=False
    )
    accessed_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
