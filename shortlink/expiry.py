"""Expiry rules shared by the resolver, creator and cache.

``None`` is the canonical "never expires" value. Rows written before that
convention may still carry the Unix epoch, which is read the same way.
"""

import datetime

__all__ = [
    "EPOCH",
    "utcnow",
    "as_utc",
    "normalize_expiry",
    "is_expired",
    "remaining_ttl_seconds",
    "expiry_timestamp",
]

EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def as_utc(value: datetime.datetime) -> datetime.datetime:
    """Attach UTC to naive datetimes, convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def normalize_expiry(expires_at: datetime.datetime | None) -> datetime.datetime | None:
    """Return the canonical stored form: ``None`` for never, UTC otherwise."""
    if expires_at is None:
        return None
    expires_at = as_utc(expires_at)
    if expires_at == EPOCH:
        return None
    return expires_at


def is_expired(expires_at: datetime.datetime | None, now: datetime.datetime | None = None) -> bool:
    expires_at = normalize_expiry(expires_at)
    if expires_at is None:
        return False
    return expires_at < (now or utcnow())


def remaining_ttl_seconds(
    expires_at: datetime.datetime | None,
    forever_seconds: int,
    now: datetime.datetime | None = None,
) -> int:
    """Cache TTL for a shortlink: its remaining lifetime, at least one second.

    Never-expiring shortlinks get ``forever_seconds``.
    """
    expires_at = normalize_expiry(expires_at)
    if expires_at is None:
        return forever_seconds
    remaining = (expires_at - (now or utcnow())).total_seconds()
    return max(int(remaining), 1)


def expiry_timestamp(expires_at: datetime.datetime | None) -> int | None:
    """Integer Unix seconds for the ``expires_at:<id>`` cache entry, or None."""
    expires_at = normalize_expiry(expires_at)
    if expires_at is None:
        return None
    return int(expires_at.timestamp())
