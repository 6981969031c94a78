"""Shared enums for the shortlink service.

Status values used in health responses and as Prometheus label values.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "RequestStatus", "CacheStatus"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class RequestStatus(StrEnum):
    """Outcome of a create or resolve call, for metrics and logging."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    DEDUPLICATED = "deduplicated"
    ERROR = "error"


class CacheStatus(StrEnum):
    """How the cache took part in a resolution."""

    HIT = "hit"
    MISS = "miss"
    ERROR = "error"
    SKIPPED = "skipped"
