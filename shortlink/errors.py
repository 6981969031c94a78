"""Exception hierarchy for the shortlink service.

Every error raised by the core carries the HTTP status it maps to and a short
machine-readable ``error_code``; the FastAPI exception handler in
``shortlink.main`` turns them into JSON responses.

Hierarchy
=========
::
    ShortlinkError
    ├─ InvalidRequestError (400)
    │   └─ InvalidCodeError
    ├─ NotFoundError (404)
    │   └─ ExpiredError
    └─ InternalError (500)
        ├─ StoreUnavailableError
        └─ CacheUnavailableError

None of these are retried by the core.
"""

__all__ = [
    "ShortlinkError",
    "InvalidRequestError",
    "InvalidCodeError",
    "NotFoundError",
    "ExpiredError",
    "InternalError",
    "StoreUnavailableError",
    "CacheUnavailableError",
]


class ShortlinkError(Exception):
    """Base exception for all application-specific errors."""

    status_code = 500
    error_code = "app:shortlink_error"


class InvalidRequestError(ShortlinkError):
    """Raised for malformed input such as a URL without an http(s) scheme."""

    status_code = 400
    error_code = "request:invalid_request"


class InvalidCodeError(InvalidRequestError):
    """Raised when a short code cannot be decoded into an identifier."""

    error_code = "request:invalid_code"


class NotFoundError(ShortlinkError):
    """Raised when no shortlink exists for a decoded identifier."""

    status_code = 404
    error_code = "shortlink:not_found"


class ExpiredError(NotFoundError):
    """Raised when the shortlink exists but its expiry has passed."""

    error_code = "shortlink:expired"


class InternalError(ShortlinkError):
    """Base for infrastructure failures surfaced to the caller."""

    status_code = 500
    error_code = "infra:internal_error"


class StoreUnavailableError(InternalError):
    """Raised when the durable store fails (connectivity, pool exhaustion, ...)."""

    error_code = "infra:store_unavailable"


class CacheUnavailableError(InternalError):
    """Raised when a cache operation fails."""

    error_code = "infra:cache_unavailable"
