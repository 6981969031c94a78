"""Pydantic schemas for request/response validation in the shortlink service.

Schema Hierarchy
=================
::
    ShortenRequest (Input)
    ├─ url: str
    └─ expires_at: datetime | None

    ShortlinkResponse (Output of POST /api/shorten)
    ├─ short_url: str
    ├─ original_url: str
    ├─ created_at: datetime
    └─ expires_at: datetime | None

    ShortlinkStats (Output of GET /api/stats/:code)
    ├─ id, short_code, short_url, original_url
    ├─ created_at, expires_at
    └─ access_count: int

    AccessEvent (queue message, never exposed over HTTP)
    ├─ shortlink_id: int
    ├─ ip_address: str | None
    └─ user_agent: str | None

    HealthResponse (Output)
    ├─ status, database, cache
    └─ queue_depth: int

Key Behaviours
===============
- URL scheme validation happens in the creator so direct callers get it too;
  the request schema only enforces shape.
- All datetime fields are serialized as ISO 8601.

Classes:
    ShortenRequest:  Input schema for shortening requests.
    ShortlinkResponse:  Output schema for created or deduplicated shortlinks.
    ShortlinkStats:  Output schema for the stats endpoint.
    AccessEvent:  Access-log message handed to the recorder.
    HealthResponse:  Output schema for health checks.
    ErrorResponse:  Body of every error response.
"""

import datetime

from pydantic import BaseModel, Field

from shortlink.enums import HealthStatus

__all__ = [
    "ShortenRequest",
    "ShortlinkResponse",
    "ShortlinkStats",
    "AccessEvent",
    "HealthResponse",
    "ErrorResponse",
]


class ShortenRequest(BaseModel):
    url: str = Field(..., description="Original URL, must start with http:// or https://")
    expires_at: datetime.datetime | None = Field(
        None, description="Absolute expiry; omitted or null means the shortlink never expires."
    )


class ShortlinkResponse(BaseModel):
    short_url: str
    original_url: str
    created_at: datetime.datetime
    expires_at: datetime.datetime | None = None


class ShortlinkStats(BaseModel):
    id: int
    short_code: str
    short_url: str
    original_url: str
    created_at: datetime.datetime
    expires_at: datetime.datetime | None = None
    access_count: int

    model_config = {"from_attributes": True}


class AccessEvent(BaseModel):
    """One successful resolution, recorded by the access recorder."""

    shortlink_id: int = Field(..., ge=1, description="Decoded id of the resolved shortlink")
    ip_address: str | None = Field(None, description="First X-Forwarded-For entry or peer address")
    user_agent: str | None = Field(None, description="User-Agent header, if sent")


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus
    queue_depth: int


class ErrorResponse(BaseModel):
    detail: str
    error_code: str
