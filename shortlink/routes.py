"""FastAPI route definitions for the shortlink REST API.

API Endpoint Overview
=====================
::
    GET  /health
        └─ HealthResponse (200)

    POST /api/shorten
        ├─ ShortenRequest (request body)
        └─ ShortlinkResponse (200) or 400/500

    GET  /api/stats/:short_code
        └─ ShortlinkStats (200) or 400/404

    GET  /:short_code
        ├─ 307 Redirect to the original URL
        ├─ 308 Redirect to STATIC_PREFIX when the segment contains a "."
        └─ 400/404/500

Key Behaviours
===============
- Errors are raised as ``ShortlinkError`` subclasses and turned into
  ``{"detail", "error_code"}`` bodies by the handler registered in main.py.
- Redirects are temporary (307) so clients re-resolve and every visit is
  recorded.
- A path segment containing a dot is a static asset, never a short code.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from shortlink.dependencies import RequestContext, get_request_context, get_shortlink_service
from shortlink.enums import HealthStatus
from shortlink.errors import CacheUnavailableError
from shortlink.schemas import HealthResponse, ShortenRequest, ShortlinkResponse, ShortlinkStats
from shortlink.service import ShortlinkService

__all__ = ["router"]

router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    cache_status = HealthStatus.HEALTHY

    try:
        await ctx.database.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    try:
        await ctx.cache.ping()
    except CacheUnavailableError as e:
        ctx.logger.error(f"Cache health check failed: {e}")
        cache_status = HealthStatus.UNHEALTHY

    status = (
        HealthStatus.HEALTHY
        if db_status is HealthStatus.HEALTHY and cache_status is HealthStatus.HEALTHY
        else HealthStatus.UNHEALTHY
    )
    ctx.logger.debug(f"Health check completed: {status.value}")
    return HealthResponse(
        status=status,
        database=db_status,
        cache=cache_status,
        queue_depth=ctx.recorder.depth,
    )


@router.post("/api/shorten", response_model=ShortlinkResponse, tags=["shortlinks"])
async def shorten_url(
    payload: ShortenRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: ShortlinkService = Depends(get_shortlink_service),
) -> ShortlinkResponse:
    ctx.logger.info(
        f"Shortlink requested: {payload.url}",
        extra={"operation": "create_shortlink", "target_url": payload.url},
    )
    created = await service.create_shortlink(payload.url, payload.expires_at)
    ctx.logger.info(
        f"Shortlink ready: {created.short_url}",
        extra={"operation": "create_shortlink", "duration_ms": ctx.get_duration()},
    )
    return created


@router.get("/api/stats/{short_code}", response_model=ShortlinkStats, tags=["shortlinks"])
async def get_stats(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ShortlinkService = Depends(get_shortlink_service),
) -> ShortlinkStats:
    ctx.logger.info(f"Stats requested for short code: {short_code}")
    return await service.get_statistics(short_code)


@router.get("/{short_code}", tags=["redirect"])
async def redirect_to_url(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ShortlinkService = Depends(get_shortlink_service),
) -> RedirectResponse:
    if "." in short_code:
        return RedirectResponse(url=f"{ctx.settings.STATIC_PREFIX}/{short_code}", status_code=308)

    original_url = await service.resolve(
        short_code,
        forwarded_for=ctx.forwarded_for,
        user_agent=ctx.user_agent,
        client_host=ctx.client_ip,
    )
    ctx.logger.info(
        f"Redirect: {short_code} -> {original_url}",
        extra={"operation": "redirect", "short_code": short_code, "duration_ms": ctx.get_duration()},
    )
    return RedirectResponse(url=original_url, status_code=307)
