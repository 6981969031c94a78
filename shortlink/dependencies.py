"""Dependency injection with a singleton service manager.

Shared resources (settings, logger, redis-backed cache, access recorder) are
assembled once at startup by the ``ServiceManager`` and are read-only after
that. Each request gets a lightweight ``RequestContext`` holding its own
database session plus references to the shared resources.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from functools import partial
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.cache import ShortlinkCache, create_redis_client
from shortlink.config import Settings, get_settings
from shortlink.database import async_session, get_db
from shortlink.recorder import AccessRecorder
from shortlink.service import ShortlinkService
from shortlink.store import store_scope

__all__ = [
    "ServiceManager",
    "RequestContext",
    "get_service_manager",
    "get_request_context",
    "get_shortlink_service",
]


# ============================================================================
# SINGLETON SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Singleton owner of the process-wide resources.

    ``initialize()`` runs in the application lifespan; it must run inside the
    event loop because it starts the access recorder task.
    """

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "ServiceManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def initialize(self) -> None:
        """Initialize shared resources once at startup."""
        if not self._initialized:
            self.settings: Settings = get_settings()
            self.logger = self._setup_logger()
            self.cache = ShortlinkCache(
                create_redis_client(self.settings),
                forever_ttl_seconds=self.settings.CACHE_FOREVER_TTL_SECONDS,
            )
            self.recorder = AccessRecorder(partial(store_scope, async_session))
            self.recorder.start()
            self._initialized = True
            self.logger.info(f"{self.settings.APP_NAME} initialized ({self.settings.APP_ENV})")

    def _setup_logger(self) -> logging.Logger:
        """Setup the package logger once; module loggers propagate to it."""
        logger = logging.getLogger("shortlink")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.setLevel(self.settings.LOG_LEVEL)
        return logger

    async def cleanup(self) -> None:
        """Cleanup shared resources at shutdown. Queued access events are dropped."""
        if hasattr(self, "recorder"):
            await self.recorder.stop()
        if hasattr(self, "cache"):
            await self.cache.close()
        self._initialized = False


# Global singleton instance
_service_manager = ServiceManager()


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request context with tracking and shared resource access.

    Attributes:
        database: Async database session (only per-request resource)
        service_manager: Singleton service manager with shared resources
        request_id: Unique identifier for this request
        user_agent: Client user agent string
        forwarded_for: Raw X-Forwarded-For header, untrusted
        client_ip: Socket peer address
        start_time: Request start timestamp
    """

    database: AsyncSession
    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_agent: Optional[str] = None
    forwarded_for: Optional[str] = None
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=lambda: time.time())

    @property
    def cache(self) -> ShortlinkCache:
        return self.service_manager.cache

    @property
    def recorder(self) -> AccessRecorder:
        return self.service_manager.recorder

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Shared logger with this request's identifiers attached."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
            },
        )

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager() -> ServiceManager:
    if not _service_manager._initialized:
        await _service_manager.initialize()
    return _service_manager


async def get_request_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    return RequestContext(
        database=db,
        service_manager=manager,
        request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
        user_agent=request.headers.get("user-agent"),
        forwarded_for=request.headers.get("x-forwarded-for"),
        client_ip=request.client.host if request.client else None,
    )


def get_shortlink_service(ctx: RequestContext = Depends(get_request_context)) -> ShortlinkService:
    return ShortlinkService.from_context(ctx)
