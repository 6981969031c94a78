"""Shared pytest fixtures: in-memory redis and store fakes plus an API client."""

import contextlib
import logging
from collections import Counter
from types import SimpleNamespace
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from shortlink.cache import ShortlinkCache
from shortlink.config import Settings
from shortlink.database import get_db
from shortlink.dependencies import get_service_manager, get_shortlink_service
from shortlink.errors import StoreUnavailableError
from shortlink.expiry import utcnow
from shortlink.main import app
from shortlink.models import Shortlink
from shortlink.recorder import AccessRecorder
from shortlink.service import ShortlinkService

BASE_URL = "http://sho.rt"
FOREVER_TTL = 365 * 24 * 60 * 60


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the cache layer."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.calls: Counter = Counter()
        self.fail = False
        self.failing_ops: set[str] = set()

    def _check(self, op: str) -> None:
        self.calls[op] += 1
        if self.fail or op in self.failing_ops:
            raise RedisConnectionError("redis is down")

    async def get(self, key: str) -> str | None:
        self._check("get")
        return self.data.get(key)

    async def setex(self, key: str, ttl: int, value) -> bool:
        self._check("setex")
        self.data[key] = str(value)
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys: str) -> int:
        self._check("delete")
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def ping(self) -> bool:
        self._check("ping")
        return True

    async def aclose(self) -> None:
        pass


class FakeStore:
    """In-memory stand-in for ShortlinkStore with per-method call counts."""

    def __init__(self) -> None:
        self.rows: dict[int, Shortlink] = {}
        self.access_logs: list[dict] = []
        self.calls: Counter = Counter()
        self.fail = False

    def _check(self, op: str) -> None:
        self.calls[op] += 1
        if self.fail:
            raise StoreUnavailableError(f"{op} failed: database is down")

    def add_row(self, original_url: str, expires_at=None, access_count: int = 0) -> Shortlink:
        shortlink = Shortlink(
            id=len(self.rows) + 1,
            original_url=original_url,
            created_at=utcnow(),
            expires_at=expires_at,
            access_count=access_count,
        )
        self.rows[shortlink.id] = shortlink
        return shortlink

    async def insert(self, original_url, expires_at):
        self._check("insert")
        return self.add_row(original_url, expires_at)

    async def get(self, shortlink_id):
        self._check("get")
        return self.rows.get(shortlink_id)

    async def find_id_by_url(self, original_url):
        self._check("find_id_by_url")
        ids = [row.id for row in self.rows.values() if row.original_url == original_url]
        return max(ids) if ids else None

    async def increment_access_count(self, shortlink_id):
        self._check("increment_access_count")
        if shortlink_id in self.rows:
            self.rows[shortlink_id].access_count += 1

    async def insert_access_log(self, shortlink_id, ip_address=None, user_agent=None):
        self._check("insert_access_log")
        self.access_logs.append(
            {"shortlink_id": shortlink_id, "ip_address": ip_address, "user_agent": user_agent}
        )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def cache(fake_redis: FakeRedis) -> ShortlinkCache:
    return ShortlinkCache(fake_redis, forever_ttl_seconds=FOREVER_TTL)


@pytest_asyncio.fixture
async def recorder(fake_store: FakeStore) -> AsyncGenerator[AccessRecorder, None]:
    access_recorder = AccessRecorder(lambda: contextlib.nullcontext(fake_store))
    access_recorder.start()
    yield access_recorder
    await access_recorder.stop()


@pytest.fixture
def service(cache, fake_store, recorder) -> ShortlinkService:
    return ShortlinkService(cache=cache, store=fake_store, recorder=recorder, base_url=BASE_URL)


@pytest.fixture
def mock_database() -> MagicMock:
    db = MagicMock()
    db.execute = AsyncMock()
    return db


@pytest_asyncio.fixture
async def client(
    cache: ShortlinkCache,
    recorder: AccessRecorder,
    service: ShortlinkService,
    mock_database: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    manager = SimpleNamespace(
        settings=Settings(BASE_URL=BASE_URL),
        logger=logging.getLogger("shortlink.tests"),
        cache=cache,
        recorder=recorder,
    )

    async def override_get_db():
        yield mock_database

    async def override_get_service_manager():
        return manager

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_service_manager] = override_get_service_manager
    app.dependency_overrides[get_shortlink_service] = lambda: service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
