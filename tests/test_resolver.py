"""Cache-aside resolution of short codes."""

import datetime

import pytest

from shortlink.errors import ExpiredError, InvalidCodeError, NotFoundError, StoreUnavailableError
from shortlink.expiry import EPOCH, utcnow
from shortlink.recorder import AccessRecorder
from shortlink.resolver import ShortlinkResolver, first_forwarded_ip


@pytest.fixture
def resolver(cache, fake_store, recorder) -> ShortlinkResolver:
    return ShortlinkResolver(cache, fake_store, recorder)


def test_first_forwarded_ip():
    assert first_forwarded_ip(None) is None
    assert first_forwarded_ip("") is None
    assert first_forwarded_ip("203.0.113.7") == "203.0.113.7"
    assert first_forwarded_ip(" 203.0.113.7 , 10.0.0.1") == "203.0.113.7"


@pytest.mark.asyncio
async def test_cache_hit_skips_store(resolver, fake_redis, fake_store):
    fake_redis.data["short:1"] = "https://example.com/warm"

    assert await resolver.resolve("1") == "https://example.com/warm"
    assert fake_store.calls["get"] == 0


@pytest.mark.asyncio
async def test_cache_miss_reads_store_and_repopulates(resolver, fake_redis, fake_store):
    fake_store.add_row("https://example.com/cold")

    assert await resolver.resolve("1") == "https://example.com/cold"
    assert fake_store.calls["get"] == 1
    assert fake_redis.data["short:1"] == "https://example.com/cold"

    assert await resolver.resolve("1") == "https://example.com/cold"
    assert fake_store.calls["get"] == 1


@pytest.mark.asyncio
async def test_unknown_id_is_not_found(resolver):
    with pytest.raises(NotFoundError) as exc_info:
        await resolver.resolve("2")
    assert not isinstance(exc_info.value, ExpiredError)


@pytest.mark.asyncio
async def test_invalid_code_never_touches_cache_or_store(resolver, fake_redis, fake_store):
    with pytest.raises(InvalidCodeError):
        await resolver.resolve("0OIl")
    assert sum(fake_redis.calls.values()) == 0
    assert sum(fake_store.calls.values()) == 0


@pytest.mark.asyncio
async def test_cached_expiry_evicts_both_keys(resolver, fake_redis, fake_store):
    fake_store.add_row("https://example.com/gone", expires_at=utcnow() - datetime.timedelta(minutes=1))
    fake_redis.data["short:1"] = "https://example.com/gone"
    fake_redis.data["expires_at:1"] = str(int(utcnow().timestamp()) - 60)

    with pytest.raises(ExpiredError):
        await resolver.resolve("1")

    assert "short:1" not in fake_redis.data
    assert "expires_at:1" not in fake_redis.data
    assert fake_store.calls["get"] == 0


@pytest.mark.asyncio
async def test_zero_cached_expiry_means_never(resolver, fake_redis):
    fake_redis.data["short:1"] = "https://example.com/legacy"
    fake_redis.data["expires_at:1"] = "0"

    assert await resolver.resolve("1") == "https://example.com/legacy"


@pytest.mark.asyncio
async def test_expired_row_without_cache_entry(resolver, fake_redis, fake_store):
    fake_store.add_row("https://example.com/old", expires_at=utcnow() - datetime.timedelta(days=1))

    with pytest.raises(ExpiredError):
        await resolver.resolve("1")
    assert "short:1" not in fake_redis.data


@pytest.mark.asyncio
async def test_epoch_expiry_row_resolves(resolver, fake_store):
    fake_store.add_row("https://example.com/epoch", expires_at=EPOCH)

    assert await resolver.resolve("1") == "https://example.com/epoch"


@pytest.mark.asyncio
async def test_cache_outage_falls_back_to_store(resolver, fake_redis, fake_store):
    fake_store.add_row("https://example.com/fallback")
    fake_redis.fail = True

    assert await resolver.resolve("1") == "https://example.com/fallback"
    assert fake_store.calls["get"] == 1
    # no repopulation attempt against a failing cache
    assert fake_redis.calls["setex"] == 0


@pytest.mark.asyncio
async def test_failed_repopulation_still_returns_store_url(resolver, fake_redis, fake_store, recorder):
    row = fake_store.add_row("https://example.com/unwritable")
    fake_redis.failing_ops = {"setex"}

    assert await resolver.resolve("1") == "https://example.com/unwritable"
    await recorder.join()

    assert fake_redis.calls["get"] == 2
    assert fake_redis.calls["setex"] == 1
    assert "short:1" not in fake_redis.data
    assert row.access_count == 1
    assert len(fake_store.access_logs) == 1


@pytest.mark.asyncio
async def test_expiry_equal_to_now_has_not_passed(resolver, fake_redis, monkeypatch):
    now = utcnow().replace(microsecond=0)
    monkeypatch.setattr("shortlink.resolver.utcnow", lambda: now)
    fake_redis.data["short:1"] = "https://example.com/boundary"
    fake_redis.data["expires_at:1"] = str(int(now.timestamp()))

    assert await resolver.resolve("1") == "https://example.com/boundary"


@pytest.mark.asyncio
async def test_store_outage_is_an_internal_error(resolver, fake_store):
    fake_store.fail = True

    with pytest.raises(StoreUnavailableError) as exc_info:
        await resolver.resolve("1")
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_successful_resolution_queues_access_event(resolver, fake_redis, fake_store, recorder):
    row = fake_store.add_row("https://example.com/counted")

    await resolver.resolve(
        "1",
        forwarded_for="198.51.100.4, 10.0.0.1",
        user_agent="pytest-agent",
        client_host="127.0.0.1",
    )
    await recorder.join()

    assert row.access_count == 1
    assert fake_store.access_logs == [
        {"shortlink_id": 1, "ip_address": "198.51.100.4", "user_agent": "pytest-agent"}
    ]


@pytest.mark.asyncio
async def test_peer_address_used_without_forwarded_header(resolver, fake_store, recorder):
    fake_store.add_row("https://example.com/peer")

    await resolver.resolve("1", client_host="192.0.2.10")
    await recorder.join()

    assert fake_store.access_logs[0]["ip_address"] == "192.0.2.10"
    assert fake_store.access_logs[0]["user_agent"] is None


@pytest.mark.asyncio
async def test_failed_resolution_records_nothing(resolver, fake_store, recorder):
    with pytest.raises(NotFoundError):
        await resolver.resolve("5")
    await recorder.join()

    assert fake_store.access_logs == []


@pytest.mark.asyncio
async def test_resolution_succeeds_when_recorder_is_stopped(cache, fake_redis, fake_store):
    stopped = AccessRecorder(lambda: None)
    resolver = ShortlinkResolver(cache, fake_store, stopped)
    fake_redis.data["short:1"] = "https://example.com/unrecorded"

    assert await resolver.resolve("1") == "https://example.com/unrecorded"
    assert stopped.depth == 0
