import pytest
import redis.asyncio as redis

from domain_insight.cache import RedisResearchCache, ResearchCache, build_cache, cache_key
from domain_insight.config import Settings
from domain_insight.models import DomainResearchResult

from fakes import DNS, WHOIS, FakeClock

RESULT = DomainResearchResult(
    domain="example.com",
    whois=WHOIS,
    dns=DNS,
    errors=["security: timed out after 10s"],
    timestamp="2024-05-01T12:00:00+00:00",
    cached=True,
)


class FakeRedis:
    def __init__(self, fail=False):
        self.data = {}
        self.ttls = {}
        self.fail = fail

    async def get(self, key):
        if self.fail:
            raise redis.ConnectionError("connection refused")
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        if self.fail:
            raise redis.ConnectionError("connection refused")
        self.data[key] = value
        self.ttls[key] = ttl

    async def delete(self, key):
        self.data.pop(key, None)


def test_cache_key_normalizes_case_and_whitespace():
    assert cache_key(" Example.COM ") == "domain:example.com"


@pytest.mark.asyncio
async def test_memory_cache_round_trip_within_ttl():
    clock = FakeClock()
    cache = ResearchCache(ttl=60, clock=clock)
    assert await cache.get("example.com") is None

    await cache.set("example.com", RESULT)
    clock.advance(59_999)
    assert await cache.get("EXAMPLE.com") == RESULT


@pytest.mark.asyncio
async def test_memory_cache_evicts_stale_entry_on_read():
    clock = FakeClock()
    cache = ResearchCache(ttl=60, clock=clock)
    await cache.set("example.com", RESULT)

    clock.advance(60_000)
    assert await cache.get("example.com") is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_memory_cache_last_write_wins():
    clock = FakeClock()
    cache = ResearchCache(clock=clock)
    await cache.set("example.com", RESULT)
    clock.advance(10)
    newer = RESULT.model_copy(update={"timestamp": "2024-05-01T13:00:00+00:00"})
    await cache.set("example.com", newer)

    assert (await cache.get("example.com")).timestamp == newer.timestamp
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_redis_cache_stores_json_with_ttl():
    client = FakeRedis()
    cache = RedisResearchCache(client, ttl=120)

    await cache.set("Example.com", RESULT)

    assert client.ttls["domain:example.com"] == 120
    assert await cache.get("example.com") == RESULT


@pytest.mark.asyncio
async def test_redis_cache_discards_unreadable_entries():
    client = FakeRedis()
    client.data["domain:example.com"] = '{"domain": "example.com"}'
    cache = RedisResearchCache(client)

    assert await cache.get("example.com") is None
    assert "domain:example.com" not in client.data


@pytest.mark.asyncio
async def test_redis_outage_degrades_to_miss():
    cache = RedisResearchCache(FakeRedis(fail=True))
    await cache.set("example.com", RESULT)
    assert await cache.get("example.com") is None


def test_build_cache_defaults_to_memory():
    cache = build_cache(Settings(cache_ttl=42))
    assert isinstance(cache, ResearchCache)
    assert cache.ttl == 42


def test_build_cache_uses_redis_when_configured():
    cache = build_cache(Settings(redis_url="redis://localhost:6379/0"))
    assert isinstance(cache, RedisResearchCache)
