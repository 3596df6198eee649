import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import redis.asyncio as redis
from pydantic import ValidationError

from domain_insight.config import Settings
from domain_insight.models import DomainResearchResult

logger = logging.getLogger(__name__)

TTL = 3600  # 1 hour


def cache_key(domain: str) -> str:
    return f"domain:{domain.strip().lower()}"


def epoch_ms() -> float:
    return time.time() * 1000


@dataclass
class CacheEntry:
    data: DomainResearchResult
    timestamp: float  # epoch ms


class ResearchCache:
    """
    In-process research cache.

    Entries are only invalidated on read, once they are `ttl` seconds old.
    There is no locking: concurrent misses for the same domain each fetch and
    the last write wins.
    """

    def __init__(self, ttl: int = TTL, clock: Callable[[], float] = epoch_ms):
        self.ttl = ttl
        self.clock = clock
        self.entries: Dict[str, CacheEntry] = {}

    async def get(self, domain: str) -> Optional[DomainResearchResult]:
        key = cache_key(domain)
        entry = self.entries.get(key)
        if entry is None:
            return None
        if self.clock() - entry.timestamp < self.ttl * 1000:
            return entry.data
        del self.entries[key]
        return None

    async def set(self, domain: str, result: DomainResearchResult) -> None:
        self.entries[cache_key(domain)] = CacheEntry(data=result, timestamp=self.clock())

    async def evict(self, domain: str) -> None:
        self.entries.pop(cache_key(domain), None)

    def __len__(self):
        return len(self.entries)


class RedisResearchCache:
    """Shared cache for multi-worker deployments. Redis failures degrade to a cache miss."""

    def __init__(self, client: redis.Redis, ttl: int = TTL):
        self.client = client
        self.ttl = ttl

    async def get(self, domain: str) -> Optional[DomainResearchResult]:
        key = cache_key(domain)
        try:
            hit = await self.client.get(key)
        except redis.RedisError as e:
            logger.warning(f"Redis cache read failed for {domain}: {e}")
            return None
        if not hit:
            return None
        try:
            return DomainResearchResult.model_validate_json(hit)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            await self.evict(domain)
            return None

    async def set(self, domain: str, result: DomainResearchResult) -> None:
        try:
            await self.client.setex(cache_key(domain), self.ttl, result.model_dump_json())
        except redis.RedisError as e:
            logger.warning(f"Redis cache set failed for {domain}: {e}")

    async def evict(self, domain: str) -> None:
        try:
            await self.client.delete(cache_key(domain))
        except redis.RedisError as e:
            logger.warning(f"Redis cache delete failed for {domain}: {e}")


def build_cache(settings: Settings):
    """Redis-backed cache when REDIS_URL is configured, in-process otherwise"""
    if settings.redis_url:
        try:
            client = redis.from_url(settings.redis_url, decode_responses=True)
            return RedisResearchCache(client, ttl=settings.cache_ttl)
        except ValueError as e:
            logger.warning(f"Invalid REDIS_URL, using in-process cache: {e}")
    return ResearchCache(ttl=settings.cache_ttl)
