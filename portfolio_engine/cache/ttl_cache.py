"""
Portfolio Tracker — TTL Cache
──────────────────────────────
One TTLCache per data kind. Reads are hits only while the entry is younger
than the namespace TTL; stale entries are ignored, never deleted, and get
overwritten by the next successful put.

When a Redis client is supplied the cache writes through with SETEX and reads
Redis first. Any Redis failure drops back to the in-memory map.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import redis.asyncio as aioredis

from portfolio_engine.cache.ttl_config import TTL

log = logging.getLogger("pt.cache")


@dataclass
class CacheEntry:
    key:       str
    value:     Any
    stored_at: float

    def age(self, now: float) -> float:
        return now - self.stored_at


class TTLCache:

    def __init__(
        self,
        namespace: str,
        ttl: Optional[float] = None,
        redis_client: Optional[aioredis.Redis] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.namespace = namespace
        self.ttl       = float(TTL[namespace] if ttl is None else ttl)
        self.redis     = redis_client
        self._clock    = clock
        self._entries: Dict[str, CacheEntry] = {}

    def _redis_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        if self.redis is not None:
            try:
                raw = await self.redis.get(self._redis_key(key))
                if raw is not None:
                    return json.loads(raw)
            except Exception as e:
                log.warning(f"Redis read failed for {self._redis_key(key)} ({e}) — using memory")
        entry = self._entries.get(key)
        if entry and entry.age(self._clock()) < self.ttl:
            return entry.value
        return None

    def peek_stale(self, key: str) -> Optional[Any]:
        """Return whatever is stored for key, fresh or not."""
        entry = self._entries.get(key)
        return entry.value if entry else None

    async def put(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._clock())
        if self.redis is not None:
            try:
                await self.redis.setex(self._redis_key(key), max(1, int(self.ttl)), json.dumps(value))
            except Exception as e:
                log.warning(f"Redis write failed for {self._redis_key(key)} ({e})")

    def __len__(self) -> int:
        return len(self._entries)


async def connect_redis(url: str) -> Optional[aioredis.Redis]:
    """Open a Redis connection, or None when unset/unreachable."""
    if not url:
        return None
    try:
        client = aioredis.from_url(url, decode_responses=True, socket_timeout=2)
        await client.ping()
        log.info("Redis connected")
        return client
    except Exception as e:
        log.warning(f"Redis unavailable ({e}) - using in-memory cache")
        return None
