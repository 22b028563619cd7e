"""
Evidence cache for expensive external lookups (legislative master lists).

Provides:
- ``EvidenceCache`` interface with async ``get``/``put`` keyed by (source, key)
- ``InMemoryEvidenceCache``: process-wide, TTL + bounded size, lock guarded
- ``RedisEvidenceCache``: shared across workers, JSON values with SETEX TTL
- ``evidence_cache_factory``: picks the backend and lifetime from settings

Entries are idempotent: two writers racing on the same key store equivalent
values, so the last write simply wins.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

import structlog

from libs.common.settings import Settings, get_settings

logger = structlog.get_logger(__name__)


def normalize_query_key(jurisdiction: str, terms: Iterable[str]) -> str:
    """Composite key: upper-case jurisdiction plus sorted, lower-cased terms."""
    cleaned = sorted({t.strip().lower() for t in terms if t and t.strip()})
    return f"{(jurisdiction or '').strip().upper()}::{','.join(cleaned)}"


@dataclass
class CacheStats:
    """Cache statistics for monitoring."""

    hits: int = 0
    misses: int = 0
    writes: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class EvidenceCache(ABC):
    """Async get/put store for evidence fetched from external sources."""

    def __init__(self):
        self.stats = CacheStats()

    @abstractmethod
    async def get(self, source: str, key: str) -> Optional[Any]:
        """Return the cached value or None on miss."""

    @abstractmethod
    async def put(self, source: str, key: str, value: Any) -> None:
        """Insert or overwrite a value."""


class InMemoryEvidenceCache(EvidenceCache):
    """Process-lifetime cache with TTL expiry and LRU-style eviction."""

    def __init__(self, ttl_seconds: Optional[int] = 24 * 3600, max_entries: int = 512):
        super().__init__()
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, tuple[Optional[float], Any]]" = OrderedDict()
        self._lock = asyncio.Lock()

    @staticmethod
    def _full_key(source: str, key: str) -> str:
        return f"{source}:{key}"

    async def get(self, source: str, key: str) -> Optional[Any]:
        full_key = self._full_key(source, key)
        async with self._lock:
            entry = self._entries.get(full_key)
            if entry is not None:
                expires_at, value = entry
                if expires_at is None or expires_at > time.monotonic():
                    self._entries.move_to_end(full_key)
                    self.stats.hits += 1
                    return value
                del self._entries[full_key]
            self.stats.misses += 1
            return None

    async def put(self, source: str, key: str, value: Any) -> None:
        full_key = self._full_key(source, key)
        expires_at = time.monotonic() + self.ttl_seconds if self.ttl_seconds else None
        async with self._lock:
            self._entries[full_key] = (expires_at, value)
            self._entries.move_to_end(full_key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
            self.stats.writes += 1

    def __len__(self) -> int:
        return len(self._entries)


class RedisEvidenceCache(EvidenceCache):
    """Redis-backed cache; failures behave as misses so lookups stay best-effort."""

    def __init__(self, redis_client: Any = None, ttl_seconds: int = 24 * 3600):
        super().__init__()
        self.ttl_seconds = ttl_seconds
        self._redis_client = redis_client

    async def _client(self):
        if self._redis_client is None:
            from libs.caching.redis_client import get_redis_client

            self._redis_client = await get_redis_client()
        return self._redis_client

    @staticmethod
    def _redis_key(source: str, key: str) -> str:
        key_hash = hashlib.md5(key.encode("utf-8")).hexdigest()
        return f"cache:evidence:{source}:{key_hash}"

    async def get(self, source: str, key: str) -> Optional[Any]:
        client = await self._client()
        if client is None:
            self.stats.misses += 1
            return None
        try:
            raw = await client.get(self._redis_key(source, key))
        except Exception as e:
            logger.warning("Evidence cache read failed", source=source, error=str(e))
            self.stats.misses += 1
            return None
        if raw is None:
            self.stats.misses += 1
            return None
        try:
            value = json.loads(raw)
        except ValueError as e:
            logger.warning("Evidence cache entry is not valid JSON, treating as miss", source=source, error=str(e))
            self.stats.misses += 1
            return None
        self.stats.hits += 1
        return value

    async def put(self, source: str, key: str, value: Any) -> None:
        client = await self._client()
        if client is None:
            return
        try:
            await client.setex(self._redis_key(source, key), self.ttl_seconds, json.dumps(value))
            self.stats.writes += 1
        except Exception as e:
            logger.warning("Evidence cache write failed", source=source, error=str(e))


_process_cache: Optional[EvidenceCache] = None


def evidence_cache_factory(settings: Optional[Settings] = None) -> Callable[[], EvidenceCache]:
    """Return a callable producing the cache a request should use.

    ``memory`` and ``redis`` hand every request the same process-wide
    instance; ``request`` hands each request a fresh in-memory cache.
    """
    global _process_cache
    settings = settings or get_settings()
    backend = settings.evidence_cache_backend

    if backend == "request":
        return lambda: InMemoryEvidenceCache(ttl_seconds=None, max_entries=settings.evidence_cache_max_entries)

    if _process_cache is None:
        if backend == "redis":
            _process_cache = RedisEvidenceCache(ttl_seconds=settings.evidence_cache_ttl_seconds)
        else:
            _process_cache = InMemoryEvidenceCache(
                ttl_seconds=settings.evidence_cache_ttl_seconds,
                max_entries=settings.evidence_cache_max_entries,
            )
        logger.info("Evidence cache initialized", backend=backend, ttl_seconds=settings.evidence_cache_ttl_seconds)

    cache = _process_cache
    return lambda: cache


def reset_evidence_cache() -> None:
    """Drop the process-wide cache (tests and settings reloads)."""
    global _process_cache
    _process_cache = None
