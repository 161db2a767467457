"""Response cache in front of the Chronicling America API.

Entries are keyed by the fully resolved upstream URL and live for a TTL that
depends on what kind of archive resource the URL points at. Nothing is purged
proactively: a stale entry is simply treated as absent and overwritten by the
next fetch. Concurrent misses for the same URL may both go upstream.
"""
from __future__ import annotations

import base64
import enum
import json
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass
from typing import Protocol

from cachetools import TLRUCache
from redis.exceptions import RedisError

from app.config import Settings
from app.metrics import ARCHIVE_CACHE_LOOKUPS

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class CacheClass(str, enum.Enum):
    search = "search"
    page = "page"
    titles = "titles"
    default = "default"


DEFAULT_TTLS: dict[CacheClass, float] = {
    CacheClass.search: 15 * 60,  # ranked results shift often
    CacheClass.page: 6 * 60 * 60,
    CacheClass.titles: 24 * 60 * 60,
    CacheClass.default: 60 * 60,
}


def classify_endpoint(endpoint: str) -> CacheClass:
    """Map an archive endpoint path to its cache class. First match wins."""
    if endpoint.startswith("search/pages/results") or endpoint.startswith(
        "search/titles/results"
    ):
        return CacheClass.search
    if "/seq-" in endpoint:
        return CacheClass.page
    if endpoint.startswith("newspapers") or endpoint.startswith("lccn"):
        return CacheClass.titles
    return CacheClass.default


@dataclass(frozen=True)
class CacheEntry:
    url: str
    body: bytes
    content_type: str
    captured_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.captured_at < self.ttl

    def to_json(self) -> str:
        data = asdict(self)
        data["body"] = base64.b64encode(self.body).decode("ascii")
        return json.dumps(data)

    @classmethod
    def from_json(cls, raw: str | bytes) -> CacheEntry:
        data = json.loads(raw)
        data["body"] = base64.b64decode(data["body"], validate=True)
        return cls(**data)


class CacheBackend(Protocol):
    async def get(self, url: str) -> CacheEntry | None: ...

    async def set(self, entry: CacheEntry) -> None: ...


class MemoryCacheBackend:
    """Process-local store. Restarting the process loses every entry."""

    def __init__(self, clock: Clock, maxsize: int) -> None:
        self._entries: TLRUCache[str, CacheEntry] = TLRUCache(
            maxsize=maxsize, ttu=self._expires_at, timer=clock
        )

    @staticmethod
    def _expires_at(_url: str, entry: CacheEntry, _now: float) -> float:
        return entry.captured_at + entry.ttl

    async def get(self, url: str) -> CacheEntry | None:
        return self._entries.get(url)

    async def set(self, entry: CacheEntry) -> None:
        self._entries[entry.url] = entry

    def __len__(self) -> int:
        return len(self._entries)


class RedisCacheBackend:
    """Shared store for multi-worker deployments.

    Redis failures and unreadable entries degrade to cache misses; they never
    fail the request.
    """

    def __init__(self, client: object, clock: Clock, prefix: str = "archive_cache:") -> None:
        self._client = client
        self._clock = clock
        self._prefix = prefix

    async def get(self, url: str) -> CacheEntry | None:
        try:
            raw = await self._client.get(self._prefix + url)  # type: ignore[attr-defined]
        except RedisError as exc:
            logger.warning(
                "Archive cache: Redis read failed (%s), treating as miss",
                exc.__class__.__name__,
            )
            return None
        if raw is None:
            return None
        try:
            entry = CacheEntry.from_json(raw)
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning(
                "Archive cache: unreadable entry for %s (%s), treating as miss",
                url,
                exc.__class__.__name__,
            )
            return None
        if not entry.is_fresh(self._clock()):
            return None
        return entry

    async def set(self, entry: CacheEntry) -> None:
        try:
            await self._client.set(  # type: ignore[attr-defined]
                self._prefix + entry.url,
                entry.to_json(),
                ex=max(1, int(entry.ttl)),
            )
        except RedisError as exc:
            logger.warning(
                "Archive cache: Redis write failed (%s), entry not stored",
                exc.__class__.__name__,
            )

    async def ping(self) -> bool:
        return bool(await self._client.ping())  # type: ignore[attr-defined]

    async def close(self) -> None:
        await self._client.aclose()  # type: ignore[attr-defined]


class ArchiveCache:
    def __init__(
        self,
        backend: CacheBackend,
        ttls: Mapping[CacheClass, float] | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self._backend = backend
        self._ttls = dict(DEFAULT_TTLS)
        if ttls:
            self._ttls.update(ttls)
        self._clock = clock

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    def ttl_for(self, cache_class: CacheClass) -> float:
        return self._ttls[cache_class]

    async def lookup(self, url: str, endpoint: str) -> CacheEntry | None:
        cache_class = classify_endpoint(endpoint)
        entry = await self._backend.get(url)
        if entry is not None and not entry.is_fresh(self._clock()):
            entry = None
        ARCHIVE_CACHE_LOOKUPS.labels(
            cache_class.value, "hit" if entry is not None else "miss"
        ).inc()
        return entry

    async def store(
        self, url: str, endpoint: str, body: bytes, content_type: str
    ) -> CacheEntry:
        cache_class = classify_endpoint(endpoint)
        entry = CacheEntry(
            url=url,
            body=body,
            content_type=content_type,
            captured_at=self._clock(),
            ttl=self.ttl_for(cache_class),
        )
        await self._backend.set(entry)
        return entry


def create_archive_cache(s: Settings) -> ArchiveCache:
    """Build the cache once at startup from settings."""
    if s.archive_cache_backend == "redis":
        import redis.asyncio as redis_asyncio

        client = redis_asyncio.Redis.from_url(s.redis_url, socket_timeout=1)
        # Entries are shared between processes, so freshness uses wall time.
        clock: Clock = time.time
        logger.info("Archive cache: using Redis backend")
        return ArchiveCache(RedisCacheBackend(client, clock), clock=clock)
    clock = time.monotonic
    return ArchiveCache(
        MemoryCacheBackend(clock, s.archive_cache_max_entries), clock=clock
    )
