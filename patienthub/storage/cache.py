"""
Time-based query cache.

``TTLCache`` memoises the result of a fetch under a string key for a fixed
window. Expiry is lazy: an entry is dropped when a read finds it stale, or
when an insert into a full cache sweeps the store. ``CachedResource`` wraps
an async fetcher around the shared cache and is what request handlers use
to serve list and detail reads.

There is no stampede protection: two resources asking for the same cold
key both call their fetcher.
"""
import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from ..core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

EVICTION_RATIO = 0.2


@dataclass
class CacheEntry(Generic[T]):
    data: T
    timestamp: float
    expires_at: float


class TTLCache(Generic[T]):
    def __init__(self, ttl: float = 300, max_size: int = 100,
                 clock: Callable[[], float] = time.monotonic):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def set(self, key: str, data: T) -> None:
        now = self._clock()
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._cleanup(now)
        self._entries[key] = CacheEntry(data=data, timestamp=now, expires_at=now + self.ttl)

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            self._misses += 1
            return None
        self._hits += 1
        return entry.data

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return False
        return True

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def invalidate_pattern(self, pattern: str) -> int:
        """Drop every key matching ``pattern`` (``re.search`` semantics)."""
        regex = re.compile(pattern)
        keys = [key for key in self._entries if regex.search(key)]
        for key in keys:
            del self._entries[key]
        if keys:
            logger.debug("Invalidated %d cache entries for pattern %s", len(keys), pattern)
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()

    def get_stats(self) -> Dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "ttl": self.ttl,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": (self._hits / lookups * 100) if lookups else 0.0,
        }

    def _cleanup(self, now: float) -> None:
        # Expired entries first, then the oldest fifth of capacity
        for key in [k for k, e in self._entries.items() if now >= e.expires_at]:
            del self._entries[key]

        if len(self._entries) >= self.max_size:
            to_delete = max(1, int(self.max_size * EVICTION_RATIO))
            oldest = sorted(self._entries.items(), key=lambda item: item[1].timestamp)
            for key, _ in oldest[:to_delete]:
                del self._entries[key]
            logger.debug("Cache full, evicted %d oldest entries", min(to_delete, len(oldest)))


# Shared cache for data fetched by request handlers
global_cache: TTLCache[Any] = TTLCache(
    ttl=settings.CACHE_TTL_SECONDS,
    max_size=settings.CACHE_MAX_SIZE,
)


class CacheKeys:
    @staticmethod
    def patients(osteopath_id: int) -> str:
        return f"patients:{osteopath_id}"

    @staticmethod
    def patient(patient_id: int) -> str:
        return f"patient:{patient_id}"

    @staticmethod
    def appointments(osteopath_id: int) -> str:
        return f"appointments:{osteopath_id}"

    @staticmethod
    def appointment(appointment_id: int) -> str:
        return f"appointment:{appointment_id}"

    @staticmethod
    def invoices(osteopath_id: int) -> str:
        return f"invoices:{osteopath_id}"

    @staticmethod
    def invoice(invoice_id: int) -> str:
        return f"invoice:{invoice_id}"

    @staticmethod
    def consultations(osteopath_id: int) -> str:
        return f"consultations:{osteopath_id}"

    @staticmethod
    def consultation(consultation_id: int) -> str:
        return f"consultation:{consultation_id}"

    @staticmethod
    def entity_pattern(prefix: str) -> str:
        """Pattern matching both the list and detail keys of an entity."""
        singular = prefix[:-1] if prefix.endswith("s") else prefix
        return rf"^(?:{re.escape(prefix)}|{re.escape(singular)}):"


Fetcher = Callable[[], Awaitable[T]]


class CachedResource(Generic[T]):
    """
    A cached, cancellable read of one key.

    ``fetch`` answers from the cache when it can. Otherwise it runs the
    fetcher as a task; starting a new fetch cancels the one still in
    flight, and only a fetch that was not superseded writes its result to
    the cache.
    """

    def __init__(self, key: str, fetcher: Fetcher, cache: TTLCache = None,
                 enabled: bool = True):
        self.key = key
        self.fetcher = fetcher
        self.cache = cache if cache is not None else global_cache
        self.enabled = enabled
        self.data: Optional[T] = None
        self.error: Optional[BaseException] = None
        self.loading = False
        self._task: Optional[asyncio.Task] = None

    async def fetch(self, force_refresh: bool = False) -> Optional[T]:
        if not self.enabled:
            return None

        self.cancel()

        if not force_refresh:
            cached = self.cache.get(self.key)
            if cached is not None:
                self.data = cached
                self.error = None
                self.loading = False
                return cached

        self.loading = True
        self.error = None
        task = asyncio.ensure_future(self.fetcher())
        self._task = task
        try:
            result = await task
        except asyncio.CancelledError:
            if task.cancelled() and self._task is not task:
                # Superseded by a newer fetch; that one owns the state
                return None
            raise
        except Exception as e:
            if self._task is task:
                self.error = e
                self.data = None
                self.loading = False
            raise
        finally:
            if self._task is task:
                self._task = None

        self.cache.set(self.key, result)
        self.data = result
        self.loading = False
        return result

    async def refetch(self) -> Optional[T]:
        return await self.fetch(force_refresh=True)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.loading = False

    def invalidate(self) -> None:
        self.cache.invalidate(self.key)

    def invalidate_pattern(self, pattern: str) -> int:
        return self.cache.invalidate_pattern(pattern)

    @property
    def is_from_cache(self) -> bool:
        return not self.loading and self.data is not None and self.cache.has(self.key)


async def prefetch(key: str, fetcher: Fetcher, cache: TTLCache = None) -> None:
    """Warm ``key`` unless it is already cached; failures are only logged."""
    cache = cache if cache is not None else global_cache
    if cache.has(key):
        return
    try:
        cache.set(key, await fetcher())
    except Exception as e:
        logger.warning("Prefetch failed for key %s: %s", key, e)


async def optimistic_update(key: str, value: T, update_fn: Fetcher,
                            cache: TTLCache = None) -> T:
    """
    Publish ``value`` under ``key`` before ``update_fn`` completes.

    On success the cached value is replaced by the real result; on failure
    the previous value is restored (or the key dropped) and the error
    propagates.
    """
    cache = cache if cache is not None else global_cache
    previous = cache.get(key)
    cache.set(key, value)
    try:
        result = await update_fn()
    except Exception:
        if previous is not None:
            cache.set(key, previous)
        else:
            cache.invalidate(key)
        raise
    cache.set(key, result)
    return result
