"""
In-process query cache: per-key results with staleness, coalescing of
concurrent identical fetches and prefix invalidation. Optimistic updates roll
back to a snapshot. Entries left stale and unused for gc_time are dropped.
"""
import asyncio
import copy
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from property_inbox.cache.keys import QueryKey, StaleTime
from property_inbox.core.config import settings

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]
Updater = Callable[[Any], Any]


@dataclass
class CacheEntry:
    data: Any
    updated_at: float
    stale_time: float
    invalidated: bool = False
    last_used: float = 0.0

    def is_stale(self, now: float) -> bool:
        return self.invalidated or (now - self.updated_at) >= self.stale_time


@dataclass(frozen=True)
class Snapshot:
    """Copy of one key's entry (or its absence) taken before an optimistic write."""
    key: QueryKey
    entry: Optional[CacheEntry]


def _matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


def _is_client_error(exc: BaseException) -> bool:
    status_code = getattr(exc, "status_code", None)
    return isinstance(status_code, int) and 400 <= status_code < 500


class QueryCache:
    """Tracks cached query results for one process. Not thread-safe; use from one event loop."""

    def __init__(
        self,
        *,
        default_stale_time: float = StaleTime.STANDARD,
        retries: int = 1,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 10.0,
        gc_time: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_stale_time = default_stale_time
        self.retries = retries
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self.gc_time = gc_time
        self._clock = clock
        self._last_gc = clock()
        self._entries: Dict[QueryKey, CacheEntry] = {}
        self._in_flight: Dict[QueryKey, "asyncio.Future[Any]"] = {}
        # Only keys with a fetch in flight. Bumped by writes and invalidations; a
        # fetch that started under an older generation does not overwrite the entry.
        self._generation: Dict[QueryKey, int] = {}

    # --- reads ---

    async def fetch(self, key: QueryKey, fetcher: Fetcher, *, stale_time: Optional[float] = None) -> Any:
        """
        Return cached data for key if fresh; otherwise run fetcher once, sharing
        the result with every concurrent caller asking for the same key.
        """
        now = self._clock()
        if now - self._last_gc >= self.gc_time:
            self.collect_garbage()
        entry = self._entries.get(key)
        if entry is not None and not entry.is_stale(now):
            entry.last_used = now
            return entry.data

        pending = self._in_flight.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        future: "asyncio.Future[Any]" = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        generation = self._generation[key] = 0
        try:
            data = await self._fetch_with_retry(key, fetcher)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so an unawaited shared future does not log.
            future.exception()
            raise
        else:
            if self._generation.get(key) == generation:
                stored_at = self._clock()
                self._entries[key] = CacheEntry(
                    data=data,
                    updated_at=stored_at,
                    stale_time=self.default_stale_time if stale_time is None else stale_time,
                    last_used=stored_at,
                )
            future.set_result(data)
            return data
        finally:
            if self._in_flight.get(key) is future:
                del self._in_flight[key]
                self._generation.pop(key, None)

    async def _fetch_with_retry(self, key: QueryKey, fetcher: Fetcher) -> Any:
        attempt = 0
        while True:
            try:
                return await fetcher()
            except Exception as exc:
                if attempt >= self.retries or _is_client_error(exc):
                    if attempt:
                        logger.warning("Query %s failed after %s retries: %s", key[0], attempt, exc)
                    raise
                delay = min(self.retry_base_delay * (2 ** attempt), self.retry_max_delay)
                attempt += 1
                logger.info("Query %s failed (%s); retry %s in %.1fs", key[0], exc, attempt, delay)
                await asyncio.sleep(delay)

    def get_query_data(self, key: QueryKey) -> Any:
        entry = self._entries.get(key)
        return entry.data if entry is not None else None

    def is_stale(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        return entry is None or entry.is_stale(self._clock())

    def is_fetching(self, key: QueryKey) -> bool:
        return key in self._in_flight

    # --- writes ---

    def _bump(self, key: QueryKey) -> None:
        if key in self._generation:
            self._generation[key] += 1

    def set_query_data(self, key: QueryKey, updater: Updater, *, stale_time: Optional[float] = None) -> Any:
        """
        Replace key's data with updater(current_data). An updater returning None
        leaves the cache untouched.
        """
        current = self._entries.get(key)
        new_data = updater(current.data if current is not None else None)
        if new_data is None:
            return None
        if stale_time is None:
            stale_time = current.stale_time if current is not None else self.default_stale_time
        now = self._clock()
        self._entries[key] = CacheEntry(data=new_data, updated_at=now, stale_time=stale_time, last_used=now)
        self._bump(key)
        return new_data

    def invalidate(self, prefix: QueryKey) -> int:
        """Mark every entry under prefix stale. Returns the number of entries marked."""
        count = 0
        for key, entry in self._entries.items():
            if _matches(key, prefix):
                entry.invalidated = True
                count += 1
        for key in list(self._generation):
            if _matches(key, prefix):
                self._bump(key)
        return count

    def remove(self, prefix: QueryKey) -> None:
        for key in [k for k in self._entries if _matches(k, prefix)]:
            del self._entries[key]
            self._bump(key)

    def clear(self) -> None:
        for key in list(self._generation):
            self._bump(key)
        self._entries.clear()

    def collect_garbage(self) -> int:
        """Drop entries that are stale and have not been used for gc_time. Returns the number dropped."""
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if entry.is_stale(now) and now - entry.last_used >= self.gc_time
        ]
        for key in expired:
            del self._entries[key]
        self._last_gc = now
        if expired:
            logger.debug("Query cache dropped %s unused entries", len(expired))
        return len(expired)

    @property
    def size(self) -> int:
        return len(self._entries)

    # --- optimistic updates ---

    def snapshot(self, key: QueryKey) -> Snapshot:
        return Snapshot(key=key, entry=copy.deepcopy(self._entries.get(key)))

    def restore(self, snapshot: Snapshot) -> None:
        """Put key back exactly as it was when the snapshot was taken."""
        if snapshot.entry is None:
            self._entries.pop(snapshot.key, None)
        else:
            self._entries[snapshot.key] = copy.deepcopy(snapshot.entry)
        self._bump(snapshot.key)

    @asynccontextmanager
    async def optimistic(self, key: QueryKey, updater: Updater):
        """
        Snapshot key, apply updater immediately, then run the body. If the body
        raises, the snapshot is restored and the exception propagates.
        """
        snap = self.snapshot(key)
        self.set_query_data(key, updater)
        try:
            yield snap
        except BaseException:
            self.restore(snap)
            raise


query_cache = QueryCache(
    default_stale_time=StaleTime.STANDARD,
    retries=settings.CACHE_QUERY_RETRIES,
    retry_base_delay=settings.CACHE_RETRY_BASE_DELAY,
    retry_max_delay=settings.CACHE_RETRY_MAX_DELAY,
    gc_time=settings.CACHE_GC_TIME,
)


def get_query_cache() -> QueryCache:
    """FastAPI dependency for the process-wide cache."""
    return query_cache
