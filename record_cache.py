"""Shared record cache with in-flight de-duplication."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Set

logger = logging.getLogger("smartbutton.cache")

Record = Dict[str, Any]
Loader = Callable[[str, str], Awaitable[Record]]


class _CacheState:
    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:  # pragma: no cover - debug aid
        return self._name


PENDING: Any = _CacheState("PENDING")
MISS: Any = _CacheState("MISS")


@dataclass
class CacheEntry:
    record: Record | None = None
    is_loading: bool = False


def cache_key(entity: str, record_id: str) -> str:
    return f"{entity}:{record_id}"


class RecordCache:
    """Process-wide ``entity:id -> record`` store.

    At most one fetch per key is in flight: later callers poll the loading
    marker with a linearly growing delay and, once ``max_attempts`` is spent,
    treat the marker as stuck and fetch themselves.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        retry_delay: float = 0.1,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._entries: Dict[str, CacheEntry] = {}
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._sleep = sleep

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, entity: str, record_id: str) -> Any:
        entry = self._entries.get(cache_key(entity, record_id))
        if entry is None:
            return MISS
        if entry.is_loading:
            return PENDING
        return entry.record

    def put(self, entity: str, record_id: str, record: Record) -> None:
        self._entries[cache_key(entity, record_id)] = CacheEntry(record=record)

    def invalidate(self, keys: Iterable[str]) -> int:
        removed = 0
        for key in list(keys):
            if self._entries.pop(key, None) is not None:
                removed += 1
        if removed:
            logger.info("cache_invalidate removed=%s", removed)
        return removed

    def clear(self) -> None:
        self._entries.clear()

    def _completed(self, key: str) -> Record | None:
        entry = self._entries.get(key)
        if entry is not None and not entry.is_loading:
            return entry.record
        return None

    async def fetch_with_cache(self, entity: str, record_id: str, loader: Loader) -> Record:
        key = cache_key(entity, record_id)
        cached = self._completed(key)
        if cached is not None:
            logger.debug("cache_hit key=%s", key)
            return cached

        attempt = 0
        while attempt < self._max_attempts:
            entry = self._entries.get(key)
            if entry is None or not entry.is_loading:
                break
            attempt += 1
            await self._sleep(self._retry_delay * attempt)
            cached = self._completed(key)
            if cached is not None:
                logger.debug("cache_hit_after_wait key=%s attempts=%s", key, attempt)
                return cached
        else:
            logger.warning("cache_wait_exhausted key=%s attempts=%s", key, attempt)

        marker = CacheEntry(is_loading=True)
        self._entries[key] = marker
        logger.debug("cache_miss key=%s", key)
        try:
            record = await loader(entity, record_id)
        except BaseException:
            if self._entries.get(key) is marker:
                del self._entries[key]
            raise
        if self._entries.get(key) is marker:
            self._entries[key] = CacheEntry(record=record)
        else:
            logger.debug("cache_store_skipped key=%s reason=invalidated", key)
        return record


class CacheScope:
    """Per-render view of a RecordCache that remembers the keys it touched."""

    def __init__(self, cache: RecordCache, loader: Loader) -> None:
        self.cache = cache
        self._loader = loader
        self._keys: Set[str] = set()

    @property
    def keys(self) -> Set[str]:
        return set(self._keys)

    async def fetch(self, entity: str, record_id: str) -> Record:
        self._keys.add(cache_key(entity, record_id))
        return await self.cache.fetch_with_cache(entity, record_id, self._loader)

    def invalidate(self) -> int:
        keys, self._keys = self._keys, set()
        return self.cache.invalidate(keys)
