"""Cache backends: the common interface and an in-memory LRU cache."""

from __future__ import annotations

import abc
import threading
import time
from typing import NamedTuple

from mosdns.concurrent_lru import ShardedLRU

SHARD_SIZE = 64
MIN_SIZE_PER_SHARD = 16
DEFAULT_CLEANER_INTERVAL = 60.0  # seconds


class CachedValue(NamedTuple):
    """A cached value with its store and expiration times (Unix seconds)."""

    value: bytes
    stored_time: float
    expiration_time: float


class CacheBackend(abc.ABC):
    """A cache backend.

    Backends never raise on cache errors: a cache failure is not fatal to a
    query, so implementations handle their errors themselves. Operations are
    expected to return quickly.
    """

    @abc.abstractmethod
    def get(self, key: str) -> CachedValue | None:
        """Return the cached value of key, or None. The value must not be modified."""

    @abc.abstractmethod
    def store(self, key: str, value: bytes, stored_time: float, expiration_time: float) -> None:
        """Store a copy of value. A no-op if expiration_time has already passed."""

    @abc.abstractmethod
    def __len__(self) -> int:
        """Return the number of cached entries."""

    @abc.abstractmethod
    def close(self) -> None:
        """Close the backend; get and store become no-ops."""

    def __enter__(self) -> CacheBackend:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class MemCache(CacheBackend):
    """A thread-safe LRU cache held in memory.

    The capacity is at least 1024 entries. A background thread drops expired
    entries every cleaner_interval seconds; a non-positive interval selects
    the default of one minute.
    """

    def __init__(self, size: int = 1024, cleaner_interval: float = DEFAULT_CLEANER_INTERVAL) -> None:
        size_per_shard = max(size // SHARD_SIZE, MIN_SIZE_PER_SHARD)
        self._lru: ShardedLRU[str, CachedValue] = ShardedLRU(SHARD_SIZE, size_per_shard)
        self._closed = threading.Event()
        if cleaner_interval <= 0:
            cleaner_interval = DEFAULT_CLEANER_INTERVAL
        self._cleaner = threading.Thread(
            target=self._cleaner_loop,
            args=(cleaner_interval,),
            name="mem-cache-cleaner",
            daemon=True,
        )
        self._cleaner.start()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def _cleaner_loop(self, interval: float) -> None:
        while not self._closed.wait(interval):
            self.clean_expired()

    def get(self, key: str) -> CachedValue | None:
        if self.closed:
            return None
        return self._lru.get(key)

    def store(self, key: str, value: bytes, stored_time: float, expiration_time: float) -> None:
        if self.closed:
            return
        if time.time() > expiration_time:
            return
        self._lru.add(key, CachedValue(bytes(value), stored_time, expiration_time))

    def clean_expired(self) -> int:
        """Drop every expired entry and return how many were dropped."""
        now = time.time()
        return self._lru.clean(lambda _key, entry: entry.expiration_time < now)

    def close(self) -> None:
        """Close the cache and stop its cleaner."""
        self._closed.set()

    def __len__(self) -> int:
        return len(self._lru)