"""Thread-safe LRU maps: a locked one and a sharded one."""

from __future__ import annotations

import threading
from collections.abc import Callable, Hashable
from typing import Any, Generic, TypeVar

from mosdns.lru import LRU

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class ConcurrentLRU(Generic[K, V]):
    """An LRU guarded by a lock."""

    def __init__(self, max_size: int, on_evict: Callable[[K, V], Any] | None = None) -> None:
        self._lock = threading.Lock()
        self._lru: LRU[K, V] = LRU(max_size, on_evict)

    def add(self, key: K, value: V) -> None:
        with self._lock:
            self._lru.add(key, value)

    def delete(self, key: K) -> None:
        with self._lock:
            self._lru.delete(key)

    def clean(self, predicate: Callable[[K, V], bool]) -> int:
        with self._lock:
            return self._lru.clean(predicate)

    def get(self, key: K, default: V | None = None) -> V | None:
        with self._lock:
            return self._lru.get(key, default)

    def __len__(self) -> int:
        with self._lock:
            return len(self._lru)


class ShardedLRU(Generic[K, V]):
    """Several ConcurrentLRU shards selected by key hash."""

    def __init__(
        self,
        shard_num: int,
        max_size_per_shard: int,
        on_evict: Callable[[K, V], Any] | None = None,
    ) -> None:
        if shard_num <= 0:
            raise ValueError(f"invalid shard number: {shard_num}")
        self._shards: list[ConcurrentLRU[K, V]] = [
            ConcurrentLRU(max_size_per_shard, on_evict) for _ in range(shard_num)
        ]

    def _shard(self, key: K) -> ConcurrentLRU[K, V]:
        return self._shards[hash(key) % len(self._shards)]

    def add(self, key: K, value: V) -> None:
        self._shard(key).add(key, value)

    def delete(self, key: K) -> None:
        self._shard(key).delete(key)

    def clean(self, predicate: Callable[[K, V], bool]) -> int:
        return sum(shard.clean(predicate) for shard in self._shards)

    def get(self, key: K, default: V | None = None) -> V | None:
        return self._shard(key).get(key, default)

    def __len__(self) -> int:
        return sum(len(shard) for shard in self._shards)