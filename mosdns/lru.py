"""A size-bounded least-recently-used map."""

from __future__ import annotations

from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from mosdns.linked_list import Elem, LinkedList

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(slots=True)
class _Entry(Generic[K, V]):
    key: K
    value: V


class LRU(Generic[K, V]):
    """An LRU map. Evicted or deleted entries are passed to on_evict."""

    def __init__(self, max_size: int, on_evict: Callable[[K, V], Any] | None = None) -> None:
        if max_size <= 0:
            raise ValueError(f"LRU: invalid max size: {max_size}")
        self._max_size = max_size
        self._on_evict = on_evict
        self._order: LinkedList[_Entry[K, V]] = LinkedList()
        self._index: dict[K, Elem[_Entry[K, V]]] = {}

    @property
    def max_size(self) -> int:
        return self._max_size

    def add(self, key: K, value: V) -> None:
        elem = self._index.get(key)
        if elem is not None:
            elem.value.value = value
            self._order.push_back(self._order.pop_elem(elem))
            return

        for _ in range(len(self) - self._max_size + 1):
            old_key, old_value = self.pop_oldest()
            if self._on_evict is not None:
                self._on_evict(old_key, old_value)

        elem = Elem(_Entry(key, value))
        self._index[key] = elem
        self._order.push_back(elem)

    def delete(self, key: K) -> None:
        elem = self._index.get(key)
        if elem is not None:
            self._remove(elem)

    def _remove(self, elem: Elem[_Entry[K, V]]) -> None:
        entry = elem.value
        self._order.pop_elem(elem)
        del self._index[entry.key]
        if self._on_evict is not None:
            self._on_evict(entry.key, entry.value)

    def pop_oldest(self) -> tuple[K, V]:
        """Remove and return the least recently used (key, value) pair."""
        elem = self._order.front
        if elem is None:
            raise KeyError("pop from an empty LRU")
        self._order.pop_elem(elem)
        entry = elem.value
        del self._index[entry.key]
        return entry.key, entry.value

    def clean(self, predicate: Callable[[K, V], bool]) -> int:
        """Remove every entry for which predicate(key, value) is true."""
        removed = 0
        for elem in self._order:
            if predicate(elem.value.key, elem.value.value):
                self._remove(elem)
                removed += 1
        return removed

    def get(self, key: K, default: V | None = None) -> V | None:
        """Return the value of key, marking it as recently used."""
        elem = self._index.get(key)
        if elem is None:
            return default
        self._order.push_back(self._order.pop_elem(elem))
        return elem.value.value

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def __len__(self) -> int:
        return len(self._order)