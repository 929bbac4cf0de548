"""A minimal doubly linked list whose elements can be moved in O(1)."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Generic, TypeVar

V = TypeVar("V")


class Elem(Generic[V]):
    """A list element carrying a value."""

    __slots__ = ("value", "_prev", "_next", "_list")

    def __init__(self, value: V) -> None:
        self.value = value
        self._prev: Elem[V] | None = None
        self._next: Elem[V] | None = None
        self._list: LinkedList[V] | None = None

    @property
    def prev(self) -> Elem[V] | None:
        """The previous element, or None at the front."""
        return self._prev

    @property
    def next(self) -> Elem[V] | None:
        """The next element, or None at the back."""
        return self._next

    def __repr__(self) -> str:
        return f"Elem({self.value!r})"


class LinkedList(Generic[V]):
    """A doubly linked list of Elem objects."""

    def __init__(self) -> None:
        self._front: Elem[V] | None = None
        self._back: Elem[V] | None = None
        self._length = 0

    @property
    def front(self) -> Elem[V] | None:
        return self._front

    @property
    def back(self) -> Elem[V] | None:
        return self._back

    def __len__(self) -> int:
        return self._length

    def __iter__(self) -> Iterator[Elem[V]]:
        """Iterate over elements front to back; the current one may be popped."""
        elem = self._front
        while elem is not None:
            following = elem._next
            yield elem
            elem = following

    @staticmethod
    def _check_free(elem: Elem[V]) -> None:
        if elem._prev is not None or elem._next is not None or elem._list is not None:
            raise ValueError("element is in use")

    def push_front(self, elem: Elem[V]) -> Elem[V]:
        self._check_free(elem)
        self._length += 1
        elem._list = self
        if self._front is None:
            self._front = self._back = elem
        else:
            elem._next = self._front
            self._front._prev = elem
            self._front = elem
        return elem

    def push_back(self, elem: Elem[V]) -> Elem[V]:
        self._check_free(elem)
        self._length += 1
        elem._list = self
        if self._back is None:
            self._front = self._back = elem
        else:
            elem._prev = self._back
            self._back._next = elem
            self._back = elem
        return elem

    def pop_elem(self, elem: Elem[V]) -> Elem[V]:
        """Unlink elem from this list and return it."""
        if elem._list is not self:
            raise ValueError("element does not belong to this list")
        self._length -= 1
        if elem._prev is not None:
            elem._prev._next = elem._next
        if elem._next is not None:
            elem._next._prev = elem._prev
        if elem is self._front:
            self._front = elem._next
        if elem is self._back:
            self._back = elem._prev
        elem._prev = elem._next = None
        elem._list = None
        return elem