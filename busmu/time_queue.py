"""A priority queue of values ordered by time, earliest first."""

from __future__ import annotations

import heapq
import itertools
from typing import Generic, TypeVar

from busmu.time import Time

T = TypeVar("T")


class TimeQueue(Generic[T]):
    """Min-heap keyed on :class:`Time`; entries with equal times come out in insertion order."""

    def __init__(self) -> None:
        self._heap: list[tuple[Time, int, T]] = []
        self._counter = itertools.count()

    def peek(self) -> tuple[Time, T] | None:
        """Return the earliest entry without removing it, or None when empty."""
        if not self._heap:
            return None
        time, _, value = self._heap[0]
        return time, value

    def pop(self) -> tuple[Time, T] | None:
        """Remove and return the earliest entry, or None when empty."""
        if not self._heap:
            return None
        time, _, value = heapq.heappop(self._heap)
        return time, value

    def push(self, time: Time, value: T) -> None:
        """Add ``value`` to be delivered at ``time``."""
        heapq.heappush(self._heap, (time, next(self._counter), value))

    def __len__(self) -> int:
        return len(self._heap)