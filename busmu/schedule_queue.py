"""Doubly linked run queue of actors ordered by the time of their next message."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Hashable, Iterable, Iterator, TypeVar

from busmu.roster import EnumMap
from busmu.time import Time

N = TypeVar("N", bound=Hashable)


class QueueCorruptionError(RuntimeError):
    """Raised when the queue's links or time ordering are inconsistent."""


@dataclass
class _Entry(Generic[N]):
    next: N | None = None
    prev: N | None = None


class ScheduleQueue(Generic[N]):
    """Actors waiting to send, earliest first.

    ``time_of`` returns the current time of an actor's pending message; the
    queue keeps no copy of it, so callers must re-add an actor whose time
    changes. Actors with equal times keep the order in which they were added.
    """

    def __init__(self, names: Iterable[N], time_of: Callable[[N], Time]) -> None:
        self._time_of = time_of
        self._entries: EnumMap[N, _Entry[N]] = EnumMap(names, lambda _: _Entry())
        self._head: N | None = None
        self.count_adds = 0
        self.count_add_complexity = 0
        self.count_removes = 0

    def _bound(self, name: N) -> Time:
        return self._time_of(name).lower_bound()

    def head(self) -> N | None:
        """The actor due first, or None when the queue is empty."""
        return self._head

    def __contains__(self, name: object) -> bool:
        if name not in self._entries:
            return False
        return self._head == name or self._entries[name].prev is not None

    def __iter__(self) -> Iterator[N]:
        current = self._head
        while current is not None:
            yield current
            current = self._entries[current].next

    def add(self, name: N, time: Time) -> None:
        """Insert ``name``, due at ``time``, after every actor due no later."""
        self.count_adds += 1
        self.count_add_complexity += 1
        entry = self._entries[name]

        head = self._head
        if head is None:
            self._head = name
            entry.prev = None
            entry.next = None
            return
        if self._bound(head) > time:
            self._head = name
            entry.prev = None
            entry.next = head
            self._entries[head].prev = name
            return

        prev = head
        following = self._entries[head].next
        while True:
            self.count_add_complexity += 1
            if following is None:
                entry.prev = prev
                entry.next = None
                self._entries[prev].next = name
                return
            following_entry = self._entries[following]
            if self._bound(following) <= time:
                prev = following
                following = following_entry.next
                continue
            if following_entry.prev != prev:
                raise QueueCorruptionError(
                    f"{following!r}'s prev is {following_entry.prev!r}, expected {prev!r}"
                )
            following_entry.prev = name
            self._entries[prev].next = name
            entry.next = following
            entry.prev = prev
            return

    def readd(self, name: N, time: Time) -> None:
        """Move the already queued ``name`` to its place for ``time``."""
        if name not in self:
            raise KeyError(name)
        if self._head == name:
            following = self._entries[name].next
            if following is None or self._bound(following) > time:
                self.count_adds += 1
                self.count_add_complexity += 1
                return
        self._unlink(name)
        self.add(name, time)

    def remove(self, name: N) -> None:
        """Take ``name`` out of the queue; KeyError if it is not queued."""
        if name not in self:
            raise KeyError(name)
        self.count_removes += 1
        self._unlink(name)

    def _unlink(self, name: N) -> None:
        entry = self._entries[name]
        prev, following = entry.prev, entry.next
        entry.prev = None
        entry.next = None
        if prev is None:
            self._head = following
        else:
            self._entries[prev].next = following
        if following is not None:
            self._entries[following].prev = prev

    def pop(self) -> tuple[N | None, Time, Time]:
        """Remove the head.

        Returns ``(name, time, limit)``: the actor, its time, and the earliest
        time of the actor now at the head (``Time.MAX`` if none). An empty
        queue gives ``(None, Time.MAX, Time.MAX)``.
        """
        sender = self._head
        if sender is None:
            return None, Time.MAX, Time.MAX
        entry = self._entries[sender]
        if entry.prev is not None:
            raise QueueCorruptionError(
                f"{sender!r}'s prev should be None, but is {entry.prev!r}"
            )
        following = entry.next
        entry.next = None
        self._head = following
        if following is None:
            limit = Time.MAX
        else:
            if following == sender:
                raise QueueCorruptionError(f"{sender!r} links to itself")
            self._entries[following].prev = None
            limit = self._bound(following)
        return sender, self._time_of(sender), limit

    def validate(self) -> None:
        """Check every link and the time ordering; raise QueueCorruptionError if broken."""
        for name, entry in self._entries.items():
            time = self._bound(name)
            if entry.next is not None:
                following = self._entries[entry.next]
                if following.prev != name:
                    raise QueueCorruptionError(
                        f"actor {name!r}'s next actor {entry.next!r} prev points to "
                        f"{following.prev!r} instead of {name!r}\n{self.describe()}"
                    )
                if self._time_of(entry.next) < time:
                    raise QueueCorruptionError(
                        f"actor {name!r}'s next actor {entry.next!r} has a lower time "
                        f"bound ({self._time_of(entry.next)}) than {name!r} ({time})"
                        f"\n{self.describe()}"
                    )
            if entry.prev is not None:
                preceding = self._entries[entry.prev]
                if preceding.next != name:
                    raise QueueCorruptionError(
                        f"actor {name!r}'s prev actor {entry.prev!r} next points to "
                        f"{preceding.next!r} instead of {name!r}\n{self.describe()}"
                    )
                if self._time_of(entry.prev) > time:
                    raise QueueCorruptionError(
                        f"actor {name!r}'s prev actor {entry.prev!r} has a higher time "
                        f"bound ({self._time_of(entry.prev)}) than {name!r} ({time})"
                        f"\n{self.describe()}"
                    )

    def describe(self) -> str:
        """A readable listing of the queue, head first."""
        lines = [f"Queue: (Head = {self._head!r})"]
        for name in self:
            entry = self._entries[name]
            lines.append(
                f"    {name!r} @ {self._bound(name)} ({entry.prev!r}, {entry.next!r})"
            )
        return "\n".join(lines)