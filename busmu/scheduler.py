"""Runs actors in time order, delivering each actor's pending message in turn."""

from __future__ import annotations

import queue
from typing import Any, Generic, Hashable, TypeVar

from busmu.core import ControlMessage, Instance, UpdateMessage
from busmu.messaging import Actor, SchedulerResult
from busmu.roster import ActorBox, ObjectStore, Roster
from busmu.schedule_queue import ScheduleQueue
from busmu.time import Time

N = TypeVar("N", bound=Hashable)


class ZeroLimitCycleError(RuntimeError):
    """Raised when messages keep being scheduled on the same cycle without settling."""


class Scheduler(Generic[N]):
    """Delivers messages between the actors of a roster, earliest first.

    Every actor holds at most one outgoing message. The actor whose message is
    due first is taken from the run queue, its message is handed to the
    receiver, and both actors are put back in the queue at the times of their
    new messages. Messages due on the same cycle are delivered in the order
    they were queued.
    """

    def __init__(self, roster: Roster[N], config: Any) -> None:
        self.roster = roster
        self._actors: ObjectStore[N] = ObjectStore(roster, config)
        self._queue: ScheduleQueue[N] = ScheduleQueue(roster, self._time_of)
        self._count = 0
        self._zero_limit_count = 0

        for name in roster:
            time = self._time_of(name)
            if time != Time.MAX:
                self._queue.add(name, time)
        if self._queue.head() is None:
            raise RuntimeError("No schedulable actors found")

    def _time_of(self, name: N) -> Time:
        return self._actors.get_base(name).outbox.time

    def get(self, actor_cls: type) -> Actor:
        """The actor of class ``actor_cls``."""
        return self._actors.get(actor_cls).obj

    def _take_next(self) -> tuple[N, Time, Time]:
        name, time, limit = self._queue.pop()
        if name is None or time == Time.MAX:
            raise RuntimeError(f"nothing left to schedule (next: {name!r}, time: {time})")
        return name, time, limit

    def step(self) -> SchedulerResult:
        """Deliver the message that is due first and return the receiver's result."""
        sender, _, limit = self._take_next()
        result = self._run_inner(sender, limit)
        if result is SchedulerResult.ZERO_LIMIT:
            self._zero_limit_count += 1
        return result

    def run(self, control_rx: queue.Queue, updates_tx: queue.Queue) -> None:
        """Deliver messages until ``ControlMessage.PAUSE`` arrives on ``control_rx``.

        ``ControlMessage.UI_SYNC`` is answered with ``UpdateMessage.UI_SYNCED``
        on ``updates_tx``. Errors raised by actors propagate.
        """
        while True:
            try:
                control = control_rx.get_nowait()
            except queue.Empty:
                pass
            else:
                if control is ControlMessage.PAUSE:
                    return
                if control is ControlMessage.UI_SYNC:
                    updates_tx.put(UpdateMessage.UI_SYNCED)
            self.step()

    def run_zero_limit(self, time: Time, limit: Time) -> None:
        """Deliver every message due at ``time`` until the cycle settles.

        Used when several messages fall on one cycle and a receiver could not
        cope with a zero limit. Raises ZeroLimitCycleError if the cycle never
        settles.
        """
        if time != limit:
            raise ValueError("Actor incorrectly reported a zero limit")

        for _ in range(len(self.roster) * 3):
            for name in self.roster:
                if self._time_of(name).lower_bound() != time:
                    continue
                if name in self._queue:
                    self._queue.remove(name)
                self._run_inner(name, time)

            pending = iter(self._queue)
            head = next(pending, None)
            if head is None:
                return
            following = next(pending, None)
            next_time = self._time_of(head)
            next_limit = Time.MAX if following is None else self._time_of(following).lower_bound()
            if next_time != next_limit:
                return
        raise ZeroLimitCycleError("Zero limit cycle detected")

    def stats(self) -> dict[str, Any]:
        """Counters describing the work the scheduler has done."""
        adds = self._queue.count_adds
        complexity = self._queue.count_add_complexity / adds if adds else 0.0
        return {
            "count": self._count,
            "zero_limit_count": self._zero_limit_count,
            "queue_adds": adds,
            "queue_add_complexity": complexity,
            "queue_removes": self._queue.count_removes,
        }

    def _run_inner(self, sender_name: N, limit: Time) -> SchedulerResult:
        self._count += 1
        sender_box = self._actors.get_base(sender_name)
        packet = sender_box.outbox.take()
        if packet is None:
            raise RuntimeError("Scheduler tried to execute an empty message")
        receiver_cls = packet.receiver
        message_type = packet.message_type
        taken = packet.take()
        if taken is None or receiver_cls is None or message_type is None:
            raise RuntimeError("Scheduler tried to execute an empty message")
        time, message = taken

        sender_cls = self.roster.class_of(sender_name)
        if receiver_cls is sender_cls:
            return self._execute_self(sender_name, sender_box, message_type, message, time, limit)
        return self._execute(sender_name, sender_box, receiver_cls, message_type, message, time, limit)

    @staticmethod
    def _deliver(
        box: ActorBox, receiver_cls: type, message_type: type, message: Any, time: Time, limit: Time
    ) -> SchedulerResult:
        handler = receiver_cls.handler_for(message_type)
        result = handler(box.obj, box.outbox, message, time, limit)
        return SchedulerResult.OK if result is None else result

    def _execute(
        self,
        sender_name: N,
        sender_box: ActorBox,
        receiver_cls: type,
        message_type: type,
        message: Any,
        time: Time,
        limit: Time,
    ) -> SchedulerResult:
        before_delivered = sender_box.outbox.time
        sender_box.obj.delivering(sender_box.outbox, message, time)
        after_delivered = sender_box.outbox.time

        # A new message from the sender may come due before the old limit.
        limit = min(limit, after_delivered)

        receiver_name = self.roster.name_of(receiver_cls)
        receiver_box = self._actors.get_base(receiver_name)
        before = receiver_box.outbox.time
        result = self._deliver(receiver_box, receiver_cls, message_type, message, time, limit)
        after = receiver_box.outbox.time

        if before != after:
            if before != Time.MAX:
                self._queue.remove(receiver_name)
            if after != Time.MAX:
                self._queue.add(receiver_name, after)
        if before_delivered != after_delivered:
            self._queue.add(sender_name, after_delivered)
        return result

    def _execute_self(
        self,
        name: N,
        box: ActorBox,
        message_type: type,
        message: Any,
        time: Time,
        limit: Time,
    ) -> SchedulerResult:
        before = box.outbox.time
        box.obj.delivering(box.outbox, message, time)
        result = self._deliver(box, type(box.obj), message_type, message, time, limit)
        after = box.outbox.time
        # The actor was already popped from the queue before delivery.
        if before != after:
            self._queue.add(name, after)
        return result


class ActorInstance(Instance, Generic[N]):
    """An emulator instance made of the actors of a roster."""

    def __init__(self, roster: Roster[N], config: Any) -> None:
        self.scheduler: Scheduler[N] = Scheduler(roster, config)

    def actor(self, actor_cls: type) -> Actor:
        """The actor of class ``actor_cls``."""
        return self.scheduler.get(actor_cls)

    def run(self, control_rx: queue.Queue, update: queue.Queue) -> None:
        self.scheduler.run(control_rx, update)