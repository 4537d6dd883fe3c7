# busmu

`busmu` is a small framework for writing cycle-accurate emulator cores as a
set of cooperating actors. Each actor owns an outbox that holds at most one
pending message, stamped with the cycle at which it is to be delivered. A
scheduler repeatedly takes the actor whose message is due earliest and hands
the message to its receiver, together with a limit: the earliest cycle at
which some other actor needs attention.

## Modules

- `busmu.time` — `Time`, a point on the emulated clock measured in cycles.
  `Time.MAX` means "never". `add`, `lower_bound`, `is_resolved`; `str()`
  gives `cycle N` or `Time::MAX`.
- `busmu.time_queue` — `TimeQueue`, a priority queue ordered by `Time`,
  earliest first; equal times come out in insertion order.
- `busmu.bytemask` — `ByteMask8`, a mask selecting the bytes of a 64-bit bus
  word touched by an access of a given width and alignment
  (`from_access`, `full`, `apply`, `masked_insert`, `size`, `&`).
- `busmu.core` — the interface a core offers to a front end:
  `EmulationCore`, `Instance`, the `ControlMessage`, `UpdateMessage` and
  `Status` enums, `InstanceError`, and `ThreadAdapter`, which runs an
  instance on a worker thread.
- `busmu.messaging` — `Actor`, the `handles` decorator, `Outbox`,
  `MessagePacket`, `Channel`, `Endpoint` and `SchedulerResult`.
- `busmu.roster` — `Roster` names every actor of a core and marks one name as
  the terminal, which has no class and is never scheduled; `EnumMap` holds
  one value per name; `ObjectStore` holds one `ActorBox` (outbox plus actor)
  per name; `RosterError` reports an ill-formed roster or unknown lookup.
- `busmu.schedule_queue` — `ScheduleQueue`, the time-ordered linked queue
  the scheduler picks actors from, with `validate` and `describe` for
  checking it; `QueueCorruptionError` reports broken links.
- `busmu.scheduler` — `Scheduler`, which delivers messages, and
  `ActorInstance`, an `Instance` built from a roster and a configuration.
- `busmu.cli` — `GlobalOpts` and `CoreRegistry`, for choosing a core by its
  short name from command-line arguments.

## A quick look

```python
from busmu.time import Time
from busmu.time_queue import TimeQueue
from busmu.bytemask import ByteMask8

queue = TimeQueue()
queue.push(Time(20), "vsync")
queue.push(Time(5), "timer")
when, event = queue.pop()
print(when, event)             # cycle 5 timer

# The two bytes of a halfword access at byte offset 2 of a 64-bit word
mask = ByteMask8.from_access(2, 2)
print(mask)                    # ByteMask8(0000ffff00000000)
print(mask.size())             # 16
```

## Actors and the scheduler

An actor subclasses `Actor`, lists the message types it may send in
`outbox_messages`, and marks its handlers with `@handles(MessageType)`. A
handler is called as `handler(self, outbox, message, time, limit)` and
returns a `SchedulerResult` (returning `None` counts as `OK`). `Actor.init`
may place a first message in the outbox; `Actor.delivering` is called on the
sender just after its message leaves the outbox, so it can send the next one.

```python
from dataclasses import dataclass

from busmu.messaging import Actor, SchedulerResult, handles
from busmu.roster import Roster
from busmu.scheduler import Scheduler


@dataclass
class Tick:
    n: int


class Clock(Actor):
    outbox_messages = (Tick,)

    @classmethod
    def init(cls, config, outbox, time):
        outbox.send(Counter, Tick(1), time.add(10))
        return cls()

    def delivering(self, outbox, message, time):
        outbox.send(Counter, Tick(message.n + 1), time.add(10))


class Counter(Actor):
    def __init__(self):
        self.seen = []

    @handles(Tick)
    def on_tick(self, outbox, message, time, limit):
        self.seen.append((int(time), message.n))
        return SchedulerResult.OK


roster = Roster(["clock", "counter", "none"],
                {"clock": Clock, "counter": Counter}, terminal="none")
scheduler = Scheduler(roster, config=None)
for _ in range(3):
    scheduler.step()
print(scheduler.get(Counter).seen)   # [(10, 1), (20, 2), (30, 3)]
```

`Scheduler` raises `RuntimeError` if no actor has a message when it is
created, and when there is nothing left to deliver. `Scheduler.run` counts a
`ZERO_LIMIT` result but does not act on it; call `run_zero_limit(time, limit)`
to deliver every message due on that cycle until it settles, which raises
`ZeroLimitCycleError` if it never does. `stats()` returns the delivery and
queue counters.

## Running an instance

`ActorInstance.run(control_rx, update)` takes two `queue.Queue` objects: it
delivers messages until `ControlMessage.PAUSE` arrives and answers
`ControlMessage.UI_SYNC` with `UpdateMessage.UI_SYNCED`.

`ThreadAdapter` (also returned by `EmulationCore.new_threaded`) runs an
instance on a worker thread: `start()` hands it over without blocking,
`pause()` blocks until it is handed back and re-raises any error it failed
with, `ui_sync()` asks the running instance to sync, `status()` reports
`RUNNING`, `PAUSED` or `ERROR`, `instance()` gives access to the paused
instance, and `close()` stops the worker.

## Command-line options

`CoreRegistry(cores).parse_args(argv)` understands `-c/--core`, `--nogui`,
`-h/--help` and `-V/--version`, plus any options a selected core adds through
an `add_arguments(group)` method. It returns a `GlobalOpts` and a namespace
of the core's options (or `None` when no core was chosen). `find_core` picks
out `--core` without validating the rest.

## What it does not do

The package provides no emulator cores of its own, no command to run, and no
user interface: `ui_sync` only asks the instance to sync its state, drawing
is left to the front end.

## Requirements

Python 3.10 or later. No third-party dependencies; the tests use pytest.