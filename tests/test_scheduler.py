import queue
from dataclasses import dataclass

import pytest

from busmu.core import ControlMessage, Status, ThreadAdapter, UpdateMessage
from busmu.messaging import Actor, SchedulerResult, handles
from busmu.roster import Roster
from busmu.scheduler import ActorInstance, Scheduler, ZeroLimitCycleError
from busmu.time import Time

PERIOD = 5


@dataclass
class Tick:
    n: int
    tag: str = ""


@dataclass
class Ping:
    n: int


@dataclass
class Pong:
    n: int


@dataclass
class Wake:
    pass


class Sink(Actor):
    def __init__(self):
        self.received = []

    @handles(Tick)
    def on_tick(self, outbox, message, time, limit):
        self.received.append((time, message.tag, message.n))
        return SchedulerResult.OK


class Producer(Actor):
    outbox_messages = (Tick,)
    PERIOD = PERIOD
    TAG = "producer"

    @classmethod
    def init(cls, config, outbox, time):
        outbox.send(Sink, Tick(0, cls.TAG), config.get("start", cls.PERIOD))
        return cls()

    def delivering(self, outbox, message, time):
        outbox.send(Sink, Tick(message.n + 1, self.TAG), time.add(self.PERIOD))


class FastProducer(Producer):
    PERIOD = 3
    TAG = "fast"


class SlowProducer(Producer):
    PERIOD = 5
    TAG = "slow"


class Pinger(Actor):
    outbox_messages = (Ping,)

    def __init__(self):
        self.log = []

    @classmethod
    def init(cls, config, outbox, time):
        outbox.send(Ponger, Ping(0), 1)
        return cls()

    @handles(Pong)
    def on_pong(self, outbox, message, time, limit):
        self.log.append((time, message.n))
        outbox.send(Ponger, Ping(message.n + 1), time.add(1))
        return SchedulerResult.OK


class Ponger(Actor):
    outbox_messages = (Pong,)

    def __init__(self):
        self.log = []

    @handles(Ping)
    def on_ping(self, outbox, message, time, limit):
        self.log.append((time, message.n))
        outbox.send(Pinger, Pong(message.n), time.add(1))
        return SchedulerResult.OK


class Ticker(Actor):
    outbox_messages = (Wake,)
    GAP = 2

    def __init__(self):
        self.wakes = []

    @classmethod
    def init(cls, config, outbox, time):
        outbox.send(cls, Wake(), 1)
        return cls()

    @handles(Wake)
    def on_wake(self, outbox, message, time, limit):
        self.wakes.append(time)
        outbox.send(type(self), Wake(), time.add(self.GAP))
        return SchedulerResult.OK


class Looper(Actor):
    outbox_messages = (Wake,)

    @classmethod
    def init(cls, config, outbox, time):
        outbox.send(cls, Wake(), 1)
        return cls()

    @handles(Wake)
    def on_wake(self, outbox, message, time, limit):
        outbox.send(type(self), Wake(), time)
        return SchedulerResult.OK


class LooperA(Looper):
    pass


class LooperB(Looper):
    pass


class OneShot(Actor):
    outbox_messages = (Tick,)
    TAG = "oneshot"

    @classmethod
    def init(cls, config, outbox, time):
        outbox.send(Sink, Tick(0, cls.TAG), config["at"])
        return cls()


class OneShotA(OneShot):
    TAG = "a"


class OneShotB(OneShot):
    TAG = "b"


class FailingSink(Actor):
    @handles(Tick)
    def on_tick(self, outbox, message, time, limit):
        raise ValueError("boom")


class FailingProducer(Actor):
    outbox_messages = (Tick,)

    @classmethod
    def init(cls, config, outbox, time):
        outbox.send(FailingSink, Tick(0), 1)
        return cls()


class StallingSink(Actor):
    @handles(Tick)
    def on_tick(self, outbox, message, time, limit):
        return SchedulerResult.ZERO_LIMIT


class StallingProducer(Actor):
    outbox_messages = (Tick,)

    @classmethod
    def init(cls, config, outbox, time):
        outbox.send(StallingSink, Tick(0), 1)
        return cls()


def make_roster(classes):
    names = [*classes, "terminal"]
    return Roster(names, classes, "terminal")


def producer_scheduler():
    return Scheduler(make_roster({"producer": Producer, "sink": Sink}), {"start": PERIOD})


def test_messages_delivered_in_time_order():
    scheduler = producer_scheduler()
    for _ in range(3):
        assert scheduler.step() is SchedulerResult.OK
    sink = scheduler.get(Sink)
    expected = [(Time(PERIOD * (k + 1)), "producer", k) for k in range(3)]
    assert sink.received == expected


def test_config_reaches_actor_init():
    scheduler = Scheduler(make_roster({"producer": Producer, "sink": Sink}), {"start": 7})
    scheduler.step()
    assert scheduler.get(Sink).received[0][0] == Time(7)


def test_no_schedulable_actors_is_an_error():
    with pytest.raises(RuntimeError):
        Scheduler(make_roster({"sink": Sink}), {})


def test_two_producers_interleave_in_order():
    roster = make_roster({"fast": FastProducer, "slow": SlowProducer, "sink": Sink})
    scheduler = Scheduler(roster, {})
    for _ in range(20):
        scheduler.step()
    received = scheduler.get(Sink).received
    times = [time for time, _, _ in received]
    assert len(received) == 20
    assert times == sorted(times)
    fast = [time for time, tag, _ in received if tag == "fast"]
    slow = [time for time, tag, _ in received if tag == "slow"]
    assert fast == [Time(FastProducer.PERIOD * (k + 1)) for k in range(len(fast))]
    assert slow == [Time(SlowProducer.PERIOD * (k + 1)) for k in range(len(slow))]


def test_ping_pong_between_actors():
    scheduler = Scheduler(make_roster({"pinger": Pinger, "ponger": Ponger}), {})
    for _ in range(4):
        scheduler.step()
    assert scheduler.get(Ponger).log == [(Time(1), 0), (Time(3), 1)]
    assert scheduler.get(Pinger).log == [(Time(2), 0), (Time(4), 1)]


def test_actor_messaging_itself():
    scheduler = Scheduler(make_roster({"ticker": Ticker}), {})
    for _ in range(3):
        scheduler.step()
    assert scheduler.get(Ticker).wakes == [Time(1), Time(1 + Ticker.GAP), Time(1 + 2 * Ticker.GAP)]


def test_handler_error_propagates():
    scheduler = Scheduler(make_roster({"p": FailingProducer, "s": FailingSink}), {})
    with pytest.raises(ValueError, match="boom"):
        scheduler.step()


def test_zero_limit_is_counted():
    scheduler = Scheduler(make_roster({"p": StallingProducer, "s": StallingSink}), {})
    assert scheduler.step() is SchedulerResult.ZERO_LIMIT
    assert scheduler.stats()["zero_limit_count"] == 1


def test_stats_count_steps():
    scheduler = producer_scheduler()
    for _ in range(3):
        scheduler.step()
    stats = scheduler.stats()
    assert stats["count"] == 3
    assert stats["queue_adds"] >= 3


def test_running_out_of_messages_raises():
    scheduler = Scheduler(make_roster({"a": OneShotA, "sink": Sink}), {"at": 4})
    scheduler.step()
    with pytest.raises(RuntimeError):
        scheduler.step()


def test_run_zero_limit_rejects_mismatched_limit():
    scheduler = producer_scheduler()
    with pytest.raises(ValueError):
        scheduler.run_zero_limit(Time(1), Time(2))


def test_run_zero_limit_delivers_all_same_cycle_messages():
    roster = make_roster({"a": OneShotA, "b": OneShotB, "sink": Sink})
    scheduler = Scheduler(roster, {"at": 10})
    scheduler.run_zero_limit(Time(10), Time(10))
    received = scheduler.get(Sink).received
    assert sorted(tag for _, tag, _ in received) == ["a", "b"]
    assert all(time == Time(10) for time, _, _ in received)


def test_run_zero_limit_detects_cycle():
    scheduler = Scheduler(make_roster({"a": LooperA, "b": LooperB}), {})
    with pytest.raises(ZeroLimitCycleError):
        scheduler.run_zero_limit(Time(1), Time(1))


def test_run_answers_ui_sync_and_pauses():
    scheduler = producer_scheduler()
    control = queue.Queue()
    updates = queue.Queue()
    control.put(ControlMessage.UI_SYNC)
    control.put(ControlMessage.PAUSE)
    scheduler.run(control, updates)
    assert updates.get_nowait() is UpdateMessage.UI_SYNCED
    assert len(scheduler.get(Sink).received) == 1


def test_actor_instance_pauses_immediately():
    instance = ActorInstance(make_roster({"producer": Producer, "sink": Sink}), {})
    control = queue.Queue()
    control.put(ControlMessage.PAUSE)
    instance.run(control, queue.Queue())
    assert instance.actor(Sink).received == []


def test_actor_instance_on_thread_adapter():
    instance = ActorInstance(make_roster({"producer": Producer, "sink": Sink}), {})
    adapter = ThreadAdapter(instance)
    adapter.start()
    assert adapter.ui_sync() is True
    adapter.pause()
    assert adapter.status() is Status.PAUSED
    received = adapter.instance().actor(Sink).received
    assert len(received) >= 1
    assert [time for time, _, _ in received] == sorted(time for time, _, _ in received)
    adapter.close()