from busmu.time import Time
from busmu.time_queue import TimeQueue


def test_empty_queue():
    q = TimeQueue()
    assert len(q) == 0
    assert q.peek() is None
    assert q.pop() is None


def test_pops_in_time_order():
    q = TimeQueue()
    for cycles, label in [(30, "c"), (10, "a"), (20, "b"), (5, "z")]:
        q.push(Time(cycles), label)
    assert len(q) == 4
    out = []
    while (entry := q.pop()) is not None:
        out.append(entry)
    assert out == [(Time(5), "z"), (Time(10), "a"), (Time(20), "b"), (Time(30), "c")]
    assert len(q) == 0


def test_peek_matches_pop():
    q = TimeQueue()
    q.push(Time(8), "late")
    q.push(Time(2), "early")
    assert q.peek() == (Time(2), "early")
    assert len(q) == 2
    assert q.pop() == (Time(2), "early")
    assert q.peek() == (Time(8), "late")


def test_equal_times_keep_all_values():
    q = TimeQueue()
    q.push(Time(1), "x")
    q.push(Time(1), "y")
    popped = [q.pop(), q.pop()]
    assert {v for _, v in popped} == {"x", "y"}
    assert all(t == Time(1) for t, _ in popped)


def test_unorderable_values_are_fine():
    q = TimeQueue()
    q.push(Time(3), {"a": 1})
    q.push(Time(3), {"b": 2})
    assert q.pop()[0] == Time(3)
    assert len(q) == 1