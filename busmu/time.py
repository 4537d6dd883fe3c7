"""Cycle timestamps used by the scheduler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

_U64_MAX = (1 << 64) - 1


@dataclass(frozen=True, order=True)
class Time:
    """A point in emulated time, measured in cycles.

    ``Time.MAX`` means "never": an actor whose outbox holds that time has
    nothing scheduled.
    """

    cycles: int = 0

    MAX: ClassVar["Time"]

    def __post_init__(self) -> None:
        if not 0 <= self.cycles <= _U64_MAX:
            raise ValueError(f"cycle count out of range: {self.cycles}")

    def is_resolved(self) -> bool:
        """True when the time is a concrete cycle, neither zero nor ``MAX``."""
        return self.cycles not in (0, _U64_MAX)

    def add(self, other: int) -> Time:
        """Return the time ``other`` cycles later."""
        total = self.cycles + int(other)
        if total > _U64_MAX:
            raise OverflowError(f"time overflow: {self.cycles} + {other}")
        return Time(total)

    def lower_bound(self) -> Time:
        """The earliest cycle this time can resolve to."""
        return Time(self.cycles)

    def __int__(self) -> int:
        return self.cycles

    def __str__(self) -> str:
        if self.cycles == _U64_MAX:
            return "Time::MAX"
        return f"cycle {self.cycles}"


Time.MAX = Time(_U64_MAX)