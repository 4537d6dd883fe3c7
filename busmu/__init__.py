"""Cycle-accurate actor scheduling framework for building emulator cores."""

__version__ = "0.1.0"

__all__ = [
    "bytemask",
    "cli",
    "core",
    "messaging",
    "roster",
    "schedule_queue",
    "scheduler",
    "time",
    "time_queue",
]