"""Emulation core interface and the adapter that runs an instance on a thread."""

from __future__ import annotations

import enum
import queue
import sys
import threading
from abc import ABC, abstractmethod
from typing import Any

_POLL_INTERVAL = 0.02


class UpdateMessage(enum.Enum):
    """Messages sent from a running instance to the UI thread."""

    VSYNC = enum.auto()
    UI_SYNCED = enum.auto()


class ControlMessage(enum.Enum):
    """Messages sent from the UI thread to a running instance."""

    PAUSE = enum.auto()
    UI_SYNC = enum.auto()


class Status(enum.Enum):
    """State of a threaded instance."""

    RUNNING = enum.auto()
    PAUSED = enum.auto()
    ERROR = enum.auto()


class InstanceError(RuntimeError):
    """Raised when a threaded instance is used in the wrong state."""


class Instance(ABC):
    """A synchronous emulator instance."""

    @abstractmethod
    def run(self, control_rx: queue.Queue, update: queue.Queue) -> None:
        """Run until a ``ControlMessage.PAUSE`` arrives on ``control_rx``.

        ``ControlMessage.UI_SYNC`` must be answered with
        ``UpdateMessage.UI_SYNCED`` on ``update``. Errors are raised.
        """


class EmulationCore(ABC):
    """Factory and description of an emulator core."""

    @abstractmethod
    def name(self) -> str:
        """Full name of the core."""

    @abstractmethod
    def short_name(self) -> str:
        """Short name of the core, ideally two or three characters."""

    @abstractmethod
    def new(self, config: Any) -> Instance:
        """Create an instance of the core."""

    def new_sync(self, config: Any) -> Instance:
        """Create an instance meant to run on the calling thread."""
        return self.new(config)

    def new_threaded(self, config: Any) -> ThreadAdapter:
        """Create an instance wrapped to run on its own thread."""
        return ThreadAdapter(self.new(config))


class ThreadAdapter:
    """Runs an :class:`Instance` on a worker thread.

    The instance moves to the worker while running and back to the owner when
    paused, so the owner has full access to it while paused.
    """

    def __init__(self, instance: Instance) -> None:
        self._instance: Instance | None = instance
        self._control: queue.Queue = queue.Queue(maxsize=1)
        self._updates: queue.Queue = queue.Queue(maxsize=1)
        self._to_worker: queue.Queue = queue.Queue(maxsize=1)
        self._from_worker: queue.Queue = queue.Queue(maxsize=1)
        self._error: BaseException | None = None
        self._thread: threading.Thread | None = threading.Thread(
            target=self._thread_main, name="instance-worker", daemon=True
        )
        self._thread.start()

    def _thread_main(self) -> None:
        while True:
            instance = self._to_worker.get()
            if instance is None:
                return
            try:
                instance.run(self._control, self._updates)
            except Exception as exc:  # handed back to the owner through pause()
                print(f"Instance returned error: {exc!r}", file=sys.stderr)
                self._error = exc
                self._from_worker.put(None)
                return
            self._from_worker.put(instance)

    def _worker_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _send_control(self, message: ControlMessage) -> None:
        while True:
            try:
                self._control.put(message, timeout=_POLL_INTERVAL)
                return
            except queue.Full:
                if not self._worker_alive():
                    raise InstanceError("channel closed") from None

    def start(self) -> None:
        """Hand the instance to the worker thread; does not block."""
        if self._instance is None or not self._worker_alive():
            raise InstanceError("invalid instance state")
        instance, self._instance = self._instance, None
        self._to_worker.put(instance)

    def pause(self) -> None:
        """Ask the instance to pause and wait until it is returned.

        Re-raises the instance's error if it failed while running.
        """
        if self._instance is not None:
            raise InstanceError("invalid instance state")
        self._send_control(ControlMessage.PAUSE)
        self._instance = self._from_worker.get()
        if self._instance is not None:
            return
        if self._thread is None:
            raise InstanceError("invalid instance state")
        self._thread.join()
        self._thread = None
        if self._error is not None:
            raise self._error
        raise InstanceError("Instance panicked")

    def ui_sync(self) -> bool:
        """Ask the running instance to sync shared state for the UI.

        Returns True once it answers, False if the worker has stopped.
        """
        if self._instance is not None:
            raise InstanceError("instance is paused")
        try:
            self._send_control(ControlMessage.UI_SYNC)
        except InstanceError:
            return False
        while True:
            try:
                message = self._updates.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                if not self._worker_alive():
                    return False
                continue
            if message is UpdateMessage.UI_SYNCED:
                return True

    def status(self) -> Status:
        """Current state of the instance."""
        if self._instance is not None:
            return Status.PAUSED
        if self._worker_alive():
            return Status.RUNNING
        return Status.ERROR

    def instance(self) -> Instance:
        """The paused instance."""
        if self._instance is None:
            raise InstanceError("Instance running or panicked")
        return self._instance

    def close(self) -> None:
        """Stop the worker thread; the instance must be paused."""
        if self._instance is None:
            raise InstanceError("invalid instance state")
        if self._thread is not None:
            self._to_worker.put(None)
            self._thread.join()
            self._thread = None