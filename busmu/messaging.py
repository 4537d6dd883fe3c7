"""Actors, their outboxes and the packets that carry messages between them."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, ClassVar

from busmu.time import Time

_HANDLES_ATTR = "_busmu_handles"


class SchedulerResult(enum.Enum):
    """Outcome of delivering a message; failures are raised instead."""

    OK = enum.auto()
    ZERO_LIMIT = enum.auto()


def _as_time(time: Time | int) -> Time:
    return time if isinstance(time, Time) else Time(int(time))


def _type_name(message_type: type | None) -> str:
    if message_type is None:
        return "Empty"
    return message_type.__qualname__


def handles(message_type: type) -> Callable[[Callable], Callable]:
    """Mark an actor method as the receiver of ``message_type``.

    The method is called as ``method(self, outbox, message, time, limit)`` and
    returns a :class:`SchedulerResult`.
    """

    def decorate(func: Callable) -> Callable:
        registered = getattr(func, _HANDLES_ATTR, ())
        setattr(func, _HANDLES_ATTR, (*registered, message_type))
        return func

    return decorate


class Actor:
    """Base class of every actor.

    ``outbox_messages`` lists the message types the actor may send; handlers
    for incoming messages are methods decorated with :func:`handles`.
    """

    outbox_messages: ClassVar[tuple[type, ...]] = ()
    _handlers: ClassVar[dict[type, str]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        handlers: dict[type, str] = {}
        for base in reversed(cls.__mro__[1:]):
            handlers.update(base.__dict__.get("_handlers", {}))
        for attr_name, attr in vars(cls).items():
            for message_type in getattr(attr, _HANDLES_ATTR, ()):
                handlers[message_type] = attr_name
        cls._handlers = handlers

    @classmethod
    def init(cls, config: Any, outbox: Outbox, time: Time) -> Actor:
        """Create the actor; the default ignores its arguments."""
        return cls()

    def delivering(self, outbox: Outbox, message: Any, time: Time) -> None:
        """Called just before a message this actor sent is delivered.

        The message has already left the outbox, so the actor may send a new
        one or restore a stashed message. The default does nothing.
        """

    @classmethod
    def _find_handler(cls, message_type: type) -> Callable | None:
        for candidate in message_type.__mro__:
            name = cls._handlers.get(candidate)
            if name is not None:
                return getattr(cls, name)
        return None

    @classmethod
    def handler_for(cls, message_type: type) -> Callable:
        """The method that receives ``message_type``; TypeError if none."""
        handler = cls._find_handler(message_type)
        if handler is None:
            raise TypeError(f"{cls.__qualname__} does not handle {_type_name(message_type)}")
        return handler


def _require_handler(receiver: type, message_type: type) -> None:
    if not (isinstance(receiver, type) and issubclass(receiver, Actor)):
        raise TypeError(f"{receiver!r} is not an Actor class")
    receiver.handler_for(message_type)


@dataclass(frozen=True)
class Channel:
    """A fixed route for one message type from a sender to a receiver."""

    sender: type
    receiver: type
    message_type: type

    def __post_init__(self) -> None:
        if not (isinstance(self.sender, type) and issubclass(self.sender, Actor)):
            raise TypeError(f"{self.sender!r} is not an Actor class")
        if self.message_type not in self.sender.outbox_messages:
            raise TypeError(
                f"{self.sender.__qualname__} cannot send {_type_name(self.message_type)}"
            )
        _require_handler(self.receiver, self.message_type)


@dataclass(frozen=True)
class Endpoint:
    """The receiving half of a channel; any sender may use it."""

    receiver: type
    message_type: type

    def __post_init__(self) -> None:
        _require_handler(self.receiver, self.message_type)


@dataclass
class MessagePacket:
    """One message in flight, with its delivery time and route."""

    time: Time
    sender: type
    receiver: type | None
    message_type: type | None
    message: Any = None
    via_endpoint: bool = False

    def is_some(self) -> bool:
        """True while the packet still holds a message."""
        return self.message_type is not None

    def take(self) -> tuple[Time, Any] | None:
        """Remove the message, returning ``(time, message)``, or None if empty."""
        if not self.is_some():
            return None
        result = (self.time, self.message)
        self.time = Time.MAX
        self.message = None
        self.message_type = None
        self.receiver = None
        return result


class Outbox:
    """Holds at most one outgoing message of an actor."""

    def __init__(self, sender: type, message_types: tuple[type, ...] | list[type]) -> None:
        self.sender = sender
        self.message_types: tuple[type, ...] = tuple(message_types)
        self._packet: MessagePacket | None = None

    @property
    def time(self) -> Time:
        """Delivery time of the pending message, ``Time.MAX`` if none."""
        return self._packet.time if self._packet is not None else Time.MAX

    @property
    def packet(self) -> MessagePacket | None:
        """The pending packet, left in place."""
        return self._packet

    def is_empty(self) -> bool:
        return self._packet is None

    def msg_type(self) -> type | None:
        """Type of the pending message, or None if empty."""
        return self._packet.message_type if self._packet is not None else None

    def msg_type_name(self) -> str:
        return _type_name(self.msg_type())

    def contains(self, message_type: type) -> bool:
        return self.msg_type() is message_type

    def _prepare(self, message: Any) -> type:
        message_type = type(message)
        if message_type not in self.message_types:
            raise TypeError(
                f"{self.sender.__qualname__}'s outbox cannot send {_type_name(message_type)}"
            )
        if self._packet is not None:
            raise RuntimeError(
                f"Sending {_type_name(message_type)}, but outbox of "
                f"{self.sender.__qualname__} already contains {self.msg_type_name()}"
            )
        return message_type

    def send(self, receiver: type, message: Any, time: Time | int) -> SchedulerResult:
        """Queue ``message`` for ``receiver`` at ``time``."""
        message_type = self._prepare(message)
        _require_handler(receiver, message_type)
        self._packet = MessagePacket(_as_time(time), self.sender, receiver, message_type, message)
        return SchedulerResult.OK

    def send_channel(self, channel: Channel, message: Any, time: Time | int) -> SchedulerResult:
        """Queue ``message`` along ``channel``."""
        if channel.sender is not self.sender:
            raise TypeError(
                f"channel sends from {channel.sender.__qualname__}, "
                f"not {self.sender.__qualname__}"
            )
        message_type = self._prepare(message)
        if message_type is not channel.message_type:
            raise TypeError(
                f"channel carries {_type_name(channel.message_type)}, "
                f"not {_type_name(message_type)}"
            )
        self._packet = MessagePacket(
            _as_time(time), self.sender, channel.receiver, message_type, message
        )
        return SchedulerResult.OK

    def send_endpoint(self, endpoint: Endpoint, message: Any, time: Time | int) -> None:
        """Queue ``message`` for the receiver behind ``endpoint``."""
        message_type = self._prepare(message)
        if message_type is not endpoint.message_type:
            raise TypeError(
                f"endpoint accepts {_type_name(endpoint.message_type)}, "
                f"not {_type_name(message_type)}"
            )
        self._packet = MessagePacket(
            _as_time(time), self.sender, endpoint.receiver, message_type, message, True
        )

    def cancel(self, message_type: type) -> tuple[Time, Any]:
        """Withdraw the pending message, which must be of ``message_type``."""
        if not self.contains(message_type):
            raise LookupError(
                f"Outbox.cancel - Expected {_type_name(message_type)} "
                f"but found {self.msg_type_name()}"
            )
        packet = self.take()
        assert packet is not None
        result = packet.take()
        assert result is not None
        return result

    def try_cancel(self, message_type: type) -> tuple[Time, Any] | None:
        """Withdraw the pending message if it is of ``message_type``."""
        if not self.contains(message_type):
            return None
        return self.cancel(message_type)

    def take(self) -> MessagePacket | None:
        """Remove and return the pending packet, or None if empty."""
        packet, self._packet = self._packet, None
        return packet

    def stash(self, other: Outbox) -> None:
        """Move the pending message into the empty ``other``."""
        if not other.is_empty():
            raise RuntimeError("stash target is not empty")
        other._packet, self._packet = self._packet, None

    def restore(self, other: Outbox) -> None:
        """Move the message stashed in ``other`` back into this empty outbox."""
        if not self.is_empty():
            raise RuntimeError("cannot restore into a non-empty outbox")
        self._packet, other._packet = other._packet, None