"""The set of actors in a system: their names, their classes and their storage."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Hashable, Iterable, Iterator, Mapping, TypeVar

from busmu.messaging import Actor, Outbox
from busmu.time import Time

T = TypeVar("T")
N = TypeVar("N", bound=Hashable)


class RosterError(ValueError):
    """Raised for an ill-formed roster or a lookup of an actor it does not hold."""


class EnumMap(Generic[N, T]):
    """A fixed mapping with exactly one value for every name, in name order."""

    def __init__(self, names: Iterable[N], factory: Callable[[N], T]) -> None:
        contents: dict[N, T] = {}
        for name in names:
            if name in contents:
                raise ValueError(f"duplicate name {name!r}")
            contents[name] = factory(name)
        self._contents = contents

    def __getitem__(self, name: N) -> T:
        try:
            return self._contents[name]
        except KeyError:
            raise KeyError(name) from None

    def __setitem__(self, name: N, value: T) -> None:
        if name not in self._contents:
            raise KeyError(name)
        self._contents[name] = value

    def __iter__(self) -> Iterator[N]:
        return iter(self._contents)

    def __len__(self) -> int:
        return len(self._contents)

    def __contains__(self, name: object) -> bool:
        return name in self._contents

    def items(self) -> Iterator[tuple[N, T]]:
        """Yield ``(name, value)`` pairs in name order."""
        yield from self._contents.items()


class _TerminalActor(Actor):
    """Stands in for the terminal name: it never sends and is never scheduled."""

    outbox_messages = ()


@dataclass
class ActorBox:
    """An actor together with its outbox."""

    outbox: Outbox
    obj: Actor

    @classmethod
    def create(cls, actor_cls: type, config: Any) -> ActorBox:
        """Build the outbox and initialise ``actor_cls`` with ``config`` at time zero."""
        outbox = Outbox(actor_cls, actor_cls.outbox_messages)
        actor = actor_cls.init(config, outbox, Time(0))
        return cls(outbox, actor)


class Roster(Generic[N]):
    """Names every actor of a system and the class behind each name.

    Exactly one name is the terminal: it has no class of its own and is never
    scheduled. Every other name maps to exactly one distinct actor class.
    """

    def __init__(self, names: Iterable[N], classes: Mapping[N, type], terminal: N) -> None:
        ordered = tuple(names)
        if len(set(ordered)) != len(ordered):
            raise RosterError("names must be distinct")
        if terminal not in ordered:
            raise RosterError(f"terminal {terminal!r} is not among the names")
        if terminal in classes:
            raise RosterError("class and terminal are mutually exclusive")
        unknown = [name for name in classes if name not in ordered]
        if unknown:
            raise RosterError(f"classes given for unknown names: {unknown!r}")

        by_name: dict[N, type] = {}
        by_class: dict[type, N] = {}
        for name in ordered:
            if name == terminal:
                by_name[name] = _TerminalActor
                by_class[_TerminalActor] = name
                continue
            if name not in classes:
                raise RosterError(f"expected either class or terminal for {name!r}")
            actor_cls = classes[name]
            if not (isinstance(actor_cls, type) and issubclass(actor_cls, Actor)):
                raise RosterError(f"{actor_cls!r} given for {name!r} is not an Actor class")
            if actor_cls in by_class:
                raise RosterError(
                    f"{actor_cls.__qualname__} is named both "
                    f"{by_class[actor_cls]!r} and {name!r}"
                )
            by_name[name] = actor_cls
            by_class[actor_cls] = name

        self.names: tuple[N, ...] = ordered
        self.terminal: N = terminal
        self._by_name = by_name
        self._by_class = by_class

    def name_of(self, actor_cls: type) -> N:
        """The name under which ``actor_cls`` is registered."""
        try:
            return self._by_class[actor_cls]
        except (KeyError, TypeError):
            raise RosterError(f"{actor_cls!r} is not in the roster") from None

    def class_of(self, name: N) -> type:
        """The actor class registered under ``name``."""
        try:
            return self._by_name[name]
        except (KeyError, TypeError):
            raise RosterError(f"{name!r} is not in the roster") from None

    def __iter__(self) -> Iterator[N]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)


class ObjectStore(Generic[N]):
    """Holds one :class:`ActorBox` for every name of a roster."""

    def __init__(self, roster: Roster[N], config: Any) -> None:
        self.roster = roster
        self._boxes: EnumMap[N, ActorBox] = EnumMap(
            roster, lambda name: ActorBox.create(roster.class_of(name), config)
        )

    def get(self, actor_cls: type) -> ActorBox:
        """The box holding the actor of class ``actor_cls``."""
        return self._boxes[self.roster.name_of(actor_cls)]

    def get_base(self, name: N) -> ActorBox:
        """The box of the actor registered under ``name``."""
        try:
            return self._boxes[name]
        except KeyError:
            raise RosterError(f"{name!r} is not in the roster") from None