"""Command-line options shared by every emulation core."""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Iterable, Sequence

from busmu.core import EmulationCore

_GLOBAL_DESTS = frozenset({"core", "nogui"})


def _package_version() -> str:
    try:
        return version("busmu")
    except PackageNotFoundError:
        return "unknown"


@dataclass(frozen=True)
class GlobalOpts:
    """Options understood regardless of the selected core."""

    core: str | None = None
    nogui: bool = False


class CoreRegistry:
    """The emulation cores available on the command line, keyed by short name.

    A core may define ``add_arguments(group)`` to contribute its own options;
    they are only accepted once that core has been selected with ``--core``.
    """

    def __init__(self, cores: Iterable[EmulationCore]) -> None:
        by_name: dict[str, EmulationCore] = {}
        for core in cores:
            short = core.short_name()
            if short in by_name:
                raise ValueError(f"duplicate core short name {short!r}")
            by_name[short] = core
        self._cores = by_name

    def get_core(self, short_name: str) -> EmulationCore:
        """The core registered as ``short_name``."""
        try:
            return self._cores[short_name]
        except KeyError:
            raise KeyError(f"unknown core {short_name!r}") from None

    def find_core(self, argv: Sequence[str] | None = None) -> str | None:
        """Look for ``--core`` in ``argv`` without validating anything else.

        Returns the short name of a registered core, or None.
        """
        args = list(sys.argv[1:] if argv is None else argv)
        found: str | None = None
        remaining = iter(args)
        for arg in remaining:
            if arg == "--":
                break
            if arg in ("--core", "-c"):
                found = next(remaining, None)
            elif arg.startswith("--core="):
                found = arg[len("--core="):]
            elif arg.startswith("-c") and not arg.startswith("--"):
                found = arg[2:]
        return found if found in self._cores else None

    def _parser(self, core: EmulationCore | None) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(prog="bus-mu", add_help=False)
        group = parser.add_argument_group("Global Options")
        group.add_argument(
            "-c", "--core", choices=sorted(self._cores), help="Select emulation core"
        )
        group.add_argument("--nogui", action="store_true", help="Run without the GUI")
        group.add_argument("-h", "--help", action="help", help="Show this help and exit")
        group.add_argument(
            "-V",
            "--version",
            action="version",
            version=f"%(prog)s {_package_version()}",
            help="Show the version and exit",
        )
        if core is not None:
            add_arguments = getattr(core, "add_arguments", None)
            if callable(add_arguments):
                add_arguments(parser.add_argument_group(core.name()))
        return parser

    def parse_args(self, argv: Sequence[str] | None = None) -> tuple[GlobalOpts, Any]:
        """Parse the global options and those of the selected core.

        Exits on invalid arguments, ``--help`` and ``--version``. Returns the
        global options and a namespace of the core's own options, or None when
        no core was selected.
        """
        args = list(sys.argv[1:] if argv is None else argv)
        short = self.find_core(args)
        core = self._cores.get(short) if short is not None else None
        namespace = self._parser(core).parse_args(args)
        opts = GlobalOpts(core=namespace.core, nogui=namespace.nogui)
        if core is None:
            return opts, None
        core_options = {
            key: value for key, value in vars(namespace).items() if key not in _GLOBAL_DESTS
        }
        return opts, argparse.Namespace(**core_options)