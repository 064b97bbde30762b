"""Parsing of ``:`` command lines."""

from __future__ import annotations

import shlex
from dataclasses import dataclass

DEVICE_COMMANDS = ("refresh", "toggle", "on", "off", "reboot")
COMMANDS = ("quit", *DEVICE_COMMANDS, "filter", "tab")

ALIASES = {"q": "quit", "exit": "quit", "r": "refresh", "f": "filter"}

TAB_NAMES = ("dashboard", "monitor")


class CommandError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class Command:
    name: str
    argument: str | None = None


def parse_command(line: str) -> Command:
    """Parse ``line`` (without the leading colon) into a :class:`Command`.

    ``refresh`` and the control commands take an optional device name,
    ``filter`` takes free text (empty clears the filter) and ``tab`` takes
    a tab name or number.
    """
    text = line.strip().removeprefix(":").strip()
    if not text:
        raise CommandError("Empty command")

    try:
        parts = shlex.split(text)
    except ValueError as exc:
        raise CommandError(f"Cannot parse command: {exc}") from exc
    if not parts:
        raise CommandError("Empty command")

    name = ALIASES.get(parts[0].lower(), parts[0].lower())
    args = parts[1:]

    if name not in COMMANDS:
        raise CommandError(f"Unknown command: {parts[0]}")

    if name == "quit":
        if args:
            raise CommandError("quit takes no arguments")
        return Command(name)

    if name == "filter":
        return Command(name, " ".join(args))

    if name == "tab":
        if len(args) != 1:
            raise CommandError("Usage: tab <dashboard|monitor>")
        tab = args[0].lower()
        if tab.isdigit() and 1 <= int(tab) <= len(TAB_NAMES):
            tab = TAB_NAMES[int(tab) - 1]
        if tab not in TAB_NAMES:
            raise CommandError(f"Unknown tab: {args[0]}")
        return Command(name, tab)

    if len(args) > 1:
        raise CommandError(f"Usage: {name} [device]")
    return Command(name, args[0] if args else None)
