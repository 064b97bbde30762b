from __future__ import annotations

import re

import pytest

from shellydeck.tui.commands import Command, CommandError, parse_command


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("quit", Command("quit")),
        (":q", Command("quit")),
        ("exit", Command("quit")),
        ("refresh", Command("refresh")),
        ("r kitchen", Command("refresh", "kitchen")),
        ("toggle 'living room'", Command("toggle", "living room")),
        ("OFF plug", Command("off", "plug")),
        ("reboot plug", Command("reboot", "plug")),
        ("filter kit chen", Command("filter", "kit chen")),
        ("f", Command("filter", "")),
        ("tab monitor", Command("tab", "monitor")),
        ("tab 1", Command("tab", "dashboard")),
    ],
)
def test_parse_command(line, expected):
    assert parse_command(line) == expected


@pytest.mark.parametrize(
    ("line", "message"),
    [
        ("", "Empty command"),
        (":", "Empty command"),
        ("launch", "Unknown command: launch"),
        ("quit now", "quit takes no arguments"),
        ("tab", "Usage: tab"),
        ("tab 3", "Unknown tab: 3"),
        ("toggle a b", "Usage: toggle [device]"),
        ("on 'unterminated", "Cannot parse command"),
    ],
)
def test_parse_command_errors(line, message):
    with pytest.raises(CommandError, match=re.escape(message)):
        parse_command(line)
