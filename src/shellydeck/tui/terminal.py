"""Raw keyboard input and the full-screen runner."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
import termios
from collections.abc import Callable
from typing import TextIO

from rich.console import Console
from rich.live import Live

from .app import App
from .messages import KeyPressed, QuitRequested
from .view import render_app

logger = logging.getLogger(__name__)

ESCAPE_SEQUENCES = {
    "\x1b[A": "up",
    "\x1b[B": "down",
    "\x1b[C": "right",
    "\x1b[D": "left",
    "\x1bOA": "up",
    "\x1bOB": "down",
    "\x1bOC": "right",
    "\x1bOD": "left",
    "\x1b[H": "home",
    "\x1b[F": "end",
    "\x1bOH": "home",
    "\x1bOF": "end",
    "\x1b[1~": "home",
    "\x1b[4~": "end",
    "\x1b[3~": "delete",
    "\x1b[5~": "pgup",
    "\x1b[6~": "pgdown",
    "\x1b[Z": "shift+tab",
}

CONTROL_KEYS = {
    "\r": "enter",
    "\n": "enter",
    "\t": "tab",
    "\x7f": "backspace",
    "\x08": "backspace",
    " ": "space",
}


def decode_keys(data: str) -> list[str]:
    """Split a chunk of terminal input into key names."""
    keys: list[str] = []
    index = 0
    while index < len(data):
        char = data[index]
        if char == "\x1b":
            for sequence, name in ESCAPE_SEQUENCES.items():
                if data.startswith(sequence, index):
                    keys.append(name)
                    index += len(sequence)
                    break
            else:
                keys.append("esc")
                index += 1
            continue
        if char in CONTROL_KEYS:
            keys.append(CONTROL_KEYS[char])
        elif ord(char) < 32:
            keys.append(f"ctrl+{chr(ord(char) + 96)}")
        else:
            keys.append(char)
        index += 1
    return keys


class KeyReader:
    """Put the terminal in raw-ish mode and feed decoded keys to ``on_key``.

    Output processing stays enabled so rich can keep writing normally; signal
    generation is disabled so ``ctrl+c`` arrives as a key.
    """

    def __init__(
        self,
        stream: TextIO,
        on_key: Callable[[str], None],
        on_eof: Callable[[], None] | None = None,
    ) -> None:
        self._stream = stream
        self._fd = stream.fileno()
        self._on_key = on_key
        self._on_eof = on_eof
        self._saved: list | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def __enter__(self) -> KeyReader:
        self._saved = termios.tcgetattr(self._fd)
        attrs = termios.tcgetattr(self._fd)
        attrs[0] &= ~(termios.IXON | termios.ICRNL)
        attrs[3] &= ~(termios.ECHO | termios.ICANON | termios.ISIG | termios.IEXTEN)
        attrs[6][termios.VMIN] = 1
        attrs[6][termios.VTIME] = 0
        termios.tcsetattr(self._fd, termios.TCSANOW, attrs)
        self._loop = asyncio.get_running_loop()
        self._loop.add_reader(self._fd, self._read)
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._loop is not None:
            self._loop.remove_reader(self._fd)
            self._loop = None
        if self._saved is not None:
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved)
            self._saved = None

    def _read(self) -> None:
        try:
            data = os.read(self._fd, 1024)
        except OSError as exc:
            logger.warning("Keyboard read failed: %s", exc)
            return
        if not data:
            logger.info("Keyboard input closed")
            if self._loop is not None:
                self._loop.remove_reader(self._fd)
                self._loop = None
            if self._on_eof is not None:
                self._on_eof()
            return
        for key in decode_keys(data.decode("utf-8", errors="ignore")):
            self._on_key(key)


async def run_console(app: App, console: Console | None = None) -> None:
    console = console or Console()
    with Live(console=console, screen=True, auto_refresh=False) as live:

        def render(current: App) -> None:
            live.update(render_app(current), refresh=True)

        app.renderer = render
        with KeyReader(
            sys.stdin,
            lambda key: app.post(KeyPressed(key)),
            on_eof=lambda: app.post(QuitRequested()),
        ):
            await app.run()
