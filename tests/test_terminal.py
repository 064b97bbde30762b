from __future__ import annotations

import os
from types import SimpleNamespace

from shellydeck.tui.terminal import KeyReader, decode_keys


def test_plain_and_control_keys():
    assert decode_keys("qj ") == ["q", "j", "space"]
    assert decode_keys("\r\t\x7f") == ["enter", "tab", "backspace"]
    assert decode_keys("\x03\x12") == ["ctrl+c", "ctrl+r"]


def test_escape_sequences():
    assert decode_keys("\x1b[A\x1b[B") == ["up", "down"]
    assert decode_keys("\x1b[5~\x1b[6~\x1b[Z") == ["pgup", "pgdown", "shift+tab"]
    assert decode_keys("\x1bOH\x1b[3~") == ["home", "delete"]


def test_lone_escape():
    assert decode_keys("\x1b") == ["esc"]
    assert decode_keys("\x1bq") == ["esc", "q"]


def test_reader_requests_quit_when_input_closes():
    read_fd, write_fd = os.pipe()
    os.write(write_fd, b"j")
    os.close(write_fd)
    keys: list[str] = []
    eofs: list[bool] = []
    removed: list[int] = []

    with os.fdopen(read_fd) as stream:
        reader = KeyReader(stream, keys.append, on_eof=lambda: eofs.append(True))
        reader._loop = SimpleNamespace(remove_reader=removed.append)

        reader._read()
        assert keys == ["j"]
        assert eofs == []

        reader._read()

    assert eofs == [True]
    assert removed == [read_fd]
    assert reader._loop is None
