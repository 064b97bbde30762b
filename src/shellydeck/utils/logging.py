from __future__ import annotations

import contextlib
import logging
import os
import sys
from collections.abc import Iterator
from typing import Literal, TextIO

import coloredlogs  # type: ignore[import]

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]

DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
DEFAULT_DATE_FORMAT = "%H:%M:%S"

NOISY_LOGGERS = ("aiohttp", "zeroconf")


def setup_logging(level: LogLevel | None = None, stream: TextIO | None = None) -> None:
    """Install coloredlogs on the root logger.

    Colors are disabled when ``stream`` is not a terminal.
    """
    resolved = (level or os.environ.get("LOGLEVEL", "INFO")).upper()

    kwargs: dict[str, object] = {}
    if stream is not None:
        kwargs["stream"] = stream
        kwargs["isatty"] = stream.isatty()

    coloredlogs.install(
        level=resolved,
        fmt=DEFAULT_FORMAT,
        datefmt=DEFAULT_DATE_FORMAT,
        **kwargs,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _writes_to(handler: logging.Handler, streams: tuple[object, ...]) -> bool:
    return isinstance(handler, logging.StreamHandler) and any(
        handler.stream is stream for stream in streams
    )


@contextlib.contextmanager
def logging_to(stream: TextIO, level: LogLevel | None = None) -> Iterator[None]:
    """Send log records to ``stream`` instead of the terminal while active."""
    root = logging.getLogger()
    terminal = [h for h in root.handlers if _writes_to(h, (sys.stdout, sys.stderr))]
    for handler in terminal:
        root.removeHandler(handler)
    setup_logging(level, stream=stream)
    try:
        yield
    finally:
        for handler in [h for h in root.handlers if _writes_to(h, (stream,))]:
            root.removeHandler(handler)
        for handler in terminal:
            root.addHandler(handler)
