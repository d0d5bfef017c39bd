"""Pluggable logging used by library code; silent unless a logger is installed."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "Logger",
    "SilentLogger",
    "set_logger",
    "get_logger",
    "errorf",
    "error",
    "warnf",
    "warn",
    "debugf",
    "debug",
    "infof",
    "info",
]


@runtime_checkable
class Logger(Protocol):
    """Anything that accepts leveled log messages."""

    def errorf(self, fmt: str, *args: Any) -> None: ...

    def error(self, *args: Any) -> None: ...

    def warnf(self, fmt: str, *args: Any) -> None: ...

    def warn(self, *args: Any) -> None: ...

    def debugf(self, fmt: str, *args: Any) -> None: ...

    def debug(self, *args: Any) -> None: ...

    def infof(self, fmt: str, *args: Any) -> None: ...

    def info(self, *args: Any) -> None: ...


def _silent_sink() -> logging.Logger:
    sink = logging.getLogger("witness.silent")
    if not any(isinstance(h, logging.NullHandler) for h in sink.handlers):
        sink.addHandler(logging.NullHandler())
    sink.propagate = False
    return sink


class SilentLogger:
    """A logger that discards everything; the default for library use.

    Records are routed to a dedicated standard-library logger that has only
    a null handler and does not propagate, so nothing reaches the caller's
    output streams.
    """

    def __init__(self) -> None:
        self._sink = _silent_sink()

    def _emit(self, level: int, fmt: str, *args: Any) -> None:
        self._sink.log(level, fmt, *args)

    def _emit_plain(self, level: int, *args: Any) -> None:
        self._sink.log(level, "%s", " ".join(str(arg) for arg in args))

    def errorf(self, fmt: str, *args: Any) -> None:
        self._emit(logging.ERROR, fmt, *args)

    def error(self, *args: Any) -> None:
        self._emit_plain(logging.ERROR, *args)

    def warnf(self, fmt: str, *args: Any) -> None:
        self._emit(logging.WARNING, fmt, *args)

    def warn(self, *args: Any) -> None:
        self._emit_plain(logging.WARNING, *args)

    def debugf(self, fmt: str, *args: Any) -> None:
        self._emit(logging.DEBUG, fmt, *args)

    def debug(self, *args: Any) -> None:
        self._emit_plain(logging.DEBUG, *args)

    def infof(self, fmt: str, *args: Any) -> None:
        self._emit(logging.INFO, fmt, *args)

    def info(self, *args: Any) -> None:
        self._emit_plain(logging.INFO, *args)


_logger: Logger = SilentLogger()


def set_logger(logger: Logger) -> None:
    """Install the logger that all library code writes to."""
    global _logger
    _logger = logger


def get_logger() -> Logger:
    """Return the logger currently in use."""
    return _logger


def errorf(fmt: str, *args: Any) -> None:
    _logger.errorf(fmt, *args)


def error(*args: Any) -> None:
    _logger.error(*args)


def warnf(fmt: str, *args: Any) -> None:
    _logger.warnf(fmt, *args)


def warn(*args: Any) -> None:
    _logger.warn(*args)


def debugf(fmt: str, *args: Any) -> None:
    _logger.debugf(fmt, *args)


def debug(*args: Any) -> None:
    _logger.debug(*args)


def infof(fmt: str, *args: Any) -> None:
    _logger.infof(fmt, *args)


def info(*args: Any) -> None:
    _logger.info(*args)