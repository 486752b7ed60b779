"""A process-wide logger writing level-tagged, timestamped lines to stdout."""

from __future__ import annotations

import enum
import sys
import threading
from typing import ClassVar, Optional, TextIO

from .timestamp import Timestamp

MAX_MESSAGE = 1023


class LogLevel(enum.IntEnum):
    INFO = 0
    ERROR = 1
    FATAL = 2
    DEBUG = 3


class Logger:
    """Singleton logger; use :meth:`instance` to obtain it."""

    _instance: ClassVar[Optional["Logger"]] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self) -> None:
        self.debug_enabled = False
        self.stream: Optional[TextIO] = None
        self._write_lock = threading.Lock()

    @classmethod
    def instance(cls) -> "Logger":
        """Return the one shared logger."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def log(self, level: LogLevel, msg: str) -> None:
        """Write ``[LEVEL]time : msg`` as one line."""
        line = f"[{LogLevel(level).name}]{Timestamp.now().to_string()} : {msg}"
        stream = self.stream if self.stream is not None else sys.stdout
        with self._write_lock:
            print(line, file=stream, flush=True)


def _format(fmt: str, args: tuple) -> str:
    text = fmt % args if args else fmt
    return text[:MAX_MESSAGE]


def log_info(fmt: str, *args) -> None:
    Logger.instance().log(LogLevel.INFO, _format(fmt, args))


def log_error(fmt: str, *args) -> None:
    Logger.instance().log(LogLevel.ERROR, _format(fmt, args))


def log_fatal(fmt: str, *args) -> None:
    """Log the message and terminate with exit status -1."""
    Logger.instance().log(LogLevel.FATAL, _format(fmt, args))
    raise SystemExit(-1)


def log_debug(fmt: str, *args) -> None:
    """Log only when debugging output has been switched on."""
    logger = Logger.instance()
    if logger.debug_enabled:
        logger.log(LogLevel.DEBUG, _format(fmt, args))