"""
Spawny Logging - Centralized logging configuration.

Two loggers:
- logger: internal diagnostics -> stderr, format: [SPAWNY] LEVEL: message
- console: user-facing messages -> stderr, no prefix/timestamp

Child processes inherit stdout, so spawny never writes to it itself.
"""
import logging
import sys
from typing import Union


class _LazyStreamHandler(logging.StreamHandler):
    """StreamHandler that looks up sys.stderr on every emit.

    Children own stdout, so spawny only writes to stderr, and always to
    whatever sys.stderr is at the time of the record rather than the
    object bound when the logger was first created.
    """

    def __init__(self, stream_attr: str = "stderr"):
        super().__init__()
        self._stream_attr = stream_attr

    @property
    def stream(self):
        return getattr(sys, self._stream_attr)

    @stream.setter
    def stream(self, value):
        pass  # Ignore; always use current sys stream


def get_logger(name: str = "spawny") -> logging.Logger:
    """Get the internal logger ([SPAWNY] prefix, stderr)."""
    log = logging.getLogger(name)
    if not log.handlers:
        handler = _LazyStreamHandler("stderr")
        handler.setFormatter(logging.Formatter("[SPAWNY] %(levelname)s: %(message)s"))
        log.addHandler(handler)
        log.setLevel(logging.INFO)
        log.propagate = False
    return log


def get_console(name: str = "spawny.console") -> logging.Logger:
    """Get the console logger for user-facing messages (stderr, no prefix)."""
    log = logging.getLogger(name)
    if not log.handlers:
        handler = _LazyStreamHandler("stderr")
        handler.setFormatter(logging.Formatter("%(message)s"))
        log.addHandler(handler)
        log.setLevel(logging.INFO)
        log.propagate = False
    return log


def set_level(level: Union[int, str]) -> None:
    """Apply *level* to every spawny logger created so far."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    for name, obj in list(logging.Logger.manager.loggerDict.items()):
        if name.startswith("spawny") and isinstance(obj, logging.Logger):
            obj.setLevel(level)
