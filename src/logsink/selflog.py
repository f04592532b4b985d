"""Side diagnostic channel for the sink's own failures.

The sink must never report its errors through the log stream it is
persisting, so this logger does not propagate to the root logger. It stays
silent until `enable()` attaches a handler.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

SELFLOG_NAME = "logsink.selflog"

selflog = logging.getLogger(SELFLOG_NAME)
selflog.propagate = False
selflog.addHandler(logging.NullHandler())

_handler: logging.Handler | None = None


def enable(stream: TextIO | None = None, *, level: int = logging.DEBUG) -> logging.Handler:
    """Write side-channel diagnostics to `stream` (stderr by default)."""
    global _handler
    disable()
    _handler = logging.StreamHandler(stream or sys.stderr)
    _handler.setFormatter(logging.Formatter("%(asctime)s [logsink] %(levelname)s %(message)s"))
    selflog.addHandler(_handler)
    selflog.setLevel(level)
    return _handler


def disable() -> None:
    """Detach the handler installed by `enable()`, if any."""
    global _handler
    if _handler is not None:
        selflog.removeHandler(_handler)
        _handler = None
