"""Bridge from the stdlib `logging` module into the batching queue."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from .batching import BatchingQueue
from .mapping import SOURCE_CONTEXT_PROPERTY
from .models import LogEvent, LogEventLevel

# Attributes every LogRecord carries; anything else came in through `extra=`.
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys() | {"message", "asctime"}
)


def event_level(levelno: int) -> LogEventLevel:
    """Map a stdlib level number onto the event level scale."""
    if levelno >= logging.CRITICAL:
        return LogEventLevel.FATAL
    if levelno >= logging.ERROR:
        return LogEventLevel.ERROR
    if levelno >= logging.WARNING:
        return LogEventLevel.WARNING
    if levelno >= logging.INFO:
        return LogEventLevel.INFORMATION
    if levelno >= logging.DEBUG:
        return LogEventLevel.DEBUG
    return LogEventLevel.VERBOSE


def record_properties(record: logging.LogRecord) -> dict[str, Any]:
    """Collect `extra=` attributes plus the logger name as `SourceContext`."""
    properties: dict[str, Any] = {SOURCE_CONTEXT_PROPERTY: record.name}
    for key, value in vars(record).items():
        if key not in _STANDARD_ATTRS and not key.startswith("_"):
            properties[key] = value
    return properties


def to_log_event(record: logging.LogRecord) -> LogEvent:
    exception = record.exc_info[1] if record.exc_info else None
    return LogEvent(
        timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc),
        level=event_level(record.levelno),
        message=record.getMessage(),
        properties=record_properties(record),
        exception=exception,
    )


class LogSinkHandler(logging.Handler):
    """Logging handler that submits every record to a `BatchingQueue`.

    Safe to call from any thread. Records from the sink's own loggers are
    ignored so a failing sink can never feed itself.
    """

    def __init__(self, queue: BatchingQueue, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._queue = queue

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == "logsink" or record.name.startswith("logsink."):
            return
        try:
            self._queue.submit_threadsafe(to_log_event(record))
        except Exception:
            self.handleError(record)
