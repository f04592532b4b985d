"""Durable log sink backed by DuckDB.

This package provides:
- Batched, atomic persistence of structured log events to a DuckDB table.
- A periodic retention cleaner that purges expired rows in bounded chunks.
- A non-blocking batching queue and a stdlib `logging` handler in front of it.
- A side diagnostic channel (`logsink.selflog`) for the sink's own failures.
"""

from .batching import BatchingQueue, BatchTarget
from .handler import LogSinkHandler
from .models import LogEvent, LogEventLevel, LogRecord
from .retention import RetentionCleaner
from .schema import LogStore
from .sinks import DuckDBLogSink, InMemoryLogSink
from .writer import BatchWriter

__all__ = [
    "BatchTarget",
    "BatchWriter",
    "BatchingQueue",
    "DuckDBLogSink",
    "InMemoryLogSink",
    "LogEvent",
    "LogEventLevel",
    "LogRecord",
    "LogSinkHandler",
    "LogStore",
    "RetentionCleaner",
]
