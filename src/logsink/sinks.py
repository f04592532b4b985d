"""Log sinks (batch targets)."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Sequence

from config import SinkConfig

from .models import LogEvent
from .retention import RetentionCleaner
from .schema import LogStore, bootstrap
from .writer import BatchWriter


class InMemoryLogSink:
    """In-memory batch target for tests and local debugging."""

    def __init__(self, *, succeed: bool = True) -> None:
        """Create an empty sink; `succeed=False` makes every batch fail."""
        self._lock = threading.Lock()
        self._batches: list[list[LogEvent]] = []
        self.succeed = succeed

    def on_batch_ready(self, batch: Sequence[LogEvent]) -> bool:
        """Store a copy of the batch (thread-safe)."""
        with self._lock:
            self._batches.append(list(batch))
        return self.succeed

    def batches(self) -> Sequence[list[LogEvent]]:
        """Return a point-in-time copy of every batch received."""
        with self._lock:
            return [list(b) for b in self._batches]


class DuckDBLogSink:
    """DuckDB-backed sink: batch writer plus optional retention cleaner.

    The sink owns one database handle for its lifetime; the writer and the
    cleaner each take their own cursor from it per operation. The table is
    bootstrapped on construction. Retention runs only when the configuration
    enables it, and only after `start()` is called from a running event loop.
    """

    def __init__(self, config: SinkConfig) -> None:
        """Create (or open) the log table described by `config`."""
        self._config = config
        self._store = LogStore(config.db_path)
        self.schema_ready = bootstrap(self._store, config.table_name)
        self._writer = BatchWriter(
            store=self._store,
            table=config.table_name,
            store_timestamp_in_utc=config.store_timestamp_in_utc,
        )

        retention = config.retention()
        self._cleaner: RetentionCleaner | None = None
        if retention is not None:
            self._cleaner = RetentionCleaner(
                store=self._store,
                table=config.table_name,
                time_column=config.time_column,
                config=retention,
            )

    @property
    def store(self) -> LogStore:
        return self._store

    @property
    def writer(self) -> BatchWriter:
        return self._writer

    @property
    def cleaner(self) -> RetentionCleaner | None:
        return self._cleaner

    def on_batch_ready(self, batch: Sequence[LogEvent]) -> bool:
        """Persist a batch atomically; False means nothing was written."""
        return self._writer.persist(batch)

    def start(self) -> None:
        """Start the retention schedule, if retention is enabled."""
        if self._cleaner is not None:
            self._cleaner.start()

    async def aclose(self) -> None:
        """Stop the retention schedule, then close the database.

        Safe to call multiple times. Batches delivered afterwards fail.
        """
        if self._cleaner is not None:
            await self._cleaner.aclose()
        await asyncio.to_thread(self._store.close)
