"""Batch writer: persist a whole batch of log events in one transaction."""

from __future__ import annotations

from collections.abc import Sequence
from contextlib import suppress

import duckdb

from .mapping import to_log_record
from .models import LogEvent
from .schema import LogStore, insert_sql
from .selflog import selflog


class BatchWriter:
    """Writes batches atomically: all rows of a batch are committed or none are.

    Each `persist` call opens its own cursor (and transaction) on the shared
    store and closes it before returning.
    """

    def __init__(self, *, store: LogStore, table: str, store_timestamp_in_utc: bool = False) -> None:
        """Create a writer for `table` in `store`."""
        self._store = store
        self._table = table
        self._utc = store_timestamp_in_utc
        self._insert_sql = insert_sql(table)

    @property
    def table(self) -> str:
        return self._table

    def persist(self, batch: Sequence[LogEvent]) -> bool:
        """Insert every event of `batch`, in order, inside one transaction.

        Returns False (after reporting on the side channel) if anything fails;
        in that case no row of the batch is visible. The caller owns retries.
        """
        if not batch:
            return True
        try:
            with self._store.cursor() as conn:
                conn.begin()
                try:
                    for event in batch:
                        record = to_log_record(event, utc=self._utc)
                        conn.execute(self._insert_sql, record.as_params())
                    conn.commit()
                except Exception:
                    with suppress(duckdb.Error):
                        conn.rollback()
                    raise
        except Exception as exc:  # noqa: BLE001 - failures are reported, never raised
            selflog.error("Writing batch of %d events to %s failed: %s", len(batch), self._table, exc)
            return False
        return True
