"""Retention cleaner: periodically purge rows older than the retention window.

A single background task ticks on a fixed-rate schedule. Each tick runs one
cleanup pass, which deletes expired rows in bounded chunks so no single
statement holds the table for long. Every chunk runs on its own cursor and
transaction.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import suppress
from datetime import datetime

import duckdb

from config import RetentionConfig

from .mapping import in_time_base
from .models import utc_now
from .schema import LogStore
from .selflog import selflog


class RetentionCleaner:
    """Owns the cleanup schedule for one table.

    Lifecycle: `start()` launches the schedule, `aclose()` stops it. A pass
    that is already running when a new tick (or a manual `run_once()`)
    arrives is not re-entered; the newcomer is skipped.
    """

    def __init__(
        self,
        *,
        store: LogStore,
        table: str,
        time_column: str,
        config: RetentionConfig,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Create a cleaner; raises `ValueError` for an unusable configuration."""
        if not time_column:
            raise ValueError("time_column is required for retention cleanup.")
        if config.delete_limit < 0:
            raise ValueError(f"delete_limit must be >= 0. Got: {config.delete_limit}")

        self._store = store
        self._table = table
        self._time_column = time_column
        self._config = config
        self._clock = clock

        self._busy = asyncio.Lock()
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def config(self) -> RetentionConfig:
        return self._config

    @property
    def running(self) -> bool:
        """True while a cleanup pass is in flight."""
        return self._busy.locked()

    def start(self) -> None:
        """Start the background schedule (idempotent while running)."""
        if self._closed:
            raise RuntimeError("RetentionCleaner is closed.")
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._run_schedule(), name="retention-cleaner")

    async def aclose(self) -> None:
        """Stop the schedule, letting an in-flight pass finish.

        Safe to call multiple times.
        """
        if self._closed:
            return
        self._closed = True
        self._stop.set()
        if self._task is not None:
            with suppress(asyncio.CancelledError):
                await self._task

    def cutoff(self) -> datetime:
        """Expiration cutoff as a naive datetime in the configured time base."""
        now = in_time_base(self._clock(), utc=self._config.time_in_utc)
        return (now - self._config.records_expiration).replace(tzinfo=None)

    async def run_once(self) -> int | None:
        """Run one cleanup pass now.

        Returns the number of rows deleted, or None when the pass was skipped
        (another pass in flight) or failed (reported on the side channel).
        """
        if self._busy.locked():
            selflog.debug("Cleanup of %s skipped: previous pass still running", self._table)
            return None
        async with self._busy:
            try:
                return await asyncio.to_thread(self._cleanup_pass)
            except Exception as exc:  # noqa: BLE001 - unattended task, report and carry on
                selflog.error("Periodic cleanup of %s failed: %s", self._table, exc)
                return None

    async def _run_schedule(self) -> None:
        """Fixed-rate loop: initial delay, then one tick per cleanup period."""
        loop = asyncio.get_running_loop()
        period = self._config.cleanup_frequency.total_seconds()
        next_tick = loop.time() + self._config.initial_delay.total_seconds()
        while not await self._wait_for_stop(next_tick - loop.time()):
            await self.run_once()
            next_tick += period
            # Ticks missed while a pass ran long are dropped, not replayed.
            while next_tick <= loop.time():
                next_tick += period

    async def _wait_for_stop(self, timeout: float) -> bool:
        """Sleep up to `timeout` seconds; True if a stop was requested."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=max(0.0, timeout))
        except TimeoutError:
            return False
        return True

    def _cleanup_pass(self) -> int:
        """Delete expired rows chunk by chunk (blocking; runs in a worker thread)."""
        cutoff = self.cutoff()
        limit = self._config.delete_limit
        total = 0
        while True:
            affected = self._delete_chunk(cutoff)
            total += affected
            # A cap of 0 deletes nothing; the pass ends after that one statement.
            if limit == 0 or affected < limit:
                break
        if total:
            selflog.info("Cleanup of %s removed %d rows older than %s", self._table, total, cutoff)
        return total

    def _delete_sql(self) -> str:
        table, column = self._table, self._time_column
        limit = int(self._config.delete_limit)
        return (
            f'delete from "{table}" where id in ('
            f'select id from "{table}" where "{column}" < ? order by "{column}" limit {limit})'
        )

    def _delete_chunk(self, cutoff: datetime) -> int:
        """Run one bounded delete on a fresh cursor; returns rows affected."""
        with self._store.cursor() as conn:
            conn.begin()
            try:
                row = conn.execute(self._delete_sql(), [cutoff]).fetchone()
                conn.commit()
            except Exception:
                with suppress(duckdb.Error):
                    conn.rollback()
                raise
        return int(row[0]) if row else 0
