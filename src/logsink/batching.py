"""Async batching queue that feeds log events to a batch target.

Events are accepted without blocking, grouped into batches (by size or by
elapsed time) and handed to a `BatchTarget` one batch at a time, in arrival
order, from a single background task.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol

from .models import LogEvent, utc_now


class BatchTarget(Protocol):
    """Anything that can persist a ready batch.

    Targets are synchronous; the queue calls them from a worker thread so the
    event loop stays responsive. Returning False (or raising) marks the batch
    as failed.
    """

    def on_batch_ready(self, batch: Sequence[LogEvent]) -> bool:
        """Persist a non-empty, ordered batch."""


class BatchingQueue:
    """Buffers events and delivers them in batches from a background task."""

    def __init__(
        self,
        *,
        target: BatchTarget,
        batch_size: int = 100,
        period_s: float = 2.0,
        max_queue_size: int = 10000,
    ) -> None:
        """Create a queue in front of `target`.

        Args:
            target: Receives each ready batch.
            batch_size: Upper bound on events per batch.
            period_s: Max time the first event of a batch waits before delivery.
            max_queue_size: Bound for in-memory buffering; events are dropped
                when full so logging never blocks the application.
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be > 0. Got: {batch_size}")
        if period_s <= 0:
            raise ValueError(f"period_s must be > 0. Got: {period_s}")

        self._target = target
        self._batch_size = batch_size
        self._period_s = period_s
        self._queue: asyncio.Queue[LogEvent | None] = asyncio.Queue(maxsize=max_queue_size)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._worker: asyncio.Task[None] | None = None
        self._closed = False

        self._delivered_batches = 0
        self._delivered_events = 0
        self._failed_batches = 0
        self._dropped_events = 0
        self._first_failure_at: datetime | None = None
        self._last_failure_at: datetime | None = None

    def start(self) -> None:
        """Start the background delivery task if it hasn't been started yet.

        Must be called from the event loop that will own the worker.
        """
        if self._worker is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._worker = self._loop.create_task(self._run_worker(), name="logsink-batch-writer")

    def submit(self, event: LogEvent) -> bool:
        """Enqueue an event (non-blocking). Returns False if it was dropped."""
        if self._closed:
            self._record_drop()
            return False

        self.start()

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._record_drop()
            return False
        return True

    def submit_threadsafe(self, event: LogEvent) -> None:
        """Enqueue from any thread, hopping onto the owning loop when needed."""
        loop = self._loop
        if self._closed or loop is None or loop.is_closed():
            self._record_drop()
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self.submit(event)
        else:
            loop.call_soon_threadsafe(self.submit, event)

    async def aclose(self) -> None:
        """Deliver everything still buffered, then stop.

        Safe to call multiple times.
        """
        if self._closed:
            return
        self._closed = True
        if self._worker is not None:
            await self._queue.put(None)
            await self._worker

    async def _run_worker(self) -> None:
        """Background loop: collect a batch, deliver it, repeat."""
        loop = asyncio.get_running_loop()
        while True:
            first = await self._queue.get()
            if first is None:
                return

            batch = [first]
            stopping = False
            deadline = loop.time() + self._period_s
            while len(batch) < self._batch_size:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    item = await asyncio.wait_for(self._queue.get(), timeout=remaining)
                except TimeoutError:
                    break
                if item is None:
                    stopping = True
                    break
                batch.append(item)

            await self._deliver(batch)
            if stopping:
                return

    async def _deliver(self, batch: list[LogEvent]) -> None:
        """Hand a batch to the target; failures are counted, not retried."""
        try:
            ok = await asyncio.to_thread(self._target.on_batch_ready, batch)
        except Exception:  # noqa: BLE001 - a broken target must not stop delivery
            ok = False
        if ok:
            self._delivered_batches += 1
            self._delivered_events += len(batch)
            return
        self._failed_batches += 1
        self._record_failure()

    def _record_drop(self) -> None:
        self._dropped_events += 1
        self._record_failure()

    def _record_failure(self) -> None:
        now = utc_now()
        self._first_failure_at = self._first_failure_at or now
        self._last_failure_at = now

    def degraded_status(self) -> dict[str, Any]:
        """Return a minimal delivery/degraded-status snapshot."""
        return {
            "delivered_batches": self._delivered_batches,
            "delivered_events": self._delivered_events,
            "failed_batches": self._failed_batches,
            "dropped_events": self._dropped_events,
            "first_failure_at": self._first_failure_at,
            "last_failure_at": self._last_failure_at,
        }
