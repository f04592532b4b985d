"""Demo entrypoint wiring the log sink into stdlib logging.

This module intentionally contains a small, end-to-end "smoke test" that:

- Loads configuration from environment.
- Bootstraps the DuckDB log table and starts retention (when configured).
- Routes the root logger through the batching queue into the sink.
- Emits a handful of records and flushes them on shutdown.

It is **not** intended to be production orchestration logic; it is a convenient
manual integration harness.
"""

from __future__ import annotations

import asyncio
import logging

from config import load_config
from logsink import BatchingQueue, DuckDBLogSink, LogSinkHandler, selflog


async def run_demo() -> None:
    """Write a few log records through the full pipeline."""
    cfg = load_config().sink
    selflog.enable()

    sink = DuckDBLogSink(cfg)
    queue = BatchingQueue(
        target=sink,
        batch_size=cfg.batch_size,
        period_s=cfg.batch_period_s,
        max_queue_size=cfg.queue_size,
    )
    handler = LogSinkHandler(queue)

    queue.start()
    sink.start()
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)
    try:
        log = logging.getLogger("demo")
        log.info("Sink demo started", extra={"RequestId": "demo-request"})
        log.debug("Debug detail %s", 42)
        log.warning("Something looks off")
        log.info("Tagged", extra={'"Message"': "{logTag=billing}"})
        try:
            raise RuntimeError("demo failure")
        except RuntimeError:
            log.exception("Handled an error")
    finally:
        root.removeHandler(handler)
        await queue.aclose()
        await sink.aclose()
        print(f"[logsink] {queue.degraded_status()}")


def main() -> None:
    """CLI entrypoint for running the demo with `python src/main.py`."""
    asyncio.run(run_demo())


if __name__ == "__main__":
    main()
