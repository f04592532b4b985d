from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import duckdb
import pytest

from config import SinkConfig
from logsink import BatchingQueue, DuckDBLogSink, InMemoryLogSink, LogEvent, LogEventLevel, LogSinkHandler
from logsink.handler import event_level


@pytest.fixture
def app_logger() -> Iterator[logging.Logger]:
    logger = logging.getLogger("tests.app")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    yield logger
    logger.handlers.clear()
    logger.propagate = True


@pytest.mark.parametrize(
    ("levelno", "expected"),
    [
        (5, LogEventLevel.VERBOSE),
        (logging.DEBUG, LogEventLevel.DEBUG),
        (logging.INFO, LogEventLevel.INFORMATION),
        (logging.WARNING, LogEventLevel.WARNING),
        (logging.ERROR, LogEventLevel.ERROR),
        (logging.CRITICAL, LogEventLevel.FATAL),
    ],
)
def test_event_level_mapping(levelno: int, expected: LogEventLevel) -> None:
    assert event_level(levelno) == expected


@pytest.mark.asyncio
async def test_handler_converts_records(app_logger: logging.Logger) -> None:
    sink = InMemoryLogSink()
    queue = BatchingQueue(target=sink, batch_size=10, period_s=30.0)
    queue.start()
    app_logger.addHandler(LogSinkHandler(queue))

    app_logger.info("user %s logged in", "ada", extra={"RequestId": "req-7"})
    try:
        raise KeyError("missing")
    except KeyError:
        app_logger.exception("lookup failed")
    await queue.aclose()

    first, second = [e for b in sink.batches() for e in b]
    assert first.level == LogEventLevel.INFORMATION
    assert first.message == "user ada logged in"
    assert first.properties["SourceContext"] == "tests.app"
    assert first.properties["RequestId"] == "req-7"
    assert first.exception is None
    assert second.level == LogEventLevel.ERROR
    assert isinstance(second.exception, KeyError)


@pytest.mark.asyncio
async def test_handler_ignores_the_sinks_own_loggers() -> None:
    sink = InMemoryLogSink()
    queue = BatchingQueue(target=sink, batch_size=10, period_s=30.0)
    queue.start()
    handler = LogSinkHandler(queue)

    internal = logging.getLogger("logsink.writer")
    handler.handle(internal.makeRecord(internal.name, logging.ERROR, __file__, 1, "boom", (), None))
    await queue.aclose()

    assert sink.batches() == []


@pytest.mark.asyncio
async def test_end_to_end_into_duckdb(db_path: Path, query, app_logger: logging.Logger) -> None:
    sink = DuckDBLogSink(SinkConfig(db_path=str(db_path), store_timestamp_in_utc=True))
    assert sink.schema_ready
    assert sink.cleaner is None
    queue = BatchingQueue(target=sink, batch_size=2, period_s=30.0)
    queue.start()
    sink.start()
    app_logger.addHandler(LogSinkHandler(queue))

    app_logger.warning("first", extra={"RequestId": "r-1"})
    app_logger.info("tagged", extra={'"Message"': "{logTag=billing}"})
    app_logger.debug("third")
    await queue.aclose()
    await sink.aclose()

    rows = query('select "Level", "Message", "Logger", "TraceIdentifier" from "Logs" order by id')
    assert rows == [
        ("WARN", "first", "tests.app", "r-1"),
        ("INFO", "tagged", "billing", ""),
        ("DEBUG", "third", "tests.app", ""),
    ]
    assert queue.degraded_status()["delivered_batches"] == 2


@pytest.mark.asyncio
async def test_sink_starts_and_stops_retention_when_enabled(db_path: Path) -> None:
    sink = DuckDBLogSink(
        SinkConfig(
            db_path=str(db_path),
            records_expiration=timedelta(hours=1),
            cleanup_frequency=timedelta(minutes=10),
            cleanup_initial_delay=timedelta(seconds=30),
        )
    )
    assert sink.cleaner is not None
    assert sink.cleaner.config.time_in_utc is False

    sink.start()
    await sink.aclose()
    await sink.aclose()

    with pytest.raises(duckdb.ConnectionException):
        sink.store.cursor()
    assert sink.on_batch_ready([LogEvent(level=LogEventLevel.INFORMATION, message="late")]) is False


@pytest.mark.asyncio
async def test_sink_writes_while_cleanup_runs(db_path: Path, selflog_output) -> None:
    sink = DuckDBLogSink(
        SinkConfig(
            db_path=str(db_path),
            records_expiration=timedelta(hours=1),
            cleanup_frequency=timedelta(minutes=10),
            delete_limit=4,
        )
    )
    assert sink.cleaner is not None
    expired = [
        LogEvent(
            timestamp=datetime.now(timezone.utc) - timedelta(days=1),
            level=LogEventLevel.INFORMATION,
            message=f"old-{i}",
        )
        for i in range(5)
    ]

    writes = asyncio.gather(*(asyncio.to_thread(sink.on_batch_ready, expired) for _ in range(20)))
    passes = [await sink.cleaner.run_once() for _ in range(10)]
    results = await writes
    passes.append(await sink.cleaner.run_once())
    await sink.aclose()

    assert all(results)
    assert None not in passes
    assert sum(passes) == 100
    assert "failed" not in selflog_output.getvalue()
