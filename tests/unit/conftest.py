from __future__ import annotations

import io
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from logsink import selflog
from logsink.schema import LogStore


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """A fresh DuckDB file per test."""
    return tmp_path / "logs.duckdb"


@pytest.fixture
def selflog_output() -> Iterator[io.StringIO]:
    """Capture the side diagnostic channel.

    The channel does not propagate to the root logger, so `caplog` can't see it.
    """
    stream = io.StringIO()
    selflog.enable(stream)
    yield stream
    selflog.disable()


@pytest.fixture
def store(db_path: Path) -> Iterator[LogStore]:
    """A store on the test database, closed at teardown."""
    store = LogStore(db_path)
    yield store
    store.close()


@pytest.fixture
def query(store: LogStore) -> Callable[..., list[tuple[Any, ...]]]:
    """Run a read query against the test database on a short-lived cursor."""

    def _query(sql: str, params: list[Any] | None = None) -> list[tuple[Any, ...]]:
        with store.cursor() as conn:
            return conn.execute(sql, params or []).fetchall()

    return _query
