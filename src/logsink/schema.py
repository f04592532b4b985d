"""Log table layout and idempotent bootstrap."""

from __future__ import annotations

import threading
from pathlib import Path

import duckdb

from .selflog import selflog

INSERT_COLUMNS = (
    "Timestamp",
    "Level",
    "Message",
    "LongDate",
    "Logger",
    "TraceIdentifier",
    "Exception",
    "Properties",
)


class LogStore:
    """One DuckDB database handle shared by the writer and the cleaner.

    The database is opened once, on first use, and kept until `close()`.
    Callers take a `cursor()` per operation: each cursor is its own DuckDB
    connection with its own transaction, so the writer and the cleaner can
    run side by side from different threads.
    """

    def __init__(self, path: str | Path) -> None:
        """Create a store for the database file at `path` (opened lazily)."""
        self._path = Path(path)
        self._lock = threading.Lock()
        self._conn: duckdb.DuckDBPyConnection | None = None
        self._closed = False

    @property
    def path(self) -> Path:
        return self._path

    def cursor(self) -> duckdb.DuckDBPyConnection:
        """Open a new cursor; close it when the operation is done."""
        with self._lock:
            if self._closed:
                raise duckdb.ConnectionException(f"LogStore for {self._path} is closed.")
            if self._conn is None:
                self._conn = duckdb.connect(str(self._path))
            return self._conn.cursor()

    def close(self) -> None:
        """Close the database handle. Safe to call multiple times."""
        with self._lock:
            self._closed = True
            if self._conn is not None:
                self._conn.close()
                self._conn = None


def sequence_name(table: str) -> str:
    return f"{table}_id_seq"


def create_table_sql(table: str) -> str:
    return f"""
    create table if not exists "{table}" (
      id bigint primary key default nextval('{sequence_name(table)}'),
      "Timestamp" varchar(100),
      "Level" varchar(15),
      "Message" text,
      "LongDate" timestamp default null,
      "Logger" varchar(1024) default null,
      "TraceIdentifier" varchar(128) default null,
      "Exception" text,
      "Properties" text,
      "_ts" timestamp default current_timestamp
    )
    """


def insert_sql(table: str) -> str:
    columns = ", ".join(f'"{c}"' for c in INSERT_COLUMNS)
    placeholders = ", ".join("?" for _ in INSERT_COLUMNS)
    return f'insert into "{table}" ({columns}) values ({placeholders})'


def ensure_schema(conn: duckdb.DuckDBPyConnection, table: str) -> bool:
    """Create the log table and its `LongDate` index if missing.

    Safe to call repeatedly. Returns False when the table could not be
    created; a failed index creation is reported but does not fail bootstrap.
    """
    try:
        conn.execute(f'create sequence if not exists "{sequence_name(table)}"')
        conn.execute(create_table_sql(table))
    except duckdb.Error as exc:
        selflog.error("Creating log table %s failed: %s", table, exc)
        return False

    try:
        conn.execute(f'create index if not exists "{table}_LongDate" on "{table}" ("LongDate")')
    except duckdb.Error as exc:
        selflog.warning("Creating LongDate index on %s failed: %s", table, exc)
    return True


def bootstrap(store: LogStore, table: str) -> bool:
    """Run `ensure_schema` on a cursor of `store`."""
    try:
        with store.cursor() as conn:
            return ensure_schema(conn, table)
    except duckdb.Error as exc:
        selflog.error("Connecting to %s for bootstrap failed: %s", store.path, exc)
        return False
