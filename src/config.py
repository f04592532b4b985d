"""Configuration loading and validation.

This module is responsible for:

- Loading `.env` into the process environment (without overriding existing vars).
- Converting environment variables into strongly-typed Pydantic models.
- Validating required fields and providing actionable error messages.
"""

import os
import re
from datetime import timedelta
from typing import TypeVar

import dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

_T = TypeVar("_T", int, float)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _get_required_env(name: str) -> str:
    """Read a required env var or raise a helpful error."""
    value = os.getenv(name, "").strip()
    if not value:
        raise ValueError(f"{name} is required. Please set it in your .env file.")
    if value.startswith("your_") and value.endswith("_here"):
        raise ValueError(f"{name} is required. Please replace the placeholder value in your .env file.")
    return value


def _get_env_str(name: str, default: str) -> str:
    """Read a string env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def _get_env_bool(name: str, default: bool) -> bool:
    """Read a boolean env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    normalized = raw.strip().lower()
    if normalized in {"true", "1", "yes", "y", "on"}:
        return True
    if normalized in {"false", "0", "no", "n", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean (true/false). Got: {raw!r}")


def _get_env_number(name: str, default: _T, cast: type[_T]) -> _T:
    """Read an int/float env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a {cast.__name__}. Got: {raw!r}") from exc


def _get_env_seconds(name: str) -> timedelta | None:
    """Read an optional duration given in seconds."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    try:
        return timedelta(seconds=float(raw))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a number of seconds. Got: {raw!r}") from exc


class RetentionConfig(BaseModel):
    """Retention policy for the log table. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    records_expiration: timedelta = Field(..., description="Maximum age of a row before it is purged")
    cleanup_frequency: timedelta = Field(..., description="Period between cleanup passes")
    delete_limit: int = Field(default=10000, ge=0, description="Max rows per delete statement (0 deletes nothing)")
    time_in_utc: bool = Field(default=False, description="Must match the writer's time base")
    initial_delay: timedelta = Field(default=timedelta(seconds=2), description="Delay before the first pass")

    @field_validator("records_expiration", "cleanup_frequency")
    def validate_positive(cls, v: timedelta) -> timedelta:
        """Durations must be strictly positive."""
        if v <= timedelta(0):
            raise ValueError(f"duration must be positive. Got: {v!r}")
        return v

    @field_validator("initial_delay")
    def validate_initial_delay(cls, v: timedelta) -> timedelta:
        """The first pass cannot be scheduled in the past."""
        if v < timedelta(0):
            raise ValueError(f"initial_delay must not be negative. Got: {v!r}")
        return v


class SinkConfig(BaseModel):
    """Configuration for the DuckDB log sink."""

    db_path: str = Field(..., description="DuckDB database file (connection target)")
    table_name: str = Field(default="Logs", description="Log table name")
    time_column: str = Field(default="LongDate", description="Column compared against the retention cutoff")
    store_timestamp_in_utc: bool = Field(default=False, description="Render timestamps in UTC instead of local time")

    batch_size: int = Field(default=100, gt=0, description="Max events per batch")
    batch_period_s: float = Field(default=2.0, gt=0, description="Max seconds an event waits for its batch")
    queue_size: int = Field(default=10000, gt=0, description="In-memory buffer bound; events are dropped when full")

    records_expiration: timedelta | None = Field(default=None, description="Retention window (None disables cleanup)")
    cleanup_frequency: timedelta | None = Field(default=None, description="Cleanup period (None disables cleanup)")
    delete_limit: int = Field(default=10000, ge=0, description="Max rows per delete statement (0 deletes nothing)")
    cleanup_initial_delay: timedelta = Field(default=timedelta(seconds=2), description="Delay before the first pass")

    @field_validator("db_path")
    def validate_db_path(cls, v: str) -> str:
        """Validate the connection target is set."""
        if not v or not v.strip():
            raise ValueError("LOGSINK_DB_PATH is required. Please set it in your .env file.")
        return v

    @field_validator("table_name", "time_column")
    def validate_identifier(cls, v: str) -> str:
        """Table and column names are interpolated into SQL, so keep them plain."""
        if not _IDENTIFIER.match(v):
            raise ValueError(f"must be a plain SQL identifier (letters, digits, underscore). Got: {v!r}")
        return v

    @property
    def retention_enabled(self) -> bool:
        """Cleanup runs only when both durations are set and positive."""
        return (
            self.records_expiration is not None
            and self.records_expiration > timedelta(0)
            and self.cleanup_frequency is not None
            and self.cleanup_frequency > timedelta(0)
        )

    def retention(self) -> RetentionConfig | None:
        """Build the retention policy, sharing this sink's time base."""
        if not self.retention_enabled:
            return None
        return RetentionConfig(
            records_expiration=self.records_expiration,
            cleanup_frequency=self.cleanup_frequency,
            delete_limit=self.delete_limit,
            time_in_utc=self.store_timestamp_in_utc,
            initial_delay=self.cleanup_initial_delay,
        )


class Config(BaseModel):
    """Top-level application configuration."""

    sink: SinkConfig = Field(..., description="Log sink configuration")


def load_config() -> Config:
    """Load application configuration from environment variables.

    Notes:
    - Calls `dotenv.load_dotenv()` so local `.env` values are visible to the process.
    - Raises `ValueError` with actionable messages when required configuration is
      missing or invalid.
    """
    # Load variables from `.env` into the process environment (without overriding
    # already-set env vars).
    dotenv.load_dotenv()

    sink = SinkConfig(
        db_path=_get_required_env("LOGSINK_DB_PATH"),
        table_name=_get_env_str("LOGSINK_TABLE_NAME", "Logs"),
        time_column=_get_env_str("LOGSINK_TIME_COLUMN", "LongDate"),
        store_timestamp_in_utc=_get_env_bool("LOGSINK_STORE_TIMESTAMP_IN_UTC", False),
        batch_size=_get_env_number("LOGSINK_BATCH_SIZE", 100, int),
        batch_period_s=_get_env_number("LOGSINK_BATCH_PERIOD_S", 2.0, float),
        queue_size=_get_env_number("LOGSINK_QUEUE_SIZE", 10000, int),
        records_expiration=_get_env_seconds("LOGSINK_RECORDS_EXPIRATION_S"),
        cleanup_frequency=_get_env_seconds("LOGSINK_CLEANUP_FREQUENCY_S"),
        delete_limit=_get_env_number("LOGSINK_DELETE_LIMIT", 10000, int),
        cleanup_initial_delay=timedelta(seconds=_get_env_number("LOGSINK_CLEANUP_INITIAL_DELAY_S", 2.0, float)),
    )
    return Config(sink=sink)
