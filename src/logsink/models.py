"""Log event and log record models.

- `LogEvent` is what the application hands to the sink (structured, typed).
- `LogRecord` is what ends up in a table row (every column already rendered
  to the string the store expects).
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(tz=timezone.utc)


class LogEventLevel(str, Enum):
    """Severity of an upstream log event."""

    VERBOSE = "Verbose"
    DEBUG = "Debug"
    INFORMATION = "Information"
    WARNING = "Warning"
    ERROR = "Error"
    FATAL = "Fatal"


class LogEvent(BaseModel):
    """A structured log event produced by the application."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    timestamp: datetime = Field(default_factory=utc_now)

    # Unknown values are accepted here and mapped to INFO when persisted.
    level: LogEventLevel | str | int

    message: str = ""
    properties: dict[str, Any] = Field(default_factory=dict)
    exception: BaseException | None = None

    @field_validator("timestamp")
    def ensure_aware(cls, v: datetime) -> datetime:
        """Treat naive timestamps as local time."""
        if v.tzinfo is None:
            return v.astimezone()
        return v


class LogRecord(BaseModel):
    """One row of the log table, rendered and ready to insert."""

    model_config = ConfigDict(frozen=True)

    timestamp: str = Field(..., min_length=1)
    level: str = Field(..., min_length=1)
    message: str = ""
    long_date: str = Field(..., min_length=1)
    logger: str = ""
    trace_identifier: str = ""
    exception: str = ""
    properties: str = ""

    def as_params(self) -> list[str]:
        """Parameters in insert-column order."""
        return [
            self.timestamp,
            self.level,
            self.message,
            self.long_date,
            self.logger,
            self.trace_identifier,
            self.exception,
            self.properties,
        ]
