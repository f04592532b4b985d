"""Pure functions that turn a `LogEvent` into a `LogRecord` row.

Kept free of I/O so every column rule can be tested on its own.
"""

from __future__ import annotations

import json
import traceback
from collections.abc import Mapping
from datetime import date, datetime, time, timezone
from typing import Any

from .models import LogEvent, LogEventLevel, LogRecord

# Property names used by the column rules.
SOURCE_CONTEXT_PROPERTY = "SourceContext"
REQUEST_ID_PROPERTY = "RequestId"
LOG_TAG_PROPERTY = '"Message"'
LOG_TAG_MARKER = "logTag"

_LOG_TAG_TOKENS = ("=", "{", "}", LOG_TAG_MARKER)

_LEVEL_CODES: dict[Any, str] = {
    LogEventLevel.VERBOSE: "TRACE",
    LogEventLevel.DEBUG: "DEBUG",
    LogEventLevel.INFORMATION: "INFO",
    LogEventLevel.WARNING: "WARN",
    LogEventLevel.ERROR: "ERROR",
    LogEventLevel.FATAL: "FATAL",
}

_SCALAR_TYPES = (str, int, float, bool, datetime, date, time)


def level_code(level: Any) -> str:
    """Map a level to its short code; anything unrecognized is INFO."""
    try:
        return _LEVEL_CODES.get(level, "INFO")
    except TypeError:
        # Unhashable input.
        return "INFO"


def scalar_value(value: Any) -> Any:
    """Return `value` if it is a scalar property value, else None."""
    if isinstance(value, _SCALAR_TYPES):
        return value
    return None


def parse_log_tag(value: Any) -> str | None:
    """Extract a logger name from a log-tag marker value.

    Returns None when the value is not a scalar or does not carry the marker.
    """
    scalar = scalar_value(value)
    if scalar is None:
        return None
    text = str(scalar)
    if LOG_TAG_MARKER not in text:
        return None
    for token in _LOG_TAG_TOKENS:
        text = text.replace(token, "")
    return text.strip()


def resolve_logger(properties: Mapping[str, Any]) -> str:
    """Resolve the Logger column: log tag first, then source context."""
    tagged = parse_log_tag(properties.get(LOG_TAG_PROPERTY))
    if tagged is not None:
        return tagged
    source = scalar_value(properties.get(SOURCE_CONTEXT_PROPERTY))
    return "" if source is None else str(source)


def resolve_trace_identifier(properties: Mapping[str, Any]) -> str:
    request_id = scalar_value(properties.get(REQUEST_ID_PROPERTY))
    return "" if request_id is None else str(request_id)


def in_time_base(ts: datetime, *, utc: bool) -> datetime:
    """Convert to UTC or to the local zone, per the sink's time base."""
    if utc:
        return ts.astimezone(timezone.utc)
    return ts.astimezone()


def format_timestamp(ts: datetime, *, utc: bool) -> str:
    """Render as `yyyy-MM-dd HH:mm:ss.fff+HH:MM`."""
    local = in_time_base(ts, utc=utc)
    offset = local.strftime("%z")
    return f"{local:%Y-%m-%d %H:%M:%S}.{local.microsecond // 1000:03d}{offset[:3]}:{offset[3:5]}"


def format_long_date(ts: datetime, *, utc: bool) -> str:
    """Render as `yyyy-MM-dd HH:mm:ss` (whole seconds, no offset)."""
    return f"{in_time_base(ts, utc=utc):%Y-%m-%d %H:%M:%S}"


def format_exception(exc: BaseException | None) -> str:
    if exc is None:
        return ""
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip("\n")


def format_properties(properties: Mapping[str, Any]) -> str:
    """Serialize all properties as compact JSON, or "" when there are none."""
    if not properties:
        return ""
    return json.dumps(dict(properties), separators=(",", ":"), sort_keys=True, default=str)


def to_log_record(event: LogEvent, *, utc: bool) -> LogRecord:
    """Render a `LogEvent` into the row written by the batch writer."""
    return LogRecord(
        timestamp=format_timestamp(event.timestamp, utc=utc),
        level=level_code(event.level),
        message=event.message,
        long_date=format_long_date(event.timestamp, utc=utc),
        logger=resolve_logger(event.properties),
        trace_identifier=resolve_trace_identifier(event.properties),
        exception=format_exception(event.exception),
        properties=format_properties(event.properties),
    )
