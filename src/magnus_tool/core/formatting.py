"""Display formatting for result cell values and durations."""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any

from magnus_tool.core.models import ColumnType

NULL_DISPLAY = "null"

# fromisoformat() accepts at most microsecond precision.
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


def _natural_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a raw DateTime cell into a local datetime.

    Accepts datetime objects, ISO-8601 strings and epoch milliseconds.
    Naive values are taken as local time; aware values are converted to
    the local zone. Returns None when the value cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = _EXCESS_FRACTION.sub(r"\1", value.strip())
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed


def format_date_display(value: datetime) -> str:
    """Render as ``YYYY-MM-DD HH:MM:SS.mmm`` using the value's own fields."""
    return (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d} "
        f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}."
        f"{value.microsecond // 1000:03d}"
    )


def format_cell_value(column_type: ColumnType, value: Any) -> str:
    """Get the display text for a raw cell of the given semantic type.

    None renders as the literal ``"null"``. Callers that need a distinct
    null cell (row retrieval, exports) check for None before calling.
    """
    if value is None:
        return NULL_DISPLAY

    if column_type == ColumnType.BOOLEAN:
        return "1" if value else "0"

    if column_type == ColumnType.DATETIME:
        parsed = parse_timestamp(value)
        if parsed is None:
            return _natural_text(value)
        return format_date_display(parsed)

    return _natural_text(value)


def format_elapsed(total_milliseconds: float) -> str:
    """Format a duration as ``HH:MM:SS.mmm``."""
    remaining = max(int(total_milliseconds), 0)
    hours, remaining = divmod(remaining, 60 * 60 * 1000)
    minutes, remaining = divmod(remaining, 60 * 1000)
    seconds, millis = divmod(remaining, 1000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}"
