"""General utility helpers shared across modules."""

from __future__ import annotations

import json
import math
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import Any


def format_time(seconds: float | None) -> str | None:
    """Format seconds into an ``H:MM:SS`` string (signed for deltas)."""

    if seconds is None:
        return None
    try:
        value = float(seconds)
    except (TypeError, ValueError):
        return None
    if math.isnan(value):
        return None
    sign = "-" if value < 0 else ""
    total_seconds = int(round(abs(value)))
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    secs = total_seconds % 60
    return f"{sign}{hours}:{minutes:02d}:{secs:02d}"


def parse_iso_datetime(value: str | None) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def to_utc_aware(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso_to_unix(value: str | None) -> int | None:
    """Convert an ISO-8601 timestamp (``Z`` suffix allowed) to Unix seconds."""

    dt = parse_iso_datetime(value)
    if dt is None:
        return None
    return int(to_utc_aware(dt).timestamp())


def datetime_to_unix(dt: datetime) -> int:
    return int(to_utc_aware(dt).timestamp())


def unix_to_iso(seconds: int | None) -> str | None:
    if seconds is None:
        return None
    stamp = datetime.fromtimestamp(int(seconds), tz=timezone.utc)
    return stamp.strftime("%Y-%m-%dT%H:%M:%SZ")


def _normalise_value(value: Any) -> Any:
    """Convert objects to JSON-friendly representations."""

    if isinstance(value, Enum):
        return _normalise_value(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore")
    if isinstance(value, set):
        return sorted(_normalise_value(item) for item in value)
    if isinstance(value, (list, tuple)):
        return [_normalise_value(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _normalise_value(val) for key, val in value.items()}
    return value


def json_dumps_sorted(value: Any, *, indent: int | None = None) -> str:
    """Return canonical JSON for logging / CLI output."""

    normalised = _normalise_value(value)
    if indent is None:
        return json.dumps(normalised, sort_keys=True, separators=(",", ":"))
    return json.dumps(normalised, sort_keys=True, indent=indent)
