"""Time helpers shared across the scheduler."""

from __future__ import annotations

import datetime as dt
import zoneinfo


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def ensure_utc(value: dt.datetime, *, field: str = "timestamp") -> dt.datetime:
    """Return ``value`` converted to UTC, rejecting naive datetimes.

    Raises
    ------
    ValueError
        If ``value`` carries no tzinfo.

    """
    if value.tzinfo is None:
        msg = f"{field} must be timezone-aware, got naive {value.isoformat()}"
        raise ValueError(msg)
    return value.astimezone(dt.UTC)


def load_zone(name: str) -> zoneinfo.ZoneInfo:
    """Resolve an IANA zone name, raising ``ValueError`` when unknown."""
    try:
        return zoneinfo.ZoneInfo(name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError) as exc:
        msg = f"unknown timezone {name!r}"
        raise ValueError(msg) from exc


def parse_aware_iso(raw: str, *, field: str = "timestamp") -> dt.datetime:
    """Parse an ISO 8601 timestamp that must include an offset.

    ``Z`` suffixes are accepted. The result is normalized to UTC.
    """
    parsed = dt.datetime.fromisoformat(raw.strip())
    if parsed.tzinfo is None:
        msg = (
            f"{field} must include timezone information, got naive datetime: "
            f"{raw!r}. Use ISO format with offset (e.g. '2024-12-01T09:00:00Z')."
        )
        raise ValueError(msg)
    return parsed.astimezone(dt.UTC)
