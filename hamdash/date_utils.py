"""Shared date parsing, keying and window helpers."""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Any

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_iso(value: datetime) -> str:
    """Render a datetime as a UTC ISO-8601 string with a ``Z`` suffix."""
    dt = _as_utc(value).replace(microsecond=0)
    return dt.isoformat().replace("+00:00", "Z")


def parse_iso(value: Any) -> datetime | None:
    """Parse log/state timestamps into aware UTC datetimes.

    Accepts ``datetime`` objects, ISO strings with or without a ``Z`` suffix
    and bare ``YYYY-MM-DD`` dates. Anything else yields ``None``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str):
        return None
    token = value.strip()
    if not token:
        return None
    if _DATE_ONLY_RE.match(token):
        try:
            parsed = date.fromisoformat(token)
        except ValueError:
            return None
        return datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)
    try:
        return _as_utc(datetime.fromisoformat(token.replace("Z", "+00:00")))
    except ValueError:
        return None


def to_epoch_ms(value: Any) -> float | None:
    parsed = parse_iso(value)
    if parsed is None:
        return None
    return parsed.timestamp() * 1000.0


def to_date_key(value: Any) -> str:
    """Return the UTC calendar date (``YYYY-MM-DD``) of a timestamp."""
    parsed = parse_iso(value)
    if parsed is None:
        return ""
    return parsed.date().isoformat()


def window_cutoff(days: int, now: datetime | None = None) -> datetime:
    return _as_utc(now or utc_now()) - timedelta(days=days)


def in_window(value: Any, cutoff: datetime) -> bool:
    parsed = parse_iso(value)
    return parsed is not None and parsed >= cutoff


def window_date_keys(days: int, now: datetime | None = None) -> list[str]:
    """Date keys for the last ``days`` calendar days, oldest first, ending today."""
    anchor = _as_utc(now or utc_now())
    return [(anchor - timedelta(days=offset)).date().isoformat() for offset in range(days - 1, -1, -1)]


def epoch_to_iso(epoch_seconds: float) -> str:
    return format_iso(datetime.fromtimestamp(float(epoch_seconds), timezone.utc))
