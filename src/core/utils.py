"""Core utility functions."""
from __future__ import annotations

import re
import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional
from urllib.parse import urlparse


def utcnow() -> datetime:
    """Get current UTC datetime with timezone info. Always use this instead of datetime.now()."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware (UTC).

    SQLite stores datetimes without timezone info, so we need to make them
    aware before comparing with utcnow().
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        # Assume naive datetimes are UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt


def new_id() -> str:
    """Generate a UUID string primary key."""
    return str(uuid.uuid4())


def days_since(start: Optional[date | datetime], now: Optional[datetime] = None) -> int:
    """Whole days elapsed since ``start``; never negative."""
    if start is None:
        return 0
    now = now or utcnow()
    if isinstance(start, datetime):
        start_date = ensure_aware(start).date()
    else:
        start_date = start
    return max((now.date() - start_date).days, 0)


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


_NUMBER_CLEAN = re.compile(r"[^\d,.\-]")


def coerce_number(value: Any, default: float = 0) -> float:
    """
    Coerce loosely formatted numbers into floats.

    Handles strings such as "420.000 €", "1,250.50" or "85 m2". Dots and
    commas followed by exactly three digits are treated as thousands
    separators. Anything unparsable yields ``default``.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return default

    # Strip unit suffixes such as "m2" before removing non-numeric characters
    text = re.sub(r"m[2²]", "", value.strip(), flags=re.IGNORECASE)
    text = _NUMBER_CLEAN.sub("", text)
    if not text or text in {"-", ".", ","}:
        return default

    text = re.sub(r"[.,](?=\d{3}(?:[.,]|$))", "", text)
    text = text.replace(",", ".")
    try:
        return float(text)
    except ValueError:
        return default


def host_of(url: str) -> str:
    """Return the hostname of a URL without a leading ``www.``."""
    host = urlparse(url).hostname or ""
    return host[4:] if host.startswith("www.") else host


__all__ = [
    "utcnow",
    "ensure_aware",
    "new_id",
    "days_since",
    "clamp",
    "coerce_number",
    "host_of",
]
