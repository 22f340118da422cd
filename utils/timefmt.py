"""Time parsing and formatting helpers used by the catalog and its views."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional
import math

from dateutil import parser as du_parser


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Convert several timestamp representations to UTC-aware datetime.
    Returns None if the string/number cannot be parsed.
    Accepted forms:
      - aware/naive datetime (naive -> assume UTC)
      - ISO-8601 string, including the ``Z`` suffix snapshots carry
      - int/float unix seconds
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)) and math.isfinite(value):
        try:
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        v = value.strip()
        if not v:
            return None
        try:
            dt = datetime.fromisoformat(v.replace("Z", "+00:00"))
            return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
        except ValueError:
            try:
                dt = du_parser.parse(v)
                return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
            except (ValueError, TypeError, OverflowError):
                return None

    return None


def within_days(value: Any, days: int, now: Optional[datetime] = None) -> bool:
    """Return ``True`` if ``value`` is no older than ``days`` days before ``now``."""

    dt = parse_timestamp(value)
    if dt is None:
        return False
    now = now or datetime.now(timezone.utc)
    return dt >= now - timedelta(days=days)


def rel_age(dt_like, now: Optional[datetime] = None) -> str:
    """Return a human friendly age for ``dt_like`` relative to now."""

    now = now or datetime.now(timezone.utc)
    dt = parse_timestamp(dt_like) or now
    secs = int((now - dt).total_seconds())
    mins = secs // 60
    if mins < 1:
        return "just now"
    if mins < 60:
        return f"{mins}m ago"
    hours = mins // 60
    if hours < 24:
        return f"{hours}h ago"
    days = hours // 24
    if days < 7:
        return f"{days}d ago"
    return dt.strftime("%Y-%m-%d")


def fmt_tooltip(dt_like) -> str:
    """Return formatted UTC timestamp."""

    dt = parse_timestamp(dt_like) or datetime.now(timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%SZ")


def now_utc_iso() -> str:
    """Return current UTC time as ISO8601 string."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


__all__ = ["parse_timestamp", "within_days", "rel_age", "fmt_tooltip", "now_utc_iso"]
