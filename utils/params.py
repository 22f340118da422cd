import math
import re
from typing import Iterable, List, Optional, Tuple


def parse_price_range(range_str: Optional[str]) -> Tuple[float, float]:
    """Return ``(min, max)`` for a ``"min-max"`` price band.

    Missing or non-numeric bounds become 0 and infinity respectively.
    """
    if not range_str:
        return 0, math.inf
    lo, _, hi = str(range_str).partition("-")
    return _to_number(lo) or 0, _to_number(hi) or math.inf


def _to_number(text: str) -> Optional[float]:
    text = (text or "").strip().replace(",", "")
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_selection(selection) -> List[str]:
    """Accept a list or CSV string and return the non-empty, stripped values."""
    if selection is None:
        return []
    if isinstance(selection, Iterable) and not isinstance(selection, (str, bytes)):
        values = [str(v).strip() for v in selection]
    else:
        values = [v.strip() for v in str(selection).split(",")]
    return [v for v in values if v]


def parse_int(value, default: Optional[int] = None) -> Optional[int]:
    """Parse the leading integer of ``value``; thousands separators are ignored."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    m = re.match(r"\s*(-?[\d,]+)", str(value))
    if not m:
        return default
    digits = m.group(1).replace(",", "")
    if digits in ("", "-"):
        return default
    return int(digits)


def parse_direction(value, default: str = "asc") -> str:
    s = (value or "").strip().lower()
    if s in ("asc", "ascending", "up"):
        return "asc"
    if s in ("desc", "descending", "down"):
        return "desc"
    return default


__all__ = [
    "parse_price_range",
    "parse_selection",
    "parse_int",
    "parse_direction",
]
