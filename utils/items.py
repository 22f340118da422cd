"""Utility helpers for presenting normalized items.

Views render the same badges and prices everywhere, so the formatting lives
here instead of in each front end.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

from utils.constants import RARITY_ORDER, SPECIAL_TAGS

_TRAILING_COMMA = re.compile(r",\s*$")
_LOCATED_IN = re.compile(r"is located in \[([^\]]+)\]")


def clean_location_name(name: Optional[str]) -> str:
    """Strip the trailing comma some snapshots carry on the town name."""
    return _TRAILING_COMMA.sub("", name or "")


def sign_text(lines: Optional[Iterable[str]]) -> str:
    """Join sign lines, dropping the ``Written on ...`` header line."""
    kept = [line for line in (lines or []) if not str(line).startswith("Written on")]
    return " ".join(str(line) for line in kept).strip()


def location_info(preamble: Optional[str]) -> Optional[str]:
    """Return the street from ``... is located in [East Row, Ebonwood Way]``."""
    if not preamble:
        return None
    m = _LOCATED_IN.search(preamble)
    return m.group(1) if m else None


def format_price(price: Optional[int]) -> str:
    if not price:
        return "Free"
    if price >= 1_000_000:
        return f"{price / 1_000_000:.1f}M"
    if price >= 1_000:
        return f"{price / 1_000:.0f}k"
    return f"{price:,}"


def _title(text: str) -> str:
    return text[:1].upper() + text[1:]


def property_badges(item) -> List[str]:
    """Return the ordered property labels shown next to an item."""

    badges: List[str] = []
    if item.item_type:
        badges.append(_title(item.item_type))
    if item.enchant_level:
        badges.append(f"+{item.enchant_level}")
    if item.capacity_level:
        badges.append(_title(item.capacity_level))
    if item.armor_type:
        badges.append(_title(item.armor_type))
    if item.weapon_type:
        badges.append(_title(item.weapon_type))
    if item.shield_type:
        badges.append(_title(item.shield_type))
    if item.skill and (not item.weapon_type or item.skill != item.weapon_type):
        badges.append(_title(item.skill))
    for enh in item.enhancives:
        badges.append(f"+{enh.boost} {enh.ability}")
    if item.flares:
        badges.append("Flares")
    if item.spell:
        badges.append("Spell")
    if item.blessing:
        badges.append("Holy")
    for tag in item.tags:
        if tag in SPECIAL_TAGS:
            badges.append(tag.replace("_", " ", 1))
    if item.gemstone_properties:
        badges.append("Gemstone")
        rarities = {p.rarity.lower() for p in item.gemstone_properties if p.rarity}
        badges.extend(_title(r) for r in RARITY_ORDER if r in rarities)
    return badges


__all__ = [
    "clean_location_name",
    "sign_text",
    "location_info",
    "format_price",
    "property_badges",
]
