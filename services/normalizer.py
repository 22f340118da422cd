"""Turn raw shop item records into :class:`models.NormalizedItem`.

``normalize`` is called once per raw item while the catalog is built.  It
never raises: a record that cannot be converted is logged and dropped so the
rest of the batch still loads.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from models import Enhancive, GemstoneProperty, NormalizedItem
from services.inference import infer_properties
from utils.constants import UNKNOWN_SHOP
from utils.items import clean_location_name, sign_text
from utils.params import parse_int

log = logging.getLogger(__name__)

_PRICE_LINE = re.compile(r"will cost ([\d,]+) coins")


def resolve_price(details: Mapping[str, Any]) -> Optional[int]:
    """Return the explicit cost, else the first ``will cost N coins`` line."""
    cost = details.get("cost")
    if cost is not None and cost != "":
        return parse_int(cost)
    for line in details.get("raw") or []:
        if not isinstance(line, str):
            continue
        m = _PRICE_LINE.search(line)
        if m:
            digits = m.group(1).replace(",", "")
            if digits:
                return int(digits)
    return None


def _first_room(shop: Mapping[str, Any]) -> Mapping[str, Any]:
    rooms = shop.get("inv") or []
    return rooms[0] if rooms else {}


def shop_name(shop: Mapping[str, Any]) -> str:
    """The shop is named after its first room."""
    return _first_room(shop).get("room_title") or UNKNOWN_SHOP


def shop_sign(shop: Mapping[str, Any]) -> str:
    return sign_text(_first_room(shop).get("sign"))


def _gemstone_entries(details: Mapping[str, Any]) -> List[Dict[str, Any]]:
    entries = details.get("gemstone_properties") or details.get("jewel_properties") or []
    return [e for e in entries if isinstance(e, dict)]


def build_search_text(
    name: str,
    location: str,
    preamble: str,
    sign: str,
    room_title: str,
    raw_lines: Iterable[str],
    tags: Iterable[str],
    material: Optional[str],
    enhancives: Iterable[Enhancive],
    gemstones: Iterable[GemstoneProperty],
) -> str:
    """Concatenate every searchable field into one lowercase corpus."""
    parts: List[str] = [name, location, preamble, sign, room_title]
    parts.extend(str(line) for line in raw_lines)
    parts.extend(str(tag) for tag in tags)
    parts.append(material or "")
    for enh in enhancives:
        parts.extend(enh.phrasings())
    parts.extend(g.search_phrase() for g in gemstones)
    return " ".join(parts).lower()


def normalize(
    raw_item: Mapping[str, Any],
    shop: Optional[Mapping[str, Any]] = None,
    room: Optional[Mapping[str, Any]] = None,
    snapshot: Optional[Mapping[str, Any]] = None,
) -> Optional[NormalizedItem]:
    """Convert one raw record into a :class:`NormalizedItem`.

    ``shop``/``room`` may be empty mappings, as they are for removed items
    which no longer belong to a room.  Returns ``None`` when the record has
    no usable name or any field fails to derive.
    """
    shop = shop or {}
    room = room or {}
    snapshot = snapshot or {}
    name = raw_item.get("name") if isinstance(raw_item, Mapping) else None
    if not name or not isinstance(name, str):
        log.warning("Skipping item without a name: %r", raw_item)
        return None

    try:
        details = raw_item.get("details") or {}
        raw_lines = tuple(line for line in (details.get("raw") or []) if isinstance(line, str))
        tags = tuple(str(t) for t in (details.get("tags") or []))
        enhancives = tuple(
            Enhancive.from_raw(e) for e in (details.get("enhancives") or []) if isinstance(e, dict)
        )
        gemstones = tuple(GemstoneProperty.from_raw(g) for g in _gemstone_entries(details))
        props = infer_properties(raw_item)

        location = clean_location_name(snapshot.get("town"))
        preamble = shop.get("preamble") or ""
        sign = shop_sign(shop)
        room_title = room.get("room_title") or ""
        material = details.get("material") or None
        enchant = parse_int(details.get("enchant"))

        common = dict(
            name=name,
            location=location,
            preamble=preamble,
            room_title=room_title,
            raw_lines=raw_lines,
            tags=tags,
            material=material,
            enhancives=enhancives,
            gemstones=gemstones,
        )

        return NormalizedItem(
            id=raw_item.get("id"),
            name=name,
            location_name=location,
            shop_id=shop.get("id"),
            shop_name=shop_name(shop),
            shop_location=shop.get("preamble"),
            shop_sign_text=sign,
            room_title=room.get("room_title"),
            room_sign_text=sign_text(room.get("sign")),
            branch=room.get("branch"),
            price=resolve_price(details),
            enchant_level=enchant if enchant else None,
            material=material,
            weight=details.get("weight") or None,
            item_type=props.item_type,
            weapon_type=props.weapon_type,
            armor_type=props.armor_type,
            shield_type=props.shield_type,
            capacity=props.capacity,
            capacity_level=props.capacity_level,
            wear_location=props.wear_location,
            skill=props.skill,
            enhancives=enhancives,
            gemstone_properties=gemstones,
            gemstone_bound_to=details.get("gemstone_bound_to") or details.get("jewel_bound_to") or None,
            tags=tags,
            flares=tuple(props.flares),
            spell=props.spell,
            blessing=props.blessing,
            charges=props.charges,
            raw=raw_lines,
            search_text=build_search_text(sign=sign, **common),
            search_text_no_sign=build_search_text(sign="", **common),
        )
    except Exception:
        log.warning("Error processing item %s", name, exc_info=True)
        return None


__all__ = [
    "normalize",
    "resolve_price",
    "shop_name",
    "shop_sign",
    "build_search_text",
]
