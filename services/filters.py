"""Filtering, free-text search and sorting over normalized items.

Every view (search, browse, added, removed) runs its items through the same
``matches`` predicate and ``sort_items`` ordering, so the behaviour is shared
instead of re-implemented per view.

Query grammar, applied in order to the lowercased, trimmed query:

1. ``"quoted phrases"`` must each occur verbatim; they are then removed.
2. If ``*`` remains the rest is a glob (``*`` spans any characters).
3. ``<n> [to] <ability>`` is an enhancive lookup: the corpus must contain
   ``"<n> to <ability>"`` or ``"<n> <ability>"``.  No fallback.
4. Otherwise every whitespace separated term must occur.
"""

from __future__ import annotations

from datetime import datetime
from functools import cmp_to_key
import logging
import re
from typing import Any, Iterable, List, Optional

from models import FilterCriteria, NormalizedItem, SortSpec
from utils.params import parse_int, parse_price_range
from utils.timefmt import parse_timestamp, within_days

log = logging.getLogger(__name__)

_QUOTED = re.compile(r'"([^"]+)"')
_ENHANCIVE_QUERY = re.compile(r"^(\d+)\s+(to\s+)?(.+)$", re.IGNORECASE)

SORT_ALIASES = {
    "shop": "shop_name",
    "shopname": "shop_name",
    "properties": "property_count",
    "propertycount": "property_count",
    "added": "added_date",
    "addeddate": "added_date",
    "removed": "removed_date",
    "removeddate": "removed_date",
    "town": "location_name",
    "locationname": "location_name",
    "lastseentown": "last_seen_town",
    "lastseenshop": "last_seen_shop",
    "enchant": "enchant_level",
    "enchantlevel": "enchant_level",
    "itemtype": "item_type",
    "room": "room_title",
}

DATE_FIELDS = frozenset({"added_date", "removed_date"})
DESC_BY_DEFAULT = frozenset({"property_count"}) | DATE_FIELDS


# ---------------------------------------------------------------------------
# free-text search
# ---------------------------------------------------------------------------

def match_search_text(corpus: str, query: Optional[str]) -> bool:
    """Return ``True`` if ``corpus`` satisfies the query grammar."""
    query = (query or "").lower().strip()
    if not query:
        return True
    corpus = (corpus or "").lower()

    phrases = _QUOTED.findall(query)
    if phrases:
        for phrase in phrases:
            if phrase not in corpus:
                return False
        query = _QUOTED.sub("", query).strip()

    if "*" in query:
        pattern = ".*?".join(re.escape(part) for part in query.split("*"))
        return re.search(pattern, corpus, re.IGNORECASE | re.DOTALL) is not None

    m = _ENHANCIVE_QUERY.match(query)
    if m:
        boost, ability = m.group(1), m.group(3)
        # the boost must not be the tail of a larger number ("19 to ...")
        pattern = rf"(?<!\d){re.escape(boost)} (?:to )?{re.escape(ability)}"
        return re.search(pattern, corpus) is not None

    return all(term in corpus for term in query.split())


# ---------------------------------------------------------------------------
# dimension filters
# ---------------------------------------------------------------------------

def _in_price_band(price: int, bands: Iterable[str]) -> bool:
    for band in bands:
        lo, hi = parse_price_range(band)
        if lo <= price <= hi:
            return True
    return False


def _meets_enchant(level: Optional[int], thresholds: Iterable[str]) -> bool:
    if not level:
        return False
    for threshold in thresholds:
        minimum = parse_int(threshold)
        if minimum is not None and level >= minimum:
            return True
    return False


def _matches_type(item: NormalizedItem, types: Iterable[str]) -> bool:
    for kind in types:
        if kind == "gemstone":
            if item.gemstone_properties:
                return True
        elif item.item_type == kind:
            return True
    return False


def _contains_any(value: Optional[str], needles: Iterable[str]) -> bool:
    if not value:
        return False
    haystack = value.lower()
    return any(n.lower() in haystack for n in needles)


def has_special_property(item: NormalizedItem, prop: str) -> bool:
    if prop == "enhancive":
        return bool(item.enhancives)
    if prop == "flares":
        return bool(item.flares)
    if prop == "holy":
        return bool(item.blessing)
    if prop in ("persists", "crumbly", "max_light", "max_deep"):
        return prop in item.tags
    log.debug("Unknown special property %r", prop)
    return False


def matches(item: NormalizedItem, criteria: FilterCriteria, now: Optional[datetime] = None) -> bool:
    """Decide whether ``item`` passes every selected dimension of ``criteria``."""
    c = criteria
    if c.search:
        corpus = item.search_text if c.include_shop_signs else item.search_text_no_sign
        if not match_search_text(corpus, c.search):
            return False

    if c.towns and item.location_name not in c.towns:
        return False

    if c.price_ranges and item.price is not None and not _in_price_band(item.price, c.price_ranges):
        return False

    if c.enchant_levels and not _meets_enchant(item.enchant_level, c.enchant_levels):
        return False

    if c.item_types and not _matches_type(item, c.item_types):
        return False

    if c.capacity_levels and item.capacity_level not in c.capacity_levels:
        return False

    if c.armor_types and item.armor_type not in c.armor_types:
        return False

    if c.shield_types and not _contains_any(item.shield_type, c.shield_types):
        return False

    if c.wear_locations and not _contains_any(item.wear_location, c.wear_locations):
        return False

    if c.skills and not _contains_any(item.skill, c.skills):
        return False

    for prop in c.special_properties:
        if not has_special_property(item, prop):
            return False

    if c.gemstone_rarities:
        wanted = {r.lower() for r in c.gemstone_rarities}
        if not any(p.rarity and p.rarity.lower() in wanted for p in item.gemstone_properties):
            return False

    if c.gemstone_property_counts:
        counts = {parse_int(v) for v in c.gemstone_property_counts}
        if len(item.gemstone_properties) not in counts:
            return False

    if c.added_within_days is not None and not within_days(item.added_date, c.added_within_days, now):
        return False

    if c.removed_within_days is not None and not within_days(item.removed_date, c.removed_within_days, now):
        return False

    return True


def filter_items(
    items: Iterable[NormalizedItem],
    criteria: FilterCriteria,
    now: Optional[datetime] = None,
) -> List[NormalizedItem]:
    return [item for item in items if matches(item, criteria, now)]


# ---------------------------------------------------------------------------
# sorting
# ---------------------------------------------------------------------------

def resolve_sort_field(name: Optional[str]) -> str:
    """Map header names and camelCase spellings to item attribute names."""
    if not name:
        return "name"
    key = name.strip()
    alias = SORT_ALIASES.get(key.replace("_", "").lower())
    if alias:
        return alias
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def default_direction(field: str) -> str:
    return "desc" if resolve_sort_field(field) in DESC_BY_DEFAULT else "asc"


def toggle_sort(current: Optional[SortSpec], field: str) -> SortSpec:
    """Clicking the active column flips it; a new column starts at its default."""
    resolved = resolve_sort_field(field)
    if current is not None and resolve_sort_field(current.field) == resolved:
        return SortSpec(resolved, "asc" if current.descending else "desc")
    return SortSpec(resolved, default_direction(resolved))


def _sort_value(item: NormalizedItem, field: str) -> Any:
    if field == "property_count":
        return item.property_count
    value = getattr(item, field, None)
    if field in DATE_FIELDS:
        return parse_timestamp(value)
    if isinstance(value, str):
        return value.lower()
    return value


def compare(a: NormalizedItem, b: NormalizedItem, spec: SortSpec) -> int:
    """Three-way comparison of two items under ``spec``.

    Missing strings compare as ``""``.  Other missing values sort after
    present ones in either direction.
    """
    field = resolve_sort_field(spec.field)
    va, vb = _sort_value(a, field), _sort_value(b, field)

    if isinstance(va, str) or isinstance(vb, str):
        va = "" if va is None else va
        vb = "" if vb is None else vb
    elif va is None and vb is None:
        return 0
    elif va is None:
        return 1
    elif vb is None:
        return -1

    try:
        result = (va > vb) - (va < vb)
    except TypeError:
        sa, sb = str(va).lower(), str(vb).lower()
        result = (sa > sb) - (sa < sb)
    return -result if spec.descending else result


def sort_items(items: Iterable[NormalizedItem], spec: SortSpec) -> List[NormalizedItem]:
    """Return a new list ordered by ``spec``; ties keep their input order."""
    return sorted(items, key=cmp_to_key(lambda a, b: compare(a, b, spec)))


__all__ = [
    "match_search_text",
    "matches",
    "filter_items",
    "has_special_property",
    "resolve_sort_field",
    "default_direction",
    "toggle_sort",
    "compare",
    "sort_items",
]
