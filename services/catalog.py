"""In-memory catalog built from one batch of location snapshots.

A :class:`CatalogIndex` is created once per full data load and replaced
wholesale on reload.  Besides the flat item list it keeps the recently added
and recently removed subsets and a ``location -> shop -> room -> items`` tree
for directory browsing.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from models import NormalizedItem, ShopMetadata
from services.normalizer import normalize
from utils.constants import ADDED_WINDOW_DAYS, MAIN_ROOM, UNKNOWN_SHOP, UNKNOWN_TOWN
from utils.items import clean_location_name
from utils.timefmt import parse_timestamp

log = logging.getLogger(__name__)

Tree = Dict[str, Dict[str, Dict[str, List[NormalizedItem]]]]


@dataclass(frozen=True)
class ShopSignMatch:
    town: str
    shop_name: str
    shop_sign: str
    preamble: str
    item_count: int
    room_count: int


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _seen_town(value: Any, fallback: str) -> str:
    if isinstance(value, str):
        return clean_location_name(value) or fallback
    return fallback


class CatalogIndex:
    """Read-only view over every normalized item of one load."""

    def __init__(
        self,
        items: Iterable[NormalizedItem] = (),
        added: Iterable[NormalizedItem] = (),
        removed: Iterable[NormalizedItem] = (),
        towns: Iterable[str] = (),
        town_timestamps: Optional[Dict[str, datetime]] = None,
        last_updated: Optional[datetime] = None,
        total_shops: int = 0,
        shop_mapping: Optional[Mapping[str, Any]] = None,
        loaded_at: Optional[datetime] = None,
    ):
        self.items: List[NormalizedItem] = list(items)
        self.added: List[NormalizedItem] = list(added)
        self.removed: List[NormalizedItem] = list(removed)
        self.towns: List[str] = sorted(set(towns))
        self.town_timestamps: Dict[str, datetime] = dict(town_timestamps or {})
        self.last_updated = last_updated
        self.total_shops = total_shops
        self.shop_mapping: Dict[str, Any] = dict(shop_mapping or {})
        self.loaded_at = loaded_at or datetime.now(timezone.utc)
        self.tree: Tree = {}
        self._shop_metadata: Dict[str, Dict[str, ShopMetadata]] = {}
        self._build_tree()

    # ------------------------------------------------------------------
    # construction
    # ------------------------------------------------------------------
    @classmethod
    def build(
        cls,
        snapshots: Iterable[Optional[Mapping[str, Any]]],
        removed_payload: Optional[Mapping[str, Any]] = None,
        shop_mapping: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None,
        added_window_days: int = ADDED_WINDOW_DAYS,
    ) -> "CatalogIndex":
        """Normalize every snapshot into a new index.

        ``None`` entries in ``snapshots`` stand for locations that failed to
        load and are skipped.  When ``removed_payload`` is given it is the only
        source of removed items; embedded ``removed_items`` blocks are then
        ignored for the whole load.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=added_window_days)
        use_embedded_removed = removed_payload is None

        items: List[NormalizedItem] = []
        added: List[NormalizedItem] = []
        removed: List[NormalizedItem] = []
        towns: List[str] = []
        town_timestamps: Dict[str, datetime] = {}
        oldest: Optional[datetime] = None
        total_shops = 0

        for snapshot in snapshots:
            if snapshot is None:
                continue
            if not isinstance(snapshot, Mapping) or not isinstance(snapshot.get("shops"), list):
                log.warning("Skipping malformed snapshot: %r", _describe(snapshot))
                continue
            if snapshot.get("town") is not None and not isinstance(snapshot["town"], str):
                log.warning("Skipping snapshot with invalid town: %r", snapshot["town"])
                continue

            town = clean_location_name(snapshot.get("town"))
            towns.append(town)
            total_shops += len(snapshot["shops"])

            created = parse_timestamp(snapshot.get("created_at"))
            if created is not None:
                town_timestamps[town] = created
                if oldest is None or created < oldest:
                    oldest = created

            for shop in snapshot["shops"]:
                if not isinstance(shop, Mapping):
                    continue
                for room in shop.get("inv") or []:
                    if not isinstance(room, Mapping):
                        continue
                    for raw in room.get("items") or []:
                        item = normalize(raw, shop, room, snapshot)
                        if item is None:
                            continue
                        items.append(item)
                        added_on = parse_timestamp(raw.get("added_date"))
                        if added_on is not None and added_on >= cutoff:
                            added.append(replace(item, added_date=raw.get("added_date")))

            if use_embedded_removed:
                for raw in snapshot.get("removed_items") or []:
                    item = normalize(raw, {}, {}, snapshot)
                    if item is None:
                        continue
                    removed.append(replace(
                        item,
                        removed_date=raw.get("removed_date") or _iso(now),
                        last_seen_shop=raw.get("last_seen_shop") or None,
                        last_seen_town=town,
                    ))

        if not use_embedded_removed:
            removed = cls._removed_from_payload(removed_payload, now)

        log.info(
            "Loaded %d items, %d removed items and %d added items from %d towns",
            len(items), len(removed), len(added), len(set(towns)),
        )
        return cls(
            items=items,
            added=added,
            removed=removed,
            towns=towns,
            town_timestamps=town_timestamps,
            last_updated=oldest,
            total_shops=total_shops,
            shop_mapping=shop_mapping,
            loaded_at=now,
        )

    @staticmethod
    def _removed_from_payload(payload: Mapping[str, Any], now: datetime) -> List[NormalizedItem]:
        removed: List[NormalizedItem] = []
        for town_key, entries in payload.items():
            if not isinstance(entries, list):
                continue
            town = clean_location_name(town_key)
            for raw in entries:
                if not isinstance(raw, Mapping):
                    continue
                item = normalize(raw, {}, {}, {"town": town})
                if item is None:
                    continue
                removed.append(replace(
                    item,
                    removed_date=raw.get("removed_date") or raw.get("removedDate") or _iso(now),
                    last_seen_shop=raw.get("last_seen_shop") or raw.get("lastSeenShop") or None,
                    last_seen_town=_seen_town(raw.get("town"), town),
                ))
        return removed

    def _build_tree(self) -> None:
        # shop metadata is taken from the first item seen for a shop and never updated
        for item in self.items:
            town = item.location_name or UNKNOWN_TOWN
            shop = item.shop_name or UNKNOWN_SHOP
            room = item.room_title or MAIN_ROOM

            shops = self.tree.setdefault(town, {})
            meta = self._shop_metadata.setdefault(town, {})
            if shop not in shops:
                shops[shop] = {}
                meta[shop] = ShopMetadata(
                    preamble=item.shop_location or "",
                    id=item.shop_id if item.shop_id is not None else "",
                    shop_sign=item.shop_sign_text or "",
                )
            shops[shop].setdefault(room, []).append(item)

    # ------------------------------------------------------------------
    # browsing
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self.items)

    def shops_in(self, town: str) -> List[str]:
        return sorted(self.tree.get(town, {}))

    def rooms_in(self, town: str, shop: str) -> List[str]:
        return sorted(self.tree.get(town, {}).get(shop, {}))

    def shop_items(self, town: str, shop: str, room: Optional[str] = None) -> List[NormalizedItem]:
        rooms = self.tree.get(town, {}).get(shop, {})
        if room is not None:
            return list(rooms.get(room, []))
        return [item for name in sorted(rooms) for item in rooms[name]]

    def item_count(self, town: str, shop: Optional[str] = None) -> int:
        shops = self.tree.get(town, {})
        if shop is not None:
            return sum(len(items) for items in shops.get(shop, {}).values())
        return sum(len(items) for rooms in shops.values() for items in rooms.values())

    def shop_metadata(self, town: str, shop: str) -> Optional[ShopMetadata]:
        return self._shop_metadata.get(town, {}).get(shop)

    def map_info(self, shop: str) -> Optional[Dict[str, Any]]:
        """Return ``{map_id, exterior}`` for ``shop`` if the mapping knows it."""
        entry = self.shop_mapping.get(shop)
        if not isinstance(entry, Mapping):
            return None
        return {"map_id": entry.get("map_id"), "exterior": entry.get("exterior")}

    def search_shop_signs(self, query: str, town: Optional[str] = None) -> List[ShopSignMatch]:
        """Find shops whose sign contains ``query`` (case-insensitive).

        Searches every town unless ``town`` is given.  Results are ordered by
        town, then shop name.
        """
        needle = (query or "").strip().lower()
        if not needle:
            return []
        towns = [town] if town is not None else list(self._shop_metadata)
        matches: List[ShopSignMatch] = []
        for town_name in towns:
            for shop_name, meta in self._shop_metadata.get(town_name, {}).items():
                if meta.shop_sign and needle in meta.shop_sign.lower():
                    matches.append(ShopSignMatch(
                        town=town_name,
                        shop_name=shop_name,
                        shop_sign=meta.shop_sign,
                        preamble=meta.preamble,
                        item_count=self.item_count(town_name, shop_name),
                        room_count=len(self.tree[town_name][shop_name]),
                    ))
        matches.sort(key=lambda m: (m.town, m.shop_name))
        return matches

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------
    def get_item_by_id(self, item_id: Any) -> Optional[NormalizedItem]:
        key = str(item_id)
        for item in self.items:
            if str(item.id) == key:
                return item
        return None

    def find_item(
        self,
        item_id: Any,
        shop_id: Any = None,
        town: Optional[str] = None,
    ) -> Optional[NormalizedItem]:
        """Resolve a deep link; shop and town narrow the match when given."""
        key = str(item_id)
        for item in self.items:
            if str(item.id) != key:
                continue
            if shop_id is not None and str(item.shop_id) != str(shop_id):
                continue
            if town is not None and item.location_name != town:
                continue
            return item
        return None


def _describe(snapshot: Any) -> Any:
    if isinstance(snapshot, Mapping):
        return snapshot.get("town", "<no town>")
    return type(snapshot).__name__


__all__ = ["CatalogIndex", "ShopSignMatch"]
