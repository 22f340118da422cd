#!/usr/bin/env python3
"""
Bodega Catalog - command line entry point.

Loads the shop snapshots once and answers a single query against them:
item search, directory browsing, recently added/removed items, shop-sign
search, or a single item lookup.  `serve` runs the upload relay instead.
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, Dict, Iterable, List, Optional, TextIO

from datasources.snapshots import SnapshotLoadError, load_catalog
from engine.config import ConfigError, ConfigManager
from logging_config import get_logger
from models import FilterCriteria, NormalizedItem, SortSpec
from services.catalog import CatalogIndex
from services.filters import filter_items, resolve_sort_field, default_direction, sort_items
from utils.items import format_price, location_info, property_badges
from utils.params import parse_direction, parse_selection
from utils.paths import init_app_paths
from utils.constants import SPECIAL_PROPERTIES
from utils.timefmt import fmt_tooltip, rel_age


def _add_filter_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("--town", action="append", default=[], help="Location (repeatable or CSV)")
    p.add_argument("--price", action="append", default=[], help="Price band such as 0-10000")
    p.add_argument("--enchant", action="append", default=[], help="Minimum enchant level")
    p.add_argument("--type", dest="item_type", action="append", default=[],
                   help="weapon, armor, shield, container, jewelry or gemstone")
    p.add_argument("--capacity", action="append", default=[])
    p.add_argument("--armor", action="append", default=[])
    p.add_argument("--shield", action="append", default=[])
    p.add_argument("--wear", action="append", default=[])
    p.add_argument("--skill", action="append", default=[])
    p.add_argument("--special", action="append", default=[],
                   help=", ".join(SPECIAL_PROPERTIES))
    p.add_argument("--rarity", action="append", default=[])
    p.add_argument("--gem-count", action="append", default=[])
    p.add_argument("--sort", default=None, help="Sort field (name, price, shop, properties, ...)")
    p.add_argument("--direction", default=None, help="asc or desc")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Browse and search Bodega shop snapshots")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--data-dir", default=None, help="Read snapshots from this directory")
    parser.add_argument("--base-url", default=None, help="Fetch snapshots from this URL")
    parser.add_argument("--limit", type=int, default=None, help="Maximum rows to print")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="action", required=True)

    p_search = sub.add_parser("search", help="Search items")
    p_search.add_argument("query", nargs="*", help="Free-text query")
    p_search.add_argument("--signs", action="store_true", default=None,
                          help="Also match shop sign text")
    _add_filter_flags(p_search)

    p_browse = sub.add_parser("browse", help="List towns, shops in a town, or a shop's items")
    p_browse.add_argument("town", nargs="?")
    p_browse.add_argument("shop", nargs="?")
    p_browse.add_argument("--room", default=None)

    p_added = sub.add_parser("added", help="Recently added items")
    p_added.add_argument("query", nargs="*")
    p_added.add_argument("--days", type=int, default=None)
    _add_filter_flags(p_added)

    p_removed = sub.add_parser("removed", help="Recently removed items")
    p_removed.add_argument("query", nargs="*")
    p_removed.add_argument("--days", type=int, default=None)
    _add_filter_flags(p_removed)

    p_signs = sub.add_parser("signs", help="Search shop signs")
    p_signs.add_argument("query")
    p_signs.add_argument("--town", default=None)

    p_item = sub.add_parser("item", help="Show one item")
    p_item.add_argument("item_id")
    p_item.add_argument("--shop", default=None)
    p_item.add_argument("--town", default=None)

    p_serve = sub.add_parser("serve", help="Run the upload relay HTTP server")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)

    return parser


def resolve_config(args: argparse.Namespace) -> ConfigManager:
    manager = ConfigManager(config_path=args.config)
    manager.load_config()
    if args.data_dir:
        manager.set("data.directory", args.data_dir)
        manager.set("data.base_url", None)
    if args.base_url:
        manager.set("data.base_url", args.base_url)
    return manager


def criteria_from_args(args: argparse.Namespace, include_signs: bool = True, **extra) -> FilterCriteria:
    return FilterCriteria(
        search=" ".join(getattr(args, "query", None) or []),
        include_shop_signs=include_signs,
        towns=parse_selection(_flatten(args.town)),
        price_ranges=parse_selection(_flatten(args.price)),
        enchant_levels=parse_selection(_flatten(args.enchant)),
        item_types=parse_selection(_flatten(args.item_type)),
        capacity_levels=parse_selection(_flatten(args.capacity)),
        armor_types=parse_selection(_flatten(args.armor)),
        shield_types=parse_selection(_flatten(args.shield)),
        wear_locations=parse_selection(_flatten(args.wear)),
        skills=parse_selection(_flatten(args.skill)),
        special_properties=parse_selection(_flatten(args.special)),
        gemstone_rarities=parse_selection(_flatten(args.rarity)),
        gemstone_property_counts=parse_selection(_flatten(args.gem_count)),
        **extra,
    )


def _flatten(values: Iterable[str]) -> List[str]:
    out: List[str] = []
    for v in values or []:
        out.extend(parse_selection(v))
    return out


def _sort_spec(args: argparse.Namespace, fallback: Dict[str, Any]) -> SortSpec:
    field = resolve_sort_field(args.sort or fallback.get("field") or "name")
    direction = parse_direction(
        args.direction or (None if args.sort else fallback.get("direction")),
        default_direction(field),
    )
    return SortSpec(field, direction)


def _item_row(item: NormalizedItem, extra: str = "") -> str:
    cols = [item.name, item.location_name, item.shop_name, format_price(item.price)]
    badges = property_badges(item)
    if badges:
        cols.append(", ".join(badges))
    if extra:
        cols.append(extra)
    return " | ".join(cols)


def _print_items(items: List[NormalizedItem], limit: Optional[int], out: TextIO, extra=None) -> None:
    shown = items if limit is None else items[:limit]
    for item in shown:
        print(_item_row(item, extra(item) if extra else ""), file=out)
    print(f"{len(items)} items", file=out)


def run(args: argparse.Namespace, catalog: CatalogIndex, manager: ConfigManager,
        out: TextIO = sys.stdout) -> int:
    """Execute the parsed command against ``catalog``."""
    limit = args.limit if args.limit is not None else manager.get("search.page_size")
    default_sort = manager.get("search.default_sort", {}) or {}

    if args.action == "search":
        include = args.signs if args.signs is not None else manager.get("search.include_shop_signs", False)
        items = filter_items(catalog.items, criteria_from_args(args, include_signs=bool(include)))
        _print_items(sort_items(items, _sort_spec(args, default_sort)), limit, out)
        return 0

    if args.action == "added":
        days = args.days if args.days is not None else manager.get("recency.added_view_days", 1)
        criteria = criteria_from_args(args, added_within_days=days)
        items = filter_items(catalog.added, criteria, now=catalog.loaded_at)
        spec = _sort_spec(args, {"field": "added_date"})
        _print_items(sort_items(items, spec), limit, out, extra=lambda i: f"added {rel_age(i.added_date)}")
        return 0

    if args.action == "removed":
        criteria = criteria_from_args(args, removed_within_days=args.days)
        items = filter_items(catalog.removed, criteria, now=catalog.loaded_at)
        spec = _sort_spec(args, {"field": "removed_date"})
        _print_items(
            sort_items(items, spec), limit, out,
            extra=lambda i: f"removed {rel_age(i.removed_date)} from {i.last_seen_shop or '?'}",
        )
        return 0

    if args.action == "browse":
        if not args.town:
            for town in catalog.towns:
                print(f"{town} ({catalog.item_count(town)} items)", file=out)
            return 0
        if not args.shop:
            for shop in catalog.shops_in(args.town):
                meta = catalog.shop_metadata(args.town, shop)
                where = location_info(meta.preamble) if meta else None
                suffix = f" [{where}]" if where else ""
                print(f"{shop}{suffix} ({catalog.item_count(args.town, shop)} items)", file=out)
            return 0
        items = catalog.shop_items(args.town, args.shop, args.room)
        if not items:
            print(f"No items found for {args.shop} in {args.town}", file=out)
            return 1
        _print_items(items, limit, out, extra=lambda i: i.room_title or "")
        return 0

    if args.action == "signs":
        matches = catalog.search_shop_signs(args.query, town=args.town)
        for m in matches:
            print(f"{m.town} | {m.shop_name} | {m.item_count} items in {m.room_count} rooms | {m.shop_sign}",
                  file=out)
        print(f"{len(matches)} shops", file=out)
        return 0

    if args.action == "item":
        item = catalog.find_item(args.item_id, shop_id=args.shop, town=args.town)
        if item is None:
            print(f"Item {args.item_id} not found", file=out)
            return 1
        print(_item_row(item), file=out)
        for line in item.raw:
            print(f"  {line}", file=out)
        info = catalog.map_info(item.shop_name)
        if info:
            print(f"  map {info['map_id']} exterior {info['exterior']}", file=out)
        seen = catalog.town_timestamps.get(item.location_name)
        if seen is not None:
            print(f"  snapshot {fmt_tooltip(seen)}", file=out)
        return 0

    return 2


def serve(manager: ConfigManager, host: str, port: int) -> int:
    """Serve ``POST /upload`` until interrupted."""
    import uvicorn

    from services.relay_app import create_app

    uvicorn.run(create_app(manager), host=host, port=port,
                log_level=str(manager.get("logging.level", "info")).lower())
    return 0


def main(argv: Optional[Iterable[str]] = None, out: TextIO = sys.stdout) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    if not args.config:
        init_app_paths()
    try:
        manager = resolve_config(args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    log = get_logger(
        __name__,
        level=args.log_level or manager.get("logging.level"),
        log_file=manager.get("logging.file"),
    )
    for problem in manager.validate_config():
        log.warning("Config: %s", problem)

    if args.action == "serve":
        return serve(manager, args.host, args.port)

    try:
        catalog = load_catalog(manager.get_config())
    except SnapshotLoadError as e:
        log.error("Failed to load snapshots: %s", e)
        return 1
    if not catalog.items and not catalog.removed:
        log.warning("No items loaded from the configured source")
    return run(args, catalog, manager, out=out)


if __name__ == "__main__":
    sys.exit(main())
