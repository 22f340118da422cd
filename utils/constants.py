"""Shared constants for the Bodega catalog project."""

from __future__ import annotations

# Items whose ``added_date`` falls inside this window join the added subset.
ADDED_WINDOW_DAYS = 7

# The added view shows the last day unless a wider window is selected.
ADDED_VIEW_DEFAULT_DAYS = 1

# One snapshot per location.
DEFAULT_DATA_FILES = [
    "icemule_trace.json",
    "mist_harbor.json",
    "rivers_rest.json",
    "solhaven.json",
    "ta_illistim.json",
    "ta_vaalor.json",
    "teras_isle.json",
    "wehnimers_landing.json",
    "zul_logoth.json",
]

REMOVED_ITEMS_FILE = "removed_items.json"
SHOP_MAPPING_FILE = "shop_mapping.json"

UNKNOWN_SHOP = "Unknown Shop"
UNKNOWN_TOWN = "Unknown Town"
MAIN_ROOM = "Main Room"

SPECIAL_TAGS = ["max_light", "max_deep", "persists", "crumbly", "holy"]
SPECIAL_PROPERTIES = ["enhancive", "persists", "crumbly", "flares", "holy", "max_light", "max_deep"]
RARITY_ORDER = ["regional", "common", "rare", "legendary"]

__all__ = [
    "ADDED_WINDOW_DAYS",
    "ADDED_VIEW_DEFAULT_DAYS",
    "DEFAULT_DATA_FILES",
    "REMOVED_ITEMS_FILE",
    "SHOP_MAPPING_FILE",
    "UNKNOWN_SHOP",
    "UNKNOWN_TOWN",
    "MAIN_ROOM",
    "SPECIAL_TAGS",
    "SPECIAL_PROPERTIES",
    "RARITY_ORDER",
]
