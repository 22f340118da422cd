from datetime import datetime, timedelta, timezone
import sys, pathlib
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from services.catalog import CatalogIndex

NOW = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)


def _iso(days_ago):
    return (NOW - timedelta(days=days_ago)).strftime("%Y-%m-%dT%H:%M:%SZ")


def _item(item_id, name, **extra):
    extra.setdefault("details", {})
    return {"id": item_id, "name": name, **extra}


def _shop(shop_id, rooms, preamble="", sign=None):
    inv = []
    for i, (room_title, items) in enumerate(rooms):
        room = {"room_title": room_title, "branch": "b", "items": items}
        if i == 0 and sign is not None:
            room["sign"] = sign
        inv.append(room)
    return {"id": shop_id, "preamble": preamble, "inv": inv}


def _snapshot(town, shops, created_at="2024-06-01T00:00:00Z", removed=None):
    snap = {"town": town, "created_at": created_at, "shops": shops}
    if removed is not None:
        snap["removed_items"] = removed
    return snap


def _two_towns():
    landing = _snapshot("Wehnimer's Landing,", [
        _shop(1, [
            ("Gemmy's", [_item(1, "a ruby", added_date=_iso(6)), _item(2, "an opal", added_date=_iso(8))]),
            ("Gemmy's Vault", [_item(3, "a diamond")]),
        ], preamble="Gemmy's is located in [Town Square].", sign=["Written on it:", "Fine Gems"]),
    ], created_at="2024-06-02T00:00:00Z")
    solhaven = _snapshot("Solhaven", [
        _shop(2, [("Armory", [_item(4, "a mace")])], sign=["GEMS and steel"]),
        _shop(3, [("Bakery", [_item(5, "a bun")])]),
    ], created_at="2024-05-30T00:00:00Z")
    return [landing, solhaven]


def test_build_counts_and_towns():
    idx = CatalogIndex.build(_two_towns(), now=NOW)
    assert len(idx) == 5
    assert idx.towns == ["Solhaven", "Wehnimer's Landing"]
    assert idx.total_shops == 3
    assert idx.last_updated == datetime(2024, 5, 30, tzinfo=timezone.utc)
    assert set(idx.town_timestamps) == {"Solhaven", "Wehnimer's Landing"}


def test_added_window_is_seven_days():
    idx = CatalogIndex.build(_two_towns(), now=NOW)
    assert [i.name for i in idx.added] == ["a ruby"]
    assert idx.added[0].added_date == _iso(6)
    # provenance only lives on the added copy
    assert idx.get_item_by_id(1).added_date is None


def test_failed_and_malformed_snapshots_are_skipped():
    snaps = [None, {"town": "Broken"}, "not a dict"] + _two_towns()
    idx = CatalogIndex.build(snaps, now=NOW)
    assert len(idx) == 5
    assert "Broken" not in idx.towns


def test_snapshot_with_non_string_town_is_skipped():
    snaps = [{"town": 42, "shops": [_shop(9, [("Hall", [_item(90, "a cup")])])]}] + _two_towns()
    idx = CatalogIndex.build(snaps, now=NOW)
    assert len(idx) == 5
    assert idx.towns == ["Solhaven", "Wehnimer's Landing"]


def test_bad_items_are_skipped_not_fatal():
    snap = _snapshot("Solhaven", [_shop(1, [("Hall", [{"id": 9}, _item(10, "a cup")])])])
    idx = CatalogIndex.build([snap], now=NOW)
    assert [i.name for i in idx.items] == ["a cup"]


def test_tree_and_directory_helpers():
    idx = CatalogIndex.build(_two_towns(), now=NOW)
    assert idx.shops_in("Solhaven") == ["Armory", "Bakery"]
    assert idx.rooms_in("Wehnimer's Landing", "Gemmy's") == ["Gemmy's", "Gemmy's Vault"]
    assert idx.item_count("Wehnimer's Landing") == 3
    assert idx.item_count("Wehnimer's Landing", "Gemmy's") == 3
    assert [i.name for i in idx.shop_items("Wehnimer's Landing", "Gemmy's", "Gemmy's Vault")] == ["a diamond"]
    assert idx.shops_in("Nowhere") == []


def test_shop_metadata_first_item_wins():
    shop_a = _shop(10, [("Same Name", [_item(1, "first")])], preamble="First preamble", sign=["Sign A"])
    shop_b = _shop(11, [("Same Name", [_item(2, "second")])], preamble="Second preamble", sign=["Sign B"])
    idx = CatalogIndex.build([_snapshot("Solhaven", [shop_a, shop_b])], now=NOW)
    meta = idx.shop_metadata("Solhaven", "Same Name")
    assert meta.preamble == "First preamble"
    assert meta.id == 10
    assert meta.shop_sign == "Sign A"
    assert idx.item_count("Solhaven", "Same Name") == 2


def test_missing_room_title_groups_under_defaults():
    snap = _snapshot("Solhaven", [{"id": 5, "inv": [{"items": [_item(1, "loose")]}]}])
    idx = CatalogIndex.build([snap], now=NOW)
    assert idx.shops_in("Solhaven") == ["Unknown Shop"]
    assert idx.rooms_in("Solhaven", "Unknown Shop") == ["Main Room"]


def test_search_shop_signs_orders_by_town_then_shop():
    idx = CatalogIndex.build(_two_towns(), now=NOW)
    matches = idx.search_shop_signs("gems")
    assert [(m.town, m.shop_name) for m in matches] == [
        ("Solhaven", "Armory"),
        ("Wehnimer's Landing", "Gemmy's"),
    ]
    gemmy = matches[1]
    assert gemmy.shop_sign == "Fine Gems"
    assert gemmy.item_count == 3 and gemmy.room_count == 2
    assert [m.shop_name for m in idx.search_shop_signs("GEMS", town="Solhaven")] == ["Armory"]
    assert idx.search_shop_signs("   ") == []


def test_embedded_removed_items_used_without_separate_file():
    snap = _snapshot("Solhaven,", [], removed=[
        _item(50, "a lost ring", removed_date="2024-06-09T00:00:00Z", last_seen_shop="Armory"),
        _item(51, "a lost cup"),
    ])
    idx = CatalogIndex.build([snap], now=NOW)
    assert [i.name for i in idx.removed] == ["a lost ring", "a lost cup"]
    ring, cup = idx.removed
    assert ring.removed_date == "2024-06-09T00:00:00Z"
    assert ring.last_seen_shop == "Armory"
    assert ring.last_seen_town == "Solhaven"
    assert cup.removed_date == "2024-06-10T12:00:00Z"
    assert cup.last_seen_shop is None


def test_separate_removed_file_takes_precedence():
    snap = _snapshot("Solhaven", [], removed=[_item(50, "embedded")])
    payload = {
        "Ta'Vaalor, ": [
            _item(60, "separate", removedDate="2024-06-08T00:00:00Z", lastSeenShop="Forge"),
        ],
        "Solhaven": [_item(61, "moved", town="Solhaven,")],
    }
    idx = CatalogIndex.build([snap], removed_payload=payload, now=NOW)
    assert [i.name for i in idx.removed] == ["separate", "moved"]
    separate, moved = idx.removed
    assert separate.removed_date == "2024-06-08T00:00:00Z"
    assert separate.last_seen_shop == "Forge"
    assert separate.last_seen_town == "Ta'Vaalor"
    assert separate.location_name == "Ta'Vaalor"
    assert moved.last_seen_town == "Solhaven"


def test_removed_entry_with_non_string_town_keeps_batch():
    payload = {"Solhaven": [_item(70, "a dagger", town=5), _item(71, "a mace")]}
    idx = CatalogIndex.build([], removed_payload=payload, now=NOW)
    assert [i.name for i in idx.removed] == ["a dagger", "a mace"]
    assert [i.last_seen_town for i in idx.removed] == ["Solhaven", "Solhaven"]


def test_empty_separate_payload_still_suppresses_embedded():
    snap = _snapshot("Solhaven", [], removed=[_item(50, "embedded")])
    idx = CatalogIndex.build([snap], removed_payload={}, now=NOW)
    assert idx.removed == []


def test_lookups_and_map_info():
    idx = CatalogIndex.build(
        _two_towns(), shop_mapping={"Armory": {"map_id": 123, "exterior": "Market St"}}, now=NOW,
    )
    assert idx.get_item_by_id("4").name == "a mace"
    assert idx.find_item(4, shop_id=2, town="Solhaven").name == "a mace"
    assert idx.find_item(4, shop_id=99) is None
    assert idx.map_info("Armory") == {"map_id": 123, "exterior": "Market St"}
    assert idx.map_info("Bakery") is None


def test_same_id_may_be_live_and_removed():
    snap = _snapshot("Solhaven", [_shop(1, [("Hall", [_item(7, "a cup")])])],
                     removed=[_item(7, "a cup")])
    idx = CatalogIndex.build([snap], now=NOW)
    assert idx.get_item_by_id(7) is not None
    assert [i.id for i in idx.removed] == [7]
