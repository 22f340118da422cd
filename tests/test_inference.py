import sys, pathlib
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

import pytest

from services.inference import (
    LINE_RULES,
    RULES_BY_NAME,
    PropertyBag,
    apply_skill,
    infer_properties,
    scan_lines,
)


def _item(*lines, **details):
    details["raw"] = list(lines)
    return {"id": 1, "name": "thing", "details": details}


def test_rule_order_is_fixed():
    names = [r.name for r in LINE_RULES]
    assert names == [
        "capacity", "armor", "shield", "wear_location", "flare", "spell",
        "charges", "jewelry", "container", "container_name", "blessing",
    ]


def test_capacity_sets_level_and_container():
    props = infer_properties(_item("It can store a very large amount of goods."))
    assert props.capacity_level == "very large"
    assert props.capacity == "It can store a very large amount of goods."
    assert props.item_type == "container"


def test_armor_type_from_text():
    props = infer_properties(_item("The hauberk is double leather armor that covers the torso."))
    assert props.armor_type == "double leather"
    assert props.item_type == "armor"


def test_armor_without_named_type_defaults_to_armor():
    props = infer_properties(_item("The robes cover the torso and arms."))
    assert props.armor_type == "armor"
    assert props.is_armor


def test_shield_type_extracted():
    props = infer_properties(_item("It is a large shield that protects the wielder."))
    assert props.is_shield
    assert props.shield_type == "large"
    assert props.item_type == "shield"


@pytest.mark.parametrize(
    "line,expected",
    [
        ("It could be put on as a helm.", "head"),
        ("It could be put on as boots.", "feet"),
        ("It can be slid onto a finger as a ring.", "finger"),
        ("It could be draped from the shoulders as a cloak.", "shoulders"),
        ("It can be hung from the ear as an earring.", "earlobe"),
        ("It can be put in the hair as a barrette.", "hair"),
        ("It is worn on the back.", "on the back"),
    ],
)
def test_wear_location_patterns(line, expected):
    assert infer_properties(_item(line)).wear_location == expected


def test_wear_first_pattern_wins_within_line():
    # "worn ..." is listed before "around the ..."
    props = infer_properties(_item("It is worn loosely around the neck."))
    assert props.wear_location == "loosely around the neck"


def test_wear_last_line_wins_across_scan():
    props = infer_properties(_item(
        "It could be put on as a hat.",
        "It could be put on as gloves.",
    ))
    assert props.wear_location == "hands"


def test_worn_field_overrides_text():
    props = infer_properties(_item("It could be put on as a hat.", worn="back"))
    assert props.wear_location == "back"


def test_flares_spell_charges_and_blessing():
    props = infer_properties(_item(
        "  It is infused with the power of fire.  ",
        "It is imbedded with the Minor Fire spell.",
        "It has 12 charges remaining.",
        "It has been blessed by a cleric.",
    ))
    assert props.flares == ["It is infused with the power of fire."]
    assert props.spell == "Minor Fire"
    assert props.charges == "12"
    assert props.blessing == "holy"


def test_one_line_sets_several_properties():
    props = infer_properties(_item("The holy fire flares brightly."))
    assert props.flares and props.blessing == "holy"


def test_jewelry_keyword():
    props = infer_properties(_item("It is a silver ring."))
    assert props.item_type == "jewelry"


def test_container_name_suppressed_by_armor_fabric():
    props = infer_properties(_item("A leather harness with steel plate."))
    assert not props.is_container
    assert props.item_type is None


def test_container_name_suppressed_once_armor_classified():
    props = infer_properties(_item(
        "The coat is light armor that keeps you warm.",
        "A small pouch is sewn inside.",
    ))
    assert not props.is_container
    assert props.item_type == "armor"


def test_container_name_alone_is_container():
    props = infer_properties(_item("A sturdy canvas backpack."))
    assert props.item_type == "container"


def test_weapon_skill_beats_container_signal():
    props = infer_properties(_item("It can store a small amount.", skill="Edged Weapons"))
    assert props.skill == "edged weapons"
    assert props.weapon_type == "edged weapons"
    assert props.item_type == "weapon"


def test_skill_overrides_for_shield_and_armor():
    bag = PropertyBag()
    apply_skill(bag, "Shield Use")
    assert bag.is_shield and bag.shield_type == "shield"
    bag = PropertyBag()
    apply_skill(bag, "ARMOR USE")
    assert bag.is_armor and bag.armor_type == "armor"


def test_priority_weapon_armor_shield_container_jewelry():
    bag = PropertyBag(is_container=True, is_jewelry=True, is_shield=True)
    assert bag.resolve_item_type() == "shield"
    bag.is_armor = True
    assert bag.resolve_item_type() == "armor"
    bag.is_weapon = True
    assert bag.resolve_item_type() == "weapon"


def test_no_signal_leaves_item_type_unset():
    props = infer_properties(_item("A plain grey stone."))
    assert props.item_type is None
    assert props.flares == []


def test_rules_are_unit_testable():
    bag = PropertyBag()
    assert RULES_BY_NAME["spell"].apply(bag, "It is imbedded with the Haste spell.")
    assert bag.spell == "Haste"
    assert not RULES_BY_NAME["spell"].apply(bag, "nothing here")


def test_non_string_lines_are_ignored():
    bag = scan_lines([None, 5, "It is a gold necklace."])
    assert bag.is_jewelry


def test_missing_details_is_empty_bag():
    props = infer_properties({"name": "x"})
    assert props.item_type is None and props.wear_location is None
