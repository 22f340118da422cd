import sys, pathlib
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from models import Enhancive, GemstoneProperty, NormalizedItem
from utils.items import clean_location_name, format_price, location_info, property_badges, sign_text


def test_clean_location_name():
    assert clean_location_name("Wehnimer's Landing,  ") == "Wehnimer's Landing"
    assert clean_location_name(None) == ""


def test_sign_text_drops_written_on():
    assert sign_text(["Written on the sign:", " Fine ", "goods "]) == "Fine  goods"
    assert sign_text(None) == ""


def test_location_info():
    assert location_info("The shop is located in [East Row, Ebonwood Way].") == "East Row, Ebonwood Way"
    assert location_info("No brackets here") is None


def test_format_price():
    assert format_price(None) == "Free"
    assert format_price(0) == "Free"
    assert format_price(950) == "950"
    assert format_price(12_000) == "12k"
    assert format_price(1_250_000) == "1.2M"


def test_property_badges_order():
    item = NormalizedItem(
        id=1, name="x", location_name="y",
        item_type="weapon", enchant_level=4, weapon_type="edged weapons", skill="edged weapons",
        enhancives=(Enhancive("Strength", 3),), flares=("f",), blessing="holy",
        tags=("max_light", "ordinary"),
        gemstone_properties=(GemstoneProperty("a", "Rare"), GemstoneProperty("b", "common")),
    )
    assert property_badges(item) == [
        "Weapon", "+4", "Edged weapons", "+3 Strength", "Flares", "Holy",
        "max light", "Gemstone", "Common", "Rare",
    ]
