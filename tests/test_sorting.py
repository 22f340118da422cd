import sys, pathlib
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from models import Enhancive, NormalizedItem, SortSpec
from services.filters import compare, resolve_sort_field, sort_items, toggle_sort


def _item(item_id, name, n_enh=0, **kw):
    enh = tuple(Enhancive(f"Stat {i}", i) for i in range(n_enh))
    return NormalizedItem(id=item_id, name=name, location_name="Solhaven", enhancives=enh, **kw)


def test_sort_by_property_count_is_stable():
    items = sort_items(
        [
            _item(1, "delta", 2),
            _item(2, "alpha", 2),
            _item(3, "echo", 0),
            _item(4, "charlie", 2),
            _item(5, "bravo", 3),
        ],
        SortSpec("name", "asc"),
    )
    by_count = sort_items(items, SortSpec("propertyCount", "desc"))
    assert [i.name for i in by_count] == ["bravo", "alpha", "charlie", "delta", "echo"]
    # sorting again does not shuffle ties
    assert sort_items(by_count, SortSpec("property_count", "desc")) == by_count


def test_zero_property_count_is_a_value():
    items = [_item(1, "a", 0), _item(2, "b", 1)]
    assert [i.id for i in sort_items(items, SortSpec("properties", "asc"))] == [1, 2]


def test_strings_compare_case_insensitively():
    items = [_item(1, "banana"), _item(2, "Apple"), _item(3, "cherry")]
    assert [i.name for i in sort_items(items, SortSpec("name", "asc"))] == ["Apple", "banana", "cherry"]
    assert [i.name for i in sort_items(items, SortSpec("name", "desc"))] == ["cherry", "banana", "Apple"]


def test_missing_strings_sort_as_empty():
    items = [_item(1, "x", shop_name="Bakery"), _item(2, "y", shop_name=None)]
    assert [i.id for i in sort_items(items, SortSpec("shop", "asc"))] == [2, 1]


def test_missing_numbers_sort_last_in_both_directions():
    items = [_item(1, "a", price=None), _item(2, "b", price=300), _item(3, "c", price=100)]
    assert [i.id for i in sort_items(items, SortSpec("price", "asc"))] == [3, 2, 1]
    assert [i.id for i in sort_items(items, SortSpec("price", "desc"))] == [2, 3, 1]


def test_dates_compare_as_timestamps():
    items = [
        _item(1, "a", added_date="2024-06-01T10:00:00Z"),
        _item(2, "b", added_date="2024-06-01T09:00:00-03:00"),  # 12:00Z
        _item(3, "c", added_date="2024-05-31T23:00:00Z"),
    ]
    assert [i.id for i in sort_items(items, SortSpec("added", "desc"))] == [2, 1, 3]


def test_compare_returns_three_way():
    a, b = _item(1, "a", price=1), _item(2, "b", price=2)
    assert compare(a, b, SortSpec("price")) == -1
    assert compare(b, a, SortSpec("price")) == 1
    assert compare(a, a, SortSpec("price")) == 0


def test_resolve_sort_field_aliases():
    assert resolve_sort_field("shop") == "shop_name"
    assert resolve_sort_field("properties") == "property_count"
    assert resolve_sort_field("addedDate") == "added_date"
    assert resolve_sort_field("removed") == "removed_date"
    assert resolve_sort_field("town") == "location_name"
    assert resolve_sort_field("price") == "price"
    assert resolve_sort_field(None) == "name"


def test_toggle_sort_defaults_and_flip():
    spec = toggle_sort(None, "price")
    assert spec == SortSpec("price", "asc")
    assert toggle_sort(spec, "price") == SortSpec("price", "desc")
    assert toggle_sort(spec, "properties") == SortSpec("property_count", "desc")
    assert toggle_sort(spec, "added") == SortSpec("added_date", "desc")
    assert toggle_sort(spec, "name") == SortSpec("name", "asc")
    assert toggle_sort(SortSpec("shop_name", "asc"), "shop") == SortSpec("shop_name", "desc")
