"""
Data models for the Bodega catalog.

Defines the normalized item record shared by every view together with the
filter and sort structures consumed by :mod:`services.filters`.
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional, Tuple, Union


@dataclass(frozen=True)
class Enhancive:
    """A stat boost attached to an item."""
    ability: str
    boost: Union[int, str]
    level: Optional[Union[int, str]] = None

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "Enhancive":
        return cls(
            ability=raw.get('ability') or '',
            boost=raw.get('boost') if raw.get('boost') is not None else '',
            level=raw.get('level'),
        )

    def phrasings(self) -> Tuple[str, str, str]:
        """Return the three indexed phrasings, e.g. ``9 to Armor Use Bonus``."""
        return (
            f"{self.boost} to {self.ability}",
            f"{self.boost} {self.ability}",
            f"{self.ability} {self.boost}",
        )


@dataclass(frozen=True)
class GemstoneProperty:
    """A named gemstone (jewel) property."""
    name: str
    rarity: Optional[str] = None
    mnemonic: Optional[str] = None
    description: Optional[str] = None
    activated: bool = False

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "GemstoneProperty":
        return cls(
            name=raw.get('name') or '',
            rarity=raw.get('rarity'),
            mnemonic=raw.get('mnemonic'),
            description=raw.get('description'),
            activated=bool(raw.get('activated', False)),
        )

    def search_phrase(self) -> str:
        parts = (self.name, self.rarity, self.mnemonic, self.description)
        return ' '.join('' if p is None else str(p) for p in parts)


@dataclass(frozen=True)
class NormalizedItem:
    """Canonical, typed record derived from one raw shop item.

    Instances are immutable; the added/removed subsets carry copies made with
    :func:`dataclasses.replace` so that provenance fields only appear there.
    """
    id: Any
    name: str
    location_name: str
    shop_id: Any = None
    shop_name: str = 'Unknown Shop'
    shop_location: Optional[str] = None
    shop_sign_text: str = ''
    room_title: Optional[str] = None
    room_sign_text: str = ''
    branch: Optional[str] = None

    price: Optional[int] = None
    enchant_level: Optional[int] = None
    material: Optional[str] = None
    weight: Any = None

    item_type: Optional[str] = None
    weapon_type: Optional[str] = None
    armor_type: Optional[str] = None
    shield_type: Optional[str] = None
    capacity: Optional[str] = None
    capacity_level: Optional[str] = None
    wear_location: Optional[str] = None
    skill: Optional[str] = None

    enhancives: Tuple[Enhancive, ...] = ()
    gemstone_properties: Tuple[GemstoneProperty, ...] = ()
    gemstone_bound_to: Optional[str] = None
    tags: Tuple[str, ...] = ()
    flares: Tuple[str, ...] = ()
    spell: Optional[str] = None
    blessing: Optional[str] = None
    charges: Optional[str] = None
    raw: Tuple[str, ...] = ()

    search_text: str = ''
    search_text_no_sign: str = ''

    added_date: Optional[str] = None
    removed_date: Optional[str] = None
    last_seen_shop: Optional[str] = None
    last_seen_town: Optional[str] = None

    @property
    def property_count(self) -> int:
        """Number of enhancive properties; zero is a real value."""
        return len(self.enhancives)

    @property
    def town(self) -> str:
        return self.location_name


@dataclass(frozen=True)
class ShopMetadata:
    """Shop details captured from the first item seen for a shop."""
    preamble: str = ''
    id: Any = ''
    shop_sign: str = ''


@dataclass
class FilterCriteria:
    """Selections for every filterable dimension.

    Empty selections never exclude items. Set-valued dimensions are OR within
    the dimension and AND across dimensions; ``special_properties`` is AND.
    """
    search: str = ''
    include_shop_signs: bool = True
    towns: FrozenSet[str] = frozenset()
    price_ranges: FrozenSet[str] = frozenset()
    enchant_levels: FrozenSet[str] = frozenset()
    item_types: FrozenSet[str] = frozenset()
    capacity_levels: FrozenSet[str] = frozenset()
    armor_types: FrozenSet[str] = frozenset()
    shield_types: FrozenSet[str] = frozenset()
    wear_locations: FrozenSet[str] = frozenset()
    skills: FrozenSet[str] = frozenset()
    special_properties: FrozenSet[str] = frozenset()
    gemstone_rarities: FrozenSet[str] = frozenset()
    gemstone_property_counts: FrozenSet[str] = frozenset()
    added_within_days: Optional[int] = None
    removed_within_days: Optional[int] = None

    def __post_init__(self):
        for name in (
            'towns', 'price_ranges', 'enchant_levels', 'item_types',
            'capacity_levels', 'armor_types', 'shield_types', 'wear_locations',
            'skills', 'special_properties', 'gemstone_rarities',
            'gemstone_property_counts',
        ):
            value = getattr(self, name)
            if not isinstance(value, frozenset):
                setattr(self, name, frozenset(str(v) for v in (value or ())))


@dataclass(frozen=True)
class SortSpec:
    """Single-field sort order."""
    field: str = 'name'
    direction: str = 'asc'

    @property
    def descending(self) -> bool:
        return self.direction == 'desc'


__all__ = [
    "Enhancive",
    "GemstoneProperty",
    "NormalizedItem",
    "ShopMetadata",
    "FilterCriteria",
    "SortSpec",
]
