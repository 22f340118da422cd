"""Property inference for raw shop items.

Shop records describe items in free text ("It can store a very large amount",
"The robes cover the torso", ...).  This module turns those lines into typed
properties with an ordered table of line rules.  Each rule owns one or more
patterns tried in order; the first pattern that matches fires the rule's
effect once for that line.  Rules are independent of each other, so one line
can set several properties.

Wear location is a single rule whose patterns are listed by priority: the
first matching pattern wins for a line, while a later matching line
overwrites the result of an earlier one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from re import Match, Pattern
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

WEAPON_SKILLS = (
    "edged weapons",
    "blunt weapons",
    "two handed weapons",
    "twohanded weapons",
    "polearms",
    "ranged weapons",
    "thrown weapons",
    "brawling",
)

# weapon > armor > shield > container > jewelry; anything else stays unset
ITEM_TYPE_PRIORITY = (
    ("is_weapon", "weapon"),
    ("is_armor", "armor"),
    ("is_shield", "shield"),
    ("is_container", "container"),
    ("is_jewelry", "jewelry"),
)


@dataclass
class PropertyBag:
    """Mutable accumulator for everything inferred from one item."""
    capacity: Optional[str] = None
    capacity_level: Optional[str] = None
    armor_type: Optional[str] = None
    weapon_type: Optional[str] = None
    shield_type: Optional[str] = None
    item_type: Optional[str] = None
    wear_location: Optional[str] = None
    skill: Optional[str] = None
    flares: List[str] = field(default_factory=list)
    spell: Optional[str] = None
    charges: Optional[str] = None
    blessing: Optional[str] = None
    is_weapon: bool = False
    is_armor: bool = False
    is_shield: bool = False
    is_container: bool = False
    is_jewelry: bool = False

    def resolve_item_type(self) -> Optional[str]:
        for flag, name in ITEM_TYPE_PRIORITY:
            if getattr(self, flag):
                self.item_type = name
                return name
        self.item_type = None
        return None


Effect = Callable[[PropertyBag, Match, str], None]
Guard = Callable[[PropertyBag, str], bool]


def _compile(*patterns: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


@dataclass(frozen=True)
class LineRule:
    """One inference rule: patterns tried in order, effect applied once."""
    name: str
    patterns: Tuple[Pattern, ...]
    effect: Effect
    guard: Optional[Guard] = None

    def match(self, line: str) -> Optional[Match]:
        for pattern in self.patterns:
            m = pattern.search(line)
            if m:
                return m
        return None

    def apply(self, bag: PropertyBag, line: str) -> bool:
        """Run the rule against ``line``; return ``True`` if it fired."""
        if self.guard is not None and not self.guard(bag, line):
            return False
        m = self.match(line)
        if m is None:
            return False
        self.effect(bag, m, line)
        return True


def _group(m: Match, index: int = 1) -> Optional[str]:
    try:
        return m.group(index)
    except IndexError:
        return None


# -- effects ---------------------------------------------------------------

def _set_capacity(bag: PropertyBag, m: Match, line: str) -> None:
    bag.capacity = line.strip()
    bag.capacity_level = m.group(1).lower()
    bag.is_container = True


def _set_armor(bag: PropertyBag, m: Match, line: str) -> None:
    kind = _group(m)
    bag.armor_type = kind.lower() if kind else "armor"
    bag.is_armor = True


_SHIELD_KIND = re.compile(r"is a (.*?) shield", re.IGNORECASE)


def _set_shield(bag: PropertyBag, m: Match, line: str) -> None:
    bag.is_shield = True
    kind = _SHIELD_KIND.search(line)
    if kind:
        bag.shield_type = kind.group(1).lower()


WEAR_PATTERNS: Tuple[Tuple[Pattern, str], ...] = tuple(
    (re.compile(p, re.IGNORECASE), loc)
    for p, loc in (
        # coverage phrasing; the location is the captured text
        (r"covers the (.*?)[\.,]", "$1"),
        (r"worn (.*?)[\.,]", "$1"),
        (r"around the (.*?)[\.,]", "$1"),
        (r"over the (.*?)[\.,]", "$1"),
        # wear messaging
        (r"put on.*as a (helm|hat|cap|crown)", "head"),
        (r"put on.*as (boots|shoes|sandals)", "feet"),
        (r"put on.*as (gloves|gauntlets)", "hands"),
        (r"put on.*as a (belt)", "waist"),
        (r"hung around.*as (necklace|pendant)", "neck"),
        (r"slid onto.*as a (ring)", "finger"),
        (r"attached to.*as a (bracelet)", "wrist"),
        (r"attached to.*as an (anklet)", "ankle"),
        (r"hung from.*as.*earring", "earlobe"),
        (r"draped from.*as a (cloak|cape)", "shoulders"),
        (r"slung over.*as a (shield)", "shoulder"),
        (r"worked into.*as (armor)", "torso"),
        (r"put over.*as an (apron)", "front"),
        (r"put in.*as.*barrette", "hair"),
        (r"attached to.*as.*pouch", "belt"),
    )
)
_WEAR_LOCATIONS: Dict[Pattern, str] = dict(WEAR_PATTERNS)


def _set_wear(bag: PropertyBag, m: Match, line: str) -> None:
    template = _WEAR_LOCATIONS[m.re]
    if "$1" in template:
        captured = _group(m)
        template = template.replace("$1", captured.strip() if captured is not None else "")
    bag.wear_location = template


def _add_flare(bag: PropertyBag, m: Match, line: str) -> None:
    bag.flares.append(line.strip())


def _set_spell(bag: PropertyBag, m: Match, line: str) -> None:
    bag.spell = m.group(1)


def _set_charges(bag: PropertyBag, m: Match, line: str) -> None:
    bag.charges = m.group(1)


def _set_jewelry(bag: PropertyBag, m: Match, line: str) -> None:
    bag.is_jewelry = True


def _set_container(bag: PropertyBag, m: Match, line: str) -> None:
    bag.is_container = True


def _set_holy(bag: PropertyBag, m: Match, line: str) -> None:
    bag.blessing = "holy"


_ARMOR_FABRIC = re.compile(r"robe|armor|mail|scale|chain|plate|leather|hide|skin", re.IGNORECASE)


def _container_name_allowed(bag: PropertyBag, line: str) -> bool:
    if bag.is_weapon or bag.is_armor or bag.is_shield:
        return False
    return not _ARMOR_FABRIC.search(line)


LINE_RULES: Tuple[LineRule, ...] = (
    LineRule("capacity", _compile(r"can store a (.*?) amount"), _set_capacity),
    LineRule(
        "armor",
        _compile(
            r"is (.*?) armor that",
            r"The .* is (.*?) armor",
            r"covers.*torso",
            r"covers.*chest",
            r"covers.*body",
            r"protects.*body",
            r"armor.*covers",
            r"robe.*covers",
            r"robes.*cover",
        ),
        _set_armor,
    ),
    LineRule("shield", _compile(r"shield that protects", r"is a.*shield"), _set_shield),
    LineRule("wear_location", tuple(p for p, _ in WEAR_PATTERNS), _set_wear),
    LineRule(
        "flare",
        _compile(r"infused.*power", r"flare", r"holy.*fire", r"blessed.*undead"),
        _add_flare,
    ),
    LineRule("spell", _compile(r"imbedded with the (.*?) spell"), _set_spell),
    LineRule(
        "charges",
        _compile(r"(\d+) charges? remaining", r"looks to have (.*?) charges"),
        _set_charges,
    ),
    LineRule(
        "jewelry",
        _compile(r"is.*jewelry", r"\b(ring|necklace|bracelet|earring|pendant|amulet|brooch|pin)\b"),
        _set_jewelry,
    ),
    LineRule(
        "container",
        _compile(
            r"can store.*amount",
            r"container.*capacity",
            r"holds.*amount",
            r"storage.*capacity",
        ),
        _set_container,
    ),
    LineRule(
        "container_name",
        _compile(
            r"\b(bag|sack|backpack|pouch|satchel|chest|strongbox|trunk|basket"
            r"|belt|sheath|scabbard|harness|bandolier)\b"
        ),
        _set_container,
        guard=_container_name_allowed,
    ),
    LineRule("blessing", _compile(r"blessed", r"holy"), _set_holy),
)

RULES_BY_NAME: Dict[str, LineRule] = {rule.name: rule for rule in LINE_RULES}


def apply_skill(bag: PropertyBag, skill: Optional[str]) -> None:
    """Let an explicit skill field override the text-derived classification."""
    if not skill:
        return
    bag.skill = str(skill).lower()
    if bag.skill in WEAPON_SKILLS:
        bag.is_weapon = True
        bag.weapon_type = bag.skill
    if bag.skill == "shield use":
        bag.is_shield = True
        bag.shield_type = "shield"
    if bag.skill == "armor use":
        bag.is_armor = True
        bag.armor_type = "armor"


def scan_lines(lines: Iterable[str], rules: Iterable[LineRule] = LINE_RULES) -> PropertyBag:
    """Run every line through every rule and return the accumulated bag."""
    bag = PropertyBag()
    rules = tuple(rules)
    for line in lines:
        if not isinstance(line, str):
            continue
        for rule in rules:
            rule.apply(bag, line)
    return bag


def infer_properties(raw_item: Dict[str, Any]) -> PropertyBag:
    """Derive classification and enrichments from a raw item record.

    Pure function of ``details.raw`` plus the explicit ``skill`` and ``worn``
    fields.
    """
    details = raw_item.get("details") or {}
    bag = scan_lines(details.get("raw") or [])
    apply_skill(bag, details.get("skill"))
    bag.resolve_item_type()
    if details.get("worn"):
        bag.wear_location = details["worn"]
    return bag


__all__ = [
    "PropertyBag",
    "LineRule",
    "LINE_RULES",
    "RULES_BY_NAME",
    "WEAR_PATTERNS",
    "WEAPON_SKILLS",
    "apply_skill",
    "scan_lines",
    "infer_properties",
]
