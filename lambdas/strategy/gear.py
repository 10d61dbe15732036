"""Pre-combat weapon swap, bag cleanup and starter weapon choice."""

from dataclasses import dataclass, field

from aws_lambda_powertools import Logger

from shared.items import (
    ARMOR_SLOTS,
    PREFERRED_STARTER_WEAPON,
    armor_material,
    is_armor,
    is_jewelry,
    is_weapon,
    item_name,
    item_type,
)
from shared.models import MAX_BAG_SIZE, Adventurer, Bag, Beast, Item

from .damage import STRONG_AGAINST, WEAK_AGAINST

logger = Logger(child=True)

# Items at or above this greatness are growing toward their suffix
HIGH_GREATNESS_THRESHOLD = 12

MAX_DROP_SUGGESTIONS = 3


@dataclass
class GearSwap:
    """Bag items to equip (each replaces the item in its slot)."""

    equip_item_ids: list[int] = field(default_factory=list)
    reason: str = ""

    @property
    def has_swaps(self) -> bool:
        """Check if any swap is suggested."""
        return bool(self.equip_item_ids)


def effective_damage_score(weapon_id: int, beast_armor_type: str) -> float:
    """Relative damage of a weapon against a beast's armor.

    Tier multiplier (6 - tier) times 1.5 for a strong matchup, 0.5 for a weak
    one, so a weak T1 (2.5) still beats a neutral T5 (1.0).

    Args:
        weapon_id: Weapon item id
        beast_armor_type: Cloth, Hide or Metal

    Returns:
        Score, higher is better
    """
    weapon = Item(id=weapon_id)
    weapon_type = item_type(weapon_id)
    if STRONG_AGAINST.get(weapon_type) == beast_armor_type:
        multiplier = 1.5
    elif WEAK_AGAINST.get(weapon_type) == beast_armor_type:
        multiplier = 0.5
    else:
        multiplier = 1.0
    return (6 - weapon.tier) * multiplier


def suggest_gear_swap(adventurer: Adventurer, bag: Bag, beast: Beast) -> GearSwap:
    """Suggest a bag weapon that fights this beast better.

    Weapons at greatness 12 or more (equipped or in the bag) are never
    swapped so their growth toward the suffix is not interrupted. Armor is
    never swapped mid-fight.

    Args:
        adventurer: Adventurer state
        bag: Adventurer bag
        beast: Beast about to be fought

    Returns:
        GearSwap, empty when no strictly better weapon exists
    """
    current = adventurer.equipment.weapon
    if current.id == 0 or current.greatness >= HIGH_GREATNESS_THRESHOLD:
        return GearSwap()

    armor_type = beast.armor_type
    best: Item | None = None
    best_score = effective_damage_score(current.id, armor_type)

    for candidate in bag.items:
        if not is_weapon(candidate.id) or candidate.greatness >= HIGH_GREATNESS_THRESHOLD:
            continue
        score = effective_damage_score(candidate.id, armor_type)
        if score > best_score:
            best = candidate
            best_score = score

    if best is None:
        return GearSwap()

    reason = (
        f"Weapon: {item_name(current.id)}({current.type.value},T{current.tier}) -> "
        f"{item_name(best.id)}({best.type.value},T{best.tier}) vs {armor_type} armor"
    )
    logger.info("Gear swap suggested", extra={"reason": reason})
    return GearSwap(equip_item_ids=[best.id], reason=reason)


def score_bag_item(item: Item, adventurer: Adventurer, bag: Bag) -> int:
    """Keep-value of a bag item; the lowest scores are dropped first.

    Args:
        item: Bag item
        adventurer: Adventurer state
        bag: Adventurer bag

    Returns:
        (6 - tier) * 10 + greatness * 3 + versatility bonus
    """
    score = (6 - item.tier) * 10 + item.greatness * 3

    if is_armor(item.id):
        material = armor_material(item.id)
        same = sum(
            1
            for slot in ARMOR_SLOTS
            if (eq := getattr(adventurer.equipment, slot)).id > 0
            and eq.id != item.id
            and armor_material(eq.id) == material
        )
        same += sum(1 for b in bag.items if b.id != item.id and armor_material(b.id) == material)
        score += max(0, 15 - same * 3)
    elif is_weapon(item.id):
        weapon_type = item_type(item.id)
        equipped = adventurer.equipment.weapon
        same = 1 if equipped.id > 0 and equipped.id != item.id and item_type(equipped.id) == weapon_type else 0
        same += sum(
            1
            for b in bag.items
            if b.id != item.id and is_weapon(b.id) and item_type(b.id) == weapon_type
        )
        score += max(0, 15 - same * 5)

    return score


def suggest_item_drops(bag: Bag, adventurer: Adventurer) -> list[int]:
    """Suggest bag items to drop when the bag is full.

    Jewelry is never dropped since it adds luck from the bag.

    Args:
        bag: Adventurer bag
        adventurer: Adventurer state

    Returns:
        Up to three item ids, lowest keep-value first
    """
    if len(bag.items) < MAX_BAG_SIZE:
        return []

    candidates = [item for item in bag.items if item.id > 0 and not is_jewelry(item.id)]
    candidates.sort(key=lambda item: score_bag_item(item, adventurer, bag))
    drops = [item.id for item in candidates[:MAX_DROP_SUGGESTIONS]]

    if drops:
        logger.info("Bag cleanup suggested", extra={"drops": [item_name(i) for i in drops]})
    return drops


def select_starter_weapon() -> int:
    """Starting weapon id: Short Sword, a Blade that is strong against common Cloth beasts."""
    return PREFERRED_STARTER_WEAPON
