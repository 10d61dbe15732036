"""Deterministic damage formulas for adventurer and beast attacks.

These mirror the contract's combat math: elemental adjustment, strength bonus,
armor mitigation, critical hits and necklace reduction. The Monte Carlo
evaluator samples from the values computed here.
"""

from dataclasses import dataclass

from shared.items import ARMOR_SLOTS, item_type, neck_matches_armor
from shared.models import Adventurer, Beast, Item

MIN_DAMAGE = 4
BEAST_MIN_DAMAGE = 2
MINIMUM_DAMAGE_FROM_OBSTACLES = 4
BASE_DAMAGE_REDUCTION_PCT = 75
JEWELRY_BONUS_CRITICAL_HIT_PERCENT = 3
NECKLACE_ARMOR_BONUS = 3
TITANIUM_RING_ID = 7

# Attack type -> armor type it is strong/weak against
STRONG_AGAINST = {"Magic": "Metal", "Blade": "Cloth", "Bludgeon": "Hide"}
WEAK_AGAINST = {"Magic": "Hide", "Blade": "Metal", "Bludgeon": "Cloth"}


@dataclass
class DamageResult:
    """Damage for a normal and a critical hit."""

    base_damage: int
    critical_damage: int


def elemental_adjusted_damage(base_attack: int, attack_type: str, armor_type: str) -> int:
    """Apply the elemental triangle to a base attack.

    Strong matchups add half the base attack, weak matchups subtract it.

    Args:
        base_attack: Attack before adjustment
        attack_type: Magic, Blade or Bludgeon
        armor_type: Cloth, Hide or Metal

    Returns:
        Adjusted attack
    """
    elemental = base_attack // 2
    if STRONG_AGAINST.get(attack_type) == armor_type:
        return base_attack + elemental
    if WEAK_AGAINST.get(attack_type) == armor_type:
        return base_attack - elemental
    return base_attack


def attack_damage(adventurer: Adventurer, beast: Beast | None) -> DamageResult:
    """Damage the adventurer deals with the equipped weapon.

    Args:
        adventurer: Attacking adventurer (weapon, ring and strength are used)
        beast: Target beast, or None for the unarmored estimate

    Returns:
        DamageResult with base and critical damage
    """
    weapon = adventurer.equipment.weapon
    if weapon.id == 0:
        return DamageResult(MIN_DAMAGE, MIN_DAMAGE)

    base_attack = weapon.greatness * (6 - weapon.tier)
    strength = adventurer.stats.strength

    if beast is None:
        strength_bonus = base_attack * strength // 10
        return DamageResult(base_attack + strength_bonus, base_attack * 2 + strength_bonus)

    beast_armor = beast.level * (6 - beast.tier)
    elemental = elemental_adjusted_damage(base_attack, weapon.type, beast.armor_type)
    strength_bonus = elemental * strength * 10 // 100 if strength > 0 else 0

    base_damage = max(MIN_DAMAGE, elemental + strength_bonus - beast_armor)

    crit_bonus = elemental
    ring = adventurer.equipment.ring
    if ring.id == TITANIUM_RING_ID:
        crit_bonus += crit_bonus * JEWELRY_BONUS_CRITICAL_HIT_PERCENT * ring.greatness // 100

    critical_damage = max(MIN_DAMAGE, elemental + strength_bonus + crit_bonus - beast_armor)
    return DamageResult(base_damage, critical_damage)


def beast_damage(beast: Beast, armor: Item, neck: Item | None = None) -> DamageResult:
    """Damage a beast deals when it hits one armor slot.

    Args:
        beast: Attacking beast
        armor: Item in the struck slot (id 0 when empty)
        neck: Equipped necklace, reduces damage when it matches the armor

    Returns:
        DamageResult, both values at least 2
    """
    base_attack = beast.level * (6 - beast.tier)

    if armor.id == 0:
        damage = base_attack * 3 // 2
        return DamageResult(max(BEAST_MIN_DAMAGE, damage), max(BEAST_MIN_DAMAGE, damage * 2))

    armor_value = armor.greatness * (6 - armor.tier)
    armor_type = item_type(armor.id)
    elemental = elemental_adjusted_damage(base_attack, beast.attack_type, armor_type)

    base_damage = elemental - armor_value
    critical_damage = elemental * 2 - armor_value

    if neck is not None and neck.id > 0 and neck_matches_armor(neck.id, armor_type):
        reduction = armor_value * neck.greatness * NECKLACE_ARMOR_BONUS // 100
        base_damage -= reduction
        critical_damage -= reduction

    return DamageResult(max(BEAST_MIN_DAMAGE, base_damage), max(BEAST_MIN_DAMAGE, critical_damage))


def beast_slot_damage(adventurer: Adventurer, beast: Beast) -> list[DamageResult]:
    """Beast damage against each armor slot (chest, head, waist, foot, hand)."""
    neck = adventurer.equipment.neck
    return [beast_damage(beast, armor, neck) for armor in adventurer.equipment.armor()]


def average_beast_damage(adventurer: Adventurer, beast: Beast) -> tuple[float, int]:
    """Expected and worst-case damage of one beast hit.

    Each armor slot is equally likely to be struck; critical hits occur with
    probability level/100.

    Args:
        adventurer: Defending adventurer
        beast: Attacking beast

    Returns:
        Tuple of (expected damage, maximum damage)
    """
    crit_chance = min(adventurer.level / 100, 1.0)
    slots = beast_slot_damage(adventurer, beast)
    expected = sum(
        s.base_damage * (1 - crit_chance) + s.critical_damage * crit_chance for s in slots
    )
    return expected / len(ARMOR_SLOTS), max(s.critical_damage for s in slots)


def obstacle_damage(obstacle_id: int, obstacle_level: int, armor: Item, neck: Item | None = None) -> int:
    """Damage an exploration obstacle deals to one armor slot.

    Obstacles share the beast tier and attack tables and receive a flat 25%
    reduction.

    Args:
        obstacle_id: Obstacle id (same id space as beasts)
        obstacle_level: Obstacle level
        armor: Item in the struck slot
        neck: Equipped necklace

    Returns:
        Damage, at least 4
    """
    obstacle = Beast(id=obstacle_id, level=obstacle_level)
    base_attack = obstacle_level * (6 - obstacle.tier)

    if armor.id == 0:
        damage = base_attack * 3 // 2
        return max(MINIMUM_DAMAGE_FROM_OBSTACLES, damage * BASE_DAMAGE_REDUCTION_PCT // 100)

    armor_value = armor.greatness * (6 - armor.tier)
    armor_type = item_type(armor.id)
    damage = elemental_adjusted_damage(base_attack, obstacle.attack_type, armor_type) - armor_value

    if neck is not None and neck.id > 0 and neck_matches_armor(neck.id, armor_type):
        damage -= armor_value * neck.greatness * NECKLACE_ARMOR_BONUS // 100

    damage = damage * BASE_DAMAGE_REDUCTION_PCT // 100
    return max(MINIMUM_DAMAGE_FROM_OBSTACLES, damage)
