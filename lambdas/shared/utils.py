"""Game formulas shared by the strategy modules.

All functions mirror the integer arithmetic of the game contract.
"""

from .items import is_jewelry
from .models import Adventurer, Bag

STARTING_HEALTH = 100
MAX_HEALTH = 1023
HEALTH_PER_VITALITY = 15
MAX_STAT_VALUE = 31
POTION_HEAL_AMOUNT = 10
STARTER_BEAST_HEALTH = 3
MINIMUM_XP_REWARD = 4
MAX_XP_DECAY = 95
FLEE_XP_REWARD = 1
SILVER_RING_ID = 4
SILVER_RING_LUCK_BONUS_PER_GREATNESS = 1


def max_health(vitality: int) -> int:
    """Maximum health for a vitality score, capped at 1023."""
    return min(MAX_HEALTH, STARTING_HEALTH + vitality * HEALTH_PER_VITALITY)


def potion_cost(level: int, charisma: int) -> int:
    """Price of one health potion (heals 10).

    Args:
        level: Adventurer level
        charisma: Adventurer charisma (2 gold discount per point)

    Returns:
        Price in gold, minimum 1
    """
    return max(1, level - charisma * 2)


def kill_gold(beast_tier: int, beast_level: int) -> int:
    """Gold awarded for slaying a beast."""
    return max(1, beast_level * (6 - beast_tier) // 2)


def kill_xp(beast_tier: int, beast_level: int, adventurer_level: int) -> int:
    """Experience awarded for slaying a beast.

    The base reward decays by 2% per adventurer level, capped at 95%.

    Args:
        beast_tier: Beast tier
        beast_level: Beast level
        adventurer_level: Adventurer level

    Returns:
        XP reward, minimum 4
    """
    base = (6 - beast_tier) * beast_level // 2
    decay = min(adventurer_level * 2, MAX_XP_DECAY)
    return max(MINIMUM_XP_REWARD, base * (100 - decay) // 100)


def flee_chance(dexterity: int, level: int) -> float:
    """Probability a single flee attempt succeeds.

    Args:
        dexterity: Adventurer dexterity
        level: Adventurer level

    Returns:
        Probability in [0, 1]
    """
    if level <= 0 or dexterity >= level:
        return 1.0
    return min(1.0, (255 * dexterity / level) / 256)


def calculate_luck(adventurer: Adventurer, bag: Bag) -> int:
    """Luck derived from jewelry.

    Luck = neck greatness + ring greatness + silver ring bonus + greatness of
    every ring and necklace carried in the bag.

    Args:
        adventurer: Adventurer state
        bag: Adventurer bag

    Returns:
        Luck value
    """
    equipment = adventurer.equipment
    neck = equipment.neck.greatness if equipment.neck.id > 0 else 0
    ring = equipment.ring.greatness if equipment.ring.id > 0 else 0
    silver_bonus = (
        ring * SILVER_RING_LUCK_BONUS_PER_GREATNESS if equipment.ring.id == SILVER_RING_ID else 0
    )
    bag_jewelry = sum(item.greatness for item in bag.items if is_jewelry(item.id))
    return neck + ring + silver_bonus + bag_jewelry


def parse_felt(value: str | int) -> int:
    """Parse a felt from hex string, decimal string or int."""
    if isinstance(value, int):
        return value
    return int(value, 0)
