"""Stat point allocation on level-up.

Points are assigned one at a time by a priority ladder:

Early game (below level 15) keeps charisma at ceil(level/2) for one-gold
potions and puts everything else into dexterity for reliable fleeing.
From level 15 dexterity is held at 55% of level and vitality takes the rest.
An emergency vitality point comes first whenever health is below a quarter
of maximum.
"""

import math

from aws_lambda_powertools import Logger

from shared.events import EventSink, StatAllocationEvent
from shared.models import Adventurer, StatAllocation, Stats
from shared.utils import HEALTH_PER_VITALITY, MAX_STAT_VALUE, max_health, potion_cost

logger = Logger(child=True)

EMERGENCY_HP_FRACTION = 0.25
LATE_GAME_LEVEL = 15
DEX_FLOOR_FRACTION = 0.55

ALLOCATABLE_STATS = ("strength", "dexterity", "vitality", "intelligence", "wisdom", "charisma")
OVERFLOW_ORDER = ("dexterity", "charisma", "wisdom", "intelligence", "strength")


def pick_next_stat(level: int, hp: int, max_hp: int, stats: dict[str, int]) -> str | None:
    """Choose the attribute for the next stat point.

    Args:
        level: Adventurer level
        hp: Current health (including points already allocated to vitality)
        max_hp: Current maximum health
        stats: Current attribute values

    Returns:
        Attribute name, or None when every attribute is capped
    """

    def open_(name: str) -> bool:
        return stats[name] < MAX_STAT_VALUE

    if hp < max_hp * EMERGENCY_HP_FRACTION and open_("vitality"):
        return "vitality"
    if stats["dexterity"] == 0 and open_("dexterity"):
        return "dexterity"
    if stats["charisma"] == 0 and open_("charisma"):
        return "charisma"
    if stats["charisma"] < math.ceil(level / 2) and open_("charisma"):
        return "charisma"

    if level < LATE_GAME_LEVEL:
        if open_("dexterity"):
            return "dexterity"
        if open_("vitality"):
            return "vitality"

    if stats["dexterity"] < math.ceil(level * DEX_FLOOR_FRACTION) and open_("dexterity"):
        return "dexterity"
    if open_("vitality"):
        return "vitality"

    for name in OVERFLOW_ORDER:
        if open_(name):
            return name
    return None


def allocate_stats(adventurer: Adventurer, events: EventSink | None = None) -> StatAllocation:
    """Allocate all available stat points.

    Args:
        adventurer: Adventurer with stat_upgrades_available > 0
        events: Telemetry sink for the stat_allocation event

    Returns:
        StatAllocation summing to the available points (luck always 0).
        Points that no stat below the cap can take are left unallocated, so
        the sum is lower once every stat reaches 31.
    """
    points = adventurer.stat_upgrades_available
    if points <= 0:
        return StatAllocation()

    level = adventurer.level
    stats = {name: getattr(adventurer.stats, name) for name in ALLOCATABLE_STATS}
    added = dict.fromkeys(ALLOCATABLE_STATS, 0)
    hp = adventurer.health
    max_hp = max_health(stats["vitality"])

    for _ in range(points):
        name = pick_next_stat(level, hp, max_hp, stats)
        if name is None:
            logger.warning("All stats capped, leaving points unallocated", extra={"points": points})
            break
        stats[name] += 1
        added[name] += 1
        if name == "vitality":
            hp += HEALTH_PER_VITALITY
            max_hp = max_health(stats["vitality"])

    allocation = StatAllocation(**added)
    resulting = Stats(**stats, luck=adventurer.stats.luck)

    logger.info(
        "Stats allocated",
        extra={
            "adventurer_level": level,
            "points": points,
            "allocation": allocation.model_dump(),
            "potion_cost": potion_cost(level, stats["charisma"]),
            "health": hp,
            "max_health": max_hp,
        },
    )

    if events is not None:
        events.emit(
            StatAllocationEvent(
                points=points,
                allocation=Stats(**allocation.model_dump()),
                resulting_stats=resulting,
                level=level,
            )
        )

    return allocation
