"""Pydantic models for on-chain game entities."""

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .beasts import beast_armor_type, beast_attack_type, beast_name, beast_tier, beast_type
from .items import ARMOR_SLOTS, item_tier, item_type

MAX_GREATNESS = 20
SUFFIX_UNLOCK_GREATNESS = 15
MAX_BAG_SIZE = 15


class GamePhase(str, Enum):
    """Phase of a game, derived from a state snapshot."""

    DEAD = "dead"
    STARTER_BEAST = "starter_beast"
    IN_BATTLE = "in_battle"
    STAT_UPGRADE = "stat_upgrade"
    SHOPPING = "shopping"
    EXPLORING = "exploring"


class Stats(BaseModel):
    """Adventurer attributes. Luck is derived from jewelry and never allocated."""

    strength: int = Field(default=0, ge=0)
    dexterity: int = Field(default=0, ge=0)
    vitality: int = Field(default=0, ge=0)
    intelligence: int = Field(default=0, ge=0)
    wisdom: int = Field(default=0, ge=0)
    charisma: int = Field(default=0, ge=0)
    luck: int = Field(default=0, ge=0)


class Item(BaseModel):
    """An owned item. Id 0 means the slot is empty."""

    id: int = Field(default=0, ge=0)
    xp: int = Field(default=0, ge=0)

    @property
    def is_empty(self) -> bool:
        """Check if this is an empty slot."""
        return self.id == 0

    @property
    def greatness(self) -> int:
        """Item level: floor(sqrt(xp)), 1 at zero xp, capped at 20."""
        if self.xp == 0:
            return 1
        return min(math.isqrt(self.xp), MAX_GREATNESS)

    @property
    def has_suffix(self) -> bool:
        """Check if the item's suffix bonus is unlocked."""
        return self.greatness >= SUFFIX_UNLOCK_GREATNESS

    @property
    def tier(self) -> int:
        """Item tier (1 best, 5 worst)."""
        return item_tier(self.id)

    @property
    def type(self) -> str:
        """Item type (Magic, Blade, Bludgeon, Cloth, Hide, Metal, Ring, Necklace)."""
        return item_type(self.id)


class Equipment(BaseModel):
    """Equipped item per slot."""

    weapon: Item = Field(default_factory=Item)
    chest: Item = Field(default_factory=Item)
    head: Item = Field(default_factory=Item)
    waist: Item = Field(default_factory=Item)
    foot: Item = Field(default_factory=Item)
    hand: Item = Field(default_factory=Item)
    neck: Item = Field(default_factory=Item)
    ring: Item = Field(default_factory=Item)

    def armor(self) -> list[Item]:
        """Armor items in slot order (chest, head, waist, foot, hand)."""
        return [getattr(self, slot) for slot in ARMOR_SLOTS]

    def item_ids(self) -> list[int]:
        """Ids of all equipped items (empty slots excluded)."""
        return [item.id for item in self.all_items() if item.id > 0]

    def all_items(self) -> list[Item]:
        """All slots in declaration order."""
        return [getattr(self, name) for name in type(self).model_fields]


class Adventurer(BaseModel):
    """Adventurer state as stored by the game contract."""

    health: int = Field(default=0, ge=0)
    xp: int = Field(default=0, ge=0)
    gold: int = Field(default=0, ge=0)
    beast_health: int = Field(default=0, ge=0)
    stat_upgrades_available: int = Field(default=0, ge=0)
    stats: Stats = Field(default_factory=Stats)
    equipment: Equipment = Field(default_factory=Equipment)
    item_specials_seed: int = Field(default=0, ge=0)
    action_count: int = Field(default=0, ge=0)

    @property
    def level(self) -> int:
        """Adventurer level: floor(sqrt(xp)), minimum 1."""
        if self.xp == 0:
            return 1
        return max(1, math.isqrt(self.xp))


class Bag(BaseModel):
    """Unequipped items (at most 15)."""

    items: list[Item] = Field(default_factory=list, max_length=MAX_BAG_SIZE)
    mutated: bool = False


class BeastSpecials(BaseModel):
    """Beast name prefix/suffix specials."""

    special1: int = 0
    special2: int = 0
    special3: int = 0


class Beast(BaseModel):
    """Beast currently faced (or last faced) by the adventurer."""

    id: int = Field(default=0, ge=0)
    seed: int = Field(default=0, ge=0)
    health: int = Field(default=0, ge=0)
    level: int = Field(default=0, ge=0)
    specials: BeastSpecials = Field(default_factory=BeastSpecials)
    is_collectable: bool = False

    @property
    def tier(self) -> int:
        """Beast tier (1 strongest, 5 weakest)."""
        return beast_tier(self.id)

    @property
    def type(self) -> str:
        """Beast family (Magic, Hunter, Brute)."""
        return beast_type(self.id)

    @property
    def attack_type(self) -> str:
        """Damage type the beast deals."""
        return beast_attack_type(self.id)

    @property
    def armor_type(self) -> str:
        """Armor material the beast wears."""
        return beast_armor_type(self.id)

    @property
    def name(self) -> str:
        """Display name."""
        return beast_name(self.id)


class GameState(BaseModel):
    """Immutable snapshot of one game read from chain."""

    model_config = ConfigDict(frozen=True)

    adventurer: Adventurer
    bag: Bag = Field(default_factory=Bag)
    beast: Beast = Field(default_factory=Beast)
    market: list[int] = Field(default_factory=list)

    def fingerprint(self) -> tuple[int, int, int, int, int, int]:
        """Fields that change after any successful action.

        Used to tell whether a read reflects the last transaction.
        """
        adv = self.adventurer
        return (
            adv.health,
            adv.xp,
            adv.gold,
            adv.beast_health,
            adv.stat_upgrades_available,
            adv.action_count,
        )


class ItemPurchase(BaseModel):
    """One market purchase."""

    item_id: int = Field(..., ge=1)
    equip: bool = True


class StatAllocation(BaseModel):
    """Points to add per attribute. Luck is always 0."""

    strength: int = Field(default=0, ge=0)
    dexterity: int = Field(default=0, ge=0)
    vitality: int = Field(default=0, ge=0)
    intelligence: int = Field(default=0, ge=0)
    wisdom: int = Field(default=0, ge=0)
    charisma: int = Field(default=0, ge=0)
    luck: int = Field(default=0, ge=0, le=0)

    @property
    def total(self) -> int:
        """Total points allocated."""
        return (
            self.strength
            + self.dexterity
            + self.vitality
            + self.intelligence
            + self.wisdom
            + self.charisma
        )


class GameSummary(BaseModel):
    """Final report for a finished game."""

    game_id: int
    level: int
    xp: int
    gold: int
    last_phase: str
    last_action: str
    cause_of_death: str
    stats: Stats
