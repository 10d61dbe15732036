"""Item catalog for the on-chain dungeon.

Item ids, slots, types and tiers mirror the game contract. Everything here is
derived from the item id alone, so the catalog is static.
"""

from enum import Enum

from pydantic import BaseModel

NUM_ITEMS = 101
TIER_PRICE = 4

# Starter weapons: Wand(12), Book(16), ShortSword(46), Club(76)
STARTER_WEAPONS = (12, 16, 46, 76)
PREFERRED_STARTER_WEAPON = 46

ARMOR_SLOTS = ("chest", "head", "waist", "foot", "hand")


class ItemSlot(str, Enum):
    """Equipment slot an item occupies."""

    WEAPON = "weapon"
    CHEST = "chest"
    HEAD = "head"
    WAIST = "waist"
    FOOT = "foot"
    HAND = "hand"
    NECK = "neck"
    RING = "ring"
    NONE = "none"


class ItemType(str, Enum):
    """Damage type for weapons, material for armor, or jewelry kind."""

    MAGIC = "Magic"
    BLADE = "Blade"
    BLUDGEON = "Bludgeon"
    CLOTH = "Cloth"
    HIDE = "Hide"
    METAL = "Metal"
    RING = "Ring"
    NECKLACE = "Necklace"
    NONE = "None"


class ItemDefinition(BaseModel):
    """Item template from the catalog."""

    id: int
    name: str
    slot: ItemSlot
    item_type: ItemType
    tier: int


# =============================================================================
# ITEM NAMES - One entry per contract item id
# =============================================================================

ITEM_NAMES: dict[int, str] = {
    1: "Pendant", 2: "Necklace", 3: "Amulet",
    4: "Silver Ring", 5: "Bronze Ring", 6: "Platinum Ring", 7: "Titanium Ring", 8: "Gold Ring",
    9: "Ghost Wand", 10: "Grave Wand", 11: "Bone Wand", 12: "Wand",
    13: "Grimoire", 14: "Chronicle", 15: "Tome", 16: "Book",
    17: "Divine Robe", 18: "Silk Robe", 19: "Linen Robe", 20: "Robe", 21: "Shirt",
    22: "Crown", 23: "Divine Hood", 24: "Silk Hood", 25: "Linen Hood", 26: "Hood",
    27: "Brightsilk Sash", 28: "Silk Sash", 29: "Wool Sash", 30: "Linen Sash", 31: "Sash",
    32: "Divine Slippers", 33: "Silk Slippers", 34: "Wool Shoes", 35: "Linen Shoes", 36: "Shoes",
    37: "Divine Gloves", 38: "Silk Gloves", 39: "Wool Gloves", 40: "Linen Gloves", 41: "Gloves",
    42: "Katana", 43: "Falchion", 44: "Scimitar", 45: "Long Sword", 46: "Short Sword",
    47: "Demon Husk", 48: "Dragonskin Armor", 49: "Studded Leather Armor",
    50: "Hard Leather Armor", 51: "Leather Armor",
    52: "Demon Crown", 53: "Dragons Crown", 54: "War Cap", 55: "Leather Cap", 56: "Cap",
    57: "Demonhide Belt", 58: "Dragonskin Belt", 59: "Studded Leather Belt",
    60: "Hard Leather Belt", 61: "Leather Belt",
    62: "Demonhide Boots", 63: "Dragonskin Boots", 64: "Studded Leather Boots",
    65: "Hard Leather Boots", 66: "Leather Boots",
    67: "Demons Hands", 68: "Dragonskin Gloves", 69: "Studded Leather Gloves",
    70: "Hard Leather Gloves", 71: "Leather Gloves",
    72: "Warhammer", 73: "Quarterstaff", 74: "Maul", 75: "Mace", 76: "Club",
    77: "Holy Chestplate", 78: "Ornate Chestplate", 79: "Plate Mail", 80: "Chain Mail",
    81: "Ring Mail",
    82: "Ancient Helm", 83: "Ornate Helm", 84: "Great Helm", 85: "Full Helm", 86: "Helm",
    87: "Ornate Belt", 88: "War Belt", 89: "Plated Belt", 90: "Mesh Belt", 91: "Heavy Belt",
    92: "Holy Greaves", 93: "Ornate Greaves", 94: "Greaves", 95: "Chain Boots", 96: "Heavy Boots",
    97: "Holy Gauntlets", 98: "Ornate Gauntlets", 99: "Gauntlets", 100: "Chain Gloves",
    101: "Heavy Gloves",
}

_SLOT_RANGES: dict[ItemSlot, tuple[range, ...]] = {
    ItemSlot.NECK: (range(1, 4),),
    ItemSlot.RING: (range(4, 9),),
    ItemSlot.WEAPON: (range(9, 17), range(42, 47), range(72, 77)),
    ItemSlot.CHEST: (range(17, 22), range(47, 52), range(77, 82)),
    ItemSlot.HEAD: (range(22, 27), range(52, 57), range(82, 87)),
    ItemSlot.WAIST: (range(27, 32), range(57, 62), range(87, 92)),
    ItemSlot.FOOT: (range(32, 37), range(62, 67), range(92, 97)),
    ItemSlot.HAND: (range(37, 42), range(67, 72), range(97, 102)),
}

# Tier lists for Magic/Cloth ids; anything else in 9-41 is T5
_CLOTH_TIERS: tuple[tuple[int, ...], ...] = (
    (9, 13, 17, 22, 27, 32, 37),
    (10, 14, 18, 23, 28, 33, 38),
    (11, 15, 19, 24, 29, 34, 39),
    (20, 25, 30, 35, 40),
)

# Tier 1 ids for Blade/Hide and Bludgeon/Metal; tiers follow consecutively
_HIDE_T1 = (42, 47, 52, 57, 62, 67)
_METAL_T1 = (72, 77, 82, 87, 92, 97)


def item_slot(item_id: int) -> ItemSlot:
    """Get the slot an item occupies.

    Args:
        item_id: Contract item id

    Returns:
        ItemSlot, NONE for unknown ids
    """
    for slot, ranges in _SLOT_RANGES.items():
        if any(item_id in r for r in ranges):
            return slot
    return ItemSlot.NONE


def is_weapon(item_id: int) -> bool:
    """Check if an item is a weapon."""
    return item_slot(item_id) == ItemSlot.WEAPON


def is_necklace(item_id: int) -> bool:
    """Check if an item is a necklace."""
    return 1 <= item_id <= 3


def is_ring(item_id: int) -> bool:
    """Check if an item is a ring."""
    return 4 <= item_id <= 8


def is_jewelry(item_id: int) -> bool:
    """Check if an item is a ring or necklace."""
    return is_necklace(item_id) or is_ring(item_id)


def is_armor(item_id: int) -> bool:
    """Check if an item goes in one of the five armor slots."""
    return item_slot(item_id).value in ARMOR_SLOTS


def item_type(item_id: int) -> ItemType:
    """Get an item's type.

    Ids 9-41 are Magic weapons or Cloth armor, 42-71 Blade or Hide, 72 and up
    Bludgeon or Metal.

    Args:
        item_id: Contract item id

    Returns:
        ItemType, NONE for empty or unknown ids
    """
    if item_id <= 0 or item_id > NUM_ITEMS:
        return ItemType.NONE
    if is_necklace(item_id):
        return ItemType.NECKLACE
    if is_ring(item_id):
        return ItemType.RING
    weapon = is_weapon(item_id)
    if item_id <= 41:
        return ItemType.MAGIC if weapon else ItemType.CLOTH
    if item_id <= 71:
        return ItemType.BLADE if weapon else ItemType.HIDE
    return ItemType.BLUDGEON if weapon else ItemType.METAL


def armor_material(item_id: int) -> ItemType:
    """Get the armor material of an item, NONE for weapons and jewelry."""
    if not is_armor(item_id):
        return ItemType.NONE
    return item_type(item_id)


def item_tier(item_id: int) -> int:
    """Get an item's tier (1 best, 5 worst, 0 for empty).

    Args:
        item_id: Contract item id

    Returns:
        Tier number
    """
    if item_id <= 0:
        return 0
    if item_id <= 3:
        return 1
    if item_id == 4:
        return 2
    if item_id == 5:
        return 3
    if item_id <= 8:
        return 1
    if item_id <= 41:
        for tier, ids in enumerate(_CLOTH_TIERS, start=1):
            if item_id in ids:
                return tier
        return 5
    tier_ones = _HIDE_T1 if item_id <= 71 else _METAL_T1
    for first in tier_ones:
        if first <= item_id < first + 5:
            return item_id - first + 1
    return 5


def item_price(tier: int, charisma: int) -> int:
    """Market price of an item.

    Args:
        tier: Item tier
        charisma: Adventurer charisma (1 gold discount per point)

    Returns:
        Price in gold, minimum 1
    """
    return max(1, (6 - tier) * TIER_PRICE - charisma)


def item_name(item_id: int) -> str:
    """Get an item's display name."""
    return ITEM_NAMES.get(item_id, "Unknown Item")


ITEM_CATALOG: dict[int, ItemDefinition] = {
    item_id: ItemDefinition(
        id=item_id,
        name=name,
        slot=item_slot(item_id),
        item_type=item_type(item_id),
        tier=item_tier(item_id),
    )
    for item_id, name in ITEM_NAMES.items()
}


def get_item(item_id: int) -> ItemDefinition | None:
    """Get an item definition by id.

    Args:
        item_id: Contract item id

    Returns:
        ItemDefinition or None if not found
    """
    return ITEM_CATALOG.get(item_id)


# =============================================================================
# ITEM SUFFIXES - Unlocked at greatness 15, derived from item_specials_seed
# =============================================================================

ITEM_SUFFIXES: dict[int, str] = {
    1: "of Power", 2: "of Giant", 3: "of Titans", 4: "of Skill",
    5: "of Perfection", 6: "of Brilliance", 7: "of Enlightenment", 8: "of Protection",
    9: "of Anger", 10: "of Rage", 11: "of Fury", 12: "of Vitriol",
    13: "of the Fox", 14: "of Detection", 15: "of Reflection", 16: "of the Twins",
}

SUFFIX_STAT_BONUS: dict[str, dict[str, int]] = {
    "of Power": {"strength": 3},
    "of Giant": {"vitality": 3},
    "of Titans": {"strength": 2, "charisma": 1},
    "of Skill": {"dexterity": 3},
    "of Perfection": {"strength": 1, "dexterity": 1, "vitality": 1},
    "of Brilliance": {"intelligence": 3},
    "of Enlightenment": {"wisdom": 3},
    "of Protection": {"vitality": 2, "dexterity": 1},
    "of Anger": {"strength": 2, "dexterity": 1},
    "of Rage": {"strength": 1, "charisma": 1, "wisdom": 1},
    "of Fury": {"vitality": 1, "charisma": 1, "intelligence": 1},
    "of Vitriol": {"intelligence": 2, "wisdom": 1},
    "of the Fox": {"dexterity": 2, "charisma": 1},
    "of Detection": {"wisdom": 2, "dexterity": 1},
    "of Reflection": {"intelligence": 1, "wisdom": 2},
    "of the Twins": {"charisma": 3},
}

_SLOT_LENGTH: dict[ItemSlot, int] = {
    ItemSlot.WEAPON: 18,
    ItemSlot.CHEST: 15,
    ItemSlot.HEAD: 15,
    ItemSlot.WAIST: 15,
    ItemSlot.FOOT: 15,
    ItemSlot.HAND: 15,
    ItemSlot.NECK: 3,
    ItemSlot.RING: 5,
}

# Position of each item within its slot, as ordered by the contract
_ITEM_INDEX: dict[int, int] = {
    1: 2, 2: 0, 3: 1,
    4: 1, 5: 2, 6: 3, 7: 4, 8: 0,
    **{item_id: i for i, item_id in enumerate(range(72, 77))},
    **{item_id: 5 + i for i, item_id in enumerate(range(42, 47))},
    **{item_id: 10 + i for i, item_id in enumerate(range(9, 17))},
    # Chest is ordered Cloth, Hide, Metal; other armor slots Metal, Hide, Cloth
    **{item_id: i for i, item_id in enumerate(range(17, 22))},
    **{item_id: 5 + i for i, item_id in enumerate(range(47, 52))},
    **{item_id: 10 + i for i, item_id in enumerate(range(77, 82))},
    **{
        first + i: offset + i
        for metal, hide, cloth in ((82, 52, 22), (87, 57, 27), (92, 62, 32), (97, 67, 37))
        for first, offset in ((metal, 0), (hide, 5), (cloth, 10))
        for i in range(5)
    },
}


def _specials_seed(item_id: int, entropy: int) -> int:
    item_entropy = entropy + item_id
    if item_entropy > 65535:
        item_entropy = entropy - item_id
    rnd = item_entropy % NUM_ITEMS
    slot_length = _SLOT_LENGTH.get(item_slot(item_id), 1)
    return rnd * slot_length + _ITEM_INDEX.get(item_id, 0)


def item_suffix(item_id: int, item_specials_seed: int) -> str | None:
    """Suffix an item will carry once it reaches greatness 15.

    Args:
        item_id: Contract item id
        item_specials_seed: Adventurer's item specials seed (0 before the
            first item reaches greatness 15)

    Returns:
        Suffix name, or None for empty ids
    """
    if item_id <= 0:
        return None
    seed = _specials_seed(item_id, item_specials_seed)
    return ITEM_SUFFIXES.get(seed % 16 + 1)


def suffix_stat_bonus(suffix: str | None) -> dict[str, int]:
    """Stat bonuses granted by a suffix (3 points total)."""
    if suffix is None:
        return {}
    return dict(SUFFIX_STAT_BONUS.get(suffix, {}))


def neck_matches_armor(neck_id: int, armor_type: str) -> bool:
    """Check if a necklace boosts armor of the given material.

    Amulet pairs with Cloth, Pendant with Hide, Necklace with Metal.
    """
    return (
        (neck_id == 3 and armor_type == ItemType.CLOTH)
        or (neck_id == 1 and armor_type == ItemType.HIDE)
        or (neck_id == 2 and armor_type == ItemType.METAL)
    )
