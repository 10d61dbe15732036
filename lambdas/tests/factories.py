"""Builders for game snapshots used across tests."""

from shared.models import Adventurer, Bag, Beast, Equipment, GameState, Item, Stats

CONTROLLER = 0x0123456789ABCDEF
SESSION_PRIVATE_KEY = 0x4A3F9C2B1E0D8F7A6B5C4D3E2F1A0B9C8D7E6F5A4B3C2D1E0F9A8B7C6D5E4

TEST_ENV = {
    "CONTROLLER_ADDRESS": hex(CONTROLLER),
    "SESSION_HASH": "0x5e55",
    "SESSION_KEY_GUID": "0x6a1d",
    "SESSION_EXPIRES": "1900000000",
}

ARMOR_SLOT_NAMES = ("chest", "head", "waist", "foot", "hand")


def make_adventurer(
    health: int = 100,
    xp: int = 25,
    gold: int = 0,
    beast_health: int = 0,
    stat_upgrades: int = 0,
    weapon: Item | None = None,
    armor: dict[str, Item] | None = None,
    action_count: int = 7,
    **stats: int,
) -> Adventurer:
    """Adventurer holding a Short Sword unless another weapon is given."""
    equipment = Equipment(weapon=weapon if weapon is not None else Item(id=46, xp=16), **(armor or {}))
    return Adventurer(
        health=health,
        xp=xp,
        gold=gold,
        beast_health=beast_health,
        stat_upgrades_available=stat_upgrades,
        stats=Stats(**stats),
        equipment=equipment,
        action_count=action_count,
    )


def make_state(
    adventurer: Adventurer | None = None,
    beast: Beast | None = None,
    bag: list[Item] | None = None,
    market: list[int] | None = None,
) -> GameState:
    """GameState around an adventurer."""
    return GameState(
        adventurer=adventurer or make_adventurer(),
        beast=beast or Beast(),
        bag=Bag(items=bag or []),
        market=market or [],
    )


def state_felts(
    health: int = 100,
    xp: int = 25,
    gold: int = 10,
    beast_health: int = 0,
    stat_upgrades: int = 0,
    action_count: int = 7,
    market: list[int] | None = None,
) -> list[int]:
    """get_game_state() response felts for a simple adventurer."""
    felts = [health, xp, gold, beast_health, stat_upgrades]
    felts += [1, 2, 3, 0, 0, 1, 0]  # str dex vit int wis cha luck
    felts += [46, 16] + [0, 0] * 7  # equipment
    felts += [0, action_count]  # item specials seed, action count
    felts += [76, 4] + [0, 0] * 14  # bag
    felts += [0]  # bag mutated
    felts += [12, 99, 20, 3, 0, 0, 0, 0]  # beast
    if market is not None:
        felts += [len(market), *market]
    return felts
