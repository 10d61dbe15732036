"""Game state decoding from get_game_state() felts.

Layout (one felt each):

    0-4     health, xp, gold, beast_health, stat_upgrades_available
    5-11    strength, dexterity, vitality, intelligence, wisdom, charisma, luck
    12-27   equipment (id, xp) for weapon, chest, head, waist, foot, hand, neck, ring
    28-29   item_specials_seed, action_count
    30-59   bag (id, xp) x 15, empty slots have id 0
    60      bag mutated flag
    61-68   beast id, seed, health, level, special1-3, is_collectable
    69      market length, followed by market item ids
"""

from aws_lambda_powertools import Logger
from pydantic import ValidationError

from shared.exceptions import ChainError
from shared.models import (
    MAX_BAG_SIZE,
    Adventurer,
    Bag,
    Beast,
    BeastSpecials,
    Equipment,
    GameState,
    Item,
    Stats,
)
from shared.utils import calculate_luck

from .rpc import StarknetRpc, TransactionReceipt

logger = Logger(child=True)

MIN_STATE_LENGTH = 69
STATS_OFFSET = 5
EQUIPMENT_OFFSET = 12
BAG_OFFSET = 30
BAG_MUTATED_OFFSET = 60
BEAST_OFFSET = 61
MARKET_LENGTH_OFFSET = 69
MARKET_OFFSET = 70

STAT_FIELDS = ("strength", "dexterity", "vitality", "intelligence", "wisdom", "charisma", "luck")
EQUIPMENT_SLOTS = ("weapon", "chest", "head", "waist", "foot", "hand", "neck", "ring")


def decode_game_state(felts: list[int]) -> GameState | None:
    """Decode a get_game_state() response.

    Args:
        felts: Response felts

    Returns:
        GameState, or None when the response is too short to hold a game
    """
    if len(felts) < MIN_STATE_LENGTH:
        return None

    def item_at(offset: int) -> Item:
        return Item(id=felts[offset], xp=felts[offset + 1])

    stats = Stats(**{name: felts[STATS_OFFSET + i] for i, name in enumerate(STAT_FIELDS)})
    equipment = Equipment(
        **{slot: item_at(EQUIPMENT_OFFSET + 2 * i) for i, slot in enumerate(EQUIPMENT_SLOTS)}
    )
    adventurer = Adventurer(
        health=felts[0],
        xp=felts[1],
        gold=felts[2],
        beast_health=felts[3],
        stat_upgrades_available=felts[4],
        stats=stats,
        equipment=equipment,
        item_specials_seed=felts[28],
        action_count=felts[29],
    )

    bag_items = [item_at(BAG_OFFSET + 2 * i) for i in range(MAX_BAG_SIZE)]
    bag = Bag(items=[item for item in bag_items if item.id > 0], mutated=felts[BAG_MUTATED_OFFSET] == 1)

    b = BEAST_OFFSET
    beast = Beast(
        id=felts[b],
        seed=felts[b + 1],
        health=felts[b + 2],
        level=felts[b + 3],
        specials=BeastSpecials(special1=felts[b + 4], special2=felts[b + 5], special3=felts[b + 6]),
        is_collectable=felts[b + 7] == 1,
    )

    # Stored luck is 0 when the contract leaves it to be derived from jewelry
    if stats.luck == 0:
        adventurer.stats = stats.model_copy(update={"luck": calculate_luck(adventurer, bag)})

    market: list[int] = []
    if len(felts) > MARKET_OFFSET:
        length = felts[MARKET_LENGTH_OFFSET]
        market = felts[MARKET_OFFSET : MARKET_OFFSET + length]

    return GameState(adventurer=adventurer, bag=bag, beast=beast, market=market)


class ChainReader:
    """Read side of the chain: game state snapshots and receipts.

    Args:
        rpc: JSON-RPC client
        game_address: Game contract address
    """

    def __init__(self, rpc: StarknetRpc, game_address: int) -> None:
        self.rpc = rpc
        self.game_address = game_address

    async def read_game_state(self, game_id: int) -> GameState | None:
        """Fetch and decode the state of one game.

        Returns:
            GameState, or None when the game cannot be read
        """
        try:
            felts = await self.rpc.call(self.game_address, "get_game_state", [game_id])
            return decode_game_state(felts)
        except (ChainError, ValidationError) as e:
            logger.error("Failed to fetch game state", extra={"game_id": game_id, "error": str(e)})
            return None

    async def get_receipt(self, tx_hash: str) -> TransactionReceipt | None:
        return await self.rpc.get_receipt(tx_hash)
