"""Contract call value type and builders for every game entrypoint.

VRF-consuming actions (explore, attack, flee, start_game) must be preceded by
a request_random call in the same multicall; the salts below match the ones
the game contract recomputes on consume.
"""

from poseidon_py.poseidon_hash import poseidon_hash_many
from pydantic import BaseModel, ConfigDict, Field
from starknet_py.cairo.felt import encode_shortstring
from starknet_py.hash.selector import get_selector_from_name

from shared.config import Config
from shared.models import ItemPurchase, StatAllocation

TOKEN_DECIMALS = 10**18
DEFAULT_PLAYER_NAME = "BOT"
MAX_SHORTSTRING_LENGTH = 31

# VRF source enum: 0 = Nonce(address), 1 = Salt(felt)
VRF_SOURCE_SALT = 1

# buy_game payment type enum: 0 = Ticket
PAYMENT_TYPE_TICKET = 0

# Cairo Option encoding
OPTION_SOME = 0


class Call(BaseModel):
    """One contract invocation: target, selector and felt calldata."""

    model_config = ConfigDict(frozen=True)

    to: int
    selector: int
    calldata: list[int] = Field(default_factory=list)
    entrypoint: str = ""

    @classmethod
    def build(cls, to: int, entrypoint: str, calldata: list[int] | None = None) -> "Call":
        """Create a call from an entrypoint name."""
        return cls(
            to=to,
            selector=get_selector_from_name(entrypoint),
            calldata=list(calldata or []),
            entrypoint=entrypoint,
        )

    def to_rpc(self) -> dict:
        """Hex-encoded form used by JSON-RPC payloads."""
        return {
            "to": hex(self.to),
            "selector": hex(self.selector),
            "calldata": [hex(felt) for felt in self.calldata],
        }


def explore_salt(game_id: int, xp: int) -> int:
    """VRF salt for explore: H(xp, game_id)."""
    return poseidon_hash_many([xp, game_id])


def battle_salt(game_id: int, xp: int, action_count: int) -> int:
    """VRF salt for attack/flee: H(xp, game_id, action_count + 1)."""
    return poseidon_hash_many([xp, game_id, action_count + 1])


def encode_player_name(name: str) -> int:
    """Encode a player name as a short string, falling back to BOT."""
    if not 0 < len(name) <= MAX_SHORTSTRING_LENGTH:
        name = DEFAULT_PLAYER_NAME
    return encode_shortstring(name)


class CallBuilder:
    """Builds calls against the configured game, VRF, dungeon and ticket contracts."""

    def __init__(self, config: Config) -> None:
        self.game = config.game_address
        self.vrf = config.vrf_address
        self.dungeon = config.dungeon_address
        self.ticket = config.ticket_address

    # =========================================================================
    # VRF
    # =========================================================================

    def request_random_for_explore(self, game_id: int, xp: int) -> Call:
        """Request randomness for an explore."""
        return self._request_random(explore_salt(game_id, xp))

    def request_random_for_battle(self, game_id: int, xp: int, action_count: int) -> Call:
        """Request randomness for an attack or flee."""
        return self._request_random(battle_salt(game_id, xp, action_count))

    def _request_random(self, salt: int) -> Call:
        return Call.build(self.vrf, "request_random", [self.game, VRF_SOURCE_SALT, salt])

    # =========================================================================
    # Game purchase
    # =========================================================================

    def approve_ticket(self, amount: int) -> Call:
        """Approve the dungeon to spend whole ticket tokens (u256 low/high)."""
        return Call.build(self.ticket, "approve", [self.dungeon, amount * TOKEN_DECIMALS, 0])

    def buy_game(self, name: str, recipient: int) -> Call:
        """Buy a game paid with a ticket; the game token is not soulbound."""
        return Call.build(
            self.dungeon,
            "buy_game",
            [PAYMENT_TYPE_TICKET, OPTION_SOME, encode_player_name(name), recipient, 0],
        )

    def start_game(self, game_id: int, weapon_id: int) -> Call:
        """Start a game with the chosen starter weapon (needs VRF)."""
        return Call.build(self.game, "start_game", [game_id, weapon_id])

    # =========================================================================
    # Actions
    # =========================================================================

    def explore(self, game_id: int, till_beast: bool) -> Call:
        return Call.build(self.game, "explore", [game_id, int(till_beast)])

    def attack(self, game_id: int, to_the_death: bool) -> Call:
        return Call.build(self.game, "attack", [game_id, int(to_the_death)])

    def flee(self, game_id: int, to_the_death: bool) -> Call:
        return Call.build(self.game, "flee", [game_id, int(to_the_death)])

    def select_stat_upgrades(self, game_id: int, allocation: StatAllocation) -> Call:
        """Apply stat points in contract order (luck last, always 0)."""
        return Call.build(
            self.game,
            "select_stat_upgrades",
            [
                game_id,
                allocation.strength,
                allocation.dexterity,
                allocation.vitality,
                allocation.intelligence,
                allocation.wisdom,
                allocation.charisma,
                allocation.luck,
            ],
        )

    def buy_items(self, game_id: int, potions: int, items: list[ItemPurchase]) -> Call:
        calldata = [game_id, potions, len(items)]
        for purchase in items:
            calldata.extend([purchase.item_id, int(purchase.equip)])
        return Call.build(self.game, "buy_items", calldata)

    def equip(self, game_id: int, item_ids: list[int]) -> Call:
        return Call.build(self.game, "equip", [game_id, len(item_ids), *item_ids])

    def drop(self, game_id: int, item_ids: list[int]) -> Call:
        return Call.build(self.game, "drop", [game_id, len(item_ids), *item_ids])
