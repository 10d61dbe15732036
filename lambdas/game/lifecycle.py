"""Buying and starting games."""

import asyncio

from aws_lambda_powertools import Logger

from chain.calls import CallBuilder
from chain.executor import Sleep, TransactionExecutor
from chain.rpc import StarknetRpc, TransactionReceipt
from shared.config import Config
from shared.events import EventSink, GameStartEvent
from shared.exceptions import ChainError, GameStateError
from strategy.gear import select_starter_weapon

logger = Logger(child=True)

TICKET_UNIT = 10**18
TICKETS_PER_GAME = 1

# Token mint event emitted by the dungeon: data[1] is the game id
MINT_EVENT_DATA_LENGTH = 14
MAX_PLAUSIBLE_GAME_ID = 10_000_000

CHAIN_QUERY_DELAY_SECONDS = 5.0


def game_id_from_receipt(receipt: TransactionReceipt | None) -> int | None:
    """Extract the minted game id from buy_game receipt events.

    Args:
        receipt: buy_game receipt

    Returns:
        Game id, or None when no event carries one
    """
    if receipt is None or not receipt.events:
        return None

    for event in receipt.events:
        if len(event.data) == MINT_EVENT_DATA_LENGTH:
            return event.data[1]

    for event in receipt.events:
        if len(event.data) >= 2 and 0 < event.data[1] < MAX_PLAUSIBLE_GAME_ID:
            return event.data[1]
    return None


class GameLifecycle:
    """Buys game tokens and starts games for the controller account.

    Args:
        config: Contract addresses and controller
        rpc: JSON-RPC client for token queries
        executor: Transaction executor
        calls: Call builder
        events: Telemetry sink
        sleep: Awaitable sleep, replaced in tests
    """

    def __init__(
        self,
        config: Config,
        rpc: StarknetRpc,
        executor: TransactionExecutor,
        calls: CallBuilder,
        events: EventSink | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config
        self.rpc = rpc
        self.executor = executor
        self.calls = calls
        self.events = events
        self.sleep = sleep

    async def ticket_balance(self) -> int:
        """Ticket token balance of the controller (u256, low word)."""
        result = await self.rpc.call(self.config.ticket_address, "balanceOf", [self.config.controller_address])
        return result[0] if result else 0

    async def game_token_count(self) -> int:
        result = await self.rpc.call(self.config.dungeon_address, "balance_of", [self.config.controller_address])
        return result[0] if result else 0

    async def latest_game_id(self) -> int | None:
        """Most recently minted game token owned by the controller."""
        balance = await self.game_token_count()
        if balance == 0:
            return None
        result = await self.rpc.call(
            self.config.dungeon_address,
            "token_of_owner_by_index",
            [self.config.controller_address, balance - 1, 0],
        )
        game_id = result[0] if result else 0
        if 0 < game_id < MAX_PLAUSIBLE_GAME_ID:
            return game_id
        return None

    async def buy_game(self, name: str = "BOT") -> int:
        """Buy a game token with one ticket.

        Args:
            name: Player name (short string, falls back to BOT)

        Returns:
            New game id

        Raises:
            GameStateError: If the account holds no ticket or the game id
                cannot be determined
        """
        logger.info("Buying new game", extra={"name": name})

        if await self.ticket_balance() < TICKETS_PER_GAME * TICKET_UNIT:
            raise GameStateError("No ticket token to buy a game; fund the account first")

        try:
            tokens_before: int | None = await self.game_token_count()
        except ChainError as e:
            logger.warning("Could not read game token balance", extra={"error": str(e)})
            tokens_before = None

        receipt = await self.executor.execute(
            [
                self.calls.approve_ticket(TICKETS_PER_GAME),
                self.calls.buy_game(name, self.config.controller_address),
            ],
            "buy_game",
        )

        game_id = game_id_from_receipt(receipt)
        if game_id is not None:
            logger.info("Game purchased", extra={"game_id": game_id})
            return game_id

        logger.warning("No game id in receipt events, querying chain")
        await self.sleep(CHAIN_QUERY_DELAY_SECONDS)
        game_id = await self.latest_game_id()
        if game_id is None:
            raise GameStateError("Failed to determine game id after buy_game")

        if tokens_before is not None and await self.game_token_count() <= tokens_before:
            raise GameStateError("Game token balance unchanged after buy_game")

        logger.info("Game purchased", extra={"game_id": game_id, "source": "chain query"})
        return game_id

    async def start_game(self, game_id: int, game_number: int = 1) -> None:
        """Start a game and attack the starter beast in one multicall.

        Args:
            game_id: Game token id
            game_number: Sequence number of this game in the run
        """
        weapon_id = select_starter_weapon()
        logger.info("Starting game", extra={"game_id": game_id, "weapon_id": weapon_id})

        # First action after start: xp 0, action count 1
        await self.executor.execute(
            [
                self.calls.start_game(game_id, weapon_id),
                self.calls.request_random_for_battle(game_id, 0, 1),
                self.calls.attack(game_id, False),
            ],
            "start_game+attack_starter",
        )

        if self.events is not None:
            self.events.bind(game_id)
            self.events.emit(GameStartEvent(game_number=game_number))
