"""Telemetry events emitted while a game is played.

Events are pydantic models delivered to an EventSink. Delivery never blocks
the game loop: a full queue drops the event with a warning.
"""

import asyncio
import time
from collections import deque
from collections.abc import Callable
from typing import Any, Literal

from aws_lambda_powertools import Logger
from pydantic import BaseModel, Field

from .items import item_name, item_slot, item_tier
from .models import Beast, GameState, GameSummary, Item, Stats
from .utils import max_health

logger = Logger(child=True)

MAX_RECENT_EVENTS = 200

TxStatus = Literal["submitting", "submitted", "confirmed", "reverted", "error"]


class EnrichedItem(BaseModel):
    """Item with display fields resolved."""

    id: int
    xp: int
    name: str
    tier: int
    slot: str
    greatness: int


class EnrichedBeast(BaseModel):
    """Beast with display fields resolved."""

    id: int
    name: str
    type: str
    tier: int
    level: int
    health: int


class BotEvent(BaseModel):
    """Base event."""

    type: str
    ts: float = Field(default_factory=time.time)
    game_id: int | None = None


class AdventurerView(BaseModel):
    """Adventurer snapshot for state updates."""

    health: int
    max_health: int
    xp: int
    level: int
    gold: int
    stats: Stats
    equipment: dict[str, EnrichedItem]
    bag: list[EnrichedItem]
    stat_upgrades: int


class StateUpdateEvent(BotEvent):
    """Fresh state read for a game."""

    type: Literal["state_update"] = "state_update"
    phase: str
    adventurer: AdventurerView
    beast: EnrichedBeast | None = None
    market_size: int = 0


class DecisionEvent(BotEvent):
    """Action chosen by the strategy engine."""

    type: Literal["decision"] = "decision"
    phase: str
    action: str
    reason: str


class CombatSimEvent(BotEvent):
    """Monte Carlo results behind a combat decision."""

    type: Literal["combat_sim"] = "combat_sim"
    beast: EnrichedBeast | None = None
    win_rate: float
    expected_hp_loss: float
    expected_hp_loss_on_win: float
    expected_rounds: float
    death_rate: float
    flee_chance: float
    flee_death_rate: float
    flee_expected_hp_loss: float
    is_profitable: bool
    net_hp_cost: float
    kill_gold: int
    kill_xp: int


class MarketItemView(BaseModel):
    """Purchased item summary."""

    id: int
    name: str
    tier: int
    slot: str
    equip: bool


class MarketActionEvent(BotEvent):
    """Purchases planned for a market visit."""

    type: Literal["market_action"] = "market_action"
    potions: int
    items: list[MarketItemView]
    total_cost: int
    gold_remaining: int
    saving_for_weapon: bool


class StatAllocationEvent(BotEvent):
    """Stat points allocated on level-up."""

    type: Literal["stat_allocation"] = "stat_allocation"
    points: int
    allocation: Stats
    resulting_stats: Stats
    level: int


class TxStatusEvent(BotEvent):
    """Transaction lifecycle update."""

    type: Literal["tx_status"] = "tx_status"
    status: TxStatus
    description: str
    tx_hash: str | None = None
    error: str | None = None
    attempt: int | None = None


class GameStartEvent(BotEvent):
    """A game began."""

    type: Literal["game_start"] = "game_start"
    game_number: int = 1


class GameSummaryEvent(BotEvent):
    """A game finished."""

    type: Literal["game_summary"] = "game_summary"
    summary: GameSummary
    game_number: int = 1


def enrich_item(item: Item, slot: str | None = None) -> EnrichedItem:
    """Resolve display fields for an item."""
    if item.id == 0:
        return EnrichedItem(id=0, xp=0, name="(empty)", tier=0, slot=slot or "none", greatness=0)
    return EnrichedItem(
        id=item.id,
        xp=item.xp,
        name=item_name(item.id),
        tier=item_tier(item.id),
        slot=slot or item_slot(item.id).value,
        greatness=item.greatness,
    )


def enrich_beast(beast: Beast) -> EnrichedBeast | None:
    """Resolve display fields for a beast, None when there is no beast."""
    if beast.id == 0:
        return None
    return EnrichedBeast(
        id=beast.id,
        name=beast.name,
        type=beast.type,
        tier=beast.tier,
        level=beast.level,
        health=beast.health,
    )


def state_update_event(game_id: int, phase: str, state: GameState) -> StateUpdateEvent:
    """Build a state update event from a snapshot.

    Args:
        game_id: Game token id
        phase: Current game phase
        state: State snapshot

    Returns:
        StateUpdateEvent
    """
    adv = state.adventurer
    equipment = {
        slot: enrich_item(getattr(adv.equipment, slot), slot)
        for slot in type(adv.equipment).model_fields
    }
    return StateUpdateEvent(
        game_id=game_id,
        phase=phase,
        adventurer=AdventurerView(
            health=adv.health,
            max_health=max_health(adv.stats.vitality),
            xp=adv.xp,
            level=adv.level,
            gold=adv.gold,
            stats=adv.stats,
            equipment=equipment,
            bag=[enrich_item(item) for item in state.bag.items],
            stat_upgrades=adv.stat_upgrades_available,
        ),
        beast=enrich_beast(state.beast) if adv.beast_health > 0 else None,
        market_size=len(state.market),
    )


class EventSink:
    """Non-blocking event fan-out.

    Events go to an optional asyncio queue (put_nowait, dropped when full) and
    to registered listeners. A bounded buffer of recent events is kept for
    inspection.
    """

    def __init__(
        self,
        queue: asyncio.Queue | None = None,
        game_id: int | None = None,
    ) -> None:
        """Initialize the sink.

        Args:
            queue: Optional queue consumed by a telemetry transport
            game_id: Game id stamped on events that lack one
        """
        self.queue = queue
        self.game_id = game_id
        self._listeners: list[Callable[[BotEvent], Any]] = []
        self.recent: deque[BotEvent] = deque(maxlen=MAX_RECENT_EVENTS)
        self.dropped = 0

    def add_listener(self, listener: Callable[[BotEvent], Any]) -> None:
        """Register a callable invoked for every event."""
        self._listeners.append(listener)

    def bind(self, game_id: int) -> None:
        """Stamp subsequent events with a game id."""
        self.game_id = game_id

    def emit(self, event: BotEvent) -> None:
        """Deliver an event without blocking.

        Args:
            event: Event to deliver
        """
        if event.game_id is None and self.game_id is not None:
            event = event.model_copy(update={"game_id": self.game_id})

        self.recent.append(event)

        if self.queue is not None:
            try:
                self.queue.put_nowait(event)
            except asyncio.QueueFull:
                self.dropped += 1
                logger.warning(
                    "Telemetry queue full, event dropped",
                    extra={"event_type": event.type, "dropped": self.dropped},
                )

        for listener in self._listeners:
            try:
                listener(event)
            except Exception as e:
                logger.warning(
                    "Telemetry listener failed",
                    extra={"event_type": event.type, "error": str(e)},
                )

    def events_of(self, event_type: str) -> list[BotEvent]:
        """Recent events of one type, oldest first."""
        return [e for e in self.recent if e.type == event_type]
