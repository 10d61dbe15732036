"""Top-level strategy dispatcher.

One StrategyEngine is created per game. It turns a phase and a state
snapshot into a BotDecision: an action label, a human-readable reason and
the calls to submit.
"""

import math
import random
from dataclasses import dataclass, field

from aws_lambda_powertools import Logger

from chain.calls import Call, CallBuilder
from shared.events import EventSink
from shared.models import Adventurer, Bag, GamePhase, GameState
from shared.utils import max_health

from .combat import GOOD_WIN_RATE, decide_combat, is_starter_encounter
from .combat_sim import DEFAULT_SAMPLES, simulate_combat
from .gear import suggest_gear_swap, suggest_item_drops
from .market import decide_market_purchases
from .stats import allocate_stats

logger = Logger(child=True)

# Equipping mid-battle gives the beast a free hit; assume it crits with an
# elemental advantage (x2 x1.5) and keep 30% of max health in reserve.
SWAP_COUNTER_ATTACK_MULTIPLIER = 3
SWAP_MIN_COUNTER_DAMAGE = 10
SWAP_HP_RESERVE_FRACTION = 0.3


@dataclass
class BotDecision:
    """Next action for the game loop."""

    action: str
    reason: str
    calls: list[Call] = field(default_factory=list)


class StrategyEngine:
    """Per-game decision dispatcher with gear-swap memory.

    Args:
        calls: Call builder for the configured contracts
        events: Telemetry sink passed to the decision modules
        samples: Monte Carlo samples per simulation
        rng: Random source, seeded in tests
    """

    def __init__(
        self,
        calls: CallBuilder,
        events: EventSink | None = None,
        samples: int = DEFAULT_SAMPLES,
        rng: random.Random | None = None,
    ) -> None:
        self.calls = calls
        self.events = events
        self.samples = samples
        self.rng = rng or random.Random()
        self._swap_beast_seed: int | None = None
        self._swap_attempted = False

    def decide(self, game_id: int, state: GameState, phase: GamePhase) -> BotDecision:
        """Decide the next action for a phase.

        Args:
            game_id: Game token id
            state: Current state snapshot
            phase: Phase classified from the snapshot

        Returns:
            BotDecision (a "wait" with no calls for phases without an action)
        """
        if phase in (GamePhase.STARTER_BEAST, GamePhase.IN_BATTLE):
            return self._battle(game_id, state)
        if phase == GamePhase.STAT_UPGRADE:
            return self._stats(game_id, state.adventurer)
        if phase == GamePhase.SHOPPING:
            return self._shopping(game_id, state.adventurer, state.bag, state.market)
        if phase == GamePhase.EXPLORING:
            return self._explore(game_id, state.adventurer)

        logger.warning("Unexpected phase", extra={"phase": phase.value})
        return BotDecision(action="wait", reason=f"Unexpected phase: {phase.value}")

    # =========================================================================
    # Battle
    # =========================================================================

    def _battle(self, game_id: int, state: GameState) -> BotDecision:
        adventurer, bag, beast = state.adventurer, state.bag, state.beast

        if beast.seed != self._swap_beast_seed:
            self._swap_beast_seed = beast.seed
            self._swap_attempted = False

        if not self._swap_attempted and bag.items and not is_starter_encounter(adventurer):
            self._swap_attempted = True
            swap = self._gear_swap(game_id, state)
            if swap is not None:
                return swap

        decision = decide_combat(adventurer, beast, self.events, self.samples, self.rng)
        vrf = self.calls.request_random_for_battle(game_id, adventurer.xp, adventurer.action_count)

        if decision.action == "attack":
            return BotDecision(
                action=f"attack(to_the_death={decision.to_the_death})",
                reason=decision.reason,
                calls=[vrf, self.calls.attack(game_id, decision.to_the_death)],
            )
        # A flee seed is fixed per round, so fleeing to the death can loop until death
        return BotDecision(
            action="flee(to_the_death=False)",
            reason=decision.reason,
            calls=[vrf, self.calls.flee(game_id, False)],
        )

    def _gear_swap(self, game_id: int, state: GameState) -> BotDecision | None:
        adventurer, beast = state.adventurer, state.beast

        swap = suggest_gear_swap(adventurer, state.bag, beast)
        if not swap.has_swaps:
            return None

        sim = simulate_combat(adventurer, beast, self.samples, self.rng)
        if sim.win_rate >= GOOD_WIN_RATE:
            logger.info(
                "Skipping gear swap, current weapon wins comfortably",
                extra={"win_rate": sim.win_rate},
            )
            return None

        rough_damage = max(
            SWAP_MIN_COUNTER_DAMAGE,
            math.ceil(beast.level * (6 - beast.tier) * SWAP_COUNTER_ATTACK_MULTIPLIER),
        )
        max_hp = max_health(adventurer.stats.vitality)
        threshold = max_hp * SWAP_HP_RESERVE_FRACTION
        if adventurer.health - rough_damage <= threshold:
            logger.info(
                "Skipping gear swap, HP too low to absorb counter-attack",
                extra={
                    "health": adventurer.health,
                    "estimated_damage": rough_damage,
                    "threshold": threshold,
                },
            )
            return None

        item_ids = swap.equip_item_ids
        logger.info("Swapping gear for beast matchup", extra={"equip": item_ids, "reason": swap.reason})
        vrf = self.calls.request_random_for_battle(game_id, adventurer.xp, adventurer.action_count)
        return BotDecision(
            action=f"equip({item_ids})",
            reason=f"Gear swap for beast matchup: {swap.reason} (HP {adventurer.health}/{max_hp})",
            calls=[vrf, self.calls.equip(game_id, item_ids)],
        )

    # =========================================================================
    # Out of battle
    # =========================================================================

    def _explore(self, game_id: int, adventurer: Adventurer) -> BotDecision:
        # Single steps only: multi-step explores take every hit without a chance to heal
        max_hp = max_health(adventurer.stats.vitality)
        reason = f"Exploring single step (HP: {adventurer.health}/{max_hp})"
        logger.info(reason)
        return BotDecision(
            action="explore(till_beast=False)",
            reason=reason,
            calls=[
                self.calls.request_random_for_explore(game_id, adventurer.xp),
                self.calls.explore(game_id, False),
            ],
        )

    def _stats(self, game_id: int, adventurer: Adventurer) -> BotDecision:
        allocation = allocate_stats(adventurer, self.events)
        return BotDecision(
            action="select_stat_upgrades",
            reason=f"Allocating {adventurer.stat_upgrades_available} stat points",
            calls=[self.calls.select_stat_upgrades(game_id, allocation)],
        )

    def _shopping(self, game_id: int, adventurer: Adventurer, bag: Bag, market: list[int]) -> BotDecision:
        # A full bag is trimmed in the same multicall so bag purchases have room
        drops = suggest_item_drops(bag, adventurer)
        if drops:
            bag = Bag(items=[item for item in bag.items if item.id not in drops], mutated=bag.mutated)

        decision = decide_market_purchases(adventurer, bag, market, self.events)

        if decision.is_empty:
            logger.info("Nothing worth buying, skipping market")
            return BotDecision(action="skip_market", reason="Nothing worth buying")

        calls = [self.calls.buy_items(game_id, decision.potions, decision.items)]
        if drops:
            calls.insert(0, self.calls.drop(game_id, drops))

        return BotDecision(
            action=f"buy_items(potions={decision.potions}, items={len(decision.items)})",
            reason=(
                f"Spending {decision.total_cost}g on {len(decision.items)} items "
                f"and {decision.potions} potions"
            ),
            calls=calls,
        )
