"""Game phase detection.

Phases are checked in strict order:

1. dead: health is 0
2. starter_beast / in_battle: beast health > 0 (starter when level 1 and xp < 4)
3. stat_upgrade: points pending, which must be spent before shopping or exploring
4. shopping: market offers items and the market has not been visited this level
5. exploring: everything else
"""

from dataclasses import dataclass

from aws_lambda_powertools import Logger

from shared.models import Adventurer, GamePhase, GameState

logger = Logger(child=True)

STARTER_BEAST_MAX_XP = 4


def detect_phase(state: GameState, shopped_this_level: bool = False) -> GamePhase:
    """Classify a state snapshot.

    Args:
        state: Current snapshot
        shopped_this_level: Whether the market was already visited at this level

    Returns:
        GamePhase
    """
    adventurer = state.adventurer

    if adventurer.health == 0:
        return GamePhase.DEAD

    if adventurer.beast_health > 0:
        if adventurer.level == 1 and adventurer.xp < STARTER_BEAST_MAX_XP:
            return GamePhase.STARTER_BEAST
        return GamePhase.IN_BATTLE

    if adventurer.stat_upgrades_available > 0:
        return GamePhase.STAT_UPGRADE

    if state.market and not shopped_this_level:
        return GamePhase.SHOPPING

    return GamePhase.EXPLORING


@dataclass
class PhaseTracker:
    """Per-game phase memory: whether the market was visited at the current level."""

    last_level: int = 0
    shopped_this_level: bool = False

    def observe(self, state: GameState) -> GamePhase:
        """Update level memory from a snapshot and classify it."""
        level = state.adventurer.level
        if level > self.last_level:
            self.last_level = level
            self.shopped_this_level = False
        return detect_phase(state, self.shopped_this_level)

    def mark_shopped(self) -> None:
        self.shopped_this_level = True


def log_adventurer_state(adventurer: Adventurer) -> None:
    """Log a one-line adventurer summary."""
    logger.info(
        "Adventurer state",
        extra={
            "adventurer_level": adventurer.level,
            "health": adventurer.health,
            "xp": adventurer.xp,
            "gold": adventurer.gold,
            "beast_health": adventurer.beast_health,
            "stat_upgrades": adventurer.stat_upgrades_available,
            "stats": adventurer.stats.model_dump(),
        },
    )
