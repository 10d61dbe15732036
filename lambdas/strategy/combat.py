"""Attack/flee decision for an active battle.

The decision ladder is driven by the Monte Carlo win rate, with a gold
profitability check deciding borderline fights. Fleeing never uses
to_the_death: the flee seed is fixed per round, so a doomed flee would loop
until death.
"""

import random
from dataclasses import dataclass

from aws_lambda_powertools import Logger

from shared.events import CombatSimEvent, EventSink, enrich_beast
from shared.models import Adventurer, Beast
from shared.utils import (
    POTION_HEAL_AMOUNT,
    STARTER_BEAST_HEALTH,
    flee_chance,
    kill_gold,
    kill_xp,
    potion_cost,
)

from .combat_sim import DEFAULT_SAMPLES, simulate_combat, simulate_flee

logger = Logger(child=True)

GUARANTEED_WIN_RATE = 0.99
HIGH_WIN_RATE = 0.90
GOOD_WIN_RATE = 0.70
MARGINAL_WIN_RATE = 0.50
SAFE_FLEE_DEATH_RATE = 0.30
TTD_HP_LOSS_FRACTION = 0.4
HEALTHY_HP = 60


@dataclass
class CombatDecision:
    """Chosen combat action."""

    action: str
    to_the_death: bool
    reason: str


def is_starter_encounter(adventurer: Adventurer) -> bool:
    """Check for the scripted first beast (level 1, under 4 xp)."""
    return adventurer.level == 1 and adventurer.xp < 4


def combat_net_hp_cost(
    expected_hp_loss_on_win: float,
    beast: Beast,
    charisma: int,
    adventurer_level: int,
) -> float:
    """Health lost in a winning fight minus the health the kill gold buys back.

    Args:
        expected_hp_loss_on_win: Average health lost when the fight is won
        beast: Beast being fought
        charisma: Adventurer charisma
        adventurer_level: Adventurer level

    Returns:
        Net health cost; zero or negative means the fight pays for itself
    """
    hp_per_gold = POTION_HEAL_AMOUNT / potion_cost(adventurer_level, charisma)
    return expected_hp_loss_on_win - kill_gold(beast.tier, beast.level) * hp_per_gold


def _pct(value: float) -> str:
    return f"{value * 100:.0f}%"


def decide_combat(
    adventurer: Adventurer,
    beast: Beast,
    events: EventSink | None = None,
    samples: int = DEFAULT_SAMPLES,
    rng: random.Random | None = None,
) -> CombatDecision:
    """Decide whether to attack or flee, and whether to fight to the death.

    Args:
        adventurer: Adventurer state
        beast: Beast being fought
        events: Telemetry sink for the combat_sim event
        samples: Monte Carlo samples per simulation
        rng: Random source, seeded in tests

    Returns:
        CombatDecision
    """
    level = adventurer.level

    if is_starter_encounter(adventurer):
        logger.info("Starter beast, attacking to the death")
        return CombatDecision(
            "attack",
            True,
            f"Starter beast ({STARTER_BEAST_HEALTH} HP, guaranteed one-hit kill)",
        )

    rng = rng or random.Random()
    sim = simulate_combat(adventurer, beast, samples, rng)
    flee = simulate_flee(adventurer, beast, level, samples, rng)

    flee_prob = flee_chance(adventurer.stats.dexterity, level)
    gold = kill_gold(beast.tier, beast.level)
    xp = kill_xp(beast.tier, beast.level, level)
    net_hp_cost = combat_net_hp_cost(
        sim.expected_hp_loss_on_win, beast, adventurer.stats.charisma, level
    )
    profitable = net_hp_cost <= 0

    logger.info(
        "Combat simulation",
        extra={
            "beast_id": beast.id,
            "beast_level": beast.level,
            "win_rate": sim.win_rate,
            "expected_hp_loss": sim.expected_hp_loss,
            "expected_hp_loss_on_win": sim.expected_hp_loss_on_win,
            "expected_rounds": sim.expected_rounds,
            "flee_chance": flee_prob,
            "flee_death_rate": flee.flee_death_rate,
            "profitable": profitable,
            "net_hp_cost": net_hp_cost,
        },
    )

    if events is not None:
        events.emit(
            CombatSimEvent(
                beast=enrich_beast(beast),
                win_rate=sim.win_rate,
                expected_hp_loss=sim.expected_hp_loss,
                expected_hp_loss_on_win=sim.expected_hp_loss_on_win,
                expected_rounds=sim.expected_rounds,
                death_rate=sim.death_rate,
                flee_chance=flee_prob,
                flee_death_rate=flee.flee_death_rate,
                flee_expected_hp_loss=flee.expected_hp_loss,
                is_profitable=profitable,
                net_hp_cost=net_hp_cost,
                kill_gold=gold,
                kill_xp=xp,
            )
        )

    win = _pct(sim.win_rate)
    flee_death = _pct(flee.flee_death_rate)
    fight_death = _pct(sim.death_rate)

    if sim.win_rate > GUARANTEED_WIN_RATE:
        if sim.expected_rounds <= 1:
            kind = "one-hit kill"
        else:
            kind = f"kill in {sim.expected_rounds:.1f} rounds"
        return CombatDecision("attack", True, f"Guaranteed {kind} {win} (+{xp}xp +{gold}g)")

    if sim.win_rate >= HIGH_WIN_RATE:
        if profitable:
            ttd = sim.expected_hp_loss_on_win < adventurer.health * TTD_HP_LOSS_FRACTION
            return CombatDecision(
                "attack",
                ttd,
                f"High win rate {win}, profitable "
                f"(hpLoss={sim.expected_hp_loss_on_win:.0f}, +{gold}g) (+{xp}xp)"
                + (" TTD" if ttd else ""),
            )
        if adventurer.health > HEALTHY_HP:
            return CombatDecision(
                "attack",
                False,
                f"High win {win} but unprofitable (netHpCost={net_hp_cost:.0f}), "
                f"attacking cautiously (HP={adventurer.health})",
            )
        if flee_prob > 0 and flee.flee_death_rate < SAFE_FLEE_DEATH_RATE:
            return CombatDecision(
                "flee",
                False,
                f"High win {win} but unprofitable (netHpCost={net_hp_cost:.0f}), "
                f"HP low ({adventurer.health}), fleeing to conserve",
            )
        return CombatDecision(
            "attack",
            False,
            f"High win {win} but unprofitable, HP low ({adventurer.health}) "
            f"but flee unsafe ({flee_death} death), attacking",
        )

    if sim.win_rate >= GOOD_WIN_RATE:
        if profitable:
            return CombatDecision(
                "attack",
                False,
                f"Good win rate {win}, profitable (+{gold}g, netHp={net_hp_cost:.0f}) (+{xp}xp)",
            )
        if flee_prob > 0 and flee.flee_death_rate < SAFE_FLEE_DEATH_RATE:
            return CombatDecision(
                "flee",
                False,
                f"Good win {win} but unprofitable (netHpCost={net_hp_cost:.0f}), "
                "fleeing to conserve HP",
            )
        return CombatDecision(
            "attack",
            False,
            f"Good win {win} but unprofitable, flee unsafe ({flee_death} death), attacking anyway",
        )

    flee_is_safer = flee_prob > 0 and flee.flee_death_rate < sim.death_rate

    if sim.win_rate >= MARGINAL_WIN_RATE:
        if flee_is_safer:
            return CombatDecision(
                "flee",
                False,
                f"Marginal {win} win, fleeing (flee death {flee_death} < fight death {fight_death})",
            )
        return CombatDecision(
            "attack",
            False,
            f"Marginal {win} win, fight safer than flee "
            f"(fight death {fight_death} vs flee death {flee_death})",
        )

    if flee_is_safer:
        return CombatDecision(
            "flee",
            False,
            f"Low win {win}, fleeing ({_pct(flee_prob)} chance, "
            f"flee death {flee_death} < fight death {fight_death})",
        )
    if sim.win_rate > 0:
        return CombatDecision(
            "attack",
            False,
            f"Low win {win}, but fight is safer than flee "
            f"(fight death {fight_death} vs flee death {flee_death})",
        )
    return CombatDecision(
        "attack",
        False,
        f"No win chance ({win}), no safe flee, attacking as last resort",
    )
