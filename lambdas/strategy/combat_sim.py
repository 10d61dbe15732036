"""Monte Carlo combat and flee evaluator.

Damage values are precomputed once per call; each sample then only rolls
crits and struck armor slots. Results are probabilities and expectations
over the sampled fights.
"""

import random
from dataclasses import dataclass

from shared.models import Adventurer, Beast
from shared.utils import (
    FLEE_XP_REWARD,
    POTION_HEAL_AMOUNT,
    flee_chance,
    kill_gold,
    kill_xp,
    potion_cost,
)

from .damage import DamageResult, attack_damage, beast_slot_damage

DEFAULT_SAMPLES = 5000

# Penalty that dominates every other term of the expected value
DEATH_PENALTY = 1000

# Value of one gold relative to one xp
GOLD_VALUE = 0.5


@dataclass
class CombatSimResult:
    """Outcome distribution of fighting to the death."""

    win_rate: float
    expected_hp_loss: float
    expected_rounds: float
    expected_hp_loss_on_win: float
    death_rate: float


@dataclass
class FleeSimResult:
    """Outcome distribution of fleeing until escape or death."""

    expected_attempts: float
    expected_hp_loss: float
    flee_death_rate: float


@dataclass
class CombatEV:
    """Expected value comparison between attacking and fleeing."""

    attack_ev: float
    flee_ev: float
    recommendation: str
    confidence: float


class _BeastAttackTable:
    """Per-slot beast damage plus crit chance, sampled per beast turn."""

    def __init__(self, adventurer: Adventurer, beast: Beast, level: int) -> None:
        self.slots: list[DamageResult] = beast_slot_damage(adventurer, beast)
        self.crit_chance = min(level / 100, 1.0)

    def roll(self, rng: random.Random) -> int:
        slot = self.slots[rng.randrange(len(self.slots))]
        if rng.random() < self.crit_chance:
            return slot.critical_damage
        return slot.base_damage


def simulate_combat(
    adventurer: Adventurer,
    beast: Beast,
    samples: int = DEFAULT_SAMPLES,
    rng: random.Random | None = None,
) -> CombatSimResult:
    """Simulate fighting a beast to the death.

    Each round the adventurer attacks first; a beast reduced to 0 does not
    retaliate. Adventurer crit chance is luck/100, beast crit chance is
    level/100, both capped at 1.

    Args:
        adventurer: Adventurer state
        beast: Beast being fought (health is its current health)
        samples: Number of simulated fights
        rng: Random source, seeded in tests

    Returns:
        CombatSimResult
    """
    rng = rng or random.Random()
    player = attack_damage(adventurer, beast)
    player_crit = min(adventurer.stats.luck / 100, 1.0)
    beast_table = _BeastAttackTable(adventurer, beast, adventurer.level)

    start_hp = adventurer.health
    wins = 0
    total_hp_lost = 0
    total_hp_lost_on_win = 0
    total_rounds = 0

    for _ in range(samples):
        hp = start_hp
        beast_hp = beast.health
        rounds = 0

        while hp > 0 and beast_hp > 0:
            rounds += 1
            if rng.random() < player_crit:
                beast_hp -= player.critical_damage
            else:
                beast_hp -= player.base_damage
            if beast_hp <= 0:
                break
            hp -= beast_table.roll(rng)

        total_rounds += rounds
        hp_lost = start_hp - max(hp, 0)
        total_hp_lost += hp_lost
        if beast_hp <= 0:
            wins += 1
            total_hp_lost_on_win += hp_lost

    win_rate = wins / samples
    return CombatSimResult(
        win_rate=win_rate,
        expected_hp_loss=total_hp_lost / samples,
        expected_rounds=total_rounds / samples,
        expected_hp_loss_on_win=total_hp_lost_on_win / wins if wins > 0 else 0.0,
        death_rate=1 - win_rate,
    )


def simulate_flee(
    adventurer: Adventurer,
    beast: Beast,
    level: int,
    samples: int = DEFAULT_SAMPLES,
    rng: random.Random | None = None,
) -> FleeSimResult:
    """Simulate flee attempts until escape or death.

    Every failed attempt gives the beast a free attack. Dexterity at or above
    level guarantees escape on the first attempt.

    Args:
        adventurer: Adventurer state
        beast: Beast being fled from
        level: Adventurer level
        samples: Number of simulated escapes
        rng: Random source, seeded in tests

    Returns:
        FleeSimResult
    """
    dexterity = adventurer.stats.dexterity
    if dexterity >= level:
        return FleeSimResult(expected_attempts=1, expected_hp_loss=0, flee_death_rate=0)

    rng = rng or random.Random()
    chance = flee_chance(dexterity, level)
    beast_table = _BeastAttackTable(adventurer, beast, level)
    start_hp = adventurer.health

    total_attempts = 0
    total_hp_lost = 0
    deaths = 0

    for _ in range(samples):
        hp = start_hp
        attempts = 0
        escaped = False
        while hp > 0:
            attempts += 1
            if rng.random() < chance:
                escaped = True
                break
            hp -= beast_table.roll(rng)

        total_attempts += attempts
        total_hp_lost += start_hp - max(hp, 0)
        if not escaped:
            deaths += 1

    return FleeSimResult(
        expected_attempts=total_attempts / samples,
        expected_hp_loss=total_hp_lost / samples,
        flee_death_rate=deaths / samples,
    )


def compute_combat_ev(
    adventurer: Adventurer,
    beast: Beast,
    samples: int = DEFAULT_SAMPLES,
    rng: random.Random | None = None,
) -> CombatEV:
    """Compare the expected value of attacking and fleeing.

    attack_ev = win_rate * (kill_xp + kill_gold * 0.5)
              - death_rate * 1000 - expected_hp_loss * gold_per_hp
    flee_ev   = (1 - flee_death_rate) * 1
              - flee_death_rate * 1000 - flee_hp_loss * gold_per_hp

    Args:
        adventurer: Adventurer state
        beast: Beast being fought
        samples: Samples per simulation
        rng: Random source

    Returns:
        CombatEV with the recommended action
    """
    level = adventurer.level
    combat = simulate_combat(adventurer, beast, samples, rng)
    flee = simulate_flee(adventurer, beast, level, samples, rng)

    cost_per_hp = potion_cost(level, adventurer.stats.charisma) / POTION_HEAL_AMOUNT
    reward = kill_xp(beast.tier, beast.level, level) + kill_gold(beast.tier, beast.level) * GOLD_VALUE

    attack_ev = (
        combat.win_rate * reward
        - combat.death_rate * DEATH_PENALTY
        - combat.expected_hp_loss * cost_per_hp
    )
    flee_ev = (
        (1 - flee.flee_death_rate) * FLEE_XP_REWARD
        - flee.flee_death_rate * DEATH_PENALTY
        - flee.expected_hp_loss * cost_per_hp
    )

    return CombatEV(
        attack_ev=attack_ev,
        flee_ev=flee_ev,
        recommendation="attack" if attack_ev >= flee_ev else "flee",
        confidence=abs(attack_ev - flee_ev),
    )
