"""Tests for the strategy dispatcher."""

import random

import pytest

from factories import make_adventurer, make_state
from shared.models import Beast, GamePhase, Item
from strategy.engine import StrategyEngine

GAME_ID = 77


@pytest.fixture
def engine(calls):
    """Engine with a seeded random source and few samples."""
    return StrategyEngine(calls, samples=200, rng=random.Random(5))


def entrypoints(decision):
    """Entrypoint names of a decision's calls."""
    return [c.entrypoint for c in decision.calls]


class TestExplore:
    """Tests for exploring decisions."""

    def test_single_step_with_vrf(self, engine):
        """Test explore is one step preceded by a VRF request."""
        decision = engine.decide(GAME_ID, make_state(), GamePhase.EXPLORING)

        assert decision.action == "explore(till_beast=False)"
        assert entrypoints(decision) == ["request_random", "explore"]
        assert decision.calls[1].calldata == [GAME_ID, 0]
        assert decision.reason == "Exploring single step (HP: 100/100)"


class TestBattle:
    """Tests for battle decisions."""

    def test_starter_beast(self, engine):
        """Test the starter beast is attacked to the death."""
        state = make_state(
            make_adventurer(xp=0, beast_health=3),
            beast=Beast(id=1, level=1, health=3),
        )
        decision = engine.decide(GAME_ID, state, GamePhase.STARTER_BEAST)

        assert decision.action == "attack(to_the_death=True)"
        assert entrypoints(decision) == ["request_random", "attack"]
        assert decision.calls[1].calldata == [GAME_ID, 1]

    def test_starter_beast_never_swaps(self, engine):
        """Test no gear swap is attempted against the starter beast."""
        state = make_state(
            make_adventurer(xp=0, beast_health=3),
            beast=Beast(id=75, level=1, health=3, seed=1),
            bag=[Item(id=72)],
        )
        decision = engine.decide(GAME_ID, state, GamePhase.STARTER_BEAST)
        assert decision.action.startswith("attack")

    def test_flee_is_never_to_the_death(self, engine):
        """Test a flee decision submits flee(False)."""
        state = make_state(
            make_adventurer(health=5, xp=25, dexterity=5, weapon=Item(), beast_health=1000),
            beast=Beast(id=1, level=20, health=1000, seed=9),
        )
        decision = engine.decide(GAME_ID, state, GamePhase.IN_BATTLE)

        assert decision.action == "flee(to_the_death=False)"
        assert entrypoints(decision) == ["request_random", "flee"]
        assert decision.calls[1].calldata == [GAME_ID, 0]

    def test_gear_swap_once_per_beast(self, engine):
        """Test a losing matchup equips a better bag weapon once, then fights."""
        state = make_state(
            make_adventurer(health=200, xp=25, vitality=10, beast_health=400),
            beast=Beast(id=75, level=3, health=400, seed=1234),
            bag=[Item(id=72)],
        )

        first = engine.decide(GAME_ID, state, GamePhase.IN_BATTLE)
        assert first.action == "equip([72])"
        assert entrypoints(first) == ["request_random", "equip"]
        assert first.calls[1].calldata == [GAME_ID, 1, 72]
        assert first.reason.startswith("Gear swap for beast matchup")

        second = engine.decide(GAME_ID, state, GamePhase.IN_BATTLE)
        assert not second.action.startswith("equip")

    def test_swap_memory_resets_for_new_beast(self, engine):
        """Test a new beast seed allows another swap."""
        adventurer = make_adventurer(health=200, xp=25, vitality=10, beast_health=400)
        bag = [Item(id=72)]
        first = make_state(adventurer, beast=Beast(id=75, level=3, health=400, seed=1), bag=bag)
        second = make_state(adventurer, beast=Beast(id=75, level=3, health=400, seed=2), bag=bag)

        assert engine.decide(GAME_ID, first, GamePhase.IN_BATTLE).action == "equip([72])"
        assert engine.decide(GAME_ID, second, GamePhase.IN_BATTLE).action == "equip([72])"

    def test_gear_swap_skipped_at_low_health(self, engine):
        """Test no swap when the free counter-attack would leave too little health."""
        state = make_state(
            make_adventurer(health=80, xp=25, vitality=10, beast_health=400),
            beast=Beast(id=75, level=3, health=400, seed=1),
            bag=[Item(id=72)],
        )
        decision = engine.decide(GAME_ID, state, GamePhase.IN_BATTLE)
        assert not decision.action.startswith("equip")


class TestOutOfBattle:
    """Tests for stat upgrades and shopping."""

    def test_stat_upgrade(self, engine):
        """Test stat points become a select_stat_upgrades call."""
        state = make_state(make_adventurer(xp=25, stat_upgrades=3))
        decision = engine.decide(GAME_ID, state, GamePhase.STAT_UPGRADE)

        assert decision.action == "select_stat_upgrades"
        assert decision.reason == "Allocating 3 stat points"
        assert decision.calls[0].calldata == [GAME_ID, 0, 1, 0, 0, 0, 2, 0]

    def test_shopping_buys_potions(self, engine):
        """Test a low-health visit buys potions."""
        state = make_state(make_adventurer(health=40, xp=25, gold=30))
        decision = engine.decide(GAME_ID, state, GamePhase.SHOPPING)

        assert decision.action == "buy_items(potions=6, items=0)"
        assert decision.reason == "Spending 30g on 0 items and 6 potions"
        assert decision.calls[0].calldata == [GAME_ID, 6, 0]

    def test_shopping_nothing_to_buy(self, engine):
        """Test an empty plan skips the market without calls."""
        state = make_state(make_adventurer(health=100, gold=0))
        decision = engine.decide(GAME_ID, state, GamePhase.SHOPPING)

        assert decision.action == "skip_market"
        assert decision.calls == []

    def test_full_bag_dropped_before_buying(self, engine):
        """Test a full bag is trimmed in the same multicall as the purchase."""
        bag = [Item(id=i) for i in (4, 5, 76, 12, 16, 20, 21, 26, 31, 36, 41, 86, 91, 96, 101)]
        state = make_state(make_adventurer(health=40, xp=25, gold=30), bag=bag)
        decision = engine.decide(GAME_ID, state, GamePhase.SHOPPING)

        assert entrypoints(decision) == ["drop", "buy_items"]
        assert decision.calls[0].calldata[:2] == [GAME_ID, 3]

    def test_unexpected_phase(self, engine):
        """Test the dead phase yields a wait without calls."""
        decision = engine.decide(GAME_ID, make_state(make_adventurer(health=0)), GamePhase.DEAD)

        assert decision.action == "wait"
        assert decision.calls == []
