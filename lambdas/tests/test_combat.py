"""Tests for the attack/flee decision ladder."""

import random

import pytest

from factories import make_adventurer
from shared.events import EventSink
from shared.models import Beast, Item
from strategy.combat import combat_net_hp_cost, decide_combat, is_starter_encounter

SAMPLES = 300


class TestStarterEncounter:
    """Tests for the scripted first beast."""

    def test_detection(self):
        """Test level 1 with under 4 xp is the starter encounter."""
        assert is_starter_encounter(make_adventurer(xp=0))
        assert is_starter_encounter(make_adventurer(xp=3))
        assert not is_starter_encounter(make_adventurer(xp=4))

    def test_attacks_to_the_death(self):
        """Test the starter beast is attacked to the death without simulation."""
        events = EventSink()
        decision = decide_combat(make_adventurer(xp=0), Beast(id=1, level=1, health=3), events)

        assert decision.action == "attack"
        assert decision.to_the_death
        assert "Starter beast" in decision.reason
        assert events.events_of("combat_sim") == []


class TestDecisionLadder:
    """Tests for win-rate bands."""

    def test_guaranteed_one_hit_kill(self):
        """Test a beast with 3 HP against 10+ damage is a guaranteed kill."""
        adventurer = make_adventurer(xp=25, weapon=Item(id=42, xp=100))
        decision = decide_combat(adventurer, Beast(id=30, level=1, health=3), None, SAMPLES, random.Random(1))

        assert decision.action == "attack"
        assert decision.to_the_death
        assert "Guaranteed one-hit kill" in decision.reason

    def test_low_win_flees_when_safe(self):
        """Test a hopeless fight flees when escape is guaranteed."""
        adventurer = make_adventurer(health=5, xp=25, dexterity=5, weapon=Item())
        decision = decide_combat(adventurer, Beast(id=1, level=20, health=1000), None, SAMPLES, random.Random(1))

        assert decision.action == "flee"
        assert not decision.to_the_death
        assert decision.reason.startswith("Low win")

    def test_last_resort_attack(self):
        """Test no win chance and no flee chance still attacks."""
        adventurer = make_adventurer(health=5, xp=25, weapon=Item())
        decision = decide_combat(adventurer, Beast(id=1, level=20, health=1000), None, SAMPLES, random.Random(1))

        assert decision.action == "attack"
        assert not decision.to_the_death
        assert "last resort" in decision.reason

    @pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
    @pytest.mark.parametrize("health", [5, 30, 90])
    def test_never_flees_to_the_death(self, seed, health):
        """Test every flee decision is a single attempt."""
        adventurer = make_adventurer(health=health, xp=64, dexterity=3)
        decision = decide_combat(adventurer, Beast(id=45, level=6, health=30), None, SAMPLES, random.Random(seed))

        if decision.action == "flee":
            assert not decision.to_the_death

    def test_emits_combat_sim_event(self):
        """Test the simulation is published as telemetry."""
        events = EventSink()
        adventurer = make_adventurer(xp=25, weapon=Item(id=42, xp=100))
        decide_combat(adventurer, Beast(id=30, level=1, health=3), events, SAMPLES, random.Random(1))

        sims = events.events_of("combat_sim")
        assert len(sims) == 1
        assert sims[0].win_rate == 1.0
        assert sims[0].beast.id == 30

    def test_event_without_beast_details(self):
        """Test a beast slot with id 0 publishes the simulation without display fields."""
        events = EventSink()
        adventurer = make_adventurer(xp=25, weapon=Item(id=42, xp=100))
        decide_combat(adventurer, Beast(id=0, level=1, health=3), events, SAMPLES, random.Random(1))

        [sim] = events.events_of("combat_sim")
        assert sim.beast is None
        assert sim.win_rate == 1.0


class TestProfitability:
    """Tests for the net health cost."""

    def test_profitable_kill(self):
        """Test kill gold that buys back more health than lost is profitable."""
        # Tier 1 level 10 beast: 25 gold, potion cost 1 -> 250 HP of potions
        assert combat_net_hp_cost(20.0, Beast(id=1, level=10), charisma=5, adventurer_level=10) < 0

    def test_unprofitable_kill(self):
        """Test an expensive fight is unprofitable."""
        # Tier 5 level 1 beast: 1 gold, potion cost 10 -> 1 HP of potions
        assert combat_net_hp_cost(20.0, Beast(id=25, level=1), charisma=0, adventurer_level=10) == 19.0
