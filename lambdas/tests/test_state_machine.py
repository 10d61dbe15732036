"""Tests for phase detection and per-level market memory."""

import pytest

from factories import make_adventurer, make_state
from game.state_machine import PhaseTracker, detect_phase
from shared.models import GamePhase


class TestDetectPhase:
    """Tests for detect_phase."""

    def test_dead(self) -> None:
        """Test zero health wins over everything else."""
        state = make_state(make_adventurer(health=0, beast_health=10, stat_upgrades=2), market=[42])
        assert detect_phase(state) == GamePhase.DEAD

    @pytest.mark.parametrize(("xp", "phase"), [(0, GamePhase.STARTER_BEAST), (3, GamePhase.STARTER_BEAST), (4, GamePhase.IN_BATTLE)])
    def test_starter_beast(self, xp: int, phase: GamePhase) -> None:
        """Test a level 1 fight under 4 xp is the starter beast."""
        assert detect_phase(make_state(make_adventurer(xp=xp, beast_health=3))) == phase

    def test_in_battle(self) -> None:
        """Test a live beast beats pending stat points."""
        state = make_state(make_adventurer(xp=25, beast_health=10, stat_upgrades=1))
        assert detect_phase(state) == GamePhase.IN_BATTLE

    def test_stat_upgrade_before_shopping(self) -> None:
        """Test stat points are spent before the market."""
        state = make_state(make_adventurer(stat_upgrades=1), market=[42])
        assert detect_phase(state) == GamePhase.STAT_UPGRADE

    def test_shopping(self) -> None:
        """Test an unvisited market is shopped."""
        assert detect_phase(make_state(market=[42])) == GamePhase.SHOPPING

    def test_shopped_market_explores(self) -> None:
        """Test a visited market falls through to exploring."""
        assert detect_phase(make_state(market=[42]), shopped_this_level=True) == GamePhase.EXPLORING

    def test_exploring(self) -> None:
        """Test the default phase."""
        assert detect_phase(make_state()) == GamePhase.EXPLORING


class TestPhaseTracker:
    """Tests for PhaseTracker."""

    def test_market_visited_once_per_level(self) -> None:
        """Test marking the market shopped holds until the next level."""
        tracker = PhaseTracker()
        level5 = make_state(make_adventurer(xp=25), market=[42])

        assert tracker.observe(level5) == GamePhase.SHOPPING
        tracker.mark_shopped()
        assert tracker.observe(level5) == GamePhase.EXPLORING

        level6 = make_state(make_adventurer(xp=36), market=[42])
        assert tracker.observe(level6) == GamePhase.SHOPPING
        assert not tracker.shopped_this_level
