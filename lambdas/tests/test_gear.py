"""Tests for weapon swaps, bag cleanup and the starter weapon."""

from factories import make_adventurer
from shared.models import Bag, Beast, Item
from strategy.gear import (
    effective_damage_score,
    score_bag_item,
    select_starter_weapon,
    suggest_gear_swap,
    suggest_item_drops,
)

BRUTE = Beast(id=75, level=3, health=40)


class TestEffectiveDamageScore:
    """Tests for effective_damage_score."""

    def test_matchups(self) -> None:
        """Test strong, neutral and weak multipliers on a T1 blade."""
        assert effective_damage_score(42, "Cloth") == 7.5
        assert effective_damage_score(42, "Hide") == 5.0
        assert effective_damage_score(42, "Metal") == 2.5

    def test_weak_high_tier_beats_neutral_low_tier(self) -> None:
        """Test a weak T1 still outscores a neutral T5."""
        assert effective_damage_score(42, "Metal") > effective_damage_score(12, "Cloth")


class TestSuggestGearSwap:
    """Tests for suggest_gear_swap."""

    def test_swaps_to_better_matchup(self) -> None:
        """Test a bludgeon replaces a weak blade against metal armor."""
        swap = suggest_gear_swap(make_adventurer(), Bag(items=[Item(id=72)]), BRUTE)

        assert swap.has_swaps
        assert swap.equip_item_ids == [72]
        assert "Warhammer" in swap.reason

    def test_no_weapon_in_bag(self) -> None:
        """Test armor in the bag is never swapped."""
        swap = suggest_gear_swap(make_adventurer(), Bag(items=[Item(id=77)]), BRUTE)
        assert not swap.has_swaps

    def test_keeps_high_greatness_weapon(self) -> None:
        """Test an equipped weapon at greatness 12 keeps growing."""
        adventurer = make_adventurer(weapon=Item(id=46, xp=144))
        swap = suggest_gear_swap(adventurer, Bag(items=[Item(id=72)]), BRUTE)
        assert not swap.has_swaps

    def test_skips_high_greatness_candidate(self) -> None:
        """Test bag weapons at greatness 12 are not swapped in."""
        swap = suggest_gear_swap(make_adventurer(), Bag(items=[Item(id=72, xp=144)]), BRUTE)
        assert not swap.has_swaps

    def test_no_better_weapon(self) -> None:
        """Test a weaker matchup does not swap."""
        swap = suggest_gear_swap(make_adventurer(), Bag(items=[Item(id=12)]), Beast(id=30, level=3))
        assert not swap.has_swaps


class TestSuggestItemDrops:
    """Tests for suggest_item_drops."""

    def test_bag_not_full(self) -> None:
        """Test nothing is dropped while the bag has room."""
        bag = Bag(items=[Item(id=76), Item(id=12)])
        assert suggest_item_drops(bag, make_adventurer()) == []

    def test_full_bag_drops_three_non_jewelry(self) -> None:
        """Test three lowest-valued non-jewelry items are suggested."""
        items = [Item(id=i) for i in (4, 5, 76, 12, 16, 20, 21, 26, 31, 36, 41, 86, 91, 96, 101)]
        bag = Bag(items=items)
        adventurer = make_adventurer()

        drops = suggest_item_drops(bag, adventurer)

        assert len(drops) == 3
        assert 4 not in drops
        assert 5 not in drops
        lowest = min(score_bag_item(i, adventurer, bag) for i in items if i.id not in (4, 5))
        assert score_bag_item(Item(id=drops[0]), adventurer, bag) == lowest


class TestStarterWeapon:
    """Tests for select_starter_weapon."""

    def test_short_sword(self) -> None:
        """Test the Short Sword is chosen."""
        assert select_starter_weapon() == 46
