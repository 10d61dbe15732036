"""Market purchase planning.

A market visit spends gold through a fixed waterfall:

0. Priority potions up to 100 HP (50 HP while saving for a weapon)
1. Weapon tier upgrade
2. Fill empty armor slots cheaply
2b. Replace maxed (G20) armor with T1
3. Emergency potions up to 100 HP
4. Regular potions toward 70% of max HP
5. Ring fill or upgrade
5b. Necklace fill
6. Backup weapons for elemental coverage (level 15+)
7. Bag jewelry for luck (level 10+)
8. Final potions

Every step respects a gold reserve so later potions stay affordable.
"""

import math
from dataclasses import dataclass, field

from aws_lambda_powertools import Logger

from shared.events import EventSink, MarketActionEvent, MarketItemView
from shared.items import (
    ARMOR_SLOTS,
    ItemSlot,
    ItemType,
    armor_material,
    item_name,
    item_price,
    item_slot,
    item_suffix,
    item_tier,
    item_type,
    is_jewelry,
    is_weapon,
    neck_matches_armor,
    suffix_stat_bonus,
)
from shared.models import MAX_BAG_SIZE, Adventurer, Bag, ItemPurchase
from shared.utils import POTION_HEAL_AMOUNT, max_health, potion_cost

logger = Logger(child=True)

MIN_HP_TARGET = 100
WEAPON_SAVINGS_HP_TARGET = 50
MIN_DEFICIT_FOR_POTIONS = math.ceil(POTION_HEAL_AMOUNT * 0.8)
MAX_GREATNESS = 20
WEAPON_TYPES = (ItemType.MAGIC, ItemType.BLADE, ItemType.BLUDGEON)

# Ring ids
SILVER_RING = 4
BRONZE_RING = 5
PLATINUM_RING = 6
TITANIUM_RING = 7
GOLD_RING = 8

# Points of suffix score per stat point; vitality and dexterity keep the
# adventurer alive, charisma makes potions cheaper
SUFFIX_WEIGHTS = {
    "dexterity": 3,
    "vitality": 3,
    "charisma": 2,
    "strength": 2,
    "wisdom": 1,
    "intelligence": 1,
}


@dataclass
class MarketItem:
    """Market offer with price resolved for the adventurer's charisma."""

    id: int
    name: str
    tier: int
    type: ItemType
    slot: ItemSlot
    price: int


@dataclass
class ShoppingDecision:
    """Purchases for one market visit."""

    potions: int = 0
    items: list[ItemPurchase] = field(default_factory=list)
    total_cost: int = 0
    gold_remaining: int = 0
    saving_for_weapon: bool = False

    @property
    def is_empty(self) -> bool:
        """Check if nothing is bought."""
        return self.potions == 0 and not self.items


def ring_priority(strength: int, level: int) -> list[int]:
    """Preferred ring ids, best first.

    Titanium scales critical damage, Silver adds luck and is cheap early.

    Args:
        strength: Adventurer strength
        level: Adventurer level

    Returns:
        Ring ids in priority order
    """
    if strength < 5 and level < 10:
        return [SILVER_RING, TITANIUM_RING, PLATINUM_RING, GOLD_RING, BRONZE_RING]
    return [TITANIUM_RING, SILVER_RING, PLATINUM_RING, GOLD_RING, BRONZE_RING]


def bag_jewelry_target(level: int) -> int:
    """Number of rings/necklaces to carry in the bag at a level."""
    if level >= 25:
        return 3
    if level >= 15:
        return 2
    if level >= 10:
        return 1
    return 0


class MarketVisit:
    """Stateful walk through the purchase waterfall for one visit."""

    def __init__(self, adventurer: Adventurer, bag: Bag, market_ids: list[int]) -> None:
        """Prepare a visit.

        Args:
            adventurer: Adventurer state
            bag: Adventurer bag
            market_ids: Item ids offered by the market
        """
        self.adventurer = adventurer
        self.bag = bag
        self.level = adventurer.level
        self.charisma = adventurer.stats.charisma
        self.start_gold = adventurer.gold
        self.gold = adventurer.gold
        self.max_hp = max_health(adventurer.stats.vitality)
        self.potion_cost = potion_cost(self.level, self.charisma)
        self.potions = 0
        self.items: list[ItemPurchase] = []

        owned = set(adventurer.equipment.item_ids())
        owned.update(item.id for item in bag.items if item.id > 0)
        self.owned_ids = owned

        self.market = [
            MarketItem(
                id=item_id,
                name=item_name(item_id),
                tier=item_tier(item_id),
                type=item_type(item_id),
                slot=item_slot(item_id),
                price=item_price(item_tier(item_id), self.charisma),
            )
            for item_id in market_ids
            if item_id not in owned
        ]
        self.committed_material = self._committed_material()
        self.saving_for_weapon = False
        self.min_gold_reserve = 0

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @property
    def effective_hp(self) -> int:
        """Health after drinking the potions bought so far."""
        return self.adventurer.health + self.potions * POTION_HEAL_AMOUNT

    def _committed_material(self) -> ItemType | None:
        counts: dict[ItemType, int] = {}
        for armor in self.adventurer.equipment.armor():
            if armor.id > 0:
                material = armor_material(armor.id)
                counts[material] = counts.get(material, 0) + 1
        if not counts:
            return None
        # First material reaching the highest count wins ties
        return max(counts, key=lambda m: counts[m])

    def _is_picked(self, item_id: int) -> bool:
        return any(p.item_id == item_id for p in self.items)

    def _available(self, slot: ItemSlot) -> list[MarketItem]:
        return [m for m in self.market if m.slot == slot and not self._is_picked(m.id)]

    def _affordable(self, item: MarketItem, reserve: int) -> bool:
        return item.price <= self.gold and self.gold - item.price >= reserve

    def _buy(self, item: MarketItem, equip: bool, note: str) -> None:
        self.items.append(ItemPurchase(item_id=item.id, equip=equip))
        self.gold -= item.price
        logger.info(
            note,
            extra={"item": item.name, "tier": item.tier, "price": item.price, "gold": self.gold},
        )

    def _buy_potions(self, count: int, note: str) -> None:
        if count <= 0:
            return
        self.potions += count
        self.gold -= count * self.potion_cost
        logger.info(
            note,
            extra={"count": count, "cost": count * self.potion_cost, "effective_hp": self.effective_hp},
        )

    def _potions_to(self, target_hp: int, budget: int) -> int:
        needed = math.ceil((target_hp - self.effective_hp) / POTION_HEAL_AMOUNT)
        return max(0, min(needed, budget // self.potion_cost))

    def _bag_space(self) -> int:
        in_bag = sum(1 for item in self.bag.items if item.id > 0)
        pending = sum(1 for p in self.items if not p.equip)
        return MAX_BAG_SIZE - in_bag - pending

    def suffix_score(self, item_id: int) -> int:
        """Value of the suffix an item would eventually carry."""
        seed = self.adventurer.item_specials_seed
        if seed == 0:
            return 0
        bonus = suffix_stat_bonus(item_suffix(item_id, seed))
        return sum(SUFFIX_WEIGHTS.get(stat, 0) * points for stat, points in bonus.items())

    def _material_rank(self, item: MarketItem) -> int:
        if self.committed_material is None:
            return 0
        return 0 if armor_material(item.id) == self.committed_material else 1

    # ------------------------------------------------------------------
    # waterfall steps
    # ------------------------------------------------------------------

    def scan_weapon_savings(self) -> None:
        """Flag a 2+ tier weapon upgrade the adventurer cannot afford yet."""
        weapon = self.adventurer.equipment.weapon
        current_tier = weapon.tier if weapon.id > 0 else 6
        upgrades = sorted(
            (m for m in self.market if m.slot == ItemSlot.WEAPON and m.tier < current_tier),
            key=lambda m: m.tier,
        )
        if upgrades:
            best = upgrades[0]
            self.saving_for_weapon = current_tier - best.tier >= 2 and self.gold < best.price
            if self.saving_for_weapon:
                logger.info(
                    "Saving for weapon upgrade",
                    extra={"item": best.name, "tier": best.tier, "price": best.price, "gold": self.gold},
                )

    def priority_potions(self) -> None:
        """Step 0: reach a safe health floor before any equipment."""
        floor = WEAPON_SAVINGS_HP_TARGET if self.saving_for_weapon else MIN_HP_TARGET
        target = min(floor, self.max_hp)
        if self.adventurer.health < target and self.gold >= self.potion_cost:
            self._buy_potions(self._potions_to(target, self.gold), "Priority potions")

    def set_reserve(self) -> None:
        """Gold kept back from equipment purchases."""
        if self.effective_hp >= MIN_HP_TARGET:
            self.min_gold_reserve = min(3 * self.potion_cost, math.floor(self.gold * 0.10))
        else:
            self.min_gold_reserve = max(5 * self.potion_cost, math.floor(self.gold * 0.30))

    def weapon_upgrade(self) -> None:
        """Step 1: best-tier weapon, ties broken by suffix score."""
        weapon = self.adventurer.equipment.weapon
        current_tier = weapon.tier if weapon.id > 0 else 6
        upgrades = sorted(
            (m for m in self.market if m.slot == ItemSlot.WEAPON and m.tier < current_tier),
            key=lambda m: (m.tier, -self.suffix_score(m.id)),
        )
        reserve = min(self.min_gold_reserve, self.potion_cost * 2)
        for candidate in upgrades:
            if self._affordable(candidate, reserve):
                self._buy(candidate, True, "Weapon upgrade")
                return

    def fill_empty_armor(self) -> None:
        """Step 2: cheap armor for empty slots, committed material first."""
        max_price = max(5, self.potion_cost * 5)
        for slot_name in ARMOR_SLOTS:
            if getattr(self.adventurer.equipment, slot_name).id != 0:
                continue
            candidates = sorted(
                (m for m in self._available(ItemSlot(slot_name)) if m.price <= max_price),
                key=lambda m: (self._material_rank(m), m.price),
            )
            if candidates and self._affordable(candidates[0], self.min_gold_reserve):
                self._buy(candidates[0], True, f"Fill {slot_name}")

    def armor_ladder(self) -> None:
        """Step 2b: replace maxed non-T1 armor with T1."""
        reserve = min(self.min_gold_reserve, self.potion_cost * 3)
        for slot_name in ARMOR_SLOTS:
            current = getattr(self.adventurer.equipment, slot_name)
            if current.id == 0 or current.tier <= 1 or current.greatness < MAX_GREATNESS:
                continue
            upgrades = sorted(
                (m for m in self._available(ItemSlot(slot_name)) if m.tier == 1),
                key=self._material_rank,
            )
            if upgrades and self._affordable(upgrades[0], reserve):
                self._buy(upgrades[0], True, f"Armor ladder {slot_name}")

    def emergency_potions(self) -> None:
        """Step 3: back to 100 HP with up to 90% of remaining gold."""
        target = min(MIN_HP_TARGET, self.max_hp)
        if self.effective_hp < target and self.gold >= self.potion_cost:
            budget = math.floor(self.gold * 0.9)
            self._buy_potions(self._potions_to(target, budget), "Emergency potions")

    def regular_potions(self) -> None:
        """Step 4: heal toward 70% of max HP when missing at least 8 HP."""
        hp = self.effective_hp
        if hp >= self.max_hp or self.max_hp - hp < MIN_DEFICIT_FOR_POTIONS:
            return
        if self.gold < self.potion_cost:
            return
        target = min(max(MIN_HP_TARGET, math.floor(self.max_hp * 0.7)), self.max_hp)
        if target - hp <= 0:
            return

        if hp < MIN_HP_TARGET:
            budget = math.floor(self.gold * 0.9)
        elif self.potion_cost <= 1:
            budget = max(0, self.gold - 4)
        elif hp < self.max_hp * 0.7:
            budget = math.floor(self.gold * 0.7)
        else:
            budget = math.floor(self.gold * 0.5)
        self._buy_potions(self._potions_to(target, budget), "Regular potions")

    def ring(self) -> None:
        """Step 5: fill the ring slot or upgrade a low-greatness ring."""
        current = self.adventurer.equipment.ring
        priority = ring_priority(self.adventurer.stats.strength, self.level)
        rings = self._available(ItemSlot.RING)

        if current.id == 0:
            best = next((r for pid in priority for r in rings if r.id == pid), None)
            if best is None and rings:
                best = min(rings, key=lambda r: r.price)
            if best is not None and self._affordable(best, self.min_gold_reserve):
                self._buy(best, True, "Fill ring")
            return

        ideal_id = priority[0]
        if ideal_id == current.id:
            return
        ideal = next((r for r in rings if r.id == ideal_id), None)
        if ideal is None:
            return
        if current.greatness >= 8:
            return
        if current.greatness >= 5 and current.tier <= ideal.tier:
            return
        if self._affordable(ideal, self.min_gold_reserve):
            self._buy(ideal, True, "Ring upgrade")

    def necklace(self) -> None:
        """Step 5b: fill the necklace slot, matching armor material first."""
        if self.adventurer.equipment.neck.id != 0:
            return

        def rank(m: MarketItem) -> tuple[int, int]:
            matches = self.committed_material is not None and neck_matches_armor(
                m.id, self.committed_material
            )
            return (0 if matches else 1, m.price)

        necklaces = sorted(self._available(ItemSlot.NECK), key=rank)
        if necklaces and self._affordable(necklaces[0], self.min_gold_reserve):
            self._buy(necklaces[0], True, "Fill necklace")

    def backup_weapons(self) -> None:
        """Step 6: bag weapons covering missing damage types (level 15+)."""
        bag_space = self._bag_space()
        if self.level < 15 or bag_space <= 0:
            return

        owned_types = set()
        weapon = self.adventurer.equipment.weapon
        if weapon.id > 0:
            owned_types.add(item_type(weapon.id))
        owned_types.update(item_type(i.id) for i in self.bag.items if is_weapon(i.id))
        owned_types.update(item_type(p.item_id) for p in self.items if is_weapon(p.item_id))

        missing = [t for t in WEAPON_TYPES if t not in owned_types]
        if not missing:
            return
        max_backups = len(missing) if self.level >= 25 else 1

        candidates = sorted(
            (m for m in self._available(ItemSlot.WEAPON) if m.type in missing),
            key=lambda m: m.tier,
        )
        reserve = min(self.min_gold_reserve, self.potion_cost * 3)
        bought = 0
        for candidate in candidates:
            if bought >= max_backups or bag_space <= bought:
                break
            if candidate.type not in missing:
                continue
            if self._affordable(candidate, reserve):
                self._buy(candidate, False, "Backup weapon")
                missing.remove(candidate.type)
                bought += 1

    def bag_jewelry(self) -> None:
        """Step 7: one extra ring or necklace per visit for luck (level 10+)."""
        target = bag_jewelry_target(self.level)
        carried = sum(1 for i in self.bag.items if is_jewelry(i.id))
        if carried >= target or self._bag_space() <= 0:
            return

        candidates = sorted(
            (m for m in self.market if is_jewelry(m.id) and not self._is_picked(m.id)),
            key=lambda m: (m.tier, m.price),
        )
        reserve = max(self.min_gold_reserve, self.potion_cost * 5)
        for candidate in candidates:
            if self._affordable(candidate, reserve):
                self._buy(candidate, False, "Bag jewelry")
                return

    def final_potions(self) -> None:
        """Step 8: enforce the 100 HP floor, then top up toward max."""
        if self.effective_hp < MIN_HP_TARGET and self.gold >= self.potion_cost:
            self._buy_potions(self._potions_to(MIN_HP_TARGET, self.gold), "Final potions")

        deficit = self.max_hp - self.effective_hp
        if deficit >= MIN_DEFICIT_FOR_POTIONS and self.gold >= self.potion_cost:
            self._buy_potions(self._potions_to(self.max_hp, self.gold), "Extra potions")

    def plan(self) -> ShoppingDecision:
        """Run the full waterfall.

        Returns:
            ShoppingDecision
        """
        self.scan_weapon_savings()
        self.priority_potions()
        self.set_reserve()
        self.weapon_upgrade()
        self.fill_empty_armor()
        self.armor_ladder()
        self.emergency_potions()
        self.regular_potions()
        self.ring()
        self.necklace()
        self.backup_weapons()
        self.bag_jewelry()
        self.final_potions()

        return ShoppingDecision(
            potions=self.potions,
            items=list(self.items),
            total_cost=self.start_gold - self.gold,
            gold_remaining=self.gold,
            saving_for_weapon=self.saving_for_weapon,
        )


def decide_market_purchases(
    adventurer: Adventurer,
    bag: Bag,
    market_ids: list[int],
    events: EventSink | None = None,
) -> ShoppingDecision:
    """Decide what to buy from the market.

    Args:
        adventurer: Adventurer state
        bag: Adventurer bag
        market_ids: Item ids offered by the market
        events: Telemetry sink for the market_action event

    Returns:
        ShoppingDecision; total cost never exceeds the adventurer's gold
    """
    decision = MarketVisit(adventurer, bag, market_ids).plan()

    logger.info(
        "Market purchases decided",
        extra={
            "potions": decision.potions,
            "items": [p.item_id for p in decision.items],
            "total_cost": decision.total_cost,
            "gold_remaining": decision.gold_remaining,
            "saving_for_weapon": decision.saving_for_weapon,
        },
    )

    if events is not None:
        events.emit(
            MarketActionEvent(
                potions=decision.potions,
                items=[
                    MarketItemView(
                        id=p.item_id,
                        name=item_name(p.item_id),
                        tier=item_tier(p.item_id),
                        slot=item_slot(p.item_id).value,
                        equip=p.equip,
                    )
                    for p in decision.items
                ],
                total_cost=decision.total_cost,
                gold_remaining=decision.gold_remaining,
                saving_for_weapon=decision.saving_for_weapon,
            )
        )

    return decision
