"""Decision modules: combat evaluation, stats, market and gear."""

from .combat import CombatDecision, decide_combat
from .combat_sim import CombatSimResult, FleeSimResult, simulate_combat, simulate_flee
from .engine import BotDecision, StrategyEngine
from .gear import GearSwap, suggest_gear_swap, suggest_item_drops
from .market import ShoppingDecision, decide_market_purchases
from .stats import allocate_stats

__all__ = [
    "BotDecision",
    "CombatDecision",
    "CombatSimResult",
    "FleeSimResult",
    "GearSwap",
    "ShoppingDecision",
    "StrategyEngine",
    "allocate_stats",
    "decide_combat",
    "decide_market_purchases",
    "simulate_combat",
    "simulate_flee",
    "suggest_gear_swap",
    "suggest_item_drops",
]
