"""Shared configuration, models and game tables for the dungeon bot."""

from .config import Config, ErrorPolicy
from .events import EventSink
from .exceptions import (
    ChainError,
    ConfigurationError,
    ContractRevertError,
    DungeonBotError,
    GameStateError,
    RpcError,
    SignerLifecycleError,
    SigningError,
    TransactionFailedError,
)
from .models import (
    Adventurer,
    Bag,
    Beast,
    Equipment,
    GamePhase,
    GameState,
    GameSummary,
    Item,
    ItemPurchase,
    StatAllocation,
    Stats,
)

__all__ = [
    # Config
    "Config",
    "ErrorPolicy",
    # Telemetry
    "EventSink",
    # Exceptions
    "ChainError",
    "ConfigurationError",
    "ContractRevertError",
    "DungeonBotError",
    "GameStateError",
    "RpcError",
    "SignerLifecycleError",
    "SigningError",
    "TransactionFailedError",
    # Models
    "Adventurer",
    "Bag",
    "Beast",
    "Equipment",
    "GamePhase",
    "GameState",
    "GameSummary",
    "Item",
    "ItemPurchase",
    "StatAllocation",
    "Stats",
]
