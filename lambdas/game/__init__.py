"""Game orchestration: phase detection, the play loop and game lifecycle."""

from .lifecycle import GameLifecycle, game_id_from_receipt
from .loop import GameLoop
from .models import PlayOutcome, PlayRequest
from .state_machine import PhaseTracker, detect_phase

__all__ = [
    "GameLifecycle",
    "GameLoop",
    "PhaseTracker",
    "PlayOutcome",
    "PlayRequest",
    "detect_phase",
    "game_id_from_receipt",
]
