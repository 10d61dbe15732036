"""Invocation models for the game Lambda."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from shared.models import GameSummary


class PlayRequest(BaseModel):
    """Lambda event: resume an existing game or buy and start a new one."""

    game_id: int | None = Field(default=None, ge=1)
    new_game: bool = False
    name: str = Field(default="BOT", max_length=31)

    @model_validator(mode="after")
    def check_target(self) -> "PlayRequest":
        """Require exactly one of game_id or new_game."""
        if self.new_game == (self.game_id is not None):
            raise ValueError("Provide either game_id or new_game")
        return self


class PlayOutcome(BaseModel):
    """Lambda result."""

    status: Literal["dead", "timeout", "aborted"]
    game_id: int | None = None
    summary: GameSummary | None = None
    error: str | None = None
