"""Main game loop: read state, decide, execute, re-synchronise.

State comes from chain every iteration. After a transaction the loop waits
for a read that reflects it, so the next decision is never made against
pre-transaction data.
"""

import asyncio

from aws_lambda_powertools import Logger

from chain.executor import Sleep, TransactionExecutor
from chain.state import ChainReader
from shared.config import ErrorPolicy
from shared.events import BotEvent, DecisionEvent, EventSink, GameSummaryEvent, state_update_event
from shared.exceptions import GameStateError
from shared.models import GamePhase, GameState, GameSummary
from strategy.engine import BotDecision, StrategyEngine

from .state_machine import PhaseTracker, log_adventurer_state

logger = Logger(child=True)

LOOP_DELAY_SECONDS = 0.5
STATE_RETRY_SECONDS = 1.5
STALE_RETRY_SECONDS = 3.0
MAX_BACKOFF_SECONDS = 30.0
MAX_CONSECUTIVE_ERRORS = 5
MAX_CONSECUTIVE_STALE = 10
MAX_READ_FAILURES = 10

MAX_ERROR_LENGTH = 200


def cause_of_death(last_phase: str, last_action: str) -> str:
    """Describe how the adventurer died from the last phase and action."""
    if last_phase in (GamePhase.IN_BATTLE.value, GamePhase.STARTER_BEAST.value):
        return f"Killed in battle (last action: {last_action})"
    if last_phase == GamePhase.EXPLORING.value:
        return "Died while exploring (obstacle/ambush)"
    return f"Died (HP reached 0 after {last_action or last_phase})"


def error_backoff(consecutive_errors: int) -> float:
    """Exponential backoff for the nth consecutive failure, capped at 30s."""
    return min(LOOP_DELAY_SECONDS * 2 ** (consecutive_errors - 1), MAX_BACKOFF_SECONDS)


class GameLoop:
    """Plays one game until the adventurer dies.

    Args:
        game_id: Game token id
        reader: Chain reader for state snapshots
        executor: Transaction executor for this game's account
        engine: Per-game strategy engine
        policy: Error phrase lists for failure triage
        events: Telemetry sink
        sleep: Awaitable sleep, replaced in tests
    """

    def __init__(
        self,
        game_id: int,
        reader: ChainReader,
        executor: TransactionExecutor,
        engine: StrategyEngine,
        policy: ErrorPolicy | None = None,
        events: EventSink | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.game_id = game_id
        self.reader = reader
        self.executor = executor
        self.engine = engine
        self.policy = policy or ErrorPolicy()
        self.events = events
        self.sleep = sleep
        self.tracker = PhaseTracker()
        self.last_phase = "unknown"
        self.last_action = "unknown"
        self.consecutive_errors = 0
        self.consecutive_stale = 0
        self.read_failures = 0

    async def run(self) -> GameSummary:
        """Play until death.

        Returns:
            Summary of the finished game

        Raises:
            GameStateError: On a permanent failure or an exhausted error budget
        """
        logger.info("Resuming game", extra={"game_id": self.game_id})
        state: GameState | None = None

        while True:
            try:
                if state is None:
                    state = await self.reader.read_game_state(self.game_id)
                current, state = state, None

                if current is None:
                    await self._read_failed()
                    continue
                self.read_failures = 0

                log_adventurer_state(current.adventurer)
                if current.adventurer.health == 0:
                    return self._finish(current)

                state = await self._step(current)
            except GameStateError:
                raise
            except Exception as e:
                state = None
                await self._triage(e)

    async def _step(self, state: GameState) -> GameState | None:
        """Decide and execute one action for a live adventurer.

        Returns:
            Post-transaction state, or None when the next iteration should read
        """
        phase = self.tracker.observe(state)
        self.last_phase = phase.value
        logger.info("Phase detected", extra={"game_id": self.game_id, "phase": phase.value})
        self._emit(state_update_event(self.game_id, phase.value, state))

        decision = self.engine.decide(self.game_id, state, phase)

        if phase == GamePhase.SHOPPING and not decision.calls:
            self.tracker.mark_shopped()
            logger.info("Nothing to buy, exploring instead")
            phase = GamePhase.EXPLORING
            decision = self.engine.decide(self.game_id, state, phase)

        if not decision.calls:
            self._reset_error_counts()
            await self.sleep(LOOP_DELAY_SECONDS)
            return None

        return await self._execute(state, phase, decision)

    async def _execute(self, state: GameState, phase: GamePhase, decision: BotDecision) -> GameState | None:
        self.last_action = decision.action
        logger.info(
            "Decision",
            extra={"game_id": self.game_id, "action": decision.action, "reason": decision.reason},
        )
        self._emit(DecisionEvent(phase=phase.value, action=decision.action, reason=decision.reason))

        await self.executor.execute(decision.calls, decision.action)
        self._reset_error_counts()
        if phase == GamePhase.SHOPPING:
            self.tracker.mark_shopped()
        return await self.executor.wait_for_fresh_state(self.reader, self.game_id, state)

    def _finish(self, state: GameState) -> GameSummary:
        adventurer = state.adventurer
        summary = GameSummary(
            game_id=self.game_id,
            level=adventurer.level,
            xp=adventurer.xp,
            gold=adventurer.gold,
            last_phase=self.last_phase,
            last_action=self.last_action,
            cause_of_death=cause_of_death(self.last_phase, self.last_action),
            stats=adventurer.stats,
        )
        logger.info(
            "Adventurer died",
            extra={"game_id": self.game_id, "adventurer_level": summary.level, "xp": summary.xp, "gold": summary.gold},
        )
        self._emit(state_update_event(self.game_id, GamePhase.DEAD.value, state))
        self._emit(GameSummaryEvent(summary=summary))
        return summary

    async def _read_failed(self) -> None:
        self.read_failures += 1
        logger.error(
            "Failed to fetch game state, retrying",
            extra={"game_id": self.game_id, "failures": self.read_failures},
        )
        if self.read_failures > MAX_READ_FAILURES:
            raise GameStateError("Too many consecutive state read failures")
        await self.sleep(STATE_RETRY_SECONDS)

    def _reset_error_counts(self) -> None:
        self.consecutive_errors = 0
        self.consecutive_stale = 0

    async def _triage(self, error: Exception) -> None:
        """Classify a failed iteration.

        Raises:
            GameStateError: For hard-permanent errors, an exhausted error budget
                or a stale streak that never clears
        """
        message = str(error)
        logger.error("Error in game loop", extra={"game_id": self.game_id, "error": message[:MAX_ERROR_LENGTH]})

        if self.policy.is_hard_permanent(message):
            logger.error("Permanent error, stopping game loop", extra={"game_id": self.game_id})
            raise GameStateError(message, current_state=self.last_phase) from error

        if self.policy.is_likely_stale(message):
            self.consecutive_stale += 1
            if self.consecutive_stale > MAX_CONSECUTIVE_STALE:
                raise GameStateError(
                    f"Error persisted after {MAX_CONSECUTIVE_STALE} state refreshes: {message}",
                    current_state=self.last_phase,
                ) from error
            logger.warning(
                "Likely stale state, re-fetching",
                extra={"error": message[:120], "attempt": self.consecutive_stale},
            )
            await self.sleep(STALE_RETRY_SECONDS)
            return

        self.consecutive_errors += 1
        if self.consecutive_errors > MAX_CONSECUTIVE_ERRORS:
            raise GameStateError(
                f"Too many consecutive errors: {message}", current_state=self.last_phase
            ) from error

        backoff = error_backoff(self.consecutive_errors)
        logger.info(
            "Retrying after error",
            extra={"backoff": backoff, "attempt": self.consecutive_errors, "budget": MAX_CONSECUTIVE_ERRORS},
        )
        await self.sleep(backoff)

    def _emit(self, event: BotEvent) -> None:
        if self.events is not None:
            self.events.emit(event)
