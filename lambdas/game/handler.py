"""Game Lambda handler: resume or start one game and play it until the deadline."""

import asyncio
from typing import Any

from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import ValidationError

from chain.calls import CallBuilder
from chain.executor import TransactionExecutor
from chain.rpc import StarknetRpc
from chain.session import SessionCredentials
from chain.state import ChainReader
from shared.config import Config, get_config
from shared.events import EventSink
from shared.exceptions import ChainError, GameStateError
from shared.secrets import get_session_private_key
from strategy.engine import StrategyEngine

from .lifecycle import GameLifecycle
from .loop import GameLoop
from .models import PlayOutcome, PlayRequest

logger = Logger()
tracer = Tracer()
metrics = Metrics(namespace="DungeonBot")

# Leave time to flush logs and metrics before the invocation is killed
DEADLINE_MARGIN_SECONDS = 10.0

_credentials: SessionCredentials | None = None


def get_credentials(config: Config) -> SessionCredentials:
    """Get or create the session credentials singleton."""
    global _credentials
    if _credentials is None:
        _credentials = SessionCredentials.from_config(config, get_session_private_key())
    return _credentials


def reset_service() -> None:
    """Reset the credentials singleton (for testing)."""
    global _credentials
    _credentials = None


async def play(request: PlayRequest, config: Config, credentials: SessionCredentials, timeout: float | None) -> PlayOutcome:
    """Play one game.

    Args:
        request: Invocation request
        config: Application configuration
        credentials: Session credentials
        timeout: Seconds before the game loop is cancelled (None for no limit)

    Returns:
        PlayOutcome
    """
    events = EventSink()
    rpc = StarknetRpc(config.rpc_url)
    game_id = request.game_id

    try:
        calls = CallBuilder(config)
        executor = TransactionExecutor(
            rpc, credentials, config.chain_id, config.submission_mode, events=events
        )
        async with asyncio.timeout(timeout):
            if request.new_game:
                lifecycle = GameLifecycle(config, rpc, executor, calls, events)
                game_id = await lifecycle.buy_game(request.name)
                await lifecycle.start_game(game_id)

            events.bind(game_id)
            loop = GameLoop(
                game_id,
                ChainReader(rpc, config.game_address),
                executor,
                StrategyEngine(calls, events),
                policy=config.error_policy,
                events=events,
            )
            summary = await loop.run()
    except TimeoutError:
        logger.warning("Deadline reached, stopping game", extra={"game_id": game_id})
        return PlayOutcome(status="timeout", game_id=game_id)
    except (GameStateError, ChainError) as e:
        logger.error("Game aborted", extra={"game_id": game_id, "error": e.message})
        return PlayOutcome(status="aborted", game_id=game_id, error=e.message)
    finally:
        await rpc.aclose()

    return PlayOutcome(status="dead", game_id=game_id, summary=summary)


@logger.inject_lambda_context
@tracer.capture_lambda_handler
@metrics.log_metrics
def lambda_handler(event: dict[str, Any], context: LambdaContext) -> dict[str, Any]:
    """Main Lambda entry point.

    Event: ``{"game_id": N}`` to resume, ``{"new_game": true, "name": "BOT"}``
    to buy and start a game.
    """
    try:
        request = PlayRequest.model_validate(event)
    except ValidationError as e:
        logger.warning("Invalid request", extra={"errors": e.errors(include_url=False)})
        return {"status": "invalid", "error": str(e)}

    config = get_config()
    credentials = get_credentials(config)
    timeout = max(0.0, context.get_remaining_time_in_millis() / 1000 - DEADLINE_MARGIN_SECONDS)

    outcome = asyncio.run(play(request, config, credentials, timeout))

    metrics.add_metric(name=f"Games{outcome.status.capitalize()}", unit=MetricUnit.Count, value=1)
    if outcome.summary is not None:
        metrics.add_metric(name="AdventurerLevel", unit=MetricUnit.Count, value=outcome.summary.level)
        metrics.add_metric(name="AdventurerXp", unit=MetricUnit.Count, value=outcome.summary.xp)

    return outcome.model_dump(mode="json")
