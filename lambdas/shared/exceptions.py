"""Custom exceptions for the dungeon bot."""

import json
from typing import Any


class DungeonBotError(Exception):
    """Base exception for all bot errors."""

    def __init__(self, message: str = "An error occurred") -> None:
        """Initialize exception with message.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(self.message)


class ConfigurationError(DungeonBotError):
    """Configuration or environment error."""

    def __init__(self, message: str, config_key: str | None = None) -> None:
        """Initialize configuration error.

        Args:
            message: Error message
            config_key: Optional configuration key that caused the error
        """
        self.config_key = config_key
        super().__init__(message)


class GameStateError(DungeonBotError):
    """Unrecoverable game lifecycle fault.

    Raised for dead adventurers, games owned by someone else, games that are
    no longer in progress, and exhausted failure budgets.
    """

    def __init__(self, message: str, current_state: str | None = None) -> None:
        """Initialize game state error.

        Args:
            message: Error message describing the fault
            current_state: Game phase when the error occurred
        """
        self.current_state = current_state
        super().__init__(message)


class ChainError(DungeonBotError):
    """Chain read or write failure."""


class RpcError(ChainError):
    """JSON-RPC error object returned by a node or relayer."""

    MAX_MESSAGE_LENGTH = 500

    def __init__(self, code: int | None, message: str, data: Any = None) -> None:
        """Initialize RPC error.

        The rendered message keeps the node's execution error text so revert
        phrases survive classification.

        Args:
            code: JSON-RPC error code
            message: JSON-RPC error message
            data: Optional error data (string or object)
        """
        self.code = code
        self.rpc_message = message
        self.data = data
        super().__init__(format_rpc_error(code, message, data))


class ContractRevertError(ChainError):
    """Transaction rejected by the game contract. Never retried."""

    def __init__(self, reason: str, tx_hash: str | None = None) -> None:
        """Initialize revert error.

        Args:
            reason: Revert reason reported by the node
            tx_hash: Transaction hash, when the revert happened on chain
        """
        self.reason = reason
        self.tx_hash = tx_hash
        super().__init__(f"Transaction reverted: {reason}")


class TransactionFailedError(ChainError):
    """Submission retries exhausted."""

    def __init__(self, message: str, attempts: int) -> None:
        """Initialize failure error.

        Args:
            message: Last error seen
            attempts: Number of attempts made
        """
        self.attempts = attempts
        super().__init__(message)


class SigningError(DungeonBotError):
    """Malformed signature bundle or signer misuse."""


class SignerLifecycleError(SigningError):
    """A single-use signer was used more than once."""


def format_rpc_error(code: int | None, message: str, data: Any = None) -> str:
    """Render a JSON-RPC error the way revert classification expects.

    Args:
        code: JSON-RPC error code
        message: Error message
        data: Error data; strings are kept as-is, objects contribute their
            ``execution_error`` field or their JSON form

    Returns:
        Error string truncated to 500 characters
    """
    detail = ""
    if isinstance(data, str):
        detail = data
    elif isinstance(data, dict) and data.get("execution_error") is not None:
        execution_error = data["execution_error"]
        detail = (
            execution_error
            if isinstance(execution_error, str)
            else json.dumps(execution_error)
        )
    elif data is not None:
        detail = json.dumps(data)

    text = f"{code}: {message} {detail}".rstrip()
    return text[: RpcError.MAX_MESSAGE_LENGTH]
