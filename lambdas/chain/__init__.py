"""Starknet access: calls, JSON-RPC, state decoding, session signing, execution."""

from .calls import Call, CallBuilder
from .executor import TransactionExecutor
from .rpc import ExecutionStatus, StarknetRpc, SubmissionResult, TransactionReceipt
from .session import SessionCredentials, SessionTokenSigner, apply_wildcard_fix
from .state import ChainReader, decode_game_state

__all__ = [
    "Call",
    "CallBuilder",
    "ChainReader",
    "ExecutionStatus",
    "SessionCredentials",
    "SessionTokenSigner",
    "StarknetRpc",
    "SubmissionResult",
    "TransactionExecutor",
    "TransactionReceipt",
    "apply_wildcard_fix",
    "decode_game_state",
]
