"""Transaction execution controller.

Signs and submits a multicall with a fresh single-use session signer per
attempt, classifies failures, waits for the receipt and re-polls game state
until it reflects the transaction.
"""

import asyncio
import random
import time
from collections.abc import Awaitable, Callable

from aws_lambda_powertools import Logger

from shared.config import SUBMISSION_MODES
from shared.events import EventSink, TxStatusEvent
from shared.exceptions import ChainError, ContractRevertError, TransactionFailedError
from shared.models import GameState

from .calls import Call
from .hashing import (
    ANY_CALLER,
    OutsideExecution,
    execute_calldata,
    invoke_v3_hash,
    outside_execution_hash,
)
from .rpc import ExecutionStatus, StarknetRpc, SubmissionResult, TransactionReceipt
from .session import SessionCredentials, SessionSigner, SignerFactory, session_signer_factory
from .state import ChainReader

logger = Logger(child=True)

MAX_ATTEMPTS = 3
SUBMIT_TIMEOUT_SECONDS = 10.0
RETRY_DELAY_SECONDS = 2.0
RECEIPT_INITIAL_WAIT_SECONDS = 0.5
RECEIPT_POLL_INTERVAL_SECONDS = 1.0
RECEIPT_POLL_ATTEMPTS = 20
STATE_POLL_INTERVAL_SECONDS = 1.5
STATE_POLL_ATTEMPTS = 5

OUTSIDE_EXECUTION_TTL_SECONDS = 600
NONCE_CHANNEL_BITS = 128
NONCE_MASK = 1

MAX_ERROR_LENGTH = 200

# Substrings of submission errors that mean the contract rejected the call
REVERT_PATTERNS = (
    "execution error",
    "Transaction execution error",
    "is not playable",
    "Game over",
    "reverted",
    "Failure reason",
    "Error in the called contract",
)

Sleep = Callable[[float], Awaitable[None]]


def is_contract_revert(message: str) -> bool:
    """Check whether a submission error is a contract revert (not retryable)."""
    return any(pattern in message for pattern in REVERT_PATTERNS)


class TransactionExecutor:
    """Submits calls for one controller account.

    Submissions are serialized: one transaction is in flight at a time since
    nonces advance sequentially.

    Args:
        rpc: JSON-RPC client used for submission and receipts
        credentials: Session credentials
        chain_id: Chain id felt
        submission_mode: "relayed" (paymaster OutsideExecution) or "invoke"
        events: Telemetry sink for tx_status events
        signer_factory: Produces a fresh signer per attempt
        sleep: Awaitable sleep, replaced in tests
        clock: Wall clock in seconds, replaced in tests
        rng: Random source for OutsideExecution nonce channels
    """

    def __init__(
        self,
        rpc: StarknetRpc,
        credentials: SessionCredentials,
        chain_id: int,
        submission_mode: str = "relayed",
        events: EventSink | None = None,
        signer_factory: SignerFactory | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ) -> None:
        if submission_mode not in SUBMISSION_MODES:
            raise ValueError(f"Unknown submission mode: {submission_mode}")
        self.rpc = rpc
        self.credentials = credentials
        self.chain_id = chain_id
        self.submission_mode = submission_mode
        self.events = events
        self.signer_factory = signer_factory or session_signer_factory(credentials)
        self.sleep = sleep
        self.clock = clock
        self.rng = rng or random.SystemRandom()
        self._lock = asyncio.Lock()
        self._teardowns: set[asyncio.Task] = set()

    async def execute(self, calls: list[Call], description: str) -> TransactionReceipt:
        """Submit calls and wait for the receipt.

        Args:
            calls: Multicall to execute
            description: Label for logs and telemetry

        Returns:
            Receipt; PENDING when the receipt did not settle within the poll budget

        Raises:
            ContractRevertError: If the contract rejected the calls (never retried)
            TransactionFailedError: If every attempt failed
        """
        async with self._lock:
            return await self._execute(calls, description)

    async def _execute(self, calls: list[Call], description: str) -> TransactionReceipt:
        last_error = "unknown error"

        for attempt in range(1, MAX_ATTEMPTS + 1):
            logger.info(
                "Executing transaction",
                extra={"description": description, "attempt": attempt, "calls": [c.entrypoint for c in calls]},
            )
            self._emit("submitting", description, attempt=attempt)

            try:
                result = await self._submit_once(calls)
            except ChainError as e:
                result = SubmissionResult(error=str(e))

            if not result.ok:
                last_error = result.error or "Timed out waiting for transaction hash"
                logger.error("Transaction submission failed", extra={"attempt": attempt, "error": last_error})
                self._emit("error", description, error=last_error[:MAX_ERROR_LENGTH], attempt=attempt)
                if is_contract_revert(last_error):
                    raise ContractRevertError(last_error)
                if attempt < MAX_ATTEMPTS:
                    await self.sleep(RETRY_DELAY_SECONDS * attempt)
                continue

            tx_hash = result.tx_hash
            logger.info("TX submitted", extra={"description": description, "tx_hash": tx_hash})
            self._emit("submitted", description, tx_hash=tx_hash)

            receipt = await self.wait_for_receipt(tx_hash)
            if receipt is not None and receipt.execution_status == ExecutionStatus.REVERTED:
                reason = receipt.revert_reason or "unknown"
                logger.error("TX reverted", extra={"description": description, "tx_hash": tx_hash, "reason": reason})
                self._emit("reverted", description, tx_hash=tx_hash, error=reason[:MAX_ERROR_LENGTH])
                raise ContractRevertError(reason, tx_hash)

            logger.info("TX confirmed", extra={"description": description, "tx_hash": tx_hash})
            self._emit("confirmed", description, tx_hash=tx_hash)
            return receipt or TransactionReceipt(transaction_hash=tx_hash)

        raise TransactionFailedError(f"Transaction failed: {last_error}", attempts=MAX_ATTEMPTS)

    async def _submit_once(self, calls: list[Call]) -> SubmissionResult:
        signer = self.signer_factory()
        try:
            if self.submission_mode == "invoke":
                submit = self._submit_invoke(signer, calls)
            else:
                submit = self._submit_relayed(signer, calls)
            return await asyncio.wait_for(submit, SUBMIT_TIMEOUT_SECONDS)
        except TimeoutError:
            logger.warning("Timeout waiting for transaction hash")
            return SubmissionResult()
        finally:
            self._discard(signer)

    async def _submit_relayed(self, signer: SessionSigner, calls: list[Call]) -> SubmissionResult:
        outside_execution = OutsideExecution(
            caller=ANY_CALLER,
            nonce_channel=self.rng.getrandbits(NONCE_CHANNEL_BITS),
            nonce_mask=NONCE_MASK,
            execute_after=0,
            execute_before=int(self.clock()) + OUTSIDE_EXECUTION_TTL_SECONDS,
            calls=calls,
        )
        controller = self.credentials.controller_address
        message_hash = outside_execution_hash(outside_execution, controller, self.chain_id)
        signature = signer.sign(message_hash, len(calls))
        return await self.rpc.submit_relayed_execution(controller, outside_execution, signature)

    async def _submit_invoke(self, signer: SessionSigner, calls: list[Call]) -> SubmissionResult:
        sender = self.credentials.controller_address
        calldata = execute_calldata(calls)
        nonce = await self.rpc.get_nonce(sender)
        bounds = await self.rpc.estimate_resource_bounds(sender, calldata, nonce)
        tx_hash = invoke_v3_hash(sender, calldata, self.chain_id, nonce, bounds)
        signature = signer.sign(tx_hash, len(calls))
        return await self.rpc.submit_invoke(sender, calldata, nonce, bounds, signature)

    def _discard(self, signer: SessionSigner) -> None:
        """Tear the signer down in the background; teardown failures are dropped."""
        task = asyncio.create_task(signer.aclose())
        self._teardowns.add(task)
        task.add_done_callback(self._teardown_done)

    def _teardown_done(self, task: asyncio.Task) -> None:
        self._teardowns.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug("Ignoring signer teardown failure", extra={"error": str(error)})

    async def wait_for_receipt(self, tx_hash: str) -> TransactionReceipt | None:
        """Poll for a settled receipt.

        Returns:
            Receipt once SUCCEEDED or REVERTED, or None after the poll budget
        """
        await self.sleep(RECEIPT_INITIAL_WAIT_SECONDS)

        for attempt in range(1, RECEIPT_POLL_ATTEMPTS + 1):
            try:
                receipt = await self.rpc.get_receipt(tx_hash)
            except ChainError as e:
                logger.warning("Receipt fetch error", extra={"tx_hash": tx_hash, "error": str(e)[:100]})
                receipt = None

            if receipt is not None and receipt.is_final:
                return receipt
            logger.debug("TX pending", extra={"tx_hash": tx_hash, "attempt": attempt})
            await self.sleep(RECEIPT_POLL_INTERVAL_SECONDS)

        logger.warning("Receipt not settled", extra={"tx_hash": tx_hash, "attempts": RECEIPT_POLL_ATTEMPTS})
        return None

    async def wait_for_fresh_state(
        self,
        reader: ChainReader,
        game_id: int,
        previous: GameState,
    ) -> GameState | None:
        """Re-read game state until it differs from the pre-transaction snapshot.

        Args:
            reader: Chain reader
            game_id: Game token id
            previous: Snapshot the transaction was decided on

        Returns:
            Fresh state, or the last read when the node stays stale
        """
        before = previous.fingerprint()
        for attempt in range(1, STATE_POLL_ATTEMPTS + 1):
            await self.sleep(STATE_POLL_INTERVAL_SECONDS)
            state = await reader.read_game_state(game_id)
            if state is not None and state.fingerprint() != before:
                if attempt > 1:
                    logger.info("Fresh state", extra={"game_id": game_id, "polls": attempt})
                return state

        logger.warning("State still stale, proceeding anyway", extra={"game_id": game_id})
        return await reader.read_game_state(game_id)

    def _emit(
        self,
        status: str,
        description: str,
        tx_hash: str | None = None,
        error: str | None = None,
        attempt: int | None = None,
    ) -> None:
        if self.events is None:
            return
        self.events.emit(
            TxStatusEvent(status=status, description=description, tx_hash=tx_hash, error=error, attempt=attempt)
        )
