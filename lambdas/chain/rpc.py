"""Async Starknet JSON-RPC client.

Reads are idempotent and retried on transport failures and retryable HTTP
statuses with exponential backoff. Submissions are sent once; the execution
controller owns their retry policy.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from aws_lambda_powertools import Logger
from pydantic import BaseModel, Field, field_validator

from shared.exceptions import ChainError, RpcError
from shared.utils import parse_felt

from .calls import Call
from .hashing import OutsideExecution, ResourceBound, ResourceBounds

logger = Logger(child=True)

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}
DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_READ_RETRIES = 2
DEFAULT_BACKOFF_SECONDS = 0.2

# starknet_getTransactionReceipt: TXN_HASH_NOT_FOUND
TXN_HASH_NOT_FOUND = 29

# Fallback bounds when fee estimation fails: block prices x3
FALLBACK_PRICE_MULTIPLIER = 3
FALLBACK_L1_GAS_AMOUNT = 0x4E20
FALLBACK_L2_GAS_AMOUNT = 0x1312D00
FALLBACK_L1_DATA_GAS_AMOUNT = 0xC00
ESTIMATE_SAFETY_PERCENT = 150
MAX_LOGGED_BODY = 200


class ExecutionStatus(str, Enum):
    """Receipt execution status."""

    SUCCEEDED = "SUCCEEDED"
    REVERTED = "REVERTED"
    PENDING = "PENDING"
    NOT_FOUND = "NOT_FOUND"


class ReceiptEvent(BaseModel):
    """Event emitted by a transaction."""

    from_address: int = 0
    keys: list[int] = Field(default_factory=list)
    data: list[int] = Field(default_factory=list)

    @field_validator("from_address", mode="before")
    @classmethod
    def _parse_address(cls, value: Any) -> int:
        return parse_felt(value)

    @field_validator("keys", "data", mode="before")
    @classmethod
    def _parse_felts(cls, value: Any) -> list[int]:
        return [parse_felt(v) for v in value or []]


class TransactionReceipt(BaseModel):
    """Transaction outcome."""

    transaction_hash: str
    execution_status: ExecutionStatus = ExecutionStatus.PENDING
    revert_reason: str | None = None
    events: list[ReceiptEvent] = Field(default_factory=list)

    @property
    def is_final(self) -> bool:
        """Check if the execution status is settled."""
        return self.execution_status in (ExecutionStatus.SUCCEEDED, ExecutionStatus.REVERTED)


@dataclass
class SubmissionResult:
    """Transaction hash on success, error text otherwise."""

    tx_hash: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Check if a transaction hash was returned."""
        return self.tx_hash is not None


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return False


class StarknetRpc:
    """JSON-RPC client over an httpx.AsyncClient.

    Args:
        url: Node endpoint
        client: Optional client (tests pass one built on httpx.MockTransport)
        timeout: Request timeout in seconds
        read_retries: Extra attempts for idempotent reads
        backoff_seconds: Base delay, doubled per retry
    """

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        read_retries: int = DEFAULT_READ_RETRIES,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    ) -> None:
        self.url = url
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.read_retries = read_retries
        self.backoff_seconds = backoff_seconds
        self._request_id = 0

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def request(self, method: str, params: Any) -> Any:
        """Send one JSON-RPC request.

        Args:
            method: RPC method name
            params: RPC params object

        Returns:
            The ``result`` member of the response

        Raises:
            RpcError: If the response carries an error object
            ChainError: If the body is not a JSON-RPC response object
            httpx.HTTPError: On transport failure or non-2xx status
        """
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        response = await self.client.post(self.url, json=payload)
        response.raise_for_status()
        try:
            body = response.json()
        except ValueError as exc:
            raise _malformed(method, response.text) from exc
        if not isinstance(body, dict):
            raise _malformed(method, body)
        error = body.get("error")
        if error:
            if not isinstance(error, dict):
                raise _malformed(method, body)
            raise RpcError(error.get("code"), error.get("message", ""), error.get("data"))
        return body.get("result")

    async def read(self, method: str, params: Any) -> Any:
        """Send an idempotent request, retrying transient failures.

        Raises:
            RpcError: If the node returns an error object
            ChainError: If retries are exhausted or the response is malformed
        """
        attempts = max(0, self.read_retries) + 1
        for attempt in range(attempts):
            try:
                return await self.request(method, params)
            except httpx.HTTPError as exc:
                if not _is_retryable(exc) or attempt >= attempts - 1:
                    raise ChainError(f"{method} failed: {exc}") from exc
                delay = self.backoff_seconds * (2**attempt)
                logger.warning(
                    "RPC read failed, retrying",
                    extra={"method": method, "attempt": attempt + 1, "delay": delay, "error": str(exc)},
                )
                await asyncio.sleep(delay)
        raise ChainError(f"{method} failed")

    # =========================================================================
    # Reads
    # =========================================================================

    async def call(self, contract: int, entrypoint: str, calldata: list[int] | None = None) -> list[int]:
        """Call a view function at the latest block."""
        view = Call.build(contract, entrypoint, calldata)
        result = await self.read(
            "starknet_call",
            {
                "request": {
                    "contract_address": hex(view.to),
                    "entry_point_selector": hex(view.selector),
                    "calldata": [hex(felt) for felt in view.calldata],
                },
                "block_id": "latest",
            },
        )
        if result is None:
            return []
        if not isinstance(result, list):
            raise _malformed("starknet_call", result)
        return _felts("starknet_call", result)

    async def get_nonce(self, address: int) -> int:
        result = await self.read(
            "starknet_getNonce", {"block_id": "latest", "contract_address": hex(address)}
        )
        try:
            return parse_felt(result)
        except (TypeError, ValueError) as exc:
            raise _malformed("starknet_getNonce", result) from exc

    async def get_receipt(self, tx_hash: str) -> TransactionReceipt | None:
        """Fetch a transaction receipt.

        Returns:
            Receipt, or None while the node does not know the hash
        """
        try:
            result = await self.read("starknet_getTransactionReceipt", {"transaction_hash": tx_hash})
        except RpcError as exc:
            if exc.code == TXN_HASH_NOT_FOUND:
                return None
            raise
        if not result:
            return None
        if not isinstance(result, dict):
            raise _malformed("starknet_getTransactionReceipt", result)
        try:
            return TransactionReceipt(
                transaction_hash=result.get("transaction_hash", tx_hash),
                execution_status=result.get("execution_status", ExecutionStatus.PENDING),
                revert_reason=result.get("revert_reason"),
                events=result.get("events") or [],
            )
        except ValueError as exc:
            raise _malformed("starknet_getTransactionReceipt", result) from exc

    async def get_gas_prices(self) -> tuple[int, int, int]:
        """Latest block (l1, l2, l1 data) gas prices in fri."""
        block = await self.read("starknet_getBlockWithTxHashes", {"block_id": "latest"})
        if not isinstance(block, dict):
            raise _malformed("starknet_getBlockWithTxHashes", block)

        def price(key: str) -> int:
            return parse_felt((block.get(key) or {}).get("price_in_fri", "0x1"))

        try:
            return price("l1_gas_price"), price("l2_gas_price"), price("l1_data_gas_price")
        except (AttributeError, TypeError, ValueError) as exc:
            raise _malformed("starknet_getBlockWithTxHashes", block) from exc

    async def estimate_resource_bounds(self, sender: int, calldata: list[int], nonce: int) -> ResourceBounds:
        """Estimate V3 bounds, falling back to block prices on failure.

        Args:
            sender: Account address
            calldata: __execute__ calldata
            nonce: Account nonce

        Returns:
            Resource bounds with a 50% safety margin, or the fallback bounds
        """
        l1_price, l2_price, l1_data_price = await self.get_gas_prices()
        try:
            estimates = await self.read(
                "starknet_estimateFee",
                {
                    "request": [
                        {
                            "type": "INVOKE",
                            "version": "0x3",
                            "sender_address": hex(sender),
                            "nonce": hex(nonce),
                            "calldata": [hex(felt) for felt in calldata],
                            "resource_bounds": _fallback_bounds(l1_price, l2_price, l1_data_price).to_rpc(),
                            "tip": "0x0",
                            "paymaster_data": [],
                            "nonce_data_availability_mode": "L1",
                            "fee_data_availability_mode": "L1",
                            "account_deployment_data": [],
                            "signature": ["0x1"],
                        }
                    ],
                    "simulation_flags": ["SKIP_VALIDATE"],
                    "block_id": "latest",
                },
            )
        except ChainError as exc:
            logger.warning("Fee estimation failed, using block-price bounds", extra={"error": str(exc)})
            return _fallback_bounds(l1_price, l2_price, l1_data_price)

        if not isinstance(estimates, list) or not estimates or not isinstance(estimates[0], dict):
            logger.warning(
                "Unexpected fee estimate, using block-price bounds",
                extra={"estimate": str(estimates)[:MAX_LOGGED_BODY]},
            )
            return _fallback_bounds(l1_price, l2_price, l1_data_price)
        estimate = estimates[0]

        def bound(amount_key: str, price_key: str, default_price: int) -> ResourceBound:
            amount = parse_felt(estimate.get(amount_key, "0x0"))
            unit_price = parse_felt(estimate.get(price_key, hex(default_price)))
            return ResourceBound(
                max_amount=amount * ESTIMATE_SAFETY_PERCENT // 100 + 1,
                max_price_per_unit=unit_price * ESTIMATE_SAFETY_PERCENT // 100,
            )

        try:
            return ResourceBounds(
                l1_gas=bound("l1_gas_consumed", "l1_gas_price", l1_price),
                l2_gas=bound("l2_gas_consumed", "l2_gas_price", l2_price),
                l1_data_gas=bound("l1_data_gas_consumed", "l1_data_gas_price", l1_data_price),
            )
        except (TypeError, ValueError) as exc:
            logger.warning("Unparseable fee estimate, using block-price bounds", extra={"error": str(exc)})
            return _fallback_bounds(l1_price, l2_price, l1_data_price)

    # =========================================================================
    # Submissions
    # =========================================================================

    async def submit_relayed_execution(
        self,
        controller: int,
        outside_execution: OutsideExecution,
        signature: list[int],
    ) -> SubmissionResult:
        """Submit a signed OutsideExecution through the paymaster relayer."""
        return await self._submit(
            "cartridge_addExecuteOutsideTransaction",
            {
                "address": hex(controller),
                "outside_execution": outside_execution.to_rpc(),
                "signature": [hex(felt) for felt in signature],
            },
        )

    async def submit_invoke(
        self,
        sender: int,
        calldata: list[int],
        nonce: int,
        resource_bounds: ResourceBounds,
        signature: list[int],
    ) -> SubmissionResult:
        """Submit a signed V3 INVOKE paid from the account balance."""
        return await self._submit(
            "starknet_addInvokeTransaction",
            {
                "invoke_transaction": {
                    "type": "INVOKE",
                    "version": "0x3",
                    "sender_address": hex(sender),
                    "calldata": [hex(felt) for felt in calldata],
                    "signature": [hex(felt) for felt in signature],
                    "nonce": hex(nonce),
                    "resource_bounds": resource_bounds.to_rpc(),
                    "tip": "0x0",
                    "paymaster_data": [],
                    "account_deployment_data": [],
                    "nonce_data_availability_mode": "L1",
                    "fee_data_availability_mode": "L1",
                }
            },
        )

    async def _submit(self, method: str, params: dict) -> SubmissionResult:
        try:
            result = await self.request(method, params)
        except RpcError as exc:
            logger.error("Submission rejected", extra={"method": method, "error": str(exc)})
            return SubmissionResult(error=str(exc))
        except ChainError as exc:
            logger.error("Submission response unreadable", extra={"method": method, "error": str(exc)})
            return SubmissionResult(error=str(exc))
        except httpx.HTTPError as exc:
            logger.error("Submission transport error", extra={"method": method, "error": str(exc)})
            return SubmissionResult(error=f"{method} failed: {exc}")

        tx_hash = result.get("transaction_hash") if isinstance(result, dict) else None
        if not tx_hash or not isinstance(tx_hash, str):
            return SubmissionResult(error=f"No transaction hash in response: {str(result)[:500]}")
        return SubmissionResult(tx_hash=tx_hash)


def _malformed(method: str, body: Any) -> ChainError:
    """Error for a node response that does not have the expected shape."""
    return ChainError(f"malformed RPC response from {method}: {str(body)[:MAX_LOGGED_BODY]}")


def _felts(method: str, values: list) -> list[int]:
    try:
        return [parse_felt(felt) for felt in values]
    except (TypeError, ValueError) as exc:
        raise _malformed(method, values) from exc


def _fallback_bounds(l1_price: int, l2_price: int, l1_data_price: int) -> ResourceBounds:
    return ResourceBounds(
        l1_gas=ResourceBound(FALLBACK_L1_GAS_AMOUNT, l1_price * FALLBACK_PRICE_MULTIPLIER),
        l2_gas=ResourceBound(FALLBACK_L2_GAS_AMOUNT, l2_price * FALLBACK_PRICE_MULTIPLIER),
        l1_data_gas=ResourceBound(FALLBACK_L1_DATA_GAS_AMOUNT, l1_data_price * FALLBACK_PRICE_MULTIPLIER),
    )
