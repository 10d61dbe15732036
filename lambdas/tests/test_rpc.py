"""Tests for the async JSON-RPC client."""

import asyncio
import json

import httpx
import pytest

from chain.calls import Call
from chain.hashing import OutsideExecution, ResourceBound, ResourceBounds
from chain.rpc import ExecutionStatus, StarknetRpc
from shared.exceptions import ChainError, RpcError

URL = "https://rpc.test"

BLOCK = {
    "l1_gas_price": {"price_in_fri": "0x10"},
    "l2_gas_price": {"price_in_fri": "0x20"},
    "l1_data_gas_price": {"price_in_fri": "0x30"},
}


def make_rpc(handler) -> StarknetRpc:
    """Client whose transport is the given request handler."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StarknetRpc(URL, client=client, backoff_seconds=0)


def result(value, request_id=1) -> httpx.Response:
    """JSON-RPC success response."""
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": request_id, "result": value})


def error(code, message, data=None) -> httpx.Response:
    """JSON-RPC error response."""
    body = {"code": code, "message": message}
    if data is not None:
        body["data"] = data
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": body})


def method_of(request: httpx.Request) -> str:
    """JSON-RPC method of an outgoing request."""
    return json.loads(request.content)["method"]


class TestReads:
    """Tests for read retries."""

    def test_call_parses_felts(self) -> None:
        """Test starknet_call results are returned as ints."""
        seen = {}

        def handler(request):
            seen.update(json.loads(request.content))
            return result(["0x1", "0xff"])

        rpc = make_rpc(handler)
        assert asyncio.run(rpc.call(0x10, "balanceOf", [0x20])) == [1, 255]
        assert seen["method"] == "starknet_call"
        assert seen["params"]["request"]["calldata"] == ["0x20"]
        assert seen["params"]["block_id"] == "latest"

    def test_retries_retryable_status(self) -> None:
        """Test a 503 is retried and the next success returned."""
        responses = iter([httpx.Response(503), result("0x7")])
        rpc = make_rpc(lambda request: next(responses))

        assert asyncio.run(rpc.get_nonce(0x10)) == 7

    def test_retries_transport_errors(self) -> None:
        """Test connection failures are retried."""
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return result("0x2")

        assert asyncio.run(make_rpc(handler).get_nonce(0x10)) == 2
        assert len(attempts) == 2

    def test_exhausted_retries(self) -> None:
        """Test persistent 503s raise ChainError after every attempt."""
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(503)

        with pytest.raises(ChainError, match="starknet_getNonce failed"):
            asyncio.run(make_rpc(handler).get_nonce(0x10))
        assert len(attempts) == 3

    def test_client_error_not_retried(self) -> None:
        """Test a 400 fails immediately."""
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(400)

        with pytest.raises(ChainError):
            asyncio.run(make_rpc(handler).get_nonce(0x10))
        assert len(attempts) == 1

    def test_rpc_error_not_retried(self) -> None:
        """Test a node error object is raised as RpcError."""
        attempts = []

        def handler(request):
            attempts.append(request)
            return error(40, "Contract error", "execution reverted")

        with pytest.raises(RpcError) as exc_info:
            asyncio.run(make_rpc(handler).call(0x10, "get_game_state", [1]))
        assert exc_info.value.code == 40
        assert len(attempts) == 1


class TestReceipts:
    """Tests for get_receipt."""

    def test_unknown_hash(self) -> None:
        """Test TXN_HASH_NOT_FOUND means not yet known."""
        rpc = make_rpc(lambda request: error(29, "Transaction hash not found"))
        assert asyncio.run(rpc.get_receipt("0xabc")) is None

    def test_other_errors_raise(self) -> None:
        """Test other node errors propagate."""
        rpc = make_rpc(lambda request: error(-32603, "Internal error"))
        with pytest.raises(RpcError):
            asyncio.run(rpc.get_receipt("0xabc"))

    def test_parses_receipt(self) -> None:
        """Test status, reason and events are parsed."""
        receipt = {
            "transaction_hash": "0xabc",
            "execution_status": "REVERTED",
            "revert_reason": "Action not allowed",
            "events": [{"from_address": "0x10", "keys": ["0x1"], "data": ["0x2", "0x3"]}],
        }
        rpc = make_rpc(lambda request: result(receipt))

        parsed = asyncio.run(rpc.get_receipt("0xabc"))

        assert parsed.execution_status == ExecutionStatus.REVERTED
        assert parsed.is_final
        assert parsed.revert_reason == "Action not allowed"
        assert parsed.events[0].from_address == 0x10
        assert parsed.events[0].data == [2, 3]


class TestSubmissions:
    """Tests for relayed and invoke submissions."""

    def execution(self):
        """Minimal OutsideExecution."""
        return OutsideExecution(1, 2, 1, 0, 100, [Call(to=1, selector=2)])

    def test_relayed_success(self) -> None:
        """Test the relayer hash is returned."""
        seen = {}

        def handler(request):
            seen.update(json.loads(request.content))
            return result({"transaction_hash": "0xfeed"})

        submission = asyncio.run(make_rpc(handler).submit_relayed_execution(0x10, self.execution(), [1, 2]))

        assert submission.ok
        assert submission.tx_hash == "0xfeed"
        assert seen["method"] == "cartridge_addExecuteOutsideTransaction"
        assert seen["params"]["signature"] == ["0x1", "0x2"]

    def test_rejected_submission(self) -> None:
        """Test node errors are returned as error text with the execution error kept."""
        rpc = make_rpc(lambda request: error(41, "Transaction execution error", "Not in battle"))
        submission = asyncio.run(rpc.submit_relayed_execution(0x10, self.execution(), [1]))

        assert not submission.ok
        assert "Not in battle" in submission.error

    def test_transport_failure(self) -> None:
        """Test submissions are not retried on transport failure."""
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(503)

        submission = asyncio.run(make_rpc(handler).submit_relayed_execution(0x10, self.execution(), [1]))

        assert not submission.ok
        assert len(attempts) == 1

    def test_missing_hash(self) -> None:
        """Test a response without a hash is an error."""
        rpc = make_rpc(lambda request: result({"status": "queued"}))
        submission = asyncio.run(rpc.submit_invoke(0x10, [0], 1, fallback_bounds(), [1]))

        assert submission.error.startswith("No transaction hash in response")


def fallback_bounds() -> ResourceBounds:
    """Fallback bounds for block prices 0x10/0x20/0x30."""
    return ResourceBounds(
        l1_gas=ResourceBound(0x4E20, 0x30),
        l2_gas=ResourceBound(0x1312D00, 0x60),
        l1_data_gas=ResourceBound(0xC00, 0x90),
    )


class TestEstimate:
    """Tests for estimate_resource_bounds."""

    def test_adds_safety_margin(self) -> None:
        """Test estimated amounts and prices get 50% headroom."""
        estimate = {
            "l1_gas_consumed": "0x64",
            "l1_gas_price": "0x10",
            "l2_gas_consumed": "0xc8",
            "l2_gas_price": "0x20",
            "l1_data_gas_consumed": "0x0",
            "l1_data_gas_price": "0x30",
        }

        def handler(request):
            if method_of(request) == "starknet_getBlockWithTxHashes":
                return result(BLOCK)
            return result([estimate])

        bounds = asyncio.run(make_rpc(handler).estimate_resource_bounds(0x10, [0], 1))

        assert bounds.l1_gas == ResourceBound(151, 24)
        assert bounds.l2_gas == ResourceBound(301, 48)
        assert bounds.l1_data_gas == ResourceBound(1, 72)

    def test_falls_back_to_block_prices(self) -> None:
        """Test a failed estimate yields fixed amounts at three times block prices."""

        def handler(request):
            if method_of(request) == "starknet_getBlockWithTxHashes":
                return result(BLOCK)
            return httpx.Response(500)

        bounds = asyncio.run(make_rpc(handler).estimate_resource_bounds(0x10, [0], 1))
        assert bounds == fallback_bounds()


def html(request) -> httpx.Response:
    """Gateway error page served with a 200 status."""
    return httpx.Response(200, text="<html>bad gateway</html>")


class TestMalformedResponses:
    """Tests for node responses that do not have the expected shape."""

    def test_non_json_body(self) -> None:
        """Test a non-JSON body is a ChainError and is not retried."""
        attempts = []

        def handler(request):
            attempts.append(request)
            return html(request)

        with pytest.raises(ChainError, match="malformed RPC response from starknet_call"):
            asyncio.run(make_rpc(handler).call(0x10, "get_game_state", [1]))
        assert len(attempts) == 1

    def test_body_not_an_object(self) -> None:
        """Test a JSON array body is rejected."""
        rpc = make_rpc(lambda request: httpx.Response(200, json=[1, 2]))
        with pytest.raises(ChainError, match="malformed"):
            asyncio.run(rpc.get_nonce(0x10))

    def test_error_not_an_object(self) -> None:
        """Test a string error member is rejected rather than crashing."""
        rpc = make_rpc(lambda request: httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": "boom"}))
        with pytest.raises(ChainError, match="malformed"):
            asyncio.run(rpc.get_nonce(0x10))

    @pytest.mark.parametrize("value", [5, "0x1", {"felts": []}, ["0xzz"], [None]])
    def test_call_result_shape(self, value) -> None:
        """Test starknet_call results that are not a felt list raise ChainError."""
        rpc = make_rpc(lambda request: result(value))
        with pytest.raises(ChainError, match="starknet_call"):
            asyncio.run(rpc.call(0x10, "get_game_state", [1]))

    def test_call_null_result(self) -> None:
        """Test a null result is an empty felt list."""
        rpc = make_rpc(lambda request: result(None))
        assert asyncio.run(rpc.call(0x10, "get_game_state", [1])) == []

    def test_nonce_not_a_felt(self) -> None:
        """Test an unparseable nonce raises ChainError."""
        rpc = make_rpc(lambda request: result(["0x1"]))
        with pytest.raises(ChainError, match="starknet_getNonce"):
            asyncio.run(rpc.get_nonce(0x10))

    @pytest.mark.parametrize("value", ["0xabc", [1], {"execution_status": "EXPLODED"}])
    def test_receipt_shape(self, value) -> None:
        """Test receipts that are not a receipt object raise ChainError."""
        rpc = make_rpc(lambda request: result(value))
        with pytest.raises(ChainError, match="starknet_getTransactionReceipt"):
            asyncio.run(rpc.get_receipt("0xabc"))

    def test_gas_prices_shape(self) -> None:
        """Test a block that is not an object raises ChainError."""
        rpc = make_rpc(lambda request: result([]))
        with pytest.raises(ChainError, match="starknet_getBlockWithTxHashes"):
            asyncio.run(rpc.get_gas_prices())

    @pytest.mark.parametrize("estimates", [[], 5, [5], [{"l1_gas_consumed": "lots"}]])
    def test_unusable_estimate_falls_back(self, estimates) -> None:
        """Test empty or unparseable fee estimates use the block-price bounds."""

        def handler(request):
            if method_of(request) == "starknet_getBlockWithTxHashes":
                return result(BLOCK)
            return result(estimates)

        bounds = asyncio.run(make_rpc(handler).estimate_resource_bounds(0x10, [0], 1))
        assert bounds == fallback_bounds()

    def test_submission_non_json_body(self) -> None:
        """Test an unreadable relayer response is a failed submission."""
        execution = OutsideExecution(1, 2, 1, 0, 100, [Call(to=1, selector=2)])
        submission = asyncio.run(make_rpc(html).submit_relayed_execution(0x10, execution, [1]))

        assert not submission.ok
        assert "malformed RPC response" in submission.error

    @pytest.mark.parametrize("value", ["0xfeed", ["0xfeed"], {"transaction_hash": 7}])
    def test_submission_result_shape(self, value) -> None:
        """Test a result without a string hash is a failed submission."""
        rpc = make_rpc(lambda request: result(value))
        submission = asyncio.run(rpc.submit_invoke(0x10, [0], 1, fallback_bounds(), [1]))

        assert submission.error.startswith("No transaction hash in response")
