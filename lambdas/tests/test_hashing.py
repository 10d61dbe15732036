"""Tests for OutsideExecution and invoke hashes."""

from poseidon_py.poseidon_hash import poseidon_hash, poseidon_hash_many

from chain.calls import Call
from chain.hashing import (
    ANY_CALLER,
    CALL_TYPE_HASH,
    L1_GAS_NAME,
    OutsideExecution,
    ResourceBound,
    ResourceBounds,
    call_hash,
    execute_calldata,
    invoke_v3_hash,
    outside_execution_hash,
    resource_bound_felt,
    session_signing_hash,
)

CONTROLLER = 0xC0FFEE
CHAIN_ID = 0x534E5F4D41494E


def make_calls():
    """Two calls in a typical VRF + action multicall."""
    return [Call.build(0x1, "request_random", [0x2, 1, 99]), Call.build(0x2, "attack", [5, 0])]


def make_execution(**overrides):
    """OutsideExecution with fixed nonce and window."""
    fields = {
        "caller": ANY_CALLER,
        "nonce_channel": 0x1234,
        "nonce_mask": 1,
        "execute_after": 0,
        "execute_before": 1_700_000_600,
        "calls": make_calls(),
    }
    fields.update(overrides)
    return OutsideExecution(**fields)


def make_bounds(l1_amount=100):
    """Resource bounds with distinct values per resource."""
    return ResourceBounds(
        l1_gas=ResourceBound(l1_amount, 7),
        l2_gas=ResourceBound(200, 8),
        l1_data_gas=ResourceBound(300, 9),
    )


class TestOutsideExecutionHash:
    """Tests for the SNIP-12 OutsideExecution hash."""

    def test_call_hash(self) -> None:
        """Test the call struct hash covers target, selector and calldata."""
        call = Call(to=1, selector=2, calldata=[3, 4])
        expected = poseidon_hash_many([CALL_TYPE_HASH, 1, 2, poseidon_hash_many([3, 4])])
        assert call_hash(call) == expected

    def test_deterministic(self) -> None:
        """Test equal executions hash equally."""
        assert outside_execution_hash(make_execution(), CONTROLLER, CHAIN_ID) == outside_execution_hash(
            make_execution(), CONTROLLER, CHAIN_ID
        )

    def test_bound_to_context(self) -> None:
        """Test the hash changes with signer, chain, nonce and calls."""
        base = outside_execution_hash(make_execution(), CONTROLLER, CHAIN_ID)

        assert outside_execution_hash(make_execution(), CONTROLLER + 1, CHAIN_ID) != base
        assert outside_execution_hash(make_execution(), CONTROLLER, CHAIN_ID + 1) != base
        assert outside_execution_hash(make_execution(nonce_channel=0x1235), CONTROLLER, CHAIN_ID) != base
        assert outside_execution_hash(make_execution(calls=make_calls()[:1]), CONTROLLER, CHAIN_ID) != base

    def test_to_rpc(self) -> None:
        """Test the relayer payload shape."""
        payload = make_execution().to_rpc()

        assert payload["caller"] == hex(ANY_CALLER)
        assert payload["nonce"] == ["0x1234", "0x1"]
        assert payload["execute_before"] == hex(1_700_000_600)
        assert len(payload["calls"]) == 2


class TestInvokeHash:
    """Tests for the V3 invoke hash and its inputs."""

    def test_execute_calldata(self) -> None:
        """Test calls are flattened with per-call lengths."""
        calls = [Call(to=1, selector=2, calldata=[3, 4]), Call(to=5, selector=6)]
        assert execute_calldata(calls) == [2, 1, 2, 2, 3, 4, 5, 6, 0]

    def test_resource_bound_felt(self) -> None:
        """Test name, amount and price are packed into one felt."""
        packed = resource_bound_felt(L1_GAS_NAME, ResourceBound(0x10, 0x20))

        assert packed >> 192 == L1_GAS_NAME
        assert (packed >> 128) & (2**64 - 1) == 0x10
        assert packed & (2**128 - 1) == 0x20

    def test_hash_depends_on_nonce_and_bounds(self) -> None:
        """Test nonce and bounds are part of the hash."""
        calldata = execute_calldata(make_calls())
        base = invoke_v3_hash(CONTROLLER, calldata, CHAIN_ID, 3, make_bounds())

        assert invoke_v3_hash(CONTROLLER, calldata, CHAIN_ID, 3, make_bounds()) == base
        assert invoke_v3_hash(CONTROLLER, calldata, CHAIN_ID, 4, make_bounds()) != base
        assert invoke_v3_hash(CONTROLLER, calldata, CHAIN_ID, 3, make_bounds(l1_amount=101)) != base

    def test_resource_bounds_to_rpc(self) -> None:
        """Test every resource is rendered in hex."""
        payload = make_bounds().to_rpc()
        assert payload["l2_gas"] == {"max_amount": "0xc8", "max_price_per_unit": "0x8"}
        assert set(payload) == {"l1_gas", "l2_gas", "l1_data_gas"}


def test_session_signing_hash() -> None:
    """Test the signed hash binds the message to the session."""
    assert session_signing_hash(10, 20) == poseidon_hash(10, 20)
    assert session_signing_hash(10, 20) != session_signing_hash(10, 21)
