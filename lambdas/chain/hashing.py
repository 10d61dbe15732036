"""Poseidon message hashes signed by the session key.

Two domains are supported:

* Relayed execution: the SNIP-12 (revision 2) OutsideExecution typed-data
  hash that the paymaster relayer submits on the controller's behalf.
* Direct invoke: the V3 INVOKE transaction hash.

All hashes are Poseidon hash-many over felts.
"""

from dataclasses import dataclass

from poseidon_py.poseidon_hash import poseidon_hash, poseidon_hash_many
from starknet_py.cairo.felt import encode_shortstring

from .calls import Call

# SNIP-12 revision 2 type hashes for the OutsideExecution struct family
DOMAIN_TYPE_HASH = 0x1FF2F602E42168014D405A94F75E8A93D640751D71D16311266E140D8B0A210
CALL_TYPE_HASH = 0x3635C7F2A7BA93844C0D064E18E487F35AB90F7C39D00F186A781FC3F0C2CA9
OUTSIDE_EXECUTION_TYPE_HASH = 0x13C8403EC4241D635A9BB6243DC259FE85C3483374F6C92B23510B4594A7D38

OUTSIDE_EXECUTION_DOMAIN_NAME = encode_shortstring("Account.execute_from_outside")
OUTSIDE_EXECUTION_DOMAIN_VERSION = 2
OUTSIDE_EXECUTION_REVISION = 2
STARKNET_MESSAGE_PREFIX = encode_shortstring("StarkNet Message")

# Any address may relay the execution
ANY_CALLER = encode_shortstring("ANY_CALLER")

INVOKE_PREFIX = encode_shortstring("invoke")
INVOKE_VERSION = 3
L1_GAS_NAME = encode_shortstring("L1_GAS")
L2_GAS_NAME = encode_shortstring("L2_GAS")
L1_DATA_GAS_NAME = encode_shortstring("L1_DATA")
DA_MODE_L1 = 0


@dataclass
class OutsideExecution:
    """Relayed execution request signed by the session key."""

    caller: int
    nonce_channel: int
    nonce_mask: int
    execute_after: int
    execute_before: int
    calls: list[Call]

    def to_rpc(self) -> dict:
        """Render for cartridge_addExecuteOutsideTransaction."""
        return {
            "caller": hex(self.caller),
            "nonce": [hex(self.nonce_channel), hex(self.nonce_mask)],
            "execute_after": hex(self.execute_after),
            "execute_before": hex(self.execute_before),
            "calls": [call.to_rpc() for call in self.calls],
        }


@dataclass
class ResourceBound:
    """Maximum amount and price per unit for one gas resource."""

    max_amount: int
    max_price_per_unit: int


@dataclass
class ResourceBounds:
    """V3 transaction resource bounds."""

    l1_gas: ResourceBound
    l2_gas: ResourceBound
    l1_data_gas: ResourceBound

    def to_rpc(self) -> dict:
        """Render for starknet_addInvokeTransaction."""

        def render(bound: ResourceBound) -> dict:
            return {
                "max_amount": hex(bound.max_amount),
                "max_price_per_unit": hex(bound.max_price_per_unit),
            }

        return {
            "l1_gas": render(self.l1_gas),
            "l2_gas": render(self.l2_gas),
            "l1_data_gas": render(self.l1_data_gas),
        }


def call_hash(call: Call) -> int:
    """Struct hash of one call inside an OutsideExecution."""
    return poseidon_hash_many(
        [CALL_TYPE_HASH, call.to, call.selector, poseidon_hash_many(call.calldata)]
    )


def outside_execution_hash(outside_execution: OutsideExecution, controller: int, chain_id: int) -> int:
    """SNIP-12 message hash of an OutsideExecution.

    Args:
        outside_execution: Execution request
        controller: Controller account address (the signer)
        chain_id: Chain id felt

    Returns:
        Message hash
    """
    calls_hash = poseidon_hash_many([call_hash(c) for c in outside_execution.calls])
    struct_hash = poseidon_hash_many(
        [
            OUTSIDE_EXECUTION_TYPE_HASH,
            outside_execution.caller,
            outside_execution.nonce_channel,
            outside_execution.nonce_mask,
            outside_execution.execute_after,
            outside_execution.execute_before,
            calls_hash,
        ]
    )
    domain_hash = poseidon_hash_many(
        [
            DOMAIN_TYPE_HASH,
            OUTSIDE_EXECUTION_DOMAIN_NAME,
            OUTSIDE_EXECUTION_DOMAIN_VERSION,
            chain_id,
            OUTSIDE_EXECUTION_REVISION,
        ]
    )
    return poseidon_hash_many([STARKNET_MESSAGE_PREFIX, domain_hash, controller, struct_hash])


def execute_calldata(calls: list[Call]) -> list[int]:
    """Account __execute__ calldata: [n, (to, selector, len, data...)...]."""
    calldata = [len(calls)]
    for call in calls:
        calldata.extend([call.to, call.selector, len(call.calldata), *call.calldata])
    return calldata


def resource_bound_felt(name: int, bound: ResourceBound) -> int:
    """Pack a resource bound: name << 192 | amount << 128 | price."""
    return (name << 192) | (bound.max_amount << 128) | bound.max_price_per_unit


def invoke_v3_hash(
    sender: int,
    calldata: list[int],
    chain_id: int,
    nonce: int,
    resource_bounds: ResourceBounds,
    tip: int = 0,
    paymaster_data: list[int] | None = None,
    account_deployment_data: list[int] | None = None,
    nonce_da_mode: int = DA_MODE_L1,
    fee_da_mode: int = DA_MODE_L1,
) -> int:
    """Transaction hash of a V3 INVOKE.

    Args:
        sender: Account address
        calldata: __execute__ calldata
        chain_id: Chain id felt
        nonce: Account nonce
        resource_bounds: Gas bounds
        tip: Transaction tip
        paymaster_data: Paymaster data felts
        account_deployment_data: Deployment data felts
        nonce_da_mode: Nonce data availability mode (0 = L1)
        fee_da_mode: Fee data availability mode (0 = L1)

    Returns:
        Transaction hash
    """
    fee_hash = poseidon_hash_many(
        [
            tip,
            resource_bound_felt(L1_GAS_NAME, resource_bounds.l1_gas),
            resource_bound_felt(L2_GAS_NAME, resource_bounds.l2_gas),
            resource_bound_felt(L1_DATA_GAS_NAME, resource_bounds.l1_data_gas),
        ]
    )
    return poseidon_hash_many(
        [
            INVOKE_PREFIX,
            INVOKE_VERSION,
            sender,
            fee_hash,
            poseidon_hash_many(paymaster_data or []),
            chain_id,
            nonce,
            (nonce_da_mode << 32) | fee_da_mode,
            poseidon_hash_many(account_deployment_data or []),
            poseidon_hash_many(calldata),
        ]
    )


def session_signing_hash(message_hash: int, session_hash: int) -> int:
    """Hash actually signed by the session key: first Hades lane of (message, session, 2)."""
    return poseidon_hash(message_hash, session_hash)
