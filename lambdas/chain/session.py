"""Session-token signatures for the Cartridge controller account.

A session-token signature bundle is a flat felt list:

    0       "session-token" magic
    1       session expiry
    2       allowed policies root
    3       metadata hash
    4       session key GUID
    5       guardian key GUID
    6       cache-authorization flag
    7       authorization length N
    8..     N authorization felts
    8+N     session signature: signer type, public key, r, s
    12+N    guardian signature block (4 felts)
    16+N    policy proofs tail

The session registered on chain authorizes every call through the wildcard
policy root, so proofs are not needed. The wildcard fix rewrites the root,
re-signs the session signature over the wildcard session and collapses the
proofs tail to a single zero.
"""

from collections.abc import Callable
from typing import Protocol

from aws_lambda_powertools import Logger
from pydantic import BaseModel, Field
from starknet_py.cairo.felt import encode_shortstring
from starknet_py.hash.utils import message_signature, private_to_stark_key, verify_message_signature

from shared.config import Config
from shared.exceptions import SignerLifecycleError, SigningError

from .hashing import session_signing_hash

logger = Logger(child=True)

SESSION_TOKEN_MAGIC = encode_shortstring("session-token")

MAGIC_OFFSET = 0
EXPIRES_OFFSET = 1
POLICIES_ROOT_OFFSET = 2
METADATA_HASH_OFFSET = 3
SESSION_KEY_GUID_OFFSET = 4
GUARDIAN_KEY_GUID_OFFSET = 5
CACHE_AUTHORIZATION_OFFSET = 6
AUTHORIZATION_LENGTH_OFFSET = 7
HEADER_LENGTH = 8

# Session signature block: signer type, public key, r, s
STARKNET_SIGNER_TYPE = 0
SESSION_SIGNATURE_LENGTH = 4
R_INDEX = 2
S_INDEX = 3

GUARDIAN_SIGNATURE_LENGTH = 4

WILDCARD_PROOFS_TAIL = [0]


class SessionCredentials(BaseModel):
    """Authorized session supplied at startup. Never derived by the bot."""

    controller_address: int
    private_key: int = Field(..., repr=False)
    session_hash: int
    session_key_guid: int
    expires: int
    wildcard_root: int
    policies_root: int = 0
    metadata_hash: int = 0
    guardian_key_guid: int = 0
    authorization: list[int] = Field(default_factory=list)

    @classmethod
    def from_config(cls, config: Config, private_key: int) -> "SessionCredentials":
        """Combine environment configuration with the session private key."""
        return cls(
            controller_address=config.controller_address,
            private_key=private_key,
            session_hash=config.session_hash,
            session_key_guid=config.session_key_guid,
            expires=config.session_expires,
            wildcard_root=config.wildcard_root,
            policies_root=config.session_policies_root,
            metadata_hash=config.session_metadata_hash,
            guardian_key_guid=config.guardian_key_guid,
            authorization=list(config.session_authorization),
        )

    @property
    def public_key(self) -> int:
        """Stark public key of the session key."""
        return private_to_stark_key(self.private_key)


def signature_offsets(bundle: list[int]) -> tuple[int, int]:
    """Locate the session signature and the proofs tail.

    Args:
        bundle: Signature bundle

    Returns:
        (session signature start, proofs tail start)

    Raises:
        SigningError: If the bundle is not a well-formed session token
    """
    if len(bundle) < HEADER_LENGTH:
        raise SigningError(f"Signature bundle too short: {len(bundle)} felts")
    if bundle[MAGIC_OFFSET] != SESSION_TOKEN_MAGIC:
        raise SigningError("Signature bundle is not a session token")

    auth_length = bundle[AUTHORIZATION_LENGTH_OFFSET]
    signature_start = HEADER_LENGTH + auth_length
    proofs_start = signature_start + SESSION_SIGNATURE_LENGTH + GUARDIAN_SIGNATURE_LENGTH
    if len(bundle) < proofs_start:
        raise SigningError(
            f"Signature bundle truncated: {len(bundle)} felts, expected at least {proofs_start}"
        )
    return signature_start, proofs_start


def apply_wildcard_fix(bundle: list[int], message_hash: int, credentials: SessionCredentials) -> list[int]:
    """Rewrite a session-token bundle to authorize through the wildcard root.

    Applying the fix to an already fixed bundle yields the same bundle.

    Args:
        bundle: Session-token signature bundle
        message_hash: OutsideExecution or transaction hash being authorized
        credentials: Session credentials

    Returns:
        New bundle; the input is not modified

    Raises:
        SigningError: If the bundle is malformed
    """
    signature_start, proofs_start = signature_offsets(bundle)

    fixed = list(bundle[:proofs_start])
    fixed[POLICIES_ROOT_OFFSET] = credentials.wildcard_root

    signing_hash = session_signing_hash(message_hash, credentials.session_hash)
    r, s = message_signature(signing_hash, credentials.private_key)
    fixed[signature_start + R_INDEX] = r
    fixed[signature_start + S_INDEX] = s

    fixed.extend(WILDCARD_PROOFS_TAIL)
    return fixed


def verify_session_signature(bundle: list[int], message_hash: int, credentials: SessionCredentials) -> bool:
    """Check the bundle's session signature against the wildcard signing hash."""
    signature_start, _ = signature_offsets(bundle)
    public_key = bundle[signature_start + 1]
    r = bundle[signature_start + R_INDEX]
    s = bundle[signature_start + S_INDEX]
    signing_hash = session_signing_hash(message_hash, credentials.session_hash)
    return verify_message_signature(signing_hash, [r, s], public_key)


class SessionSigner(Protocol):
    """Signs one message hash, then is torn down."""

    def sign(self, message_hash: int, call_count: int) -> list[int]: ...

    async def aclose(self) -> None: ...


SignerFactory = Callable[[], SessionSigner]


class SessionTokenSigner:
    """Single-use session-token signer.

    Each transaction attempt gets a fresh signer; signing twice with the same
    instance raises SignerLifecycleError.

    Args:
        credentials: Session credentials
    """

    def __init__(self, credentials: SessionCredentials) -> None:
        self._credentials: SessionCredentials | None = credentials
        self._used = False

    def build_bundle(self, call_count: int) -> list[int]:
        """Unsigned bundle with the registered policies root and one empty proof per call."""
        creds = self._require_credentials()
        auth = list(creds.authorization)
        return [
            SESSION_TOKEN_MAGIC,
            creds.expires,
            creds.policies_root,
            creds.metadata_hash,
            creds.session_key_guid,
            creds.guardian_key_guid,
            0,
            len(auth),
            *auth,
            STARKNET_SIGNER_TYPE,
            creds.public_key,
            0,
            0,
            *([0] * GUARDIAN_SIGNATURE_LENGTH),
            call_count,
            *([0] * call_count),
        ]

    def sign(self, message_hash: int, call_count: int) -> list[int]:
        """Sign a message hash into a wildcard session-token bundle.

        Args:
            message_hash: Hash to authorize
            call_count: Number of calls covered by the hash

        Returns:
            Signature bundle

        Raises:
            SignerLifecycleError: If this signer was already used or closed
        """
        if self._used:
            raise SignerLifecycleError("Session signer is single-use")
        creds = self._require_credentials()
        self._used = True
        return apply_wildcard_fix(self.build_bundle(call_count), message_hash, creds)

    async def aclose(self) -> None:
        """Drop the key material."""
        self._credentials = None
        self._used = True

    def _require_credentials(self) -> SessionCredentials:
        if self._credentials is None:
            raise SignerLifecycleError("Session signer is closed")
        return self._credentials


def session_signer_factory(credentials: SessionCredentials) -> SignerFactory:
    """Factory producing a fresh SessionTokenSigner per call."""

    def factory() -> SessionSigner:
        return SessionTokenSigner(credentials)

    return factory
