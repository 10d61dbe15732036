"""Environment configuration for the dungeon bot."""
import os
from dataclasses import dataclass, field

from .exceptions import ConfigurationError

# Mainnet deployment of the game and its supporting contracts
DEFAULT_RPC_URL = "https://api.cartridge.gg/x/starknet/mainnet/rpc/v0_9"
DEFAULT_CHAIN_ID = "0x534e5f4d41494e"
DEFAULT_GAME_ADDRESS = "0x06f7c4350d6d5ee926b3ac4fa0c9c351055456e75c92227468d84232fc493a9c"
DEFAULT_VRF_ADDRESS = "0x051fea4450da9d6aee758bdeba88b2f665bcbf549d2c61421aa724e9ac0ced8f"
DEFAULT_DUNGEON_ADDRESS = "0x00a67ef20b61a9846e1c82b411175e6ab167ea9f8632bd6c2091823c3629ec42"
DEFAULT_TICKET_ADDRESS = "0x0452810188C4Cb3AEbD63711a3b445755BC0D6C4f27B923fDd99B1A118858136"

# Policy root accepted by the controller for unrestricted sessions ("wildcard-policy")
DEFAULT_WILDCARD_ROOT = "0x77696c64636172642d706f6c696379"

SUBMISSION_MODES = ("relayed", "invoke")

DEFAULT_HARD_PERMANENT_ERRORS = (
    "not owner",
    "not playable",
    "game over",
    "game is not in progress",
    "already dead",
)

DEFAULT_STALE_STATE_ERRORS = (
    "item already owned",
    "not enough gold",
    "health already full",
    "stat upgrade available",
    "market is closed",
    "market closed",
    "not in battle",
    "action not allowed",
    "stat points required",
    "inventory full",
    "argent/multicall-failed",
    "transaction reverted",
)


def _phrases(env_key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.environ.get(env_key)
    if not raw:
        return default
    return tuple(p.strip().lower() for p in raw.split(",") if p.strip())


def _felt_list(env_key: str) -> tuple[int, ...]:
    raw = os.environ.get(env_key, "")
    try:
        return tuple(int(p.strip(), 0) for p in raw.split(",") if p.strip())
    except ValueError as e:
        raise ConfigurationError(
            f"{env_key} must be a comma separated list of felts",
            config_key=env_key,
        ) from e


def _required(env_key: str) -> str:
    value = os.environ.get(env_key)
    if not value:
        raise ConfigurationError(
            f"{env_key} environment variable is required",
            config_key=env_key,
        )
    return value


def _felt(env_key: str, raw: str) -> int:
    try:
        return int(raw, 0)
    except ValueError as e:
        raise ConfigurationError(
            f"{env_key} must be a hex or decimal felt",
            config_key=env_key,
        ) from e


@dataclass
class ErrorPolicy:
    """Error phrase lists used to triage failed actions.

    Phrases are matched as lowercase substrings of the error text. Hard
    permanent phrases abort the game; stale phrases mean the bot acted on an
    outdated read and should refetch without counting a failure.
    """

    hard_permanent: tuple[str, ...] = DEFAULT_HARD_PERMANENT_ERRORS
    likely_stale: tuple[str, ...] = DEFAULT_STALE_STATE_ERRORS

    @classmethod
    def from_env(cls) -> "ErrorPolicy":
        """Load phrase overrides from HARD_PERMANENT_ERRORS / STALE_STATE_ERRORS."""
        return cls(
            hard_permanent=_phrases("HARD_PERMANENT_ERRORS", DEFAULT_HARD_PERMANENT_ERRORS),
            likely_stale=_phrases("STALE_STATE_ERRORS", DEFAULT_STALE_STATE_ERRORS),
        )

    def is_hard_permanent(self, error_text: str) -> bool:
        """Check whether an error means the game cannot continue."""
        lowered = error_text.lower()
        return any(phrase in lowered for phrase in self.hard_permanent)

    def is_likely_stale(self, error_text: str) -> bool:
        """Check whether an error was probably caused by a stale state read."""
        lowered = error_text.lower()
        return any(phrase in lowered for phrase in self.likely_stale)


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    controller_address: int
    session_hash: int
    session_key_guid: int
    session_expires: int
    rpc_url: str = DEFAULT_RPC_URL
    chain_id: int = int(DEFAULT_CHAIN_ID, 16)
    game_address: int = int(DEFAULT_GAME_ADDRESS, 16)
    vrf_address: int = int(DEFAULT_VRF_ADDRESS, 16)
    dungeon_address: int = int(DEFAULT_DUNGEON_ADDRESS, 16)
    ticket_address: int = int(DEFAULT_TICKET_ADDRESS, 16)
    wildcard_root: int = int(DEFAULT_WILDCARD_ROOT, 16)
    session_policies_root: int = 0
    session_metadata_hash: int = 0
    guardian_key_guid: int = 0
    session_authorization: tuple[int, ...] = ()
    submission_mode: str = "relayed"
    environment: str = "dev"
    log_level: str = "INFO"
    error_policy: ErrorPolicy = field(default_factory=ErrorPolicy)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables.

        Returns:
            Config instance with values from environment

        Raises:
            ConfigurationError: If required environment variables are missing
                or malformed
        """
        submission_mode = os.environ.get("SUBMISSION_MODE", "relayed")
        if submission_mode not in SUBMISSION_MODES:
            raise ConfigurationError(
                f"SUBMISSION_MODE must be one of {', '.join(SUBMISSION_MODES)}",
                config_key="SUBMISSION_MODE",
            )

        def felt_env(key: str, default: str | None = None) -> int:
            raw = _required(key) if default is None else os.environ.get(key, default)
            return _felt(key, raw)

        return cls(
            controller_address=felt_env("CONTROLLER_ADDRESS"),
            session_hash=felt_env("SESSION_HASH"),
            session_key_guid=felt_env("SESSION_KEY_GUID"),
            session_expires=felt_env("SESSION_EXPIRES"),
            rpc_url=os.environ.get("STARKNET_RPC_URL", DEFAULT_RPC_URL),
            chain_id=felt_env("STARKNET_CHAIN_ID", DEFAULT_CHAIN_ID),
            game_address=felt_env("GAME_ADDRESS", DEFAULT_GAME_ADDRESS),
            vrf_address=felt_env("VRF_ADDRESS", DEFAULT_VRF_ADDRESS),
            dungeon_address=felt_env("DUNGEON_ADDRESS", DEFAULT_DUNGEON_ADDRESS),
            ticket_address=felt_env("TICKET_ADDRESS", DEFAULT_TICKET_ADDRESS),
            wildcard_root=felt_env("WILDCARD_ROOT", DEFAULT_WILDCARD_ROOT),
            session_policies_root=felt_env("SESSION_POLICIES_ROOT", "0"),
            session_metadata_hash=felt_env("SESSION_METADATA_HASH", "0"),
            guardian_key_guid=felt_env("GUARDIAN_KEY_GUID", "0"),
            session_authorization=_felt_list("SESSION_AUTHORIZATION"),
            submission_mode=submission_mode,
            environment=os.environ.get("ENVIRONMENT", "dev"),
            log_level=os.environ.get("POWERTOOLS_LOG_LEVEL", "INFO"),
            error_policy=ErrorPolicy.from_env(),
        )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "prod"


def get_config() -> Config:
    """Get cached configuration instance.

    Returns:
        Config instance (cached after first call)
    """
    if not hasattr(get_config, "_config"):
        get_config._config = Config.from_env()
    return get_config._config
