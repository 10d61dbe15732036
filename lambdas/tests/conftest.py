"""Shared fixtures for bot tests."""

import os

import pytest

os.environ.setdefault("POWERTOOLS_SERVICE_NAME", "dungeon-bot")
os.environ.setdefault("POWERTOOLS_TRACE_DISABLED", "true")
os.environ.setdefault("POWERTOOLS_METRICS_NAMESPACE", "DungeonBot")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

from chain.calls import CallBuilder  # noqa: E402
from chain.session import SessionCredentials  # noqa: E402
from factories import CONTROLLER, SESSION_PRIVATE_KEY  # noqa: E402
from shared.config import Config, get_config  # noqa: E402


@pytest.fixture(autouse=True)
def clear_config_cache():
    """Drop the cached Config so each test sees its own environment."""
    if hasattr(get_config, "_config"):
        del get_config._config
    yield
    if hasattr(get_config, "_config"):
        del get_config._config


@pytest.fixture
def config() -> Config:
    """Config with test session values and default contract addresses."""
    return Config(
        controller_address=CONTROLLER,
        session_hash=0x5E55,
        session_key_guid=0x6A1D,
        session_expires=1_900_000_000,
    )


@pytest.fixture
def credentials(config: Config) -> SessionCredentials:
    """Session credentials for the test controller."""
    return SessionCredentials.from_config(config, SESSION_PRIVATE_KEY)


@pytest.fixture
def calls(config: Config) -> CallBuilder:
    """Call builder for the default contracts."""
    return CallBuilder(config)
