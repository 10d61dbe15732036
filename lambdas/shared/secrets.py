"""Session key lookup from SSM Parameter Store."""

import os
from functools import lru_cache

import boto3
from aws_lambda_powertools import Logger
from starknet_py.constants import EC_ORDER

from shared.exceptions import ConfigurationError

logger = Logger(child=True)

# Formatted with the deployment environment unless SESSION_KEY_PARAM is set
SESSION_KEY_PARAM_TEMPLATE = "/dungeon-bot/{environment}/session_private_key"


def session_key_param_name() -> str:
    """Name of the SecureString parameter holding the session key."""
    override = os.environ.get("SESSION_KEY_PARAM")
    if override:
        return override
    return SESSION_KEY_PARAM_TEMPLATE.format(environment=os.environ.get("ENVIRONMENT", "dev"))


@lru_cache(maxsize=1)
def get_session_private_key() -> int:
    """Load the session signing key, once per container.

    The stored value may be hex (``0x`` prefixed) or decimal. It must be a
    valid STARK curve scalar.

    Returns:
        The session private key as an integer

    Raises:
        ConfigurationError: If the stored value is not a usable key
        ClientError: If the parameter does not exist
    """
    param_name = session_key_param_name()

    ssm = boto3.client("ssm")
    raw = ssm.get_parameter(Name=param_name, WithDecryption=True)["Parameter"]["Value"]
    try:
        key = int(raw.strip(), 0)
    except ValueError as e:
        raise ConfigurationError(
            f"{param_name} does not hold a hex or decimal key",
            config_key="SESSION_KEY_PARAM",
        ) from e
    if not 0 < key < EC_ORDER:
        raise ConfigurationError(
            f"{param_name} is outside the curve order",
            config_key="SESSION_KEY_PARAM",
        )

    logger.info("Loaded session key", extra={"parameter": param_name})
    return key
