"""Tests for the session key lookup."""

from unittest.mock import MagicMock, patch

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from shared import secrets
from shared.exceptions import ConfigurationError

DEFAULT_PARAM = "/dungeon-bot/dev/session_private_key"


@pytest.fixture(autouse=True)
def clear_key_cache(monkeypatch):
    """Reset the cached key and parameter overrides around each test."""
    monkeypatch.delenv("SESSION_KEY_PARAM", raising=False)
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    secrets.get_session_private_key.cache_clear()
    yield
    secrets.get_session_private_key.cache_clear()


def ssm_returning(value: str) -> MagicMock:
    """SSM client stub whose get_parameter yields value."""
    ssm = MagicMock()
    ssm.get_parameter.return_value = {"Parameter": {"Value": value}}
    return ssm


class TestSessionKeyParamName:
    """Tests for session_key_param_name."""

    def test_default(self) -> None:
        assert secrets.session_key_param_name() == DEFAULT_PARAM

    def test_environment_scoped(self, monkeypatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "prod")
        assert secrets.session_key_param_name() == "/dungeon-bot/prod/session_private_key"

    def test_explicit_override(self, monkeypatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "prod")
        monkeypatch.setenv("SESSION_KEY_PARAM", "/custom/path/session-key")
        assert secrets.session_key_param_name() == "/custom/path/session-key"


class TestGetSessionPrivateKey:
    """Tests for get_session_private_key."""

    def test_hex_value(self) -> None:
        """Test a hex key is parsed and read with decryption."""
        ssm = ssm_returning("0x1234abcd")

        with patch("boto3.client", return_value=ssm):
            assert secrets.get_session_private_key() == 0x1234ABCD

        ssm.get_parameter.assert_called_once_with(Name=DEFAULT_PARAM, WithDecryption=True)

    def test_decimal_value_with_whitespace(self, monkeypatch) -> None:
        """Test a decimal key with a trailing newline under a custom name."""
        monkeypatch.setenv("SESSION_KEY_PARAM", "/custom/path/session-key")
        ssm = ssm_returning("987654321\n")

        with patch("boto3.client", return_value=ssm):
            assert secrets.get_session_private_key() == 987654321

        ssm.get_parameter.assert_called_once_with(Name="/custom/path/session-key", WithDecryption=True)

    def test_cached(self) -> None:
        """Test the parameter is fetched once per container."""
        ssm = ssm_returning("0x1")

        with patch("boto3.client", return_value=ssm):
            secrets.get_session_private_key()
            secrets.get_session_private_key()

        assert ssm.get_parameter.call_count == 1

    def test_malformed(self) -> None:
        """Test a non-numeric value is a configuration error."""
        with (
            patch("boto3.client", return_value=ssm_returning("not-a-key")),
            pytest.raises(ConfigurationError) as exc_info,
        ):
            secrets.get_session_private_key()

        assert exc_info.value.config_key == "SESSION_KEY_PARAM"

    @pytest.mark.parametrize("value", ["0", hex(secrets.EC_ORDER)])
    def test_out_of_range(self, value: str) -> None:
        """Test zero and the curve order itself are rejected."""
        with (
            patch("boto3.client", return_value=ssm_returning(value)),
            pytest.raises(ConfigurationError, match="curve order"),
        ):
            secrets.get_session_private_key()

    @mock_aws
    def test_from_parameter_store(self) -> None:
        """Test reading a SecureString parameter end to end."""
        ssm = boto3.client("ssm", region_name="us-east-1")
        ssm.put_parameter(Name=DEFAULT_PARAM, Value="0xdeadbeef", Type="SecureString")

        assert secrets.get_session_private_key() == 0xDEADBEEF

    @mock_aws
    def test_missing_parameter(self) -> None:
        """Test a missing parameter propagates the client error."""
        with pytest.raises(ClientError):
            secrets.get_session_private_key()
