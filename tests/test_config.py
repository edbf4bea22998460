"""Tests for engine configuration."""

import os
from unittest.mock import patch

import pytest

from ec2mock.config import (
    DEFAULT_MAX_ALLOCATION_ATTEMPTS,
    ConfigurationError,
    EngineConfig,
)


class TestEngineConfig:
    """Tests for EngineConfig validation."""

    def test_defaults(self) -> None:
        """Test the default configuration is valid."""
        config = EngineConfig()

        assert config.region == "ap-southeast-1"
        assert config.seed is None
        assert config.max_allocation_attempts == DEFAULT_MAX_ALLOCATION_ATTEMPTS
        assert config.strict_ingress_revoke is False

    def test_invalid_region(self) -> None:
        """Test a malformed region is rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            EngineConfig(region="Mars")
        assert "EC2MOCK_REGION" in str(exc_info.value)

    def test_unbounded_attempts_allowed(self) -> None:
        """Test None disables the allocation bound."""
        assert EngineConfig(max_allocation_attempts=None).max_allocation_attempts is None

    def test_zero_attempts_rejected(self) -> None:
        """Test a bound below one is rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            EngineConfig(max_allocation_attempts=0)
        assert "EC2MOCK_MAX_ALLOCATION_ATTEMPTS" in str(exc_info.value)

    @pytest.mark.parametrize("pause", [-0.1, 5.1])
    def test_pause_out_of_range(self, pause: float) -> None:
        """Test pauses outside the documented bounds are rejected."""
        with pytest.raises(ConfigurationError):
            EngineConfig(retry_pause_seconds=pause)

    @pytest.mark.parametrize("block", ["52.0.0.0", "52.0.0.1/8", "2600::/64", "52.0.0.0/31"])
    def test_invalid_public_block(self, block: str) -> None:
        """Test the public block must be a usable IPv4 network."""
        with pytest.raises(ConfigurationError) as exc_info:
            EngineConfig(public_address_block=block)
        assert "EC2MOCK_PUBLIC_ADDRESS_BLOCK" in str(exc_info.value)

    def test_invalid_owner(self) -> None:
        """Test the owner must be a 12 digit account id."""
        with pytest.raises(ConfigurationError):
            EngineConfig(owner_id="owner")

    def test_errors_collected(self) -> None:
        """Test every problem is reported at once."""
        with pytest.raises(ConfigurationError) as exc_info:
            EngineConfig(region="Mars", owner_id="owner", default_instance_id="")

        message = str(exc_info.value)
        assert "EC2MOCK_REGION" in message
        assert "EC2MOCK_OWNER_ID" in message
        assert "EC2MOCK_DEFAULT_INSTANCE_ID" in message

    def test_frozen(self) -> None:
        """Test configuration cannot change after construction."""
        config = EngineConfig()
        with pytest.raises(AttributeError):
            config.region = "eu-west-1"  # type: ignore[misc]


class TestFromEnv:
    """Tests for EngineConfig.from_env."""

    def test_from_env(self) -> None:
        """Test loading every knob from the environment."""
        env = {
            "EC2MOCK_REGION": "eu-west-1",
            "EC2MOCK_SEED": "42",
            "EC2MOCK_MAX_ALLOCATION_ATTEMPTS": "50",
            "EC2MOCK_RETRY_PAUSE_SECONDS": "0",
            "EC2MOCK_PUBLIC_ADDRESS_BLOCK": "198.51.100.0/24",
            "EC2MOCK_OWNER_ID": "000000000000",
            "EC2MOCK_STRICT_INGRESS_REVOKE": "true",
        }
        with patch.dict(os.environ, env, clear=True):
            config = EngineConfig.from_env()

        assert config.region == "eu-west-1"
        assert config.seed == 42
        assert config.max_allocation_attempts == 50
        assert config.retry_pause_seconds == 0
        assert config.public_address_block == "198.51.100.0/24"
        assert config.owner_id == "000000000000"
        assert config.strict_ingress_revoke is True

    def test_from_env_defaults(self) -> None:
        """Test an empty environment gives the defaults."""
        with patch.dict(os.environ, {}, clear=True):
            assert EngineConfig.from_env() == EngineConfig()

    def test_zero_attempts_means_unbounded(self) -> None:
        """Test 0 in the environment disables the bound."""
        with patch.dict(os.environ, {"EC2MOCK_MAX_ALLOCATION_ATTEMPTS": "0"}, clear=True):
            assert EngineConfig.from_env().max_allocation_attempts is None

    def test_non_integer_seed(self) -> None:
        """Test a malformed integer raises ConfigurationError."""
        with patch.dict(os.environ, {"EC2MOCK_SEED": "abc"}, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                EngineConfig.from_env()
        assert "EC2MOCK_SEED" in str(exc_info.value)
