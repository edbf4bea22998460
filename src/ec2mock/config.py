"""Engine configuration with validation.

All knobs are validated at construction time so a misconfigured engine
fails when the test session starts, not halfway through a scenario.
"""

from __future__ import annotations

import ipaddress
import os
import re
from dataclasses import dataclass


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_REGION = "ap-southeast-1"
DEFAULT_OWNER_ID = "123456789012"
DEFAULT_INSTANCE_ID = "i-0123456789abcdef0"
DEFAULT_SECURITY_GROUP_NAME = "sg-default"
DEFAULT_PUBLIC_ADDRESS_BLOCK = "52.0.0.0/8"

DEFAULT_MAX_ALLOCATION_ATTEMPTS = 10000
DEFAULT_RETRY_PAUSE_SECONDS = 0.05
MAX_RETRY_PAUSE_SECONDS = 5.0

# Seed and scenario files are test fixtures, never large
MAX_SEED_FILE_SIZE_BYTES = 1024 * 1024  # 1MB

# Input validation patterns
VALID_REGION_PATTERN = r"^[a-z]{2}(-[a-z]+)+-\d$"
VALID_OWNER_ID_PATTERN = r"^\d{12}$"


@dataclass(frozen=True)
class EngineConfig:
    """Mock engine configuration.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-test.
    """

    # Region used in generated private DNS names
    region: str = DEFAULT_REGION

    # RNG seed; None means a fresh non-deterministic generator
    seed: int | None = None

    # Upper bound on collision retries per allocation; None loops until unique
    max_allocation_attempts: int | None = DEFAULT_MAX_ALLOCATION_ATTEMPTS

    # Pause between collision retries in bulk private address assignment
    retry_pause_seconds: float = DEFAULT_RETRY_PAUSE_SECONDS

    # Block elastic public addresses are drawn from
    public_address_block: str = DEFAULT_PUBLIC_ADDRESS_BLOCK

    # Account id reported as owner of groups and address associations
    owner_id: str = DEFAULT_OWNER_ID

    # Seed state
    default_instance_id: str = DEFAULT_INSTANCE_ID
    default_security_group_name: str = DEFAULT_SECURITY_GROUP_NAME

    # Revoke the first fully matching ingress rule instead of the first mismatch
    strict_ingress_revoke: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not re.match(VALID_REGION_PATTERN, self.region):
            errors.append(f"EC2MOCK_REGION must be a valid region name: {self.region}")

        if self.max_allocation_attempts is not None and self.max_allocation_attempts < 1:
            errors.append("EC2MOCK_MAX_ALLOCATION_ATTEMPTS must be at least 1")

        if not (0 <= self.retry_pause_seconds <= MAX_RETRY_PAUSE_SECONDS):
            errors.append(
                f"EC2MOCK_RETRY_PAUSE_SECONDS must be between 0 and {MAX_RETRY_PAUSE_SECONDS}"
            )

        try:
            block = ipaddress.ip_network(self.public_address_block)
        except ValueError:
            errors.append(
                f"EC2MOCK_PUBLIC_ADDRESS_BLOCK must be a CIDR block: {self.public_address_block}"
            )
        else:
            if block.version != 4:
                errors.append("EC2MOCK_PUBLIC_ADDRESS_BLOCK must be an IPv4 block")
            elif block.num_addresses < 4:
                errors.append("EC2MOCK_PUBLIC_ADDRESS_BLOCK is too small")

        if not re.match(VALID_OWNER_ID_PATTERN, self.owner_id):
            errors.append(f"EC2MOCK_OWNER_ID must be a 12 digit account id: {self.owner_id}")

        if not self.default_instance_id:
            errors.append("EC2MOCK_DEFAULT_INSTANCE_ID cannot be empty")

        if not self.default_security_group_name:
            errors.append("EC2MOCK_DEFAULT_SECURITY_GROUP_NAME cannot be empty")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Load configuration from environment variables.

        Environment Variables:
            EC2MOCK_REGION: Region used in private DNS names (default: ap-southeast-1)
            EC2MOCK_SEED: Integer RNG seed for reproducible ids and addresses
            EC2MOCK_MAX_ALLOCATION_ATTEMPTS: Retry bound per allocation,
                0 disables the bound (default: 10000)
            EC2MOCK_RETRY_PAUSE_SECONDS: Pause between bulk assignment
                collisions (default: 0.05)
            EC2MOCK_PUBLIC_ADDRESS_BLOCK: Elastic IP pool (default: 52.0.0.0/8)
            EC2MOCK_OWNER_ID: Account id (default: 123456789012)
            EC2MOCK_DEFAULT_INSTANCE_ID: Id of the seeded instance
            EC2MOCK_DEFAULT_SECURITY_GROUP_NAME: Name of the seeded group
            EC2MOCK_STRICT_INGRESS_REVOKE: If "true", revoke removes the first
                matching rule (default: false)
        """

        def get_int(key: str, default: int | None) -> int | None:
            value = os.environ.get(key)
            if value is None or value == "":
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_float(key: str, default: float) -> float:
            value = os.environ.get(key)
            if value is None or value == "":
                return default
            try:
                return float(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be a number: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        max_attempts = get_int("EC2MOCK_MAX_ALLOCATION_ATTEMPTS", DEFAULT_MAX_ALLOCATION_ATTEMPTS)

        return cls(
            region=os.environ.get("EC2MOCK_REGION", DEFAULT_REGION),
            seed=get_int("EC2MOCK_SEED", None),
            max_allocation_attempts=max_attempts or None,
            retry_pause_seconds=get_float(
                "EC2MOCK_RETRY_PAUSE_SECONDS", DEFAULT_RETRY_PAUSE_SECONDS
            ),
            public_address_block=os.environ.get(
                "EC2MOCK_PUBLIC_ADDRESS_BLOCK", DEFAULT_PUBLIC_ADDRESS_BLOCK
            ),
            owner_id=os.environ.get("EC2MOCK_OWNER_ID", DEFAULT_OWNER_ID),
            default_instance_id=os.environ.get("EC2MOCK_DEFAULT_INSTANCE_ID", DEFAULT_INSTANCE_ID),
            default_security_group_name=os.environ.get(
                "EC2MOCK_DEFAULT_SECURITY_GROUP_NAME", DEFAULT_SECURITY_GROUP_NAME
            ),
            strict_ingress_revoke=get_bool("EC2MOCK_STRICT_INGRESS_REVOKE", False),
        )
