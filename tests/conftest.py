"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from ec2mock.config import EngineConfig  # noqa: E402
from ec2mock.engine import MockEC2  # noqa: E402
from ec2mock.models import Vpc  # noqa: E402

TEST_RNG_SEED = 1234


@pytest.fixture
def config() -> EngineConfig:
    """Deterministic configuration without collision pauses."""
    return EngineConfig(seed=TEST_RNG_SEED, retry_pause_seconds=0)


@pytest.fixture
def engine(config: EngineConfig) -> MockEC2:
    """Fresh engine with only the default seed state."""
    return MockEC2(config)


@pytest.fixture
def vpc_engine(engine: MockEC2) -> MockEC2:
    """Engine with VPC ``vpc-1`` (10.0.0.0/16) injected."""
    engine.append_vpc(Vpc(vpc_id="vpc-1", cidr_block="10.0.0.0/16"))
    return engine
