"""In-memory EC2 networking double for provisioning tests."""

from .config import ConfigurationError, EngineConfig
from .context import MockEC2Context, mock_ec2_context
from .engine import MockEC2
from .errors import (
    DependencyViolationError,
    InvalidParameterError,
    MockEC2Error,
    ResourceExhaustedError,
    ResourceNotFoundError,
)
from .recorder import Recorder
from .seed import SeedLoadError, SeedSpec, apply_seed, load_seed

__all__ = [
    "ConfigurationError",
    "DependencyViolationError",
    "EngineConfig",
    "InvalidParameterError",
    "MockEC2",
    "MockEC2Context",
    "MockEC2Error",
    "Recorder",
    "ResourceExhaustedError",
    "ResourceNotFoundError",
    "SeedLoadError",
    "SeedSpec",
    "apply_seed",
    "load_seed",
    "mock_ec2_context",
]

__version__ = "0.1.0"
