"""Seed and scenario file loading with validation.

Seed files pre-populate an engine with VPCs and instances:

    vpcs:
      - VpcId: vpc-1
        CidrBlock: 10.0.0.0/16
    instances:
      - InstanceId: i-0abc
        PrivateIpAddress: 10.0.0.5

Scenario files list calls to replay against an engine:

    steps:
      - call: CreateSubnet
        params: {VpcId: vpc-1, CidrBlock: 10.0.0.0/24}
      - call: CreateSubnet
        params: {VpcId: vpc-missing, CidrBlock: 10.0.1.0/24}
        expect_error: InvalidVpcID.NotFound

All file reads enforce a size limit. Input validation happens at the boundary.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .config import MAX_SEED_FILE_SIZE_BYTES
from .models import CALL_MODELS, Instance, Vpc

if TYPE_CHECKING:
    from .engine import MockEC2

logger = logging.getLogger(__name__)


class SeedLoadError(Exception):
    """Raised when seed or scenario loading or validation fails."""

    pass


# =============================================================================
# File Schemas
# =============================================================================


class SeedSpec(BaseModel):
    """Initial engine state."""

    model_config = {"extra": "forbid"}

    vpcs: list[Vpc] = Field(default_factory=list)
    instances: list[Instance] = Field(default_factory=list)


class ScenarioStep(BaseModel):
    """One call to replay.

    Attributes:
        call: API call name (e.g., "CreateSubnet").
        params: Request fields in the API's names.
        expect_error: Error code the call must fail with; None means it
            must succeed.
    """

    model_config = {"extra": "forbid"}

    call: str
    params: dict[str, Any] = Field(default_factory=dict)
    expect_error: str | None = None

    @field_validator("call")
    @classmethod
    def validate_call(cls, v: str) -> str:
        if v not in CALL_MODELS:
            raise ValueError(f"Unknown call '{v}'. Supported calls: {sorted(CALL_MODELS)}")
        return v


class Scenario(BaseModel):
    """Ordered calls to replay against an engine."""

    model_config = {"extra": "forbid"}

    seed: SeedSpec = Field(default_factory=SeedSpec)
    steps: list[ScenarioStep] = Field(default_factory=list)


# =============================================================================
# Loading
# =============================================================================


def _read_yaml_mapping(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise SeedLoadError(f"File not found: {path}")

    # Check the size before reading
    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise SeedLoadError(f"Failed to stat file {path}: {e}") from e

    if file_size > MAX_SEED_FILE_SIZE_BYTES:
        raise SeedLoadError(
            f"File exceeds maximum size of {MAX_SEED_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SeedLoadError(f"Failed to read file {path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SeedLoadError(f"Invalid YAML in {path}: {e}") from e

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise SeedLoadError(f"File must contain a YAML mapping: {path}")
    return raw_data


def _format_validation_error(path: Path, e: ValidationError) -> str:
    errors = []
    for error in e.errors():
        loc = ".".join(str(x) for x in error["loc"])
        errors.append(f"  - {loc}: {error['msg']}")
    return f"Validation failed for {path}:\n" + "\n".join(errors)


def load_seed(path: Path) -> SeedSpec:
    """Load and validate a seed file.

    Args:
        path: YAML file with ``vpcs`` and ``instances`` lists.

    Returns:
        Validated seed.

    Raises:
        SeedLoadError: If the file cannot be read or fails validation.
    """
    raw_data = _read_yaml_mapping(path)
    try:
        seed = SeedSpec.model_validate(raw_data)
    except ValidationError as e:
        raise SeedLoadError(_format_validation_error(path, e)) from e

    logger.info(
        "Loaded seed from %s",
        path,
        extra={"vpcs": len(seed.vpcs), "instances": len(seed.instances)},
    )
    return seed


def load_scenario(path: Path) -> Scenario:
    """Load and validate a scenario file.

    Raises:
        SeedLoadError: If the file cannot be read or fails validation.
    """
    raw_data = _read_yaml_mapping(path)
    try:
        scenario = Scenario.model_validate(raw_data)
    except ValidationError as e:
        raise SeedLoadError(_format_validation_error(path, e)) from e

    logger.info("Loaded scenario from %s", path, extra={"steps": len(scenario.steps)})
    return scenario


def apply_seed(engine: MockEC2, seed: SeedSpec) -> None:
    """Inject seed resources. Nothing is added to the call log."""
    for vpc in seed.vpcs:
        engine.append_vpc(vpc)
    for instance in seed.instances:
        engine.append_instance(instance)
