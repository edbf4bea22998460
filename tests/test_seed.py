"""Tests for seed and scenario loading."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from ec2mock.engine import MockEC2
from ec2mock.seed import SeedLoadError, SeedSpec, apply_seed, load_scenario, load_seed

SEED_YAML = """\
vpcs:
  - VpcId: vpc-1
    CidrBlock: 10.0.0.0/16
  - VpcId: vpc-2
instances:
  - InstanceId: i-0abc
    PrivateIpAddress: 10.0.0.5
"""


class TestLoadSeed:
    """Tests for load_seed."""

    def test_valid_seed(self, tmp_path: Path) -> None:
        """Test a seed file validates into models."""
        path = tmp_path / "seed.yaml"
        path.write_text(SEED_YAML)

        seed = load_seed(path)

        assert [v.vpc_id for v in seed.vpcs] == ["vpc-1", "vpc-2"]
        assert seed.vpcs[0].cidr_block == "10.0.0.0/16"
        assert seed.instances[0].private_ip_address == "10.0.0.5"

    def test_empty_file(self, tmp_path: Path) -> None:
        """Test an empty file is an empty seed."""
        path = tmp_path / "seed.yaml"
        path.write_text("")
        assert load_seed(path) == SeedSpec()

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test a missing file raises SeedLoadError."""
        with pytest.raises(SeedLoadError, match="not found"):
            load_seed(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test malformed YAML raises SeedLoadError."""
        path = tmp_path / "seed.yaml"
        path.write_text("vpcs: [unclosed")
        with pytest.raises(SeedLoadError, match="Invalid YAML"):
            load_seed(path)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        """Test a top-level list is rejected."""
        path = tmp_path / "seed.yaml"
        path.write_text("- VpcId: vpc-1\n")
        with pytest.raises(SeedLoadError, match="mapping"):
            load_seed(path)

    def test_unknown_section(self, tmp_path: Path) -> None:
        """Test unknown top-level keys fail validation."""
        path = tmp_path / "seed.yaml"
        path.write_text("subnets: []\n")
        with pytest.raises(SeedLoadError, match="subnets"):
            load_seed(path)

    def test_invalid_entry(self, tmp_path: Path) -> None:
        """Test field errors name their location."""
        path = tmp_path / "seed.yaml"
        path.write_text("vpcs:\n  - CidrBlock: 10.0.0.0/16\n")
        with pytest.raises(SeedLoadError, match="vpcs.0"):
            load_seed(path)

    def test_size_limit(self, tmp_path: Path) -> None:
        """Test oversized files are rejected before reading."""
        path = tmp_path / "seed.yaml"
        path.write_text(SEED_YAML)
        with patch("ec2mock.seed.MAX_SEED_FILE_SIZE_BYTES", 10):
            with pytest.raises(SeedLoadError, match="maximum size"):
                load_seed(path)


class TestApplySeed:
    """Tests for apply_seed."""

    def test_apply(self, engine: MockEC2, tmp_path: Path) -> None:
        """Test seed resources are injected without logging calls."""
        path = tmp_path / "seed.yaml"
        path.write_text(SEED_YAML)

        apply_seed(engine, load_seed(path))

        assert [v.vpc_id for v in engine.store.list_vpcs()] == ["vpc-1", "vpc-2"]
        instance = engine.store.get_instance("i-0abc")
        assert instance is not None
        assert [g.group_id for g in instance.security_groups] == [
            engine.default_security_group_id
        ]
        assert engine.get_call_log() == []


class TestLoadScenario:
    """Tests for load_scenario."""

    def test_valid_scenario(self, tmp_path: Path) -> None:
        """Test steps and an inline seed validate."""
        path = tmp_path / "scenario.yaml"
        path.write_text(
            "seed:\n"
            "  vpcs:\n"
            "    - VpcId: vpc-1\n"
            "steps:\n"
            "  - call: CreateSubnet\n"
            "    params: {VpcId: vpc-1, CidrBlock: 10.0.0.0/24}\n"
            "  - call: DeleteSubnet\n"
            "    params: {SubnetId: subnet-missing}\n"
            "    expect_error: InvalidSubnetID.NotFound\n"
        )

        scenario = load_scenario(path)

        assert [s.call for s in scenario.steps] == ["CreateSubnet", "DeleteSubnet"]
        assert scenario.steps[1].expect_error == "InvalidSubnetID.NotFound"
        assert scenario.seed.vpcs[0].vpc_id == "vpc-1"

    def test_unknown_call(self, tmp_path: Path) -> None:
        """Test unsupported call names are rejected."""
        path = tmp_path / "scenario.yaml"
        path.write_text("steps:\n  - call: RunInstances\n")
        with pytest.raises(SeedLoadError, match="RunInstances"):
            load_scenario(path)
