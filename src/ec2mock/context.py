"""Mock EC2 context for integration testing.

Builds a seeded engine and, optionally, patches the client factories of the
code under test so they hand out that engine.
"""

from __future__ import annotations

from collections.abc import Generator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any
from unittest import mock

from .config import EngineConfig
from .engine import MockEC2
from .models import Instance, Vpc
from .recorder import Recorder
from .seed import SeedSpec, apply_seed, load_seed


class MockEC2Context:
    """Context manager for EC2 API mocking in integration tests.

    Patches each dotted path in ``patch_targets`` with a factory returning
    the engine, and provides the engine for test assertions.

    Usage:
        with MockEC2Context(
            initial_vpcs=[{"VpcId": "vpc-1", "CidrBlock": "10.0.0.0/16"}],
            patch_targets=["myapp.network.make_ec2_client"],
        ) as ctx:
            provision_network("vpc-1")

            ctx.recorder.assert_called("CreateSubnet", times=1)
            assert ctx.engine.describe_subnets().subnets[0].vpc_id == "vpc-1"
    """

    def __init__(
        self,
        *,
        config: EngineConfig | None = None,
        seed_file: Path | None = None,
        initial_vpcs: Sequence[Vpc | dict[str, Any]] | None = None,
        initial_instances: Sequence[Instance | dict[str, Any]] | None = None,
        patch_targets: Sequence[str] = (),
    ) -> None:
        """Initialize mock context.

        Args:
            config: Engine configuration.
            seed_file: YAML seed file applied before the initial resources.
            initial_vpcs: VPCs to pre-populate.
            initial_instances: Instances to pre-populate.
            patch_targets: Dotted paths patched to return the engine.
        """
        self._config = config
        self._seed_file = seed_file
        self._initial_vpcs = list(initial_vpcs or [])
        self._initial_instances = list(initial_instances or [])
        self._patch_targets = list(patch_targets)

        # Set when the context is entered
        self._engine: MockEC2 | None = None
        self._patches: list[Any] = []

    @property
    def engine(self) -> MockEC2:
        """Get the mock engine.

        Raises:
            RuntimeError: If accessed outside of context.
        """
        if self._engine is None:
            raise RuntimeError("MockEC2Context must be used as a context manager")
        return self._engine

    @property
    def recorder(self) -> Recorder:
        return self.engine.recorder

    def __enter__(self) -> MockEC2Context:
        """Enter the mock context, applying patches."""
        engine = MockEC2(self._config)

        if self._seed_file is not None:
            apply_seed(engine, load_seed(self._seed_file))
        apply_seed(
            engine,
            SeedSpec.model_validate(
                {"vpcs": self._initial_vpcs, "instances": self._initial_instances}
            ),
        )
        self._engine = engine

        # Start all patches; a target that fails to patch undoes the others
        for target in self._patch_targets:
            patch = mock.patch(target, return_value=engine)
            try:
                patch.start()
            except BaseException:
                self._stop_patches()
                self._engine = None
                raise
            self._patches.append(patch)

        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit the mock context, removing patches."""
        self._stop_patches()

    def _stop_patches(self) -> None:
        # Reverse order restores targets patched more than once
        for patch in reversed(self._patches):
            patch.stop()
        self._patches.clear()


@contextmanager
def mock_ec2_context(
    *,
    config: EngineConfig | None = None,
    seed_file: Path | None = None,
    initial_vpcs: Sequence[Vpc | dict[str, Any]] | None = None,
    initial_instances: Sequence[Instance | dict[str, Any]] | None = None,
    patch_targets: Sequence[str] = (),
) -> Generator[MockEC2Context, None, None]:
    """Convenience function for creating a mock EC2 context.

    Yields:
        MockEC2Context for test assertions.
    """
    ctx = MockEC2Context(
        config=config,
        seed_file=seed_file,
        initial_vpcs=initial_vpcs,
        initial_instances=initial_instances,
        patch_targets=patch_targets,
    )
    with ctx:
        yield ctx
