"""Mock EC2 CLI (ec2mock).

Usage:
    ec2mock validate seed.yaml              # Validate a seed file
    ec2mock run scenario.yaml               # Replay a scenario
    ec2mock run scenario.yaml --rng-seed 7  # Replay with reproducible ids
    ec2mock info                            # Show configuration and calls
"""

from __future__ import annotations

import dataclasses
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import click
from botocore.exceptions import ClientError
from pydantic import ValidationError

from .config import ConfigurationError, EngineConfig
from .engine import MockEC2
from .models import CALL_MODELS
from .seed import SeedLoadError, apply_seed, load_scenario, load_seed

logger = logging.getLogger(__name__)

# Outcome reported for requests rejected by schema validation
VALIDATION_ERROR_CODE = "ValidationError"

# LogRecord attributes that are not structured context
RESERVED_LOG_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        # Add extra fields from the record
        for key, value in record.__dict__.items():
            if key not in RESERVED_LOG_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: int = logging.WARNING) -> None:
    """Configure structured JSON logging on stderr.

    Stdout is left to command output. Calling again replaces the handler
    installed by the previous call.
    """
    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if isinstance(existing.formatter, JsonFormatter):
            root_logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Reduce noise from botocore
    logging.getLogger("botocore").setLevel(logging.WARNING)


def _load_config(rng_seed: int | None, strict_revoke: bool) -> EngineConfig:
    try:
        config = EngineConfig.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    overrides: dict[str, Any] = {}
    if rng_seed is not None:
        overrides["seed"] = rng_seed
    if strict_revoke:
        overrides["strict_ingress_revoke"] = True
    if not overrides:
        return config
    try:
        return dataclasses.replace(config, **overrides)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


# =============================================================================
# CLI Root
# =============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="ec2mock")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging on stderr")
def cli(verbose: bool) -> None:
    """In-memory EC2 networking double.

    Replay call scenarios and validate seed files without a cloud account.
    """
    setup_logging(logging.DEBUG if verbose else logging.WARNING)


@cli.command()
@click.argument("seed_file", type=click.Path(path_type=Path, dir_okay=False))
def validate(seed_file: Path) -> None:
    """Validate a seed file."""
    try:
        seed = load_seed(seed_file)
    except SeedLoadError as e:
        raise click.ClickException(str(e)) from e

    click.secho(
        f"✓ {seed_file}: {len(seed.vpcs)} VPC(s), {len(seed.instances)} instance(s)",
        fg="green",
    )


@cli.command()
@click.argument("scenario_file", type=click.Path(path_type=Path, dir_okay=False))
@click.option(
    "--seed-file",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Seed file applied before the scenario",
)
@click.option("--rng-seed", type=int, help="RNG seed for reproducible ids and addresses")
@click.option("--strict-revoke", is_flag=True, help="Revoke the first fully matching rule")
def run(
    scenario_file: Path,
    seed_file: Path | None,
    rng_seed: int | None,
    strict_revoke: bool,
) -> None:
    """Replay a scenario, printing each outcome as a JSON line."""
    config = _load_config(rng_seed, strict_revoke)
    try:
        scenario = load_scenario(scenario_file)
        seed = load_seed(seed_file) if seed_file is not None else None
    except SeedLoadError as e:
        raise click.ClickException(str(e)) from e

    engine = MockEC2(config)
    if seed is not None:
        apply_seed(engine, seed)
    apply_seed(engine, scenario.seed)

    mismatches = 0
    for index, step in enumerate(scenario.steps, start=1):
        response: dict[str, Any] | None = None
        error_code: str | None = None
        try:
            result = engine.call(step.call, **step.params)
            response = result.to_api() if result is not None else None
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
        except ValidationError:
            error_code = VALIDATION_ERROR_CODE

        ok = error_code == step.expect_error
        if not ok:
            mismatches += 1
            logger.warning(
                "Scenario step outcome mismatch",
                extra={
                    "step": index,
                    "call": step.call,
                    "expected_error": step.expect_error,
                    "actual_error": error_code,
                },
            )

        click.echo(
            json.dumps(
                {
                    "step": index,
                    "call": step.call,
                    "ok": ok,
                    "error": error_code,
                    "response": response,
                }
            )
        )

    click.echo(json.dumps({"call_log": engine.get_call_log()}))

    if mismatches:
        click.secho(f"✗ {mismatches} step(s) did not match", fg="red", err=True)
        sys.exit(1)


@cli.command()
def info() -> None:
    """Show the effective configuration and the supported calls."""
    try:
        config = EngineConfig.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    click.echo("Configuration:")
    for field in dataclasses.fields(config):
        click.echo(f"  {field.name}: {getattr(config, field.name)}")

    click.echo("\nSupported calls:")
    for call_name in CALL_MODELS:
        click.echo(f"  {call_name}")


def main() -> None:
    """Entry point for the ec2mock CLI."""
    cli()


if __name__ == "__main__":
    main()
