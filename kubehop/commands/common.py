"""Helpers shared by the CLI command groups."""
import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional

import typer
import yaml
from jsonschema import ValidationError, validate

from ..client import KubehopClient
from ..credentials import Secret
from ..errors import CommandError, KubehopError, RequestValidationError
from ..models.hops import HopChain
from ..models.results import CommandResult
from ..modules.orchestrator import ClusterOrchestrator

logger = logging.getLogger("kubehop.cli")

HOP_SCHEMA = {
    "type": "object",
    "properties": {
        "host": {"type": "string", "minLength": 1},
        "port": {"type": ["integer", "string"], "pattern": "^[0-9]+$"},
        "username": {"type": "string", "minLength": 1},
        "password": {"type": "string"},
    },
    "required": ["host", "username"],
}

HOPS_FILE_SCHEMA = {
    "oneOf": [
        {"type": "array", "items": HOP_SCHEMA, "minItems": 1},
        {
            "type": "object",
            "properties": {"hops": {"type": "array", "items": HOP_SCHEMA, "minItems": 1}},
            "required": ["hops"],
        },
    ]
}


def build_client() -> KubehopClient:
    return KubehopClient.from_settings()


def build_orchestrator() -> ClusterOrchestrator:
    return ClusterOrchestrator(build_client())


def load_hops(path: Optional[Path], label: str = "hops") -> Optional[HopChain]:
    """Read a hop chain from a YAML file, prompting for missing passwords.

    The file is either a list of hops or a mapping with a ``hops`` key.

    Args:
        path: YAML file, or None when the chain is optional
        label: Name used in prompts and errors

    Returns:
        The hop chain, or None when ``path`` is None
    """
    if path is None:
        return None
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise typer.BadParameter(f"cannot read {label} file {path}: {e}")
    try:
        validate(instance=data, schema=HOPS_FILE_SCHEMA)
    except ValidationError as e:
        raise typer.BadParameter(f"invalid {label} file {path}: {e.message}")

    hops = data["hops"] if isinstance(data, dict) else data
    for hop in hops:
        if not hop.get("password"):
            hop["password"] = typer.prompt(
                f"Password for {hop['username']}@{hop['host']} ({label})", hide_input=True
            )
    try:
        return HopChain(hops)
    except RequestValidationError as e:
        raise typer.BadParameter(f"invalid {label} file {path}: {e}")


def prompt_secret(value: Optional[str], label: str, required: bool = True) -> Optional[Secret]:
    if value:
        return Secret(value)
    if not required:
        return None
    return Secret(typer.prompt(label, hide_input=True))


@contextmanager
def wiping(*items: Any) -> Iterator[None]:
    """Wipe every hop chain and secret in ``items`` when the block exits."""
    try:
        yield
    finally:
        for item in items:
            if item is not None:
                item.wipe()


@contextmanager
def handle_errors(debug: bool = False) -> Iterator[None]:
    """Turn kubehop errors into a red message and exit code 1."""
    try:
        yield
    except CommandError as e:
        typer.secho(f"❌ {e.operation} failed: {e}", fg=typer.colors.RED, err=True)
        print_result(e.result)
        raise typer.Exit(code=1)
    except KubehopError as e:
        logger.debug("Command failed", exc_info=debug)
        typer.secho(f"❌ {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


def _result_lines(result: CommandResult, depth: int = 0) -> List[str]:
    icon = "✅" if result.success else "❌"
    lines = [f"{'  ' * depth}{icon} {result.summary()}"]
    for step in result.command_results:
        lines.extend(_result_lines(step, depth + 1))
    return lines


def print_result(result: CommandResult) -> None:
    for line in _result_lines(result):
        typer.echo(line)
    if result.output:
        typer.echo(result.output)


def print_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))
