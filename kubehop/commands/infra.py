"""Infra and server registry commands."""
from pathlib import Path
from typing import Optional

import typer

from ..models.registry import InfraType
from .common import build_client, build_orchestrator, handle_errors, load_hops, print_json, wiping

app = typer.Typer(help="Manage infras and their server records")


@app.command("list")
def list_infras():
    """List infras. Prints nothing when the backend is unavailable."""
    with handle_errors():
        for infra in build_client().infra.list_infras():
            typer.echo(f"{infra.id}\t{infra.name}\t{infra.type.value}")


@app.command("get")
def get_infra(infra_id: int = typer.Argument(..., help="Infra ID")):
    with handle_errors():
        print_json(build_client().infra.get_infra(infra_id).model_dump(mode="json"))


@app.command("create")
def create_infra(
    name: str = typer.Option(..., help="Infra name"),
    type: InfraType = typer.Option(InfraType.KUBERNETES, "--type", help="Infra type"),
    info: str = typer.Option("", help="Free-form description"),
):
    with handle_errors():
        infra = build_client().infra.create_infra(name, type, info)
        typer.echo(f"✅ Created infra {infra.id} ({infra.name})")


@app.command("update")
def update_infra(
    infra_id: int = typer.Argument(..., help="Infra ID"),
    name: Optional[str] = typer.Option(None, help="New name"),
    type: Optional[InfraType] = typer.Option(None, "--type", help="New type"),
    info: Optional[str] = typer.Option(None, help="New description"),
):
    with handle_errors():
        infra = build_client().infra.update_infra(infra_id, name=name, type=type, info=info)
        typer.echo(f"✅ Updated infra {infra.id} ({infra.name})")


@app.command("delete")
def delete_infra(
    infra_id: int = typer.Argument(..., help="Infra ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    if not yes:
        typer.confirm(f"Delete infra {infra_id}?", abort=True)
    with handle_errors():
        build_client().infra.delete_infra(infra_id)
        typer.echo(f"🗑️ Deleted infra {infra_id}")


@app.command("import")
def import_infra(
    name: str = typer.Option(..., help="Infra name"),
    device_id: int = typer.Option(..., help="Device ID"),
    user_id: int = typer.Option(..., help="Owner user ID"),
    hops: Path = typer.Option(..., "--hops", exists=True, dir_okay=False, help="YAML file with the hop chain to a master"),
    type: InfraType = typer.Option(InfraType.EXTERNAL_KUBERNETES, "--type", help="Infra type"),
    info: str = typer.Option("", help="Free-form description"),
):
    """Register an existing cluster as a new infra."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        infra = build_client().infra.import_kubernetes_infra(device_id, user_id, name, chain, type=type, info=info)
        typer.echo(f"✅ Imported infra {infra.id} ({infra.name})")


@app.command("servers")
def list_servers(infra_id: int = typer.Argument(..., help="Infra ID")):
    with handle_errors():
        for server in build_client().infra.list_servers(infra_id):
            typer.echo(f"{server.id}\t{server.name}\t{server.type}\t{server.ip}:{server.port}\t{server.status or '-'}")


@app.command("server")
def get_server(server_id: int = typer.Argument(..., help="Server ID")):
    with handle_errors():
        server = build_client().infra.get_server(server_id)
        print_json(server.model_dump(mode="json", exclude={"join_command", "certificate_key"}))


@app.command("update-server")
def update_server(
    server_id: int = typer.Argument(..., help="Server ID"),
    name: Optional[str] = typer.Option(None, help="New name"),
    status: Optional[str] = typer.Option(None, help="New status"),
):
    with handle_errors():
        server = build_client().infra.update_server(server_id, name=name, status=status)
        typer.echo(f"✅ Updated server {server.id} ({server.name})")


@app.command("delete-server")
def delete_server(
    server_id: int = typer.Argument(..., help="Server ID"),
    force: bool = typer.Option(False, "--force", help="Delete even if the node may still be in the cluster"),
):
    """Delete a server record. Remove the node from the cluster first."""
    with handle_errors():
        build_orchestrator().delete_server(server_id, force=force)
        typer.echo(f"🗑️ Deleted server {server_id}")
