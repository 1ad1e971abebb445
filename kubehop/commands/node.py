"""Node lifecycle commands."""
from pathlib import Path

import typer

from .common import build_client, build_orchestrator, handle_errors, load_hops, print_json, print_result, wiping

app = typer.Typer(help="Node health, power state and cluster introspection")

HOPS = typer.Option(..., "--hops", exists=True, dir_okay=False, help="YAML file with the hop chain to the node")


@app.command("status")
def status(
    infra_id: int = typer.Option(..., help="Infra ID"),
    server_id: int = typer.Option(..., help="Server ID"),
    hops: Path = HOPS,
):
    """Check whether kubernetes is installed and running on a node."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        node_status = build_orchestrator().check_node(infra_id, server_id, chain)
        icon = "✅" if node_status.healthy else "❌"
        typer.echo(
            f"{icon} installed={node_status.status.installed} running={node_status.status.running}"
            + (f" ({node_status.message})" if node_status.message else "")
        )


@app.command("start")
def start(server_id: int = typer.Option(..., help="Server ID"), hops: Path = HOPS):
    """Start the node service."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        print_result(build_client().node.start_server(server_id, chain))


@app.command("stop")
def stop(server_id: int = typer.Option(..., help="Server ID"), hops: Path = HOPS):
    """Stop the node service."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        print_result(build_client().node.stop_server(server_id, chain))


@app.command("restart")
def restart(server_id: int = typer.Option(..., help="Server ID"), hops: Path = HOPS):
    """Restart the node service."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        print_result(build_client().node.restart_server(server_id, chain))


@app.command("list")
def list_nodes(server_id: int = typer.Option(..., help="Master to query"), hops: Path = HOPS):
    """List the live cluster nodes."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        for node in build_client().node.calculate_nodes(server_id, chain):
            icon = "✅" if node.ready else "❌"
            typer.echo(f"{icon} {node.name}\t{node.status}\t{node.role}\t{node.version}\t{node.age}")


@app.command("resources")
def resources(server_id: int = typer.Option(..., help="Master to query"), hops: Path = HOPS):
    """Show node counts and cluster capacity."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        print_json(build_client().node.calculate_resources(server_id, chain).model_dump())
