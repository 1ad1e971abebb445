"""Cluster bootstrap commands."""
from pathlib import Path
from typing import Optional

import typer

from ..modules.orchestrator import NodeSpec, OrchestrationResult
from .common import build_orchestrator, handle_errors, load_hops, print_json, print_result, prompt_secret, wiping

app = typer.Typer(help="Install, join, rebuild and remove cluster nodes")

HOPS = typer.Option(..., "--hops", exists=True, dir_okay=False, help="YAML file with the hop chain to the node")
LB_HOPS = typer.Option(None, "--lb-hops", exists=True, dir_okay=False, help="YAML file with the hop chain to the load balancer")
MAIN_HOPS = typer.Option(None, "--main-hops", exists=True, dir_okay=False, help="YAML file with the hop chain to a surviving master")


def _report(outcome: OrchestrationResult) -> None:
    print_result(outcome.result)
    if outcome.server:
        typer.echo(f"📦 Registered server {outcome.server.id} ({outcome.server.name})")
    typer.echo(f"📡 Infra state: {outcome.state.value}")


@app.command("install-lb")
def install_lb(
    infra_id: int = typer.Option(..., help="Infra ID"),
    name: str = typer.Option(..., help="Server name to register"),
    hops: Path = HOPS,
):
    """Install the load balancer of an empty infra."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        typer.echo(f"🚀 Installing load balancer {name} in infra {infra_id}...")
        _report(build_orchestrator().install_load_balancer(infra_id, NodeSpec(name=name, hops=chain)))


@app.command("install-first-master")
def install_first_master(
    infra_id: int = typer.Option(..., help="Infra ID"),
    name: str = typer.Option(..., help="Server name to register"),
    hops: Path = HOPS,
    lb_hops: Optional[Path] = LB_HOPS,
    password: Optional[str] = typer.Option(None, envvar="KUBEHOP_NODE_PASSWORD", help="sudo password on the node"),
    lb_password: Optional[str] = typer.Option(None, envvar="KUBEHOP_LB_PASSWORD", help="sudo password on the load balancer"),
):
    """Initialise the control plane on the first master."""
    chain = load_hops(hops)
    lb_chain = load_hops(lb_hops, "lb_hops")
    secret = prompt_secret(password, "Node sudo password")
    lb_secret = prompt_secret(lb_password, "Load balancer sudo password", required=lb_chain is not None)
    with wiping(chain, lb_chain, secret, lb_secret), handle_errors():
        typer.echo(f"🚀 Installing first master {name} in infra {infra_id}...")
        outcome = build_orchestrator().install_first_master(
            infra_id, NodeSpec(name=name, hops=chain, password=secret), lb_hops=lb_chain, lb_password=lb_secret
        )
        _report(outcome)


@app.command("join-master")
def join_master(
    infra_id: int = typer.Option(..., help="Infra ID"),
    name: str = typer.Option(..., help="Server name to register"),
    main_id: int = typer.Option(..., help="Existing master whose join command is used"),
    hops: Path = HOPS,
    lb_hops: Path = typer.Option(..., "--lb-hops", exists=True, dir_okay=False, help="YAML file with the hop chain to the load balancer"),
    password: Optional[str] = typer.Option(None, envvar="KUBEHOP_NODE_PASSWORD", help="sudo password on the node"),
    lb_password: Optional[str] = typer.Option(None, envvar="KUBEHOP_LB_PASSWORD", help="sudo password on the load balancer"),
):
    """Join an additional master."""
    chain = load_hops(hops)
    lb_chain = load_hops(lb_hops, "lb_hops")
    secret = prompt_secret(password, "Node sudo password")
    lb_secret = prompt_secret(lb_password, "Load balancer sudo password")
    with wiping(chain, lb_chain, secret, lb_secret), handle_errors():
        typer.echo(f"🔗 Joining master {name} to infra {infra_id} via master {main_id}...")
        outcome = build_orchestrator().join_master(
            infra_id, NodeSpec(name=name, hops=chain, password=secret), lb_chain, lb_secret, main_id
        )
        _report(outcome)


@app.command("join-worker")
def join_worker(
    infra_id: int = typer.Option(..., help="Infra ID"),
    name: str = typer.Option(..., help="Server name to register"),
    main_id: int = typer.Option(..., help="Existing master whose join command is used"),
    hops: Path = HOPS,
    password: Optional[str] = typer.Option(None, envvar="KUBEHOP_NODE_PASSWORD", help="sudo password on the node"),
):
    """Join a worker node."""
    chain = load_hops(hops)
    secret = prompt_secret(password, "Node sudo password")
    with wiping(chain, secret), handle_errors():
        typer.echo(f"🔗 Joining worker {name} to infra {infra_id} via master {main_id}...")
        _report(build_orchestrator().join_worker(infra_id, NodeSpec(name=name, hops=chain, password=secret), main_id))


@app.command("rebuild-first-master")
def rebuild_first_master(
    infra_id: int = typer.Option(..., help="Infra ID"),
    server_id: int = typer.Option(..., help="Server to rebuild"),
    hops: Path = HOPS,
    lb_hops: Optional[Path] = LB_HOPS,
    password: Optional[str] = typer.Option(None, envvar="KUBEHOP_NODE_PASSWORD", help="sudo password on the node"),
    lb_password: Optional[str] = typer.Option(None, envvar="KUBEHOP_LB_PASSWORD", help="sudo password on the load balancer"),
):
    """Reinstall the first master in place."""
    chain = load_hops(hops)
    lb_chain = load_hops(lb_hops, "lb_hops")
    secret = prompt_secret(password, "Node sudo password")
    lb_secret = prompt_secret(lb_password, "Load balancer sudo password", required=lb_chain is not None)
    with wiping(chain, lb_chain, secret, lb_secret), handle_errors():
        typer.echo(f"🔧 Rebuilding first master {server_id}...")
        _report(build_orchestrator().rebuild_first_master(
            infra_id, server_id, chain, password=secret, lb_hops=lb_chain, lb_password=lb_secret
        ))


@app.command("rebuild-master")
def rebuild_master(
    infra_id: int = typer.Option(..., help="Infra ID"),
    server_id: int = typer.Option(..., help="Server to rebuild"),
    main_id: int = typer.Option(..., help="Healthy master whose join command is used"),
    hops: Path = HOPS,
    lb_hops: Path = typer.Option(..., "--lb-hops", exists=True, dir_okay=False, help="YAML file with the hop chain to the load balancer"),
    password: Optional[str] = typer.Option(None, envvar="KUBEHOP_NODE_PASSWORD", help="sudo password on the node"),
    lb_password: Optional[str] = typer.Option(None, envvar="KUBEHOP_LB_PASSWORD", help="sudo password on the load balancer"),
):
    """Reinstall a joined master using a healthy master's join command."""
    chain = load_hops(hops)
    lb_chain = load_hops(lb_hops, "lb_hops")
    secret = prompt_secret(password, "Node sudo password")
    lb_secret = prompt_secret(lb_password, "Load balancer sudo password")
    with wiping(chain, lb_chain, secret, lb_secret), handle_errors():
        typer.echo(f"🔧 Rebuilding master {server_id} via master {main_id}...")
        _report(build_orchestrator().rebuild_master(infra_id, server_id, chain, lb_chain, secret, lb_secret, main_id))


@app.command("rebuild-worker")
def rebuild_worker(
    infra_id: int = typer.Option(..., help="Infra ID"),
    server_id: int = typer.Option(..., help="Server to rebuild"),
    main_id: int = typer.Option(..., help="Healthy master whose join command is used"),
    hops: Path = HOPS,
    password: Optional[str] = typer.Option(None, envvar="KUBEHOP_NODE_PASSWORD", help="sudo password on the node"),
):
    """Reinstall a worker node."""
    chain = load_hops(hops)
    secret = prompt_secret(password, "Node sudo password")
    with wiping(chain, secret), handle_errors():
        typer.echo(f"🔧 Rebuilding worker {server_id} via master {main_id}...")
        _report(build_orchestrator().rebuild_worker(infra_id, server_id, chain, secret, main_id))


@app.command("rebuild-ha")
def rebuild_ha(
    infra_id: int = typer.Option(..., help="Infra ID"),
    server_id: int = typer.Option(..., help="Load balancer server"),
    hops: Path = HOPS,
):
    """Reinstall the load balancer."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        typer.echo(f"🔧 Rebuilding load balancer {server_id}...")
        _report(build_orchestrator().rebuild_ha(infra_id, server_id, chain))


@app.command("renew-cert")
def renew_cert(
    infra_id: int = typer.Option(..., help="Infra ID"),
    server_id: int = typer.Option(..., help="Master server"),
    hops: Path = HOPS,
):
    """Renew the control plane certificates of a master."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        typer.echo(f"🔐 Renewing certificates on {server_id}...")
        _report(build_orchestrator().renew_certificate(infra_id, server_id, chain))


@app.command("delete-master")
def delete_master(
    infra_id: int = typer.Option(..., help="Infra ID"),
    server_id: int = typer.Option(..., help="Master to remove"),
    hops: Path = HOPS,
    lb_hops: Optional[Path] = LB_HOPS,
    main_hops: Optional[Path] = MAIN_HOPS,
    password: Optional[str] = typer.Option(None, envvar="KUBEHOP_NODE_PASSWORD", help="sudo password on the node"),
    lb_password: Optional[str] = typer.Option(None, envvar="KUBEHOP_LB_PASSWORD", help="sudo password on the load balancer"),
    main_password: Optional[str] = typer.Option(None, envvar="KUBEHOP_MAIN_PASSWORD", help="sudo password on the surviving master"),
):
    """Remove a master from the cluster and reset it."""
    chain = load_hops(hops)
    lb_chain = load_hops(lb_hops, "lb_hops")
    main_chain = load_hops(main_hops, "main_hops")
    secret = prompt_secret(password, "Node sudo password")
    lb_secret = prompt_secret(lb_password, "Load balancer sudo password", required=lb_chain is not None)
    main_secret = prompt_secret(main_password, "Surviving master sudo password", required=main_chain is not None)
    with wiping(chain, lb_chain, main_chain, secret, lb_secret, main_secret), handle_errors():
        typer.echo(f"🗑️ Deleting master {server_id}...")
        _report(build_orchestrator().delete_master(
            infra_id, server_id, chain, secret,
            lb_hops=lb_chain, lb_password=lb_secret, main_hops=main_chain, main_password=main_secret,
        ))


@app.command("delete-worker")
def delete_worker(
    infra_id: int = typer.Option(..., help="Infra ID"),
    server_id: int = typer.Option(..., help="Worker to remove"),
    main_id: int = typer.Option(..., help="Master that drains the worker"),
    hops: Path = HOPS,
    main_hops: Path = typer.Option(..., "--main-hops", exists=True, dir_okay=False, help="YAML file with the hop chain to the master"),
    password: Optional[str] = typer.Option(None, envvar="KUBEHOP_NODE_PASSWORD", help="sudo password on the node"),
    main_password: Optional[str] = typer.Option(None, envvar="KUBEHOP_MAIN_PASSWORD", help="sudo password on the master"),
):
    """Drain and remove a worker."""
    chain = load_hops(hops)
    main_chain = load_hops(main_hops, "main_hops")
    secret = prompt_secret(password, "Node sudo password")
    main_secret = prompt_secret(main_password, "Master sudo password")
    with wiping(chain, main_chain, secret, main_secret), handle_errors():
        typer.echo(f"🗑️ Deleting worker {server_id}...")
        _report(build_orchestrator().delete_worker(infra_id, server_id, chain, secret, main_chain, main_secret, main_id))


@app.command("remove-node")
def remove_node(
    infra_id: int = typer.Option(..., help="Infra ID"),
    server_id: int = typer.Option(..., help="Master that runs the removal"),
    node_name: str = typer.Option(..., help="Node object to delete"),
    hops: Path = HOPS,
):
    """Delete a Node object from the cluster without touching the machine."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        typer.echo(f"🗑️ Removing node {node_name}...")
        _report(build_orchestrator().remove_node(infra_id, server_id, chain, node_name))


@app.command("state")
def state(infra_id: int = typer.Option(..., help="Infra ID")):
    """Show the topology state of an infra."""
    with handle_errors():
        topology = build_orchestrator().topology(infra_id)
        typer.echo(f"📡 Infra {infra_id}: {topology.state.value}")
        for server in topology.servers:
            typer.echo(f"  - {server.id} {server.name} [{server.type}]")


@app.command("reconcile")
def reconcile(
    infra_id: int = typer.Option(..., help="Infra ID"),
    server_id: int = typer.Option(..., help="Master to query"),
    hops: Path = HOPS,
):
    """Compare registered servers with the live cluster."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        report = build_orchestrator().reconcile(infra_id, server_id, chain)
        if report.consistent:
            typer.echo(f"✅ Infra {infra_id} matches the cluster")
        else:
            typer.secho(f"⚠️ Infra {infra_id} differs from the cluster", fg=typer.colors.YELLOW)
        print_json(report.as_dict())
