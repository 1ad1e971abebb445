"""Namespace and pod commands."""
from pathlib import Path
from typing import Optional

import typer

from .common import build_client, handle_errors, load_hops, print_result, prompt_secret, wiping

app = typer.Typer(help="Namespace and pod operations")

HOPS = typer.Option(..., "--hops", exists=True, dir_okay=False, help="YAML file with the hop chain to a master")


@app.command("status")
def namespace_status(
    server_id: int = typer.Option(..., help="Master to query"),
    namespace: str = typer.Option(..., "--namespace", "-n", help="Namespace"),
    hops: Path = HOPS,
):
    """Show a namespace and its pods."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        result = build_client().workload.get_namespace_and_pod_status(server_id, chain, namespace)
        if result.namespace:
            typer.echo(f"📦 {result.namespace.name} ({result.namespace.status})")
        for pod in result.pods:
            typer.echo(f"  {pod.name}\t{pod.status}\t{pod.ready}\trestarts={pod.restarts}")


@app.command("deploy")
def deploy(
    server_id: int = typer.Option(..., help="Master to deploy through"),
    hops: Path = HOPS,
    username_repo: str = typer.Option(..., help="Git username"),
    docker_username: str = typer.Option(..., help="Registry username"),
    password_repo: Optional[str] = typer.Option(None, envvar="KUBEHOP_REPO_PASSWORD", help="Git password or token"),
    docker_password: Optional[str] = typer.Option(None, envvar="KUBEHOP_DOCKER_PASSWORD", help="Registry password"),
):
    """Build and deploy a service."""
    chain = load_hops(hops)
    repo_secret = prompt_secret(password_repo, "Git password")
    docker_secret = prompt_secret(docker_password, "Registry password")
    with wiping(chain, repo_secret, docker_secret), handle_errors():
        typer.echo("🚀 Deploying...")
        print_result(build_client().workload.deploy_kubernetes(
            server_id, chain, username_repo, repo_secret, docker_username, docker_secret
        ))


@app.command("delete-namespace")
def delete_namespace(
    server_id: int = typer.Option(..., help="Master to run on"),
    namespace: str = typer.Option(..., "--namespace", "-n", help="Namespace"),
    hops: Path = HOPS,
):
    """Delete a namespace."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        print_result(build_client().workload.delete_namespace(server_id, chain, namespace))


@app.command("logs")
def logs(
    server_id: int = typer.Option(..., help="Master to run on"),
    namespace: str = typer.Option(..., "--namespace", "-n", help="Namespace"),
    pod: str = typer.Option(..., "--pod", help="Pod name"),
    lines: Optional[int] = typer.Option(None, min=1, help="Number of lines from the end"),
    hops: Path = HOPS,
):
    """Print the log of a pod."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        result = build_client().workload.get_pod_logs(server_id, chain, namespace, pod, lines=lines)
        if result.pod_missing:
            typer.secho(f"⚠️ Pod {namespace}/{pod} no longer exists", fg=typer.colors.YELLOW)
            return
        typer.echo(result.logs or "")


@app.command("restart-pod")
def restart_pod(
    server_id: int = typer.Option(..., help="Master to run on"),
    namespace: str = typer.Option(..., "--namespace", "-n", help="Namespace"),
    pod: str = typer.Option(..., "--pod", help="Pod name"),
    hops: Path = HOPS,
):
    """Restart a pod."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        print_result(build_client().workload.restart_pod(server_id, chain, namespace, pod))


@app.command("delete-pod")
def delete_pod(
    server_id: int = typer.Option(..., help="Master to run on"),
    namespace: str = typer.Option(..., "--namespace", "-n", help="Namespace"),
    pod: str = typer.Option(..., "--pod", help="Pod name"),
    hops: Path = HOPS,
):
    """Delete a pod."""
    chain = load_hops(hops)
    with wiping(chain), handle_errors():
        print_result(build_client().workload.delete_pod(server_id, chain, namespace, pod))
