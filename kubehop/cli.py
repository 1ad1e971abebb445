import logging
import sys
from typing import Optional

import typer

from kubehop.commands import cluster, infra, node, permission, workload
from kubehop.config import get_settings
from kubehop.logging import configure_logging

app = typer.Typer(help="kubehop - Kubernetes cluster lifecycle over SSH hop chains")

debug_mode = False

# Add all command groups
app.add_typer(cluster.app, name="cluster")
app.add_typer(node.app, name="node")
app.add_typer(workload.app, name="workload")
app.add_typer(infra.app, name="infra")
app.add_typer(permission.app, name="permission")


# Global options callback
@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to a kubehop config file"),
):
    """kubehop - Kubernetes cluster lifecycle over SSH hop chains."""
    global debug_mode
    debug_mode = debug
    settings = get_settings(config)
    configure_logging(
        level=settings.logging.level,
        debug=debug,
        log_file=settings.logging.file,
        max_size_mb=settings.logging.max_size_mb,
        backup_count=settings.logging.backup_count,
    )
    if debug:
        logging.getLogger("kubehop").debug("Debug mode enabled")


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (default from config)"),
    port: Optional[int] = typer.Option(None, help="Port (default from config)"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Run the HTTP gateway."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "kubehop.api.main:create_app",
        factory=True,
        host=host or settings.gateway.host,
        port=port or settings.gateway.port,
        reload=reload,
        log_level="debug" if debug_mode else settings.logging.level.lower(),
    )


if __name__ == "__main__":
    try:
        app()
    except Exception as e:
        if debug_mode:
            import traceback
            logging.error(f"Unhandled exception: {e}\n{traceback.format_exc()}")
        else:
            logging.error(f"Error: {e}")
        sys.exit(1)
