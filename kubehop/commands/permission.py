"""Per-infra permission commands."""
import typer

from ..models.registry import PermissionRole
from .common import build_client, handle_errors

app = typer.Typer(help="Manage who may act on an infra")


@app.command("list")
def list_permissions(infra_id: int = typer.Argument(..., help="Infra ID")):
    with handle_errors():
        for permission in build_client().permissions.get_infra_permissions(infra_id):
            typer.echo(f"{permission.user_id}\t{permission.user_email}\t{permission.role.value}")


@app.command("set")
def set_permission(
    infra_id: int = typer.Argument(..., help="Infra ID"),
    email: str = typer.Option(..., help="User email"),
    role: PermissionRole = typer.Option(PermissionRole.MEMBER, help="Role to grant"),
):
    with handle_errors():
        build_client().permissions.set_infra_permission(infra_id, email, role)
        typer.echo(f"✅ {email} is now {role.value} on infra {infra_id}")


@app.command("remove")
def remove_permission(
    infra_id: int = typer.Argument(..., help="Infra ID"),
    user_id: int = typer.Option(..., help="User ID"),
):
    with handle_errors():
        build_client().permissions.remove_infra_permission(infra_id, user_id)
        typer.echo(f"🗑️ Removed user {user_id} from infra {infra_id}")


@app.command("users")
def list_users():
    """List every user that can be granted a permission."""
    with handle_errors():
        for user in build_client().permissions.get_all_users():
            typer.echo(f"{user.id}\t{user.email}")
