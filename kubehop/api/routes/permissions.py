from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...models.registry import PermissionRole
from ...modules.orchestrator import ClusterOrchestrator
from ..deps import get_orchestrator, ok

router = APIRouter(prefix="/permissions", tags=["permissions"])


class PermissionBody(BaseModel):
    email: str
    role: PermissionRole = PermissionRole.MEMBER


@router.get("/users")
def get_all_users(orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    return ok([user.model_dump() for user in orchestrator.client.permissions.get_all_users()])


@router.get("/{infra_id}")
def get_infra_permissions(infra_id: int, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    orchestrator.authorize(infra_id)
    permissions = orchestrator.client.permissions.get_infra_permissions(infra_id)
    return ok([permission.model_dump() for permission in permissions])


@router.post("/{infra_id}")
def set_infra_permission(infra_id: int, body: PermissionBody,
                         orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    orchestrator.authorize(infra_id, admin=True)
    orchestrator.client.permissions.set_infra_permission(infra_id, body.email, body.role)
    return ok({"infra_id": infra_id, "email": body.email, "role": body.role.value})


@router.delete("/{infra_id}/{user_id}")
def remove_infra_permission(infra_id: int, user_id: int,
                            orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    orchestrator.authorize(infra_id, admin=True)
    orchestrator.client.permissions.remove_infra_permission(infra_id, user_id)
    return ok({"infra_id": infra_id, "user_id": user_id})
