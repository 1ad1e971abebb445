from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...models.hops import HopDescriptor, HopEndpoint
from ...models.registry import InfraType, ServerDraft
from ...modules.orchestrator import ClusterOrchestrator
from ..deps import CredentialBody, chain, get_orchestrator, ok

router = APIRouter(prefix="/infra", tags=["infra"])

SERVER_SECRETS = {"join_command", "certificate_key"}


class InfraBody(BaseModel):
    name: str
    type: InfraType
    info: str = ""


class InfraUpdateBody(BaseModel):
    name: Optional[str] = None
    type: Optional[InfraType] = None
    info: Optional[str] = None


class ImportBody(CredentialBody):
    device_id: int
    user_id: int
    name: str
    type: InfraType = InfraType.EXTERNAL_KUBERNETES
    info: str = ""
    hops: List[HopDescriptor] = Field(default_factory=list)


class ServerUpdateBody(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    hops: Optional[List[HopEndpoint]] = None


@router.get("")
def list_infras(orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    return ok([infra.model_dump() for infra in orchestrator.client.infra.list_infras()])


@router.post("")
def create_infra(body: InfraBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    infra = orchestrator.client.infra.create_infra(body.name, body.type, body.info)
    return ok(infra.model_dump())


@router.post("/import")
def import_kubernetes_infra(body: ImportBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        infra = orchestrator.client.infra.import_kubernetes_infra(
            body.device_id, body.user_id, body.name, chain(body.hops), type=body.type, info=body.info
        )
    return ok(infra.model_dump())


@router.get("/servers/{server_id}")
def get_server(server_id: int, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    server = orchestrator.client.infra.get_server(server_id)
    orchestrator.authorize(server.infra_id)
    return ok(server.model_dump(exclude=SERVER_SECRETS))


@router.put("/servers/{server_id}")
def update_server(server_id: int, body: ServerUpdateBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    server = orchestrator.client.infra.get_server(server_id)
    orchestrator.authorize(server.infra_id, admin=True)
    server = orchestrator.client.infra.update_server(server_id, **body.model_dump(exclude_none=True))
    return ok(server.model_dump(exclude=SERVER_SECRETS))


@router.delete("/servers/{server_id}")
def delete_server(server_id: int, force: bool = False,
                  orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    orchestrator.delete_server(server_id, force=force)
    return ok({"id": server_id})


@router.get("/{infra_id}")
def get_infra(infra_id: int, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    orchestrator.authorize(infra_id)
    return ok(orchestrator.client.infra.get_infra(infra_id).model_dump())


@router.put("/{infra_id}")
def update_infra(infra_id: int, body: InfraUpdateBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    orchestrator.authorize(infra_id, admin=True)
    infra = orchestrator.client.infra.update_infra(infra_id, body.name, body.type, body.info)
    return ok(infra.model_dump())


@router.delete("/{infra_id}")
def delete_infra(infra_id: int, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    orchestrator.authorize(infra_id, admin=True)
    orchestrator.client.infra.delete_infra(infra_id)
    return ok({"id": infra_id})


@router.get("/{infra_id}/servers")
def list_servers(infra_id: int, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    orchestrator.authorize(infra_id)
    servers = orchestrator.client.infra.list_servers(infra_id)
    return ok([server.model_dump(exclude=SERVER_SECRETS) for server in servers])


@router.post("/{infra_id}/servers")
def create_server(infra_id: int, body: ServerDraft, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    orchestrator.authorize(infra_id, admin=True)
    server = orchestrator.client.infra.create_server(infra_id, body)
    return ok(server.model_dump(exclude=SERVER_SECRETS))
