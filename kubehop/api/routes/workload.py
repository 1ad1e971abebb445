from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import Field

from ...credentials import Secret
from ...modules.orchestrator import ClusterOrchestrator
from ..deps import TargetBody, get_orchestrator, ok

router = APIRouter(prefix="/workload", tags=["workload"])


class NamespaceBody(TargetBody):
    namespace: str


class PodBody(NamespaceBody):
    pod_name: str


class PodLogsBody(PodBody):
    lines: Optional[int] = Field(default=None, ge=1)


class DeployBody(TargetBody):
    username_repo: str = ""
    password_repo: Optional[Secret] = None
    docker_username: str = ""
    docker_password: Optional[Secret] = None


@router.post("/namespace-status")
def namespace_status(body: NamespaceBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        orchestrator.authorize(body.infra_id)
        status = orchestrator.client.workload.get_namespace_and_pod_status(
            body.server_id, body.chain(), body.namespace
        )
    return ok(status.model_dump())


@router.post("/deploy")
def deploy(body: DeployBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        orchestrator.authorize(body.infra_id)
        result = orchestrator.client.workload.deploy_kubernetes(
            body.server_id, body.chain(),
            body.username_repo, body.password_repo, body.docker_username, body.docker_password,
        )
    return ok(result.to_payload())


@router.post("/delete-namespace")
def delete_namespace(body: NamespaceBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        orchestrator.authorize(body.infra_id)
        result = orchestrator.client.workload.delete_namespace(body.server_id, body.chain(), body.namespace)
    return ok(result.to_payload())


@router.post("/pod-logs")
def pod_logs(body: PodLogsBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        orchestrator.authorize(body.infra_id)
        logs = orchestrator.client.workload.get_pod_logs(
            body.server_id, body.chain(), body.namespace, body.pod_name, lines=body.lines
        )
    return ok(logs.model_dump())


@router.post("/restart-pod")
def restart_pod(body: PodBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        orchestrator.authorize(body.infra_id)
        result = orchestrator.client.workload.restart_pod(body.server_id, body.chain(), body.namespace, body.pod_name)
    return ok(result.to_payload())


@router.post("/delete-pod")
def delete_pod(body: PodBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        orchestrator.authorize(body.infra_id)
        result = orchestrator.client.workload.delete_pod(body.server_id, body.chain(), body.namespace, body.pod_name)
    return ok(result.to_payload())
