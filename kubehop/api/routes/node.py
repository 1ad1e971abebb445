from fastapi import APIRouter, Depends

from ...modules.orchestrator import ClusterOrchestrator
from ..deps import TargetBody, get_orchestrator, ok

router = APIRouter(prefix="/node", tags=["node"])


@router.post("/status")
def node_status(body: TargetBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        status = orchestrator.check_node(body.infra_id, body.server_id, body.chain())
    return ok(status.model_dump(by_alias=True))


@router.post("/start")
def start_server(body: TargetBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        orchestrator.authorize(body.infra_id)
        result = orchestrator.client.node.start_server(body.server_id, body.chain())
    return ok(result.to_payload())


@router.post("/stop")
def stop_server(body: TargetBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        orchestrator.authorize(body.infra_id)
        result = orchestrator.client.node.stop_server(body.server_id, body.chain())
    return ok(result.to_payload())


@router.post("/restart")
def restart_server(body: TargetBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        orchestrator.authorize(body.infra_id)
        result = orchestrator.client.node.restart_server(body.server_id, body.chain())
    return ok(result.to_payload())


@router.post("/nodes")
def calculate_nodes(body: TargetBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        orchestrator.authorize(body.infra_id)
        nodes = orchestrator.client.node.calculate_nodes(body.server_id, body.chain())
    return ok([node.model_dump() for node in nodes])


@router.post("/resources")
def calculate_resources(body: TargetBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        orchestrator.authorize(body.infra_id)
        resources = orchestrator.client.node.calculate_resources(body.server_id, body.chain())
    return ok(resources.model_dump())
