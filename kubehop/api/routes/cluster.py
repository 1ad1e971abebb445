from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import Field

from ...credentials import Secret
from ...models.hops import HopDescriptor
from ...modules.orchestrator import ClusterOrchestrator, NodeSpec
from ..deps import CredentialBody, TargetBody, chain, get_orchestrator, ok

router = APIRouter(prefix="/cluster", tags=["cluster"])


class NodeBody(CredentialBody):
    infra_id: int
    name: str
    ip: Optional[str] = None
    hops: List[HopDescriptor] = Field(default_factory=list)
    password: Optional[Secret] = None

    def node(self) -> NodeSpec:
        return NodeSpec(name=self.name, hops=chain(self.hops), password=self.password, ip=self.ip)


class FirstMasterBody(NodeBody):
    lb_hops: Optional[List[HopDescriptor]] = None
    lb_password: Optional[Secret] = None


class JoinMasterBody(NodeBody):
    lb_hops: List[HopDescriptor] = Field(default_factory=list)
    lb_password: Optional[Secret] = None
    main_id: Optional[int] = None


class JoinWorkerBody(NodeBody):
    main_id: Optional[int] = None


class RebuildFirstMasterBody(TargetBody):
    password: Optional[Secret] = None
    lb_hops: Optional[List[HopDescriptor]] = None
    lb_password: Optional[Secret] = None


class RebuildMasterBody(TargetBody):
    password: Optional[Secret] = None
    lb_hops: List[HopDescriptor] = Field(default_factory=list)
    lb_password: Optional[Secret] = None
    main_id: Optional[int] = None


class RebuildWorkerBody(TargetBody):
    password: Optional[Secret] = None
    main_id: Optional[int] = None


class DeleteMasterBody(TargetBody):
    password: Optional[Secret] = None
    lb_hops: Optional[List[HopDescriptor]] = None
    lb_password: Optional[Secret] = None
    main_hops: Optional[List[HopDescriptor]] = None
    main_password: Optional[Secret] = None


class DeleteWorkerBody(TargetBody):
    password: Optional[Secret] = None
    main_hops: List[HopDescriptor] = Field(default_factory=list)
    main_password: Optional[Secret] = None
    main_id: Optional[int] = None


class RemoveNodeBody(TargetBody):
    node_name: str


@router.get("/{infra_id}/state")
def topology_state(infra_id: int, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    orchestrator.authorize(infra_id)
    topology = orchestrator.topology(infra_id)
    return ok({
        "infra_id": infra_id,
        "state": topology.state.value,
        "masters": [s.id for s in topology.masters],
        "workers": [s.id for s in topology.workers],
        "load_balancers": [s.id for s in topology.load_balancers],
        "degraded": sorted(topology.degraded),
        "unverified": topology.unverified,
    })


@router.post("/install-load-balancer")
def install_load_balancer(body: NodeBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        outcome = orchestrator.install_load_balancer(body.infra_id, body.node())
    return ok(outcome.as_dict())


@router.post("/install-first-master")
def install_first_master(body: FirstMasterBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        outcome = orchestrator.install_first_master(
            body.infra_id, body.node(), lb_hops=chain(body.lb_hops), lb_password=body.lb_password
        )
    return ok(outcome.as_dict())


@router.post("/join-master")
def join_master(body: JoinMasterBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        outcome = orchestrator.join_master(
            body.infra_id, body.node(), chain(body.lb_hops), body.lb_password, body.main_id
        )
    return ok(outcome.as_dict())


@router.post("/join-worker")
def join_worker(body: JoinWorkerBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        outcome = orchestrator.join_worker(body.infra_id, body.node(), body.main_id)
    return ok(outcome.as_dict())


@router.post("/rebuild-first-master")
def rebuild_first_master(body: RebuildFirstMasterBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        outcome = orchestrator.rebuild_first_master(
            body.infra_id, body.server_id, body.chain(), password=body.password,
            lb_hops=chain(body.lb_hops), lb_password=body.lb_password,
        )
    return ok(outcome.as_dict())


@router.post("/rebuild-master")
def rebuild_master(body: RebuildMasterBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        outcome = orchestrator.rebuild_master(
            body.infra_id, body.server_id, body.chain(), chain(body.lb_hops),
            body.password, body.lb_password, body.main_id,
        )
    return ok(outcome.as_dict())


@router.post("/rebuild-worker")
def rebuild_worker(body: RebuildWorkerBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        outcome = orchestrator.rebuild_worker(body.infra_id, body.server_id, body.chain(), body.password, body.main_id)
    return ok(outcome.as_dict())


@router.post("/rebuild-ha")
def rebuild_ha(body: TargetBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        outcome = orchestrator.rebuild_ha(body.infra_id, body.server_id, body.chain())
    return ok(outcome.as_dict())


@router.post("/renew-certificate")
def renew_certificate(body: TargetBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        outcome = orchestrator.renew_certificate(body.infra_id, body.server_id, body.chain())
    return ok(outcome.as_dict())


@router.post("/delete-master")
def delete_master(body: DeleteMasterBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        outcome = orchestrator.delete_master(
            body.infra_id, body.server_id, body.chain(), body.password,
            lb_hops=chain(body.lb_hops), lb_password=body.lb_password,
            main_hops=chain(body.main_hops), main_password=body.main_password,
        )
    return ok(outcome.as_dict())


@router.post("/delete-worker")
def delete_worker(body: DeleteWorkerBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        outcome = orchestrator.delete_worker(
            body.infra_id, body.server_id, body.chain(), body.password,
            chain(body.main_hops), body.main_password, body.main_id,
        )
    return ok(outcome.as_dict())


@router.post("/remove-node")
def remove_node(body: RemoveNodeBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        outcome = orchestrator.remove_node(body.infra_id, body.server_id, body.chain(), body.node_name)
    return ok(outcome.as_dict())


@router.post("/reconcile")
def reconcile(body: TargetBody, orchestrator: ClusterOrchestrator = Depends(get_orchestrator)):
    with body:
        report = orchestrator.reconcile(body.infra_id, body.server_id, body.chain())
    return ok(report.as_dict())
