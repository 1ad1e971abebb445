"""Guarded cluster workflows.

Each bootstrap call goes through the same steps: check permission, guard
against the infra's topology state, dispatch, and only after a confirmed
success write the registry. Failed or timed-out calls never write.
"""
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from ..credentials import Secret
from ..errors import KubehopError, OperationTimeoutError, PartialSuccessError, TopologyError
from ..models.cluster import NodeStatus, ReconcileReport
from ..models.hops import HopChain
from ..models.registry import Server, ServerDraft, ServerRole, ServerStatus
from ..models.results import CommandResult
from ..operations import Operation
from .topology import InfraTopology, TopologyState, TopologyTracker, guard

if TYPE_CHECKING:
    from ..client import KubehopClient

logger = logging.getLogger("kubehop.orchestrator")


@dataclass
class NodeSpec:
    """A machine about to become a cluster node."""
    name: str
    hops: HopChain
    password: Optional[Secret] = None
    ip: Optional[str] = None

    def draft(self, role: ServerRole, result: CommandResult) -> ServerDraft:
        target = self.hops.target
        secrets = _node_secrets(result)
        return ServerDraft(
            name=self.name,
            type=role.value,
            ip=self.ip or target.host,
            port=target.port,
            status=ServerStatus.RUNNING.value,
            hops=self.hops.endpoints(),
            join_command=secrets.get("join_command"),
            certificate_key=secrets.get("certificate_key"),
        )


@dataclass
class OrchestrationResult:
    operation: Operation
    result: CommandResult
    state: TopologyState
    server: Optional[Server] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation.value,
            "state": self.state.value,
            "result": self.result.to_payload(),
            "server": self.server.model_dump(exclude={"join_command", "certificate_key"}) if self.server else None,
        }


def _node_secrets(result: CommandResult) -> Dict[str, Optional[str]]:
    data = result.details.data if result.details else None
    if not isinstance(data, dict):
        return {}
    return {key: data.get(key) for key in ("join_command", "certificate_key") if data.get(key)}


class ClusterOrchestrator:
    """Runs bootstrap and lifecycle workflows against one backend.

    Args:
        client: Client used for every remote call
        tracker: Degraded/detached/unverified overlay, shared between orchestrators
        actor_id: User on whose behalf calls are made; None skips permission checks
    """

    def __init__(self, client: "KubehopClient", tracker: Optional[TopologyTracker] = None,
                 actor_id: Optional[int] = None):
        self.client = client
        self.tracker = tracker or TopologyTracker()
        self.actor_id = actor_id
        self._gate = client.permission_gate()

    def as_user(self, actor_id: Optional[int]) -> "ClusterOrchestrator":
        return ClusterOrchestrator(self.client, self.tracker, actor_id)

    # state

    def authorize(self, infra_id: int, admin: bool = False) -> None:
        if self.actor_id is not None:
            self._gate.require(infra_id, self.actor_id, admin=admin)

    def topology(self, infra_id: int) -> InfraTopology:
        infra = self.client.infra.get_infra(infra_id)
        servers = self.client.infra.list_servers(infra_id)
        return self.tracker.snapshot(infra, servers)

    def state(self, infra_id: int) -> TopologyState:
        return self.topology(infra_id).state

    def _check(self, operation: Operation, **fields: Any) -> None:
        # hop chains and credentials are validated before any registry lookup
        self.client.dispatcher.build(operation, **fields)

    def _run(self, operation: Operation, infra_id: int, call: Callable[[], CommandResult],
             target_id: Optional[int] = None, main_id: Optional[int] = None,
             has_lb_hops: bool = False) -> CommandResult:
        self.authorize(infra_id, admin=True)
        guard(operation, self.topology(infra_id), target_id=target_id, main_id=main_id, has_lb_hops=has_lb_hops)
        try:
            return call()
        except (OperationTimeoutError, PartialSuccessError):
            self.tracker.mark_unverified(infra_id)
            raise

    def _register(self, infra_id: int, node: NodeSpec, role: ServerRole, result: CommandResult) -> Server:
        try:
            return self.client.infra.create_server(infra_id, node.draft(role, result))
        except KubehopError:
            # the node exists on the cluster but has no record
            logger.error(f"{node.name} joined infra {infra_id} but could not be registered")
            self.tracker.mark_unverified(infra_id)
            raise

    def _finish(self, operation: Operation, infra_id: int, result: CommandResult,
                server: Optional[Server] = None) -> OrchestrationResult:
        state = self.state(infra_id)
        logger.info(f"{operation.value} on infra {infra_id} done, state is now {state.value}")
        return OrchestrationResult(operation, result, state, server)

    def _refresh_secrets(self, server_id: int, result: CommandResult) -> Optional[Server]:
        secrets = _node_secrets(result)
        if not secrets:
            return None
        return self.client.infra.update_server(server_id, **secrets)

    # bootstrap

    def install_load_balancer(self, infra_id: int, node: NodeSpec) -> OrchestrationResult:
        op = Operation.INSTALL_LOAD_BALANCER
        self._check(op, infra_id=infra_id, hops=node.hops)
        result = self._run(op, infra_id, lambda: self.client.cluster.install_load_balancer(infra_id, node.hops))
        server = self._register(infra_id, node, ServerRole.HA, result)
        return self._finish(op, infra_id, result, server)

    def install_first_master(self, infra_id: int, node: NodeSpec, lb_hops: Optional[HopChain] = None,
                             lb_password: Optional[Secret] = None) -> OrchestrationResult:
        op = Operation.INSTALL_FIRST_MASTER
        self._check(op, infra_id=infra_id, hops=node.hops, password=node.password,
                    lb_hops=lb_hops, lb_password=lb_password)
        result = self._run(
            op, infra_id,
            lambda: self.client.cluster.install_first_master(
                infra_id, node.hops, password=node.password, lb_hops=lb_hops, lb_password=lb_password
            ),
            has_lb_hops=bool(lb_hops),
        )
        server = self._register(infra_id, node, ServerRole.MASTER, result)
        return self._finish(op, infra_id, result, server)

    def join_master(self, infra_id: int, node: NodeSpec, lb_hops: HopChain, lb_password: Secret,
                    main_id: Optional[int]) -> OrchestrationResult:
        op = Operation.JOIN_MASTER
        self._check(op, infra_id=infra_id, hops=node.hops, lb_hops=lb_hops, password=node.password,
                    lb_password=lb_password, main_id=main_id)
        result = self._run(
            op, infra_id,
            lambda: self.client.cluster.join_master(
                infra_id, node.hops, lb_hops, node.password, lb_password, main_id
            ),
            main_id=main_id,
        )
        server = self._register(infra_id, node, ServerRole.MASTER, result)
        return self._finish(op, infra_id, result, server)

    def join_worker(self, infra_id: int, node: NodeSpec, main_id: Optional[int]) -> OrchestrationResult:
        op = Operation.JOIN_WORKER
        self._check(op, hops=node.hops, password=node.password, main_id=main_id)
        result = self._run(
            op, infra_id,
            lambda: self.client.cluster.join_worker(node.hops, node.password, main_id),
            main_id=main_id,
        )
        server = self._register(infra_id, node, ServerRole.WORKER, result)
        return self._finish(op, infra_id, result, server)

    # maintenance

    def rebuild_first_master(self, infra_id: int, server_id: int, hops: HopChain,
                             password: Optional[Secret] = None, lb_hops: Optional[HopChain] = None,
                             lb_password: Optional[Secret] = None) -> OrchestrationResult:
        op = Operation.REBUILD_FIRST_MASTER
        self._check(op, server_id=server_id, hops=hops, password=password, lb_hops=lb_hops,
                    lb_password=lb_password, infra_id=infra_id)
        result = self._run(
            op, infra_id,
            lambda: self.client.cluster.rebuild_first_master(
                server_id, hops, password=password, lb_hops=lb_hops, lb_password=lb_password, infra_id=infra_id
            ),
            target_id=server_id,
        )
        return self._rebuilt(op, infra_id, server_id, result)

    def rebuild_master(self, infra_id: int, server_id: int, hops: HopChain, lb_hops: HopChain,
                       password: Secret, lb_password: Secret, main_id: Optional[int]) -> OrchestrationResult:
        op = Operation.REBUILD_MASTER
        self._check(op, server_id=server_id, hops=hops, lb_hops=lb_hops, password=password,
                    lb_password=lb_password, main_id=main_id, infra_id=infra_id)
        result = self._run(
            op, infra_id,
            lambda: self.client.cluster.rebuild_master(
                server_id, hops, lb_hops, password, lb_password, main_id, infra_id=infra_id
            ),
            target_id=server_id, main_id=main_id,
        )
        return self._rebuilt(op, infra_id, server_id, result)

    def rebuild_worker(self, infra_id: int, server_id: int, hops: HopChain, password: Secret,
                       main_id: Optional[int]) -> OrchestrationResult:
        op = Operation.REBUILD_WORKER
        self._check(op, server_id=server_id, hops=hops, password=password, main_id=main_id)
        result = self._run(
            op, infra_id,
            lambda: self.client.cluster.rebuild_worker(server_id, hops, password, main_id),
            target_id=server_id, main_id=main_id,
        )
        return self._rebuilt(op, infra_id, server_id, result)

    def rebuild_ha(self, infra_id: int, server_id: int, hops: HopChain) -> OrchestrationResult:
        op = Operation.REBUILD_HA
        self._check(op, server_id=server_id, hops=hops)
        result = self._run(op, infra_id, lambda: self.client.cluster.rebuild_ha(server_id, hops), target_id=server_id)
        return self._rebuilt(op, infra_id, server_id, result)

    def _rebuilt(self, op: Operation, infra_id: int, server_id: int, result: CommandResult) -> OrchestrationResult:
        self.tracker.clear_degraded(infra_id, server_id)
        server = self._refresh_secrets(server_id, result)
        return self._finish(op, infra_id, result, server)

    def renew_certificate(self, infra_id: int, server_id: int, hops: HopChain) -> OrchestrationResult:
        op = Operation.RENEW_CERTIFICATE
        self._check(op, server_id=server_id, hops=hops)
        result = self._run(
            op, infra_id, lambda: self.client.cluster.renew_certificate(server_id, hops), target_id=server_id
        )
        return self._finish(op, infra_id, result)

    # teardown

    def delete_master(self, infra_id: int, server_id: int, hops: HopChain, password: Secret,
                      lb_hops: Optional[HopChain] = None, lb_password: Optional[Secret] = None,
                      main_hops: Optional[HopChain] = None,
                      main_password: Optional[Secret] = None) -> OrchestrationResult:
        op = Operation.DELETE_MASTER
        self._check(op, server_id=server_id, hops=hops, password=password, lb_hops=lb_hops,
                    lb_password=lb_password, main_hops=main_hops, main_password=main_password)
        result = self._run(
            op, infra_id,
            lambda: self.client.cluster.delete_master(
                server_id, hops, password, lb_hops=lb_hops, lb_password=lb_password,
                main_hops=main_hops, main_password=main_password,
            ),
            target_id=server_id,
        )
        self.tracker.mark_detached(infra_id, server_id)
        return self._finish(op, infra_id, result)

    def delete_worker(self, infra_id: int, server_id: int, hops: HopChain, password: Secret,
                      main_hops: HopChain, main_password: Secret, main_id: Optional[int]) -> OrchestrationResult:
        op = Operation.DELETE_WORKER
        self._check(op, server_id=server_id, hops=hops, password=password, main_hops=main_hops,
                    main_password=main_password, main_id=main_id)
        result = self._run(
            op, infra_id,
            lambda: self.client.cluster.delete_worker(server_id, hops, password, main_hops, main_password, main_id),
            target_id=server_id, main_id=main_id,
        )
        self.tracker.mark_detached(infra_id, server_id)
        return self._finish(op, infra_id, result)

    def remove_node(self, infra_id: int, server_id: int, hops: HopChain, node_name: str) -> OrchestrationResult:
        """Delete the Node object ``node_name`` using master ``server_id``.

        A registered server with that name is treated as detached afterwards,
        so its record may be deleted.
        """
        op = Operation.REMOVE_NODE
        self._check(op, server_id=server_id, hops=hops, node_name=node_name)
        result = self._run(
            op, infra_id, lambda: self.client.cluster.remove_node(server_id, hops, node_name), target_id=server_id
        )
        for server in self.client.infra.list_servers(infra_id):
            if server.name == node_name:
                self.tracker.mark_detached(infra_id, server.id)
        return self._finish(op, infra_id, result)

    def delete_server(self, server_id: int, force: bool = False) -> None:
        """Delete a server record.

        Cluster nodes must be removed with deleteMaster, deleteWorker or
        removeNode first; ``force`` skips that check.

        Raises:
            TopologyError: If the node is still a cluster member
        """
        server = self.client.infra.get_server(server_id)
        self.authorize(server.infra_id, admin=True)
        in_cluster = server.is_master or server.is_worker
        if in_cluster and not force and not self.tracker.is_detached(server.infra_id, server_id):
            raise TopologyError.reject(
                Operation.DELETE_SERVER.value,
                f"server {server_id} is still a cluster node; remove it from the cluster first",
            )
        self.client.infra.delete_server(server_id)
        self.tracker.forget(server.infra_id, server_id)

    # health

    def check_node(self, infra_id: int, server_id: int, hops: HopChain) -> NodeStatus:
        """Poll one node and update its degraded mark."""
        self._check(Operation.GET_NODE_STATUS, server_id=server_id, hops=hops, infra_id=infra_id)
        self.authorize(infra_id)
        status = self.client.node.get_node_status(server_id, hops, infra_id=infra_id)
        if status.healthy:
            self.tracker.clear_degraded(infra_id, server_id)
        else:
            self.tracker.mark_degraded(infra_id, server_id)
        return status

    def reconcile(self, infra_id: int, server_id: int, hops: HopChain) -> ReconcileReport:
        """Compare registered nodes with the live cluster seen from ``server_id``.

        Only reports differences; nothing is created or deleted. Clears the
        unverified mark left by a timed-out operation.
        """
        self._check(Operation.CALCULATE_NODES, server_id=server_id, hops=hops)
        self.authorize(infra_id)
        live = self.client.node.calculate_nodes(server_id, hops)
        registered = self.topology(infra_id)
        names: List[str] = [s.name for s in registered.servers if s.is_master or s.is_worker]
        live_names = {node.name for node in live}

        report = ReconcileReport(
            infra_id=infra_id,
            live_nodes=live,
            missing_from_cluster=sorted(name for name in names if name not in live_names),
            unregistered_nodes=sorted(name for name in live_names if name not in names),
            not_ready=sorted(node.name for node in live if not node.ready),
        )
        self.tracker.mark_verified(infra_id)
        if report.consistent:
            logger.info(f"Infra {infra_id} matches the live cluster ({len(live)} nodes)")
        else:
            logger.warning(
                f"Infra {infra_id} differs from the live cluster: missing={report.missing_from_cluster} "
                f"unregistered={report.unregistered_nodes} not_ready={report.not_ready}"
            )
        return report
