"""Per-infra topology state machine.

The state of an infra is derived from its registered servers plus a small
in-process overlay: nodes that failed a health check (degraded), nodes
already removed from the cluster whose record still exists (detached), and
whether an operation timed out since the last reconcile (unverified).

    EMPTY --installLoadBalancer--> LB_READY
    EMPTY | LB_READY --installFirstMaster--> SINGLE_MASTER
    SINGLE_MASTER | MULTI_MASTER --joinMaster--> MULTI_MASTER
    SINGLE_MASTER | MULTI_MASTER --joinWorker--> (same)
    any master state | DEGRADED --rebuild*/renewCertificate/delete*/removeNode--> (derived)
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Set

from ..errors import TopologyError
from ..models.registry import Infra, Server, ServerRole
from ..operations import Operation, spec_for

logger = logging.getLogger("kubehop.topology")


class TopologyState(str, Enum):
    EMPTY = 'empty'
    LB_READY = 'lb_ready'
    SINGLE_MASTER = 'single_master'
    MULTI_MASTER = 'multi_master'
    DEGRADED = 'degraded'


READY: FrozenSet[TopologyState] = frozenset({TopologyState.SINGLE_MASTER, TopologyState.MULTI_MASTER})
MAINTAINABLE = READY | {TopologyState.DEGRADED}

ALLOWED: Dict[Operation, FrozenSet[TopologyState]] = {
    Operation.INSTALL_LOAD_BALANCER: frozenset({TopologyState.EMPTY}),
    Operation.INSTALL_FIRST_MASTER: frozenset({TopologyState.EMPTY, TopologyState.LB_READY}),
    Operation.JOIN_MASTER: READY,
    Operation.JOIN_WORKER: READY,
    Operation.REBUILD_FIRST_MASTER: MAINTAINABLE,
    Operation.REBUILD_MASTER: MAINTAINABLE,
    Operation.REBUILD_WORKER: MAINTAINABLE,
    Operation.REBUILD_HA: MAINTAINABLE | {TopologyState.LB_READY},
    Operation.RENEW_CERTIFICATE: MAINTAINABLE,
    Operation.DELETE_MASTER: MAINTAINABLE,
    Operation.DELETE_WORKER: MAINTAINABLE,
    Operation.REMOVE_NODE: MAINTAINABLE,
}

# role the target server must have; removeNode targets the master that runs kubectl
TARGET_ROLES: Dict[Operation, ServerRole] = {
    Operation.REBUILD_FIRST_MASTER: ServerRole.MASTER,
    Operation.REBUILD_MASTER: ServerRole.MASTER,
    Operation.REBUILD_WORKER: ServerRole.WORKER,
    Operation.REBUILD_HA: ServerRole.HA,
    Operation.RENEW_CERTIFICATE: ServerRole.MASTER,
    Operation.DELETE_MASTER: ServerRole.MASTER,
    Operation.DELETE_WORKER: ServerRole.WORKER,
    Operation.REMOVE_NODE: ServerRole.MASTER,
}


@dataclass
class InfraTopology:
    """Snapshot of one infra used to guard a single operation."""
    infra: Infra
    servers: List[Server]
    degraded: Set[int] = field(default_factory=set)
    unverified: bool = False

    def with_role(self, role: ServerRole) -> List[Server]:
        return [server for server in self.servers if role in server.roles]

    @property
    def masters(self) -> List[Server]:
        return self.with_role(ServerRole.MASTER)

    @property
    def workers(self) -> List[Server]:
        return self.with_role(ServerRole.WORKER)

    @property
    def load_balancers(self) -> List[Server]:
        return self.with_role(ServerRole.HA)

    @property
    def state(self) -> TopologyState:
        """Lifecycle state of the infra.

        Only a degraded master makes the infra DEGRADED. A degraded worker or
        load balancer keeps its mark but does not block joins.
        """
        if any(master.id in self.degraded for master in self.masters):
            return TopologyState.DEGRADED
        masters = len(self.masters)
        if masters >= 2:
            return TopologyState.MULTI_MASTER
        if masters == 1:
            return TopologyState.SINGLE_MASTER
        if self.load_balancers:
            return TopologyState.LB_READY
        return TopologyState.EMPTY

    def server(self, server_id: Optional[int]) -> Optional[Server]:
        for server in self.servers:
            if server.id == server_id:
                return server
        return None

    def healthy_masters(self, exclude: Optional[int] = None) -> List[Server]:
        return [m for m in self.masters if m.id not in self.degraded and m.id != exclude]


def guard(
    operation: Operation,
    topology: InfraTopology,
    target_id: Optional[int] = None,
    main_id: Optional[int] = None,
    has_lb_hops: bool = False,
) -> TopologyState:
    """Check that ``operation`` may run on the infra in its current state.

    Args:
        operation: Bootstrap operation about to be dispatched
        topology: Current snapshot of the infra
        target_id: Server the operation acts on, None for a new node
        main_id: Master whose join command is used
        has_lb_hops: Whether a load balancer chain was supplied

    Returns:
        The state the check was made against

    Raises:
        TopologyError: If the operation is not allowed
    """
    op = spec_for(operation).operation
    name = op.value
    state = topology.state
    infra = topology.infra

    def reject(reason: str) -> TopologyError:
        logger.warning(f"Rejected {name} on infra {infra.id} ({state.value}): {reason}")
        return TopologyError.reject(name, reason)

    if not infra.type.bootstrappable:
        raise reject(f"infra type {infra.type.value} does not support cluster bootstrap")
    if topology.unverified and spec_for(op).topology:
        raise reject("a previous operation timed out; run reconcile before changing the topology")

    allowed = ALLOWED.get(op)
    if allowed is None:
        raise reject("not a bootstrap operation")
    if state not in allowed:
        if op is Operation.INSTALL_FIRST_MASTER and topology.masters:
            raise reject("infra already has a first master")
        raise reject(f"not allowed in state {state.value}")

    if op is Operation.INSTALL_FIRST_MASTER and topology.load_balancers and not has_lb_hops:
        raise reject("infra has a load balancer; lb_hops and lb_password are required")
    if op is Operation.REBUILD_HA and not topology.load_balancers:
        raise reject("infra has no load balancer")

    required_role = TARGET_ROLES.get(op)
    if required_role is not None:
        target = topology.server(target_id)
        if target is None:
            raise reject(f"server {target_id} is not part of infra {infra.id}")
        if required_role not in target.roles:
            raise reject(f"server {target_id} is not a {required_role.value} node")

    if spec_for(op).requires_main_id:
        main = topology.server(main_id)
        if main is None or not main.is_master:
            raise reject(f"main_id {main_id} is not a master of infra {infra.id}")
        if main_id == target_id:
            raise reject("main_id must differ from the target server")
        if main_id in topology.degraded:
            raise reject(f"main_id {main_id} is degraded; pick a healthy master")
    return state


class TopologyTracker:
    """In-process overlay of degraded, detached and unverified marks per infra."""

    def __init__(self):
        self._degraded: Dict[int, Set[int]] = {}
        self._detached: Dict[int, Set[int]] = {}
        self._unverified: Set[int] = set()

    def snapshot(self, infra: Infra, servers: List[Server]) -> InfraTopology:
        detached = self._detached.get(infra.id, set())
        return InfraTopology(
            infra=infra,
            servers=[server for server in servers if server.id not in detached],
            degraded=set(self._degraded.get(infra.id, set())),
            unverified=infra.id in self._unverified,
        )

    def mark_degraded(self, infra_id: int, server_id: int) -> None:
        if server_id not in self._degraded.setdefault(infra_id, set()):
            logger.warning(f"Server {server_id} in infra {infra_id} marked degraded")
        self._degraded[infra_id].add(server_id)

    def clear_degraded(self, infra_id: int, server_id: int) -> None:
        if server_id in self._degraded.get(infra_id, set()):
            logger.info(f"Server {server_id} in infra {infra_id} is healthy again")
            self._degraded[infra_id].discard(server_id)

    def is_degraded(self, infra_id: int, server_id: int) -> bool:
        return server_id in self._degraded.get(infra_id, set())

    def mark_detached(self, infra_id: int, server_id: int) -> None:
        self._detached.setdefault(infra_id, set()).add(server_id)
        self.clear_degraded(infra_id, server_id)

    def is_detached(self, infra_id: int, server_id: int) -> bool:
        return server_id in self._detached.get(infra_id, set())

    def forget(self, infra_id: int, server_id: int) -> None:
        self._detached.get(infra_id, set()).discard(server_id)
        self._degraded.get(infra_id, set()).discard(server_id)

    def mark_unverified(self, infra_id: int) -> None:
        logger.warning(f"Infra {infra_id} marked unverified; reconcile before further topology changes")
        self._unverified.add(infra_id)

    def mark_verified(self, infra_id: int) -> None:
        self._unverified.discard(infra_id)

    def is_unverified(self, infra_id: int) -> bool:
        return infra_id in self._unverified
