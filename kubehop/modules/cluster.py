"""Cluster bootstrap operations.

Install, join, rebuild and delete control-plane and worker nodes. These
calls do not look at the registry; the orchestrator wraps them with the
topology guard and the registry writes.
"""
import logging
from typing import Optional

from ..credentials import Secret
from ..dispatch import OperationDispatcher
from ..models.hops import HopChain
from ..models.results import CommandResult
from ..operations import Operation

logger = logging.getLogger("kubehop.cluster")


class ClusterOperations:
    """One method per bootstrap operation."""

    def __init__(self, dispatcher: OperationDispatcher):
        self.dispatcher = dispatcher

    def install_load_balancer(self, infra_id: int, hops: HopChain, server_id: Optional[int] = None) -> CommandResult:
        """Install HAProxy on the machine at the end of ``hops``."""
        logger.info(f"Installing load balancer for infra {infra_id}")
        return self.dispatcher.execute(
            Operation.INSTALL_LOAD_BALANCER, infra_id=infra_id, hops=hops, server_id=server_id
        )

    def install_first_master(
        self,
        infra_id: int,
        hops: HopChain,
        password: Optional[Secret] = None,
        lb_hops: Optional[HopChain] = None,
        lb_password: Optional[Secret] = None,
        server_id: Optional[int] = None,
    ) -> CommandResult:
        """Initialise the control plane on the first master.

        Args:
            infra_id: Infra the master belongs to
            hops: Chain ending at the new master
            password: sudo password on the master
            lb_hops: Chain to the load balancer, when the infra has one
            lb_password: sudo password on the load balancer; required with ``lb_hops``
            server_id: Existing record to reuse, None for a new node

        Returns:
            CommandResult whose ``details.data`` carries the join command
        """
        logger.info(f"Installing first master for infra {infra_id}")
        return self.dispatcher.execute(
            Operation.INSTALL_FIRST_MASTER,
            infra_id=infra_id, hops=hops, password=password,
            lb_hops=lb_hops, lb_password=lb_password, server_id=server_id,
        )

    def join_master(
        self,
        infra_id: int,
        hops: HopChain,
        lb_hops: HopChain,
        password: Secret,
        lb_password: Secret,
        main_id: Optional[int],
        server_id: Optional[int] = None,
    ) -> CommandResult:
        """Join an additional master using the join command of ``main_id``."""
        logger.info(f"Joining master to infra {infra_id} via master {main_id}")
        return self.dispatcher.execute(
            Operation.JOIN_MASTER,
            infra_id=infra_id, hops=hops, lb_hops=lb_hops, password=password,
            lb_password=lb_password, main_id=main_id, server_id=server_id,
        )

    def join_worker(
        self,
        hops: HopChain,
        password: Secret,
        main_id: Optional[int],
        server_id: Optional[int] = None,
    ) -> CommandResult:
        logger.info(f"Joining worker via master {main_id}")
        return self.dispatcher.execute(
            Operation.JOIN_WORKER, hops=hops, password=password, main_id=main_id, server_id=server_id
        )

    def rebuild_first_master(
        self,
        server_id: int,
        hops: HopChain,
        password: Optional[Secret] = None,
        lb_hops: Optional[HopChain] = None,
        lb_password: Optional[Secret] = None,
        infra_id: Optional[int] = None,
    ) -> CommandResult:
        logger.info(f"Rebuilding first master {server_id}")
        return self.dispatcher.execute(
            Operation.REBUILD_FIRST_MASTER,
            server_id=server_id, hops=hops, password=password,
            lb_hops=lb_hops, lb_password=lb_password, infra_id=infra_id,
        )

    def rebuild_master(
        self,
        server_id: int,
        hops: HopChain,
        lb_hops: HopChain,
        password: Secret,
        lb_password: Secret,
        main_id: Optional[int],
        infra_id: Optional[int] = None,
    ) -> CommandResult:
        logger.info(f"Rebuilding master {server_id} via master {main_id}")
        return self.dispatcher.execute(
            Operation.REBUILD_MASTER,
            server_id=server_id, hops=hops, lb_hops=lb_hops, password=password,
            lb_password=lb_password, main_id=main_id, infra_id=infra_id,
        )

    def rebuild_worker(self, server_id: int, hops: HopChain, password: Secret, main_id: Optional[int]) -> CommandResult:
        logger.info(f"Rebuilding worker {server_id} via master {main_id}")
        return self.dispatcher.execute(
            Operation.REBUILD_WORKER, server_id=server_id, hops=hops, password=password, main_id=main_id
        )

    def rebuild_ha(self, server_id: int, hops: HopChain) -> CommandResult:
        """Reinstall the load balancer and regenerate its backend list."""
        logger.info(f"Rebuilding load balancer {server_id}")
        return self.dispatcher.execute(Operation.REBUILD_HA, server_id=server_id, hops=hops)

    def renew_certificate(self, server_id: int, hops: HopChain) -> CommandResult:
        logger.info(f"Renewing certificates on {server_id}")
        return self.dispatcher.execute(Operation.RENEW_CERTIFICATE, server_id=server_id, hops=hops)

    def delete_master(
        self,
        server_id: int,
        hops: HopChain,
        password: Secret,
        lb_hops: Optional[HopChain] = None,
        lb_password: Optional[Secret] = None,
        main_hops: Optional[HopChain] = None,
        main_password: Optional[Secret] = None,
    ) -> CommandResult:
        """Drain the master, remove it from etcd and the load balancer, and reset it.

        ``main_hops`` points at a surviving master that runs the cluster-side
        removal; without it the node is only reset locally.
        """
        logger.info(f"Deleting master {server_id}")
        return self.dispatcher.execute(
            Operation.DELETE_MASTER,
            server_id=server_id, hops=hops, password=password,
            lb_hops=lb_hops, lb_password=lb_password,
            main_hops=main_hops, main_password=main_password,
        )

    def delete_worker(
        self,
        server_id: int,
        hops: HopChain,
        password: Secret,
        main_hops: HopChain,
        main_password: Secret,
        main_id: Optional[int],
    ) -> CommandResult:
        logger.info(f"Deleting worker {server_id} via master {main_id}")
        return self.dispatcher.execute(
            Operation.DELETE_WORKER,
            server_id=server_id, hops=hops, password=password,
            main_hops=main_hops, main_password=main_password, main_id=main_id,
        )

    def remove_node(self, server_id: int, hops: HopChain, node_name: str) -> CommandResult:
        """Remove ``node_name`` from the cluster object list, run on master ``server_id``.

        This only deletes the Node object; the machine itself is left as is.
        """
        logger.info(f"Removing node {node_name} via server {server_id}")
        return self.dispatcher.execute(Operation.REMOVE_NODE, server_id=server_id, hops=hops, node_name=node_name)
