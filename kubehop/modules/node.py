"""Node lifecycle operations: health, power state and cluster introspection."""
import logging
from typing import Any, List, Optional

from ..dispatch import OperationDispatcher
from ..errors import TransportError
from ..models.cluster import ClusterNode, ClusterResources, NodeStatus
from ..models.hops import HopChain
from ..models.results import CommandResult
from ..operations import Operation

logger = logging.getLogger("kubehop.node")


def _node_items(data: Any) -> List[Any]:
    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("nodes", data.get("items"))
    if not isinstance(data, list):
        raise TransportError("calculateNodes returned no node list", operation=Operation.CALCULATE_NODES.value)
    return data


class NodeOperations:
    def __init__(self, dispatcher: OperationDispatcher):
        self.dispatcher = dispatcher

    def get_node_status(
        self,
        server_id: int,
        hops: HopChain,
        infra_id: Optional[int] = None,
        type: Optional[str] = None,
    ) -> NodeStatus:
        """Check whether kubernetes is installed and running on one server.

        Read-only and safe to poll.
        """
        data = self.dispatcher.fetch(
            Operation.GET_NODE_STATUS, server_id=server_id, hops=hops, infra_id=infra_id, type=type
        )
        status = NodeStatus.model_validate(data or {})
        logger.debug(
            f"Node {server_id}: installed={status.status.installed} running={status.status.running}"
        )
        return status

    def start_server(self, server_id: int, hops: HopChain) -> CommandResult:
        logger.info(f"Starting server {server_id}")
        return self.dispatcher.execute(Operation.START_SERVER, server_id=server_id, hops=hops)

    def stop_server(self, server_id: int, hops: HopChain) -> CommandResult:
        logger.info(f"Stopping server {server_id}")
        return self.dispatcher.execute(Operation.STOP_SERVER, server_id=server_id, hops=hops)

    def restart_server(self, server_id: int, hops: HopChain) -> CommandResult:
        """Stop then start the node service.

        The stop and start phases are reported as separate nested results.
        """
        logger.info(f"Restarting server {server_id}")
        result = self.dispatcher.execute(Operation.RESTART_SERVER, server_id=server_id, hops=hops)
        for step in result.command_results:
            logger.info(f"  {'ok' if step.success else 'failed'}: {step.summary()}")
        return result

    def calculate_nodes(self, server_id: int, hops: HopChain) -> List[ClusterNode]:
        """List the live members of the cluster as seen from ``server_id``."""
        data = self.dispatcher.fetch(Operation.CALCULATE_NODES, server_id=server_id, hops=hops)
        nodes = [ClusterNode.model_validate(item) for item in _node_items(data)]
        logger.debug(f"Cluster reports {len(nodes)} nodes")
        return nodes

    def calculate_resources(self, server_id: int, hops: HopChain) -> ClusterResources:
        data = self.dispatcher.fetch(Operation.CALCULATE_RESOURCES, server_id=server_id, hops=hops)
        return ClusterResources.model_validate(data or {})
