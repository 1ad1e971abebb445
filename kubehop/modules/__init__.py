"""
Operation groups and cluster workflows.
"""
from .cluster import ClusterOperations
from .infra import InfraRegistry
from .node import NodeOperations
from .orchestrator import ClusterOrchestrator, NodeSpec, OrchestrationResult
from .permissions import PermissionGate, PermissionRegistry
from .topology import InfraTopology, TopologyState, TopologyTracker
from .workload import WorkloadOperations

__all__ = [
    'ClusterOperations',
    'InfraRegistry',
    'NodeOperations',
    'ClusterOrchestrator',
    'NodeSpec',
    'OrchestrationResult',
    'PermissionGate',
    'PermissionRegistry',
    'InfraTopology',
    'TopologyState',
    'TopologyTracker',
    'WorkloadOperations',
]
