"""Data models shared by the client, orchestrator, gateway and CLI."""
from .hops import HopChain, HopDescriptor, HopEndpoint, normalize_port
from .results import CommandDetails, CommandResult, LogEntry
from .registry import (
    Infra,
    InfraPermission,
    InfraType,
    PermissionRole,
    Server,
    ServerDraft,
    ServerRole,
    ServerStatus,
    SystemUser,
)
from .cluster import (
    ClusterNode,
    ClusterResources,
    NamespaceInfo,
    NamespaceStatus,
    NodeStatus,
    PodInfo,
    PodLogs,
    ReconcileReport,
)

__all__ = [
    'HopChain',
    'HopDescriptor',
    'HopEndpoint',
    'normalize_port',
    'CommandDetails',
    'CommandResult',
    'LogEntry',
    'Infra',
    'InfraPermission',
    'InfraType',
    'PermissionRole',
    'Server',
    'ServerDraft',
    'ServerRole',
    'ServerStatus',
    'SystemUser',
    'ClusterNode',
    'ClusterResources',
    'NamespaceInfo',
    'NamespaceStatus',
    'NodeStatus',
    'PodInfo',
    'PodLogs',
    'ReconcileReport',
]
