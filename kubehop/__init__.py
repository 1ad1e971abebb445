"""kubehop - Kubernetes cluster lifecycle over SSH hop chains."""
from .client import KubehopClient
from .credentials import Secret
from .models.hops import HopChain, HopDescriptor
from .models.results import CommandResult
from .modules.orchestrator import ClusterOrchestrator, NodeSpec

__version__ = '0.1.0'

__all__ = [
    'KubehopClient',
    'ClusterOrchestrator',
    'NodeSpec',
    'HopChain',
    'HopDescriptor',
    'CommandResult',
    'Secret',
]
