"""Top-level client.

    client = KubehopClient.from_settings()
    client.cluster.install_first_master(infra_id=1, hops=chain, password=secret)
"""
import logging
from typing import Optional

from .config import Settings, get_settings
from .dispatch import OperationDispatcher
from .modules.cluster import ClusterOperations
from .modules.infra import InfraRegistry
from .modules.node import NodeOperations
from .modules.permissions import PermissionGate, PermissionRegistry
from .modules.workload import WorkloadOperations
from .transport import HttpTransport, Transport

logger = logging.getLogger("kubehop.client")


class KubehopClient:
    """Typed access to every backend operation, grouped by concern.

    Attributes:
        cluster: Bootstrap operations (install, join, rebuild, delete)
        node: Node health, power state and cluster introspection
        workload: Namespace and pod operations
        infra: Infra and server registry
        permissions: Per-infra user permissions
    """

    def __init__(self, transport: Optional[Transport] = None, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.settings = settings
        self.transport = transport or HttpTransport.from_config(settings.backend)
        self.dispatcher = OperationDispatcher(
            self.transport,
            timeout=settings.backend.timeout,
            bootstrap_timeout=settings.backend.bootstrap_timeout,
        )
        self.cluster = ClusterOperations(self.dispatcher)
        self.node = NodeOperations(self.dispatcher)
        self.workload = WorkloadOperations(self.dispatcher)
        self.infra = InfraRegistry(self.dispatcher)
        self.permissions = PermissionRegistry(self.dispatcher)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "KubehopClient":
        settings = settings or get_settings()
        logger.debug(f"Using backend {settings.backend.base_url}")
        return cls(settings=settings)

    def permission_gate(self) -> PermissionGate:
        return PermissionGate(self.permissions)

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> "KubehopClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
