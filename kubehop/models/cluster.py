"""Payloads returned by node lifecycle and workload queries."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.kube import parse_cpu, parse_memory


class NodeState(BaseModel):
    installed: bool = False
    running: bool = False
    is_master: Optional[bool] = Field(default=None, alias="isMaster")
    is_worker: Optional[bool] = Field(default=None, alias="isWorker")

    model_config = ConfigDict(populate_by_name=True)


class NodeStatus(BaseModel):
    """Result of getNodeStatus for one server."""
    model_config = ConfigDict(populate_by_name=True)

    status: NodeState = Field(default_factory=NodeState)
    last_checked: Optional[str] = Field(default=None, alias="lastChecked")
    message: Optional[str] = None

    @property
    def healthy(self) -> bool:
        return self.status.installed and self.status.running


class ClusterNode(BaseModel):
    """One live member as reported by the cluster."""
    name: str
    status: str = "Unknown"
    role: str = ""
    age: str = ""
    version: str = ""

    @property
    def ready(self) -> bool:
        # kubectl reports e.g. "Ready" or "Ready,SchedulingDisabled"
        return "Ready" in self.status.split(",")


class NodeCounts(BaseModel):
    master: int = 0
    worker: int = 0
    ha: int = 0


class ResourceUsage(BaseModel):
    cpu: str = "0"
    memory: str = "0"
    pods: str = "0"

    @field_validator("cpu", "memory", "pods", mode="before")
    @classmethod
    def as_text(cls, v: Any) -> str:
        return "0" if v is None else str(v)

    @property
    def cpu_cores(self) -> float:
        return parse_cpu(self.cpu)

    @property
    def memory_bytes(self) -> int:
        return parse_memory(self.memory)


class ClusterResources(BaseModel):
    """Aggregate capacity reported by calculateResources."""
    nodes: NodeCounts = Field(default_factory=NodeCounts)
    resources: ResourceUsage = Field(default_factory=ResourceUsage)
    status: str = "unknown"


class NamespaceInfo(BaseModel):
    name: str
    status: str = ""
    age: str = ""


class PodInfo(BaseModel):
    name: str
    status: str = ""
    ready: str = ""
    restarts: int = 0
    age: str = ""


class NamespaceStatus(BaseModel):
    namespace: Optional[NamespaceInfo] = None
    pods: List[PodInfo] = Field(default_factory=list)

    @field_validator("pods", mode="before")
    @classmethod
    def pods_default(cls, v: Any) -> Any:
        return [] if v is None else v


class PodLogs(BaseModel):
    """Log fetch result. ``pod_exists=False`` means the pod is gone, not an error."""
    success: bool = False
    logs: Optional[str] = None
    error: Optional[str] = None
    pod_exists: Optional[bool] = None

    @property
    def pod_missing(self) -> bool:
        return self.pod_exists is False


class ReconcileReport(BaseModel):
    """Differences between the registry and the live cluster."""
    infra_id: int
    live_nodes: List[ClusterNode] = Field(default_factory=list)
    missing_from_cluster: List[str] = Field(default_factory=list)
    unregistered_nodes: List[str] = Field(default_factory=list)
    not_ready: List[str] = Field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not (self.missing_from_cluster or self.unregistered_nodes or self.not_ready)

    def as_dict(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["consistent"] = self.consistent
        return data
