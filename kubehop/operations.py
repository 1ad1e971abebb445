"""Operation catalogue.

Every remote operation has one entry in :data:`OPERATIONS`: its wire name,
its error-handling category and the request model that carries its
parameters. The dispatcher consults this table instead of each call site
deciding for itself whether an error propagates.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .credentials import Secret
from .errors import RequestValidationError
from .models.hops import HopChain, HopEndpoint
from .models.registry import InfraType, PermissionRole


class Operation(str, Enum):
    """Named operations understood by the backend."""
    # cluster bootstrap
    INSTALL_LOAD_BALANCER = 'installLoadBalancer'
    INSTALL_FIRST_MASTER = 'installFirstMaster'
    JOIN_MASTER = 'joinMaster'
    JOIN_WORKER = 'joinWorker'
    REBUILD_FIRST_MASTER = 'rebuildFirstMaster'
    REBUILD_MASTER = 'rebuildMaster'
    REBUILD_WORKER = 'rebuildWorker'
    REBUILD_HA = 'rebuildHA'
    RENEW_CERTIFICATE = 'renewCertificate'
    DELETE_MASTER = 'deleteMaster'
    DELETE_WORKER = 'deleteWorker'
    REMOVE_NODE = 'removeNode'
    # node lifecycle
    GET_NODE_STATUS = 'getNodeStatus'
    START_SERVER = 'startServer'
    STOP_SERVER = 'stopServer'
    RESTART_SERVER = 'restartServer'
    CALCULATE_NODES = 'calculateNodes'
    CALCULATE_RESOURCES = 'calculateResources'
    # workloads
    GET_NAMESPACE_AND_POD_STATUS = 'getNamespaceAndPodStatus'
    DEPLOY_KUBERNETES = 'deployKubernetes'
    DELETE_NAMESPACE = 'deleteNamespace'
    GET_POD_LOGS = 'getPodLogs'
    RESTART_POD = 'restartPod'
    DELETE_POD = 'deletePod'
    # registry
    GET_INFRAS = 'getInfras'
    GET_INFRA_BY_ID = 'getInfraById'
    CREATE_INFRA = 'createInfra'
    UPDATE_INFRA = 'updateInfra'
    DELETE_INFRA = 'deleteInfra'
    IMPORT_KUBERNETES_INFRA = 'importKubernetesInfra'
    GET_SERVERS = 'getServers'
    GET_SERVER_BY_ID = 'getServerById'
    CREATE_SERVER = 'createServer'
    UPDATE_SERVER = 'updateServer'
    DELETE_SERVER = 'deleteServer'
    # permissions
    GET_INFRA_PERMISSIONS = 'getInfraPermissions'
    SET_INFRA_PERMISSION = 'setInfraPermission'
    REMOVE_INFRA_PERMISSION = 'removeInfraPermission'
    GET_ALL_USERS = 'getAllUsers'


class OperationCategory(str, Enum):
    """How failures of an operation are reported to the caller."""
    QUERY_LIST = 'query_list'  # listing views: any failure degrades to []
    QUERY = 'query'            # point reads: failures propagate
    COMMAND = 'command'        # mutations: failures propagate


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

def _wire(value: Any) -> Any:
    if isinstance(value, HopChain):
        return value.to_wire()
    if isinstance(value, Secret):
        return value.reveal()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_none=True, mode="json")
    if isinstance(value, (list, tuple)):
        return [_wire(item) for item in value]
    return value


class OperationRequest(BaseModel):
    """Base class for typed operation parameters.

    ``required_chains`` and ``required_secrets`` name fields that must be
    non-empty; they are checked by :meth:`check` before anything is sent.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True, extra="forbid")

    required_chains: ClassVar[Tuple[str, ...]] = ()
    required_secrets: ClassVar[Tuple[str, ...]] = ()
    # pairs of (chain, secret) where the secret is required only if the chain is given
    paired_secrets: ClassVar[Tuple[Tuple[str, str], ...]] = ()

    @field_validator("hops", "lb_hops", "main_hops", mode="before", check_fields=False)
    @classmethod
    def coerce_chain(cls, v: Any) -> Any:
        if v is None:
            return None
        return HopChain.coerce(v)

    @field_validator(
        "password", "lb_password", "main_password", "password_repo", "docker_password",
        mode="before", check_fields=False,
    )
    @classmethod
    def coerce_secret(cls, v: Any) -> Any:
        if v is None or isinstance(v, Secret):
            return v
        return Secret(v)

    def check(self) -> "OperationRequest":
        for name in self.required_chains:
            chain = getattr(self, name)
            if chain is None:
                raise RequestValidationError(f"{name} is required", field=name)
            chain.require(name)
        for name in self.required_secrets:
            if not getattr(self, name):
                raise RequestValidationError(f"{name} is required", field=name)
        for chain_name, secret_name in self.paired_secrets:
            chain = getattr(self, chain_name)
            if chain is not None and len(chain) == 0:
                raise RequestValidationError(f"{chain_name} must contain at least one hop", field=chain_name)
            if chain and not getattr(self, secret_name):
                raise RequestValidationError(
                    f"{secret_name} is required when {chain_name} is given", field=secret_name
                )
        return self

    def to_parameters(self) -> Dict[str, Any]:
        """Wire parameters. Secrets are revealed here and nowhere else."""
        params: Dict[str, Any] = {}
        for name, field in type(self).model_fields.items():
            value = getattr(self, name)
            if value is None:
                continue
            params[field.alias or name] = _wire(value)
        return params

    def wipe(self) -> None:
        """Zero every credential held by this request."""
        for name in type(self).model_fields:
            value = getattr(self, name)
            if isinstance(value, Secret):
                value.wipe()
            elif isinstance(value, HopChain):
                value.wipe()


class EmptyRequest(OperationRequest):
    pass


class IdRequest(OperationRequest):
    id: int


class InfraIdRequest(OperationRequest):
    infra_id: int


class TargetRequest(OperationRequest):
    """Operation executed on one registered server."""
    server_id: int
    hops: Optional[HopChain] = None

    required_chains = ("hops",)


# cluster bootstrap

class InstallLoadBalancerRequest(OperationRequest):
    server_id: Optional[int] = None
    infra_id: int
    hops: Optional[HopChain] = None

    required_chains = ("hops",)


class InstallFirstMasterRequest(OperationRequest):
    server_id: Optional[int] = None
    infra_id: int
    hops: Optional[HopChain] = None
    lb_hops: Optional[HopChain] = None
    password: Optional[Secret] = None
    lb_password: Optional[Secret] = None

    required_chains = ("hops",)
    paired_secrets = (("lb_hops", "lb_password"),)


class RebuildFirstMasterRequest(InstallFirstMasterRequest):
    server_id: int
    infra_id: Optional[int] = None


class JoinMasterRequest(OperationRequest):
    server_id: Optional[int] = None
    infra_id: int
    hops: Optional[HopChain] = None
    lb_hops: Optional[HopChain] = None
    password: Optional[Secret] = None
    lb_password: Optional[Secret] = None
    main_id: Optional[int] = None

    required_chains = ("hops", "lb_hops")
    required_secrets = ("password", "lb_password")


class RebuildMasterRequest(JoinMasterRequest):
    server_id: int
    infra_id: Optional[int] = None


class JoinWorkerRequest(OperationRequest):
    server_id: Optional[int] = None
    hops: Optional[HopChain] = None
    password: Optional[Secret] = None
    main_id: Optional[int] = None

    required_chains = ("hops",)
    required_secrets = ("password",)


class RebuildWorkerRequest(JoinWorkerRequest):
    server_id: int


class DeleteMasterRequest(OperationRequest):
    server_id: int
    password: Optional[Secret] = None
    hops: Optional[HopChain] = None
    lb_hops: Optional[HopChain] = None
    lb_password: Optional[Secret] = None
    main_hops: Optional[HopChain] = None
    main_password: Optional[Secret] = None

    required_chains = ("hops",)
    required_secrets = ("password",)
    paired_secrets = (("lb_hops", "lb_password"), ("main_hops", "main_password"))


class DeleteWorkerRequest(OperationRequest):
    server_id: int
    main_id: Optional[int] = None
    password: Optional[Secret] = None
    main_password: Optional[Secret] = None
    hops: Optional[HopChain] = None
    main_hops: Optional[HopChain] = None

    required_chains = ("hops", "main_hops")
    required_secrets = ("password", "main_password")


class RemoveNodeRequest(TargetRequest):
    node_name: str = Field(alias="nodeName")

    @field_validator("node_name")
    @classmethod
    def node_name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("nodeName must not be empty")
        return v


# node lifecycle

class NodeStatusRequest(TargetRequest):
    infra_id: Optional[int] = None
    type: Optional[str] = None


# workloads

class NamespaceRequest(TargetRequest):
    namespace: str

    @field_validator("namespace")
    @classmethod
    def namespace_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("namespace must not be empty")
        return v


class PodRequest(NamespaceRequest):
    pod_name: str


class PodLogsRequest(PodRequest):
    lines: Optional[int] = Field(default=None, ge=1)


class DeployKubernetesRequest(OperationRequest):
    id: int
    hops: Optional[HopChain] = None
    username_repo: str = ""
    password_repo: Optional[Secret] = None
    docker_username: str = ""
    docker_password: Optional[Secret] = None

    required_chains = ("hops",)
    required_secrets = ("username_repo", "password_repo", "docker_username", "docker_password")


# registry

class CreateInfraRequest(OperationRequest):
    name: str
    type: InfraType
    info: str = ""


class UpdateInfraRequest(OperationRequest):
    id: int
    name: Optional[str] = None
    type: Optional[InfraType] = None
    info: Optional[str] = None


class ImportKubernetesInfraRequest(OperationRequest):
    device_id: int
    user_id: int
    name: str
    type: InfraType = InfraType.EXTERNAL_KUBERNETES
    info: str = ""
    hops: Optional[HopChain] = None

    required_chains = ("hops",)


def _endpoints(value: Any) -> List[HopEndpoint]:
    # server records keep endpoints only, never credentials
    if isinstance(value, HopChain):
        return value.endpoints()
    endpoints = []
    for hop in value or []:
        if isinstance(hop, HopEndpoint):
            endpoints.append(HopEndpoint(host=hop.host, port=hop.port, username=hop.username))
        else:
            endpoints.append(HopEndpoint.model_validate(hop))
    return endpoints


class CreateServerRequest(OperationRequest):
    name: str
    infra_id: int
    type: str
    ip: str
    port: int = 22
    status: str = "running"
    hops: List[HopEndpoint] = Field(default_factory=list)
    join_command: Optional[str] = None
    certificate_key: Optional[str] = None

    @field_validator("hops", mode="before")
    @classmethod
    def coerce_chain(cls, v: Any) -> Any:
        return _endpoints(v)


class UpdateServerRequest(OperationRequest):
    id: int
    name: Optional[str] = None
    infra_id: Optional[int] = None
    type: Optional[str] = None
    status: Optional[str] = None
    hops: Optional[List[HopEndpoint]] = None
    join_command: Optional[str] = None
    certificate_key: Optional[str] = None

    @field_validator("hops", mode="before")
    @classmethod
    def coerce_chain(cls, v: Any) -> Any:
        return None if v is None else _endpoints(v)


class GetServersRequest(InfraIdRequest):
    pass


# permissions

class SetInfraPermissionRequest(OperationRequest):
    infra_id: int
    email: str
    role: PermissionRole = PermissionRole.MEMBER

    @field_validator("email")
    @classmethod
    def email_shape(cls, v: str) -> str:
        v = v.strip()
        if "@" not in v:
            raise ValueError(f"not an email address: {v!r}")
        return v


class RemoveInfraPermissionRequest(OperationRequest):
    infra_id: int
    user_id: int


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OperationSpec:
    operation: Operation
    category: OperationCategory
    request_model: Type[OperationRequest]
    topology: bool = False        # changes cluster membership or control plane
    long_running: bool = False    # uses the bootstrap timeout
    requires_main_id: bool = False
    result_in_envelope: bool = False  # backend may put the CommandResult on the envelope itself


def _spec(op, category, model, **flags) -> Tuple[Operation, OperationSpec]:
    return op, OperationSpec(op, category, model, **flags)


Q_LIST = OperationCategory.QUERY_LIST
QUERY = OperationCategory.QUERY
CMD = OperationCategory.COMMAND

OPERATIONS: Dict[Operation, OperationSpec] = dict([
    _spec(Operation.INSTALL_LOAD_BALANCER, CMD, InstallLoadBalancerRequest, topology=True, long_running=True),
    _spec(Operation.INSTALL_FIRST_MASTER, CMD, InstallFirstMasterRequest, topology=True, long_running=True),
    _spec(Operation.JOIN_MASTER, CMD, JoinMasterRequest, topology=True, long_running=True, requires_main_id=True),
    _spec(Operation.JOIN_WORKER, CMD, JoinWorkerRequest, topology=True, long_running=True, requires_main_id=True),
    _spec(Operation.REBUILD_FIRST_MASTER, CMD, RebuildFirstMasterRequest, topology=True, long_running=True),
    _spec(Operation.REBUILD_MASTER, CMD, RebuildMasterRequest, topology=True, long_running=True, requires_main_id=True),
    _spec(Operation.REBUILD_WORKER, CMD, RebuildWorkerRequest, topology=True, long_running=True, requires_main_id=True),
    _spec(Operation.REBUILD_HA, CMD, TargetRequest, topology=True, long_running=True, result_in_envelope=True),
    _spec(Operation.RENEW_CERTIFICATE, CMD, TargetRequest, long_running=True),
    _spec(Operation.DELETE_MASTER, CMD, DeleteMasterRequest, topology=True, long_running=True),
    _spec(Operation.DELETE_WORKER, CMD, DeleteWorkerRequest, topology=True, long_running=True, requires_main_id=True),
    _spec(Operation.REMOVE_NODE, CMD, RemoveNodeRequest, topology=True),
    _spec(Operation.GET_NODE_STATUS, QUERY, NodeStatusRequest),
    _spec(Operation.START_SERVER, CMD, TargetRequest, result_in_envelope=True),
    _spec(Operation.STOP_SERVER, CMD, TargetRequest, result_in_envelope=True),
    _spec(Operation.RESTART_SERVER, CMD, TargetRequest, result_in_envelope=True),
    _spec(Operation.CALCULATE_NODES, QUERY, TargetRequest),
    _spec(Operation.CALCULATE_RESOURCES, QUERY, TargetRequest),
    _spec(Operation.GET_NAMESPACE_AND_POD_STATUS, QUERY, NamespaceRequest),
    _spec(Operation.DEPLOY_KUBERNETES, CMD, DeployKubernetesRequest, long_running=True),
    _spec(Operation.DELETE_NAMESPACE, CMD, NamespaceRequest),
    _spec(Operation.GET_POD_LOGS, QUERY, PodLogsRequest),
    _spec(Operation.RESTART_POD, CMD, PodRequest),
    _spec(Operation.DELETE_POD, CMD, PodRequest),
    _spec(Operation.GET_INFRAS, Q_LIST, EmptyRequest),
    _spec(Operation.GET_INFRA_BY_ID, QUERY, IdRequest),
    _spec(Operation.CREATE_INFRA, CMD, CreateInfraRequest),
    _spec(Operation.UPDATE_INFRA, CMD, UpdateInfraRequest),
    _spec(Operation.DELETE_INFRA, CMD, IdRequest),
    _spec(Operation.IMPORT_KUBERNETES_INFRA, CMD, ImportKubernetesInfraRequest, long_running=True),
    _spec(Operation.GET_SERVERS, QUERY, GetServersRequest),
    _spec(Operation.GET_SERVER_BY_ID, QUERY, IdRequest),
    _spec(Operation.CREATE_SERVER, CMD, CreateServerRequest),
    _spec(Operation.UPDATE_SERVER, CMD, UpdateServerRequest),
    _spec(Operation.DELETE_SERVER, CMD, IdRequest),
    _spec(Operation.GET_INFRA_PERMISSIONS, QUERY, InfraIdRequest),
    _spec(Operation.SET_INFRA_PERMISSION, CMD, SetInfraPermissionRequest),
    _spec(Operation.REMOVE_INFRA_PERMISSION, CMD, RemoveInfraPermissionRequest),
    _spec(Operation.GET_ALL_USERS, Q_LIST, EmptyRequest),
])


def spec_for(operation: Operation) -> OperationSpec:
    return OPERATIONS[Operation(operation)]


def operations_in(category: OperationCategory) -> Tuple[Operation, ...]:
    return tuple(op for op, spec in OPERATIONS.items() if spec.category is category)
