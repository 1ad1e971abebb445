"""Registry records: infras, servers and permissions."""
import json
from enum import Enum
from typing import Any, List, Optional, Set

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .hops import DEFAULT_SSH_PORT, HopEndpoint


class InfraType(str, Enum):
    """Kind of infrastructure an infra record groups."""
    KUBERNETES = 'kubernetes'
    BAREMETAL = 'baremetal'
    DOCKER = 'docker'
    CLOUD = 'cloud'
    EXTERNAL_KUBERNETES = 'external_kubernetes'
    EXTERNAL_DOCKER = 'external_docker'

    @property
    def bootstrappable(self) -> bool:
        """Only managed kubernetes infras accept install/join/rebuild/delete."""
        return self is InfraType.KUBERNETES


class ServerRole(str, Enum):
    """Roles a server type string may contain (``"master,ha"``)."""
    MASTER = 'master'
    WORKER = 'worker'
    HA = 'ha'  # load balancer in front of the control plane


class ServerStatus(str, Enum):
    RUNNING = 'running'
    STOPPED = 'stopped'
    INACTIVE = 'inactive'
    ACTIVE = 'active'
    MAINTENANCE = 'maintenance'
    PREPARING = 'preparing'
    CHECKING = 'checking'
    ERROR = 'error'
    FAILED = 'failed'
    NOT_INSTALLED = 'not_installed'
    INSTALLING = 'installing'


class PermissionRole(str, Enum):
    ADMIN = 'admin'
    MEMBER = 'member'


def parse_roles(type_value: Optional[str]) -> Set[ServerRole]:
    roles = set()
    for part in (type_value or "").split(","):
        part = part.strip().lower()
        if part in ServerRole._value2member_map_:
            roles.add(ServerRole(part))
    return roles


def _parse_hops(value: Any) -> Any:
    # some backends store hops as a JSON string
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return []
        try:
            return json.loads(value)
        except ValueError as e:
            raise ValueError(f"hops is not valid JSON: {e}")
    if value is None:
        return []
    return value


class Infra(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    type: InfraType
    info: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("info", mode="before")
    @classmethod
    def info_as_text(cls, v: Any) -> str:
        if v is None:
            return ""
        if isinstance(v, (dict, list)):
            return json.dumps(v)
        return str(v)


class Server(BaseModel):
    """One node of an infra, as stored in the registry."""
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str = Field(validation_alias=AliasChoices("name", "server_name"))
    infra_id: int
    type: str
    ip: str = ""
    port: int = DEFAULT_SSH_PORT
    status: Optional[str] = None
    hops: List[HopEndpoint] = Field(default_factory=list)
    join_command: Optional[str] = None
    certificate_key: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("hops", mode="before")
    @classmethod
    def hops_from_json(cls, v: Any) -> Any:
        return _parse_hops(v)

    @field_validator("id", "infra_id", mode="before")
    @classmethod
    def numeric_id(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().isdigit():
            return int(v)
        return v

    @property
    def roles(self) -> Set[ServerRole]:
        return parse_roles(self.type)

    @property
    def is_master(self) -> bool:
        return ServerRole.MASTER in self.roles

    @property
    def is_worker(self) -> bool:
        return ServerRole.WORKER in self.roles

    @property
    def is_load_balancer(self) -> bool:
        return ServerRole.HA in self.roles

    def __repr__(self) -> str:
        # join_command and certificate_key stay out of reprs
        return f"Server(id={self.id}, name={self.name!r}, infra_id={self.infra_id}, type={self.type!r})"


class ServerDraft(BaseModel):
    """Fields needed to register a server."""
    name: str
    type: str
    ip: str
    port: int = DEFAULT_SSH_PORT
    status: str = ServerStatus.RUNNING.value
    hops: List[HopEndpoint] = Field(default_factory=list)
    join_command: Optional[str] = None
    certificate_key: Optional[str] = None


class InfraPermission(BaseModel):
    user_id: int
    user_email: str
    role: PermissionRole = PermissionRole.MEMBER


class SystemUser(BaseModel):
    id: int
    email: str
