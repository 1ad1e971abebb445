"""SSH hop descriptors and hop chains.

A hop chain is an ordered list of SSH endpoints. The first hop is reached
directly, every following hop is reached by tunnelling through the previous
one, so the order defines nesting rather than a list of alternatives.
"""
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..credentials import Secret
from ..errors import RequestValidationError

DEFAULT_SSH_PORT = 22


def normalize_port(value: Any) -> int:
    """Accept an int or a numeric string and return the port as int."""
    if isinstance(value, bool):
        raise ValueError(f"invalid port: {value!r}")
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            raise ValueError(f"port must be numeric, got {value!r}")
        value = int(value)
    if not isinstance(value, int):
        raise ValueError(f"port must be numeric, got {value!r}")
    if not 1 <= value <= 65535:
        raise ValueError(f"port out of range: {value}")
    return value


class HopEndpoint(BaseModel):
    """Credential-free hop, as stored on a server record."""
    model_config = ConfigDict(extra="ignore")

    host: str
    port: int = DEFAULT_SSH_PORT
    username: Optional[str] = None

    @field_validator("host")
    @classmethod
    def host_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("host must not be empty")
        return v

    @field_validator("port", mode="before")
    @classmethod
    def coerce_port(cls, v: Any) -> int:
        if v is None or v == "":
            return DEFAULT_SSH_PORT
        return normalize_port(v)

    def __str__(self) -> str:
        user = f"{self.username}@" if self.username else ""
        return f"{user}{self.host}:{self.port}"


class HopDescriptor(HopEndpoint):
    """One SSH hop with the credential needed to traverse it."""
    username: str
    password: Secret = Field(default_factory=Secret)

    def endpoint(self) -> HopEndpoint:
        return HopEndpoint(host=self.host, port=self.port, username=self.username)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "username": self.username,
            "password": self.password.reveal(),
        }


HopLike = Union[HopDescriptor, Mapping[str, Any]]


class HopChain:
    """Ordered sequence of :class:`HopDescriptor`."""

    def __init__(self, hops: Iterable[HopLike] = ()):
        parsed: List[HopDescriptor] = []
        for index, hop in enumerate(hops):
            if isinstance(hop, HopDescriptor):
                parsed.append(hop)
                continue
            try:
                parsed.append(HopDescriptor.model_validate(dict(hop)))
            except (ValidationError, TypeError, ValueError) as e:
                raise RequestValidationError(f"invalid hop #{index + 1}: {describe_validation_error(e)}", field="hops") from e
        self._hops = parsed

    @classmethod
    def coerce(cls, value: Union["HopChain", Iterable[HopLike], None]) -> "HopChain":
        if isinstance(value, HopChain):
            return value
        if value is None:
            return cls()
        if isinstance(value, Mapping):
            raise RequestValidationError("hops must be a list of hop descriptors", field="hops")
        return cls(value)

    def require(self, label: str = "hops") -> "HopChain":
        """Raise if the chain is empty; return self for chaining."""
        if not self._hops:
            raise RequestValidationError(f"{label} must contain at least one hop", field=label)
        return self

    @property
    def target(self) -> HopDescriptor:
        """The machine the chain ends at."""
        self.require()
        return self._hops[-1]

    def endpoints(self) -> List[HopEndpoint]:
        return [hop.endpoint() for hop in self._hops]

    def to_wire(self) -> List[Dict[str, Any]]:
        return [hop.to_wire() for hop in self._hops]

    def wipe(self) -> None:
        for hop in self._hops:
            hop.password.wipe()

    def __len__(self) -> int:
        return len(self._hops)

    def __iter__(self) -> Iterator[HopDescriptor]:
        return iter(self._hops)

    def __getitem__(self, index: int) -> HopDescriptor:
        return self._hops[index]

    def __bool__(self) -> bool:
        return bool(self._hops)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, HopChain):
            return self._hops == other._hops
        return NotImplemented

    def __repr__(self) -> str:
        path = " -> ".join(str(hop) for hop in self._hops) or "<empty>"
        return f"HopChain({path})"


def describe_validation_error(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        err = exc.errors()[0]
        loc = ".".join(str(part) for part in err.get("loc", ()))
        return f"{loc}: {err.get('msg')}" if loc else str(err.get("msg"))
    return str(exc)
