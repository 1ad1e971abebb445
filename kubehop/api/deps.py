"""Shared request bodies and dependencies for the gateway routes."""
from typing import Any, List, Optional

from fastapi import Header, Request
from pydantic import BaseModel, Field

from ..client import KubehopClient
from ..credentials import Secret
from ..models.hops import HopChain, HopDescriptor
from ..modules.orchestrator import ClusterOrchestrator


def ok(data: Any = None) -> dict:
    return {"success": True, "data": data, "error": None}


def fail(error: str, data: Any = None) -> dict:
    return {"success": False, "data": data, "error": error}


def get_client(request: Request) -> KubehopClient:
    return request.app.state.client


def get_orchestrator(request: Request, x_user_id: Optional[int] = Header(default=None)) -> ClusterOrchestrator:
    """Orchestrator acting for the ``X-User-Id`` caller, if one is given."""
    return request.app.state.orchestrator.as_user(x_user_id)


def chain(hops: Optional[List[HopDescriptor]]) -> Optional[HopChain]:
    return None if hops is None else HopChain(hops)


class CredentialBody(BaseModel):
    """Request body holding hop chains or passwords; wiped when the ``with`` block exits."""

    def __enter__(self) -> "CredentialBody":
        return self

    def __exit__(self, *exc) -> None:
        for name in type(self).model_fields:
            value = getattr(self, name)
            if isinstance(value, Secret):
                value.wipe()
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, HopDescriptor):
                        item.password.wipe()


class TargetBody(CredentialBody):
    infra_id: int
    server_id: int
    hops: List[HopDescriptor] = Field(default_factory=list)

    def chain(self) -> HopChain:
        return HopChain(self.hops)
