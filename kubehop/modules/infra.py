"""Infra and server registry."""
import logging
from typing import Any, Callable, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ..dispatch import OperationDispatcher
from ..errors import NotFoundError, TransportError
from ..models.hops import HopChain, HopEndpoint
from ..models.registry import Infra, InfraType, Server, ServerDraft
from ..operations import Operation

logger = logging.getLogger("kubehop.registry")

RecordT = TypeVar("RecordT", bound=BaseModel)


def _record(model: Type[RecordT], operation: Operation, data: Any,
            lookup: Optional[Callable[[int], RecordT]] = None, record_id: Optional[int] = None) -> RecordT:
    # some backends answer a write with only {"id": ...} or a bare acknowledgement
    if lookup and not (isinstance(data, dict) and {"name", "server_name"} & set(data)):
        ident = data.get("id") if isinstance(data, dict) else None
        ident = record_id if ident is None else ident
        if ident is not None:
            return lookup(int(ident))
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise TransportError(
            f"{operation.value} returned an unreadable {model.__name__}: {e.error_count()} errors",
            operation=operation.value,
        ) from e


class InfraRegistry:
    """CRUD over infra and server records.

    Listing infras degrades to an empty list when the backend fails; every
    point lookup and mutation raises.
    """

    def __init__(self, dispatcher: OperationDispatcher):
        self.dispatcher = dispatcher

    # infras

    def list_infras(self) -> List[Infra]:
        infras = []
        for item in self.dispatcher.fetch(Operation.GET_INFRAS):
            try:
                infras.append(Infra.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed infra record: {e.error_count()} errors")
        return infras

    def get_infra(self, infra_id: int) -> Infra:
        """Look up one infra.

        Raises:
            NotFoundError: If the backend has no such infra
        """
        data = self.dispatcher.fetch(Operation.GET_INFRA_BY_ID, id=infra_id)
        if not data:
            raise NotFoundError(f"Infra {infra_id} not found")
        return _record(Infra, Operation.GET_INFRA_BY_ID, data)

    def create_infra(self, name: str, type: Union[InfraType, str], info: str = "") -> Infra:
        data = self.dispatcher.fetch(Operation.CREATE_INFRA, name=name, type=type, info=info)
        infra = _record(Infra, Operation.CREATE_INFRA, data, self.get_infra)
        logger.info(f"Created infra {infra.id} ({infra.name}, {infra.type.value})")
        return infra

    def update_infra(self, infra_id: int, name: Optional[str] = None,
                     type: Optional[Union[InfraType, str]] = None, info: Optional[str] = None) -> Infra:
        data = self.dispatcher.fetch(Operation.UPDATE_INFRA, id=infra_id, name=name, type=type, info=info)
        return _record(Infra, Operation.UPDATE_INFRA, data, self.get_infra, record_id=infra_id)

    def delete_infra(self, infra_id: int) -> None:
        self.dispatcher.fetch(Operation.DELETE_INFRA, id=infra_id)
        logger.info(f"Deleted infra {infra_id}")

    def import_kubernetes_infra(
        self,
        device_id: int,
        user_id: int,
        name: str,
        hops: HopChain,
        type: Union[InfraType, str] = InfraType.EXTERNAL_KUBERNETES,
        info: str = "",
    ) -> Infra:
        """Register an existing cluster reached through ``hops`` as a new infra."""
        logger.info(f"Importing cluster {name} as {InfraType(type).value}")
        data = self.dispatcher.fetch(
            Operation.IMPORT_KUBERNETES_INFRA,
            device_id=device_id, user_id=user_id, name=name, type=type, info=info, hops=hops,
        )
        if isinstance(data, dict) and isinstance(data.get("infra"), dict):
            data = data["infra"]
        return _record(Infra, Operation.IMPORT_KUBERNETES_INFRA, data, self.get_infra)

    # servers

    def list_servers(self, infra_id: int) -> List[Server]:
        data = self.dispatcher.fetch(Operation.GET_SERVERS, infra_id=infra_id)
        if data is None:
            return []
        if not isinstance(data, list):
            raise TransportError("getServers returned no server list", operation=Operation.GET_SERVERS.value)
        return [Server.model_validate(item) for item in data]

    def get_server(self, server_id: int) -> Server:
        """Look up one server.

        Raises:
            NotFoundError: If the backend has no such server
        """
        data = self.dispatcher.fetch(Operation.GET_SERVER_BY_ID, id=server_id)
        if not data:
            raise NotFoundError(f"Server {server_id} not found")
        return _record(Server, Operation.GET_SERVER_BY_ID, data)

    def create_server(self, infra_id: int, draft: ServerDraft) -> Server:
        data = self.dispatcher.fetch(
            Operation.CREATE_SERVER, infra_id=infra_id, **draft.model_dump(exclude_none=True)
        )
        server = _record(Server, Operation.CREATE_SERVER, data, self.get_server)
        logger.info(f"Registered server {server.id} ({server.name}, {server.type}) in infra {infra_id}")
        return server

    def update_server(
        self,
        server_id: int,
        name: Optional[str] = None,
        type: Optional[str] = None,
        status: Optional[str] = None,
        hops: Optional[List[HopEndpoint]] = None,
        join_command: Optional[str] = None,
        certificate_key: Optional[str] = None,
        infra_id: Optional[int] = None,
    ) -> Server:
        data = self.dispatcher.fetch(
            Operation.UPDATE_SERVER,
            id=server_id, name=name, type=type, status=status, hops=hops,
            join_command=join_command, certificate_key=certificate_key, infra_id=infra_id,
        )
        return _record(Server, Operation.UPDATE_SERVER, data, self.get_server, record_id=server_id)

    def delete_server(self, server_id: int) -> None:
        """Delete the server record only; the node stays in the cluster."""
        self.dispatcher.fetch(Operation.DELETE_SERVER, id=server_id)
        logger.info(f"Deleted server record {server_id}")
