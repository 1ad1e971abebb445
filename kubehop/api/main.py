import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..client import KubehopClient
from ..config import Settings, get_settings
from ..errors import (
    CommandError,
    NotFoundError,
    OperationTimeoutError,
    PermissionDeniedError,
    RequestValidationError,
    TopologyError,
    TransportError,
)
from ..modules.orchestrator import ClusterOrchestrator
from ..modules.topology import TopologyTracker
from .deps import fail, ok
from .middleware import AuthMiddleware
from .routes import cluster, infra, node, permissions, workload

logger = logging.getLogger("kubehop.api")


def _envelope(status_code: int, error: Exception, data=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=fail(str(error), data))


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        return _envelope(400, exc, {"field": exc.field} if exc.field else None)

    @app.exception_handler(PermissionDeniedError)
    async def permission_denied(request: Request, exc: PermissionDeniedError):
        return _envelope(403, exc)

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return _envelope(404, exc)

    @app.exception_handler(TopologyError)
    async def topology_rejected(request: Request, exc: TopologyError):
        return _envelope(409, exc, exc.result.to_payload())

    @app.exception_handler(CommandError)
    async def command_failed(request: Request, exc: CommandError):
        # the backend answered; the operation itself failed
        return _envelope(200, exc, exc.result.to_payload())

    @app.exception_handler(OperationTimeoutError)
    async def timed_out(request: Request, exc: OperationTimeoutError):
        return _envelope(504, exc)

    @app.exception_handler(TransportError)
    async def backend_unavailable(request: Request, exc: TransportError):
        logger.error(f"Backend error on {request.url.path}: {exc}")
        return _envelope(502, exc)


def create_app(client: Optional[KubehopClient] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the gateway application.

    Args:
        client: Client to use; built from ``settings`` when omitted
        settings: Settings for the API key and backend; global settings when omitted

    Returns:
        The FastAPI application
    """
    settings = settings or get_settings()
    app = FastAPI(title="kubehop", version=__version__)
    app.state.client = client or KubehopClient.from_settings(settings)
    app.state.orchestrator = ClusterOrchestrator(app.state.client, TopologyTracker())
    app.add_middleware(AuthMiddleware, api_key=settings.gateway.api_key)
    register_error_handlers(app)

    @app.get("/health")
    def health():
        return ok({"version": __version__})

    app.include_router(cluster.router)
    app.include_router(node.router)
    app.include_router(workload.router)
    app.include_router(infra.router)
    app.include_router(permissions.router)
    return app
