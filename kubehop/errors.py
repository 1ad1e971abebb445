"""Exception hierarchy shared by every kubehop operation.

Validation and permission errors are raised before anything is sent to the
backend. Transport errors mean the request never produced a usable answer.
Command errors mean the backend answered and reported a failed operation;
they carry the full :class:`~kubehop.models.results.CommandResult` tree.
"""
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .models.results import CommandResult


class KubehopError(Exception):
    """Base exception for kubehop errors."""


class RequestValidationError(KubehopError):
    """Request rejected locally before dispatch."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class PermissionDeniedError(KubehopError):
    """The acting user lacks the role required on the infra."""

    def __init__(self, message: str, infra_id: Optional[int] = None, user_id: Optional[int] = None):
        self.infra_id = infra_id
        self.user_id = user_id
        super().__init__(message)


class NotFoundError(KubehopError):
    """A point lookup returned no record."""


class TransportError(KubehopError):
    """The backend could not be reached or answered with an unusable envelope."""

    def __init__(self, message: str, operation: Optional[str] = None, status_code: Optional[int] = None):
        self.operation = operation
        self.status_code = status_code
        super().__init__(message)


class OperationTimeoutError(TransportError):
    """The request timed out; the remote outcome is unknown."""

    def __init__(self, operation: str, timeout: Optional[float] = None):
        self.timeout = timeout
        waited = f" after {timeout:g}s" if timeout else ""
        super().__init__(
            f"{operation} timed out{waited}; outcome unknown, verify with "
            f"getNodeStatus/calculateNodes before retrying",
            operation=operation,
        )


class CommandError(KubehopError):
    """The backend reported ``success=false`` for an operation."""

    def __init__(self, operation: str, result: "CommandResult"):
        self.operation = operation
        self.result = result
        super().__init__(result.error or result.message or f"{operation} failed")

    @property
    def message(self) -> Optional[str]:
        return self.result.message

    @property
    def error(self) -> Optional[str]:
        return self.result.error

    @property
    def failed_steps(self) -> List["CommandResult"]:
        return self.result.failed_steps()


class PartialSuccessError(CommandError):
    """Some remote steps succeeded before a later one failed.

    The cluster may have been changed; reconcile with calculateNodes or
    getNodeStatus before deciding what to do next.
    """


class TopologyError(CommandError):
    """Operation refused because the infra topology does not allow it."""

    @classmethod
    def reject(cls, operation: str, reason: str) -> "TopologyError":
        from .models.results import CommandResult

        return cls(operation, CommandResult(success=False, error=reason))
