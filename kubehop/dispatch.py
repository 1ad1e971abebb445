"""Operation dispatcher.

Builds the typed request for an operation, sends it through a
:class:`~kubehop.transport.Transport` and applies the error policy declared
for the operation's category in :data:`~kubehop.operations.OPERATIONS`.
"""
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .errors import (
    CommandError,
    PartialSuccessError,
    RequestValidationError,
    TopologyError,
    TransportError,
)
from .models.hops import describe_validation_error
from .models.results import CommandResult
from .operations import Operation, OperationCategory, OperationRequest, OperationSpec, spec_for
from .transport import Transport, unwrap_envelope

logger = logging.getLogger("kubehop.dispatch")

# keys a backend may put on the envelope when it returns the result flat
_RESULT_KEYS = ("success", "message", "error", "commandResults", "output", "logs", "details")


def unwrap_nested(data: Any) -> Any:
    """Strip a second ``{success, data}`` layer some backends add to listings."""
    if isinstance(data, dict) and data.get("success") is True and "data" in data:
        return data["data"]
    return data


class OperationDispatcher:
    """Sends typed operations and enforces the per-category error policy."""

    def __init__(self, transport: Transport, timeout: Optional[float] = None, bootstrap_timeout: Optional[float] = None):
        self.transport = transport
        self.timeout = timeout
        self.bootstrap_timeout = bootstrap_timeout

    def build(self, operation: Operation, request: Optional[OperationRequest] = None, **fields: Any) -> OperationRequest:
        """Validate parameters for ``operation``.

        Args:
            operation: Operation to build a request for
            request: Already built request; validated again with :meth:`check`
            **fields: Request fields when ``request`` is not given

        Returns:
            The checked request

        Raises:
            RequestValidationError: If a parameter is missing or malformed
            TopologyError: If the operation needs a ``main_id`` and none was given
        """
        spec = spec_for(operation)
        if request is None:
            try:
                request = spec.request_model.model_validate(fields)
            except ValidationError as e:
                loc = e.errors()[0].get("loc") or ()
                raise RequestValidationError(
                    f"{spec.operation.value}: {describe_validation_error(e)}",
                    field=str(loc[0]) if loc else None,
                ) from e
        elif not isinstance(request, spec.request_model):
            raise RequestValidationError(
                f"{spec.operation.value} expects {spec.request_model.__name__}, got {type(request).__name__}"
            )

        request.check()
        if spec.requires_main_id and getattr(request, "main_id", None) is None:
            raise TopologyError.reject(
                spec.operation.value, "main_id must reference an existing master of the same infra"
            )
        return request

    def _timeout_for(self, spec: OperationSpec) -> Optional[float]:
        if spec.long_running and self.bootstrap_timeout:
            return self.bootstrap_timeout
        return self.timeout

    def send(self, operation: Operation, request: OperationRequest, accept_failure: bool = False) -> Dict[str, Any]:
        """Send a built request and return the validated envelope."""
        spec = spec_for(operation)
        action = spec.operation.value
        if spec.category is OperationCategory.COMMAND:
            logger.info(f"Dispatching {action}")
        else:
            logger.debug(f"Dispatching {action}")
        body = self.transport.request(action, request.to_parameters(), timeout=self._timeout_for(spec))
        return unwrap_envelope(action, body, accept_failure=accept_failure)

    def fetch(self, operation: Operation, request: Optional[OperationRequest] = None,
              accept_failure: bool = False, **fields: Any) -> Any:
        """Run a query or registry operation and return its ``data``.

        QUERY_LIST operations never raise: any failure is logged and ``[]``
        returned. Everything else propagates.

        Args:
            operation: Operation to run
            request: Prebuilt request, or None to build one from ``fields``
            accept_failure: Return ``data`` even when it or the envelope reports ``success=false``
        """
        spec = spec_for(operation)
        if spec.category is OperationCategory.QUERY_LIST:
            try:
                data = self._fetch(spec, request, accept_failure, fields)
            except Exception as e:
                logger.error(f"{spec.operation.value} failed, returning empty list: {e}")
                return []
            if not isinstance(data, list):
                logger.error(f"{spec.operation.value} returned {type(data).__name__}, expected a list")
                return []
            return data
        return self._fetch(spec, request, accept_failure, fields)

    def _fetch(self, spec: OperationSpec, request: Optional[OperationRequest], accept_failure: bool,
               fields: Dict[str, Any]) -> Any:
        request = self.build(spec.operation, request, **fields)
        envelope = self.send(spec.operation, request, accept_failure=accept_failure)
        data = unwrap_nested(envelope.get("data"))
        if isinstance(data, dict) and data.get("success") is False and not accept_failure:
            raise CommandError(spec.operation.value, CommandResult.model_validate(data))
        return data

    def execute(self, operation: Operation, request: Optional[OperationRequest] = None, **fields: Any) -> CommandResult:
        """Run a remote script operation and return its checked result.

        Raises:
            CommandError: If the result reports ``success=false``
            PartialSuccessError: If it failed after some steps succeeded
            TransportError: If no result could be read from the response
        """
        spec = spec_for(operation)
        action = spec.operation.value
        request = self.build(spec.operation, request, **fields)
        envelope = self.send(spec.operation, request)

        data = envelope.get("data")
        if data is None or (isinstance(data, dict) and "success" not in data):
            if spec.result_in_envelope:
                data = {k: envelope[k] for k in _RESULT_KEYS if k in envelope}
            elif data is None:
                raise TransportError(f"{action} returned no result", operation=action)
            else:
                # accepted with a plain payload, e.g. {"message": ...}
                data = {"success": True, "message": data.get("message"), "details": {"data": data}}

        try:
            result = CommandResult.model_validate(data)
        except ValidationError as e:
            raise TransportError(f"{action} returned an unreadable result: {describe_validation_error(e)}", operation=action) from e

        return check_result(action, result)


def check_result(action: str, result: CommandResult) -> CommandResult:
    """Raise for a failed result, warn for a success with failed steps."""
    if not result.success:
        failed = ", ".join(step.summary() for step in result.failed_steps()) or result.error
        if result.is_partial:
            logger.error(f"{action} partially applied: {failed}")
            raise PartialSuccessError(action, result)
        logger.error(f"{action} failed: {failed}")
        raise CommandError(action, result)
    if result.has_failed_steps:
        steps = ", ".join(step.summary() for step in result.failed_steps())
        logger.warning(f"{action} succeeded with failed steps: {steps}")
    return result
