"""Transport to the remote execution backend.

Every operation is sent as a single ``{"action", "parameters"}`` POST and
answered with a ``{"success", "data", "error"}`` envelope. The transport only
deals with that outer envelope; the CommandResult inside ``data`` is
interpreted by the dispatcher.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests
from jsonschema import ValidationError, validate

from .config import BackendConfig
from .errors import OperationTimeoutError, TransportError
from .utils import redact_sensitive_data

logger = logging.getLogger("kubehop.transport")

ENVELOPE_SCHEMA = {
    "type": "object",
    "properties": {
        "success": {"type": "boolean"},
        "error": {"type": ["string", "null"]},
        "message": {"type": ["string", "null"]},
    },
    "required": ["success"],
}


class Transport(ABC):
    """Sends one named operation and returns the decoded envelope."""

    @abstractmethod
    def request(self, action: str, parameters: Dict[str, Any], timeout: Optional[float] = None) -> Any:
        """Send ``action`` with ``parameters``.

        Returns:
            The decoded JSON body. Shape checks happen in :func:`unwrap_envelope`.

        Raises:
            TransportError: If no response could be obtained
            OperationTimeoutError: If the request timed out
        """

    def close(self) -> None:
        pass


class HttpTransport(Transport):
    """JSON-over-HTTP transport built on a ``requests`` session."""

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout: float = 30.0,
        verify_tls: bool = True,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.verify_tls = verify_tls
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json", "Accept": "application/json"})
        if api_token:
            self.session.headers["Authorization"] = f"Bearer {api_token}"

    @classmethod
    def from_config(cls, config: BackendConfig) -> "HttpTransport":
        return cls(
            base_url=config.base_url,
            api_token=config.api_token,
            timeout=config.timeout,
            verify_tls=config.verify_tls,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/kubernetes"

    def request(self, action: str, parameters: Dict[str, Any], timeout: Optional[float] = None) -> Any:
        timeout = timeout or self.timeout
        logger.debug(f"POST {self.endpoint} action={action} parameters={redact_sensitive_data(parameters)}")
        try:
            response = self.session.post(
                self.endpoint,
                json={"action": action, "parameters": parameters},
                timeout=timeout,
                verify=self.verify_tls,
            )
        except requests.Timeout as e:
            logger.error(f"{action} timed out after {timeout}s")
            raise OperationTimeoutError(action, timeout) from e
        except requests.RequestException as e:
            logger.error(f"{action} request failed: {e}")
            raise TransportError(f"Request {action} failed: {e}", operation=action) from e

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(
                f"{action} returned a non-JSON response (HTTP {response.status_code})",
                operation=action,
                status_code=response.status_code,
            ) from e

        if response.status_code >= 400 and not isinstance(body, dict):
            raise TransportError(
                f"{action} failed with HTTP {response.status_code}",
                operation=action,
                status_code=response.status_code,
            )
        return body

    def close(self) -> None:
        self.session.close()


def unwrap_envelope(action: str, body: Any, accept_failure: bool = False) -> Dict[str, Any]:
    """Validate the outer envelope and raise on ``success=false``.

    Args:
        action: Operation name, for error messages
        body: Decoded response body
        accept_failure: Return a failed envelope that still carries a ``data``
            payload, with the envelope error copied into it

    Returns:
        The envelope dictionary

    Raises:
        TransportError: If the envelope is malformed or reports failure
    """
    try:
        validate(instance=body, schema=ENVELOPE_SCHEMA)
    except ValidationError as e:
        raise TransportError(f"Malformed response envelope for {action}: {e.message}", operation=action) from e

    if not body["success"]:
        message = body.get("error") or body.get("message") or "request failed"
        if accept_failure and isinstance(body.get("data"), dict):
            logger.debug(f"{action} failed with a payload: {message}")
            data = dict(body["data"])
            data.setdefault("success", False)
            data.setdefault("error", message)
            return dict(body, data=data)
        raise TransportError(f"{action}: {message}", operation=action)
    return body
