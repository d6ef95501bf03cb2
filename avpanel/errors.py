"""Error taxonomy for talking to the daemon relay.

Connectivity-class errors (``TransportFailure`` and ``DaemonUnavailable``)
belong to the connection monitor. ``ApplicationError`` is an ordinary
rejection of a request and is shown to the user once. ``ScanPathsMissing``
is raised before any request leaves the client.
"""

from typing import Any


class PanelError(Exception):
    """Base class for all avpanel errors."""


class ConnectivityError(PanelError):
    """The daemon cannot be reached, either at the relay or behind it."""


class TransportFailure(ConnectivityError):
    """The relay itself could not be reached or returned an unusable reply."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class DaemonUnavailable(ConnectivityError):
    """The relay answered, but reports the upstream daemon as unreachable."""


class ApplicationError(PanelError):
    """A well-formed ``{success: false, error}`` reply."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code


class ScanPathsMissing(PanelError):
    """A custom scan was requested without any configured path."""


def error_code(body: dict[str, Any]) -> str | None:
    """Return the machine-readable error code of a failure body, if any.

    The relay reports errors either as a plain string or as an object
    ``{code, message}``. A plain string doubles as the code.
    """
    error = body.get("error")
    if isinstance(error, dict):
        code = error.get("code")
        return str(code) if code is not None else None
    if isinstance(error, str):
        return error
    return None


def error_message(body: dict[str, Any]) -> str | None:
    """Return the human-readable error message of a failure body, if any."""
    error = body.get("error")
    if isinstance(error, dict):
        message = error.get("message") or error.get("code")
        return str(message) if message else None
    if isinstance(error, str) and error.strip():
        return error
    return None


def is_daemon_unavailable(body: Any, marker: str) -> bool:
    """Check whether a reply is the uniform daemon-unreachable signal."""
    if not isinstance(body, dict) or body.get("success", True):
        return False
    return error_code(body) == marker


def is_endpoint_fault(error: Exception) -> bool:
    """True for an error status from one endpoint, as opposed to a dead relay or daemon."""
    return isinstance(error, TransportFailure) and error.status_code is not None
