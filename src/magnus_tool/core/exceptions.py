"""Exception hierarchy for Magnus Tool.

All exceptions carry an exit_code for CLI return value mapping.
"""

from magnus_tool.core.exit_codes import ExitCode


class MagnusError(Exception):
    """Base exception for all Magnus Tool errors."""

    exit_code: int = ExitCode.GENERAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuthError(MagnusError):
    """Login rejected or failed before a session credential was issued."""

    exit_code: int = ExitCode.AUTH_ERROR


class InvalidCredentials(AuthError):
    """Server answered 401 to the login request."""


class NegotiationError(MagnusError):
    """Server reachable but connection details could not be negotiated."""

    exit_code: int = ExitCode.NETWORK_ERROR


class NetworkError(MagnusError):
    """Connection failures, unreachable host."""

    exit_code: int = ExitCode.NETWORK_ERROR


class TimeoutError(NetworkError):
    """Request timeout."""

    exit_code: int = ExitCode.TIMEOUT


class ProtocolError(MagnusError):
    """Malformed or unexpected response shape."""

    exit_code: int = ExitCode.NETWORK_ERROR


class RemoteRequestError(MagnusError):
    """Server answered with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class QueryExecutionError(RemoteRequestError):
    """Server-reported failure while submitting or running a query."""

    exit_code: int = ExitCode.QUERY_ERROR


class IndexOutOfRange(MagnusError):
    """Result set or row range outside of the stored results."""

    exit_code: int = ExitCode.INPUT_ERROR


class QueryStateError(MagnusError):
    """Query handle missing, retired, or not yet complete."""


class UnsupportedFormat(MagnusError):
    """Export format tag is not registered."""

    exit_code: int = ExitCode.OUTPUT_ERROR


class InputError(MagnusError):
    """File not found, invalid parameters."""

    exit_code: int = ExitCode.INPUT_ERROR


class ConfigError(MagnusError):
    """Malformed config, missing profile."""

    exit_code: int = ExitCode.CONFIG_ERROR


class NotConnectedError(MagnusError):
    """No established session for the requested connection."""

    exit_code: int = ExitCode.NETWORK_ERROR
