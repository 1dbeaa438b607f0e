"""Custom exception hierarchy for pysignalk."""

from __future__ import annotations

from enum import StrEnum


class CommandErrorKind(StrEnum):
    """Why a write command did not reach the server intact."""

    NETWORK = "network"
    UNAUTHORIZED = "unauthorized"
    SERVER_REJECTED = "server_rejected"
    TIMEOUT = "timeout"


class SignalKError(Exception):
    """Base exception for all pysignalk errors."""


class SignalKConfigError(SignalKError):
    """Invalid or missing configuration."""


class SignalKTransportError(SignalKError):
    """HTTP/WebSocket-level failure on a read path (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class SignalKCommandError(SignalKTransportError):
    """A write command failed before the server accepted it.

    Every subclass pins a :class:`CommandErrorKind` so callers can report
    the failure without matching on exception types.
    """

    kind: CommandErrorKind = CommandErrorKind.NETWORK

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
        server_message: str | None = None,
    ) -> None:
        self.server_message = server_message
        super().__init__(message, status_code=status_code, endpoint=endpoint)

    @property
    def retryable(self) -> bool:
        """Whether the user may reasonably re-trigger the same command."""
        return self.kind in (CommandErrorKind.NETWORK, CommandErrorKind.TIMEOUT) or (
            self.status_code is not None and self.status_code >= 500
        )

    def user_message(self) -> str:
        """Short user-facing explanation of the failure."""
        if self.kind == CommandErrorKind.NETWORK:
            return "Network connection lost. Check your connection and try again."
        if self.kind == CommandErrorKind.TIMEOUT:
            return "Command timed out. The server may not be responding."
        if self.kind == CommandErrorKind.UNAUTHORIZED:
            return "Authentication failed. Please log in again."
        if self.status_code is not None and self.status_code >= 500:
            return f"Server error ({self.status_code}). Try again later."
        return self.server_message or "Command rejected by the server."


class SignalKNetworkError(SignalKCommandError):
    """Server unreachable or the connection broke mid-request."""

    kind = CommandErrorKind.NETWORK


class SignalKTimeoutError(SignalKCommandError):
    """The request did not complete within the configured timeout."""

    kind = CommandErrorKind.TIMEOUT


class SignalKAuthenticationError(SignalKCommandError):
    """Missing or invalid credential (HTTP 401/403, failed login)."""

    kind = CommandErrorKind.UNAUTHORIZED


class SignalKCommandRejectedError(SignalKCommandError):
    """The server understood the command but refused it."""

    kind = CommandErrorKind.SERVER_REJECTED


class SignalKNotFoundError(SignalKCommandRejectedError):
    """Target path or autopilot instance does not exist (HTTP 404)."""

    def user_message(self) -> str:
        return "Target not found on the server. Reconfigure the control."


class SignalKV2NotAvailableError(SignalKCommandRejectedError):
    """The server does not provide the V2 autopilot API.

    Raised during API discovery (HTTP 404 on the autopilots endpoint) and
    when a V2-only maneuver (gybe, dodge) is requested against a V1 server.
    """

    def user_message(self) -> str:
        return "V2 API not available. Your SignalK server may need an update."


class SignalKAccessDeniedError(SignalKError):
    """A device access request was denied by the server administrator."""
