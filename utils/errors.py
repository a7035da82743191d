"""Error taxonomy shared by controllers, the chat core, and the exception handler."""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP status and a machine-readable code."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, *, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_body(self) -> Dict[str, Any]:
        """Return the JSON error body sent to non-streaming callers."""
        body: Dict[str, Any] = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    """Bad client input. Never retried."""

    status_code = 400
    code = "validation_error"


class UpstreamTimeout(AppError):
    """The provider did not finish inside the configured budget."""

    status_code = 408
    code = "upstream_timeout"


class UpstreamTerminalFailure(AppError):
    """A run ended as failed, cancelled, or expired, or its tool outputs could not be submitted."""

    status_code = 500
    code = "upstream_failure"


class ProtocolViolation(AppError):
    """The provider sent tool-call data the resolver could not use."""

    status_code = 500
    code = "protocol_violation"


class TransportClosed(AppError):
    """The client connection went away while events were still being written."""

    status_code = 500
    code = "transport_closed"
