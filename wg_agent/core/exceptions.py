"""
Exception types raised by the agent's components.

Only the component boundaries (heartbeat task, command channel, routes)
catch these; below them they propagate as ordinary exceptions.
"""

from typing import Optional, Sequence


class AgentError(Exception):
    """Base class for all agent errors."""


class ExecError(AgentError):
    """An external command could not produce usable output."""

    def __init__(self, argv: Sequence[str], message: str):
        self.argv = list(argv)
        self.command = " ".join(self.argv)
        super().__init__(message)


class ExecTimeoutError(ExecError):
    """Raised when a command exceeds its timeout and is killed."""

    def __init__(self, argv: Sequence[str], timeout: float):
        self.timeout = timeout
        super().__init__(argv, f"Command timed out after {timeout}s: {' '.join(argv)}")


class NonZeroExitError(ExecError):
    """Raised when a command exits with a non-zero status."""

    def __init__(self, argv: Sequence[str], code: int, stderr: str = "", stdout: str = ""):
        self.code = code
        self.stderr = stderr
        self.stdout = stdout
        detail = stderr.strip() or f"exit status {code}"
        super().__init__(argv, f"Command failed ({code}): {detail}")


class SpawnError(ExecError):
    """Raised when a command cannot be started at all."""

    def __init__(self, argv: Sequence[str], reason: str):
        self.reason = reason
        super().__init__(argv, f"Could not start {argv[0] if argv else '<empty>'}: {reason}")


class TransportError(AgentError):
    """A request to the backend did not produce a usable response."""

    HTTP_STATUS = "http_status"
    NO_RESPONSE = "no_response"
    TRANSPORT = "transport"
    MALFORMED_RESPONSE = "malformed_response"

    def __init__(self, kind: str, detail: str, status_code: Optional[int] = None):
        self.kind = kind
        self.detail = detail
        self.status_code = status_code
        if status_code is not None:
            super().__init__(f"{status_code} - {detail}")
        else:
            super().__init__(detail)


class MutationError(AgentError):
    """Raised when adding or removing a peer on the live interface fails."""

    def __init__(self, operation: str, public_key: str, cause: Exception):
        self.operation = operation
        self.public_key = public_key
        self.cause = cause
        super().__init__(f"Failed to {operation} peer {public_key}: {cause}")
