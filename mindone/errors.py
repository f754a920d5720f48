"""
Error taxonomy shared by the relay server and the overlay client.
"""
from typing import Optional


class RelayError(RuntimeError):
    """Base class for everything the relay reports back to a caller."""


class MalformedRequest(RelayError):
    """Raised when an /execute body is not usable (bad JSON, no prompt)."""


class RelayUnreachable(RelayError):
    """Raised when the relay server cannot be reached over HTTP."""


class UnsupportedAgentType(RelayError):
    """Raised when the configured agent type has no command line."""


class AgentProcessMissing(RelayError):
    """Raised when the agent executable cannot be spawned."""


class AgentProcessFailed(RelayError):
    """Raised when the agent process exits with a non-zero code."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code
