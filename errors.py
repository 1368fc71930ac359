"""
Error types shared by the Linear and Claude clients.
"""

from enum import Enum
from typing import Optional


class TrackerError(Exception):
    """A Linear request failed (transport, HTTP status or GraphQL errors)."""


class CompletionErrorKind(Enum):
    RATE_LIMITED = "rate_limited"
    QUOTA_EXCEEDED = "quota_exceeded"
    OTHER_API_ERROR = "other_api_error"
    NETWORK_ERROR = "network_error"

    @property
    def recoverable(self) -> bool:
        return self in (CompletionErrorKind.RATE_LIMITED, CompletionErrorKind.QUOTA_EXCEEDED)


class CompletionError(Exception):
    """A completion request failed, classified at the client boundary."""

    def __init__(self, kind: CompletionErrorKind, message: str = "",
                 status_code: Optional[int] = None):
        super().__init__(message or kind.value)
        self.kind = kind
        self.status_code = status_code

    @property
    def recoverable(self) -> bool:
        return self.kind.recoverable


class NoResponseError(CompletionError):
    """No usable completion was obtained, even after retrying."""

    def __init__(self, message: str = "Failed to get a response from the Claude API",
                 attempts: int = 0):
        super().__init__(CompletionErrorKind.OTHER_API_ERROR, message)
        self.attempts = attempts
