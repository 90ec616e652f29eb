"""tooltalk exception hierarchy.

All tooltalk-specific exceptions inherit from ToolTalkError.

Backend errors split into two families: TransientBackendError (retried by
RetryPolicy) and PermanentBackendError (surfaced to the caller immediately).
Tool errors never escape a round; the executor folds them into tool-role
messages.
"""

from __future__ import annotations


class ToolTalkError(Exception):
    """Base exception for all tooltalk errors."""


class ConfigError(ToolTalkError):
    """Missing or invalid configuration (e.g., no API key)."""


# ---------------------------------------------------------------------------
# Backend errors
# ---------------------------------------------------------------------------


class BackendError(ToolTalkError):
    """Base for all errors raised while talking to a model backend.

    Attributes:
        status_code: HTTP status code, when the error came from a response.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class TransientBackendError(BackendError):
    """A failure that may succeed if the same request is sent again."""


class RateLimitedError(TransientBackendError):
    """Rate limited by the backend (429).

    Attributes:
        retry_after: Seconds to wait before retrying (from Retry-After header),
            or None if not provided.
    """

    def __init__(
        self,
        message: str = "Rate limited",
        retry_after: float | None = None,
        status_code: int | None = 429,
    ) -> None:
        self.retry_after = retry_after
        if retry_after is not None:
            message = f"{message} (retry after {retry_after}s)"
        super().__init__(message, status_code=status_code)


class BackendUnavailableError(TransientBackendError):
    """Backend temporarily unavailable (5xx, connection failure)."""


class PermanentBackendError(BackendError):
    """A failure that will not go away by retrying the same request."""


class AuthError(PermanentBackendError):
    """Authentication failed (401/403)."""


class BadRequestError(PermanentBackendError):
    """The backend rejected the request (400 and other 4xx)."""


class UnsupportedBackendError(PermanentBackendError):
    """The requested backend identifier has no adapter."""

    def __init__(self, backend: str) -> None:
        self.backend = backend
        super().__init__(f"Unsupported backend: {backend}")


class ResponseFormatError(PermanentBackendError):
    """Unexpected response shape from a backend."""


class UnrecognizedReplyError(PermanentBackendError):
    """A reply part that the orchestrator does not know how to handle."""

    def __init__(self, kind: str, payload: object = None) -> None:
        self.kind = kind
        self.payload = payload
        super().__init__(f"Unrecognized reply part: {kind}")


class RetryExhaustedError(ToolTalkError):
    """All retry attempts for a single exchange failed."""

    def __init__(
        self,
        attempts: int,
        last_error: BaseException | None = None,
        deadline: float | None = None,
    ) -> None:
        self.attempts = attempts
        self.last_error = last_error
        self.deadline = deadline
        within = f" within {deadline:g}s" if deadline is not None else ""
        super().__init__(
            f"Failed to get response after {attempts} attempts{within}: {last_error}"
        )


# ---------------------------------------------------------------------------
# Tool errors
# ---------------------------------------------------------------------------


class ToolError(ToolTalkError):
    """Base exception for tool resolution and execution errors."""


class ToolNotFoundError(ToolError):
    """Raised when a tool name is not in the registry."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool {name} does not exist")


class DuplicateToolError(ToolError):
    """Raised when registering a tool name twice."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Duplicate tool name: {name}")


class ToolTimeoutError(ToolError):
    """A tool call did not finish within its timeout."""

    def __init__(self, name: str, timeout: float) -> None:
        self.name = name
        self.timeout = timeout
        super().__init__(f"Tool call {name} timed out after {timeout:g}s")


class MalformedToolCallError(ToolError):
    """A text-embedded tool call could not be decoded, even after repair.

    Attributes:
        fragment: The candidate text that failed to decode.
    """

    def __init__(self, message: str, fragment: str = "") -> None:
        self.fragment = fragment
        super().__init__(message)


# ---------------------------------------------------------------------------
# Session errors
# ---------------------------------------------------------------------------


class SessionError(ToolTalkError):
    """Base for chat session lifecycle errors."""


class SessionClosedError(SessionError):
    """Operation attempted on a closed session."""

    def __init__(self) -> None:
        super().__init__("Session is closed")


class SessionCancelledError(SessionError):
    """The session was closed while a round was in flight."""

    def __init__(self) -> None:
        super().__init__("Session was closed during the round")
