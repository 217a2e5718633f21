"""
BaitGuard — Error Taxonomy
Backend failures carry a short machine-readable reason string so callers can
tell a refused connection from a timeout without parsing messages.
"""


class BackendError(Exception):
    """Base class for classification backend failures."""

    reason = "backend_error"

    def __init__(self, message: str = "", reason: str | None = None, backend: str | None = None):
        super().__init__(message or self.reason)
        if reason:
            self.reason = reason
        self.backend = backend


class BackendUnavailableError(BackendError):
    """Backend failed to initialise or its server is unreachable."""

    reason = "unavailable"


class BackendTimeoutError(BackendError):
    """A network or compute call exceeded its deadline."""

    reason = "timeout"


class LLMResponseError(BackendError):
    """The inference server answered with a payload we could not use."""

    reason = "malformed_response"


class ModelStateError(RuntimeError):
    """Predict / train / classify called before initialisation."""
