"""Error taxonomy shared by every pipeline stage."""

from __future__ import annotations


class EssayEvalError(Exception):
    """Base class; `status_code` is the HTTP-equivalent mapping."""

    status_code = 500


class InvalidInput(EssayEvalError):
    """Rejected before any backend call (empty text, bad weights, ...)."""

    status_code = 400


class AdapterUnavailable(EssayEvalError):
    """The selected backend cannot be used at all, e.g. missing credentials."""

    status_code = 503


class BackendError(EssayEvalError):
    """A single backend call failed."""

    retryable = False

    def __init__(self, message: str, *, backend: str = "", status: int = 0) -> None:
        super().__init__(message)
        self.backend = backend
        self.status = status


class RateLimited(BackendError):
    retryable = True


class BackendTimeout(BackendError):
    retryable = True


class AuthFailure(BackendError):
    pass


class BackendUnavailable(BackendError):
    pass


class MalformedResponse(EssayEvalError):
    """A backend payload could not be turned into a structured result."""


def backend_error_for_status(status: int, message: str, *, backend: str = "") -> BackendError:
    """Map an HTTP status from a provider onto the backend error taxonomy."""
    if status == 429:
        return RateLimited(message, backend=backend, status=status)
    if status in (401, 403):
        return AuthFailure(message, backend=backend, status=status)
    if status in (408, 504):
        return BackendTimeout(message, backend=backend, status=status)
    return BackendUnavailable(message, backend=backend, status=status)
