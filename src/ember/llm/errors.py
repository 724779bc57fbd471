"""Error classes for the LLM client layer.

Providers translate their own failures into these classes, so callers decide
whether to retry from the class alone.
"""

import contextvars
import uuid

# Set per request by the API; errors raised while serving it carry the same ID
correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


class LLMError(Exception):
    """Base exception for LLM client errors."""

    transient: bool = False

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status_code: int | None = None,
        correlation_id: str | None = None,
        original_error: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code
        self.correlation_id = correlation_id or correlation_id_var.get() or str(uuid.uuid4())
        self.original_error = original_error

    def __str__(self) -> str:
        tags = []
        if self.provider:
            tags.append(f"provider={self.provider}")
        if self.status_code is not None:
            tags.append(f"status={self.status_code}")
        tags.append(f"correlation_id={self.correlation_id}")
        return f"{self.message} [{', '.join(tags)}]"


class AuthenticationError(LLMError):
    """Credential rejected (401, 403)."""


class InvalidRequestError(LLMError):
    """Request rejected as malformed (400, 413, 422)."""


class ResourceNotFoundError(LLMError):
    """Model or endpoint does not exist (404)."""


class ValidationError(LLMError):
    """Provider answered with something that is not a usable completion."""


class RateLimitError(LLMError):
    """Too many requests (429)."""

    transient = True


class TimeoutError(LLMError):
    """No answer within the client timeout (or 408)."""

    transient = True


class ServiceUnavailableError(LLMError):
    """Provider down, overloaded or unreachable (5xx, 529, connection failures)."""

    transient = True


STATUS_ERRORS: dict[int, type[LLMError]] = {
    400: InvalidRequestError,
    401: AuthenticationError,
    403: AuthenticationError,
    404: ResourceNotFoundError,
    408: TimeoutError,
    413: InvalidRequestError,
    422: InvalidRequestError,
    429: RateLimitError,
}


def error_for_status(
    status_code: int,
    provider: str,
    detail: str | None = None,
    original_error: BaseException | None = None,
) -> LLMError:
    """Build the error matching an HTTP status returned by a provider.

    Any 5xx (including Anthropic's 529 "overloaded") is treated as the
    service being unavailable; other unknown statuses become a plain LLMError.
    """
    cls = STATUS_ERRORS.get(status_code)
    if cls is None:
        cls = ServiceUnavailableError if status_code >= 500 else LLMError
    message = f"{provider} returned HTTP {status_code}"
    if detail:
        message += f": {detail}"
    return cls(message, provider=provider, status_code=status_code, original_error=original_error)


def is_transient(error: BaseException) -> bool:
    """Return True if retrying the call may succeed."""
    return isinstance(error, LLMError) and error.transient
