"""LLM client layer used by the extraction capability."""

from ember.llm.client import LLMClient
from ember.llm.errors import (
    AuthenticationError,
    InvalidRequestError,
    LLMError,
    RateLimitError,
    ResourceNotFoundError,
    ServiceUnavailableError,
    TimeoutError,
    ValidationError,
    error_for_status,
    is_transient,
)
from ember.llm.factory import ExtractionRoute, create_client
from ember.llm.models import Completion, CompletionRequest

__all__ = [
    "AuthenticationError",
    "Completion",
    "CompletionRequest",
    "ExtractionRoute",
    "InvalidRequestError",
    "LLMClient",
    "LLMError",
    "RateLimitError",
    "ResourceNotFoundError",
    "ServiceUnavailableError",
    "TimeoutError",
    "ValidationError",
    "create_client",
    "error_for_status",
    "is_transient",
]
