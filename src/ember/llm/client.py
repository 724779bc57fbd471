"""Abstract base class for LLM clients."""

import logging
import time
from abc import ABC, abstractmethod

from ember.llm.errors import LLMError
from ember.llm.models import Completion, CompletionRequest

logger = logging.getLogger(__name__)


class LLMClient(ABC):
    """A model endpoint that turns one request into one completion.

    Subclasses implement _complete() and translate every provider failure
    into the ember.llm.errors hierarchy; complete() adds timing and logging.
    """

    provider: str = "unknown"

    def __init__(self, model: str, timeout: float):
        self.model = model
        self.timeout = timeout

    async def complete(self, request: CompletionRequest) -> Completion:
        """Run one completion.

        Raises:
            LLMError: Any provider failure, already classified
        """
        start_time = time.monotonic()
        try:
            completion = await self._complete(request)
        except LLMError as e:
            logger.error(
                f"{self.provider} call failed: {type(e).__name__}",
                extra={
                    "provider": self.provider,
                    "model": self.model,
                    "status_code": e.status_code,
                    "latency_ms": (time.monotonic() - start_time) * 1000,
                    "correlation_id": e.correlation_id,
                },
            )
            raise

        logger.info(
            f"{self.provider} call succeeded",
            extra={
                "provider": self.provider,
                "model": completion.model,
                "latency_ms": (time.monotonic() - start_time) * 1000,
                "input_tokens": completion.input_tokens,
                "output_tokens": completion.output_tokens,
                "stop_reason": completion.stop_reason,
            },
        )
        return completion

    @abstractmethod
    async def _complete(self, request: CompletionRequest) -> Completion:
        pass

    async def aclose(self) -> None:
        """Release network resources held by the client."""
        return None

    async def __aenter__(self) -> "LLMClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
