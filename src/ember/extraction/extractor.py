"""Extraction capability interface and the language-model implementation.

Every implementation produces a raw payload through _generate(); the shared
extract() runs the same envelope validation on it, so the capture pipeline
sees identical structural guarantees regardless of the backend.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any

from ember.extraction.models import ExtractionBatch, ProfileContext
from ember.extraction.prompts import extraction_prompt, format_capture
from ember.extraction.validation import validate_envelope
from ember.llm.client import LLMClient
from ember.llm.models import CompletionRequest

logger = logging.getLogger(__name__)


class ExtractionCapability(ABC):
    """Turns raw capture text into validated candidate memories."""

    name: str = "extraction"

    def __init__(self, max_candidates: int = 50) -> None:
        self.max_candidates = max_candidates

    @abstractmethod
    async def _generate(self, raw_text: str, context: ProfileContext) -> Any:
        """Produce the raw response envelope (JSON text or decoded object)."""
        pass

    async def extract(self, raw_text: str, context: ProfileContext) -> ExtractionBatch:
        """Extract candidate memories from a capture.

        Args:
            raw_text: Capture text
            context: Owning profile information

        Returns:
            ExtractionBatch with at least one candidate

        Raises:
            MalformedExtractionError: Envelope failed structural validation
            EmptyExtractionError: No entry passed field-level validation
            LLMError: Transport failures from the underlying client
        """
        start_time = time.time()
        payload = await self._generate(raw_text, context)
        batch = validate_envelope(payload, raw_text, self.max_candidates)

        logger.info(
            f"Extracted {batch.count} memories ({batch.dropped} dropped) "
            f"with {self.name} in {(time.time() - start_time) * 1000:.0f}ms",
            extra={
                "profile_id": context.profile_id,
                "memory_count": batch.count,
                "dropped": batch.dropped,
                "low_confidence": len(batch.low_confidence),
            },
        )
        return batch

    async def aclose(self) -> None:
        """Release resources held by the capability."""
        return None


class LLMExtractor(ExtractionCapability):
    """Extraction through an external language model."""

    name = "llm"

    def __init__(self, client: LLMClient, max_tokens: int = 4096, max_candidates: int = 50):
        """Initialize with a provider client.

        Args:
            client: Client selected for the account's extraction route
            max_tokens: Completion token limit
            max_candidates: Upper bound on entries in one response
        """
        super().__init__(max_candidates=max_candidates)
        self.client = client
        self.max_tokens = max_tokens

    async def _generate(self, raw_text: str, context: ProfileContext) -> str:
        completion = await self.client.complete(
            CompletionRequest(
                system=extraction_prompt(),
                prompt=format_capture(raw_text, context),
                max_tokens=self.max_tokens,
            )
        )
        if completion.truncated:
            # Envelope is likely cut off
            logger.warning(
                f"Extraction response hit the {self.max_tokens} token limit",
                extra={"profile_id": context.profile_id, "output_tokens": completion.output_tokens},
            )
        logger.debug(f"Extraction response from {completion.model}: {completion.text}")
        return completion.text

    async def aclose(self) -> None:
        await self.client.aclose()
