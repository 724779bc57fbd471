"""Anthropic Messages API client.

Serves the server route (operator key) and the BYOK route (account key);
the two differ only in the credential passed to the constructor.
"""

import anthropic

from ember.llm.client import LLMClient
from ember.llm.errors import ServiceUnavailableError, TimeoutError, ValidationError, error_for_status
from ember.llm.models import Completion, CompletionRequest

# The Messages API has no JSON mode; the instruction rides on the system prompt
JSON_INSTRUCTION = "Respond with a single JSON document and nothing else."


class AnthropicClient(LLMClient):
    """Anthropic Claude client."""

    provider = "anthropic"

    def __init__(self, api_key: str, model: str, timeout: float = 60.0):
        """Initialize Anthropic client.

        Args:
            api_key: Operator or account API key
            model: Model identifier (e.g., "claude-sonnet-4-5-20250929")
            timeout: Request timeout in seconds
        """
        super().__init__(model, timeout)
        # Retries are owned by the job scheduler, not the SDK
        self.client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)

    def _system(self, request: CompletionRequest) -> str | anthropic.NotGiven:
        if not request.json_output:
            return request.system or anthropic.NOT_GIVEN
        if request.system:
            return f"{request.system}\n\n{JSON_INSTRUCTION}"
        return JSON_INSTRUCTION

    async def _complete(self, request: CompletionRequest) -> Completion:
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                system=self._system(request),
                messages=[{"role": "user", "content": request.prompt}],
            )
        except anthropic.APIStatusError as e:
            detail = f"model {self.model} not found" if e.status_code == 404 else None
            raise error_for_status(e.status_code, self.provider, detail, original_error=e) from e
        except anthropic.APITimeoutError as e:
            raise TimeoutError(
                f"Anthropic request timed out after {self.timeout}s",
                provider=self.provider,
                original_error=e,
            ) from e
        except anthropic.APIConnectionError as e:
            raise ServiceUnavailableError(
                "Cannot connect to Anthropic API", provider=self.provider, original_error=e
            ) from e

        # Thinking and tool-use blocks carry no answer text
        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not text:
            raise ValidationError("Anthropic response had no text content", provider=self.provider)

        return Completion(
            text=text,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
        )

    async def aclose(self) -> None:
        await self.client.close()
