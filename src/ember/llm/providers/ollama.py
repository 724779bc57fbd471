"""Client for a self-hosted gateway speaking the Ollama chat API.

The proxied extraction route sends captures here so they never leave
operator infrastructure.
"""

from typing import Any

import httpx

from ember.llm.client import LLMClient
from ember.llm.errors import ServiceUnavailableError, TimeoutError, ValidationError, error_for_status
from ember.llm.models import Completion, CompletionRequest


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])[:200]
    return response.text[:200]


class OllamaClient(LLMClient):
    """Ollama /api/chat client."""

    provider = "ollama"

    def __init__(
        self,
        model: str,
        base_url: str = "http://localhost:11434",
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the gateway client.

        Args:
            model: Model name known to the gateway (e.g., "qwen2.5:14b")
            base_url: Gateway base URL
            timeout: Request timeout in seconds; local inference is slow
            client: Preconfigured httpx client (tests pass a MockTransport)
        """
        super().__init__(model, timeout)
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    def _payload(self, request: CompletionRequest) -> dict[str, Any]:
        messages = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.append({"role": "user", "content": request.prompt})

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": request.temperature, "num_predict": request.max_tokens},
        }
        if request.json_output:
            payload["format"] = "json"
        return payload

    async def _complete(self, request: CompletionRequest) -> Completion:
        try:
            response = await self.client.post(
                f"{self.base_url}/api/chat", json=self._payload(request)
            )
        except httpx.TimeoutException as e:
            raise TimeoutError(
                f"Gateway request timed out after {self.timeout}s",
                provider=self.provider,
                original_error=e,
            ) from e
        except httpx.TransportError as e:
            raise ServiceUnavailableError(
                f"Cannot connect to gateway at {self.base_url}",
                provider=self.provider,
                original_error=e,
            ) from e

        if response.status_code != 200:
            raise error_for_status(response.status_code, self.provider, _error_detail(response))

        try:
            data = response.json()
        except ValueError as e:
            raise ValidationError(
                "Gateway returned a non-JSON body", provider=self.provider, original_error=e
            ) from e

        text = (data.get("message") or {}).get("content")
        if not text:
            raise ValidationError("Gateway response had no message content", provider=self.provider)

        # Ollama only reports done_reason on newer releases
        stop_reason = data.get("done_reason") or ("stop" if data.get("done") else None)
        return Completion(
            text=text,
            model=data.get("model", self.model),
            input_tokens=data.get("prompt_eval_count", 0),
            output_tokens=data.get("eval_count", 0),
            stop_reason=stop_reason,
        )

    async def aclose(self) -> None:
        await self.client.aclose()
