"""Factory for the LLM client behind each extraction route."""

from enum import Enum
from typing import TYPE_CHECKING

from ember.llm.client import LLMClient

if TYPE_CHECKING:
    from ember.config import Settings


class ExtractionRoute(str, Enum):
    """Closed set of extraction strategies, selected per account."""

    SERVER = "server"  # Operator credential
    BYOK = "byok"  # Account-supplied credential
    PROXIED = "proxied"  # Self-hosted gateway


def create_client(
    route: ExtractionRoute | str,
    config: "Settings",
    byok_api_key: str | None = None,
) -> LLMClient:
    """Create the LLM client for an extraction route.

    Args:
        route: Extraction route configured on the account
        config: Application settings (model id, operator key, gateway URL, timeout)
        byok_api_key: Account-supplied key, required for the BYOK route

    Returns:
        Concrete LLM client instance

    Raises:
        ValueError: Missing credential, invalid model id or unsupported provider

    Example:
        >>> client = create_client(ExtractionRoute.SERVER, settings)
    """
    route = ExtractionRoute(route)

    parts = config.extraction_model.split(":", 1)
    if len(parts) != 2 or not all(parts):
        raise ValueError(
            f"Invalid extraction model format: {config.extraction_model}. "
            "Expected 'provider:model'"
        )
    provider, model = parts

    if route == ExtractionRoute.PROXIED:
        from ember.llm.providers.ollama import OllamaClient

        # The gateway decides which weights back the model name
        return OllamaClient(
            model=model, base_url=config.gateway_base_url, timeout=config.llm_timeout
        )

    if provider != "anthropic":
        raise ValueError(f"Unsupported provider for route '{route.value}': {provider}")

    from ember.llm.providers.anthropic import AnthropicClient

    if route == ExtractionRoute.BYOK:
        if not byok_api_key:
            raise ValueError("BYOK route requires an account API key")
        api_key = byok_api_key
    else:
        if not config.anthropic_api_key:
            raise ValueError("Server route requires 'anthropic_api_key' in configuration")
        api_key = config.anthropic_api_key

    return AnthropicClient(api_key=api_key, model=model, timeout=config.llm_timeout)
