"""LLM provider implementations."""

from ember.llm.providers.anthropic import AnthropicClient
from ember.llm.providers.ollama import OllamaClient

__all__ = ["AnthropicClient", "OllamaClient"]
