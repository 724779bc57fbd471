"""Unit tests for the extraction route client factory."""

import pytest

from ember.config import Settings
from ember.llm.factory import ExtractionRoute, create_client
from ember.llm.providers.anthropic import AnthropicClient
from ember.llm.providers.ollama import OllamaClient


def settings(**overrides) -> Settings:
    values = {
        "_env_file": None,
        "extraction_model": "anthropic:claude-sonnet-4-5-20250929",
        "anthropic_api_key": "sk-ant-operator",
    }
    values.update(overrides)
    return Settings(**values)


class TestCreateClient:
    def test_server_route_uses_operator_key(self) -> None:
        client = create_client(ExtractionRoute.SERVER, settings())

        assert isinstance(client, AnthropicClient)
        assert client.model == "claude-sonnet-4-5-20250929"
        assert client.client.api_key == "sk-ant-operator"

    def test_server_route_without_key(self) -> None:
        with pytest.raises(ValueError, match="anthropic_api_key"):
            create_client(ExtractionRoute.SERVER, settings(anthropic_api_key=None))

    def test_byok_route_uses_account_key(self) -> None:
        client = create_client("byok", settings(), byok_api_key="sk-ant-account")

        assert isinstance(client, AnthropicClient)
        assert client.client.api_key == "sk-ant-account"

    def test_byok_route_requires_key(self) -> None:
        with pytest.raises(ValueError, match="BYOK"):
            create_client(ExtractionRoute.BYOK, settings())

    def test_proxied_route_targets_gateway(self) -> None:
        config = settings(
            extraction_model="ollama:qwen2.5:14b", gateway_base_url="http://gateway:11434"
        )

        client = create_client(ExtractionRoute.PROXIED, config)

        assert isinstance(client, OllamaClient)
        assert client.model == "qwen2.5:14b"
        assert client.base_url == "http://gateway:11434"

    def test_unsupported_provider(self) -> None:
        with pytest.raises(ValueError, match="Unsupported provider"):
            create_client(ExtractionRoute.SERVER, settings(extraction_model="openai:gpt-4o"))

    def test_unknown_route(self) -> None:
        with pytest.raises(ValueError):
            create_client("carrier-pigeon", settings())
