"""Unit tests for AnthropicClient."""

from unittest.mock import AsyncMock, Mock, patch

import anthropic
import httpx
import pytest

from ember.llm.errors import (
    AuthenticationError,
    InvalidRequestError,
    LLMError,
    RateLimitError,
    ResourceNotFoundError,
    ServiceUnavailableError,
    TimeoutError,
    ValidationError,
)
from ember.llm.models import CompletionRequest
from ember.llm.providers.anthropic import JSON_INSTRUCTION, AnthropicClient

REQUEST = CompletionRequest(prompt="Extract", max_tokens=1024)


def status_error(status_code: int) -> anthropic.APIStatusError:
    return anthropic.APIStatusError(
        message=f"HTTP {status_code}", response=Mock(status_code=status_code), body=None
    )


class TestAnthropicClient:
    """Tests for AnthropicClient."""

    @pytest.fixture
    def client(self) -> AnthropicClient:
        return AnthropicClient(
            api_key="test-api-key", model="claude-sonnet-4-5-20250929", timeout=30.0
        )

    async def test_complete_success(
        self, client: AnthropicClient, mock_anthropic_response: Mock
    ) -> None:
        with patch.object(client.client.messages, "create", new_callable=AsyncMock) as mock_create:
            mock_create.return_value = mock_anthropic_response

            completion = await client.complete(REQUEST)

            assert completion.text == '{"memories": []}'
            assert completion.input_tokens == 10
            assert completion.output_tokens == 5
            assert completion.stop_reason == "end_turn"
            assert not completion.truncated

            kwargs = mock_create.call_args.kwargs
            assert kwargs["model"] == "claude-sonnet-4-5-20250929"
            assert kwargs["temperature"] == 0.0
            assert kwargs["max_tokens"] == 1024
            assert kwargs["system"] == JSON_INSTRUCTION
            assert kwargs["messages"] == [{"role": "user", "content": "Extract"}]

    async def test_system_prompt_is_top_level(
        self, client: AnthropicClient, mock_anthropic_response: Mock
    ) -> None:
        with patch.object(client.client.messages, "create", new_callable=AsyncMock) as mock_create:
            mock_create.return_value = mock_anthropic_response

            await client.complete(
                CompletionRequest(system="You extract memories.", prompt="Extract", json_output=False)
            )

            assert mock_create.call_args.kwargs["system"] == "You extract memories."

    async def test_json_output_extends_system_prompt(
        self, client: AnthropicClient, mock_anthropic_response: Mock
    ) -> None:
        with patch.object(client.client.messages, "create", new_callable=AsyncMock) as mock_create:
            mock_create.return_value = mock_anthropic_response

            await client.complete(CompletionRequest(system="You extract memories.", prompt="Extract"))

            system = mock_create.call_args.kwargs["system"]
            assert system.startswith("You extract memories.")
            assert system.endswith(JSON_INSTRUCTION)

    async def test_plain_text_request_sends_no_system(
        self, client: AnthropicClient, mock_anthropic_response: Mock
    ) -> None:
        with patch.object(client.client.messages, "create", new_callable=AsyncMock) as mock_create:
            mock_create.return_value = mock_anthropic_response

            await client.complete(CompletionRequest(prompt="Summarize", json_output=False))

            assert mock_create.call_args.kwargs["system"] is anthropic.NOT_GIVEN

    async def test_max_tokens_stop_is_truncated(
        self, client: AnthropicClient, mock_anthropic_response: Mock
    ) -> None:
        mock_anthropic_response.stop_reason = "max_tokens"
        with patch.object(client.client.messages, "create", new_callable=AsyncMock) as mock_create:
            mock_create.return_value = mock_anthropic_response

            assert (await client.complete(REQUEST)).truncated

    async def test_non_text_blocks_are_skipped(
        self, client: AnthropicClient, mock_anthropic_response: Mock
    ) -> None:
        mock_anthropic_response.content = [
            Mock(type="thinking", text="ignored"),
            Mock(type="text", text='{"memories": '),
            Mock(type="text", text="[]}"),
        ]
        with patch.object(client.client.messages, "create", new_callable=AsyncMock) as mock_create:
            mock_create.return_value = mock_anthropic_response

            assert (await client.complete(REQUEST)).text == '{"memories": []}'

    async def test_response_without_text_is_validation_error(
        self, client: AnthropicClient, mock_anthropic_response: Mock
    ) -> None:
        mock_anthropic_response.content = []
        with patch.object(client.client.messages, "create", new_callable=AsyncMock) as mock_create:
            mock_create.return_value = mock_anthropic_response

            with pytest.raises(ValidationError):
                await client.complete(REQUEST)

    @pytest.mark.parametrize(
        "status_code,expected",
        [
            (401, AuthenticationError),
            (403, AuthenticationError),
            (429, RateLimitError),
            (404, ResourceNotFoundError),
            (400, InvalidRequestError),
            (503, ServiceUnavailableError),
            (529, ServiceUnavailableError),
            (418, LLMError),
        ],
    )
    async def test_status_errors_are_mapped(
        self, client: AnthropicClient, status_code: int, expected: type
    ) -> None:
        with patch.object(client.client.messages, "create", new_callable=AsyncMock) as mock_create:
            mock_create.side_effect = status_error(status_code)

            with pytest.raises(expected) as exc_info:
                await client.complete(REQUEST)

            assert exc_info.value.provider == "anthropic"
            assert exc_info.value.status_code == status_code

    async def test_missing_model_is_named(self, client: AnthropicClient) -> None:
        with patch.object(client.client.messages, "create", new_callable=AsyncMock) as mock_create:
            mock_create.side_effect = status_error(404)

            with pytest.raises(ResourceNotFoundError, match="claude-sonnet-4-5-20250929"):
                await client.complete(REQUEST)

    async def test_timeout(self, client: AnthropicClient) -> None:
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        with patch.object(client.client.messages, "create", new_callable=AsyncMock) as mock_create:
            mock_create.side_effect = anthropic.APITimeoutError(request=request)

            with pytest.raises(TimeoutError) as exc_info:
                await client.complete(REQUEST)

            assert "30.0s" in str(exc_info.value)

    async def test_connection_error(self, client: AnthropicClient) -> None:
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        with patch.object(client.client.messages, "create", new_callable=AsyncMock) as mock_create:
            mock_create.side_effect = anthropic.APIConnectionError(request=request)

            with pytest.raises(ServiceUnavailableError):
                await client.complete(REQUEST)

    def test_sdk_retries_disabled(self, client: AnthropicClient) -> None:
        assert client.client.max_retries == 0

    async def test_context_manager_closes(self, client: AnthropicClient) -> None:
        with patch.object(client.client, "close", new_callable=AsyncMock) as mock_close:
            async with client:
                pass
            mock_close.assert_awaited_once()
