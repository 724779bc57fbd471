"""Unit tests for LLMExtractor."""

import json
from unittest.mock import AsyncMock

import pytest

from ember.extraction.errors import MalformedExtractionError
from ember.extraction.extractor import LLMExtractor
from ember.extraction.models import ProfileContext
from ember.extraction.prompts import extraction_prompt
from ember.llm.errors import RateLimitError
from ember.llm.models import Completion

RAW = "User: I switched to a vegetarian diet this year and feel great about it."

ENVELOPE = json.dumps(
    {
        "memories": [
            {
                "factualContent": "Switched to a vegetarian diet this year",
                "emotionalSignificance": "Feels great about it",
                "category": "preferences",
                "importance": 3,
                "verbatimText": "I switched to a vegetarian diet this year",
            }
        ]
    }
)


def completion(text: str, stop_reason: str = "end_turn") -> Completion:
    return Completion(
        text=text,
        model="claude-sonnet-4-5-20250929",
        input_tokens=100,
        output_tokens=40,
        stop_reason=stop_reason,
    )


@pytest.fixture
def client() -> AsyncMock:
    mock = AsyncMock()
    mock.provider = "anthropic"
    return mock


@pytest.fixture
def context() -> ProfileContext:
    return ProfileContext(profile_id="profile-1", profile_name="Work", platform="chatgpt")


class TestLLMExtractor:
    async def test_extract_parses_response(self, client, context) -> None:
        client.complete.return_value = completion(ENVELOPE)

        batch = await LLMExtractor(client, max_tokens=2048).extract(RAW, context)

        assert batch.count == 1
        request = client.complete.await_args.args[0]
        assert request.system == extraction_prompt()
        assert RAW in request.prompt
        assert "Profile: Work" in request.prompt
        assert "Source platform: chatgpt" in request.prompt
        assert request.temperature == 0.0
        assert request.max_tokens == 2048

    async def test_prose_response_is_malformed(self, client, context) -> None:
        client.complete.return_value = completion("I could not find any memories here.")

        with pytest.raises(MalformedExtractionError):
            await LLMExtractor(client).extract(RAW, context)

    async def test_truncated_response_is_malformed(self, client, context, caplog) -> None:
        client.complete.return_value = completion(ENVELOPE[:60], stop_reason="max_tokens")

        with pytest.raises(MalformedExtractionError):
            await LLMExtractor(client).extract(RAW, context)

        assert "token limit" in caplog.text

    async def test_transport_errors_propagate(self, client, context) -> None:
        client.complete.side_effect = RateLimitError("slow down", provider="anthropic")

        with pytest.raises(RateLimitError):
            await LLMExtractor(client).extract(RAW, context)

    async def test_aclose_closes_client(self, client) -> None:
        await LLMExtractor(client).aclose()
        client.aclose.assert_awaited_once()
