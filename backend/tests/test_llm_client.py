"""
Unit tests for the AI service boundary.

The OpenAI SDK client is replaced with a MagicMock whose
chat.completions.create is an AsyncMock.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from planparse.services.plans.llm_client import PlanLLMClient, PlanLLMError, parse_json_content


def _completion(content, total_tokens=120):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=total_tokens),
    )


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    return client


class TestParseJsonContent:
    """Test lenient JSON parsing of model output."""

    def test_strict_json(self):
        assert parse_json_content('{"rooms": []}') == {"rooms": []}

    def test_markdown_fence(self):
        assert parse_json_content('```json\n{"rooms": [1]}\n```') == {"rooms": [1]}

    def test_trailing_comma(self):
        assert parse_json_content('{"rooms": [{"name": "Den",},],}') == {"rooms": [{"name": "Den"}]}

    def test_garbage(self):
        with pytest.raises(PlanLLMError):
            parse_json_content("I could not find any rooms on this page.")


class TestCompleteJson:
    """Test the JSON-mode chat completion call."""

    @pytest.mark.asyncio
    async def test_request_shape(self, openai_client):
        openai_client.chat.completions.create.return_value = _completion('{"pages": []}')
        client = PlanLLMClient(api_key="sk-test", client=openai_client)

        payload = await client.complete_json(
            model="gpt-4o-mini", system_prompt="Classify", user_content="--- PAGE 1 ---", temperature=0.2,
        )

        assert payload == {"pages": []}
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": "Classify"}
        assert kwargs["messages"][1] == {"role": "user", "content": "--- PAGE 1 ---"}
        assert kwargs["max_tokens"] == 4000

    @pytest.mark.asyncio
    async def test_empty_content(self, openai_client):
        openai_client.chat.completions.create.return_value = _completion(None)
        client = PlanLLMClient(api_key="sk-test", client=openai_client)

        with pytest.raises(PlanLLMError, match="no content"):
            await client.complete_json(model="gpt-4o", system_prompt="x", user_content="y")

    @pytest.mark.asyncio
    async def test_sdk_error_wrapped(self, openai_client):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        openai_client.chat.completions.create.side_effect = openai.APITimeoutError(request=request)
        client = PlanLLMClient(api_key="sk-test", client=openai_client)

        with pytest.raises(PlanLLMError, match="OpenAI request failed"):
            await client.complete_json(model="gpt-4o", system_prompt="x", user_content="y")
