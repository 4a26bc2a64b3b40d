"""Tests for the Claude client wrapper and LLM output parsing."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import BaseModel

from app.core.config import Settings
from app.core.llm import get_client, invoke_claude, parse_llm_json, strip_llm_fences


class _Meta(BaseModel):
    title: str
    version: str = "1.0"


def _response(*texts, stop_reason="end_turn"):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=t) for t in texts],
        stop_reason=stop_reason,
        usage=SimpleNamespace(input_tokens=120, output_tokens=48),
    )


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=_response("8. Procedures\n\n", "Inspect traps weekly."))
    with patch("app.core.llm.get_client", return_value=client):
        yield client


class TestInvokeClaude:
    """Single-turn message calls."""

    @pytest.mark.asyncio
    async def test_joins_text_blocks(self, mock_client):
        result = await invoke_claude("Write Section 8", 2000)
        assert result.text == "8. Procedures\n\nInspect traps weekly."
        assert not result.truncated
        assert (result.input_tokens, result.output_tokens) == (120, 48)

    @pytest.mark.asyncio
    async def test_request_parameters(self, mock_client):
        with patch("app.core.llm.get_settings", return_value=Settings(LLM_PROVIDER="anthropic")):
            await invoke_claude("Write Section 8", 600)

        kwargs = mock_client.messages.create.await_args.kwargs
        assert kwargs["model"] == "claude-sonnet-4-5-20250929"
        assert kwargs["max_tokens"] == 600
        assert kwargs["temperature"] == 0.3
        assert kwargs["messages"] == [{"role": "user", "content": "Write Section 8"}]

    @pytest.mark.asyncio
    async def test_bedrock_model_id(self, mock_client):
        with patch("app.core.llm.get_settings", return_value=Settings(LLM_PROVIDER="bedrock")):
            await invoke_claude("Write Section 8", 600)
        assert mock_client.messages.create.await_args.kwargs["model"].startswith("us.anthropic.")

    @pytest.mark.asyncio
    async def test_max_tokens_stop_marks_truncated(self, mock_client):
        mock_client.messages.create.return_value = _response("8. Procedures", stop_reason="max_tokens")
        result = await invoke_claude("Write Section 8", 10)
        assert result.truncated

    @pytest.mark.asyncio
    async def test_non_text_blocks_ignored(self, mock_client):
        response = _response("Body")
        response.content.insert(0, SimpleNamespace(type="thinking", thinking="..."))
        mock_client.messages.create.return_value = response
        assert (await invoke_claude("p", 10)).text == "Body"


class TestGetClient:
    """Provider selection."""

    def setup_method(self):
        get_client.cache_clear()

    def teardown_method(self):
        get_client.cache_clear()

    def test_bedrock_provider(self):
        settings = Settings(LLM_PROVIDER="bedrock", AWS_REGION="eu-west-1")
        with (
            patch("app.core.llm.get_settings", return_value=settings),
            patch("app.core.llm.AsyncAnthropicBedrock") as mock_bedrock,
        ):
            client = get_client()
        mock_bedrock.assert_called_once_with(aws_region="eu-west-1")
        assert client is mock_bedrock.return_value

    def test_anthropic_provider(self):
        settings = Settings(LLM_PROVIDER="anthropic", ANTHROPIC_API_KEY="sk-test")
        with (
            patch("app.core.llm.get_settings", return_value=settings),
            patch("app.core.llm.AsyncAnthropic") as mock_anthropic,
        ):
            get_client()
        mock_anthropic.assert_called_once_with(api_key="sk-test")


class TestParseLLMJson:
    """JSON extraction from model output."""

    def test_plain_json(self):
        assert parse_llm_json('{"title": "Pest Control"}', _Meta).title == "Pest Control"

    def test_fenced_json(self):
        raw = '```json\n{"title": "Pest Control", "version": "2.0"}\n```'
        assert parse_llm_json(raw, _Meta).version == "2.0"

    def test_json_wrapped_in_prose(self):
        raw = 'Here is the metadata: {"title": "Pest Control"} Let me know.'
        assert parse_llm_json(raw, _Meta).title == "Pest Control"

    def test_invalid_json_raises(self):
        with pytest.raises(json.JSONDecodeError):
            parse_llm_json("no json here", _Meta)

    def test_strip_unterminated_fence(self):
        assert strip_llm_fences('```json\n{"a": 1}') == '{"a": 1}'
