"""
Unit tests for src/services/gemini_client.py
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.common.error_handling import AIServiceError
from src.services.gemini_client import GeminiClient, get_gemini_client, reset_gemini_client


@pytest.fixture
def sdk():
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=MagicMock(text='{"ok": true}'))
    return client


class TestGeminiClient:
    def test_unconfigured_without_key(self):
        client = GeminiClient(api_key="")

        assert client.is_configured is False

    @pytest.mark.asyncio
    async def test_unconfigured_raises(self):
        with pytest.raises(AIServiceError, match="AI service not available"):
            await GeminiClient(api_key="").generate_content("prompt")

    @pytest.mark.asyncio
    async def test_returns_text(self, sdk):
        client = GeminiClient(model="gemini-test", client=sdk)

        text = await client.generate_content("prompt", temperature=0.3, max_output_tokens=512)

        assert text == '{"ok": true}'
        kwargs = sdk.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["contents"] == "prompt"
        assert kwargs["config"].temperature == 0.3
        assert kwargs["config"].max_output_tokens == 512

    @pytest.mark.asyncio
    async def test_empty_text_becomes_empty_string(self, sdk):
        sdk.aio.models.generate_content.return_value = MagicMock(text=None)

        assert await GeminiClient(client=sdk).generate_content("prompt") == ""

    @pytest.mark.asyncio
    async def test_sdk_error_wrapped(self, sdk):
        sdk.aio.models.generate_content.side_effect = RuntimeError("quota exceeded")

        with pytest.raises(AIServiceError, match="quota exceeded"):
            await GeminiClient(client=sdk).generate_content("prompt")

    @pytest.mark.asyncio
    async def test_timeout(self, sdk):
        async def slow(**_kwargs):
            await asyncio.sleep(1)

        sdk.aio.models.generate_content = slow

        with pytest.raises(AIServiceError, match="timeout"):
            await GeminiClient(client=sdk, timeout_seconds=0.01).generate_content("prompt")


def test_shared_client_is_cached():
    reset_gemini_client()
    try:
        assert get_gemini_client() is get_gemini_client()
    finally:
        reset_gemini_client()
