"""
Gemini client wrapper.

Thin async facade over google-genai that every AI feature goes through.
Each call is bounded by Config.AI_TIMEOUT_SECONDS; an unconfigured client,
a timeout or an SDK failure all surface as AIServiceError.

Usage:
    client = get_gemini_client()
    text = await client.generate_content(prompt, temperature=0.3, max_output_tokens=1024)
"""

import asyncio
import logging
from typing import Any, Optional

from google import genai
from google.genai import types

from src.common.config import Config
from src.common.error_handling import AIServiceError

logger = logging.getLogger(__name__)


class GeminiClient:
    """Async Gemini text generation with a hard timeout."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        client: Any = None,
    ):
        """
        Args:
            api_key: Gemini API key (defaults to Config.GEMINI_API_KEY)
            model: Default model name (defaults to Config.GEMINI_MODEL)
            timeout_seconds: Per-call timeout (defaults to Config.AI_TIMEOUT_SECONDS)
            client: Pre-built genai.Client, mainly for tests
        """
        self.model = model or Config.GEMINI_MODEL
        self.timeout_seconds = timeout_seconds or Config.AI_TIMEOUT_SECONDS
        self._client = client

        if self._client is None:
            key = api_key or Config.get_gemini_api_key()
            if key:
                self._client = genai.Client(api_key=key)
            else:
                logger.warning("GEMINI_API_KEY not set; AI features will be unavailable")

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    async def generate_content(
        self,
        contents: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        top_k: Optional[float] = None,
        top_p: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        """
        Generate text for a prompt.

        Returns:
            The response text ("" when the model returned no text)

        Raises:
            AIServiceError: Client unconfigured, call timed out, or SDK error
        """
        if self._client is None:
            raise AIServiceError("AI service not available")

        config = types.GenerateContentConfig(
            temperature=temperature,
            top_k=top_k,
            top_p=top_p,
            max_output_tokens=max_output_tokens,
            candidate_count=1,
        )

        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=model or self.model,
                    contents=contents,
                    config=config,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise AIServiceError(f"AI request timeout after {self.timeout_seconds}s") from e
        except AIServiceError:
            raise
        except Exception as e:
            raise AIServiceError(f"AI request failed: {e}") from e

        return response.text or ""


_gemini_client: Optional[GeminiClient] = None


def get_gemini_client() -> GeminiClient:
    """Return the process-wide Gemini client, creating it on first use."""
    global _gemini_client
    if _gemini_client is None:
        _gemini_client = GeminiClient()
    return _gemini_client


def reset_gemini_client() -> None:
    """Drop the cached client (tests, key rotation)."""
    global _gemini_client
    _gemini_client = None
