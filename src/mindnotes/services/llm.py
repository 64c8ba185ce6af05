"""
LLM Service

Completion model integration: prompt string in, generated text out.

Providers:
    - ``ollama``: local model over the Ollama HTTP API (async httpx).
    - ``openai``: OpenAI chat completions.

There is no fallback text: connection errors, timeouts, HTTP errors,
malformed payloads and empty output are all raised as ``CompletionFailure``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from functools import lru_cache

import httpx
from openai import AsyncOpenAI

from mindnotes.core.config import settings
from mindnotes.core.errors import CompletionFailure

logger = logging.getLogger(__name__)


class CompletionClient(ABC):
    """Base class for completion providers."""

    async def complete(self, prompt: str) -> str:
        """
        Generate text for ``prompt``.

        Raises:
            CompletionFailure: Provider error or empty generation.
        """
        try:
            text = await self._complete(prompt)
        except CompletionFailure:
            raise
        except Exception as e:
            raise CompletionFailure(f"{type(self).__name__} error: {e}") from e

        if not text or not text.strip():
            raise CompletionFailure("Completion model returned no text")
        return text.strip()

    @abstractmethod
    async def _complete(self, prompt: str) -> str: ...


class OllamaCompletionClient(CompletionClient):
    """
    Completion via Ollama's ``/api/generate`` endpoint.

    Usage::

        client = OllamaCompletionClient()
        text = await client.complete("Say hi")
    """

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Ollama API base URL (default from config).
            model: Model name to use (default from config).
            timeout: Request timeout in seconds (default from config).
            transport: Optional httpx transport (tests inject a MockTransport).
        """
        self._base_url = base_url or settings.OLLAMA_BASE_URL
        self._model = model or settings.OLLAMA_MODEL
        self._timeout = timeout or settings.EXTERNAL_CALL_TIMEOUT
        self._transport = transport

    async def _complete(self, prompt: str) -> str:
        url = f"{self._base_url}/api/generate"
        payload = {"model": self._model, "prompt": prompt, "stream": False}

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.post(url, json=payload)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error("Ollama API error: %s", e.response.text)
                raise CompletionFailure(f"Ollama returned HTTP {e.response.status_code}") from e
            except httpx.HTTPError as e:
                raise CompletionFailure(f"Ollama unreachable ({type(e).__name__})") from e

        try:
            content = response.json()["response"]
        except (ValueError, KeyError, TypeError) as e:
            raise CompletionFailure("Malformed Ollama response payload") from e

        logger.info("Ollama response generated (model=%s, length=%d)", self._model, len(content))
        return content


class OpenAICompletionClient(CompletionClient):
    """Completion via OpenAI chat completions (single user message)."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._api_key = api_key or settings.OPENAI_API_KEY
        self._model = model or settings.OPENAI_COMPLETION_MODEL
        self._timeout = timeout or settings.EXTERNAL_CALL_TIMEOUT
        self._client: AsyncOpenAI | None = None

    async def _complete(self, prompt: str) -> str:
        if not self._api_key:
            raise CompletionFailure("OPENAI_API_KEY is not set")
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key, timeout=self._timeout, max_retries=0
            )

        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.4,
        )
        return response.choices[0].message.content or ""


@lru_cache
def get_completion_client() -> CompletionClient:
    """Configured completion client (process-wide singleton)."""
    if settings.LLM_PROVIDER == "openai":
        return OpenAICompletionClient()
    return OllamaCompletionClient()
