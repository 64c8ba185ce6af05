"""
Embedding Service

Text → dense vector, behind a single ``EmbeddingClient.embed`` contract.

Providers:
    - ``openai``: OpenAI ``text-embedding-3-small`` (1536 dimensions).
    - ``local``: sentence-transformers ``all-MiniLM-L6-v2`` (384 dimensions),
      loaded lazily as a class-level singleton and run in a thread pool so
      inference never blocks the event loop.

Every failure surfaces as ``EmbeddingFailure``. A vector whose length does
not match ``EMBEDDING_DIMENSION`` is rejected rather than written into an
index built for another model.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, ClassVar

from openai import AsyncOpenAI

from mindnotes.core.config import settings
from mindnotes.core.errors import EmbeddingFailure

logger = logging.getLogger(__name__)


class EmbeddingClient(ABC):
    """
    Base class for embedding providers.

    Subclasses implement ``_embed``; input checks, error wrapping and the
    dimension check live here so they apply to every provider.
    """

    def __init__(self, dimension: int | None = None) -> None:
        self.dimension = dimension or settings.EMBEDDING_DIMENSION

    async def embed(self, text: str) -> list[float]:
        """
        Generate an embedding for ``text``.

        Raises:
            EmbeddingFailure: Empty input, provider error, or wrong dimension.
        """
        if not text or not text.strip():
            raise EmbeddingFailure("Refusing to embed empty text")

        try:
            vector = await self._embed(text)
        except EmbeddingFailure:
            raise
        except Exception as e:
            raise EmbeddingFailure(f"{type(self).__name__} error: {e}") from e

        if len(vector) != self.dimension:
            raise EmbeddingFailure(
                f"Embedding dimension mismatch: got {len(vector)}, "
                f"index expects {self.dimension}"
            )
        return vector

    @abstractmethod
    async def _embed(self, text: str) -> list[float]: ...


class OpenAIEmbeddingClient(EmbeddingClient):
    """Embeddings via the OpenAI API."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        dimension: int | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(dimension)
        self._api_key = api_key or settings.OPENAI_API_KEY
        self._model = model or settings.OPENAI_EMBEDDING_MODEL
        self._timeout = timeout or settings.EXTERNAL_CALL_TIMEOUT
        self._client: AsyncOpenAI | None = None

    async def _embed(self, text: str) -> list[float]:
        if not self._api_key:
            raise EmbeddingFailure("OPENAI_API_KEY is not set")
        if self._client is None:
            # One request per embed(); the caller owns retries.
            self._client = AsyncOpenAI(
                api_key=self._api_key, timeout=self._timeout, max_retries=0
            )

        text = text.replace("\n", " ")  # OpenAI recommends single-line input
        response = await self._client.embeddings.create(input=[text], model=self._model)
        if not response.data:
            raise EmbeddingFailure("OpenAI returned no embedding data")
        return list(response.data[0].embedding)


class LocalEmbeddingClient(EmbeddingClient):
    """
    Embeddings from a local sentence-transformers model.

    Usage::

        client = LocalEmbeddingClient(dimension=384)
        vector = await client.embed("dentist on friday")
    """

    _model: ClassVar[Any] = None
    _model_name: ClassVar[str | None] = None

    def __init__(self, model_name: str | None = None, dimension: int | None = None) -> None:
        super().__init__(dimension)
        self.model_name = model_name or settings.LOCAL_EMBEDDING_MODEL

    @classmethod
    def load_model(cls, model_name: str) -> Any:
        """
        Get or lazily initialize the sentence-transformers model.

        The import is deferred so that ``sentence_transformers`` is not
        required at module-import time (keeps test collection fast).
        """
        if cls._model is None or cls._model_name != model_name:
            from sentence_transformers import SentenceTransformer

            logger.info("Loading embedding model: %s ...", model_name)
            cls._model = SentenceTransformer(model_name)
            cls._model_name = model_name
            logger.info("Embedding model loaded")
        return cls._model

    def _encode_sync(self, text: str) -> list[float]:
        """Blocking inference; always call via ``asyncio.to_thread``."""
        model = self.load_model(self.model_name)
        embedding = model.encode([text], normalize_embeddings=True)
        # numpy ndarray → native Python list for pgvector compatibility
        result: list[float] = embedding[0].tolist()
        return result

    async def _embed(self, text: str) -> list[float]:
        return await asyncio.to_thread(self._encode_sync, text)

    @classmethod
    def reset(cls) -> None:
        """Release the model from memory."""
        cls._model = None
        cls._model_name = None
        logger.info("Local embedding model released")


@lru_cache
def get_embedding_client() -> EmbeddingClient:
    """Configured embedding client (process-wide singleton)."""
    if settings.EMBEDDING_PROVIDER == "local":
        return LocalEmbeddingClient()
    return OpenAIEmbeddingClient()
