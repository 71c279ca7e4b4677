"""Embedding providers for semantic search.

The vector index takes a provider at construction time. Providers own their
client and model state; nothing here is a process-wide singleton.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import openai

if TYPE_CHECKING:
    from northstar.config.models import EmbeddingsConfig

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_DIMENSIONS = 384


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns text into a fixed-dimension float vector."""

    @property
    def dimensions(self) -> int: ...

    async def embed(self, text: str) -> list[float]: ...


class OpenAIEmbeddingProvider:
    """Embeddings via the OpenAI API.

    text-embedding-3 models accept a ``dimensions`` argument, so the index
    dimension is chosen here rather than fixed by the model.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int = DEFAULT_DIMENSIONS,
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        self._api_key = api_key
        self._client = client
        self._model = model
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _get_client(self) -> openai.AsyncOpenAI:
        # Created on first use so a missing key only fails the embed call.
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Raises:
            ValueError: If text is empty or whitespace-only (the API rejects it).
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty or whitespace-only text")

        logger.debug("Embedding %d chars with model %s", len(text), self._model)
        response = await self._get_client().embeddings.create(
            model=self._model,
            input=[text],
            dimensions=self._dimensions,
        )
        return list(response.data[0].embedding)


def create_embedding_provider(config: EmbeddingsConfig) -> EmbeddingProvider:
    """Build the configured embedding provider."""
    if config.provider == "openai":
        api_key = config.api_key.get_secret_value() if config.api_key else None
        return OpenAIEmbeddingProvider(
            api_key=api_key,
            model=config.model,
            dimensions=config.dimensions,
        )
    raise ValueError(f"Unknown embedding provider: {config.provider}")
