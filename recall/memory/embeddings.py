"""
Embedding Service for generating vector representations.

Uses OpenAI's embedding models by default, with support for
local models via sentence-transformers as a fallback.

The memory store never calls these services itself; the MemoryManager
embeds text and hands the vectors to the store.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Literal

from openai import AsyncOpenAI, OpenAIError, RateLimitError

from ..errors import ProviderError

logger = logging.getLogger("recall.memory.embeddings")


class EmbeddingService(ABC):
    """Abstract interface for embedding generation."""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the dimension of embeddings produced."""
        pass

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """
        Generate embedding for a single text.

        Raises:
            ProviderError: If the provider request fails or is rate limited.
        """
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts."""
        pass


class OpenAIEmbeddingService(EmbeddingService):
    """
    OpenAI embedding service using text-embedding-3 models.

    Supports native dimension reduction via the dimensions parameter,
    so text-embedding-3-large can be stored at a smaller size when the
    backend needs it (e.g., pgvector's 2000 dim index limit).

    Models:
    - text-embedding-3-small: default 1536 dimensions
    - text-embedding-3-large: default 3072 dimensions (can be reduced)
    """

    # Default dimensions for each model
    MODEL_DEFAULT_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        dimensions: int | None = None,
    ):
        """
        Initialize OpenAI embedding service.

        Args:
            api_key: OpenAI API key
            model: Embedding model name
            dimensions: Override output dimensions. If None, uses the
                        model's default dimensions.
        """
        self.api_key = api_key
        self.model = model
        self._client = None

        default_dim = self.MODEL_DEFAULT_DIMENSIONS.get(model, 1536)
        if dimensions is not None and dimensions > default_dim:
            logger.warning(
                f"Requested dimensions ({dimensions}) exceeds model default ({default_dim}). "
                f"Using {default_dim}."
            )
            dimensions = None
        self._requested_dimensions = dimensions
        self._dimension = dimensions or default_dim

        logger.info(
            f"OpenAIEmbeddingService initialized: model={model}, dimensions={self._dimension}"
        )

    @property
    def dimension(self) -> int:
        return self._dimension

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def _create(self, input: str | list[str]):
        kwargs = {
            "model": self.model,
            "input": input,
        }
        if self._requested_dimensions is not None:
            kwargs["dimensions"] = self._requested_dimensions

        try:
            return await self._get_client().embeddings.create(**kwargs)
        except RateLimitError as e:
            logger.warning(f"OpenAI embedding request rate limited: {e}")
            raise ProviderError(f"Embedding provider rate limited: {e}") from e
        except OpenAIError as e:
            logger.error(f"OpenAI embedding request failed: {e}")
            raise ProviderError(f"Embedding request failed: {e}") from e

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        response = await self._create(text)
        return response.data[0].embedding

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts in one request."""
        if not texts:
            return []

        response = await self._create(texts)

        # Sort by index to maintain order
        sorted_data = sorted(response.data, key=lambda x: x.index)
        return [item.embedding for item in sorted_data]


class LocalEmbeddingService(EmbeddingService):
    """
    Local embedding service using sentence-transformers.

    Runs without an API key. Uses all-MiniLM-L6-v2 by default
    (384 dimensions, fast, good quality).
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = 384  # Default for MiniLM
        logger.info(f"LocalEmbeddingService initialized with model: {model_name}")

    @property
    def dimension(self) -> int:
        return self._dimension

    def _get_model(self):
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise ProviderError(
                    "sentence-transformers not installed. "
                    "Install with: pip install semantic-recall[local]"
                ) from e

            try:
                self._model = SentenceTransformer(self.model_name)
            except OSError as e:
                raise ProviderError(f"Could not load embedding model {self.model_name}: {e}") from e

            self._dimension = self._model.get_sentence_embedding_dimension()
            logger.info(f"Loaded local embedding model: {self.model_name}")
        return self._model

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        model = self._get_model()
        # encode() is CPU-bound; keep it off the event loop
        embedding = await asyncio.to_thread(model.encode, text, convert_to_numpy=True)
        return embedding.tolist()

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts."""
        if not texts:
            return []

        model = self._get_model()
        embeddings = await asyncio.to_thread(model.encode, texts, convert_to_numpy=True)
        return embeddings.tolist()


def create_embedding_service(
    provider: Literal["openai", "local"] = "openai",
    api_key: str = "",
    model: str = "",
    dimensions: int | None = None,
) -> EmbeddingService:
    """
    Factory function to create the appropriate embedding service.

    Args:
        provider: "openai" or "local"
        api_key: OpenAI API key (required for openai provider)
        model: Model name (optional, uses defaults)
        dimensions: Override output dimensions for OpenAI embeddings.

    Returns:
        Configured EmbeddingService instance
    """
    if provider == "openai":
        if not api_key:
            raise ValueError("OpenAI API key required for openai embedding provider")
        return OpenAIEmbeddingService(
            api_key=api_key,
            model=model or "text-embedding-3-small",
            dimensions=dimensions,
        )
    elif provider == "local":
        return LocalEmbeddingService(
            model_name=model or "all-MiniLM-L6-v2",
        )
    else:
        raise ValueError(f"Unknown embedding provider: {provider}")
