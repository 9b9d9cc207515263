"""
Embeddings Module - Single Responsibility: Generate text embeddings.

It has ONE job: convert text to vector embeddings. No database logic,
no document handling. Both ingestion paths and the retrieval engine
receive a provider by injection.

Every failure leaves this module as a ProviderError so callers can
contain it per document (ingestion) or report it (retrieval).
"""

from __future__ import annotations

import hashlib
import os

import numpy as np
from openai import OpenAI, OpenAIError

from doc_retrieval_pipeline.core.errors import ProviderError
from doc_retrieval_pipeline.core.protocols import EmbeddingProvider

# Native output sizes. text-embedding-3-* accept a smaller `dimensions`.
MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}

DEFAULT_MODEL = "text-embedding-3-large"


class OpenAIEmbeddings:
    """
    OpenAI-based embedding provider.

    Uses text-embedding-3-large by default (3072 dimensions). The dimension
    is always sent explicitly so the output length never drifts with the
    API's defaults.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        dimensions: int | None = None,
        api_key: str | None = None,
        timeout: float = 30.0,
        max_retries: int = 2,
    ):
        self.model = model
        self._dimensions = dimensions or MODEL_DIMENSIONS.get(model, 1536)
        self._client = OpenAI(
            api_key=api_key or os.environ.get("OPENAI_API_KEY"),
            timeout=timeout,
            max_retries=max_retries,
        )

    @property
    def model_name(self) -> str:
        return self.model

    @property
    def dimensions(self) -> int:
        """Return embedding dimensions for the model."""
        return self._dimensions

    def _request_kwargs(self) -> dict:
        kwargs = {"model": self.model}
        # ada-002 rejects the dimensions parameter
        if self.model != "text-embedding-ada-002":
            kwargs["dimensions"] = self._dimensions
        return kwargs

    def _to_vector(self, values: list[float]) -> np.ndarray:
        vector = np.array(values, dtype=np.float32)
        if vector.shape[0] != self._dimensions:
            raise ProviderError(
                f"{self.model} returned {vector.shape[0]} dimensions, expected {self._dimensions}",
                details={"model": self.model},
            )
        return vector

    def embed(self, text: str) -> np.ndarray:
        """Generate embedding for a single text."""
        if not text or not text.strip():
            raise ProviderError("Cannot embed empty text", details={"model": self.model})

        try:
            response = self._client.embeddings.create(input=text, **self._request_kwargs())
        except OpenAIError as e:
            raise ProviderError(f"Embedding request failed: {e}", details={"model": self.model}) from e

        return self._to_vector(response.data[0].embedding)

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate embeddings for multiple texts efficiently."""
        if not texts:
            return []
        if any(not t or not t.strip() for t in texts):
            raise ProviderError("Cannot embed empty text", details={"model": self.model})

        try:
            response = self._client.embeddings.create(input=texts, **self._request_kwargs())
        except OpenAIError as e:
            raise ProviderError(f"Embedding request failed: {e}", details={"model": self.model}) from e

        # The API may return items out of order; index restores input order
        ordered = sorted(response.data, key=lambda item: item.index)
        return [self._to_vector(item.embedding) for item in ordered]


class MockEmbeddings:
    """
    Mock embedding provider for testing without API calls.

    Generates deterministic unit vectors seeded from text hashes.
    NOT for production use - only for testing/development.
    """

    def __init__(self, dimensions: int = 3072, model_name: str = DEFAULT_MODEL):
        self._dimensions = dimensions
        self._model_name = model_name

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed(self, text: str) -> np.ndarray:
        """Generate deterministic pseudo-embedding from text hash."""
        seed = int.from_bytes(hashlib.sha256(text.encode()).digest()[:8], "big")
        vector = np.random.default_rng(seed).standard_normal(self._dimensions)
        return (vector / np.linalg.norm(vector)).astype(np.float32)

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate embeddings for multiple texts."""
        return [self.embed(text) for text in texts]


def get_embedding_provider(
    use_mock: bool = False,
    model: str = DEFAULT_MODEL,
    dimensions: int | None = None,
    timeout: float = 30.0,
) -> EmbeddingProvider:
    """
    Factory function to get the appropriate embedding provider.

    Args:
        use_mock: If True, return MockEmbeddings (for testing)
        model: Model name, also used as the model tag on stored vectors
        dimensions: Output length (defaults to the model's native size)
        timeout: Per-request timeout in seconds
    """
    dims = dimensions or MODEL_DIMENSIONS.get(model, 1536)
    if use_mock:
        return MockEmbeddings(dimensions=dims, model_name=model)
    return OpenAIEmbeddings(model=model, dimensions=dims, timeout=timeout)
