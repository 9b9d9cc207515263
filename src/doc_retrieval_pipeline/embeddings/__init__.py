"""
Embeddings module - text embedding generation.

1. Protocol (EmbeddingProvider) defines the interface
2. Production implementation (OpenAIEmbeddings)
3. Test double (MockEmbeddings) for fast testing
4. Factory function (get_embedding_provider)
"""

from doc_retrieval_pipeline.core.protocols import EmbeddingProvider
from doc_retrieval_pipeline.embeddings.openai_embeddings import (
    DEFAULT_MODEL,
    MODEL_DIMENSIONS,
    MockEmbeddings,
    OpenAIEmbeddings,
    get_embedding_provider,
)

__all__ = [
    "EmbeddingProvider",
    "OpenAIEmbeddings",
    "MockEmbeddings",
    "get_embedding_provider",
    "MODEL_DIMENSIONS",
    "DEFAULT_MODEL",
]
