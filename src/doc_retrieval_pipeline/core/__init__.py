"""
Core module - shared protocols, types, and errors for the entire system.

USAGE:
------
from doc_retrieval_pipeline.core import DocumentStore, EmbeddingProvider

class MyDocumentStore:
    '''Implements DocumentStore protocol.'''
    ...
"""

from doc_retrieval_pipeline.core.errors import (
    ConfigurationError,
    PipelineError,
    ProviderError,
    StoreError,
    StreamTerminated,
)
from doc_retrieval_pipeline.core.protocols import (
    INSERT,
    ChangeEvent,
    DocumentStore,
    EmbeddingProvider,
    ScoredDocument,
)

__all__ = [
    # Protocols
    "EmbeddingProvider",
    "DocumentStore",
    # Data classes
    "ChangeEvent",
    "ScoredDocument",
    "INSERT",
    # Errors
    "PipelineError",
    "ConfigurationError",
    "ProviderError",
    "StoreError",
    "StreamTerminated",
]
