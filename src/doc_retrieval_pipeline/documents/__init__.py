"""
Documents module - the document model and document store adapters.

This module provides:
- Document: The document model
- StoreConfig: Configuration for stores
- PgDocumentStore: PostgreSQL + pgvector production store
- InMemoryDocumentStore: Testing/development store
- get_document_store(): Factory function
"""

from doc_retrieval_pipeline.documents.document import Document
from doc_retrieval_pipeline.documents.store import (
    IndexInfo,
    InMemoryDocumentStore,
    PgDocumentStore,
    StoreConfig,
    get_document_store,
)

__all__ = [
    # Document
    "Document",
    # Config
    "StoreConfig",
    "IndexInfo",
    # Implementations
    "PgDocumentStore",
    "InMemoryDocumentStore",
    # Factory
    "get_document_store",
]
