"""
Retrieval module - query-time semantic search and answer generation.

This module provides:
- RetrievalEngine: query → ranked, threshold-filtered documents
- RetrievalConfig: limit/threshold/over-fetch defaults
- retrieve_context() / format_context(): context for the chat model
- AnswerGenerator: chat completion over retrieved context
"""

from doc_retrieval_pipeline.retrieval.answer import Answer, AnswerGenerator
from doc_retrieval_pipeline.retrieval.context import (
    RetrievedContext,
    format_context,
    retrieve_context,
)
from doc_retrieval_pipeline.retrieval.engine import RetrievalConfig, RetrievalEngine

__all__ = [
    "RetrievalEngine",
    "RetrievalConfig",
    "RetrievedContext",
    "format_context",
    "retrieve_context",
    "Answer",
    "AnswerGenerator",
]
