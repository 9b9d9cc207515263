"""
Service module - configuration and process lifecycle.
"""

from doc_retrieval_pipeline.service.config import (
    PipelineConfig,
    parse_superseded_models,
)
from doc_retrieval_pipeline.service.runtime import (
    BackoffConfig,
    Pipeline,
    build_pipeline,
    calculate_delay,
    supervise_change_feed,
)

__all__ = [
    "PipelineConfig",
    "parse_superseded_models",
    "Pipeline",
    "build_pipeline",
    "BackoffConfig",
    "calculate_delay",
    "supervise_change_feed",
]
