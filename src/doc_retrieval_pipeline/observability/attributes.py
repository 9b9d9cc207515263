"""
Semantic Conventions for Span Attributes

Defines attribute keys following OpenTelemetry GenAI conventions
plus custom namespaces for ingestion and retrieval.

Reference: https://opentelemetry.io/docs/specs/semconv/gen-ai/
"""

# ---------------------------------------------------------------------------
# GENAI NAMESPACE (OTel standard)
# ---------------------------------------------------------------------------

GEN_AI_SYSTEM = "gen_ai.system"  # "openai"
GEN_AI_REQUEST_MODEL = "gen_ai.request.model"  # "text-embedding-3-large"


# ---------------------------------------------------------------------------
# INGESTION NAMESPACE (custom)
# ---------------------------------------------------------------------------

INGESTION_PATH = "ingestion.path"  # "sweep", "change_feed"
INGESTION_DOCUMENT_ID = "ingestion.document_id"
INGESTION_ACTION = "ingestion.action"  # "skip", "create", "migrate"
INGESTION_ERROR = "ingestion.error"

# Sweep totals
INGESTION_SWEEP_TOTAL = "ingestion.sweep.total"
INGESTION_SWEEP_CREATED = "ingestion.sweep.created"
INGESTION_SWEEP_MIGRATED = "ingestion.sweep.migrated"
INGESTION_SWEEP_SKIPPED = "ingestion.sweep.skipped"
INGESTION_SWEEP_FAILED = "ingestion.sweep.failed"


# ---------------------------------------------------------------------------
# RETRIEVAL NAMESPACE (custom)
# ---------------------------------------------------------------------------

RETRIEVAL_QUERY = "retrieval.query"  # only with PHOENIX_CAPTURE_CONTENT
RETRIEVAL_LIMIT = "retrieval.limit"
RETRIEVAL_THRESHOLD = "retrieval.threshold"
RETRIEVAL_CANDIDATE_POOL = "retrieval.candidate_pool"
RETRIEVAL_CANDIDATE_COUNT = "retrieval.candidate_count"
RETRIEVAL_RESULT_COUNT = "retrieval.result_count"
RETRIEVAL_TOP_SCORE = "retrieval.top_score"


# ---------------------------------------------------------------------------
# HELPER FUNCTIONS
# ---------------------------------------------------------------------------


def ingestion_document_attributes(
    path: str,
    document_id: str,
    action: str,
    model: str | None = None,
) -> dict:
    """Create attributes dict for one document's ingestion span."""
    attrs = {
        INGESTION_PATH: path,
        INGESTION_DOCUMENT_ID: document_id,
        INGESTION_ACTION: action,
    }
    if model:
        attrs[GEN_AI_REQUEST_MODEL] = model
    return attrs


def sweep_summary_attributes(
    total: int,
    created: int,
    migrated: int,
    skipped: int,
    failed: int,
) -> dict:
    """Create attributes dict for a finished sweep."""
    return {
        INGESTION_SWEEP_TOTAL: total,
        INGESTION_SWEEP_CREATED: created,
        INGESTION_SWEEP_MIGRATED: migrated,
        INGESTION_SWEEP_SKIPPED: skipped,
        INGESTION_SWEEP_FAILED: failed,
    }


def retrieval_attributes(
    limit: int,
    threshold: float,
    candidate_pool: int,
    query: str | None = None,
) -> dict:
    """Create attributes dict for a retrieval span."""
    attrs = {
        RETRIEVAL_LIMIT: limit,
        RETRIEVAL_THRESHOLD: threshold,
        RETRIEVAL_CANDIDATE_POOL: candidate_pool,
    }
    if query is not None:
        attrs[RETRIEVAL_QUERY] = query
    return attrs
