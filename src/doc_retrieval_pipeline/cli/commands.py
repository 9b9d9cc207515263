"""
CLI commands - entry points for the ingestion and retrieval pipeline.

Each command follows a consistent pattern:
1. Parse arguments
2. Load environment and build the pipeline
3. Run the operation
4. Print results
5. Return exit code

Commands are thin wrappers: the work lives in ingestion/, retrieval/ and
service/, which keeps this module easy to test with a prebuilt pipeline.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import threading

from dotenv import load_dotenv

from doc_retrieval_pipeline.core.errors import ConfigurationError, PipelineError, StreamTerminated
from doc_retrieval_pipeline.observability import init_phoenix, shutdown_phoenix
from doc_retrieval_pipeline.service.config import PipelineConfig
from doc_retrieval_pipeline.service.runtime import Pipeline, build_pipeline, supervise_change_feed

logger = logging.getLogger(__name__)


def _load_env() -> None:
    """Load environment variables from .env file."""
    load_dotenv()


def _configure_logging(level: str | None = None) -> None:
    level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_pipeline() -> Pipeline:
    """Build the pipeline from the environment. Commands always run against Postgres."""
    config = PipelineConfig.from_env()
    if not config.use_postgres:
        raise ConfigurationError(
            "USE_POSTGRES is not set: the in-memory store is process-local and empty, "
            "set USE_POSTGRES=true and DATABASE_URL to run commands"
        )
    init_phoenix()
    return build_pipeline(config)


def _print_header(title: str) -> None:
    print("=" * 60)
    print(title)
    print("=" * 60)


def _reconcile(pipeline: Pipeline) -> int:
    outcome = pipeline.reconcile()

    print(f"  Created:  {outcome.created}")
    print(f"  Migrated: {outcome.migrated}")
    print(f"  Skipped:  {outcome.skipped}")
    print(f"  Failed:   {outcome.failed}")
    for failure in outcome.failures[:10]:
        print(f"        {failure.document_id}: {failure.error_type}: {failure.error}")

    if outcome.all_succeeded:
        print("\n>>> RECONCILE: OK <<<")
        return 0
    print("\n>>> RECONCILE: FAILURES <<<")
    return 1


def _watch(pipeline: Pipeline) -> int:
    stop = threading.Event()
    try:
        restarts = supervise_change_feed(pipeline.change_feed, stop)
        print(f"Change feed stopped after {restarts} restarts")
        return 0
    except KeyboardInterrupt:
        stop.set()
        print("\nStopping change feed...")
        return 0
    except StreamTerminated as e:
        print(f"Change feed terminated: {e}")
        return 1


def run_reconcile_cli() -> int:
    """CLI entry point for a one-shot ingestion sweep."""
    parser = argparse.ArgumentParser(description="Embed pending and stale documents once")
    parser.parse_args()

    _print_header("INGESTION SWEEP")
    pipeline = _build_pipeline()
    try:
        return _reconcile(pipeline)
    finally:
        pipeline.close()


def run_watch_cli() -> int:
    """CLI entry point for the change feed (runs until Ctrl-C)."""
    parser = argparse.ArgumentParser(description="Embed new documents as they are inserted")
    parser.parse_args()

    _print_header("CHANGE FEED")
    pipeline = _build_pipeline()
    try:
        return _watch(pipeline)
    finally:
        pipeline.close()


def run_serve_cli() -> int:
    """CLI entry point for process startup: sweep once, then watch."""
    parser = argparse.ArgumentParser(description="Reconcile, then keep embeddings in sync")
    parser.parse_args()

    _print_header("INGESTION SWEEP")
    pipeline = _build_pipeline()
    try:
        _reconcile(pipeline)
        _print_header("CHANGE FEED")
        return _watch(pipeline)
    finally:
        pipeline.close()


def run_search_cli() -> int:
    """CLI entry point for ad-hoc retrieval at one or more thresholds."""
    parser = argparse.ArgumentParser(description="Search documents by meaning")
    parser.add_argument("query", help="Free-text query")
    parser.add_argument("--limit", type=int, default=None, help="Maximum results")
    parser.add_argument(
        "--threshold",
        type=float,
        nargs="+",
        default=[None],
        help="Minimum score(s); several values compare thresholds",
    )
    args = parser.parse_args()

    _print_header("RETRIEVAL")
    pipeline = _build_pipeline()
    try:
        for threshold in args.threshold:
            results = pipeline.retrieve(args.query, limit=args.limit, threshold=threshold)
            shown = pipeline.engine.config.default_threshold if threshold is None else threshold
            print(f"\nThreshold {shown}: {len(results)} relevant documents")
            for i, result in enumerate(results, 1):
                doc = result.document
                print(f"{i}. Title: \"{doc.title}\"")
                print(f"   Score: {result.score:.4f}")
                print(f"   Source: {doc.source or 'No source URL'}")
        return 0
    finally:
        pipeline.close()


def run_ask_cli() -> int:
    """CLI entry point for question answering over retrieved context."""
    from doc_retrieval_pipeline.retrieval import AnswerGenerator, retrieve_context

    parser = argparse.ArgumentParser(description="Answer a question from the documents")
    parser.add_argument("question", help="Question to answer")
    parser.add_argument("--threshold", type=float, default=None, help="Minimum score")
    args = parser.parse_args()

    pipeline = _build_pipeline()
    try:
        context = retrieve_context(pipeline.engine, args.question, threshold=args.threshold)
        if context.failed:
            print(f"(retrieval unavailable: {context.error})")
        elif context.is_empty:
            print("(no relevant documents found)")

        generator = AnswerGenerator(
            model=pipeline.config.chat_model,
            timeout=pipeline.config.request_timeout,
        )
        answer = generator.generate(args.question, context)
        print(answer.text)
        return 0
    finally:
        pipeline.close()


def run_list_cli() -> int:
    """CLI entry point listing documents and their embedding state."""
    parser = argparse.ArgumentParser(description="List documents and embedding state")
    parser.parse_args()

    pipeline = _build_pipeline()
    try:
        documents = pipeline.store.find_all()
        print(f"Found {len(documents)} documents:")
        for i, doc in enumerate(documents, 1):
            print(f"{i}. Title: \"{doc.title}\"")
            print(f"   Source: {doc.source or 'No source URL'}")
            print(f"   Has embedding: {doc.embedding is not None}")
            if doc.embedding is not None:
                print(f"   Embedding dimensions: {doc.embedding_dim}")
                print(f"   Embedding model: {doc.embedding_model or 'untagged'}")
            print(f"   Action: {pipeline.policy.classify(doc).value}")
        return 0
    finally:
        pipeline.close()


def run_check_index_cli() -> int:
    """CLI entry point showing the vector index definition."""
    parser = argparse.ArgumentParser(description="Show the vector index")
    parser.parse_args()

    pipeline = _build_pipeline()
    try:
        info = pipeline.store.describe_index()
        if not info.exists:
            print(f"Vector index {info.name} not found")
            return 1
        print(f"Found {info.name}:")
        print(f"  {info.definition}")
        return 0
    finally:
        pipeline.close()


def run_init_schema_cli() -> int:
    """CLI entry point creating table, vector index, and insert trigger."""
    parser = argparse.ArgumentParser(description="Create the document schema")
    parser.parse_args()

    pipeline = _build_pipeline()
    try:
        pipeline.store.create_schema()
        print("Schema ready")
        return 0
    finally:
        pipeline.close()


def main() -> int:
    """
    Main CLI entry point with subcommands.

    Usage:
        doc-retrieval reconcile     # Embed pending/stale documents once
        doc-retrieval watch         # Embed new documents as they arrive
        doc-retrieval serve         # Both, as at process startup
        doc-retrieval search QUERY  # Ranked retrieval
        doc-retrieval ask QUESTION  # Answer from retrieved context
    """
    _load_env()

    parser = argparse.ArgumentParser(
        description="Document embedding and retrieval pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  reconcile    Embed pending and stale documents once
  watch        Embed new documents as they are inserted (Ctrl-C to stop)
  serve        reconcile, then watch
  search       Ranked retrieval for a query
  ask          Answer a question from retrieved documents
  list         List documents and their embedding state
  check-index  Show the vector index definition
  init-schema  Create table, vector index, and insert trigger

Examples:
  doc-retrieval search "hostel facilities" --threshold 0.65 0.5 0.3
  doc-retrieval serve --log-level DEBUG
        """,
    )

    parser.add_argument(
        "command",
        choices=["reconcile", "watch", "serve", "search", "ask", "list", "check-index", "init-schema"],
        help="Operation to run",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")

    # Parse just the command first
    args, remaining = parser.parse_known_args()
    _configure_logging(args.log_level)

    commands = {
        "reconcile": run_reconcile_cli,
        "watch": run_watch_cli,
        "serve": run_serve_cli,
        "search": run_search_cli,
        "ask": run_ask_cli,
        "list": run_list_cli,
        "check-index": run_check_index_cli,
        "init-schema": run_init_schema_cli,
    }

    # Re-inject remaining args for the subcommand
    sys.argv = [sys.argv[0]] + remaining

    try:
        return commands[args.command]()
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return 2
    except PipelineError as e:
        print(f"Error: {e}")
        return 1
    finally:
        shutdown_phoenix()


if __name__ == "__main__":
    sys.exit(main())
