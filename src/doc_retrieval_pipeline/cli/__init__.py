"""
CLI module - unified command-line interface.

Provides entry points for:
- One-shot reconciliation and the change feed
- Ad-hoc retrieval and question answering
- Store inspection and schema setup
"""

from doc_retrieval_pipeline.cli.commands import (
    main,
    run_reconcile_cli,
    run_watch_cli,
    run_serve_cli,
    run_search_cli,
    run_ask_cli,
    run_list_cli,
    run_check_index_cli,
    run_init_schema_cli,
)

__all__ = [
    "main",
    "run_reconcile_cli",
    "run_watch_cli",
    "run_serve_cli",
    "run_search_cli",
    "run_ask_cli",
    "run_list_cli",
    "run_check_index_cli",
    "run_init_schema_cli",
]
