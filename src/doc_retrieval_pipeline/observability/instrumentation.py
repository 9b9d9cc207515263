"""
OpenInference Auto-Instrumentation

Registers the OpenAI auto-instrumentor so every embedding and chat call
is traced without code changes.
"""

from __future__ import annotations

import logging

from openinference.instrumentation.openai import OpenAIInstrumentor

logger = logging.getLogger(__name__)

_instrumented = False


def register_instrumentors() -> bool:
    """
    Register OpenInference auto-instrumentors.

    This should be called once at startup, before any OpenAI calls.

    Returns:
        True if the instrumentor is active, False otherwise
    """
    global _instrumented
    if _instrumented:
        return True

    try:
        OpenAIInstrumentor().instrument()
    except Exception as e:
        logger.warning(f"Failed to instrument OpenAI: {e}")
        return False

    logger.info("Registered instrumentors: openai")
    _instrumented = True
    return True


def uninstrument() -> None:
    """Remove the instrumentor (useful for testing)."""
    global _instrumented
    if _instrumented:
        OpenAIInstrumentor().uninstrument()
    _instrumented = False
