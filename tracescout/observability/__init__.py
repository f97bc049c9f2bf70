"""Observability: structured logging for the trace pipeline."""

from tracescout.observability.logging import bind_context, clear_context, setup_logging

__all__ = ["bind_context", "clear_context", "setup_logging"]
