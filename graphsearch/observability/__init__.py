"""Observability: LangSmith tracing (optional, env-controlled)."""

from graphsearch.observability.langsmith import (
    flush,
    traceable,
)

__all__ = ["traceable", "flush"]
