"""Orchestrators: multi-step search pipelines."""

from graphsearch.orchestrators.search import (
    GraphSearchOrchestrator,
    SearchRequest,
    SearchResponse,
)

__all__ = [
    "GraphSearchOrchestrator",
    "SearchRequest",
    "SearchResponse",
]
