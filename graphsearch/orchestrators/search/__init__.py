"""Graph Search: entity-type resolution, KQL synthesis and tiered execution."""

from graphsearch.orchestrators.search.interface import ApiClient, AuthSessionProvider
from graphsearch.orchestrators.search.models import SearchRequest, SearchResponse
from graphsearch.orchestrators.search.orchestrator import GraphSearchOrchestrator

__all__ = [
    "ApiClient",
    "AuthSessionProvider",
    "GraphSearchOrchestrator",
    "SearchRequest",
    "SearchResponse",
]
