"""Wire contracts shared by the search pipeline and its collaborators."""

from graphsearch.contracts.graph_search_v1 import (
    CompatibilityClass,
    EntityType,
    SearchRequestV1,
    SearchResponseV1,
)

__all__ = [
    "CompatibilityClass",
    "EntityType",
    "SearchRequestV1",
    "SearchResponseV1",
]
