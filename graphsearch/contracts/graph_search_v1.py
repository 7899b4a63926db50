"""Graph Search Contract v1.

Defines the canonical wire types for:
  - Per-entity-type capability declarations (EntityTypeCapabilities)
  - The search/query request element (SearchRequestV1 and its parts)
  - The search/query response envelope (SearchResponseV1, HitsContainer, ...)

Field names follow the remote service's camelCase JSON exactly; Python
attributes are snake_case with explicit aliases. Always serialize requests
with ``to_payload()`` so aliases and omitted optionals are honored.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Entity types and compatibility classes
# ---------------------------------------------------------------------------


class EntityType(StrEnum):
    """Backend-recognized entity type tags."""

    DRIVE_ITEM = "driveItem"
    LIST_ITEM = "listItem"
    LIST = "list"
    DRIVE = "drive"
    EXTERNAL_ITEM = "externalItem"
    MESSAGE = "message"
    CHAT_MESSAGE = "chatMessage"
    EVENT = "event"
    PERSON = "person"


class CompatibilityClass(StrEnum):
    """Only entity types of the same class may be queried together."""

    CONTENT = "content"
    MESSAGE = "message"
    EVENT = "event"
    PERSON = "person"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Capability declarations
# ---------------------------------------------------------------------------


class EntityTypeCapabilities(_WireModel):
    """What the backend supports for one entity type."""

    entity_type: EntityType
    compatibility_class: CompatibilityClass
    supports_aggregation: bool = Field(
        default=False, description="Backend accepts `aggregations` for this type"
    )
    supports_collapse: bool = Field(
        default=False, description="Backend accepts `collapseProperties` for this type"
    )
    supports_top_results: bool = Field(
        default=False,
        description="Backend-native relevance toggle (`enableTopResults`) is accepted",
    )
    display_label: str | None = Field(default=None)


# ---------------------------------------------------------------------------
# Request element
# ---------------------------------------------------------------------------


class BucketRange(_WireModel):
    from_: str = Field(alias="from")
    to: str


class BucketDefinition(_WireModel):
    sort_by: str = Field(alias="sortBy", description="count | keyAsString | keyAsNumber")
    is_descending: bool = Field(default=True, alias="isDescending")
    minimum_count: int = Field(default=1, alias="minimumCount", ge=0)
    ranges: list[BucketRange] | None = Field(default=None)


class AggregationRequest(_WireModel):
    field: str
    size: int = Field(ge=1, le=100)
    bucket_definition: BucketDefinition = Field(alias="bucketDefinition")


class SortProperty(_WireModel):
    name: str
    is_descending: bool = Field(default=True, alias="isDescending")


class CollapseProperty(_WireModel):
    fields: list[str]
    limit: int = Field(default=1, ge=1)


class SearchQuery(_WireModel):
    query_string: str = Field(alias="queryString", min_length=1)


class QueryAlterationOptions(_WireModel):
    enable_suggestion: bool = Field(default=True, alias="enableSuggestion")
    enable_modification: bool = Field(default=True, alias="enableModification")


class SearchRequestV1(_WireModel):
    """One element of the `requests` array posted to search/query."""

    entity_types: list[EntityType] = Field(alias="entityTypes", min_length=1)
    query: SearchQuery
    from_: int | None = Field(default=None, alias="from", ge=0)
    size: int | None = Field(default=None, ge=1, le=500)
    fields: list[str] | None = Field(default=None)
    aggregations: list[AggregationRequest] | None = Field(default=None)
    sort_properties: list[SortProperty] | None = Field(default=None, alias="sortProperties")
    collapse_properties: list[CollapseProperty] | None = Field(
        default=None, alias="collapseProperties"
    )
    query_alteration_options: QueryAlterationOptions | None = Field(
        default=None, alias="queryAlterationOptions"
    )
    enable_top_results: bool | None = Field(default=None, alias="enableTopResults")

    def to_payload(self) -> dict[str, Any]:
        """Serialize as the full POST body (`{"requests": [...]}`)."""
        return {"requests": [self.model_dump(mode="json", by_alias=True, exclude_none=True)]}


# ---------------------------------------------------------------------------
# Response envelope
# ---------------------------------------------------------------------------


class SearchHit(_WireModel):
    hit_id: str | None = Field(default=None, alias="hitId")
    rank: int | None = None
    summary: str | None = None
    resource: dict[str, Any] = Field(default_factory=dict)


class HitsContainer(_WireModel):
    entity_type: str | None = Field(default=None, alias="entityType")
    hits: list[SearchHit] = Field(default_factory=list)
    total: int | None = None
    more_results_available: bool = Field(default=False, alias="moreResultsAvailable")


class AggregationBucketV1(_WireModel):
    key: str
    count: int = 0
    aggregation_filter_token: str | None = Field(default=None, alias="aggregationFilterToken")


class SearchAggregationV1(_WireModel):
    field: str
    buckets: list[AggregationBucketV1] = Field(default_factory=list)


class QueryAlterationResponseV1(_WireModel):
    original_query_string: str | None = Field(default=None, alias="originalQueryString")
    query_alteration: dict[str, Any] | None = Field(default=None, alias="queryAlteration")
    query_alteration_type: str | None = Field(default=None, alias="queryAlterationType")


class SearchResponseValue(_WireModel):
    hits_containers: list[HitsContainer] = Field(default_factory=list, alias="hitsContainers")
    aggregations: list[SearchAggregationV1] = Field(default_factory=list)
    query_alteration_response: QueryAlterationResponseV1 | None = Field(
        default=None, alias="queryAlterationResponse"
    )
    search_terms: list[str] = Field(default_factory=list, alias="searchTerms")


class SearchResponseV1(_WireModel):
    """Response from search/query. Listing tiers are adapted into this shape too."""

    value: list[SearchResponseValue]
