"""Caller-facing request and response models for the search pipeline.

Requests are immutable and built fresh per call. Response models serialize
with camelCase aliases (``model_dump(by_alias=True)``) to match the tool
surface.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from graphsearch.orchestrators.search.constants import (
    DEFAULT_PAGE_SIZE,
    EnrichmentStatus,
    ExecutionTier,
)

# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class DateRange(_Frozen):
    """Bounds may be ISO dates/datetimes or relative tokens like '7 days ago'."""

    start: str | None = None
    end: str | None = None


class FieldPredicates(_Frozen):
    sender: str | None = None
    recipient: str | None = None
    subject: str | None = None
    has_attachments: bool | None = None
    is_read: bool | None = None
    importance: str | None = None

    @field_validator("importance")
    @classmethod
    def _validate_importance(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in ("low", "normal", "high"):
            raise ValueError("importance must be one of: low, normal, high")
        return normalized

    def is_empty(self) -> bool:
        return all(v is None or v == "" for v in self.model_dump().values())


class FilterSet(_Frozen):
    file_types: tuple[str, ...] = ()
    date_range: DateRange | None = None
    custom_clause: str | None = Field(
        default=None, description="Backend-native KQL appended verbatim"
    )
    predicates: FieldPredicates = Field(default_factory=FieldPredicates)

    def is_empty(self) -> bool:
        has_dates = self.date_range is not None and bool(
            (self.date_range.start or "").strip() or (self.date_range.end or "").strip()
        )
        return (
            not any(t.strip() for t in self.file_types)
            and not has_dates
            and not (self.custom_clause or "").strip()
            and self.predicates.is_empty()
        )


class Pagination(_Frozen):
    offset: int = 0
    size: int = DEFAULT_PAGE_SIZE


class SortSpec(_Frozen):
    field: str | None = None
    descending: bool = True


class SearchRequest(_Frozen):
    """One caller search. Entity types and facets are raw names; unknown ones are dropped downstream."""

    query: str = ""
    entity_types: tuple[str, ...] = ()
    filters: FilterSet = Field(default_factory=FilterSet)
    facets: tuple[str, ...] = ()
    pagination: Pagination = Field(default_factory=Pagination)
    sort: SortSpec | None = None
    rank_by_relevance: bool = False
    enrich_content: bool = True
    include_workbook_data: bool = True
    people_search: bool = False
    site_id: str | None = None
    people_filter: str | None = Field(
        default=None, description="OData $filter applied to directory people search"
    )


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------


class _Out(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class QuickAction(_Out):
    action: str
    url: str


class FilePreview(_Out):
    mime_type: str | None = None
    size: str = "Unknown size"
    last_modified: str | None = None
    quick_actions: list[QuickAction] = Field(default_factory=list)


class MessageContext(_Out):
    preview: str = ""
    has_attachments: bool | None = None
    importance: str | None = None
    is_read: bool | None = None


class WorkbookTable(_Out):
    name: str | None = None
    id: str | None = None
    has_headers: bool | None = None
    row_count: int = 0
    column_count: int = 0


class WorkbookData(_Out):
    type: str = "excel"
    table_count: int = 0
    tables: list[WorkbookTable] = Field(default_factory=list)


class Enrichment(_Out):
    status: EnrichmentStatus = EnrichmentStatus.ENRICHED
    preview: FilePreview | None = None
    message_context: MessageContext | None = None
    workbook: WorkbookData | None = None
    error: str | None = Field(default=None, description="Why enrichment is unavailable")


class NormalizedResult(_Out):
    entity_type: str
    rank: int | None = None
    summary: str = ""
    resource: dict[str, Any] = Field(default_factory=dict)
    enrichment: Enrichment | None = None


class FacetBucket(_Out):
    key: str
    count: int


class AggregatedFacetResult(_Out):
    dimension: str
    buckets: list[FacetBucket] = Field(default_factory=list)
    truncated: bool = False


class QueryAlteration(_Out):
    original: str | None = None
    altered: str | None = None
    alteration_type: str | None = None


class SearchResponse(_Out):
    """Final response of one search."""

    results: list[NormalizedResult] = Field(default_factory=list)
    facets: list[AggregatedFacetResult] = Field(default_factory=list)
    total_count: int = 0
    advisory: str | None = None
    alteration: QueryAlteration | None = None
    meta: dict[str, Any] = Field(
        default_factory=lambda: {
            "query_string": "",
            "entity_types": [],
            "tier": None,
            "tiers_attempted": [],
            "timing_ms": {},
        },
        description="Pipeline metadata: synthesized query, resolved types, tier used, timing",
    )

    @property
    def tier(self) -> ExecutionTier | None:
        raw = self.meta.get("tier")
        return ExecutionTier(raw) if raw else None
