"""Request strategies for the tiered execution engine.

Each tier knows three things: whether it can run for a plan, how to build
its request, and which failures mean "this shape is unsupported, degrade"
as opposed to "fail". Listing tiers adapt their replies into the search
response envelope so the normalizer sees one shape.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from pydantic import ValidationError

from graphsearch.contracts.graph_search_v1 import (
    AggregationRequest,
    CollapseProperty,
    CompatibilityClass,
    EntityType,
    HitsContainer,
    QueryAlterationOptions,
    SearchHit,
    SearchQuery,
    SearchRequestV1,
    SearchResponseV1,
    SearchResponseValue,
    SortProperty,
)
from graphsearch.orchestrators.search.capabilities import (
    EntityCapabilityRegistry,
    EntityTypeResolution,
)
from graphsearch.orchestrators.search.constants import (
    CALENDAR_SELECT_FIELDS,
    COLLAPSE_FIELDS,
    DEFAULT_SORT_FIELD,
    DRIVE_SELECT_FIELDS,
    EMAIL_SELECT_FIELDS,
    PEOPLE_SELECT_FIELDS,
    RICH_TIER_FIELDS,
    SITE_LIST_SELECT_FIELDS,
    SORT_FIELD_MAP,
    ExecutionTier,
)
from graphsearch.orchestrators.search.errors import (
    ApiError,
    MalformedResponseError,
)
from graphsearch.orchestrators.search.models import FieldPredicates, Pagination, SortSpec
from graphsearch.orchestrators.search.query_builder import SynthesizedQuery


@dataclass(frozen=True)
class SearchPlan:
    """Everything a tier needs, produced by the planning stages."""

    resolution: EntityTypeResolution
    query: SynthesizedQuery
    pagination: Pagination
    aggregations: tuple[AggregationRequest, ...] = ()
    sort: SortSpec | None = None
    rank_by_relevance: bool = False
    predicates: FieldPredicates = field(default_factory=FieldPredicates)

    @property
    def compatibility_class(self) -> CompatibilityClass:
        return self.resolution.compatibility_class


@dataclass(frozen=True)
class TierRequest:
    """One backend call. ``tier`` is None for the people and site search routes."""

    tier: ExecutionTier | None
    method: str
    path: str
    body: dict[str, Any] | None = None
    query: dict[str, Any] | None = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ListingEndpoint:
    """Per-class default listing resource used by the text and filter tiers."""

    entity_type: EntityType
    path: str
    select: str
    text_field: str
    date_field: str | None = None
    order_by: str | None = None
    text_search_path: str | None = None
    headers: dict[str, str] = field(default_factory=dict)


LISTING_ENDPOINTS: dict[CompatibilityClass, ListingEndpoint] = {
    CompatibilityClass.CONTENT: ListingEndpoint(
        entity_type=EntityType.DRIVE_ITEM,
        path="me/drive/root/children",
        text_search_path="me/drive/root/search(q='{q}')",
        select=DRIVE_SELECT_FIELDS,
        text_field="name",
        date_field="lastModifiedDateTime",
    ),
    CompatibilityClass.MESSAGE: ListingEndpoint(
        entity_type=EntityType.MESSAGE,
        path="me/messages",
        select=EMAIL_SELECT_FIELDS,
        text_field="subject",
        date_field="receivedDateTime",
        order_by="receivedDateTime desc",
    ),
    CompatibilityClass.EVENT: ListingEndpoint(
        entity_type=EntityType.EVENT,
        path="me/events",
        select=CALENDAR_SELECT_FIELDS,
        text_field="subject",
        date_field="start/dateTime",
        order_by="start/dateTime desc",
    ),
    CompatibilityClass.PERSON: ListingEndpoint(
        entity_type=EntityType.PERSON,
        path="users",
        select=PEOPLE_SELECT_FIELDS,
        text_field="displayName",
        order_by="displayName",
        headers={"ConsistencyLevel": "eventual"},
    ),
}


SITE_LISTS_ENDPOINT = ListingEndpoint(
    entity_type=EntityType.LIST,
    path="sites/{site_id}/lists",
    select=SITE_LIST_SELECT_FIELDS,
    text_field="displayName",
)


def odata_quote(value: str) -> str:
    """Quote a literal for OData: wrap in single quotes, double embedded ones."""
    return "'" + str(value).replace("'", "''") + "'"


def search_phrase(value: str) -> str:
    """Wrap a value for `$search`, which expects one double-quoted phrase."""
    return '"' + str(value).replace('"', "") + '"'


def adapt_listing_response(
    raw: Any,
    endpoint: ListingEndpoint,
    offset: int,
) -> SearchResponseV1:
    """Wrap a `{"value": [...]}` listing reply as a one-container search response."""
    if not isinstance(raw, dict) or not isinstance(raw.get("value"), list):
        raise MalformedResponseError(
            f"Expected a JSON object with a 'value' list from {endpoint.path}"
        )
    hits: list[SearchHit] = []
    for i, item in enumerate(raw["value"]):
        if not isinstance(item, dict):
            continue
        hits.append(
            SearchHit(
                hit_id=item.get("id"),
                rank=offset + i + 1,
                summary=item.get("bodyPreview") or item.get("description") or "",
                resource=item,
            )
        )
    total = raw.get("@odata.count")
    container = HitsContainer(
        entity_type=str(endpoint.entity_type),
        hits=hits,
        total=total if isinstance(total, int) else offset + len(hits),
        more_results_available="@odata.nextLink" in raw,
    )
    return SearchResponseV1(value=[SearchResponseValue(hits_containers=[container])])


class SearchTier(ABC):
    """One request-construction strategy."""

    tier: ExecutionTier

    @abstractmethod
    def applies(self, plan: SearchPlan) -> bool:
        """Whether the tier's required inputs are present."""

    @abstractmethod
    def build(self, plan: SearchPlan) -> TierRequest:
        """Construct the request for this tier."""

    @abstractmethod
    def parse(self, raw: Any, plan: SearchPlan) -> SearchResponseV1:
        """Validate the reply; raise MalformedResponseError if it has the wrong shape."""

    def is_recoverable(self, error: Exception) -> bool:
        """True when the engine should degrade to the next tier."""
        if isinstance(error, MalformedResponseError):
            return True
        return isinstance(error, ApiError) and error.is_capability_rejection


class RichTier(SearchTier):
    """Full search/query request: projection, facets, collapse, sort, alterations."""

    tier = ExecutionTier.RICH

    def __init__(self, registry: EntityCapabilityRegistry) -> None:
        self._registry = registry

    def applies(self, plan: SearchPlan) -> bool:
        return not plan.query.is_match_all

    def build(self, plan: SearchPlan) -> TierRequest:
        types = list(plan.resolution.entity_types)
        sort_properties = None
        if plan.sort is not None:
            name = SORT_FIELD_MAP.get(plan.sort.field or "", plan.sort.field or DEFAULT_SORT_FIELD)
            sort_properties = [SortProperty(name=name, is_descending=plan.sort.descending)]
        request = SearchRequestV1(
            entity_types=types,
            query=SearchQuery(query_string=plan.query.query_string),
            from_=plan.pagination.offset,
            size=plan.pagination.size,
            fields=list(RICH_TIER_FIELDS),
            aggregations=list(plan.aggregations) or None,
            sort_properties=sort_properties,
            collapse_properties=(
                [CollapseProperty(fields=list(COLLAPSE_FIELDS), limit=1)]
                if self._registry.supports_collapse(types)
                else None
            ),
            query_alteration_options=QueryAlterationOptions(),
            enable_top_results=(
                True
                if plan.rank_by_relevance and self._registry.supports_top_results(types)
                else None
            ),
        )
        return TierRequest(
            tier=self.tier,
            method="POST",
            path="search/query",
            body=request.to_payload(),
        )

    def parse(self, raw: Any, plan: SearchPlan) -> SearchResponseV1:
        if not isinstance(raw, dict):
            raise MalformedResponseError("search/query returned a non-JSON body")
        try:
            return SearchResponseV1.model_validate(raw)
        except ValidationError as e:
            raise MalformedResponseError(f"search/query response failed validation: {e}") from e


class TextTier(SearchTier):
    """Keyword search against the class's default listing resource."""

    tier = ExecutionTier.TEXT

    def applies(self, plan: SearchPlan) -> bool:
        # Keyword endpoints page with opaque next links, so an offset cannot be honoured.
        if not plan.query.free_text or plan.pagination.offset:
            return False
        return self.expresses(plan)

    def expresses(self, plan: SearchPlan) -> bool:
        """Whether the keyword request carries every clause of the synthesized query."""
        if plan.compatibility_class == CompatibilityClass.MESSAGE:
            return True
        return not plan.query.filter_clauses

    def build(self, plan: SearchPlan) -> TierRequest:
        endpoint = LISTING_ENDPOINTS[plan.compatibility_class]
        text = plan.query.free_text
        params: dict[str, Any] = {"$top": plan.pagination.size, "$select": endpoint.select}
        path = endpoint.path
        if endpoint.text_search_path:
            path = endpoint.text_search_path.format(q=quote(text.replace("'", "''"), safe=""))
        elif plan.compatibility_class == CompatibilityClass.PERSON:
            params["$search"] = " OR ".join(
                search_phrase(f"{f}:{text}") for f in ("displayName", "mail")
            )
        elif plan.compatibility_class == CompatibilityClass.MESSAGE:
            # Mailbox $search understands KQL, so the full query travels.
            params["$search"] = search_phrase(plan.query.query_string)
        else:
            params["$search"] = search_phrase(text)
        return TierRequest(
            tier=self.tier,
            method="GET",
            path=path,
            query=params,
            headers=dict(endpoint.headers),
        )

    def parse(self, raw: Any, plan: SearchPlan) -> SearchResponseV1:
        return adapt_listing_response(
            raw, LISTING_ENDPOINTS[plan.compatibility_class], plan.pagination.offset
        )


class FilterTier(SearchTier):
    """Literal OData predicates only. Last resort: its failures are final."""

    tier = ExecutionTier.FILTER

    def applies(self, plan: SearchPlan) -> bool:
        return True

    def is_recoverable(self, error: Exception) -> bool:
        return False

    def build(self, plan: SearchPlan) -> TierRequest:
        endpoint = LISTING_ENDPOINTS[plan.compatibility_class]
        predicates = self.build_predicates(plan, endpoint)
        params: dict[str, Any] = {"$top": plan.pagination.size, "$select": endpoint.select}
        if plan.pagination.offset:
            params["$skip"] = plan.pagination.offset
        if predicates:
            params["$filter"] = " and ".join(predicates)
        if endpoint.order_by:
            params["$orderby"] = endpoint.order_by
        return TierRequest(
            tier=self.tier,
            method="GET",
            path=endpoint.path,
            query=params,
            headers=dict(endpoint.headers),
        )

    def build_predicates(self, plan: SearchPlan, endpoint: ListingEndpoint) -> list[str]:
        out: list[str] = []
        text = plan.query.free_text
        if text:
            if plan.compatibility_class == CompatibilityClass.PERSON:
                out.append(
                    f"(startswith(displayName,{odata_quote(text)}) or startswith(mail,{odata_quote(text)}))"
                )
            else:
                out.append(f"contains({endpoint.text_field},{odata_quote(text)})")

        if plan.compatibility_class == CompatibilityClass.CONTENT and plan.query.file_types:
            ors = " or ".join(
                f"endswith(name,{odata_quote('.' + t)})" for t in plan.query.file_types
            )
            out.append(f"({ors})")

        start, end = plan.query.date_bounds
        if endpoint.date_field:
            if start:
                out.append(f"{endpoint.date_field} ge {start.isoformat()}T00:00:00Z")
            if end:
                out.append(f"{endpoint.date_field} le {end.isoformat()}T23:59:59Z")

        if plan.compatibility_class == CompatibilityClass.MESSAGE:
            p = plan.predicates
            if p.sender:
                out.append(f"from/emailAddress/address eq {odata_quote(p.sender.strip())}")
            if p.recipient:
                out.append(
                    "toRecipients/any(r:r/emailAddress/address eq "
                    f"{odata_quote(p.recipient.strip())})"
                )
            if p.subject:
                out.append(f"contains(subject,{odata_quote(p.subject.strip())})")
            if p.has_attachments is not None:
                out.append(f"hasAttachments eq {str(p.has_attachments).lower()}")
            if p.is_read is not None:
                out.append(f"isRead eq {str(p.is_read).lower()}")
            if p.importance:
                out.append(f"importance eq {odata_quote(p.importance)}")
        elif plan.compatibility_class == CompatibilityClass.EVENT and plan.predicates.subject:
            out.append(f"contains(subject,{odata_quote(plan.predicates.subject.strip())})")
        return out

    def parse(self, raw: Any, plan: SearchPlan) -> SearchResponseV1:
        return adapt_listing_response(
            raw, LISTING_ENDPOINTS[plan.compatibility_class], plan.pagination.offset
        )


def default_tiers(registry: EntityCapabilityRegistry) -> dict[ExecutionTier, SearchTier]:
    return {
        ExecutionTier.RICH: RichTier(registry),
        ExecutionTier.TEXT: TextTier(),
        ExecutionTier.FILTER: FilterTier(),
    }


def build_people_request(text: str, size: int, people_filter: str | None = None) -> TierRequest:
    """Directory people search over name, mail, job title and department."""
    endpoint = LISTING_ENDPOINTS[CompatibilityClass.PERSON]
    params: dict[str, Any] = {
        "$search": " OR ".join(
            search_phrase(f"{f}:{text}")
            for f in ("displayName", "mail", "jobTitle", "department")
        ),
        "$select": endpoint.select,
        "$top": size,
        "$orderby": endpoint.order_by,
    }
    if people_filter and people_filter.strip():
        params["$filter"] = people_filter.strip()
    return TierRequest(
        tier=None,
        method="GET",
        path=endpoint.path,
        query=params,
        headers=dict(endpoint.headers),
    )


def build_site_lists_request(site_id: str, text: str, size: int) -> TierRequest:
    """Lists and libraries of one site whose name or description contains the text."""
    quoted = odata_quote(text)
    return TierRequest(
        tier=None,
        method="GET",
        path=SITE_LISTS_ENDPOINT.path.format(site_id=site_id.strip()),
        query={
            "$filter": f"contains(displayName,{quoted}) or contains(description,{quoted})",
            "$select": SITE_LISTS_ENDPOINT.select,
            "$top": size,
        },
    )
