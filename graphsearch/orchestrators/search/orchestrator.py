"""Graph search orchestrator: plans one query and runs it through the tier chain.

Pipeline (strictly sequential, one caller request at a time):
  1. Validate caller input (before any backend call)
  2. Fetch an access token once
  3. Resolve entity types to one compatibility class
  4. Synthesize the KQL query string
  5. Clamp pagination and plan facets
  6. Execute rich -> text -> filter, degrading on capability rejection
  7. Normalize hits, extract facets/total, enrich hits concurrently

Requests with a site id (and no explicit entity types) or with people search
enabled take a direct route instead of steps 3-6.
"""

import asyncio
import time
from collections.abc import Callable
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from graphsearch.contracts.graph_search_v1 import CompatibilityClass, SearchResponseV1
from graphsearch.core.config import config
from graphsearch.core.logger import logger
from graphsearch.observability import traceable
from graphsearch.orchestrators.search.aggregations import AggregationPlanner
from graphsearch.orchestrators.search.cancellation import run_cancellable
from graphsearch.orchestrators.search.capabilities import EntityCapabilityRegistry
from graphsearch.orchestrators.search.constants import (
    DATE_FIELD_BY_CLASS,
    SearchMode,
    TierPolicy,
)
from graphsearch.orchestrators.search.engine import TieredExecutionEngine
from graphsearch.orchestrators.search.errors import CallerInputError
from graphsearch.orchestrators.search.interface import ApiClient, AuthSessionProvider
from graphsearch.orchestrators.search.models import SearchRequest, SearchResponse
from graphsearch.orchestrators.search.normalizer import (
    ResultNormalizer,
    extract_alteration,
    extract_facets,
    flatten_hits,
    total_count,
)
from graphsearch.orchestrators.search.pagination import clamp_pagination
from graphsearch.orchestrators.search.query_builder import synthesize_query
from graphsearch.orchestrators.search.tiers import (
    LISTING_ENDPOINTS,
    SITE_LISTS_ENDPOINT,
    SearchPlan,
    TierRequest,
    adapt_listing_response,
    build_people_request,
    build_site_lists_request,
)


def _local_now() -> datetime:
    try:
        tz = ZoneInfo(config.user_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        tz = ZoneInfo("UTC")
    return datetime.now(tz)


def _search_mode(request: SearchRequest) -> SearchMode:
    if request.site_id and request.site_id.strip() and not request.entity_types:
        return SearchMode.SITE
    if request.people_search:
        return SearchMode.PEOPLE
    return SearchMode.UNIFIED


def validate_request(request: SearchRequest) -> SearchMode:
    """Reject unusable requests before any backend call."""
    mode = _search_mode(request)
    has_text = bool(request.query.strip())
    if mode in (SearchMode.PEOPLE, SearchMode.SITE) and not has_text:
        raise CallerInputError(f"A query is required for {mode} search")
    if not has_text and request.filters.is_empty():
        raise CallerInputError(
            "A query is required unless filters (fileTypes, dateRange, filters, "
            "sender, recipient, subject, hasAttachments, isRead, importance) are supplied"
        )
    return mode


class GraphSearchOrchestrator:
    """Resolver -> synthesizer -> planner -> engine -> normalizer."""

    def __init__(
        self,
        auth: AuthSessionProvider,
        client: ApiClient,
        registry: EntityCapabilityRegistry | None = None,
        policy: TierPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
        normalizer: ResultNormalizer | None = None,
    ):
        self._auth = auth
        self._client = client
        self._registry = registry or EntityCapabilityRegistry()
        self._planner = AggregationPlanner(self._registry)
        self._engine = TieredExecutionEngine(client, self._registry, policy=policy)
        self._clock = clock or _local_now
        self._normalizer = normalizer or ResultNormalizer(
            client,
            timeout_seconds=config.enrichment_timeout_seconds,
            concurrency=config.enrichment_concurrency,
        )

    @property
    def registry(self) -> EntityCapabilityRegistry:
        return self._registry

    @property
    def engine(self) -> TieredExecutionEngine:
        return self._engine

    @traceable(name="graph_search", run_type="chain")
    async def search(
        self,
        request: SearchRequest,
        cancel: asyncio.Event | None = None,
    ) -> SearchResponse:
        t0 = time.monotonic()
        mode = validate_request(request)
        access_token = await self._auth.get_valid_access_token()

        if mode != SearchMode.UNIFIED:
            return await self._search_direct(mode, request, access_token, cancel, t0)

        resolution = self._registry.resolve(request.entity_types)
        query = synthesize_query(
            request.query,
            request.filters,
            now=self._clock(),
            date_field=DATE_FIELD_BY_CLASS[resolution.compatibility_class],
        )
        aggregations = self._planner.plan(resolution.entity_types, request.facets)
        plan = SearchPlan(
            resolution=resolution,
            query=query,
            pagination=clamp_pagination(request.pagination),
            aggregations=tuple(aggregations),
            sort=request.sort,
            rank_by_relevance=request.rank_by_relevance,
            predicates=request.filters.predicates,
        )
        entity_types = [str(t) for t in resolution.entity_types]
        logger.search_start(query.query_string, entity_types, resolution.advisory)
        t_plan = time.monotonic()

        outcome = await self._engine.execute(plan, access_token, cancel)
        t_exec = time.monotonic()

        response = self._normalize(outcome.response, aggregations)
        response.advisory = resolution.advisory
        enrichment_cancelled = await self._enrich(response, request, access_token, cancel)
        t_done = time.monotonic()

        response.meta = {
            "mode": str(mode),
            "query_string": query.query_string,
            "entity_types": entity_types,
            "tier": str(outcome.tier),
            "tiers_attempted": [
                {
                    "tier": str(a.tier),
                    "path": a.path,
                    "duration_ms": a.duration_ms,
                    "error": a.error,
                    "recoverable": a.recoverable,
                }
                for a in outcome.attempts
            ],
            "timing_ms": {
                "planning": round((t_plan - t0) * 1000, 1),
                "execution": round((t_exec - t_plan) * 1000, 1),
                "enrichment": round((t_done - t_exec) * 1000, 1),
                "total": round((t_done - t0) * 1000, 1),
            },
            "enrichment_cancelled": enrichment_cancelled,
        }
        logger.search_done(str(outcome.tier), len(response.results), response.total_count, t_done - t0)
        return response

    def _normalize(self, raw: SearchResponseV1, aggregations=()) -> SearchResponse:
        results = flatten_hits(raw)
        return SearchResponse(
            results=results,
            facets=extract_facets(raw, aggregations),
            total_count=total_count(raw, len(results)),
            alteration=extract_alteration(raw),
        )

    async def _enrich(
        self,
        response: SearchResponse,
        request: SearchRequest,
        access_token: str,
        cancel: asyncio.Event | None,
    ) -> bool:
        if not request.enrich_content or not response.results:
            return False
        started = time.monotonic()
        summary = await self._normalizer.enrich(
            response.results,
            access_token,
            include_workbook=request.include_workbook_data,
            cancel=cancel,
        )
        logger.enrichment(summary.attempted, summary.unavailable, time.monotonic() - started)
        if summary.cancelled:
            logger.warning("Search cancelled during enrichment; returning partial enrichment")
        return summary.cancelled

    async def _search_direct(
        self,
        mode: SearchMode,
        request: SearchRequest,
        access_token: str,
        cancel: asyncio.Event | None,
        t0: float,
    ) -> SearchResponse:
        """People or site-list search: one listing call, no tier fallback."""
        size = clamp_pagination(request.pagination).size
        text = request.query.strip()
        if mode == SearchMode.PEOPLE:
            call: TierRequest = build_people_request(text, size, request.people_filter)
            endpoint = LISTING_ENDPOINTS[CompatibilityClass.PERSON]
        else:
            call = build_site_lists_request(request.site_id or "", text, size)
            endpoint = SITE_LISTS_ENDPOINT

        logger.search_start(text, [str(endpoint.entity_type)])
        started = logger.tier_attempt(str(mode), call.method, call.path)
        try:
            raw = await run_cancellable(
                self._client.invoke(
                    call.method,
                    call.path,
                    body=call.body,
                    query=call.query,
                    headers={**call.headers, "Authorization": f"Bearer {access_token}"},
                ),
                cancel,
            )
            parsed = adapt_listing_response(raw, endpoint, offset=0)
        except Exception as e:
            logger.tier_result(str(mode), started, False, error_reason=str(e))
            raise
        logger.tier_result(str(mode), started, True)

        response = self._normalize(parsed)
        elapsed = time.monotonic() - t0
        response.meta = {
            "mode": str(mode),
            "query_string": text,
            "entity_types": [str(endpoint.entity_type)],
            "tier": None,
            "tiers_attempted": [],
            "timing_ms": {"total": round(elapsed * 1000, 1)},
        }
        logger.search_done(str(mode), len(response.results), response.total_count, elapsed)
        return response
