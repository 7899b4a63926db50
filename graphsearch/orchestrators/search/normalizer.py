"""Result normalization and best-effort per-hit enrichment.

Hit containers are flattened in the order the backend returned them, and
hits keep their backend rank order inside each container. Nothing here
re-sorts. Enrichment runs one independent task per hit; a task that fails or
times out marks only its own hit as unavailable.
"""

import asyncio
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from graphsearch.contracts.graph_search_v1 import AggregationRequest, SearchResponseV1
from graphsearch.orchestrators.search.aggregations import FIELD_TO_DIMENSION
from graphsearch.orchestrators.search.cancellation import run_cancellable
from graphsearch.orchestrators.search.constants import (
    WORKBOOK_TABLES_TOP,
    EnrichmentStatus,
)
from graphsearch.orchestrators.search.errors import MalformedResponseError, SearchCancelledError
from graphsearch.orchestrators.search.interface import ApiClient
from graphsearch.orchestrators.search.models import (
    AggregatedFacetResult,
    Enrichment,
    FacetBucket,
    FilePreview,
    MessageContext,
    NormalizedResult,
    QueryAlteration,
    QuickAction,
    WorkbookData,
    WorkbookTable,
)

logger = logging.getLogger(__name__)

_WORKBOOK_NAME = re.compile(r"\.xlsx?$", re.IGNORECASE)
_OFFICE_DOCUMENT = re.compile(r"\.(docx?|xlsx?|pptx?)$", re.IGNORECASE)
_SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")
MESSAGE_PREVIEW_CHARS = 200


def format_file_size(size: Any) -> str:
    if not isinstance(size, int | float) or isinstance(size, bool) or size <= 0:
        return "Unknown size"
    value = float(size)
    i = 0
    while value >= 1024 and i < len(_SIZE_UNITS) - 1:
        value /= 1024
        i += 1
    value = round(value, 2)
    if value == int(value):
        value = int(value)
    return f"{value} {_SIZE_UNITS[i]}"


def flatten_hits(response: SearchResponseV1) -> list[NormalizedResult]:
    results: list[NormalizedResult] = []
    for value in response.value:
        for container in value.hits_containers:
            for hit in container.hits:
                results.append(
                    NormalizedResult(
                        entity_type=container.entity_type
                        or str(hit.resource.get("@odata.type", "")).removeprefix("#microsoft.graph.")
                        or "unknown",
                        rank=hit.rank,
                        summary=hit.summary or "",
                        resource=hit.resource,
                    )
                )
    return results


def total_count(response: SearchResponseV1, hit_count: int) -> int:
    """Sum of container totals; the flattened hit count when none is reported."""
    totals = [
        c.total
        for value in response.value
        for c in value.hits_containers
        if c.total is not None
    ]
    return sum(totals) if totals else hit_count


def extract_facets(
    response: SearchResponseV1,
    plans: Iterable[AggregationRequest] = (),
) -> list[AggregatedFacetResult]:
    sizes = {p.field: p.size for p in plans}
    facets: list[AggregatedFacetResult] = []
    for value in response.value:
        for agg in value.aggregations:
            dimension = FIELD_TO_DIMENSION.get(agg.field)
            size = sizes.get(agg.field)
            facets.append(
                AggregatedFacetResult(
                    dimension=str(dimension) if dimension else agg.field,
                    buckets=[FacetBucket(key=b.key, count=b.count) for b in agg.buckets],
                    truncated=size is not None and len(agg.buckets) >= size,
                )
            )
    return facets


def extract_alteration(response: SearchResponseV1) -> QueryAlteration | None:
    for value in response.value:
        alt = value.query_alteration_response
        if alt is None:
            continue
        altered = None
        if alt.query_alteration:
            altered = alt.query_alteration.get("alteredQueryString")
        return QueryAlteration(
            original=alt.original_query_string,
            altered=altered,
            alteration_type=alt.query_alteration_type,
        )
    return None


def build_file_preview(resource: dict[str, Any]) -> FilePreview | None:
    file_facet = resource.get("file")
    if not isinstance(file_facet, dict):
        return None
    preview = FilePreview(
        mime_type=file_facet.get("mimeType"),
        size=format_file_size(resource.get("size")),
        last_modified=resource.get("lastModifiedDateTime"),
    )
    name = str(resource.get("name") or "")
    if _OFFICE_DOCUMENT.search(name) and resource.get("webUrl"):
        preview.quick_actions.append(QuickAction(action="view", url=resource["webUrl"]))
    return preview


def build_message_context(result: NormalizedResult) -> MessageContext | None:
    resource = result.resource
    if result.entity_type != "message" or not resource.get("bodyPreview"):
        return None
    return MessageContext(
        preview=str(resource["bodyPreview"])[:MESSAGE_PREVIEW_CHARS],
        has_attachments=resource.get("hasAttachments"),
        importance=resource.get("importance"),
        is_read=resource.get("isRead"),
    )


def is_workbook(resource: dict[str, Any]) -> bool:
    return bool(resource.get("id")) and bool(_WORKBOOK_NAME.search(str(resource.get("name") or "")))


def parse_workbook_tables(raw: Any) -> WorkbookData:
    if not isinstance(raw, dict) or not isinstance(raw.get("value"), list):
        raise MalformedResponseError("workbook/tables returned no 'value' list")
    tables = [
        WorkbookTable(
            name=t.get("name"),
            id=t.get("id"),
            has_headers=t.get("showHeaders"),
            row_count=(t.get("rows") or {}).get("count") or 0,
            column_count=(t.get("columns") or {}).get("count") or 0,
        )
        for t in raw["value"]
        if isinstance(t, dict)
    ]
    return WorkbookData(table_count=len(tables), tables=tables)


@dataclass
class EnrichmentSummary:
    attempted: int = 0
    unavailable: int = 0
    cancelled: bool = False


class ResultNormalizer:
    """Flattens search replies and enriches hits."""

    def __init__(
        self,
        client: ApiClient,
        timeout_seconds: float = 10.0,
        concurrency: int = 5,
    ) -> None:
        self._client = client
        self._timeout = timeout_seconds
        self._concurrency = max(1, concurrency)

    async def _fetch_workbook(self, item_id: str, access_token: str) -> WorkbookData:
        raw = await asyncio.wait_for(
            self._client.invoke(
                "GET",
                f"me/drive/items/{item_id}/workbook/tables",
                query={"$top": WORKBOOK_TABLES_TOP},
                headers={"Authorization": f"Bearer {access_token}"},
            ),
            timeout=self._timeout,
        )
        return parse_workbook_tables(raw)

    async def enrich_one(
        self,
        result: NormalizedResult,
        access_token: str,
        include_workbook: bool = True,
    ) -> Enrichment | None:
        """Build the enrichment for one hit. Never raises for a failed secondary call."""
        preview = build_file_preview(result.resource)
        message_context = build_message_context(result)
        workbook = None
        if include_workbook and is_workbook(result.resource):
            try:
                workbook = await self._fetch_workbook(str(result.resource["id"]), access_token)
            except asyncio.CancelledError:
                raise
            except TimeoutError:
                logger.warning("Workbook enrichment timed out for %s", result.resource.get("id"))
                return Enrichment(
                    status=EnrichmentStatus.UNAVAILABLE,
                    preview=preview,
                    message_context=message_context,
                    error=f"timed out after {self._timeout:g}s",
                )
            except Exception as e:
                logger.warning("Could not enrich workbook %s: %s", result.resource.get("id"), e)
                return Enrichment(
                    status=EnrichmentStatus.UNAVAILABLE,
                    preview=preview,
                    message_context=message_context,
                    error=str(e) or type(e).__name__,
                )
        if preview is None and message_context is None and workbook is None:
            return None
        return Enrichment(preview=preview, message_context=message_context, workbook=workbook)

    async def enrich(
        self,
        results: list[NormalizedResult],
        access_token: str,
        include_workbook: bool = True,
        cancel: asyncio.Event | None = None,
    ) -> EnrichmentSummary:
        """Enrich all hits concurrently, in place. Each task writes only its own hit.

        If ``cancel`` fires, in-flight calls are abandoned and hits already
        enriched keep their enrichment.
        """
        summary = EnrichmentSummary(attempted=len(results))
        if not results:
            return summary
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _task(result: NormalizedResult) -> None:
            async with semaphore:
                result.enrichment = await self.enrich_one(result, access_token, include_workbook)

        try:
            await run_cancellable(asyncio.gather(*(_task(r) for r in results)), cancel)
        except SearchCancelledError:
            summary.cancelled = True
            logger.info("Enrichment cancelled; returning partially enriched results")

        summary.unavailable = sum(
            1
            for r in results
            if r.enrichment is not None and r.enrichment.status == EnrichmentStatus.UNAVAILABLE
        )
        return summary
