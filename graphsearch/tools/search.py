"""Graph search tool: caller arguments in, JSON SearchResponse out."""

from typing import Any

from pydantic import ValidationError

from graphsearch.core.config import config
from graphsearch.core.logger import logger
from graphsearch.orchestrators.search import GraphSearchOrchestrator
from graphsearch.orchestrators.search.errors import (
    AuthRequiredError,
    CallerInputError,
    SearchError,
)
from graphsearch.orchestrators.search.models import (
    DateRange,
    FieldPredicates,
    FilterSet,
    Pagination,
    SearchRequest,
    SortSpec,
)
from graphsearch.tools.base import Tool, ToolResult


def _names(value: Any) -> tuple[str, ...]:
    """Accept a list or a comma-separated string."""
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(v.strip() for v in value.split(",") if v.strip())
    if isinstance(value, list | tuple | set):
        return tuple(str(v).strip() for v in value if str(v).strip())
    raise CallerInputError(f"Expected a list of names, got {type(value).__name__}")


def _optional_bool(value: Any) -> bool | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _int(value: Any, name: str, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise CallerInputError(f"'{name}' must be an integer, got {value!r}") from None


def build_search_request(args: dict[str, Any]) -> SearchRequest:
    """Translate tool arguments (camelCase, as callers send them) to a SearchRequest."""
    try:
        date_range = args.get("dateRange")
        if isinstance(date_range, dict):
            date_range = DateRange(start=date_range.get("start"), end=date_range.get("end"))
        elif date_range is not None:
            raise CallerInputError("'dateRange' must be an object with 'start' and/or 'end'")

        sort_by = args.get("sortBy")
        sort = None
        if isinstance(sort_by, dict):
            sort = SortSpec(
                field=sort_by.get("field"),
                descending=_optional_bool(sort_by.get("descending")) is not False,
            )
        elif isinstance(sort_by, str) and sort_by.strip():
            sort = SortSpec(field=sort_by.strip())

        filters = FilterSet(
            file_types=_names(args.get("fileTypes")),
            date_range=date_range,
            custom_clause=args.get("filters") or None,
            predicates=FieldPredicates(
                sender=args.get("sender"),
                recipient=args.get("recipient"),
                subject=args.get("subject"),
                has_attachments=_optional_bool(args.get("hasAttachments")),
                is_read=_optional_bool(args.get("isRead")),
                importance=args.get("importance"),
            ),
        )
        facets = args.get("facets", args.get("aggregateBy"))
        include_workbook = args.get("includeWorkbookData", args.get("includeExcelData"))
        enrich = _optional_bool(args.get("enrichContent"))
        return SearchRequest(
            query=str(args.get("query") or ""),
            entity_types=_names(args.get("entityTypes")),
            filters=filters,
            facets=_names(facets),
            pagination=Pagination(
                offset=_int(args.get("from"), "from", 0),
                size=_int(args.get("limit"), "limit", config.default_page_size),
            ),
            sort=sort,
            rank_by_relevance=bool(_optional_bool(args.get("rankByRelevance"))),
            enrich_content=enrich is not False,
            include_workbook_data=_optional_bool(include_workbook) is not False,
            people_search=bool(_optional_bool(args.get("peopleSearch"))),
            site_id=args.get("siteId") or None,
            people_filter=args.get("peopleFilter") or None,
        )
    except ValidationError as e:
        raise CallerInputError(f"Invalid search arguments: {e}") from e


class GraphSearchTool(Tool):
    """Unified search across files, mail, events and people."""

    def __init__(self, orchestrator: GraphSearchOrchestrator):
        self._orchestrator = orchestrator

    @property
    def orchestrator(self) -> GraphSearchOrchestrator:
        return self._orchestrator

    @property
    def name(self) -> str:
        return "graph_search"

    @property
    def description(self) -> str:
        return (
            "Unified search across documents, list items, mail, chat, calendar events "
            "and people, with file-type/date filters, facets and content enrichment."
        )

    @property
    def parameters(self) -> dict[str, str]:
        return {
            "query": "Search text. Required unless filters are given.",
            "entityTypes": "Optional. driveItem, listItem, list, drive, externalItem, message, chatMessage, event, person.",
            "fileTypes": "Optional. File extensions, e.g. ['docx', 'pdf'].",
            "dateRange": "Optional. {start, end}: YYYY-MM-DD or relative ('7 days ago').",
            "filters": "Optional. Extra KQL appended to the query.",
            "sender": "Optional. Mail sender address or name.",
            "recipient": "Optional. Mail recipient address or name.",
            "subject": "Optional. Subject text.",
            "hasAttachments": "Optional. true/false.",
            "isRead": "Optional. true/false.",
            "importance": "Optional. low, normal or high.",
            "facets": "Optional. fileType, lastModifiedBy, createdDateTime, department, author.",
            "limit": f"Optional. Results per page (default {config.default_page_size}, max {config.max_page_size}).",
            "from": "Optional. Offset for paging.",
            "sortBy": "Optional. {field, descending}.",
            "enrichContent": "Optional. Add previews and workbook structure (default true).",
            "includeWorkbookData": "Optional. Fetch Excel table structure (default true).",
            "rankByRelevance": "Optional. Prefer relevance-ranked search.",
            "peopleSearch": "Optional. Search the people directory.",
            "siteId": "Optional. Search lists and libraries of one site.",
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        logger.tool_execute(self.name, kwargs)
        try:
            request = build_search_request(kwargs)
            response = await self._orchestrator.search(request)
        except AuthRequiredError as e:
            logger.tool_result(self.name, 0, False)
            return ToolResult.fail(f"Authentication required: {e}")
        except CallerInputError as e:
            logger.tool_result(self.name, 0, False)
            return ToolResult.fail(f"Invalid request: {e}")
        except SearchError as e:
            logger.error(f"Graph search failed: {e}")
            logger.tool_result(self.name, 0, False)
            return ToolResult.fail(f"Search failed: {e}")
        except Exception as e:
            logger.error(f"Graph search failed unexpectedly: {e}", exception=e)
            logger.tool_result(self.name, 0, False)
            return ToolResult.fail(f"Search failed: {e}")

        output = response.model_dump_json(by_alias=True, exclude_none=True, indent=2)
        logger.tool_result(self.name, len(output), True)
        return ToolResult.ok(output)
