"""Shared typed constants for search planning and tier execution."""

from dataclasses import dataclass
from enum import StrEnum

from graphsearch.contracts.graph_search_v1 import CompatibilityClass, EntityType
from graphsearch.core.config import GRAPH_MAX_PAGE_SIZE, config

MAX_PAGE_SIZE = min(GRAPH_MAX_PAGE_SIZE, max(1, config.max_page_size))
DEFAULT_PAGE_SIZE = min(MAX_PAGE_SIZE, max(1, config.default_page_size))

# Token emitted when no clause survives synthesis; empty strings are rejected.
MATCH_ALL_QUERY = "*"

DEFAULT_ENTITY_TYPES: tuple[EntityType, ...] = (
    EntityType.DRIVE_ITEM,
    EntityType.LIST_ITEM,
)

# Tie-break when a request spans several classes: first represented wins.
CLASS_PRIORITY: tuple[CompatibilityClass, ...] = (
    CompatibilityClass.CONTENT,
    CompatibilityClass.MESSAGE,
    CompatibilityClass.EVENT,
    CompatibilityClass.PERSON,
)


class ExecutionTier(StrEnum):
    """Request strategies, richest first."""

    RICH = "rich"
    TEXT = "text"
    FILTER = "filter"


TIER_ORDER: tuple[ExecutionTier, ...] = (
    ExecutionTier.RICH,
    ExecutionTier.TEXT,
    ExecutionTier.FILTER,
)


class EngineState(StrEnum):
    RICH = "rich"
    TEXT = "text"
    FILTER = "filter"
    DONE = "done"
    FAILED = "failed"


class FacetDimension(StrEnum):
    """Named facet dimensions a caller may request."""

    FILE_TYPE = "fileType"
    LAST_MODIFIED_BY = "lastModifiedBy"
    CREATED_DATE_TIME = "createdDateTime"
    DEPARTMENT = "department"
    AUTHOR = "author"


class EnrichmentStatus(StrEnum):
    ENRICHED = "enriched"
    UNAVAILABLE = "unavailable"


class SearchMode(StrEnum):
    """Which entry path a request takes."""

    UNIFIED = "unified"
    PEOPLE = "people"
    SITE = "site"


# KQL property used for the date-range clause, by resolved class.
DATE_FIELD_BY_CLASS: dict[CompatibilityClass, str] = {
    CompatibilityClass.CONTENT: "LastModifiedTime",
    CompatibilityClass.MESSAGE: "received",
    CompatibilityClass.EVENT: "LastModifiedTime",
    CompatibilityClass.PERSON: "LastModifiedTime",
}

# Caller sort names -> backend sort property names.
SORT_FIELD_MAP: dict[str, str] = {
    "lastModifiedDateTime": "lastModifiedTime",
    "createdDateTime": "createdTime",
    "lastModified": "lastModifiedTime",
    "created": "createdTime",
    "modified": "lastModifiedTime",
}
DEFAULT_SORT_FIELD = "rank"

# Explicit field projection for the rich tier.
RICH_TIER_FIELDS: tuple[str, ...] = (
    "id", "name", "webUrl", "lastModifiedDateTime",
    "size", "createdBy", "parentReference", "file",
    "folder", "package", "specialFolder", "root",
    "subject", "from", "to", "receivedDateTime",
    "bodyPreview", "hasAttachments", "importance",
)

COLLAPSE_FIELDS: tuple[str, ...] = ("title",)

EMAIL_SELECT_FIELDS = (
    "id,subject,from,toRecipients,ccRecipients,receivedDateTime,"
    "bodyPreview,hasAttachments,importance,isRead"
)
CALENDAR_SELECT_FIELDS = (
    "id,subject,bodyPreview,start,end,location,organizer,attendees,isAllDay,isCancelled"
)
DRIVE_SELECT_FIELDS = "id,name,size,createdDateTime,lastModifiedDateTime,webUrl,folder,file"
PEOPLE_SELECT_FIELDS = (
    "displayName,mail,jobTitle,department,officeLocation,mobilePhone,userPrincipalName"
)
SITE_LIST_SELECT_FIELDS = "id,displayName,description,webUrl,createdDateTime,lastModifiedDateTime"

WORKBOOK_TABLES_TOP = 5


@dataclass(frozen=True)
class TierPolicy:
    """Thresholds deciding whether a query starts in the rich tier.

    A query is complex when it has more boolean operators than
    ``max_boolean_operators``, more field predicates than
    ``max_field_predicates``, or (with ``date_range_is_complex``) any
    date-range clause.
    """

    max_boolean_operators: int = 1
    max_field_predicates: int = 2
    date_range_is_complex: bool = True

    @classmethod
    def from_config(cls) -> "TierPolicy":
        return cls(
            max_boolean_operators=config.rich_tier_max_boolean_operators,
            max_field_predicates=config.rich_tier_max_field_predicates,
            date_range_is_complex=config.rich_tier_on_date_range,
        )
