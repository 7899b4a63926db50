"""KQL query synthesis from free text and typed filters.

Clause order is fixed: free text, file-type OR-group, date range, field
predicates, then the caller's raw KQL clause. Clauses are joined with AND.
When nothing survives, the match-all token is emitted because the backend
rejects empty query strings.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime

from graphsearch.orchestrators.search.constants import MATCH_ALL_QUERY
from graphsearch.orchestrators.search.dates import resolve_date_range
from graphsearch.orchestrators.search.models import FieldPredicates, FilterSet

_BOOLEAN_OPERATOR = re.compile(r"\b(?:AND|OR|NOT)\b")
_INLINE_FIELD = re.compile(r"(?<![\w/])[A-Za-z][\w.]*(?::|>=|<=)(?!//)")
_NEEDS_QUOTES = re.compile(r"[\s():\"]")


@dataclass(frozen=True)
class SynthesizedQuery:
    """The query string plus the structural facts tier selection needs."""

    query_string: str
    clauses: tuple[str, ...] = ()
    free_text: str = ""
    has_date_range: bool = False
    field_predicate_count: int = 0
    date_bounds: tuple[date | None, date | None] = (None, None)
    file_types: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_match_all(self) -> bool:
        return self.query_string == MATCH_ALL_QUERY

    @property
    def filter_clauses(self) -> tuple[str, ...]:
        """Clauses contributed by typed filters and the raw clause, not the free text."""
        return self.clauses[1:] if self.free_text else self.clauses

    @property
    def boolean_operator_count(self) -> int:
        return count_boolean_operators(self.query_string)


def count_boolean_operators(query: str) -> int:
    return len(_BOOLEAN_OPERATOR.findall(query or ""))


def count_inline_field_predicates(text: str) -> int:
    """Count `field:value` style restrictions typed directly into free text."""
    return len(_INLINE_FIELD.findall(text or ""))


def quote_kql_value(value: str) -> str:
    value = str(value).strip()
    if _NEEDS_QUOTES.search(value):
        return '"' + value.replace('"', "") + '"'
    return value


def normalize_file_types(file_types: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    seen: list[str] = []
    for raw in file_types or ():
        ext = str(raw).strip().lstrip(".").lower()
        if ext and ext not in seen:
            seen.append(ext)
    return tuple(seen)


def build_file_type_clause(file_types: tuple[str, ...]) -> str | None:
    if not file_types:
        return None
    return "(" + " OR ".join(f"filetype:{t}" for t in file_types) + ")"


def build_date_clause(date_field: str, start: date | None, end: date | None) -> str | None:
    if start and end:
        return f"{date_field}:{start.isoformat()}..{end.isoformat()}"
    if start:
        return f"{date_field} >= {start.isoformat()}"
    if end:
        return f"{date_field} <= {end.isoformat()}"
    return None


def build_predicate_clauses(predicates: FieldPredicates) -> list[str]:
    clauses: list[str] = []
    if predicates.sender and predicates.sender.strip():
        clauses.append(f"from:{quote_kql_value(predicates.sender)}")
    if predicates.recipient and predicates.recipient.strip():
        clauses.append(f"to:{quote_kql_value(predicates.recipient)}")
    if predicates.subject and predicates.subject.strip():
        clauses.append(f"subject:{quote_kql_value(predicates.subject)}")
    if predicates.has_attachments is not None:
        clauses.append(f"hasAttachments:{str(predicates.has_attachments).lower()}")
    if predicates.is_read is not None:
        clauses.append(f"isRead:{str(predicates.is_read).lower()}")
    if predicates.importance:
        clauses.append(f"importance:{predicates.importance}")
    return clauses


def synthesize_query(
    text: str | None,
    filters: FilterSet | None,
    now: datetime,
    date_field: str = "LastModifiedTime",
) -> SynthesizedQuery:
    """Build one KQL query string. Raises CallerInputError on malformed dates."""
    filters = filters or FilterSet()
    clauses: list[str] = []

    free_text = (text or "").strip()
    if free_text:
        clauses.append(free_text)

    file_types = normalize_file_types(filters.file_types)
    file_clause = build_file_type_clause(file_types)
    if file_clause:
        clauses.append(file_clause)

    start = end = None
    if filters.date_range is not None:
        start, end = resolve_date_range(filters.date_range.start, filters.date_range.end, now)
    date_clause = build_date_clause(date_field, start, end)
    if date_clause:
        clauses.append(date_clause)

    predicate_clauses = build_predicate_clauses(filters.predicates)
    clauses.extend(predicate_clauses)

    custom = (filters.custom_clause or "").strip()
    if custom:
        clauses.append(custom)

    return SynthesizedQuery(
        query_string=" AND ".join(clauses) or MATCH_ALL_QUERY,
        clauses=tuple(clauses),
        free_text=free_text,
        has_date_range=date_clause is not None,
        field_predicate_count=len(predicate_clauses) + count_inline_field_predicates(free_text),
        date_bounds=(start, end),
        file_types=file_types,
    )
