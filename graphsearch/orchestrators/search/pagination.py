"""Bounds guard for page size and offset."""

from graphsearch.orchestrators.search.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from graphsearch.orchestrators.search.models import Pagination


def clamp_page_size(size: int | None, max_page_size: int = MAX_PAGE_SIZE) -> int:
    if size is None:
        return min(DEFAULT_PAGE_SIZE, max_page_size)
    return min(max(1, int(size)), max_page_size)


def clamp_offset(offset: int | None) -> int:
    if offset is None:
        return 0
    return max(0, int(offset))


def clamp_pagination(pagination: Pagination | None, max_page_size: int = MAX_PAGE_SIZE) -> Pagination:
    """Silently clamp size to [1, max_page_size] and offset to >= 0."""
    if pagination is None:
        return Pagination(offset=0, size=clamp_page_size(None, max_page_size))
    return Pagination(
        offset=clamp_offset(pagination.offset),
        size=clamp_page_size(pagination.size, max_page_size),
    )
