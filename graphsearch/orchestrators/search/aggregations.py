"""Aggregation planning: facet definitions the backend accepts for a type set."""

import logging
from collections.abc import Iterable

from graphsearch.contracts.graph_search_v1 import (
    AggregationRequest,
    BucketDefinition,
    BucketRange,
    CompatibilityClass,
)
from graphsearch.orchestrators.search.capabilities import EntityCapabilityRegistry
from graphsearch.orchestrators.search.constants import FacetDimension

logger = logging.getLogger(__name__)


def _count_sorted(field: str, size: int) -> AggregationRequest:
    return AggregationRequest(
        field=field,
        size=size,
        bucket_definition=BucketDefinition(sort_by="count", is_descending=True, minimum_count=1),
    )


FACET_PLANS: dict[FacetDimension, AggregationRequest] = {
    FacetDimension.FILE_TYPE: _count_sorted("fileType", 10),
    FacetDimension.LAST_MODIFIED_BY: _count_sorted("lastModifiedBy", 5),
    FacetDimension.CREATED_DATE_TIME: AggregationRequest(
        field="createdDateTime",
        size=10,
        bucket_definition=BucketDefinition(
            sort_by="keyAsString",
            is_descending=True,
            minimum_count=1,
            ranges=[
                BucketRange(from_="now-1d", to="now"),
                BucketRange(from_="now-7d", to="now-1d"),
                BucketRange(from_="now-30d", to="now-7d"),
                BucketRange(from_="now-365d", to="now-30d"),
            ],
        ),
    ),
    FacetDimension.DEPARTMENT: _count_sorted("department", 10),
    FacetDimension.AUTHOR: _count_sorted("author", 10),
}

# Dimensions only meaningful for some classes. Absent entries apply to any
# aggregation-capable type.
FACET_CLASS_RULES: dict[FacetDimension, frozenset[CompatibilityClass]] = {
    FacetDimension.FILE_TYPE: frozenset({CompatibilityClass.CONTENT}),
}

FIELD_TO_DIMENSION: dict[str, FacetDimension] = {
    plan.field: dim for dim, plan in FACET_PLANS.items()
}


def _parse_dimension(name: str) -> FacetDimension | None:
    raw = str(name).strip()
    try:
        return FacetDimension(raw)
    except ValueError:
        pass
    lowered = raw.lower()
    for dim in FacetDimension:
        if dim.value.lower() == lowered:
            return dim
    return None


class AggregationPlanner:
    """Emits only the facet plans the backend supports for the resolved types."""

    def __init__(self, registry: EntityCapabilityRegistry) -> None:
        self._registry = registry

    def plan(
        self,
        entity_types: Iterable[str],
        dimensions: Iterable[str],
    ) -> list[AggregationRequest]:
        types = [str(t) for t in entity_types]
        requested = list(dimensions or ())
        if not requested:
            return []

        capable = [t for t in types if self._registry.supports_aggregation([t])]
        if not capable:
            logger.debug("Aggregations: no aggregation-capable type in %s", types)
            return []

        plans: list[AggregationRequest] = []
        seen: set[FacetDimension] = set()
        for name in requested:
            dim = _parse_dimension(name)
            if dim is None:
                logger.debug("Aggregations: dropping unknown dimension %r", name)
                continue
            if dim in seen:
                continue
            allowed = FACET_CLASS_RULES.get(dim)
            if allowed is not None and not any(
                self._registry.class_of(t) in allowed for t in capable
            ):
                logger.debug("Aggregations: %s not applicable to %s", dim, types)
                continue
            seen.add(dim)
            plans.append(FACET_PLANS[dim].model_copy(deep=True))
        return plans
