from graphsearch.contracts.graph_search_v1 import (
    CompatibilityClass,
    EntityType,
    EntityTypeCapabilities,
)
from graphsearch.orchestrators.search.aggregations import AggregationPlanner
from graphsearch.orchestrators.search.capabilities import (
    BUILTIN_CAPABILITIES,
    EntityCapabilityRegistry,
)


def _fields(plans):
    return [p.field for p in plans]


def test_plans_follow_request_order_and_drop_unknown_and_duplicates():
    planner = AggregationPlanner(EntityCapabilityRegistry())
    plans = planner.plan(["driveItem"], ["author", "bogus", "fileType", "author"])

    assert _fields(plans) == ["author", "fileType"]


def test_no_facets_for_types_without_aggregation_support():
    planner = AggregationPlanner(EntityCapabilityRegistry())

    assert planner.plan(["message", "chatMessage"], ["fileType", "author"]) == []
    assert planner.plan(["event"], ["createdDateTime"]) == []


def test_no_dimensions_requested_means_no_facets():
    planner = AggregationPlanner(EntityCapabilityRegistry())
    assert planner.plan(["driveItem"], []) == []


def test_file_type_facet_is_dropped_outside_content_class():
    registry = EntityCapabilityRegistry(BUILTIN_CAPABILITIES)
    registry.register(
        EntityTypeCapabilities(
            entity_type=EntityType.MESSAGE,
            compatibility_class=CompatibilityClass.MESSAGE,
            supports_aggregation=True,
        )
    )
    plans = AggregationPlanner(registry).plan(["message"], ["fileType", "author"])

    assert _fields(plans) == ["author"]


def test_dimension_names_are_case_insensitive():
    planner = AggregationPlanner(EntityCapabilityRegistry())
    assert _fields(planner.plan(["listItem"], ["FILETYPE", "lastmodifiedby"])) == [
        "fileType",
        "lastModifiedBy",
    ]


def test_created_facet_has_fixed_time_windows():
    planner = AggregationPlanner(EntityCapabilityRegistry())
    (plan,) = planner.plan(["driveItem"], ["createdDateTime"])
    wire = plan.model_dump(by_alias=True, exclude_none=True)

    assert wire["bucketDefinition"]["sortBy"] == "keyAsString"
    assert wire["bucketDefinition"]["ranges"][0] == {"from": "now-1d", "to": "now"}
    assert len(wire["bucketDefinition"]["ranges"]) == 4


def test_plans_are_copies():
    planner = AggregationPlanner(EntityCapabilityRegistry())
    first = planner.plan(["driveItem"], ["author"])[0]
    first.size = 99
    assert planner.plan(["driveItem"], ["author"])[0].size == 10
