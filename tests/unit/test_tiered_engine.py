import asyncio

import pytest

from graphsearch.orchestrators.search.capabilities import EntityCapabilityRegistry, resolve_entity_types
from graphsearch.orchestrators.search.constants import ExecutionTier, TierPolicy
from graphsearch.orchestrators.search.engine import TieredExecutionEngine, is_complex_query
from graphsearch.orchestrators.search.errors import (
    ApiError,
    SearchCancelledError,
    TransportError,
)
from graphsearch.orchestrators.search.models import (
    DateRange,
    FieldPredicates,
    FilterSet,
    Pagination,
    SortSpec,
)
from graphsearch.orchestrators.search.query_builder import synthesize_query
from graphsearch.orchestrators.search.tiers import FilterTier, SearchPlan, default_tiers

from fakes import FIXED_NOW, FakeApiClient, container, search_reply

LISTING = {"value": [{"id": "1", "name": "Budget.docx"}]}


def make_plan(
    text="budget report",
    entity_types=("driveItem",),
    filters=None,
    rank_by_relevance=False,
    sort=None,
    aggregations=(),
):
    filters = filters or FilterSet()
    return SearchPlan(
        resolution=resolve_entity_types(entity_types),
        query=synthesize_query(text, filters, FIXED_NOW),
        pagination=Pagination(offset=0, size=25),
        aggregations=aggregations,
        sort=sort,
        rank_by_relevance=rank_by_relevance,
        predicates=filters.predicates,
    )


def make_engine(client):
    return TieredExecutionEngine(client, EntityCapabilityRegistry(), policy=TierPolicy())


def run(engine, plan, cancel=None):
    return asyncio.run(engine.execute(plan, "tok", cancel))


def test_simple_query_starts_in_text_tier():
    client = FakeApiClient([LISTING])
    outcome = run(make_engine(client), make_plan())

    assert outcome.tier == ExecutionTier.TEXT
    assert len(client.calls) == 1
    assert client.calls[0]["method"] == "GET"
    assert client.calls[0]["path"] == "me/drive/root/search(q='budget%20report')"
    assert client.calls[0]["headers"]["Authorization"] == "Bearer tok"


def test_relevance_opt_in_starts_in_rich_tier():
    client = FakeApiClient([search_reply(container("driveItem", "a.docx"))])
    outcome = run(make_engine(client), make_plan(rank_by_relevance=True))

    assert outcome.tier == ExecutionTier.RICH
    call = client.calls[0]
    assert (call["method"], call["path"]) == ("POST", "search/query")
    request = call["body"]["requests"][0]
    assert request["entityTypes"] == ["driveItem"]
    assert request["query"] == {"queryString": "budget report"}
    assert request["from"] == 0 and request["size"] == 25
    assert request["collapseProperties"] == [{"fields": ["title"], "limit": 1}]
    assert request["queryAlterationOptions"] == {"enableSuggestion": True, "enableModification": True}
    assert "fields" in request


def test_capability_rejection_moves_to_text_tier_not_rich_again():
    client = FakeApiClient([ApiError(400, "Aggregation not supported"), LISTING])
    outcome = run(make_engine(client), make_plan(rank_by_relevance=True))

    assert outcome.tier == ExecutionTier.TEXT
    assert [c["path"] for c in client.calls] == [
        "search/query",
        "me/drive/root/search(q='budget%20report')",
    ]
    assert [a.tier for a in outcome.attempts] == [ExecutionTier.RICH, ExecutionTier.TEXT]
    assert outcome.attempts[0].recoverable is True


def test_malformed_rich_reply_degrades():
    client = FakeApiClient(["<html>oops</html>", LISTING])
    outcome = run(make_engine(client), make_plan(rank_by_relevance=True))
    assert outcome.tier == ExecutionTier.TEXT


def test_filter_tier_error_is_the_one_surfaced():
    filter_error = ApiError(400, "Invalid filter clause")
    client = FakeApiClient(
        [ApiError(400, "rich rejected"), ApiError(501, "text rejected"), filter_error]
    )
    with pytest.raises(ApiError) as exc_info:
        run(make_engine(client), make_plan(rank_by_relevance=True))

    assert exc_info.value is filter_error
    assert len(client.calls) == 3
    assert client.calls[2]["path"] == "me/drive/root/children"
    assert client.calls[2]["query"]["$filter"] == "contains(name,'budget report')"


def test_non_recoverable_error_propagates_without_fallback():
    client = FakeApiClient([TransportError("connection reset")])
    with pytest.raises(TransportError):
        run(make_engine(client), make_plan(rank_by_relevance=True))
    assert len(client.calls) == 1


def test_server_error_is_not_a_capability_rejection():
    client = FakeApiClient([ApiError(503, "unavailable")])
    with pytest.raises(ApiError):
        run(make_engine(client), make_plan())
    assert len(client.calls) == 1


def test_match_all_query_skips_rich_and_text():
    client = FakeApiClient([LISTING])
    outcome = run(make_engine(client), make_plan(text="", rank_by_relevance=True))

    assert outcome.tier == ExecutionTier.FILTER
    assert client.calls[0]["path"] == "me/drive/root/children"
    assert "$filter" not in client.calls[0]["query"]


def test_complex_queries_start_in_rich():
    policy = TierPolicy()
    assert is_complex_query(make_plan(text="a AND b OR c").query, policy)
    assert not is_complex_query(make_plan(text="a AND b").query, policy)
    dated = make_plan(filters=FilterSet(date_range=DateRange(start="2024-01-01")))
    assert is_complex_query(dated.query, policy)
    assert not is_complex_query(dated.query, TierPolicy(date_range_is_complex=False))
    many = make_plan(
        text="",
        filters=FilterSet(
            predicates=FieldPredicates(sender="a@x.com", recipient="b@x.com", is_read=False)
        ),
    )
    assert is_complex_query(many.query, policy)


def test_message_filter_tier_translates_predicates():
    filters = FilterSet(
        date_range=DateRange(start="2024-01-01", end="2024-01-31"),
        predicates=FieldPredicates(sender="bob@contoso.com", has_attachments=True),
    )
    client = FakeApiClient([ApiError(400, "no"), ApiError(400, "no"), {"value": []}])
    plan = make_plan(text="invoice", entity_types=("message",), filters=filters)
    outcome = run(make_engine(client), plan)

    assert outcome.tier == ExecutionTier.FILTER
    params = client.calls[-1]["query"]
    assert client.calls[-1]["path"] == "me/messages"
    assert params["$filter"] == (
        "contains(subject,'invoice') and receivedDateTime ge 2024-01-01T00:00:00Z "
        "and receivedDateTime le 2024-01-31T23:59:59Z "
        "and from/emailAddress/address eq 'bob@contoso.com' and hasAttachments eq true"
    )
    assert params["$orderby"] == "receivedDateTime desc"


def test_sort_field_is_mapped_in_rich_request():
    client = FakeApiClient([search_reply()])
    plan = make_plan(rank_by_relevance=True, sort=SortSpec(field="lastModifiedDateTime"))
    run(make_engine(client), plan)

    request = client.calls[0]["body"]["requests"][0]
    assert request["sortProperties"] == [{"name": "lastModifiedTime", "isDescending": True}]


def test_cancel_before_any_tier_completes_raises():
    async def scenario():
        client = FakeApiClient([LISTING], delay=5)
        cancel = asyncio.Event()
        engine = make_engine(client)
        asyncio.get_running_loop().call_later(0.01, cancel.set)
        await engine.execute(make_plan(), "tok", cancel)

    with pytest.raises(SearchCancelledError):
        asyncio.run(asyncio.wait_for(scenario(), timeout=2))


def test_custom_last_tier_rejection_surfaces_untouched():
    class LenientFilterTier(FilterTier):
        def is_recoverable(self, error):
            return True

    tiers = default_tiers(EntityCapabilityRegistry())
    tiers[ExecutionTier.FILTER] = LenientFilterTier()
    last = ApiError(422, "filter rejected")
    client = FakeApiClient([ApiError(400, "text rejected"), last])
    engine = TieredExecutionEngine(client, EntityCapabilityRegistry(), policy=TierPolicy(), tiers=tiers)

    with pytest.raises(ApiError) as exc_info:
        run(engine, make_plan())
    assert exc_info.value is last


def test_file_type_filter_starts_in_rich_instead_of_keyword_search():
    client = FakeApiClient([search_reply(container("driveItem", "budget.pdf"))])
    plan = make_plan(text="budget", filters=FilterSet(file_types=("pdf",)))
    outcome = run(make_engine(client), plan)

    assert outcome.tier == ExecutionTier.RICH
    assert len(client.calls) == 1
    request = client.calls[0]["body"]["requests"][0]
    assert request["query"] == {"queryString": "budget AND (filetype:pdf)"}


def test_custom_clause_is_never_dropped_by_keyword_search():
    client = FakeApiClient([ApiError(400, "rich rejected"), LISTING])
    plan = make_plan(text="budget", filters=FilterSet(custom_clause="author:bob"))
    outcome = run(make_engine(client), plan)

    assert outcome.tier == ExecutionTier.FILTER
    assert [c["path"] for c in client.calls] == ["search/query", "me/drive/root/children"]
    assert [a.tier for a in outcome.attempts] == [ExecutionTier.RICH, ExecutionTier.FILTER]


def test_message_keyword_search_carries_the_full_query():
    client = FakeApiClient([{"value": []}])
    filters = FilterSet(file_types=("pdf",))
    outcome = run(make_engine(client), make_plan(text="invoice", entity_types=("message",), filters=filters))

    assert outcome.tier == ExecutionTier.TEXT
    assert client.calls[0]["query"]["$search"] == '"invoice AND (filetype:pdf)"'


def test_offset_skips_keyword_search_and_pages_in_rich():
    client = FakeApiClient([search_reply(container("driveItem", "a.docx"))])
    plan = make_plan()
    plan = SearchPlan(
        resolution=plan.resolution,
        query=plan.query,
        pagination=Pagination(offset=50, size=25),
    )
    outcome = run(make_engine(client), plan)

    assert outcome.tier == ExecutionTier.RICH
    assert client.calls[0]["body"]["requests"][0]["from"] == 50


def test_offset_is_sent_as_skip_when_degrading_to_filter():
    client = FakeApiClient([ApiError(400, "rich rejected"), LISTING])
    plan = make_plan()
    plan = SearchPlan(
        resolution=plan.resolution,
        query=plan.query,
        pagination=Pagination(offset=50, size=25),
    )
    outcome = run(make_engine(client), plan)

    assert outcome.tier == ExecutionTier.FILTER
    assert client.calls[1]["query"]["$skip"] == 50
    assert outcome.response.value[0].hits_containers[0].hits[0].rank == 51


def test_keyword_path_value_is_percent_encoded():
    client = FakeApiClient([LISTING])
    run(make_engine(client), make_plan(text="q3/plan #2?"))

    assert client.calls[0]["path"] == "me/drive/root/search(q='q3%2Fplan%20%232%3F')"


def test_keyword_path_doubles_embedded_quotes_before_encoding():
    client = FakeApiClient([LISTING])
    run(make_engine(client), make_plan(text="o'brien"))

    assert client.calls[0]["path"] == "me/drive/root/search(q='o%27%27brien')"
