import pytest
from pydantic import ValidationError

from graphsearch.contracts.graph_search_v1 import (
    EntityType,
    SearchQuery,
    SearchRequestV1,
    SearchResponseV1,
)
from graphsearch.core.config import Config


def test_request_payload_uses_wire_names_and_omits_unset_fields():
    request = SearchRequestV1(
        entity_types=[EntityType.MESSAGE],
        query=SearchQuery(query_string="*"),
        from_=0,
        size=10,
    )

    assert request.to_payload() == {
        "requests": [
            {
                "entityTypes": ["message"],
                "query": {"queryString": "*"},
                "from": 0,
                "size": 10,
            }
        ]
    }


def test_empty_query_string_is_rejected():
    with pytest.raises(ValidationError):
        SearchQuery(query_string="")


def test_size_ceiling_is_enforced():
    with pytest.raises(ValidationError):
        SearchRequestV1(entity_types=["driveItem"], query={"queryString": "x"}, size=501)


def test_response_envelope_parses_camel_case():
    response = SearchResponseV1.model_validate(
        {
            "value": [
                {
                    "hitsContainers": [
                        {
                            "hits": [{"hitId": "1", "rank": 1, "summary": "s", "resource": {}}],
                            "total": 1,
                            "moreResultsAvailable": True,
                        }
                    ],
                    "searchTerms": ["budget"],
                }
            ]
        }
    )

    container = response.value[0].hits_containers[0]
    assert container.more_results_available is True
    assert container.hits[0].hit_id == "1"
    assert response.value[0].search_terms == ["budget"]


def test_config_validate_reports_out_of_range_page_size():
    cfg = Config.load()
    cfg.max_page_size = 1000
    cfg.enrichment_concurrency = 0

    problems = cfg.validate()

    assert any("SEARCH_MAX_PAGE_SIZE" in p for p in problems)
    assert any("SEARCH_ENRICHMENT_CONCURRENCY" in p for p in problems)
