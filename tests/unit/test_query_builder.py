from datetime import date

import pytest
from hypothesis import given
from hypothesis import strategies as st

from graphsearch.orchestrators.search.dates import resolve_date, resolve_date_range
from graphsearch.orchestrators.search.errors import CallerInputError
from graphsearch.orchestrators.search.models import DateRange, FieldPredicates, FilterSet
from graphsearch.orchestrators.search.query_builder import (
    count_boolean_operators,
    synthesize_query,
)

from fakes import FIXED_NOW


def test_plain_text_passes_through():
    assert synthesize_query("budget report", None, FIXED_NOW).query_string == "budget report"


def test_empty_input_is_match_all():
    query = synthesize_query("   ", FilterSet(), FIXED_NOW)
    assert query.query_string == "*"
    assert query.is_match_all


def test_closed_range_is_one_range_token():
    filters = FilterSet(date_range=DateRange(start="2024-01-01", end="2024-01-31"))
    query = synthesize_query("", filters, FIXED_NOW)

    assert query.query_string == "LastModifiedTime:2024-01-01..2024-01-31"
    assert query.has_date_range


def test_start_only_range_uses_ge():
    filters = FilterSet(date_range=DateRange(start="2024-01-01T10:00:00Z"))
    assert synthesize_query("", filters, FIXED_NOW).query_string == "LastModifiedTime >= 2024-01-01"


def test_end_only_range_uses_le():
    filters = FilterSet(date_range=DateRange(end="2024-01-31"))
    assert synthesize_query("", filters, FIXED_NOW).query_string == "LastModifiedTime <= 2024-01-31"


def test_clause_order_and_join():
    filters = FilterSet(
        file_types=("docx", ".PDF"),
        date_range=DateRange(start="2024-01-01", end="2024-01-31"),
        custom_clause="author:alice",
        predicates=FieldPredicates(sender="bob@contoso.com", has_attachments=True),
    )
    query = synthesize_query("budget", filters, FIXED_NOW, date_field="received")

    assert query.query_string == (
        "budget AND (filetype:docx OR filetype:pdf) AND received:2024-01-01..2024-01-31 "
        "AND from:bob@contoso.com AND hasAttachments:true AND author:alice"
    )
    assert query.field_predicate_count == 2
    assert query.file_types == ("docx", "pdf")


def test_predicate_values_with_spaces_are_quoted():
    filters = FilterSet(predicates=FieldPredicates(subject="quarterly budget", importance="HIGH"))
    query = synthesize_query("", filters, FIXED_NOW)
    assert query.query_string == 'subject:"quarterly budget" AND importance:high'


def test_invalid_importance_is_rejected():
    with pytest.raises(ValueError):
        FieldPredicates(importance="urgent")


def test_relative_dates_resolve_against_given_now():
    filters = FilterSet(date_range=DateRange(start="7 days ago", end="today"))
    query = synthesize_query("", filters, FIXED_NOW)
    assert query.query_string == "LastModifiedTime:2024-03-08..2024-03-15"


@pytest.mark.parametrize(
    ("token", "expected"),
    [
        ("yesterday", date(2024, 3, 14)),
        ("a week ago", date(2024, 3, 8)),
        ("2 weeks ago", date(2024, 3, 1)),
        ("1 month ago", date(2024, 2, 15)),
        ("last year", date(2023, 3, 15)),
        ("2024-02-29", date(2024, 2, 29)),
        ("2024-02-29T23:59:59+02:00", date(2024, 2, 29)),
    ],
)
def test_resolve_date(token, expected):
    assert resolve_date(token, FIXED_NOW) == expected


def test_month_shift_clamps_to_month_end():
    from datetime import datetime

    assert resolve_date("1 month ago", datetime(2024, 3, 31)) == date(2024, 2, 29)


def test_malformed_date_is_caller_error():
    filters = FilterSet(date_range=DateRange(start="next tuesday-ish"))
    with pytest.raises(CallerInputError):
        synthesize_query("x", filters, FIXED_NOW)


def test_inverted_range_is_caller_error():
    with pytest.raises(CallerInputError):
        resolve_date_range("2024-02-01", "2024-01-01", FIXED_NOW)


def test_boolean_operator_count():
    assert count_boolean_operators("a AND b OR c") == 2
    assert count_boolean_operators("android orange") == 0


_text = st.one_of(st.none(), st.text(max_size=20))


@given(
    text=_text,
    file_types=st.lists(st.text(max_size=6), max_size=3),
    start=st.one_of(st.none(), st.just(""), st.just("2024-01-01"), st.just("3 days ago")),
    end=st.one_of(st.none(), st.just(""), st.just("2024-06-30")),
    custom=_text,
    sender=_text,
    is_read=st.one_of(st.none(), st.booleans()),
)
def test_synthesis_is_total(text, file_types, start, end, custom, sender, is_read):
    filters = FilterSet(
        file_types=tuple(file_types),
        date_range=DateRange(start=start, end=end),
        custom_clause=custom,
        predicates=FieldPredicates(sender=sender, is_read=is_read),
    )
    query = synthesize_query(text, filters, FIXED_NOW)
    assert query.query_string.strip()
