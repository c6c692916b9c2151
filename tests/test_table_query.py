"""
tests/test_table_query.py

Pytest unit tests for the table query engine and its filter state.

Coverage
--------
- FilterState transitions and page resets
- Equality, substring and free-text filters
- Type-aware, stable sorting
- Pagination clamping
- Filter dropdown values
- Ticket table defaults
"""

from __future__ import annotations

from datetime import date

import pytest

from analytics.date_range import resolve_custom
from analytics.table_query import (
    LEAD_TABLE,
    TICKET_TABLE,
    FilterState,
    InvalidPageSizeError,
    SortDirection,
    SortKey,
    apply_filters,
    query_table,
    unique_column_values,
)


@pytest.fixture()
def leads(lead):
    return [
        lead(name="Anita Rao", email="anita@example.com", role="Student", payment_status="Success",
             paid_amt="₹1,200", reg_timestamp="2025-03-10 09:00:00", Unsubscribed="no"),
        lead(name="Ravi Kumar", email="ravi@example.com", role="Faculty", payment_status="",
             paid_amt="300", reg_timestamp="2025-03-08 11:00:00", Unsubscribed="yes"),
        lead(name="anita sharma", email="asharma@example.com", role="Faculty", payment_status="failed",
             paid_amt="50", reg_timestamp="2025-03-01 18:30:00"),
        lead(name="Meera Anita", email="meera@example.com", role="student", payment_status="Need Time",
             paid_amt="2,000", reg_timestamp=""),
        lead(name="John", email="john@example.com", role="Entrepreneur", payment_status="paid",
             paid_amt="75.5", reg_timestamp="2025-03-10 20:00:00", Unsubscribed="TRUE"),
    ]


def _names(records) -> list[str]:
    return [r.name for r in records]


class TestFilterState:
    def test_defaults(self) -> None:
        state = FilterState()
        assert (state.page, state.page_size, state.sort) == (1, 25, None)

    @pytest.mark.parametrize(
        "transition",
        [
            lambda s: s.with_search("x"),
            lambda s: s.with_column_filter("role", "Student"),
            lambda s: s.with_column_search("email", "example"),
            lambda s: s.toggle_sort("name"),
            lambda s: s.with_window(None),
            lambda s: s.with_page_size(50),
            lambda s: s.reset(),
        ],
    )
    def test_transitions_reset_page(self, transition) -> None:
        assert transition(FilterState().with_page(4)).page == 1

    def test_with_page_keeps_filters(self) -> None:
        state = FilterState().with_search("anita").with_page(3)
        assert state.page == 3
        assert state.search == "anita"

    def test_invalid_page_size(self) -> None:
        with pytest.raises(InvalidPageSizeError):
            FilterState().with_page_size(33)

    def test_toggle_sort_cycles(self) -> None:
        state = FilterState().toggle_sort("name")
        assert state.sort == SortKey("name", SortDirection.ASC)
        state = state.toggle_sort("name")
        assert state.sort == SortKey("name", SortDirection.DESC)
        state = state.toggle_sort("email")
        assert state.sort == SortKey("email", SortDirection.ASC)

    def test_all_clears_a_column_filter(self) -> None:
        state = FilterState().with_column_filter("role", "Student").with_column_filter("role", "all")
        assert state.column_filters == {}

    def test_state_is_immutable(self) -> None:
        state = FilterState()
        state.with_column_filter("role", "Student")
        assert state.column_filters == {}


class TestFilters:
    def test_role_filter_plus_search(self, leads) -> None:
        state = FilterState().with_column_filter("role", "Student").with_search("anita")
        result = query_table(leads, state)
        assert _names(result.records) == ["Anita Rao", "Meera Anita"]
        assert result.total_count == 2

    def test_equality_is_case_insensitive(self, leads) -> None:
        state = FilterState().with_column_filter("role", "  STUDENT ")
        assert query_table(leads, state).total_count == 2

    def test_payment_status_filter_uses_synonyms(self, leads) -> None:
        state = FilterState().with_column_filter("payment_status", "Success")
        assert _names(query_table(leads, state).records) == ["Anita Rao", "John"]

    def test_pending_filter_matches_empty_status(self, leads) -> None:
        state = FilterState().with_column_filter("payment_status", "Pending")
        assert _names(query_table(leads, state).records) == ["Ravi Kumar"]

    def test_bool_like_filter(self, leads) -> None:
        state = FilterState().with_column_filter("Unsubscribed", "Yes")
        assert _names(query_table(leads, state).records) == ["Ravi Kumar", "John"]

    def test_timestamp_filter_matches_calendar_date(self, leads) -> None:
        state = FilterState().with_column_filter("reg_timestamp", "2025-03-10")
        assert _names(query_table(leads, state).records) == ["Anita Rao", "John"]

    def test_substring_filter(self, leads) -> None:
        state = FilterState().with_column_search("email", "SHARMA")
        assert _names(query_table(leads, state).records) == ["anita sharma"]

    def test_free_text_searches_email_too(self, leads) -> None:
        state = FilterState().with_search("ravi@")
        assert _names(query_table(leads, state).records) == ["Ravi Kumar"]

    def test_window_scopes_rows(self, leads) -> None:
        window = resolve_custom(date(2025, 3, 8), date(2025, 3, 10))
        result = query_table(leads, FilterState().with_window(window))
        assert _names(result.records) == ["Anita Rao", "Ravi Kumar", "John"]

    def test_missing_column_matches_only_empty_value(self, leads) -> None:
        state = FilterState().with_column_filter("city", "Pune")
        assert query_table(leads, state).total_count == 0

    def test_additional_filter_never_grows_result(self, leads) -> None:
        base = FilterState().with_search("a")
        narrower = base.with_column_filter("role", "Faculty")
        wide = query_table(leads, base)
        narrow = query_table(leads, narrower)
        assert narrow.total_count <= wide.total_count
        assert all(r in leads for r in narrow.filtered)


class TestSorting:
    def test_text_sort_is_case_insensitive(self, leads) -> None:
        result = query_table(leads, FilterState().toggle_sort("name"))
        assert _names(result.records) == ["Anita Rao", "anita sharma", "John", "Meera Anita", "Ravi Kumar"]

    def test_amount_sort_is_numeric(self, leads) -> None:
        state = FilterState().with_sort(SortKey("paid_amt", SortDirection.DESC))
        assert _names(query_table(leads, state).records) == [
            "Meera Anita",
            "Anita Rao",
            "Ravi Kumar",
            "John",
            "anita sharma",
        ]

    def test_missing_timestamps_sort_first(self, leads) -> None:
        result = query_table(leads, FilterState().toggle_sort("reg_timestamp"))
        assert _names(result.records)[0] == "Meera Anita"
        assert _names(result.records)[-1] == "John"

    def test_sort_is_stable_for_equal_keys(self, leads) -> None:
        state = FilterState().with_sort(SortKey("role", SortDirection.DESC))
        once = query_table(leads, state).filtered
        twice = query_table(once, state).filtered
        assert once == twice
        faculty = [r.name for r in once if r.role == "Faculty"]
        assert faculty == ["Ravi Kumar", "anita sharma"]


class TestPagination:
    def test_page_slices(self, lead) -> None:
        records = [lead(name=f"lead{i:02d}") for i in range(23)]
        state = FilterState().with_page_size(10).with_page(3)
        result = query_table(records, state)
        assert result.total_pages == 3
        assert _names(result.records) == [f"lead{i:02d}" for i in range(20, 23)]

    def test_page_is_clamped(self, lead) -> None:
        records = [lead(name=f"lead{i}") for i in range(5)]
        result = query_table(records, FilterState().with_page(9))
        assert result.page == 1
        assert len(result.records) == 5

    def test_empty_result_has_one_page(self) -> None:
        result = query_table([], FilterState())
        assert (result.total_count, result.total_pages, result.page) == (0, 1, 1)


class TestFilterOptions:
    def test_text_values_sorted_and_deduplicated(self, leads) -> None:
        assert unique_column_values(leads, "role") == ["Entrepreneur", "Faculty", "Student"]

    def test_timestamp_values_most_recent_first(self, leads) -> None:
        assert unique_column_values(leads, "reg_timestamp") == ["2025-03-10", "2025-03-08", "2025-03-01"]

    def test_bool_like_values(self, leads) -> None:
        assert unique_column_values(leads, "Unsubscribed") == ["Yes", "No"]

    def test_payment_status_display_values(self, leads) -> None:
        assert unique_column_values(leads, "payment_status") == ["Failed", "Need Time", "Paid", "Success"]

    @pytest.mark.parametrize("column", ["role", "payment_status", "reg_timestamp", "Unsubscribed"])
    def test_every_option_selects_its_rows(self, leads, lead, column: str) -> None:
        records = leads + [lead(name="Hold", payment_status="on_hold", reg_timestamp="2025-03-02 08:00:00")]
        for option in unique_column_values(records, column):
            result = query_table(records, FilterState().with_column_filter(column, option))
            assert result.total_count >= 1, option

    def test_unrecognised_status_option_matches_raw_cell(self, lead) -> None:
        records = [lead(name="Hold", payment_status="on_hold"), lead(name="Paid", payment_status="Success")]
        option = unique_column_values(records, "payment_status")[0]
        assert option == "On hold"
        result = query_table(records, FilterState().with_column_filter("payment_status", option))
        assert _names(result.records) == ["Hold"]


class TestTicketTable:
    def test_default_sort_newest_first(self, ticket) -> None:
        tickets = [
            ticket(ticket_id="T1", query_timestamp="2025-03-01 10:00:00"),
            ticket(ticket_id="T2", query_timestamp="2025-03-05 10:00:00"),
            ticket(ticket_id="T3", query_timestamp=""),
        ]
        result = query_table(tickets, FilterState(), TICKET_TABLE)
        assert [t.raw["ticket_id"] for t in result.records] == ["T2", "T1", "T3"]

    def test_search_covers_ticket_id_and_query(self, ticket) -> None:
        tickets = [
            ticket(ticket_id="T-100", query="Refund please"),
            ticket(ticket_id="T-200", query="Certificate missing"),
        ]
        by_id = apply_filters(tickets, FilterState().with_search("t-200"), TICKET_TABLE)
        by_query = apply_filters(tickets, FilterState().with_search("refund"), TICKET_TABLE)
        assert [t.raw["ticket_id"] for t in by_id] == ["T-200"]
        assert [t.raw["ticket_id"] for t in by_query] == ["T-100"]

    def test_lead_table_does_not_search_role(self, leads) -> None:
        assert apply_filters(leads, FilterState().with_search("faculty"), LEAD_TABLE) == []
