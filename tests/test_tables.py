"""
Tests for table search, filter and sort helpers.
"""

from datetime import date, timedelta

import pytest

from conftest import START, make_customer, make_entry

from agency_desk.models.records import (
    EntryType,
    FinanceCategory,
    SortDirection,
    VisaStatus,
)
from agency_desk.reports import (
    CUSTOMER_SEARCH_FIELDS,
    FINANCE_SEARCH_FIELDS,
    filter_entries_by_type,
    search_records,
    sort_records,
)


@pytest.fixture
def customers():
    return [
        make_customer("c-1", "Charlie Khan", VisaStatus.PENDING, START, agent_name="Rafiq"),
        make_customer("c-2", "Alice Noor", VisaStatus.APPROVED, START + timedelta(minutes=1)),
        make_customer("c-3", "Bob Das", VisaStatus.PENDING, START + timedelta(minutes=2),
                      passport_number="ZZ998877"),
    ]


class TestSearch:
    """Tests for search_records."""

    def test_case_insensitive_substring(self, customers):
        """Test that the query matches anywhere, ignoring case."""
        result = search_records(customers, "NOOR", CUSTOMER_SEARCH_FIELDS)

        assert [c.id for c in result] == ["c-2"]

    def test_matches_any_search_field(self, customers):
        """Test that passport number and agent are searched as well."""
        assert [c.id for c in search_records(customers, "zz99", CUSTOMER_SEARCH_FIELDS)] == ["c-3"]
        assert [c.id for c in search_records(customers, "rafiq", CUSTOMER_SEARCH_FIELDS)] == ["c-1"]

    def test_blank_query_keeps_everything(self, customers):
        """Test that an empty search box hides nothing."""
        assert search_records(customers, "   ", CUSTOMER_SEARCH_FIELDS) == customers

    def test_search_finance_category(self):
        """Test that enum fields are searched by their display value."""
        entries = [
            make_entry("f-1", category=FinanceCategory.SERVICE_CHARGE, description="Fee"),
            make_entry("f-2", category=FinanceCategory.TICKET, description="Flight"),
        ]

        result = search_records(entries, "service", FINANCE_SEARCH_FIELDS)

        assert [e.id for e in result] == ["f-1"]

    def test_no_match(self, customers):
        assert search_records(customers, "nobody", CUSTOMER_SEARCH_FIELDS) == []


class TestFilterByType:
    """Tests for filter_entries_by_type."""

    def test_filter_expenses(self):
        """Test that only the chosen direction is kept."""
        entries = [
            make_entry("f-1", EntryType.INCOME),
            make_entry("f-2", EntryType.EXPENSE),
        ]

        assert [e.id for e in filter_entries_by_type(entries, "Expense")] == ["f-2"]
        assert [e.id for e in filter_entries_by_type(entries, EntryType.INCOME)] == ["f-1"]

    def test_none_keeps_both(self):
        entries = [make_entry("f-1", EntryType.INCOME), make_entry("f-2", EntryType.EXPENSE)]

        assert len(filter_entries_by_type(entries, None)) == 2


class TestSort:
    """Tests for sort_records."""

    def test_sort_text_ascending(self, customers):
        """Test alphabetical order of names."""
        result = sort_records(customers, "full_name", SortDirection.ASC)

        assert [c.full_name for c in result] == ["Alice Noor", "Bob Das", "Charlie Khan"]

    def test_sort_ignores_case_and_accents(self):
        """Test that lowercase and accented names sort among their letters."""
        customers = [
            make_customer("c-1", "bob"),
            make_customer("c-2", "Zed"),
            make_customer("c-3", "émile"),
            make_customer("c-4", "Alice"),
        ]

        ascending = sort_records(customers, "full_name", SortDirection.ASC)
        descending = sort_records(customers, "full_name", SortDirection.DESC)

        assert [c.full_name for c in ascending] == ["Alice", "bob", "émile", "Zed"]
        assert [c.full_name for c in descending] == ["Zed", "émile", "bob", "Alice"]

    def test_accented_name_sorts_next_to_plain_spelling(self):
        customers = [
            make_customer("c-1", "Zara"),
            make_customer("c-2", "Émile"),
            make_customer("c-3", "Emily"),
        ]

        result = sort_records(customers, "full_name", SortDirection.ASC)

        assert [c.full_name for c in result] == ["Émile", "Emily", "Zara"]

    def test_sort_by_persisted_field_name(self, customers):
        """Test that the camelCase column name is accepted."""
        result = sort_records(customers, "createdAt", "desc")

        assert [c.id for c in result] == ["c-3", "c-2", "c-1"]

    def test_sort_amounts_numerically(self):
        """Test that 100 sorts after 20, unlike string comparison."""
        entries = [
            make_entry("f-1", amount="100"),
            make_entry("f-2", amount="20"),
            make_entry("f-3", amount="3"),
        ]

        result = sort_records(entries, "amount", SortDirection.ASC)

        assert [e.id for e in result] == ["f-3", "f-2", "f-1"]

    def test_sort_dates(self):
        """Test transaction dates, newest first."""
        entries = [
            make_entry("f-1", transaction_date=date(2024, 1, 5)),
            make_entry("f-2", transaction_date=date(2024, 3, 1)),
            make_entry("f-3", transaction_date=date(2023, 12, 31)),
        ]

        result = sort_records(entries, "transaction_date", SortDirection.DESC)

        assert [e.id for e in result] == ["f-2", "f-1", "f-3"]

    def test_equal_values_keep_input_order_both_ways(self, customers):
        """Test stability for ties in either direction."""
        ascending = sort_records(customers, "visa_status", SortDirection.ASC)
        descending = sort_records(customers, "visa_status", SortDirection.DESC)

        assert [c.id for c in ascending] == ["c-2", "c-1", "c-3"]
        assert [c.id for c in descending] == ["c-1", "c-3", "c-2"]

    def test_missing_values_leave_input_order(self, customers):
        """Test that a column with empty cells is not reordered."""
        customers[2] = customers[2].model_copy(update={"document_name": "a.pdf"})

        result = sort_records(customers, "document_name", SortDirection.ASC)

        assert result == customers

    def test_sort_does_not_modify_input(self, customers):
        original = list(customers)

        sort_records(customers, "full_name", SortDirection.DESC)

        assert customers == original

    def test_unknown_field_raises(self, customers):
        with pytest.raises(ValueError):
            sort_records(customers, "shoeSize")

    def test_empty_input(self):
        assert sort_records([], "full_name") == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
