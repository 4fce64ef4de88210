"""CSV export helpers for Agency Desk.

Every export returns the CSV text; the dashboard hands it to a download
button. Quoting is minimal: a field is only quoted when it contains a
comma, a quote or a line break, and embedded quotes are doubled.
"""

import csv
import io
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from agency_desk.models.records import (
    Customer,
    FinanceEntry,
)
from agency_desk.reports.derivations import (
    category_breakdown,
    filter_by_date_range,
    financial_totals,
    visa_status_counts,
)


FINANCE_HEADERS = ["Date", "Type", "Category", "Amount", "Description"]
CUSTOMER_HEADERS = [
    "Full Name",
    "Passport Number",
    "Medical Status",
    "Agent",
    "Visa Status",
    "Document",
    "Created",
]
REPORT_HEADERS = ["Type", "Category", "Value"]


def _serialize_value(value):
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _write_csv(headers: Sequence[str], rows: Iterable[Sequence]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_serialize_value(value) for value in row])
    return buffer.getvalue()


def finance_entries_csv(entries: Iterable[FinanceEntry]) -> str:
    """Ledger rows in the order given (the table's current filter and sort)."""
    return _write_csv(
        FINANCE_HEADERS,
        (
            [
                entry.transaction_date,
                entry.entry_type,
                entry.category,
                entry.amount,
                entry.description,
            ]
            for entry in entries
        ),
    )


def customers_csv(customers: Iterable[Customer]) -> str:
    return _write_csv(
        CUSTOMER_HEADERS,
        (
            [
                customer.full_name,
                customer.passport_number,
                customer.medical_fitness_status,
                customer.agent_name,
                customer.visa_status,
                customer.document_name,
                customer.created_at,
            ]
            for customer in customers
        ),
    )


def business_report_csv(
    customers: Sequence[Customer],
    entries: Sequence[FinanceEntry],
    start: date,
    end: date,
) -> str:
    """
    Summary report for a reporting window.

    Financial rows cover the entries dated in [start, end]. Customer rows
    cover every customer, as customers are not dated by transaction.
    """
    in_range = filter_by_date_range(entries, start, end)
    totals = financial_totals(in_range)
    breakdown = category_breakdown(in_range)

    rows = [
        ["Summary", "Total Income", totals.total_income],
        ["Summary", "Total Expense", totals.total_expense],
        ["Summary", "Net Balance", totals.net_balance],
        ["Summary", "Total Customers", len(customers)],
    ]
    rows.extend(
        ["Visa Status", status, count]
        for status, count in visa_status_counts(customers).items()
    )
    rows.extend(
        ["Category Income", category, amounts.income]
        for category, amounts in breakdown.items()
    )
    rows.extend(
        ["Category Expense", category, amounts.expense]
        for category, amounts in breakdown.items()
    )
    return _write_csv(REPORT_HEADERS, rows)


# =============================================================================
# FILE NAMES
# =============================================================================

def finance_report_filename(today: date) -> str:
    return f"finance-report-{today.isoformat()}.csv"


def customers_filename(today: date) -> str:
    return f"customers-{today.isoformat()}.csv"


def business_report_filename(today: date) -> str:
    return f"business-report-{today.isoformat()}.csv"


def backup_filename(today: date) -> str:
    return f"business-data-backup-{today.isoformat()}.json"
