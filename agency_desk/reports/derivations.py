"""
Report Derivations

DESIGN DECISION: Every figure on the dashboard and the reports page is
DERIVED from the stored records on demand. Nothing here is cached or
persisted, and nothing here touches the store.

All functions are pure: the same records in give the same numbers out,
and calling them twice changes nothing. Amounts are summed as Decimal so
totals match the ledger to the cent.
"""

from collections.abc import Iterable, Sequence
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from agency_desk.models.records import (
    ActivityItem,
    CategoryTotals,
    Customer,
    DashboardStats,
    EntryType,
    FinanceCategory,
    FinanceEntry,
    FinancialTotals,
    PerformanceSummary,
    VisaStatus,
)


_ZERO = Decimal("0")
_CENT = Decimal("0.01")
_TENTH = Decimal("0.1")


# =============================================================================
# DATE RANGES
# =============================================================================

def filter_by_date_range(
    entries: Iterable[FinanceEntry],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[FinanceEntry]:
    """
    Entries whose transaction date falls in [start, end].

    Both bounds are inclusive. A missing bound leaves that side open.
    """
    return [
        entry for entry in entries
        if (start is None or entry.transaction_date >= start)
        and (end is None or entry.transaction_date <= end)
    ]


def default_report_period(today: date) -> tuple[date, date]:
    """First day of the current month through today."""
    return today.replace(day=1), today


def describe_period(
    date_from: Optional[date],
    date_to: Optional[date],
) -> str:
    """Format a reporting window for headings."""
    if date_from and date_to:
        if date_from == date_to:
            return f"on {date_from.strftime('%d %b %Y')}"
        elif date_from.month == date_to.month and date_from.year == date_to.year:
            return f"in {date_from.strftime('%B %Y')}"
        elif date_from.year == date_to.year:
            return f"from {date_from.strftime('%b')} to {date_to.strftime('%b %Y')}"
        else:
            return f"from {date_from.strftime('%b %Y')} to {date_to.strftime('%b %Y')}"
    elif date_from:
        return f"from {date_from.strftime('%d %b %Y')}"
    elif date_to:
        return f"until {date_to.strftime('%d %b %Y')}"
    return "all time"


# =============================================================================
# TOTALS AND BREAKDOWNS
# =============================================================================

def financial_totals(
    entries: Iterable[FinanceEntry],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> FinancialTotals:
    """Income, expense and net balance over the entries in range."""
    income = _ZERO
    expense = _ZERO
    for entry in filter_by_date_range(entries, start, end):
        if entry.entry_type == EntryType.INCOME:
            income += entry.amount
        else:
            expense += entry.amount
    return FinancialTotals(total_income=income, total_expense=expense)


def category_breakdown(
    entries: Iterable[FinanceEntry],
) -> dict[FinanceCategory, CategoryTotals]:
    """
    Income and expense per category.

    Only categories that occur are present, in the order first seen.
    """
    breakdown: dict[FinanceCategory, CategoryTotals] = {}
    for entry in entries:
        totals = breakdown.setdefault(entry.category, CategoryTotals())
        if entry.entry_type == EntryType.INCOME:
            totals.income += entry.amount
        else:
            totals.expense += entry.amount
    return breakdown


def visa_status_counts(customers: Iterable[Customer]) -> dict[VisaStatus, int]:
    """Number of customers in each visa status that occurs."""
    counts: dict[VisaStatus, int] = {}
    for customer in customers:
        counts[customer.visa_status] = counts.get(customer.visa_status, 0) + 1
    return counts


def group_by_month(entries: Iterable[FinanceEntry]) -> dict[str, list[FinanceEntry]]:
    """
    Entries grouped under a "Month YYYY" label of their transaction date.

    Groups appear in the order first seen; entries keep their input order
    within a group.
    """
    groups: dict[str, list[FinanceEntry]] = {}
    for entry in entries:
        label = entry.transaction_date.strftime("%B %Y")
        groups.setdefault(label, []).append(entry)
    return groups


def top_expenses(entries: Iterable[FinanceEntry], n: int = 3) -> list[FinanceEntry]:
    """The n largest expenses; equal amounts keep their input order."""
    expenses = [entry for entry in entries if entry.entry_type == EntryType.EXPENSE]
    expenses.sort(key=lambda entry: entry.amount, reverse=True)
    return expenses[:n]


# =============================================================================
# DASHBOARD
# =============================================================================

def recent_activity(
    customers: Sequence[Customer],
    entries: Sequence[FinanceEntry],
    n: int = 5,
    per_source: Optional[int] = None,
) -> list[ActivityItem]:
    """
    Newest records across both collections, newest first.

    The per_source newest of each collection (by creation time) are
    merged, re-sorted and cut to n. The dashboard uses per_source=3, so
    a burst of new customers cannot push every ledger entry off the feed.
    """
    per_source = n if per_source is None else per_source

    newest_customers = sorted(customers, key=lambda c: c.created_at, reverse=True)[:per_source]
    newest_entries = sorted(entries, key=lambda e: e.created_at, reverse=True)[:per_source]

    items = [
        ActivityItem(
            kind="customer",
            record_id=customer.id,
            description=f"New customer: {customer.full_name}",
            occurred_at=customer.created_at,
            visa_status=customer.visa_status,
        )
        for customer in newest_customers
    ]
    items.extend(
        ActivityItem(
            kind="finance",
            record_id=entry.id,
            description=f"{entry.entry_type.value}: {entry.description}",
            occurred_at=entry.created_at,
            amount=entry.amount,
            entry_type=entry.entry_type,
        )
        for entry in newest_entries
    )

    items.sort(key=lambda item: item.occurred_at, reverse=True)
    return items[:n]


def dashboard_stats(
    customers: Sequence[Customer],
    entries: Iterable[FinanceEntry],
) -> DashboardStats:
    """Headline figures over all records."""
    totals = financial_totals(entries)
    counts = visa_status_counts(customers)
    return DashboardStats(
        total_customers=len(customers),
        total_income=totals.total_income,
        total_expense=totals.total_expense,
        net_balance=totals.net_balance,
        pending_visas=counts.get(VisaStatus.PENDING, 0),
        approved_visas=counts.get(VisaStatus.APPROVED, 0),
    )


def performance_summary(stats: DashboardStats) -> PerformanceSummary:
    """
    Ratios for the dashboard's performance panel.

    Per-customer figures divide by at least one customer. Profit margin is
    zero when there is no income.
    """
    customers = Decimal(max(stats.total_customers, 1))

    approval_rate = Decimal(stats.approved_visas) / customers * 100

    if stats.total_income > 0:
        income_per_customer = stats.total_income / customers
        profit_margin = stats.net_balance / stats.total_income * 100
    else:
        income_per_customer = _ZERO
        profit_margin = _ZERO

    if stats.total_expense > 0:
        expense_per_customer = stats.total_expense / customers
    else:
        expense_per_customer = _ZERO

    return PerformanceSummary(
        approval_rate=approval_rate.quantize(_TENTH, rounding=ROUND_HALF_UP),
        income_per_customer=income_per_customer.quantize(_CENT, rounding=ROUND_HALF_UP),
        expense_per_customer=expense_per_customer.quantize(_CENT, rounding=ROUND_HALF_UP),
        profit_margin=profit_margin.quantize(_TENTH, rounding=ROUND_HALF_UP),
    )
