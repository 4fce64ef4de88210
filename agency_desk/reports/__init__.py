"""Report derivations, table helpers and CSV exports."""

from agency_desk.reports.derivations import (
    category_breakdown,
    dashboard_stats,
    default_report_period,
    describe_period,
    filter_by_date_range,
    financial_totals,
    group_by_month,
    performance_summary,
    recent_activity,
    top_expenses,
    visa_status_counts,
)
from agency_desk.reports.exports import (
    backup_filename,
    business_report_csv,
    business_report_filename,
    customers_csv,
    customers_filename,
    finance_entries_csv,
    finance_report_filename,
)
from agency_desk.reports.tables import (
    CUSTOMER_DEFAULT_SORT,
    CUSTOMER_SEARCH_FIELDS,
    FINANCE_DEFAULT_SORT,
    FINANCE_SEARCH_FIELDS,
    filter_entries_by_type,
    search_records,
    sort_records,
)

__all__ = [
    # Derivations
    "category_breakdown",
    "dashboard_stats",
    "default_report_period",
    "describe_period",
    "filter_by_date_range",
    "financial_totals",
    "group_by_month",
    "performance_summary",
    "recent_activity",
    "top_expenses",
    "visa_status_counts",
    # Exports
    "backup_filename",
    "business_report_csv",
    "business_report_filename",
    "customers_csv",
    "customers_filename",
    "finance_entries_csv",
    "finance_report_filename",
    # Tables
    "CUSTOMER_DEFAULT_SORT",
    "CUSTOMER_SEARCH_FIELDS",
    "FINANCE_DEFAULT_SORT",
    "FINANCE_SEARCH_FIELDS",
    "filter_entries_by_type",
    "search_records",
    "sort_records",
]
