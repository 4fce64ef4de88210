"""
Streamlit Frontend for Agency Desk

This is the dashboard the agency's office staff use every day to keep
track of customers, visa progress and the money coming in and going out.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Form problems are shown next to the field that caused them
3. Destructive actions (delete, clear all) ask for confirmation
4. Every export is a download button; nothing leaves the machine silently
5. No hidden actions

All reads and writes go through the flows in agency_desk.orchestrator.
"""

import locale
from datetime import date
from decimal import Decimal
from typing import Optional

import streamlit as st
import structlog

from agency_desk.audit import configure_logging
from agency_desk.config import get_settings, validate_all_settings
from agency_desk.models.records import (
    Customer,
    EntryType,
    FinanceCategory,
    FinanceEntry,
    MedicalFitnessStatus,
    SortDirection,
    Theme,
    VisaStatus,
)
from agency_desk.orchestrator import (
    AppComponents,
    CustomerFlow,
    FinanceFlow,
    ReportFlow,
    SettingsFlow,
    create_app_components,
)
from agency_desk.reports import (
    backup_filename,
    business_report_filename,
    customers_filename,
    default_report_period,
    describe_period,
    finance_report_filename,
)
from agency_desk.services.backup import FormatError
from agency_desk.services.documents import DocumentError
from agency_desk.services.storage import CapacityError, NotFoundError
from agency_desk.validation import ValidationError


# Page configuration
st.set_page_config(
    page_title="Agency Desk",
    page_icon="🛂",
    layout="wide",
    initial_sidebar_state="expanded",
)

DARK_THEME_CSS = """
<style>
    .stApp, [data-testid="stSidebar"] {
        background-color: #0e1117;
        color: #fafafa;
    }
    .stApp h1, .stApp h2, .stApp h3, .stApp p, .stApp label {
        color: #fafafa;
    }
</style>
"""

VISA_BADGES = {
    VisaStatus.PENDING: "🟡",
    VisaStatus.PROCESSING: "🔵",
    VisaStatus.APPROVED: "🟢",
    VisaStatus.REJECTED: "🔴",
}

SORT_DIRECTIONS = {
    "Newest / Z-A / highest first": SortDirection.DESC,
    "Oldest / A-Z / lowest first": SortDirection.ASC,
}


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    settings = get_settings()
    configure_logging(settings.app.log_level, settings.app.log_json)
    try:
        # Table sorting breaks letter ties with the user's collation
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        structlog.get_logger(__name__).warning("collation_locale_unavailable", error=str(e))
    return create_app_components(settings)


def money(amount: Decimal) -> str:
    return f"{get_settings().app.currency_symbol}{amount:,.2f}"


def show_field_errors(error: ValidationError):
    """List each invalid field with its message."""
    for field, message in error.errors_by_field().items():
        st.error(f"**{field.replace('_', ' ').title()}**: {message}")


def main():
    """Main application entry point."""
    components = get_components()

    if components.settings.get_theme() == Theme.DARK:
        st.markdown(DARK_THEME_CSS, unsafe_allow_html=True)

    # Sidebar navigation
    st.sidebar.title("🛂 Agency Desk")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "👥 Customers", "💵 Finance", "📈 Reports", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **Daily routine:**
        1. Add new customers as they walk in
        2. Update visa status as it changes
        3. Record every payment and expense
        """
    )

    # Route to appropriate page
    if page == "📊 Dashboard":
        render_dashboard_page(components.reports)
    elif page == "👥 Customers":
        render_customers_page(components.customers)
    elif page == "💵 Finance":
        render_finance_page(components.finance)
    elif page == "📈 Reports":
        render_reports_page(components.reports)
    elif page == "⚙️ Settings":
        render_settings_page(components.settings)


# =============================================================================
# DASHBOARD
# =============================================================================

def render_dashboard_page(report_flow: ReportFlow):
    """Render the dashboard page."""
    st.title("📊 Dashboard")
    st.markdown("Overview of customers and finances.")

    app_settings = get_settings().app

    @st.fragment(run_every=app_settings.refresh_interval_seconds)
    def live_panel():
        # Re-read the store on every tick so edits from another tab show up
        stats, performance = report_flow.dashboard()

        col1, col2, col3 = st.columns(3)
        col1.metric("Total Customers", stats.total_customers)
        col2.metric("Total Income", money(stats.total_income))
        col3.metric("Total Expense", money(stats.total_expense))

        col4, col5, col6 = st.columns(3)
        col4.metric("Net Balance", money(stats.net_balance))
        col5.metric("Pending Visas", stats.pending_visas)
        col6.metric("Approved Visas", stats.approved_visas)

        if not stats.has_data:
            st.info(
                "Nothing recorded yet. Add a customer or a finance entry "
                "to see your figures here."
            )
            return

        st.markdown("---")
        left, right = st.columns(2)

        with left:
            st.markdown("### Recent Activity")
            activity = report_flow.recent_activity(
                n=app_settings.recent_activity_limit,
                per_source=app_settings.recent_activity_per_source,
            )
            for item in activity:
                when = item.occurred_at.strftime("%d %b %Y %H:%M")
                if item.kind == "customer":
                    badge = VISA_BADGES.get(item.visa_status, "")
                    st.markdown(f"👤 {item.description} {badge} _{when}_")
                else:
                    sign = "+" if item.entry_type == EntryType.INCOME else "-"
                    st.markdown(f"💵 {item.description} **{sign}{money(item.amount)}** _{when}_")

        with right:
            st.markdown("### Performance Summary")
            st.markdown(f"**Visa approval rate:** {performance.approval_rate}%")
            st.markdown(f"**Income per customer:** {money(performance.income_per_customer)}")
            st.markdown(f"**Expense per customer:** {money(performance.expense_per_customer)}")
            st.markdown(f"**Profit margin:** {performance.profit_margin}%")

    live_panel()


# =============================================================================
# CUSTOMERS
# =============================================================================

def customer_row(customer: Customer) -> dict:
    return {
        "Full Name": customer.full_name,
        "Passport": customer.passport_number,
        "Medical": customer.medical_fitness_status.value,
        "Agent": customer.agent_name,
        "Visa": f"{VISA_BADGES[customer.visa_status]} {customer.visa_status.value}",
        "Document": customer.document_url or "",
        "Created": customer.created_at.date(),
    }


def render_customer_form(
    customer_flow: CustomerFlow,
    existing: Optional[Customer] = None,
):
    """Add form, or edit form when an existing customer is given."""
    key = f"customer_form_{existing.id if existing else 'new'}"
    statuses = list(MedicalFitnessStatus)
    visas = list(VisaStatus)

    with st.form(key, clear_on_submit=existing is None):
        col1, col2 = st.columns(2)
        with col1:
            full_name = st.text_input("Full Name *", value=existing.full_name if existing else "")
            passport_number = st.text_input(
                "Passport Number *",
                value=existing.passport_number if existing else "",
            )
            agent_name = st.text_input("Agent Name *", value=existing.agent_name if existing else "")
        with col2:
            medical = st.selectbox(
                "Medical Fitness Status",
                options=statuses,
                index=statuses.index(existing.medical_fitness_status) if existing else 0,
                format_func=lambda s: s.value,
            )
            visa = st.selectbox(
                "Visa Status",
                options=visas,
                index=visas.index(existing.visa_status) if existing else 0,
                format_func=lambda s: s.value,
            )
            upload = st.file_uploader(
                "Document (PDF or image)",
                type=get_settings().documents.allowed_extensions_list,
            )

        submitted = st.form_submit_button(
            "💾 Save Changes" if existing else "➕ Add Customer",
            type="primary",
        )

    if not submitted:
        return

    form = {
        "fullName": full_name,
        "passportNumber": passport_number,
        "agentName": agent_name,
        "medicalFitnessStatus": medical.value,
        "visaStatus": visa.value,
    }
    document = (upload.getvalue(), upload.name) if upload is not None else None

    try:
        if existing:
            if customer_flow.update_customer(existing.id, form, document=document):
                st.success("Customer updated.")
            else:
                st.warning("That customer no longer exists.")
        else:
            customer = customer_flow.add_customer(form, document=document)
            st.success(f"Customer {customer.full_name} added.")
    except ValidationError as e:
        show_field_errors(e)
    except DocumentError as e:
        st.error(f"Document not saved: {e}")
    except CapacityError:
        st.error("Storage is full. Export a backup and clear old records before adding more.")


def render_customers_page(customer_flow: CustomerFlow):
    """Render the customers page."""
    st.title("👥 Customers")
    st.markdown("Add customers and track their visa progress.")

    with st.expander("➕ New Customer", expanded=False):
        render_customer_form(customer_flow)

    st.markdown("---")

    col1, col2, col3 = st.columns([2, 1, 1])
    with col1:
        query = st.text_input("🔍 Search by name, passport or agent", key="customer_search")
    with col2:
        sort_field = st.selectbox(
            "Sort by",
            options=["created_at", "full_name", "passport_number", "agent_name", "visa_status"],
            format_func=lambda f: f.replace("_", " ").title(),
            key="customer_sort",
        )
    with col3:
        direction = st.selectbox("Order", options=list(SORT_DIRECTIONS), key="customer_order")

    customers = customer_flow.table(query, sort_field, SORT_DIRECTIONS[direction])

    if not customers:
        st.info("No customers found.")
        return

    st.dataframe(
        [customer_row(c) for c in customers],
        use_container_width=True,
        hide_index=True,
        column_config={"Document": st.column_config.LinkColumn("Document")},
    )

    st.download_button(
        "📥 Export CSV",
        data=customer_flow.export_csv(customers),
        file_name=customers_filename(date.today()),
        mime="text/csv",
    )

    st.markdown("### Edit or Delete")
    selected = st.selectbox(
        "Customer",
        options=customers,
        format_func=lambda c: f"{c.full_name} ({c.passport_number})",
        key="customer_selected",
    )
    if selected is None:
        return

    render_customer_form(customer_flow, existing=selected)

    confirm_key = f"confirm_delete_{selected.id}"
    if st.session_state.get(confirm_key):
        st.warning(f"Delete {selected.full_name}? This cannot be undone.")
        col_yes, col_no = st.columns(2)
        if col_yes.button("Yes, delete", type="primary", key=f"yes_{selected.id}"):
            customer_flow.delete_customer(selected.id)
            st.session_state[confirm_key] = False
            st.rerun()
        if col_no.button("Cancel", key=f"no_{selected.id}"):
            st.session_state[confirm_key] = False
            st.rerun()
    elif st.button("🗑️ Delete Customer", key=f"delete_{selected.id}"):
        st.session_state[confirm_key] = True
        st.rerun()


# =============================================================================
# FINANCE
# =============================================================================

def entry_row(entry: FinanceEntry) -> dict:
    return {
        "Date": entry.transaction_date,
        "Type": entry.entry_type.value,
        "Category": entry.category.value,
        "Amount": float(entry.amount),
        "Description": entry.description,
    }


def render_finance_form(
    finance_flow: FinanceFlow,
    existing: Optional[FinanceEntry] = None,
):
    """Add form, or edit form when an existing entry is given."""
    key = f"finance_form_{existing.id if existing else 'new'}"
    types = list(EntryType)
    categories = list(FinanceCategory)

    with st.form(key, clear_on_submit=existing is None):
        col1, col2 = st.columns(2)
        with col1:
            entry_type = st.selectbox(
                "Type *",
                options=types,
                index=types.index(existing.entry_type) if existing else 0,
                format_func=lambda t: t.value,
            )
            category = st.selectbox(
                "Category *",
                options=categories,
                index=categories.index(existing.category) if existing else 0,
                format_func=lambda c: c.value,
            )
            amount = st.number_input(
                "Amount *",
                min_value=0.0,
                value=float(existing.amount) if existing else 0.0,
                step=0.01,
                format="%.2f",
            )
        with col2:
            description = st.text_input("Description *", value=existing.description if existing else "")
            transaction_date = st.date_input(
                "Transaction Date *",
                value=existing.transaction_date if existing else date.today(),
            )

        submitted = st.form_submit_button(
            "💾 Save Changes" if existing else "➕ Add Entry",
            type="primary",
        )

    if not submitted:
        return

    form = {
        "entryType": entry_type.value,
        "category": category.value,
        # via str so 0.1 stays 0.1
        "amount": str(amount),
        "description": description,
        "transactionDate": transaction_date,
    }

    try:
        if existing:
            if finance_flow.update_entry(existing.id, form):
                st.success("Entry updated.")
            else:
                st.warning("That entry no longer exists.")
        else:
            entry = finance_flow.add_entry(form)
            st.success(f"{entry.entry_type.value} of {money(entry.amount)} recorded.")
    except ValidationError as e:
        show_field_errors(e)
    except CapacityError:
        st.error("Storage is full. Export a backup and clear old records before adding more.")


def render_finance_page(finance_flow: FinanceFlow):
    """Render the finance page."""
    st.title("💵 Finance")
    st.markdown("Record income and expenses.")

    with st.expander("➕ New Entry", expanded=False):
        render_finance_form(finance_flow)

    top = finance_flow.top_expenses(get_settings().app.top_expenses_limit)
    if top:
        st.markdown("### Top Expenses")
        cols = st.columns(len(top))
        for col, entry in zip(cols, top):
            col.metric(entry.description, money(entry.amount), entry.category.value)

    st.markdown("---")

    col1, col2, col3, col4 = st.columns([2, 1, 1, 1])
    with col1:
        query = st.text_input("🔍 Search description or category", key="finance_search")
    with col2:
        type_filter = st.selectbox(
            "Type",
            options=[None] + list(EntryType),
            format_func=lambda t: "All" if t is None else t.value,
            key="finance_type",
        )
    with col3:
        sort_field = st.selectbox(
            "Sort by",
            options=["transaction_date", "amount", "entry_type", "category", "description"],
            format_func=lambda f: f.replace("_", " ").title(),
            key="finance_sort",
        )
    with col4:
        direction = st.selectbox("Order", options=list(SORT_DIRECTIONS), key="finance_order")

    entries = finance_flow.table(query, type_filter, sort_field, SORT_DIRECTIONS[direction])

    if not entries:
        st.info("No entries found.")
        return

    st.download_button(
        "📥 Export CSV",
        data=finance_flow.export_csv(entries),
        file_name=finance_report_filename(date.today()),
        mime="text/csv",
    )

    for month, month_entries in finance_flow.monthly_groups(entries).items():
        totals = finance_flow.totals(month_entries)
        st.markdown(f"#### {month}")
        st.caption(
            f"Income {money(totals.total_income)} · "
            f"Expense {money(totals.total_expense)} · "
            f"Net {money(totals.net_balance)}"
        )
        st.dataframe(
            [entry_row(e) for e in month_entries],
            use_container_width=True,
            hide_index=True,
            column_config={"Amount": st.column_config.NumberColumn(format="%.2f")},
        )

    st.markdown("### Edit or Delete")
    selected = st.selectbox(
        "Entry",
        options=entries,
        format_func=lambda e: f"{e.transaction_date} {e.entry_type.value}: {e.description} ({money(e.amount)})",
        key="finance_selected",
    )
    if selected is None:
        return

    render_finance_form(finance_flow, existing=selected)

    if st.button("🗑️ Delete Entry", key=f"delete_{selected.id}"):
        finance_flow.delete_entry(selected.id)
        st.rerun()


# =============================================================================
# REPORTS
# =============================================================================

def render_reports_page(report_flow: ReportFlow):
    """Render the reports page."""
    st.title("📈 Reports")

    default_start, default_end = default_report_period(date.today())
    col1, col2 = st.columns(2)
    start = col1.date_input("From", value=default_start)
    end = col2.date_input("To", value=default_end)

    if start > end:
        st.error("The start date must be on or before the end date.")
        return

    report = report_flow.period_report(start, end)
    st.markdown(f"Figures {describe_period(start, end)}.")

    col1, col2, col3 = st.columns(3)
    col1.metric("Total Income", money(report.totals.total_income))
    col2.metric("Total Expense", money(report.totals.total_expense))
    col3.metric("Net Balance", money(report.totals.net_balance))

    left, right = st.columns(2)
    with left:
        st.markdown("### Visa Status")
        if report.visa_counts:
            for status, count in report.visa_counts.items():
                st.markdown(f"{VISA_BADGES[status]} **{status.value}**: {count}")
        else:
            st.info("No customers yet.")

    with right:
        st.markdown("### By Category")
        if report.categories:
            st.dataframe(
                [
                    {
                        "Category": category.value,
                        "Income": float(totals.income),
                        "Expense": float(totals.expense),
                        "Net": float(totals.net),
                    }
                    for category, totals in report.categories.items()
                ],
                use_container_width=True,
                hide_index=True,
            )
        else:
            st.info("No entries in this period.")

    st.download_button(
        "📥 Export CSV",
        data=report_flow.export_csv(start, end),
        file_name=business_report_filename(date.today()),
        mime="text/csv",
    )


# =============================================================================
# SETTINGS
# =============================================================================

def render_settings_page(settings_flow: SettingsFlow):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Storage")
    stats = settings_flow.storage_stats()
    col1, col2, col3 = st.columns(3)
    col1.metric("Customers", stats.customers)
    col2.metric("Finance Entries", stats.finance_entries)
    col3.metric("Storage Used", stats.storage_used)

    st.markdown("### Appearance")
    dark = st.toggle("Dark mode", value=settings_flow.get_theme() == Theme.DARK)
    if dark != (settings_flow.get_theme() == Theme.DARK):
        settings_flow.set_theme(Theme.DARK if dark else Theme.LIGHT)
        st.rerun()

    st.markdown("---")
    st.markdown("### Backup")

    st.download_button(
        "📥 Export All Data",
        data=settings_flow.export_backup(),
        file_name=backup_filename(date.today()),
        mime="application/json",
        help="Download a complete backup of your customers and finance data",
    )

    backup_file = st.file_uploader(
        "Import a backup file",
        type=["json"],
        help="Replaces all current data. A copy of the current data is kept first.",
    )
    if backup_file is not None and st.button("📤 Import Data", type="primary"):
        try:
            document = settings_flow.import_backup(backup_file.getvalue())
            st.success(
                f"Imported {len(document.customers)} customers and "
                f"{len(document.finance_entries)} finance entries."
            )
        except FormatError as e:
            st.error(f"Import failed. Please check the file format and try again. ({e})")
        except CapacityError:
            st.error("The backup is too large for the available storage.")

    st.markdown("---")
    st.markdown("### Danger Zone")

    if st.session_state.get("confirm_clear"):
        st.warning("This removes every customer and finance entry. Are you sure?")
        col_yes, col_no = st.columns(2)
        if col_yes.button("Yes, clear everything", type="primary"):
            customers, entries = settings_flow.clear_all_data()
            st.session_state.confirm_clear = False
            st.success(f"Cleared {customers} customers and {entries} finance entries.")
        if col_no.button("Cancel"):
            st.session_state.confirm_clear = False
            st.rerun()
    elif st.button("🗑️ Clear All Data"):
        st.session_state.confirm_clear = True
        st.rerun()

    if st.button("♻️ Restore From Last Clear", help="Restore data from the last automatic backup"):
        try:
            customers, entries = settings_flow.restore_from_backup()
            st.success(f"Restored {customers} customers and {entries} finance entries.")
        except NotFoundError:
            st.info("No backup found to restore from.")
        except FormatError as e:
            st.error(f"Restore failed: {e}")

    st.markdown("---")
    st.markdown("### Configuration")

    status = validate_all_settings()
    for name, key in [("Storage", "storage"), ("Documents", "documents"), ("Cloudinary", "cloudinary")]:
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {name} - Configured")
        else:
            st.error(f"❌ {name} - {status.get(f'{key}_error', 'Not configured')}")

    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
