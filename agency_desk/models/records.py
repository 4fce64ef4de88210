"""
Core Record Models for Agency Desk

These models define the schemas for the two record collections
(customers and finance entries) and for the reports derived from them.

DESIGN DECISION: Python attributes are snake_case, but every model
serializes with the camelCase field names used in the persisted documents
(fullName, passportNumber, entryType, createdAt, ...). Backups written by
older versions of the dashboard therefore load without translation.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    computed_field,
)
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class MedicalFitnessStatus(str, Enum):
    """Outcome of the customer's medical examination."""
    PENDING = "Pending"
    FIT = "Fit"
    UNFIT = "Unfit"


class VisaStatus(str, Enum):
    """Where the customer's visa application stands."""
    PENDING = "Pending"
    PROCESSING = "Processing"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class EntryType(str, Enum):
    """Direction of a ledger entry."""
    INCOME = "Income"
    EXPENSE = "Expense"


class FinanceCategory(str, Enum):
    """
    Ledger categories.

    The values are display strings, "Service Charge" included, because they
    are persisted and exported verbatim.
    """
    VISA = "Visa"
    MEDICAL = "Medical"
    TICKET = "Ticket"
    SERVICE_CHARGE = "Service Charge"
    OTHERS = "Others"


class Theme(str, Enum):
    """Dashboard colour scheme."""
    LIGHT = "light"
    DARK = "dark"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


def _as_utc(value: datetime) -> datetime:
    # Backups from older exports may carry naive timestamps
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


Timestamp = Annotated[datetime, AfterValidator(_as_utc)]

# Decimal in Python, plain number in JSON
# A JSON number is read back as a double, which keeps 15 digits exactly
MAX_AMOUNT_DIGITS = 15

Money = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]


class RecordModel(BaseModel):
    """Base for every persisted model: camelCase on the wire."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# CUSTOMER
# =============================================================================

class CustomerDraft(RecordModel):
    """
    Caller-supplied customer fields.

    This is everything a form collects. Identity and creation time are
    assigned by the store, never by the caller.
    """
    full_name: str = Field(
        ...,
        min_length=1,
        description="Customer's full name"
    )
    passport_number: str = Field(
        ...,
        min_length=1,
        description="Passport number"
    )
    medical_fitness_status: MedicalFitnessStatus = Field(
        default=MedicalFitnessStatus.PENDING,
        description="Medical examination result"
    )
    agent_name: str = Field(
        ...,
        min_length=1,
        description="Agent who referred the customer"
    )
    visa_status: VisaStatus = Field(
        default=VisaStatus.PENDING,
        description="Visa application status"
    )
    document_url: Optional[str] = Field(
        default=None,
        description="Locator of the uploaded document (may expire)"
    )
    document_name: Optional[str] = Field(
        default=None,
        description="Display name of the uploaded document"
    )


class Customer(CustomerDraft):
    """A persisted customer record."""
    id: str = Field(
        ...,
        min_length=1,
        description="Opaque unique identity"
    )
    created_at: Timestamp = Field(
        ...,
        description="When the record was created (never changes)"
    )


# =============================================================================
# FINANCE ENTRY
# =============================================================================

class FinanceEntryDraft(RecordModel):
    """Caller-supplied ledger entry fields."""
    entry_type: EntryType = Field(
        ...,
        description="Income or expense"
    )
    category: FinanceCategory = Field(
        ...,
        description="Ledger category"
    )
    amount: Money = Field(
        ...,
        gt=0,
        max_digits=MAX_AMOUNT_DIGITS,
        description="Amount, always positive; direction comes from entry_type"
    )
    description: str = Field(
        ...,
        min_length=1,
        description="What the entry is for"
    )
    transaction_date: date = Field(
        ...,
        description="Calendar date of the transaction"
    )


class FinanceEntry(FinanceEntryDraft):
    """A persisted ledger entry."""
    id: str = Field(
        ...,
        min_length=1,
        description="Opaque unique identity"
    )
    created_at: Timestamp = Field(
        ...,
        description="When the record was created (never changes)"
    )


# Fields that update() must never overwrite
IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


# =============================================================================
# DERIVED REPORT MODELS (never persisted)
# =============================================================================

class FinancialTotals(BaseModel):
    """Income/expense totals over a set of entries."""
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")

    @computed_field
    @property
    def net_balance(self) -> Decimal:
        return self.total_income - self.total_expense


class CategoryTotals(BaseModel):
    """Income and expense accumulated for one category."""
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")

    @property
    def net(self) -> Decimal:
        return self.income - self.expense


class ActivityItem(BaseModel):
    """
    One line of the dashboard's recent activity feed.

    Customer items carry the visa status; finance items carry the amount
    and entry type.
    """
    kind: str = Field(
        ...,
        pattern="^(customer|finance)$",
        description="Which collection the record came from"
    )
    record_id: str
    description: str
    occurred_at: datetime
    visa_status: Optional[VisaStatus] = None
    amount: Optional[Decimal] = None
    entry_type: Optional[EntryType] = None


class DashboardStats(BaseModel):
    """Headline numbers shown on the dashboard."""
    total_customers: int = Field(default=0, ge=0)
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    net_balance: Decimal = Decimal("0")
    pending_visas: int = Field(default=0, ge=0)
    approved_visas: int = Field(default=0, ge=0)

    @property
    def has_data(self) -> bool:
        return bool(self.total_customers or self.total_income or self.total_expense)


class PerformanceSummary(BaseModel):
    """Ratios derived from DashboardStats."""
    approval_rate: Decimal = Field(
        ...,
        description="Approved visas as a percentage of customers"
    )
    income_per_customer: Decimal
    expense_per_customer: Decimal
    profit_margin: Decimal = Field(
        ...,
        description="Net balance as a percentage of income"
    )


class StorageStats(BaseModel):
    """Record counts and approximate footprint for the settings page."""
    customers: int = Field(ge=0)
    finance_entries: int = Field(ge=0)
    storage_used_kb: Decimal

    @property
    def storage_used(self) -> str:
        return f"{self.storage_used_kb:.2f} KB"


class StoredDocument(BaseModel):
    """Result of a document upload."""
    url: str
    name: str


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem with submitted form data."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one form submission."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    def errors_by_field(self) -> dict[str, str]:
        """First error message per field, for inline display next to inputs."""
        errors: dict[str, str] = {}
        for issue in self.issues:
            if issue.severity == "error":
                errors.setdefault(issue.field, issue.message)
        return errors
