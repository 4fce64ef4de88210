"""
Form Validation

DESIGN DECISION: Submitted form data is validated before ANY store
operation runs. A submission either passes completely and is written,
or fails and nothing is written. There are no partial writes.

Validation reports problems per field so the UI can show them inline,
next to the input that caused them. Messages are written for the office
staff, not for developers.

IMPORTANT: Validation NEVER silently fixes issues (apart from trimming
surrounding whitespace). It reports them for the user to correct.
"""

from collections.abc import Mapping
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from agency_desk.models.records import (
    CustomerDraft,
    EntryType,
    FinanceCategory,
    MAX_AMOUNT_DIGITS,
    FinanceEntryDraft,
    MedicalFitnessStatus,
    RecordModel,
    ValidationIssue,
    ValidationResult,
    VisaStatus,
)


class ValidationError(ValueError):
    """
    Submitted record fields are missing or invalid.

    Carries the individual issues so callers can report them per field.
    """

    def __init__(self, issues: list[ValidationIssue], entity_type: str = "record"):
        self.issues = issues
        self.entity_type = entity_type
        summary = "; ".join(issue.message for issue in issues) or "invalid data"
        super().__init__(f"Invalid {entity_type.replace('_', ' ')}: {summary}")

    @classmethod
    def from_pydantic(
        cls,
        exc: PydanticValidationError,
        entity_type: str = "record",
    ) -> "ValidationError":
        """Translate a pydantic error into per-field issues."""
        issues = []
        for error in exc.errors():
            loc = error.get("loc") or ("__root__",)
            issues.append(ValidationIssue(
                field=str(loc[0]),
                issue_type=error.get("type", "invalid_value"),
                message=error.get("msg", "Invalid value"),
            ))
        return cls(issues, entity_type=entity_type)

    def errors_by_field(self) -> dict[str, str]:
        return ValidationResult(issues=self.issues).errors_by_field()


def normalize_fields(model: type[RecordModel], data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Map camelCase or snake_case keys onto the model's field names.

    Keys that are not fields of the model are dropped.
    """
    by_alias = {
        (info.alias or name): name for name, info in model.model_fields.items()
    }
    normalized = {}
    for key, value in data.items():
        if key in model.model_fields:
            normalized[key] = value
        elif key in by_alias:
            normalized[by_alias[key]] = value
    return normalized


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _enum_issue(
    field: str,
    label: str,
    enum_cls: type,
    value: Any,
) -> Optional[ValidationIssue]:
    try:
        enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        return ValidationIssue(
            field=field,
            issue_type="invalid_value",
            message=f"{label} must be one of: {allowed}",
        )
    return None


class RecordValidator:
    """
    Validates customer and finance entry form submissions.

    Both methods accept a mapping of field values keyed by python name
    (``full_name``) or by persisted name (``fullName``). With
    ``partial=True`` only the fields present are checked, which is what
    an edit form submits.
    """

    def __init__(self, today: Optional[date] = None):
        self._today = today

    def validate_customer(
        self,
        data: Mapping[str, Any],
        partial: bool = False,
    ) -> ValidationResult:
        fields = normalize_fields(CustomerDraft, data)
        issues = []

        required = [
            ("full_name", "Full name is required"),
            ("passport_number", "Passport number is required"),
            ("agent_name", "Agent name is required"),
        ]
        for field, message in required:
            if partial and field not in fields:
                continue
            if _is_blank(fields.get(field)):
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing",
                    message=message,
                ))

        for field, label, enum_cls in (
            ("medical_fitness_status", "Medical fitness status", MedicalFitnessStatus),
            ("visa_status", "Visa status", VisaStatus),
        ):
            if field in fields and fields[field] is not None:
                issue = _enum_issue(field, label, enum_cls, fields[field])
                if issue:
                    issues.append(issue)

        return ValidationResult(issues=issues)

    def validate_finance_entry(
        self,
        data: Mapping[str, Any],
        partial: bool = False,
    ) -> ValidationResult:
        fields = normalize_fields(FinanceEntryDraft, data)
        issues = []

        def check(field: str) -> bool:
            return not partial or field in fields

        if check("entry_type"):
            issue = _enum_issue("entry_type", "Entry type", EntryType, fields.get("entry_type"))
            if issue:
                issues.append(issue)

        if check("category"):
            issue = _enum_issue("category", "Category", FinanceCategory, fields.get("category"))
            if issue:
                issues.append(issue)

        if check("amount"):
            amount = self._parse_amount(fields.get("amount"))
            if amount is None or amount <= 0:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Amount must be greater than 0",
                ))
            elif self._digit_count(amount) > MAX_AMOUNT_DIGITS:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message=f"Amount can have at most {MAX_AMOUNT_DIGITS} digits",
                ))

        if check("description") and _is_blank(fields.get("description")):
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Description is required",
            ))

        if check("transaction_date"):
            raw = fields.get("transaction_date")
            if _is_blank(raw):
                issues.append(ValidationIssue(
                    field="transaction_date",
                    issue_type="missing",
                    message="Transaction date is required",
                ))
            else:
                parsed = self._parse_date(raw)
                if parsed is None:
                    issues.append(ValidationIssue(
                        field="transaction_date",
                        issue_type="invalid_format",
                        message="Transaction date must be a date (YYYY-MM-DD)",
                    ))
                elif parsed > (self._today or date.today()):
                    # Post-dated entries are allowed, just flagged
                    issues.append(ValidationIssue(
                        field="transaction_date",
                        issue_type="future_date",
                        message="Transaction date is in the future",
                        severity="warning",
                    ))

        return ValidationResult(issues=issues)

    def build_customer(self, data: Mapping[str, Any]) -> CustomerDraft:
        """
        Validate a new-customer submission and build the draft.

        Raises:
            ValidationError: If any error-level issue is found
        """
        result = self.validate_customer(data)
        ensure_valid(result, "customer")
        try:
            return CustomerDraft.model_validate(normalize_fields(CustomerDraft, data))
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, "customer") from e

    def build_finance_entry(self, data: Mapping[str, Any]) -> FinanceEntryDraft:
        """
        Validate a new-entry submission and build the draft.

        Raises:
            ValidationError: If any error-level issue is found
        """
        result = self.validate_finance_entry(data)
        ensure_valid(result, "finance_entry")
        try:
            return FinanceEntryDraft.model_validate(normalize_fields(FinanceEntryDraft, data))
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, "finance_entry") from e

    @staticmethod
    def _parse_amount(value: Any) -> Optional[Decimal]:
        if value is None or isinstance(value, bool):
            return None
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
        if not amount.is_finite():
            return None
        return amount

    @staticmethod
    def _digit_count(amount: Decimal) -> int:
        _, digits, exponent = amount.normalize().as_tuple()
        if exponent >= 0:
            return len(digits) + exponent
        return max(len(digits), -exponent)

    @staticmethod
    def _parse_date(value: Any) -> Optional[date]:
        if isinstance(value, date):
            return value
        try:
            return date.fromisoformat(str(value).strip())
        except ValueError:
            return None

    @staticmethod
    def get_user_friendly_summary(result: ValidationResult) -> str:
        """Short message for a toast or banner above the form."""
        if result.is_valid and not result.issues:
            return "All fields look good."
        if result.is_valid:
            return "Saved with warnings: " + "; ".join(i.message for i in result.issues)
        count = result.error_count
        noun = "problem" if count == 1 else "problems"
        return f"Please fix {count} {noun} before saving."


def ensure_valid(result: ValidationResult, entity_type: str = "record") -> None:
    """
    Raise if the result contains errors.

    Raises:
        ValidationError: Carrying only the error-level issues
    """
    if result.has_errors:
        errors = [issue for issue in result.issues if issue.severity == "error"]
        raise ValidationError(errors, entity_type=entity_type)
