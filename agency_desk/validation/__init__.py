"""Form validation package."""

from agency_desk.validation.validator import (
    RecordValidator,
    ValidationError,
    ensure_valid,
    normalize_fields,
)

__all__ = ["RecordValidator", "ValidationError", "ensure_valid", "normalize_fields"]
