"""
Table Search, Filter and Sort

Helpers behind the customer and finance tables. They take a list of
records and return a new list; the input is never modified.

Sorting rules:
- Text (names, statuses, categories, ISO dates) compares by its letters
  first, ignoring case and accents, so "bob" sorts before "Zed" and "émile"
  next to "emile" rather than after "z". Ties on letters fall back to the
  locale collation (set at startup), then to the raw text.
- Numbers (amounts) compare numerically.
- A column with missing values or a mix of types is left in input order
  rather than guessed at.
- Equal values keep their input order in both directions.
"""

import locale
import unicodedata
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

from agency_desk.models.records import (
    EntryType,
    FinanceEntry,
    RecordModel,
    SortDirection,
)


CUSTOMER_SEARCH_FIELDS = ("full_name", "passport_number", "agent_name")
FINANCE_SEARCH_FIELDS = ("description", "category")

# (field, direction) each table starts with
CUSTOMER_DEFAULT_SORT = ("created_at", SortDirection.DESC)
FINANCE_DEFAULT_SORT = ("transaction_date", SortDirection.DESC)


def _text(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def search_records(
    records: Iterable[RecordModel],
    query: str,
    fields: Sequence[str],
) -> list:
    """
    Records where any of the fields contains the query, ignoring case.

    A blank query matches everything.
    """
    needle = query.strip().casefold()
    if not needle:
        return list(records)

    matches = []
    for record in records:
        for field in fields:
            value = getattr(record, field, None)
            if value is not None and needle in _text(value).casefold():
                matches.append(record)
                break
    return matches


def filter_entries_by_type(
    entries: Iterable[FinanceEntry],
    entry_type: Optional[Union[EntryType, str]] = None,
) -> list[FinanceEntry]:
    """Only income or only expenses; None keeps both."""
    if entry_type is None:
        return list(entries)
    entry_type = EntryType(entry_type)
    return [entry for entry in entries if entry.entry_type == entry_type]


def _resolve_field(record: RecordModel, field: str) -> str:
    """Accept the python name or the persisted camelCase name."""
    model_fields = type(record).model_fields
    if field in model_fields:
        return field
    for name, info in model_fields.items():
        if info.alias == field:
            return name
    raise ValueError(f"Unknown sort field: {field!r}")


def _collation_key(text: str) -> tuple[str, str, str]:
    """Letters first (no case, no accents), then locale order, then raw text."""
    decomposed = unicodedata.normalize("NFKD", text)
    letters = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return letters.casefold(), locale.strxfrm(text), text


def _sort_key(value: Any) -> tuple[str, Any]:
    """(kind, comparable) for one cell; kind is 'number', 'text' or 'other'."""
    if isinstance(value, bool):
        return "other", value
    if isinstance(value, (int, float, Decimal)):
        return "number", value
    if isinstance(value, (datetime, date)):
        return "text", _collation_key(value.isoformat())
    if isinstance(value, (str, Enum)):
        return "text", _collation_key(_text(value))
    return "other", value


def sort_records(
    records: Sequence[RecordModel],
    field: str,
    direction: Union[SortDirection, str] = SortDirection.ASC,
) -> list:
    """
    Records ordered by one field.

    Returns the records in input order if the field holds missing values
    or values of different kinds.
    """
    records = list(records)
    if not records:
        return records

    name = _resolve_field(records[0], field)
    keys = [_sort_key(getattr(record, name)) for record in records]

    kinds = {kind for kind, _ in keys}
    if len(kinds) != 1 or "other" in kinds:
        return records

    descending = SortDirection(direction) == SortDirection.DESC
    order = sorted(range(len(records)), key=lambda i: keys[i][1], reverse=descending)
    return [records[i] for i in order]
