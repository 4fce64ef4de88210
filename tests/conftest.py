"""
Shared fixtures.

Every test gets a fresh in-memory store with predictable ids and a clock
that moves forward one minute per record, so ordering by creation time
is deterministic.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from itertools import count

import pytest

from agency_desk.models.records import (
    Customer,
    EntryType,
    FinanceCategory,
    FinanceEntry,
    MedicalFitnessStatus,
    VisaStatus,
)
from agency_desk.services.storage import InMemoryBackend, RecordStore


START = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class SteppingClock:
    """Returns START, START + 1 min, START + 2 min, ..."""

    def __init__(self, start: datetime = START, step: timedelta = timedelta(minutes=1)):
        self._next = start
        self._step = step

    def __call__(self) -> datetime:
        now = self._next
        self._next += self._step
        return now


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def id_factory():
    counter = count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def store(backend, id_factory, clock):
    return RecordStore(backend, id_factory=id_factory, clock=clock)


@pytest.fixture
def customer_form():
    return {
        "fullName": "Amina Rahman",
        "passportNumber": "BX1234567",
        "agentName": "Karim",
        "medicalFitnessStatus": "Fit",
        "visaStatus": "Processing",
    }


@pytest.fixture
def entry_form():
    return {
        "entryType": "Income",
        "category": "Visa",
        "amount": "250.00",
        "description": "Visa processing fee",
        "transactionDate": "2024-01-05",
    }


def make_customer(
    record_id: str = "c-1",
    full_name: str = "Amina Rahman",
    visa_status: VisaStatus = VisaStatus.PENDING,
    created_at: datetime = START,
    **overrides,
) -> Customer:
    fields = {
        "id": record_id,
        "full_name": full_name,
        "passport_number": "BX1234567",
        "medical_fitness_status": MedicalFitnessStatus.PENDING,
        "agent_name": "Karim",
        "visa_status": visa_status,
        "created_at": created_at,
    }
    fields.update(overrides)
    return Customer(**fields)


def make_entry(
    record_id: str = "f-1",
    entry_type: EntryType = EntryType.INCOME,
    amount: str = "100",
    transaction_date: date = date(2024, 1, 5),
    category: FinanceCategory = FinanceCategory.VISA,
    description: str = "Visa fee",
    created_at: datetime = START,
) -> FinanceEntry:
    return FinanceEntry(
        id=record_id,
        entry_type=entry_type,
        category=category,
        amount=Decimal(amount),
        description=description,
        transaction_date=transaction_date,
        created_at=created_at,
    )
