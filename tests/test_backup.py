"""
Tests for backup export/import and clear/restore.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from agency_desk.models.records import Theme, VisaStatus
from agency_desk.services import (
    BackupService,
    CapacityError,
    FormatError,
    InMemoryBackend,
    NotFoundError,
    RecordStore,
)
from agency_desk.services.storage import (
    BACKUP_BEFORE_CLEAR_KEY,
    BACKUP_BEFORE_IMPORT_KEY,
    CUSTOMERS_KEY,
    FINANCE_ENTRIES_KEY,
    THEME_KEY,
)


EXPORTED_AT = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def service(store):
    return BackupService(store, clock=lambda: EXPORTED_AT)


@pytest.fixture
def populated(store, customer_form, entry_form):
    store.customers.add(customer_form)
    store.customers.add(dict(customer_form, fullName="Bilal Ahmed", visaStatus="Approved"))
    store.finance_entries.add(entry_form)
    store.finance_entries.add(dict(entry_form, entryType="Expense", amount="0.1", category="Ticket"))
    return store


def snapshot_of(backend):
    return {key: backend.get(key) for key in backend.keys()}


class TestExport:
    """Tests for export_backup."""

    def test_export_document_fields(self, populated, service):
        """Test the exported document shape."""
        data = json.loads(service.export_backup_json())

        assert set(data) == {"customers", "financeEntries", "theme", "exportDate", "version"}
        assert data["version"] == "1.0"
        assert data["theme"] == "light"
        assert data["exportDate"].startswith("2024-03-01T09:30:00")
        assert [c["fullName"] for c in data["customers"]] == ["Amina Rahman", "Bilal Ahmed"]
        assert data["financeEntries"][1]["amount"] == 0.1

    def test_export_is_pretty_printed(self, service):
        assert service.export_backup_json().startswith("{\n  ")


class TestRoundTrip:
    """Tests for export followed by import."""

    def test_round_trip_into_empty_store(self, populated, service):
        """Test that records come back identical, ids included."""
        exported = service.export_backup_json()

        target = RecordStore(InMemoryBackend())
        BackupService(target).import_backup(exported)

        assert target.customers.list() == populated.customers.list()
        assert target.finance_entries.list() == populated.finance_entries.list()
        assert target.finance_entries.list()[1].amount == Decimal("0.1")

    def test_import_accepts_bytes(self, populated, service):
        exported = service.export_backup_json().encode("utf-8")

        target = RecordStore(InMemoryBackend())
        document = BackupService(target).import_backup(exported)

        assert len(document.customers) == 2

    def test_import_overwrites_and_keeps_snapshot(self, store, service, customer_form):
        """Test that the previous state is saved before it is replaced."""
        store.customers.add(dict(customer_form, fullName="Old Record"))
        payload = {
            "customers": [],
            "financeEntries": [],
            "theme": "dark",
        }

        service.import_backup(payload)

        assert store.customers.list() == []
        assert store.get_theme() == Theme.DARK
        snapshot = json.loads(store.read_snapshot(BACKUP_BEFORE_IMPORT_KEY))
        assert [c["fullName"] for c in snapshot["customers"]] == ["Old Record"]
        assert snapshot["theme"] == "light"


class TestImportCapacity:
    """Tests for an import that does not fit in the store."""

    def test_full_store_keeps_previous_data_in_both_collections(self, customer_form, entry_form):
        """Test that a quota error halfway through leaves no mixed dataset."""
        source = RecordStore(InMemoryBackend())
        for i in range(3):
            source.customers.add(dict(customer_form, fullName=f"New {i}"))
        for i in range(30):
            source.finance_entries.add(dict(entry_form, description=f"New fee {i}"))
        exported = BackupService(source).export_backup_json()

        target = RecordStore(InMemoryBackend(quota_bytes=3000))
        target.customers.add(dict(customer_form, fullName="Old"))
        target.finance_entries.add(dict(entry_form, description="Old fee"))
        target.set_theme(Theme.DARK)

        with pytest.raises(CapacityError) as exc_info:
            BackupService(target).import_backup(exported)

        assert exc_info.value.key == FINANCE_ENTRIES_KEY
        assert [c.full_name for c in target.customers.list()] == ["Old"]
        assert [e.description for e in target.finance_entries.list()] == ["Old fee"]
        assert target.get_theme() == Theme.DARK


class TestImportRejection:
    """Tests for documents that must be rejected without touching the store."""

    @pytest.mark.parametrize("payload, message", [
        ("{not json", "not valid JSON"),
        ("[1, 2]", "JSON object"),
        ('{"customers": []}', "financeEntries"),
        ('{"financeEntries": []}', "customers"),
        ('{"customers": {}, "financeEntries": []}', "must be a list"),
        ('{"customers": [{"id": "x"}], "financeEntries": []}', "invalid data"),
        ('{"customers": [], "financeEntries": [], "theme": "purple"}', "invalid data"),
    ])
    def test_rejected_documents(self, populated, backend, service, payload, message):
        """Test each kind of malformed backup."""
        before = snapshot_of(backend)

        with pytest.raises(FormatError) as exc_info:
            service.import_backup(payload)

        assert message in str(exc_info.value)
        assert snapshot_of(backend) == before

    def test_duplicate_ids_are_rejected(self, populated, backend, service):
        """Test that a backup cannot hold the same id twice."""
        data = json.loads(service.export_backup_json())
        data["customers"][1]["id"] = data["customers"][0]["id"]
        before = snapshot_of(backend)

        with pytest.raises(FormatError, match="duplicate ids"):
            service.import_backup(data)

        assert snapshot_of(backend) == before


class TestImportTheme:
    """Tests for the theme field on import."""

    def test_absent_theme_leaves_theme_alone(self, store, service):
        store.set_theme(Theme.DARK)

        service.import_backup({"customers": [], "financeEntries": []})

        assert store.get_theme() == Theme.DARK

    def test_null_theme_leaves_theme_alone(self, store, service):
        store.set_theme(Theme.DARK)

        service.import_backup({"customers": [], "financeEntries": [], "theme": None})

        assert store.get_theme() == Theme.DARK


class TestClearAndRestore:
    """Tests for clear_all_data and restore_from_backup."""

    def test_clear_empties_collections_and_keeps_theme(self, populated, service):
        """Test the clear action."""
        populated.set_theme(Theme.DARK)

        assert service.clear_all_data() == (2, 2)

        assert populated.customers.list() == []
        assert populated.finance_entries.list() == []
        assert populated.get_theme() == Theme.DARK
        snapshot = json.loads(populated.read_snapshot(BACKUP_BEFORE_CLEAR_KEY))
        assert snapshot["clearedDate"].startswith("2024-03-01T09:30:00")

    def test_restore_brings_records_back(self, populated, service):
        """Test undoing a clear."""
        customers = populated.customers.list()
        entries = populated.finance_entries.list()
        service.clear_all_data()

        assert service.restore_from_backup() == (2, 2)

        assert populated.customers.list() == customers
        assert populated.finance_entries.list() == entries
        assert populated.customers.list()[1].visa_status == VisaStatus.APPROVED

    def test_restore_without_clear(self, service):
        with pytest.raises(NotFoundError):
            service.restore_from_backup()

    def test_restore_from_corrupt_snapshot(self, backend, service):
        backend.set(BACKUP_BEFORE_CLEAR_KEY, "not json")

        with pytest.raises(FormatError):
            service.restore_from_backup()

    def test_restore_from_snapshot_without_collections(self, backend, service):
        backend.set(BACKUP_BEFORE_CLEAR_KEY, json.dumps({"clearedDate": "x"}))

        with pytest.raises(FormatError):
            service.restore_from_backup()


class TestStorageStats:
    """Tests for storage_stats."""

    def test_empty_store(self, service):
        """Test counts and size of an empty store."""
        stats = service.storage_stats()

        assert stats.customers == 0
        assert stats.finance_entries == 0
        # len('{"customers":[],"financeEntries":[]}') == 36
        assert stats.storage_used_kb == Decimal("0.04")
        assert stats.storage_used == "0.04 KB"

    def test_counts_follow_records(self, populated, service):
        stats = service.storage_stats()

        assert (stats.customers, stats.finance_entries) == (2, 2)
        assert stats.storage_used_kb > Decimal("0.04")

    def test_stats_ignore_snapshots_and_theme(self, populated, backend, service):
        """Test that only the two collections are measured."""
        before = service.storage_stats().storage_used_kb
        populated.set_theme(Theme.DARK)
        service.clear_all_data()
        service.restore_from_backup()

        assert service.storage_stats().storage_used_kb == before
        assert set(backend.keys()) >= {CUSTOMERS_KEY, FINANCE_ENTRIES_KEY, THEME_KEY}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
