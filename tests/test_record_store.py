"""
Tests for the record store and its key-value backends.
"""

import json
import threading
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from agency_desk.models.records import (
    CustomerDraft,
    EntryType,
    MedicalFitnessStatus,
    Theme,
    VisaStatus,
)
from agency_desk.services.storage import (
    CUSTOMERS_KEY,
    FINANCE_ENTRIES_KEY,
    THEME_KEY,
    CapacityError,
    DuplicateError,
    FileBackend,
    InMemoryBackend,
    RecordStore,
)
from agency_desk.validation import ValidationError


class CountingBackend(InMemoryBackend):
    """In-memory backend that records every write."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.writes = []

    def set(self, key, value):
        self.writes.append(key)
        super().set(key, value)


class TestAdd:
    """Tests for RecordCollection.add."""

    def test_add_then_list_contains_record_with_input_fields(self, customer_form):
        """Test that an added record is listed with exactly the submitted fields."""
        store = RecordStore(InMemoryBackend())
        before = datetime.now(timezone.utc)

        created = store.customers.add(customer_form)
        listed = store.customers.list()

        assert len(listed) == 1
        record = listed[0]
        assert record == created
        assert record.full_name == "Amina Rahman"
        assert record.passport_number == "BX1234567"
        assert record.agent_name == "Karim"
        assert record.medical_fitness_status == MedicalFitnessStatus.FIT
        assert record.visa_status == VisaStatus.PROCESSING
        assert record.id
        assert record.created_at >= before

    def test_add_generates_unique_ids(self, customer_form):
        """Test that rapid successive adds never share an id."""
        store = RecordStore(InMemoryBackend())

        for _ in range(50):
            store.customers.add(customer_form)

        ids = [c.id for c in store.customers.list()]
        assert len(set(ids)) == 50

    def test_add_ignores_caller_id_and_created_at(self, store, customer_form):
        """Test that identity and creation time always come from the store."""
        payload = dict(customer_form, id="mine", createdAt="1999-01-01T00:00:00Z")

        record = store.customers.add(payload)

        assert record.id == "id-1"
        assert record.created_at == datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

    def test_add_accepts_draft_model(self, store):
        """Test adding a validated draft."""
        draft = CustomerDraft(full_name="Bilal", passport_number="P1", agent_name="Karim")

        record = store.customers.add(draft)

        assert record.full_name == "Bilal"
        assert record.visa_status == VisaStatus.PENDING

    def test_add_keeps_insertion_order(self, store, customer_form):
        """Test that list returns records in the order they were added."""
        for name in ["Charlie", "Alice", "Bob"]:
            store.customers.add(dict(customer_form, fullName=name))

        assert [c.full_name for c in store.customers.list()] == ["Charlie", "Alice", "Bob"]

    def test_add_rejects_invalid_fields(self, store, backend):
        """Test that an invalid record is not written."""
        with pytest.raises(ValidationError):
            store.customers.add({"fullName": "", "passportNumber": "P1", "agentName": "K"})

        assert backend.get(CUSTOMERS_KEY) is None

    def test_large_amount_survives_storage_exactly(self, store, entry_form):
        """Test that a 15 digit amount reads back unchanged."""
        store.finance_entries.add(dict(entry_form, amount="1234567890.12345"))

        assert store.finance_entries.list()[0].amount == Decimal("1234567890.12345")

    def test_amount_too_precise_to_store_is_rejected(self, store, backend, entry_form):
        with pytest.raises(ValidationError):
            store.finance_entries.add(dict(entry_form, amount="1234567890123456.7"))

        assert backend.get(FINANCE_ENTRIES_KEY) is None

    def test_duplicate_generated_id_is_rejected(self, backend, customer_form):
        """Test that an id collision is a hard error, not an overwrite."""
        store = RecordStore(backend, id_factory=lambda: "same")
        store.customers.add(customer_form)

        with pytest.raises(DuplicateError):
            store.customers.add(dict(customer_form, fullName="Second"))

        assert [c.full_name for c in store.customers.list()] == ["Amina Rahman"]

    def test_collections_are_independent(self, store, customer_form, entry_form):
        """Test that customers and finance entries use separate keys."""
        store.customers.add(customer_form)
        store.finance_entries.add(entry_form)

        assert len(store.customers.list()) == 1
        assert len(store.finance_entries.list()) == 1
        assert store.finance_entries.list()[0].entry_type == EntryType.INCOME


class TestUpdate:
    """Tests for RecordCollection.update."""

    def test_update_changes_only_given_field(self, store, customer_form):
        """Test shallow merge: one field changes, the rest stay."""
        original = store.customers.add(customer_form)

        assert store.customers.update(original.id, {"visaStatus": "Approved"}) is True

        updated = store.customers.get(original.id)
        assert updated.visa_status == VisaStatus.APPROVED
        assert updated.model_dump(exclude={"visa_status"}) == original.model_dump(exclude={"visa_status"})

    def test_update_never_changes_id_or_created_at(self, store, customer_form):
        """Test that id and createdAt in the payload are ignored."""
        original = store.customers.add(customer_form)

        store.customers.update(original.id, {
            "id": "hijacked",
            "createdAt": "1999-01-01T00:00:00Z",
            "created_at": datetime(1999, 1, 1, tzinfo=timezone.utc),
            "agentName": "Nadia",
        })

        [record] = store.customers.list()
        assert record.id == original.id
        assert record.created_at == original.created_at
        assert record.agent_name == "Nadia"

    def test_update_accepts_snake_case_keys(self, store, entry_form):
        """Test that python field names work as well as persisted names."""
        entry = store.finance_entries.add(entry_form)

        store.finance_entries.update(entry.id, {"amount": Decimal("300")})

        assert store.finance_entries.get(entry.id).amount == Decimal("300")

    def test_update_missing_id_leaves_store_untouched(self, customer_form):
        """Test that updating an absent id writes nothing at all."""
        backend = CountingBackend()
        store = RecordStore(backend)
        store.customers.add(customer_form)
        before = backend.get(CUSTOMERS_KEY)
        writes = len(backend.writes)

        assert store.customers.update("missing", {"fullName": "Nobody"}) is False

        assert backend.get(CUSTOMERS_KEY) == before
        assert len(backend.writes) == writes

    def test_update_with_invalid_value_is_rejected(self, store, backend, customer_form):
        """Test that an invalid merge raises and writes nothing."""
        record = store.customers.add(customer_form)
        before = backend.get(CUSTOMERS_KEY)

        with pytest.raises(ValidationError):
            store.customers.update(record.id, {"visaStatus": "Lost"})

        assert backend.get(CUSTOMERS_KEY) == before


class TestDelete:
    """Tests for RecordCollection.delete."""

    def test_delete_removes_record(self, store, customer_form):
        """Test that a deleted id is never listed again."""
        first = store.customers.add(customer_form)
        second = store.customers.add(dict(customer_form, fullName="Second"))

        assert store.customers.delete(first.id) is True

        ids = [c.id for c in store.customers.list()]
        assert first.id not in ids
        assert ids == [second.id]

    def test_delete_missing_id_is_noop(self, customer_form):
        """Test that deleting an absent id writes nothing."""
        backend = CountingBackend()
        store = RecordStore(backend)
        store.customers.add(customer_form)
        writes = len(backend.writes)

        assert store.customers.delete("missing") is False

        assert len(backend.writes) == writes
        assert len(store.customers.list()) == 1


class TestListRobustness:
    """Tests for reading damaged collections."""

    def test_unset_collection_is_empty(self, store):
        """Test that nothing stored reads as an empty list."""
        assert store.customers.list() == []

    def test_invalid_json_reads_as_empty(self, store, backend):
        """Test that a corrupt payload does not crash the dashboard."""
        backend.set(CUSTOMERS_KEY, "{not json")

        assert store.customers.list() == []

    def test_non_list_payload_reads_as_empty(self, store, backend):
        """Test that a JSON object instead of an array reads as empty."""
        backend.set(FINANCE_ENTRIES_KEY, json.dumps({"oops": True}))

        assert store.finance_entries.list() == []

    def test_malformed_items_are_skipped(self, store, backend):
        """Test that one bad row does not hide the good ones."""
        backend.set(CUSTOMERS_KEY, json.dumps([
            {
                "id": "c-1",
                "fullName": "Good",
                "passportNumber": "P1",
                "medicalFitnessStatus": "Fit",
                "agentName": "K",
                "visaStatus": "Pending",
                "createdAt": "2024-01-01T09:00:00Z",
            },
            {"id": "c-2", "fullName": "Missing everything else"},
        ]))

        assert [c.id for c in store.customers.list()] == ["c-1"]

    def test_persisted_document_uses_camel_case(self, store, backend, customer_form):
        """Test the stored JSON shape."""
        store.customers.add(customer_form)

        [stored] = json.loads(backend.get(CUSTOMERS_KEY))
        assert stored["fullName"] == "Amina Rahman"
        assert stored["createdAt"].startswith("2024-01-01T09:00:00")
        assert stored["documentUrl"] is None


class TestCapacity:
    """Tests for the storage quota."""

    def test_write_over_quota_raises(self, customer_form):
        """Test that exceeding the quota raises CapacityError."""
        store = RecordStore(InMemoryBackend(quota_bytes=600))

        with pytest.raises(CapacityError) as exc_info:
            for _ in range(20):
                store.customers.add(customer_form)

        assert exc_info.value.key == CUSTOMERS_KEY
        assert exc_info.value.quota_bytes == 600

    def test_previous_value_kept_after_capacity_error(self, customer_form):
        """Test that a refused write leaves the stored collection as it was."""
        backend = InMemoryBackend(quota_bytes=600)
        store = RecordStore(backend)

        last_good = None
        with pytest.raises(CapacityError):
            for _ in range(20):
                store.customers.add(customer_form)
                last_good = backend.get(CUSTOMERS_KEY)

        assert backend.get(CUSTOMERS_KEY) == last_good
        assert backend.usage_bytes() <= 600

    def test_overwriting_a_key_counts_only_new_size(self):
        """Test that replacing a value does not double count it."""
        backend = InMemoryBackend(quota_bytes=20)
        backend.set("k", "x" * 15)
        backend.set("k", "y" * 15)

        assert backend.get("k") == "y" * 15


class TestTheme:
    """Tests for the theme preference."""

    def test_default_theme_is_light(self, store):
        """Test the default when nothing is stored."""
        assert store.get_theme() == Theme.LIGHT

    def test_set_and_get_theme(self, store, backend):
        """Test that the theme is stored as its raw value."""
        store.set_theme("dark")

        assert store.get_theme() == Theme.DARK
        assert backend.get(THEME_KEY) == "dark"

    def test_unknown_stored_theme_falls_back_to_light(self, store, backend):
        """Test that a garbage value reads as light."""
        backend.set(THEME_KEY, "purple")

        assert store.get_theme() == Theme.LIGHT

    def test_set_invalid_theme_raises(self, store):
        """Test that only light and dark can be stored."""
        with pytest.raises(ValueError):
            store.set_theme("purple")

    def test_snapshot_keys_are_reserved(self, store):
        """Test that snapshots cannot overwrite a collection key."""
        with pytest.raises(ValueError):
            store.write_snapshot(CUSTOMERS_KEY, {})


class TestFileBackend:
    """Tests for the file-per-key backend."""

    def test_records_survive_a_new_store(self, tmp_path, customer_form):
        """Test persistence across store instances (a restart)."""
        RecordStore(FileBackend(tmp_path)).customers.add(customer_form)

        reopened = RecordStore(FileBackend(tmp_path))

        assert [c.full_name for c in reopened.customers.list()] == ["Amina Rahman"]

    def test_missing_key_reads_none(self, tmp_path):
        """Test reading a key that was never written."""
        assert FileBackend(tmp_path).get(CUSTOMERS_KEY) is None

    def test_no_temporary_files_left_behind(self, tmp_path):
        """Test that the atomic write cleans up after itself."""
        backend = FileBackend(tmp_path)
        backend.set(CUSTOMERS_KEY, "[]")
        backend.set(THEME_KEY, "dark")

        assert sorted(p.name for p in tmp_path.iterdir()) == [
            "customers.json",
            "theme_preference.json",
        ]
        assert backend.keys() == [CUSTOMERS_KEY, THEME_KEY]

    def test_delete_key(self, tmp_path):
        """Test deleting a key and deleting it again."""
        backend = FileBackend(tmp_path)
        backend.set(THEME_KEY, "dark")

        backend.delete(THEME_KEY)
        backend.delete(THEME_KEY)

        assert backend.get(THEME_KEY) is None

    def test_quota_is_enforced(self, tmp_path):
        """Test that the file backend applies the same quota rule."""
        backend = FileBackend(tmp_path, quota_bytes=50)
        backend.set(THEME_KEY, "dark")

        with pytest.raises(CapacityError):
            backend.set(CUSTOMERS_KEY, "x" * 100)

        assert backend.get(CUSTOMERS_KEY) is None

    def test_rejects_path_like_keys(self, tmp_path):
        """Test that keys cannot escape the data directory."""
        with pytest.raises(ValueError):
            FileBackend(tmp_path).set("../outside", "x")


class TestConcurrency:
    """Tests for writers sharing one store."""

    def test_concurrent_adds_are_not_lost(self, tmp_path, customer_form):
        """Test that every add from parallel threads is kept."""
        store = RecordStore(FileBackend(tmp_path))
        workers = 20
        barrier = threading.Barrier(workers)
        errors = []

        def add_one(i):
            barrier.wait()
            try:
                store.customers.add(dict(customer_form, fullName=f"Customer {i}"))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=add_one, args=(i,)) for i in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        names = {c.full_name for c in store.customers.list()}
        assert names == {f"Customer {i}" for i in range(workers)}
        assert len(RecordStore(FileBackend(tmp_path)).customers.list()) == workers
