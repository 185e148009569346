#!/usr/bin/env python3
"""Tests for YAML store persistence."""

import multiprocessing
import os
import threading

import pytest
import yaml

from models import (
    DocumentType,
    DuplicateRegistration,
    NotFound,
    StoreError,
    ValidationError,
    Vehicle,
    YamlStore,
)
from models import store as store_module


def vehicle_fields(registration="MH12 AB 1234", owner="R. Patil", mobile="9800000000"):
    return {"registration_number": registration, "owner_name": owner, "owner_mobile": mobile}


def doc_fields(doc_type=DocumentType.TAX, expiry="2026-05-01", file_url=None, notes=None, vehicle_id=None):
    fields = {"type": doc_type, "expiry_date": expiry, "file_url": file_url, "notes": notes}
    if vehicle_id is not None:
        fields["vehicle_id"] = vehicle_id
    return fields


def _create_many(path, prefix, count):
    store = YamlStore(path)
    for i in range(count):
        store.create_vehicle("alice", vehicle_fields(f"{prefix}-{i}"))


@pytest.fixture
def store(tmp_path):
    return YamlStore(tmp_path / "fleet.yaml")


# =============================================================================
# Loading and saving
# =============================================================================


class TestLoad:
    """Tests for reading store files."""

    def test_missing_file_is_empty(self, store):
        assert store.list_vehicles("alice") == []
        assert store.get_vehicle(1) is None

    def test_loads_hand_written_file(self, tmp_path):
        """Unquoted YAML dates are read back as ISO strings."""
        path = tmp_path / "fleet.yaml"
        path.write_text("""
vehicles:
  - id: 4
    registrationNumber: MH12 AB 1234
    ownerName: R. Patil
    ownerMobile: '9800000000'
    userId: alice
    documents:
      - id: 9
        type: insurance
        expiryDate: 2026-05-01
""")
        vehicle = YamlStore(path).get_vehicle(4)
        assert isinstance(vehicle, Vehicle)
        assert vehicle.documents[0].expiry_date == "2026-05-01"
        assert vehicle.documents[0].vehicle_id == 4
        assert vehicle.documents[0].type == DocumentType.INSURANCE

    def test_ids_continue_after_existing(self, tmp_path):
        path = tmp_path / "fleet.yaml"
        path.write_text("""
vehicles:
  - id: 4
    registrationNumber: MH12
    ownerName: A
    ownerMobile: '1'
    userId: alice
    documents:
      - {id: 9, type: tax, expiryDate: '2026-05-01'}
""")
        store = YamlStore(path)
        assert store.create_vehicle("alice", vehicle_fields("KA01")).id == 5
        assert store.create_document(doc_fields(vehicle_id=4)).id == 10

    def test_duplicate_registration_in_file_rejected(self, tmp_path):
        path = tmp_path / "fleet.yaml"
        path.write_text("""
vehicles:
  - {id: 1, registrationNumber: MH12, ownerName: A, ownerMobile: '1', userId: alice}
  - {id: 2, registrationNumber: MH12, ownerName: B, ownerMobile: '2', userId: bob}
""")
        with pytest.raises(StoreError):
            YamlStore(path).get_vehicle(1)

    def test_malformed_yaml_is_store_error(self, tmp_path):
        path = tmp_path / "fleet.yaml"
        path.write_text("vehicles: [unclosed")
        with pytest.raises(StoreError):
            YamlStore(path).list_vehicles("alice")

    def test_impossible_expiry_date_is_store_error(self, tmp_path):
        path = tmp_path / "fleet.yaml"
        path.write_text("""
vehicles:
  - id: 1
    registrationNumber: MH12
    ownerName: A
    ownerMobile: '1'
    userId: alice
    documents:
      - {id: 1, type: tax, expiryDate: '2026-02-30'}
""")
        with pytest.raises(StoreError):
            YamlStore(path).list_vehicles("alice")

    def test_expiry_datetime_read_as_date(self, tmp_path):
        path = tmp_path / "fleet.yaml"
        path.write_text("""
vehicles:
  - id: 1
    registrationNumber: MH12
    ownerName: A
    ownerMobile: '1'
    userId: alice
    documents:
      - {id: 1, type: tax, expiryDate: '2026-05-01T10:30:00'}
""")
        assert YamlStore(path).get_document(1).expiry_date == "2026-05-01"

    def test_round_trip_file_layout(self, store):
        vehicle = store.create_vehicle_with_documents(
            "alice", vehicle_fields(), [doc_fields(expiry="2026-05-01")]
        )
        data = yaml.safe_load(store.path.read_text())
        assert data["sequences"] == {"vehicle": 2, "document": 2}
        saved = data["vehicles"][0]
        assert saved["registrationNumber"] == "MH12 AB 1234"
        assert saved["userId"] == "alice"
        assert saved["documents"][0]["expiryDate"] == "2026-05-01"
        assert "vehicleId" not in saved["documents"][0]
        assert store.get_vehicle(vehicle.id).documents[0].expiry_date == "2026-05-01"


# =============================================================================
# Vehicles
# =============================================================================


class TestVehicles:
    """Tests for vehicle operations."""

    def test_create_and_get(self, store):
        vehicle = store.create_vehicle("alice", vehicle_fields())
        assert vehicle.id == 1
        assert vehicle.user_id == "alice"
        assert vehicle.created_at is not None
        loaded = store.get_vehicle(vehicle.id)
        assert loaded.registration_number == "MH12 AB 1234"
        assert loaded.documents == []

    def test_list_filters_by_owner(self, store):
        store.create_vehicle("alice", vehicle_fields("MH12 A"))
        store.create_vehicle("bob", vehicle_fields("MH12 B"))
        assert [v.registration_number for v in store.list_vehicles("alice")] == ["MH12 A"]

    def test_list_newest_first(self, store):
        store.create_vehicle("alice", vehicle_fields("FIRST"))
        store.create_vehicle("alice", vehicle_fields("SECOND"))
        assert [v.registration_number for v in store.list_vehicles("alice")] == ["SECOND", "FIRST"]

    def test_list_search_case_insensitive(self, store):
        store.create_vehicle("alice", vehicle_fields("MH12 AB 1234"))
        store.create_vehicle("alice", vehicle_fields("KA01 XY 9999"))
        assert [v.registration_number for v in store.list_vehicles("alice", "ab 12")] == ["MH12 AB 1234"]

    def test_duplicate_registration_any_owner(self, store):
        store.create_vehicle("alice", vehicle_fields("MH12 AB 1234"))
        with pytest.raises(DuplicateRegistration) as exc:
            store.create_vehicle("bob", vehicle_fields("MH12 AB 1234"))
        assert exc.value.field == "registrationNumber"
        assert len(store.list_vehicles("bob")) == 0

    def test_different_registration_succeeds(self, store):
        store.create_vehicle("alice", vehicle_fields("MH12 AB 1234"))
        store.create_vehicle("bob", vehicle_fields("MH12 AB 1235"))
        assert len(store.list_vehicles("bob")) == 1

    def test_update_partial(self, store):
        vehicle = store.create_vehicle("alice", vehicle_fields())
        updated = store.update_vehicle(vehicle.id, {"owner_name": "S. Patil"})
        assert updated.owner_name == "S. Patil"
        assert updated.owner_mobile == "9800000000"
        assert store.get_vehicle(vehicle.id).owner_name == "S. Patil"

    def test_update_to_own_registration_succeeds(self, store):
        vehicle = store.create_vehicle("alice", vehicle_fields("MH12 AB 1234"))
        store.update_vehicle(vehicle.id, {"registration_number": "MH12 AB 1234"})

    def test_update_to_taken_registration_fails(self, store):
        store.create_vehicle("bob", vehicle_fields("KA01"))
        vehicle = store.create_vehicle("alice", vehicle_fields("MH12"))
        with pytest.raises(DuplicateRegistration):
            store.update_vehicle(vehicle.id, {"registration_number": "KA01"})
        assert store.get_vehicle(vehicle.id).registration_number == "MH12"

    def test_update_missing(self, store):
        with pytest.raises(NotFound):
            store.update_vehicle(42, {"owner_name": "X"})

    def test_delete_cascades(self, store):
        vehicle = store.create_vehicle_with_documents(
            "alice",
            vehicle_fields(),
            [doc_fields(), doc_fields(DocumentType.INSURANCE), doc_fields(DocumentType.PERMIT)],
        )
        doc_ids = [d.id for d in vehicle.documents]
        store.delete_vehicle(vehicle.id)
        assert store.get_vehicle(vehicle.id) is None
        for doc_id in doc_ids:
            assert store.get_document(doc_id) is None

    def test_delete_missing(self, store):
        with pytest.raises(NotFound):
            store.delete_vehicle(42)

    def test_concurrent_same_registration_one_wins(self, tmp_path):
        path = tmp_path / "fleet.yaml"
        outcomes = []

        def create(user_id):
            try:
                YamlStore(path).create_vehicle(user_id, vehicle_fields("MH12 AB 1234"))
                outcomes.append("created")
            except DuplicateRegistration:
                outcomes.append("duplicate")

        threads = [threading.Thread(target=create, args=(f"user{i}",)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["created"] + ["duplicate"] * 7
        owners = [v.user_id for u in range(8) for v in YamlStore(path).list_vehicles(f"user{u}")]
        assert len(owners) == 1

    @pytest.mark.skipif(not hasattr(os, "fork"), reason="needs fork")
    def test_concurrent_processes_keep_every_write(self, tmp_path):
        path = tmp_path / "fleet.yaml"
        ctx = multiprocessing.get_context("fork")
        workers = [
            ctx.Process(target=_create_many, args=(str(path), f"P{n}", 25))
            for n in range(3)
        ]
        for w in workers:
            w.start()
        for w in workers:
            w.join(timeout=60)

        assert [w.exitcode for w in workers] == [0, 0, 0]
        assert len(YamlStore(path).list_vehicles("alice")) == 75
        assert YamlStore(path).create_vehicle("alice", vehicle_fields("LAST")).id == 76

    def test_read_inside_transaction(self, store):
        store.create_vehicle("alice", vehicle_fields())
        with store.transaction() as state:
            assert store.get_vehicle(1).registration_number == state.vehicles[0].registration_number
        assert (store.path.parent / "fleet.yaml.lock").exists()


class TestCreateVehicleWithDocuments:
    """Tests for atomic bulk creation."""

    def test_creates_all(self, store):
        vehicle = store.create_vehicle_with_documents(
            "alice",
            vehicle_fields(),
            [doc_fields(), doc_fields(DocumentType.OWNER_BOOK, expiry=None, file_url="/uploads/rc.pdf")],
        )
        assert [d.type for d in vehicle.documents] == [DocumentType.TAX, DocumentType.OWNER_BOOK]
        assert all(d.vehicle_id == vehicle.id for d in vehicle.documents)
        assert len(store.get_documents_by_vehicle(vehicle.id)) == 2

    def test_invalid_document_writes_nothing(self, store):
        """Second of three documents invalid: no vehicle, no documents."""
        with pytest.raises(ValidationError) as exc:
            store.create_vehicle_with_documents(
                "alice",
                vehicle_fields(),
                [doc_fields(), doc_fields(DocumentType.INSURANCE, expiry=None), doc_fields()],
            )
        assert exc.value.field == "documents.1.expiryDate"
        assert store.list_vehicles("alice") == []
        assert not store.path.exists()

    def test_duplicate_writes_no_documents(self, store):
        store.create_vehicle("bob", vehicle_fields("MH12"))
        with pytest.raises(DuplicateRegistration):
            store.create_vehicle_with_documents("alice", vehicle_fields("MH12"), [doc_fields()])
        assert store.get_document(1) is None
        assert store.list_vehicles("alice") == []

    def test_failed_write_leaves_file_untouched(self, store, monkeypatch):
        store.create_vehicle("alice", vehicle_fields("KEEP"))
        before = store.path.read_text()

        def boom(*_args, **_kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(store_module.yaml, "dump", boom)
        with pytest.raises(StoreError):
            store.create_vehicle_with_documents("alice", vehicle_fields("NEW"), [doc_fields()])
        assert store.path.read_text() == before
        assert list(store.path.parent.glob("*.tmp")) == []


# =============================================================================
# Documents
# =============================================================================


class TestDocuments:
    """Tests for document operations."""

    @pytest.fixture
    def vehicle(self, store):
        return store.create_vehicle("alice", vehicle_fields())

    def test_create_and_get(self, store, vehicle):
        doc = store.create_document(doc_fields(vehicle_id=vehicle.id, notes="annual"))
        loaded = store.get_document(doc.id)
        assert loaded.vehicle_id == vehicle.id
        assert loaded.notes == "annual"

    def test_create_requires_vehicle(self, store):
        with pytest.raises(NotFound):
            store.create_document(doc_fields(vehicle_id=99))

    def test_create_validates(self, store, vehicle):
        with pytest.raises(ValidationError) as exc:
            store.create_document(doc_fields(DocumentType.OWNER_BOOK, expiry=None, vehicle_id=vehicle.id))
        assert exc.value.field == "fileUrl"

    def test_update_partial(self, store, vehicle):
        doc = store.create_document(doc_fields(vehicle_id=vehicle.id))
        updated = store.update_document(doc.id, {"expiry_date": "2027-05-01"})
        assert updated.expiry_date == "2027-05-01"
        assert store.get_document(doc.id).expiry_date == "2027-05-01"

    def test_update_validates_merged_result(self, store, vehicle):
        """Switching to owner_book without a file is rejected."""
        doc = store.create_document(doc_fields(vehicle_id=vehicle.id))
        with pytest.raises(ValidationError) as exc:
            store.update_document(doc.id, {"type": DocumentType.OWNER_BOOK})
        assert exc.value.field == "fileUrl"
        assert store.get_document(doc.id).type == DocumentType.TAX

    def test_update_clearing_expiry_rejected(self, store, vehicle):
        doc = store.create_document(doc_fields(vehicle_id=vehicle.id))
        with pytest.raises(ValidationError):
            store.update_document(doc.id, {"expiry_date": None})

    def test_update_moves_between_vehicles(self, store, vehicle):
        other = store.create_vehicle("alice", vehicle_fields("KA01"))
        doc = store.create_document(doc_fields(vehicle_id=vehicle.id))
        store.update_document(doc.id, {"vehicle_id": other.id})
        assert store.get_documents_by_vehicle(vehicle.id) == []
        assert [d.id for d in store.get_documents_by_vehicle(other.id)] == [doc.id]

    def test_update_missing(self, store):
        with pytest.raises(NotFound):
            store.update_document(42, {"notes": "x"})

    def test_delete(self, store, vehicle):
        doc = store.create_document(doc_fields(vehicle_id=vehicle.id))
        store.delete_document(doc.id)
        assert store.get_document(doc.id) is None
        assert store.get_vehicle(vehicle.id) is not None

    def test_delete_missing(self, store):
        with pytest.raises(NotFound):
            store.delete_document(42)
