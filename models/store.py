"""YAML-backed persistence for vehicles and their documents."""

import fcntl
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import yaml

from .calculations import parse_expiry_date
from .document import Document, DocumentType
from .errors import DuplicateRegistration, NotFound, StoreError
from .uniqueness import ensure_registration_available
from .validation import validate_document
from .vehicle import Vehicle

logger = logging.getLogger(__name__)

VEHICLE_ATTRS = ("registration_number", "owner_name", "owner_mobile")
DOCUMENT_ATTRS = ("vehicle_id", "type", "expiry_date", "file_url", "notes")

class _StoreLock:
    """
    Exclusive access to one store file across threads and processes.

    A thread lock serialises callers in this process; an flock on a sidecar
    ``<store>.lock`` file serialises processes. The flock is taken only by the
    outermost acquisition in a thread.
    """

    def __init__(self, path: Path):
        self.lock_path = path.with_name(path.name + ".lock")
        self._thread_lock = threading.RLock()
        self._depth = 0
        self._fp = None

    def _acquire_file(self) -> None:
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            self._fp = open(self.lock_path, "a")
            fcntl.flock(self._fp.fileno(), fcntl.LOCK_EX)
        except OSError as e:
            if self._fp is not None:
                self._fp.close()
                self._fp = None
            logger.error("Failed to lock store %s: %s", self.lock_path, e)
            raise StoreError(f"Failed to lock store {self.lock_path}") from e

    def _release_file(self) -> None:
        try:
            fcntl.flock(self._fp.fileno(), fcntl.LOCK_UN)
        finally:
            self._fp.close()
            self._fp = None

    @contextmanager
    def hold(self) -> Iterator[None]:
        with self._thread_lock:
            if self._depth == 0:
                self._acquire_file()
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
                if self._depth == 0:
                    self._release_file()


_locks: Dict[str, _StoreLock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: Path) -> _StoreLock:
    """One lock per store file, shared by every YamlStore on that path."""
    key = str(path.resolve())
    with _locks_guard:
        if key not in _locks:
            _locks[key] = _StoreLock(path)
        return _locks[key]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_str(value: Any) -> Optional[str]:
    """YAML turns unquoted dates into date objects; keep everything as text."""
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


# =============================================================================
# Serialization
# =============================================================================


def _parse_document(dct: Dict[str, Any], vehicle_id: int) -> Document:
    # Raises ValueError for dates that do not exist (e.g. 2026-02-30)
    expiry = parse_expiry_date(dct.get("expiryDate"))
    return Document(
        dct["id"],
        vehicle_id,
        DocumentType(dct["type"]),
        expiry.isoformat() if expiry else None,
        dct.get("fileUrl"),
        dct.get("notes"),
        _as_str(dct.get("createdAt")),
        _as_str(dct.get("updatedAt")),
    )


def _parse_vehicle(dct: Dict[str, Any]) -> Vehicle:
    vehicle_id = dct["id"]
    return Vehicle(
        vehicle_id,
        str(dct["registrationNumber"]),
        dct["ownerName"],
        str(dct["ownerMobile"]),
        str(dct["userId"]),
        _as_str(dct.get("createdAt")),
        _as_str(dct.get("updatedAt")),
        [_parse_document(d, vehicle_id) for d in dct.get("documents") or []],
    )


def document_to_dict(document: Document, include_vehicle_id: bool = True) -> Dict[str, Any]:
    """Serialize a Document to the camelCase dict format."""
    d: Dict[str, Any] = {"id": document.id}
    if include_vehicle_id:
        d["vehicleId"] = document.vehicle_id
    d.update({
        "type": document.type.value,
        "expiryDate": document.expiry_date,
        "fileUrl": document.file_url,
        "notes": document.notes,
        "createdAt": document.created_at,
        "updatedAt": document.updated_at,
    })
    return d


def vehicle_to_dict(vehicle: Vehicle, include_documents: bool = True) -> Dict[str, Any]:
    """Serialize a Vehicle to the camelCase dict format."""
    d: Dict[str, Any] = {
        "id": vehicle.id,
        "registrationNumber": vehicle.registration_number,
        "ownerName": vehicle.owner_name,
        "ownerMobile": vehicle.owner_mobile,
        "userId": vehicle.user_id,
        "createdAt": vehicle.created_at,
        "updatedAt": vehicle.updated_at,
    }
    if include_documents:
        d["documents"] = [document_to_dict(doc) for doc in vehicle.documents]
    return d


def _find_duplicate_registration(vehicles: List[Vehicle]) -> Optional[str]:
    seen = set()
    for vehicle in vehicles:
        if vehicle.registration_number in seen:
            return vehicle.registration_number
        seen.add(vehicle.registration_number)
    return None


# =============================================================================
# Store state
# =============================================================================


class StoreState:
    """In-memory copy of a store file, mutated inside a transaction."""

    def __init__(
        self,
        vehicles: Optional[List[Vehicle]] = None,
        next_vehicle_id: int = 1,
        next_document_id: int = 1,
    ):
        self.vehicles = vehicles or []
        self.next_vehicle_id = next_vehicle_id
        self.next_document_id = next_document_id

    def get_vehicle(self, vehicle_id: int) -> Optional[Vehicle]:
        for vehicle in self.vehicles:
            if vehicle.id == vehicle_id:
                return vehicle
        return None

    def find_document(self, document_id: int) -> Optional[Document]:
        for vehicle in self.vehicles:
            document = vehicle.get_document(document_id)
            if document is not None:
                return document
        return None

    def allocate_vehicle_id(self) -> int:
        vehicle_id = self.next_vehicle_id
        self.next_vehicle_id += 1
        return vehicle_id

    def allocate_document_id(self) -> int:
        document_id = self.next_document_id
        self.next_document_id += 1
        return document_id

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "StoreState":
        data = data or {}
        vehicles = [_parse_vehicle(v) for v in data.get("vehicles") or []]

        vehicle_ids = [v.id for v in vehicles]
        document_ids = [d.id for v in vehicles for d in v.documents]
        if len(set(vehicle_ids)) != len(vehicle_ids):
            raise StoreError("Store contains duplicate vehicle ids")
        if len(set(document_ids)) != len(document_ids):
            raise StoreError("Store contains duplicate document ids")
        duplicate = _find_duplicate_registration(vehicles)
        if duplicate is not None:
            raise StoreError(f"Store contains duplicate registration number {duplicate!r}")

        sequences = data.get("sequences") or {}
        return cls(
            vehicles,
            max(sequences.get("vehicle", 1), max(vehicle_ids, default=0) + 1),
            max(sequences.get("document", 1), max(document_ids, default=0) + 1),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequences": {
                "vehicle": self.next_vehicle_id,
                "document": self.next_document_id,
            },
            "vehicles": [
                {
                    **vehicle_to_dict(v, include_documents=False),
                    "documents": [
                        document_to_dict(d, include_vehicle_id=False) for d in v.documents
                    ],
                }
                for v in self.vehicles
            ],
        }


# =============================================================================
# Store
# =============================================================================


class YamlStore:
    """
    Vehicle/document persistence in a single YAML file.

    Documents are nested under their vehicle, so a document never outlives
    its parent. Every mutation is a transaction: the file is loaded under a
    per-path lock (a thread lock plus an flock on ``<store>.lock``), changed
    in memory and written back atomically. A failure anywhere inside the
    transaction leaves the file untouched.
    """

    def __init__(self, filename: Union[str, Path]):
        self.path = Path(filename)
        self._lock = _lock_for(self.path)

    # -- file I/O -------------------------------------------------------------

    def _load(self) -> StoreState:
        if not self.path.exists():
            return StoreState()
        try:
            with open(self.path, "r") as fp:
                data = yaml.load(fp, Loader=yaml.SafeLoader)
            return StoreState.from_dict(data)
        except StoreError:
            raise
        except (OSError, yaml.YAMLError, KeyError, TypeError, ValueError, OverflowError) as e:
            logger.error("Failed to load store %s: %s", self.path, e)
            raise StoreError(f"Failed to load store {self.path}") from e

    def _save(self, state: StoreState) -> None:
        """Write atomically: temp file in the same directory, fsync, rename."""
        if _find_duplicate_registration(state.vehicles) is not None:
            raise DuplicateRegistration()
        tmp_path: Optional[Path] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=self.path.name, suffix=".tmp", dir=str(self.path.parent)
            )
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "w") as fp:
                yaml.dump(
                    state.to_dict(),
                    fp,
                    default_flow_style=False,
                    allow_unicode=True,
                    sort_keys=False,
                    width=120,
                )
                fp.flush()
                os.fsync(fp.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to write store %s: %s", self.path, e)
            raise StoreError(f"Failed to write store {self.path}") from e
        finally:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
        logger.debug("Wrote store %s (%d vehicles)", self.path, len(state.vehicles))

    @contextmanager
    def transaction(self) -> Iterator[StoreState]:
        """Yield the store state; write it back only if the block succeeds."""
        with self._lock.hold():
            state = self._load()
            yield state
            self._save(state)

    def _read(self) -> StoreState:
        with self._lock.hold():
            return self._load()

    # -- vehicles ---------------------------------------------------------------

    def list_vehicles(self, user_id: str, search: Optional[str] = None) -> List[Vehicle]:
        """
        Vehicles owned by user_id, newest first.

        search filters on a case-insensitive substring of the registration number.
        """
        vehicles = [v for v in self._read().vehicles if v.user_id == user_id]
        if search:
            needle = search.lower()
            vehicles = [v for v in vehicles if needle in v.registration_number.lower()]
        return sorted(vehicles, key=lambda v: (v.created_at or "", v.id), reverse=True)

    def get_vehicle(self, vehicle_id: int) -> Optional[Vehicle]:
        return self._read().get_vehicle(vehicle_id)

    def _insert_vehicle(self, state: StoreState, user_id: str, fields: Dict[str, Any]) -> Vehicle:
        ensure_registration_available(state.vehicles, fields["registration_number"])
        now = _now()
        vehicle = Vehicle(
            state.allocate_vehicle_id(),
            fields["registration_number"],
            fields["owner_name"],
            fields["owner_mobile"],
            user_id,
            created_at=now,
            updated_at=now,
        )
        state.vehicles.append(vehicle)
        return vehicle

    def create_vehicle(self, user_id: str, fields: Dict[str, Any]) -> Vehicle:
        with self.transaction() as state:
            vehicle = self._insert_vehicle(state, user_id, fields)
        logger.info("Created vehicle %s (%s)", vehicle.id, vehicle.registration_number)
        return vehicle

    def create_vehicle_with_documents(
        self, user_id: str, fields: Dict[str, Any], documents: List[Dict[str, Any]]
    ) -> Vehicle:
        """Create a vehicle and all its documents, or nothing at all."""
        for index, doc_fields in enumerate(documents):
            validate_document(
                doc_fields["type"],
                doc_fields.get("expiry_date"),
                doc_fields.get("file_url"),
                prefix=f"documents.{index}.",
            )
        with self.transaction() as state:
            vehicle = self._insert_vehicle(state, user_id, fields)
            for doc_fields in documents:
                self._insert_document(state, vehicle, doc_fields)
        logger.info(
            "Created vehicle %s (%s) with %d documents",
            vehicle.id, vehicle.registration_number, len(vehicle.documents),
        )
        return vehicle

    def update_vehicle(self, vehicle_id: int, updates: Dict[str, Any]) -> Vehicle:
        """Apply a partial update. Changing the registration number is re-checked."""
        with self.transaction() as state:
            vehicle = state.get_vehicle(vehicle_id)
            if vehicle is None:
                raise NotFound("Vehicle not found")
            if "registration_number" in updates:
                ensure_registration_available(
                    state.vehicles, updates["registration_number"], exclude_id=vehicle_id
                )
            for attr in VEHICLE_ATTRS:
                if attr in updates:
                    setattr(vehicle, attr, updates[attr])
            vehicle.updated_at = _now()
        return vehicle

    def delete_vehicle(self, vehicle_id: int) -> None:
        """Remove a vehicle and every document it owns in one write."""
        with self.transaction() as state:
            vehicle = state.get_vehicle(vehicle_id)
            if vehicle is None:
                raise NotFound("Vehicle not found")
            state.vehicles.remove(vehicle)
        logger.info("Deleted vehicle %s with %d documents", vehicle_id, len(vehicle.documents))

    # -- documents --------------------------------------------------------------

    def _insert_document(self, state: StoreState, vehicle: Vehicle, fields: Dict[str, Any]) -> Document:
        now = _now()
        document = Document(
            state.allocate_document_id(),
            vehicle.id,
            fields["type"],
            fields.get("expiry_date"),
            fields.get("file_url"),
            fields.get("notes"),
            created_at=now,
            updated_at=now,
        )
        vehicle.documents.append(document)
        return document

    def get_document(self, document_id: int) -> Optional[Document]:
        return self._read().find_document(document_id)

    def get_documents_by_vehicle(self, vehicle_id: int) -> List[Document]:
        vehicle = self.get_vehicle(vehicle_id)
        return vehicle.documents if vehicle else []

    def create_document(self, fields: Dict[str, Any]) -> Document:
        validate_document(fields["type"], fields.get("expiry_date"), fields.get("file_url"))
        with self.transaction() as state:
            vehicle = state.get_vehicle(fields["vehicle_id"])
            if vehicle is None:
                raise NotFound("Vehicle not found")
            document = self._insert_document(state, vehicle, fields)
        return document

    def update_document(self, document_id: int, updates: Dict[str, Any]) -> Document:
        """
        Apply a partial update, then re-check the per-type required fields.

        Setting vehicle_id moves the document to that vehicle.
        """
        with self.transaction() as state:
            document = state.find_document(document_id)
            if document is None:
                raise NotFound("Document not found")
            new_vehicle_id = updates.get("vehicle_id", document.vehicle_id)
            if new_vehicle_id != document.vehicle_id:
                target = state.get_vehicle(new_vehicle_id)
                if target is None:
                    raise NotFound("Vehicle not found")
                state.get_vehicle(document.vehicle_id).documents.remove(document)
                target.documents.append(document)
            for attr in DOCUMENT_ATTRS:
                if attr in updates:
                    setattr(document, attr, updates[attr])
            document.expiry_date = document.expiry_date or None
            document.file_url = document.file_url or None
            validate_document(document.type, document.expiry_date, document.file_url)
            document.updated_at = _now()
        return document

    def delete_document(self, document_id: int) -> None:
        with self.transaction() as state:
            document = state.find_document(document_id)
            if document is None:
                raise NotFound("Document not found")
            state.get_vehicle(document.vehicle_id).documents.remove(document)
