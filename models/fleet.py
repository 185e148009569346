"""Fleet service: ownership-checked operations on top of a store."""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from .access import ensure_document_access, ensure_vehicle_access
from .alerts import AlertSummary, build_alert_summary
from .document import Document
from .store import YamlStore
from .vehicle import Vehicle


class Fleet:
    """
    Entry point for an authenticated user's vehicles and documents.

    Every vehicle/document operation takes the caller's user_id and checks
    ownership (existence first, then owner) before touching the store.
    """

    def __init__(self, store: YamlStore):
        self.store = store

    # -- vehicles ---------------------------------------------------------------

    def list_vehicles(self, user_id: str, search: Optional[str] = None) -> List[Vehicle]:
        return self.store.list_vehicles(user_id, search)

    def get_vehicle(self, user_id: str, vehicle_id: int) -> Vehicle:
        return ensure_vehicle_access(user_id, self.store.get_vehicle(vehicle_id))

    def create_vehicle(self, user_id: str, fields: Dict[str, Any]) -> Vehicle:
        return self.store.create_vehicle(user_id, fields)

    def create_vehicle_with_documents(
        self, user_id: str, fields: Dict[str, Any], documents: List[Dict[str, Any]]
    ) -> Vehicle:
        return self.store.create_vehicle_with_documents(user_id, fields, documents)

    def update_vehicle(self, user_id: str, vehicle_id: int, updates: Dict[str, Any]) -> Vehicle:
        self.get_vehicle(user_id, vehicle_id)
        return self.store.update_vehicle(vehicle_id, updates)

    def delete_vehicle(self, user_id: str, vehicle_id: int) -> None:
        self.get_vehicle(user_id, vehicle_id)
        self.store.delete_vehicle(vehicle_id)

    # -- documents --------------------------------------------------------------

    def get_document(self, user_id: str, document_id: int) -> Document:
        document = self.store.get_document(document_id)
        vehicle = self.store.get_vehicle(document.vehicle_id) if document else None
        return ensure_document_access(user_id, document, vehicle)

    def create_document(self, user_id: str, fields: Dict[str, Any]) -> Document:
        self.get_vehicle(user_id, fields["vehicle_id"])
        return self.store.create_document(fields)

    def update_document(self, user_id: str, document_id: int, updates: Dict[str, Any]) -> Document:
        document = self.get_document(user_id, document_id)
        if "vehicle_id" in updates and updates["vehicle_id"] != document.vehicle_id:
            self.get_vehicle(user_id, updates["vehicle_id"])
        return self.store.update_document(document_id, updates)

    def delete_document(self, user_id: str, document_id: int) -> None:
        self.get_document(user_id, document_id)
        self.store.delete_document(document_id)

    # -- alerts -----------------------------------------------------------------

    def alert_summary(
        self, user_id: str, now: Union[date, datetime, None] = None
    ) -> AlertSummary:
        """Expired and expiring documents across all of the user's vehicles."""
        return build_alert_summary(self.list_vehicles(user_id), now)
