"""Document class for vehicle compliance records."""

from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from .calculations import classify_expiry
from .document_status import DocumentStatus


class DocumentType(Enum):
    """Kinds of compliance documents a vehicle can carry."""

    INSURANCE = "insurance"
    POLLUTION = "pollution"
    TAX = "tax"
    FITNESS = "fitness"
    PERMIT = "permit"
    AADHAR = "aadhar"
    OWNER_BOOK = "owner_book"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class Document:
    """A compliance document attached to exactly one vehicle."""

    def __init__(
            self,
            id: int,
            vehicle_id: int,
            type: DocumentType,
            expiry_date: Optional[str] = None,
            file_url: Optional[str] = None,
            notes: Optional[str] = None,
            created_at: Optional[str] = None,
            updated_at: Optional[str] = None,
    ):
        self.id = id
        self.vehicle_id = vehicle_id
        self.type = type
        self.expiry_date = expiry_date or None
        self.file_url = file_url or None
        self.notes = notes
        self.created_at = created_at
        self.updated_at = updated_at

    def status(self, now: Union[date, datetime, None] = None) -> DocumentStatus:
        """Classify this document's expiry relative to now."""
        status, days = classify_expiry(self.expiry_date, now)
        return DocumentStatus(document=self, status=status, days_until_expiry=days)
