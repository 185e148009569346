"""Vehicle class - the aggregate for a vehicle and its documents."""

from datetime import date, datetime
from typing import List, Optional, Union

from .document import Document
from .document_status import DocumentStatus
from .status import Status


class Vehicle:
    """A registered vehicle owned by a single user, with its documents."""

    def __init__(
        self,
        id: int,
        registration_number: str,
        owner_name: str,
        owner_mobile: str,
        user_id: str,
        created_at: Optional[str] = None,
        updated_at: Optional[str] = None,
        documents: Optional[List[Document]] = None,
    ):
        self.id = id
        self.registration_number = registration_number
        self.owner_name = owner_name
        self.owner_mobile = owner_mobile
        self.user_id = user_id
        self.created_at = created_at
        self.updated_at = updated_at
        self.documents = documents or []

    def get_document(self, document_id: int) -> Optional[Document]:
        """Find a document by id."""
        for document in self.documents:
            if document.id == document_id:
                return document
        return None

    def document_statuses(
        self, now: Union[date, datetime, None] = None
    ) -> List[DocumentStatus]:
        """Calculate expiry status for every document."""
        return [document.status(now) for document in self.documents]

    def status_counts(self, now: Union[date, datetime, None] = None) -> dict:
        """Count documents per status, keyed by status value."""
        counts = {s.value: 0 for s in Status}
        for doc_status in self.document_statuses(now):
            counts[doc_status.status.value] += 1
        return counts
