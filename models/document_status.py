"""DocumentStatus dataclass for calculated expiry status."""

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from .status import Status

if TYPE_CHECKING:
    from .document import Document


@dataclass
class DocumentStatus:
    """Calculated expiry information for a document."""

    document: "Document"
    status: Status
    days_until_expiry: Optional[int] = None

    @property
    def is_alert(self) -> bool:
        return self.status.is_alert
