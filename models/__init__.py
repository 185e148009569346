"""
Fleet document tracking models.

This package provides the data models and rules for vehicle compliance documents:
- Status: Expiry levels (EXPIRED, EXPIRING, VALID, NONE)
- Vehicle / Document: Stored records; documents belong to one vehicle
- DocumentStatus / Alert / AlertSummary: Calculated expiry information
- Validation, uniqueness and access checks
- YamlStore: Transactional persistence
- Fleet: Ownership-checked operations for a signed-in user
"""

from .status import Status
from .errors import (
    FleetError,
    ValidationError,
    DuplicateRegistration,
    NotFound,
    Unauthorized,
    Unauthenticated,
    StoreError,
)
from .calculations import (
    EXPIRING_SOON_DAYS,
    parse_expiry_date,
    days_until_expiry,
    check_expiry,
    classify_expiry,
)
from .document import Document, DocumentType
from .document_status import DocumentStatus
from .vehicle import Vehicle
from .alerts import Alert, AlertSummary, build_alert_summary
from .validation import (
    missing_document_field,
    validate_document,
    parse_vehicle_fields,
    parse_document_fields,
    parse_vehicle_with_documents,
    parse_limit,
)
from .uniqueness import ensure_registration_available
from .access import ensure_vehicle_access, ensure_document_access
from .store import YamlStore, vehicle_to_dict, document_to_dict
from .fleet import Fleet

__all__ = [
    "Status",
    "FleetError",
    "ValidationError",
    "DuplicateRegistration",
    "NotFound",
    "Unauthorized",
    "Unauthenticated",
    "StoreError",
    "EXPIRING_SOON_DAYS",
    "parse_expiry_date",
    "days_until_expiry",
    "check_expiry",
    "classify_expiry",
    "Document",
    "DocumentType",
    "DocumentStatus",
    "Vehicle",
    "Alert",
    "AlertSummary",
    "build_alert_summary",
    "missing_document_field",
    "validate_document",
    "parse_vehicle_fields",
    "parse_document_fields",
    "parse_vehicle_with_documents",
    "parse_limit",
    "ensure_registration_available",
    "ensure_vehicle_access",
    "ensure_document_access",
    "YamlStore",
    "vehicle_to_dict",
    "document_to_dict",
    "Fleet",
]
