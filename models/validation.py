"""Field validation for vehicle and document payloads."""

from typing import Any, Dict, List, Optional, Tuple

from .calculations import parse_expiry_date
from .document import DocumentType
from .errors import ValidationError

# JSON key -> attribute name
VEHICLE_FIELDS = {
    "registrationNumber": "registration_number",
    "ownerName": "owner_name",
    "ownerMobile": "owner_mobile",
}

DOCUMENT_FIELDS = {
    "vehicleId": "vehicle_id",
    "type": "type",
    "expiryDate": "expiry_date",
    "fileUrl": "file_url",
    "notes": "notes",
}


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def missing_document_field(
    doc_type: DocumentType, expiry_date: Optional[str], file_url: Optional[str]
) -> Optional[str]:
    """
    Return the name of the required field a document is missing, or None.

    Owner books must carry a file; every other type must carry an expiry date.
    """
    if doc_type == DocumentType.OWNER_BOOK:
        return "fileUrl" if _is_blank(file_url) else None
    return "expiryDate" if _is_blank(expiry_date) else None


def validate_document(
    doc_type: DocumentType,
    expiry_date: Optional[str],
    file_url: Optional[str],
    prefix: str = "",
) -> None:
    """Raise ValidationError naming the missing field, if any."""
    missing = missing_document_field(doc_type, expiry_date, file_url)
    if missing == "fileUrl":
        raise ValidationError("A file is required for owner book documents", prefix + missing)
    if missing == "expiryDate":
        raise ValidationError(
            f"Expiry date is required for {doc_type.display_name.lower()} documents",
            prefix + missing,
        )


def _require_text(data: Dict[str, Any], key: str, prefix: str = "") -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} is required", prefix + key)
    return value


def _optional_text(data: Dict[str, Any], key: str, prefix: str = "") -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string", prefix + key)
    return value or None


def parse_document_type(value: Any, prefix: str = "") -> DocumentType:
    try:
        return DocumentType(value)
    except ValueError:
        choices = ", ".join(t.value for t in DocumentType)
        raise ValidationError(f"type must be one of: {choices}", prefix + "type")


def parse_expiry_field(value: Any, prefix: str = "") -> Optional[str]:
    """Normalise an expiry date to 'YYYY-MM-DD' (or None)."""
    try:
        parsed = parse_expiry_date(value)
    except (ValueError, OverflowError):
        raise ValidationError("expiryDate must be a date (YYYY-MM-DD)", prefix + "expiryDate")
    return parsed.isoformat() if parsed else None


def parse_vehicle_id(value: Any, prefix: str = "") -> int:
    if isinstance(value, bool):
        raise ValidationError("vehicleId must be an integer", prefix + "vehicleId")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("vehicleId must be an integer", prefix + "vehicleId")


def parse_limit(value: Any) -> Optional[int]:
    """Alert list limit: None (or blank) for all, otherwise a non-negative int."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError("limit must be a non-negative integer", "limit")
    try:
        limit = int(value)
    except (TypeError, ValueError):
        raise ValidationError("limit must be a non-negative integer", "limit")
    if limit < 0:
        raise ValidationError("limit must be a non-negative integer", "limit")
    return limit


def parse_vehicle_fields(data: Any, partial: bool = False) -> Dict[str, Any]:
    """
    Convert a vehicle payload (camelCase keys) to attribute names.

    With partial=True only the keys present are returned, but each one
    must still be valid.
    """
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object")
    fields = {}
    for key, attr in VEHICLE_FIELDS.items():
        if partial and key not in data:
            continue
        fields[attr] = _require_text(data, key)
    return fields


def parse_document_fields(
    data: Any,
    partial: bool = False,
    require_vehicle_id: bool = True,
    prefix: str = "",
) -> Dict[str, Any]:
    """
    Convert a document payload (camelCase keys) to attribute names.

    Full payloads are checked against the per-type required fields.
    Partial payloads are checked later, once merged with the stored document.
    """
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object", prefix.rstrip(".") or None)
    fields: Dict[str, Any] = {}
    if require_vehicle_id and (not partial or "vehicleId" in data):
        fields["vehicle_id"] = parse_vehicle_id(data.get("vehicleId"), prefix)
    if not partial or "type" in data:
        fields["type"] = parse_document_type(data.get("type"), prefix)
    if not partial or "expiryDate" in data:
        fields["expiry_date"] = parse_expiry_field(data.get("expiryDate"), prefix)
    if not partial or "fileUrl" in data:
        fields["file_url"] = _optional_text(data, "fileUrl", prefix)
    if not partial or "notes" in data:
        fields["notes"] = _optional_text(data, "notes", prefix)

    if not partial:
        validate_document(fields["type"], fields["expiry_date"], fields["file_url"], prefix)
    return fields


def parse_vehicle_with_documents(data: Any) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    """
    Parse a bulk vehicle payload with an optional 'documents' list.

    Document errors are attributed as 'documents.<index>.<field>'.
    """
    fields = parse_vehicle_fields(data)
    raw_documents = data.get("documents") or []
    if not isinstance(raw_documents, list):
        raise ValidationError("documents must be a list", "documents")
    documents = [
        parse_document_fields(
            raw, require_vehicle_id=False, prefix=f"documents.{index}."
        )
        for index, raw in enumerate(raw_documents)
    ]
    return fields, documents
