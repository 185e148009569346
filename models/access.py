"""Ownership checks for vehicles and their documents."""

from typing import Optional, TYPE_CHECKING

from .errors import NotFound, Unauthorized

if TYPE_CHECKING:
    from .document import Document
    from .vehicle import Vehicle


def ensure_vehicle_access(user_id: str, vehicle: Optional["Vehicle"]) -> "Vehicle":
    """
    Return the vehicle if user_id owns it.

    Existence is checked before ownership: a missing vehicle raises
    NotFound, someone else's vehicle raises Unauthorized.
    """
    if vehicle is None:
        raise NotFound("Vehicle not found")
    if vehicle.user_id != user_id:
        raise Unauthorized("Unauthorized access to this vehicle")
    return vehicle


def ensure_document_access(
    user_id: str, document: Optional["Document"], vehicle: Optional["Vehicle"]
) -> "Document":
    """Return the document if user_id owns its parent vehicle."""
    if document is None:
        raise NotFound("Document not found")
    if vehicle is None or vehicle.user_id != user_id:
        raise Unauthorized("Unauthorized access to this document")
    return document
