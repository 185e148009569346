"""Registration number uniqueness check."""

from typing import Iterable, Optional, TYPE_CHECKING

from .errors import DuplicateRegistration

if TYPE_CHECKING:
    from .vehicle import Vehicle


def find_registration_holder(
    vehicles: Iterable["Vehicle"], registration_number: str, exclude_id: Optional[int] = None
) -> Optional["Vehicle"]:
    """Return the vehicle (any owner) holding this exact number, ignoring exclude_id."""
    for vehicle in vehicles:
        if vehicle.id == exclude_id:
            continue
        if vehicle.registration_number == registration_number:
            return vehicle
    return None


def ensure_registration_available(
    vehicles: Iterable["Vehicle"], registration_number: str, exclude_id: Optional[int] = None
) -> None:
    """Raise DuplicateRegistration if another vehicle holds the number."""
    if find_registration_holder(vehicles, registration_number, exclude_id) is not None:
        raise DuplicateRegistration()
