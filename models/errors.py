"""Error types surfaced to callers of the fleet document tracker."""

from typing import Any, Dict, Optional


class FleetError(Exception):
    """Base class for user-facing errors."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"message": self.message}
        if self.field is not None:
            d["field"] = self.field
        return d


class ValidationError(FleetError):
    """A field is missing or malformed."""


class DuplicateRegistration(FleetError):
    """Another vehicle already holds this registration number."""

    def __init__(self, message: str = "Registration number already exists"):
        super().__init__(message, field="registrationNumber")


class NotFound(FleetError):
    status_code = 404


class Unauthorized(FleetError):
    """Authenticated, but not the owner."""

    status_code = 401


class Unauthenticated(FleetError):
    status_code = 401


class StoreError(Exception):
    """Persistence failure. Details are logged, never shown to users."""
