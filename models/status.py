"""Status enum for document expiry levels."""

from enum import Enum


class Status(Enum):
    """Document expiry categories."""

    EXPIRED = "expired"
    EXPIRING = "expiring"
    VALID = "valid"
    NONE = "none"  # No expiry date recorded

    @property
    def urgency(self) -> int:
        """Lower value = more urgent."""
        return _URGENCY[self]

    @property
    def is_alert(self) -> bool:
        return self in (Status.EXPIRED, Status.EXPIRING)


_URGENCY = {
    Status.EXPIRED: 1,
    Status.EXPIRING: 2,
    Status.VALID: 3,
    Status.NONE: 4,
}
