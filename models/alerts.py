"""Alert aggregation across a user's vehicles."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Union, TYPE_CHECKING

from .calculations import to_today
from .status import Status

if TYPE_CHECKING:
    from .document import Document
    from .vehicle import Vehicle


@dataclass
class Alert:
    """A document that has expired or expires soon. Never persisted."""

    vehicle: "Vehicle"
    document: "Document"
    days_until_expiry: int
    status: Status


@dataclass
class AlertSummary:
    """Counts plus the full alert list, most urgent first."""

    expired_count: int = 0
    expiring_soon_count: int = 0
    alerts: List[Alert] = field(default_factory=list)

    def top(self, limit: Optional[int] = None) -> List[Alert]:
        """Return the first `limit` alerts (all when limit is None)."""
        if limit is None:
            return list(self.alerts)
        return self.alerts[:limit]

    def to_dict(self, limit: Optional[int] = None) -> Dict[str, Any]:
        return {
            "expiredCount": self.expired_count,
            "expiringSoonCount": self.expiring_soon_count,
            "totalAlerts": len(self.alerts),
            "alerts": [
                {
                    "vehicleId": a.vehicle.id,
                    "registrationNumber": a.vehicle.registration_number,
                    "documentId": a.document.id,
                    "documentType": a.document.type.value,
                    "expiryDate": a.document.expiry_date,
                    "daysUntilExpiry": a.days_until_expiry,
                    "status": a.status.value,
                }
                for a in self.top(limit)
            ],
        }


def build_alert_summary(
    vehicles: Iterable["Vehicle"], now: Union[date, datetime, None] = None
) -> AlertSummary:
    """
    Scan vehicles and collect expired/expiring documents.

    Alerts are sorted by days until expiry, so expired documents come
    first (most overdue first), then the soonest to expire. Documents
    without an expiry date are skipped.
    """
    today = to_today(now)
    summary = AlertSummary()
    for vehicle in vehicles:
        for doc_status in vehicle.document_statuses(today):
            if not doc_status.is_alert:
                continue
            if doc_status.status == Status.EXPIRED:
                summary.expired_count += 1
            else:
                summary.expiring_soon_count += 1
            summary.alerts.append(
                Alert(
                    vehicle=vehicle,
                    document=doc_status.document,
                    days_until_expiry=doc_status.days_until_expiry,
                    status=doc_status.status,
                )
            )
    summary.alerts.sort(
        key=lambda a: (a.days_until_expiry, a.vehicle.registration_number, a.document.id)
    )
    return summary
