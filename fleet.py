#!/usr/bin/env python3
"""
Command-line front end for fleet document tracking.

Commands:
  alerts          - Show expired and expiring documents, most urgent first
  vehicles        - List vehicles with document status counts
  documents       - Show a vehicle's documents and their expiry status
  add-vehicle     - Register a new vehicle
  add-document    - Attach a document to a vehicle
  delete-vehicle  - Delete a vehicle and all of its documents
  delete-document - Delete a single document
"""

import argparse
import os
import sys
from datetime import date
from pathlib import Path
from tabulate import tabulate
from typing import List, Optional

from models import (
    Alert,
    DocumentStatus,
    Fleet,
    FleetError,
    Status,
    StoreError,
    ValidationError,
    Vehicle,
    YamlStore,
    parse_document_fields,
    parse_expiry_date,
    parse_limit,
    parse_vehicle_fields,
)
from models.logging_config import setup_logging

# =============================================================================
# Formatting helpers
# =============================================================================


def format_value(value: Optional[str]) -> str:
    """Format an optional value for display."""
    return value if value else "-"


def format_status(status: Status) -> str:
    """Format a status for display."""
    labels = {
        Status.EXPIRED: "EXPIRED",
        Status.EXPIRING: "EXPIRING",
        Status.VALID: "valid",
        Status.NONE: "-",
    }
    return labels[status]


def format_days(days: Optional[int]) -> str:
    """Format days until expiry (e.g., 'Expires in 5 days', 'Expired 3 days ago')."""
    if days is None:
        return "-"
    if days < 0:
        n = abs(days)
        return f"Expired {n} day{'s' if n != 1 else ''} ago"
    if days == 0:
        return "Expires today"
    return f"Expires in {days} day{'s' if days != 1 else ''}"


def truncate(text: Optional[str], max_len: int = 30) -> str:
    """Truncate text with ellipsis if too long."""
    if text is None:
        return "-"
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def make_alert_table(alerts: List[Alert]) -> List[List[str]]:
    """Convert alerts to table rows."""
    return [
        [
            alert.vehicle.registration_number,
            alert.document.type.display_name,
            alert.document.expiry_date,
            format_status(alert.status),
            format_days(alert.days_until_expiry),
        ]
        for alert in alerts
    ]


def make_vehicle_table(vehicles: List[Vehicle], today: date) -> List[List[str]]:
    """Convert vehicles to table rows with document status counts."""
    rows = []
    for vehicle in vehicles:
        counts = vehicle.status_counts(today)
        rows.append(
            [
                vehicle.id,
                vehicle.registration_number,
                vehicle.owner_name,
                vehicle.owner_mobile,
                len(vehicle.documents),
                counts[Status.EXPIRED.value],
                counts[Status.EXPIRING.value],
            ]
        )
    return rows


def make_document_table(statuses: List[DocumentStatus]) -> List[List[str]]:
    """Convert document statuses to table rows."""
    return [
        [
            s.document.id,
            s.document.type.display_name,
            format_value(s.document.expiry_date),
            format_status(s.status),
            format_days(s.days_until_expiry),
            truncate(s.document.file_url),
            truncate(s.document.notes),
        ]
        for s in statuses
    ]


def parse_as_of(value: Optional[str]) -> date:
    """Parse --as-of, defaulting to today."""
    try:
        return parse_expiry_date(value) or date.today()
    except ValueError:
        raise ValidationError("--as-of must be a date (YYYY-MM-DD)", "as_of")


# =============================================================================
# Commands
# =============================================================================


def cmd_alerts(args, fleet: Fleet):
    """Show expired and expiring documents."""
    today = parse_as_of(args.as_of)
    limit = parse_limit(args.limit)
    summary = fleet.alert_summary(args.user, today)

    print(f"As of: {today.isoformat()}")
    print(f"Expired: {summary.expired_count}")
    print(f"Expiring soon: {summary.expiring_soon_count}")
    print()

    if not summary.alerts:
        print("No alerts.")
        return 0

    headers = ["Vehicle", "Document", "Expiry", "Status", "When"]
    print(tabulate(make_alert_table(summary.top(limit)), headers=headers, tablefmt="simple"))
    hidden = len(summary.alerts) - len(summary.top(limit))
    if hidden > 0:
        print()
        print(f"And {hidden} more alerts...")
    return 0


def cmd_vehicles(args, fleet: Fleet):
    """List the user's vehicles."""
    vehicles = fleet.list_vehicles(args.user, args.search)
    if not vehicles:
        print("No vehicles found.")
        return 0

    headers = ["ID", "Registration", "Owner", "Mobile", "Docs", "Expired", "Expiring"]
    print(tabulate(make_vehicle_table(vehicles, date.today()), headers=headers, tablefmt="simple"))
    return 0


def cmd_documents(args, fleet: Fleet):
    """Show one vehicle's documents."""
    vehicle = fleet.get_vehicle(args.user, args.vehicle_id)
    today = parse_as_of(args.as_of)

    print(f"Vehicle: {vehicle.registration_number}")
    print(f"Owner: {vehicle.owner_name} ({vehicle.owner_mobile})")
    print(f"Documents: {len(vehicle.documents)}")
    print()

    if not vehicle.documents:
        print("No documents found.")
        return 0

    statuses = sorted(
        vehicle.document_statuses(today),
        key=lambda s: (s.status.urgency, s.days_until_expiry if s.days_until_expiry is not None else 0),
    )
    headers = ["ID", "Type", "Expiry", "Status", "When", "File", "Notes"]
    print(tabulate(make_document_table(statuses), headers=headers, tablefmt="simple"))
    return 0


def cmd_add_vehicle(args, fleet: Fleet):
    """Register a new vehicle."""
    fields = parse_vehicle_fields({
        "registrationNumber": args.registration_number,
        "ownerName": args.owner,
        "ownerMobile": args.mobile,
    })

    print(f"Adding vehicle to {args.data}:")
    print(f"  Registration: {fields['registration_number']}")
    print(f"  Owner:        {fields['owner_name']}")
    print(f"  Mobile:       {fields['owner_mobile']}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    vehicle = fleet.create_vehicle(args.user, fields)
    print(f"Vehicle saved (id {vehicle.id}).")
    return 0


def cmd_add_document(args, fleet: Fleet):
    """Attach a document to a vehicle."""
    fields = parse_document_fields({
        "vehicleId": args.vehicle_id,
        "type": args.type,
        "expiryDate": args.expiry,
        "fileUrl": args.file,
        "notes": args.notes,
    })
    vehicle = fleet.get_vehicle(args.user, fields["vehicle_id"])

    print(f"Adding document to {vehicle.registration_number}:")
    print(f"  Type:   {fields['type'].display_name}")
    if fields["expiry_date"]:
        print(f"  Expiry: {fields['expiry_date']}")
    if fields["file_url"]:
        print(f"  File:   {fields['file_url']}")
    if fields["notes"]:
        print(f"  Notes:  {fields['notes']}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    document = fleet.create_document(args.user, fields)
    print(f"Document saved (id {document.id}).")
    return 0


def cmd_delete_vehicle(args, fleet: Fleet):
    """Delete a vehicle and its documents."""
    vehicle = fleet.get_vehicle(args.user, args.vehicle_id)
    fleet.delete_vehicle(args.user, vehicle.id)
    print(f"Deleted {vehicle.registration_number} and {len(vehicle.documents)} documents.")
    return 0


def cmd_delete_document(args, fleet: Fleet):
    """Delete a document."""
    fleet.delete_document(args.user, args.document_id)
    print("Document deleted.")
    return 0


# =============================================================================
# Main
# =============================================================================

COMMANDS = {
    "alerts": cmd_alerts,
    "vehicles": cmd_vehicles,
    "documents": cmd_documents,
    "add-vehicle": cmd_add_vehicle,
    "add-document": cmd_add_document,
    "delete-vehicle": cmd_delete_vehicle,
    "delete-document": cmd_delete_document,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fleet document tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --user kisun01 alerts
  %(prog)s --user kisun01 alerts --limit 5 --as-of 2026-01-01
  %(prog)s --user kisun01 vehicles --search MH12
  %(prog)s --user kisun01 add-vehicle "MH12 AB 1234" --owner "R. Patil" --mobile 9800000000
  %(prog)s --user kisun01 add-document 1 insurance --expiry 2026-03-31
  %(prog)s --user kisun01 add-document 1 owner_book --file /uploads/rc.pdf
  %(prog)s --user kisun01 documents 1
""",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=Path(os.environ.get("FLEETDOCS_DATA_FILE", "fleet.yaml")),
        help="Path to the fleet YAML store (default: $FLEETDOCS_DATA_FILE or fleet.yaml)",
    )
    parser.add_argument(
        "--user",
        type=str,
        default=os.environ.get("FLEETDOCS_USER"),
        help="Owning user id (default: $FLEETDOCS_USER)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    alerts_parser = subparsers.add_parser(
        "alerts", help="Show expired and expiring documents"
    )
    alerts_parser.add_argument("--as-of", type=str, help="Reference date YYYY-MM-DD (default: today)")
    alerts_parser.add_argument("--limit", type=int, help="Show only the N most urgent alerts")

    vehicles_parser = subparsers.add_parser("vehicles", help="List vehicles")
    vehicles_parser.add_argument(
        "--search", type=str, help="Filter by registration number (case-insensitive)"
    )

    documents_parser = subparsers.add_parser("documents", help="Show a vehicle's documents")
    documents_parser.add_argument("vehicle_id", type=int, help="Vehicle id")
    documents_parser.add_argument("--as-of", type=str, help="Reference date YYYY-MM-DD (default: today)")

    add_vehicle_parser = subparsers.add_parser("add-vehicle", help="Register a new vehicle")
    add_vehicle_parser.add_argument("registration_number", type=str, help="Registration number")
    add_vehicle_parser.add_argument("--owner", type=str, required=True, help="Owner name")
    add_vehicle_parser.add_argument("--mobile", type=str, required=True, help="Owner mobile number")
    add_vehicle_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be added without saving"
    )

    add_document_parser = subparsers.add_parser("add-document", help="Attach a document")
    add_document_parser.add_argument("vehicle_id", type=int, help="Vehicle id")
    add_document_parser.add_argument("type", type=str, help="Document type (e.g., insurance, owner_book)")
    add_document_parser.add_argument("--expiry", type=str, help="Expiry date YYYY-MM-DD")
    add_document_parser.add_argument("--file", type=str, help="File URL or path")
    add_document_parser.add_argument("--notes", type=str, help="Notes")
    add_document_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be added without saving"
    )

    delete_vehicle_parser = subparsers.add_parser(
        "delete-vehicle", help="Delete a vehicle and its documents"
    )
    delete_vehicle_parser.add_argument("vehicle_id", type=int, help="Vehicle id")

    delete_document_parser = subparsers.add_parser("delete-document", help="Delete a document")
    delete_document_parser.add_argument("document_id", type=int, help="Document id")

    return parser


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)
    setup_logging("WARNING")

    if not args.user:
        print("Error: --user (or FLEETDOCS_USER) is required")
        return 1

    fleet = Fleet(YamlStore(args.data))
    try:
        return COMMANDS[args.command](args, fleet)
    except FleetError as e:
        field = f" ({e.field})" if e.field else ""
        print(f"Error: {e.message}{field}")
        return 1
    except StoreError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main() or 0)
