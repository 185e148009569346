"""Flask web application for fleet document tracking."""

import logging
import os
import secrets
import uuid
from datetime import date, timedelta
from functools import wraps
from pathlib import Path

from flask import Flask, abort, g, jsonify, request, send_from_directory, session
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge
from werkzeug.utils import secure_filename

# Add parent directory to path for model imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from models import (
    Fleet,
    FleetError,
    StoreError,
    Unauthenticated,
    ValidationError,
    YamlStore,
    document_to_dict,
    parse_document_fields,
    parse_limit,
    parse_vehicle_fields,
    parse_vehicle_with_documents,
    vehicle_to_dict,
)
from models.calculations import parse_expiry_date
from models.logging_config import setup_logging

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent

ALLOWED_MIMETYPES = {
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-prod")
app.config.update(
    DATA_FILE=os.environ.get("FLEETDOCS_DATA_FILE", str(PROJECT_ROOT / "fleet.yaml")),
    UPLOAD_DIR=os.environ.get("FLEETDOCS_UPLOAD_DIR", str(PROJECT_ROOT / "uploads")),
    USERS={
        os.environ.get("FLEETDOCS_USERNAME", "admin"): {
            "id": os.environ.get("FLEETDOCS_USER_ID", os.environ.get("FLEETDOCS_USERNAME", "admin")),
            "password": os.environ.get("FLEETDOCS_PASSWORD", "change-me"),
        },
    },
    MAX_CONTENT_LENGTH=10 * 1024 * 1024,
    PERMANENT_SESSION_LIFETIME=timedelta(days=30),
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SECURE=os.environ.get("FLASK_ENV") == "production",
)


def get_fleet() -> Fleet:
    """Fleet service for the configured store file (one per request)."""
    if "fleet" not in g:
        g.fleet = Fleet(YamlStore(app.config["DATA_FILE"]))
    return g.fleet


def current_user_id() -> str:
    """Resolve the signed-in user id from the session cookie."""
    user = session.get("user")
    if not user:
        raise Unauthenticated("Unauthorized")
    return user["id"]


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        current_user_id()
        return view(*args, **kwargs)
    return wrapper


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object")
    return data


def document_payload(document, today: date) -> dict:
    """Document dict plus its expiry badge."""
    d = document_to_dict(document)
    doc_status = document.status(today)
    d["status"] = doc_status.status.value
    d["daysUntilExpiry"] = doc_status.days_until_expiry
    return d


def vehicle_payload(vehicle, today: date) -> dict:
    d = vehicle_to_dict(vehicle, include_documents=False)
    d["documents"] = [document_payload(doc, today) for doc in vehicle.documents]
    return d


def today_param() -> date:
    """Reference date for status badges; ?asOf=YYYY-MM-DD overrides today."""
    as_of = request.args.get("asOf")
    if not as_of:
        return date.today()
    try:
        return parse_expiry_date(as_of)
    except ValueError:
        raise ValidationError("asOf must be a date (YYYY-MM-DD)", "asOf")


# =============================================================================
# Error handlers
# =============================================================================


@app.errorhandler(FleetError)
def handle_fleet_error(error: FleetError):
    return jsonify(error.to_dict()), error.status_code


@app.errorhandler(RequestEntityTooLarge)
def handle_too_large(error):
    return jsonify({"message": "File too large (max 10MB)", "field": "file"}), 400


@app.errorhandler(StoreError)
def handle_store_error(error: StoreError):
    logger.exception("Store failure: %s", error)
    return jsonify({"message": "Internal server error"}), 500


@app.errorhandler(Exception)
def handle_unexpected(error: Exception):
    if isinstance(error, HTTPException):
        return jsonify({"message": error.description}), error.code
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({"message": "Internal server error"}), 500


# =============================================================================
# Auth
# =============================================================================


@app.route("/api/auth/login", methods=["POST"])
def login():
    data = json_body()
    username = data.get("username") or ""
    password = data.get("password") or ""

    user = app.config["USERS"].get(username)
    if user is None or not secrets.compare_digest(str(password), str(user["password"])):
        logger.warning("Failed login for %r", username)
        return jsonify({"message": "Invalid username or password"}), 401

    session.clear()
    session.permanent = True
    session["user"] = {"id": user["id"], "username": username}
    return jsonify({"user": session["user"]})


@app.route("/api/auth/logout", methods=["POST"])
def logout():
    session.clear()
    return jsonify({"message": "Logged out successfully"})


@app.route("/api/auth/user")
def auth_user():
    user = session.get("user")
    if not user:
        return jsonify({"message": "Not authenticated"}), 401
    return jsonify({"user": user})


# =============================================================================
# Vehicles
# =============================================================================


@app.route("/api/vehicles")
@login_required
def list_vehicles():
    """All of the user's vehicles, newest first, optionally filtered by ?search=."""
    today = today_param()
    search = request.args.get("search") or None
    vehicles = get_fleet().list_vehicles(current_user_id(), search)
    return jsonify([vehicle_payload(v, today) for v in vehicles])


@app.route("/api/vehicles/<int:vehicle_id>")
@login_required
def get_vehicle(vehicle_id: int):
    vehicle = get_fleet().get_vehicle(current_user_id(), vehicle_id)
    return jsonify(vehicle_payload(vehicle, today_param()))


@app.route("/api/vehicles", methods=["POST"])
@login_required
def create_vehicle():
    fields = parse_vehicle_fields(json_body())
    vehicle = get_fleet().create_vehicle(current_user_id(), fields)
    return jsonify(vehicle_to_dict(vehicle)), 201


@app.route("/api/vehicles/with-documents", methods=["POST"])
@login_required
def create_vehicle_with_documents():
    """Create a vehicle and its documents in one transaction."""
    fields, documents = parse_vehicle_with_documents(json_body())
    vehicle = get_fleet().create_vehicle_with_documents(current_user_id(), fields, documents)
    return jsonify(vehicle_payload(vehicle, date.today())), 201


@app.route("/api/vehicles/<int:vehicle_id>", methods=["PUT"])
@login_required
def update_vehicle(vehicle_id: int):
    fleet = get_fleet()
    user_id = current_user_id()
    # Ownership before payload validation
    fleet.get_vehicle(user_id, vehicle_id)
    updates = parse_vehicle_fields(json_body(), partial=True)
    vehicle = fleet.update_vehicle(user_id, vehicle_id, updates)
    return jsonify(vehicle_to_dict(vehicle, include_documents=False))


@app.route("/api/vehicles/<int:vehicle_id>", methods=["DELETE"])
@login_required
def delete_vehicle(vehicle_id: int):
    get_fleet().delete_vehicle(current_user_id(), vehicle_id)
    return "", 204


# =============================================================================
# Documents
# =============================================================================


@app.route("/api/documents", methods=["POST"])
@login_required
def create_document():
    fields = parse_document_fields(json_body())
    document = get_fleet().create_document(current_user_id(), fields)
    return jsonify(document_to_dict(document)), 201


@app.route("/api/documents/<int:document_id>", methods=["PUT"])
@login_required
def update_document(document_id: int):
    fleet = get_fleet()
    user_id = current_user_id()
    fleet.get_document(user_id, document_id)
    updates = parse_document_fields(json_body(), partial=True)
    document = fleet.update_document(user_id, document_id, updates)
    return jsonify(document_to_dict(document))


@app.route("/api/documents/<int:document_id>", methods=["DELETE"])
@login_required
def delete_document(document_id: int):
    get_fleet().delete_document(current_user_id(), document_id)
    return "", 204


# =============================================================================
# Alerts
# =============================================================================


@app.route("/api/alerts")
@login_required
def alerts():
    """Expired/expiring counts and alerts, most urgent first (?limit=5 truncates)."""
    limit = parse_limit(request.args.get("limit"))
    summary = get_fleet().alert_summary(current_user_id(), today_param())
    return jsonify(summary.to_dict(limit))


# =============================================================================
# Uploads
# =============================================================================


@app.route("/api/upload", methods=["POST"])
@login_required
def upload():
    """Save an uploaded file to local disk and return its opaque URL."""
    file = request.files.get("file")
    if file is None or not file.filename:
        return jsonify({"error": "No file uploaded"}), 400
    if file.mimetype not in ALLOWED_MIMETYPES:
        return jsonify({"error": "Unsupported file type"}), 400

    upload_dir = Path(app.config["UPLOAD_DIR"])
    upload_dir.mkdir(parents=True, exist_ok=True)
    filename = f"{uuid.uuid4()}-{secure_filename(file.filename) or 'upload'}"
    path = upload_dir / filename
    file.save(path)
    logger.info("Stored upload %s", filename)

    return jsonify({
        "fileUrl": f"/uploads/{filename}",
        "filename": filename,
        "originalName": file.filename,
        "size": path.stat().st_size,
        "mimetype": file.mimetype,
    })


@app.route("/uploads/<path:filename>")
@login_required
def uploaded_file(filename: str):
    upload_dir = Path(app.config["UPLOAD_DIR"])
    if not (upload_dir / filename).is_file():
        abort(404)
    return send_from_directory(upload_dir, filename)


if __name__ == "__main__":
    setup_logging()
    # Access from phone: use your computer's local IP (e.g., 192.168.1.x:5001)
    # Using 5001 to avoid conflict with macOS AirPlay Receiver on 5000
    app.run(debug=True, host="0.0.0.0", port=5001)
