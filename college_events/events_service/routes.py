"""
Events service routes: list, create, update, delete events, and student
registration for events.

Mutations are scoped to the caller's organiser id inside the SQL statement
itself, so an organiser can only ever touch rows they own.
"""

import logging
from datetime import date, datetime, time
from typing import Any, Dict, Optional, Tuple

import psycopg2
import psycopg2.errors
from flask import Blueprint, Response, g, jsonify, request

from college_events.auth_service.models import Claims, Role
from college_events.auth_service.utils import login_required, organiser_required
from college_events.database.db_connection import get_db
from college_events.errors import (
    ConflictError,
    Forbidden,
    InternalError,
    NotFound,
    NotFoundOrForbidden,
    ValidationError,
)

events_bp = Blueprint("events", __name__)

# --- CONSTANTS FOR VALIDATION ---
TITLE_MAX_LENGTH = 200
LOCATION_MAX_LENGTH = 200
CATEGORY_MAX_LENGTH = 50
CAPACITY_MAX = 2**31 - 1  # events.capacity is a 32-bit INTEGER
REGISTRATION_STATUS_CONFIRMED = "confirmed"

EVENT_NOT_FOUND_OR_DENIED = "Event not found or access denied"
STUDENTS_ONLY = "Only students can register for events"


@events_bp.before_request
def before_request() -> None:
    logging.info(f"[Events] Incoming {request.method} {request.path}")


def parse_date(val: Any) -> Optional[date]:
    """
    Parse a 'YYYY-MM-DD' string (a full ISO datetime is also accepted).

    Returns:
        date: The parsed date, or None if invalid.
    """
    if not val or not isinstance(val, str):
        return None
    try:
        # Handles 'YYYY-MM-DD', 'YYYY-MM-DDTHH:MM' and '...Z' or '...+00:00'
        if val.endswith('Z'):
            val = val[:-1] + '+00:00'
        return datetime.fromisoformat(val).date()
    except ValueError:
        return None


def parse_time(val: Any) -> Optional[time]:
    """Parse 'HH:MM' or 'HH:MM:SS'. Returns None if invalid."""
    if not val or not isinstance(val, str):
        return None
    try:
        return time.fromisoformat(val)
    except ValueError:
        return None


def _serialize(row: Dict[str, Any]) -> Dict[str, Any]:
    """Convert date/time columns to ISO strings for JSON."""
    out = dict(row)
    for key, value in out.items():
        if isinstance(value, (datetime, date, time)):
            out[key] = value.isoformat()
    return out


def _read_event_body() -> Tuple:
    """
    Validate the event fields shared by create and update.

    Returns:
        tuple: (title, description, date, time, location, category, capacity)

    Raises:
        ValidationError: A required field is missing or malformed.
    """
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    raw_title = data.get("title")
    title = raw_title.strip() if isinstance(raw_title, str) else ""
    description = data.get("description") or None
    location = data.get("location") or None
    category = data.get("category") or None

    # --- START VALIDATION ---
    if not title or not data.get("date"):
        raise ValidationError("title and date are required")

    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title must be {TITLE_MAX_LENGTH} characters or less.")

    event_date = parse_date(data.get("date"))
    if not event_date:
        raise ValidationError("Invalid date format. Use YYYY-MM-DD.")

    event_time = None
    if data.get("time"):
        event_time = parse_time(data.get("time"))
        if not event_time:
            raise ValidationError("Invalid time format. Use HH:MM.")

    if location is not None and (not isinstance(location, str) or len(location) > LOCATION_MAX_LENGTH):
        raise ValidationError(f"Location must be text of {LOCATION_MAX_LENGTH} characters or less.")

    if category is not None and (not isinstance(category, str) or len(category) > CATEGORY_MAX_LENGTH):
        raise ValidationError(f"Category must be text of {CATEGORY_MAX_LENGTH} characters or less.")

    if description is not None and not isinstance(description, str):
        raise ValidationError("Description must be text.")

    capacity = data.get("capacity")
    if capacity is None or capacity == "":
        capacity = None
    elif isinstance(capacity, str) and capacity.strip().isdigit():
        capacity = int(capacity.strip())
    elif isinstance(capacity, bool) or not isinstance(capacity, int):
        raise ValidationError("capacity must be a positive integer")

    if capacity is not None and not 0 < capacity <= CAPACITY_MAX:
        raise ValidationError("capacity must be a positive integer")
    # --- END VALIDATION ---

    return title, description, event_date, event_time, location, category, capacity


# --- PUBLIC LISTING ---
@events_bp.route("/events", methods=["GET"])
def list_events() -> Tuple[Response, int]:
    """
    Return every event with its organiser's name and confirmed registrations.

    Returns:
        200: {"events": [...]}
        500: Database error.
    """
    sql = """
        SELECT
            e.event_id, e.title, e.description, e.date, e.time,
            e.location, e.category, e.capacity, e.organizer_id, e.created_at,
            o.name AS organizer_name,
            (SELECT COUNT(*) FROM registrations r
             WHERE r.event_id = e.event_id AND r.status = %s) AS registration_count
        FROM events e
        LEFT JOIN organisers o ON e.organizer_id = o.organiser_id
        ORDER BY e.date, e.time NULLS LAST, e.event_id;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (REGISTRATION_STATUS_CONFIRMED,))
                events = [_serialize(r) for r in cur.fetchall()]
    except psycopg2.Error:
        logging.exception("[Events] Listing events failed")
        raise InternalError("Failed to fetch events")

    return jsonify({"events": events}), 200


# --- ORGANISER DASHBOARD ---
@events_bp.route("/organiser/events", methods=["GET"])
@organiser_required
def list_organiser_events() -> Tuple[Response, int]:
    """
    Return the calling organiser's events with registration counts.

    Returns:
        200: {"events": [...]} with registration_count and confirmed_registrations.
        401/403: Missing token, invalid token, or not an organiser.
        500: Database error.
    """
    claims: Claims = g.claims

    sql = """
        SELECT
            e.event_id, e.title, e.description, e.date, e.time,
            e.location, e.category, e.capacity, e.organizer_id, e.created_at,
            COUNT(r.registration_id) AS registration_count,
            COUNT(r.registration_id) FILTER (WHERE r.status = %s) AS confirmed_registrations
        FROM events e
        LEFT JOIN registrations r ON e.event_id = r.event_id
        WHERE e.organizer_id = %s
        GROUP BY e.event_id
        ORDER BY e.date, e.time NULLS LAST, e.event_id;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (REGISTRATION_STATUS_CONFIRMED, claims.account_id))
                events = [_serialize(r) for r in cur.fetchall()]
    except psycopg2.Error:
        logging.exception(f"[Events] Listing events for organiser {claims.account_id} failed")
        raise InternalError("Failed to fetch organiser events")

    return jsonify({"events": events}), 200


# --- CREATE ---
@events_bp.route("/events", methods=["POST"])
@organiser_required
def create_event() -> Tuple[Response, int]:
    """
    Create an event owned by the calling organiser.

    Returns:
        200: {"success": true, "eventId": int}
        400: Validation error.
        401/403: Not an authenticated organiser.
        500: Database error.
    """
    claims: Claims = g.claims
    title, description, event_date, event_time, location, category, capacity = _read_event_body()

    sql = """
        INSERT INTO events (title, description, date, time, location, category, capacity, organizer_id)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING event_id;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (
                    title, description, event_date, event_time,
                    location, category, capacity, claims.account_id,
                ))
                event_id = cur.fetchone()["event_id"]
    except psycopg2.errors.ForeignKeyViolation:
        # Token outlived the organiser account.
        raise Forbidden("Organiser account no longer exists")
    except psycopg2.Error:
        logging.exception("[Events] Event creation failed")
        raise InternalError("Event creation failed")

    logging.info(f"[Events] Organiser {claims.account_id} created event {event_id}")

    return jsonify({
        "success": True,
        "message": "Event created successfully",
        "eventId": event_id,
    }), 200


# --- UPDATE ---
@events_bp.route("/events/<int:event_id>", methods=["PUT"])
@organiser_required
def update_event(event_id: int) -> Tuple[Response, int]:
    """
    Replace an event's details. Only its owning organiser may do so.

    Missing events and events owned by someone else both yield 404, so
    non-owners learn nothing about which ids exist.

    Returns:
        200: {"success": true}
        400: Validation error.
        401/403: Not an authenticated organiser.
        404: Event not found or access denied.
        500: Database error.
    """
    claims: Claims = g.claims
    title, description, event_date, event_time, location, category, capacity = _read_event_body()

    sql = """
        UPDATE events
        SET title = %s, description = %s, date = %s, time = %s,
            location = %s, category = %s, capacity = %s,
            updated_at = CURRENT_TIMESTAMP
        WHERE event_id = %s AND organizer_id = %s
        RETURNING event_id;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (
                    title, description, event_date, event_time,
                    location, category, capacity, event_id, claims.account_id,
                ))
                updated = cur.fetchone()
    except psycopg2.Error:
        logging.exception(f"[Events] Updating event {event_id} failed")
        raise InternalError("Event update failed")

    if not updated:
        raise NotFoundOrForbidden(EVENT_NOT_FOUND_OR_DENIED)

    return jsonify({"success": True, "message": "Event updated successfully"}), 200


# --- DELETE ---
@events_bp.route("/events/<int:event_id>", methods=["DELETE"])
@organiser_required
def delete_event(event_id: int) -> Tuple[Response, int]:
    """
    Delete an event owned by the caller. Registrations cascade.

    Returns:
        200: {"success": true}
        401/403: Not an authenticated organiser.
        404: Event not found or access denied.
        500: Database error.
    """
    claims: Claims = g.claims

    sql = "DELETE FROM events WHERE event_id = %s AND organizer_id = %s RETURNING event_id;"

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (event_id, claims.account_id))
                deleted = cur.fetchone()
    except psycopg2.Error:
        logging.exception(f"[Events] Deleting event {event_id} failed")
        raise InternalError("Event deletion failed")

    if not deleted:
        raise NotFoundOrForbidden(EVENT_NOT_FOUND_OR_DENIED)

    logging.info(f"[Events] Organiser {claims.account_id} deleted event {event_id}")

    return jsonify({"success": True, "message": "Event deleted successfully"}), 200


# --- STUDENT REGISTRATION ---
@events_bp.route("/events/<int:event_id>/register", methods=["POST"])
@login_required
def register_for_event(event_id: int) -> Tuple[Response, int]:
    """
    Register the calling student for an event.

    Checks, in order:
    1. The caller is a student (token role and account row).
    2. The student is not registered for this event yet.
    3. Insert with status 'confirmed'.

    The unique (user_id, event_id) constraint backs up step 2 when two
    requests from the same student race.

    Returns:
        200: {"success": true, "registrationId": int}
        400: Already registered.
        401/403: Missing/invalid token or not a student.
        404: Event not found.
        500: Database error.
    """
    claims: Claims = g.claims

    if claims.role is not Role.STUDENT:
        raise Forbidden(STUDENTS_ONLY)

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT role FROM users WHERE user_id = %s;", (claims.account_id,))
                user = cur.fetchone()
                if not user or user["role"] != Role.STUDENT.value:
                    raise Forbidden(STUDENTS_ONLY)

                cur.execute(
                    "SELECT registration_id FROM registrations WHERE user_id = %s AND event_id = %s;",
                    (claims.account_id, event_id),
                )
                if cur.fetchone():
                    raise ConflictError("Already registered for this event")

                cur.execute(
                    """
                    INSERT INTO registrations (user_id, event_id, status)
                    VALUES (%s, %s, %s)
                    RETURNING registration_id;
                    """,
                    (claims.account_id, event_id, REGISTRATION_STATUS_CONFIRMED),
                )
                registration_id = cur.fetchone()["registration_id"]
    except psycopg2.errors.UniqueViolation:
        raise ConflictError("Already registered for this event")
    except psycopg2.errors.ForeignKeyViolation:
        raise NotFound("Event not found")
    except psycopg2.Error:
        logging.exception(f"[Events] Registration of user {claims.account_id} for event {event_id} failed")
        raise InternalError("Registration failed")

    logging.info(f"[Events] User {claims.account_id} registered for event {event_id}")

    return jsonify({
        "success": True,
        "message": "Successfully registered for event",
        "registrationId": registration_id,
    }), 200
