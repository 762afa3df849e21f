"""
Authentication service route handlers.

Provides routes for:
- Student registration and login
- Organiser registration and login
- Profile retrieval (/me)

Token logic is delegated to `auth_service.utils`, hashing to
`auth_service.passwords`.
"""

import logging
from typing import Any, Dict, Tuple

import psycopg2
import psycopg2.errors
from argon2.exceptions import HashingError
from flask import Blueprint, Response, g, jsonify, request

from college_events.auth_service.models import Claims, Role
from college_events.auth_service.passwords import hash_password, verify_password
from college_events.auth_service.utils import issue_token, login_required
from college_events.database.db_connection import get_db
from college_events.errors import (
    ConflictError,
    InternalError,
    NotFound,
    Unauthorized,
    ValidationError,
)

auth_bp = Blueprint("auth", __name__)

INVALID_CREDENTIALS = "Invalid email or password"


# --- REQUEST LOGGING ---
@auth_bp.before_request
def before_request() -> None:
    """
    Log every incoming request to the authentication service.
    Headers and bodies are left out: they carry tokens and passwords.
    """
    logging.info(f"[Auth] Incoming {request.method} {request.path}")


@auth_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Auth] Response {response.status}")
    return response


def _read_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _read_password(data: Dict[str, Any]) -> str:
    """Return the password field, or "" when absent. Non-text values are rejected."""
    password = data.get("password")
    if password is None:
        return ""
    if not isinstance(password, str):
        raise ValidationError("Password must be a string")
    return password


def _hash_or_fail(password: str) -> str:
    try:
        return hash_password(password)
    except HashingError:
        logging.exception("[Auth] Password hashing failed")
        raise InternalError("Password hashing failed")


def _student_json(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["user_id"],
        "name": row["name"],
        "email": row["email"],
        "department": row["department"],
        "year": row["year"],
        "role": row["role"],
    }


def _organiser_json(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["organiser_id"],
        "name": row["name"],
        "email": row["email"],
        "department": row["department"],
        "phone": row["phone"],
        "role": Role.ORGANISER.value,
    }


# --- STUDENT REGISTER ---
@auth_bp.route("/register", methods=["POST"])
def register() -> Tuple[Response, int]:
    """
    Register a new student account.

    Expects a JSON body with:
    - name, email, password, department (required)
    - year (optional)

    Returns:
        200: success flag, token, and the new user (role is always student).
        400: Missing fields or email already registered.
        500: Hashing or database failure.
    """
    data = _read_body()
    name = _clean(data.get("name"))
    email = _clean(data.get("email")).lower()
    password = _read_password(data)
    department = _clean(data.get("department"))
    year = None
    if data.get("year") is not None:
        year = _clean(str(data["year"])) or None

    if not name or not email or not password or not department:
        raise ValidationError("Name, email, password and department are required")

    pw_hash = _hash_or_fail(password)

    sql = """
        INSERT INTO users (name, email, password, department, year, role)
        VALUES (%s, %s, %s, %s, %s, %s)
        RETURNING user_id, name, email, department, year, role;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (name, email, pw_hash, department, year, Role.STUDENT.value))
                user = cur.fetchone()
    except psycopg2.errors.UniqueViolation:
        raise ConflictError("User with this email already exists")
    except psycopg2.Error:
        logging.exception("[Auth] Student registration failed")
        raise InternalError("Registration failed")

    token = issue_token(Claims(user["user_id"], email, Role.STUDENT))
    logging.info(f"[Auth] Registered student {user['user_id']}")

    return jsonify({
        "success": True,
        "message": "User registered successfully",
        "token": token,
        "user": _student_json(user),
    }), 200


# --- STUDENT LOGIN ---
@auth_bp.route("/login", methods=["POST"])
def login() -> Tuple[Response, int]:
    """
    Authenticate a student and return a JWT.

    Returns:
        200: success flag, token, and the user profile.
        400: Missing credentials.
        401: Unknown email or wrong password.
        500: Database error.
    """
    data = _read_body()
    email = _clean(data.get("email")).lower()
    password = _read_password(data)

    if not email or not password:
        raise ValidationError("Email and password are required")

    sql = """
        SELECT user_id, name, email, password, department, year, role
        FROM users
        WHERE email = %s;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (email,))
                user = cur.fetchone()
    except psycopg2.Error:
        logging.exception("[Auth] Student login failed")
        raise InternalError("Login failed")

    if not user or not verify_password(password, user["password"]):
        raise Unauthorized(INVALID_CREDENTIALS)

    # Student ids and organiser ids come from different tables, so this
    # endpoint only ever signs student tokens.
    if user["role"] != Role.STUDENT.value:
        logging.warning(f"[Auth] Refusing login for user {user['user_id']} with role {user['role']!r}")
        raise Unauthorized(INVALID_CREDENTIALS)

    token = issue_token(Claims(user["user_id"], user["email"], Role.STUDENT))

    return jsonify({
        "success": True,
        "message": "Login successful",
        "token": token,
        "user": _student_json(user),
    }), 200


# --- ORGANISER REGISTER ---
@auth_bp.route("/organiser/register", methods=["POST"])
def register_organiser() -> Tuple[Response, int]:
    """
    Register a new organiser account.

    Expects a JSON body with:
    - name, email, password, department (required)
    - phone (optional)

    Returns:
        200: success flag, token, and the new organiser.
        400: Missing fields or email already registered.
        500: Hashing or database failure.
    """
    data = _read_body()
    name = _clean(data.get("name"))
    email = _clean(data.get("email")).lower()
    password = _read_password(data)
    department = _clean(data.get("department"))
    phone = _clean(data.get("phone")) or None

    if not name or not email or not password or not department:
        raise ValidationError("All fields are required")

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT organiser_id FROM organisers WHERE email = %s;", (email,))
                existing = cur.fetchone()
    except psycopg2.Error:
        logging.exception("[Auth] Organiser lookup failed")
        raise InternalError("Registration failed")

    if existing:
        raise ConflictError("Organiser with this email already exists")

    pw_hash = _hash_or_fail(password)

    sql = """
        INSERT INTO organisers (name, email, password, department, phone)
        VALUES (%s, %s, %s, %s, %s)
        RETURNING organiser_id, name, email, department, phone;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (name, email, pw_hash, department, phone))
                organiser = cur.fetchone()
    except psycopg2.errors.UniqueViolation:
        # Lost a race with a concurrent registration for the same email.
        raise ConflictError("Organiser with this email already exists")
    except psycopg2.Error:
        logging.exception("[Auth] Organiser registration failed")
        raise InternalError("Registration failed")

    token = issue_token(Claims(organiser["organiser_id"], email, Role.ORGANISER))
    logging.info(f"[Auth] Registered organiser {organiser['organiser_id']}")

    return jsonify({
        "success": True,
        "message": "Organiser registered successfully",
        "token": token,
        "organiser": _organiser_json(organiser),
    }), 200


# --- ORGANISER LOGIN ---
@auth_bp.route("/organiser/login", methods=["POST"])
def login_organiser() -> Tuple[Response, int]:
    """
    Authenticate an organiser and return a JWT with the organiser role.

    Returns:
        200: success flag, token, and the organiser profile.
        400: Missing credentials.
        401: Unknown email, wrong password, or deactivated account.
        500: Database error.
    """
    data = _read_body()
    email = _clean(data.get("email")).lower()
    password = _read_password(data)

    if not email or not password:
        raise ValidationError("Email and password are required")

    sql = """
        SELECT organiser_id, name, email, password, department, phone, is_active
        FROM organisers
        WHERE email = %s;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (email,))
                organiser = cur.fetchone()
    except psycopg2.Error:
        logging.exception("[Auth] Organiser login failed")
        raise InternalError("Login failed")

    if not organiser or not verify_password(password, organiser["password"]):
        raise Unauthorized(INVALID_CREDENTIALS)

    if organiser["is_active"] is False:
        raise Unauthorized(INVALID_CREDENTIALS)

    token = issue_token(Claims(organiser["organiser_id"], organiser["email"], Role.ORGANISER))

    return jsonify({
        "success": True,
        "message": "Login successful",
        "token": token,
        "organiser": _organiser_json(organiser),
    }), 200


# --- GET CURRENT ACCOUNT ---
@auth_bp.route("/me", methods=["GET"])
@login_required
def get_current_account() -> Tuple[Response, int]:
    """
    Return the caller's profile from the table matching their role.

    Returns:
        200: {"success": true, "user": {...}} or {"success": true, "organiser": {...}}
        401/403: Authentication failure.
        404: Account no longer exists.
        500: Database error.
    """
    claims: Claims = g.claims

    if claims.role is Role.ORGANISER:
        sql = """
            SELECT organiser_id, name, email, department, phone
            FROM organisers
            WHERE organiser_id = %s;
        """
        key, render = "organiser", _organiser_json
    else:
        sql = """
            SELECT user_id, name, email, department, year, role
            FROM users
            WHERE user_id = %s;
        """
        key, render = "user", _student_json

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (claims.account_id,))
                account = cur.fetchone()
    except psycopg2.Error:
        logging.exception("[Auth] Profile lookup failed")
        raise InternalError("Could not retrieve account")

    if not account:
        raise NotFound("Account not found")

    return jsonify({"success": True, key: render(account)}), 200
