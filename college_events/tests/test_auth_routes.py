import pytest
import psycopg2
import psycopg2.errors

from college_events.auth_service.models import Role
from college_events.auth_service.passwords import hash_password
from college_events.auth_service.utils import decode_token
from college_events.database.init_db import PLACEHOLDER_PASSWORD_HASH
from conftest import TEST_SECRET

PROF_X = {
    "name": "Prof X",
    "email": "x@c.edu",
    "password": "pw123",
    "department": "CS",
}


def _student_row(password_hash="hashed_secret", **overrides):
    row = {
        "user_id": 1,
        "name": "Test Student",
        "email": "test@example.com",
        "password": password_hash,
        "department": "CS",
        "year": "2",
        "role": "student",
    }
    row.update(overrides)
    return row


def _organiser_row(password_hash="hashed_secret", **overrides):
    row = {
        "organiser_id": 5,
        "name": "Prof X",
        "email": "x@c.edu",
        "password": password_hash,
        "department": "CS",
        "phone": None,
        "is_active": True,
    }
    row.update(overrides)
    return row


# --- STUDENTS ---
def test_register_success(client, mock_db, mocker):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = _student_row()

    mock_hash = mocker.patch("college_events.auth_service.routes.hash_password", return_value="hashed_secret")

    payload = {
        "name": "Test Student",
        "email": " Test@Example.com ",
        "password": "password123",
        "department": "CS",
        "year": 2,
    }

    response = client.post("/api/register", json=payload)

    assert response.status_code == 200
    data = response.get_json()
    assert data["success"] is True
    assert data["user"]["id"] == 1
    assert data["user"]["role"] == "student"
    assert "password" not in data["user"]

    claims = decode_token(data["token"], TEST_SECRET)
    assert claims.account_id == 1
    assert claims.role is Role.STUDENT

    # Plaintext never reaches the database
    mock_hash.assert_called_once_with("password123")
    args, _ = mock_cursor.execute.call_args
    assert args[1] == ("Test Student", "test@example.com", "hashed_secret", "CS", "2", "student")


def test_register_missing_fields(client):
    response = client.post("/api/register", json={"email": "a@x.com"})
    assert response.status_code == 400
    assert response.get_json()["success"] is False
    assert "required" in response.get_json()["error"]


def test_register_duplicate_email(client, mock_db, mocker):
    mock_conn, mock_cursor = mock_db
    mocker.patch("college_events.auth_service.routes.hash_password", return_value="hashed_secret")

    payload = {"name": "A", "email": "a@x.com", "password": "pw", "department": "CS"}

    mock_cursor.fetchone.return_value = _student_row(email="a@x.com")
    first = client.post("/api/register", json=payload)
    assert first.status_code == 200

    mock_cursor.execute.side_effect = psycopg2.errors.UniqueViolation("duplicate key")
    second = client.post("/api/register", json=payload)
    assert second.status_code == 400
    assert second.get_json()["error"] == "User with this email already exists"


def test_register_database_failure_is_generic(client, mock_db, mocker):
    mock_conn, mock_cursor = mock_db
    mocker.patch("college_events.auth_service.routes.hash_password", return_value="hashed_secret")
    mock_cursor.execute.side_effect = psycopg2.OperationalError("server closed the connection")

    payload = {"name": "A", "email": "a@x.com", "password": "pw", "department": "CS"}
    response = client.post("/api/register", json=payload)

    assert response.status_code == 500
    assert response.get_json()["error"] == "Registration failed"


def test_register_then_login_round_trip(client, mock_db):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = _student_row(email="a@x.com")

    payload = {"name": "A", "email": "a@x.com", "password": "pw123", "department": "CS"}
    assert client.post("/api/register", json=payload).status_code == 200

    # Feed the stored digest back to the login query
    stored_hash = mock_cursor.execute.call_args[0][1][2]
    assert stored_hash != "pw123"
    mock_cursor.fetchone.return_value = _student_row(password_hash=stored_hash, email="a@x.com")

    response = client.post("/api/login", json={"email": "a@x.com", "password": "pw123"})

    assert response.status_code == 200
    claims = decode_token(response.get_json()["token"], TEST_SECRET)
    assert claims.role is Role.STUDENT
    assert claims.email == "a@x.com"


def test_login_invalid_password(client, mock_db):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = _student_row(password_hash=hash_password("right-password"))

    response = client.post("/api/login", json={"email": "test@example.com", "password": "wrong"})

    assert response.status_code == 401
    assert response.get_json()["error"] == "Invalid email or password"


def test_login_unknown_email(client, mock_db):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    response = client.post("/api/login", json={"email": "nobody@example.com", "password": "pw"})

    assert response.status_code == 401
    assert response.get_json()["error"] == "Invalid email or password"


def test_login_missing_fields(client):
    response = client.post("/api/login", json={"email": "a@x.com"})
    assert response.status_code == 400


# --- ORGANISERS ---
def test_register_organiser_then_duplicate(client, mock_db):
    mock_conn, mock_cursor = mock_db

    # Lookup finds nobody, insert returns the new row
    mock_cursor.fetchone.side_effect = [None, _organiser_row()]
    first = client.post("/api/organiser/register", json=PROF_X)

    assert first.status_code == 200
    data = first.get_json()
    assert data["success"] is True
    assert data["organiser"]["role"] == "organiser"
    assert decode_token(data["token"], TEST_SECRET).role is Role.ORGANISER

    # Lookup now finds the organiser
    mock_cursor.fetchone.side_effect = [{"organiser_id": 5}]
    second = client.post("/api/organiser/register", json=PROF_X)

    assert second.status_code == 400
    assert second.get_json()["error"] == "Organiser with this email already exists"


def test_register_organiser_race_on_unique_constraint(client, mock_db):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None
    mock_cursor.execute.side_effect = [None, psycopg2.errors.UniqueViolation("duplicate key")]

    response = client.post("/api/organiser/register", json=PROF_X)

    assert response.status_code == 400
    assert response.get_json()["error"] == "Organiser with this email already exists"


def test_register_organiser_missing_fields(client):
    response = client.post("/api/organiser/register", json={"name": "Prof X", "email": "x@c.edu"})
    assert response.status_code == 400
    assert response.get_json()["error"] == "All fields are required"


def test_login_organiser_success(client, mock_db):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = _organiser_row(password_hash=hash_password("pw123"))

    response = client.post("/api/organiser/login", json={"email": "x@c.edu", "password": "pw123"})

    assert response.status_code == 200
    data = response.get_json()
    assert data["organiser"]["id"] == 5
    claims = decode_token(data["token"], TEST_SECRET)
    assert claims.account_id == 5
    assert claims.role is Role.ORGANISER


def test_login_organiser_placeholder_hash(client, mock_db):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = _organiser_row(password_hash=PLACEHOLDER_PASSWORD_HASH)

    response = client.post("/api/organiser/login", json={"email": "x@c.edu", "password": "anything"})

    assert response.status_code == 401


def test_login_organiser_inactive(client, mock_db):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = _organiser_row(
        password_hash=hash_password("pw123"), is_active=False
    )

    response = client.post("/api/organiser/login", json={"email": "x@c.edu", "password": "pw123"})

    assert response.status_code == 401


def test_login_organiser_missing_fields(client):
    response = client.post("/api/organiser/login", json={})
    assert response.status_code == 400
    assert response.get_json()["error"] == "Email and password are required"


def test_login_organiser_database_failure(client, mock_db):
    mock_conn, mock_cursor = mock_db
    mock_cursor.execute.side_effect = psycopg2.OperationalError("secret internals")

    response = client.post("/api/organiser/login", json={"email": "x@c.edu", "password": "pw123"})

    assert response.status_code == 500
    assert "secret internals" not in response.get_data(as_text=True)


# --- PROFILE ---
def test_get_me_student(client, mock_db, student_headers):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = _student_row()

    response = client.get("/api/me", headers=student_headers)

    assert response.status_code == 200
    assert response.get_json()["user"]["email"] == "test@example.com"
    args, _ = mock_cursor.execute.call_args
    assert "FROM users" in args[0]
    assert args[1] == (1,)


def test_get_me_organiser(client, mock_db, organiser_headers):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = _organiser_row(organiser_id=10)

    response = client.get("/api/me", headers=organiser_headers)

    assert response.status_code == 200
    assert response.get_json()["organiser"]["id"] == 10
    assert "FROM organisers" in mock_cursor.execute.call_args[0][0]


def test_get_me_deleted_account(client, mock_db, student_headers):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    response = client.get("/api/me", headers=student_headers)

    assert response.status_code == 404


@pytest.mark.parametrize("headers, status", [
    ({}, 401),
    ({"Authorization": "Bearer bogus"}, 403),
])
def test_get_me_unauthenticated(client, headers, status):
    response = client.get("/api/me", headers=headers)
    assert response.status_code == status


# --- MALFORMED INPUT ---
@pytest.mark.parametrize("path, payload", [
    ("/api/register", {"name": "A", "email": "a@x.com", "password": 12345, "department": "CS"}),
    ("/api/login", {"email": "a@x.com", "password": 12345}),
    ("/api/organiser/register", dict(PROF_X, password=12345)),
    ("/api/organiser/login", {"email": "x@c.edu", "password": ["pw123"]}),
])
def test_non_string_password_rejected(client, mock_db, path, payload):
    mock_conn, mock_cursor = mock_db

    response = client.post(path, json=payload)

    assert response.status_code == 400
    assert response.get_json()["error"] == "Password must be a string"
    mock_cursor.execute.assert_not_called()


def test_student_login_never_signs_organiser_token(client, mock_db):
    mock_conn, mock_cursor = mock_db
    # A users row that claims the organiser role must not get an organiser token
    mock_cursor.fetchone.return_value = _student_row(
        password_hash=hash_password("pw123"), user_id=10, role="organiser"
    )

    response = client.post("/api/login", json={"email": "test@example.com", "password": "pw123"})

    assert response.status_code == 401
    assert "token" not in response.get_json()
