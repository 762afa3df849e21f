import pytest
from unittest.mock import MagicMock

from college_events.auth_service.models import Claims, Role
from college_events.auth_service.utils import create_token
from college_events.config import Settings
from college_events.gateway.server import create_app

TEST_SECRET = "test-secret-that-is-long-enough-for-hs256"


@pytest.fixture
def settings():
    return Settings(
        database_url="postgresql://test@localhost:5432/college_events_test",
        jwt_secret=TEST_SECRET,
    )


@pytest.fixture
def app(settings):
    app = create_app(settings)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def mock_db(mocker):
    """
    Mocks the database connection and cursor.
    """
    mock_conn = MagicMock()
    mock_cursor = MagicMock()

    # Setup the context manager for connection
    mock_conn.__enter__.return_value = mock_conn
    mock_conn.__exit__.return_value = None

    # Setup the context manager for cursor
    mock_cursor.__enter__.return_value = mock_cursor
    mock_cursor.__exit__.return_value = None

    # Connect cursor to connection
    mock_conn.cursor.return_value = mock_cursor

    # Every module that talks to the database gets the same mock connection
    mocker.patch("college_events.auth_service.routes.get_db", return_value=mock_conn)
    mocker.patch("college_events.events_service.routes.get_db", return_value=mock_conn)
    mocker.patch("college_events.gateway.server.get_db", return_value=mock_conn)

    return mock_conn, mock_cursor


@pytest.fixture
def make_auth_header():
    """
    Build an Authorization header for a given account id and role.
    """
    def _make(account_id: int, role: Role, email: str = "someone@college.edu"):
        token = create_token(Claims(account_id, email, role), TEST_SECRET)
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def student_headers(make_auth_header):
    return make_auth_header(1, Role.STUDENT, "student@college.edu")


@pytest.fixture
def organiser_headers(make_auth_header):
    return make_auth_header(10, Role.ORGANISER, "organiser@college.edu")
