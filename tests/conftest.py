"""Shared test fixtures for gate, roster and dashboard route tests."""

import pytest
from unittest.mock import patch

from starlette.testclient import TestClient

from core.config import make_allow_list
from core.event_recorder import EventRecorder
from core.records import build_roster

HOST_EMAIL = "host@example.com"


class FakeStore:
    """In-memory stand-in for the Supabase roster store."""

    def __init__(self, rows=None, error=None):
        self.rows = rows if rows is not None else []
        self.error = error
        self.calls = []

    def is_configured(self):
        return True

    async def fetch_all(self, collection):
        self.calls.append(collection)
        if self.error is not None:
            raise self.error
        return list(self.rows)


# ---------------------------------------------------------------------------
# Data fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_rows():
    """Two participants as the users table returns them."""
    return [
        {"email": "a@x.com", "name": "Ann", "phone": "111", "lucky_number": 7},
        {"email": "b@x.com", "name": "Bob", "phone": "222", "lucky_number": 42},
    ]


@pytest.fixture
def roster(sample_rows):
    return build_roster(sample_rows)


@pytest.fixture
def allow_list():
    return make_allow_list([HOST_EMAIL])


@pytest.fixture
def make_store():
    return FakeStore


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def client():
    """Create a fresh test client for the FastHTML app."""
    from app.main import app
    return TestClient(app)


@pytest.fixture(autouse=True)
def isolated_app(tmp_path):
    """Fresh view registry, a known allow-list, and events written to tmp_path."""
    from app.main import _views

    _views.clear()
    recorder = EventRecorder(str(tmp_path))
    with patch("app.main.ALLOWED_EMAILS", make_allow_list([HOST_EMAIL])), \
         patch("app.main.get_event_recorder", return_value=recorder):
        yield recorder
    _views.clear()


@pytest.fixture
def store(sample_rows):
    """Roster store returning the sample rows."""
    fake = FakeStore(sample_rows)
    with patch("app.main.roster_store", fake):
        yield fake


@pytest.fixture
def failing_store():
    """Roster store that is unreachable."""
    from core.roster import FetchError

    fake = FakeStore(error=FetchError("Connection error: refused", "users"))
    with patch("app.main.roster_store", fake):
        yield fake


@pytest.fixture
def no_user():
    """Mock no user logged in (anonymous)."""
    with patch("app.main.get_current_user", return_value=None):
        yield


@pytest.fixture
def host_user():
    """Mock a logged-in allow-listed host."""
    from app.auth import User
    user = User(id="host-1", email=HOST_EMAIL)
    with patch("app.main.get_current_user", return_value=user):
        yield user


@pytest.fixture
def guest_user():
    """Mock a logged-in user who is not on the allow-list."""
    from app.auth import User
    user = User(id="guest-1", email="guest@example.com")
    with patch("app.main.get_current_user", return_value=user):
        yield user
