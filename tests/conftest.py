"""
Shared pytest fixtures for the Taskboard test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - admin / manager / developer / reporter: pre-created users per role
    - auth_headers: factory returning bearer-token headers for a user
"""

import pytest

from taskboard import create_app
from taskboard.models import db as _db
from taskboard.models.user import User
from taskboard.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        app.config["TASK_TRANSITION_POLICY"] = "unconstrained"
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Identity fixtures ────────────────────────────────────────────────────


def _make_user(username, role):
    user = User(
        username=username,
        email=f"{username}@example.com",
        name=username.title(),
        role=role,
    )
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture()
def admin():
    return _make_user("admin", "ADMIN")


@pytest.fixture()
def manager():
    return _make_user("manager", "MANAGER")


@pytest.fixture()
def developer():
    return _make_user("dev", "DEVELOPER")


@pytest.fixture()
def reporter():
    return _make_user("rep", "REPORTER")


@pytest.fixture()
def auth_headers():
    """Return a function: user → {"Authorization": "Bearer <token>"}."""
    def _headers(user):
        return {"Authorization": f"Bearer {generate_access_token(user.id, user.role)}"}
    return _headers


# ── API helpers ──────────────────────────────────────────────────────────


@pytest.fixture()
def api(client, auth_headers, developer):
    """Test client wrapper that authenticates as *developer* unless told otherwise."""

    class _Api:
        def __init__(self):
            self.user = developer

        def as_user(self, user):
            self.user = user
            return self

        def _call(self, method, url, user=None, **kw):
            headers = kw.pop("headers", {})
            headers.update(auth_headers(user or self.user))
            return getattr(client, method)(url, headers=headers, **kw)

        def get(self, url, **kw):
            return self._call("get", url, **kw)

        def post(self, url, **kw):
            return self._call("post", url, **kw)

        def put(self, url, **kw):
            return self._call("put", url, **kw)

        def patch(self, url, **kw):
            return self._call("patch", url, **kw)

        def delete(self, url, **kw):
            return self._call("delete", url, **kw)

    return _Api()
