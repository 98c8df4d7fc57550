"""
Shared pytest fixtures for the Apprenticeship Registry test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - ctx: RequestContext for calling services directly
    - user / apprenticeship_type / apprenticeship: pre-created entities
"""

import pytest

from apprenticeship_registry import create_app
from apprenticeship_registry.integrations.telegram_gateway import telegram_gateway
from apprenticeship_registry.models import db as _db


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
        telegram_gateway.reset()
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def ctx():
    """Service context bound to the test session."""
    from apprenticeship_registry.services.store import RequestContext
    return RequestContext.from_request()


# ── Convenience fixtures ─────────────────────────────────────────────────


def _make_user(telegram_id="100500", full_name="Ivan Petrov", role="STUDENT"):
    from apprenticeship_registry.models.auth import User
    u = User(telegram_id=telegram_id, full_name=full_name, role=role)
    _db.session.add(u)
    _db.session.commit()
    return u


def _make_type(name="Производственная"):
    from apprenticeship_registry.models.apprenticeship import ApprenticeshipType
    t = ApprenticeshipType(name=name)
    _db.session.add(t)
    _db.session.commit()
    return t


def _make_apprenticeship(user, apprenticeship_type, **fields):
    from apprenticeship_registry.models.apprenticeship import Apprenticeship
    a = Apprenticeship(user_id=user.id, apprenticeship_type_id=apprenticeship_type.id, **fields)
    _db.session.add(a)
    _db.session.commit()
    return a


@pytest.fixture()
def user():
    return _make_user()


@pytest.fixture()
def apprenticeship_type():
    return _make_type()


@pytest.fixture()
def apprenticeship(user, apprenticeship_type):
    return _make_apprenticeship(user, apprenticeship_type, academic_year="2025/2026")


class _FakeGateway:
    """Notifier double that records calls and returns a canned outcome."""

    def __init__(self, ok=True, error=None, status_code=200):
        self.ok = ok
        self.error = error
        self.status_code = status_code
        self.calls = []

    def send(self, channel_id, text, parse_mode="HTML"):
        from apprenticeship_registry.integrations.telegram_gateway import GatewayResult
        self.calls.append((channel_id, text, parse_mode))
        return GatewayResult(ok=self.ok, status_code=self.status_code, data={"ok": self.ok},
                             error=None if self.ok else self.error, duration_ms=1)


@pytest.fixture()
def fake_gateway():
    """Factory: fake_gateway(ok=False, error="chat not found", status_code=400)."""
    return _FakeGateway
