"""
Pytest fixtures for the marketplace test suite.

Provides:
- An application built from TestConfig (in-memory SQLite, rate limits off)
- A file-backed SQLite application for multi-threaded tests
- Fresh tables per test
- User/identity factories and bearer-token helpers
- Shortcuts for the transition engine and query layer
"""

import itertools
from datetime import date, timedelta

import pytest
from flask.testing import FlaskClient

from app import create_app
from app.extensions import db
from app.models import Role, User
from app.settings import TestConfig
from app.utils.auth import Identity
from app.utils.tokens import issue_token


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
    app.extensions["storage"].dispose()


@pytest.fixture
def file_app(tmp_path):
    """App on a SQLite file so each thread gets its own pooled connection."""

    class FileDatabaseConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'market.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30, "check_same_thread": False}}

    app = create_app(FileDatabaseConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
    app.extensions["storage"].dispose()


class _FreshContextClient(FlaskClient):
    """Run each request in its own app context so ``g`` (and Flask-Login's
    cached user) does not leak between requests within one test."""

    def open(self, *args, **kwargs):
        with self.application.app_context():
            return super().open(*args, **kwargs)


@pytest.fixture
def client(app):
    app.test_client_class = _FreshContextClient
    return app.test_client()


@pytest.fixture
def storage(app):
    return app.extensions["storage"]


@pytest.fixture
def engine(app):
    return app.extensions["transitions"]


@pytest.fixture
def queries(app):
    return app.extensions["queries"]


@pytest.fixture
def make_user(storage):
    """Insert a user and return its Identity."""
    counter = itertools.count(1)

    def _make(role: Role, username: str | None = None) -> Identity:
        name = username or f"{role.value}_{next(counter)}"
        with storage.unit_of_work("Create test user") as uow:
            user = User(username=name, role=role)
            uow.session.add(user)
            uow.session.flush()
        return Identity(user_id=user.id, role=role, role_name=role.value)

    return _make


@pytest.fixture
def farmer(make_user):
    return make_user(Role.FARMER, "farmer_f")


@pytest.fixture
def provider(make_user):
    return make_user(Role.SERVICE_PROVIDER, "provider_p1")


@pytest.fixture
def tractor_owner(make_user):
    return make_user(Role.TRACTOR_OWNER, "tractor_p2")


@pytest.fixture
def admin(make_user):
    return make_user(Role.ADMIN, "admin_a")


@pytest.fixture
def tomorrow():
    return (date.today() + timedelta(days=1)).isoformat()


@pytest.fixture
def request_payload(tomorrow):
    def _payload(**overrides):
        data = {
            "service_type": "ploughing",
            "description": "Plough 3 acres before the rains",
            "location_lat": -1.2921,
            "location_lon": 36.8219,
            "required_date": tomorrow,
            "budget": 5000,
        }
        data.update(overrides)
        return data

    return _payload


@pytest.fixture
def auth_header():
    def _header(identity: Identity) -> dict:
        return {"Authorization": f"Bearer {issue_token(identity.user_id, identity.role)}"}

    return _header
