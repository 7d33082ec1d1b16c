"""
Pytest fixtures for storefront backend tests.

Provides an app on in-memory SQLite, a controllable clock shared by every
service, an in-memory mail outbox, and account/supplier helpers.
"""

from datetime import datetime, timedelta

import pytest

from storefront import create_app
from storefront.extensions import db
from storefront.services import get_services
from storefront.services.password_service import PasswordHasher


TEST_PASSWORD = "Str0ng!Pass"
TEST_SIGNING_SECRET = "test-signing-secret-with-plenty-of-entropy-0123456789"


class FakeClock:
    """Naive-UTC clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 9, 30, 0))


@pytest.fixture
def app(clock):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TOKEN_SIGNING_SECRET': TEST_SIGNING_SECRET,
        'BCRYPT_ROUNDS': 4,
        'MAIL_BACKEND': 'memory',
        'PUBLIC_URL': 'http://shop.test',
        'CLOCK': clock,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def services(app):
    return get_services()


@pytest.fixture
def outbox(services):
    return services.mailer.outbox


def create_account(username="bob", email="bob@x.com", password=TEST_PASSWORD, role="user", **fields):
    """Insert an account directly through the account store."""
    services = get_services()
    digest = services.hasher.hash(password)
    fields.setdefault("firstname", "Test")
    fields.setdefault("lastname", "User")
    return services.store.create(
        username=username,
        email=email,
        password_hash=digest,
        password_cost=PasswordHasher.cost_of(digest),
        role=role,
        **fields,
    )


def registration_payload(**overrides) -> dict:
    payload = {
        "username": "alice01",
        "firstname": "Alice",
        "lastname": "Perera",
        "email": "alice@example.com",
        "password": TEST_PASSWORD,
    }
    payload.update(overrides)
    return payload


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_headers(app, client):
    create_account(username="admin", email="admin@store.local", role="admin")
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture
def supplier(services):
    return services.suppliers.create_supplier("Acme Textiles", "orders@acme.example")
