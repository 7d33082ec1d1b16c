import pytest

from storefront.extensions import db
from storefront.models import Referral, SupplierToken, User
from storefront.services.supplier_token_service import OrderStockRequest
from conftest import TEST_PASSWORD, create_account


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def test_create_user(runner, services):
    result = runner.invoke(args=[
        "users", "create",
        "--username", "staff01",
        "--email", "Staff@Store.local",
        "--password", TEST_PASSWORD,
        "--role", "staff",
    ])

    assert result.exit_code == 0, result.output
    assert "PASS Created user: staff01" in result.output

    user = db.session.query(User).filter_by(username="staff01").one()
    assert user.email == "staff@store.local"
    assert user.role == "staff"
    assert services.hasher.verify(TEST_PASSWORD, user.password_hash)


def test_create_user_rejects_weak_password(runner):
    result = runner.invoke(args=[
        "users", "create", "--username", "staff01", "--email", "staff@store.local", "--password", "weak",
    ])
    assert result.exit_code == 1
    assert "FAIL" in result.output
    assert db.session.query(User).count() == 0


def test_create_user_rejects_duplicate(runner):
    create_account(username="staff01", email="staff@store.local")
    result = runner.invoke(args=[
        "users", "create", "--username", "STAFF01", "--email", "other@store.local", "--password", TEST_PASSWORD,
    ])
    assert result.exit_code == 1
    assert "Username already exists" in result.output


def test_list_users(runner):
    create_account(username="bob", email="bob@x.com")
    result = runner.invoke(args=["users", "list"])
    assert result.exit_code == 0
    assert "bob@x.com" in result.output


def test_unlock(runner, services):
    user = create_account(username="bob", email="bob@x.com")
    for _ in range(5):
        services.lockout.register_failure(user)

    result = runner.invoke(args=["users", "unlock", "BOB@x.com"])

    assert result.exit_code == 0
    assert "PASS Unlocked bob" in result.output
    assert services.store.get(user.id).failed_attempts == 0


def test_unlock_unknown(runner):
    result = runner.invoke(args=["users", "unlock", "ghost"])
    assert result.exit_code == 1


def test_create_supplier(runner):
    result = runner.invoke(args=["suppliers", "create", "--name", "Acme Textiles", "--email", "orders@acme.example"])
    assert result.exit_code == 0
    assert "orders@acme.example" in runner.invoke(args=["suppliers", "list"]).output

    again = runner.invoke(args=["suppliers", "create", "--name", "Acme", "--email", "ORDERS@acme.example"])
    assert again.exit_code == 1


def test_expire_stale(runner, services, supplier, clock):
    services.suppliers.issue(OrderStockRequest.from_json(
        {"email": "orders@acme.example", "itemId": "SKU-1", "quantity": 1, "date": "2026-04-01"}
    ))
    clock.advance(hours=25)

    result = runner.invoke(args=["suppliers", "expire-stale"])

    assert "Marked 1 supplier token(s) as EXPIRED." in result.output
    assert db.session.query(SupplierToken).one().status == "EXPIRED"


def test_create_referral(runner):
    create_account(username="bob", email="bob@x.com")
    result = runner.invoke(args=["referrals", "create", "--referrer", "bob", "--email", "carol@example.com"])
    assert result.exit_code == 0
    token = db.session.query(Referral).one().token
    assert token in result.output


def test_cleanup_sessions(runner, services, clock):
    user = create_account(username="bob", email="bob@x.com")
    services.sessions.create_session(user)
    clock.advance(days=40)

    result = runner.invoke(args=["maintenance", "cleanup-sessions", "--retention-days", "30"])

    assert result.exit_code == 0
    assert "Deleted 1 sessions" in result.output


def test_deactivate_revokes_sessions(runner, services):
    user = create_account(username="bob", email="bob@x.com")
    _, token = services.sessions.create_session(user)

    result = runner.invoke(args=["users", "deactivate", "bob"])

    assert result.exit_code == 0
    assert "revoked 1 session(s)" in result.output
    assert services.store.get(user.id).is_active is False
    assert services.sessions.validate_session(token) is None
