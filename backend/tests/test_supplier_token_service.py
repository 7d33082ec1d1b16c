import re
from datetime import datetime

import pytest

from storefront.errors import (
    ConflictError,
    DeliveryError,
    NotFoundError,
    RateLimitError,
    TimeoutExceeded,
    TokenError,
    ValidationError,
)
from storefront.extensions import db
from storefront.models import Supplier, SupplierToken
from storefront.services.mail_service import Mailer, MemoryMailer
from storefront.services.supplier_token_service import OrderStockRequest, normalize_decision
from storefront.services.token_service import hash_token


def order_request(**overrides) -> OrderStockRequest:
    data = {"email": "orders@acme.example", "itemId": "SKU-1001", "quantity": 50, "date": "2026-04-01"}
    data.update(overrides)
    return OrderStockRequest.from_json(data)


def emailed_token(message) -> str:
    body = message.get_body(preferencelist=("plain",)).get_content()
    return re.search(r"/supplier-access/(\S+)", body).group(1)


class TestOrderStockRequest:

    def test_parses_and_normalizes(self):
        request = order_request(email=" Orders@Acme.Example ", quantity="12")
        assert request.email == "orders@acme.example"
        assert request.quantity == 12
        assert request.required_date == datetime(2026, 4, 1)

    def test_accepts_legacy_field_names(self):
        request = OrderStockRequest.from_json(
            {"email": "orders@acme.example", "itemCode": "SKU-9", "qnt": 3, "date": "2026-04-01T10:00:00Z"}
        )
        assert request.item_id == "SKU-9"
        assert request.quantity == 3

    @pytest.mark.parametrize(
        "overrides",
        [
            {"email": None},
            {"email": "not-an-email"},
            {"quantity": -5},
            {"quantity": "ten"},
            {"quantity": 1.5},
            {"quantity": True},
            {"date": "next tuesday"},
            {"itemId": "x" * 65},
        ],
    )
    def test_rejects_bad_input(self, overrides):
        with pytest.raises(ValidationError):
            order_request(**overrides)

    def test_rejects_non_object(self):
        with pytest.raises(ValidationError):
            OrderStockRequest.from_json(["not", "a", "dict"])


class TestStatusNormalization:

    @pytest.mark.parametrize(
        "raw,expected",
        [("ACCEPTED", "ACCEPTED"), ("declined", "DECLINED"), ("APPROVED", "ACCEPTED"), ("Rejected", "DECLINED")],
    )
    def test_known_statuses(self, raw, expected):
        assert normalize_decision(raw) == expected

    @pytest.mark.parametrize("raw", ["PENDING", "EXPIRED", "", None, 1])
    def test_rejects_other_statuses(self, raw):
        with pytest.raises(ValidationError):
            normalize_decision(raw)


class TestIssue:

    def test_issue_persists_hash_and_emails_link(self, services, supplier, outbox, clock):
        record = services.suppliers.issue(order_request())

        assert record.status == "PENDING"
        assert record.created_at == clock.now
        assert (record.expires_at - record.created_at).total_seconds() == 24 * 3600

        assert len(outbox) == 1
        message = outbox[0]
        assert message["To"] == "orders@acme.example"
        assert "SKU-1001" in message["Subject"]

        raw = emailed_token(message)
        assert record.token_hash == hash_token(raw)
        assert record.token_hash != raw
        assert "http://shop.test/supplier-access/" in message.get_body(preferencelist=("plain",)).get_content()

    def test_unknown_supplier(self, services):
        with pytest.raises(NotFoundError):
            services.suppliers.issue(order_request())

    def test_inactive_supplier(self, services, supplier):
        supplier.is_active = False
        db.session.commit()
        with pytest.raises(NotFoundError):
            services.suppliers.issue(order_request())

    def test_rate_limit_per_rolling_hour(self, services, supplier, clock):
        for _ in range(5):
            services.suppliers.issue(order_request())
            clock.advance(minutes=5)

        with pytest.raises(RateLimitError) as excinfo:
            services.suppliers.issue(order_request())
        # Oldest token was issued 25 minutes ago; 35 minutes remain in its window
        assert excinfo.value.extra["retry_after_seconds"] == 35 * 60 + 1
        assert db.session.query(SupplierToken).count() == 5

        clock.advance(minutes=36)
        services.suppliers.issue(order_request())
        assert db.session.query(SupplierToken).count() == 6

    def test_rate_limit_is_per_supplier(self, services, supplier):
        services.suppliers.create_supplier("Beta Looms", "sales@beta.example")
        for _ in range(5):
            services.suppliers.issue(order_request())

        services.suppliers.issue(order_request(email="sales@beta.example"))

    def test_delivery_failure_persists_nothing(self, services, supplier, app):
        class BrokenMailer(MemoryMailer):
            def send(self, msg):
                raise DeliveryError()

        services.suppliers.mailer = BrokenMailer("no-reply@test", app.logger)

        with pytest.raises(DeliveryError):
            services.suppliers.issue(order_request())
        assert db.session.query(SupplierToken).count() == 0

    def test_mailer_requires_a_transport(self, app):
        with pytest.raises(TypeError):
            Mailer("no-reply@test", app.logger)


@pytest.fixture
def issued(services, supplier, outbox):
    record = services.suppliers.issue(order_request())
    return record, emailed_token(outbox[-1])


class TestValidate:

    def test_valid_token_returns_order(self, services, issued):
        record, raw = issued
        found = services.suppliers.validate(raw)
        assert found.id == record.id
        assert found.supplier.email == "orders@acme.example"

    def test_expired_after_ttl(self, services, issued, clock):
        _, raw = issued
        clock.advance(hours=24, seconds=1)
        with pytest.raises(TokenError) as excinfo:
            services.suppliers.validate(raw)
        assert excinfo.value.reason == "expired"

    def test_persisted_expiry_is_enforced(self, services, issued, clock):
        record, raw = issued
        # Row expiry earlier than the signed expiry still wins
        record.expires_at = clock.now
        db.session.commit()

        with pytest.raises(TokenError) as excinfo:
            services.suppliers.validate(raw)
        assert excinfo.value.reason == "expired"

    def test_unknown_token(self, services, supplier):
        raw = services.tokens.issue(
            {"sub": "orders@acme.example", "item_id": "SKU-1"},
            audience="supplier-confirmation",
            ttl=services.suppliers.ttl,
        )
        with pytest.raises(NotFoundError):
            services.suppliers.validate(raw)

    def test_subject_mismatch(self, services, issued):
        record, raw = issued
        db.session.query(Supplier).filter_by(id=record.supplier_id).update({"email": "someone@else.example"})
        db.session.commit()

        with pytest.raises(TokenError) as excinfo:
            services.suppliers.validate(raw)
        assert excinfo.value.reason == "subject_mismatch"
        assert excinfo.value.status_code == 401

    def test_session_token_is_not_a_supplier_token(self, services, issued):
        token = services.tokens.issue({"sub": "1"}, audience="session", ttl=services.suppliers.ttl)
        with pytest.raises(TokenError) as excinfo:
            services.suppliers.validate(token)
        assert excinfo.value.reason == "audience_mismatch"

    def test_garbage_token(self, services):
        with pytest.raises(TokenError) as excinfo:
            services.suppliers.validate("not-a-token")
        assert excinfo.value.reason == "malformed"

    def test_slow_validation_times_out(self, services, issued):
        _, raw = issued
        ticks = iter(range(0, 100, 10))
        services.suppliers.monotonic = lambda: next(ticks)

        with pytest.raises(TimeoutExceeded):
            services.suppliers.validate(raw)


class TestDecisions:

    def test_accept_then_decline_is_rejected(self, services, issued):
        record, raw = issued

        accepted = services.suppliers.decide(raw, "ACCEPTED")
        assert accepted.status == "ACCEPTED"

        with pytest.raises(NotFoundError):
            services.suppliers.decide(raw, "DECLINED")

        with pytest.raises(ConflictError):
            services.suppliers.update_status(record.id, "DECLINED")

        assert db.session.get(SupplierToken, record.id).status == "ACCEPTED"

    def test_decision_records_timestamp(self, services, issued, clock):
        record, _ = issued
        clock.advance(hours=2)
        decided = services.suppliers.update_status(record.id, "REJECTED")
        assert decided.status == "DECLINED"
        assert decided.decided_at == clock.now

    def test_update_status_unknown_id(self, services):
        with pytest.raises(NotFoundError):
            services.suppliers.update_status(999, "ACCEPTED")

    def test_update_status_after_expiry(self, services, issued, clock):
        record, _ = issued
        clock.advance(hours=25)
        with pytest.raises(TokenError):
            services.suppliers.update_status(record.id, "ACCEPTED")
        assert db.session.get(SupplierToken, record.id).status == "PENDING"

    def test_validation_fails_after_decision(self, services, issued):
        _, raw = issued
        services.suppliers.decide(raw, "DECLINED")
        with pytest.raises(NotFoundError):
            services.suppliers.validate(raw)


class TestExpireStale:

    def test_marks_only_lapsed_pending_tokens(self, services, supplier, clock):
        old = services.suppliers.issue(order_request())
        decided = services.suppliers.issue(order_request())
        services.suppliers.update_status(decided.id, "ACCEPTED")

        clock.advance(hours=23)
        fresh = services.suppliers.issue(order_request())

        clock.advance(hours=2)
        assert services.suppliers.expire_stale() == 1

        assert db.session.get(SupplierToken, old.id).status == "EXPIRED"
        assert db.session.get(SupplierToken, decided.id).status == "ACCEPTED"
        assert db.session.get(SupplierToken, fresh.id).status == "PENDING"
