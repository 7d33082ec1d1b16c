# Overview: Supplier stock-order tokens: issuance by email, validation from the link, single-use decisions.

"""
Supplier Token Store

Issuing a stock order signs a token (audience "supplier-confirmation",
24h by default), stores only its SHA-256 alongside the order details with
status PENDING, and emails the raw token to the supplier as a link.

Validating the link requires all of:
- a good signature, issuer, audience and signed expiry
- a stored row with the same hash that is still PENDING
- the stored expiry not yet reached
- the signed subject matching the supplier on the row

A decision moves PENDING to ACCEPTED or DECLINED with a conditional UPDATE
(WHERE status = 'PENDING'), so it applies at most once; repeats fail with
ConflictError and leave the row untouched.

EXPIRED is only written by expire_stale(); validation treats lapsed rows as
dead without writing to them.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from ..errors import (
    ConflictError,
    DeliveryError,
    NotFoundError,
    RateLimitError,
    TimeoutExceeded,
    TokenError,
    ValidationError,
)
from ..extensions import db
from ..models import Supplier, SupplierToken
from storefront.time_utils import parse_iso_datetime, to_utc_z, utcnow
from .account_store import canonical
from .concurrency import lock_for_update
from .loyalty_service import EMAIL_PATTERN
from .mail_service import Mailer, compose_order_stock_email
from .sanitizer import InvalidInputType, sanitize_input, sanitize_optional
from .token_service import (
    SUPPLIER_CONFIRMATION_AUDIENCE,
    TokenIssuer,
    VerificationFailure,
    hash_token,
)


STATUS_PENDING = "PENDING"
STATUS_ACCEPTED = "ACCEPTED"
STATUS_DECLINED = "DECLINED"
STATUS_EXPIRED = "EXPIRED"

DECISION_STATUSES = {STATUS_ACCEPTED, STATUS_DECLINED}
STATUS_ALIASES = {"APPROVED": STATUS_ACCEPTED, "REJECTED": STATUS_DECLINED}

MAX_ORDER_QUANTITY = 1_000_000
CONTACT_PHONE_MAX_LENGTH = 32


def normalize_decision(status) -> str:
    if not isinstance(status, str):
        raise ValidationError("status must be ACCEPTED or DECLINED", field="status")
    value = status.strip().upper()
    value = STATUS_ALIASES.get(value, value)
    if value not in DECISION_STATUSES:
        raise ValidationError("status must be ACCEPTED or DECLINED", field="status")
    return value


@dataclass(frozen=True)
class OrderStockRequest:
    email: str
    item_id: str
    quantity: int
    required_date: datetime

    @classmethod
    def from_json(cls, data: dict) -> "OrderStockRequest":
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")
        email = data.get("email")
        item_id = data.get("itemId", data.get("itemCode"))
        quantity = data.get("quantity", data.get("qnt"))
        required = data.get("date")

        if not all([email, item_id, quantity, required]):
            raise ValidationError("Missing required parameters")

        try:
            email = canonical(sanitize_input(email))
            item_id = sanitize_input(str(item_id))
        except InvalidInputType:
            raise ValidationError("Invalid input type")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format", field="email")
        if not item_id or len(item_id) > 64:
            raise ValidationError("itemId must be 1-64 characters", field="itemId")

        if isinstance(quantity, bool) or not isinstance(quantity, (int, str)):
            raise ValidationError("quantity must be a positive integer", field="quantity")
        try:
            quantity = int(quantity)
        except ValueError:
            raise ValidationError("quantity must be a positive integer", field="quantity")
        if not 0 < quantity <= MAX_ORDER_QUANTITY:
            raise ValidationError("quantity must be a positive integer", field="quantity")

        if not isinstance(required, str):
            raise ValidationError("date must be an ISO-8601 date", field="date")
        try:
            required_date = parse_iso_datetime(required)
        except ValueError:
            raise ValidationError("date must be an ISO-8601 date", field="date")
        if required_date is None:
            raise ValidationError("date must be an ISO-8601 date", field="date")

        return cls(email=email, item_id=item_id, quantity=quantity, required_date=required_date)


class Deadline:
    """Wall-clock budget for one request, checked between steps."""

    def __init__(self, seconds: float, monotonic: Callable[[], float] = time.monotonic):
        self._monotonic = monotonic
        self.expires = monotonic() + seconds

    def check(self) -> None:
        if self._monotonic() > self.expires:
            raise TimeoutExceeded("Confirmation request timed out. Please try again.")


class SupplierTokenStore:

    def __init__(
        self,
        issuer: TokenIssuer,
        mailer: Mailer,
        logger: logging.Logger,
        *,
        public_url: str,
        ttl: timedelta = timedelta(hours=24),
        rate_limit: int = 5,
        rate_window: timedelta = timedelta(hours=1),
        confirmation_timeout: float = 5.0,
        clock: Callable[[], datetime] = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.issuer = issuer
        self.mailer = mailer
        self._logger = logger
        self.public_url = public_url.rstrip("/")
        self.ttl = ttl
        self.rate_limit = rate_limit
        self.rate_window = rate_window
        self.confirmation_timeout = confirmation_timeout
        self.clock = clock
        self.monotonic = monotonic

    # ------------------------------------------------------------------
    # Suppliers
    # ------------------------------------------------------------------

    def create_supplier(self, name: str, email: str, contact_phone: str | None = None) -> Supplier:
        try:
            name = sanitize_input(name)
            email = canonical(sanitize_input(email))
        except InvalidInputType:
            raise ValidationError("Invalid input type")
        try:
            contact_phone = sanitize_optional(contact_phone)
        except InvalidInputType:
            raise ValidationError("Invalid input type", field="contact_phone")
        if contact_phone is not None and len(contact_phone) > CONTACT_PHONE_MAX_LENGTH:
            raise ValidationError("Contact phone is too long", field="contact_phone")
        if not name:
            raise ValidationError("Supplier name is required", field="name")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format", field="email")
        if db.session.query(Supplier).filter_by(email=email).first():
            raise ConflictError("Supplier already exists", field="email")

        supplier = Supplier(name=name, email=email, contact_phone=contact_phone, created_at=self.clock())
        db.session.add(supplier)
        db.session.commit()
        return supplier

    def list_orders(self) -> list[SupplierToken]:
        return db.session.query(SupplierToken).order_by(
            SupplierToken.created_at.desc(), SupplierToken.id.desc()
        ).all()

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def issue(self, request: OrderStockRequest) -> SupplierToken:
        """
        Persist a PENDING order token and email the link to the supplier.

        Raises NotFoundError for unknown/inactive suppliers, RateLimitError
        past rate_limit tokens per rate_window, DeliveryError if the email
        could not be sent (nothing is persisted in that case).
        """
        supplier = lock_for_update(
            db.session.query(Supplier).filter_by(email=request.email, is_active=True)
        ).first()
        if not supplier:
            raise NotFoundError("Supplier not found")

        now = self.clock()
        window_start = now - self.rate_window
        recent = db.session.query(SupplierToken).filter(
            SupplierToken.supplier_id == supplier.id,
            SupplierToken.created_at >= window_start,
        ).order_by(SupplierToken.created_at).all()
        if len(recent) >= self.rate_limit:
            retry_after = int((recent[0].created_at + self.rate_window - now).total_seconds()) + 1
            db.session.rollback()
            self._logger.warning("Supplier token rate limit reached for supplier %s", supplier.id)
            raise RateLimitError(retry_after_seconds=max(1, retry_after))

        raw_token = self.issuer.issue(
            {"sub": supplier.email, "item_id": request.item_id},
            audience=SUPPLIER_CONFIRMATION_AUDIENCE,
            ttl=self.ttl,
        )
        record = SupplierToken(
            token_hash=hash_token(raw_token),
            supplier_id=supplier.id,
            item_id=request.item_id,
            quantity=request.quantity,
            required_date=request.required_date,
            status=STATUS_PENDING,
            expires_at=now + self.ttl,
            created_at=now,
        )
        db.session.add(record)
        db.session.flush()

        message = compose_order_stock_email(
            self.mailer,
            supplier_name=supplier.name,
            supplier_email=supplier.email,
            item_id=request.item_id,
            quantity=request.quantity,
            required_date=to_utc_z(request.required_date),
            confirmation_url=f"{self.public_url}/supplier-access/{raw_token}",
            valid_hours=int(self.ttl.total_seconds() // 3600),
        )
        try:
            self.mailer.send(message)
        except DeliveryError:
            db.session.rollback()
            raise

        db.session.commit()
        self._logger.info("Supplier token %s issued to supplier %s", record.id, supplier.id)
        return record

    # ------------------------------------------------------------------
    # Validation & decisions
    # ------------------------------------------------------------------

    def validate(self, raw_token) -> SupplierToken:
        """Return the PENDING order behind raw_token, or raise."""
        deadline = Deadline(self.confirmation_timeout, self.monotonic)

        result = self.issuer.verify(raw_token, SUPPLIER_CONFIRMATION_AUDIENCE)
        if not result.ok:
            if result.failure == VerificationFailure.EXPIRED:
                raise TokenError("Token has expired.", reason="expired")
            raise TokenError("Invalid or expired token.", reason=result.failure.value)
        deadline.check()

        record = db.session.query(SupplierToken).filter_by(
            token_hash=hash_token(raw_token),
            status=STATUS_PENDING,
        ).first()
        deadline.check()

        if not record:
            raise NotFoundError("Token not found or already processed.")

        if self.clock() >= record.expires_at:
            raise TokenError("Token has expired.", reason="expired")

        if record.supplier is None or record.supplier.email != canonical(result.claims["sub"]):
            raise TokenError("Token validation failed.", reason="subject_mismatch", status_code=401)

        return record

    def update_status(self, token_id: int, new_status: str) -> SupplierToken:
        """
        Move a PENDING, unexpired record to ACCEPTED or DECLINED.

        A record that already left PENDING is rejected with ConflictError and
        not modified.
        """
        status = normalize_decision(new_status)
        now = self.clock()

        updated = db.session.query(SupplierToken).filter(
            SupplierToken.id == token_id,
            SupplierToken.status == STATUS_PENDING,
            SupplierToken.expires_at > now,
        ).update(
            {SupplierToken.status: status, SupplierToken.decided_at: now},
            synchronize_session=False,
        )
        db.session.commit()

        record = db.session.get(SupplierToken, token_id)
        if updated != 1:
            if record is None:
                raise NotFoundError("Token not found")
            if record.status == STATUS_PENDING:
                raise TokenError("Token has expired.", reason="expired")
            raise ConflictError("Token already processed", status=record.status)

        self._logger.info("Supplier token %s marked %s", token_id, status)
        return record

    def decide(self, raw_token, new_status: str) -> SupplierToken:
        """Validate the emailed token, then record the supplier's decision."""
        status = normalize_decision(new_status)
        record = self.validate(raw_token)
        return self.update_status(record.id, status)

    def expire_stale(self) -> int:
        """Mark PENDING tokens past their expiry as EXPIRED. Returns count."""
        now = self.clock()
        count = db.session.query(SupplierToken).filter(
            SupplierToken.status == STATUS_PENDING,
            SupplierToken.expires_at <= now,
        ).update(
            {SupplierToken.status: STATUS_EXPIRED, SupplierToken.decided_at: now},
            synchronize_session=False,
        )
        db.session.commit()
        return count
