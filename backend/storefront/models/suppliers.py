from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z, utcnow


class Supplier(db.Model):
    """Stock supplier that receives order confirmation links by email."""
    __tablename__ = "suppliers"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_suppliers_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(254), nullable=False, index=True)
    contact_phone = db.Column(db.String(32), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "contact_phone": self.contact_phone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class SupplierToken(db.Model):
    """
    Stock order awaiting a supplier decision.

    STATUS: PENDING -> ACCEPTED | DECLINED, or EXPIRED when explicitly marked
    by maintenance. A row never changes after leaving PENDING.

    Only the SHA-256 of the emailed token is stored.
    """
    __tablename__ = "supplier_tokens"
    __table_args__ = (
        db.UniqueConstraint("token_hash", name="uq_supplier_tokens_hash"),
        db.Index("ix_supplier_tokens_supplier_created", "supplier_id", "created_at"),
        db.Index("ix_supplier_tokens_status_expires", "status", "expires_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    token_hash = db.Column(db.String(64), nullable=False)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False)

    item_id = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    required_date = db.Column(db.DateTime, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    expires_at = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    decided_at = db.Column(db.DateTime, nullable=True)

    supplier = db.relationship("Supplier", backref=db.backref("tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier": self.supplier.to_dict() if self.supplier else None,
            "item_id": self.item_id,
            "quantity": self.quantity,
            "required_date": to_utc_z(self.required_date),
            "status": self.status,
            "expires_at": to_utc_z(self.expires_at),
            "created_at": to_utc_z(self.created_at),
            "decided_at": to_utc_z(self.decided_at) if self.decided_at else None,
        }
