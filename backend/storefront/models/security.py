from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z, utcnow


class SecurityEvent(db.Model):
    """
    Security event audit log.

    WHY: Track failed logins, lockouts and token decisions for monitoring.
    The identifier column holds the sanitized username/email as submitted,
    never a password or a raw token.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_user_type", "user_id", "event_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)  # Nullable for anonymous

    # LOGIN_FAILED, ACCOUNT_LOCKED, USER_REGISTERED, SUPPLIER_TOKEN_DECIDED, ...
    event_type = db.Column(db.String(64), nullable=False, index=True)
    identifier = db.Column(db.String(254), nullable=True)
    resource = db.Column(db.String(128), nullable=True)

    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "event_type": self.event_type,
            "identifier": self.identifier,
            "resource": self.resource,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
