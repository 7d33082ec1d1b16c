from __future__ import annotations

from datetime import datetime

from ..extensions import db
from storefront.time_utils import to_utc_z, utcnow


ROLES = ("user", "admin", "staff", "supplier")


class User(db.Model):
    """
    Customer and back-office accounts.

    Username and email are globally unique and compared case-insensitively:
    email is stored lowercased, username is stored as submitted with a
    lowercased copy in username_canonical carrying the unique constraint.

    Lockout state (failed_attempts, locked_until) is embedded here and only
    ever changed through single-statement UPDATEs in account_store.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("username_canonical", name="uq_users_username_canonical"),
        db.UniqueConstraint("email", name="uq_users_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(30), nullable=False)
    username_canonical = db.Column(db.String(30), nullable=False, index=True)
    email = db.Column(db.String(254), nullable=False, index=True)

    # Bcrypt hashed password; cost factor kept alongside for rehash audits
    password_hash = db.Column(db.String(255), nullable=False)
    password_cost = db.Column(db.Integer, nullable=False)

    role = db.Column(db.String(16), nullable=False, default="user")

    firstname = db.Column(db.String(50), nullable=False)
    lastname = db.Column(db.String(50), nullable=False)
    avatar = db.Column(db.String(512), nullable=True)
    contact = db.Column(db.String(16), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(50), nullable=True)
    postal_code = db.Column(db.String(5), nullable=True)
    country = db.Column(db.String(50), nullable=True)

    # Referral token supplied at registration, kept for attribution
    referral_code = db.Column(db.String(128), nullable=True)

    failed_attempts = db.Column(db.Integer, nullable=False, default=0)
    locked_until = db.Column(db.DateTime, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_login_at = db.Column(db.DateTime, nullable=True)

    notifications = db.relationship(
        "AccountNotification",
        backref="user",
        lazy=True,
        order_by="AccountNotification.id",
        cascade="all, delete-orphan",
    )

    def is_locked_at(self, now: datetime) -> bool:
        return self.locked_until is not None and self.locked_until > now

    def to_dict(self) -> dict:
        # password_hash is never serialized
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "firstname": self.firstname,
            "lastname": self.lastname,
            "avatar": self.avatar,
            "contact": self.contact,
            "address": self.address,
            "city": self.city,
            "postal_code": self.postal_code,
            "country": self.country,
            "referral_code": self.referral_code,
            "notifications": [n.message for n in self.notifications],
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class AccountNotification(db.Model):
    """
    Human-readable messages for an account, in insertion order.

    Append-only until the owner clears them. Kept as rows rather than a JSON
    list on users so concurrent appends never overwrite each other.
    """
    __tablename__ = "account_notifications"
    __table_args__ = (
        db.Index("ix_account_notifications_user", "user_id", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    message = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "message": self.message,
            "created_at": to_utc_z(self.created_at),
        }


class SessionToken(db.Model):
    """
    Issued session tokens, stored as SHA-256 hashes only.

    The signed token itself proves who the caller is; this row lets logout
    revoke it before its signed expiry.
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.UniqueConstraint("token_hash", name="uq_session_tokens_hash"),
        db.Index("ix_session_tokens_user_revoked", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    token_hash = db.Column(db.String(64), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime, nullable=True)
    revoked_reason = db.Column(db.String(128), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
