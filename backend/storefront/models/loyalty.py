from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z, utcnow


class Referral(db.Model):
    """
    One-time invitation from a referrer to a prospective registrant.

    Deleted when consumed by a successful registration; the delete is the
    claim, so a token can be credited at most once.
    """
    __tablename__ = "referrals"
    __table_args__ = (
        db.UniqueConstraint("token", name="uq_referrals_token"),
        db.Index("ix_referrals_referrer", "referrer_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    referrer_email = db.Column(db.String(254), nullable=False)
    referred_email = db.Column(db.String(254), nullable=False)
    token = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "referrer_email": self.referrer_email,
            "referred_email": self.referred_email,
            "token": self.token,
            "created_at": to_utc_z(self.created_at),
        }


class Loyalty(db.Model):
    """
    Loyalty points and tier, one row per account email.

    tier is always recomputed from loyalty_points (see loyalty_service.tier_for_points),
    never patched incrementally.
    """
    __tablename__ = "loyalty_accounts"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_loyalty_accounts_email"),
        db.CheckConstraint("loyalty_points >= 0", name="ck_loyalty_points_non_negative"),
        db.CheckConstraint("referred_count >= 0", name="ck_loyalty_referred_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(254), nullable=False)

    loyalty_points = db.Column(db.Integer, nullable=False, default=0)
    referred_count = db.Column(db.Integer, nullable=False, default=0)
    tier = db.Column(db.String(16), nullable=False, default="BRONZE")

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "loyalty_points": self.loyalty_points,
            "referred_count": self.referred_count,
            "tier": self.tier,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
