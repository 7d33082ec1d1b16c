# Overview: Loyalty tiers, referral creation, and crediting referrers when a referral signs up.

"""
Referral & Loyalty Engine

A referrer shares a one-time referral token with a prospective customer.
When that customer registers with the token, the referrer earns
REFERRAL_REWARD_POINTS, their referred count goes up by one, the tier is
recomputed from the new point total, and notifications are appended.

CONSISTENCY:
- Deleting the Referral row is the claim: the credit only proceeds if this
  unit of work deleted exactly one row, so a token is consumed at most once.
- Points and counts are bumped with SQL expressions against a version-checked
  row; a lost race raises StaleDataError and the whole unit is retried.
- Claim, points, tier, and notifications commit together or not at all.

FAILURE POLICY: process_referral never raises. Registration has already
succeeded by the time it runs, so failures are logged and the credit is
dropped. There is no retry queue.
"""

from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Loyalty, Referral, User
from storefront.time_utils import utcnow
from .account_store import AccountStore, canonical
from .concurrency import run_with_retry


# Ordered lowest to highest: (minimum points, tier)
TIER_THRESHOLDS = (
    (0, "BRONZE"),
    (100, "SILVER"),
    (300, "GOLD"),
    (600, "PLATINUM"),
)

REFERRAL_REWARD_POINTS = 40

REFERRAL_SIGNED_UP_MESSAGE = (
    "Congratulations, Your referral has successfully Signed Up. As a reward, "
    "{points} points have been added to your Loyalty account."
)
TIER_PROMOTION_MESSAGE = "Congratulations! You have been promoted to {tier} tier!"

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def tier_for_points(points: int) -> str:
    """Pure, monotonic step function from a point total to a tier."""
    if points < 0:
        raise ValueError("points cannot be negative")
    tier = TIER_THRESHOLDS[0][1]
    for minimum, name in TIER_THRESHOLDS:
        if points >= minimum:
            tier = name
    return tier


@dataclass(frozen=True)
class ReferralCredit:
    referrer_email: str
    loyalty_points: int
    referred_count: int
    tier: str
    tier_changed: bool


class ReferralEngine:

    def __init__(
        self,
        store: AccountStore,
        logger: logging.Logger,
        *,
        reward_points: int = REFERRAL_REWARD_POINTS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self._logger = logger
        self.reward_points = reward_points
        self.clock = clock

    # ------------------------------------------------------------------
    # Referral lifecycle
    # ------------------------------------------------------------------

    def create_referral(self, referrer: User, referred_email: str) -> Referral:
        email = canonical(referred_email)
        if not EMAIL_PATTERN.match(email) or len(email) > 254:
            raise ValidationError("Please provide a valid email address", field="email")
        if email == referrer.email:
            raise ValidationError("You cannot refer yourself", field="email")
        if self.store.email_taken(email):
            raise ConflictError("This email is already registered", field="email")

        referral = Referral(
            referrer_email=referrer.email,
            referred_email=email,
            token=secrets.token_urlsafe(24),
            created_at=self.clock(),
        )
        db.session.add(referral)
        db.session.commit()
        self._logger.info("Referral created by user %s", referrer.id)
        return referral

    def find_referral(self, token: str) -> Referral | None:
        return db.session.query(Referral).filter_by(token=token).first()

    # ------------------------------------------------------------------
    # Loyalty accounts
    # ------------------------------------------------------------------

    def get_loyalty(self, email: str) -> Loyalty | None:
        return db.session.query(Loyalty).filter_by(email=canonical(email)).first()

    def enroll(self, user: User) -> Loyalty:
        """Get or create the loyalty record for user."""
        loyalty = self.get_loyalty(user.email)
        if loyalty:
            return loyalty

        now = self.clock()
        loyalty = Loyalty(
            email=user.email,
            loyalty_points=0,
            referred_count=0,
            tier=tier_for_points(0),
            created_at=now,
            updated_at=now,
        )
        db.session.add(loyalty)
        try:
            db.session.commit()
        except IntegrityError:
            # Concurrent enrollment won; use its row
            db.session.rollback()
            loyalty = self.get_loyalty(user.email)
            if loyalty is None:
                raise
        return loyalty

    def require_loyalty(self, email: str) -> Loyalty:
        loyalty = self.get_loyalty(email)
        if not loyalty:
            raise NotFoundError("Loyalty account not found")
        return loyalty

    # ------------------------------------------------------------------
    # Crediting
    # ------------------------------------------------------------------

    def process_referral(self, referral_token: str, referred_email: str) -> ReferralCredit | None:
        """
        Credit the referrer behind referral_token. Never raises.

        Returns the credit applied, or None when nothing was credited
        (unknown or already-consumed token, missing referrer or loyalty
        record, or a failure that was logged and rolled back).
        """
        try:
            return run_with_retry(lambda: self._credit(referral_token, referred_email))
        except Exception:
            db.session.rollback()
            self._logger.exception("Error processing referral for %s", canonical(referred_email))
            return None

    def _credit(self, referral_token: str, referred_email: str) -> ReferralCredit | None:
        referral = self.find_referral(referral_token)
        if not referral:
            self._logger.info("Referral token not found or already used")
            return None

        if canonical(referred_email) != referral.referred_email:
            self._logger.info("Referral for %s redeemed by a different email", referral.referred_email)

        # Claim the referral; zero rows means someone else consumed it first
        claimed = db.session.query(Referral).filter(Referral.id == referral.id).delete(
            synchronize_session=False
        )
        if claimed != 1:
            db.session.rollback()
            self._logger.info("Referral token already consumed")
            return None

        # A found referral is spent even when there is nobody to credit
        referrer = self.store.find_by_email(referral.referrer_email)
        if not referrer:
            db.session.commit()
            self._logger.info("Referrer not found with email %s", referral.referrer_email)
            return None

        loyalty = self.get_loyalty(referral.referrer_email)
        if not loyalty:
            db.session.commit()
            self._logger.info("Loyalty record not found for %s", referral.referrer_email)
            return None

        now = self.clock()
        loyalty.loyalty_points = Loyalty.loyalty_points + self.reward_points
        loyalty.referred_count = Loyalty.referred_count + 1
        loyalty.updated_at = now
        db.session.flush()

        # Expression assignments are reloaded from the row after flush
        new_tier = tier_for_points(loyalty.loyalty_points)
        tier_changed = new_tier != loyalty.tier
        if tier_changed:
            loyalty.tier = new_tier
            self.store.append_notification(
                referrer.id,
                TIER_PROMOTION_MESSAGE.format(tier=new_tier.title()),
                now=now,
            )

        self.store.append_notification(
            referrer.id,
            REFERRAL_SIGNED_UP_MESSAGE.format(points=self.reward_points),
            now=now,
        )

        db.session.commit()

        self._logger.info(
            "Referral credited to %s: %s points, tier %s",
            referrer.email, loyalty.loyalty_points, loyalty.tier,
        )
        return ReferralCredit(
            referrer_email=referrer.email,
            loyalty_points=loyalty.loyalty_points,
            referred_count=loyalty.referred_count,
            tier=loyalty.tier,
            tier_changed=tier_changed,
        )
