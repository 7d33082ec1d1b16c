# Overview: Registration, login and logout composed from the store, hasher, lockout, session and referral services.

"""
Authentication orchestrator.

REGISTER:
1. A supplied referral code must name an existing referral (400 otherwise)
2. Username/email availability pre-check (409 with field)
3. Hash the password and insert the account; unique constraints are the
   final word on duplicates
4. Credit the referrer (best-effort, never fails registration)
5. Issue a session token

LOGIN:
- Unknown identifiers still pay for one bcrypt verification and get the
  same 401 as a wrong password, without an attempts count
- A locked account is rejected with 423 before the password is checked
- A wrong password counts one failure atomically; the failure that reaches
  the limit is itself answered with 423
- Success resets the failure counter and issues a session token

LOGOUT: revoke the session row. Unknown or already-revoked tokens are not an
error. Clearing the cookie is the route's job and happens either way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from ..errors import AuthenticationError, InternalError, LockedError, ValidationError
from ..extensions import db
from ..models import SessionToken, User
from storefront.time_utils import utcnow
from ..validation import LoginRequest, RegistrationRequest
from .account_store import AccountStore
from .lockout_service import LockoutTracker
from .loyalty_service import ReferralEngine
from .password_service import MalformedHash, PasswordHasher
from .security_log import log_security_event
from .session_service import SessionManager


@dataclass(frozen=True)
class ClientInfo:
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class AuthResult:
    user: User
    token: str
    session: SessionToken

    def to_dict(self) -> dict:
        return {"user": self.user.to_dict(), "token": self.token}


class AuthOrchestrator:

    def __init__(
        self,
        store: AccountStore,
        hasher: PasswordHasher,
        lockout: LockoutTracker,
        sessions: SessionManager,
        referrals: ReferralEngine,
        logger: logging.Logger,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.hasher = hasher
        self.lockout = lockout
        self.sessions = sessions
        self.referrals = referrals
        self._logger = logger
        self.clock = clock

    def register(self, request: RegistrationRequest, client: ClientInfo | None = None) -> AuthResult:
        client = client or ClientInfo()

        if request.referral_code and self.referrals.find_referral(request.referral_code) is None:
            raise ValidationError("Invalid referral code", field="referralCode")

        # Cheap check first so duplicates don't pay for a bcrypt hash
        self.store.ensure_available(request.username, request.email)

        digest = self.hasher.hash(request.password)
        user = self.store.create(
            username=request.username,
            email=request.email,
            password_hash=digest,
            password_cost=PasswordHasher.cost_of(digest),
            role=request.role,
            firstname=request.firstname,
            lastname=request.lastname,
            contact=request.contact,
            address=request.address,
            city=request.city,
            postal_code=request.postal_code,
            country=request.country,
            referral_code=request.referral_code,
            created_at=self.clock(),
        )

        log_security_event(
            "USER_REGISTERED",
            True,
            user_id=user.id,
            identifier=user.username,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
            occurred_at=self.clock(),
        )
        self._logger.info("User registered: %s", user.username)

        if request.referral_code:
            credit = self.referrals.process_referral(request.referral_code, user.email)
            if credit is None:
                self._logger.warning("Referral credit skipped for new user %s", user.id)

        session, token = self.sessions.create_session(user, client.user_agent, client.ip_address)
        return AuthResult(user=user, token=token, session=session)

    def login(self, request: LoginRequest, client: ClientInfo | None = None) -> AuthResult:
        client = client or ClientInfo()
        identifier = request.identifier

        user = self.store.find_by_identifier(identifier)
        if user is None or not user.is_active:
            self.hasher.burn(request.password)
            self._audit("LOGIN_FAILED", False, client, identifier=identifier, reason="unknown_identifier",
                        user_id=user.id if user else None)
            raise AuthenticationError()

        status = self.lockout.status(user)
        if status.locked:
            self._audit("LOGIN_REJECTED_LOCKED", False, client, identifier=identifier, user_id=user.id)
            raise LockedError(
                minutes_remaining=status.minutes_remaining,
                retry_after_seconds=status.seconds_remaining,
            )

        try:
            valid = self.hasher.verify(request.password, user.password_hash)
        except MalformedHash:
            self._logger.error("Stored password hash for user %s is malformed", user.id)
            raise InternalError()

        if not valid:
            status = self.lockout.register_failure(user)
            if status.locked:
                self._audit("ACCOUNT_LOCKED", False, client, identifier=identifier, user_id=user.id,
                            reason=f"{status.failed_attempts} failed attempts")
                self._logger.warning("Account %s locked after repeated failed logins", user.id)
                raise LockedError(
                    minutes_remaining=status.minutes_remaining,
                    retry_after_seconds=status.seconds_remaining,
                )
            self._audit("LOGIN_FAILED", False, client, identifier=identifier, user_id=user.id,
                        reason="bad_password")
            raise AuthenticationError(attempts_remaining=status.attempts_remaining)

        self.lockout.register_success(user)
        self._audit("LOGIN_SUCCESS", True, client, identifier=identifier, user_id=user.id)

        session, token = self.sessions.create_session(user, client.user_agent, client.ip_address)
        return AuthResult(user=user, token=token, session=session)

    def logout(self, token: str | None, client: ClientInfo | None = None) -> bool:
        """
        Revoke the session behind token. Returns whether a live session was revoked.

        Raises InternalError if the revocation could not be stored.
        """
        if not token:
            return False

        try:
            revoked = self.sessions.revoke_session(token, reason="User logout")
        except SQLAlchemyError:
            db.session.rollback()
            self._logger.exception("Failed to revoke session during logout")
            raise InternalError()

        if revoked:
            self._audit("LOGOUT", True, client or ClientInfo())
        return revoked

    def _audit(self, event_type: str, success: bool, client: ClientInfo, **fields) -> None:
        log_security_event(
            event_type,
            success,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
            occurred_at=self.clock(),
            **fields,
        )
