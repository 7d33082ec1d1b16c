# Overview: Session tokens issued at login/registration, revocable at logout.

"""
Session Token Management

Session tokens are signed JWTs (audience "session") issued by TokenIssuer.
The signature and expiry prove the token is ours and current; the SHA-256
of every issued token is also stored so logout can revoke it before it
expires.

SECURITY FEATURES:
- Signed, time-limited tokens with a per-token random nonce
- Only the hash is persisted
- Revocable on logout or security events
- Tracks client IP and user agent for security monitoring
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from ..extensions import db
from ..models import SessionToken, User
from storefront.time_utils import utcnow
from .token_service import SESSION_AUDIENCE, TokenIssuer, hash_token


@dataclass
class SessionContext:
    user: User
    session: SessionToken
    claims: dict


class SessionManager:

    def __init__(self, issuer: TokenIssuer, *, ttl: timedelta, clock: Callable[[], datetime] = utcnow):
        self.issuer = issuer
        self.ttl = ttl
        self.clock = clock

    def create_session(
        self,
        user: User,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> tuple[SessionToken, str]:
        """
        Issue a session token for user.

        Returns (session_record, plaintext_token).
        Client receives plaintext_token, database stores only the hash.
        """
        now = self.clock()
        token = self.issuer.issue(
            {"sub": str(user.id), "username": user.username, "role": user.role},
            audience=SESSION_AUDIENCE,
            ttl=self.ttl,
        )

        session = SessionToken(
            user_id=user.id,
            token_hash=hash_token(token),
            created_at=now,
            expires_at=now + self.ttl,
            user_agent=user_agent[:512] if user_agent else None,
            ip_address=ip_address,
            is_revoked=False,
        )
        db.session.add(session)
        db.session.commit()

        return session, token

    def validate_session(self, token: str) -> SessionContext | None:
        """
        Return SessionContext if the token is valid, otherwise None.

        Returns None if:
        - Signature, audience or expiry check fails
        - Token was never issued here or has been revoked
        - User account is deactivated
        """
        result = self.issuer.verify(token, SESSION_AUDIENCE)
        if not result.ok:
            return None

        session = db.session.query(SessionToken).filter_by(
            token_hash=hash_token(token),
            is_revoked=False,
        ).first()
        if not session:
            return None

        user = session.user
        if not user or not user.is_active or str(user.id) != result.claims.get("sub"):
            return None

        return SessionContext(user=user, session=session, claims=result.claims)

    def revoke_session(self, token: str, reason: str = "User logout") -> bool:
        """
        Revoke session token.

        Returns True if session was revoked, False if not found or already revoked.
        """
        session = db.session.query(SessionToken).filter_by(
            token_hash=hash_token(token),
            is_revoked=False,
        ).first()

        if not session:
            return False

        session.is_revoked = True
        session.revoked_at = self.clock()
        session.revoked_reason = reason

        db.session.commit()
        return True

    def revoke_all_user_sessions(self, user_id: int, reason: str = "Revoke all sessions") -> int:
        """
        Revoke all active sessions for a user.

        Returns count of sessions revoked.
        """
        count = db.session.query(SessionToken).filter_by(
            user_id=user_id,
            is_revoked=False,
        ).update(
            {
                SessionToken.is_revoked: True,
                SessionToken.revoked_at: self.clock(),
                SessionToken.revoked_reason: reason,
            },
            synchronize_session=False,
        )
        db.session.commit()
        return count

    def cleanup_expired_sessions(self, retention: timedelta = timedelta(days=30)) -> int:
        """
        Delete expired or revoked sessions created before the retention window.

        Run periodically (flask maintenance cleanup-sessions).
        """
        now = self.clock()
        cutoff = now - retention

        deleted = db.session.query(SessionToken).filter(
            db.or_(
                SessionToken.expires_at < now,
                SessionToken.is_revoked.is_(True),
            ),
            SessionToken.created_at < cutoff,
        ).delete(synchronize_session=False)

        db.session.commit()
        return deleted
