# Overview: Signed, time-bounded tokens for sessions and supplier confirmation links.

"""
Token issuance and verification (HS256 JWT).

Every token carries iss, aud, iat, exp and a random nonce on top of the
caller's subject claims. verify() never raises on attacker-controlled
input: it returns a VerificationResult whose failure is one of
INVALID_SIGNATURE, EXPIRED, AUDIENCE_MISMATCH or MALFORMED.

Expiry is checked against the injected clock rather than PyJWT's wall clock
so that session and supplier flows share one notion of "now".

Tokens that must be looked up later are stored as SHA-256 hashes only
(hash_token). SHA-256 is sufficient here because the tokens carry a 128-bit
nonce; slow hashing is reserved for low-entropy passwords.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable

import jwt

from storefront.time_utils import utcnow


SESSION_AUDIENCE = "session"
SUPPLIER_CONFIRMATION_AUDIENCE = "supplier-confirmation"

REQUIRED_CLAIMS = ["iss", "aud", "iat", "exp", "nonce", "sub"]


class VerificationFailure(str, Enum):
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    AUDIENCE_MISMATCH = "audience_mismatch"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class VerificationResult:
    claims: dict | None = None
    failure: VerificationFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def hash_token(token: str) -> str:
    """Hex SHA-256 of a token, for storage and lookup."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _timestamp(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


class TokenIssuer:
    ALGORITHM = "HS256"

    def __init__(self, secret: str, issuer: str, clock: Callable[[], datetime] = utcnow):
        if not secret:
            raise ValueError("Token signing secret not configured")
        self._secret = secret
        self.issuer = issuer
        self.clock = clock

    def issue(self, subject_claims: dict, audience: str, ttl: timedelta) -> str:
        if "sub" not in subject_claims:
            raise ValueError("subject_claims must include 'sub'")
        now = self.clock()
        payload = dict(subject_claims)
        payload.update(
            iss=self.issuer,
            aud=audience,
            iat=_timestamp(now),
            exp=_timestamp(now + ttl),
            nonce=secrets.token_hex(16),
        )
        return jwt.encode(payload, self._secret, algorithm=self.ALGORITHM)

    def verify(self, token, expected_audience: str) -> VerificationResult:
        if not isinstance(token, str) or not token:
            return VerificationResult(failure=VerificationFailure.MALFORMED)

        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self.ALGORITHM],
                audience=expected_audience,
                issuer=self.issuer,
                options={"verify_exp": False, "verify_iat": False, "require": REQUIRED_CLAIMS},
            )
        except (jwt.InvalidAudienceError, jwt.InvalidIssuerError):
            return VerificationResult(failure=VerificationFailure.AUDIENCE_MISMATCH)
        except jwt.InvalidSignatureError:
            return VerificationResult(failure=VerificationFailure.INVALID_SIGNATURE)
        except jwt.InvalidTokenError:
            # DecodeError, MissingRequiredClaimError and friends
            return VerificationResult(failure=VerificationFailure.MALFORMED)

        exp = claims.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            return VerificationResult(failure=VerificationFailure.MALFORMED)
        if _timestamp(self.clock()) >= exp:
            return VerificationResult(failure=VerificationFailure.EXPIRED)

        return VerificationResult(claims=claims)
