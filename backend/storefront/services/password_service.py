# Overview: Password strength rules and the bcrypt hasher.

"""
Password hashing with bcrypt.

WHY bcrypt: per-hash random salt, deliberately slow, cost factor tunable via
BCRYPT_ROUNDS. 12 rounds is roughly 250ms on commodity hardware; tests run
with 4. bcrypt releases the GIL while hashing, so concurrent requests served
by other worker threads are not blocked.

SECURITY NOTES:
- Plaintext passwords are never stored or logged
- verify() is timing-safe (bcrypt.checkpw)
- A mismatch returns False; only a corrupt digest raises MalformedHash
"""

import re

import bcrypt

from ..errors import ValidationError


SPECIAL_CHARACTERS = "@$!%*?&"
COMMON_PASSWORDS = ("password", "12345678", "qwerty", "abc123")
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""

    def __init__(self, message: str):
        super().__init__(message, field="password")


class MalformedHash(ValueError):
    """Stored digest is not a bcrypt hash."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - 8 to 128 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (@$!%*?&)
    - Must not contain a well-known weak password

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str):
        raise PasswordValidationError("Password is required")

    if len(password) < MIN_PASSWORD_LENGTH or len(password) > MAX_PASSWORD_LENGTH:
        raise PasswordValidationError("Password must be between 8-128 characters")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not any(ch in SPECIAL_CHARACTERS for ch in password):
        raise PasswordValidationError(
            f"Password must contain at least one special character ({SPECIAL_CHARACTERS})"
        )

    lowered = password.lower()
    if any(common in lowered for common in COMMON_PASSWORDS):
        raise PasswordValidationError("Password is too common. Please choose a stronger password")


# bcrypt only reads the first 72 bytes; newer releases raise instead of truncating
BCRYPT_MAX_BYTES = 72


def _encode(plaintext: str) -> bytes:
    return plaintext.encode('utf-8')[:BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted, cost-parameterized one-way hashing."""

    def __init__(self, rounds: int = 12):
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self.rounds = rounds
        # Verified against when the account does not exist, so unknown
        # identifiers cost the same as wrong passwords.
        self._dummy_hash = bcrypt.hashpw(b"unused-dummy-password", bcrypt.gensalt(rounds=rounds))

    def hash(self, plaintext: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(_encode(plaintext), salt)
        return hashed.decode('utf-8')  # Store as string in database

    def verify(self, plaintext: str, digest: str) -> bool:
        """
        Check plaintext against a stored digest.

        Returns False on mismatch. Raises MalformedHash if the digest is not
        a bcrypt hash (corrupt row or legacy format).
        """
        try:
            return bcrypt.checkpw(_encode(plaintext), digest.encode('utf-8'))
        except ValueError as exc:
            raise MalformedHash("Stored password hash is malformed") from exc

    def burn(self, plaintext: str) -> None:
        """Spend one verification's worth of time without a real account."""
        bcrypt.checkpw(_encode(plaintext), self._dummy_hash)

    @staticmethod
    def cost_of(digest: str) -> int:
        # $2b$12$<22-char salt><31-char hash>
        parts = digest.split("$")
        if len(parts) != 4 or not parts[2].isdigit():
            raise MalformedHash("Stored password hash is malformed")
        return int(parts[2])
