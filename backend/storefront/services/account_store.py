# Overview: Account persistence: lookups, uniqueness, creation and atomic security-state updates.

"""
Account store.

Every lookup compares usernames and emails case-insensitively through their
canonical (lowercased) columns. Callers do an optimistic existence check for a
friendly error, but the unique constraints on users are the authoritative
guard: an IntegrityError naming one of them is translated into ConflictError.

Lockout counters are never read-modified-written in Python. Each failed
login is a single UPDATE whose CASE expressions evaluate against the row's
current values, so two concurrent failures always count twice.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import case, null, or_
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError
from ..extensions import db
from ..models import AccountNotification, User


def canonical(value: str) -> str:
    return value.strip().lower()


CONFLICT_MESSAGES = {
    "username": "Username already exists",
    "email": "User already exists",
}

# PostgreSQL reports the constraint name, SQLite the table.column
UNIQUE_MARKERS = (
    ("username", ("uq_users_username_canonical", "UNIQUE constraint failed: users.username_canonical")),
    ("email", ("uq_users_email", "UNIQUE constraint failed: users.email")),
)


def conflicting_field(exc: IntegrityError) -> str | None:
    """Map a unique violation on users to the field it guards, else None."""
    message = str(exc.orig)
    for field, markers in UNIQUE_MARKERS:
        if any(marker in message for marker in markers):
            return field
    return None


class AccountStore:

    def get(self, user_id: int) -> User | None:
        return db.session.get(User, user_id)

    def find_by_identifier(self, identifier: str) -> User | None:
        """Resolve a username or email, case-insensitively."""
        key = canonical(identifier)
        return db.session.query(User).filter(
            or_(User.username_canonical == key, User.email == key)
        ).first()

    def find_by_email(self, email: str) -> User | None:
        return db.session.query(User).filter(User.email == canonical(email)).first()

    def username_taken(self, username: str) -> bool:
        return db.session.query(
            db.session.query(User).filter(User.username_canonical == canonical(username)).exists()
        ).scalar()

    def email_taken(self, email: str) -> bool:
        return db.session.query(
            db.session.query(User).filter(User.email == canonical(email)).exists()
        ).scalar()

    def create(self, *, username: str, email: str, **fields) -> User:
        """
        Insert a new account and commit.

        Callers run ensure_available() first for a friendly error; a duplicate
        that slips past it is still caught by the unique constraints and raised
        as ConflictError(field=...). Any other integrity failure propagates.
        """
        user = User(
            username=username,
            username_canonical=canonical(username),
            email=canonical(email),
            **fields,
        )
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            field = conflicting_field(exc)
            if field is None:
                raise
            raise ConflictError(CONFLICT_MESSAGES[field], field=field) from exc
        return user

    def ensure_available(self, username: str, email: str) -> None:
        if self.username_taken(username):
            raise ConflictError(CONFLICT_MESSAGES["username"], field="username")
        if self.email_taken(email):
            raise ConflictError(CONFLICT_MESSAGES["email"], field="email")

    # ------------------------------------------------------------------
    # Lockout state
    # ------------------------------------------------------------------

    def record_failed_login(
        self,
        user_id: int,
        *,
        now: datetime,
        max_attempts: int,
        lock_duration: timedelta,
    ) -> tuple[int, datetime | None]:
        """
        Atomically apply one failed login and return (failed_attempts, locked_until).

        - expired lock: counting restarts at 1 and the lock is cleared
        - active lock: nothing changes
        - reaching max_attempts: locked_until = now + lock_duration
        """
        lock_expired = (User.locked_until.is_not(None)) & (User.locked_until <= now)
        lock_active = (User.locked_until.is_not(None)) & (User.locked_until > now)

        db.session.query(User).filter(User.id == user_id).update(
            {
                User.failed_attempts: case(
                    (lock_expired, 1),
                    (lock_active, User.failed_attempts),
                    else_=User.failed_attempts + 1,
                ),
                User.locked_until: case(
                    (lock_expired, null()),
                    (lock_active, User.locked_until),
                    (User.failed_attempts + 1 >= max_attempts, now + lock_duration),
                    else_=User.locked_until,
                ),
            },
            synchronize_session=False,
        )
        db.session.commit()

        row = db.session.query(User.failed_attempts, User.locked_until).filter(User.id == user_id).one()
        return row.failed_attempts, row.locked_until

    def reset_login_state(self, user_id: int, *, now: datetime) -> None:
        db.session.query(User).filter(User.id == user_id).update(
            {
                User.failed_attempts: 0,
                User.locked_until: None,
                User.last_login_at: now,
            },
            synchronize_session=False,
        )
        db.session.commit()

    def unlock(self, user_id: int) -> None:
        db.session.query(User).filter(User.id == user_id).update(
            {User.failed_attempts: 0, User.locked_until: None},
            synchronize_session=False,
        )
        db.session.commit()

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def append_notification(self, user_id: int, message: str, *, now: datetime | None = None) -> AccountNotification:
        """Stage a notification; the caller owns the commit."""
        notification = AccountNotification(user_id=user_id, message=message)
        if now is not None:
            notification.created_at = now
        db.session.add(notification)
        return notification

    def list_notifications(self, user_id: int) -> list[AccountNotification]:
        return db.session.query(AccountNotification).filter_by(
            user_id=user_id
        ).order_by(AccountNotification.id).all()

    def clear_notifications(self, user_id: int) -> int:
        deleted = db.session.query(AccountNotification).filter_by(user_id=user_id).delete(
            synchronize_session=False
        )
        db.session.commit()
        return deleted
