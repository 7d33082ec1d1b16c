"""
Account Lockout Tracker

WHY: Prevent brute-force password attacks against a single account. This is
the account-scoped complement to the per-client rate limiting done in front
of the API.

STATE MACHINE (per account, stored on the users row):
- Active(n) --fail--> Active(n+1) while n+1 < max_attempts
- Active(max_attempts-1) --fail--> Locked(now + lock_duration)
- Locked(until), now < until: every attempt rejected, state unchanged
- Locked(until), now >= until: a failure restarts at Active(1), a success gives Active(0)
- Active(n) --success--> Active(0)

Transitions are applied by AccountStore as single atomic UPDATEs;
next_state() is the same machine in pure form, used to reason about and
test the rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from ..models import User
from storefront.time_utils import utcnow
from .account_store import AccountStore


# Defaults; the live values come from Config
MAX_FAILED_ATTEMPTS = 5
LOCKOUT_DURATION = timedelta(minutes=30)


@dataclass(frozen=True)
class LockoutState:
    failed_attempts: int
    locked_until: datetime | None

    def is_locked_at(self, now: datetime) -> bool:
        return self.locked_until is not None and self.locked_until > now


@dataclass(frozen=True)
class LockStatus:
    locked: bool
    failed_attempts: int
    attempts_remaining: int
    seconds_remaining: int | None = None

    @property
    def minutes_remaining(self) -> int | None:
        if self.seconds_remaining is None:
            return None
        # Round up so "0 minutes" is never shown while still locked
        return -(-self.seconds_remaining // 60)


def next_state(
    state: LockoutState,
    *,
    success: bool,
    now: datetime,
    max_attempts: int = MAX_FAILED_ATTEMPTS,
    lock_duration: timedelta = LOCKOUT_DURATION,
) -> LockoutState:
    if state.is_locked_at(now):
        return state
    if success:
        return LockoutState(0, None)
    if state.locked_until is not None:
        # Lock has lapsed; the first new failure restarts counting
        return LockoutState(1, None)
    attempts = state.failed_attempts + 1
    if attempts >= max_attempts:
        return LockoutState(attempts, now + lock_duration)
    return LockoutState(attempts, None)


class LockoutTracker:

    def __init__(
        self,
        store: AccountStore,
        *,
        max_attempts: int = MAX_FAILED_ATTEMPTS,
        lock_duration: timedelta = LOCKOUT_DURATION,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.lock_duration = lock_duration
        self.clock = clock

    def status(self, user: User) -> LockStatus:
        """Current lock status without changing anything."""
        now = self.clock()
        return self._status(user.failed_attempts or 0, user.locked_until, now)

    def register_failure(self, user: User) -> LockStatus:
        """Count one failed attempt atomically and report the resulting status."""
        now = self.clock()
        failed, locked_until = self.store.record_failed_login(
            user.id,
            now=now,
            max_attempts=self.max_attempts,
            lock_duration=self.lock_duration,
        )
        return self._status(failed, locked_until, now)

    def register_success(self, user: User) -> None:
        self.store.reset_login_state(user.id, now=self.clock())

    def _status(self, failed: int, locked_until: datetime | None, now: datetime) -> LockStatus:
        if locked_until is not None and locked_until > now:
            return LockStatus(
                locked=True,
                failed_attempts=failed,
                attempts_remaining=0,
                seconds_remaining=max(1, int((locked_until - now).total_seconds())),
            )
        if locked_until is not None:
            # Expired lock still on the row; the next failure restarts at 1
            failed = 0
        return LockStatus(
            locked=False,
            failed_attempts=failed,
            attempts_remaining=max(0, self.max_attempts - failed),
        )
