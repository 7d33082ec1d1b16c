# Overview: Append-only audit trail of authentication and token decisions.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import SecurityEvent
from storefront.time_utils import utcnow


def log_security_event(
    event_type: str,
    success: bool,
    *,
    user_id: int | None = None,
    identifier: str | None = None,
    resource: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    occurred_at: datetime | None = None,
) -> SecurityEvent:
    """
    Record a security event.

    event_type examples:
    - LOGIN_SUCCESS / LOGIN_FAILED
    - ACCOUNT_LOCKED / LOGIN_REJECTED_LOCKED
    - USER_REGISTERED / LOGOUT
    - SUPPLIER_TOKEN_ISSUED / SUPPLIER_TOKEN_DECIDED

    identifier must already be sanitized; never pass passwords or raw tokens.
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        identifier=identifier[:254] if identifier else None,
        resource=resource,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent[:512] if user_agent else None,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(event)
    db.session.commit()
    return event
