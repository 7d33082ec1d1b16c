# Overview: Health and version endpoints for deployment probes.

"""
GET /health runs each probe below and reports 200 when all are healthy, 503
otherwise. Probe failures are logged with their traceback; the response only
says which probe failed.
"""

import sys
import time

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import SessionToken, SupplierToken, User
from ..services import get_services
from ..time_utils import to_utc_z

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def _accounts_probe(now) -> dict:
    return {
        "users": db.session.query(User).count(),
        "locked_now": db.session.query(User).filter(User.locked_until > now).count(),
    }


def _sessions_probe(now) -> dict:
    live = db.session.query(SessionToken).filter(
        SessionToken.is_revoked.is_(False),
        SessionToken.expires_at > now,
    ).count()
    # Expired but not yet deleted (flask maintenance cleanup-sessions)
    stale = db.session.query(SessionToken).filter(SessionToken.expires_at <= now).count()
    return {"active_sessions": live, "expired_pending_cleanup": stale}


def _supplier_tokens_probe(now) -> dict:
    pending = db.session.query(SupplierToken).filter_by(status="PENDING")
    return {
        "pending": pending.count(),
        "lapsed_pending": pending.filter(SupplierToken.expires_at <= now).count(),
    }


PROBES = (
    ("database", _accounts_probe),
    ("session_store", _sessions_probe),
    ("supplier_tokens", _supplier_tokens_probe),
)


def _run_probe(name, probe, now) -> dict:
    started = time.perf_counter()
    try:
        details = probe(now)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Health probe %s failed", name)
        return {
            "status": "unhealthy",
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            "error": f"{name} unavailable",
        }
    return {
        "status": "healthy",
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "details": details,
    }


@system_bp.get("/health")
def health():
    now = get_services().clock()
    checks = {name: _run_probe(name, probe, now) for name, probe in PROBES}
    healthy = all(check["status"] == "healthy" for check in checks.values())

    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(now),
        "checks": checks,
    }, 200 if healthy else 503


@system_bp.get("/version")
def version():
    """Build information. Never includes secrets, connection strings or paths."""
    return {
        "api_version": API_VERSION,
        "environment": "development" if current_app.debug else "production",
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(get_services().clock()),
    }
