# Overview: Builds the service objects once per app from its config.

"""
Service container.

create_app() calls init_services(app), which constructs every component with
its settings from app.config and stores the container in
app.extensions["storefront"]. Request handlers and CLI commands reach it with
get_services(). There are no module-level singletons.

Tests may set app.config["CLOCK"] to a zero-argument callable returning a
naive UTC datetime; every component shares it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from flask import current_app

from storefront.time_utils import utcnow
from .account_store import AccountStore
from .auth_service import AuthOrchestrator
from .lockout_service import LockoutTracker
from .loyalty_service import ReferralEngine
from .mail_service import Mailer, build_mailer
from .password_service import PasswordHasher
from .session_service import SessionManager
from .supplier_token_service import SupplierTokenStore
from .token_service import TokenIssuer


EXTENSION_KEY = "storefront"


@dataclass
class Services:
    store: AccountStore
    hasher: PasswordHasher
    tokens: TokenIssuer
    lockout: LockoutTracker
    sessions: SessionManager
    referrals: ReferralEngine
    mailer: Mailer
    suppliers: SupplierTokenStore
    auth: AuthOrchestrator
    clock: Callable[[], datetime]


def build_services(config, logger) -> Services:
    clock = config.get("CLOCK") or utcnow

    store = AccountStore()
    hasher = PasswordHasher(rounds=config["BCRYPT_ROUNDS"])
    tokens = TokenIssuer(config["TOKEN_SIGNING_SECRET"], config["TOKEN_ISSUER"], clock=clock)
    lockout = LockoutTracker(
        store,
        max_attempts=config["LOCKOUT_MAX_ATTEMPTS"],
        lock_duration=timedelta(minutes=config["LOCKOUT_DURATION_MINUTES"]),
        clock=clock,
    )
    sessions = SessionManager(tokens, ttl=timedelta(hours=config["SESSION_TTL_HOURS"]), clock=clock)
    referrals = ReferralEngine(
        store,
        logger,
        reward_points=config["REFERRAL_REWARD_POINTS"],
        clock=clock,
    )
    mailer = build_mailer(config, logger)
    suppliers = SupplierTokenStore(
        tokens,
        mailer,
        logger,
        public_url=config["PUBLIC_URL"],
        ttl=timedelta(hours=config["SUPPLIER_TOKEN_TTL_HOURS"]),
        rate_limit=config["SUPPLIER_TOKEN_RATE_LIMIT"],
        rate_window=timedelta(minutes=config["SUPPLIER_TOKEN_RATE_WINDOW_MINUTES"]),
        confirmation_timeout=config["SUPPLIER_CONFIRMATION_TIMEOUT_SECONDS"],
        clock=clock,
    )
    auth = AuthOrchestrator(store, hasher, lockout, sessions, referrals, logger, clock=clock)

    return Services(
        store=store,
        hasher=hasher,
        tokens=tokens,
        lockout=lockout,
        sessions=sessions,
        referrals=referrals,
        mailer=mailer,
        suppliers=suppliers,
        auth=auth,
        clock=clock,
    )


def init_services(app) -> Services:
    services = build_services(app.config, app.logger)
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
