# Overview: Error taxonomy shared by services and routes, plus the JSON error handlers.

"""
Every failure the API reports is a StorefrontError subclass. Each carries the
HTTP status it maps to, a short machine-readable ``kind``, and optional extra
fields merged into the response body.

Services raise; routes let errors propagate; ``register_error_handlers`` turns
them into tagged JSON:

    {"success": false, "kind": "conflict", "error": "Username already exists", "field": "username"}

Anything that is not a StorefrontError is logged with its traceback and
answered with a generic 500 so no internal detail reaches the client.
"""

from __future__ import annotations

from flask import jsonify
from werkzeug.exceptions import HTTPException


class StorefrontError(Exception):
    status_code = 500
    kind = "internal"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"success": False, "kind": self.kind, "error": self.message}
        body.update(self.extra)
        return body


class ValidationError(StorefrontError, ValueError):
    """400-level input problem."""
    status_code = 400
    kind = "validation"
    default_message = "Validation failed"


class ConflictError(StorefrontError, ValueError):
    """409-level uniqueness or state conflict."""
    status_code = 409
    kind = "conflict"
    default_message = "Conflict"


class AuthenticationError(StorefrontError):
    status_code = 401
    kind = "authentication"
    default_message = "Invalid credentials"


class PermissionDeniedError(StorefrontError):
    status_code = 403
    kind = "forbidden"
    default_message = "Permission denied"


class LockedError(StorefrontError):
    status_code = 423
    kind = "locked"
    default_message = "Account temporarily locked due to too many failed login attempts"


class NotFoundError(StorefrontError):
    status_code = 404
    kind = "not_found"
    default_message = "Not found"


class RateLimitError(StorefrontError):
    status_code = 429
    kind = "rate_limited"
    default_message = "Rate limit exceeded. Try again later."


class TokenError(StorefrontError):
    """Invalid, expired or malformed token. Status depends on the flow."""
    status_code = 400
    kind = "token"
    default_message = "Invalid or expired token"

    def __init__(self, message: str | None = None, *, reason: str | None = None, status_code: int | None = None, **extra):
        super().__init__(message, **extra)
        self.reason = reason
        if status_code is not None:
            self.status_code = status_code
        if reason:
            self.extra.setdefault("reason", reason)


class DeliveryError(StorefrontError):
    status_code = 502
    kind = "delivery"
    default_message = "Could not deliver email"


class TimeoutExceeded(StorefrontError):
    status_code = 504
    kind = "timeout"
    default_message = "Request timed out"


class InternalError(StorefrontError):
    pass


def register_error_handlers(app) -> None:
    @app.errorhandler(StorefrontError)
    def handle_storefront_error(exc: StorefrontError):
        if exc.status_code >= 500:
            app.logger.error("%s: %s", type(exc).__name__, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        kind = "not_found" if exc.code == 404 else "http"
        return jsonify({"success": False, "kind": kind, "error": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        app.logger.exception("Unhandled error")
        return jsonify(InternalError().to_dict()), 500
