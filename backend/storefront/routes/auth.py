# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/storefront/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Password strength and field validation on registration
- Account lockout after repeated failed attempts (423)
- Session tokens returned in the body and as an httponly cookie
- Logout revokes the session server-side and always clears the cookie
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, session_token_from_request
from ..errors import StorefrontError
from ..services import get_services
from ..services.auth_service import ClientInfo
from ..services.sanitizer import InvalidInputType, sanitize_input
from ..validation import LoginRequest, RegistrationRequest


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _client() -> ClientInfo:
    return ClientInfo(
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


def _set_session_cookie(response, token: str) -> None:
    config = current_app.config
    response.set_cookie(
        config["AUTH_COOKIE_NAME"],
        token,
        max_age=config["SESSION_TTL_HOURS"] * 3600,
        httponly=True,
        secure=config["AUTH_COOKIE_SECURE"],
        samesite="Lax",
    )


def _clear_session_cookie(response) -> None:
    config = current_app.config
    response.delete_cookie(
        config["AUTH_COOKIE_NAME"],
        httponly=True,
        secure=config["AUTH_COOKIE_SECURE"],
        samesite="Lax",
    )


@auth_bp.post("/register")
def register_route():
    """
    Register a new account and sign it in.

    Responses:
    - 201: {user, token}; the token is also set as an httponly cookie
    - 400: field validation failure or unknown referral code
    - 409: username or email already taken ("field" says which)
    """
    payload = RegistrationRequest.from_json(request.get_json(silent=True))

    result = get_services().auth.register(payload, _client())

    response = jsonify({
        "success": True,
        "message": "User registered successfully",
        **result.to_dict(),
    })
    _set_session_cookie(response, result.token)
    return response, 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by username or email and create a session token.

    Responses:
    - 200: {user, token}
    - 401: invalid credentials, with attempts_remaining for known accounts
    - 423: account locked, with minutes_remaining
    """
    payload = LoginRequest.from_json(request.get_json(silent=True))

    result = get_services().auth.login(payload, _client())

    response = jsonify({
        "success": True,
        "message": "Login successful",
        **result.to_dict(),
    })
    _set_session_cookie(response, result.token)
    return response, 200


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke the session token (Bearer header or cookie), then clear the cookie.

    Logging out with an unknown, expired or already revoked token still
    succeeds. If the revocation cannot be stored the response is 500, but the
    cookie is cleared regardless.
    """
    token = session_token_from_request()

    try:
        get_services().auth.logout(token, _client())
    except StorefrontError as exc:
        response = jsonify(exc.to_dict())
        status = exc.status_code
    else:
        response = jsonify({"success": True, "message": "Logged out successfully"})
        status = 200

    _clear_session_cookie(response)
    return response, status


@auth_bp.post("/check-auth")
@require_auth
def check_auth_route():
    """Return the authenticated account for a valid session token."""
    return jsonify({
        "success": True,
        "message": "Authenticated user!",
        "user": g.current_user.to_dict(),
    }), 200


@auth_bp.get("/lockout-status/<identifier>")
def lockout_status_route(identifier: str):
    """
    Check lockout status for an account.

    Public, so unknown identifiers report the same unlocked status as a clean
    account rather than revealing whether the account exists.
    """
    services = get_services()
    try:
        key = sanitize_input(identifier)
    except InvalidInputType:
        key = ""

    user = services.store.find_by_identifier(key) if key else None
    if user is None:
        return jsonify({
            "locked": False,
            "attempts_remaining": services.lockout.max_attempts,
            "retry_after_seconds": None,
            "retry_after_minutes": None,
        })

    status = services.lockout.status(user)
    return jsonify({
        "locked": status.locked,
        "attempts_remaining": status.attempts_remaining,
        "retry_after_seconds": status.seconds_remaining,
        "retry_after_minutes": status.minutes_remaining,
    })
