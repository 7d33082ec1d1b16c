# Overview: Request authentication and role decorators for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request

from .errors import AuthenticationError, PermissionDeniedError
from .services import get_services


def session_token_from_request() -> str | None:
    """Bearer token from the Authorization header, else the session cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return request.cookies.get(current_app.config["AUTH_COOKIE_NAME"]) or None


def require_auth(f):
    """
    Require a valid, unrevoked session token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object
    - g.session_token: The raw token presented

    Returns 401 if the token is missing, invalid, expired, revoked, or the
    account has been deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = session_token_from_request()
        if not token:
            return jsonify(AuthenticationError("Authentication required").to_dict()), 401

        context = get_services().sessions.validate_session(token)
        if not context:
            return jsonify(AuthenticationError("Invalid or expired token").to_dict()), 401

        g.current_user = context.user
        g.session_context = context
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """Require the authenticated user to hold one of roles. Use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return jsonify(AuthenticationError("Authentication required").to_dict()), 401

            if g.current_user.role not in roles:
                current_app.logger.warning(
                    "User %s with role %s denied access to %s", g.current_user.id, g.current_user.role, request.path
                )
                error = PermissionDeniedError(required_roles=list(roles))
                return jsonify(error.to_dict()), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
