# Overview: Flask API routes for the signed-in account and its notifications.

from flask import Blueprint, g, jsonify

from ..decorators import require_auth
from ..services import get_services


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"success": True, "user": g.current_user.to_dict()})


@users_bp.get("/me/notifications")
@require_auth
def list_notifications_route():
    notifications = get_services().store.list_notifications(g.current_user.id)
    return jsonify({
        "success": True,
        "notifications": [n.to_dict() for n in notifications],
    })


@users_bp.delete("/me/notifications")
@require_auth
def clear_notifications_route():
    """Delete every notification for the caller. Returns how many were removed."""
    cleared = get_services().store.clear_notifications(g.current_user.id)
    return jsonify({"success": True, "cleared": cleared})
