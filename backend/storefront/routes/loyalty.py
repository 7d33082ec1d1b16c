# Overview: Flask API routes for referrals and the caller's loyalty account.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..errors import ValidationError
from ..services import get_services
from ..services.loyalty_service import TIER_THRESHOLDS
from ..services.sanitizer import InvalidInputType, sanitize_input


loyalty_bp = Blueprint("loyalty", __name__, url_prefix="/api")


@loyalty_bp.post("/referrals")
@require_auth
def create_referral_route():
    """
    Create a one-time referral for a prospective customer's email.

    Request body:
    {
        "email": "friend@example.com"   // required
    }

    The returned token is passed as referralCode when the friend registers.
    """
    data = request.get_json(silent=True) or {}
    try:
        email = sanitize_input(data.get("email"))
    except InvalidInputType:
        raise ValidationError("Email is required", field="email")

    referral = get_services().referrals.create_referral(g.current_user, email)
    return jsonify({"success": True, "referral": referral.to_dict()}), 201


@loyalty_bp.get("/loyalty/me")
@require_auth
def my_loyalty_route():
    loyalty = get_services().referrals.require_loyalty(g.current_user.email)
    return jsonify({"success": True, "loyalty": loyalty.to_dict()})


@loyalty_bp.post("/loyalty/enroll")
@require_auth
def enroll_route():
    """Create the caller's loyalty account if it does not exist yet."""
    loyalty = get_services().referrals.enroll(g.current_user)
    return jsonify({"success": True, "loyalty": loyalty.to_dict()}), 200


@loyalty_bp.get("/loyalty/tiers")
def tiers_route():
    return jsonify({
        "tiers": [{"tier": name, "min_points": minimum} for minimum, name in TIER_THRESHOLDS],
    })
