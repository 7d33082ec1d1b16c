# Overview: Flask API routes for suppliers, stock-order tokens and supplier confirmations.

# backend/storefront/routes/suppliers.py
"""
Supplier stock-order API

Back office (admin/staff):
- POST /api/suppliers               create a supplier
- GET  /api/suppliers               list suppliers
- GET  /api/suppliers/orders        list stock orders and their status
- POST /api/suppliers/order-stock   issue an order token and email it

Supplier (authorised by the emailed token only):
- GET  /api/suppliers/confirm/<token>   order details for display
- POST /api/suppliers/confirm           same, token in the body
- POST /api/suppliers/decision          {tokenId, status}; single use
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import ValidationError
from ..extensions import db
from ..models import Supplier
from ..services import get_services
from ..services.security_log import log_security_event
from ..services.supplier_token_service import OrderStockRequest


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")

BACK_OFFICE_ROLES = ("admin", "staff")


@suppliers_bp.post("")
@require_auth
@require_role(*BACK_OFFICE_ROLES)
def create_supplier_route():
    """
    Create supplier.

    Request body:
    {
        "name": "Acme Textiles",          // required
        "email": "orders@acme.example",   // required, unique
        "contact_phone": "+94771234567"   // optional
    }
    """
    data = request.get_json(silent=True) or {}
    supplier = get_services().suppliers.create_supplier(
        data.get("name"),
        data.get("email"),
        data.get("contact_phone"),
    )
    return jsonify({"success": True, "supplier": supplier.to_dict()}), 201


@suppliers_bp.get("")
@require_auth
@require_role(*BACK_OFFICE_ROLES)
def list_suppliers_route():
    suppliers = db.session.query(Supplier).order_by(Supplier.name).all()
    return jsonify({"success": True, "suppliers": [s.to_dict() for s in suppliers]})


@suppliers_bp.get("/orders")
@require_auth
@require_role(*BACK_OFFICE_ROLES)
def list_orders_route():
    orders = get_services().suppliers.list_orders()
    return jsonify({"success": True, "orders": [o.to_dict() for o in orders]})


@suppliers_bp.post("/order-stock")
@require_auth
@require_role(*BACK_OFFICE_ROLES)
def order_stock_route():
    """
    Issue a single-use order token and email the confirmation link.

    Request body:
    {
        "email": "orders@acme.example",   // supplier email
        "itemId": "SKU-1001",
        "quantity": 50,
        "date": "2026-11-01"              // required-by date, ISO-8601
    }

    Returns 404 for unknown suppliers, 429 past the per-supplier hourly
    limit, 502 if the email could not be sent.
    """
    order = OrderStockRequest.from_json(request.get_json(silent=True))
    record = get_services().suppliers.issue(order)

    log_security_event(
        "SUPPLIER_TOKEN_ISSUED",
        True,
        user_id=g.current_user.id,
        identifier=order.email,
        resource=f"supplier_token:{record.id}",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        occurred_at=get_services().clock(),
    )

    return jsonify({
        "success": True,
        "message": "Order request sent to supplier",
        "order": record.to_dict(),
    }), 201


@suppliers_bp.get("/confirm/<token>")
def confirm_route(token: str):
    record = get_services().suppliers.validate(token)
    return jsonify({"success": True, "valid": True, "order": record.to_dict()})


@suppliers_bp.post("/confirm")
def confirm_body_route():
    data = request.get_json(silent=True) or {}
    token = data.get("token")
    if not isinstance(token, str) or not token:
        raise ValidationError("token is required", field="token")

    record = get_services().suppliers.validate(token)
    return jsonify({"success": True, "valid": True, "order": record.to_dict()})


@suppliers_bp.post("/decision")
def decision_route():
    """
    Accept or decline an order.

    Request body:
    {
        "tokenId": "<token from the email link>",
        "status": "ACCEPTED" | "DECLINED"
    }

    A token can be decided once; later calls get 409 and change nothing.
    """
    data = request.get_json(silent=True) or {}
    token = data.get("tokenId")
    if not isinstance(token, str) or not token:
        raise ValidationError("tokenId is required", field="tokenId")

    suppliers = get_services().suppliers
    record = suppliers.decide(token, data.get("status"))

    log_security_event(
        "SUPPLIER_TOKEN_DECIDED",
        True,
        identifier=record.supplier.email,
        resource=f"supplier_token:{record.id}",
        reason=record.status,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        occurred_at=get_services().clock(),
    )
    current_app.logger.info("Supplier order %s %s", record.id, record.status.lower())

    return jsonify({
        "success": True,
        "message": "Token status updated successfully",
        "order": record.to_dict(),
    }), 200
