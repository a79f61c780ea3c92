# Overview: Flask API routes for suppliers, purchase orders, and goods receiving.

"""
Purchasing Routes

SECURITY: All routes require OWNER or MANAGER.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import STOCK_WRITE_ROLES, require_auth, require_roles
from ..services import purchasing_service
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    error_body,
    parse_purchase_order_request,
    parse_receive_request,
    parse_supplier_payload,
)

purchasing_bp = Blueprint("purchasing", __name__, url_prefix="/api/purchasing")


@purchasing_bp.get("/suppliers")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def list_suppliers_route():
    return jsonify({"suppliers": [s.to_dict() for s in purchasing_service.list_suppliers()]})


@purchasing_bp.post("/suppliers")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def create_supplier_route():
    try:
        fields = parse_supplier_payload(request.get_json(silent=True))
        supplier = purchasing_service.create_supplier(fields)
        return jsonify({"supplier": supplier.to_dict()}), 201
    except ValidationError as e:
        return jsonify(error_body(e)), 400
    except ConflictError as e:
        return jsonify(error_body(e)), 409


@purchasing_bp.get("/suppliers/<int:supplier_id>")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def get_supplier_route(supplier_id: int):
    try:
        return jsonify({"supplier": purchasing_service.get_supplier(supplier_id).to_dict()})
    except NotFoundError as e:
        return jsonify(error_body(e)), 404


@purchasing_bp.put("/suppliers/<int:supplier_id>")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def update_supplier_route(supplier_id: int):
    try:
        fields = parse_supplier_payload(request.get_json(silent=True), partial=True)
        supplier = purchasing_service.update_supplier(supplier_id, fields)
        return jsonify({"supplier": supplier.to_dict()})
    except ValidationError as e:
        return jsonify(error_body(e)), 400
    except NotFoundError as e:
        return jsonify(error_body(e)), 404
    except ConflictError as e:
        return jsonify(error_body(e)), 409


@purchasing_bp.get("/orders")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def list_orders_route():
    """
    Query params:
    - supplier_id: int (optional)
    - status: DRAFT | PARTIALLY_RECEIVED | RECEIVED | CANCELLED (optional)
    """
    try:
        orders = purchasing_service.list_purchase_orders(
            supplier_id=request.args.get("supplier_id", type=int),
            status=request.args.get("status"),
        )
        return jsonify({"orders": orders})
    except ValidationError as e:
        return jsonify(error_body(e)), 400


@purchasing_bp.post("/orders")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def create_order_route():
    try:
        supplier_id, lines, notes = parse_purchase_order_request(request.get_json(silent=True))
        order = purchasing_service.create_purchase_order(
            supplier_id, lines, notes=notes, created_by_id=g.current_user.id
        )
        return jsonify({"order": order}), 201
    except ValidationError as e:
        return jsonify(error_body(e)), 400
    except NotFoundError as e:
        return jsonify(error_body(e)), 404


@purchasing_bp.get("/orders/<int:order_id>")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def get_order_route(order_id: int):
    try:
        return jsonify({"order": purchasing_service.get_purchase_order(order_id)})
    except NotFoundError as e:
        return jsonify(error_body(e)), 404


@purchasing_bp.post("/orders/<int:order_id>/receive")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def receive_order_route(order_id: int):
    """
    Receive stock against a purchase order.

    Body:
    - items: [{item_id, quantity_received, cost_cents?}]
    """
    try:
        lines = parse_receive_request(request.get_json(silent=True))
        order = purchasing_service.receive_purchase_order(
            order_id, lines, received_by_id=g.current_user.id
        )
        return jsonify({"order": order})
    except ValidationError as e:
        return jsonify(error_body(e)), 400
    except NotFoundError as e:
        return jsonify(error_body(e)), 404
    except Exception:
        current_app.logger.exception("Failed to receive purchase order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500
