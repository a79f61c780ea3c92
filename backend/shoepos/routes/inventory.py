# Overview: Flask API routes for initial stock counts and damaged/lost adjustments.

from flask import Blueprint, g, jsonify, request

from ..decorators import STOCK_WRITE_ROLES, require_auth, require_roles
from ..services import ledger_service
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    error_body,
    parse_adjustment_request,
    parse_initial_stock_request,
)

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/initial")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def initial_stock_route():
    """Record the one-time baseline count for a variant (409 if it already has one)."""
    try:
        variant_id, quantity = parse_initial_stock_request(request.get_json(silent=True))
        entry = ledger_service.record_initial_count(
            variant_id=variant_id,
            quantity=quantity,
            recorded_by_id=g.current_user.id,
            reason="Initial stock",
        )
        return jsonify({"entry": entry.to_dict(), "on_hand": ledger_service.get_on_hand(variant_id)}), 201
    except ValidationError as e:
        return jsonify(error_body(e)), 400
    except NotFoundError as e:
        return jsonify(error_body(e)), 404
    except ConflictError as e:
        return jsonify(error_body(e)), 409


@inventory_bp.post("/adjustments")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def adjustment_route():
    try:
        adjustment = parse_adjustment_request(request.get_json(silent=True))
        result = ledger_service.record_adjustment(adjustment, recorded_by_id=g.current_user.id)
        return jsonify({"adjustment": result}), 201
    except ValidationError as e:
        return jsonify(error_body(e)), 400
    except NotFoundError as e:
        return jsonify(error_body(e)), 404
    except ConflictError as e:
        return jsonify(error_body(e)), 409
