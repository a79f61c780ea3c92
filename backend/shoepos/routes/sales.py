# Overview: Flask API routes for sale creation and receipt lookup.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import sales_service
from ..validation import ConflictError, NotFoundError, ValidationError, error_body, parse_sale_request

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Record a completed sale.

    Body:
    - items: [{variant_id, quantity, unit_price_cents?, discount_cents?}]
    - payments: [{method, amount_cents}] summing to the sale total
    - sale_discount_cents, tax_cents (optional)
    """
    try:
        sale_request = parse_sale_request(request.get_json(silent=True))
        sale = sales_service.create_sale(sale_request, recorded_by_id=g.current_user.id)
        return jsonify({"sale": sale}), 201
    except ValidationError as e:
        return jsonify(error_body(e)), 400
    except NotFoundError as e:
        return jsonify(error_body(e)), 404
    except ConflictError as e:
        return jsonify(error_body(e)), 409
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>/receipt")
@require_auth
def sale_receipt_route(sale_id: int):
    try:
        return jsonify({"receipt": sales_service.get_sale_receipt(sale_id)})
    except NotFoundError as e:
        return jsonify(error_body(e)), 404
