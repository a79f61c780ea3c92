# Overview: Flask API routes for catalogue setup, variant lookups, and the variant ledger view.

"""
Catalog Routes

SECURITY: All routes require authentication.
- Lookups are open to every role (the register scans barcodes)
- Creating brands, products and variants requires OWNER or MANAGER
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import STOCK_WRITE_ROLES, require_auth, require_roles
from ..services import catalog_service, ledger_service
from ..time_utils import parse_iso_datetime
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    error_body,
    parse_catalog_payload,
)

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


@catalog_bp.get("/brands")
@require_auth
def list_brands_route():
    return jsonify({"brands": [brand.to_dict() for brand in catalog_service.list_brands()]})


@catalog_bp.post("/brands")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def create_brand_route():
    try:
        fields = parse_catalog_payload(request.get_json(silent=True), ("name",))
        brand = catalog_service.create_brand(fields["name"])
        return jsonify({"brand": brand.to_dict()}), 201
    except ValidationError as e:
        return jsonify(error_body(e)), 400
    except ConflictError as e:
        return jsonify(error_body(e)), 409


@catalog_bp.post("/products")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def create_product_route():
    payload = request.get_json(silent=True)
    try:
        fields = parse_catalog_payload(payload, ("name", "description"), ("brand_id",))
        tags = payload.get("tags") or []
        if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
            raise ValidationError("tags must be a list of strings")
        product = catalog_service.create_product(
            fields["brand_id"], fields["name"], description=fields["description"], tags=tags
        )
        return jsonify({"product": product.to_dict()}), 201
    except ValidationError as e:
        return jsonify(error_body(e)), 400
    except NotFoundError as e:
        return jsonify(error_body(e)), 404
    except ConflictError as e:
        return jsonify(error_body(e)), 409


@catalog_bp.post("/variants")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def create_variant_route():
    try:
        fields = parse_catalog_payload(
            request.get_json(silent=True),
            ("sku", "size", "color", "barcode"),
            ("product_id", "price_cents", "cost_price_cents"),
        )
        product_id = fields.pop("product_id")
        sku = fields.pop("sku")
        variant = catalog_service.create_variant(product_id, sku, **fields)
        return jsonify({"variant": catalog_service.variant_summary(variant)}), 201
    except ValidationError as e:
        return jsonify(error_body(e)), 400
    except NotFoundError as e:
        return jsonify(error_body(e)), 404
    except ConflictError as e:
        return jsonify(error_body(e)), 409


@catalog_bp.get("/variants/<int:variant_id>")
@require_auth
def get_variant_route(variant_id: int):
    try:
        return jsonify({"variant": catalog_service.lookup_variant(variant_id)})
    except NotFoundError as e:
        return jsonify(error_body(e)), 404


@catalog_bp.get("/variants/barcode/<path:code>")
@require_auth
def get_variant_by_barcode_route(code: str):
    try:
        return jsonify({"variant": catalog_service.lookup_variant_by_barcode(code)})
    except NotFoundError as e:
        return jsonify(error_body(e)), 404


@catalog_bp.get("/variants/<int:variant_id>/ledger")
@require_auth
def variant_ledger_route(variant_id: int):
    """
    Ledger entries for one variant, newest first.

    Query params:
    - type: SALE | RECEIPT | ADJUSTMENT | INITIAL_COUNT (optional)
    - reason: exact reason text (optional)
    - from, to: ISO-8601 datetimes (optional)
    - limit: int (default 50, max 500)
    """
    limit = request.args.get("limit", default=50, type=int)
    try:
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        try:
            from_date = parse_iso_datetime(request.args.get("from"))
            to_date = parse_iso_datetime(request.args.get("to"))
        except ValueError as exc:
            raise ValidationError("from and to must be ISO-8601 datetimes") from exc

        result = ledger_service.list_variant_ledger(
            variant_id,
            entry_type=request.args.get("type"),
            reason=request.args.get("reason"),
            from_date=from_date,
            to_date=to_date,
            limit=min(limit, 500),
        )
        return jsonify(result)
    except ValidationError as e:
        return jsonify(error_body(e)), 400
    except NotFoundError as e:
        return jsonify(error_body(e)), 404
    except Exception:
        current_app.logger.exception("Failed to load ledger for variant %s", variant_id)
        return jsonify({"error": "Internal server error"}), 500
