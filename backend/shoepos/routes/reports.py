# Overview: Flask API routes for sales and stock reports.

from flask import Blueprint, jsonify, request

from ..decorators import STOCK_WRITE_ROLES, require_auth, require_roles
from ..services import reporting_service
from ..validation import ValidationError, error_body

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales/daily")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def daily_sales_route():
    """Query params: startDate, endDate (YYYY-MM-DD, inclusive)."""
    try:
        start_day, end_day = reporting_service.resolve_date_range(
            request.args.get("startDate"), request.args.get("endDate")
        )
        return jsonify(reporting_service.daily_sales_totals(start_day, end_day))
    except ValidationError as e:
        return jsonify(error_body(e)), 400


@reports_bp.get("/sales/top-items")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def top_items_route():
    try:
        start_day, end_day = reporting_service.resolve_date_range(
            request.args.get("startDate"), request.args.get("endDate")
        )
        limit = reporting_service.resolve_limit(request.args.get("limit", type=int))
        return jsonify(reporting_service.top_selling_items(start_day, end_day, limit))
    except ValidationError as e:
        return jsonify(error_body(e)), 400


@reports_bp.get("/sales/top-brands")
@require_auth
@require_roles(*STOCK_WRITE_ROLES)
def top_brands_route():
    try:
        start_day, end_day = reporting_service.resolve_date_range(
            request.args.get("startDate"), request.args.get("endDate")
        )
        limit = reporting_service.resolve_limit(request.args.get("limit", type=int))
        return jsonify(reporting_service.top_selling_brands(start_day, end_day, limit))
    except ValidationError as e:
        return jsonify(error_body(e)), 400


@reports_bp.get("/inventory/low-stock")
@require_auth
def low_stock_route():
    try:
        return jsonify(reporting_service.low_stock(request.args.get("threshold", type=int)))
    except ValidationError as e:
        return jsonify(error_body(e)), 400
