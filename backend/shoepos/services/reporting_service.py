# Overview: Sales and stock reports computed from sales and the ledger, cached by parameters.

from __future__ import annotations

from datetime import date, timedelta

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Brand, Product, Sale, SaleItem, StockLedgerEntry, Variant
from ..time_utils import parse_iso_datetime, start_of_day, to_utc_z, utcnow
from ..validation import ValidationError
from .report_cache import REPORTS_PREFIX, report_cache


def resolve_date_range(start: str | None, end: str | None) -> tuple[date, date]:
    """Inclusive day range; defaults to the last REPORT_DEFAULT_RANGE_DAYS days."""
    try:
        start_dt = parse_iso_datetime(start)
        end_dt = parse_iso_datetime(end)
    except ValueError as exc:
        raise ValidationError("Dates must be ISO-8601 (YYYY-MM-DD)") from exc

    end_day = end_dt.date() if end_dt else utcnow().date()
    if start_dt:
        start_day = start_dt.date()
    else:
        start_day = end_day - timedelta(days=current_app.config["REPORT_DEFAULT_RANGE_DAYS"] - 1)

    if start_day > end_day:
        raise ValidationError("startDate must be before or equal to endDate")
    return start_day, end_day


def resolve_limit(limit: int | None) -> int:
    if limit is None:
        return current_app.config["REPORT_DEFAULT_TOP_LIMIT"]
    if limit < 1:
        raise ValidationError("limit must be at least 1")
    return min(limit, current_app.config["REPORT_MAX_TOP_LIMIT"])


def _cached(key: str, builder):
    hit = report_cache.get(key)
    if hit is not None:
        return hit
    value = builder()
    report_cache.set(key, value, current_app.config["REPORT_CACHE_TTL_SECONDS"])
    return value


def _in_range(query, start_day: date, end_day: date):
    return query.filter(
        Sale.created_at >= start_of_day(start_day),
        Sale.created_at < start_of_day(end_day + timedelta(days=1)),
    )


def daily_sales_totals(start_day: date, end_day: date) -> dict:
    key = f"{REPORTS_PREFIX}sales:daily:{start_day.isoformat()}:{end_day.isoformat()}"

    def _build():
        sale_date = func.date(Sale.created_at)
        rows = (
            _in_range(
                db.session.query(
                    sale_date.label("sale_date"),
                    func.sum(Sale.subtotal_cents),
                    func.sum(Sale.discount_total_cents),
                    func.sum(Sale.tax_total_cents),
                    func.sum(Sale.total_cents),
                    func.count(Sale.id),
                ),
                start_day,
                end_day,
            )
            .group_by(sale_date)
            .order_by(sale_date.asc())
            .all()
        )
        return {
            "start_date": start_day.isoformat(),
            "end_date": end_day.isoformat(),
            "days": [
                {
                    "sale_date": str(day),
                    "gross_sales_cents": int(gross or 0),
                    "discount_total_cents": int(discount or 0),
                    "tax_total_cents": int(tax or 0),
                    "net_sales_cents": int(net or 0),
                    "sale_count": int(count or 0),
                }
                for day, gross, discount, tax, net, count in rows
            ],
        }

    return _cached(key, _build)


def top_selling_items(start_day: date, end_day: date, limit: int) -> dict:
    key = f"{REPORTS_PREFIX}sales:top-items:{start_day.isoformat()}:{end_day.isoformat()}:{limit}"

    def _build():
        gross = func.sum(SaleItem.unit_price_cents * SaleItem.quantity)
        quantity = func.sum(SaleItem.quantity)
        rows = (
            _in_range(
                db.session.query(
                    Variant.id,
                    Variant.sku,
                    Product.id,
                    Product.name,
                    Brand.id,
                    Brand.name,
                    quantity.label("quantity_sold"),
                    gross.label("gross_sales_cents"),
                    func.sum(SaleItem.discount_cents),
                    func.max(Sale.created_at),
                )
                .select_from(SaleItem)
                .join(Sale, SaleItem.sale_id == Sale.id)
                .join(Variant, SaleItem.variant_id == Variant.id)
                .join(Product, Variant.product_id == Product.id)
                .join(Brand, Product.brand_id == Brand.id),
                start_day,
                end_day,
            )
            .group_by(Variant.id, Variant.sku, Product.id, Product.name, Brand.id, Brand.name)
            .order_by(quantity.desc(), gross.desc(), Variant.sku.asc())
            .limit(limit)
            .all()
        )
        return {
            "start_date": start_day.isoformat(),
            "end_date": end_day.isoformat(),
            "items": [
                {
                    "variant_id": variant_id,
                    "sku": sku,
                    "product_id": product_id,
                    "product_name": product_name,
                    "brand_id": brand_id,
                    "brand_name": brand_name,
                    "quantity_sold": int(sold or 0),
                    "gross_sales_cents": int(gross_cents or 0),
                    "discount_total_cents": int(discount or 0),
                    "net_sales_cents": int(gross_cents or 0) - int(discount or 0),
                    "last_sold_at": to_utc_z(last_sold),
                }
                for (
                    variant_id, sku, product_id, product_name, brand_id, brand_name,
                    sold, gross_cents, discount, last_sold,
                ) in rows
            ],
        }

    return _cached(key, _build)


def top_selling_brands(start_day: date, end_day: date, limit: int) -> dict:
    key = f"{REPORTS_PREFIX}sales:top-brands:{start_day.isoformat()}:{end_day.isoformat()}:{limit}"

    def _build():
        gross = func.sum(SaleItem.unit_price_cents * SaleItem.quantity)
        quantity = func.sum(SaleItem.quantity)
        rows = (
            _in_range(
                db.session.query(
                    Brand.id,
                    Brand.name,
                    quantity,
                    gross,
                    func.sum(SaleItem.discount_cents),
                )
                .select_from(SaleItem)
                .join(Sale, SaleItem.sale_id == Sale.id)
                .join(Variant, SaleItem.variant_id == Variant.id)
                .join(Product, Variant.product_id == Product.id)
                .join(Brand, Product.brand_id == Brand.id),
                start_day,
                end_day,
            )
            .group_by(Brand.id, Brand.name)
            .order_by(quantity.desc(), gross.desc(), Brand.name.asc())
            .limit(limit)
            .all()
        )
        return {
            "start_date": start_day.isoformat(),
            "end_date": end_day.isoformat(),
            "brands": [
                {
                    "brand_id": brand_id,
                    "brand_name": brand_name,
                    "quantity_sold": int(sold or 0),
                    "gross_sales_cents": int(gross_cents or 0),
                    "discount_total_cents": int(discount or 0),
                    "net_sales_cents": int(gross_cents or 0) - int(discount or 0),
                }
                for brand_id, brand_name, sold, gross_cents, discount in rows
            ],
        }

    return _cached(key, _build)


def low_stock(threshold: int | None = None) -> dict:
    """Variants whose ledger on-hand is at or below the threshold (variants with no entries count as 0)."""
    if threshold is None:
        threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    if threshold < 0:
        raise ValidationError("threshold must be zero or greater")
    key = f"{REPORTS_PREFIX}inventory:low-stock:{threshold}"

    def _build():
        totals = (
            db.session.query(
                StockLedgerEntry.variant_id.label("variant_id"),
                func.sum(StockLedgerEntry.quantity_change).label("on_hand"),
            )
            .group_by(StockLedgerEntry.variant_id)
            .subquery()
        )
        on_hand = func.coalesce(totals.c.on_hand, 0)
        rows = (
            db.session.query(Variant.id, Variant.sku, Product.name, Brand.name, on_hand)
            .join(Product, Variant.product_id == Product.id)
            .join(Brand, Product.brand_id == Brand.id)
            .outerjoin(totals, totals.c.variant_id == Variant.id)
            .filter(on_hand <= threshold)
            .order_by(on_hand.asc(), Variant.sku.asc())
            .all()
        )
        return {
            "threshold": threshold,
            "variants": [
                {
                    "variant_id": variant_id,
                    "sku": sku,
                    "product_name": product_name,
                    "brand_name": brand_name,
                    "on_hand": int(stock),
                    "threshold": threshold,
                }
                for variant_id, sku, product_name, brand_name, stock in rows
            ],
        }

    return _cached(key, _build)
