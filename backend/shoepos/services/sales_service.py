"""
Sales Service - atomic sale creation and receipt lookup

WHY: A sale is money plus stock. Pricing and payment checks run before
anything is written; the sale header, its items and one SALE ledger
entry per item are then persisted in a single transaction so a failure
never leaves a partial sale or orphaned stock movement.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Sale, SaleItem, Variant
from ..validation import NotFoundError, SaleRequest, ValidationError
from .concurrency import run_in_transaction, run_with_retry
from .ledger_service import append_ledger_entry
from .report_cache import invalidate_reports


@dataclass(frozen=True)
class PricedLine:
    variant_id: int
    sku: str
    quantity: int
    unit_price_cents: int
    discount_cents: int

    @property
    def line_subtotal_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    @property
    def line_total_cents(self) -> int:
        return self.line_subtotal_cents - self.discount_cents


@dataclass(frozen=True)
class SaleTotals:
    subtotal_cents: int
    sale_discount_cents: int
    discount_total_cents: int
    tax_total_cents: int
    total_cents: int


def price_sale(request: SaleRequest) -> tuple[list[PricedLine], SaleTotals]:
    """
    Resolve prices and compute totals without writing anything.

    Raises:
        NotFoundError: a variant does not exist
        ValidationError: missing price, over-discount, negative total,
            or payments that do not sum exactly to the total
    """
    variant_ids = {item.variant_id for item in request.items}
    variants = {
        v.id: v for v in db.session.query(Variant).filter(Variant.id.in_(variant_ids)).all()
    } if variant_ids else {}

    lines: list[PricedLine] = []
    subtotal = 0
    item_discounts = 0

    for item in request.items:
        variant = variants.get(item.variant_id)
        if variant is None:
            raise NotFoundError(f"Variant {item.variant_id} not found")

        unit_price = item.unit_price_cents if item.unit_price_cents is not None else variant.price_cents
        if unit_price is None:
            raise ValidationError(f"Variant {item.variant_id} does not have a price set")

        line_subtotal = unit_price * item.quantity
        discount = item.discount_cents or 0
        if discount > line_subtotal:
            raise ValidationError(f"Discount for variant {item.variant_id} exceeds the line subtotal")

        subtotal += line_subtotal
        item_discounts += discount
        lines.append(PricedLine(variant.id, variant.sku, item.quantity, unit_price, discount))

    discount_total = item_discounts + request.sale_discount_cents
    if discount_total > subtotal:
        raise ValidationError("Discounts cannot exceed the subtotal")

    total = subtotal - discount_total + request.tax_cents
    if total < 0:
        raise ValidationError("Total cannot be negative")

    # Exact match, no rounding tolerance
    payments_total = sum(payment.amount_cents for payment in request.payments)
    if payments_total != total:
        raise ValidationError(
            "Payment breakdown must match the sale total",
            details={"payments_total_cents": payments_total, "total_cents": total},
        )

    return lines, SaleTotals(
        subtotal_cents=subtotal,
        sale_discount_cents=request.sale_discount_cents,
        discount_total_cents=discount_total,
        tax_total_cents=request.tax_cents,
        total_cents=total,
    )


def create_sale(request: SaleRequest, *, recorded_by_id: int | None = None) -> dict:
    """
    Validate, price and persist a sale.

    Ledger entries are written in request line order, one per line item,
    each referencing the sale id.

    Returns:
        Sale projection with totals, payments and per-line totals.
    """
    lines, totals = price_sale(request)
    payments = [{"method": p.method, "amount_cents": p.amount_cents} for p in request.payments]

    def _op():
        sale = Sale(
            recorded_by_id=recorded_by_id,
            subtotal_cents=totals.subtotal_cents,
            sale_discount_cents=totals.sale_discount_cents,
            discount_total_cents=totals.discount_total_cents,
            tax_total_cents=totals.tax_total_cents,
            total_cents=totals.total_cents,
            payment_breakdown=payments,
        )
        db.session.add(sale)
        db.session.flush()

        created = []
        for line in lines:
            item = SaleItem(
                sale_id=sale.id,
                variant_id=line.variant_id,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                discount_cents=line.discount_cents,
            )
            db.session.add(item)
            db.session.flush()
            append_ledger_entry(
                variant_id=line.variant_id,
                quantity_change=-line.quantity,
                entry_type="SALE",
                reference=sale.id,
                recorded_by_id=recorded_by_id,
            )
            created.append((item, line))
        return sale, created

    sale, created = run_with_retry(lambda: run_in_transaction(_op))
    invalidate_reports()

    result = sale.to_dict()
    result["items"] = [
        {
            "id": item.id,
            "variant_id": line.variant_id,
            "sku": line.sku,
            "quantity": line.quantity,
            "unit_price_cents": line.unit_price_cents,
            "discount_cents": line.discount_cents,
            "line_subtotal_cents": line.line_subtotal_cents,
            "line_total_cents": line.line_total_cents,
        }
        for item, line in created
    ]
    return result


def store_info() -> dict:
    return {
        "name": current_app.config["STORE_NAME"],
        "address": current_app.config["STORE_ADDRESS"],
        "phone": current_app.config["STORE_PHONE"],
    }


def get_sale_receipt(sale_id: int) -> dict:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found")

    items = []
    for item in sale.items:
        variant = item.variant
        items.append({
            "id": item.id,
            "variant_id": item.variant_id,
            "sku": variant.sku,
            "product_name": variant.product.name,
            "brand_name": variant.product.brand.name,
            "size": variant.size,
            "color": variant.color,
            "quantity": item.quantity,
            "unit_price_cents": item.unit_price_cents,
            "discount_cents": item.discount_cents,
            "line_total_cents": item.line_total_cents,
        })

    payments = list(sale.payment_breakdown or [])
    return {
        "sale": sale.to_dict(),
        "store": store_info(),
        "items": items,
        "payments": payments,
        "totals": {
            "subtotal_cents": sale.subtotal_cents,
            "discount_total_cents": sale.discount_total_cents,
            "tax_total_cents": sale.tax_total_cents,
            "total_cents": sale.total_cents,
            "payment_total_cents": sum(p.get("amount_cents", 0) for p in payments),
        },
    }
