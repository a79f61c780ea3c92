# Overview: Suppliers, purchase orders, and the goods-receiving engine.

"""
Purchasing Service

WHY: Receiving is the only way supplier stock enters the ledger, and the
last received cost becomes the variant's cost price.

LIFECYCLE:
1. DRAFT: Created with ordered quantities
2. PARTIALLY_RECEIVED: At least one receipt, something still outstanding
3. RECEIVED: Every line fully received (received_at stamped once)
4. CANCELLED: Sink, cannot be received

DESIGN:
- One receipt = one GoodsReceipt header + N GoodsReceiptItems + N RECEIPT
  ledger entries, all in one transaction
- Over-receipt is rejected for the whole request, never trimmed
- The order row and its items are read FOR UPDATE so two concurrent
  receipts against the same line cannot both pass the ordered-quantity check
"""

from __future__ import annotations

from ..extensions import db
from ..models import (
    GoodsReceipt,
    GoodsReceiptItem,
    PurchaseOrder,
    PurchaseOrderItem,
    Supplier,
    Variant,
)
from ..time_utils import utcnow
from ..validation import (
    NotFoundError,
    PurchaseOrderLineRequest,
    ReceiveLineRequest,
    ValidationError,
)
from .catalog_service import variant_summary
from .concurrency import lock_for_update, run_in_transaction
from .ledger_service import append_ledger_entry
from .report_cache import invalidate_reports


STATUS_DRAFT = "DRAFT"
STATUS_PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED"
STATUS_RECEIVED = "RECEIVED"
STATUS_CANCELLED = "CANCELLED"

PO_STATUSES = {STATUS_DRAFT, STATUS_PARTIALLY_RECEIVED, STATUS_RECEIVED, STATUS_CANCELLED}

RECEIPT_REASON = "purchase"


# ---------------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------------

def create_supplier(fields: dict) -> Supplier:
    def _op():
        supplier = Supplier(**fields)
        db.session.add(supplier)
        db.session.flush()
        return supplier
    return run_in_transaction(_op)


def list_suppliers() -> list[Supplier]:
    return db.session.query(Supplier).order_by(Supplier.name.asc()).all()


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError("Supplier not found")
    return supplier


def update_supplier(supplier_id: int, fields: dict) -> Supplier:
    def _op():
        supplier = get_supplier(supplier_id)
        for key, value in fields.items():
            setattr(supplier, key, value)
        db.session.flush()
        return supplier
    return run_in_transaction(_op)


# ---------------------------------------------------------------------------
# Purchase orders
# ---------------------------------------------------------------------------

def create_purchase_order(
    supplier_id: int,
    lines: list[PurchaseOrderLineRequest],
    *,
    notes: str | None = None,
    created_by_id: int | None = None,
) -> dict:
    """
    Create a DRAFT purchase order.

    Raises:
        NotFoundError: supplier or any variant does not exist
        ValidationError: no lines
    """
    get_supplier(supplier_id)
    if not lines:
        raise ValidationError("At least one item is required")

    variant_ids = {line.variant_id for line in lines}
    found = {
        row[0] for row in db.session.query(Variant.id).filter(Variant.id.in_(variant_ids)).all()
    }
    missing = sorted(variant_ids - found)
    if missing:
        raise NotFoundError(f"Variant {missing[0]} not found")

    def _op():
        order = PurchaseOrder(
            supplier_id=supplier_id,
            created_by_id=created_by_id,
            status=STATUS_DRAFT,
            notes=notes,
        )
        db.session.add(order)
        db.session.flush()
        for line in lines:
            db.session.add(PurchaseOrderItem(
                purchase_order_id=order.id,
                variant_id=line.variant_id,
                quantity_ordered=line.quantity_ordered,
                quantity_received=0,
                cost_cents=line.cost_cents,
            ))
        db.session.flush()
        return order.id

    order_id = run_in_transaction(_op)
    return get_purchase_order(order_id)


def list_purchase_orders(*, supplier_id: int | None = None, status: str | None = None) -> list[dict]:
    if status is not None and status not in PO_STATUSES:
        raise ValidationError(f"Invalid status: {status}")

    query = db.session.query(PurchaseOrder)
    if supplier_id is not None:
        query = query.filter(PurchaseOrder.supplier_id == supplier_id)
    if status is not None:
        query = query.filter(PurchaseOrder.status == status)

    orders = query.order_by(PurchaseOrder.ordered_at.desc(), PurchaseOrder.id.desc()).all()
    return [_order_projection(order) for order in orders]


def get_purchase_order(order_id: int) -> dict:
    order = db.session.get(PurchaseOrder, order_id)
    if order is None:
        raise NotFoundError("Purchase order not found")
    return _order_projection(order)


def _order_projection(order: PurchaseOrder) -> dict:
    result = order.to_dict()
    result["supplier"] = order.supplier.to_dict()
    result["items"] = []
    for item in order.items:
        entry = item.to_dict()
        entry["quantity_outstanding"] = item.quantity_ordered - item.quantity_received
        entry["variant"] = variant_summary(item.variant)
        result["items"].append(entry)
    result["receipts"] = [receipt.to_dict() for receipt in order.receipts]
    return result


# ---------------------------------------------------------------------------
# Receiving
# ---------------------------------------------------------------------------

def _resolve_status(items: list[PurchaseOrderItem]) -> str:
    fully_received = all(
        item.quantity_ordered > 0 and item.quantity_received >= item.quantity_ordered
        for item in items
    )
    return STATUS_RECEIVED if items and fully_received else STATUS_PARTIALLY_RECEIVED


def receive_purchase_order(
    order_id: int,
    lines: list[ReceiveLineRequest],
    *,
    received_by_id: int | None = None,
) -> dict:
    """
    Apply one partial or full receipt against a purchase order.

    Args:
        order_id: Purchase order to receive against
        lines: Requested receipt lines (item id, quantity, optional cost)
        received_by_id: User recording the receipt

    Returns:
        Updated purchase order projection (items, receipts)

    Raises:
        NotFoundError: order does not exist
        ValidationError: cancelled/received order, foreign item id,
            or a line that would exceed its ordered quantity
    """
    if not lines:
        raise ValidationError("At least one item is required")

    def _op():
        order = lock_for_update(
            db.session.query(PurchaseOrder).filter(PurchaseOrder.id == order_id)
        ).first()
        if order is None:
            raise NotFoundError("Purchase order not found")
        if order.status == STATUS_CANCELLED:
            raise ValidationError("Cannot receive a cancelled purchase order")
        if order.status == STATUS_RECEIVED:
            raise ValidationError("Purchase order is already fully received")

        items = lock_for_update(
            db.session.query(PurchaseOrderItem)
            .filter(PurchaseOrderItem.purchase_order_id == order.id)
            .order_by(PurchaseOrderItem.id)
        ).all()
        items_by_id = {item.id: item for item in items}

        for line in lines:
            if line.item_id not in items_by_id:
                raise ValidationError(f"Item {line.item_id} does not belong to this purchase order")

        receipt = GoodsReceipt(purchase_order_id=order.id, received_by_id=received_by_id)
        db.session.add(receipt)
        db.session.flush()

        for line in lines:
            item = items_by_id[line.item_id]
            new_total = item.quantity_received + line.quantity_received
            if new_total > item.quantity_ordered:
                raise ValidationError(
                    "Received quantity exceeds ordered quantity",
                    details={
                        "item_id": item.id,
                        "quantity_ordered": item.quantity_ordered,
                        "quantity_received": item.quantity_received,
                        "requested": line.quantity_received,
                    },
                )

            resolved_cost = line.cost_cents if line.cost_cents is not None else item.cost_cents

            item.quantity_received = new_total
            item.cost_cents = resolved_cost

            db.session.add(GoodsReceiptItem(
                goods_receipt_id=receipt.id,
                purchase_order_item_id=item.id,
                quantity_received=line.quantity_received,
                cost_cents=resolved_cost,
            ))

            append_ledger_entry(
                variant_id=item.variant_id,
                quantity_change=line.quantity_received,
                entry_type="RECEIPT",
                reason=RECEIPT_REASON,
                reference=receipt.id,
                recorded_by_id=received_by_id,
            )

            # Last receipt wins for cost of goods
            if resolved_cost is not None:
                variant = db.session.get(Variant, item.variant_id)
                variant.cost_price_cents = resolved_cost

        order.status = _resolve_status(items)
        if order.status == STATUS_RECEIVED and order.received_at is None:
            order.received_at = utcnow()

        db.session.flush()
        return order.id

    run_in_transaction(_op)
    invalidate_reports()
    db.session.expire_all()
    return get_purchase_order(order_id)
