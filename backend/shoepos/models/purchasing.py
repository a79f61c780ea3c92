# Overview: Purchase orders, their lines, and immutable goods receipts.

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


PO_STATUSES = ("DRAFT", "PARTIALLY_RECEIVED", "RECEIVED", "CANCELLED")


class PurchaseOrder(db.Model):
    """
    Order placed with a supplier.

    LIFECYCLE:
    - DRAFT -> PARTIALLY_RECEIVED -> RECEIVED
    - CANCELLED is a sink (not receivable)

    received_at is stamped on the first transition to RECEIVED only.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.Index("ix_purchase_orders_supplier_status", "supplier_id", "status"),
        db.CheckConstraint(
            "status IN ('DRAFT', 'PARTIALLY_RECEIVED', 'RECEIVED', 'CANCELLED')",
            name="ck_purchase_orders_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    status = db.Column(db.String(24), nullable=False, default="DRAFT")
    notes = db.Column(db.Text, nullable=True)

    ordered_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier", backref=db.backref("purchase_orders", lazy=True))
    items = db.relationship("PurchaseOrderItem", backref="purchase_order", lazy=True, order_by="PurchaseOrderItem.id")
    receipts = db.relationship("GoodsReceipt", backref="purchase_order", lazy=True, order_by="GoodsReceipt.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "created_by_id": self.created_by_id,
            "status": self.status,
            "notes": self.notes,
            "ordered_at": to_utc_z(self.ordered_at),
            "received_at": to_utc_z(self.received_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PurchaseOrderItem(db.Model):
    """
    INVARIANT: 0 <= quantity_received <= quantity_ordered.
    quantity_received only grows; cost_cents holds the last known cost.
    """
    __tablename__ = "purchase_order_items"
    __table_args__ = (
        db.CheckConstraint("quantity_ordered >= 1", name="ck_po_items_ordered_positive"),
        db.CheckConstraint(
            "quantity_received >= 0 AND quantity_received <= quantity_ordered",
            name="ck_po_items_received_range",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)
    quantity_ordered = db.Column(db.Integer, nullable=False)
    quantity_received = db.Column(db.Integer, nullable=False, default=0)
    cost_cents = db.Column(db.Integer, nullable=True)

    variant = db.relationship("Variant")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "variant_id": self.variant_id,
            "quantity_ordered": self.quantity_ordered,
            "quantity_received": self.quantity_received,
            "cost_cents": self.cost_cents,
        }


class GoodsReceipt(db.Model):
    """One receiving event against a purchase order. Immutable history."""
    __tablename__ = "goods_receipts"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    received_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship("GoodsReceiptItem", backref="receipt", lazy=True, order_by="GoodsReceiptItem.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "received_by_id": self.received_by_id,
            "received_at": to_utc_z(self.received_at),
            "items": [item.to_dict() for item in self.items],
        }


class GoodsReceiptItem(db.Model):
    __tablename__ = "goods_receipt_items"
    __table_args__ = (
        db.CheckConstraint("quantity_received >= 1", name="ck_receipt_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    goods_receipt_id = db.Column(db.Integer, db.ForeignKey("goods_receipts.id"), nullable=False, index=True)
    purchase_order_item_id = db.Column(
        db.Integer, db.ForeignKey("purchase_order_items.id"), nullable=False, index=True
    )
    quantity_received = db.Column(db.Integer, nullable=False)
    cost_cents = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "goods_receipt_id": self.goods_receipt_id,
            "purchase_order_item_id": self.purchase_order_item_id,
            "quantity_received": self.quantity_received,
            "cost_cents": self.cost_cents,
        }
