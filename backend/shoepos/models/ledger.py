# Overview: Append-only stock ledger; the only source of on-hand quantity.

from __future__ import annotations

from sqlalchemy import text

from ..extensions import db
from ..time_utils import to_utc_z


LEDGER_TYPES = ("INITIAL_COUNT", "ADJUSTMENT", "RECEIPT", "SALE")


class StockLedgerEntry(db.Model):
    """
    Immutable fact: one signed stock movement for one variant.

    INVARIANTS:
    - Rows are inserted, never updated or deleted
    - On-hand(variant) = SUM(quantity_change) over its rows
    - At most one INITIAL_COUNT row per variant (partial unique index)

    reference links the movement to its cause (sale id, receipt id,
    import batch id) as text so one column serves every writer.
    """
    __tablename__ = "stock_ledger_entries"
    __table_args__ = (
        db.Index("ix_stock_ledger_variant_created", "variant_id", "created_at"),
        db.Index("ix_stock_ledger_reference", "reference"),
        db.Index(
            "uq_stock_ledger_initial_count",
            "variant_id",
            unique=True,
            sqlite_where=text("type = 'INITIAL_COUNT'"),
            postgresql_where=text("type = 'INITIAL_COUNT'"),
        ),
        db.CheckConstraint(
            "type IN ('INITIAL_COUNT', 'ADJUSTMENT', 'RECEIPT', 'SALE')",
            name="ck_stock_ledger_type",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)
    recorded_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    # Signed: positive = stock in, negative = stock out
    quantity_change = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(16), nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    reference = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    variant = db.relationship("Variant", backref=db.backref("ledger_entries", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variant_id": self.variant_id,
            "recorded_by_id": self.recorded_by_id,
            "quantity_change": self.quantity_change,
            "type": self.type,
            "reason": self.reason,
            "reference": self.reference,
            "created_at": to_utc_z(self.created_at),
        }
