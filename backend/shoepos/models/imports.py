# Overview: Inventory import batch tracking and its append-only audit trail.

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


BATCH_STATUSES = ("PENDING", "PROCESSING", "COMPLETED", "FAILED")
TERMINAL_BATCH_STATUSES = ("COMPLETED", "FAILED")
AUDIT_LEVELS = ("INFO", "WARN", "ERROR")


class InventoryImportBatch(db.Model):
    """
    One execution of an inventory CSV apply.

    LIFECYCLE:
    - Created PENDING (queued) or PROCESSING (in-request)
    - processed_rows grows after every committed chunk
    - Ends COMPLETED or FAILED; terminal states never transition again
    """
    __tablename__ = "inventory_import_batches"
    __table_args__ = (
        db.Index("ix_inventory_import_batches_status", "status"),
        db.CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED')",
            name="ck_inventory_import_batches_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(16), nullable=False, default="PENDING")
    uploaded_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    original_file_name = db.Column(db.String(255), nullable=False)

    total_rows = db.Column(db.Integer, nullable=False, default=0)
    processed_rows = db.Column(db.Integer, nullable=False, default=0)
    chunk_size = db.Column(db.Integer, nullable=False)
    failure_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    audit_logs = db.relationship(
        "InventoryImportAuditLog",
        backref="batch",
        lazy="dynamic",
        order_by="InventoryImportAuditLog.id",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_BATCH_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "uploaded_by_id": self.uploaded_by_id,
            "original_file_name": self.original_file_name,
            "total_rows": self.total_rows,
            "processed_rows": self.processed_rows,
            "chunk_size": self.chunk_size,
            "failure_reason": self.failure_reason,
            "created_at": to_utc_z(self.created_at),
            "started_at": to_utc_z(self.started_at),
            "completed_at": to_utc_z(self.completed_at),
        }


class InventoryImportAuditLog(db.Model):
    """Append-only record of one significant import action."""
    __tablename__ = "inventory_import_audit_logs"
    __table_args__ = (
        db.CheckConstraint("level IN ('INFO', 'WARN', 'ERROR')", name="ck_import_audit_level"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("inventory_import_batches.id"), nullable=False, index=True)
    level = db.Column(db.String(8), nullable=False, default="INFO")
    message = db.Column(db.String(500), nullable=False)
    # "metadata" is reserved on declarative classes
    details = db.Column("metadata", db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_id": self.batch_id,
            "level": self.level,
            "message": self.message,
            "metadata": self.details,
            "created_at": to_utc_z(self.created_at),
        }
