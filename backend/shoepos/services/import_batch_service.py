# Overview: Inventory import batch lifecycle (status, progress counter, failure reason) and audit trail.

from __future__ import annotations

from ..extensions import db
from ..models import InventoryImportAuditLog, InventoryImportBatch
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError
"""
Batch Progress Invariants

- PENDING -> PROCESSING -> COMPLETED | FAILED
- COMPLETED and FAILED are terminal: every later transition raises
- processed_rows never decreases and never exceeds total_rows
- Audit rows are append-only and belong to exactly one batch
"""

STATUS_PENDING = "PENDING"
STATUS_PROCESSING = "PROCESSING"
STATUS_COMPLETED = "COMPLETED"
STATUS_FAILED = "FAILED"

DEFAULT_FILE_NAME = "inventory-import.csv"


class ImportBatchStateError(ConflictError):
    """Raised on an illegal batch status transition."""


def create_import_batch(
    *,
    total_rows: int,
    chunk_size: int,
    queued: bool,
    original_file_name: str | None = None,
    uploaded_by_id: int | None = None,
) -> InventoryImportBatch:
    batch = InventoryImportBatch(
        status=STATUS_PENDING if queued else STATUS_PROCESSING,
        uploaded_by_id=uploaded_by_id,
        original_file_name=original_file_name or DEFAULT_FILE_NAME,
        total_rows=total_rows,
        processed_rows=0,
        chunk_size=chunk_size,
        started_at=None if queued else utcnow(),
    )
    db.session.add(batch)
    db.session.commit()
    return batch


def get_batch(batch_id: int) -> InventoryImportBatch:
    batch = db.session.get(InventoryImportBatch, batch_id)
    if batch is None:
        raise NotFoundError("Import batch not found")
    return batch


def _ensure_open(batch: InventoryImportBatch) -> None:
    if batch.is_terminal:
        raise ImportBatchStateError(f"Import batch {batch.id} is already {batch.status}")


def mark_batch_processing(batch_id: int) -> InventoryImportBatch:
    batch = get_batch(batch_id)
    _ensure_open(batch)
    batch.status = STATUS_PROCESSING
    batch.started_at = batch.started_at or utcnow()
    db.session.commit()
    return batch


def set_batch_progress(batch: InventoryImportBatch, processed_rows: int) -> None:
    """
    Move the progress counter forward inside the caller's transaction.

    Called from the chunk transaction so the counter commits together with
    the rows it counts.
    """
    _ensure_open(batch)
    if processed_rows < batch.processed_rows:
        raise ImportBatchStateError(
            f"processed_rows cannot go backwards ({batch.processed_rows} -> {processed_rows})"
        )
    batch.processed_rows = min(processed_rows, batch.total_rows)


def complete_import_batch(batch_id: int) -> InventoryImportBatch:
    batch = get_batch(batch_id)
    _ensure_open(batch)
    batch.status = STATUS_COMPLETED
    batch.processed_rows = batch.total_rows
    batch.completed_at = utcnow()
    db.session.commit()
    return batch


def fail_import_batch(batch_id: int, reason: str) -> InventoryImportBatch:
    batch = get_batch(batch_id)
    _ensure_open(batch)
    batch.status = STATUS_FAILED
    batch.failure_reason = reason
    batch.completed_at = utcnow()
    append_audit(batch.id, "ERROR", "Import failed", {"reason": reason})
    db.session.commit()
    return batch


def append_audit(batch_id: int, level: str, message: str, metadata: dict | None = None) -> InventoryImportAuditLog:
    entry = InventoryImportAuditLog(batch_id=batch_id, level=level, message=message, details=metadata)
    db.session.add(entry)
    return entry


def get_import_batch_status(batch_id: int, *, audit_limit: int = 50) -> dict:
    batch = get_batch(batch_id)
    audit = (
        batch.audit_logs
        .order_by(None)
        .order_by(InventoryImportAuditLog.id.desc())
        .limit(audit_limit)
        .all()
    )
    result = batch.to_dict()
    result["audit_log"] = [entry.to_dict() for entry in reversed(audit)]
    result["audit_count"] = batch.audit_logs.count()
    return result
