# Overview: Inventory CSV import: preview, and chunked transactional apply with audit trail.

"""
Inventory Import Service

WHY: Bulk-load a supplier or stock-take spreadsheet without ever writing a
half-understood file. Preview shows exactly what apply will do; apply is
refused outright while any row has a blocking issue.

LIFECYCLE (apply):
1. Parse + plan (same code path as preview)
2. Create the batch row (PENDING when queued, PROCESSING otherwise)
3. Process rows in file order, one transaction per chunk; the batch's
   processed_rows commits with each chunk
4. COMPLETED, or FAILED with the error message (terminal, no retry)

DESIGN:
- ImportApplyState carries the ids created so far and the tracked stock of
  every touched variant through all chunks of ONE batch; it is never shared
  between batches
- A failed chunk rolls back; the state may then hold ids that no longer
  exist, which is why a failure ends the batch instead of retrying
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial

from flask import current_app

from ..extensions import db
from ..models import Brand, Product, Variant
from ..tasks import task_runner
from ..validation import ValidationError
from .concurrency import run_in_transaction
from .import_batch_service import (
    append_audit,
    complete_import_batch,
    create_import_batch,
    fail_import_batch,
    get_batch,
    mark_batch_processing,
    set_batch_progress,
)
from .import_parser import ImportRow, parse_inventory_csv
from .import_planner import (
    ImportAnalysis,
    RowPlan,
    analyse_inventory_import,
    load_import_context,
    variant_changes,
)
from .ledger_service import VariantStockState, append_ledger_entry
from .report_cache import invalidate_reports


INITIAL_COUNT_REASON = "Inventory import"
ADJUSTMENT_REASON = "Inventory import adjustment"

# Chunk sizing thresholds
LARGE_IMPORT_ROWS = 2000
CHUNK_SIZE_LARGE = 500
CHUNK_SIZE_QUEUED = 250
CHUNK_SIZE_DEFAULT = 200


class ImportBlockedError(ValidationError):
    """Apply refused because the preview still has blocking rows."""

    def __init__(self, preview: dict):
        super().__init__("Import contains blocking issues. Resolve them before applying.")
        self.preview = preview


class ImportApplyError(RuntimeError):
    """A synchronous apply failed; the batch has been marked FAILED."""

    def __init__(self, batch_id: int, reason: str):
        super().__init__(reason)
        self.batch_id = batch_id


def choose_chunk_size(total_rows: int, queued: bool) -> int:
    if total_rows > LARGE_IMPORT_ROWS:
        return CHUNK_SIZE_LARGE
    if queued:
        return CHUNK_SIZE_QUEUED
    return CHUNK_SIZE_DEFAULT


def should_queue(total_rows: int) -> bool:
    return total_rows > current_app.config["IMPORT_QUEUE_THRESHOLD"]


def plan_inventory_import(rows: list[ImportRow]) -> ImportAnalysis:
    return analyse_inventory_import(rows, load_import_context(rows))


def preview_inventory_import(data: bytes | str) -> dict:
    """Parse and plan only. Never writes; safe to call repeatedly."""
    rows = parse_inventory_csv(data)
    return plan_inventory_import(rows).to_preview()


# ---------------------------------------------------------------------------
# Apply
# ---------------------------------------------------------------------------

@dataclass
class ImportApplyState:
    """Reconciliation state for one batch, threaded through every chunk."""
    batch_id: int
    uploaded_by_id: int | None = None
    brand_ids: dict[str, int] = field(default_factory=dict)
    product_ids: dict[str, int] = field(default_factory=dict)
    variant_ids: dict[str, int] = field(default_factory=dict)
    stocks: dict[int, VariantStockState] = field(default_factory=dict)

    @classmethod
    def from_analysis(cls, analysis: ImportAnalysis, stocks: dict[int, VariantStockState], **kwargs):
        state = cls(**kwargs)
        for key, plan in analysis.brands.items():
            if plan.existing_id is not None:
                state.brand_ids[key] = plan.existing_id
        for key, plan in analysis.products.items():
            if plan.existing_id is not None:
                state.product_ids[key] = plan.existing_id
        for key, plan in analysis.variants.items():
            if plan.existing is not None:
                state.variant_ids[key] = plan.existing.id
        state.stocks = {
            variant_id: VariantStockState(s.on_hand, s.has_initial_count, s.initial_count_entries)
            for variant_id, s in stocks.items()
        }
        return state


def apply_inventory_import(
    data: bytes | str,
    *,
    original_file_name: str | None = None,
    uploaded_by_id: int | None = None,
) -> dict:
    """
    Parse, plan and execute an inventory CSV.

    Returns:
        {"batch_id", "status": "QUEUED", "summary"} for large files (the
        work continues in the background), otherwise
        {"batch_id", "status": "COMPLETED", "summary", "batch"}.

    Raises:
        ImportParseError: the CSV cannot be read
        ValidationError: the file has no data rows
        ImportBlockedError: at least one row is blocking
        Exception: any failure of a synchronous apply (batch is FAILED)
    """
    rows = parse_inventory_csv(data)
    if not rows:
        raise ValidationError("CSV does not contain any rows")

    context = load_import_context(rows)
    analysis = analyse_inventory_import(rows, context)
    if analysis.blocking_issue_count > 0:
        raise ImportBlockedError(analysis.to_preview())

    queued = should_queue(len(rows))
    chunk_size = choose_chunk_size(len(rows), queued)
    batch = create_import_batch(
        total_rows=len(rows),
        chunk_size=chunk_size,
        queued=queued,
        original_file_name=original_file_name,
        uploaded_by_id=uploaded_by_id,
    )
    state = ImportApplyState.from_analysis(
        analysis, context.stocks, batch_id=batch.id, uploaded_by_id=uploaded_by_id
    )
    current_app.logger.info(
        "Inventory import batch %s: %s rows, chunk size %s, %s",
        batch.id, len(rows), chunk_size, "queued" if queued else "in-request",
    )

    if queued:
        task_runner.submit(f"inventory-import-{batch.id}", run_inventory_import, analysis, state)
        return {"batch_id": batch.id, "status": "QUEUED", "summary": analysis.summary}

    try:
        run_inventory_import(analysis, state)
    except Exception as exc:
        raise ImportApplyError(batch.id, str(exc) or exc.__class__.__name__) from exc
    return {
        "batch_id": batch.id,
        "status": "COMPLETED",
        "summary": analysis.summary,
        "batch": get_batch(batch.id).to_dict(),
    }


def run_inventory_import(analysis: ImportAnalysis, state: ImportApplyState) -> None:
    """
    Execute a planned import for an existing batch.

    Runs in-request or on the background runner. Any exception marks the
    batch FAILED with the message and is re-raised.
    """
    batch_id = state.batch_id
    try:
        batch = mark_batch_processing(batch_id)
        chunk_size = batch.chunk_size
        plans = analysis.rows

        for start in range(0, len(plans), chunk_size):
            chunk = plans[start:start + chunk_size]
            run_in_transaction(partial(_apply_chunk, chunk, state, start + len(chunk)))
            current_app.logger.debug(
                "Inventory import batch %s: %s/%s rows", batch_id, start + len(chunk), len(plans)
            )

        complete_import_batch(batch_id)
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Inventory import batch %s failed", batch_id)
        if not get_batch(batch_id).is_terminal:
            fail_import_batch(batch_id, str(exc) or exc.__class__.__name__)
        raise
    finally:
        invalidate_reports()

    current_app.logger.info("Inventory import batch %s completed", batch_id)


def _apply_chunk(chunk: list[RowPlan], state: ImportApplyState, processed_after: int) -> None:
    for plan in chunk:
        if plan.blocking:
            append_audit(
                state.batch_id,
                "WARN",
                f"Skipped row {plan.row.index} due to blocking issues",
                {"sku": plan.row.sku, "issues": [issue.to_dict() for issue in plan.issues]},
            )
            continue
        _apply_row(plan, state)

    set_batch_progress(get_batch(state.batch_id), processed_after)


def _apply_row(plan: RowPlan, state: ImportApplyState) -> None:
    row = plan.row
    batch_id = state.batch_id

    brand_id = state.brand_ids.get(plan.brand_key)
    if brand_id is None:
        brand = Brand(name=row.brand_name.strip())
        db.session.add(brand)
        db.session.flush()
        brand_id = state.brand_ids[plan.brand_key] = brand.id
        append_audit(batch_id, "INFO", f"Created brand {brand.name}", {"brand_id": brand.id, "row": row.index})

    product_id = state.product_ids.get(plan.product_key)
    if product_id is None:
        product = Product(brand_id=brand_id, name=row.product_name.strip(), tags=list(row.tags))
        db.session.add(product)
        db.session.flush()
        product_id = state.product_ids[plan.product_key] = product.id
        append_audit(
            batch_id, "INFO", f"Created product {product.name}", {"product_id": product.id, "row": row.index}
        )

    variant_id = state.variant_ids.get(plan.sku_key)
    if variant_id is None:
        variant = Variant(
            product_id=product_id,
            sku=row.sku.strip(),
            size=row.size,
            color=row.color,
            barcode=row.barcode,
            price_cents=row.price_cents,
        )
        db.session.add(variant)
        db.session.flush()
        variant_id = state.variant_ids[plan.sku_key] = variant.id
        state.stocks[variant_id] = VariantStockState()
        append_audit(
            batch_id, "INFO", f"Created variant {variant.sku}", {"variant_id": variant.id, "row": row.index}
        )
    else:
        variant = db.session.get(Variant, variant_id)
        changes = variant_changes(variant, row)
        if changes:
            for name, change in changes.items():
                setattr(variant, name, change["to"])
            db.session.flush()
            append_audit(
                batch_id,
                "INFO",
                f"Updated variant {variant.sku}",
                {"variant_id": variant.id, "row": row.index, "changes": changes},
            )

    if row.on_hand is not None:
        _reconcile_stock(variant_id, row, state)


def _reconcile_stock(variant_id: int, row: ImportRow, state: ImportApplyState) -> None:
    """
    Bring the variant's on-hand to row.on_hand by appending, never rewriting.

    Without a baseline the first differing count becomes the INITIAL_COUNT;
    afterwards only the delta is written as an ADJUSTMENT.
    """
    stock = state.stocks.setdefault(variant_id, VariantStockState())
    delta = row.on_hand - stock.on_hand
    metadata = {"sku": row.sku, "row": row.index, "previous": stock.on_hand, "next": row.on_hand}

    if not stock.has_initial_count:
        if delta == 0:
            return
        # Delta from tracked stock, not the full count; the two match on an empty ledger
        append_ledger_entry(
            variant_id=variant_id,
            quantity_change=delta,
            entry_type="INITIAL_COUNT",
            reason=INITIAL_COUNT_REASON,
            reference=state.batch_id,
            recorded_by_id=state.uploaded_by_id,
        )
        stock.has_initial_count = True
        stock.initial_count_entries = 1
        append_audit(state.batch_id, "INFO", "Recorded initial stock count", metadata)
    elif delta != 0:
        append_ledger_entry(
            variant_id=variant_id,
            quantity_change=delta,
            entry_type="ADJUSTMENT",
            reason=ADJUSTMENT_REASON,
            reference=state.batch_id,
            recorded_by_id=state.uploaded_by_id,
        )
        append_audit(state.batch_id, "INFO", "Adjusted stock level", dict(metadata, delta=delta))
    else:
        return

    stock.on_hand = row.on_hand
