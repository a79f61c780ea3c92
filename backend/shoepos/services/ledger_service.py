# Overview: Stock ledger repository: append entries, aggregate on-hand, and guarded manual corrections.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from sqlalchemy import case, func

from ..extensions import db
from ..models import StockLedgerEntry, Variant
from ..validation import AdjustmentRequest, ConflictError, IntegrityViolation, NotFoundError, ValidationError
from .concurrency import lock_for_update, run_in_transaction
from .report_cache import invalidate_reports
from .stock_math import (
    INITIAL_COUNT,
    LedgerFact,
    OnHandState,
    calculate_variant_on_hand,
    has_duplicate_initial_counts,
    summarize_ledger_by_variant,
)
"""
Stock Ledger Invariants (authoritative)

- Append-only: entries are inserted, never updated or deleted.
- On-hand is SUM(quantity_change); there is no stored running total.
- At most one INITIAL_COUNT per variant (also enforced by a partial unique index).
- append_ledger_entry never commits: the caller's transaction covers the
  ledger write together with its companion rows (sale, receipt, batch).
"""

ENTRY_TYPES = ("INITIAL_COUNT", "ADJUSTMENT", "RECEIPT", "SALE")


@dataclass
class VariantStockState:
    on_hand: int = 0
    has_initial_count: bool = False
    initial_count_entries: int = 0


def append_ledger_entry(
    *,
    variant_id: int,
    quantity_change: int,
    entry_type: str,
    reason: str | None = None,
    reference: str | int | None = None,
    recorded_by_id: int | None = None,
) -> StockLedgerEntry:
    if entry_type not in ENTRY_TYPES:
        raise ValueError(f"Unknown ledger entry type: {entry_type}")

    entry = StockLedgerEntry(
        variant_id=variant_id,
        quantity_change=quantity_change,
        type=entry_type,
        reason=reason,
        reference=str(reference) if reference is not None else None,
        recorded_by_id=recorded_by_id,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def get_on_hand(variant_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(StockLedgerEntry.quantity_change), 0))
        .filter(StockLedgerEntry.variant_id == variant_id)
        .scalar()
    )
    return int(total or 0)


def _variant_facts(variant_id: int) -> list[LedgerFact]:
    entries = (
        db.session.query(StockLedgerEntry.variant_id, StockLedgerEntry.quantity_change, StockLedgerEntry.type)
        .filter(StockLedgerEntry.variant_id == variant_id)
        .all()
    )
    return [LedgerFact(*row) for row in entries]


def get_variant_stock_state(variant_id: int) -> OnHandState:
    return calculate_variant_on_hand(_variant_facts(variant_id))


def load_stock_states(variant_ids: Iterable[int]) -> dict[int, VariantStockState]:
    """
    Batched aggregate reader: one GROUP BY query for any number of variants.

    Variants without ledger rows are returned with the empty state so callers
    can index the result directly.
    """
    ids = sorted(set(variant_ids))
    states = {variant_id: VariantStockState() for variant_id in ids}
    if not ids:
        return states

    initial_flag = case((StockLedgerEntry.type == INITIAL_COUNT, 1), else_=0)
    rows = (
        db.session.query(
            StockLedgerEntry.variant_id,
            func.coalesce(func.sum(StockLedgerEntry.quantity_change), 0),
            func.coalesce(func.sum(initial_flag), 0),
        )
        .filter(StockLedgerEntry.variant_id.in_(ids))
        .group_by(StockLedgerEntry.variant_id)
        .all()
    )
    for variant_id, on_hand, initial_count_entries in rows:
        states[variant_id] = VariantStockState(
            on_hand=int(on_hand),
            has_initial_count=int(initial_count_entries) > 0,
            initial_count_entries=int(initial_count_entries),
        )
    return states


def list_variant_ledger(
    variant_id: int,
    *,
    entry_type: str | None = None,
    reason: str | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    limit: int = 50,
) -> dict:
    if db.session.get(Variant, variant_id) is None:
        raise NotFoundError("Variant not found")
    if entry_type is not None and entry_type not in ENTRY_TYPES:
        raise ValidationError(f"type must be one of {', '.join(ENTRY_TYPES)}")

    query = db.session.query(StockLedgerEntry).filter(StockLedgerEntry.variant_id == variant_id)
    if entry_type:
        query = query.filter(StockLedgerEntry.type == entry_type)
    if reason:
        query = query.filter(StockLedgerEntry.reason == reason)
    if from_date:
        query = query.filter(StockLedgerEntry.created_at >= from_date)
    if to_date:
        query = query.filter(StockLedgerEntry.created_at <= to_date)

    entries = (
        query.order_by(StockLedgerEntry.created_at.desc(), StockLedgerEntry.id.desc())
        .limit(limit)
        .all()
    )
    reasons = (
        db.session.query(StockLedgerEntry.reason)
        .filter(StockLedgerEntry.variant_id == variant_id, StockLedgerEntry.reason.isnot(None))
        .distinct()
        .all()
    )

    return {
        "variant_id": variant_id,
        "on_hand": get_on_hand(variant_id),
        "entries": [entry.to_dict() for entry in entries],
        "available_types": list(ENTRY_TYPES),
        "available_reasons": sorted(row[0] for row in reasons),
    }


def _lock_variant(variant_id: int) -> Variant:
    variant = lock_for_update(db.session.query(Variant).filter(Variant.id == variant_id)).first()
    if variant is None:
        raise NotFoundError("Variant not found")
    return variant


def _checked_stock_state(variant_id: int) -> OnHandState:
    """Stock state of a locked variant; refuses to build on duplicate baselines."""
    facts = _variant_facts(variant_id)
    if has_duplicate_initial_counts(facts):
        raise IntegrityViolation(
            "Variant has more than one initial stock count; run `flask ledger audit`",
        )
    return calculate_variant_on_hand(facts)


def record_initial_count(
    *,
    variant_id: int,
    quantity: int,
    recorded_by_id: int | None = None,
    reason: str | None = None,
    reference: str | None = None,
) -> StockLedgerEntry:
    """
    Record the one-time baseline for a variant.

    Raises:
        NotFoundError: variant does not exist
        ConflictError: an INITIAL_COUNT already exists
        IntegrityViolation: the ledger already holds more than one INITIAL_COUNT
    """
    if quantity < 0:
        raise ValidationError("quantity must be a non-negative integer")

    def _op():
        _lock_variant(variant_id)
        if _checked_stock_state(variant_id).has_initial_count:
            raise ConflictError("Initial stock already recorded for this variant")
        return append_ledger_entry(
            variant_id=variant_id,
            quantity_change=quantity,
            entry_type="INITIAL_COUNT",
            reason=reason,
            reference=reference,
            recorded_by_id=recorded_by_id,
        )

    entry = run_in_transaction(_op)
    invalidate_reports()
    return entry


def record_adjustment(request: AdjustmentRequest, *, recorded_by_id: int | None = None) -> dict:
    """
    Write a damaged/lost shrinkage entry (-quantity).

    The variant row is locked before on-hand is read so two concurrent
    corrections cannot both pass the non-negative check.
    """
    def _op():
        _lock_variant(request.variant_id)
        current = _checked_stock_state(request.variant_id).on_hand
        quantity_change = -request.quantity
        if current + quantity_change < 0:
            raise ValidationError("Adjustment would reduce stock below zero")
        entry = append_ledger_entry(
            variant_id=request.variant_id,
            quantity_change=quantity_change,
            entry_type="ADJUSTMENT",
            reason=request.reason_code,
            reference=request.note,
            recorded_by_id=recorded_by_id,
        )
        return entry, current + quantity_change

    entry, on_hand = run_in_transaction(_op)
    invalidate_reports()
    result = entry.to_dict()
    result["on_hand"] = on_hand
    return result


def audit_ledger() -> dict:
    """
    Full-history consistency scan for the `flask ledger audit` command.

    Reports variants carrying more than one INITIAL_COUNT and variants whose
    on-hand has gone negative. Both lists should always be empty.
    """
    rows = (
        db.session.query(StockLedgerEntry.variant_id, StockLedgerEntry.quantity_change, StockLedgerEntry.type)
        .order_by(StockLedgerEntry.variant_id, StockLedgerEntry.id)
        .all()
    )
    facts = [LedgerFact(*row) for row in rows]

    by_variant: dict[int, list[LedgerFact]] = {}
    for fact in facts:
        by_variant.setdefault(fact.variant_id, []).append(fact)

    summary = summarize_ledger_by_variant(facts)
    return {
        "variants_checked": len(summary),
        "duplicate_initial_counts": [
            variant_id for variant_id, entries in by_variant.items() if has_duplicate_initial_counts(entries)
        ],
        "negative_on_hand": sorted(
            variant_id for variant_id, state in summary.items() if state.on_hand < 0
        ),
    }
