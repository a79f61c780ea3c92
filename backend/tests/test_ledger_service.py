"""
Ledger service tests.

Verifies:
- Initial count is recorded once; a second attempt is a conflict
- The database refuses a second INITIAL_COUNT even when the service is bypassed
- Damaged/lost adjustments cannot take stock below zero
- Batched stock states agree with the single-variant reader
- Manual writers refuse to build on a ledger with duplicate baselines
"""

import pytest
from sqlalchemy.exc import IntegrityError

from shoepos.models import StockLedgerEntry
from shoepos.services import ledger_service
from shoepos.validation import (
    AdjustmentRequest,
    ConflictError,
    IntegrityViolation,
    NotFoundError,
    ValidationError,
)


class TestInitialCount:

    def test_records_baseline(self, db_session, variant, owner):
        entry = ledger_service.record_initial_count(
            variant_id=variant.id, quantity=12, recorded_by_id=owner.id
        )
        assert entry.type == "INITIAL_COUNT"
        assert entry.quantity_change == 12
        assert ledger_service.get_on_hand(variant.id) == 12

    def test_second_initial_count_conflicts(self, db_session, variant):
        ledger_service.record_initial_count(variant_id=variant.id, quantity=12)
        with pytest.raises(ConflictError, match="Initial stock already recorded"):
            ledger_service.record_initial_count(variant_id=variant.id, quantity=3)
        assert ledger_service.get_on_hand(variant.id) == 12

    def test_unknown_variant(self, db_session):
        with pytest.raises(NotFoundError):
            ledger_service.record_initial_count(variant_id=999, quantity=1)

    def test_database_enforces_single_baseline(self, db_session, variant):
        db_session.add(StockLedgerEntry(variant_id=variant.id, quantity_change=5, type="INITIAL_COUNT"))
        db_session.commit()
        db_session.add(StockLedgerEntry(variant_id=variant.id, quantity_change=7, type="INITIAL_COUNT"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()


class TestAdjustments:

    def test_damaged_reduces_stock(self, db_session, variant, owner):
        ledger_service.record_initial_count(variant_id=variant.id, quantity=5)
        result = ledger_service.record_adjustment(
            AdjustmentRequest(variant.id, "damaged", 2, "Scuffed box"), recorded_by_id=owner.id
        )
        assert result["quantity_change"] == -2
        assert result["reason"] == "damaged"
        assert result["on_hand"] == 3

    def test_cannot_go_negative(self, db_session, variant):
        ledger_service.record_initial_count(variant_id=variant.id, quantity=1)
        with pytest.raises(ValidationError, match="below zero"):
            ledger_service.record_adjustment(AdjustmentRequest(variant.id, "lost", 2))
        assert ledger_service.get_on_hand(variant.id) == 1


class TestDuplicateBaselines:

    def test_adjustment_refused(self, db_session, variant_with_duplicate_baselines):
        variant = variant_with_duplicate_baselines
        with pytest.raises(IntegrityViolation, match="more than one initial stock count"):
            ledger_service.record_adjustment(AdjustmentRequest(variant.id, "damaged", 1))

        assert StockLedgerEntry.query.filter_by(variant_id=variant.id, type="ADJUSTMENT").count() == 0
        assert ledger_service.get_on_hand(variant.id) == 12

    def test_initial_count_reports_violation(self, db_session, variant_with_duplicate_baselines):
        variant = variant_with_duplicate_baselines
        with pytest.raises(IntegrityViolation):
            ledger_service.record_initial_count(variant_id=variant.id, quantity=3)
        assert StockLedgerEntry.query.filter_by(variant_id=variant.id).count() == 2


class TestReaders:

    def test_load_stock_states_matches_single_reader(self, db_session, variant, second_variant):
        ledger_service.record_initial_count(variant_id=variant.id, quantity=9)
        ledger_service.record_adjustment(AdjustmentRequest(variant.id, "lost", 4))

        states = ledger_service.load_stock_states([variant.id, second_variant.id])
        assert states[variant.id].on_hand == 5
        assert states[variant.id].has_initial_count is True
        assert states[variant.id].initial_count_entries == 1
        assert states[second_variant.id].on_hand == 0
        assert states[second_variant.id].has_initial_count is False

        single = ledger_service.get_variant_stock_state(variant.id)
        assert single.on_hand == states[variant.id].on_hand

    def test_list_variant_ledger_filters_by_type(self, db_session, variant):
        ledger_service.record_initial_count(variant_id=variant.id, quantity=9)
        ledger_service.record_adjustment(AdjustmentRequest(variant.id, "lost", 4))

        result = ledger_service.list_variant_ledger(variant.id, entry_type="ADJUSTMENT")
        assert result["on_hand"] == 5
        assert [e["type"] for e in result["entries"]] == ["ADJUSTMENT"]
        assert "lost" in result["available_reasons"]

    def test_list_variant_ledger_rejects_unknown_type(self, db_session, variant):
        with pytest.raises(ValidationError):
            ledger_service.list_variant_ledger(variant.id, entry_type="THEFT")

    def test_audit_reports_clean_ledger(self, db_session, variant):
        ledger_service.record_initial_count(variant_id=variant.id, quantity=2)
        result = ledger_service.audit_ledger()
        assert result["variants_checked"] == 1
        assert result["duplicate_initial_counts"] == []
        assert result["negative_on_hand"] == []
