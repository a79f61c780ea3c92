"""
Batch progress tracker tests.

Verifies:
- PENDING -> PROCESSING -> COMPLETED | FAILED
- processed_rows is monotonic and capped at total_rows
- Terminal batches refuse every further transition
"""

import pytest

from shoepos.services import import_batch_service as batches
from shoepos.services.import_batch_service import ImportBatchStateError
from shoepos.validation import NotFoundError


@pytest.fixture
def queued_batch(db_session):
    return batches.create_import_batch(total_rows=10, chunk_size=4, queued=True)


class TestBatchLifecycle:

    def test_queued_batch_starts_pending(self, queued_batch):
        assert queued_batch.status == "PENDING"
        assert queued_batch.started_at is None
        assert queued_batch.original_file_name == "inventory-import.csv"

    def test_in_request_batch_starts_processing(self, db_session):
        batch = batches.create_import_batch(total_rows=3, chunk_size=200, queued=False)
        assert batch.status == "PROCESSING"
        assert batch.started_at is not None

    def test_happy_path(self, db_session, queued_batch):
        batches.mark_batch_processing(queued_batch.id)
        batches.set_batch_progress(queued_batch, 4)
        batches.set_batch_progress(queued_batch, 8)
        db_session.commit()

        batch = batches.complete_import_batch(queued_batch.id)
        assert batch.status == "COMPLETED"
        assert batch.processed_rows == 10
        assert batch.completed_at is not None

    def test_progress_never_goes_backwards(self, db_session, queued_batch):
        batches.mark_batch_processing(queued_batch.id)
        batches.set_batch_progress(queued_batch, 8)
        with pytest.raises(ImportBatchStateError):
            batches.set_batch_progress(queued_batch, 4)

    def test_progress_capped_at_total(self, db_session, queued_batch):
        batches.set_batch_progress(queued_batch, 50)
        assert queued_batch.processed_rows == 10

    def test_failed_is_terminal(self, db_session, queued_batch):
        batches.fail_import_batch(queued_batch.id, "boom")
        with pytest.raises(ImportBatchStateError):
            batches.mark_batch_processing(queued_batch.id)
        with pytest.raises(ImportBatchStateError):
            batches.complete_import_batch(queued_batch.id)
        with pytest.raises(ImportBatchStateError):
            batches.fail_import_batch(queued_batch.id, "again")

    def test_completed_is_terminal(self, db_session, queued_batch):
        batches.complete_import_batch(queued_batch.id)
        with pytest.raises(ImportBatchStateError):
            batches.fail_import_batch(queued_batch.id, "late failure")


class TestBatchStatus:

    def test_status_includes_recent_audit(self, db_session, queued_batch):
        for n in range(5):
            batches.append_audit(queued_batch.id, "INFO", f"step {n}", {"n": n})
        db_session.commit()

        status = batches.get_import_batch_status(queued_batch.id, audit_limit=3)
        assert status["status"] == "PENDING"
        assert status["audit_count"] == 5
        assert [entry["message"] for entry in status["audit_log"]] == ["step 2", "step 3", "step 4"]
        assert status["audit_log"][0]["metadata"] == {"n": 2}

    def test_failure_reason_and_audit(self, db_session, queued_batch):
        batches.fail_import_batch(queued_batch.id, "disk full")
        status = batches.get_import_batch_status(queued_batch.id)
        assert status["status"] == "FAILED"
        assert status["failure_reason"] == "disk full"
        assert status["audit_log"][-1]["level"] == "ERROR"

    def test_missing_batch(self, db_session):
        with pytest.raises(NotFoundError):
            batches.get_import_batch_status(4242)
