"""Tests for export file ingestion."""

import hashlib
from unittest.mock import Mock

import pytest

from evidence_triage.core.ingest import EvidenceIngestor
from evidence_triage.core.store import CaseStore, EvidenceStore, IngestionJobStore
from evidence_triage.models import EvidenceType, IngestionStatus
from evidence_triage.utils.exceptions import (
    CaseNotFoundError,
    IngestionError,
    UnsupportedFormatError,
)

CASE_ID = "CASE-TEST-001"


class TestIngest:
    """Tests for EvidenceIngestor.ingest."""

    def test_csv_ingested(self, engine, case, sample_csv):
        result = EvidenceIngestor(engine).ingest(sample_csv, CASE_ID)

        assert result.total_rows == 3
        assert result.saved_records == 3
        assert result.failed_records == 0
        assert result.sha256 == hashlib.sha256(sample_csv.read_bytes()).hexdigest()

        store = EvidenceStore(engine)
        assert store.count(CASE_ID) == 3
        assert store.count_by(CASE_ID, "type") == {"message": 2, "call": 1}
        assert all(r.analyzed_at is None for r in store.find_backlog(CASE_ID))

    def test_provenance_recorded(self, engine, case, sample_xlsx):
        result = EvidenceIngestor(engine).ingest(sample_xlsx, CASE_ID)

        cases = CaseStore(engine)
        files = cases.uploaded_files(CASE_ID)
        assert len(files) == 1
        assert files[0].filename == "export.xlsx"
        assert files[0].sha256 == result.sha256
        assert files[0].sheets == ["Messages", "Calls", "Notes"]
        assert files[0].record_count == 3
        assert cases.get(CASE_ID).evidence_count == 3

    def test_job_completed(self, engine, case, sample_csv):
        result = EvidenceIngestor(engine).ingest(sample_csv, CASE_ID)

        job = IngestionJobStore(engine).get(result.job_id)
        assert job.status == IngestionStatus.COMPLETED
        assert job.saved_records == 3
        assert job.progress == 3

    def test_progress_reported(self, engine, case, large_csv):
        seen = []
        EvidenceIngestor(engine).ingest(large_csv, CASE_ID, on_progress=seen.append)
        assert seen == [100, 200]

    def test_raw_row_preserved(self, engine, case, sample_csv):
        EvidenceIngestor(engine).ingest(sample_csv, CASE_ID)

        calls = EvidenceStore(engine).query(CASE_ID, type=EvidenceType.CALL.value).items
        assert calls[0].raw_data["Duration"] == "120"
        assert calls[0].raw_data["Source"] == "Phone"

    def test_audit_logged(self, engine, case, sample_csv):
        audit = Mock()
        EvidenceIngestor(engine, audit_logger=audit).ingest(sample_csv, CASE_ID)

        audit.log_ingestion.assert_called_once()
        assert audit.log_ingestion.call_args.kwargs["saved_records"] == 3


class TestIngestErrors:
    """Tests for rejected and failed ingestions."""

    def test_unsupported_extension_writes_nothing(self, engine, case, temp_dir):
        path = temp_dir / "notes.txt"
        path.write_text("hello")

        with pytest.raises(UnsupportedFormatError):
            EvidenceIngestor(engine).ingest(path, CASE_ID)

        assert EvidenceStore(engine).count(CASE_ID) == 0
        assert CaseStore(engine).uploaded_files(CASE_ID) == []

    def test_unknown_case(self, engine, sample_csv):
        with pytest.raises(CaseNotFoundError):
            EvidenceIngestor(engine).ingest(sample_csv, "NOPE")

    def test_missing_file(self, engine, case, temp_dir):
        with pytest.raises(IngestionError):
            EvidenceIngestor(engine).ingest(temp_dir / "gone.csv", CASE_ID)

    def test_corrupt_file_marks_job_failed(self, engine, case, temp_dir):
        path = temp_dir / "broken.xlsx"
        path.write_bytes(b"not a workbook")
        audit = Mock()

        with pytest.raises(IngestionError):
            EvidenceIngestor(engine, audit_logger=audit).ingest(path, CASE_ID)

        audit.log_error.assert_called_once()
        assert audit.log_error.call_args.args[0] == "FILE_INGEST_FAILED"
        assert EvidenceStore(engine).count(CASE_ID) == 0
