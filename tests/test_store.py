"""Tests for the evidence, case and job stores."""

from datetime import datetime, timezone

import pytest

from evidence_triage.core.store import AnalysisJobStore, CaseStore, IngestionJobStore
from evidence_triage.models import EvidenceAnalysis, EvidenceType, JobStatus, PriorityTier
from evidence_triage.utils.exceptions import (
    CaseNotFoundError,
    EvidenceNotFoundError,
    JobConflictError,
    JobNotFoundError,
    TriageError,
)

CASE_ID = "CASE-TEST-001"


def _analysis(score, **kwargs):
    return EvidenceAnalysis(
        priority_score=score,
        analyzed_at=datetime.now(timezone.utc).replace(tzinfo=None),
        **kwargs,
    )


@pytest.fixture
def stored(case, evidence_store, make_evidence):
    """Three stored records; returns them in insertion order."""
    evidence_store.bulk_insert([
        make_evidence(content="first", timestamp=datetime(2024, 1, 1, 9, 0)),
        make_evidence(content="second", timestamp=datetime(2024, 1, 2, 9, 0), source="SMS"),
        make_evidence(type=EvidenceType.CALL, content=None, duration=60,
                      timestamp=datetime(2024, 1, 3, 9, 0)),
    ])
    return evidence_store.find_backlog(CASE_ID)


class TestBulkInsert:
    """Tests for EvidenceStore.bulk_insert."""

    def test_saves_all(self, case, evidence_store, make_evidence):
        result = evidence_store.bulk_insert([make_evidence() for _ in range(250)])

        assert result.saved == 250
        assert result.failed == 0
        assert evidence_store.count(CASE_ID) == 250

    def test_bad_record_fails_alone(self, case, evidence_store, make_evidence):
        records = [make_evidence(content=f"m{i}") for i in range(5)]
        records[2] = make_evidence(case_id="NO-SUCH-CASE")

        result = evidence_store.bulk_insert(records, batch_size=10)

        assert result.saved == 4
        assert result.failed == 1
        assert len(result.errors) == 1
        assert evidence_store.count(CASE_ID) == 4

    def test_new_records_unscored(self, stored):
        assert len(stored) == 3
        assert all(r.analyzed_at is None for r in stored)
        assert all(r.priority_score == 0 for r in stored)
        assert [r.content for r in stored] == ["first", "second", None]

    def test_raw_data_kept(self, case, evidence_store, make_evidence):
        evidence_store.bulk_insert([make_evidence(raw_data={"Body": "hi", "Extra": 3})])
        record = evidence_store.find_backlog(CASE_ID)[0]
        assert record.raw_data == {"Body": "hi", "Extra": 3}


class TestUpdates:
    """Tests for analysis and investigator updates."""

    def test_update_analysis(self, stored, evidence_store):
        evidence_store.update_analysis(stored[0].id, _analysis(
            72, flags=["drug_reference"], summary="Pickup", entities=[{"type": "person", "value": "Bob"}],
        ))

        record = evidence_store.get(stored[0].id)
        assert record.priority_score == 72
        assert record.priority == PriorityTier.HIGH
        assert record.flags == ["drug_reference"]
        assert record.entities[0].value == "Bob"
        assert record.is_analyzed
        assert record.content == "first"

    def test_update_analysis_leaves_investigator_fields(self, stored, evidence_store):
        evidence_store.update_investigator(stored[0].id, is_bookmarked=True, notes="check")
        evidence_store.update_analysis(stored[0].id, _analysis(10))

        record = evidence_store.get(stored[0].id)
        assert record.is_bookmarked is True
        assert record.notes == "check"

    def test_update_analysis_missing_record(self, case, evidence_store):
        with pytest.raises(EvidenceNotFoundError):
            evidence_store.update_analysis("missing", _analysis(10))

    def test_partial_investigator_update(self, stored, evidence_store):
        evidence_store.update_investigator(stored[0].id, notes="first note", tags=["a"])
        record = evidence_store.update_investigator(stored[0].id, is_reviewed=True)

        assert record.is_reviewed is True
        assert record.notes == "first note"
        assert record.tags == ["a"]

    def test_investigator_update_scoped_to_case(self, stored, evidence_store):
        with pytest.raises(EvidenceNotFoundError):
            evidence_store.update_investigator(stored[0].id, "OTHER-CASE", is_reviewed=True)

    def test_analysis_fields_not_investigator_writable(self, stored, evidence_store):
        with pytest.raises(ValueError):
            evidence_store.update_investigator(stored[0].id, priority_score=99)

    def test_toggle_bookmark(self, stored, evidence_store):
        assert evidence_store.toggle_bookmark(stored[0].id) is True
        assert evidence_store.toggle_bookmark(stored[0].id) is False

    def test_bulk_update(self, stored, evidence_store):
        ids = [r.id for r in stored[:2]]
        count = evidence_store.bulk_update_investigator(ids, CASE_ID, is_reviewed=True, tags=["batch"])

        assert count == 2
        assert evidence_store.get(stored[0].id).tags == ["batch"]
        assert evidence_store.get(stored[2].id).is_reviewed is False


class TestQueries:
    """Tests for listings and aggregates."""

    def test_backlog_excludes_scored(self, stored, evidence_store):
        evidence_store.update_analysis(stored[1].id, _analysis(0))

        backlog = evidence_store.find_backlog(CASE_ID)

        assert [r.id for r in backlog] == [stored[0].id, stored[2].id]

    def test_query_filters(self, stored, evidence_store):
        evidence_store.update_analysis(stored[0].id, _analysis(90))
        evidence_store.update_investigator(stored[1].id, is_bookmarked=True)

        assert evidence_store.query(CASE_ID, type="call").total == 1
        assert evidence_store.query(CASE_ID, priority="critical").items[0].id == stored[0].id
        assert evidence_store.query(CASE_ID, source="SMS").total == 1
        assert evidence_store.query(CASE_ID, bookmarked=True).items[0].id == stored[1].id
        assert evidence_store.query(CASE_ID, search="SEC").total == 1
        assert evidence_store.query(CASE_ID, min_score=50).total == 1
        assert evidence_store.query(
            CASE_ID, start=datetime(2024, 1, 2), end=datetime(2024, 1, 2, 23, 59)
        ).total == 1

    def test_query_sort_and_pages(self, stored, evidence_store):
        page = evidence_store.query(CASE_ID, sort_by="timestamp", descending=False, page=2, page_size=2)

        assert page.total == 3
        assert page.pages == 2
        assert [r.content for r in page.items] == [None]

    def test_query_rejects_unknown_sort(self, case, evidence_store):
        with pytest.raises(ValueError):
            evidence_store.query(CASE_ID, sort_by="sender")

    def test_high_priority(self, stored, evidence_store):
        evidence_store.update_analysis(stored[0].id, _analysis(60))
        evidence_store.update_analysis(stored[1].id, _analysis(59))

        assert [r.id for r in evidence_store.high_priority(CASE_ID)] == [stored[0].id]

    def test_type_summary(self, stored, evidence_store):
        evidence_store.update_analysis(stored[0].id, _analysis(80))

        summary = evidence_store.type_summary(CASE_ID)

        assert summary["message"]["count"] == 2
        assert summary["message"]["avg_score"] == 40.0
        assert summary["message"]["high_priority"] == 1
        assert summary["call"]["count"] == 1

    def test_distinct_values(self, stored, evidence_store):
        evidence_store.update_investigator(stored[0].id, tags=["b", "a"])
        evidence_store.update_investigator(stored[1].id, tags=["a"])

        assert evidence_store.distinct_sources(CASE_ID) == ["SMS", "WhatsApp"]
        assert evidence_store.distinct_tags(CASE_ID) == ["a", "b"]

    def test_score_summary(self, stored, evidence_store):
        evidence_store.update_analysis(stored[0].id, _analysis(90))

        summary = evidence_store.score_summary(CASE_ID)

        assert summary["total"] == 3
        assert summary["avg_score"] == pytest.approx(30.0)
        assert summary["critical"] == 1
        assert summary["analyzed"] == 1
        assert summary["first"] == datetime(2024, 1, 1, 9, 0)
        assert summary["last"] == datetime(2024, 1, 3, 9, 0)


class TestCaseStore:
    """Tests for CaseStore."""

    def test_create_generates_id(self, engine):
        case = CaseStore(engine).create("Unnamed")
        assert case.id.startswith("CASE-")
        assert case.status == "active"

    def test_duplicate_id(self, case, engine):
        with pytest.raises(TriageError):
            CaseStore(engine).create("Again", case_id=CASE_ID)

    def test_missing_case(self, engine):
        with pytest.raises(CaseNotFoundError):
            CaseStore(engine).get("NOPE")

    def test_evidence_count_refresh(self, stored, engine):
        cases = CaseStore(engine)
        assert cases.refresh_evidence_count(CASE_ID) == 3
        assert cases.get(CASE_ID).evidence_count == 3

    def test_uploaded_files(self, case, engine):
        cases = CaseStore(engine)
        cases.add_uploaded_file(CASE_ID, "a.xlsx", "/tmp/a.xlsx", 10, "f" * 64, ["S1", "S2"], 5)

        files = cases.uploaded_files(CASE_ID)
        assert len(files) == 1
        assert files[0].sheets == ["S1", "S2"]
        assert files[0].record_count == 5


class TestAnalysisJobStore:
    """Tests for AnalysisJobStore."""

    def test_create_pending(self, case, engine):
        job = AnalysisJobStore(engine).create(CASE_ID)
        assert job.status == JobStatus.PENDING
        assert job.is_active

    def test_second_active_job_conflicts(self, case, engine):
        jobs = AnalysisJobStore(engine)
        first = jobs.create(CASE_ID)

        with pytest.raises(JobConflictError) as exc_info:
            jobs.create(CASE_ID)
        assert exc_info.value.active_job_id == first.id

    def test_new_job_after_terminal(self, case, engine):
        jobs = AnalysisJobStore(engine)
        first = jobs.create(CASE_ID)
        jobs.update(first.id, status=JobStatus.COMPLETED.value)

        assert jobs.create(CASE_ID).id != first.id

    def test_terminal_job_not_updated(self, case, engine):
        jobs = AnalysisJobStore(engine)
        job = jobs.create(CASE_ID)
        jobs.update(job.id, status=JobStatus.FAILED.value)

        assert jobs.update(job.id, processed_records=5) is False
        assert jobs.get(job.id).processed_records == 0

    def test_conditional_transition(self, case, engine):
        jobs = AnalysisJobStore(engine)
        job = jobs.create(CASE_ID)

        assert jobs.update(job.id, expected_status="processing", status="completed") is False
        assert jobs.update(job.id, expected_status="pending", status="processing") is True

    def test_cancel_pending(self, case, engine):
        jobs = AnalysisJobStore(engine)
        job = jobs.request_cancel(jobs.create(CASE_ID).id)

        assert job.status == JobStatus.CANCELLED
        assert job.completed_at is not None

    def test_cancel_processing_sets_flag(self, case, engine):
        jobs = AnalysisJobStore(engine)
        job = jobs.create(CASE_ID)
        jobs.update(job.id, status=JobStatus.PROCESSING.value)

        job = jobs.request_cancel(job.id)

        assert job.status == JobStatus.PROCESSING
        assert jobs.is_cancel_requested(job.id) is True

    def test_cancel_finished_job_is_noop(self, case, engine):
        jobs = AnalysisJobStore(engine)
        job = jobs.create(CASE_ID)
        jobs.update(job.id, status=JobStatus.COMPLETED.value)

        assert jobs.request_cancel(job.id).status == JobStatus.COMPLETED

    @pytest.mark.parametrize("status", [JobStatus.PENDING, JobStatus.PROCESSING])
    def test_orphaned_job_marked_interrupted(self, case, engine, status):
        jobs = AnalysisJobStore(engine)
        orphan = jobs.create(CASE_ID)
        jobs.update(orphan.id, status=status.value)

        assert jobs.mark_interrupted(orphan.id) is True

        job = jobs.get(orphan.id)
        assert job.status == JobStatus.FAILED
        assert job.error_message == "interrupted"
        assert job.completed_at is not None
        assert jobs.active_for_case(CASE_ID) is None
        assert jobs.create(CASE_ID).status == JobStatus.PENDING

    def test_interrupting_finished_job_is_noop(self, case, engine):
        jobs = AnalysisJobStore(engine)
        job = jobs.create(CASE_ID)
        jobs.update(job.id, status=JobStatus.COMPLETED.value)

        assert jobs.mark_interrupted(job.id) is False
        assert jobs.get(job.id).status == JobStatus.COMPLETED

    def test_unknown_job(self, engine):
        with pytest.raises(JobNotFoundError):
            AnalysisJobStore(engine).get("missing")
        with pytest.raises(JobNotFoundError):
            AnalysisJobStore(engine).mark_interrupted("missing")

    def test_latest_for_case(self, case, engine):
        jobs = AnalysisJobStore(engine)
        for _ in range(3):
            job = jobs.create(CASE_ID)
            jobs.update(job.id, status=JobStatus.COMPLETED.value)

        assert len(jobs.latest_for_case(CASE_ID, limit=2)) == 2


class TestIngestionJobStore:
    """Tests for IngestionJobStore."""

    def test_progress_updates(self, case, engine):
        jobs = IngestionJobStore(engine)
        job = jobs.create(CASE_ID, "export.csv")
        jobs.update(job.id, status="parsing", progress=100)

        job = jobs.get(job.id)
        assert job.status.value == "parsing"
        assert job.progress == 100
