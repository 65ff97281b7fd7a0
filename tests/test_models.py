"""Tests for Pydantic data models."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from evidence_triage.models import (
    AnalysisJobInfo,
    EvidenceAnalysis,
    EvidenceRecord,
    EvidenceType,
    JobStatus,
    NormalizedEvidence,
    PriorityTier,
    Sentiment,
    priority_tier,
)


class TestPriorityTier:
    """Tests for score to tier mapping."""

    @pytest.mark.parametrize("score, tier", [
        (100, PriorityTier.CRITICAL),
        (80, PriorityTier.CRITICAL),
        (79, PriorityTier.HIGH),
        (60, PriorityTier.HIGH),
        (59, PriorityTier.MEDIUM),
        (40, PriorityTier.MEDIUM),
        (39, PriorityTier.LOW),
        (0, PriorityTier.LOW),
        (None, PriorityTier.LOW),
    ])
    def test_boundaries(self, score, tier):
        assert priority_tier(score) == tier


class TestEvidenceAnalysis:
    """Tests for EvidenceAnalysis."""

    def test_tier_derived_from_score(self):
        analysis = EvidenceAnalysis(priority_score=65, analyzed_at=datetime(2024, 1, 1))
        assert analysis.priority == PriorityTier.HIGH

    def test_supplied_tier_ignored(self):
        analysis = EvidenceAnalysis(
            priority_score=10,
            priority=PriorityTier.CRITICAL,
            analyzed_at=datetime(2024, 1, 1),
        )
        assert analysis.priority == PriorityTier.LOW

    def test_defaults(self):
        analysis = EvidenceAnalysis(analyzed_at=datetime(2024, 1, 1))
        assert analysis.priority_score == 0
        assert analysis.flags == []
        assert analysis.sentiment == Sentiment.NEUTRAL

    @pytest.mark.parametrize("score", [-1, 101])
    def test_score_range(self, score):
        with pytest.raises(ValidationError):
            EvidenceAnalysis(priority_score=score, analyzed_at=datetime(2024, 1, 1))

    def test_analyzed_at_required(self):
        with pytest.raises(ValidationError):
            EvidenceAnalysis(priority_score=50)


class TestEvidenceRecords:
    """Tests for NormalizedEvidence and EvidenceRecord."""

    def test_normalized_defaults(self):
        record = NormalizedEvidence(case_id="CASE-1")
        assert record.type == EvidenceType.OTHER
        assert record.source == "Unknown"
        assert record.raw_data == {}

    def test_null_lists_become_empty(self):
        record = EvidenceRecord(
            id="ev-1", case_id="CASE-1", type="message",
            flags=None, tags=None, entities=None, phone_numbers=None,
        )
        assert record.flags == []
        assert record.tags == []
        assert not record.is_analyzed


class TestAnalysisJobInfo:
    """Tests for AnalysisJobInfo."""

    def test_progress(self):
        job = AnalysisJobInfo(
            id="job-1", case_id="CASE-1", status=JobStatus.PROCESSING,
            total_records=25, processed_records=10,
        )
        assert job.progress == 40
        assert job.is_active

    def test_progress_without_records(self):
        job = AnalysisJobInfo(id="job-1", case_id="CASE-1", status=JobStatus.COMPLETED)
        assert job.progress == 0
        assert not job.is_active
