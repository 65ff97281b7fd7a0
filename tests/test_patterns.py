"""Tests for behavioral pattern analytics."""

from datetime import datetime, timedelta, timezone

import pytest

from evidence_triage.analysis.patterns import PatternEngine, _round_half_up
from evidence_triage.models import EvidenceAnalysis, EvidenceType

CASE_ID = "CASE-TEST-001"


@pytest.fixture
def engine_for(case, evidence_store, make_evidence):
    """Insert records and return a PatternEngine over them."""
    def _build(records):
        evidence_store.bulk_insert(records)
        return PatternEngine(evidence_store)
    return _build


def _at(*args, **kwargs):
    return datetime(*args, **kwargs)


class TestEmptyCase:
    """Every analysis returns an empty report for an empty case."""

    def test_empty_reports(self, case, evidence_store):
        patterns = PatternEngine(evidence_store)

        assert patterns.burst_communication(CASE_ID).bursts == []
        assert patterns.late_night_activity(CASE_ID).total_late_night == 0
        assert patterns.contact_network(CASE_ID).key_contacts == []
        assert patterns.timeline_gaps(CASE_ID).gaps == []
        assert patterns.temporal_distribution(CASE_ID).hourly == []
        assert patterns.case_stats(CASE_ID).total_records == 0

    def test_full_report_keys(self, case, evidence_store):
        report = PatternEngine(evidence_store).full_report(CASE_ID)
        assert set(report) == {"case_id", "stats", "bursts", "late_night", "contacts", "gaps", "temporal"}


class TestBursts:
    """Tests for burst_communication."""

    def test_dense_hour_flagged(self, engine_for, make_evidence):
        records = []
        for hour, count in ((8, 2), (9, 2), (10, 2), (11, 20)):
            records += [
                make_evidence(timestamp=_at(2024, 1, 15, hour, minute), content=f"h{hour} m{minute}")
                for minute in range(count)
            ]

        report = engine_for(records).burst_communication(CASE_ID)

        assert report.total_buckets == 4
        assert report.average == 7
        assert report.threshold == 20
        assert len(report.bursts) == 1
        burst = report.bursts[0]
        assert burst.hour == "2024-01-15-11"
        assert burst.count == 20
        assert burst.intensity == pytest.approx(3.08)
        assert len(burst.samples) == 5

    def test_untimestamped_records_ignored(self, engine_for, make_evidence):
        report = engine_for([make_evidence(timestamp=None)]).burst_communication(CASE_ID)
        assert report.total_buckets == 0

    def test_window_must_be_positive(self, case, evidence_store):
        with pytest.raises(ValueError):
            PatternEngine(evidence_store).burst_communication(CASE_ID, window_hours=0)


class TestLateNight:
    """Tests for late_night_activity."""

    def test_wraps_midnight(self, engine_for, make_evidence):
        records = [
            make_evidence(timestamp=_at(2024, 1, 15, 23, 30)),
            make_evidence(timestamp=_at(2024, 1, 16, 2, 0)),
            make_evidence(timestamp=_at(2024, 1, 16, 5, 59)),
            make_evidence(timestamp=_at(2024, 1, 16, 6, 0)),
            make_evidence(timestamp=_at(2024, 1, 16, 12, 0)),
        ]

        report = engine_for(records).late_night_activity(CASE_ID)

        assert report.total_late_night == 3
        assert [d.date for d in report.dates] == ["2024-01-16", "2024-01-15"]
        assert report.dates[0].count == 2
        assert report.dates[0].hours == [2, 5]

    def test_custom_window(self, engine_for, make_evidence):
        records = [make_evidence(timestamp=_at(2024, 1, 15, 21, 0))]
        report = engine_for(records).late_night_activity(CASE_ID, start_hour=21, end_hour=4)
        assert report.total_late_night == 1


class TestContactNetwork:
    """Tests for contact_network."""

    def test_both_directions_folded(self, engine_for, make_evidence):
        records = (
            [make_evidence(sender="A", receiver="B") for _ in range(5)]
            + [make_evidence(sender="B", receiver="A") for _ in range(2)]
            + [make_evidence(sender="A", receiver="C") for _ in range(2)]
        )

        report = engine_for(records).contact_network(CASE_ID)

        assert report.total_pairs == 1
        assert report.pairs[0].message_count == 7
        names = {c.name: c for c in report.key_contacts}
        assert set(names) == {"A", "B"}
        assert names["A"].total_messages == 7
        assert names["A"].top_contacts[0].contact == "B"

    def test_calls_not_counted(self, engine_for, make_evidence):
        records = [
            make_evidence(type=EvidenceType.CALL, sender="A", receiver="B", content=None, duration=30)
            for _ in range(5)
        ]
        assert engine_for(records).contact_network(CASE_ID).total_pairs == 0

    def test_min_messages(self, engine_for, make_evidence):
        records = [make_evidence(sender="A", receiver="B") for _ in range(2)]
        report = engine_for(records).contact_network(CASE_ID, min_messages=2)
        assert report.total_pairs == 1


class TestTimelineGaps:
    """Tests for timeline_gaps."""

    def test_long_silence(self, engine_for, make_evidence):
        start = _at(2024, 1, 15, 9, 0)
        records = [
            make_evidence(timestamp=start),
            make_evidence(timestamp=start + timedelta(hours=1)),
            make_evidence(timestamp=start + timedelta(hours=73)),
        ]

        report = engine_for(records).timeline_gaps(CASE_ID)

        assert report.total_gaps == 1
        gap = report.gaps[0]
        assert gap.gap_hours == 72.0
        assert gap.gap_days == 3.0
        assert gap.start_time == start + timedelta(hours=1)
        assert report.total_records == 3

    def test_single_record(self, engine_for, make_evidence):
        report = engine_for([make_evidence()]).timeline_gaps(CASE_ID)
        assert report.gaps == []
        assert report.total_records == 1


class TestTemporalDistribution:
    """Tests for temporal_distribution."""

    def test_histograms(self, engine_for, make_evidence):
        records = [
            make_evidence(timestamp=_at(2024, 1, 15, 10, 0)),  # Monday
            make_evidence(timestamp=_at(2024, 1, 15, 10, 30)),
            make_evidence(type=EvidenceType.CALL, content=None, duration=5,
                          timestamp=_at(2024, 1, 21, 22, 0)),  # Sunday
        ]

        report = engine_for(records).temporal_distribution(CASE_ID)

        assert [(d.date, d.count) for d in report.daily] == [("2024-01-15", 2), ("2024-01-21", 1)]
        assert report.daily[0].types == ["message"]
        assert [(h.hour, h.count) for h in report.hourly] == [(10, 2), (22, 1)]
        assert [(w.day, w.count) for w in report.weekday] == [("Sun", 1), ("Mon", 2)]


class TestCaseStats:
    """Tests for case_stats."""

    def test_headline_figures(self, engine_for, make_evidence, evidence_store):
        patterns = engine_for([
            make_evidence(timestamp=_at(2024, 1, 15, 9, 0)),
            make_evidence(timestamp=_at(2024, 1, 17, 18, 0), source="SMS"),
            make_evidence(timestamp=None),
        ])
        first = evidence_store.find_backlog(CASE_ID)[0]
        evidence_store.update_analysis(first.id, EvidenceAnalysis(
            priority_score=85,
            analyzed_at=datetime.now(timezone.utc).replace(tzinfo=None),
        ))

        stats = patterns.case_stats(CASE_ID)

        assert stats.total_records == 3
        assert stats.types == {"message": 3}
        assert stats.sources == {"WhatsApp": 2, "SMS": 1}
        assert stats.priority.avg_score == 28
        assert stats.priority.high == 1
        assert stats.priority.critical == 1
        assert stats.analyzed == 1
        assert stats.timespan.days == 3


class TestRounding:
    """Report figures round halves upward."""

    @pytest.mark.parametrize("value,expected", [(2.5, 3), (2.49, 2), (3.5, 4), (0.5, 1), (7.0, 7)])
    def test_half_up(self, value, expected):
        assert _round_half_up(value) == expected
