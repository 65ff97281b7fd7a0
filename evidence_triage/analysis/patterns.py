"""
Behavioral pattern analytics over stored evidence.

Every operation is a read-only function of what is currently in the evidence
store, safe to run while a scoring job is writing. Empty cases produce
zeroed reports rather than errors.
"""

import logging
import math
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from evidence_triage.core.store import EvidenceStore

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
SAMPLE_LIMIT = 5
SAMPLE_CONTENT_CHARS = 100
TOP_DAYS = 20
TOP_IDENTITIES = 20
TOP_CORRESPONDENTS = 5
TOP_GAPS = 20

_EPOCH = datetime(1970, 1, 1)


# ----------------------------------------------------------------------
# Report models
# ----------------------------------------------------------------------

class BurstSample(BaseModel):
    id: str
    content: Optional[str] = None
    sender: Optional[str] = None


class Burst(BaseModel):
    hour: str = Field(..., description="Bucket start, %Y-%m-%d-%H")
    count: int
    intensity: float = Field(..., description="Bucket count over mean bucket count")
    samples: List[BurstSample] = Field(default_factory=list)


class BurstReport(BaseModel):
    bursts: List[Burst] = Field(default_factory=list)
    average: int = 0
    threshold: int = 0
    total_buckets: int = 0


class LateNightSample(BaseModel):
    id: str
    sender: Optional[str] = None
    hour: int


class LateNightDay(BaseModel):
    date: str
    count: int
    hours: List[int] = Field(default_factory=list)
    samples: List[LateNightSample] = Field(default_factory=list)


class LateNightReport(BaseModel):
    dates: List[LateNightDay] = Field(default_factory=list)
    total_late_night: int = 0


class Correspondent(BaseModel):
    contact: str
    count: int


class ContactSummary(BaseModel):
    name: str
    total_messages: int
    unique_contacts: int
    top_contacts: List[Correspondent] = Field(default_factory=list)


class ContactPair(BaseModel):
    a: str
    b: str
    message_count: int


class ContactNetworkReport(BaseModel):
    key_contacts: List[ContactSummary] = Field(default_factory=list)
    pairs: List[ContactPair] = Field(default_factory=list)
    total_pairs: int = 0


class TimelineGap(BaseModel):
    start_time: datetime
    end_time: datetime
    gap_hours: float
    gap_days: float


class Timespan(BaseModel):
    first: datetime
    last: datetime
    days: Optional[int] = None


class TimelineGapReport(BaseModel):
    gaps: List[TimelineGap] = Field(default_factory=list)
    total_gaps: int = 0
    total_records: int = 0
    timespan: Optional[Timespan] = None


class DailyCount(BaseModel):
    date: str
    count: int
    types: List[str] = Field(default_factory=list)


class HourlyCount(BaseModel):
    hour: int
    count: int


class WeekdayCount(BaseModel):
    day: str
    count: int


class TemporalDistribution(BaseModel):
    daily: List[DailyCount] = Field(default_factory=list)
    hourly: List[HourlyCount] = Field(default_factory=list)
    weekday: List[WeekdayCount] = Field(default_factory=list)


class PrioritySummary(BaseModel):
    avg_score: int = 0
    high: int = 0
    critical: int = 0


class CaseStats(BaseModel):
    total_records: int = 0
    types: Dict[str, int] = Field(default_factory=dict)
    sources: Dict[str, int] = Field(default_factory=dict)
    priority: PrioritySummary = Field(default_factory=PrioritySummary)
    bookmarked: int = 0
    analyzed: int = 0
    timespan: Optional[Timespan] = None


# ----------------------------------------------------------------------
# Engine
# ----------------------------------------------------------------------

def _bucket_start(timestamp: datetime, window_hours: int) -> datetime:
    window = timedelta(hours=window_hours)
    return _EPOCH + ((timestamp - _EPOCH) // window) * window


def _round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (2.5 -> 3)."""
    return math.floor(value + 0.5)


class PatternEngine:
    """Pattern analytics for one evidence store."""

    def __init__(self, store: EvidenceStore):
        self.store = store

    def burst_communication(
        self,
        case_id: str,
        window_hours: int = 1,
        threshold_multiplier: float = 3,
    ) -> BurstReport:
        """
        Find time buckets with unusually many records.

        Records are grouped into ``window_hours`` buckets aligned to the
        epoch. A bucket is a burst when its count exceeds the mean count of
        the non-empty buckets times ``threshold_multiplier``.
        """
        if window_hours < 1:
            raise ValueError("window_hours must be at least 1")

        rows = self.store.timestamp_rows(case_id, "content", "sender")
        buckets: dict[datetime, list] = defaultdict(list)
        for row in rows:
            buckets[_bucket_start(row.timestamp, window_hours)].append(row)

        if not buckets:
            return BurstReport()

        average = len(rows) / len(buckets)
        threshold = average * threshold_multiplier

        bursts = [
            Burst(
                hour=start.strftime("%Y-%m-%d-%H"),
                count=len(members),
                intensity=round(len(members) / average, 2),
                samples=[
                    BurstSample(
                        id=m.id,
                        content=m.content[:SAMPLE_CONTENT_CHARS] if m.content else None,
                        sender=m.sender,
                    )
                    for m in members[:SAMPLE_LIMIT]
                ],
            )
            for start, members in sorted(buckets.items())
            if len(members) > threshold
        ]

        logger.debug(f"Burst scan for {case_id}: {len(bursts)} of {len(buckets)} buckets flagged")
        return BurstReport(
            bursts=bursts,
            average=_round_half_up(average),
            threshold=_round_half_up(threshold),
            total_buckets=len(buckets),
        )

    def late_night_activity(
        self,
        case_id: str,
        start_hour: int = 23,
        end_hour: int = 5,
    ) -> LateNightReport:
        """
        Records whose hour falls in [start_hour, 24) or [0, end_hour],
        grouped per calendar day. The 20 busiest days are reported; the
        total counts every matching record.
        """
        days: dict[str, list] = defaultdict(list)
        total = 0

        for row in self.store.timestamp_rows(case_id, "sender"):
            hour = row.timestamp.hour
            if hour >= start_hour or hour <= end_hour:
                days[row.timestamp.strftime("%Y-%m-%d")].append((row, hour))
                total += 1

        ranked = sorted(days.items(), key=lambda item: (-len(item[1]), item[0]))[:TOP_DAYS]

        return LateNightReport(
            dates=[
                LateNightDay(
                    date=day,
                    count=len(members),
                    hours=sorted({hour for _, hour in members}),
                    samples=[
                        LateNightSample(id=row.id, sender=row.sender, hour=hour)
                        for row, hour in members[:SAMPLE_LIMIT]
                    ],
                )
                for day, members in ranked
            ],
            total_late_night=total,
        )

    def contact_network(
        self,
        case_id: str,
        min_messages: int = 3,
        limit: int = 50,
    ) -> ContactNetworkReport:
        """
        Who talks to whom, by message count.

        Directed sender/receiver counts are folded into conversation pairs
        (A to B plus B to A), and pairs with at least ``min_messages``
        messages are kept, busiest first, up to ``limit``. Each identity in a
        kept pair gets the pair's count added to its total.
        """
        conversations: Counter = Counter()
        for sender, receiver, count in self.store.pair_counts(case_id, type="message"):
            if not sender and not receiver:
                continue
            key = tuple(sorted((sender or "", receiver or "")))
            conversations[key] += count

        kept = [
            (a, b, count)
            for (a, b), count in conversations.items()
            if count >= min_messages
        ]
        kept.sort(key=lambda p: (-p[2], p[0], p[1]))
        kept = kept[:limit]

        identities: dict[str, dict[str, int]] = defaultdict(dict)
        totals: Counter = Counter()
        for a, b, count in kept:
            for me, other in ((a, b), (b, a)):
                if not me:
                    continue
                totals[me] += count
                correspondent = other or "Unknown"
                identities[me][correspondent] = identities[me].get(correspondent, 0) + count

        ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))[:TOP_IDENTITIES]

        return ContactNetworkReport(
            key_contacts=[
                ContactSummary(
                    name=name,
                    total_messages=total,
                    unique_contacts=len(identities[name]),
                    top_contacts=[
                        Correspondent(contact=contact, count=count)
                        for contact, count in sorted(
                            identities[name].items(), key=lambda item: (-item[1], item[0])
                        )[:TOP_CORRESPONDENTS]
                    ],
                )
                for name, total in ranked
            ],
            pairs=[
                ContactPair(a=a or "Unknown", b=b or "Unknown", message_count=count)
                for a, b, count in kept
            ],
            total_pairs=len(kept),
        )

    def timeline_gaps(self, case_id: str, min_gap_hours: float = 24) -> TimelineGapReport:
        """Silences of at least ``min_gap_hours`` between consecutive records."""
        timestamps = [row.timestamp for row in self.store.timestamp_rows(case_id)]

        if len(timestamps) < 2:
            report = TimelineGapReport(total_records=len(timestamps))
            if timestamps:
                report.timespan = Timespan(first=timestamps[0], last=timestamps[0])
            return report

        gaps = []
        for prev, curr in zip(timestamps, timestamps[1:]):
            hours = (curr - prev).total_seconds() / 3600
            if hours >= min_gap_hours:
                gaps.append(TimelineGap(
                    start_time=prev,
                    end_time=curr,
                    gap_hours=round(hours, 1),
                    gap_days=round(hours / 24, 1),
                ))

        gaps.sort(key=lambda g: g.gap_hours, reverse=True)

        return TimelineGapReport(
            gaps=gaps[:TOP_GAPS],
            total_gaps=len(gaps),
            total_records=len(timestamps),
            timespan=Timespan(first=timestamps[0], last=timestamps[-1]),
        )

    def temporal_distribution(self, case_id: str) -> TemporalDistribution:
        """Per-day, per-hour-of-day and per-weekday record counts."""
        daily: dict[str, int] = Counter()
        daily_types: dict[str, set] = defaultdict(set)
        hourly: Counter = Counter()
        weekday: Counter = Counter()

        for row in self.store.timestamp_rows(case_id, "type"):
            day = row.timestamp.strftime("%Y-%m-%d")
            daily[day] += 1
            daily_types[day].add(row.type)
            hourly[row.timestamp.hour] += 1
            # Monday=0 -> index 1 in the Sunday-first table
            weekday[(row.timestamp.weekday() + 1) % 7] += 1

        return TemporalDistribution(
            daily=[
                DailyCount(date=day, count=daily[day], types=sorted(daily_types[day]))
                for day in sorted(daily)
            ],
            hourly=[HourlyCount(hour=h, count=hourly[h]) for h in sorted(hourly)],
            weekday=[WeekdayCount(day=WEEKDAY_NAMES[d], count=weekday[d]) for d in sorted(weekday)],
        )

    def case_stats(self, case_id: str) -> CaseStats:
        """Headline figures for a case."""
        summary = self.store.score_summary(case_id)
        if not summary["total"]:
            return CaseStats()

        sources: Counter = Counter()
        for source, count in self.store.count_by(case_id, "source").items():
            sources[source or "Unknown"] += count

        timespan = None
        first: Optional[datetime] = summary["first"]
        last: Optional[datetime] = summary["last"]
        if first and last:
            timespan = Timespan(first=first, last=last, days=(last.date() - first.date()).days + 1)

        return CaseStats(
            total_records=summary["total"],
            types=self.store.count_by(case_id, "type"),
            sources=dict(sources),
            priority=PrioritySummary(
                avg_score=_round_half_up(summary["avg_score"]),
                high=summary["high_priority"],
                critical=summary["critical"],
            ),
            bookmarked=summary["bookmarked"],
            analyzed=summary["analyzed"],
            timespan=timespan,
        )

    def full_report(self, case_id: str) -> dict[str, Any]:
        """Every analysis at its default settings, keyed by name."""
        return {
            "case_id": case_id,
            "stats": self.case_stats(case_id),
            "bursts": self.burst_communication(case_id),
            "late_night": self.late_night_activity(case_id),
            "contacts": self.contact_network(case_id),
            "gaps": self.timeline_gaps(case_id),
            "temporal": self.temporal_distribution(case_id),
        }
