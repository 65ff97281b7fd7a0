"""
Evidence, case and job stores.

Thin repositories over the SQLAlchemy models in ``core.database``. Every
method opens its own short-lived session, so a store instance can be shared
between threads. Reads return pydantic snapshots rather than ORM rows so that
callers never touch detached instances.
"""

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from pydantic import BaseModel
from sqlalchemy import Engine, and_, case, func, not_, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from evidence_triage.core.database import (
    AnalysisJob,
    CaseInfo,
    Evidence,
    IngestionJob,
    UploadedFile,
    encode_raw_data,
    get_session,
)
from evidence_triage.models import (
    ACTIVE_JOB_STATUSES,
    CRITICAL_THRESHOLD,
    HIGH_PRIORITY_THRESHOLD,
    TERMINAL_JOB_STATUSES,
    AnalysisJobInfo,
    CaseRecord,
    EvidenceAnalysis,
    EvidenceRecord,
    IngestionJobInfo,
    JobStatus,
    NormalizedEvidence,
    UploadedFileInfo,
    priority_tier,
)
from evidence_triage.utils.exceptions import (
    CaseNotFoundError,
    EvidenceNotFoundError,
    JobConflictError,
    JobNotFoundError,
    TriageError,
)

logger = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 100
INTERRUPTED_MESSAGE = "interrupted"

INVESTIGATOR_FIELDS = ("is_bookmarked", "is_reviewed", "notes", "tags")
BULK_INVESTIGATOR_FIELDS = ("is_bookmarked", "is_reviewed", "tags")

SORT_COLUMNS = {
    "timestamp": Evidence.timestamp,
    "priority": Evidence.priority_score,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BulkInsertResult:
    """Outcome of an unordered bulk insert."""
    saved: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


class EvidencePage(BaseModel):
    """One page of a filtered evidence listing."""
    items: list[EvidenceRecord]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        if not self.page_size:
            return 0
        return math.ceil(self.total / self.page_size)


class EvidenceStore:
    """Durable collection of normalized evidence records."""

    def __init__(self, engine: Engine):
        self._engine = engine

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def bulk_insert(
        self,
        records: Iterable[NormalizedEvidence],
        batch_size: int = INSERT_BATCH_SIZE,
    ) -> BulkInsertResult:
        """
        Persist records in fixed-size batches with unordered semantics.

        A batch that fails as a whole is retried one record per transaction,
        so a single bad record only costs itself.

        Args:
            records: Normalized evidence to store
            batch_size: Records per transaction

        Returns:
            BulkInsertResult with saved/failed counts
        """
        result = BulkInsertResult()
        records = list(records)
        next_seq = self._next_seq()

        for start in range(0, len(records), batch_size):
            batch = records[start:start + batch_size]
            seqs = range(next_seq + start, next_seq + start + len(batch))

            try:
                with get_session(self._engine) as session:
                    session.add_all(
                        self._to_row(record, seq) for record, seq in zip(batch, seqs)
                    )
                    session.commit()
                result.saved += len(batch)
                continue
            except SQLAlchemyError as e:
                logger.warning(
                    f"Batch insert of {len(batch)} records failed, retrying individually: {e}"
                )

            for record, seq in zip(batch, seqs):
                try:
                    with get_session(self._engine) as session:
                        session.add(self._to_row(record, seq))
                        session.commit()
                    result.saved += 1
                except SQLAlchemyError as e:
                    result.failed += 1
                    result.errors.append(str(e.orig) if getattr(e, "orig", None) else str(e))
                    logger.warning(f"Dropped evidence record for case {record.case_id}: {e}")

        logger.info(f"Bulk insert finished: {result.saved} saved, {result.failed} failed")
        return result

    def update_analysis(self, evidence_id: str, analysis: EvidenceAnalysis) -> None:
        """
        Write the analysis columns of one record and nothing else.

        The tier is recomputed from the score here rather than trusted from
        the caller.

        Raises:
            EvidenceNotFoundError: If the record no longer exists
        """
        values = {
            "priority_score": analysis.priority_score,
            "priority": priority_tier(analysis.priority_score).value,
            "flags": list(analysis.flags),
            "summary": analysis.summary,
            "sentiment": analysis.sentiment.value,
            "entities": [e.model_dump() for e in analysis.entities],
            "analyzed_at": analysis.analyzed_at,
        }

        with get_session(self._engine) as session:
            result = session.execute(
                update(Evidence).where(Evidence.id == evidence_id).values(**values)
            )
            session.commit()

        if result.rowcount == 0:
            raise EvidenceNotFoundError(evidence_id)

    def update_investigator(
        self,
        evidence_id: str,
        case_id: Optional[str] = None,
        **changes: Any,
    ) -> EvidenceRecord:
        """
        Apply an investigator edit. Only bookmark, review, notes and tags are
        writable; fields left as None are untouched.

        Raises:
            EvidenceNotFoundError: If the record does not exist in the case
            ValueError: If a non-investigator field is passed
        """
        unknown = set(changes) - set(INVESTIGATOR_FIELDS)
        if unknown:
            raise ValueError(f"Not investigator fields: {', '.join(sorted(unknown))}")

        values = {k: v for k, v in changes.items() if v is not None}
        if values:
            with get_session(self._engine) as session:
                result = session.execute(
                    update(Evidence)
                    .where(self._id_clause(evidence_id, case_id))
                    .values(**values)
                )
                session.commit()
            if result.rowcount == 0:
                raise EvidenceNotFoundError(evidence_id, case_id)

        return self.get(evidence_id, case_id)

    def toggle_bookmark(self, evidence_id: str, case_id: Optional[str] = None) -> bool:
        """Flip the bookmark flag in one statement and return the new value."""
        with get_session(self._engine) as session:
            result = session.execute(
                update(Evidence)
                .where(self._id_clause(evidence_id, case_id))
                .values(is_bookmarked=not_(Evidence.is_bookmarked))
            )
            session.commit()
            if result.rowcount == 0:
                raise EvidenceNotFoundError(evidence_id, case_id)
            return bool(session.scalar(
                select(Evidence.is_bookmarked).where(Evidence.id == evidence_id)
            ))

    def bulk_update_investigator(
        self,
        evidence_ids: list[str],
        case_id: str,
        **changes: Any,
    ) -> int:
        """
        Apply the same bookmark/review/tags edit to many records of one case.

        Returns:
            Number of records modified
        """
        unknown = set(changes) - set(BULK_INVESTIGATOR_FIELDS)
        if unknown:
            raise ValueError(f"Not bulk-editable fields: {', '.join(sorted(unknown))}")

        values = {k: v for k, v in changes.items() if v is not None}
        if not values or not evidence_ids:
            return 0

        with get_session(self._engine) as session:
            result = session.execute(
                update(Evidence)
                .where(Evidence.case_id == case_id, Evidence.id.in_(evidence_ids))
                .values(**values)
            )
            session.commit()
            return result.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, evidence_id: str, case_id: Optional[str] = None) -> EvidenceRecord:
        """Fetch one record, optionally scoped to a case."""
        with get_session(self._engine) as session:
            row = session.scalar(select(Evidence).where(self._id_clause(evidence_id, case_id)))
            if row is None:
                raise EvidenceNotFoundError(evidence_id, case_id)
            return EvidenceRecord.model_validate(row)

    def find_backlog(self, case_id: str) -> list[EvidenceRecord]:
        """Unscored records of a case in insertion order."""
        stmt = (
            select(Evidence)
            .where(Evidence.case_id == case_id, Evidence.analyzed_at.is_(None))
            .order_by(Evidence.seq, Evidence.created_at)
        )
        with get_session(self._engine) as session:
            return [EvidenceRecord.model_validate(row) for row in session.scalars(stmt)]

    def count(self, case_id: str) -> int:
        with get_session(self._engine) as session:
            return session.scalar(
                select(func.count(Evidence.id)).where(Evidence.case_id == case_id)
            ) or 0

    def query(
        self,
        case_id: str,
        type: Optional[str] = None,
        priority: Optional[str] = None,
        source: Optional[str] = None,
        bookmarked: Optional[bool] = None,
        reviewed: Optional[bool] = None,
        search: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        min_score: Optional[int] = None,
        max_score: Optional[int] = None,
        sort_by: str = "timestamp",
        descending: bool = True,
        page: int = 1,
        page_size: int = 50,
    ) -> EvidencePage:
        """
        Filtered, sorted and paginated evidence listing.

        Args:
            case_id: Owning case
            type: Evidence type filter
            priority: Priority tier filter
            source: Exact source label
            bookmarked: Bookmark flag filter
            reviewed: Review flag filter
            search: Case-insensitive text matched against content, sender,
                receiver, contact name and summary
            start: Inclusive lower timestamp bound
            end: Inclusive upper timestamp bound
            min_score: Inclusive lower score bound
            max_score: Inclusive upper score bound
            sort_by: "timestamp" or "priority"
            descending: Sort direction
            page: 1-based page number
            page_size: Records per page

        Returns:
            EvidencePage with the requested slice and the total match count
        """
        if sort_by not in SORT_COLUMNS:
            raise ValueError(f"Unknown sort field: {sort_by}")

        conditions = [Evidence.case_id == case_id]
        if type:
            conditions.append(Evidence.type == type)
        if priority:
            conditions.append(Evidence.priority == priority)
        if source:
            conditions.append(Evidence.source == source)
        if bookmarked is not None:
            conditions.append(Evidence.is_bookmarked == bookmarked)
        if reviewed is not None:
            conditions.append(Evidence.is_reviewed == reviewed)
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(
                Evidence.content.ilike(pattern),
                Evidence.sender.ilike(pattern),
                Evidence.receiver.ilike(pattern),
                Evidence.contact_name.ilike(pattern),
                Evidence.summary.ilike(pattern),
            ))
        if start:
            conditions.append(Evidence.timestamp >= start)
        if end:
            conditions.append(Evidence.timestamp <= end)
        if min_score is not None:
            conditions.append(Evidence.priority_score >= min_score)
        if max_score is not None:
            conditions.append(Evidence.priority_score <= max_score)

        page = max(page, 1)
        sort_column = SORT_COLUMNS[sort_by]
        order = sort_column.desc() if descending else sort_column.asc()

        with get_session(self._engine) as session:
            total = session.scalar(
                select(func.count(Evidence.id)).where(and_(*conditions))
            ) or 0
            rows = session.scalars(
                select(Evidence)
                .where(and_(*conditions))
                .order_by(order, Evidence.seq)
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            items = [EvidenceRecord.model_validate(row) for row in rows]

        return EvidencePage(items=items, total=total, page=page, page_size=page_size)

    def high_priority(self, case_id: str, limit: int = 100) -> list[EvidenceRecord]:
        """Records scoring at or above the high-priority threshold, best first."""
        stmt = (
            select(Evidence)
            .where(
                Evidence.case_id == case_id,
                Evidence.priority_score >= HIGH_PRIORITY_THRESHOLD,
            )
            .order_by(Evidence.priority_score.desc(), Evidence.timestamp.desc())
            .limit(limit)
        )
        with get_session(self._engine) as session:
            return [EvidenceRecord.model_validate(row) for row in session.scalars(stmt)]

    def type_summary(self, case_id: str) -> dict[str, dict[str, Any]]:
        """Per-type record count, average score and high-priority count."""
        high = func.sum(
            case((Evidence.priority_score >= HIGH_PRIORITY_THRESHOLD, 1), else_=0)
        )
        stmt = (
            select(
                Evidence.type,
                func.count(Evidence.id),
                func.avg(Evidence.priority_score),
                high,
            )
            .where(Evidence.case_id == case_id)
            .group_by(Evidence.type)
        )
        with get_session(self._engine) as session:
            return {
                type_: {
                    "count": count,
                    "avg_score": round(avg or 0, 1),
                    "high_priority": int(high_count or 0),
                }
                for type_, count, avg, high_count in session.execute(stmt)
            }

    def distinct_sources(self, case_id: str) -> list[str]:
        stmt = (
            select(Evidence.source)
            .where(Evidence.case_id == case_id, Evidence.source.is_not(None))
            .distinct()
            .order_by(Evidence.source)
        )
        with get_session(self._engine) as session:
            return list(session.scalars(stmt))

    def distinct_tags(self, case_id: str) -> list[str]:
        stmt = select(Evidence.tags).where(
            Evidence.case_id == case_id, Evidence.tags.is_not(None)
        )
        tags: set[str] = set()
        with get_session(self._engine) as session:
            for row_tags in session.scalars(stmt):
                tags.update(row_tags or [])
        return sorted(tags)

    def timestamp_rows(self, case_id: str, *columns: str, type: Optional[str] = None) -> list:
        """
        Rows of (id, timestamp, *columns) for timestamped records, ascending
        by timestamp. Records without a timestamp are excluded.
        """
        selected = [Evidence.id, Evidence.timestamp] + [getattr(Evidence, c) for c in columns]
        conditions = [Evidence.case_id == case_id, Evidence.timestamp.is_not(None)]
        if type:
            conditions.append(Evidence.type == type)

        stmt = select(*selected).where(*conditions).order_by(Evidence.timestamp, Evidence.seq)
        with get_session(self._engine) as session:
            return list(session.execute(stmt))

    def pair_counts(self, case_id: str, type: str = "message") -> list[tuple]:
        """Directed (sender, receiver, count) tuples for one evidence type."""
        stmt = (
            select(Evidence.sender, Evidence.receiver, func.count(Evidence.id))
            .where(Evidence.case_id == case_id, Evidence.type == type)
            .group_by(Evidence.sender, Evidence.receiver)
        )
        with get_session(self._engine) as session:
            return [tuple(row) for row in session.execute(stmt)]

    def count_by(self, case_id: str, column: str) -> dict[Any, int]:
        """Histogram of one column's values."""
        col = getattr(Evidence, column)
        stmt = (
            select(col, func.count(Evidence.id))
            .where(Evidence.case_id == case_id)
            .group_by(col)
        )
        with get_session(self._engine) as session:
            return {value: count for value, count in session.execute(stmt)}

    def score_summary(self, case_id: str) -> dict[str, Any]:
        """Aggregate score, flag and timespan figures for a case."""
        stmt = select(
            func.count(Evidence.id),
            func.avg(Evidence.priority_score),
            func.sum(case((Evidence.priority_score >= HIGH_PRIORITY_THRESHOLD, 1), else_=0)),
            func.sum(case((Evidence.priority_score >= CRITICAL_THRESHOLD, 1), else_=0)),
            func.sum(case((Evidence.is_bookmarked.is_(True), 1), else_=0)),
            func.sum(case((Evidence.analyzed_at.is_not(None), 1), else_=0)),
            func.min(Evidence.timestamp),
            func.max(Evidence.timestamp),
        ).where(Evidence.case_id == case_id)

        with get_session(self._engine) as session:
            total, avg, high, critical, bookmarked, analyzed, first, last = session.execute(stmt).one()

        return {
            "total": total or 0,
            "avg_score": float(avg or 0),
            "high_priority": int(high or 0),
            "critical": int(critical or 0),
            "bookmarked": int(bookmarked or 0),
            "analyzed": int(analyzed or 0),
            "first": first,
            "last": last,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _next_seq(self) -> int:
        with get_session(self._engine) as session:
            return (session.scalar(select(func.max(Evidence.seq))) or 0) + 1

    @staticmethod
    def _id_clause(evidence_id: str, case_id: Optional[str]):
        if case_id:
            return and_(Evidence.id == evidence_id, Evidence.case_id == case_id)
        return Evidence.id == evidence_id

    @staticmethod
    def _to_row(record: NormalizedEvidence, seq: int) -> Evidence:
        return Evidence(
            id=str(uuid.uuid4()),
            seq=seq,
            case_id=record.case_id,
            type=record.type.value,
            source=record.source,
            timestamp=record.timestamp,
            sender=record.sender,
            receiver=record.receiver,
            content=record.content,
            duration=record.duration,
            latitude=record.latitude,
            longitude=record.longitude,
            contact_name=record.contact_name,
            phone_numbers=list(record.phone_numbers),
            emails=list(record.emails),
            organization=record.organization,
            flags=[],
            entities=[],
            tags=[],
            raw_data_json=encode_raw_data(record.raw_data),
        )


class CaseStore:
    """Persisted cases and their uploaded-file provenance."""

    def __init__(self, engine: Engine):
        self._engine = engine

    def create(
        self,
        case_name: str,
        case_id: Optional[str] = None,
        investigator: Optional[str] = None,
        description: Optional[str] = None,
    ) -> CaseRecord:
        """
        Create a new case.

        Raises:
            TriageError: If the case id is already taken
        """
        case_id = case_id or f"CASE-{uuid.uuid4().hex[:8].upper()}"
        case = CaseInfo(
            id=case_id,
            case_name=case_name,
            investigator=investigator,
            description=description,
        )
        try:
            with get_session(self._engine) as session:
                session.add(case)
                session.commit()
                session.refresh(case)
                logger.info(f"Created case {case_id}: {case_name}")
                return CaseRecord.model_validate(case)
        except IntegrityError as e:
            raise TriageError(f"Case already exists: {case_id}", {"case_id": case_id}) from e

    def get(self, case_id: str) -> CaseRecord:
        with get_session(self._engine) as session:
            case = session.get(CaseInfo, case_id)
            if case is None:
                raise CaseNotFoundError(case_id)
            return CaseRecord.model_validate(case)

    def exists(self, case_id: str) -> bool:
        with get_session(self._engine) as session:
            return session.get(CaseInfo, case_id) is not None

    def list_cases(self) -> list[CaseRecord]:
        with get_session(self._engine) as session:
            rows = session.scalars(select(CaseInfo).order_by(CaseInfo.created_at.desc()))
            return [CaseRecord.model_validate(row) for row in rows]

    def set_high_priority_count(self, case_id: str, count: int) -> None:
        with get_session(self._engine) as session:
            session.execute(
                update(CaseInfo).where(CaseInfo.id == case_id).values(high_priority_count=count)
            )
            session.commit()

    def refresh_evidence_count(self, case_id: str) -> int:
        """Recount the case's evidence and cache the figure on the case."""
        with get_session(self._engine) as session:
            count = session.scalar(
                select(func.count(Evidence.id)).where(Evidence.case_id == case_id)
            ) or 0
            session.execute(
                update(CaseInfo).where(CaseInfo.id == case_id).values(evidence_count=count)
            )
            session.commit()
            return count

    def add_uploaded_file(
        self,
        case_id: str,
        filename: str,
        file_path: str,
        file_size_bytes: int,
        sha256: str,
        sheets: Optional[list[str]] = None,
        record_count: int = 0,
    ) -> UploadedFileInfo:
        uploaded = UploadedFile(
            case_id=case_id,
            filename=filename,
            file_path=file_path,
            file_size_bytes=file_size_bytes,
            sha256=sha256,
            sheets=sheets,
            record_count=record_count,
        )
        with get_session(self._engine) as session:
            session.add(uploaded)
            session.commit()
            session.refresh(uploaded)
            return UploadedFileInfo.model_validate(uploaded)

    def uploaded_files(self, case_id: str) -> list[UploadedFileInfo]:
        stmt = (
            select(UploadedFile)
            .where(UploadedFile.case_id == case_id)
            .order_by(UploadedFile.uploaded_at)
        )
        with get_session(self._engine) as session:
            return [UploadedFileInfo.model_validate(row) for row in session.scalars(stmt)]


class AnalysisJobStore:
    """
    Persisted registry of analysis jobs.

    A job in a terminal status is never modified again; ``update`` silently
    refuses such writes and reports it through its return value.
    """

    def __init__(self, engine: Engine):
        self._engine = engine

    def create(self, case_id: str) -> AnalysisJobInfo:
        """
        Create a pending job for a case.

        Raises:
            JobConflictError: If the case already has a pending or processing job
            CaseNotFoundError: If the case does not exist
        """
        active = self.active_for_case(case_id)
        if active is not None:
            raise JobConflictError(case_id, active.id)

        job = AnalysisJob(case_id=case_id, status=JobStatus.PENDING.value)
        try:
            with get_session(self._engine) as session:
                session.add(job)
                session.commit()
                session.refresh(job)
                return AnalysisJobInfo.model_validate(job)
        except IntegrityError as e:
            # Lost the race for the partial unique index, or unknown case
            active = self.active_for_case(case_id)
            if active is not None:
                raise JobConflictError(case_id, active.id) from e
            with get_session(self._engine) as session:
                if session.get(CaseInfo, case_id) is None:
                    raise CaseNotFoundError(case_id) from e
            raise

    def get(self, job_id: str) -> AnalysisJobInfo:
        with get_session(self._engine) as session:
            job = session.get(AnalysisJob, job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            return AnalysisJobInfo.model_validate(job)

    def latest_for_case(self, case_id: str, limit: int = 5) -> list[AnalysisJobInfo]:
        stmt = (
            select(AnalysisJob)
            .where(AnalysisJob.case_id == case_id)
            .order_by(AnalysisJob.created_at.desc())
            .limit(limit)
        )
        with get_session(self._engine) as session:
            return [AnalysisJobInfo.model_validate(row) for row in session.scalars(stmt)]

    def active_for_case(self, case_id: str) -> Optional[AnalysisJobInfo]:
        stmt = select(AnalysisJob).where(
            AnalysisJob.case_id == case_id,
            AnalysisJob.status.in_(ACTIVE_JOB_STATUSES),
        )
        with get_session(self._engine) as session:
            job = session.scalar(stmt)
            return AnalysisJobInfo.model_validate(job) if job is not None else None

    def update(self, job_id: str, expected_status: Optional[str] = None, **values: Any) -> bool:
        """
        Write job fields unless the job is already terminal.

        Args:
            job_id: Job to update
            expected_status: If given, apply only while the job is in this
                status (conditional transition)
            **values: Column values to write

        Returns:
            True if the job was updated
        """
        if expected_status is not None:
            condition = AnalysisJob.status == expected_status
        else:
            condition = AnalysisJob.status.not_in(TERMINAL_JOB_STATUSES)

        with get_session(self._engine) as session:
            result = session.execute(
                update(AnalysisJob)
                .where(AnalysisJob.id == job_id, condition)
                .values(**values)
            )
            session.commit()
            return result.rowcount > 0

    def request_cancel(self, job_id: str) -> AnalysisJobInfo:
        """
        Cancel a pending job outright, or flag a processing job so that its
        run stops at the next batch boundary. Terminal jobs are left alone.
        """
        job = self.get(job_id)

        if job.status == JobStatus.PENDING:
            cancelled = self.update(
                job_id,
                expected_status=JobStatus.PENDING.value,
                status=JobStatus.CANCELLED.value,
                cancel_requested=True,
                completed_at=_utcnow(),
            )
            if cancelled:
                return self.get(job_id)
            # Picked up by a worker in the meantime
            job = self.get(job_id)

        if job.status == JobStatus.PROCESSING:
            self.update(job_id, cancel_requested=True)

        return self.get(job_id)

    def mark_interrupted(self, job_id: str) -> bool:
        """
        Fail a pending or processing job that no worker will ever finish,
        e.g. one left behind by a crashed process, freeing its case.

        Returns:
            True if the job was still active and is now failed
        """
        self.get(job_id)
        failed = self.update(
            job_id,
            status=JobStatus.FAILED.value,
            error_message=INTERRUPTED_MESSAGE,
            completed_at=_utcnow(),
        )
        if failed:
            logger.warning(f"Analysis job {job_id} marked failed: {INTERRUPTED_MESSAGE}")
        return failed

    def is_cancel_requested(self, job_id: str) -> bool:
        with get_session(self._engine) as session:
            return bool(session.scalar(
                select(AnalysisJob.cancel_requested).where(AnalysisJob.id == job_id)
            ))


class IngestionJobStore:
    """Persisted registry of file ingestion jobs."""

    def __init__(self, engine: Engine):
        self._engine = engine

    def create(self, case_id: str, filename: str) -> IngestionJobInfo:
        job = IngestionJob(case_id=case_id, filename=filename)
        with get_session(self._engine) as session:
            session.add(job)
            session.commit()
            session.refresh(job)
            return IngestionJobInfo.model_validate(job)

    def get(self, job_id: str) -> IngestionJobInfo:
        with get_session(self._engine) as session:
            job = session.get(IngestionJob, job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            return IngestionJobInfo.model_validate(job)

    def update(self, job_id: str, **values: Any) -> None:
        with get_session(self._engine) as session:
            session.execute(
                update(IngestionJob).where(IngestionJob.id == job_id).values(**values)
            )
            session.commit()
