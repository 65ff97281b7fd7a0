"""Analysis job orchestration.

Scores a case's unscored evidence backlog in sequential batches. Records in
a batch are scored in parallel threads; the results are written back one by
one from the job's own thread as they complete, so the only concurrent
writer per job is that thread.

Features:
- One active job per case, enforced by the job store
- Batches run in order with a delay between them to respect LLM rate limits
- Individual record error isolation (one failure doesn't fail the job)
- Cooperative cancellation checked between batches
- Progress snapshots after every batch
- Recovery of jobs orphaned by a crashed process
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import Engine

from evidence_triage.analysis.scoring import HybridScorer
from evidence_triage.core.store import AnalysisJobStore, CaseStore, EvidenceStore
from evidence_triage.models import (
    CRITICAL_THRESHOLD,
    HIGH_PRIORITY_THRESHOLD,
    TERMINAL_JOB_STATUSES,
    AnalysisJobInfo,
    EvidenceRecord,
    JobStatus,
)
from evidence_triage.utils.audit import AuditLogger

logger = logging.getLogger(__name__)

BatchCallback = Callable[[AnalysisJobInfo], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AnalysisOptions:
    """Tuning for one analysis run.

    Attributes:
        batch_size: Records scored concurrently per batch
        use_llm: Whether LLM scoring is wanted for this run
        inter_batch_delay_ms: Pause between batches (not after the last)
    """
    batch_size: int = 10
    use_llm: bool = True
    inter_batch_delay_ms: int = 100

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.inter_batch_delay_ms < 0:
            raise ValueError("inter_batch_delay_ms must not be negative")


class JobOrchestrator:
    """Starts, runs, tracks and cancels analysis jobs.

    Jobs are handed to an internal worker pool; callers keep only the job id
    and observe progress through the job store.
    """

    def __init__(
        self,
        engine: Engine,
        scorer: Optional[HybridScorer] = None,
        max_workers: int = 2,
        on_batch_complete: Optional[BatchCallback] = None,
        audit_logger: Optional[AuditLogger] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the orchestrator.

        Args:
            engine: Database engine holding evidence and job tables
            scorer: Record scorer (default: HybridScorer with env-selected LLM mode)
            max_workers: Number of jobs that may run at once across cases
            on_batch_complete: Called with a job snapshot after every batch
            audit_logger: Optional forensic audit trail
            sleep: Delay function used between batches
        """
        self.scorer = scorer or HybridScorer()
        self.evidence = EvidenceStore(engine)
        self.jobs = AnalysisJobStore(engine)
        self.cases = CaseStore(engine)
        self.on_batch_complete = on_batch_complete
        self.audit = audit_logger
        self._sleep = sleep

        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers),
            thread_name_prefix="analysis-job",
        )
        self._futures: dict[str, Future] = {}
        self._lock = threading.Lock()

        logger.info(f"JobOrchestrator initialized with {max(1, max_workers)} workers")

    def __enter__(self) -> "JobOrchestrator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start_analysis(
        self,
        case_id: str,
        options: Optional[AnalysisOptions] = None,
        recover_interrupted: bool = False,
    ) -> str:
        """Create a pending job for the case and queue it.

        Args:
            case_id: Case whose backlog should be scored
            options: Run tuning (default: AnalysisOptions())
            recover_interrupted: First fail an active job this orchestrator
                does not own (see recover_interrupted())

        Returns:
            Id of the new job

        Raises:
            CaseNotFoundError: If the case does not exist
            JobConflictError: If the case already has a pending or processing job
            RuntimeError: If the orchestrator has been shut down
        """
        options = options or AnalysisOptions()
        self.cases.get(case_id)
        if recover_interrupted:
            self.recover_interrupted(case_id)

        job = self.jobs.create(case_id)
        logger.info(f"Queued analysis job {job.id} for case {case_id}")
        self._audit_event("ANALYSIS_QUEUED", job, {
            "batch_size": options.batch_size,
            "use_llm": options.use_llm,
        })

        try:
            future = self._executor.submit(self.run_job, job.id, options)
        except RuntimeError as e:
            # Executor already shut down; release the case
            self.jobs.update(
                job.id,
                expected_status=JobStatus.PENDING.value,
                status=JobStatus.FAILED.value,
                error_message=f"Not queued: {e}",
                completed_at=_utcnow(),
            )
            if self.audit:
                self.audit.log_error("ANALYSIS_FAILED", e, case_id=case_id, job_id=job.id)
            raise

        with self._lock:
            self._futures[job.id] = future
        future.add_done_callback(lambda _, job_id=job.id: self._forget(job_id))

        return job.id

    def run_job(self, job_id: str, options: Optional[AnalysisOptions] = None) -> AnalysisJobInfo:
        """Execute a pending job to completion, cancellation or failure.

        Never raises for problems inside the run; the outcome is recorded on
        the job. A job that is no longer pending is left untouched.

        Returns:
            Final job snapshot
        """
        options = options or AnalysisOptions()
        job = self.jobs.get(job_id)

        if not self.jobs.update(
            job_id,
            expected_status=JobStatus.PENDING.value,
            status=JobStatus.PROCESSING.value,
            started_at=_utcnow(),
        ):
            logger.info(f"Job {job_id} is {job.status.value}, not running it")
            return self.jobs.get(job_id)

        try:
            return self._run(job, options)
        except Exception as e:
            logger.error(f"Analysis job {job_id} failed: {e}", exc_info=True)
            self.jobs.update(
                job_id,
                status=JobStatus.FAILED.value,
                error_message=str(e),
                completed_at=_utcnow(),
            )
            if self.audit:
                self.audit.log_error("ANALYSIS_FAILED", e, case_id=job.case_id, job_id=job_id)
            return self.jobs.get(job_id)

    def cancel_analysis(self, job_id: str) -> AnalysisJobInfo:
        """Cancel a job.

        A pending job is cancelled immediately. A processing job stops at
        the next batch boundary. A finished job is returned unchanged.

        Raises:
            JobNotFoundError: If the job does not exist
        """
        job = self.jobs.request_cancel(job_id)
        logger.info(f"Cancellation requested for job {job_id} (status: {job.status.value})")
        self._audit_event("ANALYSIS_CANCEL_REQUESTED", job)
        return job

    def recover_interrupted(self, case_id: str) -> Optional[AnalysisJobInfo]:
        """Fail the case's active job when no worker of this orchestrator owns it.

        A job left pending or processing by a crashed process would otherwise
        hold the case's active-job slot forever. Only use this when no other
        process can still be running the case's analysis.

        Returns:
            The failed job, or None if there was nothing to recover
        """
        active = self.jobs.active_for_case(case_id)
        if active is None:
            return None
        with self._lock:
            if active.id in self._futures:
                return None
        if not self.jobs.mark_interrupted(active.id):
            return None

        job = self.jobs.get(active.id)
        if self.audit:
            self.audit.log_job_event(
                "ANALYSIS_INTERRUPTED", job.case_id, job.id,
                {"previous_status": active.status.value}, success=False,
            )
        return job

    def get_job(self, job_id: str) -> AnalysisJobInfo:
        return self.jobs.get(job_id)

    def latest_jobs(self, case_id: str, limit: int = 5) -> list[AnalysisJobInfo]:
        return self.jobs.latest_for_case(case_id, limit)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> AnalysisJobInfo:
        """Block until the job reaches a terminal status (or timeout)."""
        with self._lock:
            future = self._futures.get(job_id)

        if future is not None:
            future.result(timeout=timeout)
            return self.jobs.get(job_id)

        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            job = self.jobs.get(job_id)
            if job.status.value in TERMINAL_JOB_STATUSES:
                return job
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError(f"Job {job_id} still {job.status.value} after {timeout}s")
            time.sleep(0.1)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs; optionally wait for running ones."""
        self._executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    def _run(self, job: AnalysisJobInfo, options: AnalysisOptions) -> AnalysisJobInfo:
        job_id = job.id
        backlog = self.evidence.find_backlog(job.case_id)
        total = len(backlog)
        self.jobs.update(job_id, total_records=total)

        logger.info(
            f"Job {job_id}: scoring {total} records for case {job.case_id} "
            f"in batches of {options.batch_size}"
        )
        self._audit_event("ANALYSIS_STARTED", job, {"total_records": total})

        processed = failed = scored = high = critical = 0
        total_score = 0

        for start in range(0, total, options.batch_size):
            batch = backlog[start:start + options.batch_size]

            for record, score in self._score_batch(batch, options):
                processed += 1
                if score is None:
                    failed += 1
                    continue
                scored += 1
                total_score += score
                if score >= HIGH_PRIORITY_THRESHOLD:
                    high += 1
                if score >= CRITICAL_THRESHOLD:
                    critical += 1

            self.jobs.update(
                job_id,
                processed_records=processed,
                failed_records=failed,
                high_priority_count=high,
                critical_count=critical,
                average_score=round(total_score / scored, 2) if scored else 0.0,
            )
            self._notify(job_id)

            is_last = start + options.batch_size >= total
            if is_last:
                break

            if self.jobs.is_cancel_requested(job_id):
                self.jobs.update(
                    job_id,
                    status=JobStatus.CANCELLED.value,
                    completed_at=_utcnow(),
                )
                logger.info(f"Job {job_id} cancelled after {processed}/{total} records")
                self._audit_event("ANALYSIS_CANCELLED", job, {"processed_records": processed})
                return self.jobs.get(job_id)

            if options.inter_batch_delay_ms:
                self._sleep(options.inter_batch_delay_ms / 1000)

        self.jobs.update(
            job_id,
            status=JobStatus.COMPLETED.value,
            completed_at=_utcnow(),
        )
        self.cases.set_high_priority_count(job.case_id, high)

        logger.info(
            f"Job {job_id} completed: {processed} processed, {failed} failed, "
            f"{high} high priority, {critical} critical"
        )
        self._audit_event("ANALYSIS_COMPLETED", job, {
            "processed_records": processed,
            "failed_records": failed,
            "high_priority_count": high,
            "critical_count": critical,
        })
        return self.jobs.get(job_id)

    def _score_batch(self, batch: list[EvidenceRecord], options: AnalysisOptions):
        """Yield (record, score or None) as each record is scored and saved."""
        with ThreadPoolExecutor(max_workers=len(batch)) as pool:
            future_to_record = {
                pool.submit(self.scorer.score, record, options.use_llm): record
                for record in batch
            }

            for future in as_completed(future_to_record):
                record = future_to_record[future]
                try:
                    analysis = future.result()
                    self.evidence.update_analysis(record.id, analysis)
                except Exception as e:
                    logger.error(f"Failed to score record {record.id}: {e}", exc_info=True)
                    yield record, None
                    continue
                yield record, analysis.priority_score

    def _forget(self, job_id: str) -> None:
        with self._lock:
            self._futures.pop(job_id, None)

    def _notify(self, job_id: str) -> None:
        if self.on_batch_complete is None:
            return
        try:
            self.on_batch_complete(self.jobs.get(job_id))
        except Exception as e:
            logger.warning(f"on_batch_complete callback failed for job {job_id}: {e}")

    def _audit_event(self, action: str, job: AnalysisJobInfo, details: Optional[dict] = None) -> None:
        if self.audit:
            self.audit.log_job_event(action, job.case_id, job.id, details)
