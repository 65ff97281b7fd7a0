"""
Export file ingestion.

Takes a forensic export from disk into a case:
- Extension check before anything is read or written
- SHA-256 of the exact bytes ingested, recorded with the file
- Parse progress persisted on an ingestion job
- Unordered batch insert of the normalized records
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

from sqlalchemy import Engine

from evidence_triage.core.normalizer import parse_file
from evidence_triage.core.store import CaseStore, EvidenceStore, IngestionJobStore
from evidence_triage.models import IngestionStatus
from evidence_triage.utils.audit import AuditLogger
from evidence_triage.utils.exceptions import IngestionError, UnsupportedFormatError

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    """Outcome of one file ingestion."""
    job_id: str
    case_id: str
    filename: str
    sha256: str
    total_rows: int
    saved_records: int
    failed_records: int
    sheets: list[str] = field(default_factory=list)
    mappings: dict[str, dict[str, str]] = field(default_factory=dict)


class EvidenceIngestor:
    """Ingests export files into cases."""

    def __init__(self, engine: Engine, audit_logger: Optional[AuditLogger] = None):
        """
        Initialize the ingestor.

        Args:
            engine: Database engine
            audit_logger: Optional forensic audit trail
        """
        self.cases = CaseStore(engine)
        self.evidence = EvidenceStore(engine)
        self.jobs = IngestionJobStore(engine)
        self.audit = audit_logger

    def ingest(
        self,
        file_path: Union[str, Path],
        case_id: str,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> IngestionResult:
        """
        Ingest one export file into a case.

        Process:
        1. Reject unsupported extensions (nothing written, no job created)
        2. Verify the case exists
        3. Create the ingestion job and hash the file
        4. Parse every row, persisting progress on the job
        5. Bulk insert, record the uploaded file, refresh the case count

        Args:
            file_path: Export file to ingest
            case_id: Target case
            on_progress: Called with the running row count during parsing

        Returns:
            IngestionResult with counts and provenance

        Raises:
            UnsupportedFormatError: If the extension is not supported
            CaseNotFoundError: If the case does not exist
            IngestionError: If the file cannot be read or parsed
        """
        file_path = Path(file_path)
        ext = file_path.suffix.lower()
        if ext not in UnsupportedFormatError.SUPPORTED_EXTENSIONS:
            raise UnsupportedFormatError(str(file_path), ext)

        self.cases.get(case_id)

        if not file_path.is_file():
            raise IngestionError(str(file_path), "Source file does not exist")

        job = self.jobs.create(case_id, file_path.name)
        self.jobs.update(job.id, status=IngestionStatus.PARSING.value)
        logger.info(f"Ingesting {file_path.name} into case {case_id} (job {job.id})")

        try:
            sha256 = self._calculate_sha256(file_path)

            def progress(count: int) -> None:
                self.jobs.update(job.id, progress=count)
                if on_progress:
                    on_progress(count)

            parsed = parse_file(file_path, case_id, progress)

            self.jobs.update(
                job.id,
                status=IngestionStatus.SAVING.value,
                progress=parsed.total_rows,
                total_records=parsed.total_rows,
            )

            inserted = self.evidence.bulk_insert(parsed.records)

            self.cases.add_uploaded_file(
                case_id=case_id,
                filename=file_path.name,
                file_path=str(file_path.resolve()),
                file_size_bytes=file_path.stat().st_size,
                sha256=sha256,
                sheets=parsed.sheets or None,
                record_count=inserted.saved,
            )
            self.cases.refresh_evidence_count(case_id)

            self.jobs.update(
                job.id,
                status=IngestionStatus.COMPLETED.value,
                saved_records=inserted.saved,
                failed_records=inserted.failed,
                completed_at=datetime.now(timezone.utc),
            )

        except Exception as e:
            logger.error(f"Ingestion of {file_path.name} failed: {e}")
            self.jobs.update(
                job.id,
                status=IngestionStatus.FAILED.value,
                error_message=str(e),
                completed_at=datetime.now(timezone.utc),
            )
            if self.audit:
                self.audit.log_error("FILE_INGEST_FAILED", e, case_id=case_id, job_id=job.id)
            raise

        logger.info(
            f"Ingested {file_path.name}: {inserted.saved} saved, "
            f"{inserted.failed} failed of {parsed.total_rows} rows"
        )
        if self.audit:
            self.audit.log_ingestion(
                case_id=case_id,
                job_id=job.id,
                filename=file_path.name,
                sha256=sha256,
                saved_records=inserted.saved,
                failed_records=inserted.failed,
            )

        return IngestionResult(
            job_id=job.id,
            case_id=case_id,
            filename=file_path.name,
            sha256=sha256,
            total_rows=parsed.total_rows,
            saved_records=inserted.saved,
            failed_records=inserted.failed,
            sheets=parsed.sheets,
            mappings=parsed.mappings,
        )

    def _calculate_sha256(self, file_path: Path) -> str:
        sha256 = hashlib.sha256()
        chunk_size = 65536  # 64KB chunks

        with open(file_path, "rb") as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                sha256.update(chunk)

        return sha256.hexdigest()
