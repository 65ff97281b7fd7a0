"""Core ingestion, storage and job orchestration."""

from evidence_triage.core.database import get_engine, get_session, init_db
from evidence_triage.core.ingest import EvidenceIngestor, IngestionResult
from evidence_triage.core.jobs import AnalysisOptions, JobOrchestrator
from evidence_triage.core.store import (
    AnalysisJobStore,
    BulkInsertResult,
    CaseStore,
    EvidencePage,
    EvidenceStore,
    IngestionJobStore,
)

__all__ = [
    "get_engine",
    "get_session",
    "init_db",
    "EvidenceIngestor",
    "IngestionResult",
    "AnalysisOptions",
    "JobOrchestrator",
    "AnalysisJobStore",
    "BulkInsertResult",
    "CaseStore",
    "EvidencePage",
    "EvidenceStore",
    "IngestionJobStore",
]
