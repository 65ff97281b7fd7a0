"""
Utility modules for evidence triage.

This package contains shared utilities: the exception hierarchy and the
forensic audit trail.
"""

from evidence_triage.utils.audit import AuditLevel, AuditLogger, get_audit_logger
from evidence_triage.utils.exceptions import (
    CaseNotFoundError,
    EvidenceNotFoundError,
    IngestionError,
    JobConflictError,
    JobNotFoundError,
    LLMResponseError,
    TriageError,
    UnsupportedFormatError,
)

__all__ = [
    # Exceptions
    "TriageError",
    "UnsupportedFormatError",
    "IngestionError",
    "CaseNotFoundError",
    "EvidenceNotFoundError",
    "JobNotFoundError",
    "JobConflictError",
    "LLMResponseError",
    # Audit Logging
    "AuditLevel",
    "AuditLogger",
    "get_audit_logger",
]
