"""
Custom exception classes for evidence triage.

This module defines the exception hierarchy for all error conditions
that can occur while ingesting, scoring and analyzing forensic exports.
"""


class TriageError(Exception):
    """
    Base exception class for all evidence triage errors.

    All custom exceptions in this module inherit from this base class,
    allowing for broad exception handling when needed.

    Attributes:
        message: Human-readable error description
        details: Optional dictionary containing additional error context
    """

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the base exception.

        Args:
            message: Error message describing what went wrong
            details: Optional dictionary with additional context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return a string representation of the exception."""
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class UnsupportedFormatError(TriageError):
    """
    Raised when an export file has an extension the normalizer cannot read.

    Only delimited (.csv) and spreadsheet (.xlsx, .xls) exports are accepted.
    Raised before anything is read or written, so the whole ingestion aborts.

    Attributes:
        file_path: Path to the rejected file
        extension: The offending file extension
    """

    SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xls")

    def __init__(self, file_path: str, extension: str):
        self.file_path = file_path
        self.extension = extension

        message = (
            f"Unsupported file format: {extension or '(none)'}. "
            f"Allowed types: {', '.join(self.SUPPORTED_EXTENSIONS)}"
        )
        details = {"file_path": file_path, "extension": extension}

        super().__init__(message, details)


class IngestionError(TriageError):
    """
    Raised when an export file cannot be read or parsed.

    Attributes:
        file_path: Path to the file that failed ingestion
        reason: Specific reason for the failure
        cause: Optional underlying exception
    """

    def __init__(
        self,
        file_path: str,
        reason: str = None,
        cause: Exception = None
    ):
        self.file_path = file_path
        self.reason = reason or "File ingestion failed"
        self.cause = cause

        message = f"Failed to ingest file: {file_path}. {self.reason}"

        details = {
            "file_path": file_path,
            "reason": self.reason,
        }

        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        super().__init__(message, details)


class CaseNotFoundError(TriageError):
    """Raised when an operation references a case that does not exist."""

    def __init__(self, case_id: str):
        self.case_id = case_id
        super().__init__(f"Case not found: {case_id}", {"case_id": case_id})


class EvidenceNotFoundError(TriageError):
    """Raised when an evidence record cannot be found for a case."""

    def __init__(self, evidence_id: str, case_id: str = None):
        self.evidence_id = evidence_id
        self.case_id = case_id

        details = {"evidence_id": evidence_id}
        if case_id:
            details["case_id"] = case_id

        super().__init__(f"Evidence not found: {evidence_id}", details)


class JobNotFoundError(TriageError):
    """Raised when an analysis or ingestion job id is unknown."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}", {"job_id": job_id})


class JobConflictError(TriageError):
    """
    Raised when an analysis job is requested while another is active.

    A case may have at most one job in pending or processing status. No job
    is created when this is raised.

    Attributes:
        case_id: The case that already has an active job
        active_job_id: Id of the active job, when known
    """

    def __init__(self, case_id: str, active_job_id: str = None):
        self.case_id = case_id
        self.active_job_id = active_job_id

        details = {"case_id": case_id}
        if active_job_id:
            details["active_job_id"] = active_job_id

        super().__init__(
            "An analysis job is already running for this case", details
        )


class LLMResponseError(TriageError):
    """
    Raised when the LLM scorer fails or returns an unusable response.

    Covers connection failures, timeouts, missing or malformed JSON and
    responses that do not match the expected scoring schema. The hybrid
    scorer catches this and falls back to pattern-only scoring.

    Attributes:
        reason: What went wrong
        model: Model that produced the response
        raw_response: Raw response text (truncated in details)
    """

    def __init__(self, reason: str, model: str = None, raw_response: str = None):
        self.reason = reason
        self.model = model
        self.raw_response = raw_response

        details = {}
        if model:
            details["model"] = model
        if raw_response:
            details["raw_response"] = raw_response[:200]

        super().__init__(f"LLM scoring failed: {reason}", details)
