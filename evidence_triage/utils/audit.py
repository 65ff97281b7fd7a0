"""Forensic audit trail for ingestion, scoring jobs and investigator actions.

Every state change an investigator may later have to account for (a file
entering a case, an analysis run starting or ending, a bookmark or note being
edited) is written once through a dedicated logger whose two rotating
handlers render it as a JSON line and as a human-readable line.
"""

import json
import logging
import logging.handlers
import os
import platform
import socket
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional


class AuditLevel(str, Enum):
    """Audit event severity levels."""
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


_LEVELS = {
    AuditLevel.INFO: logging.INFO,
    AuditLevel.WARNING: logging.WARNING,
    AuditLevel.ERROR: logging.ERROR,
}

_REFERENCE_KEYS = (("case_id", "Case"), ("job_id", "Job"), ("evidence_id", "Evidence"))


class _JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(record.audit_entry, ensure_ascii=False, default=str)


class _TextLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = record.audit_entry
        parts = [
            entry["timestamp"],
            entry["level"],
            "[OK]" if entry["success"] else "[FAIL]",
            f"Action: {entry['action']}",
        ]
        parts.extend(f"{label}: {entry[key]}" for key, label in _REFERENCE_KEYS if entry.get(key))
        return " | ".join(parts)


def _workstation() -> dict[str, Any]:
    try:
        hostname = socket.gethostname()
    except OSError:
        hostname = "unknown"
    return {
        "workstation": hostname,
        "user": os.environ.get("USERNAME") or os.environ.get("USER", "unknown"),
        "pid": os.getpid(),
        "platform": platform.system(),
    }


class AuditLogger:
    """Append-only audit log under ``log_dir``.

    Files: ``<log_name>.jsonl`` (one JSON object per event, queried by
    get_audit_trail) and ``<log_name>.log`` (same events for reading).
    """

    def __init__(
        self,
        log_dir: Path,
        log_name: str = "evidence_triage_audit",
        max_bytes: int = 10 * 1024 * 1024,
        backup_count: int = 10,
    ):
        self.log_dir = Path(log_dir)
        self.log_name = log_name
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self._logger = logging.getLogger(f"evidence_triage.audit.{id(self)}")
        self._logger.setLevel(logging.INFO)
        self._logger.propagate = False
        self._logger.handlers.clear()
        for suffix, formatter in ((".jsonl", _JsonLineFormatter()), (".log", _TextLineFormatter())):
            handler = logging.handlers.RotatingFileHandler(
                self.log_dir / f"{log_name}{suffix}",
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            handler.setFormatter(formatter)
            self._logger.addHandler(handler)

    @property
    def json_path(self) -> Path:
        return self.log_dir / f"{self.log_name}.jsonl"

    def log(
        self,
        level: AuditLevel,
        action: str,
        details: Optional[dict] = None,
        case_id: Optional[str] = None,
        job_id: Optional[str] = None,
        evidence_id: Optional[str] = None,
        success: bool = True,
    ) -> None:
        """Record one audit event."""
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level.value,
            "action": action,
            "success": success,
            "system_info": _workstation(),
        }
        references = {"case_id": case_id, "job_id": job_id, "evidence_id": evidence_id}
        if details:
            entry["details"] = details
        entry.update({key: value for key, value in references.items() if value})

        # Handlers serialize emission, so both files receive events in the same order
        self._logger.log(_LEVELS[level], action, extra={"audit_entry": entry})

    def log_ingestion(
        self,
        case_id: str,
        job_id: str,
        filename: str,
        sha256: str,
        saved_records: int,
        failed_records: int = 0,
    ) -> None:
        self.log(
            AuditLevel.INFO,
            "FILE_INGESTED",
            {
                "filename": filename,
                "sha256": sha256,
                "saved_records": saved_records,
                "failed_records": failed_records,
            },
            case_id=case_id,
            job_id=job_id,
        )

    def log_job_event(
        self,
        action: str,
        case_id: str,
        job_id: str,
        details: Optional[dict] = None,
        success: bool = True,
    ) -> None:
        """Analysis job lifecycle event; unsuccessful events are logged as ERROR."""
        level = AuditLevel.INFO if success else AuditLevel.ERROR
        self.log(level, action, details, case_id=case_id, job_id=job_id, success=success)

    def log_investigator_action(self, evidence_id: str, case_id: str, changes: dict) -> None:
        self.log(
            AuditLevel.INFO,
            "EVIDENCE_UPDATED",
            {"changes": changes},
            case_id=case_id,
            evidence_id=evidence_id,
        )

    def log_error(
        self,
        action: str,
        error: Exception,
        case_id: Optional[str] = None,
        job_id: Optional[str] = None,
    ) -> None:
        self.log(
            AuditLevel.ERROR,
            action,
            {"error_type": type(error).__name__, "error_message": str(error)},
            case_id=case_id,
            job_id=job_id,
            success=False,
        )

    def get_audit_trail(
        self,
        case_id: Optional[str] = None,
        job_id: Optional[str] = None,
        evidence_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        level: Optional[AuditLevel] = None,
    ) -> list[dict]:
        """
        Read back events from the JSON log, oldest first.

        Naive start/end dates are taken as UTC. Unreadable lines are skipped.
        """
        if not self.json_path.exists():
            return []

        wanted = {"case_id": case_id, "job_id": job_id, "evidence_id": evidence_id}
        if level is not None:
            wanted["level"] = level.value
        wanted = {key: value for key, value in wanted.items() if value}

        if start_date and start_date.tzinfo is None:
            start_date = start_date.replace(tzinfo=timezone.utc)
        if end_date and end_date.tzinfo is None:
            end_date = end_date.replace(tzinfo=timezone.utc)

        entries = []
        with open(self.json_path, "r", encoding="utf-8") as f:
            for line in f:
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    continue

                if any(entry.get(key) != value for key, value in wanted.items()):
                    continue

                logged_at = datetime.fromisoformat(entry["timestamp"])
                if (start_date and logged_at < start_date) or (end_date and logged_at > end_date):
                    continue

                entries.append(entry)

        return entries


_global_audit_logger: Optional[AuditLogger] = None
_logger_lock = threading.Lock()


def get_audit_logger(log_dir: Optional[Path] = None) -> AuditLogger:
    """
    Process-wide audit logger.

    Without ``log_dir`` the current instance is returned (created under
    ./logs on first use). A different ``log_dir`` replaces the instance.
    """
    global _global_audit_logger

    with _logger_lock:
        if log_dir is None:
            if _global_audit_logger is not None:
                return _global_audit_logger
            log_dir = Path.cwd() / "logs"

        if _global_audit_logger is None or _global_audit_logger.log_dir != Path(log_dir):
            _global_audit_logger = AuditLogger(log_dir)

        return _global_audit_logger
