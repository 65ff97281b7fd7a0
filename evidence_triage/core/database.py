"""
Database models for evidence triage.

This module provides SQLAlchemy 2.0+ models for cases, normalized evidence
records, and the persisted registries of analysis and ingestion jobs.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Engine,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    event,
    text,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
    validates,
)
from sqlalchemy.pool import StaticPool

from evidence_triage.models import ACTIVE_JOB_STATUSES, priority_tier
from evidence_triage.output.json_export import TriageJSONEncoder


_ACTIVE_STATUS_CLAUSE = "status IN ({})".format(
    ", ".join(f"'{s}'" for s in ACTIVE_JOB_STATUSES)
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def encode_raw_data(raw: Optional[dict]) -> str:
    """Serialize an original export row into its stored document form.

    Values that JSON cannot represent natively (spreadsheet datetimes,
    decimals) are stringified by the encoder; keys are coerced to strings.
    """
    if not raw:
        return "{}"
    return json.dumps(
        {str(k): v for k, v in raw.items()},
        cls=TriageJSONEncoder,
        ensure_ascii=False,
    )


def decode_raw_data(document: Optional[str]) -> dict[str, Any]:
    """Inverse of encode_raw_data. A NULL or empty document decodes to {}."""
    if not document:
        return {}
    return json.loads(document)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class CaseInfo(Base):
    """
    Investigative case owning uploaded files and evidence records.

    high_priority_count is a cache written by the job orchestrator when an
    analysis job completes (last completed job wins).
    """
    __tablename__ = "cases"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    case_name: Mapped[str] = mapped_column(String(255), nullable=False)
    investigator: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)

    evidence_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    high_priority_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow
    )

    uploaded_files: Mapped[list["UploadedFile"]] = relationship(
        "UploadedFile",
        back_populates="case",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return (
            f"<CaseInfo(id={self.id}, case_name={self.case_name}, "
            f"status={self.status}, evidence_count={self.evidence_count})>"
        )


class UploadedFile(Base):
    """Provenance record for one ingested export file."""
    __tablename__ = "uploaded_files"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    case_id: Mapped[str] = mapped_column(String(50), ForeignKey("cases.id"), nullable=False, index=True)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    file_size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    sha256: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    sheets: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    record_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow
    )

    case: Mapped["CaseInfo"] = relationship("CaseInfo", back_populates="uploaded_files")


class Evidence(Base):
    """
    One normalized forensic record.

    Column groups are written by different actors: the normalizer writes the
    identity/content columns once, the scorer writes only the analysis
    columns, and investigators write only the review columns. Updates are
    issued per group so concurrent writers never clobber each other.
    """
    __tablename__ = "evidence"
    __table_args__ = (
        Index("ix_evidence_case_score", "case_id", "priority_score"),
        Index("ix_evidence_case_type", "case_id", "type"),
        Index("ix_evidence_case_timestamp", "case_id", "timestamp"),
        Index("ix_evidence_case_analyzed", "case_id", "analyzed_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    # Insertion order for backlog processing
    seq: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    case_id: Mapped[str] = mapped_column(String(50), ForeignKey("cases.id"), nullable=False, index=True)

    type: Mapped[str] = mapped_column(String(20), nullable=False, default="other")
    source: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    timestamp: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    sender: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    receiver: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    contact_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone_numbers: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    emails: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    organization: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Analysis (scorer only)
    priority_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="low", index=True)
    flags: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sentiment: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    entities: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    analyzed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Investigator state
    is_bookmarked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    is_reviewed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    raw_data_json: Mapped[str] = mapped_column("raw_data", Text, nullable=False, default="{}")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow
    )

    @validates("priority_score")
    def _sync_priority(self, key: str, score: int) -> int:
        self.priority = priority_tier(score).value
        return score

    @property
    def raw_data(self) -> dict[str, Any]:
        return decode_raw_data(self.raw_data_json)

    @raw_data.setter
    def raw_data(self, value: Optional[dict]) -> None:
        self.raw_data_json = encode_raw_data(value)

    def __repr__(self) -> str:
        return (
            f"<Evidence(id={self.id}, case_id={self.case_id}, type={self.type}, "
            f"priority_score={self.priority_score})>"
        )


class AnalysisJob(Base):
    """
    One scoring run over a case's unscored backlog.

    The partial unique index admits at most one pending/processing job per
    case, so the check-and-create in start_analysis is atomic at the store.
    """
    __tablename__ = "analysis_jobs"
    __table_args__ = (
        Index(
            "uq_analysis_jobs_active_case",
            "case_id",
            unique=True,
            sqlite_where=text(_ACTIVE_STATUS_CLAUSE),
            postgresql_where=text(_ACTIVE_STATUS_CLAUSE),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    case_id: Mapped[str] = mapped_column(String(50), ForeignKey("cases.id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)

    total_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    high_priority_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    critical_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    cancel_requested: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<AnalysisJob(id={self.id}, case_id={self.case_id}, status={self.status}, "
            f"processed={self.processed_records}/{self.total_records})>"
        )


class IngestionJob(Base):
    """Progress record for one file ingestion."""
    __tablename__ = "ingestion_jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    case_id: Mapped[str] = mapped_column(String(50), ForeignKey("cases.id"), nullable=False, index=True)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    saved_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


def get_engine(db_path: str) -> Engine:
    """
    Create a SQLAlchemy engine for the specified database path.

    Args:
        db_path: Path to the SQLite database file. Can be ":memory:" for
                 an in-memory database (one connection shared by all threads).

    Returns:
        Configured SQLAlchemy Engine instance.
    """
    connect_args = {"check_same_thread": False, "timeout": 30}

    if db_path == ":memory:":
        engine = create_engine(
            "sqlite:///:memory:",
            connect_args=connect_args,
            poolclass=StaticPool,
            echo=False,
        )
    else:
        engine = create_engine(
            f"sqlite:///{db_path}",
            connect_args=connect_args,
            echo=False,
        )

    # Enable foreign key constraints for SQLite
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def init_db(engine: Engine) -> None:
    """
    Create all tables. Idempotent.

    Args:
        engine: SQLAlchemy Engine instance.
    """
    Base.metadata.create_all(engine)


def get_session(engine: Engine) -> Session:
    """
    Create a new database session.

    Args:
        engine: SQLAlchemy Engine instance.

    Returns:
        SQLAlchemy Session instance.
    """
    return Session(engine)
