"""
Pydantic data models for evidence triage.

This module defines the canonical evidence record produced by the normalizer,
the analysis block written by the scorer, and read-only snapshots of the
persisted job registries.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class EvidenceType(str, Enum):
    """Kinds of normalized forensic records."""
    MESSAGE = "message"
    CALL = "call"
    LOCATION = "location"
    CONTACT = "contact"
    MEDIA = "media"
    OTHER = "other"


class PriorityTier(str, Enum):
    """Investigative priority tier, derived from the priority score."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Sentiment(str, Enum):
    """Sentiment classification of a record's content."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class JobStatus(str, Enum):
    """Lifecycle states of an analysis job."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class IngestionStatus(str, Enum):
    """Lifecycle states of a file ingestion job."""
    PENDING = "pending"
    PARSING = "parsing"
    SAVING = "saving"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_JOB_STATUSES = (JobStatus.PENDING.value, JobStatus.PROCESSING.value)
TERMINAL_JOB_STATUSES = (
    JobStatus.COMPLETED.value,
    JobStatus.FAILED.value,
    JobStatus.CANCELLED.value,
)

HIGH_PRIORITY_THRESHOLD = 60
CRITICAL_THRESHOLD = 80


def priority_tier(score: Optional[float]) -> PriorityTier:
    """Map a 0-100 priority score to its tier.

    >=80 critical, >=60 high, >=40 medium, anything else (including a
    missing score) low.
    """
    if score is None:
        return PriorityTier.LOW
    if score >= CRITICAL_THRESHOLD:
        return PriorityTier.CRITICAL
    if score >= HIGH_PRIORITY_THRESHOLD:
        return PriorityTier.HIGH
    if score >= 40:
        return PriorityTier.MEDIUM
    return PriorityTier.LOW


class Entity(BaseModel):
    """A named entity extracted from record content."""
    type: str = Field(..., description="Entity kind (person, location, organization, phone, email)")
    value: str = Field(..., description="Entity text as it appears in the record")


class EvidenceAnalysis(BaseModel):
    """Scoring result for one evidence record.

    The tier is never set independently: it is recomputed from the score on
    construction and on every assignment.
    """
    model_config = ConfigDict(validate_assignment=True)

    priority_score: int = Field(0, ge=0, le=100, description="Investigative relevance 0-100")
    priority: PriorityTier = Field(PriorityTier.LOW, description="Tier derived from priority_score")
    flags: List[str] = Field(default_factory=list, description="Matched category tags")
    summary: str = Field("", description="Short description of why the record matters")
    sentiment: Sentiment = Field(Sentiment.NEUTRAL)
    entities: List[Entity] = Field(default_factory=list)
    analyzed_at: datetime = Field(..., description="When the record was scored (naive UTC)")

    @model_validator(mode="after")
    def derive_priority(self) -> "EvidenceAnalysis":
        """Keep the tier in lockstep with the score."""
        tier = priority_tier(self.priority_score)
        if self.priority != tier:
            # object.__setattr__ avoids re-entering assignment validation
            object.__setattr__(self, "priority", tier)
        return self


class NormalizedEvidence(BaseModel):
    """Canonical evidence record emitted by the normalizer, before storage."""
    case_id: str
    type: EvidenceType = EvidenceType.OTHER
    source: str = "Unknown"
    timestamp: Optional[datetime] = None

    sender: Optional[str] = None
    receiver: Optional[str] = None
    content: Optional[str] = None

    # Call
    duration: Optional[int] = None

    # Location
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # Contact
    contact_name: Optional[str] = None
    phone_numbers: List[str] = Field(default_factory=list)
    emails: List[str] = Field(default_factory=list)
    organization: Optional[str] = None

    raw_data: Dict[str, Any] = Field(default_factory=dict, description="Original row, verbatim")


class EvidenceRecord(BaseModel):
    """Stored evidence record as read back from the evidence store."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    case_id: str
    type: EvidenceType
    source: Optional[str] = None
    timestamp: Optional[datetime] = None

    sender: Optional[str] = None
    receiver: Optional[str] = None
    content: Optional[str] = None
    duration: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    contact_name: Optional[str] = None
    phone_numbers: List[str] = Field(default_factory=list)
    emails: List[str] = Field(default_factory=list)
    organization: Optional[str] = None

    # Analysis
    priority_score: int = 0
    priority: PriorityTier = PriorityTier.LOW
    flags: List[str] = Field(default_factory=list)
    summary: Optional[str] = None
    sentiment: Optional[Sentiment] = None
    entities: List[Entity] = Field(default_factory=list)
    analyzed_at: Optional[datetime] = None

    # Investigator state
    is_bookmarked: bool = False
    is_reviewed: bool = False
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    raw_data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("phone_numbers", "emails", "flags", "tags", "entities", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> Any:
        """JSON columns may be NULL on legacy rows."""
        return [] if v is None else v

    @property
    def is_analyzed(self) -> bool:
        """Whether the record has been scored at least once."""
        return self.analyzed_at is not None


class AnalysisJobInfo(BaseModel):
    """Snapshot of a persisted analysis job."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    case_id: str
    status: JobStatus
    total_records: int = 0
    processed_records: int = 0
    failed_records: int = 0
    high_priority_count: int = 0
    critical_count: int = 0
    average_score: float = 0.0
    cancel_requested: bool = False
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def progress(self) -> int:
        """Completion percentage (0-100)."""
        if not self.total_records:
            return 0
        return round(self.processed_records / self.total_records * 100)

    @property
    def is_active(self) -> bool:
        """Whether the job still holds the case's active-job slot."""
        return self.status.value in ACTIVE_JOB_STATUSES


class CaseRecord(BaseModel):
    """Snapshot of a persisted case."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    case_name: str
    investigator: Optional[str] = None
    description: Optional[str] = None
    status: str = "active"
    evidence_count: int = 0
    high_priority_count: int = 0
    created_at: Optional[datetime] = None


class UploadedFileInfo(BaseModel):
    """Provenance of one ingested export file."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    case_id: str
    filename: str
    file_path: str
    file_size_bytes: int
    sha256: str
    sheets: Optional[List[str]] = None
    record_count: int = 0
    uploaded_at: Optional[datetime] = None


class IngestionJobInfo(BaseModel):
    """Snapshot of a persisted ingestion job."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    case_id: str
    filename: str
    status: IngestionStatus
    progress: int = 0
    total_records: int = 0
    saved_records: int = 0
    failed_records: int = 0
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
