"""
Job models for the document processing pipeline.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    CheckConstraint,
    ForeignKey,
    Index,
    SmallInteger,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from docuflow.infra.database import Base

MIN_PRIORITY = 0
MAX_PRIORITY = 10
PIPELINE_PRIORITY = 5


class JobType(str, Enum):
    """Pipeline stages, in execution order."""

    OCR = "OCR"
    PARSING = "PARSING"
    VALIDATION = "VALIDATION"
    EXPORT = "EXPORT"


class JobStatus(str, Enum):
    """Job status enumeration."""

    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"
    CANCELED = "canceled"


ACTIVE_STATUSES = (JobStatus.QUEUED.value, JobStatus.PROCESSING.value)
# A done job still blocks a duplicate enqueue with the same dedupe key
DEDUPE_STATUSES = (*ACTIVE_STATUSES, JobStatus.DONE.value)
FINISHED_STATUSES = (
    JobStatus.DONE.value,
    JobStatus.ERROR.value,
    JobStatus.CANCELED.value,
)


class Job(Base):
    """
    One pipeline stage of processing for a document.

    Carries worker coordination (locks, heartbeats), retry bookkeeping,
    structured errors and per-run metrics.
    """

    __tablename__ = "jobs"

    id: Mapped[UUID] = mapped_column(PG_UUID, primary_key=True, default=uuid4)
    type: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Job type: OCR|PARSING|VALIDATION|EXPORT"
    )
    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=JobStatus.QUEUED.value,
        comment="Job status: queued|processing|done|error|canceled",
    )
    document_id: Mapped[UUID | None] = mapped_column(
        PG_UUID,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=True,
        comment="Document being processed",
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        server_default="{}",
        comment="Stage-specific parameters",
    )
    result: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True, comment="Handler result"
    )
    metrics: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True, comment="Timing and handler counters"
    )

    priority: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
        default=MIN_PRIORITY,
        comment="Priority 0-10, higher runs first",
    )
    scheduled_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, comment="Earliest time to run job"
    )
    attempts: Mapped[int] = mapped_column(
        SmallInteger, nullable=False, default=0, comment="Number of attempts made"
    )
    max_attempts: Mapped[int] = mapped_column(
        SmallInteger, nullable=False, default=3, comment="Attempts before giving up"
    )

    # Worker coordination
    locked_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, comment="When job was locked by worker"
    )
    locked_by: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Worker ID that locked the job"
    )
    heartbeat_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, comment="Last worker heartbeat"
    )
    started_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    last_error: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Last error message"
    )
    error_code: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Structured error identifier"
    )

    # Tracing and deduplication
    dedupe_key: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Deduplication key for idempotent enqueue"
    )
    requested_by: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Principal that requested the job"
    )
    request_id: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Original request ID for tracing"
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('queued', 'processing', 'done', 'error', 'canceled')",
            name="jobs_status_check",
        ),
        CheckConstraint("priority BETWEEN 0 AND 10", name="jobs_priority_check"),
        CheckConstraint("max_attempts BETWEEN 1 AND 10", name="jobs_max_attempts_check"),
        Index("ix_jobs_claim", "status", "priority", "created_at"),
        Index("ix_jobs_document_id_type", "document_id", "type"),
        Index("ix_jobs_heartbeat_at", "heartbeat_at"),
        # Unique while queued, processing or done so a key can be reused after error/cancel
        Index(
            "ix_jobs_dedupe_key_active",
            "dedupe_key",
            unique=True,
            postgresql_where=text(
                "dedupe_key IS NOT NULL AND status IN ('queued', 'processing', 'done')"
            ),
        ),
    )

    def is_active(self) -> bool:
        """Check if job is queued or processing."""
        return self.status in ACTIVE_STATUSES

    def can_retry(self) -> bool:
        return self.status == JobStatus.ERROR.value

    def is_stuck(self, visibility_timeout_s: int) -> bool:
        """Check if a processing job has missed its heartbeat window."""
        if self.status != JobStatus.PROCESSING.value or not self.heartbeat_at:
            return False

        timeout_threshold = datetime.now(UTC).timestamp() - visibility_timeout_s
        return self.heartbeat_at.timestamp() < timeout_threshold

    def duration_ms(self) -> int | None:
        if not self.started_at or not self.finished_at:
            return None
        return int((self.finished_at - self.started_at).total_seconds() * 1000)
