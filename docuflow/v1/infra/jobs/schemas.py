"""
Job system Pydantic schemas.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from docuflow.config.settings import ExportFormat
from docuflow.v1.documents.models import DocumentType
from docuflow.v1.infra.jobs.models import JobStatus, JobType


# Stage payloads
class OcrPayload(BaseModel):
    document_id: UUID
    sha256: str = Field(..., min_length=1)
    file_path: str | None = Field(
        default=None, description="Override for the stored file location"
    )


class ParsingPayload(BaseModel):
    document_id: UUID
    sha256: str | None = None


class ValidationPayload(BaseModel):
    document_id: UUID
    kind: DocumentType | None = Field(
        default=None, description="Document type decided by the parsing stage"
    )


class ExportPayload(BaseModel):
    document_id: UUID
    format: ExportFormat | None = Field(
        default=None, description="Export format, defaults to EXPORT_DEFAULT_FORMAT"
    )


PAYLOAD_MODELS: dict[JobType, type[BaseModel]] = {
    JobType.OCR: OcrPayload,
    JobType.PARSING: ParsingPayload,
    JobType.VALIDATION: ValidationPayload,
    JobType.EXPORT: ExportPayload,
}


class JobCreate(BaseModel):
    """Schema for creating a new job. Priority and attempts are clamped on enqueue."""

    type: JobType = Field(..., description="Job type")
    payload: dict[str, Any] = Field(default_factory=dict, description="Job parameters")
    document_id: UUID | None = Field(
        default=None, description="Document the job belongs to (defaults to payload.document_id)"
    )
    priority: int = Field(default=0, description="Priority 0-10, higher runs first")
    max_attempts: int | None = Field(
        default=None, description="Attempts before the job is marked as error"
    )
    scheduled_at: datetime | None = Field(
        default=None, description="Earliest time to run job"
    )
    dedupe_key: str | None = Field(default=None, description="Deduplication key")


class JobResponse(BaseModel):
    """Schema for job API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    status: str
    document_id: UUID | None = None
    payload: dict[str, Any]
    result: dict[str, Any] | None = None
    metrics: dict[str, Any] | None = None
    priority: int
    scheduled_at: datetime | None = None
    attempts: int
    max_attempts: int

    # Worker coordination
    locked_at: datetime | None = None
    locked_by: str | None = None
    heartbeat_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    error_code: str | None = None
    last_error: str | None = None

    dedupe_key: str | None = None
    requested_by: str | None = None
    request_id: str | None = None
    created_at: datetime
    updated_at: datetime


class JobListFilters(BaseModel):
    """Schema for job listing filters."""

    status: list[JobStatus] | None = Field(
        default=None, description="Filter by job status"
    )
    type: JobType | None = Field(default=None, description="Filter by job type")
    document_id: UUID | None = Field(default=None, description="Filter by document")
    limit: int = Field(
        default=50, ge=1, le=1000, description="Maximum results to return"
    )
    offset: int = Field(default=0, ge=0, description="Results offset for pagination")


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    total: int
    limit: int
    offset: int


class JobStatsResponse(BaseModel):
    """Schema for job statistics."""

    total_jobs: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    queue_depth: int  # queued + processing
    errors_last_hour: int
    avg_runtime_seconds: float | None = None


class JobEnqueueResponse(BaseModel):
    job_id: UUID
    type: str
    status: str
    deduplicated: bool = Field(
        default=False, description="Whether an existing job was returned"
    )


class JobCleanupResponse(BaseModel):
    deleted: int
    retention_days: int
