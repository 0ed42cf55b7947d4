"""
Job service for enqueueing and managing pipeline jobs.
"""

import logging
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from docuflow.config.settings import Settings
from docuflow.v1.core.exceptions import BadRequestError, ConflictError, NotFoundError
from docuflow.v1.core.security import Principal
from docuflow.v1.documents.models import Document, DocumentStatus
from docuflow.v1.infra.jobs.models import (
    ACTIVE_STATUSES,
    DEDUPE_STATUSES,
    FINISHED_STATUSES,
    MAX_PRIORITY,
    MIN_PRIORITY,
    PIPELINE_PRIORITY,
    Job,
    JobStatus,
    JobType,
)
from docuflow.v1.infra.jobs.schemas import (
    PAYLOAD_MODELS,
    JobCreate,
    JobEnqueueResponse,
    JobListFilters,
    JobStatsResponse,
)

logger = logging.getLogger(__name__)

MAX_ATTEMPTS_LIMIT = 10

# Document statuses a stopped pipeline leaves behind
IN_FLIGHT_DOCUMENT_STATUSES = [DocumentStatus.UPLOADED.value, DocumentStatus.PROCESSING.value]


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


class JobService:
    """Service for managing pipeline jobs."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def validate_payload(self, job_type: JobType, payload: dict[str, Any]) -> dict[str, Any]:
        """Validate a payload against the model for its job type (400 on failure)."""
        model = PAYLOAD_MODELS[job_type]
        try:
            return model.model_validate(payload).model_dump(mode="json", exclude_none=True)
        except PydanticValidationError as e:
            raise BadRequestError(
                f"Invalid payload for job type {job_type.value}",
                details={"issues": e.errors(include_url=False, include_context=False)},
            ) from e

    async def enqueue_job(
        self,
        session: AsyncSession,
        job_create: JobCreate,
        principal: Principal | None = None,
        request_id: str | None = None,
        commit: bool = True,
    ) -> JobEnqueueResponse:
        """
        Enqueue a new job with deduplication support.

        Args:
            session: Database session
            job_create: Job creation parameters
            principal: Requesting principal, stored as requested_by
            request_id: Request ID for tracing
            commit: When False the job is only flushed (inside a savepoint),
                leaving the caller's transaction open

        Returns:
            Job enqueue response with job_id and deduplication info
        """
        payload = self.validate_payload(job_create.type, job_create.payload)

        if job_create.dedupe_key:
            existing_job = await self._find_existing_job(session, job_create.dedupe_key)
            if existing_job:
                logger.info(
                    "Job deduplicated",
                    extra={
                        "job_id": str(existing_job.id),
                        "dedupe_key": job_create.dedupe_key,
                        "type": job_create.type.value,
                    },
                )
                return JobEnqueueResponse(
                    job_id=existing_job.id,
                    type=existing_job.type,
                    status=existing_job.status,
                    deduplicated=True,
                )

        document_id = job_create.document_id or payload.get("document_id")
        if document_id:
            document_id = UUID(str(document_id))
            exists = await session.execute(select(Document.id).where(Document.id == document_id))
            if exists.scalar_one_or_none() is None:
                raise NotFoundError("Document not found", details={"id": str(document_id)})
        max_attempts = job_create.max_attempts or self.settings.job_max_attempts

        job = Job(
            id=uuid.uuid4(),
            type=job_create.type.value,
            status=JobStatus.QUEUED.value,
            document_id=document_id or None,
            payload=payload,
            priority=clamp(job_create.priority, MIN_PRIORITY, MAX_PRIORITY),
            max_attempts=clamp(max_attempts, 1, MAX_ATTEMPTS_LIMIT),
            attempts=0,
            scheduled_at=job_create.scheduled_at,
            dedupe_key=job_create.dedupe_key,
            requested_by=principal.user_id if principal else None,
            request_id=request_id,
        )

        try:
            if commit:
                session.add(job)
                await session.commit()
                await session.refresh(job)
            else:
                async with session.begin_nested():
                    session.add(job)
        except IntegrityError as e:
            if commit:
                await session.rollback()
            # Another process enqueued the same key between lookup and insert
            if job_create.dedupe_key and "ix_jobs_dedupe_key_active" in str(e):
                existing_job = await self._find_existing_job(session, job_create.dedupe_key)
                if existing_job:
                    return JobEnqueueResponse(
                        job_id=existing_job.id,
                        type=existing_job.type,
                        status=existing_job.status,
                        deduplicated=True,
                    )
            raise

        logger.info(
            "Job enqueued",
            extra={
                "job_id": str(job.id),
                "type": job.type,
                "priority": job.priority,
                "document_id": str(job.document_id) if job.document_id else None,
                "dedupe_key": job_create.dedupe_key,
            },
        )
        return JobEnqueueResponse(job_id=job.id, type=job.type, status=job.status)

    async def enqueue_next_stage(
        self,
        session: AsyncSession,
        job: Job,
        next_type: JobType,
        payload: dict[str, Any],
    ) -> JobEnqueueResponse | None:
        """
        Enqueue the stage that follows ``job`` in the pipeline.

        The new row is flushed into the caller's transaction so it commits
        together with the completion of ``job``. Skipped when the document
        already has a queued or processing job of ``next_type``.
        """
        if job.document_id is not None:
            existing = await session.execute(
                select(Job.id)
                .where(
                    and_(
                        Job.document_id == job.document_id,
                        Job.type == next_type.value,
                        Job.status.in_(ACTIVE_STATUSES),
                    )
                )
                .limit(1)
            )
            if existing.scalar_one_or_none() is not None:
                logger.info(
                    "Next stage already pending",
                    extra={
                        "job_id": str(job.id),
                        "document_id": str(job.document_id),
                        "next_type": next_type.value,
                    },
                )
                return None

        return await self.enqueue_job(
            session,
            JobCreate(
                type=next_type,
                payload=payload,
                document_id=job.document_id,
                priority=PIPELINE_PRIORITY,
            ),
            principal=Principal(user_id=job.requested_by) if job.requested_by else None,
            request_id=job.request_id,
            commit=False,
        )

    async def _find_existing_job(self, session: AsyncSession, dedupe_key: str) -> Job | None:
        result = await session.execute(
            select(Job)
            .where(and_(Job.dedupe_key == dedupe_key, Job.status.in_(DEDUPE_STATUSES)))
            .order_by(Job.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_job_by_id(self, session: AsyncSession, job_id: UUID) -> Job | None:
        result = await session.execute(select(Job).where(Job.id == job_id))
        return result.scalar_one_or_none()

    async def get_job_or_404(self, session: AsyncSession, job_id: UUID) -> Job:
        job = await self.get_job_by_id(session, job_id)
        if not job:
            raise NotFoundError(f"Job {job_id} not found")
        return job

    async def list_jobs(
        self, session: AsyncSession, filters: JobListFilters
    ) -> tuple[list[Job], int]:
        """List jobs ordered the way the worker claims them."""
        conditions = []
        if filters.status:
            conditions.append(Job.status.in_([s.value for s in filters.status]))
        if filters.type:
            conditions.append(Job.type == filters.type.value)
        if filters.document_id:
            conditions.append(Job.document_id == filters.document_id)

        query = select(Job)
        count_query = select(func.count(Job.id))
        if conditions:
            query = query.where(and_(*conditions))
            count_query = count_query.where(and_(*conditions))

        total = (await session.execute(count_query)).scalar() or 0
        result = await session.execute(
            query.order_by(Job.priority.desc(), Job.created_at.asc())
            .offset(filters.offset)
            .limit(filters.limit)
        )
        return list(result.scalars().all()), total

    async def get_job_stats(self, session: AsyncSession) -> JobStatsResponse:
        total_jobs = (await session.execute(select(func.count(Job.id)))).scalar() or 0

        status_result = await session.execute(
            select(Job.status, func.count(Job.id)).group_by(Job.status)
        )
        by_status = {status: count for status, count in status_result.all()}

        type_result = await session.execute(
            select(Job.type, func.count(Job.id)).group_by(Job.type)
        )
        by_type = {job_type: count for job_type, count in type_result.all()}

        queue_depth = by_status.get(JobStatus.QUEUED.value, 0) + by_status.get(
            JobStatus.PROCESSING.value, 0
        )

        one_hour_ago = datetime.now(UTC) - timedelta(hours=1)
        errors_recent = await session.execute(
            select(func.count(Job.id)).where(
                and_(
                    Job.status == JobStatus.ERROR.value,
                    Job.updated_at >= one_hour_ago,
                )
            )
        )
        errors_last_hour = errors_recent.scalar() or 0

        avg_result = await session.execute(
            select(
                func.avg(func.extract("epoch", Job.finished_at - Job.started_at))
            ).where(
                and_(
                    Job.status == JobStatus.DONE.value,
                    Job.started_at.is_not(None),
                    Job.finished_at.is_not(None),
                )
            )
        )
        avg_runtime = avg_result.scalar()

        return JobStatsResponse(
            total_jobs=total_jobs,
            by_status=by_status,
            by_type=by_type,
            queue_depth=queue_depth,
            errors_last_hour=errors_last_hour,
            avg_runtime_seconds=float(avg_runtime) if avg_runtime is not None else None,
        )

    async def retry_job(self, session: AsyncSession, job_id: UUID) -> Job:
        """Re-queue an errored job immediately with a fresh attempt budget."""
        job = await self.get_job_or_404(session, job_id)
        if not job.can_retry():
            raise ConflictError(
                f"Only jobs in status '{JobStatus.ERROR.value}' can be retried",
                details={"job_id": str(job_id), "status": job.status},
            )

        now = datetime.now(UTC)
        result = await session.execute(
            update(Job)
            .where(and_(Job.id == job_id, Job.status == JobStatus.ERROR.value))
            .values(
                status=JobStatus.QUEUED.value,
                attempts=0,
                last_error=None,
                error_code=None,
                locked_at=None,
                locked_by=None,
                heartbeat_at=None,
                started_at=None,
                finished_at=None,
                scheduled_at=now,
                updated_at=now,
            )
        )
        await session.commit()

        if result.rowcount == 0:
            raise ConflictError("Job changed state before it could be retried")

        logger.info("Job retried", extra={"job_id": str(job_id)})
        await session.refresh(job)
        return job

    async def cancel_job(self, session: AsyncSession, job_id: UUID) -> Job:
        """Cancel a queued or processing job."""
        job = await self.get_job_or_404(session, job_id)
        if not job.is_active():
            raise ConflictError(
                "Only queued or processing jobs can be canceled",
                details={"job_id": str(job_id), "status": job.status},
            )

        now = datetime.now(UTC)
        result = await session.execute(
            update(Job)
            .where(and_(Job.id == job_id, Job.status.in_(ACTIVE_STATUSES)))
            .values(
                status=JobStatus.CANCELED.value,
                finished_at=now,
                last_error="Cancelled by user",
                locked_at=None,
                locked_by=None,
                updated_at=now,
            )
        )
        if result.rowcount == 0:
            await session.rollback()
            raise ConflictError("Job finished before it could be canceled")

        await self.mark_documents_failed(session, [job.document_id])
        await session.commit()

        logger.info("Job canceled", extra={"job_id": str(job_id)})
        await session.refresh(job)
        return job

    async def cleanup_old_jobs(self, session: AsyncSession) -> int:
        """Delete finished jobs older than the retention window."""
        retention_days = self.settings.job_cleanup_after_days
        cutoff = datetime.now(UTC) - timedelta(days=retention_days)

        result = await session.execute(
            Job.__table__.delete().where(
                and_(Job.status.in_(FINISHED_STATUSES), Job.updated_at < cutoff)
            )
        )
        deleted_count = result.rowcount
        await session.commit()

        if deleted_count > 0:
            logger.info(
                "Cleaned up old jobs",
                extra={"deleted_count": deleted_count, "retention_days": retention_days},
            )
        return deleted_count

    async def mark_documents_failed(
        self, session: AsyncSession, document_ids: list[UUID | None]
    ) -> None:
        """Move documents whose pipeline stopped mid-way to ``error``.

        Documents that already reached review or processed keep their status.
        Does not commit.
        """
        ids = {document_id for document_id in document_ids if document_id is not None}
        if not ids:
            return
        await session.execute(
            update(Document)
            .where(
                and_(
                    Document.id.in_(ids),
                    Document.status.in_(IN_FLIGHT_DOCUMENT_STATUSES),
                )
            )
            .values(status=DocumentStatus.ERROR.value)
            .execution_options(synchronize_session=False)
        )
