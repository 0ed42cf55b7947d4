"""
Job management API endpoints.

Enqueueing, monitoring, retry and cancellation of pipeline jobs.
"""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from docuflow.config.settings import Settings, SettingsDep
from docuflow.infra.database import get_session
from docuflow.v1.core.exceptions import create_success_response, get_request_id
from docuflow.v1.core.security import Principal, PrincipalDep
from docuflow.v1.infra.jobs.models import JobStatus, JobType
from docuflow.v1.infra.jobs.schemas import (
    JobCleanupResponse,
    JobCreate,
    JobListFilters,
    JobListResponse,
    JobResponse,
)
from docuflow.v1.infra.jobs.service import JobService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def enqueue_job(
    job_request: JobCreate,
    request: Request,
    response: Response,
    principal: Principal = PrincipalDep,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Enqueue a job. Returns 200 instead of 201 when an existing job is reused."""
    request_id = get_request_id(request)
    result = await JobService(settings).enqueue_job(
        session, job_request, principal, request_id
    )
    if result.deduplicated:
        response.status_code = status.HTTP_200_OK

    logger.info(
        "Job enqueued via API",
        extra={
            "job_id": str(result.job_id),
            "type": job_request.type.value,
            "user_id": principal.user_id,
            "deduplicated": result.deduplicated,
        },
    )
    return create_success_response(data=result.model_dump(), request_id=request_id)


@router.get("", response_model=dict)
async def list_jobs(
    request: Request,
    status: list[JobStatus] | None = Query(default=None, description="Filter by status"),
    type: JobType | None = Query(default=None, description="Filter by job type"),
    document_id: UUID | None = Query(default=None, description="Filter by document"),
    limit: int = Query(default=50, ge=1, le=1000, description="Maximum results"),
    offset: int = Query(default=0, ge=0, description="Results offset"),
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """List jobs, highest priority first, then oldest."""
    filters = JobListFilters(
        status=status, type=type, document_id=document_id, limit=limit, offset=offset
    )
    jobs, total = await JobService(settings).list_jobs(session, filters)

    response_data = JobListResponse(
        jobs=[JobResponse.model_validate(job) for job in jobs],
        total=total,
        limit=limit,
        offset=offset,
    )
    return create_success_response(
        data=response_data.model_dump(), request_id=get_request_id(request)
    )


@router.get("/stats/overview", response_model=dict)
async def get_job_stats(
    request: Request,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Totals by status and type, queue depth, recent errors and average runtime."""
    stats = await JobService(settings).get_job_stats(session)
    return create_success_response(data=stats.model_dump(), request_id=get_request_id(request))


@router.post("/cleanup", response_model=dict)
async def cleanup_jobs(
    request: Request,
    principal: Principal = PrincipalDep,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Delete finished jobs older than JOB_CLEANUP_AFTER_DAYS."""
    deleted = await JobService(settings).cleanup_old_jobs(session)
    logger.info(
        "Job cleanup via API",
        extra={"deleted_count": deleted, "user_id": principal.user_id},
    )
    data = JobCleanupResponse(deleted=deleted, retention_days=settings.job_cleanup_after_days)
    return create_success_response(data=data.model_dump(), request_id=get_request_id(request))


@router.get("/{job_id}", response_model=dict)
async def get_job(
    job_id: UUID,
    request: Request,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    job = await JobService(settings).get_job_or_404(session, job_id)
    return create_success_response(
        data=JobResponse.model_validate(job).model_dump(),
        request_id=get_request_id(request),
    )


@router.post("/{job_id}/retry", response_model=dict)
async def retry_job(
    job_id: UUID,
    request: Request,
    principal: Principal = PrincipalDep,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Retry an errored job. Any other status is a 409."""
    job = await JobService(settings).retry_job(session, job_id)

    logger.info(
        "Job retried via API",
        extra={"job_id": str(job_id), "user_id": principal.user_id},
    )
    return create_success_response(
        data=JobResponse.model_validate(job).model_dump(),
        message="Job re-queued",
        request_id=get_request_id(request),
    )


@router.post("/{job_id}/cancel", response_model=dict)
async def cancel_job(
    job_id: UUID,
    request: Request,
    principal: Principal = PrincipalDep,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Cancel a queued or processing job. Any other status is a 409."""
    job = await JobService(settings).cancel_job(session, job_id)

    logger.info(
        "Job canceled via API",
        extra={"job_id": str(job_id), "user_id": principal.user_id},
    )
    return create_success_response(
        data=JobResponse.model_validate(job).model_dump(),
        message="Job canceled",
        request_id=get_request_id(request),
    )
