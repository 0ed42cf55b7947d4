from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from docuflow.config.logging import get_logger
from docuflow.config.settings import Settings, SettingsDep
from docuflow.infra.database import get_session
from docuflow.v1.core.exceptions import create_success_response, get_request_id
from docuflow.v1.infra.jobs.models import Job, JobStatus

logger = get_logger(__name__)
router = APIRouter()

# A worker counts as alive if it heartbeated within this window
ACTIVE_WORKER_WINDOW_S = 300


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class WorkerHealth(BaseModel):
    """Worker health status."""

    active_workers: int
    last_heartbeat_age_seconds: int | None = None
    stuck_jobs_count: int = 0
    queue_depth: int = 0


@router.get("/health")
async def health(request: Request, session: AsyncSession = Depends(get_session)):
    """Liveness probe: a single ``SELECT 1``."""
    db_health = await _check_database_health(session)
    timestamp = datetime.now(UTC).isoformat()
    request_id = get_request_id(request)

    if not db_health.connected:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "ok": False,
                "status": "degraded",
                "error": {"message": "Database unavailable", "details": {"database": db_health.error}},
                "request_id": request_id,
                "timestamp": timestamp,
            },
        )
    return {"ok": True, "status": "healthy", "request_id": request_id, "timestamp": timestamp}


@router.get("/healthz", response_model=dict)
async def health_check(
    request: Request,
    settings: Settings = SettingsDep,
    session: AsyncSession = Depends(get_session),
):
    """Detailed health: database latency and worker/queue status."""
    db_health = await _check_database_health(session)
    overall_ok = db_health.connected

    worker_health = WorkerHealth(active_workers=0)
    if db_health.connected:
        try:
            worker_health = await _check_worker_health(session, settings)
        except Exception as e:
            # Worker stats are informative only
            logger.warning("Worker health check failed", error=str(e))

    health_data = {
        "ok": overall_ok,
        "status": "healthy" if overall_ok else "degraded",
        "version": settings.version,
        "environment": settings.environment,
        "timestamp": datetime.now(UTC).isoformat(),
        "database": db_health.model_dump(),
        "worker": worker_health.model_dump(),
    }

    return create_success_response(data=health_data, request_id=get_request_id(request))


async def _check_database_health(session: AsyncSession) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        await session.execute(text("SELECT 1"))
        response_time_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000
        return DatabaseHealth(connected=True, response_time_ms=round(response_time_ms, 2))

    except Exception as e:
        logger.warning("Database health check failed", error=str(e))
        return DatabaseHealth(connected=False, error=str(e))


async def _check_worker_health(session: AsyncSession, settings: Settings) -> WorkerHealth:
    """Check job worker health and queue status."""
    now = datetime.now(UTC)
    heartbeat_cutoff = now - timedelta(seconds=ACTIVE_WORKER_WINDOW_S)

    active_workers_result = await session.execute(
        select(func.count(func.distinct(Job.locked_by))).where(
            Job.status == JobStatus.PROCESSING.value, Job.heartbeat_at > heartbeat_cutoff
        )
    )
    active_workers = active_workers_result.scalar() or 0

    last_heartbeat_result = await session.execute(
        select(func.max(Job.heartbeat_at)).where(
            Job.status == JobStatus.PROCESSING.value, Job.heartbeat_at.is_not(None)
        )
    )
    last_heartbeat = last_heartbeat_result.scalar()
    last_heartbeat_age_seconds = (
        int((now - last_heartbeat).total_seconds()) if last_heartbeat else None
    )

    stuck_cutoff = now - timedelta(seconds=settings.job_visibility_timeout_s)
    stuck_jobs_result = await session.execute(
        select(func.count(Job.id)).where(
            Job.status == JobStatus.PROCESSING.value, Job.heartbeat_at < stuck_cutoff
        )
    )
    stuck_jobs_count = stuck_jobs_result.scalar() or 0

    queue_depth_result = await session.execute(
        select(func.count(Job.id)).where(
            Job.status.in_([JobStatus.QUEUED.value, JobStatus.PROCESSING.value])
        )
    )
    queue_depth = queue_depth_result.scalar() or 0

    return WorkerHealth(
        active_workers=active_workers,
        last_heartbeat_age_seconds=last_heartbeat_age_seconds,
        stuck_jobs_count=stuck_jobs_count,
        queue_depth=queue_depth,
    )
