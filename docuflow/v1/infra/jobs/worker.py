"""
Postgres-backed pipeline worker with heartbeats, retries and stuck-job recovery.
"""

import asyncio
import os
import random
import signal
import socket
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from docuflow.config.logging import bind_job_context, clear_job_context, get_logger
from docuflow.config.settings import Settings
from docuflow.infra.database import close_database, session_scope
from docuflow.v1.core.registries import job_registry
from docuflow.v1.documents.models import Document, DocumentStatus
from docuflow.v1.infra.jobs.models import Job, JobStatus, JobType
from docuflow.v1.infra.jobs.service import JobService

logger = get_logger(__name__)

# Error codes recorded on jobs
PROCESSING_ERROR = "PROCESSING_ERROR"
RETRY_SCHEDULED = "RETRY_SCHEDULED"
PERMANENT_ERROR = "PERMANENT_ERROR"
MAX_ATTEMPTS_EXCEEDED = "MAX_ATTEMPTS_EXCEEDED"
WORKER_TIMEOUT = "WORKER_TIMEOUT"


class PermanentJobError(Exception):
    """Failure that retrying cannot fix (bad payload, missing document, ...)."""


@dataclass(frozen=True)
class JobContext:
    """Identifiers handed to a handler for the job being processed."""

    job_id: UUID
    document_id: UUID | None
    attempt: int
    worker_id: str


def calculate_backoff_seconds(
    attempt: int,
    base_s: float,
    max_s: float,
    jitter: float,
    uniform: Callable[[float, float], float] = random.uniform,
) -> float:
    """
    Delay before the next attempt.

    ``min(max_s, base_s * 2^(attempt-1))`` scaled by a factor drawn from
    ``[1 - jitter, 1 + jitter]``, never below one second.
    """
    exponent = max(attempt, 1) - 1
    delay = min(max_s, base_s * (2**exponent))
    factor = uniform(1 - jitter, 1 + jitter)
    return max(1.0, delay * factor)


class JobWorker:
    """
    Polling pipeline worker.

    Features:
    - SELECT FOR UPDATE SKIP LOCKED for claiming jobs, bounded by free slots
    - Heartbeats and visibility timeout for stuck job recovery
    - Exponential backoff with jitter for retries
    - Next pipeline stage enqueued after each successful job
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.worker_id = f"{socket.gethostname()}-{os.getpid()}-{id(self)}"
        self.running = False
        self.active_jobs: set[UUID] = set()
        self._tasks: set[asyncio.Task] = set()
        self._stop_event = asyncio.Event()
        self.job_service = JobService(settings)

    async def start(self) -> None:
        """Start the claim, heartbeat and recovery loops."""
        if self.running:
            raise RuntimeError("Worker is already running")

        self.running = True
        self._stop_event.clear()
        logger.info(
            "Starting job worker",
            worker_id=self.worker_id,
            concurrency=self.settings.job_concurrency,
            poll_interval_ms=self.settings.job_poll_interval_ms,
            handlers=job_registry.list(),
        )

        try:
            await asyncio.gather(
                self._worker_loop(),
                self._heartbeat_loop(),
                self._stuck_job_recovery_loop(),
                return_exceptions=True,
            )
        finally:
            self.running = False

    async def stop(self) -> None:
        """Stop claiming and wait for active jobs up to the shutdown timeout."""
        logger.info("Stopping job worker", worker_id=self.worker_id)
        self.running = False
        self._stop_event.set()

        pending = [task for task in self._tasks if not task.done()]
        if pending:
            done, not_done = await asyncio.wait(
                pending, timeout=self.settings.job_shutdown_timeout_s
            )
            for task in not_done:
                task.cancel()
            if not_done:
                await asyncio.gather(*not_done, return_exceptions=True)
                logger.warning(
                    "Worker stopped with active jobs",
                    worker_id=self.worker_id,
                    active_jobs=len(not_done),
                )

    async def _sleep(self, seconds: float) -> None:
        """Sleep that returns early once stop() is called."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except TimeoutError:
            pass

    async def run_once(self) -> int:
        """Claim one batch and process it to completion. Returns the batch size."""
        async with session_scope(self.settings) as session:
            jobs = await self._claim_jobs(session)
        if jobs:
            await asyncio.gather(*(self._process_job(job) for job in jobs))
        return len(jobs)

    async def drain(self, max_rounds: int = 50) -> int:
        """Run batches until the queue has nothing runnable left."""
        processed = 0
        for _ in range(max_rounds):
            count = await self.run_once()
            if count == 0:
                break
            processed += count
        return processed

    async def _worker_loop(self) -> None:
        poll_interval = self.settings.job_poll_interval_ms / 1000
        while self.running:
            try:
                if len(self.active_jobs) >= self.settings.job_concurrency:
                    await self._sleep(poll_interval)
                    continue

                async with session_scope(self.settings) as session:
                    jobs_to_process = await self._claim_jobs(session)

                for job in jobs_to_process:
                    task = asyncio.create_task(self._process_job(job))
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)

                if not jobs_to_process:
                    await self._sleep(poll_interval)
                else:
                    await asyncio.sleep(0)

            except Exception:
                logger.exception("Error in worker loop", worker_id=self.worker_id)
                await self._sleep(poll_interval)

    async def _claim_jobs(self, session: AsyncSession) -> list[Job]:
        """
        Claim runnable jobs using SELECT FOR UPDATE SKIP LOCKED.

        Highest priority first, then oldest. Claimed rows move to processing
        with this worker's lock and an incremented attempt counter.
        """
        available_slots = max(0, self.settings.job_concurrency - len(self.active_jobs))
        if available_slots == 0:
            return []

        now = datetime.now(UTC)
        claim_query = (
            select(Job)
            .where(
                and_(
                    Job.status == JobStatus.QUEUED.value,
                    (Job.scheduled_at.is_(None)) | (Job.scheduled_at <= now),
                )
            )
            .order_by(Job.priority.desc(), Job.created_at.asc())
            .limit(available_slots)
            .with_for_update(skip_locked=True)
        )

        result = await session.execute(claim_query)
        jobs = list(result.scalars().all())
        if not jobs:
            return []

        for job in jobs:
            job.status = JobStatus.PROCESSING.value
            job.locked_at = now
            job.locked_by = self.worker_id
            job.heartbeat_at = now
            job.started_at = now
            job.finished_at = None
            job.attempts = job.attempts + 1
        await session.commit()

        self.active_jobs.update(job.id for job in jobs)
        logger.info(
            "Claimed jobs",
            worker_id=self.worker_id,
            job_count=len(jobs),
            job_ids=[str(job.id) for job in jobs],
        )
        return jobs

    async def _process_job(self, job: Job) -> None:
        """Run the handler for one claimed job and record the outcome."""
        bind_job_context(job_id=str(job.id), job_type=job.type)
        started_at = datetime.now(UTC)
        try:
            logger.info("Processing job started", attempt=job.attempts)
            try:
                handler = job_registry.get(job.type)
            except KeyError as e:
                raise PermanentJobError(f"Unknown job type: {job.type}") from e
            try:
                payload = handler.payload_model.model_validate(job.payload or {})
            except PydanticValidationError as e:
                raise PermanentJobError(f"Invalid payload: {e.error_count()} error(s)") from e

            context = JobContext(
                job_id=job.id,
                document_id=job.document_id,
                attempt=job.attempts,
                worker_id=self.worker_id,
            )

            async with session_scope(self.settings) as session:
                result = await handler.handle(session, context, payload) or {}
                counters = result.pop("metrics", {})
                finished_at = datetime.now(UTC)
                metrics = {
                    "started_at": started_at.isoformat(),
                    "finished_at": finished_at.isoformat(),
                    "duration_ms": int((finished_at - started_at).total_seconds() * 1000),
                    "status": "WARN" if result.get("warnings") or result.get("errors") else "OK",
                    **counters,
                }
                completed = await self._mark_job_done(session, job, result, metrics)
                if not completed:
                    await session.rollback()
                    logger.warning("Job changed state while processing, discarding result")
                    return

                # Completion and the next stage commit together
                if handler.next_stage:
                    await self.job_service.enqueue_next_stage(
                        session,
                        job,
                        JobType(handler.next_stage),
                        handler.next_payload(payload, result),
                    )
                await session.commit()

            logger.info("Processing job completed", duration_ms=metrics["duration_ms"])

        except asyncio.CancelledError:
            logger.info("Job processing interrupted, releasing job")
            async with session_scope(self.settings) as session:
                await self._release_job(session, job)
            raise

        except PermanentJobError as e:
            logger.error("Job failed permanently", error=str(e))
            async with session_scope(self.settings) as session:
                await self._mark_job_failed(
                    session, job, str(e), PERMANENT_ERROR, started_at, type(e).__name__
                )

        except Exception as e:
            logger.exception("Job processing failed", error=str(e))
            async with session_scope(self.settings) as session:
                if job.attempts < job.max_attempts:
                    delay = calculate_backoff_seconds(
                        job.attempts,
                        self.settings.job_backoff_base_ms / 1000,
                        self.settings.job_max_backoff_s,
                        self.settings.job_backoff_jitter,
                    )
                    await self._schedule_retry(session, job, delay, str(e), started_at)
                else:
                    await self._mark_job_failed(
                        session, job, str(e), MAX_ATTEMPTS_EXCEEDED, started_at, type(e).__name__
                    )

        finally:
            self.active_jobs.discard(job.id)
            clear_job_context("job_id", "job_type")

    def _owned(self, job: Job):
        """Rows this worker may still complete: processing and locked by us."""
        return and_(
            Job.id == job.id,
            Job.status == JobStatus.PROCESSING.value,
            Job.locked_by == self.worker_id,
        )

    async def _mark_job_done(
        self,
        session: AsyncSession,
        job: Job,
        result: dict[str, Any],
        metrics: dict[str, Any],
    ) -> bool:
        """Flag the job done in the open transaction. The caller commits."""
        now = datetime.now(UTC)
        outcome = await session.execute(
            update(Job)
            .where(self._owned(job))
            .values(
                status=JobStatus.DONE.value,
                result=result,
                metrics=metrics,
                finished_at=now,
                locked_at=None,
                locked_by=None,
                heartbeat_at=None,
                last_error=None,
                error_code=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return outcome.rowcount > 0

    def _error_metrics(
        self, started_at: datetime, error_code: str, exception_type: str
    ) -> dict[str, Any]:
        finished_at = datetime.now(UTC)
        return {
            "started_at": started_at.isoformat(),
            "finished_at": finished_at.isoformat(),
            "duration_ms": int((finished_at - started_at).total_seconds() * 1000),
            "status": "ERROR",
            "error": PROCESSING_ERROR,
            "error_code": error_code,
            "exception": exception_type,
        }

    async def _mark_job_failed(
        self,
        session: AsyncSession,
        job: Job,
        error: str,
        error_code: str,
        started_at: datetime,
        exception_type: str,
    ) -> None:
        now = datetime.now(UTC)
        outcome = await session.execute(
            update(Job)
            .where(self._owned(job))
            .values(
                status=JobStatus.ERROR.value,
                last_error=error,
                error_code=error_code,
                metrics=self._error_metrics(started_at, error_code, exception_type),
                finished_at=now,
                locked_at=None,
                locked_by=None,
                heartbeat_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if outcome.rowcount and job.document_id is not None:
            await session.execute(
                update(Document)
                .where(Document.id == job.document_id)
                .values(status=DocumentStatus.ERROR.value)
                .execution_options(synchronize_session=False)
            )
        await session.commit()

    async def _schedule_retry(
        self,
        session: AsyncSession,
        job: Job,
        delay_seconds: float,
        error: str,
        started_at: datetime,
    ) -> None:
        now = datetime.now(UTC)
        scheduled_at = now + timedelta(seconds=delay_seconds)
        await session.execute(
            update(Job)
            .where(self._owned(job))
            .values(
                status=JobStatus.QUEUED.value,
                scheduled_at=scheduled_at,
                last_error=error,
                error_code=RETRY_SCHEDULED,
                metrics=self._error_metrics(started_at, RETRY_SCHEDULED, "Exception"),
                locked_at=None,
                locked_by=None,
                heartbeat_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        logger.info(
            "Job scheduled for retry",
            attempt=job.attempts,
            max_attempts=job.max_attempts,
            scheduled_at=scheduled_at.isoformat(),
        )

    async def _release_job(self, session: AsyncSession, job: Job) -> None:
        """Hand an interrupted job back to the queue without spending an attempt."""
        await session.execute(
            update(Job)
            .where(self._owned(job))
            .values(
                status=JobStatus.QUEUED.value,
                attempts=max(job.attempts - 1, 0),
                locked_at=None,
                locked_by=None,
                heartbeat_at=None,
                updated_at=datetime.now(UTC),
            )
            .execution_options(synchronize_session=False)
        )
        await session.commit()

    async def _heartbeat_loop(self) -> None:
        while self.running:
            try:
                if self.active_jobs:
                    async with session_scope(self.settings) as session:
                        await session.execute(
                            update(Job)
                            .where(
                                and_(
                                    Job.id.in_(list(self.active_jobs)),
                                    Job.locked_by == self.worker_id,
                                )
                            )
                            .values(heartbeat_at=datetime.now(UTC))
                            .execution_options(synchronize_session=False)
                        )
                        await session.commit()

                await self._sleep(self.settings.job_heartbeat_interval_s)

            except Exception:
                logger.exception("Error updating heartbeats", worker_id=self.worker_id)
                await self._sleep(self.settings.job_heartbeat_interval_s)

    async def recover_stuck_jobs(self, session: AsyncSession) -> int:
        """Re-queue processing jobs whose heartbeat is older than the visibility timeout."""
        timeout_seconds = self.settings.job_visibility_timeout_s
        now = datetime.now(UTC)
        cutoff = now - timedelta(seconds=timeout_seconds)

        stuck = and_(
            Job.status == JobStatus.PROCESSING.value,
            Job.heartbeat_at < cutoff,
        )
        message = f"Job timeout after {timeout_seconds}s without heartbeat"

        requeued = await session.execute(
            update(Job)
            .where(and_(stuck, Job.attempts < Job.max_attempts))
            .values(
                status=JobStatus.QUEUED.value,
                scheduled_at=None,
                locked_at=None,
                locked_by=None,
                heartbeat_at=None,
                error_code=WORKER_TIMEOUT,
                last_error=message,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        exhausted = await session.execute(
            update(Job)
            .where(and_(stuck, Job.attempts >= Job.max_attempts))
            .values(
                status=JobStatus.ERROR.value,
                finished_at=now,
                locked_at=None,
                locked_by=None,
                heartbeat_at=None,
                error_code=MAX_ATTEMPTS_EXCEEDED,
                last_error=message,
                updated_at=now,
            )
            .returning(Job.document_id)
            .execution_options(synchronize_session=False)
        )
        failed_documents = list(exhausted.scalars().all())
        await self.job_service.mark_documents_failed(session, failed_documents)
        await session.commit()

        recovered = requeued.rowcount + len(failed_documents)
        if recovered:
            logger.warning(
                "Recovered stuck jobs",
                requeued=requeued.rowcount,
                failed=len(failed_documents),
                timeout_seconds=timeout_seconds,
            )
        return recovered

    async def _stuck_job_recovery_loop(self) -> None:
        interval = max(5, self.settings.job_visibility_timeout_s // 2)
        while self.running:
            try:
                async with session_scope(self.settings) as session:
                    await self.recover_stuck_jobs(session)
                await self._sleep(interval)

            except Exception:
                logger.exception("Error in stuck job recovery")
                await self._sleep(interval)


# Worker instance management
_worker_instance: JobWorker | None = None


def get_worker(settings: Settings) -> JobWorker:
    """Get or create the global worker instance."""
    global _worker_instance
    if _worker_instance is None:
        _worker_instance = JobWorker(settings)
    return _worker_instance


async def run_worker(settings: Settings) -> None:
    """Run a standalone worker until SIGINT/SIGTERM."""
    from docuflow.v1.infra.jobs.registry_init import register_job_handlers

    register_job_handlers()
    worker = get_worker(settings)
    worker_task = asyncio.create_task(worker.start())

    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_requested.set))

    await stop_requested.wait()
    logger.info("Shutdown signal received")
    await worker.stop()
    await worker_task
    await close_database()


def main() -> None:
    """Entry point for the docuflow-worker command."""
    from docuflow.config.logging import setup_logging
    from docuflow.config.settings import settings

    setup_logging()
    asyncio.run(run_worker(settings))
