"""
Document intake: storage, deduplication, browsing and pipeline kick-off.
"""

import asyncio
import hashlib
import logging
import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import Path
from uuid import UUID

from sqlalchemy import and_, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from docuflow.config.settings import ExportFormat, Settings
from docuflow.v1.core.exceptions import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    PayloadTooLargeError,
)
from docuflow.v1.core.pagination import PageParams
from docuflow.v1.core.security import Principal
from docuflow.v1.documents.models import (
    ContributionBatch,
    Document,
    DocumentStatus,
    DocumentType,
)
from docuflow.v1.documents.schemas import DocumentFilters
from docuflow.v1.extraction.exporters import export_path
from docuflow.v1.infra.jobs.models import ACTIVE_STATUSES, PIPELINE_PRIORITY, Job, JobType
from docuflow.v1.infra.jobs.schemas import JobCreate, JobEnqueueResponse
from docuflow.v1.infra.jobs.service import JobService
from docuflow.v1.institutions.models import Institution
from docuflow.v1.members.models import Member

logger = logging.getLogger(__name__)


def sha256_hex(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def resolve_mime_type(filename: str | None, content_type: str | None) -> str:
    """Use the declared content type, falling back to the file extension."""
    mime = (content_type or "").split(";")[0].strip().lower()
    if mime and mime != "application/octet-stream":
        return mime
    guessed, _ = mimetypes.guess_type(filename or "")
    return guessed or mime or "application/octet-stream"


def storage_extension(filename: str | None, mime_type: str) -> str:
    suffix = Path(filename or "").suffix.lower()
    if suffix:
        return suffix
    return mimetypes.guess_extension(mime_type) or ""


def ocr_dedupe_key(sha256: str) -> str:
    return f"ocr:{sha256}"


@dataclass
class UploadResult:
    document: Document
    job: JobEnqueueResponse | None
    deduplicated: bool


class DocumentService:
    """Service for document intake and browsing."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.job_service = JobService(settings)

    def validate_upload(self, content: bytes, mime_type: str) -> None:
        if mime_type not in self.settings.allowed_mime_types:
            raise BadRequestError(
                f"Unsupported file type: {mime_type}",
                details={"allowed": self.settings.allowed_mime_types},
            )
        if not content:
            raise BadRequestError("Uploaded file is empty")
        if len(content) > self.settings.max_upload_bytes:
            raise PayloadTooLargeError(
                f"File exceeds the {self.settings.max_upload_mb} MB limit",
                details={"size": len(content), "max_bytes": self.settings.max_upload_bytes},
            )

    async def upload(
        self,
        session: AsyncSession,
        *,
        filename: str | None,
        content: bytes,
        content_type: str | None,
        member_id: UUID | None = None,
        institution_id: UUID | None = None,
        principal: Principal | None = None,
        request_id: str | None = None,
    ) -> UploadResult:
        """
        Store an upload and enqueue its OCR job.

        An identical file (same sha256) returns the existing document
        without storing anything.
        """
        mime_type = resolve_mime_type(filename, content_type)
        self.validate_upload(content, mime_type)
        digest = sha256_hex(content)

        existing = await self.find_by_sha256(session, digest)
        if existing:
            logger.info(
                "Upload deduplicated",
                extra={"document_id": str(existing.id), "sha256": digest},
            )
            return UploadResult(document=existing, job=None, deduplicated=True)

        if member_id:
            await self._ensure_exists(session, Member, member_id, "Member")
        if institution_id:
            await self._ensure_exists(session, Institution, institution_id, "Institution")

        document_id = uuid.uuid4()
        upload_dir = Path(self.settings.upload_dir)
        storage_path = upload_dir / f"{document_id}{storage_extension(filename, mime_type)}"
        await asyncio.to_thread(self._write_file, storage_path, content)

        document = Document(
            id=document_id,
            original_name=filename or storage_path.name,
            storage_path=str(storage_path),
            mime_type=mime_type,
            size=len(content),
            sha256=digest,
            type=DocumentType.DESCONOCIDO.value,
            status=DocumentStatus.UPLOADED.value,
            member_id=member_id,
            institution_id=institution_id,
            uploaded_by=principal.user_id if principal else None,
        )
        session.add(document)
        try:
            await session.commit()
        except IntegrityError:
            # Concurrent upload of the same content won the insert
            await session.rollback()
            storage_path.unlink(missing_ok=True)
            existing = await self.find_by_sha256(session, digest)
            if existing is None:
                raise
            return UploadResult(document=existing, job=None, deduplicated=True)

        job = await self.job_service.enqueue_job(
            session,
            JobCreate(
                type=JobType.OCR,
                payload={"document_id": str(document.id), "sha256": digest},
                document_id=document.id,
                priority=PIPELINE_PRIORITY,
                dedupe_key=ocr_dedupe_key(digest),
            ),
            principal=principal,
            request_id=request_id,
        )

        logger.info(
            "Document uploaded",
            extra={
                "document_id": str(document.id),
                "mime_type": mime_type,
                "size": len(content),
                "job_id": str(job.job_id),
            },
        )
        return UploadResult(document=document, job=job, deduplicated=False)

    @staticmethod
    def _write_file(path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    async def _ensure_exists(self, session: AsyncSession, model, obj_id: UUID, label: str) -> None:
        result = await session.execute(select(model.id).where(model.id == obj_id))
        if result.scalar_one_or_none() is None:
            raise NotFoundError(f"{label} not found", details={"id": str(obj_id)})

    async def find_by_sha256(self, session: AsyncSession, digest: str) -> Document | None:
        result = await session.execute(select(Document).where(Document.sha256 == digest))
        return result.scalar_one_or_none()

    async def get_document(
        self, session: AsyncSession, document_id: UUID, *, with_records: bool = False
    ) -> Document:
        query = select(Document).where(Document.id == document_id)
        if with_records:
            query = query.options(
                selectinload(Document.extractions),
                selectinload(Document.bank_transfers),
                selectinload(Document.contribution_batches).selectinload(
                    ContributionBatch.items
                ),
            )
        result = await session.execute(query)
        document = result.scalar_one_or_none()
        if not document:
            raise NotFoundError("Document not found", details={"id": str(document_id)})
        return document

    async def get_jobs(self, session: AsyncSession, document_id: UUID) -> list[Job]:
        result = await session.execute(
            select(Job).where(Job.document_id == document_id).order_by(Job.created_at.asc())
        )
        return list(result.scalars().all())

    async def list_documents(
        self, session: AsyncSession, filters: DocumentFilters, page: PageParams
    ) -> tuple[list[Document], int]:
        conditions = []
        if filters.type:
            conditions.append(Document.type == filters.type.value)
        if filters.status:
            conditions.append(Document.status == filters.status.value)
        if filters.member_id:
            conditions.append(Document.member_id == filters.member_id)
        if filters.institution_id:
            conditions.append(Document.institution_id == filters.institution_id)
        if filters.search:
            conditions.append(Document.original_name.ilike(f"%{filters.search.strip()}%"))

        query = select(Document)
        if conditions:
            query = query.where(and_(*conditions))

        total = (
            await session.execute(select(func.count()).select_from(query.subquery()))
        ).scalar() or 0
        result = await session.execute(
            query.order_by(Document.created_at.desc(), Document.id)
            .offset(page.offset)
            .limit(page.page_size)
        )
        return list(result.scalars().all()), total

    async def _active_job_count(self, session: AsyncSession, document_id: UUID) -> int:
        result = await session.execute(
            select(func.count(Job.id)).where(
                and_(Job.document_id == document_id, Job.status.in_(ACTIVE_STATUSES))
            )
        )
        return result.scalar() or 0

    async def reprocess(
        self,
        session: AsyncSession,
        document_id: UUID,
        principal: Principal | None = None,
        request_id: str | None = None,
    ) -> JobEnqueueResponse:
        """Run the whole pipeline again from OCR."""
        document = await self.get_document(session, document_id)
        if await self._active_job_count(session, document_id):
            raise ConflictError(
                "Document is already being processed",
                details={"document_id": str(document_id)},
            )

        document.status = DocumentStatus.UPLOADED.value
        await session.commit()
        self._remove_exports(document_id)

        return await self.job_service.enqueue_job(
            session,
            JobCreate(
                type=JobType.OCR,
                payload={"document_id": str(document.id), "sha256": document.sha256},
                document_id=document.id,
                priority=PIPELINE_PRIORITY,
            ),
            principal=principal,
            request_id=request_id,
        )

    async def delete_document(self, session: AsyncSession, document_id: UUID) -> None:
        """Delete a document, its derived rows and its stored files."""
        document = await self.get_document(session, document_id)
        active = await self._active_job_count(session, document_id)
        if active:
            raise ConflictError(
                "Document has queued or processing jobs",
                details={"active_jobs": active},
            )

        storage_path = Path(document.storage_path)
        await session.execute(delete(Document).where(Document.id == document_id))
        await session.commit()

        storage_path.unlink(missing_ok=True)
        self._remove_exports(document_id)

        logger.info("Document deleted", extra={"document_id": str(document_id)})

    def _remove_exports(self, document_id: UUID) -> None:
        for fmt in ExportFormat:
            export_path(self.settings.export_dir, document_id, fmt).unlink(missing_ok=True)

    def find_export(self, document_id: UUID) -> tuple[Path, ExportFormat]:
        """Locate the export file, preferring the configured default format."""
        default = self.settings.export_default_format
        formats = [default, *[f for f in ExportFormat if f != default]]
        for fmt in formats:
            path = export_path(self.settings.export_dir, document_id, fmt)
            if path.is_file():
                return path, fmt
        raise NotFoundError(
            "Export not available yet", details={"document_id": str(document_id)}
        )
