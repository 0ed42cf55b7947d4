import logging
from pathlib import Path
from uuid import UUID

from fastapi import APIRouter, File, Form, Query, Request, Response, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from docuflow.config.settings import Settings, SettingsDep
from docuflow.infra.database import SessionDep
from docuflow.v1.core.exceptions import NotFoundError, create_success_response, get_request_id
from docuflow.v1.core.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, PageMeta, PageParams
from docuflow.v1.core.security import Principal, PrincipalDep
from docuflow.v1.documents.models import DocumentStatus, DocumentType
from docuflow.v1.documents.schemas import (
    BankTransferResponse,
    ContributionBatchResponse,
    DocumentDetail,
    DocumentFilters,
    DocumentList,
    DocumentResponse,
    DocumentUploadResponse,
    ExtractionResponse,
)
from docuflow.v1.documents.service import DocumentService
from docuflow.v1.extraction.exporters import MEDIA_TYPES
from docuflow.v1.infra.jobs.schemas import JobResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/documents", tags=["documents"])


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def upload_document(
    request: Request,
    response: Response,
    file: UploadFile = File(..., description="PDF, JPEG, PNG or plain text"),
    member_id: UUID | None = Form(default=None),
    institution_id: UUID | None = Form(default=None),
    principal: Principal = PrincipalDep,
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
):
    """Upload a document and start the processing pipeline."""
    # One byte past the limit is enough to reject oversize files
    content = await file.read(settings.max_upload_bytes + 1)
    result = await DocumentService(settings).upload(
        session,
        filename=file.filename,
        content=content,
        content_type=file.content_type,
        member_id=member_id,
        institution_id=institution_id,
        principal=principal,
        request_id=get_request_id(request),
    )
    if result.deduplicated:
        response.status_code = status.HTTP_200_OK

    data = DocumentUploadResponse(
        document=DocumentResponse.model_validate(result.document),
        job_id=result.job.job_id if result.job else None,
        deduplicated=result.deduplicated,
    )
    return create_success_response(
        data=data.model_dump(),
        message="Document already uploaded" if result.deduplicated else "Document uploaded",
        request_id=get_request_id(request),
    )


@router.get("", response_model=dict)
async def list_documents(
    request: Request,
    type: DocumentType | None = Query(default=None),
    status: DocumentStatus | None = Query(default=None),
    member_id: UUID | None = Query(default=None),
    institution_id: UUID | None = Query(default=None),
    search: str | None = Query(default=None, description="Search by file name"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
):
    """List documents, newest first."""
    filters = DocumentFilters(
        type=type,
        status=status,
        member_id=member_id,
        institution_id=institution_id,
        search=search,
    )
    documents, total = await DocumentService(settings).list_documents(
        session, filters, PageParams(page=page, page_size=page_size)
    )
    data = DocumentList(
        documents=[DocumentResponse.model_validate(d) for d in documents],
        meta=PageMeta.build(total, page, page_size),
    )
    return create_success_response(data=data.model_dump(), request_id=get_request_id(request))


@router.get("/{document_id}", response_model=dict)
async def get_document(
    document_id: UUID,
    request: Request,
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
):
    """Document with extractions, jobs and parsed records."""
    service = DocumentService(settings)
    document = await service.get_document(session, document_id, with_records=True)
    jobs = await service.get_jobs(session, document_id)

    detail = DocumentDetail(
        **DocumentResponse.model_validate(document).model_dump(),
        extractions=[ExtractionResponse.model_validate(e) for e in document.extractions],
        jobs=[JobResponse.model_validate(j) for j in jobs],
        bank_transfers=[BankTransferResponse.model_validate(t) for t in document.bank_transfers],
        contribution_batches=[
            ContributionBatchResponse.model_validate(b) for b in document.contribution_batches
        ],
    )
    return create_success_response(data=detail.model_dump(), request_id=get_request_id(request))


@router.get("/{document_id}/file")
async def download_document_file(
    document_id: UUID,
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
):
    document = await DocumentService(settings).get_document(session, document_id)
    path = Path(document.storage_path)
    if not path.is_file():
        raise NotFoundError("Stored file is missing", details={"document_id": str(document_id)})
    return FileResponse(path, media_type=document.mime_type, filename=document.original_name)


@router.get("/{document_id}/export")
async def download_document_export(
    document_id: UUID,
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
):
    """Stream the export written by the EXPORT stage (404 until it has run)."""
    service = DocumentService(settings)
    await service.get_document(session, document_id)
    path, fmt = service.find_export(document_id)
    return FileResponse(path, media_type=MEDIA_TYPES[fmt], filename=path.name)


@router.post("/{document_id}/reprocess", response_model=dict, status_code=status.HTTP_202_ACCEPTED)
async def reprocess_document(
    document_id: UUID,
    request: Request,
    principal: Principal = PrincipalDep,
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
):
    """Enqueue a fresh OCR job, re-running the whole pipeline."""
    job = await DocumentService(settings).reprocess(
        session, document_id, principal=principal, request_id=get_request_id(request)
    )
    logger.info(
        "Document reprocess requested",
        extra={"document_id": str(document_id), "job_id": str(job.job_id), "user_id": principal.user_id},
    )
    return create_success_response(
        data=job.model_dump(), message="Reprocessing started", request_id=get_request_id(request)
    )


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: UUID,
    principal: Principal = PrincipalDep,
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
):
    await DocumentService(settings).delete_document(session, document_id)
    logger.info(
        "Document deleted via API",
        extra={"document_id": str(document_id), "user_id": principal.user_id},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
