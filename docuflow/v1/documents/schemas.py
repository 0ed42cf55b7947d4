from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from docuflow.v1.core.pagination import PageMeta
from docuflow.v1.documents.models import DocumentStatus, DocumentType
from docuflow.v1.infra.jobs.schemas import JobResponse


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    original_name: str
    mime_type: str
    size: int
    sha256: str
    type: DocumentType
    status: DocumentStatus
    page_count: int | None = None
    member_id: UUID | None = None
    institution_id: UUID | None = None
    uploaded_by: str | None = None
    created_at: datetime
    updated_at: datetime


class ExtractionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    field_name: str
    field_value: str
    page_index: int | None = None
    source: str
    confidence: float | None = None


class BankTransferResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    beneficiary_name: str | None = None
    beneficiary_cuit: str | None = None
    cbu: str | None = None
    transfer_date: date | None = None
    operation_number: str | None = None
    reference_number: str | None = None
    amount: Decimal


class ContributionItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    file_number: str | None = None
    full_name_raw: str
    remunerative_amount: Decimal | None = None
    contribution_amount: Decimal | None = None


class ContributionBatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    institution_id: UUID | None = None
    institution_name: str
    institution_cuit: str | None = None
    period: str | None = None
    concept: str
    people_count: int
    total_amount: Decimal
    reconciliation_status: str
    items: list[ContributionItemResponse] = Field(default_factory=list)


class DocumentDetail(DocumentResponse):
    extractions: list[ExtractionResponse] = Field(default_factory=list)
    jobs: list[JobResponse] = Field(default_factory=list)
    bank_transfers: list[BankTransferResponse] = Field(default_factory=list)
    contribution_batches: list[ContributionBatchResponse] = Field(default_factory=list)


class DocumentFilters(BaseModel):
    type: DocumentType | None = None
    status: DocumentStatus | None = None
    member_id: UUID | None = None
    institution_id: UUID | None = None
    search: str | None = Field(default=None, description="Substring of the original file name")


class DocumentList(BaseModel):
    documents: list[DocumentResponse]
    meta: PageMeta


class DocumentUploadResponse(BaseModel):
    document: DocumentResponse
    job_id: UUID | None = None
    deduplicated: bool = False
