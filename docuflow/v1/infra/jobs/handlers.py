"""
Pipeline job handlers: OCR -> PARSING -> VALIDATION -> EXPORT.

Handlers flush but never commit. The worker commits the handler's writes
together with the job completion, so a job canceled mid-run leaves no
partial results behind.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from docuflow.config.settings import ExportFormat, Settings
from docuflow.v1.core.registries import document_parser_registry, text_extractor_registry
from docuflow.v1.documents.models import (
    FULL_TEXT_FIELD,
    BankTransfer,
    ContributionBatch,
    ContributionItem,
    Document,
    DocumentStatus,
    DocumentType,
    Extraction,
    ExtractionSource,
    page_field_name,
)
from docuflow.v1.extraction.classifier import classify
from docuflow.v1.extraction.exporters import build_export_data, write_export
from docuflow.v1.extraction.parsers import ParsedBankTransfer, ParsedContributionList
from docuflow.v1.extraction.validators import (
    ValidationReport,
    validate_bank_transfer,
    validate_contribution_list,
)
from docuflow.v1.infra.jobs.models import JobType
from docuflow.v1.infra.jobs.schemas import (
    ExportPayload,
    OcrPayload,
    ParsingPayload,
    ValidationPayload,
)
from docuflow.v1.infra.jobs.worker import JobContext, PermanentJobError
from docuflow.v1.institutions.models import Institution

logger = logging.getLogger(__name__)


async def load_document(session: AsyncSession, document_id: UUID, *options) -> Document:
    result = await session.execute(
        select(Document).where(Document.id == document_id).options(*options)
    )
    document = result.scalar_one_or_none()
    if document is None:
        raise PermanentJobError(f"Document {document_id} not found")
    return document


class OcrHandler:
    """
    Extract per-page text from the stored file.

    Payload expected:
    {
        "document_id": "uuid-string",
        "sha256": "hex digest of the upload",
        "file_path": "optional override of document.storage_path"
    }
    """

    payload_model = OcrPayload
    next_stage = JobType.PARSING.value

    def __init__(self, settings: Settings):
        self.settings = settings

    async def handle(
        self, session: AsyncSession, context: JobContext, payload: OcrPayload
    ) -> dict[str, Any]:
        document = await load_document(session, payload.document_id)
        if document.sha256 != payload.sha256:
            raise PermanentJobError("Document content does not match the job's sha256")

        path = Path(payload.file_path or document.storage_path)
        if not path.is_file():
            raise PermanentJobError(f"Stored file not found: {path}")

        try:
            extractor = text_extractor_registry.get(document.mime_type)
        except KeyError as e:
            raise PermanentJobError(f"No text extractor for {document.mime_type}") from e

        # Extraction libraries are blocking
        extracted = await asyncio.to_thread(extractor.extract, path)

        await session.execute(
            delete(Extraction).where(
                Extraction.document_id == document.id,
                Extraction.source != ExtractionSource.PARSER.value,
            )
        )
        for index, page_text in enumerate(extracted.pages, start=1):
            session.add(
                Extraction(
                    document_id=document.id,
                    field_name=page_field_name(index),
                    field_value=page_text,
                    page_index=index,
                    source=extracted.method.value,
                    confidence=extracted.confidence,
                )
            )
        session.add(
            Extraction(
                document_id=document.id,
                field_name=FULL_TEXT_FIELD,
                field_value=extracted.full_text,
                page_index=None,
                source=extracted.method.value,
                confidence=extracted.confidence,
            )
        )

        document.page_count = extracted.page_count
        document.status = DocumentStatus.PROCESSING.value
        await session.flush()

        logger.info(
            "Text extracted",
            extra={
                "document_id": str(document.id),
                "pages": extracted.page_count,
                "method": extracted.method.value,
            },
        )

        warnings = []
        if extracted.char_count == 0:
            warnings.append("No text could be extracted")
        return {
            "document_id": str(document.id),
            "method": extracted.method.value,
            "pages": extracted.page_count,
            "confidence": extracted.confidence,
            "warnings": warnings,
            "metrics": {"pages": extracted.page_count, "chars": extracted.char_count},
        }

    def next_payload(self, payload: OcrPayload, result: dict[str, Any]) -> dict[str, Any]:
        return {"document_id": str(payload.document_id), "sha256": payload.sha256}


class ParsingHandler:
    """
    Classify the full text and persist the parsed records.

    Payload expected:
    {
        "document_id": "uuid-string",
        "sha256": "optional"
    }
    """

    payload_model = ParsingPayload
    next_stage = JobType.VALIDATION.value

    def __init__(self, settings: Settings):
        self.settings = settings

    async def handle(
        self, session: AsyncSession, context: JobContext, payload: ParsingPayload
    ) -> dict[str, Any]:
        document = await load_document(session, payload.document_id)

        text_result = await session.execute(
            select(Extraction.field_value).where(
                Extraction.document_id == document.id,
                Extraction.field_name == FULL_TEXT_FIELD,
            )
        )
        text = text_result.scalar_one_or_none()
        if text is None:
            raise PermanentJobError("Document has no extracted text, run OCR first")

        kind = classify(text)
        document.type = kind.value

        # Reprocessing replaces earlier parse results
        await session.execute(delete(BankTransfer).where(BankTransfer.document_id == document.id))
        await session.execute(
            delete(ContributionBatch).where(ContributionBatch.document_id == document.id)
        )
        await session.execute(
            delete(Extraction).where(
                Extraction.document_id == document.id,
                Extraction.source == ExtractionSource.PARSER.value,
            )
        )

        warnings: list[str] = []
        fields: dict[str, Any] = {}
        items = 0

        if document_parser_registry.has(kind.value):
            record = document_parser_registry.get(kind.value).parse(text)
            fields = record.fields()
            if isinstance(record, ParsedBankTransfer):
                self._add_bank_transfer(session, document, record)
            elif isinstance(record, ParsedContributionList):
                await self._add_contribution_batch(session, document, record)
                items = record.people_count
        else:
            warnings.append("Document type could not be determined")

        for name, value in fields.items():
            if value is None:
                continue
            session.add(
                Extraction(
                    document_id=document.id,
                    field_name=name,
                    field_value=str(value),
                    source=ExtractionSource.PARSER.value,
                )
            )
        await session.flush()

        logger.info(
            "Document parsed",
            extra={"document_id": str(document.id), "kind": kind.value, "items": items},
        )
        parsed_fields = sum(1 for v in fields.values() if v is not None)
        return {
            "document_id": str(document.id),
            "kind": kind.value,
            "fields": parsed_fields,
            "items": items,
            "warnings": warnings,
            "metrics": {"fields": parsed_fields, "items": items},
        }

    def _add_bank_transfer(
        self, session: AsyncSession, document: Document, record: ParsedBankTransfer
    ) -> None:
        session.add(
            BankTransfer(
                document_id=document.id,
                beneficiary_name=record.beneficiary_name,
                beneficiary_cuit=record.beneficiary_cuit,
                cbu=record.cbu,
                transfer_date=record.transfer_date,
                operation_number=record.operation_number,
                reference_number=record.reference_number,
                amount=record.amount,
            )
        )

    async def _add_contribution_batch(
        self, session: AsyncSession, document: Document, record: ParsedContributionList
    ) -> None:
        institution_id = document.institution_id
        if record.institution_cuit:
            match = await session.execute(
                select(Institution.id).where(Institution.cuit == record.institution_cuit)
            )
            institution_id = match.scalar_one_or_none() or institution_id

        session.add(
            ContributionBatch(
                document_id=document.id,
                institution_id=institution_id,
                institution_name=record.institution_name,
                institution_cuit=record.institution_cuit,
                period=record.period,
                concept=record.concept,
                people_count=record.people_count,
                total_amount=record.total_amount,
                reconciliation_status=record.reconciliation_status.value,
                items=[
                    ContributionItem(
                        file_number=item.file_number,
                        full_name_raw=item.full_name_raw,
                        remunerative_amount=item.remunerative_amount,
                        contribution_amount=item.contribution_amount,
                    )
                    for item in record.items
                ],
            )
        )

    def next_payload(self, payload: ParsingPayload, result: dict[str, Any]) -> dict[str, Any]:
        return {"document_id": str(payload.document_id), "kind": result["kind"]}


class ValidationHandler:
    """
    Validate parsed records and reconcile contribution lists.

    The document ends as ``processed`` when there are no errors and
    ``review`` otherwise.
    """

    payload_model = ValidationPayload
    next_stage = JobType.EXPORT.value

    def __init__(self, settings: Settings):
        self.settings = settings

    async def handle(
        self, session: AsyncSession, context: JobContext, payload: ValidationPayload
    ) -> dict[str, Any]:
        document = await load_document(session, payload.document_id)
        kind = payload.kind or DocumentType(document.type)

        report = ValidationReport()
        reconciliation = None

        if kind == DocumentType.COMPROBANTE_BANCO:
            transfers = (
                await session.execute(
                    select(BankTransfer).where(BankTransfer.document_id == document.id)
                )
            ).scalars().all()
            if not transfers:
                report.errors.append("No bank transfer was parsed")
            for transfer in transfers:
                report.merge(
                    validate_bank_transfer(
                        amount=transfer.amount,
                        cbu=transfer.cbu,
                        beneficiary_cuit=transfer.beneficiary_cuit,
                        transfer_date=transfer.transfer_date,
                    )
                )

        elif kind == DocumentType.LISTADO_APORTE:
            batches = (
                await session.execute(
                    select(ContributionBatch)
                    .where(ContributionBatch.document_id == document.id)
                    .options(selectinload(ContributionBatch.items))
                )
            ).scalars().all()
            if not batches:
                report.errors.append("No contribution list was parsed")
            for batch in batches:
                batch_report, status = validate_contribution_list(
                    institution_cuit=batch.institution_cuit,
                    period=batch.period,
                    total_amount=batch.total_amount,
                    item_amounts=[item.contribution_amount for item in batch.items],
                )
                batch.reconciliation_status = status.value
                reconciliation = status.value
                report.merge(batch_report)

        else:
            report.errors.append("Document type could not be determined")

        document.status = (
            DocumentStatus.PROCESSED.value if report.is_valid else DocumentStatus.REVIEW.value
        )
        await session.flush()

        logger.info(
            "Document validated",
            extra={
                "document_id": str(document.id),
                "valid": report.is_valid,
                "errors": len(report.errors),
                "warnings": len(report.warnings),
            },
        )
        return {
            "document_id": str(document.id),
            "kind": kind.value,
            "reconciliation_status": reconciliation,
            **report.to_dict(),
            "metrics": {"errors": len(report.errors), "warnings": len(report.warnings)},
        }

    def next_payload(self, payload: ValidationPayload, result: dict[str, Any]) -> dict[str, Any]:
        return {
            "document_id": str(payload.document_id),
            "format": self.settings.export_default_format.value,
        }


class ExportHandler:
    """Write ``<export_dir>/<document_id>.<ext>``. Last stage of the pipeline."""

    payload_model = ExportPayload
    next_stage = None

    def __init__(self, settings: Settings):
        self.settings = settings

    async def handle(
        self, session: AsyncSession, context: JobContext, payload: ExportPayload
    ) -> dict[str, Any]:
        document = await load_document(
            session,
            payload.document_id,
            selectinload(Document.extractions),
            selectinload(Document.bank_transfers),
            selectinload(Document.contribution_batches).selectinload(ContributionBatch.items),
        )
        fmt = payload.format or self.settings.export_default_format

        data = build_export_data(
            document,
            document.extractions,
            document.bank_transfers,
            document.contribution_batches,
        )
        path = await asyncio.to_thread(write_export, data, self.settings.export_dir, fmt)
        size = path.stat().st_size

        logger.info(
            "Document exported",
            extra={"document_id": str(document.id), "format": fmt.value, "path": str(path)},
        )
        return {
            "document_id": str(document.id),
            "format": ExportFormat(fmt).value,
            "path": str(path),
            "metrics": {"bytes": size},
        }

    def next_payload(self, payload: ExportPayload, result: dict[str, Any]) -> dict[str, Any]:
        return {}
