from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from docuflow.infra.database import Base, TimestampMixin


class DocumentType(str, Enum):
    LISTADO_APORTE = "LISTADO_APORTE"
    COMPROBANTE_BANCO = "COMPROBANTE_BANCO"
    DESCONOCIDO = "DESCONOCIDO"


class DocumentStatus(str, Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    REVIEW = "review"
    PROCESSED = "processed"
    ERROR = "error"


class ExtractionSource(str, Enum):
    TEXT_LAYER = "text_layer"
    OCR = "ocr"
    PLAIN = "plain"
    PARSER = "parser"


class ReconciliationStatus(str, Enum):
    PENDIENTE = "PENDIENTE"
    CONCILIADO = "CONCILIADO"
    DIFERENCIA = "DIFERENCIA"


FULL_TEXT_FIELD = "full_text"


def page_field_name(page_index: int) -> str:
    return f"page:{page_index}"


class Document(Base, TimestampMixin):
    """An uploaded file and everything derived from it."""

    __tablename__ = "documents"

    id: Mapped[UUID] = mapped_column(PG_UUID, primary_key=True, default=uuid4)
    original_name: Mapped[str] = mapped_column(Text, nullable=False)
    storage_path: Mapped[str] = mapped_column(Text, nullable=False)
    mime_type: Mapped[str] = mapped_column(Text, nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    sha256: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    type: Mapped[str] = mapped_column(
        Text, nullable=False, default=DocumentType.DESCONOCIDO.value
    )
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=DocumentStatus.UPLOADED.value
    )
    page_count: Mapped[int | None] = mapped_column(Integer)
    uploaded_by: Mapped[str | None] = mapped_column(Text)

    member_id: Mapped[UUID | None] = mapped_column(
        PG_UUID, ForeignKey("members.id", ondelete="SET NULL"), nullable=True
    )
    institution_id: Mapped[UUID | None] = mapped_column(
        PG_UUID, ForeignKey("institutions.id", ondelete="SET NULL"), nullable=True
    )

    extractions: Mapped[list["Extraction"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Extraction.page_index",
    )
    bank_transfers: Mapped[list["BankTransfer"]] = relationship(
        back_populates="document", cascade="all, delete-orphan", passive_deletes=True
    )
    contribution_batches: Mapped[list["ContributionBatch"]] = relationship(
        back_populates="document", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint(
            "type IN ('LISTADO_APORTE', 'COMPROBANTE_BANCO', 'DESCONOCIDO')",
            name="documents_type_check",
        ),
        CheckConstraint(
            "status IN ('uploaded', 'processing', 'review', 'processed', 'error')",
            name="documents_status_check",
        ),
        Index("ix_documents_member_id", "member_id"),
        Index("ix_documents_institution_id", "institution_id"),
        Index("ix_documents_created_at", "created_at"),
    )


class Extraction(Base):
    """A single extracted field (page text, full text or parsed value)."""

    __tablename__ = "extractions"

    id: Mapped[UUID] = mapped_column(PG_UUID, primary_key=True, default=uuid4)
    document_id: Mapped[UUID] = mapped_column(
        PG_UUID, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    field_name: Mapped[str] = mapped_column(Text, nullable=False)
    field_value: Mapped[str] = mapped_column(Text, nullable=False, default="")
    page_index: Mapped[int | None] = mapped_column(Integer)
    source: Mapped[str] = mapped_column(Text, nullable=False)
    confidence: Mapped[float | None] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    document: Mapped[Document] = relationship(back_populates="extractions")

    __table_args__ = (
        UniqueConstraint("document_id", "field_name", name="uq_extractions_document_field"),
    )


class BankTransfer(Base):
    """Parsed bank transfer receipt (comprobante)."""

    __tablename__ = "bank_transfers"

    id: Mapped[UUID] = mapped_column(PG_UUID, primary_key=True, default=uuid4)
    document_id: Mapped[UUID] = mapped_column(
        PG_UUID, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    beneficiary_name: Mapped[str | None] = mapped_column(Text)
    beneficiary_cuit: Mapped[str | None] = mapped_column(Text)
    cbu: Mapped[str | None] = mapped_column(Text)
    transfer_date: Mapped[date | None] = mapped_column(Date)
    operation_number: Mapped[str | None] = mapped_column(Text)
    reference_number: Mapped[str | None] = mapped_column(Text)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    document: Mapped[Document] = relationship(back_populates="bank_transfers")


class ContributionBatch(Base):
    """Parsed contribution list (listado de aportes) header."""

    __tablename__ = "contribution_batches"

    id: Mapped[UUID] = mapped_column(PG_UUID, primary_key=True, default=uuid4)
    document_id: Mapped[UUID] = mapped_column(
        PG_UUID, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    institution_id: Mapped[UUID | None] = mapped_column(
        PG_UUID, ForeignKey("institutions.id", ondelete="SET NULL"), nullable=True
    )
    institution_name: Mapped[str] = mapped_column(Text, nullable=False)
    institution_cuit: Mapped[str | None] = mapped_column(Text)
    period: Mapped[str | None] = mapped_column(Text)
    concept: Mapped[str] = mapped_column(Text, nullable=False, default="Aporte sindical")
    people_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    reconciliation_status: Mapped[str] = mapped_column(
        Text, nullable=False, default=ReconciliationStatus.PENDIENTE.value
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    document: Mapped[Document] = relationship(back_populates="contribution_batches")
    items: Mapped[list["ContributionItem"]] = relationship(
        back_populates="batch", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint(
            "reconciliation_status IN ('PENDIENTE', 'CONCILIADO', 'DIFERENCIA')",
            name="contribution_batches_reconciliation_check",
        ),
    )


class ContributionItem(Base):
    """One member line inside a contribution list."""

    __tablename__ = "contribution_items"

    id: Mapped[UUID] = mapped_column(PG_UUID, primary_key=True, default=uuid4)
    batch_id: Mapped[UUID] = mapped_column(
        PG_UUID, ForeignKey("contribution_batches.id", ondelete="CASCADE"), nullable=False
    )
    file_number: Mapped[str | None] = mapped_column(Text)
    full_name_raw: Mapped[str] = mapped_column(Text, nullable=False)
    remunerative_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    contribution_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))

    batch: Mapped[ContributionBatch] = relationship(back_populates="items")
