"""create institutions, members, documents and parsed record tables

Revision ID: 3b7e2c1a9f40
Revises:
Create Date: 2026-09-21 10:12:41.508213

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b7e2c1a9f40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "institutions",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("cuit", sa.Text, nullable=False, unique=True),
        sa.Column("address", sa.Text, nullable=True),
        sa.Column("phone", sa.Text, nullable=True),
        sa.Column("email", sa.Text, nullable=True),
        sa.Column("website", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "members",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("dni", sa.Text, nullable=False, unique=True),
        sa.Column("first_name", sa.Text, nullable=False),
        sa.Column("last_name", sa.Text, nullable=False),
        sa.Column("email", sa.Text, nullable=True),
        sa.Column("phone", sa.Text, nullable=True),
        sa.Column("address", sa.Text, nullable=True),
        sa.Column("birth_date", sa.Date, nullable=True),
        sa.Column("nationality", sa.Text, nullable=True),
        sa.Column("status", sa.Text, nullable=False, server_default="PENDING_VERIFICATION"),
        sa.Column(
            "joined_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "institution_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("institutions.id", ondelete="RESTRICT"),
            nullable=True,
        ),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('ACTIVE', 'PENDING_VERIFICATION', 'SUSPENDED', 'INACTIVE', 'DECEASED')",
            name="members_status_check",
        ),
    )
    op.create_index("ix_members_institution_id", "members", ["institution_id"])
    op.create_index("ix_members_last_name", "members", ["last_name"])

    op.create_table(
        "documents",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("original_name", sa.Text, nullable=False),
        sa.Column("storage_path", sa.Text, nullable=False),
        sa.Column("mime_type", sa.Text, nullable=False),
        sa.Column("size", sa.Integer, nullable=False),
        sa.Column("sha256", sa.Text, nullable=False, unique=True),
        sa.Column("type", sa.Text, nullable=False, server_default="DESCONOCIDO"),
        sa.Column("status", sa.Text, nullable=False, server_default="uploaded"),
        sa.Column("page_count", sa.Integer, nullable=True),
        sa.Column("uploaded_by", sa.Text, nullable=True),
        sa.Column(
            "member_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("members.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "institution_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("institutions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.CheckConstraint(
            "type IN ('LISTADO_APORTE', 'COMPROBANTE_BANCO', 'DESCONOCIDO')",
            name="documents_type_check",
        ),
        sa.CheckConstraint(
            "status IN ('uploaded', 'processing', 'review', 'processed', 'error')",
            name="documents_status_check",
        ),
    )
    op.create_index("ix_documents_member_id", "documents", ["member_id"])
    op.create_index("ix_documents_institution_id", "documents", ["institution_id"])
    op.create_index("ix_documents_created_at", "documents", ["created_at"])

    op.create_table(
        "extractions",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "document_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("documents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("field_name", sa.Text, nullable=False),
        sa.Column("field_value", sa.Text, nullable=False, server_default=""),
        sa.Column("page_index", sa.Integer, nullable=True),
        sa.Column("source", sa.Text, nullable=False),
        sa.Column("confidence", sa.Float, nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("document_id", "field_name", name="uq_extractions_document_field"),
    )

    op.create_table(
        "bank_transfers",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "document_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("documents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("beneficiary_name", sa.Text, nullable=True),
        sa.Column("beneficiary_cuit", sa.Text, nullable=True),
        sa.Column("cbu", sa.Text, nullable=True),
        sa.Column("transfer_date", sa.Date, nullable=True),
        sa.Column("operation_number", sa.Text, nullable=True),
        sa.Column("reference_number", sa.Text, nullable=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "contribution_batches",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "document_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("documents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "institution_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("institutions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("institution_name", sa.Text, nullable=False),
        sa.Column("institution_cuit", sa.Text, nullable=True),
        sa.Column("period", sa.Text, nullable=True),
        sa.Column("concept", sa.Text, nullable=False, server_default="Aporte sindical"),
        sa.Column("people_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column(
            "reconciliation_status", sa.Text, nullable=False, server_default="PENDIENTE"
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "reconciliation_status IN ('PENDIENTE', 'CONCILIADO', 'DIFERENCIA')",
            name="contribution_batches_reconciliation_check",
        ),
    )

    op.create_table(
        "contribution_items",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "batch_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("contribution_batches.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("file_number", sa.Text, nullable=True),
        sa.Column("full_name_raw", sa.Text, nullable=False),
        sa.Column("remunerative_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("contribution_amount", sa.Numeric(14, 2), nullable=True),
    )

    op.create_table(
        "system_config",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("app_name", sa.Text, nullable=False),
        sa.Column("logo_url", sa.Text, nullable=True),
        sa.Column("primary_color", sa.Text, nullable=False),
        sa.Column("secondary_color", sa.Text, nullable=False),
        sa.Column("primary_text_color", sa.Text, nullable=False),
        sa.Column("secondary_text_color", sa.Text, nullable=False),
        sa.Column("border_radius", sa.Text, nullable=False),
        sa.Column("default_locale", sa.Text, nullable=False),
        *_timestamps(),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("system_config")
    op.drop_table("contribution_items")
    op.drop_table("contribution_batches")
    op.drop_table("bank_transfers")
    op.drop_table("extractions")
    op.drop_table("documents")
    op.drop_table("members")
    op.drop_table("institutions")
