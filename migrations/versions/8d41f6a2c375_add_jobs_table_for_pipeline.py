"""add jobs table for the document pipeline

Revision ID: 8d41f6a2c375
Revises: 3b7e2c1a9f40
Create Date: 2026-09-21 10:31:05.117904

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "8d41f6a2c375"
down_revision: Union[str, Sequence[str], None] = "3b7e2c1a9f40"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "jobs",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "type",
            sa.Text,
            nullable=False,
            comment="Job type: OCR|PARSING|VALIDATION|EXPORT",
        ),
        sa.Column(
            "status",
            sa.Text,
            nullable=False,
            server_default="queued",
            comment="Job status: queued|processing|done|error|canceled",
        ),
        sa.Column(
            "document_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("documents.id", ondelete="CASCADE"),
            nullable=True,
            comment="Document being processed",
        ),
        sa.Column(
            "payload",
            sa.JSON,
            nullable=False,
            server_default="{}",
            comment="Stage-specific parameters",
        ),
        sa.Column("result", sa.JSON, nullable=True, comment="Handler result"),
        sa.Column("metrics", sa.JSON, nullable=True, comment="Timing and handler counters"),
        sa.Column(
            "priority",
            sa.SmallInteger,
            nullable=False,
            server_default="0",
            comment="Priority 0-10, higher runs first",
        ),
        sa.Column(
            "scheduled_at",
            sa.TIMESTAMP(timezone=True),
            nullable=True,
            comment="Earliest time to run job",
        ),
        sa.Column(
            "attempts",
            sa.SmallInteger,
            nullable=False,
            server_default="0",
            comment="Number of attempts made",
        ),
        sa.Column(
            "max_attempts",
            sa.SmallInteger,
            nullable=False,
            server_default="3",
            comment="Attempts before giving up",
        ),
        # Worker coordination fields
        sa.Column(
            "locked_at",
            sa.TIMESTAMP(timezone=True),
            nullable=True,
            comment="When job was locked by worker",
        ),
        sa.Column("locked_by", sa.Text, nullable=True, comment="Worker ID that locked the job"),
        sa.Column(
            "heartbeat_at",
            sa.TIMESTAMP(timezone=True),
            nullable=True,
            comment="Last worker heartbeat",
        ),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("finished_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text, nullable=True, comment="Last error message"),
        sa.Column("error_code", sa.Text, nullable=True, comment="Structured error identifier"),
        # Tracing and deduplication
        sa.Column(
            "dedupe_key",
            sa.Text,
            nullable=True,
            comment="Deduplication key for idempotent enqueue",
        ),
        sa.Column(
            "requested_by", sa.Text, nullable=True, comment="Principal that requested the job"
        ),
        sa.Column(
            "request_id", sa.Text, nullable=True, comment="Original request ID for tracing"
        ),
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
        sa.CheckConstraint(
            "status IN ('queued', 'processing', 'done', 'error', 'canceled')",
            name="jobs_status_check",
        ),
        sa.CheckConstraint("priority BETWEEN 0 AND 10", name="jobs_priority_check"),
        sa.CheckConstraint("max_attempts BETWEEN 1 AND 10", name="jobs_max_attempts_check"),
    )

    op.create_index("ix_jobs_claim", "jobs", ["status", "priority", "created_at"])
    op.create_index("ix_jobs_document_id_type", "jobs", ["document_id", "type"])
    op.create_index("ix_jobs_heartbeat_at", "jobs", ["heartbeat_at"])

    # A key may be reused once its job ended in error or was canceled
    op.create_index(
        "ix_jobs_dedupe_key_active",
        "jobs",
        ["dedupe_key"],
        unique=True,
        postgresql_where=sa.text(
            "dedupe_key IS NOT NULL AND status IN ('queued', 'processing', 'done')"
        ),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("jobs")
