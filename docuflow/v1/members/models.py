from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from docuflow.infra.database import Base, TimestampMixin

if TYPE_CHECKING:
    from docuflow.v1.institutions.models import Institution


class MemberStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    SUSPENDED = "SUSPENDED"
    INACTIVE = "INACTIVE"
    DECEASED = "DECEASED"


class Member(Base, TimestampMixin):
    """Union member, optionally affiliated with an institution."""

    __tablename__ = "members"

    id: Mapped[UUID] = mapped_column(PG_UUID, primary_key=True, default=uuid4)
    dni: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str | None] = mapped_column(Text)
    phone: Mapped[str | None] = mapped_column(Text)
    address: Mapped[str | None] = mapped_column(Text)
    birth_date: Mapped[date | None] = mapped_column(Date)
    nationality: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=MemberStatus.PENDING_VERIFICATION.value
    )
    joined_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now()
    )

    institution_id: Mapped[UUID | None] = mapped_column(
        PG_UUID, ForeignKey("institutions.id", ondelete="RESTRICT"), nullable=True
    )

    institution: Mapped["Institution | None"] = relationship(back_populates="members")

    __table_args__ = (
        CheckConstraint(
            "status IN ('ACTIVE', 'PENDING_VERIFICATION', 'SUSPENDED', 'INACTIVE', 'DECEASED')",
            name="members_status_check",
        ),
        Index("ix_members_institution_id", "institution_id"),
        Index("ix_members_last_name", "last_name"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
