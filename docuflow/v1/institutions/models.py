from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, Text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docuflow.infra.database import Base, TimestampMixin

if TYPE_CHECKING:
    from docuflow.v1.members.models import Member


class Institution(Base, TimestampMixin):
    """Employer or organisation that files contribution lists for its members."""

    __tablename__ = "institutions"

    id: Mapped[UUID] = mapped_column(PG_UUID, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    cuit: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    address: Mapped[str | None] = mapped_column(Text)
    phone: Mapped[str | None] = mapped_column(Text)
    email: Mapped[str | None] = mapped_column(Text)
    website: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )

    members: Mapped[list["Member"]] = relationship(back_populates="institution")
