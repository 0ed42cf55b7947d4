from uuid import UUID, uuid4

from sqlalchemy import Text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from docuflow.infra.database import Base, TimestampMixin

DEFAULT_SYSTEM_CONFIG = {
    "app_name": "DocuFlow",
    "logo_url": None,
    "primary_color": "#4f46e5",
    "secondary_color": "#7c3aed",
    "primary_text_color": "#111827",
    "secondary_text_color": "#4b5563",
    "border_radius": "0.75rem",
    "default_locale": "es",
}


class SystemConfig(Base, TimestampMixin):
    """Branding and locale settings. The application keeps a single row."""

    __tablename__ = "system_config"

    id: Mapped[UUID] = mapped_column(PG_UUID, primary_key=True, default=uuid4)
    app_name: Mapped[str] = mapped_column(Text, nullable=False)
    logo_url: Mapped[str | None] = mapped_column(Text)
    primary_color: Mapped[str] = mapped_column(Text, nullable=False)
    secondary_color: Mapped[str] = mapped_column(Text, nullable=False)
    primary_text_color: Mapped[str] = mapped_column(Text, nullable=False)
    secondary_text_color: Mapped[str] = mapped_column(Text, nullable=False)
    border_radius: Mapped[str] = mapped_column(Text, nullable=False)
    default_locale: Mapped[str] = mapped_column(Text, nullable=False)
