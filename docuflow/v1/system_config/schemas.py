import re
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from docuflow.v1.core.validation import optional_url

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")
BORDER_RADIUS = re.compile(r"^\d+(\.\d+)?(rem|px|%)$")

Locale = Literal["es", "en", "pt"]


class SystemConfigUpdate(BaseModel):
    """Full branding configuration. Every field is validated on save."""

    app_name: str = Field(..., min_length=1, max_length=100)
    logo_url: str | None = None
    primary_color: str
    secondary_color: str
    primary_text_color: str
    secondary_text_color: str
    border_radius: str
    default_locale: Locale

    @field_validator("app_name")
    @classmethod
    def validate_app_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Application name is required")
        return v

    @field_validator("logo_url")
    @classmethod
    def validate_logo_url(cls, v):
        return optional_url(v)

    @field_validator(
        "primary_color", "secondary_color", "primary_text_color", "secondary_text_color"
    )
    @classmethod
    def validate_color(cls, v):
        if not HEX_COLOR.match(v):
            raise ValueError("Colour must be #RRGGBB")
        return v

    @field_validator("border_radius")
    @classmethod
    def validate_border_radius(cls, v):
        if not BORDER_RADIUS.match(v):
            raise ValueError("Border radius must be a number followed by rem, px or %")
        return v


class SystemConfigResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    app_name: str
    logo_url: str | None = None
    primary_color: str
    secondary_color: str
    primary_text_color: str
    secondary_text_color: str
    border_radius: str
    default_locale: str
    created_at: datetime
    updated_at: datetime
