from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from docuflow.v1.core.pagination import PageMeta
from docuflow.v1.core.validation import optional_email, optional_url, required_text
from docuflow.v1.extraction.validators import CUIT_PATTERN


def _validate_cuit(value: str) -> str:
    value = value.strip()
    if not CUIT_PATTERN.match(value):
        raise ValueError("Invalid CUIT format (e.g. 30-12345678-9)")
    return value


class InstitutionCreate(BaseModel):
    """Schema for creating an institution."""

    name: str = Field(..., description="Institution name")
    cuit: str = Field(..., description="CUIT in NN-NNNNNNNN-N format")
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return required_text(v)

    @field_validator("cuit")
    @classmethod
    def validate_cuit(cls, v):
        return _validate_cuit(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return optional_email(v)

    @field_validator("website")
    @classmethod
    def validate_website(cls, v):
        return optional_url(v)


class InstitutionUpdate(BaseModel):
    """Partial update. Only the fields sent are changed."""

    name: str | None = None
    cuit: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return required_text(v) if v is not None else v

    @field_validator("cuit")
    @classmethod
    def validate_cuit(cls, v):
        return _validate_cuit(v) if v is not None else v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return optional_email(v)

    @field_validator("website")
    @classmethod
    def validate_website(cls, v):
        return optional_url(v)


class InstitutionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    cuit: str
    address: str | None
    phone: str | None
    email: str | None
    website: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class InstitutionDetail(InstitutionResponse):
    member_count: int = 0
    document_count: int = 0


class InstitutionSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    cuit: str


class InstitutionList(BaseModel):
    institutions: list[InstitutionResponse]
    meta: PageMeta
