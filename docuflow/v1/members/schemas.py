from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from docuflow.v1.core.pagination import PageMeta
from docuflow.v1.core.validation import optional_email, required_text
from docuflow.v1.institutions.schemas import InstitutionSummary
from docuflow.v1.members.models import MemberStatus

MemberSort = Literal["last_name", "first_name", "dni", "joined_at"]
SortDirection = Literal["asc", "desc"]


def _validate_dni(value: str) -> str:
    value = value.strip()
    if not 6 <= len(value) <= 12:
        raise ValueError("DNI must be between 6 and 12 characters")
    return value


class MemberCreate(BaseModel):
    """Schema for creating a member."""

    dni: str = Field(..., description="National ID, 6 to 12 characters")
    first_name: str
    last_name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    birth_date: date | None = None
    nationality: str | None = None
    status: MemberStatus = MemberStatus.PENDING_VERIFICATION
    joined_at: datetime | None = Field(default=None, description="Defaults to now")
    institution_id: UUID | None = None

    @field_validator("dni")
    @classmethod
    def validate_dni(cls, v):
        return _validate_dni(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_names(cls, v):
        return required_text(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return optional_email(v)


class MemberUpdate(BaseModel):
    """Partial update. Only the fields sent are changed."""

    dni: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    birth_date: date | None = None
    nationality: str | None = None
    status: MemberStatus | None = None
    joined_at: datetime | None = None
    institution_id: UUID | None = None

    @field_validator("dni")
    @classmethod
    def validate_dni(cls, v):
        return _validate_dni(v) if v is not None else v

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_names(cls, v):
        return required_text(v) if v is not None else v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return optional_email(v)


class MemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    dni: str
    first_name: str
    last_name: str
    full_name: str
    email: str | None
    phone: str | None
    address: str | None
    birth_date: date | None
    nationality: str | None
    status: MemberStatus
    joined_at: datetime
    institution_id: UUID | None
    institution: InstitutionSummary | None = None
    created_at: datetime
    updated_at: datetime


class MemberDetail(MemberResponse):
    document_count: int = 0


class MemberList(BaseModel):
    members: list[MemberResponse]
    meta: PageMeta
