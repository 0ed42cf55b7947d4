import logging
from uuid import UUID

from fastapi import APIRouter, Query, Request, Response, status
from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from docuflow.infra.database import SessionDep
from docuflow.v1.core.exceptions import (
    ConflictError,
    NotFoundError,
    create_success_response,
    get_request_id,
)
from docuflow.v1.core.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, PageMeta
from docuflow.v1.core.security import Principal, PrincipalDep
from docuflow.v1.documents.models import Document
from docuflow.v1.institutions.models import Institution
from docuflow.v1.institutions.schemas import (
    InstitutionCreate,
    InstitutionDetail,
    InstitutionList,
    InstitutionResponse,
    InstitutionUpdate,
)
from docuflow.v1.members.models import Member

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/institutions", tags=["institutions"])


async def get_institution_by_id(session: AsyncSession, institution_id: UUID) -> Institution:
    result = await session.execute(select(Institution).where(Institution.id == institution_id))
    institution = result.scalar_one_or_none()
    if not institution:
        raise NotFoundError("Institution not found", details={"id": str(institution_id)})
    return institution


async def _count(session: AsyncSession, column, institution_id: UUID) -> int:
    result = await session.execute(select(func.count()).where(column == institution_id))
    return result.scalar() or 0


async def _ensure_cuit_available(
    session: AsyncSession, cuit: str, exclude_id: UUID | None = None
) -> None:
    query = select(Institution.id).where(Institution.cuit == cuit)
    if exclude_id is not None:
        query = query.where(Institution.id != exclude_id)
    if (await session.execute(query)).scalar_one_or_none() is not None:
        raise ConflictError("An institution with this CUIT already exists", details={"cuit": cuit})


@router.get("", response_model=dict)
async def list_institutions(
    request: Request,
    q: str | None = Query(default=None, description="Search name, CUIT or email"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    session: AsyncSession = SessionDep,
):
    """List institutions ordered by name."""
    query = select(Institution)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.where(
            or_(
                Institution.name.ilike(pattern),
                Institution.cuit.ilike(pattern),
                Institution.email.ilike(pattern),
            )
        )

    total = (
        await session.execute(select(func.count()).select_from(query.subquery()))
    ).scalar() or 0
    result = await session.execute(
        query.order_by(Institution.name.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    data = InstitutionList(
        institutions=[InstitutionResponse.model_validate(i) for i in result.scalars().all()],
        meta=PageMeta.build(total, page, page_size),
    )
    return create_success_response(data=data.model_dump(), request_id=get_request_id(request))


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_institution(
    institution_data: InstitutionCreate,
    request: Request,
    principal: Principal = PrincipalDep,
    session: AsyncSession = SessionDep,
):
    await _ensure_cuit_available(session, institution_data.cuit)

    institution = Institution(**institution_data.model_dump())
    session.add(institution)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ConflictError(
            "An institution with this CUIT already exists",
            details={"cuit": institution_data.cuit},
        ) from e
    await session.refresh(institution)

    logger.info(
        "Institution created",
        extra={"institution_id": str(institution.id), "user_id": principal.user_id},
    )
    return create_success_response(
        data=InstitutionResponse.model_validate(institution).model_dump(),
        message="Institution created",
        request_id=get_request_id(request),
    )


@router.get("/{institution_id}", response_model=dict)
async def get_institution(
    institution_id: UUID,
    request: Request,
    session: AsyncSession = SessionDep,
):
    """Get an institution with its member and document counts."""
    institution = await get_institution_by_id(session, institution_id)
    detail = InstitutionDetail.model_validate(institution)
    detail.member_count = await _count(session, Member.institution_id, institution_id)
    detail.document_count = await _count(session, Document.institution_id, institution_id)
    return create_success_response(data=detail.model_dump(), request_id=get_request_id(request))


@router.put("/{institution_id}", response_model=dict)
async def update_institution(
    institution_id: UUID,
    institution_data: InstitutionUpdate,
    request: Request,
    principal: Principal = PrincipalDep,
    session: AsyncSession = SessionDep,
):
    institution = await get_institution_by_id(session, institution_id)
    changes = institution_data.model_dump(exclude_unset=True)

    if changes.get("cuit") and changes["cuit"] != institution.cuit:
        await _ensure_cuit_available(session, changes["cuit"], exclude_id=institution_id)
    # Non-nullable columns ignore explicit nulls
    for required in ("name", "cuit", "is_active"):
        if required in changes and changes[required] is None:
            changes.pop(required)

    for field, value in changes.items():
        setattr(institution, field, value)

    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ConflictError("An institution with this CUIT already exists") from e
    await session.refresh(institution)

    logger.info(
        "Institution updated",
        extra={
            "institution_id": str(institution_id),
            "fields": sorted(changes),
            "user_id": principal.user_id,
        },
    )
    return create_success_response(
        data=InstitutionResponse.model_validate(institution).model_dump(),
        message="Institution updated",
        request_id=get_request_id(request),
    )


@router.delete("/{institution_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_institution(
    institution_id: UUID,
    principal: Principal = PrincipalDep,
    session: AsyncSession = SessionDep,
):
    """Delete an institution that has no members or documents."""
    institution = await get_institution_by_id(session, institution_id)

    member_count = await _count(session, Member.institution_id, institution_id)
    document_count = await _count(session, Document.institution_id, institution_id)
    if member_count or document_count:
        raise ConflictError(
            "Institution has associated members or documents",
            details={"member_count": member_count, "document_count": document_count},
        )

    await session.execute(delete(Institution).where(Institution.id == institution.id))
    await session.commit()

    logger.info(
        "Institution deleted",
        extra={"institution_id": str(institution_id), "user_id": principal.user_id},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
