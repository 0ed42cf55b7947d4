import logging
from uuid import UUID

from fastapi import APIRouter, Query, Request, Response, status
from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

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
from docuflow.v1.members.models import Member, MemberStatus
from docuflow.v1.members.schemas import (
    MemberCreate,
    MemberDetail,
    MemberList,
    MemberResponse,
    MemberSort,
    MemberUpdate,
    SortDirection,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/members", tags=["members"])

SORT_COLUMNS = {
    "last_name": Member.last_name,
    "first_name": Member.first_name,
    "dni": Member.dni,
    "joined_at": Member.joined_at,
}


async def get_member_by_id(session: AsyncSession, member_id: UUID) -> Member:
    result = await session.execute(
        select(Member)
        .where(Member.id == member_id)
        .options(selectinload(Member.institution))
        .execution_options(populate_existing=True)
    )
    member = result.scalar_one_or_none()
    if not member:
        raise NotFoundError("Member not found", details={"id": str(member_id)})
    return member


async def _ensure_institution_exists(session: AsyncSession, institution_id: UUID) -> None:
    result = await session.execute(select(Institution.id).where(Institution.id == institution_id))
    if result.scalar_one_or_none() is None:
        raise NotFoundError("Institution not found", details={"id": str(institution_id)})


async def _ensure_dni_available(
    session: AsyncSession, dni: str, exclude_id: UUID | None = None
) -> None:
    query = select(Member.id).where(Member.dni == dni)
    if exclude_id is not None:
        query = query.where(Member.id != exclude_id)
    if (await session.execute(query)).scalar_one_or_none() is not None:
        raise ConflictError("A member with this DNI already exists", details={"dni": dni})


async def _document_count(session: AsyncSession, member_id: UUID) -> int:
    result = await session.execute(
        select(func.count(Document.id)).where(Document.member_id == member_id)
    )
    return result.scalar() or 0


@router.get("", response_model=dict)
async def list_members(
    request: Request,
    q: str | None = Query(default=None, description="Search DNI, names or email"),
    status: MemberStatus | None = Query(default=None),
    institution_id: UUID | None = Query(default=None),
    sort: MemberSort = Query(default="last_name"),
    dir: SortDirection = Query(default="asc"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    session: AsyncSession = SessionDep,
):
    """List members with search, filters and sorting."""
    query = select(Member)
    if q:
        term = q.strip()
        pattern = f"%{term}%"
        query = query.where(
            or_(
                Member.dni.contains(term),
                Member.first_name.ilike(pattern),
                Member.last_name.ilike(pattern),
                Member.email.ilike(pattern),
            )
        )
    if status:
        query = query.where(Member.status == status.value)
    if institution_id:
        query = query.where(Member.institution_id == institution_id)

    total = (
        await session.execute(select(func.count()).select_from(query.subquery()))
    ).scalar() or 0

    column = SORT_COLUMNS[sort]
    order = column.desc() if dir == "desc" else column.asc()
    result = await session.execute(
        query.options(selectinload(Member.institution))
        .order_by(order, Member.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    data = MemberList(
        members=[MemberResponse.model_validate(m) for m in result.scalars().all()],
        meta=PageMeta.build(total, page, page_size),
    )
    return create_success_response(data=data.model_dump(), request_id=get_request_id(request))


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_member(
    member_data: MemberCreate,
    request: Request,
    principal: Principal = PrincipalDep,
    session: AsyncSession = SessionDep,
):
    await _ensure_dni_available(session, member_data.dni)
    if member_data.institution_id:
        await _ensure_institution_exists(session, member_data.institution_id)

    values = member_data.model_dump(exclude_none=True)
    values["status"] = member_data.status.value
    member = Member(**values)
    session.add(member)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ConflictError(
            "A member with this DNI already exists", details={"dni": member_data.dni}
        ) from e

    member = await get_member_by_id(session, member.id)
    logger.info(
        "Member created",
        extra={"member_id": str(member.id), "user_id": principal.user_id},
    )
    return create_success_response(
        data=MemberResponse.model_validate(member).model_dump(),
        message="Member created",
        request_id=get_request_id(request),
    )


@router.get("/{member_id}", response_model=dict)
async def get_member(
    member_id: UUID,
    request: Request,
    session: AsyncSession = SessionDep,
):
    member = await get_member_by_id(session, member_id)
    detail = MemberDetail.model_validate(member)
    detail.document_count = await _document_count(session, member_id)
    return create_success_response(data=detail.model_dump(), request_id=get_request_id(request))


@router.put("/{member_id}", response_model=dict)
async def update_member(
    member_id: UUID,
    member_data: MemberUpdate,
    request: Request,
    principal: Principal = PrincipalDep,
    session: AsyncSession = SessionDep,
):
    member = await get_member_by_id(session, member_id)
    changes = member_data.model_dump(exclude_unset=True)

    # Non-nullable columns ignore explicit nulls
    for required in ("dni", "first_name", "last_name", "status", "joined_at"):
        if required in changes and changes[required] is None:
            changes.pop(required)

    if "dni" in changes and changes["dni"] != member.dni:
        await _ensure_dni_available(session, changes["dni"], exclude_id=member_id)
    if changes.get("institution_id"):
        await _ensure_institution_exists(session, changes["institution_id"])
    if "status" in changes:
        changes["status"] = MemberStatus(changes["status"]).value

    for field, value in changes.items():
        setattr(member, field, value)

    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ConflictError("A member with this DNI already exists") from e

    member = await get_member_by_id(session, member_id)
    logger.info(
        "Member updated",
        extra={"member_id": str(member_id), "fields": sorted(changes), "user_id": principal.user_id},
    )
    return create_success_response(
        data=MemberResponse.model_validate(member).model_dump(),
        message="Member updated",
        request_id=get_request_id(request),
    )


@router.delete("/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_member(
    member_id: UUID,
    principal: Principal = PrincipalDep,
    session: AsyncSession = SessionDep,
):
    """Delete a member that has no documents."""
    await get_member_by_id(session, member_id)

    document_count = await _document_count(session, member_id)
    if document_count:
        raise ConflictError(
            "Member has associated documents",
            details={"document_count": document_count},
        )

    await session.execute(delete(Member).where(Member.id == member_id))
    await session.commit()

    logger.info(
        "Member deleted",
        extra={"member_id": str(member_id), "user_id": principal.user_id},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
