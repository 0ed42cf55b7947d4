import logging

from fastapi import APIRouter, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docuflow.infra.database import SessionDep
from docuflow.v1.core.exceptions import create_success_response, get_request_id
from docuflow.v1.core.security import Principal, PrincipalDep
from docuflow.v1.system_config.models import DEFAULT_SYSTEM_CONFIG, SystemConfig
from docuflow.v1.system_config.schemas import SystemConfigResponse, SystemConfigUpdate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/system-config", tags=["system-config"])


async def get_or_create_config(session: AsyncSession) -> SystemConfig:
    """Return the configuration row, creating it with defaults on first use."""
    result = await session.execute(
        select(SystemConfig).order_by(SystemConfig.created_at.asc()).limit(1)
    )
    config = result.scalar_one_or_none()
    if config is None:
        config = SystemConfig(**DEFAULT_SYSTEM_CONFIG)
        session.add(config)
        await session.commit()
        await session.refresh(config)
        logger.info("Default system configuration created")
    return config


@router.get("", response_model=dict)
async def get_system_config(request: Request, session: AsyncSession = SessionDep):
    config = await get_or_create_config(session)
    return create_success_response(
        data=SystemConfigResponse.model_validate(config).model_dump(),
        request_id=get_request_id(request),
    )


@router.put("", response_model=dict)
async def update_system_config(
    config_data: SystemConfigUpdate,
    request: Request,
    principal: Principal = PrincipalDep,
    session: AsyncSession = SessionDep,
):
    config = await get_or_create_config(session)
    for field, value in config_data.model_dump().items():
        setattr(config, field, value)
    await session.commit()
    await session.refresh(config)

    logger.info("System configuration updated", extra={"user_id": principal.user_id})
    return create_success_response(
        data=SystemConfigResponse.model_validate(config).model_dump(),
        message="Configuration saved",
        request_id=get_request_id(request),
    )
