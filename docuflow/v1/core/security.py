from dataclasses import dataclass, field

from fastapi import Depends, Header, HTTPException, status

from docuflow.config.settings import AuthMode, settings


@dataclass
class Principal:
    """Represents the current authenticated user."""

    user_id: str
    roles: list[str] = field(default_factory=list)
    email: str | None = None


async def get_principal(
    x_user_id: str | None = Header(None, alias="X-User-ID"),
) -> Principal:
    """
    Dependency injection function to get the current principal.

    Behavior based on AUTH_MODE:
    - none: Returns the dev user with admin role
    - dev: Requires an X-User-ID header
    - oidc: Not available yet
    """
    if settings.auth_mode == AuthMode.NONE:
        return Principal(user_id=settings.dev_user_id, roles=["admin"])
    elif settings.auth_mode == AuthMode.DEV:
        if not x_user_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="X-User-ID header is required in dev auth mode",
            )

        return Principal(user_id=x_user_id, roles=["admin"])
    elif settings.auth_mode == AuthMode.OIDC:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="OIDC auth mode is not available",
        )
    else:
        raise ValueError(f"Unknown auth mode: {settings.auth_mode}")


# Convenience type alias for dependency injection
PrincipalDep = Depends(get_principal)
