"""FastAPI dependencies."""

from collections.abc import Callable, Coroutine
from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.redis_client import CacheManager, get_redis_client
from app.core.security import decode_access_token
from app.core.storage import ProofStorage, get_proof_storage
from app.database import get_db
from app.schemas.users import CLINIC_ROLES, UserRole
from app.services.profile_service import ProfileService

security = HTTPBearer(auto_error=False)


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> UUID:
    """
    Extract and validate the profile ID from the bearer token.

    Raises:
        HTTPException: If the token is missing, invalid or expired
    """
    if credentials is None:
        raise _credentials_error("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _credentials_error()

    user_id_str = payload.get("sub")
    if user_id_str is None or not isinstance(user_id_str, str):
        raise _credentials_error()

    try:
        return UUID(user_id_str)
    except ValueError:
        raise _credentials_error("Invalid user ID format")


async def get_current_user(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """
    Resolve the signed-in profile.

    Raises:
        HTTPException: If the profile is gone (401) or disabled (403)
    """
    profile = await ProfileService.get_profile_by_id(db, user_id)

    if not profile:
        raise _credentials_error("User not found")

    if profile["disabled"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    return profile


def require_roles(*roles: UserRole) -> Callable[..., Coroutine[Any, Any, dict]]:
    """Build a dependency that admits only the given roles."""
    allowed = {role.value for role in roles}

    async def checker(current_user: Annotated[dict, Depends(get_current_user)]) -> dict:
        if current_user["role"] not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return current_user

    return checker


def get_cache_manager() -> CacheManager:
    """Cache manager over the shared Redis client."""
    return CacheManager(get_redis_client())


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
ClinicUser = Annotated[dict, Depends(require_roles(*CLINIC_ROLES))]
AdminUser = Annotated[dict, Depends(require_roles(UserRole.ADMIN))]
DoctorUser = Annotated[dict, Depends(require_roles(UserRole.DOCTOR))]
CacheManagerDep = Annotated[CacheManager, Depends(get_cache_manager)]
ProofStorageDep = Annotated[ProofStorage, Depends(get_proof_storage)]
