"""User profile endpoints."""

from fastapi import APIRouter

from app.dependencies import CurrentUser, DatabaseSession
from app.schemas.users import ProfileResponse, ProfileUpdate
from app.services.profile_service import ProfileService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=ProfileResponse)
async def get_current_user_profile(current_user: CurrentUser) -> ProfileResponse:
    """Get current user's profile."""
    return ProfileResponse.model_validate(current_user)


@router.patch("/me", response_model=ProfileResponse)
async def update_current_user_profile(
    data: ProfileUpdate,
    db: DatabaseSession,
    current_user: CurrentUser,
) -> ProfileResponse:
    """Update name, phone or address on the current user's profile."""
    profile = await ProfileService.update_profile(db, current_user["id"], data)
    return ProfileResponse.model_validate(profile)
