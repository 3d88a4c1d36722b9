"""Admin-only endpoints for user and billing management."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.core.exceptions import BadRequestException
from app.dependencies import AdminUser, DatabaseSession
from app.schemas.billing import BillingSummaryResponse
from app.schemas.users import AdminProfileUpdate, ProfileListResponse, ProfileResponse, UserRole
from app.services.billing_service import BillingService
from app.services.profile_service import ProfileService

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get(
    "/users",
    response_model=ProfileListResponse,
    summary="List all users (admin only)",
)
async def list_all_users(
    db: DatabaseSession,
    admin_user: AdminUser,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    role: UserRole | None = Query(None, description="Filter by role"),
    search: str | None = Query(None, description="Search by name or email"),
) -> ProfileListResponse:
    """
    Get paginated list of all users with filtering.

    Args:
        db: Database session
        admin_user: Authenticated admin user
        page: Page number
        page_size: Items per page
        role: Filter by user role
        search: Search term for name/email

    Returns:
        Paginated list of users
    """
    rows, total = await ProfileService.list_profiles(
        db, role=role, search=search, page=page, page_size=page_size
    )
    return ProfileListResponse(
        users=[ProfileResponse.model_validate(row) for row in rows],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.patch(
    "/users/{user_id}",
    response_model=ProfileResponse,
    summary="Update a user (admin only)",
)
async def update_user(
    user_id: UUID,
    data: AdminProfileUpdate,
    db: DatabaseSession,
    admin_user: AdminUser,
) -> ProfileResponse:
    """Update a user's name, role, phone or address."""
    profile = await ProfileService.update_profile(db, user_id, data)
    return ProfileResponse.model_validate(profile)


@router.post(
    "/users/{user_id}/disable",
    response_model=ProfileResponse,
    status_code=status.HTTP_200_OK,
    summary="Disable a user account",
)
async def disable_user(
    user_id: UUID,
    db: DatabaseSession,
    admin_user: AdminUser,
) -> ProfileResponse:
    """Block a user from signing in. Admins cannot disable themselves."""
    if user_id == admin_user["id"]:
        raise BadRequestException("You cannot disable your own account")
    profile = await ProfileService.set_disabled(db, user_id, True)
    return ProfileResponse.model_validate(profile)


@router.post(
    "/users/{user_id}/enable",
    response_model=ProfileResponse,
    status_code=status.HTTP_200_OK,
    summary="Re-enable a user account",
)
async def enable_user(
    user_id: UUID,
    db: DatabaseSession,
    admin_user: AdminUser,
) -> ProfileResponse:
    """Allow a disabled user to sign in again."""
    profile = await ProfileService.set_disabled(db, user_id, False)
    return ProfileResponse.model_validate(profile)


@router.get(
    "/billing/summary",
    response_model=BillingSummaryResponse,
    summary="Billing totals (admin only)",
)
async def billing_summary(db: DatabaseSession, admin_user: AdminUser) -> BillingSummaryResponse:
    """Totals invoiced and collected, outstanding balance and pending approvals."""
    return await BillingService(db).billing_summary()
