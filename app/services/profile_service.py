"""Profile service for business logic."""

from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.models.profiles import profiles
from app.schemas.users import AdminProfileUpdate, ProfileCreate, ProfileUpdate, UserRole

logger = structlog.get_logger(__name__)


class ProfileService:
    """Service for profile operations."""

    @staticmethod
    async def get_profile_by_id(db: AsyncSession, profile_id: UUID) -> dict | None:
        """Get profile by internal ID."""
        result = await db.execute(select(profiles).where(profiles.c.id == profile_id))
        profile = result.mappings().first()
        return dict(profile) if profile else None

    @staticmethod
    async def get_profile_by_firebase_uid(db: AsyncSession, firebase_uid: str) -> dict | None:
        """Get profile by Firebase UID."""
        result = await db.execute(select(profiles).where(profiles.c.firebase_uid == firebase_uid))
        profile = result.mappings().first()
        return dict(profile) if profile else None

    @staticmethod
    async def create_profile(db: AsyncSession, data: ProfileCreate) -> dict:
        """Create a new profile."""
        query = (
            profiles.insert()
            .values(
                firebase_uid=data.firebase_uid,
                email=data.email,
                full_name=data.full_name,
                phone=data.phone,
                role=data.role.value,
            )
            .returning(profiles)
        )
        result = await db.execute(query)
        await db.commit()
        profile = result.mappings().first()

        if not profile:
            raise ValueError("Failed to create profile")

        logger.info("profile_created", profile_id=str(profile["id"]), role=profile["role"])
        return dict(profile)

    @classmethod
    async def get_or_create_profile(cls, db: AsyncSession, data: ProfileCreate) -> dict:
        """
        Get the profile linked to a Firebase account, creating it on first sign-in.

        Self-registered profiles always start as patients.
        """
        profile = await cls.get_profile_by_firebase_uid(db, data.firebase_uid)
        if profile:
            return profile

        data = data.model_copy(update={"role": UserRole.PATIENT})
        return await cls.create_profile(db, data)

    @staticmethod
    async def update_profile(
        db: AsyncSession,
        profile_id: UUID,
        data: ProfileUpdate | AdminProfileUpdate,
    ) -> dict:
        """
        Update profile fields that were provided.

        Raises:
            NotFoundException: If the profile does not exist
        """
        values = data.model_dump(exclude_unset=True)
        if "role" in values and values["role"] is not None:
            values["role"] = UserRole(values["role"]).value
        values = {key: value for key, value in values.items() if value is not None}

        if not values:
            profile = await ProfileService.get_profile_by_id(db, profile_id)
            if not profile:
                raise NotFoundException("User not found")
            return profile

        values["updated_at"] = datetime.now(UTC)
        query = (
            update(profiles).where(profiles.c.id == profile_id).values(**values).returning(profiles)
        )
        result = await db.execute(query)
        await db.commit()
        profile = result.mappings().first()

        if not profile:
            raise NotFoundException("User not found")

        return dict(profile)

    @staticmethod
    async def set_disabled(db: AsyncSession, profile_id: UUID, disabled: bool) -> dict:
        """Disable or re-enable an account."""
        query = (
            update(profiles)
            .where(profiles.c.id == profile_id)
            .values(disabled=disabled, updated_at=datetime.now(UTC))
            .returning(profiles)
        )
        result = await db.execute(query)
        await db.commit()
        profile = result.mappings().first()

        if not profile:
            raise NotFoundException("User not found")

        logger.info("profile_disabled_changed", profile_id=str(profile_id), disabled=disabled)
        return dict(profile)

    @staticmethod
    async def list_profiles(
        db: AsyncSession,
        role: UserRole | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[dict], int]:
        """
        List profiles with optional role filter and name/email search.

        Returns:
            Tuple of (profiles on the page, total matching)
        """
        conditions = []
        if role:
            conditions.append(profiles.c.role == role.value)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(profiles.c.full_name.ilike(pattern), profiles.c.email.ilike(pattern))
            )

        count_query = select(func.count()).select_from(profiles).where(*conditions)
        total = (await db.execute(count_query)).scalar_one()

        query = (
            select(profiles)
            .where(*conditions)
            .order_by(profiles.c.full_name)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await db.execute(query)
        return [dict(row) for row in result.mappings().all()], total
