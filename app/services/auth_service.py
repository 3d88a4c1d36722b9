"""Authentication service for Firebase sign-in and API tokens."""

from datetime import UTC, datetime, timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import ForbiddenException, UnauthorizedException
from app.core.firebase import verify_firebase_token
from app.core.redis_client import CacheManager
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
)
from app.schemas.auth import Token
from app.schemas.users import ProfileCreate
from app.services.profile_service import ProfileService

logger = structlog.get_logger(__name__)

BLACKLIST_PREFIX = "blacklist:"


class AuthService:
    """Exchanges Firebase identities for API tokens."""

    def __init__(self, cache_manager: CacheManager):
        """Initialize auth service with cache manager."""
        self.cache = cache_manager

    async def verify_firebase_id_token(self, id_token: str) -> dict:
        """
        Verify Firebase ID token and return its claims.

        Raises:
            UnauthorizedException: If token verification fails
        """
        try:
            return await verify_firebase_token(id_token)
        except ValueError as e:
            raise UnauthorizedException(str(e))

    async def handle_firebase_login(
        self, firebase_token_data: dict, db: AsyncSession
    ) -> tuple[dict, Token]:
        """
        Sign in a Firebase user: get or create the profile and issue tokens.

        Args:
            firebase_token_data: Decoded Firebase token with user info
            db: Database session

        Returns:
            Tuple of (profile dict, token pair)

        Raises:
            UnauthorizedException: If the token carries no email
            ForbiddenException: If the profile is disabled
        """
        email = firebase_token_data.get("email")
        if not email:
            raise UnauthorizedException("Email is required from Firebase token")

        profile = await ProfileService.get_or_create_profile(
            db,
            ProfileCreate(
                firebase_uid=firebase_token_data["uid"],
                email=email,
                full_name=firebase_token_data.get("name"),
                phone=firebase_token_data.get("phone_number"),
            ),
        )

        if profile["disabled"]:
            logger.warning("disabled_profile_login", profile_id=str(profile["id"]))
            raise ForbiddenException("Your account has been disabled. Please contact the clinic.")

        return profile, self.create_tokens(str(profile["id"]))

    def create_tokens(self, user_id: str) -> Token:
        """Create an access/refresh token pair for a profile."""
        return Token(
            access_token=create_access_token(data={"sub": user_id}),
            refresh_token=create_refresh_token(data={"sub": user_id}),
            token_type="bearer",
        )

    def refresh_access_token(self, refresh_token: str) -> Token:
        """
        Issue a new token pair from a refresh token.

        Raises:
            UnauthorizedException: If the refresh token is invalid or revoked
        """
        payload = decode_refresh_token(refresh_token)
        if payload is None or payload.get("sub") is None:
            raise UnauthorizedException("Invalid refresh token")

        if self.cache.exists(f"{BLACKLIST_PREFIX}{refresh_token}"):
            raise UnauthorizedException("Token has been revoked")

        return self.create_tokens(payload["sub"])

    def revoke_token(self, token: str) -> None:
        """Blacklist a refresh token until it would have expired anyway."""
        payload = decode_refresh_token(token)
        if payload is None:
            return

        expires_at = datetime.fromtimestamp(payload["exp"], UTC)
        ttl = int((expires_at - datetime.now(UTC)).total_seconds())
        if ttl <= 0:
            ttl = int(timedelta(days=settings.refresh_token_expire_days).total_seconds())
        self.cache.set(f"{BLACKLIST_PREFIX}{token}", "1", ttl=ttl)
