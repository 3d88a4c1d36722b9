"""Authentication endpoints."""

from fastapi import APIRouter, status

from app.dependencies import CacheManagerDep, DatabaseSession
from app.schemas.auth import FirebaseAuthRequest, LoginResponse, Token, TokenRefresh
from app.schemas.users import ProfileResponse
from app.services.auth_service import AuthService

router = APIRouter()


@router.post(
    "/firebase/verify",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Firebase ID token verification",
)
async def firebase_verify(
    request: FirebaseAuthRequest,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> LoginResponse:
    """
    Verify a Firebase ID token and return API tokens.

    The portal signs users in with Firebase Authentication and sends the
    resulting ID token here. First-time users get a patient profile.
    """
    auth_service = AuthService(cache_manager)

    firebase_token_data = await auth_service.verify_firebase_id_token(request.id_token)
    profile, tokens = await auth_service.handle_firebase_login(firebase_token_data, db)

    return LoginResponse(
        **tokens.model_dump(),
        user=ProfileResponse.model_validate(profile),
    )


@router.post(
    "/refresh",
    response_model=Token,
    status_code=status.HTTP_200_OK,
    summary="Refresh access token",
)
async def refresh_token(request: TokenRefresh, cache_manager: CacheManagerDep) -> Token:
    """Exchange a refresh token for a new token pair."""
    return AuthService(cache_manager).refresh_access_token(request.refresh_token)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Logout and revoke tokens",
)
async def logout(request: TokenRefresh, cache_manager: CacheManagerDep) -> None:
    """Revoke the given refresh token."""
    AuthService(cache_manager).revoke_token(request.refresh_token)
