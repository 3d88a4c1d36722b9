"""Authentication schemas."""

from pydantic import BaseModel, Field

from app.schemas.users import ProfileResponse


class Token(BaseModel):
    """JWT token pair."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefresh(BaseModel):
    """Token refresh request schema."""

    refresh_token: str


class FirebaseAuthRequest(BaseModel):
    """Firebase ID token authentication request."""

    id_token: str = Field(..., description="Firebase ID token from the web client")


class LoginResponse(Token):
    """Login response with tokens and the signed-in profile."""

    user: ProfileResponse
