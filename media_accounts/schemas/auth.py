"""Pydantic schemas for login and session endpoints."""

from pydantic import Field

from media_accounts.schemas.base import CamelModel
from media_accounts.schemas.user import UserResponse


class LoginRequest(CamelModel):
    """Request for login."""

    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


class ExternalLoginRequest(CamelModel):
    """Login with an identity token issued by an external provider."""

    id_token: str = Field(..., min_length=1, description="Provider-issued ID token")


class LoginResponse(CamelModel):
    """Session created by a successful login."""

    token: str = Field(description="Short-lived access token")
    refresh_token: str
    user: UserResponse
    token_type: str = "Bearer"


class RefreshRequest(CamelModel):
    """Request for token refresh."""

    refresh_token: str = Field(..., min_length=1)


class RefreshResponse(CamelModel):
    """New access token; the refresh token is returned unchanged."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"


class LogoutRequest(CamelModel):
    """Request for logout; the given refresh token is revoked."""

    refresh_token: str = Field(..., min_length=1)
