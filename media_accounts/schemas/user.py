"""Pydantic schemas for account endpoints."""

from datetime import datetime

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from media_accounts.models.user import AccountType
from media_accounts.schemas.base import EMAIL_PATTERN, CamelModel


class RegisterRequest(CamelModel):
    """Request to create an account."""

    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="Password (minimum 8 characters)",
    )
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str | None = Field(None, max_length=150)
    account_type: AccountType = AccountType.NORMAL
    artist_id: int | None = Field(
        None,
        ge=1,
        description="Artist profile id owned by the catalogue service (ARTIST accounts only)",
    )


class UserResponse(CamelModel):
    """Account as returned to its owner."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str | None = None
    account_type: AccountType
    artist_id: int | None = None
    slug: str | None = None
    is_active: bool
    email_verified: bool
    has_password: bool
    allows_external_login: bool
    last_login_at: datetime | None = None
    created_at: datetime


class PublicProfileResponse(CamelModel):
    """Public view of an account (no email, no flags)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    first_name: str
    last_name: str | None = None
    account_type: AccountType
    artist_id: int | None = None
    slug: str | None = None


class UserDataResponse(CamelModel):
    """Basic data handed to sibling services."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str | None = None
    account_type: AccountType
    artist_id: int | None = None
    is_active: bool


class UserExistsResponse(CamelModel):
    user_id: int
    exists: bool


class StatsResponse(CamelModel):
    """Active account counts."""

    total_users: int
    total_listeners: int
    total_artists: int


class VerifyEmailResponse(CamelModel):
    message: str
    email: str


class ResendVerificationRequest(CamelModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)


class PasswordRecoveryRequest(CamelModel):
    email: str = Field(..., max_length=255)


class PasswordResetRequest(CamelModel):
    """Reset a forgotten password with the emailed code."""

    email: str = Field(..., max_length=255)
    code: str = Field(..., pattern=r"^\d{6}$", description="6-digit recovery code")
    new_password: str = Field(..., min_length=8, max_length=128)


class ChangePasswordRequest(CamelModel):
    """Request for password change."""

    current_password: str = Field(..., min_length=1)
    new_password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="New password (minimum 8 characters)",
    )


class MessageResponse(CamelModel):
    message: str
