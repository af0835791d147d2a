"""Public, unauthenticated read endpoints."""

from fastapi import APIRouter, Depends

from media_accounts.api.dependencies import get_account_service
from media_accounts.core import settings
from media_accounts.schemas.user import PublicProfileResponse
from media_accounts.services.accounts import AccountService

router = APIRouter(prefix="/public", tags=["public"])
config_router = APIRouter(prefix="/config", tags=["config"])


@router.get("/users/by-slug/{slug}", response_model=PublicProfileResponse)
async def get_profile_by_slug(
    slug: str,
    accounts: AccountService = Depends(get_account_service),
) -> PublicProfileResponse:
    user = await accounts.get_public_profile_by_slug(slug)
    return PublicProfileResponse.model_validate(user)


@router.get("/users/{user_id}", response_model=PublicProfileResponse)
async def get_profile(
    user_id: int,
    accounts: AccountService = Depends(get_account_service),
) -> PublicProfileResponse:
    user = await accounts.get_public_profile(user_id)
    return PublicProfileResponse.model_validate(user)


@config_router.get("/public")
async def get_public_config() -> dict[str, object]:
    """Client configuration that is safe to expose."""
    return {
        "appName": settings.app_name,
        "version": settings.app_version,
        "externalLoginEnabled": bool(settings.google_client_id),
        "googleClientId": settings.google_client_id or None,
    }
