# Media accounts models
from media_accounts.models.base import BaseModel
from media_accounts.models.refresh_token import RefreshToken
from media_accounts.models.user import AccountType, User

__all__ = [
    "AccountType",
    "BaseModel",
    "RefreshToken",
    "User",
]
