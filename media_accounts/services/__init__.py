# Media accounts services
from media_accounts.services.accounts import AccountService, AuthSession
from media_accounts.services.sessions import SessionManager
from media_accounts.services.sweeper import MaintenanceSweeper
from media_accounts.services.token_codec import TokenCodec

__all__ = [
    "AccountService",
    "AuthSession",
    "MaintenanceSweeper",
    "SessionManager",
    "TokenCodec",
]
