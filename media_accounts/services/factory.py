"""Construct services from settings."""

from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from media_accounts.core.config import Settings
from media_accounts.services.accounts import AccountService
from media_accounts.services.email import EmailSender, LoggingEmailSender
from media_accounts.services.sessions import SessionManager
from media_accounts.services.token_codec import TokenCodec


def build_token_codec(config: Settings) -> TokenCodec:
    return TokenCodec(secret=config.jwt_secret_key, algorithm=config.jwt_algorithm)


def build_session_manager(db: AsyncSession, codec: TokenCodec, config: Settings) -> SessionManager:
    return SessionManager(
        session=db,
        codec=codec,
        access_ttl_seconds=config.access_token_ttl_seconds,
        refresh_ttl_seconds=config.refresh_token_ttl_seconds,
    )


def build_account_service(
    db: AsyncSession,
    codec: TokenCodec,
    config: Settings,
    email_sender: EmailSender | None = None,
) -> AccountService:
    return AccountService(
        session=db,
        sessions=build_session_manager(db, codec, config),
        email_sender=email_sender or LoggingEmailSender(),
        verification_ttl=timedelta(hours=config.verification_token_expire_hours),
        recovery_ttl=timedelta(minutes=config.recovery_code_expire_minutes),
        max_recovery_attempts=config.recovery_code_max_attempts,
        unverified_grace=timedelta(days=config.unverified_account_grace_days),
        inactive_retention=timedelta(days=config.inactive_account_retention_days),
    )
