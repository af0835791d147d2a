"""Session lifecycle: access-token issuance and refresh-token allow-list."""

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from media_accounts.models.base import utcnow
from media_accounts.models.refresh_token import RefreshToken
from media_accounts.models.user import AccountType
from media_accounts.services.errors import (
    RefreshFailure,
    RefreshTokenInvalidError,
    RefreshTokenNotFoundError,
)
from media_accounts.services.refresh_token_store import RefreshTokenStore
from media_accounts.services.token_codec import TokenCodec

logger = logging.getLogger(__name__)

# 48 random bytes -> 64 url-safe characters
REFRESH_TOKEN_BYTES = 48


class SessionManager:
    """Issues access tokens and manages persisted refresh tokens.

    Every mutation commits its own transaction so a revocation is durable
    before the response goes out.
    """

    def __init__(
        self,
        session: AsyncSession,
        codec: TokenCodec,
        access_ttl_seconds: int,
        refresh_ttl_seconds: int,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.codec = codec
        self.access_ttl_seconds = access_ttl_seconds
        self.refresh_ttl_seconds = refresh_ttl_seconds
        self.store = RefreshTokenStore(session)
        self._clock = clock

    def issue_access_token(
        self,
        email: str,
        user_id: int,
        account_type: AccountType | str | None = None,
        artist_id: int | None = None,
    ) -> str:
        """Sign an access token for a user.

        ``accountType`` and ``artistId`` are only present when given.
        """
        claims: dict[str, object] = {
            "sub": str(user_id),
            "userId": user_id,
            "email": email,
        }
        if account_type is not None:
            claims["accountType"] = (
                account_type.value if isinstance(account_type, AccountType) else account_type
            )
        if artist_id is not None:
            claims["artistId"] = artist_id
        return self.codec.issue(claims, self.access_ttl_seconds)

    async def issue_refresh_token(self, user_id: int) -> RefreshToken:
        """Create and persist a new, unrevoked refresh token."""
        expires_at = self._clock() + timedelta(seconds=self.refresh_ttl_seconds)
        record = await self.store.add(
            user_id=user_id,
            token=secrets.token_urlsafe(REFRESH_TOKEN_BYTES),
            expires_at=expires_at,
        )
        await self.session.commit()
        logger.debug(f"Issued refresh token {record.id} for user {user_id}")
        return record

    async def validate_refresh_token(self, token: str) -> RefreshToken:
        """Return the stored record if the token is known, unrevoked and unexpired.

        Raises:
            RefreshTokenNotFoundError: token unknown
            RefreshTokenInvalidError: token revoked or expired
        """
        record = await self.store.find_by_token(token)
        if record is None:
            logger.info("Refresh rejected: token not found")
            raise RefreshTokenNotFoundError()

        if record.revoked:
            logger.warning(
                f"Refresh rejected: token {record.id} of user {record.user_id} is revoked"
            )
            raise RefreshTokenInvalidError(RefreshFailure.REVOKED)

        if record.is_expired(self._clock()):
            logger.info(f"Refresh rejected: token {record.id} of user {record.user_id} expired")
            raise RefreshTokenInvalidError(RefreshFailure.EXPIRED)

        return record

    async def revoke(self, token: str) -> None:
        """Revoke one refresh token. Unknown or already revoked tokens are a no-op."""
        changed = await self.store.mark_revoked(token)
        await self.session.commit()
        if changed:
            logger.info("Refresh token revoked")

    async def revoke_all(self, user_id: int) -> int:
        """Revoke every refresh token of ``user_id``; returns how many changed."""
        count = await self.store.mark_all_revoked(user_id)
        await self.session.commit()
        logger.info(f"Revoked {count} refresh token(s) for user {user_id}")
        return count

    async def purge_expired(self) -> int:
        """Physically delete refresh tokens whose expiry has passed."""
        count = await self.store.delete_expired(self._clock())
        await self.session.commit()
        if count:
            logger.info(f"Purged {count} expired refresh token(s)")
        return count
