"""Refresh token persistence queries."""

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from media_accounts.models.refresh_token import RefreshToken


class RefreshTokenStore:
    """Async queries over the ``refresh_tokens`` table.

    The store never commits; transaction boundaries belong to the caller.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_token(self, token: str) -> RefreshToken | None:
        result = await self.session.execute(
            select(RefreshToken)
            .where(RefreshToken.token == token)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add(self, user_id: int, token: str, expires_at: datetime) -> RefreshToken:
        record = RefreshToken(token=token, user_id=user_id, expires_at=expires_at, revoked=False)
        self.session.add(record)
        await self.session.flush()
        return record

    async def mark_revoked(self, token: str) -> int:
        """Flag one token as revoked. Returns the number of rows touched."""
        result = await self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.token == token, RefreshToken.revoked.is_(False))
            .values(revoked=True)
        )
        return result.rowcount or 0

    async def mark_all_revoked(self, user_id: int) -> int:
        """Revoke every still-active token of ``user_id`` in one statement."""
        result = await self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
        )
        return result.rowcount or 0

    async def delete_expired(self, now: datetime) -> int:
        """Delete rows with ``expires_at < now``, revoked or not."""
        result = await self.session.execute(
            delete(RefreshToken).where(RefreshToken.expires_at < now)
        )
        return result.rowcount or 0

    async def list_for_user(self, user_id: int) -> Sequence[RefreshToken]:
        result = await self.session.execute(
            select(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .order_by(RefreshToken.created_at)
        )
        return result.scalars().all()
