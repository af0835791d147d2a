"""Refresh tokens - persisted allow-list of issued session credentials."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from media_accounts.models.base import BaseModel, UTCDateTime, utcnow

if TYPE_CHECKING:
    from media_accounts.models.user import User


class RefreshToken(BaseModel):
    """An opaque refresh token issued to a user.

    Revocation flips ``revoked``; rows are physically removed by the
    maintenance sweeper once ``expires_at`` has passed.
    """

    __tablename__ = "refresh_tokens"

    token: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="refresh_tokens")

    def is_expired(self, now: datetime | None = None) -> bool:
        """True once ``now`` has reached the expiration time."""
        return (now or utcnow()) >= self.expires_at

    def is_valid(self, now: datetime | None = None) -> bool:
        return not self.revoked and not self.is_expired(now)

    def __repr__(self) -> str:
        return f"<RefreshToken {self.id} user_id={self.user_id} revoked={self.revoked}>"
