"""User model - the minimal account record the auth flows work with."""

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from media_accounts.models.base import BaseModel, UTCDateTime

if TYPE_CHECKING:
    from media_accounts.models.refresh_token import RefreshToken


class AccountType(str, enum.Enum):
    """Kind of account; artists carry a secondary artist id."""

    NORMAL = "NORMAL"
    ARTIST = "ARTIST"


class User(BaseModel):
    """Listener or artist account.

    Profile data beyond names, payment methods, social links and the follow
    graph live elsewhere; this table holds what login, verification and
    recovery need.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    # NULL for accounts created through external identity login
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str | None] = mapped_column(String(150), nullable=True)

    account_type: Mapped[AccountType] = mapped_column(
        Enum(AccountType, name="account_type"), nullable=False, default=AccountType.NORMAL
    )
    artist_id: Mapped[int | None] = mapped_column(Integer, nullable=True, unique=True)

    slug: Mapped[str | None] = mapped_column(String(120), nullable=True, unique=True, index=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Email verification
    verification_token: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    verification_token_expires_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )

    # Password recovery (6-digit code sent by email)
    recovery_code: Mapped[str | None] = mapped_column(String(6), nullable=True)
    recovery_code_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    # Wrong guesses against the current code
    recovery_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # External identity provider link
    external_subject: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    allows_external_login: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    refresh_tokens: Mapped[list["RefreshToken"]] = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email}>"
