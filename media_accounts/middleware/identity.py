"""Principals attached to ``request.state.identity``."""

from dataclasses import dataclass
from typing import Any

from starlette.requests import Request

SERVICE_SUBJECT = "SERVICE"


@dataclass(frozen=True)
class UserIdentity:
    """End user authenticated by a bearer access token."""

    user_id: int
    email: str | None = None
    account_type: str | None = None
    artist_id: int | None = None

    @property
    def subject(self) -> str:
        return str(self.user_id)

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "UserIdentity":
        """Build an identity from validated token claims.

        Raises:
            ValueError: ``userId`` is missing or not an integer
        """
        user_id = claims.get("userId")
        if isinstance(user_id, bool) or not isinstance(user_id, int):
            raise ValueError("Token has no usable userId claim")
        artist_id = claims.get("artistId")
        return cls(
            user_id=user_id,
            email=claims.get("email"),
            account_type=claims.get("accountType"),
            artist_id=artist_id if isinstance(artist_id, int) else None,
        )


@dataclass(frozen=True)
class ServiceIdentity:
    """Trusted sibling service authenticated by the shared-secret header."""

    subject: str = SERVICE_SUBJECT


Identity = UserIdentity | ServiceIdentity


def get_identity(request: Request) -> Identity | None:
    """Identity attached by the middleware chain, if any."""
    return getattr(request.state, "identity", None)
