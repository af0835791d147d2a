"""Account flows: registration, verification, login and password management."""

import hmac
import logging
import re
import secrets
import unicodedata
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from media_accounts.models.base import utcnow
from media_accounts.models.refresh_token import RefreshToken
from media_accounts.models.user import AccountType, User
from media_accounts.services.email import EmailSender
from media_accounts.services.errors import (
    EmailAlreadyExistsError,
    EmailNotVerifiedError,
    ExternalLoginDisabledError,
    ForbiddenError,
    InvalidCredentialsError,
    InvalidDataError,
    InvalidPasswordResetCodeError,
    InvalidVerificationTokenError,
    RefreshFailure,
    RefreshTokenInvalidError,
    UserInactiveError,
    UserNotFoundError,
)
from media_accounts.services.external_identity import ExternalIdentity
from media_accounts.services.passwords import (
    burn_verification_time,
    hash_password,
    verify_password,
)
from media_accounts.services.sessions import SessionManager

logger = logging.getLogger(__name__)

SLUG_MAX_LENGTH = 100
_SLUG_INVALID = re.compile(r"[^a-z0-9]+")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def slugify(*parts: str | None) -> str:
    """ASCII, lowercase, dash-separated handle built from name parts."""
    text = " ".join(part for part in parts if part)
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = _SLUG_INVALID.sub("-", ascii_text.lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH].rstrip("-") or "user"


def generate_recovery_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


@dataclass
class AuthSession:
    """Tokens handed out by a successful login."""

    user: User
    access_token: str
    refresh_token: str


class AccountService:
    """Service for account operations.

    Session bookkeeping is delegated to ``SessionManager``; this class owns
    the user-facing rules around it.
    """

    def __init__(
        self,
        session: AsyncSession,
        sessions: SessionManager,
        email_sender: EmailSender,
        verification_ttl: timedelta = timedelta(hours=24),
        recovery_ttl: timedelta = timedelta(hours=1),
        max_recovery_attempts: int = 5,
        unverified_grace: timedelta = timedelta(days=7),
        inactive_retention: timedelta = timedelta(days=30),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.sessions = sessions
        self.email_sender = email_sender
        self.verification_ttl = verification_ttl
        self.recovery_ttl = recovery_ttl
        self.max_recovery_attempts = max_recovery_attempts
        self.unverified_grace = unverified_grace
        self.inactive_retention = inactive_retention
        self._clock = clock

    # --- Lookups ---

    async def get_user_by_email(self, email: str) -> User | None:
        result = await self.session.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: int) -> User | None:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_user(self, user_id: int) -> User:
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    async def get_public_profile(self, user_id: int) -> User:
        user = await self.get_user(user_id)
        if not user.is_active:
            raise UserInactiveError("This profile is not available")
        return user

    async def get_public_profile_by_slug(self, slug: str) -> User:
        result = await self.session.execute(select(User).where(User.slug == slug))
        user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFoundError(f"Profile not found: {slug}")
        if not user.is_active:
            raise UserInactiveError("This profile is not available")
        return user

    async def user_exists(self, user_id: int) -> bool:
        result = await self.session.execute(select(User.id).where(User.id == user_id))
        return result.scalar_one_or_none() is not None

    async def get_stats(self) -> dict[str, int]:
        """Count active accounts per account type."""
        result = await self.session.execute(
            select(User.account_type, func.count(User.id))
            .where(User.is_active.is_(True))
            .group_by(User.account_type)
        )
        counts = {account_type: count for account_type, count in result.all()}
        listeners = counts.get(AccountType.NORMAL, 0)
        artists = counts.get(AccountType.ARTIST, 0)
        return {
            "total_users": listeners + artists,
            "total_listeners": listeners,
            "total_artists": artists,
        }

    # --- Registration and verification ---

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str | None = None,
        account_type: AccountType = AccountType.NORMAL,
        artist_id: int | None = None,
    ) -> User:
        """Create an unverified account and email it a verification token."""
        email = normalize_email(email)
        if await self.get_user_by_email(email) is not None:
            raise EmailAlreadyExistsError(f"Email {email} is already registered")

        if artist_id is not None:
            if account_type is not AccountType.ARTIST:
                raise InvalidDataError("Only artist accounts can carry an artist id")
            taken = await self.session.execute(select(User.id).where(User.artist_id == artist_id))
            if taken.scalar_one_or_none() is not None:
                raise InvalidDataError(f"Artist {artist_id} is already linked to an account")

        user = User(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name.strip(),
            last_name=last_name.strip() if last_name else None,
            account_type=account_type,
            artist_id=artist_id,
            slug=await self._unique_slug(first_name, last_name),
            is_active=True,
            email_verified=False,
            allows_external_login=False,
        )
        self._set_verification_token(user)
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)

        logger.info(f"Registered user {user.id} ({account_type.value})")
        await self._send_verification(user)
        return user

    async def verify_email(self, token: str) -> User:
        result = await self.session.execute(select(User).where(User.verification_token == token))
        user = result.scalar_one_or_none()
        if user is None:
            raise InvalidVerificationTokenError("Verification token is invalid")

        expires_at = user.verification_token_expires_at
        if expires_at is None or self._clock() >= expires_at:
            raise InvalidVerificationTokenError("Verification token has expired")

        user.email_verified = True
        user.verification_token = None
        user.verification_token_expires_at = None
        await self.session.commit()

        logger.info(f"Email verified for user {user.id}")
        return user

    async def resend_verification(self, email: str) -> None:
        user = await self.get_user_by_email(email)
        if user is None:
            raise UserNotFoundError(f"No user registered with email {normalize_email(email)}")
        if user.email_verified:
            raise InvalidDataError("This email is already verified")

        self._set_verification_token(user)
        await self.session.commit()
        logger.info(f"Verification token reissued for user {user.id}")
        await self._send_verification(user)

    # --- Login and sessions ---

    async def authenticate(self, email: str, password: str) -> User:
        """Check credentials and account state; return the user.

        Raises InvalidCredentialsError for both "user not found" and
        "wrong password" to prevent user enumeration. Account state is
        only revealed after the password matched.
        """
        user = await self.get_user_by_email(email)

        if user is None:
            # Perform a dummy verification to prevent timing attacks
            burn_verification_time(password)
            raise InvalidCredentialsError("Invalid email or password")

        if not user.has_password:
            burn_verification_time(password)
            raise InvalidCredentialsError("This account signs in with an external provider")

        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError("Invalid email or password")

        if not user.is_active:
            raise UserInactiveError("Account is inactive. Contact support")

        if not user.email_verified:
            raise EmailNotVerifiedError("Verify your email address before signing in")

        return user

    async def login(self, email: str, password: str) -> AuthSession:
        user = await self.authenticate(email, password)
        return await self.start_session(user)

    async def external_login(self, identity: ExternalIdentity) -> AuthSession:
        """Log in (or sign up) with an identity already verified by a provider."""
        result = await self.session.execute(
            select(User).where(User.external_subject == identity.subject)
        )
        user = result.scalar_one_or_none()
        if user is None:
            user = await self.get_user_by_email(identity.email)

        if user is not None:
            if not user.allows_external_login:
                logger.warning(f"External login attempted on account {user.id} without permission")
                raise ExternalLoginDisabledError("External login is not enabled for this account")
            if not user.is_active:
                raise UserInactiveError("Account is inactive. Contact support")
            if not user.external_subject:
                user.external_subject = identity.subject
                logger.info(f"Linked external identity to user {user.id}")
        else:
            first_name = identity.first_name or identity.email.split("@", 1)[0]
            user = User(
                email=normalize_email(identity.email),
                password_hash=None,
                first_name=first_name,
                last_name=identity.last_name,
                account_type=AccountType.NORMAL,
                slug=await self._unique_slug(first_name, identity.last_name),
                is_active=True,
                email_verified=True,
                external_subject=identity.subject,
                allows_external_login=True,
            )
            self.session.add(user)
            await self.session.flush()
            logger.info(f"Registered user {user.id} through external identity")

        return await self.start_session(user)

    async def start_session(self, user: User) -> AuthSession:
        user.last_login_at = self._clock()
        access_token = self.sessions.issue_access_token(
            email=user.email,
            user_id=user.id,
            account_type=user.account_type,
            artist_id=user.artist_id,
        )
        refresh = await self.sessions.issue_refresh_token(user.id)
        await self.session.refresh(user)
        logger.info(f"Session started for user {user.id}")
        return AuthSession(user=user, access_token=access_token, refresh_token=refresh.token)

    async def refresh(self, refresh_token: str) -> tuple[str, str]:
        """New access token for a valid refresh token; the refresh token is kept.

        A token whose owner was deactivated is revoked along with every
        other token of that user, and rejected like any other bad token.
        """
        record = await self.sessions.validate_refresh_token(refresh_token)
        user = await self.get_user(record.user_id)
        if not user.is_active:
            logger.warning(f"Refresh rejected: user {user.id} is inactive")
            await self.sessions.revoke_all(user.id)
            raise RefreshTokenInvalidError(RefreshFailure.ACCOUNT_INACTIVE)

        access_token = self.sessions.issue_access_token(
            email=user.email,
            user_id=user.id,
            account_type=user.account_type,
            artist_id=user.artist_id,
        )
        return access_token, record.token

    async def logout(self, refresh_token: str) -> None:
        await self.sessions.revoke(refresh_token)

    async def logout_all(self, user_id: int) -> int:
        return await self.sessions.revoke_all(user_id)

    # --- Passwords ---

    async def request_password_recovery(self, email: str) -> None:
        """Email a 6-digit recovery code. Silent for unknown or inactive accounts."""
        user = await self.get_user_by_email(email)
        if user is None:
            logger.info("Password recovery requested for an unregistered email")
            return
        if not user.is_active:
            logger.warning(f"Password recovery requested for inactive user {user.id}")
            return

        code = generate_recovery_code()
        user.recovery_code = code
        user.recovery_code_expires_at = self._clock() + self.recovery_ttl
        user.recovery_attempts = 0
        await self.session.commit()

        try:
            await self.email_sender.send_recovery_code(user.email, user.first_name, code)
        except Exception:
            logger.exception(f"Failed to send recovery email to user {user.id}")

    async def reset_password(self, email: str, code: str, new_password: str) -> None:
        """Set a new password with a recovery code and end every session.

        Each wrong code counts against the current request; after
        ``max_recovery_attempts`` misses the code is discarded and a new
        one must be requested.
        """
        user = await self.get_user_by_email(email)
        if user is None or not user.recovery_code:
            raise InvalidPasswordResetCodeError(
                "No active password recovery request for this email"
            )

        expires_at = user.recovery_code_expires_at
        if expires_at is None or self._clock() >= expires_at:
            raise InvalidPasswordResetCodeError("Recovery code has expired. Request a new one")

        if not hmac.compare_digest(code.encode(), user.recovery_code.encode()):
            user.recovery_attempts = (user.recovery_attempts or 0) + 1
            if user.recovery_attempts >= self.max_recovery_attempts:
                self._clear_recovery_code(user)
                await self.session.commit()
                logger.warning(f"Recovery code discarded for user {user.id} after too many misses")
                raise InvalidPasswordResetCodeError(
                    "Too many incorrect codes. Request a new recovery code"
                )
            await self.session.commit()
            logger.warning(f"Wrong recovery code for user {user.id}")
            raise InvalidPasswordResetCodeError("Recovery code is incorrect")

        if not user.is_active:
            raise UserInactiveError("Account is inactive. Contact support")

        user.password_hash = hash_password(new_password)
        self._clear_recovery_code(user)
        await self.session.commit()

        await self.sessions.revoke_all(user.id)
        await self._send_password_changed(user)
        logger.info(f"Password reset with recovery code for user {user.id}")

    async def change_password(
        self, user_id: int, requester_id: int, current_password: str, new_password: str
    ) -> None:
        """Change a user's password and end every session."""
        user = await self.get_user(user_id)

        if user.id != requester_id:
            logger.warning(f"User {requester_id} tried to change the password of user {user_id}")
            raise ForbiddenError("You are not allowed to modify this account")

        if not user.is_active:
            raise UserInactiveError("Account is inactive. Contact support")

        if not user.has_password:
            raise InvalidCredentialsError(
                "Accounts created with an external provider have no password. "
                "Use password recovery to set one"
            )

        if not verify_password(current_password, user.password_hash):
            raise InvalidCredentialsError("Current password is incorrect")

        if verify_password(new_password, user.password_hash):
            raise InvalidDataError("New password must differ from the current one")

        user.password_hash = hash_password(new_password)
        await self.session.commit()

        await self.sessions.revoke_all(user.id)
        await self._send_password_changed(user)
        logger.info(f"Password changed for user {user.id}")

    # --- Maintenance ---

    async def clear_expired_codes(self) -> int:
        """Drop verification tokens and recovery codes past their expiry."""
        now = self._clock()
        verification = await self.session.execute(
            update(User)
            .where(
                User.verification_token.is_not(None),
                User.verification_token_expires_at < now,
            )
            .values(verification_token=None, verification_token_expires_at=None)
        )
        recovery = await self.session.execute(
            update(User)
            .where(User.recovery_code.is_not(None), User.recovery_code_expires_at < now)
            .values(recovery_code=None, recovery_code_expires_at=None, recovery_attempts=0)
        )
        await self.session.commit()
        cleared = (verification.rowcount or 0) + (recovery.rowcount or 0)
        if cleared:
            logger.info(f"Cleared {cleared} expired verification/recovery code(s)")
        return cleared

    async def deactivate_unverified_accounts(self) -> int:
        """Deactivate password accounts left unverified past the grace period.

        Accounts linked to an external identity are verified by the provider
        and never touched.
        """
        cutoff = self._clock() - self.unverified_grace
        result = await self.session.execute(
            select(User.id).where(
                User.is_active.is_(True),
                User.email_verified.is_(False),
                User.external_subject.is_(None),
                User.created_at < cutoff,
            )
        )
        user_ids = list(result.scalars().all())
        if not user_ids:
            return 0

        await self.session.execute(
            update(User)
            .where(User.id.in_(user_ids))
            .values(is_active=False, verification_token=None, verification_token_expires_at=None)
        )
        await self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id.in_(user_ids), RefreshToken.revoked.is_(False))
            .values(revoked=True)
        )
        await self.session.commit()
        logger.info(f"Deactivated {len(user_ids)} unverified account(s)")
        return len(user_ids)

    async def purge_inactive_accounts(self) -> int:
        """Delete inactive accounts older than the retention period.

        Only rows owned by this service go: the user and its refresh tokens.
        """
        cutoff = self._clock() - self.inactive_retention
        result = await self.session.execute(
            select(User.id).where(User.is_active.is_(False), User.created_at < cutoff)
        )
        user_ids = list(result.scalars().all())
        if not user_ids:
            return 0

        await self.session.execute(delete(RefreshToken).where(RefreshToken.user_id.in_(user_ids)))
        await self.session.execute(delete(User).where(User.id.in_(user_ids)))
        await self.session.commit()
        logger.info(f"Deleted {len(user_ids)} inactive account(s)")
        return len(user_ids)

    # --- Helpers ---

    @staticmethod
    def _clear_recovery_code(user: User) -> None:
        user.recovery_code = None
        user.recovery_code_expires_at = None
        user.recovery_attempts = 0

    def _set_verification_token(self, user: User) -> None:
        user.verification_token = secrets.token_urlsafe(32)
        user.verification_token_expires_at = self._clock() + self.verification_ttl

    async def _send_verification(self, user: User) -> None:
        try:
            await self.email_sender.send_verification(
                user.email, user.first_name, user.verification_token or ""
            )
        except Exception:
            logger.exception(f"Failed to send verification email to user {user.id}")

    async def _send_password_changed(self, user: User) -> None:
        try:
            await self.email_sender.send_password_changed(user.email, user.first_name)
        except Exception:
            logger.exception(f"Failed to send password change confirmation to user {user.id}")

    async def _unique_slug(self, first_name: str, last_name: str | None) -> str:
        base = slugify(first_name, last_name)
        candidate = base
        for suffix in range(2, 12):
            exists = await self.session.execute(select(User.id).where(User.slug == candidate))
            if exists.scalar_one_or_none() is None:
                return candidate
            candidate = f"{base}-{suffix}"
        return f"{base}-{secrets.token_hex(3)}"
