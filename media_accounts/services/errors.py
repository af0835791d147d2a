"""Service-layer exceptions mapped to HTTP responses.

Every exception declares the HTTP ``status_code`` and the stable
``error_code`` it is rendered with by ``register_exception_handlers``.
"""

from enum import Enum

from media_accounts.core.errors import ErrorCode


class AuthError(Exception):
    """Base authentication/account error."""

    status_code: int = 400
    error_code: ErrorCode = ErrorCode.INVALID_DATA

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidCredentialsError(AuthError):
    """Invalid email or password."""

    status_code = 401
    error_code = ErrorCode.INVALID_CREDENTIALS


class UserInactiveError(AuthError):
    """User account is deactivated."""

    status_code = 403
    error_code = ErrorCode.ACCOUNT_INACTIVE


class EmailNotVerifiedError(AuthError):
    status_code = 403
    error_code = ErrorCode.EMAIL_NOT_VERIFIED


class EmailAlreadyExistsError(AuthError):
    status_code = 409
    error_code = ErrorCode.EMAIL_ALREADY_EXISTS


class InvalidVerificationTokenError(AuthError):
    status_code = 400
    error_code = ErrorCode.INVALID_VERIFICATION_TOKEN


class InvalidPasswordResetCodeError(AuthError):
    status_code = 400
    error_code = ErrorCode.INVALID_PASSWORD_RESET_CODE


class InvalidExternalTokenError(AuthError):
    """External identity token could not be verified."""

    status_code = 401
    error_code = ErrorCode.INVALID_EXTERNAL_TOKEN


class ExternalLoginDisabledError(AuthError):
    status_code = 403
    error_code = ErrorCode.EXTERNAL_LOGIN_DISABLED


class UserNotFoundError(AuthError):
    status_code = 404
    error_code = ErrorCode.USER_NOT_FOUND


class InvalidDataError(AuthError):
    status_code = 400
    error_code = ErrorCode.INVALID_DATA


class AuthenticationRequiredError(AuthError):
    """Route needs an identity and the request carries none."""

    status_code = 401
    error_code = ErrorCode.AUTHENTICATION_REQUIRED


class ForbiddenError(AuthError):
    status_code = 403
    error_code = ErrorCode.FORBIDDEN


class TooManyRequestsError(AuthError):
    status_code = 429
    error_code = ErrorCode.TOO_MANY_REQUESTS


# --- Refresh tokens ---

# Single client-facing message for every refresh failure (no enumeration)
INVALID_REFRESH_TOKEN_MESSAGE = "Invalid or expired refresh token"


class RefreshFailure(str, Enum):
    """Why a refresh token was rejected. Logged, never returned to clients."""

    NOT_FOUND = "not_found"
    REVOKED = "revoked"
    EXPIRED = "expired"
    ACCOUNT_INACTIVE = "account_inactive"


class RefreshTokenError(AuthError):
    """Refresh token rejected; ``reason`` tells which check failed."""

    status_code = 401
    error_code = ErrorCode.INVALID_REFRESH_TOKEN

    def __init__(self, reason: RefreshFailure):
        super().__init__(INVALID_REFRESH_TOKEN_MESSAGE)
        self.reason = reason


class RefreshTokenNotFoundError(RefreshTokenError):
    def __init__(self):
        super().__init__(RefreshFailure.NOT_FOUND)


class RefreshTokenInvalidError(RefreshTokenError):
    """Token exists but is revoked, expired or owned by an inactive account."""
