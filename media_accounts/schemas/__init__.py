# Media accounts schemas
from .auth import (
    ExternalLoginRequest,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    RefreshRequest,
    RefreshResponse,
)
from .errors import ErrorResponse
from .user import (
    ChangePasswordRequest,
    MessageResponse,
    PasswordRecoveryRequest,
    PasswordResetRequest,
    PublicProfileResponse,
    RegisterRequest,
    ResendVerificationRequest,
    StatsResponse,
    UserDataResponse,
    UserExistsResponse,
    UserResponse,
    VerifyEmailResponse,
)

__all__ = [
    "ChangePasswordRequest",
    "ErrorResponse",
    "ExternalLoginRequest",
    "LoginRequest",
    "LoginResponse",
    "LogoutRequest",
    "MessageResponse",
    "PasswordRecoveryRequest",
    "PasswordResetRequest",
    "PublicProfileResponse",
    "RefreshRequest",
    "RefreshResponse",
    "RegisterRequest",
    "ResendVerificationRequest",
    "StatsResponse",
    "UserDataResponse",
    "UserExistsResponse",
    "UserResponse",
    "VerifyEmailResponse",
]
