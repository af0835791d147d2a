"""Account and session endpoints under /api/users."""

import logging

from fastapi import APIRouter, Depends, Query, Response, status

from media_accounts.api.dependencies import (
    check_login_rate_limit,
    get_account_service,
    get_identity_verifier,
    record_login_attempt,
    require_user,
)
from media_accounts.middleware.identity import UserIdentity
from media_accounts.schemas.auth import (
    ExternalLoginRequest,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    RefreshRequest,
    RefreshResponse,
)
from media_accounts.schemas.errors import ErrorResponse
from media_accounts.schemas.user import (
    ChangePasswordRequest,
    MessageResponse,
    PasswordRecoveryRequest,
    PasswordResetRequest,
    RegisterRequest,
    ResendVerificationRequest,
    StatsResponse,
    UserDataResponse,
    UserExistsResponse,
    UserResponse,
    VerifyEmailResponse,
)
from media_accounts.services.accounts import AccountService, AuthSession
from media_accounts.services.errors import (
    EmailNotVerifiedError,
    InvalidCredentialsError,
    InvalidPasswordResetCodeError,
    UserInactiveError,
)
from media_accounts.services.external_identity import ExternalIdentityVerifier

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["users"],
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
        status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
    },
)


def _login_response(auth: AuthSession) -> LoginResponse:
    return LoginResponse(
        token=auth.access_token,
        refresh_token=auth.refresh_token,
        user=UserResponse.model_validate(auth.user),
    )


# --- Registration and verification ---


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    accounts: AccountService = Depends(get_account_service),
) -> UserResponse:
    """Create an account. A verification token is emailed to the address."""
    user = await accounts.register(
        email=request.email,
        password=request.password,
        first_name=request.first_name,
        last_name=request.last_name,
        account_type=request.account_type,
        artist_id=request.artist_id,
    )
    return UserResponse.model_validate(user)


@router.get("/verify-email", response_model=VerifyEmailResponse)
async def verify_email(
    token: str = Query(..., min_length=1),
    accounts: AccountService = Depends(get_account_service),
) -> VerifyEmailResponse:
    user = await accounts.verify_email(token)
    return VerifyEmailResponse(message="Email verified", email=user.email)


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification(
    request: ResendVerificationRequest,
    accounts: AccountService = Depends(get_account_service),
) -> MessageResponse:
    await accounts.resend_verification(request.email)
    return MessageResponse(message="Verification email sent")


# --- Login and sessions ---


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    client_ip: str = Depends(check_login_rate_limit),
    accounts: AccountService = Depends(get_account_service),
) -> LoginResponse:
    """Authenticate with email and password.

    Rate limited per client IP; failed attempts count towards the limit.
    """
    try:
        auth = await accounts.login(request.email, request.password)
    except (InvalidCredentialsError, UserInactiveError, EmailNotVerifiedError):
        record_login_attempt(client_ip)
        raise

    return _login_response(auth)


@router.post("/login/google", response_model=LoginResponse)
async def login_google(
    request: ExternalLoginRequest,
    verifier: ExternalIdentityVerifier = Depends(get_identity_verifier),
    accounts: AccountService = Depends(get_account_service),
) -> LoginResponse:
    """Log in (or sign up) with a Google ID token."""
    identity = await verifier.verify(request.id_token)
    auth = await accounts.external_login(identity)
    return _login_response(auth)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    request: RefreshRequest,
    accounts: AccountService = Depends(get_account_service),
) -> RefreshResponse:
    """Issue a new access token. The refresh token is returned unchanged."""
    access_token, refresh_token = await accounts.refresh(request.refresh_token)
    return RefreshResponse(access_token=access_token, refresh_token=refresh_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def logout(
    request: LogoutRequest,
    accounts: AccountService = Depends(get_account_service),
) -> Response:
    """Revoke one refresh token. Unknown tokens are accepted silently."""
    await accounts.logout(request.refresh_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/logout-all", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def logout_all(
    identity: UserIdentity = Depends(require_user),
    accounts: AccountService = Depends(get_account_service),
) -> Response:
    """Revoke every refresh token of the calling user."""
    await accounts.logout_all(identity.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Passwords ---


@router.post("/password-recovery", response_model=MessageResponse)
async def password_recovery(
    request: PasswordRecoveryRequest,
    accounts: AccountService = Depends(get_account_service),
) -> MessageResponse:
    # Same answer whether or not the address exists
    await accounts.request_password_recovery(request.email)
    return MessageResponse(message="If the email is registered, a recovery code has been sent")


@router.post("/password-reset", response_model=MessageResponse)
async def password_reset(
    request: PasswordResetRequest,
    client_ip: str = Depends(check_login_rate_limit),
    accounts: AccountService = Depends(get_account_service),
) -> MessageResponse:
    """Set a new password with an emailed recovery code.

    Shares the per-IP login rate limit; wrong codes count towards it.
    """
    try:
        await accounts.reset_password(request.email, request.code, request.new_password)
    except InvalidPasswordResetCodeError:
        record_login_attempt(client_ip)
        raise
    return MessageResponse(message="Password reset. Sign in with the new password")


@router.put("/{user_id}/password", response_model=MessageResponse)
async def change_password(
    user_id: int,
    request: ChangePasswordRequest,
    identity: UserIdentity = Depends(require_user),
    accounts: AccountService = Depends(get_account_service),
) -> MessageResponse:
    """Change the caller's password. Every session is ended."""
    await accounts.change_password(
        user_id=user_id,
        requester_id=identity.user_id,
        current_password=request.current_password,
        new_password=request.new_password,
    )
    return MessageResponse(message="Password changed. Sign in again on your devices")


# --- Profile and statistics ---


@router.get("/me", response_model=UserResponse)
async def get_me(
    identity: UserIdentity = Depends(require_user),
    accounts: AccountService = Depends(get_account_service),
) -> UserResponse:
    user = await accounts.get_user(identity.user_id)
    return UserResponse.model_validate(user)


@router.get("/stats", response_model=StatsResponse)
async def get_stats(accounts: AccountService = Depends(get_account_service)) -> StatsResponse:
    return StatsResponse(**await accounts.get_stats())


# --- Service-only ---


@router.get("/{user_id}/user-data", response_model=UserDataResponse)
async def get_user_data(
    user_id: int,
    accounts: AccountService = Depends(get_account_service),
) -> UserDataResponse:
    """Basic account data for sibling services."""
    user = await accounts.get_user(user_id)
    return UserDataResponse.model_validate(user)


@router.get("/{user_id}/exists", response_model=UserExistsResponse)
async def user_exists(
    user_id: int,
    accounts: AccountService = Depends(get_account_service),
) -> UserExistsResponse:
    return UserExistsResponse(user_id=user_id, exists=await accounts.user_exists(user_id))
