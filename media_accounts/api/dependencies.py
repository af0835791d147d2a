"""FastAPI dependencies: service construction and the permission layer."""

import logging
import time
from collections import defaultdict

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from media_accounts.core import get_db, settings
from media_accounts.core.request_utils import get_client_ip
from media_accounts.middleware.identity import ServiceIdentity, UserIdentity, get_identity
from media_accounts.middleware.route_classifier import RouteAccess, RouteClassifier
from media_accounts.services.accounts import AccountService
from media_accounts.services.email import EmailSender
from media_accounts.services.errors import (
    AuthenticationRequiredError,
    ForbiddenError,
    TooManyRequestsError,
)
from media_accounts.services.external_identity import ExternalIdentityVerifier
from media_accounts.services.factory import build_account_service
from media_accounts.services.token_codec import TokenCodec

logger = logging.getLogger(__name__)


# --- Application-scoped collaborators (set up in create_app) ---


def get_token_codec(request: Request) -> TokenCodec:
    return request.app.state.token_codec


def get_route_classifier(request: Request) -> RouteClassifier:
    return request.app.state.route_classifier


def get_email_sender(request: Request) -> EmailSender:
    return request.app.state.email_sender


def get_identity_verifier(request: Request) -> ExternalIdentityVerifier:
    return request.app.state.identity_verifier


# --- Request-scoped services ---


def get_account_service(
    db: AsyncSession = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
    email_sender: EmailSender = Depends(get_email_sender),
) -> AccountService:
    """Dependency to get the account service."""
    return build_account_service(db, codec, settings, email_sender)


# --- Permission layer ---


async def enforce_route_access(request: Request) -> None:
    """Check the attached identity against the route table.

    Runs after the middleware chain, so the identity (if any) is already
    on ``request.state``.
    """
    classifier = get_route_classifier(request)
    access = classifier.classify(request.method, request.url.path)
    if access is RouteAccess.PUBLIC:
        return

    identity = get_identity(request)
    if identity is None:
        raise AuthenticationRequiredError("Authentication required")

    if access is RouteAccess.SERVICE and not isinstance(identity, ServiceIdentity):
        logger.warning(f"User {identity.subject} denied service-only route {request.url.path}")
        raise ForbiddenError("This endpoint is restricted to internal services")


def require_user(request: Request) -> UserIdentity:
    """The calling end user; services and anonymous callers are rejected."""
    identity = get_identity(request)
    if identity is None:
        raise AuthenticationRequiredError("Authentication required")
    if not isinstance(identity, UserIdentity):
        raise ForbiddenError("This endpoint requires a user session")
    return identity


# --- Login rate limiting ---

# Rate limiting for login attempts
_login_attempts: dict[str, list[float]] = defaultdict(list)
_LOGIN_WINDOW = 60  # 1-minute window


def check_login_rate_limit(request: Request) -> str:
    """Reject the request when its client IP used up its login attempts.

    Returns the client IP so the endpoint can record the attempt.
    """
    client_ip = get_client_ip(request) or "unknown"
    now = time.monotonic()
    recent = [t for t in _login_attempts[client_ip] if now - t < _LOGIN_WINDOW]
    _login_attempts[client_ip] = recent
    if len(recent) >= settings.login_rate_limit_attempts:
        logger.warning("Login rate limit exceeded for %s", client_ip)
        raise TooManyRequestsError("Too many login attempts. Please try again later.")
    return client_ip


def record_login_attempt(client_ip: str) -> None:
    """Record a login attempt for rate limiting."""
    _login_attempts[client_ip].append(time.monotonic())


def reset_login_attempts() -> None:
    _login_attempts.clear()
