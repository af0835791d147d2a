"""Media accounts - FastAPI application factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from media_accounts.api import api_router
from media_accounts.api.errors import register_exception_handlers
from media_accounts.api.health import router as health_router
from media_accounts.core import settings, setup_logging
from media_accounts.core.logging import get_logger
from media_accounts.middleware import (
    SERVICE_TOKEN_HEADER,
    RequestAuthenticatorMiddleware,
    ServiceTrustGateMiddleware,
    build_route_classifier,
)

# Import all models to ensure they're registered with Base
from media_accounts.models import RefreshToken, User  # noqa: F401
from media_accounts.services.email import LoggingEmailSender
from media_accounts.services.external_identity import GoogleIdentityVerifier
from media_accounts.services.factory import build_token_codec
from media_accounts.services.sweeper import MaintenanceSweeper

logger = get_logger("main")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    for warning in settings.check_security_configuration():
        logger.warning(f"Security configuration: {warning}")

    sweeper = MaintenanceSweeper.get_instance()
    task = await sweeper.start()
    if task is not None:
        task.add_done_callback(task_done_callback)

    yield

    # Shutdown
    logger.info("Shutting down...")
    await sweeper.stop()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Accounts, authentication and sessions for the media platform",
        version=settings.app_version,
        lifespan=lifespan,
        # API docs are only served in debug mode
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    # Shared collaborators; the signing key and route table are loaded once here
    codec = build_token_codec(settings)
    classifier = build_route_classifier(settings.route_rules_file)
    app.state.token_codec = codec
    app.state.route_classifier = classifier
    app.state.email_sender = LoggingEmailSender()
    app.state.identity_verifier = GoogleIdentityVerifier(settings.google_client_id)

    register_exception_handlers(app)

    # Starlette runs middleware in reverse order of registration:
    # CORS -> service trust gate -> request authenticator -> routes
    app.add_middleware(RequestAuthenticatorMiddleware, codec=codec, classifier=classifier)
    app.add_middleware(ServiceTrustGateMiddleware, service_token=settings.service_token)

    # CORS middleware - MUST be outermost so CORS headers are present on 401 responses too
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            SERVICE_TOKEN_HEADER,
        ],
    )

    # Include routers
    app.include_router(health_router)  # Health at root level
    app.include_router(api_router)  # API at /api

    return app


# Application instance
app = create_app()
