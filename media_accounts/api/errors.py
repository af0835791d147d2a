"""Exception handlers rendering the ``{error, message}`` body."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from media_accounts.core.errors import STATUS_TO_CODE, ErrorCode, error_response
from media_accounts.services.errors import AuthError

logger = logging.getLogger(__name__)


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        parts.append(f"{location}: {error.get('msg', 'invalid value')}" if location else error["msg"])
    return "; ".join(parts) or "Invalid request data"


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers for domain errors, HTTP errors and request validation."""

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            f"{request.method} {request.url.path} -> {exc.status_code} "
            f"{exc.error_code}: {exc.message}"
        )
        return error_response(exc.status_code, exc.error_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.detail}")
        code = STATUS_TO_CODE.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
        return error_response(exc.status_code, code, str(exc.detail), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        message = _describe_validation_errors(exc)
        logger.info(f"{request.method} {request.url.path} -> 400 invalid data: {message}")
        return error_response(400, ErrorCode.INVALID_DATA, message)
