"""Stable error codes and the JSON error body shared by middleware and handlers."""

from enum import StrEnum

from starlette.responses import JSONResponse


class ErrorCode(StrEnum):
    """Machine-readable codes returned in the ``error`` field."""

    # Token and trust problems (middleware)
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    MALFORMED_TOKEN = "MALFORMED_TOKEN"
    UNSUPPORTED_TOKEN = "UNSUPPORTED_TOKEN"
    INVALID_SERVICE_TOKEN = "INVALID_SERVICE_TOKEN"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Permission layer
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    FORBIDDEN = "FORBIDDEN"

    # Session and account flows
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_INACTIVE = "ACCOUNT_INACTIVE"
    EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"
    EMAIL_ALREADY_EXISTS = "EMAIL_ALREADY_EXISTS"
    INVALID_VERIFICATION_TOKEN = "INVALID_VERIFICATION_TOKEN"
    INVALID_PASSWORD_RESET_CODE = "INVALID_PASSWORD_RESET_CODE"
    INVALID_EXTERNAL_TOKEN = "INVALID_EXTERNAL_TOKEN"
    EXTERNAL_LOGIN_DISABLED = "EXTERNAL_LOGIN_DISABLED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    INVALID_DATA = "INVALID_DATA"
    TOO_MANY_REQUESTS = "TOO_MANY_REQUESTS"

    # Generic HTTP
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"


# Fallback codes for HTTPException raised without a domain error
STATUS_TO_CODE: dict[int, ErrorCode] = {
    400: ErrorCode.INVALID_DATA,
    401: ErrorCode.AUTHENTICATION_REQUIRED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.METHOD_NOT_ALLOWED,
    429: ErrorCode.TOO_MANY_REQUESTS,
    500: ErrorCode.INTERNAL_ERROR,
}


def error_response(
    status_code: int,
    code: ErrorCode | str,
    message: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build ``{"error": CODE, "message": ...}`` with the given status."""
    if status_code == 401:
        headers = {"WWW-Authenticate": "Bearer", **(headers or {})}
    return JSONResponse(
        status_code=status_code,
        content={"error": str(code), "message": message},
        headers=headers,
    )
