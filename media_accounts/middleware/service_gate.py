"""Service trust gate - shared-secret header for sibling services.

Runs before the request authenticator. A matching ``X-Service-Token``
marks the request as coming from a trusted service; a wrong one stops the
request even when a valid user token is also present.
"""

import hmac
import logging

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from media_accounts.core.errors import ErrorCode, error_response
from media_accounts.core.request_utils import get_client_ip
from media_accounts.middleware.identity import ServiceIdentity

logger = logging.getLogger(__name__)

SERVICE_TOKEN_HEADER = "X-Service-Token"


class ServiceTrustGateMiddleware(BaseHTTPMiddleware):
    """Attach a ``ServiceIdentity`` when the service header carries the shared secret."""

    def __init__(self, app: ASGIApp, service_token: str):
        super().__init__(app)
        if not service_token:
            raise ValueError("service_token must be configured")
        self._expected = service_token.encode()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        provided = request.headers.get(SERVICE_TOKEN_HEADER)

        if not provided:
            return await call_next(request)

        if not hmac.compare_digest(provided.encode(), self._expected):
            client_ip = get_client_ip(request) or "unknown"
            logger.warning(
                f"Invalid service token from {client_ip}: {request.method} {request.url.path}",
                extra={"client_ip": client_ip},
            )
            return error_response(
                401, ErrorCode.INVALID_SERVICE_TOKEN, "Invalid service token"
            )

        request.state.identity = ServiceIdentity()
        request.state.is_service_request = True
        logger.debug(f"Service request: {request.method} {request.url.path}")
        return await call_next(request)
