"""Request authenticator - bearer access tokens.

Validates ``Authorization: Bearer <token>`` and attaches a ``UserIdentity``
to ``request.state.identity``. Missing credentials are not rejected here;
the permission layer decides whether the route needs them. Broken or
expired credentials are rejected immediately.
"""

import logging

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from media_accounts.core.errors import ErrorCode, error_response
from media_accounts.core.request_utils import extract_bearer_token
from media_accounts.middleware.identity import ServiceIdentity, UserIdentity
from media_accounts.middleware.route_classifier import RouteClassifier
from media_accounts.services.token_codec import TokenCodec, TokenError, TokenExpiredError

logger = logging.getLogger(__name__)


class RequestAuthenticatorMiddleware(BaseHTTPMiddleware):
    """Turn a bearer access token into a ``UserIdentity``.

    - OPTIONS requests and service requests pass untouched
    - public routes pass without identity
    - no bearer token: pass unauthenticated
    - expired token: 401 TOKEN_EXPIRED
    - any other token problem: 401 INVALID_TOKEN
    - unexpected failure: 500 INTERNAL_ERROR
    """

    def __init__(self, app: ASGIApp, codec: TokenCodec, classifier: RouteClassifier):
        super().__init__(app)
        self.codec = codec
        self.classifier = classifier

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        method = request.method
        path = request.url.path

        # CORS preflight is answered by CORSMiddleware
        if method == "OPTIONS":
            return await call_next(request)

        if isinstance(getattr(request.state, "identity", None), ServiceIdentity):
            return await call_next(request)

        if self.classifier.is_public(method, path):
            return await call_next(request)

        token = extract_bearer_token(request.headers.get("Authorization"))
        if token is None:
            return await call_next(request)

        try:
            claims = self.codec.decode(token)
            identity = UserIdentity.from_claims(claims)
        except TokenExpiredError:
            logger.debug(f"Expired token for: {method} {path}")
            return error_response(401, ErrorCode.TOKEN_EXPIRED, "Token has expired")
        except (TokenError, ValueError) as e:
            logger.warning(f"Invalid token for: {method} {path} - {e}")
            return error_response(401, ErrorCode.INVALID_TOKEN, "Invalid token")
        except Exception:
            logger.exception(f"Unexpected error authenticating {method} {path}")
            return error_response(500, ErrorCode.INTERNAL_ERROR, "Internal authentication error")

        request.state.identity = identity
        return await call_next(request)
