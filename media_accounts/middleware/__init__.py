# Media accounts middleware
from .authenticator import RequestAuthenticatorMiddleware
from .identity import SERVICE_SUBJECT, ServiceIdentity, UserIdentity, get_identity
from .route_classifier import (
    DEFAULT_ROUTE_RULES,
    RouteAccess,
    RouteClassifier,
    RouteRule,
    RouteRulesError,
    build_route_classifier,
)
from .service_gate import SERVICE_TOKEN_HEADER, ServiceTrustGateMiddleware

__all__ = [
    "DEFAULT_ROUTE_RULES",
    "RequestAuthenticatorMiddleware",
    "RouteAccess",
    "RouteClassifier",
    "RouteRule",
    "RouteRulesError",
    "SERVICE_SUBJECT",
    "SERVICE_TOKEN_HEADER",
    "ServiceIdentity",
    "ServiceTrustGateMiddleware",
    "UserIdentity",
    "build_route_classifier",
    "get_identity",
]
