"""Route classification - which endpoints are public, service-only or authenticated.

A single declarative table drives both the request authenticator and the
permission layer. Patterns use a small path syntax:

    /api/users            literal path
    /api/users/{id}       ``{name}`` matches one numeric segment
    /api/users/*/avatar   ``*`` matches one non-empty segment
    /api/public/**        the prefix itself or anything below it

Rules are compiled once into anchored regular expressions. The first rule
whose method and pattern match decides; unmatched requests need
authentication.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

logger = logging.getLogger(__name__)

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})

_PARAM_SEGMENT = re.compile(r"^\{[A-Za-z_][A-Za-z0-9_]*\}$")


class RouteAccess(StrEnum):
    PUBLIC = "public"
    SERVICE = "service"
    AUTHENTICATED = "authenticated"


class RouteRulesError(ValueError):
    """A route rule (or rules file) is invalid."""


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Translate a route pattern into an anchored regex.

    Raises:
        RouteRulesError: pattern is not absolute or uses ``**`` mid-path
    """
    if not pattern.startswith("/"):
        raise RouteRulesError(f"Route pattern must start with '/': {pattern!r}")

    recursive = pattern == "/**" or pattern.endswith("/**")
    base = pattern[: -len("/**")] if recursive else pattern
    base = base.rstrip("/")

    parts: list[str] = []
    for segment in base.split("/")[1:] if base else []:
        if segment == "":
            raise RouteRulesError(f"Empty segment in route pattern: {pattern!r}")
        if "**" in segment:
            raise RouteRulesError(f"'**' is only allowed as the last segment: {pattern!r}")
        if segment == "*":
            parts.append("[^/]+")
        elif _PARAM_SEGMENT.match(segment):
            parts.append(r"\d+")
        elif "{" in segment or "}" in segment or "*" in segment:
            raise RouteRulesError(f"Invalid segment {segment!r} in route pattern: {pattern!r}")
        else:
            parts.append(re.escape(segment))

    body = "".join(f"/{part}" for part in parts)
    if recursive:
        regex = f"^{body}(?:/.*)?$"
    else:
        regex = f"^{body}/?$" if body else "^/$"
    return re.compile(regex)


@dataclass(frozen=True)
class RouteRule:
    """One entry of the route table."""

    method: str
    pattern: str
    access: RouteAccess
    regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        method = self.method.upper()
        if method != "*" and method not in HTTP_METHODS:
            raise RouteRulesError(f"Unknown HTTP method {self.method!r} for {self.pattern!r}")
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "access", RouteAccess(self.access))
        object.__setattr__(self, "regex", compile_pattern(self.pattern))

    def matches(self, method: str, path: str) -> bool:
        if self.method != "*" and self.method != method.upper():
            return False
        return self.regex.match(path) is not None


def _public(method: str, pattern: str) -> RouteRule:
    return RouteRule(method, pattern, RouteAccess.PUBLIC)


def _service(method: str, pattern: str) -> RouteRule:
    return RouteRule(method, pattern, RouteAccess.SERVICE)


DEFAULT_ROUTE_RULES: tuple[RouteRule, ...] = (
    # Service-only
    _service("*", "/api/internal/**"),
    _service("GET", "/api/users/{id}/user-data"),
    _service("GET", "/api/users/{id}/exists"),
    # Registration, login and session endpoints
    _public("POST", "/api/users"),
    _public("POST", "/api/users/login"),
    _public("POST", "/api/users/login/google"),
    _public("POST", "/api/users/refresh"),
    _public("POST", "/api/users/logout"),
    _public("POST", "/api/users/password-recovery"),
    _public("POST", "/api/users/password-reset"),
    _public("GET", "/api/users/verify-email"),
    _public("POST", "/api/users/resend-verification"),
    _public("GET", "/api/users/stats"),
    # Public profiles and catalogue
    _public("GET", "/api/public/**"),
    _public("GET", "/api/artists"),
    _public("GET", "/api/artists/{id}"),
    _public("GET", "/api/artists/{id}/socials"),
    _public("GET", "/api/follows/{id}/following"),
    _public("GET", "/api/follows/{id}/followers"),
    _public("GET", "/api/follows/{id}/stats"),
    _public("GET", "/api/config/public"),
    # Infrastructure
    _public("GET", "/health/**"),
)


class RouteClassifier:
    """Classify (method, path) pairs against an ordered rule table."""

    def __init__(self, rules: tuple[RouteRule, ...] | list[RouteRule] = DEFAULT_ROUTE_RULES):
        self.rules = tuple(rules)

    def classify(self, method: str, path: str) -> RouteAccess:
        for rule in self.rules:
            if rule.matches(method, path):
                return rule.access
        return RouteAccess.AUTHENTICATED

    def is_public(self, method: str, path: str) -> bool:
        return self.classify(method, path) is RouteAccess.PUBLIC

    def is_service_only(self, method: str, path: str) -> bool:
        return self.classify(method, path) is RouteAccess.SERVICE


def parse_route_rules(entries: object) -> list[RouteRule]:
    """Validate a decoded JSON rule list.

    Raises:
        RouteRulesError: the structure or any entry is invalid
    """
    if not isinstance(entries, list) or not entries:
        raise RouteRulesError("Route rules must be a non-empty JSON array")

    rules: list[RouteRule] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise RouteRulesError(f"Route rule #{index} must be an object")
        missing = {"method", "pattern", "access"} - entry.keys()
        if missing:
            raise RouteRulesError(f"Route rule #{index} is missing {', '.join(sorted(missing))}")
        method, pattern, access = entry["method"], entry["pattern"], entry["access"]
        if not all(isinstance(value, str) for value in (method, pattern, access)):
            raise RouteRulesError(f"Route rule #{index} fields must be strings")
        try:
            rules.append(RouteRule(method, pattern, RouteAccess(access.lower())))
        except ValueError as e:
            raise RouteRulesError(f"Route rule #{index} is invalid: {e}") from e
    return rules


def load_route_rules(path: str | Path) -> list[RouteRule]:
    """Read and validate a JSON rules file."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise RouteRulesError(f"Cannot read route rules file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise RouteRulesError(f"Route rules file {path} is not valid JSON: {e}") from e
    return parse_route_rules(data)


def build_route_classifier(route_rules_file: str | None = None) -> RouteClassifier:
    """Classifier over the default table, or over a rules file when one is configured."""
    if route_rules_file:
        rules = load_route_rules(route_rules_file)
        logger.info(f"Loaded {len(rules)} route rule(s) from {route_rules_file}")
        return RouteClassifier(rules)
    return RouteClassifier(DEFAULT_ROUTE_RULES)
