"""Signed access-token codec (compact HMAC JWS via PyJWT)."""

import binascii
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

import jwt
from jwt.exceptions import (
    DecodeError,
    InvalidAlgorithmError,
    InvalidSignatureError,
    MissingRequiredClaimError,
    PyJWTError,
)
from jwt.utils import base64url_decode, base64url_encode

from media_accounts.core.errors import ErrorCode
from media_accounts.services.errors import AuthError

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = ("HS256", "HS384", "HS512")


class TokenError(AuthError):
    """Access token rejected."""

    status_code = 401
    error_code = ErrorCode.INVALID_TOKEN


class TokenExpiredError(TokenError):
    """Token expiry has been reached."""

    error_code = ErrorCode.TOKEN_EXPIRED


class TokenSignatureError(TokenError):
    """Signature does not match the token contents."""


class MalformedTokenError(TokenError):
    """Token cannot be parsed into header, payload and signature."""

    error_code = ErrorCode.MALFORMED_TOKEN


class UnsupportedTokenError(TokenError):
    """Token is well formed but uses an algorithm or claim layout we do not accept."""

    error_code = ErrorCode.UNSUPPORTED_TOKEN


class InvalidTokenError(TokenError):
    """Any other validation failure."""


class TokenCodec:
    """Issue and validate signed, expiring claim sets.

    The signing key is passed in by the caller; the codec holds no global
    state. ``clock`` returns epoch seconds and is used both when issuing and
    when checking expiry, so a token is rejected from ``exp`` onwards with no
    leeway.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        clock: Callable[[], float] = time.time,
    ):
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported signing algorithm: {algorithm}")
        if not secret:
            raise ValueError("Signing secret must not be empty")
        self._secret = secret
        self._algorithm = algorithm
        self._clock = clock

    @property
    def algorithm(self) -> str:
        return self._algorithm

    def now(self) -> int:
        return int(self._clock())

    def issue(self, claims: Mapping[str, Any], ttl_seconds: int) -> str:
        """Sign ``claims`` with ``iat``/``exp`` set from the codec clock."""
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        issued_at = self.now()
        payload = dict(claims)
        payload["iat"] = issued_at
        payload["exp"] = issued_at + ttl_seconds
        token = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        # PyJWT 2.x returns str; older type stubs may declare bytes
        return str(token)

    def decode(self, token: str) -> dict[str, Any]:
        """Validate ``token`` and return its claims (including ``iat``/``exp``).

        Raises:
            MalformedTokenError: not a three-segment compact token
            TokenSignatureError: signature mismatch
            UnsupportedTokenError: algorithm not allowed or iat/exp missing
            TokenExpiredError: clock has reached ``exp``
            InvalidTokenError: any other PyJWT failure
        """
        self._check_signature_segment(token)

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={
                    "verify_exp": False,  # checked below against the codec clock
                    "verify_iat": False,
                    "require": ["exp", "iat"],
                },
            )
        except InvalidSignatureError as e:
            raise TokenSignatureError("Token signature is invalid") from e
        except (InvalidAlgorithmError, MissingRequiredClaimError) as e:
            raise UnsupportedTokenError(f"Unsupported token: {e}") from e
        except DecodeError as e:
            raise MalformedTokenError(f"Malformed token: {e}") from e
        except PyJWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e

        expires_at = payload["exp"]
        if isinstance(expires_at, bool) or not isinstance(expires_at, int | float):
            raise MalformedTokenError("Token expiry is not a number")
        if self._clock() >= expires_at:
            raise TokenExpiredError("Token has expired")

        return payload

    @staticmethod
    def _check_signature_segment(token: str) -> None:
        """Reject tokens whose signature segment is not canonical base64url.

        The last base64 character carries padding bits that decoders ignore,
        so two different strings can decode to the same signature bytes.
        Requiring the canonical encoding makes any edit of the segment fail.
        """
        if not isinstance(token, str):
            raise MalformedTokenError("Token must be a string")
        parts = token.split(".")
        if len(parts) != 3 or not all(parts[:2]):
            raise MalformedTokenError("Token must have three dot-separated segments")
        signature = parts[2].encode("ascii", errors="replace")
        try:
            canonical = base64url_encode(base64url_decode(signature))
        except (binascii.Error, ValueError) as e:
            raise TokenSignatureError("Token signature is invalid") from e
        if canonical != signature:
            raise TokenSignatureError("Token signature is invalid")
