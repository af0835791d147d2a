"""External identity verification (Google ID tokens).

The account flows only need a verified subject id and email; the verifier
interface hides the provider protocol.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

import jwt
from jwt import PyJWKClient
from jwt.exceptions import PyJWKClientError, PyJWTError

from media_accounts.services.errors import ExternalLoginDisabledError, InvalidExternalTokenError

logger = logging.getLogger(__name__)

GOOGLE_JWKS_URL = "https://www.googleapis.com/oauth2/v3/certs"
GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


@dataclass(frozen=True)
class ExternalIdentity:
    subject: str
    email: str
    first_name: str | None = None
    last_name: str | None = None


class ExternalIdentityVerifier(Protocol):
    async def verify(self, id_token: str) -> ExternalIdentity: ...


class GoogleIdentityVerifier:
    """Verify Google-issued ID tokens against Google's published keys."""

    def __init__(self, client_id: str, jwks_url: str = GOOGLE_JWKS_URL):
        self.client_id = client_id
        self._jwks_client = PyJWKClient(jwks_url, cache_keys=True)

    async def verify(self, id_token: str) -> ExternalIdentity:
        if not self.client_id:
            raise ExternalLoginDisabledError("External identity login is not configured")

        try:
            # PyJWKClient fetches keys synchronously
            signing_key = await asyncio.to_thread(
                self._jwks_client.get_signing_key_from_jwt, id_token
            )
            claims = jwt.decode(
                id_token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self.client_id,
                options={"require": ["exp", "iat", "sub", "iss"]},
            )
        except (PyJWTError, PyJWKClientError) as e:
            logger.warning(f"External ID token rejected: {e}")
            raise InvalidExternalTokenError("External identity token is invalid or expired") from e

        if claims.get("iss") not in GOOGLE_ISSUERS:
            raise InvalidExternalTokenError("External identity token has an unexpected issuer")

        email = claims.get("email")
        if not email or claims.get("email_verified") is not True:
            raise InvalidExternalTokenError("External identity email is not verified")

        return ExternalIdentity(
            subject=str(claims["sub"]),
            email=email,
            first_name=claims.get("given_name") or claims.get("name"),
            last_name=claims.get("family_name"),
        )
