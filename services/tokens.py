"""
Google token verification.

Accepts either an OAuth access token or an ID token from the frontend and
turns it into a verified GoogleIdentity using Google's tokeninfo endpoints.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

import config
from log import mask
from services.errors import Unauthorized

logger = logging.getLogger(__name__)


class TokenVerificationError(Unauthorized):
    pass


@dataclass
class GoogleIdentity:
    email: str
    subject: str
    name: Optional[str] = None
    picture: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None

    def split_name(self) -> tuple[str, str]:
        """First/last name, preferring Google's structured fields."""
        if self.given_name or self.family_name:
            return self.given_name or "", self.family_name or ""
        parts = (self.name or "").strip().split(" ")
        return parts[0], " ".join(parts[1:])


class TokenVerifier(Protocol):
    def verify(self, token: str) -> GoogleIdentity: ...


def is_access_token(token: str) -> bool:
    # Access tokens are opaque ("ya29...."); ID tokens are three-part JWTs
    return token.startswith("ya29.") or "." not in token


class GoogleTokenVerifier:
    def __init__(
        self,
        client_id: str = config.GOOGLE_CLIENT_ID,
        client: httpx.Client | None = None,
    ):
        self.client_id = client_id
        self.client = client or httpx.Client(timeout=config.HTTP_TIMEOUT_SECONDS)

    def verify(self, token: str) -> GoogleIdentity:
        if is_access_token(token):
            return self._verify_access_token(token)
        return self._verify_id_token(token)

    def _get_json(self, url: str, **kwargs) -> dict:
        try:
            response = self.client.get(url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"Google verification request failed: {e}")
            raise TokenVerificationError("Token verification failed")
        if response.status_code != 200:
            logger.info(f"Google rejected token with status {response.status_code}")
            raise TokenVerificationError("Invalid Google token")
        return response.json()

    def _verify_access_token(self, token: str) -> GoogleIdentity:
        logger.info(f"Verifying Google access token {mask(token)}")
        info = self._get_json(config.GOOGLE_TOKENINFO_URL, params={"access_token": token})
        if not info.get("email"):
            raise TokenVerificationError("Invalid access token - missing user information")
        if self.client_id and info.get("aud") not in (None, self.client_id):
            raise TokenVerificationError("Access token was issued to another client")

        # tokeninfo has no profile data, userinfo does
        profile = {}
        try:
            response = self.client.get(
                config.GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {token}"},
            )
            if response.status_code == 200:
                profile = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Could not fetch Google userinfo: {e}")

        subject = info.get("sub") or info.get("user_id") or profile.get("sub")
        if not subject:
            raise TokenVerificationError("Invalid access token - missing subject")
        return GoogleIdentity(
            email=info["email"],
            subject=subject,
            name=profile.get("name"),
            picture=profile.get("picture"),
            given_name=profile.get("given_name"),
            family_name=profile.get("family_name"),
        )

    def _verify_id_token(self, token: str) -> GoogleIdentity:
        logger.info(f"Verifying Google ID token {mask(token)}")
        claims = self._get_json(config.GOOGLE_ID_TOKENINFO_URL, params={"id_token": token})
        if self.client_id and claims.get("aud") != self.client_id:
            raise TokenVerificationError("Invalid ID token audience")
        if str(claims.get("email_verified", "true")).lower() == "false":
            raise TokenVerificationError("Google email is not verified")
        if not claims.get("email") or not claims.get("sub"):
            raise TokenVerificationError("Email not provided in Google token")
        return GoogleIdentity(
            email=claims["email"],
            subject=claims["sub"],
            name=claims.get("name"),
            picture=claims.get("picture"),
            given_name=claims.get("given_name"),
            family_name=claims.get("family_name"),
        )
