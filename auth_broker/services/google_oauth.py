"""Google OAuth2 endpoints used by the broker: authorize, code exchange, tokeninfo."""

import logging
from urllib.parse import urlencode

import httpx
from jose import jwt
from jose.exceptions import JOSEError

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"

SCOPE = "https://www.googleapis.com/auth/userinfo.email"


class GoogleAuthError(Exception):
    """The identity provider did not yield a usable identity."""


class GoogleOAuthClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
    ) -> None:
        self._http = http
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri

    def authorization_url(self, state: str) -> str:
        params = {
            "response_type": "code",
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "scope": SCOPE,
            "access_type": "online",
            "prompt": "consent",
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> str:
        """Exchange an authorization code and return the account's email."""
        try:
            response = await self._http.post(
                GOOGLE_TOKEN_URL,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self._redirect_uri,
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                },
            )
        except httpx.HTTPError as e:
            raise GoogleAuthError(f"token exchange request failed: {type(e).__name__}") from e

        if not response.is_success:
            logger.error("Google token exchange failed: status=%s", response.status_code)
            raise GoogleAuthError(f"token exchange returned {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise GoogleAuthError("token exchange returned invalid json") from e
        id_token = body.get("id_token") if isinstance(body, dict) else None
        if not id_token:
            raise GoogleAuthError("missing id_token")

        # Received directly from Google over TLS, so the claims are read as-is
        try:
            claims = jwt.get_unverified_claims(id_token)
        except JOSEError as e:
            raise GoogleAuthError("undecodable id_token") from e

        email = claims.get("email")
        if not email:
            raise GoogleAuthError("id_token has no email")
        return email

    async def lookup_access_token(self, access_token: str) -> str | None:
        """Return the email behind a Google access token, or ``None`` if invalid."""
        try:
            response = await self._http.get(
                GOOGLE_TOKENINFO_URL,
                params={"access_token": access_token},
            )
        except httpx.HTTPError as e:
            logger.warning("Google tokeninfo request failed: %s", type(e).__name__)
            return None
        if not response.is_success:
            return None
        try:
            body = response.json()
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        return body.get("email") or None
