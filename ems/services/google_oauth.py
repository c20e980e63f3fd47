"""
Google OAuth 2.0 sign-in (authorization code flow).

Builds the consent URL, exchanges the callback `code` for an access token
and reads the user's profile from the userinfo endpoint.
"""
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from ems.core.config import Settings
from ems.core.exceptions import InternalError

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

SCOPES = ["openid", "email", "profile"]


class GoogleOAuthError(Exception):
    """The provider refused the code or answered with something unusable."""


@dataclass(frozen=True)
class GoogleProfile:
    id: Optional[str]
    email: Optional[str]
    display_name: Optional[str]


class GoogleOAuthClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._client_id = settings.GOOGLE_CLIENT_ID
        self._client_secret = settings.GOOGLE_CLIENT_SECRET
        self._redirect_uri = settings.GOOGLE_CALLBACK_URL
        self._enabled = settings.google_enabled
        self._transport = transport

    def _require_config(self) -> None:
        if not self._enabled:
            raise InternalError("Google sign-in is not configured")

    def authorization_url(self, state: Optional[str] = None) -> str:
        self._require_config()
        params = {
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
        }
        if state:
            params["state"] = state
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def fetch_profile(self, code: str) -> GoogleProfile:
        self._require_config()
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
                token_resp = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "client_id": self._client_id,
                        "client_secret": self._client_secret,
                        "code": code,
                        "grant_type": "authorization_code",
                        "redirect_uri": self._redirect_uri,
                    },
                )
                token_resp.raise_for_status()
                access_token = token_resp.json().get("access_token")
                if not access_token:
                    raise GoogleOAuthError("No access_token in token response")

                userinfo_resp = await client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                userinfo_resp.raise_for_status()
                info = userinfo_resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error("google oauth request failed with status %s", exc.response.status_code)
            raise GoogleOAuthError(f"Google OAuth request failed: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.error("google oauth transport error: %s", exc)
            raise GoogleOAuthError(f"Google OAuth error: {exc}") from exc
        except ValueError as exc:
            raise GoogleOAuthError("Malformed response from Google") from exc

        return GoogleProfile(
            id=str(info["id"]) if info.get("id") else None,
            email=info.get("email"),
            display_name=info.get("name"),
        )
