"""Shared OAuth and HTTP plumbing for Google API connectors."""

import asyncio
import webbrowser
from typing import Any, ClassVar, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from docsync.core.config import settings
from docsync.core.exceptions import AuthenticationError, TokenRefreshError
from docsync.platform.credentials import OAuthToken

from ._base import BaseConnector
from .retry_helpers import call_with_backoff


class GoogleConnector(BaseConnector):
    """Base for connectors authorizing with Google's OAuth2 web flow.

    The authorization request carries the connector id as ``state`` and
    redirects to ``{OAUTH_REDIRECT_BASE_URL}/connectors/{id}/callback``; the
    HTTP layer hands the returned code to ``auth_callback``. Access tokens are
    refreshed transparently when they expire or a request comes back 401.
    """

    AUTH_URL = "https://accounts.google.com/o/oauth2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    scopes: ClassVar[List[str]] = []

    @property
    def redirect_uri(self) -> str:
        """OAuth redirect URI for this connector."""
        return f"{settings.OAUTH_REDIRECT_BASE_URL.rstrip('/')}/connectors/{self.id}/callback"

    def authorization_url(self) -> str:
        """Build the consent URL requesting offline access."""
        params = {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": "offline",
            "prompt": "consent",
            "state": self.id,
        }
        return f"{self.AUTH_URL}?{urlencode(params)}"

    async def auth_setup(self) -> None:
        """Open the consent page in a browser unless a token is already stored."""
        if await self.token_store.load(self.id) is not None:
            self.logger.info("Token found, skipping authorization")
            return

        url = self.authorization_url()
        self.logger.info(f"No token found, opening browser for authorization: {url}")
        opened = await asyncio.to_thread(webbrowser.open, url)
        if not opened:
            self.logger.warning(f"Unable to open a browser, visit manually: {url}")

    async def auth_callback(self, code: str) -> None:
        """Exchange ``code`` for a token, store it and record the user's email."""
        token = await self._request_token(
            {
                "code": code,
                "client_id": settings.GOOGLE_CLIENT_ID,
                "client_secret": settings.GOOGLE_CLIENT_SECRET,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            }
        )
        await self.token_store.save(self.id, token)

        email = await self._fetch_user_email()
        self._user = email
        self.logger.info(f"Authorized as {email}")

        state = await self.status()
        state.user = email
        state.auth_valid = True
        await self.update_connector_state(state)

    async def _request_token(
        self, data: Dict[str, str], previous: Optional[OAuthToken] = None
    ) -> OAuthToken:
        try:
            response = await self.http_client.post(self.TOKEN_URL, data=data)
            response.raise_for_status()
            return OAuthToken.from_token_response(response.json(), previous)
        except (httpx.HTTPStatusError, KeyError, ValueError) as e:
            if data.get("grant_type") == "refresh_token":
                raise TokenRefreshError(f"Token refresh failed: {e}", self.id) from e
            raise AuthenticationError(f"Token exchange failed: {e}", self.id) from e

    async def _refresh(self, token: OAuthToken) -> OAuthToken:
        if not token.refresh_token:
            raise AuthenticationError("Access token expired and no refresh token stored", self.id)
        refreshed = await self._request_token(
            {
                "client_id": settings.GOOGLE_CLIENT_ID,
                "client_secret": settings.GOOGLE_CLIENT_SECRET,
                "refresh_token": token.refresh_token,
                "grant_type": "refresh_token",
            },
            previous=token,
        )
        await self.token_store.save(self.id, refreshed)
        self.logger.debug("Refreshed access token")
        return refreshed

    async def get_access_token(self, force_refresh: bool = False) -> str:
        """Return a usable access token, refreshing it when needed.

        Raises:
            AuthenticationError: If no token is stored or it cannot be refreshed
        """
        token = await self.token_store.load(self.id)
        if token is None:
            raise AuthenticationError(f"No credential stored for connector {self.id}", self.id)
        if force_refresh or token.is_expired():
            token = await self._refresh(token)
        return token.access_token

    async def _get_once(self, url: str, params: Optional[Dict[str, Any]]) -> httpx.Response:
        access_token = await self.get_access_token()
        response = await self.http_client.get(
            url, headers={"Authorization": f"Bearer {access_token}"}, params=params
        )
        if response.status_code == 401:
            self.logger.warning(f"Received 401 Unauthorized for {url}, refreshing token...")
            access_token = await self.get_access_token(force_refresh=True)
            response = await self.http_client.get(
                url, headers={"Authorization": f"Bearer {access_token}"}, params=params
            )
            if response.status_code == 401:
                raise AuthenticationError(f"Credential rejected by {url}", self.id)
        response.raise_for_status()
        return response

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """Authenticated GET with the shared retry policy."""
        return await call_with_backoff(
            self._get_once, url, params, policy=self.backoff, logger=self.logger
        )

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict:
        response = await self._get(url, params)
        return response.json()

    async def _fetch_user_email(self) -> str:
        """Resolve the authenticated user's email from the userinfo endpoint."""
        try:
            payload = await self._get_json(self.USERINFO_URL, {"alt": "json"})
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Unable to get user info: {e}", self.id) from e
        return payload.get("email", "")
