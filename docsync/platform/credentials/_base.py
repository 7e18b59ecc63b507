"""Credential boundary: OAuth tokens and where they are kept."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from docsync.core.datetime_utils import ensure_utc, utc_now


class OAuthToken(BaseModel):
    """An OAuth2 token as returned by the provider's token endpoint."""

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expiry: Optional[datetime] = Field(None, description="Access token expiry (UTC).")
    scope: Optional[str] = None

    @field_validator("expiry")
    @classmethod
    def _utc_expiry(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @classmethod
    def from_token_response(
        cls, payload: dict, previous: Optional["OAuthToken"] = None
    ) -> "OAuthToken":
        """Build a token from a token endpoint JSON body.

        Refresh responses usually omit ``refresh_token``; the previous one is kept.
        """
        expires_in = payload.get("expires_in")
        refresh_token = payload.get("refresh_token")
        if not refresh_token and previous is not None:
            refresh_token = previous.refresh_token
        return cls(
            access_token=payload["access_token"],
            refresh_token=refresh_token,
            token_type=payload.get("token_type") or "Bearer",
            expiry=utc_now() + timedelta(seconds=int(expires_in)) if expires_in else None,
            scope=payload.get("scope"),
        )

    def is_expired(self, leeway_seconds: int = 60) -> bool:
        """Whether the access token expires within ``leeway_seconds``."""
        if self.expiry is None:
            return False
        return utc_now() + timedelta(seconds=leeway_seconds) >= self.expiry


class BaseTokenStore(ABC):
    """Durable storage of one token per connector id."""

    @abstractmethod
    async def load(self, connector_id: str) -> Optional[OAuthToken]:
        """Return the saved token or None."""
        pass

    @abstractmethod
    async def save(self, connector_id: str, token: OAuthToken) -> None:
        """Persist ``token`` for ``connector_id``, replacing any previous one."""
        pass

    @abstractmethod
    async def delete(self, connector_id: str) -> None:
        """Forget the token of ``connector_id``."""
        pass
