"""In-process token store."""

from typing import Dict, Optional

from ._base import BaseTokenStore, OAuthToken


class InMemoryTokenStore(BaseTokenStore):
    """Keeps tokens in a dict. Useful for tests and ephemeral workers."""

    def __init__(self):
        """Initialize an empty store."""
        self._tokens: Dict[str, OAuthToken] = {}

    async def load(self, connector_id: str) -> Optional[OAuthToken]:
        """Return the token or None."""
        return self._tokens.get(connector_id)

    async def save(self, connector_id: str, token: OAuthToken) -> None:
        """Store the token."""
        self._tokens[connector_id] = token

    async def delete(self, connector_id: str) -> None:
        """Drop the token."""
        self._tokens.pop(connector_id, None)
