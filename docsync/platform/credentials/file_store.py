"""Token store writing one JSON file per connector."""

import re
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from docsync.core.config import settings
from docsync.core.exceptions import DocsyncException
from docsync.core.logging import ContextualLogger
from docsync.core.logging import logger as default_logger

from ._base import BaseTokenStore, OAuthToken

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")


class FileTokenStore(BaseTokenStore):
    """Stores tokens as ``<directory>/<connector_id>.json``.

    Writes go through a temporary file and a rename so a crash never leaves a
    truncated token behind.
    """

    def __init__(self, directory: Optional[Path] = None, logger: Optional[ContextualLogger] = None):
        """Initialize the store.

        Args:
            directory: Token directory, defaults to ``settings.TOKEN_STORE_PATH``
            logger: Optional contextual logger
        """
        self.directory = Path(directory or settings.TOKEN_STORE_PATH)
        self.logger = logger or default_logger.with_context(component="token_store")

    def _path(self, connector_id: str) -> Path:
        return self.directory / f"{_UNSAFE.sub('_', connector_id)}.json"

    async def load(self, connector_id: str) -> Optional[OAuthToken]:
        """Read the token file, returning None if it is absent."""
        path = self._path(connector_id)
        if not await aiofiles.os.path.exists(path):
            return None
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            raw = await f.read()
        try:
            return OAuthToken.model_validate_json(raw)
        except ValidationError as e:
            raise DocsyncException(f"Corrupt token file for connector {connector_id}: {e}") from e

    async def save(self, connector_id: str, token: OAuthToken) -> None:
        """Write the token file atomically."""
        await aiofiles.os.makedirs(self.directory, exist_ok=True)
        path = self._path(connector_id)
        tmp_path = path.with_suffix(".json.tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(token.model_dump_json())
        await aiofiles.os.replace(tmp_path, path)
        self.logger.debug(f"Saved token for connector {connector_id}")

    async def delete(self, connector_id: str) -> None:
        """Remove the token file if present."""
        path = self._path(connector_id)
        if await aiofiles.os.path.exists(path):
            await aiofiles.os.remove(path)
