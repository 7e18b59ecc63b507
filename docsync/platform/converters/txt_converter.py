"""Plain text converter."""

from ._base import BaseTextConverter


class TxtConverter(BaseTextConverter):
    """Decodes text-like content (plain, markdown, csv, json) as UTF-8."""

    async def convert(self, content: bytes) -> str:
        """Decode ``content``, dropping undecodable bytes."""
        return content.decode("utf-8", errors="ignore")
