"""HTML to markdown converter."""

import asyncio

from html_to_markdown import convert

from docsync.platform.sync.exceptions import EntityProcessingError

from ._base import BaseTextConverter


class HtmlConverter(BaseTextConverter):
    """Converts HTML to markdown text using html-to-markdown."""

    async def convert(self, content: bytes) -> str:
        """Convert HTML bytes to markdown in a worker thread.

        Raises:
            EntityProcessingError: If the converter fails or returns no text
        """
        html = content.decode("utf-8", errors="ignore")
        if not html.strip():
            return ""

        def _convert() -> str:
            markdown = convert(html)
            if markdown is None:
                return ""
            if not isinstance(markdown, str):
                raise TypeError(f"expected markdown text, got {type(markdown).__name__}")
            return markdown.strip()

        try:
            return await asyncio.to_thread(_convert)
        except Exception as e:
            raise EntityProcessingError(f"HTML conversion failed: {e}") from e
