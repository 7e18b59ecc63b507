"""PDF text extraction with pypdf."""

import asyncio
import io

from pypdf import PdfReader

from docsync.platform.sync.exceptions import EntityProcessingError

from ._base import BaseTextConverter


class PdfConverter(BaseTextConverter):
    """Extracts the text layer of a PDF, page by page.

    Scanned PDFs without a text layer convert to an empty string.
    """

    async def convert(self, content: bytes) -> str:
        """Extract text in a worker thread."""
        try:
            return await asyncio.to_thread(self._extract, content)
        except Exception as e:
            raise EntityProcessingError(f"PDF extraction failed: {e}") from e

    @staticmethod
    def _extract(content: bytes) -> str:
        reader = PdfReader(io.BytesIO(content))
        pages = [(page.extract_text() or "").strip() for page in reader.pages]
        return "\n\n".join(page for page in pages if page)
