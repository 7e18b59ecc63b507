"""DOCX text extraction with python-docx."""

import asyncio
import io
from typing import List

import docx

from docsync.platform.sync.exceptions import EntityProcessingError

from ._base import BaseTextConverter


class DocxConverter(BaseTextConverter):
    """Extracts paragraphs and tables of a Word document as text."""

    async def convert(self, content: bytes) -> str:
        """Extract text in a worker thread."""
        try:
            return await asyncio.to_thread(self._extract, content)
        except Exception as e:
            raise EntityProcessingError(f"DOCX extraction failed: {e}") from e

    @staticmethod
    def _extract(content: bytes) -> str:
        document = docx.Document(io.BytesIO(content))
        lines: List[str] = [p.text.strip() for p in document.paragraphs if p.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                if any(cells):
                    lines.append("| " + " | ".join(cells) + " |")
        return "\n".join(lines)
