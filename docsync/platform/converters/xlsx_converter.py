"""XLSX to markdown converter using openpyxl."""

import asyncio
import io
from typing import List

from openpyxl import load_workbook

from docsync.platform.sync.exceptions import EntityProcessingError

from ._base import BaseTextConverter


class XlsxConverter(BaseTextConverter):
    """Converts XLSX workbooks to markdown, one table per sheet.

    The first row of a sheet is used as the table header. Cached formula
    results are used where the workbook has them.
    """

    async def convert(self, content: bytes) -> str:
        """Extract every sheet of the workbook in a worker thread."""
        try:
            return await asyncio.to_thread(self._extract, content)
        except EntityProcessingError:
            raise
        except Exception as e:
            raise EntityProcessingError(f"XLSX extraction failed: {e}") from e

    @staticmethod
    def _extract(content: bytes) -> str:
        try:
            wb = load_workbook(io.BytesIO(content), data_only=True)
        except Exception as e:
            raise EntityProcessingError(f"Failed to open XLSX file: {e}") from e

        markdown_parts: List[str] = []
        for sheet in wb.worksheets:
            rows = [
                ["" if value is None else str(value) for value in row]
                for row in sheet.iter_rows(values_only=True)
            ]
            rows = [row for row in rows if any(row)]
            if not rows:
                continue

            markdown_parts.append(f"## Sheet: {sheet.title}\n")
            if len(rows) > 1:
                header, data_rows = rows[0], rows[1:]
                markdown_parts.append("| " + " | ".join(header) + " |")
                markdown_parts.append("| " + " | ".join(["---"] * len(header)) + " |")
                for row in data_rows:
                    padded_row = row + [""] * (len(header) - len(row))
                    markdown_parts.append("| " + " | ".join(padded_row[: len(header)]) + " |")
            else:
                markdown_parts.extend(f"- {value}" for value in rows[0] if value)
            markdown_parts.append("")

        return "\n".join(markdown_parts).strip()
