"""Converters from downloaded file content to text, keyed by MIME type."""

from types import MappingProxyType
from typing import Mapping, Optional

from ._base import BaseTextConverter
from .docx_converter import DocxConverter
from .html_converter import HtmlConverter
from .pdf_converter import PdfConverter
from .txt_converter import TxtConverter
from .xlsx_converter import XlsxConverter

PDF_MIME_TYPE = "application/pdf"
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_txt = TxtConverter()

CONVERTERS: Mapping[str, BaseTextConverter] = MappingProxyType(
    {
        "text/plain": _txt,
        "text/markdown": _txt,
        "text/csv": _txt,
        "application/json": _txt,
        "text/html": HtmlConverter(),
        PDF_MIME_TYPE: PdfConverter(),
        DOCX_MIME_TYPE: DocxConverter(),
        XLSX_MIME_TYPE: XlsxConverter(),
    }
)


def converter_for(mime_type: str) -> Optional[BaseTextConverter]:
    """Return the converter for ``mime_type`` or None if unsupported."""
    return CONVERTERS.get(mime_type.split(";")[0].strip().lower())


__all__ = [
    "BaseTextConverter",
    "CONVERTERS",
    "DOCX_MIME_TYPE",
    "DocxConverter",
    "HtmlConverter",
    "PDF_MIME_TYPE",
    "PdfConverter",
    "TxtConverter",
    "XLSX_MIME_TYPE",
    "XlsxConverter",
    "converter_for",
]
