"""Google Drive connector."""

from datetime import datetime
from typing import Dict, Optional

import httpx

from docsync.core.datetime_utils import format_rfc3339, is_never, parse_rfc3339, utc_now
from docsync.core.exceptions import AuthenticationError
from docsync.core.shared_models import ConnectorType
from docsync.platform.converters import converter_for
from docsync.platform.entities import Document
from docsync.platform.sync.exceptions import EntityProcessingError
from docsync.platform.sync.stream import ChunkStream

from ._google import GoogleConnector

# Google Workspace formats have no downloadable bytes and must be exported.
EXPORT_MIME_TYPES: Dict[str, str] = {
    "application/vnd.google-apps.document": "text/plain",
    "application/vnd.google-apps.spreadsheet": "text/csv",
    "application/vnd.google-apps.presentation": "text/plain",
}


class GoogleDriveConnector(GoogleConnector):
    """Syncs Google Drive files changed since the last sync.

    Files are listed ten per page, newest first. Each page is processed
    concurrently and fully joined before the next page is requested.
    """

    connector_type = ConnectorType.GOOGLE_DRIVE
    display_name = "Google Drive"
    scopes = [
        "https://www.googleapis.com/auth/drive.metadata.readonly",
        "https://www.googleapis.com/auth/drive.readonly",
        "https://www.googleapis.com/auth/userinfo.email",
    ]

    FILES_URL = "https://www.googleapis.com/drive/v3/files"
    PAGE_SIZE = 10
    FILE_FIELDS = "nextPageToken, files(id, name, webViewLink, createdTime, modifiedTime, mimeType)"

    async def _list_page(self, since: datetime, page_token: Optional[str]) -> Dict:
        params = {
            "pageSize": self.PAGE_SIZE,
            "fields": self.FILE_FIELDS,
            "orderBy": "modifiedTime desc",
        }
        if not is_never(since):
            params["q"] = f"modifiedTime > '{format_rfc3339(since)}'"
        if page_token:
            params["pageToken"] = page_token
        return await self._get_json(self.FILES_URL, params)

    async def _produce(self, since: datetime, stream: ChunkStream) -> None:
        page_token: Optional[str] = None
        pages = 0
        while True:
            page = await self._list_page(since, page_token)
            files = page.get("files", [])
            pages += 1
            self.logger.debug(f"Processing page {pages} with {len(files)} files")

            await self._fan_out([self._process_file(file, stream) for file in files])

            page_token = page.get("nextPageToken")
            if not page_token:
                break

    async def _fetch_content(self, file: Dict) -> Optional[str]:
        """Export or download a file as text; None for unsupported types."""
        file_id = file["id"]
        mime_type = file.get("mimeType", "")

        export_as = EXPORT_MIME_TYPES.get(mime_type)
        if export_as is not None:
            response = await self._get(
                f"{self.FILES_URL}/{file_id}/export", {"mimeType": export_as}
            )
            return response.content.decode("utf-8", errors="ignore")

        converter = converter_for(mime_type)
        if converter is None:
            return None
        response = await self._get(f"{self.FILES_URL}/{file_id}", {"alt": "media"})
        return await converter.convert(response.content)

    def _to_document(self, file: Dict) -> Document:
        return Document(
            unique_id=file["id"],
            name=file.get("name", file["id"]),
            source_url=file.get("webViewLink", ""),
            connector_id=self.id,
            connector_type=self.type,
            created_at=_parse_time(file.get("createdTime")),
            updated_at=_parse_time(file.get("modifiedTime")),
        )

    async def _process_file(self, file: Dict, stream: ChunkStream) -> None:
        name = file.get("name", file.get("id"))
        mime_type = file.get("mimeType", "")
        try:
            content = await self._fetch_content(file)
        except AuthenticationError:
            raise
        except (httpx.HTTPError, EntityProcessingError) as e:
            self.logger.warning(f"Unable to export file {name} of mimetype {mime_type}: {e}")
            await stream.put_error(f"unable to export file {name} of mimetype {mime_type}: {e}")
            return

        if content is None:
            self.logger.debug(f"Skipping {name}: unsupported MIME type {mime_type}")
            return

        emitted = await self._emit_document(self._to_document(file), content, stream)
        self.logger.debug(f"Emitted {emitted} chunks for {name}")


def _parse_time(value: Optional[str]) -> datetime:
    if value:
        try:
            return parse_rfc3339(value)
        except ValueError:
            pass
    return utc_now()
