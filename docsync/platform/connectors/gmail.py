"""Gmail connector."""

import base64
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import httpx

from docsync.core.datetime_utils import is_never, utc_now
from docsync.core.exceptions import AuthenticationError
from docsync.core.shared_models import ConnectorType
from docsync.platform.converters import HtmlConverter
from docsync.platform.entities import Document
from docsync.platform.sync.exceptions import EntityProcessingError
from docsync.platform.sync.stream import ChunkStream

from ._google import GoogleConnector


class GmailConnector(GoogleConnector):
    """Syncs Gmail messages received after the last sync.

    Incremental listing uses the ``after:<epoch seconds>`` search operator.
    """

    connector_type = ConnectorType.GMAIL
    display_name = "Gmail"
    scopes = [
        "https://www.googleapis.com/auth/gmail.readonly",
        "https://www.googleapis.com/auth/userinfo.email",
    ]

    BASE_URL = "https://gmail.googleapis.com/gmail/v1/users/me"
    PAGE_SIZE = 10

    def __init__(self, *args, **kwargs):
        """Initialize the connector."""
        super().__init__(*args, **kwargs)
        self._html = HtmlConverter()

    async def _fetch_user_email(self) -> str:
        """Resolve the mailbox address from the Gmail profile."""
        try:
            payload = await self._get_json(f"{self.BASE_URL}/profile")
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Unable to get Gmail profile: {e}", self.id) from e
        return payload.get("emailAddress", "")

    async def _produce(self, since: datetime, stream: ChunkStream) -> None:
        page_token: Optional[str] = None
        while True:
            params = {"maxResults": self.PAGE_SIZE}
            if not is_never(since):
                params["q"] = f"after:{int(since.timestamp())}"
            if page_token:
                params["pageToken"] = page_token
            page = await self._get_json(f"{self.BASE_URL}/messages", params)

            ids = [item["id"] for item in page.get("messages", []) if item.get("id")]
            await self._fan_out([self._process_message(message_id, stream) for message_id in ids])

            page_token = page.get("nextPageToken")
            if not page_token:
                break

    async def _process_message(self, message_id: str, stream: ChunkStream) -> None:
        try:
            raw = await self._get_json(
                f"{self.BASE_URL}/messages/{message_id}", {"format": "full"}
            )
            document, content = await self._parse_message(raw)
        except AuthenticationError:
            raise
        except (httpx.HTTPError, EntityProcessingError, KeyError, ValueError) as e:
            self.logger.warning(f"Unable to process message {message_id}: {e}")
            await stream.put_error(f"unable to process message {message_id}: {e}")
            return

        await self._emit_document(document, content, stream)

    async def _parse_message(self, raw: Dict) -> Tuple[Document, str]:
        payload = raw.get("payload", {})
        headers = _header_map(payload.get("headers", []))
        subject = headers.get("subject") or "(no subject)"
        body = await self._extract_body_text(payload)

        internal_ms = int(raw.get("internalDate", 0) or 0)
        if internal_ms:
            timestamp = datetime.fromtimestamp(internal_ms / 1000, tz=timezone.utc)
        else:
            timestamp = utc_now()
        thread_id = raw.get("threadId") or raw["id"]

        document = Document(
            unique_id=raw["id"],
            name=subject,
            source_url=f"https://mail.google.com/mail/u/0/#inbox/{thread_id}",
            connector_id=self.id,
            connector_type=self.type,
            created_at=timestamp,
            updated_at=timestamp,
        )

        lines = [f"Subject: {subject}"]
        for header in ("from", "to", "cc", "date"):
            if headers.get(header):
                lines.append(f"{header.capitalize()}: {headers[header]}")
        content = "\n".join(lines) + "\n\n" + (body or raw.get("snippet", ""))
        return document, content

    async def _extract_body_text(self, payload: Dict) -> str:
        """Return the first text/plain body, falling back to converted text/html."""
        mime = str(payload.get("mimeType", "")).lower()
        data = payload.get("body", {}).get("data")
        if data and mime != "text/html":
            text = _decode_base64(data)
            if text:
                return text

        html_part: Optional[str] = _decode_base64(data) if data and mime == "text/html" else None
        for part in payload.get("parts", []) or []:
            part_mime = str(part.get("mimeType", "")).lower()
            part_data = part.get("body", {}).get("data")
            if not part_data:
                nested = await self._extract_body_text(part)
                if nested:
                    return nested
                continue
            if part_mime == "text/plain":
                text = _decode_base64(part_data)
                if text:
                    return text
            elif part_mime == "text/html" and html_part is None:
                html_part = _decode_base64(part_data)

        if html_part:
            return await self._html.convert(html_part.encode("utf-8"))
        return ""


def _header_map(raw_headers: List[Dict]) -> Dict[str, str]:
    mapped: Dict[str, str] = {}
    for item in raw_headers:
        name = str(item.get("name", "")).strip().lower()
        value = str(item.get("value", "")).strip()
        if name:
            mapped[name] = value
    return mapped


def _decode_base64(value: str) -> str:
    try:
        padded = value + "=" * (-len(value) % 4)
        raw = base64.urlsafe_b64decode(padded.encode("utf-8"))
        return raw.decode("utf-8", errors="ignore")
    except (ValueError, TypeError):
        return ""
