"""Base connector class."""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

import httpx

from docsync.core.config import settings
from docsync.core.exceptions import AuthenticationError, ConnectorNotFoundError
from docsync.core.logging import ContextualLogger
from docsync.core.logging import logger as default_logger
from docsync.core.shared_models import ConnectorType
from docsync.platform.chunkers import BaseChunker, TokenChunker
from docsync.platform.credentials import BaseTokenStore
from docsync.platform.destinations import BaseVectorStore
from docsync.platform.entities import Chunk, Document
from docsync.platform.state import BaseConnectorStateStore
from docsync.platform.sync.exceptions import SyncFailureError
from docsync.platform.sync.stream import ChunkStream
from docsync.schemas import ConnectorState

from .retry_helpers import BackoffPolicy


class BaseConnector(ABC):
    """Source-specific adapter producing chunks from a third-party data source.

    A connector is the producer half of a sync: ``sync`` enumerates items
    changed since a timestamp and emits chunk results onto a ChunkStream. Item
    failures are emitted as errored results; systemic failures (credentials,
    listing that keeps failing after retries) are raised out of ``sync``.

    Durable state lives in the state store and the token store, never on the
    instance, so ``status`` always reflects writes made by a running sync.
    """

    connector_type: ClassVar[ConnectorType]
    display_name: ClassVar[str] = ""

    def __init__(
        self,
        connector_id: str,
        state_store: BaseConnectorStateStore,
        token_store: BaseTokenStore,
        vector_store: BaseVectorStore,
        chunker: Optional[BaseChunker] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        backoff: Optional[BackoffPolicy] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the connector.

        Args:
            connector_id: Unique id of this connector instance
            state_store: Connector state store
            token_store: Credential storage
            vector_store: Used to drop superseded chunks of a resynced document
            chunker: Splits item content into chunk texts
            http_client: Injected client; one is created on ``init`` when omitted
            backoff: Retry schedule for source API calls
            logger: Optional contextual logger
        """
        self._id = connector_id
        self._user = ""
        self.name = self.display_name
        self.config: Dict[str, Any] = {}
        self.state_store = state_store
        self.token_store = token_store
        self.vector_store = vector_store
        self.chunker = chunker or TokenChunker()
        self.backoff = backoff or BackoffPolicy.for_sources()
        self._http_client = http_client
        self._owns_http_client = False
        self.logger = logger or default_logger.with_context(
            component="connector",
            connector_id=connector_id,
            connector_type=self.connector_type.value,
        )

    @property
    def id(self) -> str:
        """Connector instance id."""
        return self._id

    @property
    def type(self) -> ConnectorType:
        """Connector variant."""
        return self.connector_type

    @property
    def user(self) -> str:
        """Authenticated identity, empty until authorized."""
        return self._user

    @property
    def http_client(self) -> httpx.AsyncClient:
        """HTTP client for source calls, available after ``init``."""
        if self._http_client is None:
            raise RuntimeError(f"Connector {self.id} used before init()")
        return self._http_client

    async def init(self, config: Optional[Dict[str, Any]] = None) -> None:
        """Restore or create durable state and set up runtime handles.

        Idempotent: a second call only refreshes the in-memory view.
        """
        if config:
            self.config.update(config)
            self.name = config.get("name", self.name)

        state = await self.state_store.get_connector_state(self.id)
        if state is None:
            token = await self.token_store.load(self.id)
            state = ConnectorState(
                connector_id=self.id,
                connector_type=self.type,
                name=self.name,
                auth_valid=token is not None,
            )
            await self.state_store.update_connector_state(state)
            self.logger.info(f"Created state for connector {self.id}")
        else:
            self._user = state.user
            self.name = state.name or self.name

        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=settings.SOURCE_HTTP_TIMEOUT)
            self._owns_http_client = True

    async def status(self) -> ConnectorState:
        """Read the current state from the store."""
        state = await self.state_store.get_connector_state(self.id)
        if state is None:
            raise ConnectorNotFoundError(self.id)
        return state

    async def update_connector_state(self, state: ConnectorState) -> None:
        """Persist ``state``."""
        await self.state_store.update_connector_state(state)

    @abstractmethod
    async def auth_setup(self) -> None:
        """Start authorization out of band unless a credential already exists."""
        pass

    @abstractmethod
    async def auth_callback(self, code: str) -> None:
        """Exchange an authorization code for a stored credential and record the user."""
        pass

    @abstractmethod
    async def _produce(self, since: datetime, stream: ChunkStream) -> None:
        """Enumerate items changed after ``since`` and emit their chunks."""
        pass

    async def sync(self, since: datetime, stream: ChunkStream) -> None:
        """Produce chunk results for items changed after ``since``.

        ``stream`` is closed on every exit path. Authentication failures and
        SyncFailureError propagate as is; any other HTTP failure that escapes
        item handling is raised as SyncFailureError.
        """
        try:
            await self._produce(since, stream)
        except (AuthenticationError, SyncFailureError):
            raise
        except httpx.HTTPError as e:
            raise SyncFailureError(f"{self.type.value} sync failed: {e}") from e
        finally:
            await stream.aclose()

    async def _emit_document(self, document: Document, content: str, stream: ChunkStream) -> int:
        """Drop chunks of the previous version, then emit the new content as chunks.

        Returns:
            Number of chunks emitted
        """
        try:
            await self.vector_store.delete_document_chunks(document.unique_id, self.id)
        except Exception as e:
            # old chunks stay behind; the new ones are still indexed
            self.logger.warning(f"Unable to delete chunks for document {document.unique_id}: {e}")

        texts = await self.chunker.chunk(content)
        for text in texts:
            await stream.put_chunk(Chunk.for_document(document, text))
        return len(texts)

    async def _fan_out(self, coros: List[Any]) -> None:
        """Run one page of item workers concurrently and join them.

        Workers handle their own item errors; anything they raise is systemic
        and re-raised here once all siblings have finished.
        """
        results = await asyncio.gather(*coros, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def close(self) -> None:
        """Close the HTTP client if this connector created it."""
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
            self._owns_http_client = False
