"""Syncer: decides which connectors are due and runs their syncs.

Each connector sync runs the connector (producer) and a ChunkPipeline
(consumer) as two tasks joined by a ChunkStream, under the connector lock.
Three outcomes are raced: cancellation, pipeline completion and a producer
error. Whatever happens, the lock is released as soon as that connector's
sync ends.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set

import httpx

from docsync.core.config import settings
from docsync.core.datetime_utils import is_never, utc_now
from docsync.core.exceptions import AuthenticationError
from docsync.core.logging import ContextualLogger
from docsync.core.logging import logger as default_logger
from docsync.core.shared_models import ConnectorSyncState
from docsync.platform.chunkers import BaseChunker
from docsync.platform.connectors import BaseConnector, build_connector
from docsync.platform.credentials import BaseTokenStore
from docsync.platform.destinations import BaseVectorStore
from docsync.platform.embedders import BaseEmbedder
from docsync.platform.state import BaseConnectorStateStore
from docsync.schemas import ConnectorState

from .chunk_pipeline import ChunkPipeline, ChunkPipelineStats
from .stream import ChunkStream


class Syncer:
    """Scheduler owning the registered connectors."""

    def __init__(
        self,
        state_store: BaseConnectorStateStore,
        token_store: BaseTokenStore,
        embedder: BaseEmbedder,
        vector_store: BaseVectorStore,
        chunker: Optional[BaseChunker] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sync_check_period: Optional[float] = None,
        stale_threshold: Optional[float] = None,
        min_chunk_size: Optional[int] = None,
        queue_size: Optional[int] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the syncer.

        Args:
            state_store: Connector state store (shared with connectors)
            token_store: Credential storage handed to connectors
            embedder: Embedding boundary for the pipeline
            vector_store: Vector store boundary
            chunker: Chunker handed to connectors
            http_client: Shared HTTP client handed to connectors
            sync_check_period: Seconds between scheduler ticks
            stale_threshold: Seconds after which a synced connector is due again
            min_chunk_size: Pipeline noise threshold
            queue_size: Bound of each chunk stream
            logger: Optional contextual logger
        """
        self.state_store = state_store
        self.token_store = token_store
        self.embedder = embedder
        self.vector_store = vector_store
        self.chunker = chunker
        self.http_client = http_client
        if sync_check_period is None:
            sync_check_period = settings.SYNC_CHECK_PERIOD_SECONDS
        if stale_threshold is None:
            stale_threshold = settings.STALE_THRESHOLD_SECONDS
        self.sync_check_period = sync_check_period
        self.stale_threshold = timedelta(seconds=stale_threshold)
        self.min_chunk_size = min_chunk_size
        self.queue_size = queue_size
        self.logger = logger or default_logger.with_context(component="syncer")

        self._connectors: Dict[str, BaseConnector] = {}
        self._background: Set[asyncio.Task] = set()

    def connector_dependencies(self) -> Dict[str, Any]:
        """Constructor arguments shared by every connector built by this syncer."""
        return {
            "state_store": self.state_store,
            "token_store": self.token_store,
            "vector_store": self.vector_store,
            "chunker": self.chunker,
            "http_client": self.http_client,
        }

    async def init(self) -> None:
        """Restore connectors from stored states.

        Idempotent: does nothing once connectors are registered.

        Raises:
            UnknownConnectorTypeError: If a stored state has no implementation
            StateStoreError: If states cannot be read
        """
        if self._connectors:
            return

        states = await self.state_store.all_connector_states()
        for state in states:
            connector = build_connector(
                state.connector_type, state.connector_id, **self.connector_dependencies()
            )
            await connector.init()
            self.add_connector(connector)
        self.logger.info(f"Restored {len(states)} connectors")

    def add_connector(self, connector: BaseConnector) -> None:
        """Register ``connector``. Adding an id twice is a no-op."""
        if connector.id in self._connectors:
            return
        self._connectors[connector.id] = connector
        self.logger.info(f"Added {connector.type.value} connector {connector.id}")

    def get_connector(self, connector_id: str) -> Optional[BaseConnector]:
        """Return the registered connector or None."""
        return self._connectors.get(connector_id)

    async def get_connector_states(self) -> List[ConnectorState]:
        """Current state of every registered connector."""
        return [await connector.status() for connector in self._connectors.values()]

    def classify(self, state: ConnectorState, now: Optional[datetime] = None) -> ConnectorSyncState:
        """Place a connector state in the scheduling state machine."""
        if not state.auth_valid:
            return ConnectorSyncState.AUTH_INVALID
        if state.syncing:
            return ConnectorSyncState.SYNCING
        if is_never(state.last_sync):
            return ConnectorSyncState.UNSYNCED
        if (now or utc_now()) - state.last_sync > self.stale_threshold:
            return ConnectorSyncState.DUE
        return ConnectorSyncState.SYNCED

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run a pass now and then every ``sync_check_period`` seconds.

        Errors of a pass are logged and never stop the loop. Returns once
        ``stop_event`` is set; cancellation propagates.
        """
        stop_event = stop_event or asyncio.Event()
        self.logger.info(f"Scheduler started, checking every {self.sync_check_period}s")
        while not stop_event.is_set():
            try:
                await self.sync_now()
            except Exception as e:
                self.logger.error(f"Sync pass failed: {e}", exc_info=True)

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.sync_check_period)
            except asyncio.TimeoutError:
                continue
        self.logger.info("Scheduler stopped")

    async def sync_now(self) -> None:
        """Sync every due connector, concurrently across connectors.

        Connector-level failures are logged and recorded in state only.
        Infrastructure errors (lock contention, state store failures) are raised
        once all connectors have finished; cancellation ends the pass.
        """
        connectors = list(self._connectors.values())
        results = await asyncio.gather(
            *(self._sync_connector(connector) for connector in connectors),
            return_exceptions=True,
        )

        errors = []
        for connector, result in zip(connectors, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                self.logger.error(f"Unable to sync connector {connector.id}: {result}")
                errors.append(result)
        if errors:
            raise errors[0]

    def async_sync_now(self) -> asyncio.Task:
        """Schedule ``sync_now`` in the background and return its task."""
        task = asyncio.create_task(self.sync_now(), name="docsync-sync-now")
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            self.logger.info("Background sync pass cancelled")
        elif task.exception() is not None:
            self.logger.error(f"Background sync pass failed: {task.exception()}")

    async def _sync_connector(self, connector: BaseConnector) -> None:
        log = connector.logger
        state = await connector.status()
        sync_state = self.classify(state)
        if sync_state == ConnectorSyncState.AUTH_INVALID:
            log.debug("Skipping connector without valid credentials")
            return
        if sync_state == ConnectorSyncState.SYNCING:
            log.info("Connector already syncing, skipping")
            return
        if sync_state == ConnectorSyncState.SYNCED:
            return

        async with self.state_store.connector_lock(connector.id):
            new_sync_time = utc_now()
            log.info(f"Starting sync ({sync_state.value}, last_sync={state.last_sync.isoformat()})")
            error = await self._run_sync(connector, state.last_sync)

            state = await connector.status()
            state.syncing = False
            if error is None:
                state.last_sync = max(state.last_sync, new_sync_time)
            elif isinstance(error, AuthenticationError):
                state.auth_valid = False
            await connector.update_connector_state(state)

        if error is None:
            log.info(f"Sync finished, last_sync={new_sync_time.isoformat()}")
        else:
            log.warning(f"Sync failed, last_sync left unchanged: {error}")

    async def _run_sync(self, connector: BaseConnector, since: datetime) -> Optional[BaseException]:
        """Run producer and consumer for one connector.

        Returns:
            The connector-level error, or None on success
        """
        stream = ChunkStream(self.queue_size)
        pipeline = ChunkPipeline(
            connector,
            self.embedder,
            self.vector_store,
            min_chunk_size=self.min_chunk_size,
            logger=connector.logger.with_context(component="chunk_pipeline"),
        )
        producer = asyncio.create_task(
            connector.sync(since, stream), name=f"docsync-producer-{connector.id}"
        )
        consumer = asyncio.create_task(
            pipeline.run(stream), name=f"docsync-consumer-{connector.id}"
        )

        try:
            done, _ = await asyncio.wait({producer, consumer}, return_when=asyncio.FIRST_COMPLETED)

            if consumer in done and consumer.exception() is not None:
                # nothing drains the stream anymore
                producer.cancel()
                await asyncio.gather(producer, return_exceptions=True)
                connector.logger.error(f"Chunk pipeline crashed: {consumer.exception()}")
                return consumer.exception()

            error: Optional[BaseException] = None
            try:
                await producer
            except Exception as e:
                error = e
                connector.logger.error(f"Connector sync failed: {e}")

            # the producer closed the stream on exit, so the pipeline drains and stops
            try:
                stats: ChunkPipelineStats = await consumer
            except Exception as e:
                connector.logger.error(f"Chunk pipeline crashed: {e}")
                return error or e

            connector.logger.info(
                f"Pipeline done: {stats.persisted} chunks from {stats.documents} documents"
            )
            return error
        finally:
            for task in (producer, consumer):
                if not task.done():
                    task.cancel()
            await asyncio.gather(producer, consumer, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel background passes, wait for them and close connectors."""
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for connector in self._connectors.values():
            await connector.close()
        self.logger.info("Syncer shut down")
