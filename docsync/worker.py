"""Sync worker for docsync."""

import asyncio
import signal
from typing import Any, Optional

from docsync.core.config import settings
from docsync.core.logging import logger
from docsync.core.redis_client import redis_client
from docsync.platform.credentials import FileTokenStore
from docsync.platform.destinations import QdrantVectorStore
from docsync.platform.embedders import create_embedder
from docsync.platform.state import (
    BaseConnectorStateStore,
    InMemoryConnectorStateStore,
    RedisConnectorStateStore,
)
from docsync.platform.sync.syncer import Syncer


def build_state_store() -> BaseConnectorStateStore:
    """Build the state store selected by ``STATE_BACKEND``."""
    if settings.STATE_BACKEND == "redis":
        return RedisConnectorStateStore(redis_client.client)
    return InMemoryConnectorStateStore()


def build_syncer() -> Syncer:
    """Wire a Syncer from settings."""
    return Syncer(
        state_store=build_state_store(),
        token_store=FileTokenStore(),
        embedder=create_embedder(),
        vector_store=QdrantVectorStore(),
    )


class SyncWorker:
    """Long-running process driving the sync scheduler."""

    def __init__(self, syncer: Optional[Syncer] = None) -> None:
        """Initialize the worker."""
        self.syncer = syncer or build_syncer()
        self.stop_event = asyncio.Event()
        self.running = False

    async def start(self) -> None:
        """Prepare the vector store, restore connectors and run the scheduler."""
        try:
            await self.syncer.vector_store.setup()
            await self.syncer.init()
            self.running = True
            logger.info(
                f"Worker started: {len(await self.syncer.get_connector_states())} connectors, "
                f"period {self.syncer.sync_check_period}s"
            )
            await self.syncer.run(self.stop_event)
        except Exception as e:
            logger.error(f"Error starting sync worker: {e}")
            raise

    def request_stop(self) -> None:
        """Ask the scheduler loop to exit after the current pass."""
        self.stop_event.set()

    async def stop(self) -> None:
        """Stop the scheduler and release clients."""
        self.stop_event.set()
        if self.running:
            logger.info("Stopping worker gracefully")
            self.running = False
        await self.syncer.shutdown()
        await self.syncer.embedder.close()
        await self.syncer.vector_store.close()
        if settings.STATE_BACKEND == "redis":
            await redis_client.close()


async def main() -> None:
    """Main function to run the worker."""
    worker = SyncWorker()

    # Handle shutdown signals
    def signal_handler(signum: int, frame: Any) -> None:
        logger.info(f"Received signal {signum}, shutting down...")
        worker.request_stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        await worker.start()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
    finally:
        await worker.stop()


def run() -> None:
    """Console script entrypoint."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
