"""Base connector state store interface."""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from docsync.core.exceptions import ConnectorLockedError, StateStoreError
from docsync.core.logging import ContextualLogger
from docsync.core.logging import logger as default_logger
from docsync.schemas import ConnectorState


class BaseConnectorStateStore(ABC):
    """Durable per-connector state plus the lock protocol built on it.

    ``syncing`` is owned by the lock: implementations derive it from lock
    ownership when reading and ignore it when writing, so a state object read
    before the lock was taken can never clear the flag of a running sync.
    """

    lock_renew_interval: Optional[float] = None

    def __init__(self, logger: Optional[ContextualLogger] = None):
        """Initialize the store.

        Args:
            logger: Optional contextual logger
        """
        self.logger = logger or default_logger.with_context(component="state_store")

    @abstractmethod
    async def get_connector_state(self, connector_id: str) -> Optional[ConnectorState]:
        """Return the state for ``connector_id`` or None if unknown."""
        pass

    @abstractmethod
    async def all_connector_states(self) -> List[ConnectorState]:
        """Return every stored connector state."""
        pass

    @abstractmethod
    async def update_connector_state(self, state: ConnectorState) -> None:
        """Create or replace the state for ``state.connector_id``."""
        pass

    @abstractmethod
    async def remove_connector(self, connector_id: str) -> None:
        """Delete the state and any lock for ``connector_id``."""
        pass

    @abstractmethod
    async def lock_connector(self, connector_id: str) -> None:
        """Atomically take the connector lock.

        Raises:
            ConnectorNotFoundError: If the connector has no state
            ConnectorLockedError: If the lock is already held
        """
        pass

    @abstractmethod
    async def unlock_connector(self, connector_id: str) -> None:
        """Release the connector lock. Releasing a free lock is a no-op."""
        pass

    async def renew_lock(self, connector_id: str) -> None:
        """Extend the lease of a lock held by this store. No-op without leases.

        Raises:
            ConnectorLockedError: If the lock is no longer owned by this store
        """
        pass

    async def _keep_lock_alive(self, connector_id: str, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.renew_lock(connector_id)
            except ConnectorLockedError:
                self.logger.error(f"Lost the lock of connector {connector_id} while syncing")
                return
            except StateStoreError as e:
                self.logger.warning(f"Failed to renew lock of connector {connector_id}: {e}")

    @asynccontextmanager
    async def connector_lock(self, connector_id: str) -> AsyncIterator[None]:
        """Hold the connector lock for the duration of the block.

        The lease is renewed every ``lock_renew_interval`` seconds while the
        block runs. The lock is released on every exit path, including
        cancellation. A failure to release is logged; it is only raised when
        the block itself completed normally.
        """
        await self.lock_connector(connector_id)
        heartbeat: Optional[asyncio.Task] = None
        if self.lock_renew_interval:
            heartbeat = asyncio.create_task(
                self._keep_lock_alive(connector_id, self.lock_renew_interval),
                name=f"docsync-lock-renewal-{connector_id}",
            )
        completed = False
        try:
            yield
            completed = True
        finally:
            if heartbeat is not None:
                heartbeat.cancel()
                await asyncio.gather(heartbeat, return_exceptions=True)
            try:
                await self.unlock_connector(connector_id)
            except Exception as e:
                self.logger.error(f"Failed to unlock connector {connector_id}: {e}")
                if completed:
                    raise
