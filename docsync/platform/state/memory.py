"""In-process connector state store."""

import asyncio
from typing import Dict, List, Optional, Set

from docsync.core.exceptions import ConnectorLockedError, ConnectorNotFoundError
from docsync.core.logging import ContextualLogger
from docsync.schemas import ConnectorState

from ._base import BaseConnectorStateStore


class InMemoryConnectorStateStore(BaseConnectorStateStore):
    """State store backed by a dict, for single-process deployments and tests.

    A single asyncio.Lock makes lock acquisition a check-and-set.
    """

    def __init__(self, logger: Optional[ContextualLogger] = None):
        """Initialize an empty store."""
        super().__init__(logger)
        self._states: Dict[str, ConnectorState] = {}
        self._locked: Set[str] = set()
        self._mutex = asyncio.Lock()

    def _view(self, state: ConnectorState) -> ConnectorState:
        return state.model_copy(update={"syncing": state.connector_id in self._locked})

    async def get_connector_state(self, connector_id: str) -> Optional[ConnectorState]:
        """Return a copy of the stored state."""
        async with self._mutex:
            state = self._states.get(connector_id)
            return self._view(state) if state is not None else None

    async def all_connector_states(self) -> List[ConnectorState]:
        """Return copies of all stored states."""
        async with self._mutex:
            return [self._view(state) for state in self._states.values()]

    async def update_connector_state(self, state: ConnectorState) -> None:
        """Store a copy of ``state``; its ``syncing`` flag is ignored."""
        async with self._mutex:
            self._states[state.connector_id] = state.model_copy(update={"syncing": False})

    async def remove_connector(self, connector_id: str) -> None:
        """Forget the connector and drop its lock."""
        async with self._mutex:
            self._states.pop(connector_id, None)
            self._locked.discard(connector_id)

    async def lock_connector(self, connector_id: str) -> None:
        """Take the lock under the store mutex."""
        async with self._mutex:
            if connector_id not in self._states:
                raise ConnectorNotFoundError(connector_id)
            if connector_id in self._locked:
                raise ConnectorLockedError(connector_id)
            self._locked.add(connector_id)
        self.logger.debug(f"Locked connector {connector_id}")

    async def unlock_connector(self, connector_id: str) -> None:
        """Release the lock."""
        async with self._mutex:
            self._locked.discard(connector_id)
        self.logger.debug(f"Unlocked connector {connector_id}")
