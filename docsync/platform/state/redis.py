"""Redis-backed connector state store.

Key layout:
- ``connector_state:{id}``: ConnectorState JSON (without ``syncing``)
- ``connector_states``: set of known connector ids
- ``connector_lock:{id}``: redis lock holding the owner token

The lock carries a TTL lease so a crashed process cannot hold a connector
forever. The holder renews the lease while its sync runs and releases with a
token check, so an expired holder never deletes a newer holder's lock.
``syncing`` is reported as the existence of the lock key.
"""

import uuid
from typing import Dict, List, Optional

import redis.asyncio as redis
from redis.asyncio.lock import Lock
from redis.exceptions import LockNotOwnedError, RedisError

from docsync.core.config import settings
from docsync.core.exceptions import (
    ConnectorLockedError,
    ConnectorNotFoundError,
    StateStoreError,
)
from docsync.core.logging import ContextualLogger
from docsync.schemas import ConnectorState

from ._base import BaseConnectorStateStore


class RedisConnectorStateStore(BaseConnectorStateStore):
    """Connector state shared across processes through Redis."""

    STATE_KEY_PREFIX = "connector_state"
    LOCK_KEY_PREFIX = "connector_lock"
    INDEX_KEY = "connector_states"

    def __init__(
        self,
        client: redis.Redis,
        lock_ttl_seconds: Optional[float] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the store.

        Args:
            client: Redis client created with ``decode_responses=True``
            lock_ttl_seconds: Lease length of a connector lock
            logger: Optional contextual logger
        """
        super().__init__(logger)
        self._client = client
        if lock_ttl_seconds is None:
            lock_ttl_seconds = settings.CONNECTOR_LOCK_TTL_SECONDS
        self._lock_ttl = float(lock_ttl_seconds)
        self.lock_renew_interval = self._lock_ttl / 3
        self._locks: Dict[str, Lock] = {}

    def _state_key(self, connector_id: str) -> str:
        return f"{self.STATE_KEY_PREFIX}:{connector_id}"

    def _lock_key(self, connector_id: str) -> str:
        return f"{self.LOCK_KEY_PREFIX}:{connector_id}"

    async def get_connector_state(self, connector_id: str) -> Optional[ConnectorState]:
        """Read the state JSON and derive ``syncing`` from the lock key."""
        try:
            raw = await self._client.get(self._state_key(connector_id))
            if raw is None:
                return None
            locked = await self._client.exists(self._lock_key(connector_id))
        except RedisError as e:
            raise StateStoreError(f"Failed to read state for {connector_id}: {e}") from e

        state = ConnectorState.model_validate_json(raw)
        return state.model_copy(update={"syncing": bool(locked)})

    async def all_connector_states(self) -> List[ConnectorState]:
        """Read every connector listed in the index set."""
        try:
            connector_ids = await self._client.smembers(self.INDEX_KEY)
        except RedisError as e:
            raise StateStoreError(f"Failed to list connector states: {e}") from e

        states = []
        for connector_id in sorted(connector_ids):
            state = await self.get_connector_state(connector_id)
            if state is not None:
                states.append(state)
        return states

    async def update_connector_state(self, state: ConnectorState) -> None:
        """Write the state JSON and register the id in the index."""
        payload = state.model_dump_json(exclude={"syncing"})
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.set(self._state_key(state.connector_id), payload)
                pipe.sadd(self.INDEX_KEY, state.connector_id)
                await pipe.execute()
        except RedisError as e:
            raise StateStoreError(f"Failed to update state for {state.connector_id}: {e}") from e

    async def remove_connector(self, connector_id: str) -> None:
        """Delete state, lock and index entry."""
        self._locks.pop(connector_id, None)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.delete(self._state_key(connector_id), self._lock_key(connector_id))
                pipe.srem(self.INDEX_KEY, connector_id)
                await pipe.execute()
        except RedisError as e:
            raise StateStoreError(f"Failed to remove connector {connector_id}: {e}") from e

    async def lock_connector(self, connector_id: str) -> None:
        """Take the lock, remembering its owner token for release and renewal."""
        lock = self._client.lock(
            self._lock_key(connector_id),
            timeout=self._lock_ttl,
            blocking=False,
            thread_local=False,
        )
        try:
            if not await self._client.exists(self._state_key(connector_id)):
                raise ConnectorNotFoundError(connector_id)
            acquired = await lock.acquire(token=uuid.uuid4().hex)
        except RedisError as e:
            raise StateStoreError(f"Failed to lock connector {connector_id}: {e}") from e

        if not acquired:
            raise ConnectorLockedError(connector_id)
        self._locks[connector_id] = lock
        self.logger.debug(f"Locked connector {connector_id} (ttl={self._lock_ttl}s)")

    async def renew_lock(self, connector_id: str) -> None:
        """Reset the lease of a lock held by this store.

        Raises:
            ConnectorLockedError: If the lease expired and the lock changed hands
            StateStoreError: If Redis is unreachable
        """
        lock = self._locks.get(connector_id)
        if lock is None:
            return
        try:
            await lock.reacquire()
        except LockNotOwnedError as e:
            raise ConnectorLockedError(connector_id) from e
        except RedisError as e:
            raise StateStoreError(f"Failed to renew lock of {connector_id}: {e}") from e

    async def unlock_connector(self, connector_id: str) -> None:
        """Release the lock only if this store still owns it."""
        lock = self._locks.pop(connector_id, None)
        if lock is None:
            return
        try:
            await lock.release()
        except LockNotOwnedError:
            self.logger.warning(f"Lock of connector {connector_id} expired before release")
            return
        except RedisError as e:
            raise StateStoreError(f"Failed to unlock connector {connector_id}: {e}") from e
        self.logger.debug(f"Unlocked connector {connector_id}")
