"""Tests for the Syncer scheduler."""

import asyncio
from datetime import timedelta
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from docsync.core.datetime_utils import NEVER, utc_now
from docsync.core.exceptions import AuthenticationError, ConnectorLockedError
from docsync.core.shared_models import ConnectorSyncState, ConnectorType
from docsync.platform.connectors import BaseConnector, build_connector
from docsync.platform.entities import Document
from docsync.platform.sync.exceptions import SyncFailureError
from docsync.platform.sync.syncer import Syncer
from docsync.schemas import ConnectorState


class FakeConnector(BaseConnector):
    """Connector emitting scripted items.

    Items are ``(document_id, text)`` tuples or error strings. When ``gate``
    is given, the producer waits on it after emitting its items.
    """

    connector_type = ConnectorType.GMAIL
    display_name = "Fake"

    def __init__(self, *args, items=None, error=None, gate=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.items = items or []
        self.error: Optional[BaseException] = error
        self.gate: Optional[asyncio.Event] = gate
        self.sync_calls: List = []
        self.active = 0
        self.max_active = 0

    async def auth_setup(self) -> None:
        pass

    async def auth_callback(self, code: str) -> None:
        pass

    async def _produce(self, since, stream) -> None:
        self.sync_calls.append(since)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            for item in self.items:
                if isinstance(item, str):
                    await stream.put_error(item)
                    continue
                document_id, text = item
                document = Document(
                    unique_id=document_id,
                    name=document_id,
                    connector_id=self.id,
                    connector_type=self.type,
                )
                await self._emit_document(document, text, stream)
            if self.gate is not None:
                await self.gate.wait()
            if self.error is not None:
                raise self.error
        finally:
            self.active -= 1


@pytest.fixture
def syncer(state_store, token_store, mock_embedder, mock_vector_store, chunker):
    """Syncer with a fast tick and a one hour staleness threshold."""
    return Syncer(
        state_store=state_store,
        token_store=token_store,
        embedder=mock_embedder,
        vector_store=mock_vector_store,
        chunker=chunker,
        sync_check_period=0.01,
        stale_threshold=3600,
        min_chunk_size=10,
        queue_size=4,
    )


@pytest.fixture
def add_fake(syncer, token_store, valid_token):
    """Factory registering an initialized FakeConnector with the syncer."""

    async def _add(connector_id="c1", authorized=True, **kwargs) -> FakeConnector:
        if authorized:
            await token_store.save(connector_id, valid_token)
        dependencies = {**syncer.connector_dependencies(), "http_client": MagicMock()}
        connector = FakeConnector(connector_id, **dependencies, **kwargs)
        await connector.init()
        syncer.add_connector(connector)
        return connector

    return _add


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


@pytest.mark.asyncio
async def test_sync_persists_chunks_and_advances_last_sync(
    syncer, add_fake, state_store, mock_vector_store
):
    """Test a sync with one failing item among three."""
    connector = await add_fake(
        items=[
            ("doc-1", "first document body text"),
            "unable to process item doc-2",
            ("doc-3", "third document body text"),
        ]
    )
    started = utc_now()

    await syncer.sync_now()

    state = await state_store.get_connector_state("c1")
    assert state.num_chunks == 2
    assert state.num_documents == 2
    assert state.last_sync >= started
    assert state.syncing is False
    assert connector.sync_calls == [NEVER]
    assert mock_vector_store.add_vectors.await_count == 2


@pytest.mark.asyncio
async def test_connector_without_credential_is_never_synced(syncer, add_fake, state_store):
    """Test that AUTH_INVALID connectors are skipped."""
    connector = await add_fake(authorized=False, items=[("doc-1", "some document text")])

    with patch.object(state_store, "lock_connector", AsyncMock()) as lock:
        await syncer.sync_now()

    lock.assert_not_awaited()
    assert connector.sync_calls == []


@pytest.mark.asyncio
async def test_recently_synced_connector_is_skipped(syncer, add_fake, state_store):
    """Test that SYNCED connectors wait for the staleness threshold."""
    connector = await add_fake()
    state = await state_store.get_connector_state("c1")
    state.last_sync = utc_now() - timedelta(minutes=5)
    await state_store.update_connector_state(state)

    await syncer.sync_now()

    assert connector.sync_calls == []


@pytest.mark.asyncio
async def test_stale_connector_syncs_incrementally(syncer, add_fake, state_store):
    """Test that DUE connectors sync from their last sync time."""
    connector = await add_fake()
    previous = utc_now() - timedelta(hours=2)
    state = await state_store.get_connector_state("c1")
    state.last_sync = previous
    await state_store.update_connector_state(state)

    await syncer.sync_now()

    assert connector.sync_calls == [previous]
    assert (await state_store.get_connector_state("c1")).last_sync > previous


@pytest.mark.asyncio
async def test_concurrent_passes_never_sync_a_connector_twice(syncer, add_fake, state_store):
    """Test that overlapping passes leave one holder per connector."""
    gate = asyncio.Event()
    connector = await add_fake(gate=gate)

    passes = [asyncio.create_task(syncer.sync_now()) for _ in range(3)]
    await wait_until(lambda: connector.sync_calls)
    await asyncio.sleep(0.02)
    assert (await state_store.get_connector_state("c1")).syncing is True

    gate.set()
    await asyncio.gather(*passes)

    assert connector.max_active == 1
    assert len(connector.sync_calls) == 1
    assert (await state_store.get_connector_state("c1")).syncing is False


@pytest.mark.asyncio
async def test_connector_locked_elsewhere_is_left_alone(syncer, add_fake, state_store):
    """Test that a held lock makes the connector SYNCING and untouched."""
    connector = await add_fake(items=[("doc-1", "some document text")])
    await state_store.lock_connector("c1")
    before = await state_store.get_connector_state("c1")

    await syncer.sync_now()

    assert connector.sync_calls == []
    assert await state_store.get_connector_state("c1") == before
    await state_store.unlock_connector("c1")


@pytest.mark.asyncio
async def test_lost_lock_race_is_raised(syncer, add_fake, state_store):
    """Test that lock contention surfaces as an infrastructure error."""
    connector = await add_fake()

    with patch.object(
        state_store, "lock_connector", AsyncMock(side_effect=ConnectorLockedError("c1"))
    ):
        with pytest.raises(ConnectorLockedError):
            await syncer.sync_now()

    assert connector.sync_calls == []
    assert (await state_store.get_connector_state("c1")).last_sync == NEVER


@pytest.mark.asyncio
async def test_authentication_failure_marks_connector_invalid(syncer, add_fake, state_store):
    """Test that a revoked credential stops further syncs."""
    connector = await add_fake(error=AuthenticationError("token revoked", "c1"))

    await syncer.sync_now()
    await syncer.sync_now()

    state = await state_store.get_connector_state("c1")
    assert state.auth_valid is False
    assert state.last_sync == NEVER
    assert state.syncing is False
    assert len(connector.sync_calls) == 1
    assert syncer.classify(state) == ConnectorSyncState.AUTH_INVALID


@pytest.mark.asyncio
async def test_failed_sync_keeps_previous_last_sync(syncer, add_fake, state_store):
    """Test that a systemic failure does not advance last_sync."""
    connector = await add_fake(
        items=[("doc-1", "persisted before the failure")],
        error=SyncFailureError("listing kept failing"),
    )
    previous = utc_now() - timedelta(days=2)
    state = await state_store.get_connector_state("c1")
    state.last_sync = previous
    await state_store.update_connector_state(state)

    await syncer.sync_now()

    state = await state_store.get_connector_state("c1")
    assert state.last_sync == previous
    assert state.auth_valid is True
    assert state.syncing is False
    # chunks emitted before the failure are still persisted
    assert state.num_chunks == 1
    assert len(connector.sync_calls) == 1


@pytest.mark.asyncio
async def test_one_failing_connector_does_not_block_others(syncer, add_fake, state_store):
    """Test isolation between connectors in one pass."""
    await add_fake("bad", error=SyncFailureError("boom"))
    await add_fake("good", items=[("doc-1", "good connector document")])

    await syncer.sync_now()

    assert (await state_store.get_connector_state("bad")).last_sync == NEVER
    good = await state_store.get_connector_state("good")
    assert good.last_sync != NEVER
    assert good.num_chunks == 1


@pytest.mark.asyncio
async def test_cancellation_mid_sync_releases_lock(
    syncer, add_fake, state_store, mock_vector_store
):
    """Test that a cancelled pass persists nothing more and frees the connector."""
    gate = asyncio.Event()
    connector = await add_fake(items=[("doc-1", "chunk persisted before cancel")], gate=gate)

    task = asyncio.create_task(syncer.sync_now())
    await wait_until(lambda: mock_vector_store.add_vectors.await_count == 1)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    state = await state_store.get_connector_state("c1")
    assert state.syncing is False
    assert state.last_sync == NEVER
    assert connector.active == 0

    gate.set()
    await asyncio.sleep(0.02)
    assert mock_vector_store.add_vectors.await_count == 1


@pytest.mark.asyncio
async def test_init_restores_connectors_once(syncer, state_store):
    """Test that init builds connectors from stored states and is idempotent."""
    for connector_id, connector_type in (("d1", ConnectorType.GOOGLE_DRIVE), ("g1", "gmail")):
        await state_store.update_connector_state(
            ConnectorState(connector_id=connector_id, connector_type=connector_type)
        )

    with patch(
        "docsync.platform.sync.syncer.build_connector", wraps=build_connector
    ) as build:
        await syncer.init()
        await syncer.init()

    assert build.call_count == 2
    assert {s.connector_id for s in await syncer.get_connector_states()} == {"d1", "g1"}
    assert syncer.get_connector("d1").type == ConnectorType.GOOGLE_DRIVE
    assert len(await state_store.all_connector_states()) == 2
    await syncer.shutdown()


@pytest.mark.asyncio
async def test_add_connector_twice_is_noop(syncer, add_fake):
    """Test that registering the same id keeps the first instance."""
    first = await add_fake("c1")
    syncer.add_connector(FakeConnector("c1", **syncer.connector_dependencies()))

    assert syncer.get_connector("c1") is first
    assert len(await syncer.get_connector_states()) == 1


@pytest.mark.asyncio
async def test_async_sync_now_runs_in_background(syncer, add_fake, state_store):
    """Test the background pass."""
    connector = await add_fake(items=[("doc-1", "background document")])

    task = syncer.async_sync_now()
    await task

    assert len(connector.sync_calls) == 1
    assert (await state_store.get_connector_state("c1")).num_chunks == 1


@pytest.mark.asyncio
async def test_shutdown_cancels_background_pass(syncer, add_fake, state_store):
    """Test that shutdown cancels in-flight syncs and releases their locks."""
    connector = await add_fake(gate=asyncio.Event())

    task = syncer.async_sync_now()
    await wait_until(lambda: connector.sync_calls)
    await syncer.shutdown()

    assert task.cancelled()
    assert (await state_store.get_connector_state("c1")).syncing is False


@pytest.mark.asyncio
async def test_run_ticks_until_stopped(syncer, add_fake):
    """Test that the scheduler loop resyncs and exits on the stop event."""
    syncer.stale_threshold = timedelta(0)
    connector = await add_fake(items=[("doc-1", "periodic document")])
    stop = asyncio.Event()

    loop_task = asyncio.create_task(syncer.run(stop))
    await wait_until(lambda: len(connector.sync_calls) >= 2)
    stop.set()
    await asyncio.wait_for(loop_task, timeout=1)

    assert connector.sync_calls[0] == NEVER
    assert connector.sync_calls[1] > NEVER


@pytest.mark.asyncio
async def test_run_survives_failing_passes(syncer):
    """Test that an error in a pass does not end the loop."""
    syncer.sync_now = AsyncMock(side_effect=RuntimeError("state store down"))
    stop = asyncio.Event()

    loop_task = asyncio.create_task(syncer.run(stop))
    await wait_until(lambda: syncer.sync_now.await_count >= 3)
    stop.set()
    await asyncio.wait_for(loop_task, timeout=1)


@pytest.mark.parametrize(
    "overrides, expected",
    [
        ({"auth_valid": False, "syncing": True}, ConnectorSyncState.AUTH_INVALID),
        ({"syncing": True}, ConnectorSyncState.SYNCING),
        ({}, ConnectorSyncState.UNSYNCED),
        ({"last_sync": timedelta(hours=2)}, ConnectorSyncState.DUE),
        ({"last_sync": timedelta(minutes=2)}, ConnectorSyncState.SYNCED),
    ],
)
def test_classify(syncer, overrides, expected):
    """Test the scheduling state machine."""
    now = utc_now()
    values = {"auth_valid": True, **overrides}
    if "last_sync" in values:
        values["last_sync"] = now - values["last_sync"]
    state = ConnectorState(connector_id="c1", connector_type=ConnectorType.GMAIL, **values)

    assert syncer.classify(state, now=now) == expected
