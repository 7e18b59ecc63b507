"""Tests for the chunk pipeline."""

from unittest.mock import AsyncMock

import pytest

from docsync.core.shared_models import ConnectorType
from docsync.platform.connectors import GmailConnector
from docsync.platform.entities import Chunk, Document
from docsync.platform.sync.chunk_pipeline import ChunkPipeline, clean_whitespace
from docsync.platform.sync.stream import ChunkStream


@pytest.fixture
def connector(state_store, token_store, mock_vector_store, chunker):
    """Connector whose state counters the pipeline updates."""
    return GmailConnector(
        "c1",
        state_store=state_store,
        token_store=token_store,
        vector_store=mock_vector_store,
        chunker=chunker,
    )


@pytest.fixture
def pipeline(connector, mock_embedder, mock_vector_store):
    """Pipeline with the default 10 character threshold."""
    return ChunkPipeline(connector, mock_embedder, mock_vector_store, min_chunk_size=10)


def make_chunk(text: str, document_id: str = "doc-1") -> Chunk:
    document = Document(
        unique_id=document_id,
        name=f"Document {document_id}",
        connector_id="c1",
        connector_type=ConnectorType.GMAIL,
    )
    return Chunk.for_document(document, text)


async def closed_stream(*items) -> ChunkStream:
    stream = ChunkStream(maxsize=len(items) + 1)
    for item in items:
        if isinstance(item, Chunk):
            await stream.put_chunk(item)
        else:
            await stream.put_error(item)
    await stream.aclose()
    return stream


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("\ufeffhello   world\n\n", "hello world"),
        ("\t a \r\n b \t", "a b"),
        ("", ""),
        ("already clean", "already clean"),
    ],
)
def test_clean_whitespace(raw, expected):
    """Test normalization and idempotence."""
    assert clean_whitespace(raw) == expected
    assert clean_whitespace(clean_whitespace(raw)) == expected


@pytest.mark.asyncio
async def test_min_chunk_size_boundary(pipeline, connector, mock_embedder, mock_vector_store):
    """Test that exactly 10 characters are kept and 9 are dropped without embedding."""
    await connector.init()
    stream = await closed_stream(make_chunk("  abcdefghij  "), make_chunk("abcdefghi"))

    stats = await pipeline.run(stream)

    assert (stats.persisted, stats.dropped) == (1, 1)
    mock_embedder.embed.assert_awaited_once_with("abcdefghij")
    [items] = mock_vector_store.add_vectors.await_args.args
    assert items[0].chunk.text == "abcdefghij"
    assert items[0].vector == [0.1, 0.2, 0.3]
    assert stream.done.is_set()


@pytest.mark.asyncio
async def test_persisted_chunks_update_counters(pipeline, connector, state_store):
    """Test chunk and per-run document counting."""
    await connector.init()
    stream = await closed_stream(
        make_chunk("first chunk of doc one", "doc-1"),
        make_chunk("second chunk of doc one", "doc-1"),
        make_chunk("only chunk of doc two", "doc-2"),
    )

    stats = await pipeline.run(stream)

    state = await state_store.get_connector_state("c1")
    assert (state.num_chunks, state.num_documents) == (3, 2)
    assert (stats.persisted, stats.documents) == (3, 2)


@pytest.mark.asyncio
async def test_failures_are_skipped_and_not_counted(
    pipeline, connector, state_store, mock_embedder, mock_vector_store
):
    """Test that item errors, embed failures and store failures are isolated."""
    await connector.init()
    mock_embedder.embed = AsyncMock(side_effect=[RuntimeError("model down"), [1.0], [2.0]])
    mock_vector_store.add_vectors.side_effect = [RuntimeError("qdrant down"), None]
    stream = await closed_stream(
        "unable to export file a",
        make_chunk("embedding fails here"),
        make_chunk("storage fails here"),
        make_chunk("this one makes it"),
    )

    stats = await pipeline.run(stream)

    assert stats.received == 4
    assert stats.failed == 3
    assert stats.persisted == 1
    assert mock_embedder.embed.await_count == 3
    assert (await state_store.get_connector_state("c1")).num_chunks == 1


@pytest.mark.asyncio
async def test_counter_update_failure_does_not_stop_pipeline(
    pipeline, connector, state_store, mock_vector_store
):
    """Test that a state store error while counting is logged only."""
    # connector never initialized: status() raises ConnectorNotFoundError
    stream = await closed_stream(make_chunk("first persisted chunk"), make_chunk("second one here"))

    stats = await pipeline.run(stream)

    assert stats.persisted == 2
    assert mock_vector_store.add_vectors.await_count == 2
    assert await state_store.get_connector_state("c1") is None


@pytest.mark.asyncio
async def test_zero_min_chunk_size_keeps_short_chunks(
    connector, mock_embedder, mock_vector_store
):
    """Test that an explicit threshold of 0 is honored instead of the default."""
    await connector.init()
    pipeline = ChunkPipeline(connector, mock_embedder, mock_vector_store, min_chunk_size=0)
    stream = await closed_stream(make_chunk("ok"))

    stats = await pipeline.run(stream)

    assert pipeline.min_chunk_size == 0
    assert (stats.persisted, stats.dropped) == (1, 0)
    mock_embedder.embed.assert_awaited_once_with("ok")
