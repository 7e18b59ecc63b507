"""Unit test conftest for setting up test environment."""

import os

# Set environment before importing any docsync modules so Settings picks it up
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("STATE_BACKEND", "memory")
os.environ.setdefault("EMBEDDING_PROVIDER", "ollama")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("OAUTH_REDIRECT_BASE_URL", "http://127.0.0.1:8081")

from datetime import timedelta  # noqa: E402
from typing import Dict, List  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402

from docsync.core.datetime_utils import utc_now  # noqa: E402
from docsync.platform.chunkers import TokenChunker  # noqa: E402
from docsync.platform.connectors.retry_helpers import BackoffPolicy  # noqa: E402
from docsync.platform.credentials import InMemoryTokenStore, OAuthToken  # noqa: E402
from docsync.platform.state import InMemoryConnectorStateStore  # noqa: E402


class WordEncoding:
    """Tokenizer stand-in: one token per whitespace separated word."""

    name = "words"

    def __init__(self):
        self._ids: Dict[str, int] = {}
        self._words: Dict[int, str] = {}

    def encode(self, text: str, allowed_special="all") -> List[int]:
        tokens = []
        for word in text.split():
            if word not in self._ids:
                self._ids[word] = len(self._ids)
                self._words[self._ids[word]] = word
            tokens.append(self._ids[word])
        return tokens

    def decode(self, tokens: List[int]) -> str:
        return " ".join(self._words[token] for token in tokens)


@pytest.fixture
def word_encoding():
    """Offline tokenizer for chunkers."""
    return WordEncoding()


@pytest.fixture
def chunker(word_encoding):
    """Chunker producing 50-word windows without overlap."""
    return TokenChunker(chunk_size=50, overlap=0, encoding=word_encoding)


@pytest.fixture
def state_store():
    """In-memory connector state store."""
    return InMemoryConnectorStateStore()


@pytest.fixture
def token_store():
    """In-memory token store."""
    return InMemoryTokenStore()


@pytest.fixture
def valid_token():
    """An unexpired OAuth token with a refresh token."""
    return OAuthToken(
        access_token="access-1",
        refresh_token="refresh-1",
        expiry=utc_now() + timedelta(hours=1),
    )


@pytest.fixture
def fast_backoff():
    """Backoff policy with millisecond delays."""
    return BackoffPolicy(initial_delay=0.001, max_delay=0.004, max_retries=3)


@pytest.fixture
def mock_vector_store():
    """Vector store recording calls."""
    store = MagicMock()
    store.add_vectors = AsyncMock()
    store.delete_document_chunks = AsyncMock()
    store.setup = AsyncMock()
    store.close = AsyncMock()
    return store


@pytest.fixture
def mock_embedder():
    """Embedder returning a fixed 3-dim vector."""
    embedder = MagicMock()
    embedder.embed = AsyncMock(return_value=[0.1, 0.2, 0.3])
    embedder.close = AsyncMock()
    return embedder
