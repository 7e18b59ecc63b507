"""Configuration settings for docsync.

Values are read from the environment (and an optional ``.env`` file) once at
import time and exposed through the module-level ``settings`` singleton.
"""

from pathlib import Path
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Sync engine settings.

    Attributes are grouped by the component that reads them. Every component
    reads its knobs from here at construction time, so tests can pass explicit
    values instead of patching the environment.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["text", "json"] = "text"

    # Scheduler
    SYNC_CHECK_PERIOD_SECONDS: float = 60.0
    STALE_THRESHOLD_SECONDS: float = 60.0

    # Chunk pipeline
    MIN_CHUNK_SIZE: int = 10
    CHUNK_QUEUE_SIZE: int = 64
    CHUNK_SIZE_TOKENS: int = 512
    CHUNK_OVERLAP_TOKENS: int = 64

    # Outbound source API backoff
    SOURCE_RETRY_INITIAL_DELAY: float = 0.5
    SOURCE_RETRY_MAX_DELAY: float = 64.0
    SOURCE_RETRY_MAX_RETRIES: int = 10
    SOURCE_HTTP_TIMEOUT: float = 30.0

    # Embeddings
    EMBEDDING_PROVIDER: Literal["ollama", "openai"] = "ollama"
    OLLAMA_HOST: str = "127.0.0.1:11434"
    EMBEDDING_MODEL: str = "nomic-embed-text"
    EMBEDDING_TIMEOUT: float = 30.0
    EMBEDDING_RETRY_ATTEMPTS: int = 3
    EMBEDDING_RETRY_INITIAL_DELAY: float = 2.0
    EMBEDDING_RETRY_MAX_DELAY: float = 16.0
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"

    # Vector store
    QDRANT_URL: str = "http://localhost:6333"
    QDRANT_API_KEY: Optional[str] = None
    QDRANT_COLLECTION: str = "docsync_chunks"
    VECTOR_SIZE: int = 768

    # Connector state store
    STATE_BACKEND: Literal["memory", "redis"] = "memory"
    REDIS_URL: str = "redis://localhost:6379/0"
    CONNECTOR_LOCK_TTL_SECONDS: int = 3600

    # Credentials
    TOKEN_STORE_PATH: Path = Path.home() / ".docsync" / "tokens"

    # Google OAuth client
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    OAUTH_REDIRECT_BASE_URL: str = "http://127.0.0.1:8081"

    @field_validator("MIN_CHUNK_SIZE", "CHUNK_QUEUE_SIZE", "CHUNK_SIZE_TOKENS")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("CHUNK_OVERLAP_TOKENS")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @property
    def ollama_base_url(self) -> str:
        """Ollama base URL with a scheme, accepting bare ``host:port`` values."""
        if self.OLLAMA_HOST.startswith(("http://", "https://")):
            return self.OLLAMA_HOST.rstrip("/")
        return f"http://{self.OLLAMA_HOST.rstrip('/')}"


settings = Settings()
